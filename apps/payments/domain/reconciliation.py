from __future__ import annotations

from dataclasses import dataclass

from apps.orders.domain.status import PaymentStatus

from .callback import StkCallback
from .payment_details import PaymentDetails


@dataclass(frozen=True)
class Acknowledgement:
    result_code: int
    result_desc: str

    def as_dict(self) -> dict:
        return {"ResultCode": self.result_code, "ResultDesc": self.result_desc}


ACCEPTED = Acknowledgement(0, "Accepted")
ALREADY_PROCESSED = Acknowledgement(0, "Already processed")
NO_MATCHING_ORDER = Acknowledgement(0, "Accepted (no matching order found)")
RECORD_FAILED = Acknowledgement(1, "Failed to record callback")


@dataclass(frozen=True)
class PaymentState:
    payment_status: str
    details: PaymentDetails


@dataclass(frozen=True)
class ReconcileOutcome:
    state: PaymentState
    acknowledgement: Acknowledgement
    changed: bool


def reconcile(state: PaymentState, callback: StkCallback, now: str) -> ReconcileOutcome:
    """Fold one provider result into the current payment state.

    A paid order is terminal: every later result is acknowledged and ignored.
    """
    if state.payment_status == PaymentStatus.PAID:
        return ReconcileOutcome(state=state, acknowledgement=ALREADY_PROCESSED, changed=False)

    if callback.succeeded:
        details = state.details.merge(
            transaction_id=callback.receipt or state.details.transaction_id,
            payload=callback.raw,
            paid_at=now,
        )
        new_state = PaymentState(payment_status=PaymentStatus.PAID.value, details=details)
    else:
        details = state.details.merge(
            payload=callback.raw,
            failure_reason=callback.result_desc or "Unknown",
            failed_at=now,
        )
        new_state = PaymentState(payment_status=PaymentStatus.FAILED.value, details=details)

    return ReconcileOutcome(state=new_state, acknowledgement=ACCEPTED, changed=True)
