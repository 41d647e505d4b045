from __future__ import annotations

from apps.payments.application.config import MpesaConfig
from apps.payments.domain.ports import MpesaGatewayPort
from apps.payments.infrastructure.gateways.daraja import DarajaGateway
from apps.payments.infrastructure.gateways.sandbox_stub import SandboxStubGateway


class PaymentGatewayFacade:
    _registry: dict[str, type] = {
        DarajaGateway.code: DarajaGateway,
        SandboxStubGateway.code: SandboxStubGateway,
    }

    @classmethod
    def get(cls, config: MpesaConfig) -> MpesaGatewayPort:
        key = (config.gateway or "").strip().lower()
        if key not in cls._registry:
            raise ValueError(f"Unknown payment provider: {config.gateway}")
        return cls._registry[key](config)
