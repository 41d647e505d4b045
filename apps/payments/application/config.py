from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlencode

from django.core.exceptions import ImproperlyConfigured

SANDBOX_BASE_URL = "https://sandbox.safaricom.co.ke"
PRODUCTION_BASE_URL = "https://api.safaricom.co.ke"

PLACEHOLDER_SECURITY_CREDENTIAL = "PLACEHOLDER_SECURITY_CREDENTIAL"


@dataclass(frozen=True)
class MpesaConfig:
    environment: str
    gateway: str
    consumer_key: str
    consumer_secret: str
    shortcode: str
    passkey: str
    callback_url: str
    callback_secret: str
    initiator_name: str
    initiator_password: str
    stk_timeout_seconds: int = 30
    http_timeout_seconds: int = 15
    account_reference: str = "EcommerceApp"

    @classmethod
    def from_settings(cls, settings) -> "MpesaConfig":
        return cls(
            environment=(getattr(settings, "MPESA_ENV", "sandbox") or "sandbox").strip().lower(),
            gateway=(getattr(settings, "MPESA_GATEWAY", "daraja") or "daraja").strip().lower(),
            consumer_key=getattr(settings, "MPESA_CONSUMER_KEY", "") or "",
            consumer_secret=getattr(settings, "MPESA_CONSUMER_SECRET", "") or "",
            shortcode=str(getattr(settings, "MPESA_SHORTCODE", "") or ""),
            passkey=getattr(settings, "MPESA_PASSKEY", "") or "",
            callback_url=(getattr(settings, "MPESA_CALLBACK_URL", "") or "").rstrip("/"),
            callback_secret=getattr(settings, "MPESA_CALLBACK_SECRET", "") or "",
            initiator_name=getattr(settings, "MPESA_INITIATOR_NAME", "testapi") or "testapi",
            initiator_password=getattr(settings, "MPESA_INITIATOR_PASSWORD", "") or "",
            stk_timeout_seconds=int(getattr(settings, "MPESA_STK_TIMEOUT_SECONDS", 30)),
            http_timeout_seconds=int(getattr(settings, "MPESA_HTTP_TIMEOUT_SECONDS", 15)),
        )

    @property
    def base_url(self) -> str:
        return PRODUCTION_BASE_URL if self.environment == "production" else SANDBOX_BASE_URL

    def _with_secret(self, url: str) -> str:
        return f"{url}?{urlencode({'secret': self.callback_secret})}"

    def stk_callback_url(self, order_id) -> str:
        return self._with_secret(f"{self.callback_url}/{order_id}/")

    def result_url(self, order_id) -> str:
        return self._with_secret(f"{self.callback_url}/transaction/{order_id}/")

    def queue_timeout_url(self, order_id) -> str:
        return self._with_secret(f"{self.callback_url}/timeout/{order_id}/")

    def missing_credentials(self) -> list[str]:
        required = {
            "MPESA_CONSUMER_KEY": self.consumer_key,
            "MPESA_CONSUMER_SECRET": self.consumer_secret,
            "MPESA_SHORTCODE": self.shortcode,
            "MPESA_PASSKEY": self.passkey,
            "MPESA_CALLBACK_URL": self.callback_url,
            "MPESA_CALLBACK_SECRET": self.callback_secret,
        }
        return [name for name, value in required.items() if not value]

    def check_deployment(self, *, environment: str) -> None:
        if (environment or "").strip().lower() not in {"prod", "production"}:
            return
        missing = self.missing_credentials()
        if missing:
            raise ImproperlyConfigured(f"M-Pesa settings missing in production: {', '.join(missing)}")
        if self.environment != "production":
            raise ImproperlyConfigured("MPESA_ENV must be 'production' when ENVIRONMENT is production.")
        if self.gateway != "daraja":
            raise ImproperlyConfigured("MPESA_GATEWAY must be 'daraja' when ENVIRONMENT is production.")
