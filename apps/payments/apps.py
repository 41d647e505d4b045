from django.apps import AppConfig
from django.conf import settings
from django.core.signals import setting_changed


class PaymentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.payments"
    verbose_name = "Payments"

    mpesa_config = None

    def ready(self):
        from apps.payments.application.config import MpesaConfig

        self.mpesa_config = MpesaConfig.from_settings(settings)
        self.mpesa_config.check_deployment(environment=getattr(settings, "ENVIRONMENT", ""))
        setting_changed.connect(self._reload_mpesa_config, dispatch_uid="payments.reload_mpesa_config")

    def _reload_mpesa_config(self, *, setting, **kwargs):
        from apps.payments.application.config import MpesaConfig

        if setting.startswith("MPESA_"):
            self.mpesa_config = MpesaConfig.from_settings(settings)
