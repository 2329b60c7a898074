from django.apps import AppConfig


class ReferralsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'referrals'
    verbose_name = 'Referral coordination'

    def ready(self) -> None:
        from . import signals  # noqa: F401
