from django.apps import AppConfig


class QuotingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "quoting"
    verbose_name = "Quoting"
