from django.apps import AppConfig


class TradeLifecycleConfig(AppConfig):
    name = "trade_lifecycle"
    default_auto_field = "django.db.models.BigAutoField"
