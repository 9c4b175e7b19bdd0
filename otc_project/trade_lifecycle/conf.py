from django.conf import settings

DEFAULTS = {
    "TRADE_ID_START": 10000,
    "MAX_TRADE_DATE_AGE_DAYS": 30,
    "FORCE_FINAL_STUB": False,
    "OWNERLESS_TRADER_FALLBACK": True,
}


def lifecycle_setting(name: str):
    overrides = getattr(settings, "TRADE_LIFECYCLE", {}) or {}
    if name in overrides:
        return overrides[name]
    return DEFAULTS[name]
