from django.db import models


class TradeState(models.TextChoices):
    NEW = "NEW", "New"
    AMENDED = "AMENDED", "Amended"
    TERMINATED = "TERMINATED", "Terminated"
    CANCELLED = "CANCELLED", "Cancelled"


TERMINAL_STATES = frozenset({TradeState.TERMINATED.value, TradeState.CANCELLED.value})


class LegType(models.TextChoices):
    FIXED = "FIXED", "Fixed"
    FLOATING = "FLOATING", "Floating"


class PayReceive(models.TextChoices):
    PAY = "PAY", "Pay"
    RECEIVE = "RECEIVE", "Receive"


class Action(models.TextChoices):
    CREATE = "CREATE", "Create"
    AMEND = "AMEND", "Amend"
    TERMINATE = "TERMINATE", "Terminate"
    CANCEL = "CANCEL", "Cancel"
    VIEW = "VIEW", "View"


class Role(models.TextChoices):
    TRADER = "TRADER", "Trader"
    SALES = "SALES", "Sales"
    MIDDLE_OFFICE = "MIDDLE_OFFICE", "Middle Office"
    SUPPORT = "SUPPORT", "Support"
    SUPERUSER = "SUPERUSER", "Superuser"
