from django.db import models
from .enums import LegType, PayReceive


class Book(models.Model):
    book_name = models.CharField(max_length=120, unique=True)
    active = models.BooleanField(default=True)


class Counterparty(models.Model):
    name = models.CharField(max_length=120, unique=True)
    active = models.BooleanField(default=True)


class ApplicationUser(models.Model):
    login_id = models.CharField(max_length=64, unique=True)
    first_name = models.CharField(max_length=64, blank=True, default="")
    last_name = models.CharField(max_length=64, blank=True, default="")
    user_type = models.CharField(max_length=32, blank=True, default="")
    active = models.BooleanField(default=True)


class UserPrivilege(models.Model):
    user = models.ForeignKey(ApplicationUser, on_delete=models.CASCADE, related_name="privileges")
    name = models.CharField(max_length=64)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["user", "name"], name="unique_user_privilege"),
        ]


class TradeStatus(models.Model):
    trade_status = models.CharField(max_length=32, unique=True)


class Currency(models.Model):
    currency = models.CharField(max_length=3, unique=True)


class Index(models.Model):
    index = models.CharField(max_length=32, unique=True)


class Schedule(models.Model):
    schedule = models.CharField(max_length=32, unique=True)


class BusinessDayConvention(models.Model):
    bdc = models.CharField(max_length=32, unique=True)


class Trade(models.Model):
    trade_id = models.BigIntegerField(db_index=True)
    version = models.PositiveIntegerField(default=1)
    active = models.BooleanField(default=True)
    trade_status = models.ForeignKey(TradeStatus, on_delete=models.PROTECT, related_name="trades")
    trade_date = models.DateField()
    start_date = models.DateField(null=True, blank=True)
    maturity_date = models.DateField(null=True, blank=True)
    execution_date = models.DateField(null=True, blank=True)
    uti_code = models.CharField(max_length=64, blank=True, default="")
    book = models.ForeignKey(Book, on_delete=models.PROTECT, related_name="trades")
    counterparty = models.ForeignKey(Counterparty, on_delete=models.PROTECT, related_name="trades")
    trader_user = models.ForeignKey(
        ApplicationUser, on_delete=models.PROTECT, null=True, blank=True, related_name="owned_trades"
    )
    inputter_user = models.ForeignKey(
        ApplicationUser, on_delete=models.PROTECT, null=True, blank=True, related_name="input_trades"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    last_touch_timestamp = models.DateTimeField(null=True, blank=True)
    deactivated_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["trade_id", "version"], name="unique_trade_version"),
            models.UniqueConstraint(
                fields=["trade_id"], condition=models.Q(active=True), name="one_active_version_per_trade"
            ),
            models.CheckConstraint(condition=models.Q(version__gte=1), name="version_starts_at_one"),
        ]


class TradeLeg(models.Model):
    trade = models.ForeignKey(Trade, on_delete=models.CASCADE, related_name="legs")
    notional = models.DecimalField(max_digits=20, decimal_places=2)
    rate = models.DecimalField(max_digits=12, decimal_places=6, null=True, blank=True)
    leg_type = models.CharField(max_length=8, choices=LegType.choices, null=True, blank=True)
    pay_receive = models.CharField(max_length=7, choices=PayReceive.choices, null=True, blank=True)
    currency = models.ForeignKey(Currency, on_delete=models.PROTECT, null=True, blank=True)
    index = models.ForeignKey(Index, on_delete=models.PROTECT, null=True, blank=True)
    schedule = models.ForeignKey(Schedule, on_delete=models.PROTECT, null=True, blank=True)
    payment_bdc = models.ForeignKey(
        BusinessDayConvention, on_delete=models.PROTECT, null=True, blank=True, related_name="+"
    )
    fixing_bdc = models.ForeignKey(
        BusinessDayConvention, on_delete=models.PROTECT, null=True, blank=True, related_name="+"
    )

    class Meta:
        constraints = [
            models.CheckConstraint(condition=models.Q(notional__gte=0), name="notional_non_negative"),
        ]


class Cashflow(models.Model):
    leg = models.ForeignKey(TradeLeg, on_delete=models.CASCADE, related_name="cashflows")
    value_date = models.DateField()
    payment_value = models.DecimalField(max_digits=20, decimal_places=2)
    rate = models.DecimalField(max_digits=12, decimal_places=6, null=True, blank=True)
    pay_rec = models.CharField(max_length=7, choices=PayReceive.choices, null=True, blank=True)
    payment_bdc = models.ForeignKey(
        BusinessDayConvention, on_delete=models.PROTECT, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)


class AdditionalInfo(models.Model):
    entity_type = models.CharField(max_length=32)
    entity_id = models.BigIntegerField()
    field_name = models.CharField(max_length=64)
    field_value = models.TextField(blank=True, default="")
    field_type = models.CharField(max_length=16, default="STRING")
    active = models.BooleanField(default=True)
    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["entity_type", "entity_id", "field_name"],
                condition=models.Q(active=True),
                name="one_active_additional_info",
            ),
        ]
