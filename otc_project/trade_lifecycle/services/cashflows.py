import calendar
import logging
from datetime import date
from decimal import ROUND_HALF_EVEN, Decimal
from typing import List, Optional

from ..conf import lifecycle_setting
from ..dto import CashflowDTO
from ..enums import LegType

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MONTHS = 3
CENT = Decimal("0.01")
YEAR_FRACTION_PLACES = Decimal("1E-10")

NAMED_FREQUENCIES = {
    "monthly": 1,
    "quarterly": 3,
    "semi-annually": 6,
    "semiannually": 6,
    "half-yearly": 6,
    "annually": 12,
    "yearly": 12,
}


class InvalidScheduleFormat(ValueError): pass


def parse_schedule(schedule: Optional[str]) -> int:
    if schedule is None or not str(schedule).strip():
        return DEFAULT_INTERVAL_MONTHS
    text = str(schedule).strip()
    named = NAMED_FREQUENCIES.get(text.lower())
    if named is not None:
        return named
    if text[-1] in "mM" and text[:-1].isdigit():
        months = int(text[:-1])
        if months > 0:
            return months
    raise InvalidScheduleFormat(f"Invalid schedule format: {schedule}")


def add_months(d: date, months: int) -> date:
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def payment_dates(start_date: date, maturity_date: date, interval: int) -> List[date]:
    dates = []
    current = add_months(start_date, interval)
    while current <= maturity_date:
        dates.append(current)
        current = add_months(current, interval)
    return dates


def rate_as_decimal(rate) -> Decimal:
    # Rates above 1 are quoted in percent (3.5 means 3.5%), below that as fractions.
    raw = Decimal(str(rate))
    return raw / 100 if raw > 1 else raw


def period_value(notional, rate, interval: int) -> Decimal:
    notional = Decimal(str(notional)) if notional is not None else Decimal("0")
    year_fraction = (Decimal(interval) / Decimal(12)).quantize(YEAR_FRACTION_PLACES, rounding=ROUND_HALF_EVEN)
    return (notional * rate_as_decimal(rate) * year_fraction).quantize(CENT, rounding=ROUND_HALF_EVEN)


def payment_value(leg, interval: int, floating_rate=None) -> Decimal:
    leg_type = (getattr(leg, "leg_type", None) or "").upper()
    if leg_type == LegType.FIXED and leg.rate is not None:
        return period_value(leg.notional, leg.rate, interval)
    if leg_type == LegType.FLOATING:
        rate = floating_rate if floating_rate is not None else leg.rate
        if rate is not None:
            return period_value(leg.notional, rate, interval)
    return Decimal("0.00")


def _schedule_text(leg) -> Optional[str]:
    schedule = getattr(leg, "schedule", None)
    if schedule is None or isinstance(schedule, str):
        return schedule
    return getattr(schedule, "schedule", None)


def _stub_value(full_value: Decimal, last: date, maturity: date, interval: int) -> Decimal:
    nominal_days = (add_months(last, interval) - last).days
    stub_days = (maturity - last).days
    return (full_value * Decimal(stub_days) / Decimal(nominal_days)).quantize(CENT, rounding=ROUND_HALF_EVEN)


def generate(leg, start_date: date, maturity_date: date, *, floating_rate=None,
             force_final_stub: Optional[bool] = None) -> List[CashflowDTO]:
    """Derive the dated payments of one leg between start and maturity.

    ``leg`` is anything exposing ``notional``, ``rate``, ``leg_type``,
    ``pay_receive``, ``schedule`` and ``payment_bdc``: a ``TradeLeg`` row or a
    ``TradeLegDTO``. Floating legs pay zero unless ``floating_rate`` is given
    or the leg carries a rate of its own.
    """
    if leg is None:
        raise ValueError("generate() requires a leg")
    if force_final_stub is None:
        force_final_stub = lifecycle_setting("FORCE_FINAL_STUB")

    interval = parse_schedule(_schedule_text(leg))
    dates = payment_dates(start_date, maturity_date, interval)
    value = payment_value(leg, interval, floating_rate)
    pay_rec = getattr(leg, "pay_receive", None)
    bdc = getattr(leg, "payment_bdc", None)

    cashflows = [
        CashflowDTO(value_date=d, payment_value=value, rate=leg.rate, pay_rec=pay_rec, payment_bdc=bdc)
        for d in dates
    ]
    last = dates[-1] if dates else start_date
    if force_final_stub and last < maturity_date:
        cashflows.append(
            CashflowDTO(
                value_date=maturity_date,
                payment_value=_stub_value(value, last, maturity_date, interval),
                rate=leg.rate,
                pay_rec=pay_rec,
                payment_bdc=bdc,
            )
        )
    logger.debug("Generated %d cashflows every %dM from %s to %s", len(cashflows), interval, start_date, maturity_date)
    return cashflows
