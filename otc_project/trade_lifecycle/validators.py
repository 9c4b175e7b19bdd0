import re
from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence

from django.utils import timezone

from .conf import lifecycle_setting
from .dto import TradeDTO, TradeLegDTO, ValidationResult
from .enums import LegType


class ValidationFailed(Exception):
    def __init__(self, errors: Sequence[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


SETTLEMENT_MIN_LENGTH = 10
SETTLEMENT_MAX_LENGTH = 500
UNESCAPED_QUOTE = re.compile(r"(?<!\\)[\"']")
SETTLEMENT_ALLOWED = re.compile(r"(?:\\['\"]|[^\W_]|[ ,.:;/()\-\n\r])+")


def resolve_reference(resolver, ref_id, ref_name):
    """Look a reference up by id, falling back to its name or login."""
    entity = resolver(ref_id) if ref_id is not None else None
    if entity is None and ref_name:
        entity = resolver(ref_name)
    return entity


def check_dates(dto: TradeDTO, today: Optional[date] = None, check_trade_date_age: bool = True) -> List[str]:
    errors: List[str] = []
    if dto.trade_date is None:
        errors.append("Trade date is required")
    if dto.legs:
        if dto.start_date is None:
            errors.append("Start date is required")
        if dto.maturity_date is None:
            errors.append("Maturity date is required")

    if dto.start_date and dto.maturity_date and dto.maturity_date < dto.start_date:
        errors.append("Maturity date cannot be before start date")
    if dto.trade_date and dto.start_date and dto.start_date < dto.trade_date:
        errors.append("Start date cannot be before trade date")

    # An amendment restates the booked trade date, so only bookings are aged.
    if check_trade_date_age and dto.trade_date is not None:
        today = today or timezone.localdate()
        max_age = lifecycle_setting("MAX_TRADE_DATE_AGE_DAYS")
        if (today - dto.trade_date).days > max_age:
            errors.append(f"Trade date cannot be more than {max_age} days in the past")
    return errors


def _fixed_rate_errors(leg: TradeLegDTO) -> List[str]:
    if leg.rate is None:
        return ["Fixed leg must specify a rate"]
    rate = Decimal(str(leg.rate))
    if rate <= 0:
        return ["Fixed leg rate must be greater than zero"]
    if rate > 100:
        return ["Fixed leg rate cannot exceed 100"]
    if -rate.normalize().as_tuple().exponent > 4:
        return ["Fixed leg rate cannot have more than 4 decimal places"]
    return []


def check_legs(dto: TradeDTO) -> List[str]:
    if len(dto.legs) < 2:
        return []
    errors: List[str] = []
    leg1, leg2 = dto.legs[0], dto.legs[1]

    maturity1 = leg1.maturity_date or dto.maturity_date
    maturity2 = leg2.maturity_date or dto.maturity_date
    if maturity1 is None or maturity2 is None:
        errors.append("Both legs must have a maturity date defined")
    elif maturity1 != maturity2:
        errors.append("Both legs must have identical maturity dates")

    if leg1.pay_receive is None or leg2.pay_receive is None:
        errors.append("Both legs must have a pay/receive flag defined")
    elif leg1.pay_receive.upper() == leg2.pay_receive.upper():
        errors.append("Legs must have opposite pay/receive flags")

    for position, leg in enumerate(dto.legs, start=1):
        leg_type = (leg.leg_type or "").upper()
        if leg_type == LegType.FLOATING:
            if leg.index_id is None and not (leg.index_name or "").strip():
                errors.append(f"Leg {position}: floating leg must specify an index")
        elif leg_type == LegType.FIXED:
            errors.extend(f"Leg {position}: {msg}" for msg in _fixed_rate_errors(leg))
    return errors


def _reference_errors(label: str, entity, ref_id, ref_name) -> List[str]:
    if entity is None:
        ref = ref_name if ref_name else ref_id
        return [f"{label} not found: {ref}"]
    if not getattr(entity, "active", True):
        return [f"{label} must be active"]
    return []


def check_entity_references(dto: TradeDTO, references) -> List[str]:
    errors: List[str] = []
    has_book = dto.book_id is not None or bool(dto.book_name)
    has_counterparty = dto.counterparty_id is not None or bool(dto.counterparty_name)
    if not has_book and not has_counterparty:
        errors.append("Missing both book and counterparty reference")
    elif not has_book:
        errors.append("Missing book reference")
    elif not has_counterparty:
        errors.append("Missing counterparty reference")

    if has_book:
        book = resolve_reference(references.resolve_book, dto.book_id, dto.book_name)
        errors.extend(_reference_errors("Book", book, dto.book_id, dto.book_name))
    if has_counterparty:
        counterparty = resolve_reference(
            references.resolve_counterparty, dto.counterparty_id, dto.counterparty_name
        )
        errors.extend(
            _reference_errors("Counterparty", counterparty, dto.counterparty_id, dto.counterparty_name)
        )
    # Trader is optional: legacy trades were booked without an owner.
    if dto.trader_user_id is not None or dto.trader_user_name:
        trader = resolve_reference(references.resolve_user, dto.trader_user_id, dto.trader_user_name)
        errors.extend(
            _reference_errors("Trader user", trader, dto.trader_user_id, dto.trader_user_name)
        )
    return errors


def check_settlement_instructions(text: Optional[str]) -> List[str]:
    if text is None or not text.strip():
        return []
    text = text.strip()

    if not SETTLEMENT_MIN_LENGTH <= len(text) <= SETTLEMENT_MAX_LENGTH:
        return [
            f"Settlement instructions must be between {SETTLEMENT_MIN_LENGTH} "
            f"and {SETTLEMENT_MAX_LENGTH} characters."
        ]
    if ";" in text:
        return ["Semicolons are not allowed in settlement instructions."]
    if UNESCAPED_QUOTE.search(text):
        return ['Unescaped quote found. Escape quotes with a backslash (\\" for double quotes).']
    if not SETTLEMENT_ALLOWED.fullmatch(text):
        return [
            "Settlement instructions contain unsupported characters. "
            "Only letters, digits, spaces, line breaks and , . : / - ( ) are allowed."
        ]
    return []


def check_leg_count(dto: TradeDTO) -> List[str]:
    if len(dto.legs) != 2:
        return ["Trade must have exactly 2 legs"]
    return []


def validate(dto: TradeDTO, *, references, today: Optional[date] = None,
             on_amend: bool = False) -> ValidationResult:
    if references is None:
        raise ValueError("validate() requires a reference-data resolver")
    errors: List[str] = []
    errors += check_dates(dto, today, check_trade_date_age=not on_amend)
    errors += check_legs(dto)
    errors += check_entity_references(dto, references)
    errors += check_settlement_instructions(dto.settlement_instructions)
    return ValidationResult(errors=tuple(errors))
