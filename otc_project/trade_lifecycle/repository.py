"""Lookup and save contracts the lifecycle engine consumes.

Every resolver accepts either a primary key (int) or a business name (str)
and returns the matching row or ``None``. Database failures during resolution
are reported as :class:`ReferenceDataMissing`.
"""
import logging
from functools import wraps
from typing import Iterable, List, Optional

from django.db import DatabaseError
from django.db.models import Max
from django.utils import timezone

from .conf import lifecycle_setting
from .models import (
    AdditionalInfo,
    ApplicationUser,
    Book,
    BusinessDayConvention,
    Cashflow,
    Counterparty,
    Currency,
    Index,
    Schedule,
    Trade,
    TradeStatus,
    UserPrivilege,
)

logger = logging.getLogger(__name__)

TRADE_ENTITY = "TRADE"
SETTLEMENT_FIELD = "SETTLEMENT_INSTRUCTIONS"


class ReferenceDataMissing(Exception): pass


def _reference_lookup(label):
    def decorator(fn):
        @wraps(fn)
        def wrapper(ref):
            if ref is None or (isinstance(ref, str) and not ref.strip()):
                return None
            try:
                return fn(ref)
            except DatabaseError as exc:
                logger.error("%s lookup failed for %r: %s", label, ref, exc)
                raise ReferenceDataMissing(f"{label} lookup failed for {ref!r}") from exc
        return wrapper
    return decorator


def _by_pk_or_field(model, field_name: str, ref):
    if isinstance(ref, int):
        return model.objects.filter(pk=ref).first()
    return model.objects.filter(**{f"{field_name}__iexact": str(ref).strip()}).first()


@_reference_lookup("Book")
def resolve_book(ref) -> Optional[Book]:
    return _by_pk_or_field(Book, "book_name", ref)


@_reference_lookup("Counterparty")
def resolve_counterparty(ref) -> Optional[Counterparty]:
    return _by_pk_or_field(Counterparty, "name", ref)


@_reference_lookup("User")
def resolve_user(ref) -> Optional[ApplicationUser]:
    if isinstance(ref, int):
        return ApplicationUser.objects.filter(pk=ref).first()
    name = ref.strip()
    user = ApplicationUser.objects.filter(login_id__iexact=name).first()
    if user is None:
        user = ApplicationUser.objects.filter(first_name__iexact=name.split()[0]).first()
    return user


@_reference_lookup("Currency")
def resolve_currency(ref) -> Optional[Currency]:
    return _by_pk_or_field(Currency, "currency", ref)


@_reference_lookup("Index")
def resolve_index(ref) -> Optional[Index]:
    return _by_pk_or_field(Index, "index", ref)


@_reference_lookup("Schedule")
def resolve_schedule(ref) -> Optional[Schedule]:
    return _by_pk_or_field(Schedule, "schedule", ref)


@_reference_lookup("Business day convention")
def resolve_business_day_convention(ref) -> Optional[BusinessDayConvention]:
    return _by_pk_or_field(BusinessDayConvention, "bdc", ref)


@_reference_lookup("Trade status")
def resolve_status(ref) -> Optional[TradeStatus]:
    return _by_pk_or_field(TradeStatus, "trade_status", ref)


def require_status(name: str) -> TradeStatus:
    status = resolve_status(name)
    if status is None:
        raise ReferenceDataMissing(f"{name} status not found")
    return status


def find_active_user(login_id: Optional[str]) -> Optional[ApplicationUser]:
    if not login_id or not login_id.strip():
        return None
    return ApplicationUser.objects.filter(login_id__iexact=login_id.strip(), active=True).first()


def find_user_privileges(login_id: Optional[str]) -> List[str]:
    if not login_id:
        return []
    names = UserPrivilege.objects.filter(user__login_id__iexact=login_id).values_list("name", flat=True)
    return [n.strip().upper() for n in names if n]


def find_active_trade_by_business_id(trade_id: int, *, for_update: bool = False) -> Optional[Trade]:
    # FOR UPDATE cannot lock the nullable side of an outer join.
    if for_update:
        qs = Trade.objects.select_for_update()
    else:
        qs = Trade.objects.select_related("trade_status", "trader_user", "book", "counterparty")
    return qs.filter(trade_id=trade_id, active=True).first()


def find_trades_by_business_ids(ids: Iterable[int]) -> List[Trade]:
    ids = list(ids or [])
    if not ids:
        return []
    return list(Trade.objects.filter(trade_id__in=ids).order_by("trade_id", "version"))


def find_trade_versions(trade_id: int) -> List[Trade]:
    return list(Trade.objects.filter(trade_id=trade_id).order_by("version"))


def save_trade(trade: Trade) -> Trade:
    trade.full_clean(validate_constraints=False)
    trade.save()
    return trade


def save_cashflow(cashflow: Cashflow) -> Cashflow:
    if cashflow.pk is not None:
        raise ValueError("Cashflows are write-once; regenerate instead of updating")
    cashflow.save()
    return cashflow


def deactivate_trade_version(trade: Trade) -> bool:
    """Deactivate ``trade`` only if it is still the active row at its version."""
    updated = Trade.objects.filter(pk=trade.pk, version=trade.version, active=True).update(
        active=False, deactivated_at=timezone.now()
    )
    return updated == 1


def next_trade_id() -> int:
    current = Trade.objects.aggregate(top=Max("trade_id"))["top"]
    if current is None:
        return lifecycle_setting("TRADE_ID_START")
    return current + 1


def get_settlement_instructions(trade_id: int) -> Optional[AdditionalInfo]:
    return AdditionalInfo.objects.filter(
        entity_type=TRADE_ENTITY, entity_id=trade_id, field_name=SETTLEMENT_FIELD, active=True
    ).first()


def search_settlement_instructions(keyword: str) -> List[AdditionalInfo]:
    return list(
        AdditionalInfo.objects.filter(
            entity_type=TRADE_ENTITY,
            field_name=SETTLEMENT_FIELD,
            active=True,
            field_value__icontains=keyword,
        ).order_by("entity_id")
    )


def upsert_settlement_instructions(trade_id: int, text: str) -> AdditionalInfo:
    info = get_settlement_instructions(trade_id)
    if info is None:
        info = AdditionalInfo.objects.create(
            entity_type=TRADE_ENTITY,
            entity_id=trade_id,
            field_name=SETTLEMENT_FIELD,
            field_value=text,
            field_type="STRING",
            active=True,
            version=1,
        )
        logger.info("Stored settlement instructions for trade %s", trade_id)
        return info
    info.field_value = text
    info.version = (info.version or 0) + 1
    info.save(update_fields=["field_value", "version", "updated_at"])
    logger.info("Updated settlement instructions for trade %s (v%s)", trade_id, info.version)
    return info
