import logging
from dataclasses import replace
from typing import Callable, Iterable, List, Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from .. import repository
from ..dto import AuthorizationContext, TradeDTO
from ..enums import Action, Role, TradeState
from ..mappers import cashflow_to_model, dto_from_model
from ..models import Cashflow, Trade, TradeLeg
from ..repository import ReferenceDataMissing
from ..validators import ValidationFailed, check_leg_count, resolve_reference, validate
from .authorization import Forbidden, authorize, build_context, can_view_all, decide
from .cashflows import generate, parse_schedule
from .query_translator import translate_query
from .trade_workflow import amend, book, cancel, terminate

logger = logging.getLogger(__name__)


class NotFound(Exception): pass
class StaleAmendment(Exception): pass


def caller_context(user_id: Optional[str]) -> AuthorizationContext:
    user = repository.find_active_user(user_id)
    if user is None:
        raise Forbidden(f"Unknown or inactive user: {user_id}")
    return build_context(user.login_id, user.user_type, repository.find_user_privileges(user.login_id))


def _validate_or_raise(dto: TradeDTO, on_amend: bool = False):
    result = validate(dto, references=repository, on_amend=on_amend)
    errors = list(result.errors) + check_leg_count(dto)
    if errors:
        logger.info("Validation failed for trade %s: %s", dto.trade_id, errors)
        raise ValidationFailed(errors)


def _required(label: str, entity):
    if entity is None:
        raise ReferenceDataMissing(f"{label} not found or not set")
    return entity


def _optional(label: str, resolver, ref):
    if ref is None or (isinstance(ref, str) and not ref.strip()):
        return None
    return _required(f"{label} '{ref}'", resolver(ref))


def _apply_references(trade: Trade, dto: TradeDTO, previous: Optional[Trade] = None):
    trade.book = _required("Book", resolve_reference(repository.resolve_book, dto.book_id, dto.book_name))
    trade.counterparty = _required(
        "Counterparty",
        resolve_reference(repository.resolve_counterparty, dto.counterparty_id, dto.counterparty_name),
    )
    trader = resolve_reference(repository.resolve_user, dto.trader_user_id, dto.trader_user_name)
    inputter = resolve_reference(repository.resolve_user, dto.inputter_user_id, dto.inputter_user_name)
    if previous is not None:
        trader = trader or previous.trader_user
        inputter = inputter or previous.inputter_user
    trade.trader_user = trader
    trade.inputter_user = inputter


def _leg_index(leg_dto):
    ref = leg_dto.index_id if leg_dto.index_id is not None else leg_dto.index_name
    if ref is None or (isinstance(ref, str) and not ref.strip()):
        return None
    return _required(
        f"Index '{ref}'", resolve_reference(repository.resolve_index, leg_dto.index_id, leg_dto.index_name)
    )


def _new_trade_row(dto: TradeDTO, status: str) -> Trade:
    now = timezone.now()
    return Trade(
        trade_id=dto.trade_id,
        version=dto.version,
        active=True,
        trade_status=repository.require_status(status),
        trade_date=dto.trade_date,
        start_date=dto.start_date,
        maturity_date=dto.maturity_date,
        execution_date=dto.execution_date,
        uti_code=dto.uti_code or "",
        last_touch_timestamp=now,
    )


def _book_legs_with_cashflows(trade: Trade, dto: TradeDTO) -> List[TradeLeg]:
    legs = []
    for position, leg_dto in enumerate(dto.legs, start=1):
        if leg_dto.schedule:
            parse_schedule(leg_dto.schedule)
        leg = TradeLeg(
            trade=trade,
            notional=leg_dto.notional,
            rate=leg_dto.rate,
            leg_type=leg_dto.leg_type,
            pay_receive=leg_dto.pay_receive,
            currency=_optional("Currency", repository.resolve_currency, leg_dto.currency),
            index=_leg_index(leg_dto),
            schedule=_optional("Schedule", repository.resolve_schedule, leg_dto.schedule),
            payment_bdc=_optional(
                "Business day convention", repository.resolve_business_day_convention, leg_dto.payment_bdc
            ),
            fixing_bdc=_optional(
                "Business day convention", repository.resolve_business_day_convention, leg_dto.fixing_bdc
            ),
        )
        try:
            leg.full_clean(exclude=["trade"])
        except DjangoValidationError as exc:
            raise ValidationFailed([f"Leg {position}: {msg}" for msg in exc.messages]) from exc
        leg.save()
        legs.append(leg)

        if trade.start_date and trade.maturity_date:
            cashflows = generate(leg, trade.start_date, trade.maturity_date)
            for cf in cashflows:
                repository.save_cashflow(cashflow_to_model(cf, leg))
            logger.info("Generated %d cashflows for leg %s of trade %s", len(cashflows), leg.pk, trade.trade_id)
    return legs


def _store_settlement_instructions(trade_id: int, text: Optional[str]):
    if text is not None and text.strip():
        repository.upsert_settlement_instructions(trade_id, text.strip())


def create_trade(dto: TradeDTO, context: AuthorizationContext) -> Trade:
    with transaction.atomic():
        if dto.trade_id is None:
            dto = replace(dto, trade_id=repository.next_trade_id())
            logger.info("Generated trade ID: %s", dto.trade_id)
        elif repository.find_trades_by_business_ids([dto.trade_id]):
            raise ValidationFailed([f"Trade {dto.trade_id} already exists"])

        _validate_or_raise(dto)
        authorize(Action.CREATE, None, context)
        dto = book(dto)

        trade = _new_trade_row(dto, TradeState.NEW)
        _apply_references(trade, dto)
        repository.save_trade(trade)
        _book_legs_with_cashflows(trade, dto)
        _store_settlement_instructions(trade.trade_id, dto.settlement_instructions)

    logger.info("Created trade %s", trade.trade_id, extra={"trade_id": trade.trade_id, "login_id": context.login_id})
    return trade


def amend_trade(trade_id: int, dto: TradeDTO, context: AuthorizationContext,
                expected_version: Optional[int] = None) -> Trade:
    """Replace the active version of ``trade_id`` with ``dto`` as version + 1.

    Deactivating the old row and inserting the new one commit together. The
    deactivation is conditional on the row still being active at the version
    read, so a concurrent amendment surfaces as :class:`StaleAmendment`.
    """
    with transaction.atomic():
        current = repository.find_active_trade_by_business_id(trade_id, for_update=True)
        if current is None:
            raise NotFound(f"Trade not found: {trade_id}")
        authorize(Action.AMEND, current, context)
        if expected_version is not None and expected_version != current.version:
            raise StaleAmendment(
                f"Trade {trade_id} is at version {current.version}, not {expected_version}"
            )

        dto = replace(dto, trade_id=trade_id)
        _validate_or_raise(dto, on_amend=True)
        next_dto = amend(dto_from_model(current), dto)

        if not repository.deactivate_trade_version(current):
            raise StaleAmendment(f"Trade {trade_id} was amended concurrently")

        amended = _new_trade_row(next_dto, TradeState.AMENDED)
        _apply_references(amended, next_dto, previous=current)
        repository.save_trade(amended)
        _book_legs_with_cashflows(amended, next_dto)
        _store_settlement_instructions(trade_id, next_dto.settlement_instructions)

    logger.info(
        "Amended trade %s to version %s", trade_id, amended.version,
        extra={"trade_id": trade_id, "version": amended.version, "login_id": context.login_id},
    )
    return amended


def _close_trade(trade_id: int, context: AuthorizationContext, action: str,
                 transition: Callable[[TradeDTO], TradeDTO]) -> Trade:
    authorize(action, None, context)
    with transaction.atomic():
        trade = repository.find_active_trade_by_business_id(trade_id, for_update=True)
        if trade is None:
            raise NotFound(f"Trade not found: {trade_id}")
        authorize(action, trade, context)
        closed = transition(dto_from_model(trade))
        trade.trade_status = repository.require_status(closed.status)
        trade.last_touch_timestamp = timezone.now()
        repository.save_trade(trade)
    logger.info("Trade %s is now %s", trade_id, closed.status, extra={"trade_id": trade_id, "action": action})
    return trade


def terminate_trade(trade_id: int, context: AuthorizationContext) -> Trade:
    return _close_trade(trade_id, context, Action.TERMINATE, terminate)


def cancel_trade(trade_id: int, context: AuthorizationContext) -> Trade:
    return _close_trade(trade_id, context, Action.CANCEL, cancel)


def delete_trade(trade_id: int, context: AuthorizationContext) -> Trade:
    logger.info("Deleting (cancelling) trade with business ID: %s", trade_id)
    return cancel_trade(trade_id, context)


def visible_trades(context: AuthorizationContext):
    authorize(Action.VIEW, None, context)
    qs = Trade.objects.filter(active=True).select_related("trade_status", "book", "counterparty", "trader_user")
    if Role.TRADER.value in context.roles and not can_view_all(context):
        qs = qs.filter(trader_user__login_id__iexact=context.login_id)
    return qs.order_by("-trade_id")


def list_trades(context: AuthorizationContext) -> List[Trade]:
    return list(visible_trades(context))


def search_trades(query: str, context: AuthorizationContext) -> List[Trade]:
    predicate = translate_query(query)
    return list(visible_trades(context).filter(predicate).distinct())


def get_trade(trade_id: int, context: AuthorizationContext) -> Trade:
    trade = repository.find_active_trade_by_business_id(trade_id)
    if trade is None:
        raise NotFound(f"Trade not found: {trade_id}")
    authorize(Action.VIEW, trade, context)
    return trade


def get_trades_by_ids(ids: Iterable[int], context: AuthorizationContext) -> List[Trade]:
    authorize(Action.VIEW, None, context)
    return [
        t for t in repository.find_trades_by_business_ids(ids)
        if decide(Action.VIEW, context, t).allowed
    ]


def get_cashflows(trade_id: int, context: AuthorizationContext) -> List[Cashflow]:
    trade = get_trade(trade_id, context)
    return list(Cashflow.objects.filter(leg__trade=trade).order_by("leg_id", "value_date"))


def get_settlement_instructions(trade_id: int, context: AuthorizationContext) -> Optional[str]:
    get_trade(trade_id, context)
    info = repository.get_settlement_instructions(trade_id)
    return info.field_value if info is not None else None


def search_settlement_instructions(keyword: str, context: AuthorizationContext) -> List[Trade]:
    if not keyword or not keyword.strip():
        raise ValidationFailed(["Search keyword cannot be empty."])
    ids = [info.entity_id for info in repository.search_settlement_instructions(keyword.strip())]
    return list(visible_trades(context).filter(trade_id__in=ids))
