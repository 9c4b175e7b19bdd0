from dataclasses import replace
from ..dto import TradeDTO
from ..enums import TERMINAL_STATES, TradeState


class InvalidTransition(Exception): pass


def _assert_not_terminal(dto: TradeDTO, verb: str):
    if dto.status in TERMINAL_STATES:
        raise InvalidTransition(f"Cannot {verb} trade {dto.trade_id}: it is already {dto.status}.")


def book(dto: TradeDTO) -> TradeDTO:
    if dto.status not in (None, TradeState.NEW):
        raise InvalidTransition("A new trade can only be booked in NEW state.")
    return replace(dto, status=TradeState.NEW.value, version=1, active=True)


def amend(current: TradeDTO, changes: TradeDTO) -> TradeDTO:
    """The next version in the chain: the amended terms at version + 1."""
    _assert_not_terminal(current, "amend")
    return replace(
        changes,
        trade_id=current.trade_id,
        status=TradeState.AMENDED.value,
        version=current.version + 1,
        active=True,
    )


def terminate(dto: TradeDTO) -> TradeDTO:
    _assert_not_terminal(dto, "terminate")
    return replace(dto, status=TradeState.TERMINATED.value)


def cancel(dto: TradeDTO) -> TradeDTO:
    _assert_not_terminal(dto, "cancel")
    return replace(dto, status=TradeState.CANCELLED.value)
