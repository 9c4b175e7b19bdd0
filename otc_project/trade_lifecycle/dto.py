from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import FrozenSet, Optional, Tuple


@dataclass(frozen=True)
class TradeLegDTO:
    notional: Decimal
    rate: Optional[Decimal] = None
    leg_type: Optional[str] = None
    pay_receive: Optional[str] = None
    currency: Optional[str] = None
    index_id: Optional[int] = None
    index_name: Optional[str] = None
    schedule: Optional[str] = None
    payment_bdc: Optional[str] = None
    fixing_bdc: Optional[str] = None
    maturity_date: Optional[date] = None


@dataclass(frozen=True)
class TradeDTO:
    trade_id: Optional[int]
    trade_date: Optional[date]
    start_date: Optional[date] = None
    maturity_date: Optional[date] = None
    execution_date: Optional[date] = None
    book_id: Optional[int] = None
    book_name: Optional[str] = None
    counterparty_id: Optional[int] = None
    counterparty_name: Optional[str] = None
    trader_user_id: Optional[int] = None
    trader_user_name: Optional[str] = None
    inputter_user_id: Optional[int] = None
    inputter_user_name: Optional[str] = None
    uti_code: str = ""
    legs: Tuple[TradeLegDTO, ...] = ()
    settlement_instructions: Optional[str] = None
    status: Optional[str] = None
    version: int = 1
    active: bool = True
    owner_login: Optional[str] = None


@dataclass(frozen=True)
class ValidationResult:
    errors: Tuple[str, ...] = ()

    @property
    def valid(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class AuthorizationContext:
    login_id: Optional[str]
    roles: FrozenSet[str] = field(default_factory=frozenset)
    privileges: FrozenSet[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class CashflowDTO:
    value_date: date
    payment_value: Decimal
    rate: Optional[Decimal]
    pay_rec: Optional[str]
    payment_bdc: object = None
