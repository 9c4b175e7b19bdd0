from typing import Any, Dict, Mapping, Optional

from .dto import CashflowDTO, TradeDTO, TradeLegDTO
from .models import Cashflow, Trade, TradeLeg


def _name(obj, attr: str) -> Optional[str]:
    return getattr(obj, attr) if obj is not None else None


def leg_dto_from_model(leg: TradeLeg, maturity_date=None) -> TradeLegDTO:
    return TradeLegDTO(
        notional=leg.notional,
        rate=leg.rate,
        leg_type=leg.leg_type,
        pay_receive=leg.pay_receive,
        currency=_name(leg.currency, "currency"),
        index_id=leg.index_id,
        index_name=_name(leg.index, "index"),
        schedule=_name(leg.schedule, "schedule"),
        payment_bdc=_name(leg.payment_bdc, "bdc"),
        fixing_bdc=_name(leg.fixing_bdc, "bdc"),
        maturity_date=maturity_date,
    )


def dto_from_model(m: Trade) -> TradeDTO:
    return TradeDTO(
        trade_id=m.trade_id,
        trade_date=m.trade_date,
        start_date=m.start_date,
        maturity_date=m.maturity_date,
        execution_date=m.execution_date,
        book_id=m.book_id,
        book_name=_name(m.book, "book_name"),
        counterparty_id=m.counterparty_id,
        counterparty_name=_name(m.counterparty, "name"),
        trader_user_id=m.trader_user_id,
        trader_user_name=_name(m.trader_user, "login_id"),
        inputter_user_id=m.inputter_user_id,
        uti_code=m.uti_code,
        legs=tuple(leg_dto_from_model(leg, m.maturity_date) for leg in m.legs.all()),
        status=_name(m.trade_status, "trade_status"),
        version=m.version,
        active=m.active,
        owner_login=_name(m.trader_user, "login_id"),
    )


def leg_dto_from_payload(data: Mapping[str, Any]) -> TradeLegDTO:
    leg_type = data.get("legType")
    pay_receive = data.get("payReceiveFlag")
    return TradeLegDTO(
        notional=data.get("notional"),
        rate=data.get("rate"),
        leg_type=leg_type.upper() if leg_type else None,
        pay_receive=pay_receive.upper() if pay_receive else None,
        currency=data.get("currency"),
        index_id=data.get("indexId"),
        index_name=data.get("indexName"),
        schedule=data.get("calculationPeriodSchedule"),
        payment_bdc=data.get("paymentBusinessDayConvention"),
        fixing_bdc=data.get("fixingBusinessDayConvention"),
        maturity_date=data.get("tradeMaturityDate"),
    )


def dto_from_payload(data: Mapping[str, Any], trade_id: Optional[int] = None) -> TradeDTO:
    return TradeDTO(
        trade_id=trade_id if trade_id is not None else data.get("tradeId"),
        trade_date=data.get("tradeDate"),
        start_date=data.get("tradeStartDate"),
        maturity_date=data.get("tradeMaturityDate"),
        execution_date=data.get("tradeExecutionDate"),
        book_id=data.get("bookId"),
        book_name=data.get("bookName"),
        counterparty_id=data.get("counterpartyId"),
        counterparty_name=data.get("counterpartyName"),
        trader_user_id=data.get("traderUserId"),
        trader_user_name=data.get("traderUserName"),
        inputter_user_id=data.get("tradeInputterUserId"),
        inputter_user_name=data.get("inputterUserName"),
        uti_code=data.get("utiCode") or "",
        legs=tuple(leg_dto_from_payload(leg) for leg in data.get("tradeLegs") or []),
        settlement_instructions=data.get("settlementInstructions"),
    )


def cashflow_to_model(cf: CashflowDTO, leg: TradeLeg) -> Cashflow:
    return Cashflow(
        leg=leg,
        value_date=cf.value_date,
        payment_value=cf.payment_value,
        rate=cf.rate,
        pay_rec=cf.pay_rec,
        payment_bdc=cf.payment_bdc,
    )


def cashflow_dict(cf) -> Dict[str, Any]:
    return {
        "valueDate": cf.value_date.isoformat(),
        "paymentValue": str(cf.payment_value),
        "rate": str(cf.rate) if cf.rate is not None else None,
        "payRec": cf.pay_rec,
    }


def snapshot_model_dict(trade: Trade) -> Dict[str, Any]:
    return {
        "tradeId": trade.trade_id,
        "version": trade.version,
        "active": trade.active,
        "tradeStatus": _name(trade.trade_status, "trade_status"),
        "tradeDate": trade.trade_date.isoformat() if trade.trade_date else None,
        "tradeStartDate": trade.start_date.isoformat() if trade.start_date else None,
        "tradeMaturityDate": trade.maturity_date.isoformat() if trade.maturity_date else None,
        "tradeExecutionDate": trade.execution_date.isoformat() if trade.execution_date else None,
        "bookName": _name(trade.book, "book_name"),
        "counterpartyName": _name(trade.counterparty, "name"),
        "traderUserName": _name(trade.trader_user, "login_id"),
        "utiCode": trade.uti_code,
        "tradeLegs": [
            {
                "notional": str(leg.notional),
                "rate": str(leg.rate) if leg.rate is not None else None,
                "legType": leg.leg_type,
                "payReceiveFlag": leg.pay_receive,
                "currency": _name(leg.currency, "currency"),
                "indexName": _name(leg.index, "index"),
                "calculationPeriodSchedule": _name(leg.schedule, "schedule"),
            }
            for leg in trade.legs.all()
        ],
    }
