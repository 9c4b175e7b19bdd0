import logging

from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from .mappers import cashflow_dict, dto_from_payload, leg_dto_from_payload, snapshot_model_dict
from .repository import ReferenceDataMissing
from .serializers import CashflowGenerateSerializer, TradeSerializer
from .services.authorization import Forbidden
from .services.cashflows import InvalidScheduleFormat, generate
from .services.query_translator import InvalidOperator, InvalidQueryValue, UnknownField
from .services.rsql import QuerySyntaxError
from .services.trade_workflow import InvalidTransition
from .services.use_cases import (
    NotFound, StaleAmendment, amend_trade, caller_context, cancel_trade, create_trade,
    delete_trade, get_cashflows, get_settlement_instructions, get_trade, list_trades,
    search_settlement_instructions, search_trades, terminate_trade,
)
from .services.versioning import VersionNotFound, diff_versions
from .validators import ValidationFailed

logger = logging.getLogger(__name__)

ERROR_STATUS = (
    (Forbidden, 403),
    ((NotFound, VersionNotFound), 404),
    ((InvalidTransition, StaleAmendment), 409),
    (ReferenceDataMissing, 422),
    ((InvalidScheduleFormat, QuerySyntaxError, InvalidOperator, UnknownField, InvalidQueryValue), 400),
)


def error_response(exc: Exception) -> Response:
    if isinstance(exc, ValidationFailed):
        return Response({"detail": "Trade validation failed", "errors": exc.errors}, status=400)
    for classes, code in ERROR_STATUS:
        if isinstance(exc, classes):
            return Response({"detail": str(exc)}, status=code)
    logger.exception("Unhandled error: %s", exc)
    return Response({"detail": f"Internal error: {str(exc)}"}, status=500)


def trade_summary(trade):
    return {"tradeId": trade.trade_id, "version": trade.version, "tradeStatus": trade.trade_status.trade_status}


class TradeViewSet(viewsets.GenericViewSet):
    lookup_value_regex = r"\d+"

    def _user_id(self, request):
        return request.data.get("userId") or request.query_params.get("userId")

    def create(self, request):
        user_id = self._user_id(request)
        if not user_id:
            return Response({"error": "userId is required."}, status=400)
        s = TradeSerializer(data=request.data.get("tradeDetails") or {})
        s.is_valid(raise_exception=True)
        try:
            trade = create_trade(dto_from_payload(s.validated_data), caller_context(user_id))
            return Response(trade_summary(trade), status=201)
        except Exception as e:
            return error_response(e)

    def list(self, request):
        user_id = self._user_id(request)
        if not user_id:
            return Response({"error": "userId is required."}, status=400)
        query = request.query_params.get("search")
        try:
            context = caller_context(user_id)
            trades = search_trades(query, context) if query else list_trades(context)
            return Response([snapshot_model_dict(t) for t in trades], status=200)
        except Exception as e:
            return error_response(e)

    def retrieve(self, request, pk=None):
        user_id = self._user_id(request)
        if not user_id:
            return Response({"error": "userId is required."}, status=400)
        try:
            trade = get_trade(int(pk), caller_context(user_id))
            return Response(snapshot_model_dict(trade), status=200)
        except Exception as e:
            return error_response(e)

    def update(self, request, pk=None):
        user_id = self._user_id(request)
        if not user_id:
            return Response({"error": "userId is required."}, status=400)
        s = TradeSerializer(data=request.data.get("tradeDetails") or {})
        s.is_valid(raise_exception=True)
        expected_version = request.data.get("expectedVersion")
        try:
            expected_version = int(expected_version) if expected_version is not None else None
        except (TypeError, ValueError):
            return Response({"detail": "expectedVersion must be an integer."}, status=400)

        try:
            trade = amend_trade(
                int(pk),
                dto_from_payload(s.validated_data, trade_id=int(pk)),
                caller_context(user_id),
                expected_version=expected_version,
            )
            return Response(trade_summary(trade), status=200)
        except Exception as e:
            return error_response(e)

    def destroy(self, request, pk=None):
        user_id = self._user_id(request)
        if not user_id:
            return Response({"error": "userId is required."}, status=400)
        try:
            delete_trade(int(pk), caller_context(user_id))
            return Response(status=204)
        except Exception as e:
            return error_response(e)

    @action(detail=True, methods=["post"])
    def terminate(self, request, pk=None):
        user_id = self._user_id(request)
        if not user_id:
            return Response({"error": "userId is required."}, status=400)
        try:
            trade = terminate_trade(int(pk), caller_context(user_id))
            return Response(trade_summary(trade), status=200)
        except Exception as e:
            return error_response(e)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        user_id = self._user_id(request)
        if not user_id:
            return Response({"error": "userId is required."}, status=400)
        try:
            trade = cancel_trade(int(pk), caller_context(user_id))
            return Response(trade_summary(trade), status=200)
        except Exception as e:
            return error_response(e)

    @action(detail=True, methods=["get"])
    def cashflows(self, request, pk=None):
        user_id = self._user_id(request)
        if not user_id:
            return Response({"error": "userId is required."}, status=400)
        try:
            flows = get_cashflows(int(pk), caller_context(user_id))
            return Response({"tradeId": int(pk), "cashflows": [cashflow_dict(cf) for cf in flows]}, status=200)
        except Exception as e:
            return error_response(e)

    @action(detail=True, methods=["get"], url_path="settlement-instructions")
    def settlement_instructions(self, request, pk=None):
        user_id = self._user_id(request)
        if not user_id:
            return Response({"error": "userId is required."}, status=400)
        try:
            text = get_settlement_instructions(int(pk), caller_context(user_id))
            return Response({"tradeId": int(pk), "settlementInstructions": text}, status=200)
        except Exception as e:
            return error_response(e)

    @action(detail=False, methods=["get"], url_path="settlement-search")
    def settlement_search(self, request):
        user_id = self._user_id(request)
        if not user_id:
            return Response({"error": "userId is required."}, status=400)
        try:
            trades = search_settlement_instructions(request.query_params.get("keyword", ""), caller_context(user_id))
            return Response([snapshot_model_dict(t) for t in trades], status=200)
        except Exception as e:
            return error_response(e)

    @action(detail=True, methods=["post"])
    def diff(self, request, pk=None):
        user_id = self._user_id(request)
        if not user_id:
            return Response({"error": "userId is required."}, status=400)
        body = request.data or {}
        try:
            v_from = int(body["fromVersion"]); v_to = int(body["toVersion"])
        except (KeyError, TypeError, ValueError):
            return Response({"detail": "fromVersion and toVersion are required integers."}, status=400)

        try:
            diffs = diff_versions(int(pk), v_from, v_to, caller_context(user_id))
            return Response({"diff": diffs}, status=200)
        except Exception as e:
            return error_response(e)


class CashflowViewSet(viewsets.GenericViewSet):
    @action(detail=False, methods=["post"])
    def generate(self, request):
        s = CashflowGenerateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data
        try:
            flows = generate(
                leg_dto_from_payload(data["leg"]),
                data["startDate"],
                data["maturityDate"],
                floating_rate=data.get("floatingRate"),
            )
            return Response({"cashflows": [cashflow_dict(cf) for cf in flows]}, status=200)
        except Exception as e:
            return error_response(e)
