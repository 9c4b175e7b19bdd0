from collections.abc import Mapping

from rest_framework import serializers


class StrictSerializer(serializers.Serializer):
    def to_internal_value(self, data):
        if isinstance(data, Mapping):
            unknown = set(data.keys()) - set(self.fields.keys())
            if unknown:
                raise serializers.ValidationError({k: "Unknown field." for k in sorted(unknown)})
        return super().to_internal_value(data)


class TradeLegSerializer(StrictSerializer):
    notional          = serializers.DecimalField(max_digits=20, decimal_places=2, min_value=0)
    rate              = serializers.DecimalField(max_digits=12, decimal_places=6, required=False, allow_null=True)
    legType           = serializers.CharField(max_length=8, required=False, allow_null=True)
    payReceiveFlag    = serializers.CharField(max_length=7, required=False, allow_null=True)
    currency          = serializers.CharField(max_length=3, required=False, allow_null=True)
    indexId           = serializers.IntegerField(required=False, allow_null=True)
    indexName         = serializers.CharField(max_length=32, required=False, allow_null=True)

    calculationPeriodSchedule    = serializers.CharField(max_length=32, required=False, allow_null=True)
    paymentBusinessDayConvention = serializers.CharField(max_length=32, required=False, allow_null=True)
    fixingBusinessDayConvention  = serializers.CharField(max_length=32, required=False, allow_null=True)

    tradeMaturityDate = serializers.DateField(required=False, allow_null=True)


class TradeSerializer(StrictSerializer):
    tradeId             = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    tradeDate           = serializers.DateField(required=False, allow_null=True)
    tradeStartDate      = serializers.DateField(required=False, allow_null=True)
    tradeMaturityDate   = serializers.DateField(required=False, allow_null=True)
    tradeExecutionDate  = serializers.DateField(required=False, allow_null=True)

    bookId              = serializers.IntegerField(required=False, allow_null=True)
    bookName            = serializers.CharField(max_length=120, required=False, allow_null=True)
    counterpartyId      = serializers.IntegerField(required=False, allow_null=True)
    counterpartyName    = serializers.CharField(max_length=120, required=False, allow_null=True)
    traderUserId        = serializers.IntegerField(required=False, allow_null=True)
    traderUserName      = serializers.CharField(max_length=64, required=False, allow_null=True)
    tradeInputterUserId = serializers.IntegerField(required=False, allow_null=True)
    inputterUserName    = serializers.CharField(max_length=64, required=False, allow_null=True)

    utiCode             = serializers.CharField(max_length=64, required=False, allow_blank=True)
    tradeLegs           = TradeLegSerializer(many=True, required=False)
    settlementInstructions = serializers.CharField(
        required=False, allow_null=True, allow_blank=True, trim_whitespace=False
    )


class CashflowGenerateSerializer(StrictSerializer):
    leg             = TradeLegSerializer()
    startDate       = serializers.DateField()
    maturityDate    = serializers.DateField()
    floatingRate    = serializers.DecimalField(max_digits=12, decimal_places=6, required=False, allow_null=True)

    def validate(self, data):
        if data["maturityDate"] < data["startDate"]:
            raise serializers.ValidationError("maturityDate cannot be before startDate.")
        return data
