from __future__ import annotations

from rest_framework import serializers

from quoting.models import Quote


class PriceCalculationRequestSerializer(serializers.Serializer):
    packageId = serializers.CharField(source="package_id", max_length=64)
    numberOfPeople = serializers.IntegerField(source="number_of_people", min_value=1)
    numberOfNights = serializers.IntegerField(source="number_of_nights", min_value=1)
    arrivalDate = serializers.DateField(source="arrival_date")
    version = serializers.IntegerField(min_value=1, required=False, allow_null=True)


class LinkPackageSerializer(serializers.Serializer):
    packageId = serializers.CharField(source="package_id", max_length=64)
    version = serializers.IntegerField(min_value=1, required=False, allow_null=True)


class ManualPriceSerializer(serializers.Serializer):
    price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)


class QuoteParametersSerializer(serializers.Serializer):
    number_of_people = serializers.IntegerField(min_value=1, required=False)
    number_of_nights = serializers.IntegerField(min_value=1, required=False)
    arrival_date = serializers.DateField(required=False)

    def validate(self, attrs):  # noqa: ANN201
        if not attrs:
            raise serializers.ValidationError("At least one parameter is required.")
        return attrs


class QuotePriceStateSerializer(serializers.ModelSerializer):
    reference = serializers.CharField(read_only=True)

    class Meta:
        model = Quote
        fields = (
            "id",
            "reference",
            "number_of_people",
            "number_of_nights",
            "arrival_date",
            "total_price",
            "currency",
            "inclusions",
            "linked_package",
            "price_history",
            "updated_at",
        )
        read_only_fields = fields
