"""
Request and response schemas (Django REST Framework).

Input serializers parse each endpoint's body into typed values with explicit
required/optional fields and reject unknown keys before any use case runs.
Output serializers render models; decimals are rendered as fixed-precision
strings.
"""

from decimal import ROUND_HALF_UP, Decimal

from rest_framework import serializers

from energy.domain.exceptions import InvalidInput
from energy.domain.periods import PERIOD_TYPES, parse_iso_date
from energy.models import Appliance, AuditLog, ConsumptionRecord, Limit, Tariff, User


class IsoDateField(serializers.Field):
    """Strict YYYY-MM-DD date; rejects datetimes and loose formats."""

    default_error_messages = {"invalid": "{field} must be YYYY-MM-DD"}

    def to_internal_value(self, data):
        try:
            return parse_iso_date(data, self.field_name)
        except InvalidInput:
            self.fail("invalid", field=self.field_name)

    def to_representation(self, value):
        return value.isoformat()


class RoundedDecimalField(serializers.DecimalField):
    """
    Decimal input sized to a (max_digits, decimal_places) column.

    Extra fractional digits are rounded half-up instead of rejected; values
    with more whole digits than the column holds are rejected.
    """

    def __init__(self, max_digits, decimal_places, **kwargs):
        whole_digits = max_digits - decimal_places
        kwargs.setdefault(
            "max_value", Decimal(10) ** whole_digits - Decimal(1).scaleb(-decimal_places)
        )
        super().__init__(
            max_digits=None, decimal_places=decimal_places, rounding=ROUND_HALF_UP, **kwargs
        )
        self.max_whole_digits = whole_digits

    def validate_precision(self, value):
        _, digits, exponent = value.as_tuple()
        if len(digits) + exponent > self.max_whole_digits:
            self.fail("max_whole_digits", max_whole_digits=self.max_whole_digits)
        return value


class StrictInputSerializer(serializers.Serializer):
    """Serializer that refuses keys it does not declare."""

    def validate(self, attrs):
        if isinstance(self.initial_data, dict):
            unknown = sorted(set(self.initial_data) - set(self.fields))
            if unknown:
                raise serializers.ValidationError(
                    {"non_field_errors": [f"Unexpected field(s): {', '.join(unknown)}"]}
                )
        return attrs


# Auth

class CredentialsInput(StrictInputSerializer):
    email = serializers.EmailField(max_length=255)
    password = serializers.CharField(max_length=128, trim_whitespace=False)


class UserOutput(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "email", "role", "is_blocked", "created_at"]


# Appliances

class ApplianceInput(StrictInputSerializer):
    name = serializers.CharField(max_length=120)
    description = serializers.CharField(
        max_length=500, required=False, allow_null=True, allow_blank=True
    )
    estimated_power = RoundedDecimalField(10, 3, min_value=0, required=False, allow_null=True)


class ApplianceOutput(serializers.ModelSerializer):
    user_id = serializers.IntegerField(source="owner_id", read_only=True)

    class Meta:
        model = Appliance
        fields = ["id", "user_id", "name", "description", "estimated_power", "created_at"]


# Tariffs

class TariffInput(StrictInputSerializer):
    tariff_name = serializers.CharField(max_length=120)
    price_per_kwh = RoundedDecimalField(10, 4, min_value=0)
    valid_from = IsoDateField()
    valid_to = IsoDateField(required=False, allow_null=True)
    is_active = serializers.BooleanField(required=False)


class TariffOutput(serializers.ModelSerializer):
    user_id = serializers.IntegerField(source="owner_id", read_only=True)
    valid_from = IsoDateField(read_only=True)
    valid_to = IsoDateField(read_only=True, allow_null=True)

    class Meta:
        model = Tariff
        fields = [
            "id", "user_id", "tariff_name", "price_per_kwh",
            "valid_from", "valid_to", "is_active", "created_at",
        ]


# Limits

class LimitInput(StrictInputSerializer):
    limit_kwh = RoundedDecimalField(10, 3)
    period_type = serializers.ChoiceField(
        choices=PERIOD_TYPES,
        error_messages={"invalid_choice": "period_type must be one of: week, month, year, custom"},
    )
    period_start = IsoDateField()
    period_end = IsoDateField(required=False, allow_null=True)
    alert_enabled = serializers.BooleanField(required=False)
    alert_threshold_percent = serializers.IntegerField(
        required=False,
        min_value=1,
        max_value=100,
        error_messages={
            "min_value": "alert_threshold_percent must be integer 1..100",
            "max_value": "alert_threshold_percent must be integer 1..100",
        },
    )

    def validate_limit_kwh(self, value):
        if value <= 0:
            raise serializers.ValidationError("limit_kwh must be a positive number")
        return value


class LimitOutput(serializers.ModelSerializer):
    user_id = serializers.IntegerField(source="owner_id", read_only=True)
    period_start = IsoDateField(read_only=True)
    period_end = IsoDateField(read_only=True)

    class Meta:
        model = Limit
        fields = [
            "id", "user_id", "limit_kwh", "period_type", "period_start", "period_end",
            "alert_enabled", "alert_threshold_percent", "created_at",
        ]


# Consumption

class ConsumptionInput(StrictInputSerializer):
    appliance_id = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    consumption_kwh = RoundedDecimalField(10, 3, required=False, allow_null=True)
    usage_hours = RoundedDecimalField(10, 4, required=False, allow_null=True)
    record_date = IsoDateField()
    notes = serializers.CharField(
        max_length=500, required=False, allow_null=True, allow_blank=True
    )


class ConsumptionOutput(serializers.ModelSerializer):
    user_id = serializers.IntegerField(source="owner_id", read_only=True)
    appliance_id = serializers.IntegerField(read_only=True, allow_null=True)
    record_date = IsoDateField(read_only=True)

    class Meta:
        model = ConsumptionRecord
        fields = [
            "id", "user_id", "appliance_id", "consumption_kwh", "applied_price_per_kwh",
            "cost", "record_date", "notes", "created_at", "updated_at",
        ]


# Admin

class RoleInput(StrictInputSerializer):
    role = serializers.ChoiceField(
        choices=[User.ROLE_USER, User.ROLE_ADMIN],
        error_messages={"invalid_choice": "role must be user or admin"},
    )


class BlockInput(StrictInputSerializer):
    is_blocked = serializers.BooleanField(
        error_messages={"invalid": "is_blocked must be boolean"},
    )


class UserRef(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "email"]


class AuditLogOutput(serializers.ModelSerializer):
    admin = UserRef(read_only=True)
    target_user = UserRef(read_only=True, allow_null=True)

    class Meta:
        model = AuditLog
        fields = [
            "id", "admin_id", "action", "target_user_id", "details",
            "created_at", "admin", "target_user",
        ]
