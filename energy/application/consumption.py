"""
Application Use Case — Consumption Recording

Each record is priced once, at write time, with the owner's active tariff.
The applied price is stored on the record so later tariff changes never
rewrite past costs.

Rounding: kWh to 3 places, price to 4 places, cost (rounded kWh x rounded
price) to 4 places, all ROUND_HALF_UP.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal

from django.db import transaction

from energy.application.ownership import get_owned, lock_owner
from energy.application.tariffs import get_active_tariff
from energy.domain.exceptions import InvalidInput, NotFound
from energy.models import Appliance, ConsumptionRecord

logger = logging.getLogger(__name__)

KWH_PLACES = Decimal("0.001")
PRICE_PLACES = Decimal("0.0001")
COST_PLACES = Decimal("0.0001")

# Largest values the consumption_kwh (10, 3) and cost (12, 4) columns hold.
MAX_KWH = Decimal("9999999.999")
MAX_COST = Decimal("99999999.9999")


def price_consumption(kwh, price_per_kwh):
    """Return (kwh, price, cost) rounded to their storage precision."""
    kwh = Decimal(kwh).quantize(KWH_PLACES, rounding=ROUND_HALF_UP)
    price = Decimal(price_per_kwh).quantize(PRICE_PLACES, rounding=ROUND_HALF_UP)
    if kwh > MAX_KWH:
        raise InvalidInput(f"consumption_kwh must not exceed {MAX_KWH}")
    cost = (kwh * price).quantize(COST_PLACES, rounding=ROUND_HALF_UP)
    if cost > MAX_COST:
        raise InvalidInput(
            f"cost must not exceed {MAX_COST}; lower consumption_kwh or the tariff price"
        )
    return kwh, price, cost


def kwh_from_usage_hours(usage_hours, appliance):
    if usage_hours <= 0:
        raise InvalidInput("usage_hours must be a positive number")
    if appliance is None:
        raise InvalidInput("usage_hours requires appliance_id")
    power = appliance.estimated_power
    if power is None or power <= 0:
        raise InvalidInput(
            "appliance.estimated_power must be set (>0) to calculate kWh from usage_hours"
        )
    return power * usage_hours


def _assert_single_source(data):
    if data.get("consumption_kwh") is not None and data.get("usage_hours") is not None:
        raise InvalidInput("Provide either consumption_kwh or usage_hours, not both")


def _assert_positive_kwh(kwh):
    if kwh <= 0:
        raise InvalidInput("consumption_kwh must be a positive number")


def _owned_appliance(user, appliance_id):
    try:
        return Appliance.objects.get(pk=appliance_id, owner=user)
    except Appliance.DoesNotExist:
        raise NotFound("appliance not found")


def list_records(user, date_range=None):
    qs = ConsumptionRecord.objects.filter(owner=user)
    if date_range is not None:
        date_from, date_to = date_range
        if date_from is not None:
            qs = qs.filter(record_date__gte=date_from)
        if date_to is not None:
            qs = qs.filter(record_date__lte=date_to)
    return qs.order_by("-record_date", "-id")


def create_record(user, data):
    _assert_single_source(data)

    with transaction.atomic():
        lock_owner(user)
        tariff = get_active_tariff(user)

        appliance = None
        if data.get("appliance_id") is not None:
            appliance = _owned_appliance(user, data["appliance_id"])

        if data.get("consumption_kwh") is not None:
            kwh = data["consumption_kwh"]
            _assert_positive_kwh(kwh)
        elif data.get("usage_hours") is not None:
            kwh = kwh_from_usage_hours(data["usage_hours"], appliance)
        else:
            raise InvalidInput("Provide consumption_kwh OR usage_hours (with appliance_id)")

        kwh, price, cost = price_consumption(kwh, tariff.price_per_kwh)
        record = ConsumptionRecord.objects.create(
            owner=user,
            appliance=appliance,
            consumption_kwh=kwh,
            applied_price_per_kwh=price,
            cost=cost,
            record_date=data["record_date"],
            notes=data.get("notes") or None,
        )

    logger.info(
        "Consumption recorded: owner=%s record=%s kwh=%s tariff=%s cost=%s",
        user.pk, record.pk, kwh, tariff.pk, cost,
    )
    return record


def update_record(user, record_id, data):
    """
    Apply a partial update and re-price the record with the current active tariff.

    appliance_id=None detaches the appliance; an omitted appliance_id keeps it.
    Without consumption_kwh or usage_hours the stored kWh is kept.
    """
    _assert_single_source(data)

    with transaction.atomic():
        lock_owner(user)
        record = get_owned(ConsumptionRecord, user, record_id)
        tariff = get_active_tariff(user)

        if "appliance_id" in data:
            appliance_id = data["appliance_id"]
            appliance = None if appliance_id is None else _owned_appliance(user, appliance_id)
        else:
            appliance = record.appliance

        if data.get("consumption_kwh") is not None:
            kwh = data["consumption_kwh"]
        elif data.get("usage_hours") is not None:
            kwh = kwh_from_usage_hours(data["usage_hours"], appliance)
        else:
            kwh = record.consumption_kwh
        _assert_positive_kwh(kwh)

        kwh, price, cost = price_consumption(kwh, tariff.price_per_kwh)
        record.appliance = appliance
        record.consumption_kwh = kwh
        record.applied_price_per_kwh = price
        record.cost = cost
        record.record_date = data.get("record_date") or record.record_date
        if "notes" in data:
            record.notes = data["notes"] or None
        record.save()

    return record


def delete_record(user, record_id):
    record = get_owned(ConsumptionRecord, user, record_id)
    record.delete()
