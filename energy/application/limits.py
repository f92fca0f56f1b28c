"""
Application Use Cases — Consumption Limits

Limits of one user and one period_type never overlap. The overlap query and
the insert/update run in the same transaction, after the owner row is
locked, so two concurrent requests cannot both pass the check.
"""

import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum

from energy.application.ownership import get_owned, lock_owner
from energy.domain.exceptions import InvalidInput, OverlappingLimit
from energy.domain.periods import PERIOD_TYPES, resolve_period_end
from energy.domain.progress import compute_progress
from energy.models import ConsumptionRecord, Limit

logger = logging.getLogger(__name__)

DEFAULT_ALERT_THRESHOLD = 80


def find_overlapping_limit(owner, period_type, start, end, exclude_id=None):
    """First limit of the same type whose inclusive range intersects [start, end]."""
    qs = Limit.objects.filter(
        owner=owner,
        period_type=period_type,
        period_start__lte=end,
        period_end__gte=start,
    )
    if exclude_id is not None:
        qs = qs.exclude(pk=exclude_id)
    return qs.order_by("id").first()


def _assert_no_overlap(owner, period_type, start, end, exclude_id=None):
    overlap = find_overlapping_limit(owner, period_type, start, end, exclude_id)
    if overlap is not None:
        logger.warning(
            "Overlapping limit rejected: owner=%s type=%s range=%s..%s existing=%s",
            owner.pk, period_type, start, end, overlap.pk,
        )
        raise OverlappingLimit(overlap.pk)


def list_limits(user, period_type=None, on_date=None):
    if period_type is not None and period_type not in PERIOD_TYPES:
        raise InvalidInput("period_type must be one of: week, month, year, custom")

    qs = Limit.objects.filter(owner=user)
    if period_type:
        qs = qs.filter(period_type=period_type)
    if on_date:
        qs = qs.filter(period_start__lte=on_date, period_end__gte=on_date)
    return qs.order_by("-period_start", "-id")


def create_limit(user, data):
    period_type = data["period_type"]
    start = data["period_start"]
    end = resolve_period_end(period_type, start, data.get("period_end"))

    with transaction.atomic():
        lock_owner(user)
        _assert_no_overlap(user, period_type, start, end)
        limit = Limit.objects.create(
            owner=user,
            limit_kwh=data["limit_kwh"],
            period_type=period_type,
            period_start=start,
            period_end=end,
            alert_enabled=data.get("alert_enabled", True),
            alert_threshold_percent=data.get("alert_threshold_percent", DEFAULT_ALERT_THRESHOLD),
        )

    return limit


def update_limit(user, limit_id, data):
    with transaction.atomic():
        lock_owner(user)
        limit = get_owned(Limit, user, limit_id)

        period_type = data.get("period_type", limit.period_type)
        start = data.get("period_start", limit.period_start)
        end = resolve_period_end(
            period_type,
            start,
            data.get("period_end"),
            stored_end=limit.period_end,
        )

        _assert_no_overlap(user, period_type, start, end, exclude_id=limit.pk)

        limit.period_type = period_type
        limit.period_start = start
        limit.period_end = end
        limit.limit_kwh = data.get("limit_kwh", limit.limit_kwh)
        limit.alert_enabled = data.get("alert_enabled", limit.alert_enabled)
        limit.alert_threshold_percent = data.get(
            "alert_threshold_percent", limit.alert_threshold_percent
        )
        limit.save()

    return limit


def delete_limit(user, limit_id):
    limit = get_owned(Limit, user, limit_id)
    limit.delete()


def used_kwh_for(limit):
    total = (
        ConsumptionRecord.objects
        .filter(owner_id=limit.owner_id, record_date__range=(limit.period_start, limit.period_end))
        .aggregate(total=Sum("consumption_kwh"))["total"]
    )
    return total if total is not None else Decimal("0")


def progress_for(limit):
    """Progress of a limit against the owner's consumption in its period."""
    return compute_progress(
        limit.limit_kwh,
        used_kwh_for(limit),
        limit.alert_enabled,
        limit.alert_threshold_percent,
    )


def limit_progress(limit):
    progress = progress_for(limit)
    return {
        "limit_id": limit.pk,
        "period_type": limit.period_type,
        "period_start": limit.period_start.isoformat(),
        "period_end": limit.period_end.isoformat(),
        "limit_kwh": str(limit.limit_kwh),
        "used_kwh": str(progress.used_kwh),
        "remaining_kwh": str(progress.remaining_kwh),
        "percent_used": None if progress.percent_used is None else float(progress.percent_used),
        "alert_enabled": limit.alert_enabled,
        "alert_threshold_percent": limit.alert_threshold_percent,
        "threshold_reached": progress.threshold_reached,
        "limit_exceeded": progress.limit_exceeded,
        "status": progress.status,
    }


def get_limit_progress(user, limit_id):
    return limit_progress(get_owned(Limit, user, limit_id))
