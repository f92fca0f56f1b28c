"""
Read-only reports over recorded consumption and limits.

Every report is scoped to one owner and an inclusive date window. Totals are
summed in the database; averages and per-limit progress are derived here.
"""

from decimal import ROUND_HALF_UP, Decimal

from django.db.models import Count, Sum

from energy.application.limits import progress_for
from energy.domain.exceptions import InvalidInput
from energy.domain.periods import PERIOD_TYPES, days_inclusive
from energy.domain.progress import (
    LIMIT_STATUSES,
    STATUS_LIMIT_EXCEEDED,
    STATUS_OK,
    STATUS_THRESHOLD_REACHED,
)
from energy.models import Appliance, ConsumptionRecord, Limit

ZERO = Decimal("0")
AVERAGE_PLACES = Decimal("0.0001")
KWH_PLACES = Decimal("0.001")


def _average(total, count):
    if count <= 0:
        return ZERO.quantize(AVERAGE_PLACES)
    return (Decimal(total) / count).quantize(AVERAGE_PLACES, rounding=ROUND_HALF_UP)


def _records_in(user, date_from, date_to):
    return ConsumptionRecord.objects.filter(owner=user, record_date__range=(date_from, date_to))


def summary_report(user, date_from, date_to):
    records = _records_in(user, date_from, date_to)
    days = days_inclusive(date_from, date_to)

    totals = records.aggregate(
        total_kwh=Sum("consumption_kwh"),
        total_cost=Sum("cost"),
        records_count=Count("id"),
    )
    total_kwh = totals["total_kwh"] or ZERO
    total_cost = totals["total_cost"] or ZERO
    records_count = totals["records_count"] or 0

    max_day_row = (
        records
        .values("record_date")
        .annotate(day_kwh=Sum("consumption_kwh"), day_cost=Sum("cost"))
        .order_by("-day_kwh", "record_date")
        .first()
    )
    max_day = None
    if max_day_row is not None:
        max_day = {
            "date": max_day_row["record_date"].isoformat(),
            "kwh": max_day_row["day_kwh"],
            "cost": max_day_row["day_cost"],
        }

    return {
        "period": {
            "date_from": date_from.isoformat(),
            "date_to": date_to.isoformat(),
            "days": days,
        },
        "totals": {
            "total_kwh": total_kwh,
            "total_cost": total_cost,
            "records_count": records_count,
        },
        "averages": {
            "kwh_per_day": _average(total_kwh, days),
            "cost_per_day": _average(total_cost, days),
            "kwh_per_record": _average(total_kwh, records_count),
            "cost_per_record": _average(total_cost, records_count),
        },
        "max_day": max_day,
    }


def daily_report(user, date_from, date_to):
    rows = (
        _records_in(user, date_from, date_to)
        .values("record_date")
        .annotate(
            total_kwh=Sum("consumption_kwh"),
            total_cost=Sum("cost"),
            records_count=Count("id"),
        )
        .order_by("record_date")
    )
    return [
        {
            "record_date": row["record_date"].isoformat(),
            "total_kwh": row["total_kwh"],
            "total_cost": row["total_cost"],
            "records_count": row["records_count"],
        }
        for row in rows
    ]


def by_appliance_report(user, date_from, date_to):
    grouped = list(
        _records_in(user, date_from, date_to)
        .values("appliance_id")
        .annotate(
            total_kwh=Sum("consumption_kwh"),
            total_cost=Sum("cost"),
            records_count=Count("id"),
        )
        .order_by("-total_cost", "appliance_id")
    )

    ids = [row["appliance_id"] for row in grouped if row["appliance_id"] is not None]
    names = dict(
        Appliance.objects.filter(owner=user, pk__in=ids).values_list("id", "name")
    )

    return [
        {
            "appliance_id": row["appliance_id"],
            "appliance_name": names.get(row["appliance_id"]),
            "total_kwh": row["total_kwh"],
            "total_cost": row["total_cost"],
            "records_count": row["records_count"],
        }
        for row in grouped
    ]


def parse_csv_list(value):
    return [item.strip() for item in str(value).split(",") if item.strip()]


def parse_limit_filters(period_type=None, ids=None, status=None):
    """
    Validate the comma-separated filters of the limits report.

    Returns (types, ids, statuses); an absent filter is None.
    """
    types = None
    if period_type:
        types = parse_csv_list(period_type)
        if any(t not in PERIOD_TYPES for t in types):
            raise InvalidInput(
                "period_type must be week, month, year, custom (comma-separated allowed)"
            )

    id_list = None
    if ids:
        parts = parse_csv_list(ids)
        if not parts or not all(p.isascii() and p.isdigit() and int(p) > 0 for p in parts):
            raise InvalidInput("ids must be comma-separated positive integers")
        id_list = [int(p) for p in parts]

    statuses = None
    if status:
        statuses = parse_csv_list(status)
        if any(s not in LIMIT_STATUSES for s in statuses):
            raise InvalidInput(
                "status must be ok, threshold_reached, limit_exceeded (comma-separated allowed)"
            )

    return types, id_list, statuses


def _limit_row(limit):
    progress = progress_for(limit)
    return {
        "id": limit.pk,
        "period_type": limit.period_type,
        "period_start": limit.period_start.isoformat(),
        "period_end": limit.period_end.isoformat(),
        "limit_kwh": limit.limit_kwh,
        "used_kwh": progress.used_kwh,
        "remaining_kwh": progress.remaining_kwh,
        "percent_used": progress.percent_used,
        "alert_enabled": limit.alert_enabled,
        "alert_threshold_percent": limit.alert_threshold_percent,
        "threshold_reached": progress.threshold_reached,
        "limit_exceeded": progress.limit_exceeded,
        "status": progress.status,
    }


def limits_report(user, types=None, ids=None, statuses=None, period=None):
    qs = Limit.objects.filter(owner=user)
    if types:
        qs = qs.filter(period_type__in=types)
    if ids:
        qs = qs.filter(pk__in=ids)
    if period is not None:
        date_from, date_to = period
        qs = qs.filter(period_start__lte=date_to, period_end__gte=date_from)

    items = [_limit_row(limit) for limit in qs.order_by("-period_start", "-id")]
    if statuses:
        items = [item for item in items if item["status"] in statuses]

    totals = {
        "limits_count": len(items),
        "ok_count": sum(1 for i in items if i["status"] == STATUS_OK),
        "threshold_reached_count": sum(1 for i in items if i["status"] == STATUS_THRESHOLD_REACHED),
        "limit_exceeded_count": sum(1 for i in items if i["status"] == STATUS_LIMIT_EXCEEDED),
        "total_limit_kwh": sum((i["limit_kwh"] for i in items), ZERO).quantize(KWH_PLACES),
        "total_used_kwh": sum((i["used_kwh"] for i in items), ZERO).quantize(KWH_PLACES),
    }

    return {
        "filters": {
            "period_type": types,
            "ids": ids,
            "status": statuses,
            "period": (
                {"date_from": period[0].isoformat(), "date_to": period[1].isoformat()}
                if period is not None else None
            ),
        },
        "totals": totals,
        "items": items,
    }
