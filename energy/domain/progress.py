"""Limit progress arithmetic and status classification."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

STATUS_OK = "ok"
STATUS_THRESHOLD_REACHED = "threshold_reached"
STATUS_LIMIT_EXCEEDED = "limit_exceeded"

LIMIT_STATUSES = (STATUS_OK, STATUS_THRESHOLD_REACHED, STATUS_LIMIT_EXCEEDED)

KWH_PLACES = Decimal("0.001")
PERCENT_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class LimitProgress:
    used_kwh: Decimal
    remaining_kwh: Decimal
    percent_used: Optional[Decimal]
    threshold_reached: bool
    limit_exceeded: bool
    status: str


def classify(percent_used, alert_enabled: bool, alert_threshold_percent: int) -> str:
    """Exceeded wins over threshold; the threshold only counts when alerts are on."""
    if percent_used is None:
        return STATUS_OK
    if percent_used >= 100:
        return STATUS_LIMIT_EXCEEDED
    if alert_enabled and percent_used >= alert_threshold_percent:
        return STATUS_THRESHOLD_REACHED
    return STATUS_OK


def compute_progress(limit_kwh, used_kwh, alert_enabled, alert_threshold_percent) -> LimitProgress:
    limit_kwh = Decimal(limit_kwh)
    used_kwh = Decimal(used_kwh or 0)

    percent = None
    if limit_kwh > 0:
        percent = used_kwh / limit_kwh * 100

    status = classify(percent, alert_enabled, alert_threshold_percent)
    # Flags are independent; only the status applies precedence.
    limit_exceeded = percent is not None and percent >= 100
    threshold_reached = (
        alert_enabled and percent is not None and percent >= alert_threshold_percent
    )
    remaining = max(Decimal("0"), limit_kwh - used_kwh)

    return LimitProgress(
        used_kwh=used_kwh.quantize(KWH_PLACES, rounding=ROUND_HALF_UP),
        remaining_kwh=remaining.quantize(KWH_PLACES, rounding=ROUND_HALF_UP),
        percent_used=(
            None if percent is None
            else percent.quantize(PERCENT_PLACES, rounding=ROUND_HALF_UP)
        ),
        threshold_reached=bool(threshold_reached),
        limit_exceeded=limit_exceeded,
        status=status,
    )
