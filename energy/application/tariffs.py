"""
Application Use Cases — Tariffs

A user may hold many tariffs but at most one of them is active; the active
tariff prices every new consumption record.

Core guarantees provided:

- Atomicity: deactivating the other tariffs and activating the target happen
  in one transaction.atomic() block, so no reader observes zero or two
  active tariffs in between.
- Serialization: the owner row is locked with select_for_update() before
  the active set is touched, so concurrent activations of the same user
  cannot interleave.
- Idempotency: activating an already-active tariff returns it unchanged and
  issues no writes.
"""

import logging

from django.db import transaction
from django.utils import timezone

from energy.application.ownership import get_owned, lock_owner
from energy.domain.exceptions import InvalidInput, MultipleActiveTariffs
from energy.domain.periods import date_in_range
from energy.models import Tariff

logger = logging.getLogger(__name__)


def today_utc():
    return timezone.now().date()


def _assert_can_be_active_now(valid_from, valid_to):
    today = today_utc()
    if not date_in_range(today, valid_from, valid_to):
        raise InvalidInput(
            f"Tariff cannot be active now. Today ({today.isoformat()}) "
            "is outside the tariff validity range."
        )


def _assert_validity_order(valid_from, valid_to):
    if valid_to is not None and valid_from > valid_to:
        raise InvalidInput("valid_from cannot be after valid_to")


def _deactivate_others(owner, keep_id):
    count = (
        Tariff.objects
        .filter(owner=owner, is_active=True)
        .exclude(pk=keep_id)
        .update(is_active=False)
    )
    if count:
        logger.info("Deactivated tariffs: owner=%s count=%s kept=%s", owner.pk, count, keep_id)
    return count


def list_tariffs(user):
    return Tariff.objects.filter(owner=user).order_by("-id")


def create_tariff(user, data):
    valid_from = data["valid_from"]
    valid_to = data.get("valid_to")
    make_active = data.get("is_active", True)

    _assert_validity_order(valid_from, valid_to)
    if make_active:
        _assert_can_be_active_now(valid_from, valid_to)

    with transaction.atomic():
        lock_owner(user)
        tariff = Tariff.objects.create(
            owner=user,
            tariff_name=data["tariff_name"],
            price_per_kwh=data["price_per_kwh"],
            valid_from=valid_from,
            valid_to=valid_to,
            is_active=make_active,
        )
        if make_active:
            _deactivate_others(user, tariff.pk)

    return tariff


def update_tariff(user, tariff_id, data):
    with transaction.atomic():
        lock_owner(user)
        tariff = get_owned(Tariff, user, tariff_id)

        valid_from = data.get("valid_from", tariff.valid_from)
        valid_to = data["valid_to"] if "valid_to" in data else tariff.valid_to
        is_active = data.get("is_active", tariff.is_active)

        _assert_validity_order(valid_from, valid_to)
        if is_active:
            _assert_can_be_active_now(valid_from, valid_to)
            if not tariff.is_active:
                _deactivate_others(user, tariff.pk)

        tariff.tariff_name = data.get("tariff_name", tariff.tariff_name)
        tariff.price_per_kwh = data.get("price_per_kwh", tariff.price_per_kwh)
        tariff.valid_from = valid_from
        tariff.valid_to = valid_to
        tariff.is_active = is_active
        tariff.save()

    return tariff


def activate_tariff(user, tariff_id):
    """
    Make the tariff the owner's only active one.

    Guarantees:
    - NotFound when the tariff does not exist or belongs to someone else
    - No writes when the tariff is already active
    - InvalidInput when today is outside [valid_from, valid_to]
    - Deactivate-others and activate-target commit together
    """
    with transaction.atomic():
        lock_owner(user)
        tariff = get_owned(Tariff, user, tariff_id)

        if tariff.is_active:
            return tariff

        _assert_can_be_active_now(tariff.valid_from, tariff.valid_to)

        _deactivate_others(user, tariff.pk)
        tariff.is_active = True
        tariff.save(update_fields=["is_active"])

    logger.info("Tariff activated: owner=%s tariff=%s", user.pk, tariff.pk)
    return tariff


def delete_tariff(user, tariff_id):
    tariff = get_owned(Tariff, user, tariff_id)
    tariff.delete()


def get_active_tariff(user):
    """
    Return the owner's single active tariff.

    Zero active tariffs is a user error. More than one should never be
    persisted, but if it is, the caller gets a Conflict naming the offending
    tariffs instead of a crash.
    """
    active = list(Tariff.objects.filter(owner=user, is_active=True).order_by("-id"))

    if not active:
        raise InvalidInput("No active tariff. Please create a tariff and set it as active.")

    if len(active) > 1:
        ids = [t.pk for t in active]
        logger.warning("Multiple active tariffs: owner=%s ids=%s", user.pk, ids)
        raise MultipleActiveTariffs(ids)

    return active[0]
