"""
Application Use Cases — Accounts and Administration

Registration, login, and the admin operations over users: listing, role
changes, blocking, statistics and the audit trail.

Core guarantees provided:

- Last-admin protection: a change that would leave no unblocked admin is
  rejected. The target row and the active admin rows are locked together
  with select_for_update(), in id order, before they are counted. Two admins
  demoting each other concurrently therefore queue on the same lock order
  instead of deadlocking, and cannot both succeed.
- Audit: every successful role or block change appends an AuditLog row in
  the same transaction as the change itself.
"""

import logging

from django.db import IntegrityError, transaction
from django.db.models import Q

from energy.authentication import create_access_token
from energy.domain.exceptions import InvalidInput, LastAdminProtected, NotFound
from energy.models import AuditLog, User

logger = logging.getLogger(__name__)

ACTION_ROLE_CHANGE = "USER_ROLE_CHANGE"
ACTION_BLOCK = "USER_BLOCK"
ACTION_UNBLOCK = "USER_UNBLOCK"

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


class InvalidCredentials(Exception):
    """Raised when an email/password pair does not match an account."""


class AccountBlocked(Exception):
    """Raised when a blocked account tries to log in."""


def register_user(email, password):
    email = User.objects.normalize_email(email)
    if User.objects.filter(email__iexact=email).exists():
        raise InvalidInput("email already exists")
    try:
        return User.objects.create_user(email=email, password=password)
    except IntegrityError:
        raise InvalidInput("email already exists")


def login(email, password):
    """Return a bearer token for valid credentials."""
    user = User.objects.filter(email__iexact=email).first()
    if user is None:
        # Run the hasher once so unknown emails take as long as wrong passwords.
        User().set_password(password)
        raise InvalidCredentials()
    if user.is_blocked:
        raise AccountBlocked()
    if not user.check_password(password):
        raise InvalidCredentials()
    return create_access_token(user)


def clamp_page(limit, offset):
    """Pagination bounds: limit in 1..200 (default 50), offset >= 0 (default 0)."""
    try:
        limit = int(limit) if limit not in (None, "") else DEFAULT_PAGE_SIZE
    except (TypeError, ValueError):
        limit = DEFAULT_PAGE_SIZE
    try:
        offset = int(offset) if offset not in (None, "") else 0
    except (TypeError, ValueError):
        offset = 0
    return min(max(1, limit), MAX_PAGE_SIZE), max(0, offset)


def list_users(q=None, role=None, is_blocked=None, limit=None, offset=None):
    limit, offset = clamp_page(limit, offset)

    qs = User.objects.all()
    if q:
        qs = qs.filter(email__icontains=q)
    if role:
        qs = qs.filter(role=role)
    if is_blocked is not None:
        qs = qs.filter(is_blocked=is_blocked)

    return {
        "total": qs.count(),
        "limit": limit,
        "offset": offset,
        "items": list(qs.order_by("id")[offset:offset + limit]),
    }


def _lock_target_and_admins(user_id):
    """
    Lock the target user and every unblocked admin in one id-ordered query.

    Returns (target, number of unblocked admins).
    """
    rows = list(
        User.objects
        .select_for_update()
        .filter(Q(pk=user_id) | Q(role=User.ROLE_ADMIN, is_blocked=False))
        .order_by("id")
    )
    target = next((row for row in rows if row.pk == user_id), None)
    if target is None:
        raise NotFound()
    active_admins = sum(1 for row in rows if row.is_admin and not row.is_blocked)
    return target, active_admins


def _assert_not_last_admin(target, active_admins, message):
    if target.role != User.ROLE_ADMIN or target.is_blocked:
        return
    if active_admins <= 1:
        logger.warning("Last admin protection: target=%s", target.pk)
        raise LastAdminProtected(message, user_id=target.pk)


def _write_audit(admin, action, target, details):
    return AuditLog.objects.create(
        admin=admin,
        action=action,
        target_user=target,
        details=details,
    )


def change_role(admin, user_id, role):
    """
    Set the role of user_id.

    Guarantees:
    - NotFound for an unknown user
    - LastAdminProtected when demoting the last unblocked admin
    - InvalidInput when an admin demotes their own account
    - Change and audit row commit together
    """
    with transaction.atomic():
        target, active_admins = _lock_target_and_admins(user_id)

        if role != User.ROLE_ADMIN:
            _assert_not_last_admin(
                target, active_admins, "cannot remove role from the last active admin"
            )
            if target.pk == admin.pk:
                raise InvalidInput("cannot change own role")

        previous = target.role
        target.role = role
        target.save(update_fields=["role"])
        _write_audit(admin, ACTION_ROLE_CHANGE, target, {
            "from": previous,
            "to": role,
            "email": target.email,
        })

    logger.info("Role changed: admin=%s target=%s %s->%s", admin.pk, target.pk, previous, role)
    return target


def set_blocked(admin, user_id, is_blocked):
    """Block or unblock user_id with the same guarantees as change_role."""
    with transaction.atomic():
        target, active_admins = _lock_target_and_admins(user_id)

        if is_blocked:
            _assert_not_last_admin(target, active_admins, "cannot block the last active admin")
            if target.pk == admin.pk:
                raise InvalidInput("cannot block own account")

        previous = target.is_blocked
        target.is_blocked = is_blocked
        target.save(update_fields=["is_blocked"])
        _write_audit(admin, ACTION_BLOCK if is_blocked else ACTION_UNBLOCK, target, {
            "from": previous,
            "to": is_blocked,
            "email": target.email,
        })

    logger.info("Block flag changed: admin=%s target=%s blocked=%s", admin.pk, target.pk, is_blocked)
    return target


def user_stats():
    def count(**filters):
        return User.objects.filter(**filters).count()

    return {
        "accounts_total": count(),
        "accounts_blocked_total": count(is_blocked=True),
        "users_total": count(role=User.ROLE_USER),
        "users_blocked_total": count(role=User.ROLE_USER, is_blocked=True),
        "admins_total": count(role=User.ROLE_ADMIN),
        "admins_blocked_total": count(role=User.ROLE_ADMIN, is_blocked=True),
    }


def list_audit_logs(admin_id=None, limit=None, offset=None):
    limit, offset = clamp_page(limit, offset)

    qs = AuditLog.objects.select_related("admin", "target_user")
    if admin_id not in (None, ""):
        try:
            admin_id = int(admin_id)
        except (TypeError, ValueError):
            admin_id = 0
        if admin_id <= 0:
            raise InvalidInput("admin_id must be positive integer")
        qs = qs.filter(admin_id=admin_id)

    return {
        "total": qs.count(),
        "limit": limit,
        "offset": offset,
        "items": list(qs.order_by("-id")[offset:offset + limit]),
    }
