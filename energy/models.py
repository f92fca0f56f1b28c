"""
Persistence Models — Household Energy Tracker (Django ORM)

This module defines the persistence layer for the tracker: users, their
appliances, tariffs, consumption records, consumption limits and the admin
audit trail.

Design intent:

The models carry storage shape only. Consistency rules that span rows
(single active tariff, non-overlapping limits, last-admin protection) live
in the application layer, where they execute inside transaction.atomic()
blocks that lock the owning User row first.

Key architectural decisions:

- Every owned entity references User with a ForeignKey; ownership scoping is
  applied in every query of the application layer.
- Money and energy use DecimalField with fixed precision (kWh: 3 places,
  prices and costs: 4 places) so values are never rounded by floats.
- ConsumptionRecord stores applied_price_per_kwh as a snapshot: later tariff
  changes never rewrite past records.
- AuditLog rows are only ever inserted.
"""

from django.contrib.auth.base_user import AbstractBaseUser, BaseUserManager
from django.db import models


class UserManager(BaseUserManager):
    use_in_migrations = True

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError("email is required")
        user = self.model(email=self.normalize_email(email), **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault("role", User.ROLE_ADMIN)
        return self.create_user(email, password, **extra_fields)


class User(AbstractBaseUser):
    """
    Account owning all other tracker entities.

    The password hash is kept in AbstractBaseUser.password. A blocked user
    can neither log in nor use an issued token.
    """

    ROLE_USER = "user"
    ROLE_ADMIN = "admin"
    ROLE_CHOICES = [(ROLE_USER, "User"), (ROLE_ADMIN, "Admin")]

    email = models.EmailField(max_length=255, unique=True)
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_USER)
    is_blocked = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = UserManager()

    USERNAME_FIELD = "email"
    EMAIL_FIELD = "email"

    class Meta:
        db_table = "users"
        ordering = ["id"]

    @property
    def is_admin(self):
        return self.role == self.ROLE_ADMIN

    def __str__(self):
        return f"User {self.id} - {self.email}"


class Appliance(models.Model):
    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name="appliances")
    name = models.CharField(max_length=120)
    description = models.CharField(max_length=500, null=True, blank=True)
    # Nominal power draw in kW, used to derive kWh from usage hours.
    estimated_power = models.DecimalField(max_digits=10, decimal_places=3, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "appliances"

    def __str__(self):
        return f"Appliance {self.id} - {self.name}"


class Tariff(models.Model):
    """
    Priced rate valid over [valid_from, valid_to]; valid_to=None is open-ended.

    At most one tariff per owner has is_active=True. The application layer
    enforces this while holding a lock on the owner row.
    """

    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name="tariffs")
    tariff_name = models.CharField(max_length=120)
    price_per_kwh = models.DecimalField(max_digits=10, decimal_places=4)
    valid_from = models.DateField()
    valid_to = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "tariffs"
        indexes = [models.Index(fields=["owner", "is_active"], name="tariffs_owner_active_idx")]

    def __str__(self):
        return f"Tariff {self.id} - {self.tariff_name} @ {self.price_per_kwh}"


class ConsumptionRecord(models.Model):
    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name="consumption_records")
    appliance = models.ForeignKey(
        Appliance,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="consumption_records",
    )
    consumption_kwh = models.DecimalField(max_digits=10, decimal_places=3)
    applied_price_per_kwh = models.DecimalField(max_digits=10, decimal_places=4)
    cost = models.DecimalField(max_digits=12, decimal_places=4)
    record_date = models.DateField()
    notes = models.CharField(max_length=500, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "consumption_records"
        indexes = [models.Index(fields=["owner", "record_date"], name="consumption_owner_date_idx")]

    def __str__(self):
        return f"Consumption {self.id} - {self.consumption_kwh} kWh on {self.record_date}"


class Limit(models.Model):
    """
    Cap on total kWh over [period_start, period_end], both inclusive.

    Limits of the same owner and period_type never overlap. For week, month
    and year limits period_end is derived from period_start.
    """

    PERIOD_WEEK = "week"
    PERIOD_MONTH = "month"
    PERIOD_YEAR = "year"
    PERIOD_CUSTOM = "custom"
    PERIOD_CHOICES = [
        (PERIOD_WEEK, "Week"),
        (PERIOD_MONTH, "Month"),
        (PERIOD_YEAR, "Year"),
        (PERIOD_CUSTOM, "Custom"),
    ]

    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name="limits")
    limit_kwh = models.DecimalField(max_digits=10, decimal_places=3)
    period_type = models.CharField(max_length=16, choices=PERIOD_CHOICES)
    period_start = models.DateField()
    period_end = models.DateField()
    alert_enabled = models.BooleanField(default=True)
    alert_threshold_percent = models.PositiveSmallIntegerField(default=80)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "limits"
        indexes = [
            models.Index(
                fields=["owner", "period_type", "period_start"],
                name="limits_owner_type_start_idx",
            ),
        ]

    def __str__(self):
        return f"Limit {self.id} - {self.limit_kwh} kWh ({self.period_type})"


class AuditLog(models.Model):
    admin = models.ForeignKey(User, on_delete=models.CASCADE, related_name="audit_actions")
    action = models.CharField(max_length=64)
    target_user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_entries",
    )
    details = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "audit_logs"
        ordering = ["-id"]

    def __str__(self):
        return f"Audit {self.id} - {self.action}"
