"""Models for commission plans, AE assignments and computed commissions."""
from __future__ import annotations

from datetime import date
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from commissions.exceptions import ConfigImmutableError
from core.models import TimeStampedModel

RATE_VALIDATORS = [MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("1"))]
AMOUNT_VALIDATORS = [MinValueValidator(Decimal("0"))]


class CommissionConfig(TimeStampedModel):
    """A named, versioned commission plan.

    Rates are fractions (``0.10`` is 10%). Once a commission references a
    config its rates are frozen; use ``commissions.services.revise_config``
    to publish a new version instead of editing in place.
    """

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"

    class MultiYearMode(models.TextChoices):
        FLAT = "flat", "Flat rate"
        PER_EXTRA_YEAR = "per_extra_year", "Rate per additional year"

    RATE_FIELDS = (
        "base_commission_rate",
        "pilot_bonus_rate",
        "multi_year_bonus_rate",
        "multi_year_bonus_mode",
        "multi_year_min_acv",
        "upfront_bonus_rate",
        "annual_cap_amount",
        "deceleration_rate",
        "high_value_threshold",
        "high_value_rate",
    )

    # Set on the unsaved fallback built by the resolver.
    is_system_default = False

    name = models.CharField("name", max_length=120)
    description = models.TextField("description", blank=True)
    status = models.CharField(
        "status",
        max_length=10,
        choices=Status.choices,
        default=Status.ACTIVE,
        db_index=True,
    )
    base_commission_rate = models.DecimalField(
        "base rate", max_digits=7, decimal_places=4, validators=RATE_VALIDATORS,
    )
    pilot_bonus_rate = models.DecimalField(
        "pilot bonus rate", max_digits=7, decimal_places=4,
        default=Decimal("0"), validators=RATE_VALIDATORS,
    )
    multi_year_bonus_rate = models.DecimalField(
        "multi-year bonus rate", max_digits=7, decimal_places=4,
        default=Decimal("0"), validators=RATE_VALIDATORS,
    )
    multi_year_bonus_mode = models.CharField(
        "multi-year bonus mode",
        max_length=20,
        choices=MultiYearMode.choices,
        default=MultiYearMode.FLAT,
    )
    multi_year_min_acv = models.DecimalField(
        "multi-year minimum ACV", max_digits=14, decimal_places=2,
        null=True, blank=True, validators=AMOUNT_VALIDATORS,
        help_text="Leave empty to grant the bonus on any multi-year contract.",
    )
    upfront_bonus_rate = models.DecimalField(
        "upfront bonus rate", max_digits=7, decimal_places=4,
        default=Decimal("0"), validators=RATE_VALIDATORS,
    )
    annual_cap_amount = models.DecimalField(
        "annual OTE cap", max_digits=14, decimal_places=2,
        null=True, blank=True, validators=AMOUNT_VALIDATORS,
        help_text="Empty or 0 means uncapped.",
    )
    deceleration_rate = models.DecimalField(
        "deceleration rate", max_digits=7, decimal_places=4,
        default=Decimal("0.5"), validators=RATE_VALIDATORS,
    )
    high_value_threshold = models.DecimalField(
        "high-value contract threshold", max_digits=14, decimal_places=2,
        null=True, blank=True, validators=AMOUNT_VALIDATORS,
    )
    high_value_rate = models.DecimalField(
        "rate above high-value threshold", max_digits=7, decimal_places=4,
        default=Decimal("0"), validators=RATE_VALIDATORS,
    )
    version = models.PositiveIntegerField("version", default=1)
    previous_version = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="revisions",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_commission_configs",
    )

    class Meta:
        verbose_name = "commission config"
        verbose_name_plural = "commission configs"
        ordering = ["name", "-version"]

    def __str__(self) -> str:
        return f"{self.name} v{self.version}"

    @property
    def is_capped(self) -> bool:
        return bool(self.annual_cap_amount and self.annual_cap_amount > 0)

    def snapshot(self) -> dict:
        """Frozen copy of the rates, stored on every commission."""
        data = {
            "config_id": None if self.is_system_default else str(self.pk),
            "name": self.name,
            "version": self.version,
        }
        for field in self.RATE_FIELDS:
            value = getattr(self, field)
            data[field] = None if value is None else str(value)
        return data

    def _normalized_rates(self, values: dict) -> dict:
        normalized = {}
        for field in self.RATE_FIELDS:
            value = values[field]
            if value is not None and field != "multi_year_bonus_mode":
                value = Decimal(str(value))
            normalized[field] = value
        return normalized

    def save(self, *args, **kwargs):
        if not self._state.adding and self.commissions.exists():
            stored = type(self).objects.filter(pk=self.pk).values(*self.RATE_FIELDS).first()
            current = {field: getattr(self, field) for field in self.RATE_FIELDS}
            if stored and self._normalized_rates(stored) != self._normalized_rates(current):
                raise ConfigImmutableError(
                    f"Config {self} is referenced by commissions; publish a new version instead."
                )
        super().save(*args, **kwargs)


class AECommissionAssignment(TimeStampedModel):
    """Links an AE to one config over the half-open interval [effective_date, end_date)."""

    ae = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="commission_assignments",
        verbose_name="account executive",
    )
    config = models.ForeignKey(
        CommissionConfig,
        on_delete=models.PROTECT,
        related_name="assignments",
    )
    effective_date = models.DateField("effective from")
    end_date = models.DateField("ends on (exclusive)", null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_commission_assignments",
    )

    class Meta:
        verbose_name = "AE commission assignment"
        verbose_name_plural = "AE commission assignments"
        ordering = ["-effective_date"]
        indexes = [
            models.Index(fields=["ae", "effective_date"], name="assignment_ae_effective_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end_date__isnull=True)
                | models.Q(end_date__gt=models.F("effective_date")),
                name="assignment_end_after_start",
            ),
        ]

    def __str__(self) -> str:
        end = self.end_date or "open"
        return f"{self.ae} -> {self.config} [{self.effective_date}, {end})"

    def covers(self, on_date: date) -> bool:
        return self.effective_date <= on_date and (self.end_date is None or on_date < self.end_date)

    def overlapping(self):
        """Other assignments of the same AE whose interval intersects this one."""
        this_end = self.end_date or date.max
        qs = AECommissionAssignment.objects.filter(
            ae_id=self.ae_id,
            effective_date__lt=this_end,
        ).filter(
            models.Q(end_date__isnull=True) | models.Q(end_date__gt=self.effective_date)
        )
        if not self._state.adding:
            qs = qs.exclude(pk=self.pk)
        return qs

    def clean(self) -> None:
        if self.end_date and self.end_date <= self.effective_date:
            raise ValidationError("The end date must be after the effective date.")
        if not self.ae_id:
            return
        if self.overlapping().exists():
            raise ValidationError(
                "Another assignment already covers part of this period for the AE."
            )


class Commission(TimeStampedModel):
    """The commission earned on one invoice, and its approval workflow."""

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"
        PAID = "paid", "Paid"

    TRANSITIONS = {
        Status.PENDING: frozenset({Status.APPROVED, Status.REJECTED}),
        Status.APPROVED: frozenset({Status.PAID}),
        Status.REJECTED: frozenset(),
        Status.PAID: frozenset(),
    }
    LOCKED_STATUSES = (Status.APPROVED, Status.PAID)
    REALIZED_STATUSES = (Status.APPROVED, Status.PAID)
    COMMITTED_STATUSES = (Status.PENDING, Status.APPROVED, Status.PAID)

    invoice = models.OneToOneField(
        "contracts.Invoice",
        on_delete=models.PROTECT,
        related_name="commission",
    )
    ae = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="commissions",
        verbose_name="account executive",
    )
    # Null when the system default plan was applied.
    config = models.ForeignKey(
        CommissionConfig,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="commissions",
    )
    config_snapshot = models.JSONField("config snapshot", default=dict)
    base_commission = models.DecimalField(
        "base commission", max_digits=14, decimal_places=2, default=Decimal("0"),
    )
    pilot_bonus = models.DecimalField(
        "pilot bonus", max_digits=14, decimal_places=2, default=Decimal("0"),
    )
    multi_year_bonus = models.DecimalField(
        "multi-year bonus", max_digits=14, decimal_places=2, default=Decimal("0"),
    )
    upfront_bonus = models.DecimalField(
        "upfront bonus", max_digits=14, decimal_places=2, default=Decimal("0"),
    )
    total_commission = models.DecimalField(
        "total commission", max_digits=14, decimal_places=2, default=Decimal("0"),
    )
    ote_applied = models.BooleanField("OTE deceleration applied", default=False)
    status = models.CharField(
        "status",
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="approved_commissions",
    )
    approved_at = models.DateTimeField("approved at", null=True, blank=True)
    rejection_reason = models.TextField("rejection reason", blank=True)
    paid_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="paid_commissions",
    )
    paid_at = models.DateTimeField("paid at", null=True, blank=True)

    class Meta:
        verbose_name = "commission"
        verbose_name_plural = "commissions"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["ae", "status"], name="commission_ae_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(base_commission__gte=0)
                & models.Q(pilot_bonus__gte=0)
                & models.Q(multi_year_bonus__gte=0)
                & models.Q(upfront_bonus__gte=0)
                & models.Q(total_commission__gte=0),
                name="commission_amounts_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Commission {self.total_commission} ({self.get_status_display()}) - {self.ae}"

    @classmethod
    def can_transition(cls, current: str, target: str) -> bool:
        return target in cls.TRANSITIONS.get(current, frozenset())

    @property
    def is_locked(self) -> bool:
        return self.status in self.LOCKED_STATUSES

    @property
    def components_total(self) -> Decimal:
        return self.base_commission + self.pilot_bonus + self.multi_year_bonus + self.upfront_bonus
