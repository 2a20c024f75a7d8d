import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

RATE_VALIDATORS = [
    django.core.validators.MinValueValidator(Decimal("0")),
    django.core.validators.MaxValueValidator(Decimal("1")),
]
AMOUNT_VALIDATORS = [django.core.validators.MinValueValidator(Decimal("0"))]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("contracts", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CommissionConfig",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                ("name", models.CharField(max_length=120, verbose_name="name")),
                ("description", models.TextField(blank=True, verbose_name="description")),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("inactive", "Inactive")],
                        db_index=True,
                        default="active",
                        max_length=10,
                        verbose_name="status",
                    ),
                ),
                (
                    "base_commission_rate",
                    models.DecimalField(
                        decimal_places=4, max_digits=7, validators=RATE_VALIDATORS, verbose_name="base rate",
                    ),
                ),
                (
                    "pilot_bonus_rate",
                    models.DecimalField(
                        decimal_places=4, default=Decimal("0"), max_digits=7,
                        validators=RATE_VALIDATORS, verbose_name="pilot bonus rate",
                    ),
                ),
                (
                    "multi_year_bonus_rate",
                    models.DecimalField(
                        decimal_places=4, default=Decimal("0"), max_digits=7,
                        validators=RATE_VALIDATORS, verbose_name="multi-year bonus rate",
                    ),
                ),
                (
                    "multi_year_bonus_mode",
                    models.CharField(
                        choices=[("flat", "Flat rate"), ("per_extra_year", "Rate per additional year")],
                        default="flat",
                        max_length=20,
                        verbose_name="multi-year bonus mode",
                    ),
                ),
                (
                    "multi_year_min_acv",
                    models.DecimalField(
                        blank=True, decimal_places=2, max_digits=14, null=True,
                        help_text="Leave empty to grant the bonus on any multi-year contract.",
                        validators=AMOUNT_VALIDATORS, verbose_name="multi-year minimum ACV",
                    ),
                ),
                (
                    "upfront_bonus_rate",
                    models.DecimalField(
                        decimal_places=4, default=Decimal("0"), max_digits=7,
                        validators=RATE_VALIDATORS, verbose_name="upfront bonus rate",
                    ),
                ),
                (
                    "annual_cap_amount",
                    models.DecimalField(
                        blank=True, decimal_places=2, max_digits=14, null=True,
                        help_text="Empty or 0 means uncapped.",
                        validators=AMOUNT_VALIDATORS, verbose_name="annual OTE cap",
                    ),
                ),
                (
                    "deceleration_rate",
                    models.DecimalField(
                        decimal_places=4, default=Decimal("0.5"), max_digits=7,
                        validators=RATE_VALIDATORS, verbose_name="deceleration rate",
                    ),
                ),
                (
                    "high_value_threshold",
                    models.DecimalField(
                        blank=True, decimal_places=2, max_digits=14, null=True,
                        validators=AMOUNT_VALIDATORS, verbose_name="high-value contract threshold",
                    ),
                ),
                (
                    "high_value_rate",
                    models.DecimalField(
                        decimal_places=4, default=Decimal("0"), max_digits=7,
                        validators=RATE_VALIDATORS, verbose_name="rate above high-value threshold",
                    ),
                ),
                ("version", models.PositiveIntegerField(default=1, verbose_name="version")),
                (
                    "previous_version",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="revisions",
                        to="commissions.commissionconfig",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_commission_configs",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "commission config",
                "verbose_name_plural": "commission configs",
                "ordering": ["name", "-version"],
            },
        ),
        migrations.CreateModel(
            name="AECommissionAssignment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                ("effective_date", models.DateField(verbose_name="effective from")),
                ("end_date", models.DateField(blank=True, null=True, verbose_name="ends on (exclusive)")),
                (
                    "ae",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="commission_assignments",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="account executive",
                    ),
                ),
                (
                    "config",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="assignments",
                        to="commissions.commissionconfig",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_commission_assignments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "AE commission assignment",
                "verbose_name_plural": "AE commission assignments",
                "ordering": ["-effective_date"],
                "indexes": [models.Index(fields=["ae", "effective_date"], name="assignment_ae_effective_idx")],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("end_date__isnull", True), ("end_date__gt", models.F("effective_date")), _connector="OR"),
                        name="assignment_end_after_start",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Commission",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                ("config_snapshot", models.JSONField(default=dict, verbose_name="config snapshot")),
                ("base_commission", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=14, verbose_name="base commission")),
                ("pilot_bonus", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=14, verbose_name="pilot bonus")),
                ("multi_year_bonus", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=14, verbose_name="multi-year bonus")),
                ("upfront_bonus", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=14, verbose_name="upfront bonus")),
                ("total_commission", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=14, verbose_name="total commission")),
                ("ote_applied", models.BooleanField(default=False, verbose_name="OTE deceleration applied")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("approved", "Approved"),
                            ("rejected", "Rejected"),
                            ("paid", "Paid"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=10,
                        verbose_name="status",
                    ),
                ),
                ("approved_at", models.DateTimeField(blank=True, null=True, verbose_name="approved at")),
                ("rejection_reason", models.TextField(blank=True, verbose_name="rejection reason")),
                ("paid_at", models.DateTimeField(blank=True, null=True, verbose_name="paid at")),
                (
                    "invoice",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="commission",
                        to="contracts.invoice",
                    ),
                ),
                (
                    "ae",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="commissions",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="account executive",
                    ),
                ),
                (
                    "config",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="commissions",
                        to="commissions.commissionconfig",
                    ),
                ),
                (
                    "approved_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="approved_commissions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "paid_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="paid_commissions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "commission",
                "verbose_name_plural": "commissions",
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["ae", "status"], name="commission_ae_status_idx")],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            ("base_commission__gte", 0),
                            ("pilot_bonus__gte", 0),
                            ("multi_year_bonus__gte", 0),
                            ("upfront_bonus__gte", 0),
                            ("total_commission__gte", 0),
                        ),
                        name="commission_amounts_non_negative",
                    ),
                ],
            },
        ),
    ]
