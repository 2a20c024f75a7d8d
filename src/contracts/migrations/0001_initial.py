import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Contract",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                ("client_name", models.CharField(db_index=True, max_length=200, verbose_name="client name")),
                (
                    "contract_value",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=14,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                        verbose_name="total contract value",
                    ),
                ),
                (
                    "acv",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=14,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                        verbose_name="annual contract value",
                    ),
                ),
                (
                    "contract_type",
                    models.CharField(
                        choices=[("new", "New business"), ("renewal", "Renewal"), ("upsell", "Upsell")],
                        default="new",
                        max_length=20,
                        verbose_name="contract type",
                    ),
                ),
                (
                    "contract_length",
                    models.PositiveSmallIntegerField(
                        default=1,
                        validators=[django.core.validators.MinValueValidator(1)],
                        verbose_name="length (years)",
                    ),
                ),
                (
                    "payment_terms",
                    models.CharField(
                        choices=[
                            ("annual", "Annual"),
                            ("quarterly", "Quarterly"),
                            ("monthly", "Monthly"),
                            ("upfront", "Upfront"),
                            ("full-upfront", "Full upfront"),
                        ],
                        default="annual",
                        max_length=20,
                        verbose_name="payment terms",
                    ),
                ),
                ("is_pilot", models.BooleanField(default=False, verbose_name="pilot")),
                ("notes", models.TextField(blank=True, verbose_name="notes")),
                (
                    "ae",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="contracts",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="account executive",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_contracts",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "contract",
                "verbose_name_plural": "contracts",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("contract_value__gte", 0), ("acv__gte", 0)),
                        name="contract_amounts_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("contract_length__gte", 1)),
                        name="contract_length_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=14,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                        verbose_name="amount",
                    ),
                ),
                ("invoice_date", models.DateField(db_index=True, verbose_name="invoice date")),
                (
                    "revenue_type",
                    models.CharField(
                        choices=[
                            ("recurring", "Recurring"),
                            ("non-recurring", "Non-recurring"),
                            ("service", "Service"),
                        ],
                        default="recurring",
                        max_length=20,
                        verbose_name="revenue type",
                    ),
                ),
                ("notes", models.TextField(blank=True, verbose_name="notes")),
                (
                    "external_invoice_id",
                    models.CharField(
                        blank=True,
                        max_length=120,
                        null=True,
                        unique=True,
                        verbose_name="external invoice id",
                    ),
                ),
                ("sync_details", models.TextField(blank=True, verbose_name="sync details")),
                (
                    "contract",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="invoices",
                        to="contracts.contract",
                        verbose_name="contract",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_invoices",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "invoice",
                "verbose_name_plural": "invoices",
                "ordering": ["-invoice_date", "-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gte", 0)),
                        name="invoice_amount_non_negative",
                    ),
                ],
            },
        ),
    ]
