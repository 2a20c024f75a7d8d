"""Contracts signed by AEs and the invoices billed against them."""
from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from core.models import TimeStampedModel


class Contract(TimeStampedModel):
    """A signed customer contract owned by one AE.

    Read-only for commission purposes once any of its invoices carries an
    approved or paid commission (see ``contracts.services``).
    """

    class ContractType(models.TextChoices):
        NEW = "new", "New business"
        RENEWAL = "renewal", "Renewal"
        UPSELL = "upsell", "Upsell"

    class PaymentTerms(models.TextChoices):
        ANNUAL = "annual", "Annual"
        QUARTERLY = "quarterly", "Quarterly"
        MONTHLY = "monthly", "Monthly"
        UPFRONT = "upfront", "Upfront"
        FULL_UPFRONT = "full-upfront", "Full upfront"

    UPFRONT_TERMS = frozenset({PaymentTerms.UPFRONT, PaymentTerms.FULL_UPFRONT})

    client_name = models.CharField("client name", max_length=200, db_index=True)
    ae = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="contracts",
        verbose_name="account executive",
    )
    contract_value = models.DecimalField(
        "total contract value",
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0"))],
    )
    acv = models.DecimalField(
        "annual contract value",
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0"))],
    )
    contract_type = models.CharField(
        "contract type",
        max_length=20,
        choices=ContractType.choices,
        default=ContractType.NEW,
    )
    contract_length = models.PositiveSmallIntegerField(
        "length (years)",
        default=1,
        validators=[MinValueValidator(1)],
    )
    payment_terms = models.CharField(
        "payment terms",
        max_length=20,
        choices=PaymentTerms.choices,
        default=PaymentTerms.ANNUAL,
    )
    is_pilot = models.BooleanField("pilot", default=False)
    notes = models.TextField("notes", blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_contracts",
    )

    class Meta:
        verbose_name = "contract"
        verbose_name_plural = "contracts"
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(contract_value__gte=0) & models.Q(acv__gte=0),
                name="contract_amounts_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(contract_length__gte=1),
                name="contract_length_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.client_name} ({self.get_contract_type_display()})"

    @property
    def is_upfront(self) -> bool:
        return self.payment_terms in self.UPFRONT_TERMS

    @property
    def is_multi_year(self) -> bool:
        return self.contract_length > 1


class Invoice(TimeStampedModel):
    """An invoice billed against a contract; each one earns one commission."""

    class RevenueType(models.TextChoices):
        RECURRING = "recurring", "Recurring"
        NON_RECURRING = "non-recurring", "Non-recurring"
        SERVICE = "service", "Service"

    contract = models.ForeignKey(
        Contract,
        on_delete=models.PROTECT,
        related_name="invoices",
        verbose_name="contract",
    )
    amount = models.DecimalField(
        "amount",
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0"))],
    )
    invoice_date = models.DateField("invoice date", db_index=True)
    revenue_type = models.CharField(
        "revenue type",
        max_length=20,
        choices=RevenueType.choices,
        default=RevenueType.RECURRING,
    )
    notes = models.TextField("notes", blank=True)
    # Set when the invoice was imported from the external billing system.
    external_invoice_id = models.CharField(
        "external invoice id",
        max_length=120,
        null=True,
        blank=True,
        unique=True,
    )
    sync_details = models.TextField("sync details", blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_invoices",
    )

    class Meta:
        verbose_name = "invoice"
        verbose_name_plural = "invoices"
        ordering = ["-invoice_date", "-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gte=0),
                name="invoice_amount_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Invoice {self.invoice_date} - {self.amount} ({self.contract.client_name})"
