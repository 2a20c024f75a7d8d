"""Commission calculation engine.

Flow for one invoice:
- refuse if the invoice already has a commission (one per invoice)
- resolve the AE's config for the invoice date
- base = amount x rate (high-value share at its own rate)
- cap the base against the AE's running total for the calendar year,
  serialized per AE and year so two invoices cannot both see the old total
- add the uncapped bonuses and persist a ``pending`` commission
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from decimal import Decimal

from django.conf import settings
from django.db import IntegrityError, transaction

from commissions.bonuses import compute_base, compute_bonuses
from commissions.exceptions import (
    CommissionLockedError,
    ContractNotFoundError,
    DuplicateCommissionError,
)
from commissions.models import Commission
from commissions.money import ZERO
from commissions.ote import POLICY_STATUSES, OteCapTracker
from commissions.repository import DjangoCommissionRepository
from commissions.resolver import ConfigResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommissionAmounts:
    base_commission: Decimal = ZERO
    pilot_bonus: Decimal = ZERO
    multi_year_bonus: Decimal = ZERO
    upfront_bonus: Decimal = ZERO
    total_commission: Decimal = ZERO
    ote_applied: bool = False

    def as_record(self) -> dict:
        return asdict(self)


class CommissionEngine:
    """Compute and persist commissions.

    Build one per request or task; collaborators are injected so tests can
    swap the repository or the resolver.
    """

    def __init__(self, repository=None, resolver=None, policy: str | None = None) -> None:
        self.repository = repository or DjangoCommissionRepository()
        self.resolver = resolver or ConfigResolver(self.repository)
        self.ote = OteCapTracker(self.repository, policy)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def calculate_commission(self, invoice) -> Commission:
        existing = self.repository.get_commission_by_invoice(invoice.pk)
        if existing is not None:
            raise DuplicateCommissionError(existing)

        contract = self._load_contract(invoice)
        config = self.resolver.resolve(contract.ae_id, invoice.invoice_date)
        year = invoice.invoice_date.year

        try:
            with transaction.atomic():
                self.repository.lock_ae_year(contract.ae_id, year)
                amounts = self.compute(contract, invoice, config)
                commission = self.repository.create_commission(
                    invoice=invoice,
                    ae_id=contract.ae_id,
                    config=None if config.is_system_default else config,
                    config_snapshot=config.snapshot(),
                    status=Commission.Status.PENDING,
                    **amounts.as_record(),
                )
        except IntegrityError as exc:
            existing = self.repository.get_commission_by_invoice(invoice.pk)
            if existing is None:
                raise
            logger.info("Concurrent commission creation for invoice %s; keeping %s", invoice.pk, existing.pk)
            raise DuplicateCommissionError(existing) from exc

        logger.info(
            "Commission %s created for invoice %s: base=%s bonuses=%s total=%s ote_applied=%s",
            commission.pk,
            invoice.pk,
            amounts.base_commission,
            amounts.total_commission - amounts.base_commission,
            amounts.total_commission,
            amounts.ote_applied,
        )
        return commission

    def get_or_calculate(self, invoice) -> Commission:
        try:
            return self.calculate_commission(invoice)
        except DuplicateCommissionError as exc:
            return exc.commission

    def recalculate_commission(self, commission: Commission) -> Commission:
        """Recompute a pending commission in place from the invoice's current data."""
        with transaction.atomic():
            commission = Commission.objects.select_for_update().select_related("invoice").get(pk=commission.pk)
            if commission.status != Commission.Status.PENDING:
                raise CommissionLockedError(
                    f"Commission {commission.pk} is {commission.status}; only pending commissions can be recalculated."
                )

            invoice = commission.invoice
            contract = self._load_contract(invoice)
            config = self.resolver.resolve(contract.ae_id, invoice.invoice_date)
            year = invoice.invoice_date.year
            self.repository.lock_ae_year(contract.ae_id, year)

            # The running total already includes this commission under its current invoice date.
            already_counted = ZERO
            if commission.status in POLICY_STATUSES[self.ote.policy] and commission.ae_id == contract.ae_id:
                already_counted = commission.base_commission
            amounts = self.compute(contract, invoice, config, already_counted=already_counted)

            commission.ae_id = contract.ae_id
            commission.config = None if config.is_system_default else config
            commission.config_snapshot = config.snapshot()
            for field, value in amounts.as_record().items():
                setattr(commission, field, value)
            commission.save()

        logger.info("Commission %s recalculated: total=%s", commission.pk, commission.total_commission)
        return commission

    def compute(self, contract, invoice, config, already_counted: Decimal = ZERO) -> CommissionAmounts:
        """Amounts for *invoice* without persisting anything."""
        non_commissionable = getattr(settings, "COMMISSION_NON_COMMISSIONABLE_REVENUE_TYPES", [])
        if invoice.revenue_type in non_commissionable:
            logger.info("Invoice %s has non-commissionable revenue type '%s'", invoice.pk, invoice.revenue_type)
            return CommissionAmounts()

        proposed = compute_base(contract, invoice, config)
        capped = self.ote.apply(
            contract.ae_id,
            invoice.invoice_date.year,
            proposed,
            config,
            already_counted=already_counted,
        )
        bonuses = compute_bonuses(contract, invoice, config)
        return CommissionAmounts(
            base_commission=capped.adjusted_base,
            pilot_bonus=bonuses.pilot_bonus,
            multi_year_bonus=bonuses.multi_year_bonus,
            upfront_bonus=bonuses.upfront_bonus,
            total_commission=capped.adjusted_base + bonuses.total,
            ote_applied=capped.ote_applied,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _load_contract(self, invoice):
        contract = self.repository.get_contract(invoice.contract_id)
        if contract is None:
            raise ContractNotFoundError(f"Contract {invoice.contract_id} for invoice {invoice.pk} does not exist.")
        return contract

