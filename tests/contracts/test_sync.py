"""Tests for importing invoices from the external billing system."""
from datetime import date
from decimal import Decimal

import pytest

from commissions.exceptions import ContractNotFoundError, InvoiceAlreadySyncedError
from contracts.models import Invoice
from contracts.sync import match_contract, sync_external_invoice


def payload(**overrides):
    data = {
        "id": "in_001",
        "customer_name": "acme corp",
        "invoice_number": "INV-1001",
        "amount": "50000.00",
        "invoice_date": "2025-03-01",
    }
    data.update(overrides)
    return data


@pytest.mark.django_db
class TestMatchContract:
    def test_matches_case_insensitively(self, contract):
        assert match_contract("  ACME CORP ") == contract

    def test_unknown_customer(self, contract):
        with pytest.raises(ContractNotFoundError):
            match_contract("Umbrella")


@pytest.mark.django_db
class TestSyncExternalInvoice:
    def test_creates_recurring_invoice_with_commission(self, contract, assignment):
        invoice = sync_external_invoice(payload(description="March subscription"))

        assert invoice.contract == contract
        assert invoice.external_invoice_id == "in_001"
        assert invoice.revenue_type == Invoice.RevenueType.RECURRING
        assert invoice.sync_details == "Synced from billing - INV-1001 - March subscription"
        assert invoice.commission.base_commission == Decimal("5000.00")

    def test_paid_date_takes_precedence(self, contract, assignment):
        invoice = sync_external_invoice(payload(paid_date="2025-04-15T10:30:00Z"))
        assert invoice.invoice_date == date(2025, 4, 15)

    def test_invoice_date_used_when_unpaid(self, contract, assignment):
        invoice = sync_external_invoice(payload())
        assert invoice.invoice_date == date(2025, 3, 1)
        assert invoice.sync_details == "Synced from billing - INV-1001"

    def test_second_sync_is_rejected(self, contract, assignment):
        first = sync_external_invoice(payload())

        with pytest.raises(InvoiceAlreadySyncedError) as excinfo:
            sync_external_invoice(payload(amount="99.00"))

        assert excinfo.value.invoice == first
        assert Invoice.objects.filter(external_invoice_id="in_001").count() == 1

    def test_explicit_contract_skips_matching(self, contract, assignment):
        invoice = sync_external_invoice(payload(customer_name="Unknown Ltd"), contract=contract)
        assert invoice.contract == contract

    def test_unmatched_customer_creates_nothing(self, contract):
        with pytest.raises(ContractNotFoundError):
            sync_external_invoice(payload(customer_name="Umbrella"))
        assert not Invoice.objects.exists()
