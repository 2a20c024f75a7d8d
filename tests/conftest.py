from datetime import date
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from accounts.models import User
from commissions.models import AECommissionAssignment, Commission, CommissionConfig
from contracts.models import Contract, Invoice


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(
        email="admin@test.com",
        password="testpass123",
        first_name="Admin",
        last_name="User",
        role=User.Role.ADMIN,
    )


@pytest.fixture
def ae_user(db):
    return User.objects.create_user(
        email="ae@test.com",
        password="testpass123",
        first_name="Alice",
        last_name="Seller",
        role=User.Role.AE,
    )


@pytest.fixture
def other_ae(db):
    return User.objects.create_user(
        email="ae2@test.com",
        password="testpass123",
        first_name="Bob",
        last_name="Closer",
        role=User.Role.AE,
    )


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def admin_api_client(api_client, admin_user):
    api_client.force_authenticate(user=admin_user)
    return api_client


@pytest.fixture
def ae_api_client(ae_user):
    client = APIClient()
    client.force_authenticate(user=ae_user)
    return client


@pytest.fixture
def config(db):
    return CommissionConfig.objects.create(
        name="Standard AE plan",
        base_commission_rate=Decimal("0.10"),
        pilot_bonus_rate=Decimal("0.05"),
        multi_year_bonus_rate=Decimal("0.02"),
        upfront_bonus_rate=Decimal("0.01"),
        annual_cap_amount=Decimal("100000.00"),
        deceleration_rate=Decimal("0.5"),
    )


@pytest.fixture
def assignment(ae_user, config):
    return AECommissionAssignment.objects.create(
        ae=ae_user,
        config=config,
        effective_date=date(2025, 1, 1),
    )


@pytest.fixture
def contract(ae_user, admin_user):
    return Contract.objects.create(
        client_name="Acme Corp",
        ae=ae_user,
        contract_value=Decimal("1200000.00"),
        acv=Decimal("400000.00"),
        contract_type=Contract.ContractType.NEW,
        contract_length=1,
        payment_terms=Contract.PaymentTerms.ANNUAL,
        created_by=admin_user,
    )


@pytest.fixture
def make_invoice(contract):
    """Create an invoice without triggering the engine."""

    def _make(amount, invoice_date=date(2025, 3, 1), on_contract=None, **extra):
        return Invoice.objects.create(
            contract=on_contract or contract,
            amount=Decimal(str(amount)),
            invoice_date=invoice_date,
            **extra,
        )

    return _make


@pytest.fixture
def make_commission(make_invoice, ae_user, config):
    """Persist a commission directly in the given status."""

    def _make(status=Commission.Status.PENDING, base="1000.00", invoice=None, ae=None):
        invoice = invoice or make_invoice("10000.00")
        base = Decimal(base)
        return Commission.objects.create(
            invoice=invoice,
            ae=ae or ae_user,
            config=config,
            config_snapshot=config.snapshot(),
            base_commission=base,
            total_commission=base,
            status=status,
        )

    return _make
