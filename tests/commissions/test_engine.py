"""Tests for CommissionEngine: calculation, idempotence, caps and backfill."""
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest
from django.db import IntegrityError, transaction

from commissions import services
from commissions.engine import CommissionEngine
from commissions.exceptions import CommissionLockedError, ConfigNotFoundError, DuplicateCommissionError
from commissions.models import AECommissionAssignment, Commission, CommissionConfig
from commissions.repository import DjangoCommissionRepository
from contracts.models import Contract, Invoice


@pytest.fixture
def engine():
    return CommissionEngine()


@pytest.mark.django_db
class TestCalculateCommission:
    def test_basic_commission(self, engine, assignment, make_invoice, config):
        commission = engine.calculate_commission(make_invoice("100000"))

        assert commission.status == Commission.Status.PENDING
        assert commission.base_commission == Decimal("10000.00")
        assert commission.total_commission == Decimal("10000.00")
        assert commission.config == config
        assert commission.config_snapshot["config_id"] == str(config.pk)
        assert commission.ote_applied is False

    def test_total_is_sum_of_components(self, engine, assignment, make_invoice, contract):
        contract.is_pilot = True
        contract.contract_length = 3
        contract.payment_terms = Contract.PaymentTerms.UPFRONT
        contract.save()

        commission = engine.calculate_commission(make_invoice("100000"))

        assert commission.pilot_bonus == Decimal("5000.00")
        assert commission.multi_year_bonus == Decimal("2000.00")
        assert commission.upfront_bonus == Decimal("1000.00")
        assert commission.total_commission == commission.components_total == Decimal("18000.00")

    def test_cap_straddle_with_approved_history(self, engine, assignment, make_invoice, make_commission):
        make_commission(status=Commission.Status.APPROVED, base="95000.00")

        commission = engine.calculate_commission(make_invoice("1000000", date(2025, 4, 1)))

        assert commission.base_commission == Decimal("52500.00")
        assert commission.ote_applied is True

    def test_bonuses_are_not_capped(self, engine, assignment, make_invoice, make_commission, contract):
        make_commission(status=Commission.Status.APPROVED, base="150000.00")
        contract.is_pilot = True
        contract.save()

        commission = engine.calculate_commission(make_invoice("100000", date(2025, 4, 1)))

        assert commission.base_commission == Decimal("5000.00")
        assert commission.pilot_bonus == Decimal("5000.00")
        assert commission.total_commission == Decimal("10000.00")

    def test_non_commissionable_revenue_earns_zero(self, engine, assignment, make_invoice):
        invoice = make_invoice("100000", revenue_type=Invoice.RevenueType.SERVICE)

        commission = engine.calculate_commission(invoice)

        assert commission.total_commission == Decimal("0.00")
        assert commission.base_commission == Decimal("0.00")


@pytest.mark.django_db
class TestIdempotence:
    def test_second_calculation_raises_duplicate(self, engine, assignment, make_invoice):
        invoice = make_invoice("100000")
        first = engine.calculate_commission(invoice)

        with pytest.raises(DuplicateCommissionError) as excinfo:
            engine.calculate_commission(invoice)

        assert excinfo.value.commission.pk == first.pk
        assert Commission.objects.filter(invoice=invoice).count() == 1

    def test_get_or_calculate_returns_existing(self, engine, assignment, make_invoice):
        invoice = make_invoice("100000")
        first = engine.get_or_calculate(invoice)
        assert engine.get_or_calculate(invoice).pk == first.pk

    def test_unique_violation_becomes_duplicate(self, assignment, make_invoice, make_commission):
        invoice = make_invoice("100000")
        existing = make_commission(invoice=invoice)

        class RacingRepository(DjangoCommissionRepository):
            """Misses the existing row on the first lookup, as a concurrent writer would."""

            lookups = 0

            def get_commission_by_invoice(self, invoice_id):
                self.lookups += 1
                if self.lookups == 1:
                    return None
                return super().get_commission_by_invoice(invoice_id)

            def create_commission(self, **record):
                raise IntegrityError("duplicate key value violates unique constraint")

        with pytest.raises(DuplicateCommissionError) as excinfo:
            CommissionEngine(repository=RacingRepository()).calculate_commission(invoice)

        assert excinfo.value.commission.pk == existing.pk


@pytest.mark.django_db
class TestConfigFallback:
    def test_default_config_is_not_persisted_as_reference(self, engine, make_invoice):
        commission = engine.calculate_commission(make_invoice("10000"))

        assert commission.config is None
        assert commission.config_snapshot["config_id"] is None
        assert commission.config_snapshot["name"] == "System default"
        assert commission.base_commission == Decimal("1000.00")

    def test_missing_config_creates_nothing(self, engine, make_invoice, settings):
        settings.COMMISSION_DEFAULT_CONFIG = None
        invoice = make_invoice("10000")

        with pytest.raises(ConfigNotFoundError):
            engine.calculate_commission(invoice)

        assert not Commission.objects.filter(invoice=invoice).exists()
        assert Invoice.objects.filter(pk=invoice.pk).exists()


@pytest.mark.django_db
class TestOrderIndependence:
    @pytest.fixture
    def small_cap(self, db):
        return CommissionConfig.objects.create(
            name="Small cap",
            base_commission_rate=Decimal("0.10"),
            annual_cap_amount=Decimal("60000.00"),
            deceleration_rate=Decimal("0.5"),
        )

    def _contract_for(self, ae, cfg):
        AECommissionAssignment.objects.create(ae=ae, config=cfg, effective_date=date(2025, 1, 1))
        return Contract.objects.create(
            client_name=f"Client of {ae.email}",
            ae=ae,
            contract_value=Decimal("2000000"),
            acv=Decimal("1000000"),
        )

    def test_sequence_total_does_not_depend_on_order(self, engine, small_cap, ae_user, other_ae, make_invoice):
        first_contract = self._contract_for(ae_user, small_cap)
        second_contract = self._contract_for(other_ae, small_cap)

        totals = []
        for contract, amounts in ((first_contract, ("300000", "500000")), (second_contract, ("500000", "300000"))):
            total = Decimal("0")
            for day, amount in enumerate(amounts, start=1):
                invoice = make_invoice(amount, date(2025, 5, day), on_contract=contract)
                total += engine.calculate_commission(invoice).base_commission
            totals.append(total)

        assert totals == [Decimal("70000.00"), Decimal("70000.00")]

    @pytest.mark.parametrize("amounts", [("600000", "800000"), ("800000", "600000")])
    def test_same_ae_straddling_cap_in_either_order(self, engine, assignment, make_invoice, amounts):
        bases = [
            engine.calculate_commission(make_invoice(amount, date(2025, 5, day))).base_commission
            for day, amount in enumerate(amounts, start=1)
        ]

        # 140,000 proposed against a 100,000 cap: 100,000 + 40,000 x 0.5
        assert sum(bases) == Decimal("120000.00")
        assert Commission.objects.filter(ote_applied=True).count() == 1


class RecordingRepository(DjangoCommissionRepository):
    """Records the running-total protocol calls and whether a transaction was open."""

    def __init__(self):
        self.calls = []

    def _record(self, name, *args):
        self.calls.append((name, args, transaction.get_connection().in_atomic_block))

    def lock_ae_year(self, ae_id, year):
        self._record("lock_ae_year", ae_id, year)
        return super().lock_ae_year(ae_id, year)

    def sum_base_commission(self, ae_id, year, statuses):
        self._record("sum_base_commission", ae_id, year)
        return super().sum_base_commission(ae_id, year, statuses)

    def create_commission(self, **record):
        self._record("create_commission", record["ae_id"])
        return super().create_commission(**record)


@pytest.mark.django_db
class TestRunningTotalSerialization:
    def test_lock_is_taken_before_running_total_is_read(self, assignment, make_invoice, ae_user):
        repository = RecordingRepository()

        CommissionEngine(repository=repository).calculate_commission(make_invoice("100000", date(2025, 5, 1)))

        assert [name for name, _, _ in repository.calls] == [
            "lock_ae_year",
            "sum_base_commission",
            "create_commission",
        ]
        assert repository.calls[0][1] == (ae_user.pk, 2025)
        assert repository.calls[1][1] == (ae_user.pk, 2025)
        assert all(in_atomic for _, _, in_atomic in repository.calls)

    def test_recalculation_takes_the_same_lock(self, assignment, make_invoice, ae_user):
        commission = CommissionEngine().calculate_commission(make_invoice("100000", date(2025, 5, 1)))
        repository = RecordingRepository()

        CommissionEngine(repository=repository).recalculate_commission(commission)

        assert [name for name, _, _ in repository.calls] == ["lock_ae_year", "sum_base_commission"]
        assert repository.calls[0][1] == (ae_user.pk, 2025)

    def test_postgres_lock_uses_stable_key(self, monkeypatch):
        from commissions import repository as repository_module

        executed = []

        class FakeCursor:
            def __enter__(self):
                return self

            def __exit__(self, *exc):
                return False

            def execute(self, sql, params):
                executed.append((sql, params))

        fake_connection = SimpleNamespace(vendor="postgresql", cursor=FakeCursor)
        monkeypatch.setattr(repository_module, "connection", fake_connection)

        DjangoCommissionRepository().lock_ae_year("ae-1", 2025)

        assert executed == [
            ("SELECT pg_advisory_xact_lock(%s)", [repository_module.make_lock_key("ae-1", 2025)]),
        ]
        assert repository_module.make_lock_key("ae-1", 2025) != repository_module.make_lock_key("ae-1", 2026)


@pytest.mark.django_db
class TestRecalculation:
    def test_recalculating_does_not_count_itself(self, engine, assignment, make_invoice):
        commission = engine.calculate_commission(make_invoice("900000"))
        assert commission.base_commission == Decimal("90000.00")

        recalculated = engine.recalculate_commission(commission)

        assert recalculated.base_commission == Decimal("90000.00")
        assert recalculated.ote_applied is False

    def test_recalculation_picks_up_new_amount(self, engine, assignment, make_invoice):
        invoice = make_invoice("100000")
        commission = engine.calculate_commission(invoice)
        Invoice.objects.filter(pk=invoice.pk).update(amount=Decimal("200000"))

        recalculated = services.recalculate_commission(commission)

        assert recalculated.base_commission == Decimal("20000.00")

    @pytest.mark.parametrize("status", [Commission.Status.APPROVED, Commission.Status.PAID, Commission.Status.REJECTED])
    def test_only_pending_can_be_recalculated(self, engine, make_commission, status):
        commission = make_commission(status=status)
        with pytest.raises(CommissionLockedError):
            engine.recalculate_commission(commission)


@pytest.mark.django_db
class TestBackfill:
    def test_creates_missing_commissions(self, assignment, make_invoice):
        make_invoice("100000", date(2025, 2, 1))
        make_invoice("50000", date(2025, 3, 1))

        result = services.backfill_missing_commissions()

        assert result == {"created": 2, "skipped": 0}
        assert Commission.objects.count() == 2

    def test_existing_commissions_are_left_alone(self, assignment, make_invoice, make_commission):
        make_commission()
        make_invoice("50000")

        assert services.backfill_missing_commissions() == {"created": 1, "skipped": 0}

    def test_unresolvable_invoices_are_skipped(self, make_invoice, settings):
        settings.COMMISSION_DEFAULT_CONFIG = None
        make_invoice("100000")

        assert services.backfill_missing_commissions() == {"created": 0, "skipped": 1}
        assert not Commission.objects.exists()
