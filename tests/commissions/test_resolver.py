"""Tests for commission config resolution."""
import logging
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from commissions.exceptions import ConfigNotFoundError, IntegrityWarning
from commissions.models import AECommissionAssignment, CommissionConfig
from commissions.repository import DjangoCommissionRepository
from commissions.resolver import ConfigResolver, build_default_config


@pytest.fixture
def resolver():
    return ConfigResolver(DjangoCommissionRepository())


@pytest.fixture
def bounded_assignment(ae_user, config):
    return AECommissionAssignment.objects.create(
        ae=ae_user,
        config=config,
        effective_date=date(2025, 1, 1),
        end_date=date(2025, 6, 1),
    )


@pytest.mark.django_db
class TestConfigResolver:
    def test_resolves_inside_interval(self, resolver, bounded_assignment, ae_user, config):
        assert resolver.resolve(ae_user.pk, date(2025, 3, 1)) == config

    def test_start_date_is_inclusive(self, resolver, bounded_assignment, ae_user, config):
        assert resolver.resolve(ae_user.pk, date(2025, 1, 1)) == config

    def test_end_date_is_exclusive(self, resolver, bounded_assignment, ae_user):
        resolved = resolver.resolve(ae_user.pk, date(2025, 6, 1))
        assert resolved.is_system_default

    def test_after_interval_falls_back_to_logged_default(self, resolver, bounded_assignment, ae_user, caplog):
        with caplog.at_level(logging.WARNING, logger="commissions"):
            resolved = resolver.resolve(ae_user.pk, date(2025, 7, 1))

        assert resolved.is_system_default
        assert resolved.pk is not None  # unsaved, but carries a UUID
        assert not CommissionConfig.objects.filter(pk=resolved.pk).exists()
        assert resolved.base_commission_rate == Decimal("0.10")
        assert not resolved.is_capped
        assert "falling back" in caplog.text

    def test_missing_default_raises(self, resolver, ae_user, settings):
        settings.COMMISSION_DEFAULT_CONFIG = None
        with pytest.raises(ConfigNotFoundError) as excinfo:
            resolver.resolve(ae_user.pk, date(2025, 3, 1))
        assert excinfo.value.ae_id == ae_user.pk

    def test_other_ae_assignment_is_ignored(self, resolver, bounded_assignment, other_ae):
        assert resolver.resolve(other_ae.pk, date(2025, 3, 1)).is_system_default

    def test_overlap_picks_latest_effective_date_and_warns(self, resolver, ae_user, config, caplog):
        newer = CommissionConfig.objects.create(name="Newer", base_commission_rate=Decimal("0.12"))
        AECommissionAssignment.objects.create(ae=ae_user, config=config, effective_date=date(2025, 1, 1))
        AECommissionAssignment.objects.create(ae=ae_user, config=newer, effective_date=date(2025, 2, 1))

        with pytest.warns(IntegrityWarning):
            resolved = resolver.resolve(ae_user.pk, date(2025, 3, 1))

        assert resolved == newer
        assert "overlapping" in caplog.text


class TestResolverWithFakeRepository:
    def _assignment(self, config, start, end=None):
        return SimpleNamespace(
            config=config,
            effective_date=start,
            end_date=end,
            covers=lambda d: start <= d and (end is None or d < end),
        )

    def test_uses_repository_assignments(self):
        plan = SimpleNamespace(name="plan")
        repo = SimpleNamespace(get_assignments=lambda ae_id, on_date: [self._assignment(plan, date(2024, 1, 1))])

        assert ConfigResolver(repo).resolve("ae-1", date(2024, 5, 5)) is plan

    def test_default_overrides(self, db):
        repo = SimpleNamespace(get_assignments=lambda ae_id, on_date: [])
        resolver = ConfigResolver(repo, default_config={"name": "Fallback", "base_commission_rate": "0.08"})

        resolved = resolver.resolve("ae-1", date(2024, 5, 5))

        assert resolved.name == "Fallback"
        assert resolved.base_commission_rate == Decimal("0.08")


def test_build_default_config_snapshot_has_no_config_id(db):
    default = build_default_config({"name": "System default", "base_commission_rate": "0.10"})
    snapshot = default.snapshot()
    assert snapshot["config_id"] is None
    assert snapshot["base_commission_rate"] == "0.10"
