"""Persistence accessor used by the commission engine.

The engine, resolver and OTE tracker only talk to a ``CommissionRepository``
so unit tests can hand them an in-memory fake instead of the ORM.
"""
from __future__ import annotations

import hashlib
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Protocol

from django.db import connection
from django.db.models import Q, Sum
from django.utils import timezone

from commissions.models import AECommissionAssignment, Commission, CommissionConfig
from commissions.money import to_currency
from contracts.models import Contract

logger = logging.getLogger(__name__)


class CommissionRepository(Protocol):
    def get_assignments(self, ae_id, on_date: date) -> list[AECommissionAssignment]: ...

    def get_active_assignment(self, ae_id, on_date: date) -> AECommissionAssignment | None: ...

    def get_config(self, config_id) -> CommissionConfig | None: ...

    def get_contract(self, contract_id) -> Contract | None: ...

    def get_commission_by_invoice(self, invoice_id) -> Commission | None: ...

    def create_commission(self, **record: Any) -> Commission: ...

    def update_commission_status(self, commission_id, status: str, meta: dict | None = None) -> int: ...

    def sum_base_commission(self, ae_id, year: int, statuses: Iterable[str]) -> Decimal: ...

    def sum_approved_base_commission(self, ae_id, year: int) -> Decimal: ...

    def lock_ae_year(self, ae_id, year: int) -> None: ...


def make_lock_key(ae_id, year: int) -> int:
    """Stable 31-bit advisory lock key for one AE and calendar year."""
    raw = f"{ae_id}:{year}"
    hex_digest = hashlib.md5(raw.encode()).hexdigest()[:8]
    return int(hex_digest, 16) % (2**31)


class DjangoCommissionRepository:
    """ORM-backed implementation of :class:`CommissionRepository`."""

    def _covering(self, ae_id, on_date: date):
        return (
            AECommissionAssignment.objects.select_related("config")
            .filter(ae_id=ae_id, effective_date__lte=on_date)
            .filter(Q(end_date__isnull=True) | Q(end_date__gt=on_date))
            .order_by("-effective_date", "-created_at")
        )

    def get_assignments(self, ae_id, on_date: date) -> list[AECommissionAssignment]:
        return list(self._covering(ae_id, on_date))

    def get_active_assignment(self, ae_id, on_date: date) -> AECommissionAssignment | None:
        return self._covering(ae_id, on_date).first()

    def get_config(self, config_id) -> CommissionConfig | None:
        return CommissionConfig.objects.filter(pk=config_id).first()

    def get_contract(self, contract_id) -> Contract | None:
        return Contract.objects.select_related("ae").filter(pk=contract_id).first()

    def get_commission_by_invoice(self, invoice_id) -> Commission | None:
        return Commission.objects.filter(invoice_id=invoice_id).first()

    def create_commission(self, **record: Any) -> Commission:
        return Commission.objects.create(**record)

    def update_commission_status(self, commission_id, status: str, meta: dict | None = None) -> int:
        return Commission.objects.filter(pk=commission_id).update(
            status=status,
            updated_at=timezone.now(),
            **(meta or {}),
        )

    def sum_base_commission(self, ae_id, year: int, statuses: Iterable[str]) -> Decimal:
        total = Commission.objects.filter(
            ae_id=ae_id,
            invoice__invoice_date__year=year,
            status__in=list(statuses),
        ).aggregate(total=Sum("base_commission"))["total"]
        return to_currency(total or 0)

    def sum_approved_base_commission(self, ae_id, year: int) -> Decimal:
        return self.sum_base_commission(ae_id, year, Commission.REALIZED_STATUSES)

    def lock_ae_year(self, ae_id, year: int) -> None:
        """Serialize commission writes for one AE and year until the transaction ends.

        Must be called inside ``transaction.atomic``. On engines other than
        PostgreSQL (sqlite in local tests) the database write lock is relied on.
        """
        if connection.vendor != "postgresql":
            return
        lock_key = make_lock_key(ae_id, year)
        with connection.cursor() as cursor:
            cursor.execute("SELECT pg_advisory_xact_lock(%s)", [lock_key])
        logger.debug("Advisory lock %s held for ae=%s year=%s", lock_key, ae_id, year)
