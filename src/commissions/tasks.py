"""Celery tasks for the commissions app."""
from __future__ import annotations

import logging

from celery import shared_task
from django.db import OperationalError

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=30)
def send_commission_approved_notification(self, commission_id: str) -> bool:
    """Notify payouts that a commission was approved."""
    from commissions.models import Commission
    from commissions.notifications import notify_approval

    try:
        commission = (
            Commission.objects.select_related("ae", "invoice__contract")
            .filter(pk=commission_id)
            .first()
        )
    except OperationalError as exc:
        logger.warning("Commission %s unavailable, retrying: %s", commission_id, exc)
        raise self.retry(exc=exc)

    if commission is None:
        logger.warning("Approved commission %s no longer exists", commission_id)
        return False

    ae = commission.ae
    return notify_approval(
        commission.pk,
        {"id": str(ae.pk), "name": ae.get_full_name(), "email": ae.email},
        commission.total_commission,
        commission.invoice.contract.client_name,
    )


@shared_task(name="commissions.tasks.backfill_missing_commissions_task")
def backfill_missing_commissions_task() -> dict:
    """Create commissions for invoices that have none. Runs hourly via Celery Beat."""
    from commissions.services import backfill_missing_commissions

    return backfill_missing_commissions()
