"""Business operations on commissions, configs and AE assignments.

Views, the admin, tasks and management commands call these functions; they
own the transactions, the row locks and the audit trail.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from commissions.engine import CommissionEngine
from commissions.exceptions import (
    AssignmentOverlapError,
    ConfigImmutableError,
    ConfigNotFoundError,
    DuplicateCommissionError,
    InvalidTransitionError,
    RejectionReasonRequiredError,
)
from commissions.models import AECommissionAssignment, Commission, CommissionConfig
from commissions.ote import resolve_policy
from commissions.repository import DjangoCommissionRepository
from commissions.resolver import ConfigResolver
from core.services import create_audit_log

logger = logging.getLogger(__name__)

CONFIG_COPY_FIELDS = ("name", "description") + CommissionConfig.RATE_FIELDS


def _actor_or_none(actor):
    return actor if getattr(actor, "pk", None) else None


def _commission_state(commission: Commission) -> dict:
    return {
        "status": commission.status,
        "base_commission": str(commission.base_commission),
        "total_commission": str(commission.total_commission),
        "ote_applied": commission.ote_applied,
    }


# ---------------------------------------------------------------------------
# Approval workflow
# ---------------------------------------------------------------------------


def _queue_approval_notification(commission: Commission) -> None:
    commission_id = str(commission.pk)

    def _dispatch() -> None:
        try:
            from commissions.tasks import send_commission_approved_notification

            send_commission_approved_notification.delay(commission_id)
        except Exception as exc:
            # The approval is committed; a lost email must not surface as an error.
            logger.warning("commission notification dispatch failed for %s: %s", commission_id, exc, exc_info=True)

    transaction.on_commit(_dispatch)


@transaction.atomic
def transition_commission(commission: Commission, target: str, actor, reason: str = "") -> Commission:
    """Move *commission* to *target* following ``Commission.TRANSITIONS``."""
    locked = Commission.objects.select_for_update().get(pk=commission.pk)
    current = locked.status

    if not Commission.can_transition(current, target):
        raise InvalidTransitionError(current, target)

    actor = _actor_or_none(actor)
    now = timezone.now()
    if target == Commission.Status.APPROVED:
        meta = {"approved_by": actor, "approved_at": now}
    elif target == Commission.Status.REJECTED:
        reason = (reason or "").strip()
        if not reason:
            raise RejectionReasonRequiredError(current)
        meta = {"rejection_reason": reason}
    else:
        meta = {"paid_by": actor, "paid_at": now}

    before = _commission_state(locked)
    DjangoCommissionRepository().update_commission_status(locked.pk, target, meta)
    locked.refresh_from_db()

    create_audit_log(
        actor=actor,
        action=f"COMMISSION_{str(target).upper()}",
        entity_type="Commission",
        entity_id=str(locked.pk),
        before=before,
        after={**_commission_state(locked), "reason": reason or None},
    )
    logger.info("Commission %s moved %s -> %s by %s", locked.pk, current, target, actor)

    if target == Commission.Status.APPROVED:
        _queue_approval_notification(locked)
    return locked


def approve_commission(commission: Commission, actor) -> Commission:
    return transition_commission(commission, Commission.Status.APPROVED, actor)


def reject_commission(commission: Commission, actor, reason: str) -> Commission:
    return transition_commission(commission, Commission.Status.REJECTED, actor, reason=reason)


def mark_commission_paid(commission: Commission, actor) -> Commission:
    return transition_commission(commission, Commission.Status.PAID, actor)


# ---------------------------------------------------------------------------
# Calculation entry points
# ---------------------------------------------------------------------------


def recalculate_commission(commission: Commission, actor=None, engine: CommissionEngine | None = None) -> Commission:
    """Recompute a pending commission; approved, paid and rejected ones raise ``CommissionLockedError``."""
    engine = engine or CommissionEngine()
    before = _commission_state(commission)
    commission = engine.recalculate_commission(commission)
    create_audit_log(
        actor=_actor_or_none(actor),
        action="COMMISSION_RECALCULATED",
        entity_type="Commission",
        entity_id=str(commission.pk),
        before=before,
        after=_commission_state(commission),
    )
    return commission


def backfill_missing_commissions(engine: CommissionEngine | None = None) -> dict:
    """Create commissions for every invoice that has none, oldest invoice first."""
    from contracts.models import Invoice

    engine = engine or CommissionEngine()
    created = skipped = 0
    invoices = (
        Invoice.objects.filter(commission__isnull=True)
        .select_related("contract")
        .order_by("invoice_date", "created_at")
    )
    for invoice in invoices.iterator():
        try:
            engine.calculate_commission(invoice)
            created += 1
        except ConfigNotFoundError as exc:
            skipped += 1
            logger.warning("Backfill skipped invoice %s: %s", invoice.pk, exc)
        except DuplicateCommissionError:
            continue

    if created or skipped:
        logger.info("Commission backfill: %d created, %d skipped", created, skipped)
    return {"created": created, "skipped": skipped}


def ote_progress(ae, year: int | None = None) -> dict:
    """Realized base commission for *year* against the AE's applicable cap."""
    today = timezone.localdate()
    year = year or today.year
    repository = DjangoCommissionRepository()
    total = repository.sum_approved_base_commission(ae.pk, year)

    probe = today if year == today.year else date(year, 12, 31)
    try:
        config = ConfigResolver(repository).resolve(ae.pk, probe)
    except ConfigNotFoundError:
        config = None

    cap = config.annual_cap_amount if config is not None and config.is_capped else None
    percentage = None
    if cap:
        percentage = (total / cap * 100).quantize(Decimal("0.01"))

    return {
        "ae_id": str(ae.pk),
        "year": year,
        "policy": resolve_policy(),
        "total_base_commission": total,
        "annual_cap_amount": cap,
        "percentage": percentage,
        "ote_reached": bool(cap and total >= cap),
    }


# ---------------------------------------------------------------------------
# Config administration
# ---------------------------------------------------------------------------


@transaction.atomic
def create_config(*, actor=None, **fields) -> CommissionConfig:
    config = CommissionConfig(created_by=_actor_or_none(actor), **fields)
    config.full_clean()
    config.save()
    create_audit_log(
        actor=_actor_or_none(actor),
        action="COMMISSION_CONFIG_CREATED",
        entity_type="CommissionConfig",
        entity_id=str(config.pk),
        after=config.snapshot(),
    )
    logger.info("Commission config %s created", config)
    return config


@transaction.atomic
def assign_config(ae, config: CommissionConfig, effective_date: date, actor=None) -> AECommissionAssignment:
    """Put *ae* on *config* from *effective_date*, closing the assignment open on that date."""
    if config.status != CommissionConfig.Status.ACTIVE:
        raise ValidationError(f"Config {config} is inactive and cannot be assigned.")

    assignments = AECommissionAssignment.objects.select_for_update().filter(ae=ae)
    if assignments.filter(effective_date__gte=effective_date).exists():
        raise AssignmentOverlapError(
            f"AE {ae} already has an assignment starting on or after {effective_date}."
        )

    superseded = assignments.filter(effective_date__lt=effective_date).filter(
        Q(end_date__isnull=True) | Q(end_date__gt=effective_date)
    )
    for previous in superseded:
        previous.end_date = effective_date
        previous.save(update_fields=["end_date", "updated_at"])

    assignment = AECommissionAssignment(
        ae=ae,
        config=config,
        effective_date=effective_date,
        created_by=_actor_or_none(actor),
    )
    assignment.full_clean()
    assignment.save()

    create_audit_log(
        actor=_actor_or_none(actor),
        action="COMMISSION_CONFIG_ASSIGNED",
        entity_type="AECommissionAssignment",
        entity_id=str(assignment.pk),
        after={
            "ae_id": str(ae.pk),
            "config_id": str(config.pk),
            "effective_date": effective_date.isoformat(),
        },
    )
    logger.info("AE %s assigned to %s from %s", ae.pk, config, effective_date)
    return assignment


@transaction.atomic
def revise_config(
    config: CommissionConfig,
    changes: dict,
    actor=None,
    effective_date: date | None = None,
) -> CommissionConfig:
    """Publish a new version of *config* and move its AEs onto it from *effective_date*.

    The old row is kept (commissions reference it) but marked inactive.
    """
    unknown = set(changes) - set(CONFIG_COPY_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown config fields: {', '.join(sorted(unknown))}.")

    effective_date = effective_date or timezone.localdate()
    current = CommissionConfig.objects.select_for_update().get(pk=config.pk)
    if current.status != CommissionConfig.Status.ACTIVE:
        raise ConfigImmutableError(f"Config {current} has been superseded; revise the latest version.")

    data = {field: getattr(current, field) for field in CONFIG_COPY_FIELDS}
    data.update(changes)
    revision = CommissionConfig(
        **data,
        version=current.version + 1,
        previous_version=current,
        created_by=_actor_or_none(actor),
    )
    revision.full_clean()
    revision.save()

    # Assignments that have not started yet simply move to the new version.
    AECommissionAssignment.objects.filter(config=current, effective_date__gte=effective_date).update(
        config=revision, updated_at=timezone.now()
    )
    open_on_date = (
        AECommissionAssignment.objects.filter(config=current, effective_date__lt=effective_date)
        .filter(Q(end_date__isnull=True) | Q(end_date__gt=effective_date))
        .select_related("ae")
    )
    for assignment in list(open_on_date):
        try:
            assign_config(assignment.ae, revision, effective_date, actor)
        except AssignmentOverlapError as exc:
            logger.warning("AE %s kept on %s: %s", assignment.ae_id, current, exc)

    current.status = CommissionConfig.Status.INACTIVE
    current.save(update_fields=["status", "updated_at"])

    create_audit_log(
        actor=_actor_or_none(actor),
        action="COMMISSION_CONFIG_REVISED",
        entity_type="CommissionConfig",
        entity_id=str(revision.pk),
        before=current.snapshot(),
        after=revision.snapshot(),
    )
    logger.info("Commission config %s revised to v%s effective %s", current.name, revision.version, effective_date)
    return revision
