"""Contract and invoice mutations.

Once any commission behind a contract or invoice is approved or paid, the
figures it was computed from are frozen: these functions raise
``CommissionLockedError`` instead of changing them. Pending commissions are
recomputed after an edit.
"""
from __future__ import annotations

import logging

from django.db import transaction

from commissions.engine import CommissionEngine
from commissions.exceptions import CommissionLockedError
from commissions.models import Commission
from contracts.models import Contract, Invoice
from core.services import create_audit_log

logger = logging.getLogger("hubpay")

CONTRACT_FIELDS = (
    "client_name", "ae", "ae_id", "contract_value", "acv", "contract_type",
    "contract_length", "payment_terms", "is_pilot", "notes",
)
INVOICE_FIELDS = ("amount", "invoice_date", "revenue_type", "notes")


def _actor_or_none(actor):
    return actor if getattr(actor, "pk", None) else None


def _locked_commissions(**filters):
    return Commission.objects.filter(status__in=Commission.LOCKED_STATUSES, **filters)


def _apply_changes(instance, changes: dict, allowed: tuple[str, ...]) -> dict:
    unknown = set(changes) - set(allowed)
    if unknown:
        raise ValueError(f"Fields not editable: {', '.join(sorted(unknown))}")
    before = {}
    for field, value in changes.items():
        before[field] = str(getattr(instance, field))
        setattr(instance, field, value)
    return before


def _recalculate_pending(commissions, engine: CommissionEngine | None) -> None:
    engine = engine or CommissionEngine()
    for commission in commissions.filter(status=Commission.Status.PENDING):
        engine.recalculate_commission(commission)


@transaction.atomic
def create_contract(*, actor=None, **fields) -> Contract:
    contract = Contract(created_by=_actor_or_none(actor), **fields)
    contract.full_clean()
    contract.save()
    create_audit_log(
        actor=_actor_or_none(actor),
        action="CONTRACT_CREATED",
        entity_type="Contract",
        entity_id=str(contract.pk),
        after={"client_name": contract.client_name, "contract_value": str(contract.contract_value)},
    )
    return contract


@transaction.atomic
def update_contract(contract: Contract, changes: dict, actor=None, engine: CommissionEngine | None = None) -> Contract:
    contract = Contract.objects.select_for_update().get(pk=contract.pk)
    if _locked_commissions(invoice__contract=contract).exists():
        raise CommissionLockedError(
            f"Contract {contract.pk} has approved or paid commissions and can no longer be edited."
        )

    before = _apply_changes(contract, changes, CONTRACT_FIELDS)
    contract.full_clean()
    contract.save()
    _recalculate_pending(Commission.objects.filter(invoice__contract=contract), engine)

    create_audit_log(
        actor=_actor_or_none(actor),
        action="CONTRACT_UPDATED",
        entity_type="Contract",
        entity_id=str(contract.pk),
        before=before,
        after={field: str(getattr(contract, field)) for field in changes},
    )
    return contract


def create_invoice(contract: Contract, *, actor=None, engine: CommissionEngine | None = None, **fields) -> Invoice:
    """Persist an invoice, then compute its commission.

    The invoice is committed on its own: if no config applies
    (``ConfigNotFoundError``) the error propagates but the invoice stays,
    and the backfill picks it up once an assignment exists.
    """
    with transaction.atomic():
        invoice = Invoice(contract=contract, created_by=_actor_or_none(actor), **fields)
        invoice.full_clean()
        invoice.save()
        create_audit_log(
            actor=_actor_or_none(actor),
            action="INVOICE_CREATED",
            entity_type="Invoice",
            entity_id=str(invoice.pk),
            after={"contract_id": str(contract.pk), "amount": str(invoice.amount)},
        )

    engine = engine or CommissionEngine()
    engine.get_or_calculate(invoice)
    return invoice


@transaction.atomic
def update_invoice(invoice: Invoice, changes: dict, actor=None, engine: CommissionEngine | None = None) -> Invoice:
    invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)
    if _locked_commissions(invoice=invoice).exists():
        raise CommissionLockedError(
            f"Invoice {invoice.pk} has an approved or paid commission and can no longer be edited."
        )

    before = _apply_changes(invoice, changes, INVOICE_FIELDS)
    invoice.full_clean()
    invoice.save()
    _recalculate_pending(Commission.objects.filter(invoice=invoice), engine)

    create_audit_log(
        actor=_actor_or_none(actor),
        action="INVOICE_UPDATED",
        entity_type="Invoice",
        entity_id=str(invoice.pk),
        before=before,
        after={field: str(getattr(invoice, field)) for field in changes},
    )
    return invoice


@transaction.atomic
def delete_invoice(invoice: Invoice, actor=None) -> None:
    """Delete an invoice together with its pending or rejected commission."""
    invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)
    if _locked_commissions(invoice=invoice).exists():
        raise CommissionLockedError(
            f"Invoice {invoice.pk} has an approved or paid commission and cannot be deleted."
        )

    invoice_id = str(invoice.pk)
    Commission.objects.filter(invoice=invoice).delete()
    invoice.delete()
    create_audit_log(
        actor=_actor_or_none(actor),
        action="INVOICE_DELETED",
        entity_type="Invoice",
        entity_id=invoice_id,
    )
    logger.info("Invoice %s deleted", invoice_id)
