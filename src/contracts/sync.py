"""Import paid invoices from the external billing system."""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from django.utils.dateparse import parse_date

from commissions.engine import CommissionEngine
from commissions.exceptions import ContractNotFoundError, InvoiceAlreadySyncedError
from contracts.models import Contract, Invoice
from contracts.services import create_invoice

logger = logging.getLogger("hubpay")


def _as_date(value) -> date | None:
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    parsed = parse_date(str(value)[:10])
    if parsed is None:
        raise ValueError(f"Invalid date: {value!r}")
    return parsed


def match_contract(customer_name: str) -> Contract:
    contract = (
        Contract.objects.filter(client_name__iexact=customer_name.strip())
        .order_by("-created_at")
        .first()
    )
    if contract is None:
        raise ContractNotFoundError(f"No contract found for customer: {customer_name}")
    return contract


def sync_external_invoice(
    payload: dict,
    contract: Contract | None = None,
    actor=None,
    engine: CommissionEngine | None = None,
) -> Invoice:
    """Create a local invoice for a billing-system invoice and compute its commission.

    *payload* carries ``id``, ``customer_name``, ``invoice_number``, ``amount``,
    ``invoice_date`` and optionally ``paid_date`` and ``description``.
    """
    external_id = str(payload["id"])
    existing = Invoice.objects.filter(external_invoice_id=external_id).first()
    if existing is not None:
        raise InvoiceAlreadySyncedError(external_id, existing)

    if contract is None:
        contract = match_contract(payload["customer_name"])

    details = f"Synced from billing - {payload.get('invoice_number', '')}"
    if payload.get("description"):
        details = f"{details} - {payload['description']}"

    invoice = create_invoice(
        contract,
        actor=actor,
        engine=engine,
        amount=Decimal(str(payload["amount"])),
        invoice_date=_as_date(payload.get("paid_date")) or _as_date(payload["invoice_date"]),
        revenue_type=Invoice.RevenueType.RECURRING,
        external_invoice_id=external_id,
        sync_details=details,
    )
    logger.info("External invoice %s synced as %s on contract %s", external_id, invoice.pk, contract.pk)
    return invoice
