"""Typed errors raised by the commission engine and its services.

The API layer maps each class to a precise HTTP status, so callers never
have to parse messages.
"""
from __future__ import annotations


class CommissionError(Exception):
    """Base class for every commission domain error."""


class ConfigNotFoundError(CommissionError):
    """No assignment covers the date and no system default is configured."""

    def __init__(self, ae_id, on_date):
        self.ae_id = ae_id
        self.on_date = on_date
        super().__init__(
            f"No commission configuration for AE {ae_id} on {on_date}."
        )


class ContractNotFoundError(CommissionError):
    """The contract an invoice points to (or a sync payload names) is missing."""


class DuplicateCommissionError(CommissionError):
    """A commission already exists for the invoice; ``commission`` holds it."""

    def __init__(self, commission):
        self.commission = commission
        super().__init__(
            f"Invoice {commission.invoice_id} already has commission {commission.pk}."
        )


class InvalidTransitionError(CommissionError):
    """The requested status change is not in the transition table."""

    def __init__(self, current, target, message: str | None = None):
        self.current = current
        self.target = target
        super().__init__(message or f"Cannot move a commission from '{current}' to '{target}'.")


class RejectionReasonRequiredError(InvalidTransitionError):
    def __init__(self, current):
        super().__init__(current, "rejected", "A rejection reason is required.")


class CommissionLockedError(CommissionError):
    """The commission (or the contract/invoice behind it) is approved or paid."""


class AssignmentOverlapError(CommissionError):
    """A new assignment would overlap an existing one for the same AE."""


class ConfigImmutableError(CommissionError):
    """Rates of a config already referenced by commissions cannot change."""


class InvoiceAlreadySyncedError(CommissionError):
    """The external invoice id is already mapped to a local invoice."""

    def __init__(self, external_invoice_id, invoice):
        self.external_invoice_id = external_invoice_id
        self.invoice = invoice
        super().__init__(
            f"External invoice {external_invoice_id} is already synced as invoice {invoice.pk}."
        )


class IntegrityWarning(UserWarning):
    """Overlapping assignments were found; the latest one was used."""
