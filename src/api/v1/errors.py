"""Map commission domain errors to HTTP responses."""
from __future__ import annotations

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import OperationalError
from django.db.models.deletion import ProtectedError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import set_rollback

from commissions.exceptions import (
    AssignmentOverlapError,
    CommissionLockedError,
    ConfigImmutableError,
    ConfigNotFoundError,
    ContractNotFoundError,
    DuplicateCommissionError,
    InvalidTransitionError,
    InvoiceAlreadySyncedError,
    RejectionReasonRequiredError,
)

logger = logging.getLogger("hubpay")

RETRY_AFTER_SECONDS = "5"

# Order matters: subclasses before their base classes.
ERROR_STATUS = (
    (ContractNotFoundError, status.HTTP_404_NOT_FOUND),
    (ConfigNotFoundError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (RejectionReasonRequiredError, status.HTTP_400_BAD_REQUEST),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (DuplicateCommissionError, status.HTTP_409_CONFLICT),
    (CommissionLockedError, status.HTTP_409_CONFLICT),
    (AssignmentOverlapError, status.HTTP_409_CONFLICT),
    (ConfigImmutableError, status.HTTP_409_CONFLICT),
    (InvoiceAlreadySyncedError, status.HTTP_409_CONFLICT),
    (ProtectedError, status.HTTP_409_CONFLICT),
)


def domain_error_response(exc: Exception) -> Response | None:
    """Return the response for a known domain error, or ``None``."""
    if isinstance(exc, OperationalError):
        set_rollback()
        logger.warning("Database unavailable: %s", exc)
        return Response(
            {"detail": "The database is busy, please retry."},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
            headers={"Retry-After": RETRY_AFTER_SECONDS},
        )

    if isinstance(exc, DjangoValidationError):
        return Response({"detail": exc.messages}, status=status.HTTP_400_BAD_REQUEST)

    for error_class, http_status in ERROR_STATUS:
        if isinstance(exc, error_class):
            if isinstance(exc, ProtectedError):
                detail = "This record is still referenced and cannot be deleted."
            else:
                detail = str(exc)
            body = {"detail": detail, "code": type(exc).__name__}
            if isinstance(exc, DuplicateCommissionError):
                body["commission_id"] = str(exc.commission.pk)
            if isinstance(exc, InvoiceAlreadySyncedError):
                body["invoice_id"] = str(exc.invoice.pk)
            return Response(body, status=http_status)
    return None


class DomainErrorMixin:
    """Turn domain errors raised anywhere in a view into precise status codes."""

    def handle_exception(self, exc):
        response = domain_error_response(exc)
        if response is not None:
            return response
        return super().handle_exception(exc)
