"""Payout notifications sent when a commission is approved."""
from __future__ import annotations

import logging

from django.conf import settings

from core.email import send_branded_email

logger = logging.getLogger(__name__)


def notify_approval(commission_id, ae_info: dict, amount, client_name: str) -> bool:
    """Email the payout inbox (and the AE) about an approved commission.

    Returns ``True`` when the message was handed to the mail backend. Delivery
    failures are logged and reported as ``False``; they never propagate.
    """
    recipients = list(getattr(settings, "COMMISSION_PAYOUT_NOTIFY_EMAILS", []))
    ae_email = ae_info.get("email")
    if ae_email and ae_email not in recipients:
        recipients.append(ae_email)
    if not recipients:
        logger.info("No recipients for approval notification of commission %s", commission_id)
        return False

    context = {
        "commission_id": str(commission_id),
        "ae_name": ae_info.get("name") or ae_email or "",
        "amount": amount,
        "currency": getattr(settings, "CURRENCY", "USD"),
        "client_name": client_name,
        "frontend_url": getattr(settings, "FRONTEND_URL", ""),
    }
    try:
        sent = send_branded_email(
            subject=f"Commission approved: {client_name}",
            template_name="emails/commission_approved",
            context=context,
            recipient_list=recipients,
        )
    except Exception:
        logger.exception("Approval notification for commission %s failed", commission_id)
        return False

    logger.info("Approval notification for commission %s sent to %d recipient(s)", commission_id, len(recipients))
    return bool(sent)
