"""Tests for approval notifications and the commission Celery tasks."""
import uuid
from datetime import date
from decimal import Decimal

import pytest
from django.core import mail

from commissions import notifications
from commissions.models import Commission
from commissions.notifications import notify_approval
from commissions.tasks import backfill_missing_commissions_task, send_commission_approved_notification

AE_INFO = {"id": "ae-1", "name": "Alice Seller", "email": "ae@test.com"}


class TestNotifyApproval:
    def test_sends_to_payouts_and_ae(self, db):
        assert notify_approval("c-1", AE_INFO, Decimal("2500.00"), "Acme Corp") is True

        msg = mail.outbox[0]
        assert msg.to == ["payouts@test.com", "ae@test.com"]
        assert msg.subject == "Commission approved: Acme Corp"
        assert "2500.00" in msg.body
        assert "Alice Seller" in msg.alternatives[0][0]

    def test_ae_already_on_payout_list_is_not_duplicated(self, db, settings):
        settings.COMMISSION_PAYOUT_NOTIFY_EMAILS = ["ae@test.com"]
        notify_approval("c-1", AE_INFO, Decimal("1.00"), "Acme Corp")
        assert mail.outbox[0].to == ["ae@test.com"]

    def test_no_recipients(self, db, settings):
        settings.COMMISSION_PAYOUT_NOTIFY_EMAILS = []
        assert notify_approval("c-1", {"name": "No Mail"}, Decimal("1.00"), "Acme Corp") is False
        assert mail.outbox == []

    def test_backend_failure_is_reported_not_raised(self, db, monkeypatch, caplog):
        def broken(**kwargs):
            raise ConnectionRefusedError("SMTP down")

        monkeypatch.setattr(notifications, "send_branded_email", broken)

        assert notify_approval("c-1", AE_INFO, Decimal("1.00"), "Acme Corp") is False
        assert "failed" in caplog.text


@pytest.mark.django_db
class TestCommissionTasks:
    def test_notification_task_emails_commission_details(self, make_commission):
        commission = make_commission(status=Commission.Status.APPROVED, base="750.00")

        assert send_commission_approved_notification(str(commission.pk)) is True
        assert "750.00" in mail.outbox[0].body

    def test_notification_task_for_missing_commission(self):
        assert send_commission_approved_notification(str(uuid.uuid4())) is False
        assert mail.outbox == []

    def test_backfill_task(self, assignment, make_invoice):
        make_invoice("100000", date(2025, 2, 1))

        result = backfill_missing_commissions_task.delay().get()

        assert result == {"created": 1, "skipped": 0}
