"""Tests for the commission approval workflow."""
import logging
from decimal import Decimal

import pytest
from django.core import mail

from commissions import services
from commissions.exceptions import InvalidTransitionError, RejectionReasonRequiredError
from commissions.models import Commission
from core.models import AuditLog

S = Commission.Status

ALLOWED = {
    (S.PENDING, S.APPROVED),
    (S.PENDING, S.REJECTED),
    (S.APPROVED, S.PAID),
}
ALL_PAIRS = [(current, target) for current in S.values for target in S.values]


@pytest.mark.parametrize("current,target", ALL_PAIRS)
def test_transition_table(current, target):
    assert Commission.can_transition(current, target) is ((current, target) in ALLOWED)


@pytest.mark.django_db
@pytest.mark.parametrize("current,target", [pair for pair in ALL_PAIRS if pair not in ALLOWED])
def test_disallowed_transitions_leave_status_unchanged(current, target, make_commission, admin_user):
    commission = make_commission(status=current)

    with pytest.raises(InvalidTransitionError):
        services.transition_commission(commission, target, admin_user, reason="because")

    commission.refresh_from_db()
    assert commission.status == current


@pytest.mark.django_db
class TestApprove:
    def test_stamps_approver_and_writes_audit(self, make_commission, admin_user):
        commission = services.approve_commission(make_commission(), admin_user)

        assert commission.status == S.APPROVED
        assert commission.approved_by == admin_user
        assert commission.approved_at is not None
        entry = AuditLog.objects.get(action="COMMISSION_APPROVED", entity_id=str(commission.pk))
        assert entry.before_json["status"] == "pending"
        assert entry.after_json["status"] == "approved"

    def test_notifies_payouts_after_commit(self, make_commission, admin_user, django_capture_on_commit_callbacks):
        commission = make_commission(base="2500.00")

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            services.approve_commission(commission, admin_user)

        assert len(callbacks) == 1
        assert len(mail.outbox) == 1
        message = mail.outbox[0]
        assert "Acme Corp" in message.subject
        assert set(message.to) == {"payouts@test.com", "ae@test.com"}

    def test_no_notification_when_transaction_never_commits(self, make_commission, admin_user):
        services.approve_commission(make_commission(), admin_user)
        assert mail.outbox == []

    def test_dispatch_failure_does_not_undo_approval(
        self, make_commission, admin_user, monkeypatch, caplog, django_capture_on_commit_callbacks
    ):
        from commissions import tasks

        def broken_delay(*args, **kwargs):
            raise ConnectionError("broker unreachable")

        monkeypatch.setattr(tasks.send_commission_approved_notification, "delay", broken_delay)
        commission = make_commission()

        with caplog.at_level(logging.WARNING, logger="commissions"):
            with django_capture_on_commit_callbacks(execute=True):
                services.approve_commission(commission, admin_user)

        commission.refresh_from_db()
        assert commission.status == S.APPROVED
        assert "notification dispatch failed" in caplog.text


@pytest.mark.django_db
class TestReject:
    @pytest.mark.parametrize("reason", ["", "   "])
    def test_reason_required(self, make_commission, admin_user, reason):
        commission = make_commission()

        with pytest.raises(RejectionReasonRequiredError):
            services.reject_commission(commission, admin_user, reason)

        commission.refresh_from_db()
        assert commission.status == S.PENDING

    def test_records_reason(self, make_commission, admin_user):
        commission = services.reject_commission(make_commission(), admin_user, "  Duplicate deal  ")

        assert commission.status == S.REJECTED
        assert commission.rejection_reason == "Duplicate deal"
        assert AuditLog.objects.filter(action="COMMISSION_REJECTED").exists()

    @pytest.mark.parametrize("target", [S.PENDING, S.APPROVED, S.PAID])
    def test_rejected_is_terminal(self, make_commission, admin_user, target):
        commission = make_commission(status=S.REJECTED)

        with pytest.raises(InvalidTransitionError):
            services.transition_commission(commission, target, admin_user)

        commission.refresh_from_db()
        assert commission.status == S.REJECTED


@pytest.mark.django_db
class TestPay:
    def test_stamps_payer(self, make_commission, admin_user):
        commission = services.mark_commission_paid(make_commission(status=S.APPROVED), admin_user)

        assert commission.status == S.PAID
        assert commission.paid_by == admin_user
        assert commission.paid_at is not None

    def test_amounts_untouched_by_transitions(self, make_commission, admin_user):
        commission = make_commission(base="1234.56")
        commission = services.approve_commission(commission, admin_user)
        commission = services.mark_commission_paid(commission, admin_user)

        assert commission.base_commission == Decimal("1234.56")
        assert commission.total_commission == Decimal("1234.56")
