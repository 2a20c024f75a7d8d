"""Tests for the branded email utility."""
from django.core import mail

from core.email import send_branded_email


class TestSendBrandedEmail:
    def _send(self, **overrides):
        kwargs = {
            "subject": "Test Email",
            "template_name": "emails/commission_approved",
            "context": {
                "ae_name": "Jean Martin",
                "client_name": "Globex",
                "amount": "1200.00",
                "currency": "USD",
                "commission_id": "abc",
                "frontend_url": "https://hubpay.example.com",
            },
            "recipient_list": ["user@test.com"],
        }
        kwargs.update(overrides)
        return send_branded_email(**kwargs)

    def test_sends_email(self, db):
        result = self._send()
        assert result == 1
        assert len(mail.outbox) == 1
        msg = mail.outbox[0]
        assert msg.subject == "Test Email"
        assert msg.to == ["user@test.com"]
        # HTML alternative should be attached
        assert len(msg.alternatives) == 1
        html_content = msg.alternatives[0][0]
        assert "Globex" in html_content
        assert "https://hubpay.example.com/payouts" in html_content

    def test_plain_text_fallback(self, db):
        self._send(subject="Fallback test")
        msg = mail.outbox[0]
        assert "Jean Martin" in msg.body
        assert "<table" not in msg.body

    def test_explicit_sender(self, db):
        self._send(from_email="payouts@hubpay.example.com")
        assert mail.outbox[0].from_email == "payouts@hubpay.example.com"
