"""Tests for email service: trade templates, SMTP sending, bulk sends."""

import uuid
import pytest
import smtplib
from unittest.mock import AsyncMock, MagicMock, patch

from advisorhub.models.email_log import EmailLog
from advisorhub.models.trade import TradeRecommendation
from advisorhub.services.email_service import (
    Recipient,
    _render_template,
    send_bulk,
    send_email,
    summary_message,
    template_trade_advice,
    template_trade_exit,
)


def _trade(**kw):
    data = dict(
        id=uuid.uuid4(), stock="INFY", trade_type="BUY", segment="EQUITY",
        time_horizon="SWING", entry="1500", entry_max=None, stoploss="1450",
        targets=["1550", "1600"], target_max=None, range_entry=False,
        range_target=False, trailing_sl=False, status="ACTIVE", rationale=None,
    )
    data.update(kw)
    return TradeRecommendation(**data)


def _smtp_settings(**kw):
    data = dict(
        smtp_host="smtp.example.com",
        smtp_port=587,
        smtp_user="user",
        smtp_password="pass",
        smtp_from="noreply@example.com",
        smtp_use_tls=True,
        email_reply_to="",
    )
    data.update(kw)
    return MagicMock(**data)


class TestEmailTemplates:
    def test_trade_advice_buy(self):
        subject, html = template_trade_advice(_trade(), client_name="Asha", advisor="Team Alpha")
        assert subject == "Trade Advice: BUY INFY"
        assert "BUY RECOMMENDATION" in html
        assert "Hi Asha," in html
        assert "1550, 1600" in html
        assert "Sent by Team Alpha" in html

    def test_trade_advice_ranges(self):
        trade = _trade(range_entry=True, entry_max="1520", range_target=True,
                       target_max="1650", trailing_sl=True, rationale="Breakout above resistance")
        _, html = template_trade_advice(trade)
        assert "1500 - 1520" in html
        assert "1450 (Trailing)" in html
        assert "1550, 1600 - 1650" in html
        assert "Breakout above resistance" in html
        assert "Sent by your advisor" in html

    def test_trade_advice_sell(self):
        subject, html = template_trade_advice(_trade(trade_type="SELL"))
        assert subject == "Trade Advice: SELL INFY"
        assert "SELL RECOMMENDATION" in html

    def test_trade_exit(self):
        trade = _trade(status="EXITED", exit_price="1540", pnl="40.00", exit_reason="Target hit")
        subject, html = template_trade_exit(trade)
        assert subject == "Trade Exit: INFY"
        assert "TRADE EXIT" in html
        assert "₹1540" in html
        assert "Target hit" in html

    def test_trade_exit_range(self):
        trade = _trade(status="EXITED", exit_price="1530", exit_price_max="1545")
        _, html = template_trade_exit(trade)
        assert "₹1530 - ₹1545" in html

    def test_base_template_structure(self):
        html = _render_template("<p>Test</p>")
        assert "AdvisorHub" in html
        assert "Test" in html
        assert "<!DOCTYPE html>" in html


class TestSendEmail:
    @patch("advisorhub.services.email_service.get_settings")
    def test_skip_when_smtp_not_configured(self, mock_settings):
        mock_settings.return_value = MagicMock(smtp_host="")
        result = send_email("test@example.com", "Test", "<p>body</p>")
        assert result is False

    @patch("advisorhub.services.email_service.smtplib.SMTP")
    @patch("advisorhub.services.email_service.get_settings")
    def test_sends_when_configured(self, mock_settings, mock_smtp):
        mock_settings.return_value = _smtp_settings()
        mock_server = MagicMock()
        mock_smtp.return_value.__enter__ = MagicMock(return_value=mock_server)
        mock_smtp.return_value.__exit__ = MagicMock(return_value=False)

        result = send_email("test@example.com", "Test Subject", "<p>body</p>",
                            reply_to="advisor@example.com", from_name="Team Alpha")
        assert result is True
        mock_server.starttls.assert_called_once()
        mock_server.login.assert_called_once_with("user", "pass")
        msg = mock_server.send_message.call_args.args[0]
        assert msg["Reply-To"] == "advisor@example.com"
        assert msg["From"] == "Team Alpha <noreply@example.com>"

    @patch("advisorhub.services.email_service.smtplib.SMTP")
    @patch("advisorhub.services.email_service.get_settings")
    def test_no_tls_when_disabled(self, mock_settings, mock_smtp):
        mock_settings.return_value = _smtp_settings(smtp_port=25, smtp_user="", smtp_password="", smtp_use_tls=False)
        mock_server = MagicMock()
        mock_smtp.return_value.__enter__ = MagicMock(return_value=mock_server)
        mock_smtp.return_value.__exit__ = MagicMock(return_value=False)

        result = send_email("test@example.com", "Test", "<p>body</p>")
        assert result is True
        mock_server.starttls.assert_not_called()
        mock_server.login.assert_not_called()

    @patch("advisorhub.services.email_service.smtplib.SMTP")
    @patch("advisorhub.services.email_service.get_settings")
    def test_returns_false_on_smtp_error(self, mock_settings, mock_smtp):
        mock_settings.return_value = _smtp_settings()
        mock_smtp.side_effect = smtplib.SMTPConnectError(421, "Connection refused")

        result = send_email("test@example.com", "Test", "<p>body</p>")
        assert result is False

    @patch("advisorhub.services.email_service.smtplib.SMTP")
    @patch("advisorhub.services.email_service.get_settings")
    def test_open_breaker_skips_send(self, mock_settings, mock_smtp):
        from advisorhub.core.circuit_breaker import smtp_breaker

        mock_settings.return_value = _smtp_settings()
        mock_smtp.side_effect = OSError("unreachable")
        for _ in range(smtp_breaker.failure_threshold):
            assert send_email("test@example.com", "Test", "<p>body</p>") is False
        assert smtp_breaker.is_open

        mock_smtp.reset_mock()
        assert send_email("test@example.com", "Test", "<p>body</p>") is False
        mock_smtp.assert_not_called()


class TestSendBulk:
    def test_summary_message(self):
        assert summary_message(3, 0) == "Successfully sent 3 emails"
        assert summary_message(2, 1) == "Successfully sent 2 emails, 1 failed"

    @pytest.mark.asyncio
    async def test_logs_every_attempt(self):
        db = AsyncMock()
        db.add = MagicMock()
        recipients = [
            Recipient(email="a@example.com", name="A"),
            Recipient(email="", name="No Address"),
            Recipient(email="b@example.com"),
        ]

        with patch("advisorhub.services.email_service.send_email", side_effect=[True, False]) as mock_send:
            message, results = await send_bulk(
                db, uuid.uuid4(), recipients, "Trade Advice: BUY INFY", "<p>x</p>",
                trade_details={"stock": "INFY"},
            )

        assert mock_send.call_count == 2
        assert message == "Successfully sent 1 emails, 1 failed"
        assert [(r.email, r.success) for r in results] == [("a@example.com", True), ("b@example.com", False)]
        assert results[0].message_id is not None
        assert results[1].message_id is None

        logs = [c.args[0] for c in db.add.call_args_list]
        assert all(isinstance(log, EmailLog) for log in logs)
        assert [log.status for log in logs] == ["sent", "failed"]
        assert logs[0].trade_details == {"stock": "INFY"}
        assert logs[1].error == "delivery failed"
        db.flush.assert_awaited_once()
        assert logs[0].content_type == "trade_advice"

    @pytest.mark.asyncio
    async def test_logs_rendered_template(self):
        db = AsyncMock()
        db.add = MagicMock()

        with patch("advisorhub.services.email_service.send_email", return_value=True):
            await send_bulk(
                db, uuid.uuid4(), [Recipient(email="a@example.com")], "Trade Exit: INFY", "<p>x</p>",
                content_type="trade_exit",
            )

        assert db.add.call_args.args[0].content_type == "trade_exit"
