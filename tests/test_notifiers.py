"""
Unit tests for notifications.
"""

import smtplib
from datetime import datetime, timedelta
from unittest.mock import Mock, patch

import requests

from deckhand.utils.notifiers import NotificationManager
from deckhand.utils.notifiers.base import BaseNotifier
from deckhand.utils.notifiers.smtp import SMTPNotifier
from deckhand.utils.notifiers.telegram import TELEGRAM_MAX_LENGTH, TelegramNotifier


class RecordingNotifier(BaseNotifier):
    def __init__(self):
        super().__init__(enabled=True)
        self.sent = []

    def send(self, messages):
        self.sent.extend(messages)


class TestNotificationManager:
    """Test collection of update statistics."""

    def test_statistics(self):
        manager = NotificationManager()
        manager.set_scanned(5, 2)
        manager.add_update_detail("web", "example/web:latest", "stale_by_image")
        manager.add_update_detail("db", "example/db:latest", "start_failed", status="failed")

        assert manager.update_stats["containers_scanned"] == 5
        assert manager.update_stats["containers_stale"] == 2
        assert manager.update_stats["containers_updated"] == 1
        assert manager.update_stats["containers_failed"] == 1
        assert manager.has_news()

        manager.reset_stats()
        assert manager.update_stats["containers_updated"] == 0
        assert not manager.has_news()

    def test_stopped_containers_are_counted_separately(self):
        manager = NotificationManager()
        manager.set_scanned(2, 2)
        manager.add_update_detail("web", "example/web:latest", "stale_by_image", status="stopped")

        assert manager.update_stats["containers_stopped"] == 1
        assert manager.update_stats["containers_updated"] == 0
        assert manager.update_stats["containers_failed"] == 0

        notifier = RecordingNotifier()
        report = notifier.format_update_report({"hostname": "docker-host", **manager.update_stats})
        assert "updated: 0, failed: 0, stopped without restart: 1" in report

    def test_reload_rebuilds_notifiers(self):
        """Test that notifier settings are picked up again after a configuration reload."""
        manager = NotificationManager()
        manager.notifiers = [RecordingNotifier()]

        settings = Mock()
        settings.notifiers.enabled = True
        settings.notifiers.telegram.enabled = True
        settings.notifiers.telegram.token = "123:abc"
        settings.notifiers.telegram.chatId = 42
        settings.notifiers.email.enabled = False

        with patch("deckhand.utils.notifiers.config", settings):
            manager.reload()

        assert len(manager.notifiers) == 1
        assert isinstance(manager.notifiers[0], TelegramNotifier)
        assert manager.notifiers[0].chatId == "42"

    def test_report_is_sent(self):
        manager = NotificationManager()
        notifier = RecordingNotifier()
        manager.notifiers = [notifier]
        manager.set_start_time()
        manager.add_update_detail("web", "example/web:latest", "stale_by_image")

        with patch("deckhand.utils.notifiers.get_docker_host_hostname", return_value="docker-host"):
            manager.send_update_report()

        assert len(notifier.sent) == 1
        assert "docker-host" in notifier.sent[0]
        assert "web" in notifier.sent[0]

    def test_nothing_to_report(self):
        manager = NotificationManager()
        notifier = Mock()
        manager.notifiers = [notifier]

        manager.send_update_report()

        notifier.send.assert_not_called()

    def test_notifier_errors_are_not_raised(self):
        manager = NotificationManager()
        failing = Mock()
        failing.send.side_effect = RuntimeError("boom")
        working = RecordingNotifier()
        manager.notifiers = [failing, working]
        manager.add_error("Failed to stop container 'web'")

        with patch("deckhand.utils.notifiers.get_docker_host_hostname", return_value="docker-host"):
            manager.send_update_report()

        assert len(working.sent) == 1


class TestFormatUpdateReport:
    """Test the plain-text report."""

    def test_format(self):
        start = datetime(2024, 1, 1, 12, 0, 0)
        report = RecordingNotifier().format_update_report({
            "hostname": "docker-host",
            "start_time": start,
            "end_time": start + timedelta(seconds=12),
            "containers_scanned": 3,
            "containers_stale": 2,
            "containers_updated": 1,
            "containers_failed": 1,
            "update_details": [
                {"container_name": "db", "image_reference": "postgres:16", "state": "stale_by_image", "status": "succeeded"},
                {"container_name": "web", "image_reference": "example/web", "state": "stale_by_dependency", "status": "failed"},
            ],
            "errors": ["Failed to start new container 'web': exited"],
            "warnings": [],
        })

        assert report.splitlines()[0] == "deckhand update report for docker-host"
        assert "Duration: 12.0s" in report
        assert "Scanned: 3, stale: 2, updated: 1, failed: 1" in report
        assert "- db [postgres:16]: succeeded" in report
        assert "- web [example/web]: failed (linked container updated)" in report
        assert "Errors:" in report
        assert "Warnings:" not in report


class TestTelegramNotifier:
    """Test the Telegram notifier."""

    @patch("deckhand.utils.notifiers.telegram.requests.post")
    def test_send(self, mock_post):
        mock_post.return_value.json.return_value = {"ok": True}

        TelegramNotifier("token", "42").send(["report"])

        mock_post.assert_called_once()
        assert mock_post.call_args.args[0] == "https://api.telegram.org/bottoken/sendMessage"
        assert mock_post.call_args.kwargs["json"]["chat_id"] == "42"
        assert mock_post.call_args.kwargs["json"]["text"] == "report"

    @patch("deckhand.utils.notifiers.telegram.requests.post")
    def test_long_messages_are_split(self, mock_post):
        mock_post.return_value.json.return_value = {"ok": True}

        TelegramNotifier("token", "42").send(["x" * (TELEGRAM_MAX_LENGTH + 10)])

        assert mock_post.call_count == 2

    @patch("deckhand.utils.notifiers.telegram.requests.post")
    def test_disabled(self, mock_post):
        TelegramNotifier("token", "42", enabled=False).send(["report"])
        mock_post.assert_not_called()

    @patch("deckhand.utils.notifiers.telegram.requests.post")
    def test_request_errors_are_logged(self, mock_post):
        mock_post.side_effect = requests.exceptions.ConnectionError("offline")

        TelegramNotifier("token", "42").send(["report"])


class TestSMTPNotifier:
    """Test the SMTP notifier."""

    def make_notifier(self, port):
        return SMTPNotifier("smtp.example.com", port, "user", "secret", "deckhand@example.com", "ops@example.com")

    @patch("deckhand.utils.notifiers.smtp.smtplib.SMTP")
    def test_starttls(self, mock_smtp):
        self.make_notifier(587).send(["deckhand update report for docker-host\nScanned: 1"])

        server = mock_smtp.return_value
        mock_smtp.assert_called_once_with("smtp.example.com", 587, timeout=30)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("user", "secret")
        message = server.send_message.call_args.args[0]
        assert message["Subject"] == "deckhand update report for docker-host"
        assert message["To"] == "ops@example.com"

    @patch("deckhand.utils.notifiers.smtp.smtplib.SMTP_SSL")
    def test_ssl(self, mock_smtp_ssl):
        self.make_notifier(465).send(["report"])

        mock_smtp_ssl.assert_called_once_with("smtp.example.com", 465, timeout=30)
        mock_smtp_ssl.return_value.starttls.assert_not_called()

    @patch("deckhand.utils.notifiers.smtp.smtplib.SMTP")
    def test_errors_are_logged(self, mock_smtp):
        mock_smtp.return_value.login.side_effect = smtplib.SMTPAuthenticationError(535, b"denied")

        self.make_notifier(587).send(["report"])
