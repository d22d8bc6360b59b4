import logging
from datetime import datetime
from .telegram import TelegramNotifier
from .smtp import SMTPNotifier
from ..config import config
from ..common import get_docker_host_hostname


def _empty_stats():
    return {
        "containers_scanned": 0,
        "containers_stale": 0,
        "containers_updated": 0,
        "containers_failed": 0,
        "containers_stopped": 0,
        "update_details": [],
        "errors": [],
        "warnings": [],
        "start_time": None,
        "end_time": None,
    }


class NotificationManager:
    """
    Manages all notification channels and collects the statistics of an update pass.
    """

    def __init__(self):
        self.notifiers = []
        self.update_stats = _empty_stats()

        self._setup_notifiers()

    def reload(self):
        """Rebuild the notifiers from the current configuration."""
        self.notifiers = []
        self._setup_notifiers()

    def _setup_notifiers(self):
        """Initialize configured notifiers."""
        if not config.notifiers.enabled:
            logging.debug("Notifications are disabled globally")
            return

        telegram_config = config.notifiers.telegram
        if telegram_config.enabled and telegram_config.token and telegram_config.chatId:
            self.notifiers.append(TelegramNotifier(
                token=telegram_config.token,
                chatId=str(telegram_config.chatId),
                enabled=telegram_config.enabled
            ))
            logging.debug("Telegram notifier initialized")
        elif telegram_config.enabled:
            logging.warning("Telegram notifications enabled but token or chatId not configured")

        email_config = config.notifiers.email
        if email_config.enabled and email_config.smtpServer and email_config.fromAddr and email_config.toAddr:
            self.notifiers.append(SMTPNotifier(
                smtp_server=email_config.smtpServer,
                smtp_port=int(email_config.smtpPort),
                username=email_config.username,
                password=email_config.password,
                from_addr=email_config.fromAddr,
                to_addr=email_config.toAddr,
                enabled=email_config.enabled,
                timeout=int(email_config.timeout)
            ))
            logging.debug("SMTP notifier initialized")
        elif email_config.enabled:
            logging.warning("Email notifications enabled but smtpServer, fromAddr, or toAddr not configured")

    def set_scanned(self, scanned: int, stale: int):
        """Record how many containers were checked and how many of them are stale."""
        self.update_stats["containers_scanned"] = scanned
        self.update_stats["containers_stale"] = stale

    def add_update_detail(self, container_name: str, image_reference: str, state: str, status: str = "succeeded"):
        """Add the outcome for one container to the statistics."""
        self.update_stats["update_details"].append({
            "container_name": container_name,
            "image_reference": image_reference,
            "state": state,
            "status": status
        })

        if status == "succeeded":
            self.update_stats["containers_updated"] += 1
        elif status == "stopped":
            self.update_stats["containers_stopped"] += 1
        else:
            self.update_stats["containers_failed"] += 1

    def add_error(self, error_message: str):
        self.update_stats["errors"].append(error_message)

    def add_warning(self, warning_message: str):
        self.update_stats["warnings"].append(warning_message)

    def set_start_time(self):
        self.update_stats["start_time"] = datetime.now()

    def set_end_time(self):
        self.update_stats["end_time"] = datetime.now()

    def has_news(self) -> bool:
        """Whether the pass did anything worth reporting."""
        return bool(
            self.update_stats["update_details"]
            or self.update_stats["errors"]
            or self.update_stats["warnings"]
        )

    def send_update_report(self):
        """Send the update report to all configured notifiers."""
        if not self.notifiers:
            logging.debug("No notifiers configured, skipping report")
            return

        self.set_end_time()

        if not self.has_news():
            logging.debug("Nothing was updated, skipping report")
            return

        update_data = {
            "hostname": get_docker_host_hostname(),
            "timestamp": datetime.now(),
            **self.update_stats
        }

        for notifier in self.notifiers:
            try:
                notifier.send([notifier.format_update_report(update_data)])
            except Exception as e:
                logging.error(f"Failed to send notification via {type(notifier).__name__}: {e}")

    def reset_stats(self):
        self.update_stats = _empty_stats()


# Global notification manager instance
notification_manager = NotificationManager()
