import smtplib
import logging
from email.mime.text import MIMEText
from .base import BaseNotifier
from typing import List


class SMTPNotifier(BaseNotifier):
    """
    SMTP-based email notifier for deckhand update reports.

    Sends the plain-text report produced by format_update_report().
    """

    def __init__(self, smtp_server: str, smtp_port: int, username: str, password: str,
                 from_addr: str, to_addr: str, enabled: bool = True, timeout: int = 30):
        """
        Initialize the SMTP notifier.

        Parameters:
            smtp_server (str): SMTP server address
            smtp_port (int): SMTP server port
            username (str): SMTP username
            password (str): SMTP password
            from_addr (str): Sender email address
            to_addr (str): Recipient email address
            enabled (bool): Whether the notifier is enabled
            timeout (int): Connection timeout in seconds
        """
        super().__init__(enabled)
        self.smtp_server = smtp_server
        self.smtp_port = smtp_port
        self.username = username
        self.password = password
        self.from_addr = from_addr
        self.to_addr = to_addr
        self.timeout = timeout

    def send(self, messages: List[str]):
        """
        Send email notification via SMTP.

        Parameters:
            messages (List[str]): Messages to send, joined into one mail body
        """
        if not self.enabled:
            return

        if not messages:
            logging.debug("No messages to send via SMTP")
            return

        body = "\n\n".join(messages)
        msg = MIMEText(body, "plain", "utf-8")
        msg["From"] = self.from_addr
        msg["To"] = self.to_addr
        msg["Subject"] = body.splitlines()[0] if body else "deckhand update report"

        try:
            self._send_email(msg)
        except (smtplib.SMTPException, OSError) as e:
            logging.error(f"Failed to send email notification: {e}")

    def _send_email(self, msg):
        """Send email via SMTP; port 465 uses SSL, port 587 STARTTLS."""
        if self.smtp_port == 465:
            logging.debug(f"Connecting to {self.smtp_server}:{self.smtp_port} using SSL (timeout: {self.timeout}s)")
            server = smtplib.SMTP_SSL(self.smtp_server, self.smtp_port, timeout=self.timeout)
        else:
            logging.debug(f"Connecting to {self.smtp_server}:{self.smtp_port} (timeout: {self.timeout}s)")
            server = smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=self.timeout)

        with server:
            if self.smtp_port == 587:
                logging.debug("Starting TLS connection")
                server.starttls()
            if self.username and self.password:
                logging.debug("Authenticating with SMTP server")
                server.login(self.username, self.password)
            server.send_message(msg)
            logging.debug(f"Email sent successfully to {self.to_addr}")
