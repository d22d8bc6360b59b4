import requests
import logging
from .base import BaseNotifier
from typing import List

TELEGRAM_MAX_LENGTH = 4096
TELEGRAM_API_URL = "https://api.telegram.org"


class TelegramNotifier(BaseNotifier):
    def __init__(self, token: str, chatId: str, enabled: bool = True):
        """
        Initialize the Telegram notifier.

        Parameters:
            token (str): Telegram bot token
            chatId (str): Telegram chat ID to send messages to
            enabled (bool): Whether the notifier is enabled
        """
        super().__init__(enabled)
        self.token = token
        self.chatId = chatId

    def send(self, messages: List[str]):
        """
        Send messages via Telegram Bot API.

        Long messages are split into chunks Telegram accepts.

        Parameters:
            messages (List[str]): List of messages to send
        """
        if not self.enabled:
            return

        if not messages:
            logging.debug("No messages to send via Telegram")
            return

        text = "\n".join(messages)
        for chunk in self._split_message(text):
            self._send_chunk(chunk)

    def _split_message(self, text: str) -> List[str]:
        """Split text into chunks <= TELEGRAM_MAX_LENGTH."""
        return [text[i:i+TELEGRAM_MAX_LENGTH] for i in range(0, len(text), TELEGRAM_MAX_LENGTH)]

    def _send_chunk(self, chunk: str):
        url = f"{TELEGRAM_API_URL}/bot{self.token}/sendMessage"
        payload = {
            "chat_id": self.chatId,
            "text": chunk,
            "disable_web_page_preview": True,
        }

        try:
            resp = requests.post(url, json=payload, timeout=10)
            resp.raise_for_status()

            response_data = resp.json()
            if response_data.get("ok"):
                logging.debug(f"Telegram message sent successfully to chat {self.chatId}")
            else:
                logging.error(f"Telegram API error: {response_data.get('description', 'Unknown error')}")

        except requests.exceptions.Timeout:
            logging.error("Telegram notification failed: Request timeout")
        except requests.exceptions.RequestException as e:
            logging.error(f"Telegram notification failed: {e}")
