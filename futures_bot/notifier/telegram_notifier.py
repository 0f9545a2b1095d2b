import os
from typing import Optional

import requests

from futures_bot.database.logger import Logger
from futures_bot.interface.collaborators import INotifier

TELEGRAM_API = "https://api.telegram.org"


class TelegramNotifier(INotifier):
    """
    Sends plain-text messages to a Telegram chat through the Bot API.
    Delivery problems are logged and reported as False, never raised.
    """

    def __init__(self, token: str, chat_id: str, timeout: float = 10.0, logger: Optional[Logger] = None, session: Optional[requests.Session] = None):
        if not token or not chat_id:
            raise ValueError("Telegram token and chat_id are required")
        self.token = token
        self.chat_id = str(chat_id)
        self.timeout = timeout
        self.logger = logger or Logger()
        self.session = session or requests.Session()

    @classmethod
    def from_env(cls, logger: Optional[Logger] = None) -> Optional["TelegramNotifier"]:
        token = os.getenv("TELEGRAM_TOKEN")
        chat_id = os.getenv("TELEGRAM_CHAT_ID")
        if not token or not chat_id:
            return None
        return cls(token=token, chat_id=chat_id, logger=logger)

    @property
    def url(self) -> str:
        return f"{TELEGRAM_API}/bot{self.token}/sendMessage"

    def send(self, text: str) -> bool:
        try:
            resp = self.session.post(self.url, json={"chat_id": self.chat_id, "text": text, "disable_web_page_preview": True}, timeout=self.timeout)
            resp.raise_for_status()
            body = resp.json()
            if not body.get("ok", False):
                self.logger.log(f"[NOTIFY] telegram rejected message: {body.get('description')}", level="WARNING")
                return False
            return True
        except (requests.RequestException, ValueError) as e:
            self.logger.log(f"[NOTIFY] telegram send failed: {e}", level="WARNING")
            return False


class LogNotifier(INotifier):
    """
    Fallback when no chat is configured: notifications go to the log.
    """

    def __init__(self, logger: Optional[Logger] = None):
        self.logger = logger or Logger()

    def send(self, text: str) -> bool:
        self.logger.log(f"[NOTIFY] {text}", level="INFO")
        return True
