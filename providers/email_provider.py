"""
Email Sender Classes

Sends verification emails. Senders return True on success and False on any
failure; they never raise, so the verification router can apply its delivery
fallback policy uniformly.
"""

import asyncio
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import Optional

from core.logging_config import get_logger

logger = get_logger(__name__)


class EmailSender(ABC):
    """Abstract base class for email senders"""

    @abstractmethod
    async def send(self, address: str, subject: str, body: str) -> bool:
        """Send a message. Returns True when the provider accepted it."""
        pass

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        pass


class SMTPEmailSender(EmailSender):
    """SMTP sender using STARTTLS, run in a worker thread"""

    def __init__(
        self,
        host: str,
        port: int,
        username: Optional[str],
        password: Optional[str],
        from_address: Optional[str] = None,
        timeout: float = 8.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address or username
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.username and self.password)

    async def send(self, address: str, subject: str, body: str) -> bool:
        if not self.is_configured:
            logger.warning("Email not configured, cannot send message")
            return False

        message = EmailMessage()
        message["From"] = self.from_address
        message["To"] = address
        message["Subject"] = subject
        message.set_content(body)

        try:
            await asyncio.to_thread(self._deliver, message)
            logger.info(f"Email sent to {address}")
            return True
        except Exception as e:
            logger.error(f"Error sending email to {address}: {e}")
            return False

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            smtp.starttls()
            smtp.login(self.username, self.password)
            smtp.send_message(message)
