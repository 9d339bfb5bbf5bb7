"""
SMS Sender Classes

Sends verification codes by SMS. Numbers are expected in E.164 form already;
normalization is done by the caller. Like the email senders, SMS senders
report failure by returning False.
"""

from abc import ABC, abstractmethod
from typing import Optional

import aiohttp

from core.logging_config import get_logger

logger = get_logger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


class SMSSender(ABC):
    """Abstract base class for SMS senders"""

    @abstractmethod
    async def send(self, phone_e164: str, body: str) -> bool:
        """Send a text message. Returns True when the provider accepted it."""
        pass

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        pass


class TwilioSMSSender(SMSSender):
    """SMS sender using the Twilio Messages REST API"""

    def __init__(
        self,
        account_sid: Optional[str],
        auth_token: Optional[str],
        from_number: Optional[str],
        timeout: float = 8.0,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(
            self.account_sid
            and self.account_sid.startswith("AC")
            and self.auth_token
            and self.from_number
        )

    async def send(self, phone_e164: str, body: str) -> bool:
        if not self.is_configured:
            logger.warning("Twilio not configured, cannot send SMS")
            return False

        url = TWILIO_MESSAGES_URL.format(sid=self.account_sid)
        form = {"To": phone_e164, "From": self.from_number, "Body": body}

        try:
            async with aiohttp.ClientSession(
                auth=aiohttp.BasicAuth(self.account_sid, self.auth_token)
            ) as session:
                async with session.post(
                    url, data=form, timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    if response.status in (200, 201):
                        logger.info(f"SMS sent to {phone_e164}")
                        return True

                    payload = await response.json(content_type=None)
                    logger.error(
                        f"Twilio rejected SMS to {phone_e164}: {payload.get('message')}",
                        extra={"twilio_code": payload.get("code"), "status": response.status},
                    )
                    return False
        except Exception as e:
            logger.error(f"Error sending SMS to {phone_e164}: {e}")
            return False
