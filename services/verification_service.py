"""
Verification Router Service.

Issues, resends, validates and cleans up one-time verification codes for
registration and login.

Key Components:
- Channel selection: identities located in a southern region are verified by
  email; everyone else by SMS, which requires a phone number
  (`PhoneNumberRequiredError` otherwise, never a silent downgrade).
- Challenge storage: one live challenge per (purpose, identity key) in an
  injected `CacheBackend`. Issuing overwrites atomically (last writer wins);
  resend and consumption use compare-and-swap so a code is accepted at most
  once even across processes.
- Delivery: email/SMS calls carry a timeout. A failed delivery either falls
  back (the challenge stays valid and the code is logged for manual recovery)
  or, when the fallback is disabled, removes the challenge and raises
  `DeliveryError`.
- Verification order: exists, not expired (expired challenges are deleted),
  code matches (a malformed code is a mismatch, never an error). On success
  the challenge is deleted before the result is returned, so the caller's
  side effect always follows consumption.
"""

import asyncio
import secrets
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple, Union

from core.cache import CacheBackend, cache_key
from core.config import Settings
from core.exceptions import (
    ChallengeNotFoundError,
    ConcurrentUpdateError,
    DeliveryError,
    PhoneNumberRequiredError,
    ValidationError,
)
from core.logging_config import get_logger, log_function_call
from core.models import (
    ChallengePurpose,
    DeliveryChannel,
    VerificationChallenge,
    VerificationIdentity,
    VerificationResult,
    VerificationStatus,
    utcnow,
)
from core.validation import InputValidator
from providers.email_provider import EmailSender
from providers.sms_provider import SMSSender
from services.region_classifier import RegionClassifier

logger = get_logger(__name__)

CHALLENGE_PREFIX = "otp"
MAX_SWAP_ATTEMPTS = 5


def generate_code() -> str:
    """Six digit code drawn uniformly from 100000-999999"""
    return str(100000 + secrets.randbelow(900000))


class VerificationRouter:
    """Routes and validates one-time verification codes"""

    def __init__(
        self,
        store: CacheBackend,
        classifier: RegionClassifier,
        email_sender: EmailSender,
        sms_sender: SMSSender,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
        code_generator: Callable[[], str] = generate_code,
    ):
        self.store = store
        self.classifier = classifier
        self.email_sender = email_sender
        self.sms_sender = sms_sender
        self.settings = settings
        self.clock = clock
        self.code_generator = code_generator

    @property
    def ttl(self) -> timedelta:
        return timedelta(seconds=self.settings.otp_ttl_seconds)

    @property
    def retention_seconds(self) -> int:
        # Expired challenges outlive their window so verify can report "expired"
        return self.settings.otp_ttl_seconds + self.settings.otp_retention_seconds

    @staticmethod
    def challenge_key(identity: Union[VerificationIdentity, str], purpose: ChallengePurpose) -> str:
        key = identity.key if isinstance(identity, VerificationIdentity) else identity
        return cache_key(CHALLENGE_PREFIX, ChallengePurpose(purpose).value, key)

    def select_channel(self, identity: VerificationIdentity) -> Tuple[DeliveryChannel, str]:
        """Pick the delivery channel and normalized destination for an identity"""
        region = identity.location.region if identity.location else None

        if self.classifier.is_southern(region):
            if not identity.email:
                raise ValidationError("email", None, "An email address is required for email verification")
            return DeliveryChannel.EMAIL, InputValidator.validate_email(identity.email)

        if not identity.phone or not identity.phone.strip():
            raise PhoneNumberRequiredError(identity.key)
        return DeliveryChannel.SMS, InputValidator.normalize_phone(
            identity.phone, self.settings.default_country_code
        )

    @log_function_call(logger)
    async def issue_challenge(
        self,
        identity: VerificationIdentity,
        purpose: ChallengePurpose,
        payload: Optional[dict] = None,
    ) -> VerificationChallenge:
        """Create (or replace) the challenge for an identity and deliver it"""
        channel, destination = self.select_channel(identity)
        challenge = VerificationChallenge(
            key=identity.key,
            purpose=ChallengePurpose(purpose),
            code=self.code_generator(),
            expires_at=self.clock() + self.ttl,
            channel=channel,
            destination=destination,
            payload=payload,
        )

        await self.store.set(
            self.challenge_key(identity, purpose),
            challenge.to_dict(),
            ttl=self.retention_seconds,
        )
        logger.info(
            f"Issued {challenge.purpose.value} challenge for {identity.key} via {channel.value}"
        )
        return await self._dispatch(challenge)

    @log_function_call(logger)
    async def resend(
        self, identity: Union[VerificationIdentity, str], purpose: ChallengePurpose
    ) -> VerificationChallenge:
        """Regenerate the code and expiry of the live challenge and deliver it again"""
        key = self.challenge_key(identity, purpose)

        for _ in range(MAX_SWAP_ATTEMPTS):
            stored = await self.store.get(key)
            if stored is None:
                raise ChallengeNotFoundError(key)

            renewed = replace(
                VerificationChallenge.from_dict(stored),
                code=self.code_generator(),
                expires_at=self.clock() + self.ttl,
            )
            if await self.store.compare_and_swap(
                key, stored, renewed.to_dict(), ttl=self.retention_seconds
            ):
                logger.info(f"Resent {renewed.purpose.value} challenge for {renewed.key}")
                return await self._dispatch(renewed)

        raise ConcurrentUpdateError("challenge", key, MAX_SWAP_ATTEMPTS)

    async def verify(
        self,
        identity: Union[VerificationIdentity, str],
        purpose: ChallengePurpose,
        code: str,
    ) -> VerificationResult:
        """Check a submitted code; consumes the challenge on success"""
        key = self.challenge_key(identity, purpose)

        stored = await self.store.get(key)
        if stored is None:
            return VerificationResult(VerificationStatus.NOT_FOUND)

        challenge = VerificationChallenge.from_dict(stored)

        if challenge.is_expired(self.clock()):
            await self.store.compare_and_swap(key, stored, None)
            logger.info(f"Expired {challenge.purpose.value} challenge for {challenge.key}")
            return VerificationResult(VerificationStatus.EXPIRED)

        try:
            submitted = InputValidator.validate_otp_code(code)
        except ValidationError:
            submitted = None

        if submitted is None or not secrets.compare_digest(challenge.code, submitted):
            logger.info(f"Code mismatch for {challenge.purpose.value} challenge {challenge.key}")
            return VerificationResult(VerificationStatus.MISMATCH)

        # Only the caller that removes the exact entry it read wins
        if not await self.store.compare_and_swap(key, stored, None):
            return VerificationResult(VerificationStatus.NOT_FOUND)

        logger.info(f"Verified {challenge.purpose.value} challenge for {challenge.key}")
        return VerificationResult(VerificationStatus.SUCCESS, payload=challenge.payload)

    async def cleanup_expired(self) -> int:
        """Delete every stored challenge whose expiry has passed"""
        now = self.clock()
        removed = 0
        for key in await self.store.keys(f"{CHALLENGE_PREFIX}:*"):
            stored = await self.store.get(key)
            if stored is None:
                continue
            if VerificationChallenge.from_dict(stored).is_expired(now):
                if await self.store.compare_and_swap(key, stored, None):
                    removed += 1

        if removed:
            logger.info(f"Removed {removed} expired challenges")
        return removed

    async def _dispatch(self, challenge: VerificationChallenge) -> VerificationChallenge:
        delivered, reason = await self._deliver(challenge)
        if delivered:
            challenge.delivered = True
            return challenge

        if not self.settings.otp_delivery_fallback:
            key = self.challenge_key(challenge.key, challenge.purpose)
            await self.store.compare_and_swap(key, challenge.to_dict(), None)
            logger.error(
                f"OTP delivery via {challenge.channel.value} failed for {challenge.key}: {reason}",
                extra={"channel": challenge.channel.value, "destination": challenge.destination},
            )
            raise DeliveryError(challenge.channel.value, challenge.destination, reason)

        logger.warning(
            f"OTP delivery via {challenge.channel.value} failed ({reason}); "
            f"code {challenge.code} for {challenge.destination} "
            f"valid until {challenge.expires_at.isoformat()}",
            extra={
                "channel": challenge.channel.value,
                "destination": challenge.destination,
                "code": challenge.code,
                "expires_at": challenge.expires_at.isoformat(),
            },
        )
        return challenge

    async def _deliver(self, challenge: VerificationChallenge) -> Tuple[bool, Optional[str]]:
        minutes = self.settings.otp_ttl_seconds // 60
        app_name = self.settings.app_name

        if challenge.channel == DeliveryChannel.EMAIL:
            call = self.email_sender.send(
                challenge.destination,
                f"{app_name} - OTP Verification",
                f"Your OTP for verification is: {challenge.code}\n\n"
                f"This OTP will expire in {minutes} minutes.\n\n"
                "If you didn't request this verification, please ignore this email.",
            )
        else:
            call = self.sms_sender.send(
                challenge.destination,
                f"Your {app_name} verification code is: {challenge.code}. "
                f"Valid for {minutes} minutes.",
            )

        try:
            sent = await asyncio.wait_for(call, timeout=self.settings.delivery_timeout_seconds)
        except asyncio.TimeoutError:
            return False, "timed out"
        except Exception as e:
            return False, str(e)

        return (True, None) if sent else (False, "provider reported failure")
