"""
Input Validation and Normalization Utilities.

Validators for the identifiers the policy services receive from callers:
email addresses, IP addresses, phone numbers, OTP codes and language codes.
Each validator either returns the normalized value or raises `ValidationError`
with the offending field, so route handlers can report a precise reason.

Key Components:
- `InputValidator`: Static validation and normalization methods.
- `InputValidator.normalize_phone`: Converts free-form phone input into an
  E.164-like string, inferring the configured home country code when none is
  present.
"""

import ipaddress
import re
from typing import Union

from core.exceptions import ValidationError
from core.logging_config import get_logger

logger = get_logger(__name__)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class InputValidator:
    """Input validation and normalization"""

    EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
    OTP_PATTERN = re.compile(r"^[0-9]{6}$")
    LANGUAGE_CODE_PATTERN = re.compile(r"^[a-zA-Z]{2,3}(-[a-zA-Z0-9]{2,8})?$")
    NON_DIGITS = re.compile(r"\D")

    @staticmethod
    def validate_email(email: str) -> str:
        """Validate and lower-case an email address"""
        if not isinstance(email, str):
            raise ValidationError("email", email, "Must be a string")

        email = email.strip()
        if len(email) > 254 or not InputValidator.EMAIL_PATTERN.match(email):
            raise ValidationError("email", email, "Invalid email format")

        return email.lower()

    @staticmethod
    def parse_ip_address(ip: str) -> IPAddress:
        """Parse an IPv4 or IPv6 address"""
        if not isinstance(ip, str):
            raise ValidationError("ip_address", ip, "Must be a string")

        try:
            return ipaddress.ip_address(ip.strip())
        except ValueError as e:
            raise ValidationError("ip_address", ip, f"Invalid IP address: {str(e)}")

    @staticmethod
    def is_local_address(ip: IPAddress) -> bool:
        """True for loopback, private and link-local addresses"""
        return ip.is_loopback or ip.is_private or ip.is_link_local

    @staticmethod
    def normalize_phone(phone: str, default_country_code: str = "91") -> str:
        """
        Normalize a phone number to an E.164-like string.

        Rules, applied to the digits only:
        - 11 digits starting with 1: North American number, prefix "+".
        - 12 or more digits: already carries a country code, prefix "+".
        - 10 digits: national number; a leading 0 is dropped and the home
          country code is prefixed.
        - Anything else: the home country code is prefixed.
        """
        if not isinstance(phone, str):
            raise ValidationError("phone", phone, "Must be a string")

        digits = InputValidator.NON_DIGITS.sub("", phone)
        if not digits:
            raise ValidationError("phone", phone, "Phone number contains no digits")

        if len(digits) == 11 and digits.startswith("1"):
            return f"+{digits}"
        if len(digits) >= 12:
            return f"+{digits}"
        if len(digits) == 10 and digits.startswith("0"):
            digits = digits[1:]
        return f"+{default_country_code}{digits}"

    @staticmethod
    def validate_otp_code(code: str) -> str:
        """Validate a six digit verification code"""
        if not isinstance(code, str):
            raise ValidationError("code", code, "Must be a string")

        code = code.strip()
        if not InputValidator.OTP_PATTERN.match(code):
            raise ValidationError("code", code, "Verification code must be 6 digits")
        return code

    @staticmethod
    def validate_language_code(language: str) -> str:
        """Validate a language code such as 'en', 'ta' or 'zh-TW'"""
        if not isinstance(language, str) or not InputValidator.LANGUAGE_CODE_PATTERN.match(
            language.strip()
        ):
            raise ValidationError("language", language, "Invalid language code")
        return language.strip()
