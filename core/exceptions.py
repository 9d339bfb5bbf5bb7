"""
Custom Exception Classes for the StreamHub policy engine.

All errors raised by the policy services derive from `StreamHubException`, which
carries a human-readable message, a stable `error_code` and an optional
`details` dictionary. The hierarchy follows the error taxonomy of the engine:

- Input errors: `ValidationError`, `CommentRejectedError`,
  `PhoneNumberRequiredError`.
- Delivery errors: `DeliveryError` (only raised when the OTP delivery fallback
  is disabled).
- Provider errors: `TranslationError`, `GeoLookupError`.
- State errors: `ChallengeNotFoundError`, `CommentNotFoundError`,
  `CommentDeletedError`, `CommentPermissionError`, `ConcurrentUpdateError`.

OTP verification outcomes (expired, mismatch, not found) are return values of
`VerificationRouter.verify`, not exceptions.

`to_http_exception` maps any `StreamHubException` onto FastAPI's
`HTTPException` so a host application can surface precise errors.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException


class StreamHubException(Exception):
    """Base exception class for the policy engine"""

    status_code = 500

    def __init__(
        self,
        message: str,
        error_code: str = "STREAMHUB_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(StreamHubException):
    """Raised when input validation fails"""

    status_code = 400

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            f"Validation failed for field '{field}': {reason}",
            "VALIDATION_ERROR",
            {"field": field, "value": str(value), "reason": reason},
        )


class CommentRejectedError(StreamHubException):
    """Raised when a comment fails moderation"""

    status_code = 422

    def __init__(self, reason: str, message: str):
        super().__init__(
            f"Comment rejected: {message}",
            "COMMENT_REJECTED",
            {"reason": reason},
        )
        self.reason = reason


class PhoneNumberRequiredError(StreamHubException):
    """Raised when SMS delivery is selected but no phone number is known"""

    status_code = 400

    def __init__(self, identity: str):
        super().__init__(
            f"A phone number is required to verify {identity} by SMS",
            "PHONE_NUMBER_REQUIRED",
            {"identity": identity},
        )


class DeliveryError(StreamHubException):
    """Raised when an OTP could not be delivered and fallback is disabled"""

    status_code = 502

    def __init__(self, channel: str, destination: str, reason: str):
        super().__init__(
            f"Failed to deliver verification code via {channel}: {reason}",
            "DELIVERY_FAILED",
            {"channel": channel, "destination": destination, "reason": reason},
        )


class TranslationError(StreamHubException):
    """Raised when the translation provider fails"""

    status_code = 502

    def __init__(self, reason: str, target_language: Optional[str] = None):
        super().__init__(
            f"Translation failed: {reason}",
            "TRANSLATION_FAILED",
            {"reason": reason, "target_language": target_language},
        )


class GeoLookupError(StreamHubException):
    """Raised by geo providers when a lookup cannot be performed"""

    status_code = 502

    def __init__(self, ip_address: str, reason: str):
        super().__init__(
            f"Geo lookup failed for {ip_address}: {reason}",
            "GEO_LOOKUP_FAILED",
            {"ip_address": ip_address, "reason": reason},
        )


class ChallengeNotFoundError(StreamHubException):
    """Raised when a resend is requested for a key without a live challenge"""

    status_code = 404

    def __init__(self, key: str):
        super().__init__(
            f"No pending verification found for {key}",
            "CHALLENGE_NOT_FOUND",
            {"key": key},
        )


class CommentNotFoundError(StreamHubException):
    """Raised when a comment does not exist"""

    status_code = 404

    def __init__(self, comment_id: str):
        super().__init__(
            f"Comment not found: {comment_id}",
            "COMMENT_NOT_FOUND",
            {"comment_id": comment_id},
        )


class CommentDeletedError(StreamHubException):
    """Raised when acting on a comment that has already been deleted"""

    status_code = 410

    def __init__(self, comment_id: str, reason: Optional[str]):
        super().__init__(
            f"Comment {comment_id} has been deleted",
            "COMMENT_DELETED",
            {"comment_id": comment_id, "deleted_reason": reason},
        )


class CommentPermissionError(StreamHubException):
    """Raised when a user may not modify a comment"""

    status_code = 403

    def __init__(self, comment_id: str, user_id: str):
        super().__init__(
            f"User {user_id} may not modify comment {comment_id}",
            "COMMENT_FORBIDDEN",
            {"comment_id": comment_id, "user_id": user_id},
        )


class ConcurrentUpdateError(StreamHubException):
    """Raised when an optimistic update keeps losing to concurrent writers"""

    status_code = 409

    def __init__(self, entity: str, entity_id: str, attempts: int):
        super().__init__(
            f"Concurrent update conflict on {entity} {entity_id} after {attempts} attempts",
            "CONCURRENT_UPDATE",
            {"entity": entity, "entity_id": entity_id, "attempts": attempts},
        )


def to_http_exception(exc: StreamHubException) -> HTTPException:
    """Convert StreamHubException to FastAPI HTTPException"""
    return HTTPException(
        status_code=exc.status_code,
        detail={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details,
        },
    )
