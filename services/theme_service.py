"""
Theme Policy Service.

Decides between the light and dark theme from the caller's region and the
local time of day. Two conditions are evaluated for every request:

- southern: the effective location's region is one of the southern states;
- light hours: the local hour is in [10, 12).

How the conditions combine is a named rule:

- ``all`` (default): light only when both conditions hold.
- ``any``: light when either condition holds.
- ``anonymous_only``: ``all`` for anonymous visitors, dark for signed-in users.

A theme the user picked explicitly always wins; the policy only runs when
there is no stored preference. Decisions are recomputed per request and carry
a human-readable reason naming the conditions that held or failed.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Optional, Tuple
from zoneinfo import ZoneInfo

from core.exceptions import ValidationError
from core.logging_config import get_logger
from core.models import Location, Theme, ThemeDecision, utcnow
from services.region_classifier import RegionClassifier

logger = get_logger(__name__)

LIGHT_START_HOUR = 10
LIGHT_END_HOUR = 12

SOUTHERN_OK = "Southern India location (TN/KL/KA/AP/TG)"
SOUTHERN_FAILED = "Not in Southern India (requires TN/KL/KA/AP/TG)"


def _time_ok(clock: str) -> str:
    return f"time is between 10 AM-12 PM (current: {clock})"


def _time_failed(clock: str) -> str:
    return f"time is outside 10 AM-12 PM range (current: {clock})"


def _sentence(text: str) -> str:
    return text[:1].upper() + text[1:]


class ThemeRule(ABC):
    """Combines the two theme conditions into a theme and a reason"""

    name: str = ""

    @abstractmethod
    def evaluate(
        self, is_southern: bool, in_light_hours: bool, authenticated: bool, clock: str
    ) -> Tuple[Theme, str]:
        pass


class AllConditionsRule(ThemeRule):
    name = "all"

    def evaluate(self, is_southern, in_light_hours, authenticated, clock):
        if is_southern and in_light_hours:
            return Theme.LIGHT, f"{SOUTHERN_OK} and {_time_ok(clock)}"
        if not is_southern and not in_light_hours:
            return Theme.DARK, f"{SOUTHERN_FAILED} and {_time_failed(clock)}"
        if not is_southern:
            return Theme.DARK, SOUTHERN_FAILED
        return Theme.DARK, _sentence(_time_failed(clock))


class AnyConditionRule(ThemeRule):
    name = "any"

    def evaluate(self, is_southern, in_light_hours, authenticated, clock):
        if is_southern and in_light_hours:
            return Theme.LIGHT, f"{SOUTHERN_OK} and {_time_ok(clock)}"
        if is_southern:
            return Theme.LIGHT, SOUTHERN_OK
        if in_light_hours:
            return Theme.LIGHT, _sentence(_time_ok(clock))
        return Theme.DARK, f"{SOUTHERN_FAILED} and {_time_failed(clock)}"


class AnonymousOnlyRule(AllConditionsRule):
    name = "anonymous_only"

    def evaluate(self, is_southern, in_light_hours, authenticated, clock):
        if authenticated:
            return Theme.DARK, "Signed-in users always receive the dark theme"
        return super().evaluate(is_southern, in_light_hours, authenticated, clock)


THEME_RULES: Dict[str, ThemeRule] = {
    rule.name: rule for rule in (AllConditionsRule(), AnyConditionRule(), AnonymousOnlyRule())
}


def get_theme_rule(name: str) -> ThemeRule:
    try:
        return THEME_RULES[name]
    except KeyError:
        raise ValidationError("theme_rule", name, f"Must be one of: {', '.join(THEME_RULES)}")


class ThemePolicy:
    """Computes theme decisions from location and local time"""

    def __init__(
        self,
        classifier: RegionClassifier,
        rule: str = "all",
        timezone: str = "Asia/Kolkata",
    ):
        self.classifier = classifier
        self.rule = get_theme_rule(rule)
        self.zone = ZoneInfo(timezone)

    def _local(self, now: Optional[datetime]) -> datetime:
        if now is None:
            return datetime.now(self.zone)
        # Naive datetimes are taken as already local
        if now.tzinfo is None:
            return now
        return now.astimezone(self.zone)

    @staticmethod
    def in_light_hours(hour: int) -> bool:
        return LIGHT_START_HOUR <= hour < LIGHT_END_HOUR

    def decide(
        self,
        location: Optional[Location],
        now: Optional[datetime] = None,
        authenticated: bool = False,
    ) -> ThemeDecision:
        local = self._local(now)
        is_southern = location is not None and self.classifier.is_southern(location.region)
        light_hours = self.in_light_hours(local.hour)

        theme, reason = self.rule.evaluate(
            is_southern, light_hours, authenticated, f"{local.hour}:{local.minute:02d}"
        )

        logger.debug(
            f"Theme determined: {theme.value}",
            extra={
                "rule": self.rule.name,
                "region": location.region if location else None,
                "hour": local.hour,
                "is_southern": is_southern,
                "in_light_hours": light_hours,
            },
        )

        return ThemeDecision(
            theme=theme,
            reason=reason,
            computed_at=utcnow(),
            hour=local.hour,
            is_southern=is_southern,
            in_light_hours=light_hours,
            location=location,
        )

    def resolve(
        self,
        location: Optional[Location],
        now: Optional[datetime] = None,
        preference: Optional[str] = None,
        authenticated: bool = False,
    ) -> ThemeDecision:
        """Return the user's stored preference if any, else the computed decision"""
        if preference:
            try:
                chosen = Theme(preference.lower())
            except ValueError:
                logger.warning(f"Ignoring unknown theme preference: {preference!r}")
            else:
                return ThemeDecision(
                    theme=chosen,
                    reason="Theme chosen by the user",
                    computed_at=utcnow(),
                    source="preference",
                    location=location,
                )

        return self.decide(location, now=now, authenticated=authenticated)
