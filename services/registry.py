"""
Service registry.

Builds the policy services and their providers once from `Settings` and
exposes them through the same global-accessor pattern as the cache.
"""

from dataclasses import dataclass
from typing import Optional

from core.cache import CacheManager, get_cache
from core.config import Settings, get_settings
from core.logging_config import get_logger
from providers.email_provider import SMTPEmailSender
from providers.geo_provider import IPApiGeoProvider
from providers.sms_provider import TwilioSMSSender
from providers.translation_provider import GoogleTranslateProvider
from services.comment_repository import CommentRepository
from services.comment_service import CommentService
from services.location_service import LocationResolver
from services.moderation_service import CommentModerationPipeline
from services.region_classifier import RegionClassifier
from services.theme_service import ThemePolicy
from services.translation_service import TranslationCache
from services.verification_service import VerificationRouter

logger = get_logger(__name__)


@dataclass
class PolicyServices:
    settings: Settings
    classifier: RegionClassifier
    locations: LocationResolver
    themes: ThemePolicy
    verification: VerificationRouter
    comments: CommentService
    translations: TranslationCache


def build_services(
    settings: Settings,
    cache: CacheManager,
    repository: Optional[CommentRepository] = None,
) -> PolicyServices:
    """Wire providers and policy objects for the given settings"""
    classifier = RegionClassifier()
    repository = repository or CommentRepository()
    pipeline = CommentModerationPipeline()

    translator = GoogleTranslateProvider(
        settings.google_translate_api_key, timeout=settings.translation_timeout_seconds
    )
    email_sender = SMTPEmailSender(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_user,
        password=settings.smtp_password,
        from_address=settings.smtp_from,
        timeout=settings.delivery_timeout_seconds,
    )
    sms_sender = TwilioSMSSender(
        account_sid=settings.twilio_account_sid,
        auth_token=settings.twilio_auth_token,
        from_number=settings.twilio_from_number,
        timeout=settings.delivery_timeout_seconds,
    )

    if not email_sender.is_configured:
        logger.warning("SMTP credentials not configured; email delivery will fail")
    if not sms_sender.is_configured:
        logger.warning("Twilio credentials not configured; SMS delivery will fail")
    if not translator.is_configured:
        logger.warning("Translation API key not configured; translations are unavailable")

    return PolicyServices(
        settings=settings,
        classifier=classifier,
        locations=LocationResolver(
            IPApiGeoProvider(settings.geo_lookup_url, timeout=settings.geo_timeout_seconds),
            default_country=settings.default_country,
        ),
        themes=ThemePolicy(classifier, rule=settings.theme_rule, timezone=settings.timezone),
        verification=VerificationRouter(
            store=cache.backend,
            classifier=classifier,
            email_sender=email_sender,
            sms_sender=sms_sender,
            settings=settings,
        ),
        comments=CommentService(
            repository,
            pipeline=pipeline,
            translation_provider=translator,
            detect_timeout=settings.translation_timeout_seconds,
        ),
        translations=TranslationCache(
            translator,
            repository,
            cache=cache,
            timeout=settings.translation_timeout_seconds,
        ),
    )


# Global services instance
services = None


def get_services() -> PolicyServices:
    """Get the global services instance, building it on first use."""
    global services
    if services is None:
        services = build_services(get_settings(), get_cache())
    return services


def init_services(
    settings: Optional[Settings] = None, cache: Optional[CacheManager] = None
) -> PolicyServices:
    """Build the global services instance from explicit settings and cache."""
    global services
    services = build_services(settings or get_settings(), cache or get_cache())
    logger.info(
        f"Policy services initialized (theme rule: {services.themes.rule.name}, "
        f"delivery fallback: {services.settings.otp_delivery_fallback})"
    )
    return services
