"""
Runtime configuration for the StreamHub policy engine.

Every setting is read from the environment, with development-friendly defaults,
so the same code runs unchanged in local, test and production deployments.

Key Components:
- `Settings`: An immutable snapshot of the configuration values.
- `load_settings`: Builds a `Settings` instance from the current environment.
- `get_settings` / `init_settings`: Accessors for the process-wide instance.

The OTP delivery fallback is the one security-relevant switch here: when it is
left unset it follows `ENVIRONMENT`, and production never falls back.
"""

import os
from dataclasses import dataclass
from typing import Optional


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


@dataclass(frozen=True)
class Settings:
    environment: str = "development"
    log_level: str = "INFO"
    app_name: str = "StreamHub"

    database_url: str = "sqlite+aiosqlite:///./streamhub_policy.db"
    cache_backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"

    timezone: str = "Asia/Kolkata"
    theme_rule: str = "all"

    otp_ttl_seconds: int = 600
    otp_retention_seconds: int = 3600
    otp_delivery_fallback: bool = True

    delivery_timeout_seconds: float = 8.0
    translation_timeout_seconds: float = 10.0
    geo_timeout_seconds: float = 5.0

    default_country: str = "IN"
    default_country_code: str = "91"

    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_from: Optional[str] = None

    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_from_number: Optional[str] = None

    google_translate_api_key: Optional[str] = None
    geo_lookup_url: str = "http://ip-api.com/json/{ip}"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


def load_settings() -> Settings:
    """Build settings from environment variables"""
    environment = os.getenv("ENVIRONMENT", "development")
    smtp_user = os.getenv("SMTP_USER") or None

    return Settings(
        environment=environment,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        app_name=os.getenv("APP_NAME", "StreamHub"),
        database_url=os.getenv(
            "DATABASE_URL", "sqlite+aiosqlite:///./streamhub_policy.db"
        ),
        cache_backend=os.getenv("CACHE_BACKEND", "memory").lower(),
        redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
        timezone=os.getenv("APP_TIMEZONE", "Asia/Kolkata"),
        theme_rule=os.getenv("THEME_RULE", "all").lower(),
        otp_ttl_seconds=_env_int("OTP_TTL_SECONDS", 600),
        otp_retention_seconds=_env_int("OTP_RETENTION_SECONDS", 3600),
        # Strict (no fallback) in production unless explicitly overridden
        otp_delivery_fallback=_env_bool(
            "OTP_DELIVERY_FALLBACK", environment.lower() != "production"
        ),
        delivery_timeout_seconds=_env_float("DELIVERY_TIMEOUT_SECONDS", 8.0),
        translation_timeout_seconds=_env_float("TRANSLATION_TIMEOUT_SECONDS", 10.0),
        geo_timeout_seconds=_env_float("GEO_TIMEOUT_SECONDS", 5.0),
        default_country=os.getenv("DEFAULT_COUNTRY", "IN"),
        default_country_code=os.getenv("DEFAULT_COUNTRY_CODE", "91").lstrip("+"),
        smtp_host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
        smtp_port=_env_int("SMTP_PORT", 587),
        smtp_user=smtp_user,
        smtp_password=os.getenv("SMTP_PASSWORD") or None,
        smtp_from=os.getenv("SMTP_FROM") or smtp_user,
        twilio_account_sid=os.getenv("TWILIO_ACCOUNT_SID") or None,
        twilio_auth_token=os.getenv("TWILIO_AUTH_TOKEN") or None,
        twilio_from_number=os.getenv("TWILIO_FROM_NUMBER") or None,
        google_translate_api_key=os.getenv("GOOGLE_TRANSLATE_API_KEY") or None,
        geo_lookup_url=os.getenv("GEO_LOOKUP_URL", "http://ip-api.com/json/{ip}"),
    )


# Global settings instance
settings = None


def get_settings() -> Settings:
    """Get the global settings instance, loading it on first use."""
    global settings
    if settings is None:
        settings = load_settings()
    return settings


def init_settings(override: Optional[Settings] = None) -> Settings:
    """Reload settings from the environment, or install an explicit instance."""
    global settings
    settings = override if override is not None else load_settings()
    return settings
