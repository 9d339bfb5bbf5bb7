"""
Health and Monitoring Router.

Public, unauthenticated endpoints for automated health monitoring (container
probes, uptime checkers).

Endpoints Provided:
- `/healthcheck`: Lightweight liveness check.
- `/monitoring/ping`: Connectivity test.
- `/monitoring/detailed`: Component status for the comment store, the
  key-value store and the configured providers. A failing component reports
  the service as "degraded" rather than failing the request.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter

from core.cache import get_cache
from core.config import get_settings
from core.database import get_database_info
from core.logging_config import get_logger
from services.registry import get_services

logger = get_logger(__name__)

SERVICE_NAME = "StreamHub Policy Engine"
VERSION = "1.0.0"

health_router = APIRouter(tags=["Health & Monitoring"])

monitoring_router = APIRouter(prefix="/monitoring", tags=["Health & Monitoring"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@health_router.get("/healthcheck")
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint (no authentication required)

    Returns:
        Dict with status, timestamp, and version info
    """
    logger.debug("Health check requested")

    return {
        "status": "healthy",
        "timestamp": _now(),
        "version": VERSION,
        "service": SERVICE_NAME,
    }


@monitoring_router.get("/ping")
async def ping() -> Dict[str, str]:
    """Simple ping endpoint for connectivity testing"""
    logger.debug("Ping requested")
    return {"message": "pong", "timestamp": _now(), "version": VERSION}


@monitoring_router.get("/detailed")
async def detailed_health_check() -> Dict[str, Any]:
    """Detailed health check with component status"""
    logger.info("Detailed health check requested")

    health_status: Dict[str, Any] = {
        "status": "healthy",
        "timestamp": _now(),
        "version": VERSION,
        "service": SERVICE_NAME,
        "environment": get_settings().environment,
        "components": {},
    }
    components = health_status["components"]

    try:
        db_info = await get_database_info()
        components["database"] = {
            "status": "healthy" if db_info["connection_healthy"] else "unhealthy",
            "info": db_info,
        }
        if not db_info["connection_healthy"]:
            health_status["status"] = "degraded"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        components["database"] = {"status": "unhealthy", "error": str(e)}
        health_status["status"] = "degraded"

    try:
        cache_health = await get_cache().health_check()
        components["key_value_store"] = cache_health
        if cache_health.get("status") != "healthy":
            health_status["status"] = "degraded"
    except Exception as e:
        logger.warning(f"Key-value store health check failed: {e}")
        components["key_value_store"] = {"status": "unavailable", "error": str(e)}
        health_status["status"] = "degraded"

    # Unconfigured providers are reported but do not degrade the service
    try:
        services = get_services()
        verification = services.verification
        components["providers"] = {
            "email": verification.email_sender.is_configured,
            "sms": verification.sms_sender.is_configured,
            "translation": services.translations.provider.is_configured,
            "geo": services.locations.geo_provider.source_name,
        }
        components["policy"] = {
            "theme_rule": services.themes.rule.name,
            "otp_delivery_fallback": services.settings.otp_delivery_fallback,
        }
    except Exception as e:
        logger.warning(f"Service registry check failed (non-critical): {e}")
        components["providers"] = {"status": "unavailable", "error": str(e)}

    return health_status
