"""
Location Resolution Service.

Turns a client IP or a user-declared address into a `Location`.

Resolution rules:
- Loopback, private and link-local addresses (and the literal "localhost")
  resolve to the placeholder location: default country, region "Unknown".
- Public addresses are looked up through a `GeoProvider`. A miss, an invalid
  address or a provider failure resolves to None; callers apply defaults.
- No retries and no caching: a resolution is a function of its input at call
  time.
"""

from typing import Optional

from fastapi import Request

from core.exceptions import GeoLookupError, ValidationError
from core.logging_config import get_logger
from core.middleware import get_client_ip
from core.models import Location
from core.validation import InputValidator
from providers.geo_provider import GeoProvider

logger = get_logger(__name__)


class LocationResolver:
    """Resolves request IPs and declared addresses to locations"""

    def __init__(self, geo_provider: GeoProvider, default_country: str = "IN"):
        self.geo_provider = geo_provider
        self.default_country = default_country

    async def resolve(self, ip_address: Optional[str]) -> Optional[Location]:
        """Resolve an IP address; None when nothing is known about it"""
        if not ip_address or ip_address == "unknown":
            return None

        if ip_address.strip().lower() == "localhost":
            return Location.placeholder(self.default_country)

        try:
            ip = InputValidator.parse_ip_address(ip_address)
        except ValidationError:
            logger.warning(f"Cannot resolve malformed IP address: {ip_address!r}")
            return None

        if InputValidator.is_local_address(ip):
            return Location.placeholder(self.default_country)

        try:
            geo = await self.geo_provider.lookup(str(ip))
        except GeoLookupError as e:
            logger.warning(f"Geo lookup failed, continuing without location: {e}")
            return None

        if not geo:
            logger.debug(f"No location found for {ip}")
            return None

        return Location(
            country=geo.get("country"),
            region=geo.get("region"),
            city=geo.get("city"),
            latitude=geo.get("lat"),
            longitude=geo.get("lon"),
        )

    async def resolve_request(self, request: Request) -> Optional[Location]:
        """Resolve the location of the client that sent a request"""
        return await self.resolve(get_client_ip(request))

    def resolve_address(
        self,
        region: Optional[str],
        city: Optional[str] = None,
        country: Optional[str] = None,
    ) -> Optional[Location]:
        """Build a location from a user-declared address"""
        region = region.strip() if region else None
        city = city.strip() if city else None
        if not region and not city:
            return None

        return Location(
            country=(country or self.default_country).strip(),
            region=region,
            city=city,
        )

    def effective_location(
        self,
        request_location: Optional[Location],
        user_location: Optional[Location] = None,
    ) -> Location:
        """
        Pick the location policies should use.

        A signed-in user's registered location wins when its region is known,
        then the location resolved for the request, then the placeholder.
        """
        if user_location is not None and user_location.has_known_region:
            return user_location
        if request_location is not None:
            return request_location
        return Location.placeholder(self.default_country)
