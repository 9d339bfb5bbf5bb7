"""
Geo Lookup Provider Classes

Maps an IP address to a raw location dictionary. Providers return None on a
lookup miss and raise GeoLookupError when the lookup service cannot be reached.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import aiohttp

from core.exceptions import GeoLookupError
from core.logging_config import get_logger

logger = get_logger(__name__)


class GeoProvider(ABC):
    """Abstract base class for geo lookup providers"""

    @abstractmethod
    async def lookup(self, ip_address: str) -> Optional[Dict[str, Any]]:
        """
        Return {country, region, city, lat, lon} for an IP, or None when the
        address is unknown to the provider.
        """
        pass

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Source identifier for this provider"""
        pass


class IPApiGeoProvider(GeoProvider):
    """Geo lookup backed by the ip-api.com JSON endpoint"""

    def __init__(self, url_template: str = "http://ip-api.com/json/{ip}", timeout: float = 5.0):
        self.url_template = url_template
        self.timeout = timeout

    @property
    def source_name(self) -> str:
        return "ip-api"

    async def lookup(self, ip_address: str) -> Optional[Dict[str, Any]]:
        url = self.url_template.format(ip=ip_address)
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    url, timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    if response.status != 200:
                        raise GeoLookupError(ip_address, f"HTTP {response.status}")
                    data = await response.json(content_type=None)
        except GeoLookupError:
            raise
        except Exception as e:
            raise GeoLookupError(ip_address, str(e)) from e

        if data.get("status") != "success":
            logger.debug(f"No geo data for {ip_address}: {data.get('message')}")
            return None

        return {
            "country": data.get("countryCode"),
            "region": data.get("regionName") or data.get("region"),
            "city": data.get("city"),
            "lat": data.get("lat"),
            "lon": data.get("lon"),
        }
