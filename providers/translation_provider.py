"""
Translation Provider Classes

Language detection, translation and language listing. Unlike the delivery
senders, translation providers raise TranslationError on failure: translation
errors must reach the caller rather than being swallowed.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import aiohttp

from core.exceptions import TranslationError
from core.logging_config import get_logger

logger = get_logger(__name__)

GOOGLE_TRANSLATE_URL = "https://translation.googleapis.com/language/translate/v2"

# Used when the provider is unavailable
DEFAULT_LANGUAGES: List[Dict[str, str]] = [
    {"code": "en", "name": "English"},
    {"code": "hi", "name": "Hindi"},
    {"code": "ta", "name": "Tamil"},
    {"code": "te", "name": "Telugu"},
    {"code": "kn", "name": "Kannada"},
    {"code": "ml", "name": "Malayalam"},
    {"code": "bn", "name": "Bengali"},
    {"code": "gu", "name": "Gujarati"},
    {"code": "mr", "name": "Marathi"},
    {"code": "pa", "name": "Punjabi"},
    {"code": "ur", "name": "Urdu"},
    {"code": "es", "name": "Spanish"},
    {"code": "fr", "name": "French"},
    {"code": "de", "name": "German"},
    {"code": "ja", "name": "Japanese"},
    {"code": "ko", "name": "Korean"},
    {"code": "zh", "name": "Chinese"},
    {"code": "ar", "name": "Arabic"},
    {"code": "ru", "name": "Russian"},
    {"code": "pt", "name": "Portuguese"},
]


class TranslationProvider(ABC):
    """Abstract base class for translation providers"""

    @abstractmethod
    async def detect(self, text: str) -> str:
        """Detect the language code of text"""
        pass

    @abstractmethod
    async def translate(
        self, text: str, target_language: str, source_language: Optional[str] = None
    ) -> str:
        """Translate text into target_language"""
        pass

    @abstractmethod
    async def list_languages(self) -> List[Dict[str, str]]:
        """List supported languages as [{code, name}]"""
        pass

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        pass


class GoogleTranslateProvider(TranslationProvider):
    """Google Cloud Translation (v2 REST) provider"""

    def __init__(self, api_key: Optional[str], timeout: float = 10.0):
        self.api_key = api_key
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _request(
        self, method: str, path: str, data: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        if not self.is_configured:
            raise TranslationError("Google Translate API key not configured")

        url = f"{GOOGLE_TRANSLATE_URL}{path}"
        params = {"key": self.api_key}
        try:
            async with aiohttp.ClientSession() as session:
                async with session.request(
                    method,
                    url,
                    params=params,
                    data=data,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    payload = await response.json(content_type=None)
                    if response.status != 200:
                        message = payload.get("error", {}).get("message", "unknown error")
                        raise TranslationError(f"HTTP {response.status}: {message}")
                    return payload["data"]
        except TranslationError:
            raise
        except Exception as e:
            raise TranslationError(str(e)) from e

    async def detect(self, text: str) -> str:
        data = await self._request("POST", "/detect", {"q": text})
        try:
            return data["detections"][0][0]["language"]
        except (KeyError, IndexError) as e:
            raise TranslationError(f"Malformed detection response: {e}") from e

    async def translate(
        self, text: str, target_language: str, source_language: Optional[str] = None
    ) -> str:
        form = {"q": text, "target": target_language, "format": "text"}
        if source_language:
            form["source"] = source_language

        data = await self._request("POST", "", form)
        try:
            return data["translations"][0]["translatedText"]
        except (KeyError, IndexError) as e:
            raise TranslationError(
                f"Malformed translation response: {e}", target_language
            ) from e

    async def list_languages(self) -> List[Dict[str, str]]:
        data = await self._request("POST", "/languages", {"target": "en"})
        return [
            {"code": lang["language"], "name": lang.get("name", lang["language"])}
            for lang in data.get("languages", [])
        ]
