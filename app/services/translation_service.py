"""Text translation through the MyMemory API with an in-process LRU cache."""

import logging
import re
import threading
from collections import OrderedDict

import httpx

from app.config import settings

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES = ("en", "ar", "bn")

ARABIC = re.compile(r"[\u0600-\u06FF]")
BENGALI = re.compile(r"[\u0980-\u09FF]")


class BoundedCache:
    """Thread-safe LRU mapping; inserting past ``max_size`` evicts the least recently used key."""

    def __init__(self, max_size: int):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self._data: OrderedDict[str, str] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> str | None:
        with self._lock:
            if key not in self._data:
                self.misses += 1
                return None
            self._data.move_to_end(key)
            self.hits += 1
            return self._data[key]

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value
            self._data.move_to_end(key)
            while len(self._data) > self.max_size:
                self._data.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: str) -> bool:
        return key in self._data


def detect_language(text: str) -> str:
    if not text or not text.strip():
        return "en"
    if ARABIC.search(text):
        return "ar"
    if BENGALI.search(text):
        return "bn"
    return "en"


class TranslationService:
    def __init__(self, cache_size: int | None = None, api_url: str | None = None, enabled: bool | None = None):
        self.cache = BoundedCache(cache_size or settings.TRANSLATION_CACHE_SIZE)
        self.api_url = api_url or settings.TRANSLATION_API_URL
        self.enabled = settings.ENABLE_TRANSLATION if enabled is None else enabled

    @staticmethod
    def _key(text: str, source: str, target: str) -> str:
        return f"{text}|{source}|{target}"

    def _fetch(self, text: str, source: str, target: str) -> str | None:
        try:
            with httpx.Client(timeout=10.0) as client:
                resp = client.get(self.api_url, params={"q": text, "langpair": f"{source}|{target}"})
                resp.raise_for_status()
                body = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Translation %s->%s failed: %s", source, target, e)
            return None
        return (body.get("responseData") or {}).get("translatedText") or None

    def translate(self, text: str, target: str, source: str = "en") -> str:
        """Translate ``text``; falls back to the input whenever translation is unavailable."""
        if not text or not text.strip() or source == target or not self.enabled:
            return text

        key = self._key(text, source, target)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        translated = self._fetch(text, source, target)
        if translated is None:
            return text
        self.cache.set(key, translated)
        return translated

    def translate_batch(self, texts: list[str], target: str, source: str = "en") -> list[str]:
        return [self.translate(t, target, source) for t in texts]

    def stats(self) -> dict:
        size = len(self.cache)
        return {
            "size": size,
            "max_size": self.cache.max_size,
            "usage_percentage": round(size / self.cache.max_size * 100, 2),
            "hits": self.cache.hits,
            "misses": self.cache.misses,
            "enabled": self.enabled,
        }

    def clear(self) -> None:
        self.cache.clear()
        logger.info("Translation cache cleared")
