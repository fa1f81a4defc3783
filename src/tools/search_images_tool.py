from typing import Any, Callable, Dict, Optional, Tuple
import os
import threading
import time
from urllib.parse import urlencode, quote

import requests
from pydantic import ValidationError

from src.specs.agents.image import ImageResult
from src.specs.common.errors import ConfigurationError, ImageLookupFailed
from src.shared.logging_utils import info as log_info, warning as log_warning


UNSPLASH_SEARCH_ENDPOINT = "https://api.unsplash.com/search/photos"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_CACHE_TTL_SECONDS = 86400.0
DEFAULT_CACHE_MAX_ENTRIES = 1000


class ResponseCache:
    """Thread-safe in-process TTL cache keyed by the exact request URL.

    Holds at most ``max_entries`` results. When a write goes over the bound,
    expired entries are pruned first, then the oldest writes are evicted.
    """

    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = DEFAULT_CACHE_MAX_ENTRIES,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max(1, max_entries)
        self._clock = clock
        self._entries: Dict[str, Tuple[ImageResult, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[ImageResult]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: ImageResult) -> None:
        with self._lock:
            now = self._clock()
            # re-insert so dict order stays oldest-write first
            self._entries.pop(key, None)
            self._entries[key] = (value, now + self.ttl_seconds)
            if len(self._entries) > self.max_entries:
                self._prune(now)

    def _prune(self, now: float) -> None:
        expired = [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]
        for k in expired:
            del self._entries[k]
        overflow = len(self._entries) - self.max_entries
        if overflow > 0:
            for k in list(self._entries)[:overflow]:
                del self._entries[k]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class UnsplashImageSearch:
    """Best-effort lookup of one stock photo per topic via Unsplash search.

    ``find_image`` never raises: any failure resolves to ``None``.
    """

    def __init__(
        self,
        access_key: Optional[str],
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        cache: Optional[ResponseCache] = None,
        session: Optional[Any] = None,
    ) -> None:
        self.access_key = access_key
        self.timeout = timeout
        self.cache = cache if cache is not None else ResponseCache(DEFAULT_CACHE_TTL_SECONDS)
        self._http = session or requests

    @classmethod
    def from_env(cls) -> "UnsplashImageSearch":
        try:
            timeout = float(os.getenv("UNSPLASH_TIMEOUT_SECONDS") or DEFAULT_TIMEOUT_SECONDS)
            ttl = float(os.getenv("UNSPLASH_CACHE_TTL_SECONDS") or DEFAULT_CACHE_TTL_SECONDS)
            max_entries = int(os.getenv("UNSPLASH_CACHE_MAX_ENTRIES") or DEFAULT_CACHE_MAX_ENTRIES)
        except ValueError as exc:
            raise ConfigurationError("Unsplash timeout/cache settings must be numbers") from exc
        cache = ResponseCache(ttl, max_entries=max_entries)
        return cls(os.getenv("UNSPLASH_ACCESS_KEY"), timeout=timeout, cache=cache)

    @staticmethod
    def build_url(query: str, *, page: Optional[int] = None, orientation: Optional[str] = "landscape") -> str:
        params: Dict[str, Any] = {"query": query, "per_page": 1}
        if page is not None:
            params["page"] = page
        if orientation:
            params["orientation"] = orientation
        # quote (not quote_plus) so "coffee shop" becomes coffee%20shop
        return f"{UNSPLASH_SEARCH_ENDPOINT}?{urlencode(params, quote_via=quote)}"

    def _search(self, url: str, query: str) -> Optional[ImageResult]:
        headers = {
            "Authorization": f"Client-ID {self.access_key}",
            "Accept-Version": "v1",
        }
        try:
            r = self._http.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ImageLookupFailed("Image search request failed", details={"error": str(exc)}) from exc
        if not 200 <= r.status_code < 300:
            raise ImageLookupFailed("Image search returned an error status", details={"status": r.status_code})
        try:
            data = r.json()
        except ValueError as exc:
            raise ImageLookupFailed("Image search returned invalid JSON") from exc

        try:
            return self._first_image(data, query)
        except (AttributeError, TypeError, ValidationError) as exc:
            raise ImageLookupFailed("Image search returned an unexpected payload", details={"error": str(exc)}) from exc

    @staticmethod
    def _first_image(data: Any, query: str) -> Optional[ImageResult]:
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list) or not results or not isinstance(results[0], dict):
            return None
        first = results[0]
        urls = first.get("urls")
        if not isinstance(urls, dict):
            return None
        image_url = next(
            (u for u in (urls.get(k) for k in ("regular", "small", "full")) if isinstance(u, str) and u),
            None,
        )
        if image_url is None:
            return None
        alt = next(
            (a for a in (first.get("alt_description"), first.get("description")) if isinstance(a, str) and a),
            query,
        )
        return ImageResult(url=image_url, altText=alt)

    def find_image(
        self,
        query: str,
        page: Optional[int] = None,
        orientation: Optional[str] = "landscape",
        *,
        request_id: Optional[str] = None,
    ) -> Optional[ImageResult]:
        if not self.access_key:
            log_warning(request_id, "images:disabled", reason="UNSPLASH_ACCESS_KEY not set")
            return None
        if not query:
            return None

        url = self.build_url(query, page=page, orientation=orientation)
        cached = self.cache.get(url)
        if cached is not None:
            log_info(request_id, "images:cache_hit", query=query, page=page)
            return cached

        try:
            image = self._search(url, query)
        except ImageLookupFailed as exc:
            log_warning(request_id, "images:lookup_failed", query=query, page=page, **exc.details)
            return None

        if image is None:
            log_info(request_id, "images:no_results", query=query, page=page)
            return None
        self.cache.set(url, image)
        return image


__all__ = ["ResponseCache", "UnsplashImageSearch", "UNSPLASH_SEARCH_ENDPOINT"]
