# tests/test_search_images_tool.py
from unittest.mock import MagicMock

import pytest
import requests

from src.specs.agents.image import ImageResult
from src.tools.search_images_tool import ResponseCache, UnsplashImageSearch


def _response(status_code=200, payload=None, json_error=False):
    resp = MagicMock()
    resp.status_code = status_code
    if json_error:
        resp.json.side_effect = ValueError("bad json")
    else:
        resp.json.return_value = payload
    return resp


def _photo(regular="https://img/x.jpg", alt=None, description=None):
    return {
        "alt_description": alt,
        "description": description,
        "urls": {
            "raw": "https://img/raw.jpg",
            "full": "https://img/full.jpg",
            "regular": regular,
            "small": "https://img/small.jpg",
            "thumb": "https://img/thumb.jpg",
        },
    }


@pytest.fixture
def http():
    return MagicMock()


@pytest.fixture
def search(http):
    return UnsplashImageSearch("test-key", timeout=5, session=http)


def test_build_url_escapes_query():
    url = UnsplashImageSearch.build_url("coffee shop", page=3)
    assert url == (
        "https://api.unsplash.com/search/photos"
        "?query=coffee%20shop&per_page=1&page=3&orientation=landscape"
    )


def test_build_url_without_page_or_orientation():
    url = UnsplashImageSearch.build_url("bakery & café", orientation=None)
    assert url == "https://api.unsplash.com/search/photos?query=bakery%20%26%20caf%C3%A9&per_page=1"


def test_first_result_is_returned(search, http):
    http.get.return_value = _response(payload={"results": [_photo(alt="latte art")]})

    image = search.find_image("coffee shop", page=2)

    assert image == ImageResult(url="https://img/x.jpg", altText="latte art")
    args, kwargs = http.get.call_args
    assert "per_page=1" in args[0]
    assert kwargs["headers"]["Authorization"] == "Client-ID test-key"
    assert kwargs["timeout"] == 5


def test_alt_falls_back_to_topic(search, http):
    http.get.return_value = _response(payload={"results": [_photo(alt=None)]})
    image = search.find_image("coffee shop")
    assert image.altText == "coffee shop"


def test_alt_uses_description_when_alt_missing(search, http):
    http.get.return_value = _response(payload={"results": [_photo(alt=None, description="A cafe")]})
    assert search.find_image("coffee shop").altText == "A cafe"


def test_empty_results_is_absent(search, http):
    http.get.return_value = _response(payload={"results": []})
    assert search.find_image("coffee shop") is None


@pytest.mark.parametrize("status", [401, 403, 429, 500, 503])
def test_error_status_is_absent(search, http, status):
    http.get.return_value = _response(status_code=status, payload={"errors": ["nope"]})
    assert search.find_image("coffee shop") is None


def test_transport_error_is_absent(search, http):
    http.get.side_effect = requests.ConnectionError("boom")
    assert search.find_image("coffee shop") is None


def test_timeout_is_absent(search, http):
    http.get.side_effect = requests.Timeout("slow")
    assert search.find_image("coffee shop") is None


def test_invalid_json_is_absent(search, http):
    http.get.return_value = _response(json_error=True)
    assert search.find_image("coffee shop") is None


@pytest.mark.parametrize(
    "payload",
    [
        {"results": [{"urls": "https://img/x.jpg"}]},
        {"results": [{"urls": {"regular": 42}}]},
        {"results": ["https://img/x.jpg"]},
        {"results": {"urls": {}}},
        ["not", "an", "object"],
    ],
)
def test_malformed_payload_is_absent(search, http, payload):
    http.get.return_value = _response(payload=payload)
    assert search.find_image("coffee shop") is None
    assert len(search.cache) == 0


def test_non_string_alt_falls_back(search, http):
    photo = _photo(alt=7, description={"text": "x"})
    http.get.return_value = _response(payload={"results": [photo]})
    assert search.find_image("coffee shop").altText == "coffee shop"


def test_missing_access_key_skips_provider(http):
    search = UnsplashImageSearch(None, session=http)
    assert search.find_image("coffee shop") is None
    http.get.assert_not_called()


def test_successful_lookup_is_cached_per_query(search, http):
    http.get.return_value = _response(payload={"results": [_photo()]})

    first = search.find_image("coffee shop", page=1)
    second = search.find_image("coffee shop", page=1)
    other_page = search.find_image("coffee shop", page=2)

    assert first == second == other_page
    assert http.get.call_count == 2


def test_failed_lookup_is_not_cached(search, http):
    http.get.side_effect = [
        _response(status_code=503),
        _response(payload={"results": [_photo()]}),
    ]
    assert search.find_image("coffee shop", page=1) is None
    assert search.find_image("coffee shop", page=1) is not None
    assert http.get.call_count == 2


def test_cache_entries_expire():
    now = [1000.0]
    cache = ResponseCache(ttl_seconds=86400, clock=lambda: now[0])
    image = ImageResult(url="https://img/x.jpg", altText="x")

    cache.set("k", image)
    now[0] += 86399
    assert cache.get("k") == image
    now[0] += 1
    assert cache.get("k") is None
    assert len(cache) == 0


def test_cache_is_bounded():
    cache = ResponseCache(ttl_seconds=86400, max_entries=100)
    for i in range(5000):
        cache.set(f"k{i}", ImageResult(url=f"https://img/{i}.jpg", altText="x"))
    assert len(cache) == 100
    assert cache.get("k0") is None
    assert cache.get("k4999").url == "https://img/4999.jpg"


def test_cache_prunes_expired_before_evicting():
    now = [0.0]
    cache = ResponseCache(ttl_seconds=10, clock=lambda: now[0], max_entries=2)
    cache.set("old", ImageResult(url="https://img/old.jpg", altText="x"))
    now[0] = 5
    cache.set("fresh", ImageResult(url="https://img/fresh.jpg", altText="x"))
    now[0] = 11
    cache.set("new", ImageResult(url="https://img/new.jpg", altText="x"))
    assert len(cache) == 2
    assert cache.get("fresh") is not None
    assert cache.get("new") is not None


def test_from_env(monkeypatch):
    monkeypatch.setenv("UNSPLASH_ACCESS_KEY", "abc")
    monkeypatch.setenv("UNSPLASH_TIMEOUT_SECONDS", "3")
    monkeypatch.setenv("UNSPLASH_CACHE_TTL_SECONDS", "60")
    monkeypatch.setenv("UNSPLASH_CACHE_MAX_ENTRIES", "50")
    search = UnsplashImageSearch.from_env()
    assert search.access_key == "abc"
    assert search.timeout == 3.0
    assert search.cache.ttl_seconds == 60.0
    assert search.cache.max_entries == 50
