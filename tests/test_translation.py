import httpx
import pytest

from app.services import translation_service
from app.services.translation_service import BoundedCache, TranslationService, detect_language


class TestBoundedCache:
    def test_evicts_least_recently_used(self):
        cache = BoundedCache(2)
        cache.set("a", "1")
        cache.set("b", "2")
        assert cache.get("a") == "1"  # a is now the most recent

        cache.set("c", "3")

        assert "b" not in cache
        assert "a" in cache
        assert "c" in cache
        assert len(cache) == 2

    def test_counts_hits_and_misses(self):
        cache = BoundedCache(5)
        cache.set("k", "v")
        cache.get("k")
        cache.get("missing")
        assert (cache.hits, cache.misses) == (1, 1)

        cache.clear()
        assert len(cache) == 0
        assert (cache.hits, cache.misses) == (0, 0)

    def test_size_must_be_positive(self):
        with pytest.raises(ValueError):
            BoundedCache(0)


@pytest.mark.parametrize("text, expected", [
    ("Trim the hedges", "en"),
    ("قص العشب", "ar"),
    ("ঘাস কাটা", "bn"),
    ("", "en"),
])
def test_detect_language(text, expected):
    assert detect_language(text) == expected


class FakeTransport:
    def __init__(self, translated="قص العشب", status=200):
        self.calls = 0
        self.translated = translated
        self.status = status

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        return httpx.Response(self.status, json={"responseData": {"translatedText": self.translated}})


@pytest.fixture
def mymemory(monkeypatch):
    """Route the service's httpx.Client through an in-memory transport."""
    transport = FakeTransport()
    real_client = httpx.Client

    def client_factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(transport)
        return real_client(*args, **kwargs)

    monkeypatch.setattr(translation_service.httpx, "Client", client_factory)
    return transport


class TestTranslationService:
    def test_translates_and_caches(self, mymemory):
        service = TranslationService(cache_size=10, enabled=True)

        assert service.translate("Mow the lawn", "ar") == "قص العشب"
        assert service.translate("Mow the lawn", "ar") == "قص العشب"

        assert mymemory.calls == 1
        stats = service.stats()
        assert stats["size"] == 1
        assert stats["hits"] == 1
        assert stats["usage_percentage"] == 10.0

    def test_same_language_passthrough(self, mymemory):
        service = TranslationService(cache_size=10, enabled=True)
        assert service.translate("Mow the lawn", "en", "en") == "Mow the lawn"
        assert mymemory.calls == 0

    def test_disabled_passthrough(self, mymemory):
        service = TranslationService(cache_size=10, enabled=False)
        assert service.translate("Mow the lawn", "ar") == "Mow the lawn"
        assert mymemory.calls == 0

    def test_upstream_failure_returns_original(self, mymemory):
        mymemory.status = 503
        service = TranslationService(cache_size=10, enabled=True)
        assert service.translate("Mow the lawn", "bn") == "Mow the lawn"
        assert len(service.cache) == 0

    def test_batch(self, mymemory):
        service = TranslationService(cache_size=10, enabled=True)
        assert service.translate_batch(["a", "b"], "ar") == ["قص العشب", "قص العشب"]
        assert mymemory.calls == 2

    def test_instances_do_not_share_a_cache(self, mymemory):
        first = TranslationService(cache_size=10, enabled=True)
        second = TranslationService(cache_size=10, enabled=True)
        first.translate("Mow the lawn", "ar")
        assert len(second.cache) == 0


class TestApi:
    def test_detects_source(self, client, worker_headers):
        resp = client.post("/api/v1/translate", json={"text": "قص العشب", "target": "en"}, headers=worker_headers)
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["source"] == "ar"
        # translation is disabled in tests, so the text comes back unchanged
        assert data["translation"] == "قص العشب"

    def test_unsupported_target(self, client, worker_headers):
        resp = client.post("/api/v1/translate", json={"text": "hi", "target": "fr"}, headers=worker_headers)
        assert resp.status_code == 400

    def test_cache_endpoints_are_admin_only(self, client, admin_headers, worker_headers):
        assert client.get("/api/v1/translate/cache", headers=worker_headers).status_code == 403
        stats = client.get("/api/v1/translate/cache", headers=admin_headers).json()["data"]
        assert stats["max_size"] == 100
        assert client.delete("/api/v1/translate/cache", headers=admin_headers).status_code == 200
