"""
Tests for the in-process cache helpers.
"""

from orgadmin.core import cache
from orgadmin.core.cache import cache_clear, cache_get, cache_set, make_key


def test_make_key():
    assert make_key("org", "stats:overall") == "org:stats:overall"


def test_set_get_and_ttl():
    cache_set("org:a", {"total": 1}, ttl=60)
    assert cache_get("org:a") == {"total": 1}

    cache_set("org:b", "gone", ttl=0)
    assert cache_get("org:b") is None

    cache_set("org:c", "kept")
    assert cache_get("org:c") == "kept"
    assert cache_get("missing") is None


def test_clear_by_namespace():
    cache_set(make_key("org", "stats"), 1)
    cache_set(make_key("api", "stats:today"), 2)

    cache_clear("org")
    assert cache_get("org:stats") is None
    assert cache_get("api:stats:today") == 2

    cache_clear()
    assert cache_get("api:stats:today") is None


def test_clear_tolerates_keys_removed_meanwhile(monkeypatch):
    class VanishingStore(dict):
        # A key listed here is already gone, as when a reader on another
        # thread drops an expired entry mid-clear.
        def keys(self):
            return list(super().keys()) + ["org:expired"]

    store = VanishingStore({"org:stats": (None, 1), "api:stats:today": (None, 2)})
    monkeypatch.setattr(cache, "_cache_store", store)

    cache_clear("org")
    assert dict(store) == {"api:stats:today": (None, 2)}
