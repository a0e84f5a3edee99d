from darkroom.editing.adjustments import DEFAULTS
from darkroom.infrastructure.cache import ResponseCache, preview_key


def test_response_cache_eviction_limit():
    cache = ResponseCache(ttl=60)

    # Fill the cache beyond the limit to trigger eviction logic.
    for idx in range(20):
        cache.put(f"key-{idx}", b"data")

    assert len(cache) == 16

    # Ensure the oldest entries are evicted first
    assert cache.get("key-0") is None
    assert cache.get("key-3") is None
    assert cache.get("key-4") == b"data"


def test_response_cache_expires_entries(monkeypatch):
    cache = ResponseCache(ttl=5)
    now = [1000.0]
    monkeypatch.setattr("darkroom.infrastructure.cache.time.time", lambda: now[0])

    cache.put("preview", b"png")
    assert cache.get("preview") == b"png"

    now[0] += 6
    assert cache.get("preview") is None
    assert len(cache) == 0


def test_preview_key_tracks_image_state_and_size():
    warm = DEFAULTS.with_value("warmth", 30)

    assert preview_key("abc", DEFAULTS, 800) == preview_key("abc", DEFAULTS, 800)
    assert preview_key("abc", DEFAULTS, 800) != preview_key("abc", warm, 800)
    assert preview_key("abc", DEFAULTS, 800) != preview_key("def", DEFAULTS, 800)
    assert preview_key("abc", DEFAULTS, 800) != preview_key("abc", DEFAULTS, 400)
