import json
import logging

from print_agent.core.config import RenderConfig, get_profile
from print_agent.printing.cache import ContentCache, canonical_json, fingerprint
from print_agent.printing.models import OrderTicket, RenderedArtifact


class Clock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _artifact() -> RenderedArtifact:
    return RenderedArtifact(width=16, height=2, bitmap=b"\xff\x00\x0f\xf0", raw_bytes=b"\x89PNG")


def test_fingerprint_ignores_key_order():
    profile = get_profile("MM_58")
    a = {"header": {"restaurant_name": "X", "ticket_number": "1"}, "items": [{"name": "Tea", "quantity": 1}]}
    b = {"items": [{"quantity": 1, "name": "Tea"}], "header": {"ticket_number": "1", "restaurant_name": "X"}}
    assert canonical_json(a) == canonical_json(b)
    assert fingerprint(a, "ticket", profile) == fingerprint(b, "ticket", profile)


def test_fingerprint_depends_on_profile_and_type(ticket_content):
    ticket = OrderTicket.model_validate(ticket_content)
    fp58 = fingerprint(ticket, "ticket", get_profile("MM_58"))
    fp80 = fingerprint(ticket, "ticket", get_profile("MM_80"))
    assert fp58 != fp80
    assert fp58 != fingerprint(ticket, "bill", get_profile("MM_58"))
    assert fp58 == fingerprint(OrderTicket.model_validate(ticket_content), "ticket", get_profile("MM_58"))
    assert len(fp58) == 64


def test_put_then_get_is_a_hit(tmp_path):
    cache = ContentCache(directory=str(tmp_path))
    assert cache.get("abc") is None
    cache.put("abc", _artifact())
    assert cache.get("abc") == _artifact()
    assert cache.get("abc") == _artifact()
    stats = cache.stats()
    assert (stats["hits"], stats["misses"]) == (2, 1)
    assert stats["durable_entries"] == 1


def test_durable_hit_is_promoted(tmp_path):
    ContentCache(directory=str(tmp_path)).put("abc", _artifact())
    fresh = ContentCache(directory=str(tmp_path))
    assert fresh.get("abc") == _artifact()
    assert fresh.stats()["memory_entries"] == 1


def test_entries_expire_after_max_age(tmp_path):
    clock = Clock()
    cache = ContentCache(directory=str(tmp_path), max_age=60, clock=clock)
    cache.put("abc", _artifact())
    clock.now += 59
    assert cache.get("abc") is not None
    clock.now += 2
    assert cache.get("abc") is None
    # expired durable record is removed on read
    assert not (tmp_path / "abc.json").exists()


def test_corrupt_record_is_a_miss(tmp_path, caplog):
    (tmp_path / "abc.json").write_text("{not json", encoding="utf-8")
    cache = ContentCache(directory=str(tmp_path))
    with caplog.at_level(logging.WARNING, logger="print_agent.printing.cache"):
        assert cache.get("abc") is None
    assert cache.misses == 1
    assert any("unreadable" in r.getMessage() for r in caplog.records)


def test_record_with_wrong_bitmap_size_is_a_miss(tmp_path):
    record = {"created_at": 1.0, "width": 16, "height": 4, "bitmap": "AAAA"}
    (tmp_path / "abc.json").write_text(json.dumps(record), encoding="utf-8")
    cache = ContentCache(directory=str(tmp_path), clock=Clock(2.0))
    assert cache.get("abc") is None


def test_write_failure_does_not_raise(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")
    cache = ContentCache(directory=str(blocker))
    cache.put("abc", _artifact())
    # memory tier still serves it
    assert cache.get("abc") == _artifact()


def test_clear_wipes_both_tiers(tmp_path):
    cache = ContentCache(directory=str(tmp_path))
    cache.put("a", _artifact())
    cache.put("b", _artifact())
    assert cache.clear() == 2
    assert cache.get("a") is None
    assert not list(tmp_path.glob("*.json"))


def test_memory_only_cache():
    cache = ContentCache(directory=None)
    cache.put("abc", _artifact())
    assert cache.get("abc") == _artifact()
    assert cache.clear() == 0


def test_fingerprint_depends_on_bitmap_settings(ticket_content):
    ticket = OrderTicket.model_validate(ticket_content)
    profile = get_profile("MM_58")
    rupees = RenderConfig(cache_enabled=True, cache_path="", currency="Rs.")
    dollars = RenderConfig(cache_enabled=True, cache_path="", currency="$")
    assert fingerprint(ticket, "ticket", profile, rupees) != fingerprint(ticket, "ticket", profile, dollars)
    assert fingerprint(ticket, "ticket", profile, rupees) == fingerprint(ticket, "ticket", profile, rupees.model_copy())
    # settings that never reach the bitmap do not split the cache
    slower = rupees.model_copy(update={"render_timeout": rupees.render_timeout + 5})
    assert fingerprint(ticket, "ticket", profile, rupees) == fingerprint(ticket, "ticket", profile, slower)


def test_interleaved_writers_leave_a_whole_record(tmp_path, monkeypatch, caplog):
    import print_agent.printing.cache as cache_mod

    first = _artifact()
    second = RenderedArtifact(width=8, height=1, bitmap=b"\xaa")
    cache = ContentCache(directory=str(tmp_path))
    real_dump = json.dump
    nested = []

    def _dump(obj, f, **kw):
        # a second writer for the same fingerprint runs while the first is mid-write
        if not nested:
            nested.append(True)
            cache.put("abc", second)
        return real_dump(obj, f, **kw)

    monkeypatch.setattr(cache_mod.json, "dump", _dump)
    with caplog.at_level(logging.WARNING, logger="print_agent.printing.cache"):
        cache.put("abc", first)
    monkeypatch.undo()

    assert not caplog.records
    assert not list(tmp_path.glob("*.tmp"))
    assert ContentCache(directory=str(tmp_path)).get("abc") == first
