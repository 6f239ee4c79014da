import json
import os
import threading
from pathlib import Path

from contract_audit.cache import CacheStore


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_cache(tmp_path: Path, clock: FakeClock, **kwargs) -> CacheStore:
    return CacheStore(tmp_path / "cache", ttl=60, max_age=600, memory_ttl=30, clock=clock, **kwargs)


def test_set_then_get_within_ttl(tmp_path: Path):
    clock = FakeClock()
    cache = make_cache(tmp_path, clock)

    assert cache.set("k", {"v": 1}, "raw", ttl=60)
    clock.now += 59
    assert cache.get("k", "raw") == {"v": 1}


def test_entry_expires_after_max_age_and_file_is_removed(tmp_path: Path):
    clock = FakeClock()
    cache = make_cache(tmp_path, clock)
    cache.set("k", "value", "tree", ttl=10_000)
    path = tmp_path / "cache" / "tree" / "k.json"
    assert path.exists()

    clock.now += 601
    assert cache.get("k", "tree") is None
    assert not path.exists()


def test_max_age_shorter_than_memory_ttl(tmp_path: Path):
    clock = FakeClock()
    cache = CacheStore(tmp_path / "cache", ttl=60, max_age=30, memory_ttl=300, clock=clock)
    cache.set("k", "v", "raw", ttl=60)
    path = tmp_path / "cache" / "raw" / "k.json"

    clock.now += 20
    assert cache.get("k", "raw") == "v"

    clock.now += 25
    assert cache.get("k", "raw") is None
    assert not path.exists()


def test_disk_entry_survives_a_new_process(tmp_path: Path):
    clock = FakeClock()
    make_cache(tmp_path, clock).set("k", [1, 2], "analysis")

    fresh = make_cache(tmp_path, clock)
    assert fresh.get("k", "analysis") == [1, 2]


def test_corrupt_entry_is_a_miss_and_deleted(tmp_path: Path):
    clock = FakeClock()
    cache = make_cache(tmp_path, clock)
    path = tmp_path / "cache" / "raw" / "bad.json"
    path.parent.mkdir(parents=True)
    path.write_text('{"payload": ', encoding="utf-8")

    assert cache.get("bad", "raw") is None
    assert not path.exists()
    assert cache.stats()["misses"] == 1


def test_entry_layout_on_disk(tmp_path: Path):
    clock = FakeClock(500.0)
    cache = make_cache(tmp_path, clock)
    cache.set("abc", {"x": 1}, "analysis", source="src/a.js")

    entry = json.loads((tmp_path / "cache" / "analysis" / "abc.json").read_text(encoding="utf-8"))
    assert entry["payload"] == {"x": 1}
    assert entry["createdAt"] == 500.0
    # analysis entries live twice as long as the base ttl
    assert entry["expiresAt"] == 620.0
    assert entry["source"] == "src/a.js"


def test_no_temporary_files_left_behind(tmp_path: Path):
    cache = make_cache(tmp_path, FakeClock())
    for i in range(5):
        cache.set(f"k{i}", i + 1, "raw")
    leftovers = [p for p in (tmp_path / "cache" / "raw").iterdir() if p.suffix == ".tmp"]
    assert leftovers == []


def test_invalidate_and_invalidate_source(tmp_path: Path):
    cache = make_cache(tmp_path, FakeClock())
    cache.set("a", 1, "raw", source="x.js")
    cache.set("b", 2, "analysis", source="x.js")
    cache.set("c", 3, "raw", source="y.js")

    assert cache.invalidate("c") == 1
    assert cache.get("c", "raw") is None
    assert cache.invalidate_source("x.js") == 2
    assert cache.get("a", "raw") is None
    assert cache.get("b", "analysis") is None


def test_clear_expired_sweeps_old_entries(tmp_path: Path):
    clock = FakeClock()
    cache = make_cache(tmp_path, clock)
    cache.set("old", 1, "raw", ttl=10)
    clock.now += 20
    cache.set("new", 2, "raw", ttl=10)

    assert cache.clear_expired() == 1
    assert cache.get("new", "raw") == 2


def test_disabled_cache_never_stores(tmp_path: Path):
    cache = make_cache(tmp_path, FakeClock(), enabled=False)
    assert not cache.set("k", 1)
    assert cache.get("k") is None
    assert not (tmp_path / "cache").exists()


def test_file_key_changes_with_mtime(tmp_path: Path):
    source = tmp_path / "a.js"
    source.write_text("x", encoding="utf-8")
    first = CacheStore.generate_file_key(source, source.stat())
    os.utime(source, ns=(1_000_000_000, 2_000_000_000))
    assert CacheStore.generate_file_key(source, source.stat()) != first


def test_clear_resets_everything(tmp_path: Path):
    cache = make_cache(tmp_path, FakeClock())
    cache.set("k", 1)
    cache.get("k")
    cache.clear()
    stats = cache.stats()
    assert stats["disk_entries"] == 0
    assert stats["hits"] == 0
    assert stats["memory_entries"] == 0


def test_concurrent_writers_and_readers_see_whole_entries(tmp_path: Path):
    # memory_ttl=0 sends every read to disk
    cache = CacheStore(tmp_path / "cache", ttl=60, max_age=600, memory_ttl=0)
    written = [{"worker": n, "items": list(range(50))} for n in range(8)]
    seen = []
    errors = []

    def worker(n):
        try:
            for _ in range(200):
                cache.set("shared", written[n], "analysis")
                seen.append(cache.get("shared", "analysis"))
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert all(value in written for value in seen)
    assert cache.stats()["deletes"] == 0
    assert [p.name for p in (tmp_path / "cache" / "analysis").iterdir()] == ["shared.json"]
