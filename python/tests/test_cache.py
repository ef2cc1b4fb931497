"""PackCache behaviour."""

from __future__ import annotations

import logging
import threading

import pytest

from engine_stubs import build_pack_bytes
from packproxy.cache import PackCache
from packproxy.errors import PackError, PackNotFoundError
from packproxy.packs import ResourcePack

UUID_A = "11111111-1111-1111-1111-111111111111"
UUID_B = "22222222-2222-2222-2222-222222222222"


class CountingPack(ResourcePack):
    """Pack that counts reads and can be told to fail."""

    def __init__(self, uuid, content, *, failures=0):
        super().__init__(uuid, "Counting", "1.0.0", content)
        self.reads = 0
        self.failures = failures

    def read_all(self):
        self.reads += 1
        if self.failures:
            self.failures -= 1
            raise PackError("disk went away")
        return super().read_all()


def test_get_returns_exact_pack_bytes():
    content = build_pack_bytes(UUID_A)
    cache = PackCache([ResourcePack(UUID_A, "A", "1.0.0", content)])
    assert cache.get(UUID_A) == content
    assert cache.is_cached(UUID_A)
    assert UUID_A in cache
    assert len(cache) == 1


def test_get_unknown_uuid_raises_not_found():
    cache = PackCache([ResourcePack(UUID_A, "A", "1.0.0", b"zip")])
    with pytest.raises(PackNotFoundError):
        cache.get(UUID_B)
    with pytest.raises(KeyError):
        cache.get("")


def test_cached_bytes_are_not_served_once_pack_leaves_set():
    pack = ResourcePack(UUID_A, "A", "1.0.0", b"zip")
    cache = PackCache([pack])
    assert cache.is_cached(UUID_A)
    cache.replace([ResourcePack(UUID_B, "B", "1.0.0", b"other")])
    assert not cache.is_cached(UUID_A)
    with pytest.raises(PackNotFoundError):
        cache.get(UUID_A)
    assert cache.get(UUID_B) == b"other"


def test_preload_reads_each_pack_once():
    pack = CountingPack(UUID_A, b"payload")
    cache = PackCache([pack])
    assert pack.reads == 1
    for _ in range(3):
        assert cache.get(UUID_A) == b"payload"
    assert pack.reads == 1


def test_failed_preload_is_retried_on_request(caplog):
    pack = CountingPack(UUID_A, b"payload", failures=1)
    with caplog.at_level(logging.ERROR, logger="packproxy.cache"):
        cache = PackCache([pack])
    assert "Failed to cache resource pack" in caplog.text
    assert not cache.is_cached(UUID_A)
    assert cache.get(UUID_A) == b"payload"
    assert cache.is_cached(UUID_A)
    assert pack.reads == 2


def test_read_failure_on_request_is_not_cached():
    pack = CountingPack(UUID_A, b"payload", failures=2)
    cache = PackCache([pack])
    with pytest.raises(PackError) as excinfo:
        cache.get(UUID_A)
    assert not isinstance(excinfo.value, PackNotFoundError)
    assert not cache.is_cached(UUID_A)
    assert cache.get(UUID_A) == b"payload"


def test_empty_cache():
    cache = PackCache()
    assert len(cache) == 0
    assert cache.packs() == []
    with pytest.raises(PackNotFoundError):
        cache.get(UUID_A)


def test_concurrent_fills_and_replace_never_expose_partial_content():
    contents = {f"{index:08d}-0000-4000-8000-000000000000": bytes([index]) * (4096 + index) for index in range(6)}
    first = list(contents)[:3]
    second = list(contents)[3:]
    cache = PackCache()
    cache.replace([ResourcePack(uuid, "P", "1.0.0", contents[uuid]) for uuid in first])
    errors = []
    stop = threading.Event()

    def reader():
        while not stop.is_set():
            for uuid in contents:
                try:
                    data = cache.get(uuid)
                except PackNotFoundError:
                    continue
                except Exception as exc:
                    errors.append(exc)
                    return
                if data != contents[uuid]:
                    errors.append(AssertionError(f"partial content for {uuid}"))
                    return

    def swapper():
        for round_ in range(200):
            ids = first if round_ % 2 else second
            cache.replace([ResourcePack(uuid, "P", "1.0.0", contents[uuid]) for uuid in ids])

    readers = [threading.Thread(target=reader) for _ in range(8)]
    for thread in readers:
        thread.start()
    swap = threading.Thread(target=swapper)
    swap.start()
    swap.join(10.0)
    stop.set()
    for thread in readers:
        thread.join(10.0)

    assert errors == []
    assert not swap.is_alive()
    # last swap installed ``first``; nothing from ``second`` may linger
    assert sorted(pack.uuid for pack in cache.packs()) == sorted(first)
    assert not any(cache.is_cached(uuid) for uuid in second)
    for uuid in first:
        assert cache.get(uuid) == contents[uuid]
