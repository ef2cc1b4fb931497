"""In-memory pack content cache backing the distribution server."""

from __future__ import annotations

import logging
import threading
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional

from .errors import PackError, PackNotFoundError
from .packs import ResourcePack

LOGGER = logging.getLogger("packproxy.cache")


class PackCache:
    """Owns the advertised pack set and a UUID -> bytes cache.

    The pack set is swapped as a whole, so readers see either the old or
    the new set.  Cache entries are stored only once fully read.  Two
    concurrent first requests for the same uncached pack may both read it;
    the later store wins and both results are identical.
    """

    def __init__(self, packs: Optional[Iterable[ResourcePack]] = None) -> None:
        self._lock = threading.Lock()
        self._packs: Mapping[str, ResourcePack] = MappingProxyType({})
        self._content: Dict[str, bytes] = {}
        if packs is not None:
            self.load(packs)

    def load(self, packs: Iterable[ResourcePack]) -> None:
        """Replace the pack set and pre-read every pack into the cache."""
        pack_list = list(packs)
        self.replace(pack_list)
        for pack in pack_list:
            try:
                content = pack.read_all()
            except PackError as exc:
                LOGGER.error("Failed to cache resource pack uuid=%s error=%s", pack.uuid, exc)
                continue
            self._store(pack.uuid, content)
            LOGGER.debug("Cached resource pack uuid=%s size=%d", pack.uuid, len(content))

    def replace(self, packs: Iterable[ResourcePack]) -> None:
        """Swap in a new pack set, dropping cached bytes of packs no longer in it."""
        pack_map = MappingProxyType({pack.uuid: pack for pack in packs})
        with self._lock:
            self._packs = pack_map
            for uuid in [uuid for uuid in self._content if uuid not in pack_map]:
                del self._content[uuid]

    def get(self, uuid: str) -> bytes:
        """Return the content of pack ``uuid``, reading it on a cache miss.

        Raises :class:`PackNotFoundError` when ``uuid`` is not in the current
        set and :class:`PackError` when the pack cannot be read.
        """
        with self._lock:
            pack = self._packs.get(uuid)
            content = self._content.get(uuid)
        if pack is None:
            raise PackNotFoundError(f"resource pack {uuid} not found")
        if content is not None:
            return content
        LOGGER.debug("Resource pack not cached, reading from pack uuid=%s", uuid)
        content = pack.read_all()
        self._store(uuid, content)
        return content

    def _store(self, uuid: str, content: bytes) -> None:
        with self._lock:
            # the set may have been swapped while reading
            if uuid in self._packs:
                self._content[uuid] = content

    def packs(self) -> List[ResourcePack]:
        with self._lock:
            return list(self._packs.values())

    def is_cached(self, uuid: str) -> bool:
        with self._lock:
            return uuid in self._content

    def __contains__(self, uuid: object) -> bool:
        with self._lock:
            return uuid in self._packs

    def __len__(self) -> int:
        with self._lock:
            return len(self._packs)
