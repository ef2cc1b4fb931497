"""Resource pack loading.

A pack is an immutable zip archive identified by the UUID in the header of
its ``manifest.json``.  Packs can be read from ``.zip``/``.mcpack`` files or
from unpacked directories (zipped in memory), and a pack can be re-pointed
at a download URL so clients fetch it over HTTP instead of in-band.
"""

from __future__ import annotations

import io
import json
import logging
import threading
import zipfile
import zlib
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import requests

from .errors import PackError, StartupError

LOGGER = logging.getLogger("packproxy.packs")

MANIFEST_NAME = "manifest.json"
DEFAULT_FETCH_TIMEOUT = 30.0


class ResourcePack:
    """A pack whose bytes are held locally."""

    download_url: Optional[str] = None

    def __init__(
        self,
        uuid: str,
        name: str,
        version: str,
        content: bytes,
        *,
        content_key: str = "",
        path: Optional[Path] = None,
    ) -> None:
        self.uuid = uuid
        self.name = name
        self.version = version
        self.content_key = content_key
        self.path = path
        self._content = bytes(content)

    def __len__(self) -> int:
        return len(self._content)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r} uuid={self.uuid} version={self.version}>"

    @property
    def size(self) -> int:
        return len(self)

    @property
    def encrypted(self) -> bool:
        return bool(self.content_key)

    def read_at(self, offset: int, length: int) -> bytes:
        if offset < 0 or length < 0 or offset + length > len(self._content):
            raise PackError(f"read of {length} bytes at {offset} is outside pack {self.uuid}")
        return self._content[offset : offset + length]

    def read_all(self) -> bytes:
        data = self.read_at(0, self.size)
        if len(data) != self.size:
            raise PackError(f"short read for pack {self.uuid}: {len(data)} of {self.size} bytes")
        return data

    def with_content_key(self, key: str) -> "ResourcePack":
        return ResourcePack(self.uuid, self.name, self.version, self._content, content_key=key, path=self.path)


class RemotePack(ResourcePack):
    """Pack metadata whose bytes live behind ``download_url``.

    The first read fetches the whole archive with a GET request and keeps it.
    """

    def __init__(
        self,
        uuid: str,
        name: str,
        version: str,
        size: int,
        url: str,
        *,
        content_key: str = "",
        timeout: float = DEFAULT_FETCH_TIMEOUT,
    ) -> None:
        super().__init__(uuid, name, version, b"", content_key=content_key)
        self.download_url = url
        self.timeout = timeout
        self._size = size
        self._fetched: Optional[bytes] = None
        self._fetch_lock = threading.Lock()

    @classmethod
    def from_pack(cls, pack: ResourcePack, url: str, *, timeout: float = DEFAULT_FETCH_TIMEOUT) -> "RemotePack":
        return cls(pack.uuid, pack.name, pack.version, pack.size, url, content_key=pack.content_key, timeout=timeout)

    def __len__(self) -> int:
        return self._size

    def read_at(self, offset: int, length: int) -> bytes:
        data = self._fetch()
        if offset < 0 or length < 0 or offset + length > len(data):
            raise PackError(f"read of {length} bytes at {offset} is outside pack {self.uuid}")
        return data[offset : offset + length]

    def with_content_key(self, key: str) -> "RemotePack":
        return RemotePack(self.uuid, self.name, self.version, self._size, self.download_url or "", content_key=key, timeout=self.timeout)

    def _fetch(self) -> bytes:
        with self._fetch_lock:
            if self._fetched is not None:
                return self._fetched
            try:
                response = requests.get(self.download_url, timeout=self.timeout)
                response.raise_for_status()
            except requests.RequestException as exc:
                raise PackError(f"failed to download pack {self.uuid} from {self.download_url}: {exc}") from exc
            self._fetched = response.content
            if len(self._fetched) != self._size:
                LOGGER.warning(
                    "Downloaded pack size differs uuid=%s expected=%d got=%d",
                    self.uuid,
                    self._size,
                    len(self._fetched),
                )
                self._size = len(self._fetched)
            return self._fetched


def _zip_directory(root: Path) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for entry in sorted(root.rglob("*")):
            if entry.is_file():
                archive.write(entry, entry.relative_to(root).as_posix())
    return buffer.getvalue()


def _find_manifest(archive: zipfile.ZipFile) -> str:
    names = archive.namelist()
    if MANIFEST_NAME in names:
        return MANIFEST_NAME
    # some archives wrap the pack in a single top-level folder
    nested = [name for name in names if name.count("/") == 1 and name.endswith("/" + MANIFEST_NAME)]
    if len(nested) == 1:
        return nested[0]
    raise PackError(f"{MANIFEST_NAME} not found")


def _format_version(value: Any) -> str:
    if isinstance(value, list):
        return ".".join(str(part) for part in value)
    return str(value)


def parse_manifest(content: bytes) -> Dict[str, str]:
    """Return ``uuid``, ``name`` and ``version`` from the archive's manifest header."""
    try:
        with zipfile.ZipFile(io.BytesIO(content)) as archive:
            raw = archive.read(_find_manifest(archive))
    except PackError:
        raise
    except zipfile.BadZipFile as exc:
        raise PackError(f"not a zip archive: {exc}") from exc
    # corrupt member data, unsupported compression or an encrypted member
    except (zlib.error, EOFError, NotImplementedError, RuntimeError) as exc:
        raise PackError(f"cannot read {MANIFEST_NAME}: {exc}") from exc
    try:
        manifest = json.loads(raw.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise PackError(f"invalid {MANIFEST_NAME}: {exc}") from exc
    header = manifest.get("header") if isinstance(manifest, dict) else None
    if not isinstance(header, dict) or not header.get("uuid"):
        raise PackError(f"{MANIFEST_NAME} has no header uuid")
    return {
        "uuid": str(header["uuid"]).lower(),
        "name": str(header.get("name", "")),
        "version": _format_version(header.get("version", "")),
    }


def read_path(path: Path | str) -> ResourcePack:
    """Read a pack from an archive file or an unpacked directory."""
    source = Path(path)
    try:
        if source.is_dir():
            content = _zip_directory(source)
        else:
            content = source.read_bytes()
    except OSError as exc:
        raise PackError(f"cannot read {source}: {exc}") from exc
    header = parse_manifest(content)
    return ResourcePack(header["uuid"], header["name"], header["version"], content, path=source)


def read_url(url: str, *, timeout: float = DEFAULT_FETCH_TIMEOUT) -> ResourcePack:
    """Download a pack archive and keep its bytes locally."""
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise PackError(f"failed to download pack from {url}: {exc}") from exc
    header = parse_manifest(response.content)
    return ResourcePack(header["uuid"], header["name"], header["version"], response.content)


def load_directory(directory: Path | str, content_keys: Optional[Mapping[str, str]] = None) -> List[ResourcePack]:
    """Load every pack in ``directory``, creating it when missing.

    Entries that fail to decode are logged and skipped.  An unreadable
    directory raises :class:`StartupError`.
    """
    root = Path(directory)
    keys = {uuid.lower(): key for uuid, key in (content_keys or {}).items()}
    try:
        root.mkdir(parents=True, exist_ok=True)
        entries = sorted(root.iterdir())
    except OSError as exc:
        raise StartupError(f"cannot read resource pack directory {root}: {exc}") from exc

    packs: List[ResourcePack] = []
    for entry in entries:
        try:
            pack = read_path(entry)
        except PackError as exc:
            LOGGER.error("Failed to load resource pack path=%s error=%s", entry, exc)
            continue
        key = keys.get(pack.uuid)
        if key:
            pack = pack.with_content_key(key)
        LOGGER.debug(
            "Loaded pack name=%s size=%.2fMB uuid=%s version=%s",
            pack.name,
            pack.size / (1024 * 1024),
            pack.uuid,
            pack.version,
        )
        packs.append(pack)
    return packs
