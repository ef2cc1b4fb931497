"""Proxy configuration and the shared server map."""

from __future__ import annotations

import copy
import logging
import threading
import tomllib
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

import tomlkit

from .errors import ConfigError

LOGGER = logging.getLogger("packproxy.config")

DEFAULT_CONFIG_PATH = Path("config.toml")

DEFAULT_ANTICHEAT_SETTINGS: Dict[str, Dict[str, Any]] = {
    "movement": {
        "accept_client_position": False,
        "position_acceptance_threshold": 0.003,
        "accept_client_velocity": False,
        "velocity_acceptance_threshold": 0.077,
        "persuasion_threshold": 0.002,
        "correction_threshold": 0.003,
    },
    "combat": {
        "maximum_attack_angle": 90,
        "enable_client_entity_tracking": True,
    },
    "network": {
        "global_movement_cutoff_threshold": -1,
        "max_entity_rewind": 6,
        "max_ghost_block_chain": 7,
        "max_knockback_delay": -1,
        "max_block_update_delay": -1,
    },
}


@dataclass(frozen=True)
class ServerEntry:
    """A named backend server."""

    name: str
    addr: str


@dataclass
class CdnConfig:
    enabled: bool = False
    ip: str = "0.0.0.0"
    port: int = 8080
    bind_host: str = "0.0.0.0"

    def base_url(self, port: Optional[int] = None) -> str:
        return f"http://{self.ip}:{self.port if port is None else port}"


def _default_servers() -> List[ServerEntry]:
    return [ServerEntry("lobby", "127.0.0.1:19133"), ServerEntry("island1", "127.0.0.1:19134")]


@dataclass
class ProxyConfig:
    """Settings read from ``config.toml``."""

    name: str = "Spectrum Proxy"
    bind_addr: str = "0.0.0.0:19132"
    default_server: str = "lobby"
    servers: List[ServerEntry] = field(default_factory=_default_servers)
    shutdown_message: str = "Proxy shutdown"
    debug: bool = False
    cdn_config: CdnConfig = field(default_factory=CdnConfig)
    anticheat_enabled: bool = False
    engine: str = ""
    anticheat: str = ""
    anticheat_settings: Dict[str, Any] = field(default_factory=lambda: copy.deepcopy(DEFAULT_ANTICHEAT_SETTINGS))
    transfer_timeout: float = 10.0
    history_size: int = 100
    history_file: str = "~/.packproxy/command_history.txt"
    resource_pack_dir: str = "resource_packs"
    player_log_dir: str = "logs"
    content_keys: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProxyConfig":
        conf = cls()
        try:
            for key in (
                "name",
                "bind_addr",
                "default_server",
                "shutdown_message",
                "engine",
                "anticheat",
                "history_file",
                "resource_pack_dir",
                "player_log_dir",
            ):
                if key in data:
                    setattr(conf, key, _expect(data[key], str, key))
            for key in ("debug", "anticheat_enabled"):
                if key in data:
                    setattr(conf, key, _expect(data[key], bool, key))
            if "transfer_timeout" in data:
                conf.transfer_timeout = float(_expect(data["transfer_timeout"], (int, float), "transfer_timeout"))
            if "history_size" in data:
                conf.history_size = _expect(data["history_size"], int, "history_size")
            if "servers" in data:
                conf.servers = [
                    ServerEntry(_expect(entry["name"], str, "servers.name"), _expect(entry["addr"], str, "servers.addr"))
                    for entry in _expect(data["servers"], list, "servers")
                ]
            cdn = data.get("cdn_config")
            if cdn is not None:
                _expect(cdn, dict, "cdn_config")
                conf.cdn_config = CdnConfig(
                    enabled=_expect(cdn.get("enabled", False), bool, "cdn_config.enabled"),
                    ip=_expect(cdn.get("ip", "0.0.0.0"), str, "cdn_config.ip"),
                    port=_expect(cdn.get("port", 8080), int, "cdn_config.port"),
                    bind_host=_expect(cdn.get("bind_host", "0.0.0.0"), str, "cdn_config.bind_host"),
                )
            if "anticheat_settings" in data:
                conf.anticheat_settings = dict(_expect(data["anticheat_settings"], dict, "anticheat_settings"))
            if "content_keys" in data:
                keys = _expect(data["content_keys"], dict, "content_keys")
                conf.content_keys = {str(uuid): _expect(key, str, f"content_keys.{uuid}") for uuid, key in keys.items()}
        except (KeyError, TypeError) as exc:
            raise ConfigError(f"invalid config entry: {exc}") from exc
        return conf

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "bind_addr": self.bind_addr,
            "default_server": self.default_server,
            "shutdown_message": self.shutdown_message,
            "debug": self.debug,
            "anticheat_enabled": self.anticheat_enabled,
            "engine": self.engine,
            "anticheat": self.anticheat,
            "transfer_timeout": self.transfer_timeout,
            "history_size": self.history_size,
            "history_file": self.history_file,
            "resource_pack_dir": self.resource_pack_dir,
            "player_log_dir": self.player_log_dir,
            "servers": [{"name": entry.name, "addr": entry.addr} for entry in self.servers],
            "cdn_config": {
                "enabled": self.cdn_config.enabled,
                "ip": self.cdn_config.ip,
                "port": self.cdn_config.port,
                "bind_host": self.cdn_config.bind_host,
            },
            "anticheat_settings": copy.deepcopy(self.anticheat_settings),
            "content_keys": dict(self.content_keys),
        }


def _expect(value: Any, kind: Any, key: str) -> Any:
    # bool is an int subclass; keep "port = true" from slipping through
    if kind is not bool and isinstance(value, bool):
        raise TypeError(f"{key} has unexpected type bool")
    if not isinstance(value, kind):
        raise TypeError(f"{key} has unexpected type {type(value).__name__}")
    return value


def load_config(path: Path | str = DEFAULT_CONFIG_PATH) -> ProxyConfig:
    """Read ``path``, writing a default config there first if it does not exist."""
    config_path = Path(path)
    if not config_path.exists():
        conf = ProxyConfig()
        write_config(conf, config_path)
        LOGGER.info("Wrote default configuration to %s", config_path)
        return conf
    try:
        with config_path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"{config_path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"cannot read {config_path}: {exc}") from exc
    return ProxyConfig.from_dict(data)


def write_config(conf: ProxyConfig, path: Path | str) -> None:
    config_path = Path(path)
    try:
        if config_path.parent and not config_path.parent.exists():
            config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(tomlkit.dumps(conf.to_dict()), encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot write {config_path}: {exc}") from exc


class _ReadWriteLock:
    """Many readers or one writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writing:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._readers:
                self._cond.wait()
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


class ServerMap:
    """Name/address tables for the configured backend servers."""

    def __init__(self, entries: List[ServerEntry], default_server: str) -> None:
        self._lock = _ReadWriteLock()
        self._by_name: Dict[str, str] = {}
        self._by_addr: Dict[str, str] = {}
        self.default_name = default_server
        for entry in entries:
            if entry.name in self._by_name:
                LOGGER.warning("Duplicate server %s, using address %s", entry.name, entry.addr)
                self._by_addr.pop(self._by_name[entry.name], None)
            self._by_name[entry.name] = entry.addr
            self._by_addr[entry.addr] = entry.name
            LOGGER.info("Loaded server name=%s address=%s", entry.name, entry.addr)
        if default_server not in self._by_name:
            raise ConfigError(f"No default server found (default_server={default_server!r})")

    @classmethod
    def from_config(cls, conf: ProxyConfig) -> "ServerMap":
        return cls(conf.servers, conf.default_server)

    @property
    def default_address(self) -> str:
        with self._lock.read():
            return self._by_name[self.default_name]

    def address_of(self, name: str) -> Optional[str]:
        with self._lock.read():
            return self._by_name.get(name)

    def name_of(self, address: str) -> Optional[str]:
        with self._lock.read():
            return self._by_addr.get(address)

    def names(self) -> List[str]:
        with self._lock.read():
            return list(self._by_name)

    def items(self) -> List[Tuple[str, str]]:
        with self._lock.read():
            return list(self._by_name.items())

    def add(self, entry: ServerEntry) -> None:
        with self._lock.write():
            previous = self._by_name.get(entry.name)
            if previous is not None:
                self._by_addr.pop(previous, None)
            self._by_name[entry.name] = entry.addr
            self._by_addr[entry.addr] = entry.name

    def remove(self, name: str) -> bool:
        if name == self.default_name:
            raise ConfigError("the default server cannot be removed")
        with self._lock.write():
            address = self._by_name.pop(name, None)
            if address is None:
                return False
            if self._by_addr.get(address) == name:
                del self._by_addr[address]
            return True

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._by_name)

    def __contains__(self, name: object) -> bool:
        with self._lock.read():
            return name in self._by_name
