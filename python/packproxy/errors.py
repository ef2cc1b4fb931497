"""Exception types shared across packproxy."""

from __future__ import annotations


class PackProxyError(RuntimeError):
    """Base class for packproxy failures."""


class ConfigError(PackProxyError):
    """Raised when the configuration cannot be loaded or is inconsistent."""


class StartupError(PackProxyError):
    """Raised when a startup step fails and the proxy must not come up."""


class PackError(PackProxyError):
    """Raised when a resource pack cannot be decoded or read."""


class PackNotFoundError(PackError, KeyError):
    """Raised when a pack identifier is not part of the advertised set."""

    def __str__(self) -> str:
        return RuntimeError.__str__(self)
