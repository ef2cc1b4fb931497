"""
Pytest configuration and fixtures for packproxy tests.
"""
import sys
from pathlib import Path

import pytest

PYTHON_SRC = Path(__file__).resolve().parents[1]
TESTS_DIR = Path(__file__).resolve().parent
for entry in (PYTHON_SRC, TESTS_DIR):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))

from engine_stubs import StubEngine, StubSession  # noqa: E402
from packproxy.config import ProxyConfig, ServerEntry, ServerMap  # noqa: E402
from packproxy.console.context import ConsoleContext  # noqa: E402


@pytest.fixture
def proxy_config(tmp_path):
    """Config pointing all on-disk state into tmp_path."""
    return ProxyConfig(
        servers=[ServerEntry("lobby", "127.0.0.1:19133"), ServerEntry("island1", "127.0.0.1:19134")],
        history_file=str(tmp_path / "history.txt"),
        resource_pack_dir=str(tmp_path / "resource_packs"),
        player_log_dir=str(tmp_path / "logs"),
    )


@pytest.fixture
def server_map(proxy_config):
    return ServerMap.from_config(proxy_config)


@pytest.fixture
def engine():
    return StubEngine(sessions=[StubSession("Alice"), StubSession("Bob")])


@pytest.fixture
def console_ctx(engine, server_map, proxy_config):
    return ConsoleContext(engine=engine, servers=server_map, conf=proxy_config)
