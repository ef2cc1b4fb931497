"""packproxy command-line entry point."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List

from .app import ProxyApp
from .config import DEFAULT_CONFIG_PATH, load_config
from .errors import PackProxyError

LOG = logging.getLogger("packproxy.cli")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Game proxy control plane and resource pack server")
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Path to config.toml")
    parser.add_argument(
        "--log-level",
        default=os.environ.get("PACKPROXY_LOG", "INFO"),
        help="Logging level (default INFO; DEBUG when the config sets debug = true)",
    )
    parser.add_argument("--history", type=Path, help="Override the console history file")
    parser.add_argument("--no-console", action="store_true", help="Run without the interactive console")
    return parser


def main(argv: List[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)
    try:
        conf = load_config(args.config)
        if conf.debug:
            logging.getLogger().setLevel(logging.DEBUG)
        app = ProxyApp(conf, history_path=args.history)
        return app.run(console=not args.no_console)
    except PackProxyError as exc:
        LOG.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
