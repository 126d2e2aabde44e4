"""Aries server entry point.

Usage::

    python -m aries [--port 8080] [--host 0.0.0.0] [--config PATH] [--store sqlite|csv]
"""

from __future__ import annotations

import argparse
import logging
import sys

from aries.config import STORES, AriesConfig


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="python -m aries",
        description="Aries identifier lookup aggregator",
    )
    parser.add_argument("--config", metavar="PATH", default=None, help="JSON config file")
    parser.add_argument("--host", default=None, help="Bind address (default 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Aries port (default 8080)")
    parser.add_argument("--store", choices=STORES, default=None, help="Registry backing store")
    parser.add_argument(
        "--data-dir",
        metavar="PATH",
        default=None,
        help="Override data directory (default: ./data or ARIES_DATA_DIR env var)",
    )
    args = parser.parse_args()

    try:
        config = AriesConfig.load(args.config)
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        sys.exit(2)
    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.store is not None:
        config.store = args.store
    if args.data_dir is not None:
        config.data_dir = args.data_dir

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    import uvicorn

    from aries.server import create_app

    logging.getLogger(__name__).info("Start Aries service on %s:%d", config.host, config.port)
    uvicorn.run(create_app(config), host=config.host, port=config.port)


if __name__ == "__main__":
    main()
