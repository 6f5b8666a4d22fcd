"""
Command line entry point: python -m ipapi [--listen HOST:PORT] [--db-path DIR] [--log-level LEVEL]

Flags override the corresponding environment settings.
"""
import argparse
from pathlib import Path
from typing import List, Optional, Tuple

import uvicorn

from config.settings import settings
from ipapi.log import configure_logging
from ipapi.main import create_app


def parse_listen(value: str, default_host: str) -> Tuple[str, int]:
    """Split ':3280' or '127.0.0.1:3280' into (host, port)."""
    host, _, port = value.rpartition(":")
    if not port.isdigit():
        raise argparse.ArgumentTypeError(f"invalid listen address: {value!r}")
    return host or default_host, int(port)


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="ipapi", description="IP geolocation API")
    parser.add_argument(
        "--listen",
        default=f"{settings.listen_host}:{settings.listen_port}",
        help="Address to listen on",
    )
    parser.add_argument("--db-path", default=str(settings.db_path), help="Path to GeoIP database files")
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        help="Log level (debug, info, warn, error, fatal)",
    )
    args = parser.parse_args(argv)

    host, port = parse_listen(args.listen, settings.listen_host)
    effective = settings.model_copy(update={
        "listen_host": host,
        "listen_port": port,
        "db_path": Path(args.db_path),
        "log_level": args.log_level,
    })

    configure_logging(effective.log_level, effective.log_format)
    uvicorn.run(
        create_app(effective, configure_logs=False),
        host=host,
        port=port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
