"""
Chocomenta Radio - command line entry point.

Loads configuration, sets up logging, and serves the radio with uvicorn.
"""

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from loguru import logger

from chocomenta.core.config import create_default_config, get_config_path, load_config
from chocomenta.core.output import setup_from_config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chocomenta",
        description="Chocomenta Radio - listen together, in sync",
    )
    parser.add_argument(
        '--config',
        type=Path,
        default=None,
        help='Path to config.toml (default: ./config.toml or ~/.config/chocomenta)'
    )
    parser.add_argument('--host', default=None, help='Interface to bind')
    parser.add_argument('--port', type=int, default=None, help='Port to listen on')
    parser.add_argument(
        '--log-level',
        default=None,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Override the configured log level'
    )
    parser.add_argument(
        '--init-config',
        action='store_true',
        help='Write a default config.toml and exit'
    )
    return parser


def write_default_config(path: Path) -> int:
    """Write the default configuration file unless one already exists."""
    if path.exists():
        print(f"Configuration already exists: {path}", file=sys.stderr)
        return 1
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(create_default_config() + "\n", encoding="utf-8")
    print(f"Created default configuration at: {path}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point for the chocomenta command."""
    args = build_parser().parse_args(argv)

    if args.init_config:
        sys.exit(write_default_config(args.config or get_config_path()))

    config = load_config(args.config)
    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port
    if args.log_level:
        config.logging.level = args.log_level

    setup_from_config(config.logging)

    if not config.youtube.api_keys:
        logger.warning("No YouTube API key configured; search and autoplay will fail")

    import uvicorn

    from chocomenta.web.app import create_app

    app = create_app(config)
    logger.info(f"Chocomenta Radio on http://{config.server.host}:{config.server.port}")
    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.lower(),
    )


if __name__ == "__main__":
    main()
