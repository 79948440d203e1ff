"""
BBoard Entry Point

Usage:
    python -m bboard                                  # Run server from config.toml
    python -m bboard serve 4554 200 100 20 10 red blue  # Run server with explicit board
    python -m bboard config --show                    # Configuration interface
    python -m bboard --help                           # Show help
"""

import argparse
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from . import __version__


def setup_logging(
    level: str,
    log_file: str | None = None,
    max_size_mb: int = 10,
    backup_count: int = 3
):
    """Configure logging for the application."""
    log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_file:
        handlers.append(RotatingFileHandler(
            log_file,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count
        ))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=log_format,
        handlers=handlers,
        force=True
    )


def apply_board_args(config, values: list[str], parser: argparse.ArgumentParser):
    """Override port and board settings from positional serve arguments."""
    from .config import BoardConfig

    if len(values) < 6:
        parser.error(
            "serve expects: <port> <boardW> <boardH> <noteW> <noteH> <color1> [color2] ..."
        )

    try:
        port, board_w, board_h, note_w, note_h = (int(v) for v in values[:5])
    except ValueError:
        parser.error("port/boardW/boardH/noteW/noteH must be integers")

    config.server.port = port
    config.board = BoardConfig(
        board_width=board_w,
        board_height=board_h,
        note_width=note_w,
        note_height=note_h,
        colors=values[5:],
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="bboard",
        description="BBoard - Shared Bulletin Board Server"
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"BBoard {__version__}"
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=Path("config.toml"),
        help="Path to configuration file (default: config.toml)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: from config, INFO)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Serve subcommand
    serve_parser = subparsers.add_parser("serve", help="Run the board server")
    serve_parser.add_argument(
        "board",
        nargs="*",
        metavar="VALUE",
        help="<port> <boardW> <boardH> <noteW> <noteH> <color1> [color2] ..."
    )

    # Config subcommand
    config_parser = subparsers.add_parser("config", help="Configuration interface")
    config_parser.add_argument("--show", action="store_true", help="Show current config")
    config_parser.add_argument("--validate", action="store_true", help="Validate config")
    config_parser.add_argument("--init", action="store_true", help="Write a default config file")
    config_parser.add_argument(
        "--set",
        nargs=2,
        metavar=("KEY", "VALUE"),
        help="Set config value"
    )

    return parser


def main(argv: list[str] | None = None):
    """Main entry point for BBoard."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "config":
        setup_logging(args.log_level or "WARNING")
        from .cli.config_cmd import run_config
        sys.exit(run_config(args))

    # Default: run board server
    from .config import load_config, ConfigError
    from .core.server import BulletinBoardServer

    try:
        config = load_config(args.config)
    except ConfigError as e:
        setup_logging(args.log_level or "INFO")
        logging.getLogger("bboard").error(f"Configuration error: {e}")
        sys.exit(1)

    if args.command == "serve" and args.board:
        apply_board_args(config, args.board, parser)

    setup_logging(
        args.log_level or config.logging.level,
        config.logging.file or None,
        config.logging.max_size_mb,
        config.logging.backup_count
    )
    logger = logging.getLogger("bboard")

    errors = config.validate()
    if errors:
        for err in errors:
            logger.error(f"Invalid configuration: {err}")
        sys.exit(1)

    try:
        server = BulletinBoardServer(config)
        logger.info(f"Starting BBoard v{__version__}")
        server.run()
    except KeyboardInterrupt:
        logger.info("Shutdown requested")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
