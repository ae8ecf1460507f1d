# Secrets Manager - Main Entry Point
#
# Serves the local REST API with uvicorn. Defaults come from the environment
# (see core/config.py); command line flags override them.

import argparse
import sys

import structlog

from . import __version__
from .core import Settings, VaultPaths, configure_logging

logger = structlog.get_logger(__name__)


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="secrets-manager",
        description="Secrets Manager - local encrypted credential vault",
    )
    parser.add_argument(
        "--host",
        default=settings.host,
        help=f"API host (default: {settings.host})",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help=f"API port (default: {settings.port})",
    )
    parser.add_argument(
        "--data-dir",
        default=str(settings.data_dir),
        help=f"Directory holding vault.meta and vault.db (default: {settings.data_dir})",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"Secrets Manager v{__version__}",
    )
    return parser


def main(argv=None):
    """Main entry point for the secrets-manager command."""
    settings = Settings.from_env()
    args = build_parser(settings).parse_args(argv)

    configure_logging(settings.log_level, json=settings.log_json)

    from .api.main import start_api_server
    from .api.vault_routes import configure_vault_manager

    paths = VaultPaths.from_dir(args.data_dir)
    configure_vault_manager(paths)
    logger.info("starting", host=args.host, port=args.port, data_dir=str(paths.data_dir))

    try:
        start_api_server(host=args.host, port=args.port, log_level=settings.log_level)
    except KeyboardInterrupt:
        logger.info("stopped", reason="user_interrupt")
    except Exception:
        logger.critical("crashed", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
