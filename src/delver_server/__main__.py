"""CLI entry point for delver-server.

This module provides the command-line interface for starting the delver-server.
It can be invoked as `delver-server` (via the script entry point) or
`python -m delver_server`.
"""

import argparse
import logging
import sys

import uvicorn

from delver_server import __version__, create_app
from delver_server.config import DelverServerSettings


def main() -> None:
    """Main entry point for the delver-server CLI.

    Parses command-line arguments and starts the uvicorn server with the
    FastAPI application.
    """
    parser = argparse.ArgumentParser(
        prog="delver-server",
        description="Local chat assistant server with tool calling over a personal document store",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"delver-server {__version__}",
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind the server to (default: 127.0.0.1, can be set via DELVER_HOST)",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind the server to (default: 8000, can be set via DELVER_PORT)",
    )

    parser.add_argument(
        "--ollama-host",
        type=str,
        default=None,
        help="Ollama server URL (default: http://localhost:11434, can be set via DELVER_OLLAMA_HOST)",
    )

    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Base directory for all data (default: ., can be set via DELVER_DATA_DIR)",
    )

    parser.add_argument(
        "--vault-dir",
        type=str,
        default=None,
        help="Document store directory relative to the data dir (default: vault, can be set via DELVER_VAULT_DIR)",
    )

    parser.add_argument(
        "--model",
        type=str,
        default=None,
        help="Default model for new sessions (default: gpt-oss:20b, can be set via DELVER_DEFAULT_MODEL)",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO, can be set via DELVER_LOG_LEVEL)",
    )

    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development (uvicorn --reload)",
    )

    args = parser.parse_args()

    # Build settings, CLI args override environment variables
    settings_kwargs = {}
    if args.host is not None:
        settings_kwargs["host"] = args.host
    if args.port is not None:
        settings_kwargs["port"] = args.port
    if args.ollama_host is not None:
        settings_kwargs["ollama_host"] = args.ollama_host
    if args.data_dir is not None:
        settings_kwargs["data_dir"] = args.data_dir
    if args.vault_dir is not None:
        settings_kwargs["vault_dir"] = args.vault_dir
    if args.model is not None:
        settings_kwargs["default_model"] = args.model
    if args.log_level is not None:
        settings_kwargs["log_level"] = args.log_level

    settings = DelverServerSettings(**settings_kwargs)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Create the FastAPI app
    app = create_app(settings=settings)

    # Start uvicorn
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=args.reload,
    )


if __name__ == "__main__":
    sys.exit(main())
