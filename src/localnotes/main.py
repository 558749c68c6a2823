#!/usr/bin/env python
"""Main entry point for the LocalNotes MCP server."""
import argparse
import atexit
import logging
import os
import sys
from pathlib import Path

from localnotes import __version__
from localnotes.config import config
from localnotes.observability import configure_logging, metrics
from localnotes.server.mcp_server import LocalNotesMcpServer
from localnotes.services.note_service import NoteService

METRICS_FILE_NAME = "metrics.json"


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="LocalNotes MCP Server")
    parser.add_argument(
        "--storage-root",
        help="Directory holding notes/, meta/, images/ and versions/",
        type=str,
        default=os.environ.get("LOCALNOTES_STORAGE_ROOT"),
    )
    parser.add_argument(
        "--log-dir",
        help="Directory for rotating log files",
        type=str,
        default=os.environ.get("LOCALNOTES_LOG_DIR"),
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.environ.get("LOCALNOTES_LOG_LEVEL", "INFO").upper(),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def update_config(args):
    """Update the global config with command line arguments."""
    if args.storage_root:
        config.storage_root = Path(args.storage_root)
    if args.log_dir:
        config.log_dir = Path(args.log_dir)
    config.log_level = args.log_level


def _save_metrics_on_exit():
    """Save metrics to disk on server shutdown."""
    try:
        if metrics.save_metrics():
            logging.getLogger(__name__).info("Metrics saved to disk on shutdown")
    except Exception as e:
        logging.getLogger(__name__).warning(f"Failed to save metrics on shutdown: {e}")


def main(argv=None):
    """Run the LocalNotes MCP server."""
    args = parse_args(argv)
    update_config(args)

    # Configure logging (console + persistent file logging with rotation)
    log_level = getattr(logging, config.log_level, logging.INFO)
    try:
        log_file = configure_logging(config.log_dir, level=log_level, console=True)
    except OSError as e:
        # Fall back to basic console logging if file logging fails
        logging.basicConfig(level=log_level)
        logging.getLogger(__name__).warning(f"Failed to configure file logging: {e}")
        log_file = None

    logger = logging.getLogger(__name__)
    if log_file:
        logger.info(f"Persistent logging enabled: {log_file}")

    metrics.set_metrics_file(config.log_dir / METRICS_FILE_NAME)
    atexit.register(_save_metrics_on_exit)

    storage_root = config.get_storage_root()
    try:
        logger.info(f"Using storage root: {storage_root}")
        service = NoteService(storage_root)
    except Exception as e:
        logger.error(f"Failed to initialize storage: {e}")
        sys.exit(1)

    try:
        logger.info("Starting LocalNotes MCP server")
        server = LocalNotesMcpServer(service)
        server.run()
    except Exception as e:
        logger.error(f"Error running server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
