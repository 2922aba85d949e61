"""Debug console and logging setup for CLI"""

import logging
from typing import Optional

from rich.console import Console

from settings import DEBUG_LOG_FILE, LOG_LEVEL
from utils.debug_console import create_debug_console, setup_debug_logger


def configure_logging(debug: bool, log_file: str = DEBUG_LOG_FILE) -> Optional[logging.Logger]:
    """
    Configure root logging

    With debug enabled every module logger writes to the debug log file and
    a dedicated console logger is returned; otherwise only warnings reach
    stderr so the menus stay readable.

    Args:
        debug: Whether debug mode is enabled
        log_file: Debug log path

    Returns:
        The console debug logger in debug mode, otherwise None
    """
    if not debug:
        level = max(getattr(logging, LOG_LEVEL.upper(), logging.INFO), logging.WARNING)
        logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
        return None

    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        filename=log_file,
        filemode="a",
        encoding="utf-8",
    )
    # Request logs from the HTTP client would include URLs with query strings
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    return setup_debug_logger(log_file)


def setup_debug_console(debug: bool, debug_logger: Optional[logging.Logger] = None) -> Console:
    """
    Setup debug console based on debug mode

    Args:
        debug: Whether debug mode is enabled
        debug_logger: Logger receiving the console mirror

    Returns:
        Console instance (either regular or debug-enabled)
    """
    console = create_debug_console(debug_enabled=debug, debug_logger=debug_logger)

    if debug and debug_logger:
        debug_logger.debug("[CLI] ===== CLI SESSION STARTED =====")

    return console
