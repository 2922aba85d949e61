"""Debug console module for capturing Rich console output to log files.

When --debug is passed, everything the menus print is mirrored as plain text
into the debug log. Tokens typed or shown on screen are masked before they
reach the file.
"""

import io
import logging
import re
from typing import Optional

from rich.console import Console as RichConsole

from settings import DEBUG_LOG_FILE

# ANSI escape sequence pattern
_ANSI_ESCAPE = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')

# Token shapes accepted by the token portal: prefixed GitHub/GitLab tokens,
# 40-hex classic tokens and 32-hex Gitee tokens
_TOKEN_PATTERN = re.compile(
    r'\b(?:gh[pousr]_[A-Za-z0-9_]+|github_pat_[A-Za-z0-9_]+|glpat-[A-Za-z0-9_-]+'
    r'|[0-9a-fA-F]{40}|[0-9a-fA-F]{32})\b'
)


def redact_secrets(text: str) -> str:
    """Mask anything shaped like an access token, keeping its first 4 characters"""
    return _TOKEN_PATTERN.sub(lambda m: f"{m.group(0)[:4]}****", text)


class DebugCapturingConsole(RichConsole):
    """
    Rich Console that mirrors its output to a debug logger.

    Terminal output keeps its formatting; the log receives a plain-text,
    token-masked copy.
    """

    def __init__(self, debug_logger: Optional[logging.Logger] = None, *args, **kwargs):
        """
        Args:
            debug_logger: Logger instance to write captured output to
            *args, **kwargs: Arguments passed to Rich Console
        """
        super().__init__(*args, **kwargs)
        self.debug_logger = debug_logger
        self._log_prefix = "[CONSOLE] "

    def print(self, *objects, **kwargs):
        super().print(*objects, **kwargs)

        if self.debug_logger and self.debug_logger.isEnabledFor(logging.DEBUG):
            plain_text = self._render_to_plain_text(*objects, **kwargs)
            if plain_text.strip():
                self.debug_logger.debug(f"{self._log_prefix}{redact_secrets(plain_text)}")

    def _render_to_plain_text(self, *objects, **kwargs) -> str:
        """Render objects through a throwaway non-terminal console"""
        string_buffer = io.StringIO()
        temp_console = RichConsole(
            file=string_buffer,
            force_terminal=False,
            width=self.width,
            legacy_windows=False
        )
        temp_console.print(*objects, **kwargs)
        return _ANSI_ESCAPE.sub('', string_buffer.getvalue()).rstrip()


def create_debug_console(debug_enabled: bool = False,
                         debug_logger: Optional[logging.Logger] = None) -> RichConsole:
    """
    Create appropriate console instance based on debug mode.

    Args:
        debug_enabled: Whether debug mode is enabled
        debug_logger: Logger instance for debug output

    Returns:
        DebugCapturingConsole if debug enabled, regular Console otherwise
    """
    if debug_enabled and debug_logger:
        return DebugCapturingConsole(debug_logger=debug_logger)
    return RichConsole()


def setup_debug_logger(log_file: str = DEBUG_LOG_FILE) -> logging.Logger:
    """
    Set up a dedicated logger for debug console output.

    Args:
        log_file: Path to debug log file

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("debug_console")
    logger.setLevel(logging.DEBUG)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter('%(asctime)s - %(message)s'))
    logger.addHandler(file_handler)

    # Root logging may write to the same file; keep console lines single
    logger.propagate = False

    return logger
