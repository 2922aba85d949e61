"""Shared utilities package for gitportal"""

from .storage import ConfigStore
from .debug_console import (
    DebugCapturingConsole,
    create_debug_console,
    redact_secrets,
    setup_debug_logger,
)

__all__ = [
    "ConfigStore",
    "DebugCapturingConsole",
    "create_debug_console",
    "redact_secrets",
    "setup_debug_logger",
]
