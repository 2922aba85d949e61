"""Foreground wait loop for a running portal"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from settings import POLL_INTERVAL, PORTAL_TIMEOUT
from portal.outcome import PortalOutcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WaitResult:
    outcome: Optional[PortalOutcome] = None
    cancelled: bool = False
    timed_out: bool = False

    @property
    def token(self) -> str:
        if self.outcome is not None and self.outcome.succeeded:
            return self.outcome.token
        return ""


def wait_for_token(
    portal,
    cancel: threading.Event,
    timeout: float = PORTAL_TIMEOUT,
    interval: float = POLL_INTERVAL,
    on_error: Optional[Callable[[PortalOutcome], None]] = None,
    clock: Callable[[], float] = time.monotonic,
) -> WaitResult:
    """Poll a portal's outcome channel until a token arrives

    Error outcomes are reported through on_error and the wait goes on, since
    the user can retry from the browser. Ctrl+C sets the cancel event. The
    portal is always stopped before returning, which also discards any nonce
    or half-finished session.

    Args:
        portal: Running portal exposing `channel` and `stop()`
        cancel: Set by the caller (or by Ctrl+C) to abandon the wait
        timeout: Seconds before giving up
        interval: Poll tick in seconds
        on_error: Called with each error outcome
        clock: Monotonic time source

    Returns:
        WaitResult with the successful outcome, or the reason there is none
    """
    deadline = clock() + timeout
    try:
        while True:
            if cancel.is_set():
                logger.info("Portal wait cancelled")
                return WaitResult(cancelled=True)
            if clock() >= deadline:
                logger.info("Portal wait timed out")
                return WaitResult(timed_out=True)

            outcome = portal.channel.poll(timeout=interval)
            if outcome is None:
                continue
            if outcome.succeeded:
                return WaitResult(outcome=outcome)
            logger.info(f"Portal attempt failed: {outcome.error}")
            if on_error is not None:
                on_error(outcome)
    except KeyboardInterrupt:
        cancel.set()
        logger.info("Portal wait interrupted")
        return WaitResult(cancelled=True)
    finally:
        portal.stop()
