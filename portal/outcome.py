"""
Single-producer/single-consumer hand-off between a portal route handler and
the foreground polling loop.

Route handlers run on the server thread and publish exactly one final
outcome per attempt; the menu polls for it. Neither side ever touches the
other's buffers.
"""
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PortalOutcome:
    """Final result of a portal attempt: a token or a reason code"""
    token: str = ""
    error: str = ""
    provider: str = ""

    @property
    def succeeded(self) -> bool:
        return bool(self.token) and not self.error

    def __repr__(self) -> str:
        # Never print the token itself
        token = "<set>" if self.token else "<empty>"
        return f"PortalOutcome(token={token}, error={self.error!r}, provider={self.provider!r})"


class OutcomeChannel:
    """Bounded channel holding at most one undelivered outcome

    A newer outcome replaces an unread older one, so the poller sees the
    latest attempt. The one exception is an unread success: a later error
    is dropped rather than let it hide a token that was already issued.
    """

    def __init__(self):
        self._queue: "queue.Queue[PortalOutcome]" = queue.Queue(maxsize=1)
        self._publish_lock = threading.Lock()

    def publish(self, outcome: PortalOutcome) -> bool:
        """Offer an outcome to the poller

        Returns:
            False if the outcome was dropped in favour of an unread success
        """
        with self._publish_lock:
            while True:
                try:
                    self._queue.put_nowait(outcome)
                    break
                except queue.Full:
                    try:
                        pending = self._queue.get_nowait()
                    except queue.Empty:
                        continue
                    if pending.succeeded and not outcome.succeeded:
                        self._queue.put_nowait(pending)
                        logger.info(f"Dropped {outcome!r}; an unread success is pending")
                        return False
        logger.debug(f"Published {outcome!r}")
        return True

    def poll(self, timeout: Optional[float] = None) -> Optional[PortalOutcome]:
        """Take the pending outcome, waiting up to timeout seconds

        Args:
            timeout: Seconds to wait; None returns immediately

        Returns:
            The outcome, or None if nothing was published
        """
        try:
            if timeout is None:
                return self._queue.get_nowait()
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    @property
    def pending(self) -> bool:
        return not self._queue.empty()

    def clear(self) -> None:
        """Drop any undelivered outcome (and the secret it may carry)"""
        while self.poll() is not None:
            pass
