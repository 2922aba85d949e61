"""
Single-handle HTTP machinery shared by the REST providers.

Each provider owns exactly one RestTransport. The transport keeps the last
status code, error message and failure kind, and refuses a second request
while one is still in flight.
"""
import logging
import threading
from typing import Any, Callable, Dict, Optional

import httpx

from settings import CONNECT_TIMEOUT, REQUEST_TIMEOUT, USER_AGENT
from providers.errors import FailureKind

logger = logging.getLogger(__name__)

AuthHeaders = Callable[[], Dict[str, str]]


class RestTransport:
    """Synchronous JSON transport with per-instance error introspection"""

    def __init__(
        self,
        auth_headers: AuthHeaders,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        """
        Args:
            auth_headers: Returns the backend's native auth header for the
                current token
            transport: Optional httpx transport (tests pass a MockTransport)
            timeout: Request timeout in seconds
        """
        self._auth_headers = auth_headers
        self._client = httpx.Client(
            transport=transport,
            timeout=httpx.Timeout(timeout, connect=CONNECT_TIMEOUT),
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        )
        self._in_flight = threading.Lock()
        self.last_error = ""
        self.response_code = 0
        self.last_failure = FailureKind.NONE

    def fail(self, kind: FailureKind, message: str, code: Optional[int] = None) -> None:
        """Record a failure without touching the network"""
        self.last_failure = kind
        self.last_error = message
        if code is not None:
            self.response_code = code
        logger.debug(f"{kind.value}: {message}")

    def reset(self) -> None:
        self.last_error = ""
        self.last_failure = FailureKind.NONE

    def request(
        self,
        method: str,
        url: str,
        json: Any = None,
    ) -> Optional[httpx.Response]:
        """Send one request and classify the outcome

        Args:
            method: HTTP method
            url: Absolute URL (already percent-encoded)
            json: Optional JSON body

        Returns:
            The response for 2xx statuses, None otherwise (details are kept in
            last_error, response_code and last_failure)
        """
        if not self._in_flight.acquire(blocking=False):
            self.fail(FailureKind.BUSY, "Another request is already in progress")
            return None

        try:
            logger.debug(f"{method} {url}")
            response = self._client.request(
                method, url, json=json, headers=self._auth_headers()
            )
        except httpx.HTTPError as e:
            self.fail(FailureKind.TRANSPORT, f"Connection failed: {e}", code=-1)
            return None
        finally:
            self._in_flight.release()

        self.response_code = response.status_code
        logger.debug(f"{method} {url} -> {response.status_code}")
        if not response.is_success:
            self.fail(FailureKind.HTTP, f"HTTP {response.status_code}: {response.text}")
            return None

        self.reset()
        return response

    def decode(self, response: httpx.Response) -> Any:
        """Parse a response body as JSON, recording a PARSE failure if it is not"""
        try:
            return response.json()
        except ValueError as e:
            self.fail(FailureKind.PARSE, f"Invalid JSON in response: {e}")
            return None

    @property
    def busy(self) -> bool:
        return self._in_flight.locked()

    def close(self) -> None:
        self._client.close()
