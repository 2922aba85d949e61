"""OAuth authorization-code exchange backends

HttpOAuthBackend talks to a real provider's token endpoint.
SimulatedOAuthBackend stands in for a provider when no OAuth application is
registered: it serves its own consent page on the portal and issues tokens
that only the demo provider accepts.
"""

import logging
import secrets
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Set
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter
from fastapi.responses import HTMLResponse, RedirectResponse

from settings import AP_ADDRESS, CONNECT_TIMEOUT, REQUEST_TIMEOUT, SIMULATED_OAUTH, USER_AGENT
from portal.pages import error_page, simulated_consent_page
from providers.demo_provider import DEMO_TOKEN_PREFIX
from .constants import OAuthEndpoints, default_redirect_uri, endpoints_for

logger = logging.getLogger(__name__)

SIMULATED_AUTHORIZE_PATH = "/simulated/authorize"
SIMULATED_CODE_PREFIX = "sim_"


@dataclass(frozen=True)
class ExchangeResult:
    """Outcome of a code-for-token exchange

    Attributes:
        access_token: Issued token, empty on failure
        error: Reason code ("exchange_failed" or "no_token"), empty on success
        detail: Diagnostic text for the log; never contains the token
    """
    access_token: str = ""
    error: str = ""
    detail: str = ""


class OAuthBackend(ABC):
    """Token endpoint of one OAuth provider"""

    def __init__(self, endpoints: OAuthEndpoints):
        self.endpoints = endpoints

    @abstractmethod
    def exchange_code(
        self, code: str, client_id: str, client_secret: str, redirect_uri: str
    ) -> ExchangeResult:
        pass

    def router(self) -> Optional[APIRouter]:
        """Extra portal routes this backend needs, if any"""
        return None


class HttpOAuthBackend(OAuthBackend):
    """Exchanges codes against a provider's HTTPS token endpoint"""

    def __init__(self, endpoints: OAuthEndpoints, transport: Optional[httpx.BaseTransport] = None):
        if not endpoints.token_url.startswith("https://"):
            raise ValueError(f"Token endpoint must use HTTPS: {endpoints.token_url}")
        super().__init__(endpoints)
        self._transport = transport

    def exchange_code(
        self, code: str, client_id: str, client_secret: str, redirect_uri: str
    ) -> ExchangeResult:
        """Exchange an authorization code for an access token

        Args:
            code: Authorization code from the callback
            client_id: OAuth application client id
            client_secret: OAuth application client secret
            redirect_uri: The redirect URI used for the authorize request

        Returns:
            ExchangeResult with the token or a reason code
        """
        try:
            with httpx.Client(
                transport=self._transport,
                timeout=httpx.Timeout(REQUEST_TIMEOUT, connect=CONNECT_TIMEOUT),
            ) as client:
                response = client.post(
                    self.endpoints.token_url,
                    data={
                        "grant_type": "authorization_code",
                        "code": code,
                        "client_id": client_id,
                        "client_secret": client_secret,
                        "redirect_uri": redirect_uri,
                    },
                    headers={"Accept": "application/json", "User-Agent": USER_AGENT},
                )
        except httpx.HTTPError as e:
            logger.error(f"Token exchange request failed: {e}")
            return ExchangeResult(error="exchange_failed", detail=str(e))

        if response.status_code != 200:
            logger.error(f"Token exchange failed: {response.status_code} - {response.text}")
            return ExchangeResult(error="exchange_failed", detail=f"HTTP {response.status_code}")

        try:
            token_data = response.json()
        except ValueError:
            return ExchangeResult(error="exchange_failed", detail="Token response is not JSON")

        if not isinstance(token_data, dict):
            return ExchangeResult(error="exchange_failed", detail="Token response is not an object")

        # GitHub reports a bad code with 200 and an "error" field
        if token_data.get("error"):
            detail = token_data.get("error_description") or token_data["error"]
            logger.error(f"Token exchange rejected: {detail}")
            return ExchangeResult(error="exchange_failed", detail=str(detail))

        access_token = token_data.get("access_token")
        if not access_token:
            return ExchangeResult(error="no_token", detail="No access_token in response")

        logger.info("OAuth access token obtained")
        return ExchangeResult(access_token=str(access_token))


class SimulatedOAuthBackend(OAuthBackend):
    """Local stand-in provider for exercising the flow without an OAuth app"""

    def __init__(self, address: str = AP_ADDRESS):
        super().__init__(OAuthEndpoints(
            authorize_url=f"http://{address}{SIMULATED_AUTHORIZE_PATH}",
            token_url="simulated://token",
            scope="demo",
        ))
        self.redirect_uri = default_redirect_uri(address)
        self._issued: Set[str] = set()
        self._lock = threading.Lock()

    def issue_code(self) -> str:
        code = f"{SIMULATED_CODE_PREFIX}{secrets.token_urlsafe(16)}"
        with self._lock:
            self._issued.add(code)
        return code

    def exchange_code(
        self, code: str, client_id: str, client_secret: str, redirect_uri: str
    ) -> ExchangeResult:
        with self._lock:
            known = code in self._issued
            self._issued.discard(code)
        if not known:
            return ExchangeResult(error="exchange_failed", detail="Unknown simulated code")
        return ExchangeResult(access_token=f"{DEMO_TOKEN_PREFIX}{secrets.token_urlsafe(24)}")

    def router(self) -> APIRouter:
        router = APIRouter()

        @router.get(SIMULATED_AUTHORIZE_PATH, response_class=HTMLResponse)
        def authorize(redirect_uri: str, state: str = "", approve: Optional[str] = None):
            # Only ever send the browser back to this portal's own callback
            if redirect_uri != self.redirect_uri:
                logger.warning("Simulated authorize request with a foreign redirect_uri")
                return HTMLResponse(error_page("redirect_uri_mismatch"), status_code=400)
            if approve == "1":
                query = urlencode({"code": self.issue_code(), "state": state})
                return RedirectResponse(url=f"{self.redirect_uri}?{query}", status_code=302)
            if approve == "0":
                query = urlencode({"error": "access_denied", "state": state})
                return RedirectResponse(url=f"{self.redirect_uri}?{query}", status_code=302)
            base = {"redirect_uri": self.redirect_uri, "state": state}
            return simulated_consent_page(
                approve_url=f"{SIMULATED_AUTHORIZE_PATH}?{urlencode({**base, 'approve': '1'})}",
                deny_url=f"{SIMULATED_AUTHORIZE_PATH}?{urlencode({**base, 'approve': '0'})}",
            )

        return router


def create_backend(
    provider: str,
    simulated: bool = SIMULATED_OAUTH,
    base_url: Optional[str] = None,
    transport: Optional[httpx.BaseTransport] = None,
    address: str = AP_ADDRESS,
) -> OAuthBackend:
    """Pick the exchange backend for a provider

    The simulated backend is only returned when configuration enables it.

    Args:
        provider: Provider type value
        simulated: Whether simulated OAuth is enabled
        base_url: Web root or API base of a self-hosted GitLab, if any
        transport: Optional httpx transport (tests)
        address: Portal address the simulated consent page is served from

    Raises:
        ValueError: If the provider has no OAuth endpoints
    """
    if simulated:
        logger.warning("Simulated OAuth backend selected; tokens only work with the demo provider")
        return SimulatedOAuthBackend(address)
    endpoints = endpoints_for(provider, base_url)
    if endpoints is None:
        raise ValueError(f"No OAuth endpoints for provider: {provider}")
    return HttpOAuthBackend(endpoints, transport=transport)
