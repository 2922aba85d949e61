"""
OAuth2 Authorization Code flow served from the captive portal.

States: IDLE -> ACTIVE -> AWAITING_CALLBACK -> EXCHANGING ->
{AUTHENTICATED | FAILED}; stop() returns to IDLE from anywhere.

Each /start issues a fresh state nonce. A callback is checked against that
nonce before anything touches the network, and a matching nonce is consumed
so it cannot be replayed.
"""
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

from fastapi import FastAPI
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from settings import OAUTH_CALLBACK_PATH
from portal.access_point import AccessPoint
from portal.outcome import OutcomeChannel, PortalOutcome
from portal.pages import error_page, oauth_instructions_page, success_page
from portal.server import CaptivePortal, create_portal_app
from providers.base_provider import GitProvider
from providers.session import ProviderType, create_provider
from utils.storage import ConfigStore
from .authorization import build_authorize_url, create_state
from .backends import OAuthBackend
from .constants import default_redirect_uri

logger = logging.getLogger(__name__)

# Returned for a callback that arrives after the flow already succeeded
ALREADY_AUTHENTICATED = "already_authenticated"


class FlowState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    AWAITING_CALLBACK = "awaiting_callback"
    EXCHANGING = "exchanging"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


@dataclass
class OAuthSession:
    """Secrets and nonce of one running flow; discarded on stop()"""
    client_id: str
    client_secret: str
    redirect_uri: str
    scope: str
    state_nonce: str = ""
    temp_token: str = ""
    active: bool = True


class OAuthFlow:
    """Authorization Code flow state machine

    Route handlers call into this object from the server thread; every
    state transition happens under one lock. The lock is not held across
    the token exchange or the identity check.
    """

    def __init__(
        self,
        provider_type: ProviderType,
        backend: OAuthBackend,
        config_store: ConfigStore,
        channel: OutcomeChannel,
        provider_factory: Callable[..., GitProvider] = create_provider,
        api_base_url: Optional[str] = None,
    ):
        """
        Args:
            provider_type: Provider the token is for (also used to verify it)
            backend: Token exchange backend
            config_store: Where the token is persisted once verified
            channel: Outcome channel polled by the menu
            provider_factory: Builds the fresh provider that verifies the token
            api_base_url: API base for self-hosted instances
        """
        self.provider_type = ProviderType(provider_type)
        self.backend = backend
        self.config_store = config_store
        self.channel = channel
        self.provider_factory = provider_factory
        self.api_base_url = api_base_url
        self._session: Optional[OAuthSession] = None
        self._state = FlowState.IDLE
        self._token_delivered = False
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, client_id: str, client_secret: str, redirect_uri: Optional[str] = None) -> None:
        """Create the OAuth session; the first nonce is issued by /start"""
        with self._lock:
            self._session = OAuthSession(
                client_id=client_id,
                client_secret=client_secret,
                redirect_uri=redirect_uri or default_redirect_uri(),
                scope=self.backend.endpoints.scope,
            )
            self._state = FlowState.ACTIVE
            self._token_delivered = False
        logger.info(f"OAuth flow started for {self.provider_type.label}")

    def stop(self) -> None:
        """Destroy the session, nonce and any temporary token"""
        with self._lock:
            if self._session is not None:
                self._session.state_nonce = ""
                self._session.temp_token = ""
                self._session.client_secret = ""
                self._session.active = False
            self._session = None
            self._state = FlowState.IDLE
            self._token_delivered = False

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._session is not None and self._session.active

    @property
    def current_nonce(self) -> str:
        session = self._session
        return session.state_nonce if session else ""

    def status(self) -> Dict[str, Any]:
        return {
            "active": self.is_active,
            "hasToken": self._token_delivered,
            "state": self._state.value,
        }

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def authorize_url(self) -> Optional[str]:
        """Issue a new nonce and build the provider authorize URL

        Returns:
            URL to redirect the browser to, or None if no flow is active
        """
        with self._lock:
            if not self.is_active:
                return None
            session = self._session
            session.state_nonce = create_state(previous=session.state_nonce or None)
            self._state = FlowState.AWAITING_CALLBACK
            return build_authorize_url(
                self.backend.endpoints,
                client_id=session.client_id,
                redirect_uri=session.redirect_uri,
                state=session.state_nonce,
                scope=session.scope,
            )

    def handle_callback(
        self, code: Optional[str], state: Optional[str], error: Optional[str] = None
    ) -> Optional[str]:
        """Validate a callback, exchange the code and verify the token

        Args:
            code: Authorization code query parameter
            state: State query parameter
            error: Provider-reported error, if any

        Returns:
            None on success, ALREADY_AUTHENTICATED for a callback arriving
            after the flow succeeded, otherwise the reason code
        """
        with self._lock:
            session = self._session
            if session is None or not session.active:
                reason = "flow_inactive"
            elif self._state == FlowState.AUTHENTICATED:
                # A reload or replay of the callback page; the outcome stands
                return ALREADY_AUTHENTICATED
            elif error:
                reason = error
            elif not code:
                reason = "no_code"
            elif not state or not session.state_nonce or state != session.state_nonce:
                reason = "invalid_state"
            else:
                reason = None
                session.state_nonce = ""
                self._state = FlowState.EXCHANGING
                client_id = session.client_id
                client_secret = session.client_secret
                redirect_uri = session.redirect_uri

        if reason is not None:
            # Nothing has been sent anywhere for these
            return self._fail(session, reason)

        result = self.backend.exchange_code(code, client_id, client_secret, redirect_uri)
        if result.error:
            logger.info(f"Token exchange failed: {result.detail}")
            return self._fail(session, result.error)

        with self._lock:
            if self._session is not session or not session.active:
                return "flow_inactive"
            session.temp_token = result.access_token

        if not self._verify_token(result.access_token):
            return self._fail(session, "token_validation_failed")

        return self._complete(session, result.access_token)

    def _verify_token(self, token: str) -> bool:
        """Confirm the token with a fresh provider instance"""
        provider = self.provider_factory(self.provider_type, self.api_base_url)
        try:
            if provider.begin(token):
                logger.info(f"OAuth token accepted for {provider.username}")
                return True
            logger.info(f"OAuth token rejected by {provider.display_name}: {provider.last_error()}")
            return False
        finally:
            provider.close()

    def _is_current(self, session: Optional[OAuthSession]) -> bool:
        # Caller holds self._lock
        return session is not None and self._session is session and session.active

    def _complete(self, session: OAuthSession, token: str) -> Optional[str]:
        """Persist and publish the token unless the flow was stopped meanwhile"""
        provider = self.provider_type.value
        with self._lock:
            session.temp_token = ""
            if not self._is_current(session):
                logger.info("OAuth flow stopped before the token could be stored")
                return "flow_inactive"
            self.config_store.update(provider, token=token, oauth_enabled=True)
            self.config_store.set_active_provider(provider)
            self._state = FlowState.AUTHENTICATED
            self._token_delivered = True
            self.channel.publish(PortalOutcome(token=token, provider=provider))
        return None

    def _fail(self, session: Optional[OAuthSession], reason: str) -> str:
        with self._lock:
            if session is not None:
                session.temp_token = ""
            # A stopped or replaced flow has nobody waiting for its outcome
            if not self._is_current(session):
                return reason
            if self._state == FlowState.AUTHENTICATED:
                return reason
            self._state = FlowState.FAILED
            self.channel.publish(PortalOutcome(error=reason, provider=self.provider_type.value))
        return reason


def create_oauth_app(flow: OAuthFlow, title: str = "Git Portal: sign in") -> FastAPI:
    """Portal app exposing the OAuth routes plus the connectivity-check routes"""
    app = create_portal_app(title)

    @app.get("/", response_class=HTMLResponse)
    def index():
        return oauth_instructions_page(flow.provider_type.label, flow.backend.endpoints.scope)

    @app.get("/start")
    def start():
        url = flow.authorize_url()
        if url is None:
            return RedirectResponse(url="/error?error=flow_inactive", status_code=302)
        return RedirectResponse(url=url, status_code=302)

    @app.get(OAUTH_CALLBACK_PATH)
    def callback(code: Optional[str] = None, state: Optional[str] = None, error: Optional[str] = None):
        reason = flow.handle_callback(code, state, error)
        if reason is not None and reason != ALREADY_AUTHENTICATED:
            return RedirectResponse(url=f"/error?{urlencode({'error': reason})}", status_code=302)
        return RedirectResponse(url="/success", status_code=302)

    @app.get("/success", response_class=HTMLResponse)
    def success():
        return success_page()

    @app.get("/error", response_class=HTMLResponse)
    def error(error: str = "unknown"):
        return error_page(error)

    @app.get("/status")
    def status():
        return JSONResponse(flow.status())

    extra = flow.backend.router()
    if extra is not None:
        app.include_router(extra)

    return app


class OAuthPortal(CaptivePortal):
    """Captive portal hosting an OAuthFlow"""

    title = "Git Portal: sign in"

    def __init__(self, flow: OAuthFlow, access_point: AccessPoint, **kwargs):
        super().__init__(access_point, channel=flow.channel, **kwargs)
        self.flow = flow

    def build_app(self) -> FastAPI:
        return create_oauth_app(self.flow, self.title)

    def start_flow(self, ssid: str, client_id: str, client_secret: str) -> bool:
        """Bring the portal up, then open the OAuth session

        start() tears down any previous session, so the flow is started last.
        """
        if not self.start(ssid):
            return False
        self.flow.start(client_id, client_secret, default_redirect_uri(self.access_point.address))
        return True

    def clear_secrets(self) -> None:
        self.flow.stop()
        super().clear_secrets()
