"""
QR-assisted secondary portal.

The device shows a QR code pointing at a time-limited link on its own access
point. Scanning it lands the phone on either the manual token form or the
OAuth sign-in, depending on the mode.
"""
import io
import logging
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional
from urllib.parse import urlencode

import qrcode
from fastapi import APIRouter
from fastapi.responses import HTMLResponse, RedirectResponse
from rich.console import Console

from settings import QR_LINK_TTL
from oauth.backends import SimulatedOAuthBackend, create_backend
from oauth.flow import OAuthFlow, OAuthPortal
from portal.access_point import AccessPoint, PortalSession
from portal.outcome import OutcomeChannel
from portal.pages import error_page
from portal.server import CaptivePortal
from portal.token_portal import TokenPortal
from providers.session import ProviderType
from utils.storage import ConfigStore

logger = logging.getLogger(__name__)

LINK_PATH = "/link"


class QRMode(str, Enum):
    TOKEN = "token"
    OAUTH = "oauth"
    SIMULATED = "simulated"


def build_link(address: str, provider: str, timestamp: Optional[int] = None) -> str:
    """Build the link encoded in the QR code

    Args:
        address: Access point address
        provider: Provider type value
        timestamp: Issue time in epoch seconds (defaults to now)
    """
    if timestamp is None:
        timestamp = int(time.time())
    query = urlencode({"provider": provider, "timestamp": timestamp})
    return f"http://{address}{LINK_PATH}?{query}"


def link_is_fresh(timestamp: str, now: float, ttl: int = QR_LINK_TTL) -> bool:
    """Check that a link timestamp is no older than ttl seconds"""
    try:
        issued = int(timestamp)
    except (TypeError, ValueError):
        return False
    age = now - issued
    return 0 <= age <= ttl


class QRRenderer(ABC):
    """Shows a QR code to the user"""

    @abstractmethod
    def render(self, data: str) -> None:
        pass


class TerminalQRRenderer(QRRenderer):
    """Draws the QR code as text blocks on the console"""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def render(self, data: str) -> None:
        qr = qrcode.QRCode(border=2)
        qr.add_data(data)
        qr.make(fit=True)
        buffer = io.StringIO()
        qr.print_ascii(out=buffer, invert=True)
        self.console.out(buffer.getvalue())
        self.console.print(f"[dim]{data}[/dim]")


class QRPortal:
    """Runs a token or OAuth portal reachable through a QR link"""

    def __init__(
        self,
        mode: QRMode,
        provider_type: ProviderType,
        access_point: AccessPoint,
        config_store: ConfigStore,
        renderer: Optional[QRRenderer] = None,
        client_id: str = "",
        client_secret: str = "",
        channel: Optional[OutcomeChannel] = None,
        clock: Callable[[], float] = time.time,
        ttl: int = QR_LINK_TTL,
        **portal_kwargs,
    ):
        """
        Args:
            mode: Which portal the link leads to
            provider_type: Provider to connect (ignored for simulated mode,
                which always uses the demo provider)
            access_point: Access point to bring up
            config_store: Where the token ends up
            renderer: QR renderer (terminal by default)
            client_id: OAuth client id (oauth mode)
            client_secret: OAuth client secret (oauth mode)
            channel: Outcome channel polled by the menu
            clock: Time source for link issue and expiry
            ttl: Link lifetime in seconds
            portal_kwargs: host/port passed through to the portal
        """
        self.mode = QRMode(mode)
        self.provider_type = ProviderType.DEMO if self.mode == QRMode.SIMULATED else ProviderType(provider_type)
        self.access_point = access_point
        self.config_store = config_store
        self.renderer = renderer or TerminalQRRenderer()
        self.client_id = client_id
        self.client_secret = client_secret
        self.clock = clock
        self.ttl = ttl
        self.portal = self._build_portal(channel or OutcomeChannel(), portal_kwargs)
        self.portal.add_router(self.link_router())

    def _build_portal(self, channel: OutcomeChannel, portal_kwargs) -> CaptivePortal:
        if self.mode == QRMode.TOKEN:
            return TokenPortal(
                self.provider_type.value,
                self.provider_type.label,
                self.access_point,
                channel=channel,
                **portal_kwargs,
            )

        if self.mode == QRMode.SIMULATED:
            backend = SimulatedOAuthBackend(self.access_point.address)
        else:
            backend = create_backend(
                self.provider_type.value,
                simulated=False,
                base_url=self.config_store.get(self.provider_type.value, "api_base_url"),
            )
        flow = OAuthFlow(
            self.provider_type,
            backend,
            self.config_store,
            channel,
        )
        return OAuthPortal(flow, self.access_point, **portal_kwargs)

    @property
    def channel(self) -> OutcomeChannel:
        return self.portal.channel

    @property
    def session(self) -> PortalSession:
        return self.portal.session

    @property
    def entry_path(self) -> str:
        return "/" if self.mode == QRMode.TOKEN else "/start"

    def link(self) -> str:
        """Issue a fresh link stamped with the current time"""
        return build_link(self.access_point.address, self.provider_type.value, int(self.clock()))

    def link_router(self) -> APIRouter:
        router = APIRouter()

        @router.get(LINK_PATH)
        def follow_link(provider: str = "", timestamp: str = ""):
            if provider != self.provider_type.value:
                return HTMLResponse(error_page("unknown_provider"), status_code=400)
            if not link_is_fresh(timestamp, self.clock(), self.ttl):
                logger.info("Expired QR link used")
                return HTMLResponse(error_page("link_expired"), status_code=410)
            return RedirectResponse(url=self.entry_path, status_code=302)

        return router

    def start(self, ssid: str) -> bool:
        """Bring up the portal and show the QR code"""
        if isinstance(self.portal, OAuthPortal):
            started = self.portal.start_flow(ssid, self.client_id, self.client_secret)
        else:
            started = self.portal.start(ssid)
        if not started:
            return False
        self.renderer.render(self.link())
        return True

    def stop(self) -> None:
        self.portal.stop()

    @property
    def is_active(self) -> bool:
        return self.portal.is_active
