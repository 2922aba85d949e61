"""
Threaded HTTP listener and captive portal lifecycle.

PortalServer runs a FastAPI app under uvicorn on a background thread so the
foreground menu keeps polling. CaptivePortal ties the listener to the access
point and the outcome channel.
"""
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import List, Optional

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from settings import LOG_LEVEL, PORTAL_BIND_ADDRESS, PORTAL_PORT
from portal.access_point import AccessPoint, PortalSession
from portal.outcome import OutcomeChannel
from portal.detection import create_detection_router

logger = logging.getLogger(__name__)

STARTUP_TIMEOUT = 5.0
SHUTDOWN_TIMEOUT = 5.0


def create_portal_app(title: str) -> FastAPI:
    """Base FastAPI app with the OS detection routes and a catch-all redirect

    Any path the portal does not serve is sent to "/", so a client that
    typed an arbitrary URL still lands on the portal.
    """
    app = FastAPI(title=title, docs_url=None, redoc_url=None, openapi_url=None)
    app.include_router(create_detection_router())

    @app.exception_handler(StarletteHTTPException)
    async def redirect_unknown_paths(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return RedirectResponse(url="/", status_code=302)
        return await http_exception_handler(request, exc)

    return app


class PortalServer:
    """uvicorn server wrapper running on a daemon thread"""

    def __init__(self, app: FastAPI, host: str = PORTAL_BIND_ADDRESS, port: int = PORTAL_PORT):
        self.app = app
        self.host = host
        self.port = port
        self.server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None

    def start(self) -> bool:
        """Start listening; returns False if the socket could not be bound"""
        self.stop()
        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_level=LOG_LEVEL,
            access_log=False
        )
        self.server = uvicorn.Server(config)
        self._thread = threading.Thread(target=self.server.run, name="portal-http", daemon=True)
        self._thread.start()

        deadline = time.monotonic() + STARTUP_TIMEOUT
        while not self.server.started and self._thread.is_alive():
            if time.monotonic() > deadline:
                break
            time.sleep(0.05)

        if not self.server.started:
            logger.error(f"Portal listener failed to start on {self.host}:{self.port}")
            self.stop()
            return False
        logger.info(f"Portal listening on http://{self.host}:{self.port}")
        return True

    def stop(self):
        """Stop the listener; safe to call when it is not running"""
        if self.server:
            self.server.should_exit = True
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=SHUTDOWN_TIMEOUT)
        self.server = None
        self._thread = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


class CaptivePortal(ABC):
    """Access point + captive DNS + HTTP listener serving one portal app"""

    title = "Git Portal"

    def __init__(
        self,
        access_point: AccessPoint,
        channel: Optional[OutcomeChannel] = None,
        host: str = PORTAL_BIND_ADDRESS,
        port: int = PORTAL_PORT,
    ):
        self.access_point = access_point
        self.channel = channel or OutcomeChannel()
        self.host = host
        self.port = port
        self._server: Optional[PortalServer] = None
        self._token_received = threading.Event()
        self._routers: List[APIRouter] = []

    @abstractmethod
    def build_app(self) -> FastAPI:
        """Build the FastAPI app with this portal's routes"""
        pass

    def add_router(self, router: APIRouter) -> None:
        """Serve extra routes next to the portal's own (takes effect on start)"""
        self._routers.append(router)

    def create_app(self) -> FastAPI:
        app = self.build_app()
        for router in self._routers:
            app.include_router(router)
        return app

    def clear_secrets(self) -> None:
        """Forget transient secrets held by the portal"""
        self.channel.clear()
        self._token_received.clear()

    def start(self, ssid: str) -> bool:
        """Bring up the access point and the listener

        A portal that is already running is stopped first.

        Returns:
            True if the portal is serving
        """
        self.stop()
        if not self.access_point.start(ssid):
            return False
        self._server = PortalServer(self.create_app(), host=self.host, port=self.port)
        if not self._server.start():
            self._server = None
            self.access_point.stop()
            return False
        return True

    def stop(self) -> None:
        """Release listener, DNS and radio; safe to call repeatedly or before start"""
        if self._server is not None:
            self._server.stop()
            self._server = None
        self.access_point.stop()
        self.clear_secrets()

    def mark_token_received(self) -> None:
        self._token_received.set()

    @property
    def is_active(self) -> bool:
        return self._server is not None and self.access_point.is_active

    @property
    def session(self) -> PortalSession:
        return PortalSession(
            ap_ssid=self.access_point.ssid,
            ap_active=self.access_point.is_active,
            token_received=self._token_received.is_set(),
        )
