"""
Manual-token captive portal.

A phone joins the device's access point, gets the token form, and pastes a
personal access token. The token's shape is checked locally; nothing is sent
to the network from here. Accepted tokens are handed to the menu through the
outcome channel; the menu checks them against the provider and only then
saves them.
"""
import logging
from typing import Optional
from urllib.parse import parse_qs

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from oauth.validators import token_format_error
from portal.access_point import AccessPoint
from portal.outcome import OutcomeChannel, PortalOutcome
from portal.pages import success_page, token_form_page
from portal.server import CaptivePortal, create_portal_app

logger = logging.getLogger(__name__)


async def read_form_field(request: Request, field: str) -> str:
    """Read one field from an application/x-www-form-urlencoded body"""
    body = (await request.body()).decode("utf-8", errors="replace")
    values = parse_qs(body, keep_blank_values=True).get(field)
    return values[0].strip() if values else ""


class TokenPortal(CaptivePortal):
    """Captive portal accepting a pasted access token"""

    title = "Git Portal: token setup"

    def __init__(
        self,
        provider: str,
        provider_name: str,
        access_point: AccessPoint,
        channel: Optional[OutcomeChannel] = None,
        **kwargs,
    ):
        """
        Args:
            provider: Provider type value the token is stored under
            provider_name: Display name shown on the form
            access_point: Access point to bring up
            channel: Outcome channel polled by the menu
        """
        super().__init__(access_point, channel=channel, **kwargs)
        self.provider = provider
        self.provider_name = provider_name

    def accept_token(self, token: str) -> Optional[str]:
        """Check a submitted token's shape and publish it

        Returns:
            None on success, otherwise the rejection message
        """
        error = token_format_error(token)
        if error:
            logger.info(f"Rejected submitted token: {error}")
            return error
        self.mark_token_received()
        self.channel.publish(PortalOutcome(token=token, provider=self.provider))
        logger.info(f"Token received for {self.provider_name}")
        return None

    def build_app(self) -> FastAPI:
        app = create_portal_app(self.title)

        @app.get("/", response_class=HTMLResponse)
        def index():
            return token_form_page(self.provider_name)

        async def submit(request: Request):
            token = await read_form_field(request, "token")
            error = self.accept_token(token)
            if error:
                return HTMLResponse(token_form_page(self.provider_name, error=error), status_code=400)
            return RedirectResponse(url="/success", status_code=303)

        app.add_api_route("/setup", submit, methods=["POST"])
        app.add_api_route("/submit-token", submit, methods=["POST"])

        @app.get("/success", response_class=HTMLResponse)
        def success():
            return success_page()

        @app.get("/status")
        def status():
            session = self.session
            return JSONResponse({"active": session.ap_active, "tokenSet": session.token_received})

        return app
