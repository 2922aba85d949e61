"""Captive portal delivery: access point, captive DNS and HTTP listener

Portal variants live in portal.token_portal, portal.qr_portal and
oauth.flow; they are imported from their modules directly.
"""

from .outcome import OutcomeChannel, PortalOutcome
from .access_point import AccessPoint, PortalSession, create_radio

__all__ = [
    "OutcomeChannel",
    "PortalOutcome",
    "AccessPoint",
    "PortalSession",
    "create_radio",
]
