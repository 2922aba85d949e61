"""OAuth authorization URL construction and state nonces"""

import secrets
from typing import Optional
from urllib.parse import urlencode

from .constants import OAuthEndpoints

# 32 bytes of entropy, urlsafe-encoded
STATE_BYTES = 32


def create_state(previous: Optional[str] = None) -> str:
    """Generate a fresh state nonce, never equal to the previous one

    Args:
        previous: The nonce issued by the preceding /start, if any

    Returns:
        New urlsafe nonce
    """
    state = secrets.token_urlsafe(STATE_BYTES)
    while state == previous:
        state = secrets.token_urlsafe(STATE_BYTES)
    return state


def build_authorize_url(
    endpoints: OAuthEndpoints,
    client_id: str,
    redirect_uri: str,
    state: str,
    scope: Optional[str] = None,
) -> str:
    """Construct the provider's authorize URL for the Authorization Code grant

    Args:
        endpoints: Provider OAuth endpoints
        client_id: OAuth application client id
        redirect_uri: Callback URL served by the portal
        state: State nonce for this attempt
        scope: Scope override; defaults to the provider's scope

    Returns:
        Full authorization URL
    """
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "scope": scope or endpoints.scope,
        "state": state,
        "response_type": "code",
    }
    return f"{endpoints.authorize_url}?{urlencode(params)}"
