"""OAuth and token-entry support for the Git providers

The flow engine lives in oauth.flow and is imported from there; it pulls in
the portal package, which itself depends on the validators below.
"""

from .validators import token_format_error, validate_token_format
from .constants import OAUTH_ENDPOINTS, OAuthEndpoints, endpoints_for
from .authorization import build_authorize_url, create_state

__all__ = [
    "token_format_error",
    "validate_token_format",
    "OAUTH_ENDPOINTS",
    "OAuthEndpoints",
    "endpoints_for",
    "build_authorize_url",
    "create_state",
]
