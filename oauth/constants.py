"""OAuth endpoints and scopes for each Git hosting backend"""

from dataclasses import dataclass
from typing import Dict, Optional

from settings import AP_ADDRESS, OAUTH_CALLBACK_PATH


def default_redirect_uri(address: str = AP_ADDRESS) -> str:
    """Callback URL registered for the portal served at address"""
    return f"http://{address}{OAUTH_CALLBACK_PATH}"


@dataclass(frozen=True)
class OAuthEndpoints:
    authorize_url: str
    token_url: str
    scope: str


GITHUB_OAUTH = OAuthEndpoints(
    authorize_url="https://github.com/login/oauth/authorize",
    token_url="https://github.com/login/oauth/access_token",
    scope="repo user gist",
)

GITLAB_OAUTH = OAuthEndpoints(
    authorize_url="https://gitlab.com/oauth/authorize",
    token_url="https://gitlab.com/oauth/token",
    scope="api read_user",
)

GITEE_OAUTH = OAuthEndpoints(
    authorize_url="https://gitee.com/oauth/authorize",
    token_url="https://gitee.com/oauth/token",
    scope="user_info projects issues notes",
)

GITLAB_API_SUFFIX = "/api/v4"

# Keyed by ProviderType value
OAUTH_ENDPOINTS: Dict[str, OAuthEndpoints] = {
    "github": GITHUB_OAUTH,
    "gitlab": GITLAB_OAUTH,
    "gitee": GITEE_OAUTH,
}


def endpoints_for(provider: str, base_url: Optional[str] = None) -> Optional[OAuthEndpoints]:
    """Look up OAuth endpoints, rebasing them for self-hosted GitLab

    Args:
        provider: Provider type value ("github", "gitlab", "gitee")
        base_url: Optional web root or API base of a self-hosted instance
            (e.g. "https://gitlab.example.com/api/v4")

    Returns:
        Endpoints, or None if the provider has no OAuth support
    """
    endpoints = OAUTH_ENDPOINTS.get(provider)
    if endpoints is None or not base_url or provider != "gitlab":
        return endpoints
    root = base_url.rstrip("/")
    if root.endswith(GITLAB_API_SUFFIX):
        root = root[:-len(GITLAB_API_SUFFIX)]
    return OAuthEndpoints(
        authorize_url=f"{root}/oauth/authorize",
        token_url=f"{root}/oauth/token",
        scope=endpoints.scope,
    )
