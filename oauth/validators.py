"""Access token shape validation

Only the shape is checked here; whether the backend accepts the token is
decided later by the provider's identity check.
"""

import re
from typing import Optional

MIN_TOKEN_LENGTH = 10

# Prefix -> minimum total length
GITHUB_PREFIXES = ("ghp_", "gho_", "ghu_", "ghs_", "ghr_", "github_pat_")
GITHUB_MIN_LENGTH = 40
GITLAB_PREFIX = "glpat-"
GITLAB_MIN_LENGTH = 20

_CLASSIC_HEX = re.compile(r'^[0-9a-fA-F]{40}$')
_GITEE_HEX = re.compile(r'^[0-9a-fA-F]{32}$')
_TOKEN_CHARS = re.compile(r'^[A-Za-z0-9_-]+$')


def has_known_prefix(token: str) -> bool:
    """Check if a token starts with a recognized GitHub or GitLab prefix"""
    return token.startswith(GITHUB_PREFIXES) or token.startswith(GITLAB_PREFIX)


def token_format_error(token: str) -> Optional[str]:
    """Explain why a token is rejected

    Args:
        token: The token string to validate

    Returns:
        None if the format is acceptable, otherwise a message for the user
    """
    token = (token or "").strip()
    if not token:
        return "Token is required"
    if len(token) < MIN_TOKEN_LENGTH:
        return f"Token is too short (minimum {MIN_TOKEN_LENGTH} characters)"
    if not _TOKEN_CHARS.match(token):
        return "Token contains invalid characters"

    if token.startswith(GITHUB_PREFIXES):
        if len(token) < GITHUB_MIN_LENGTH:
            return f"GitHub tokens are at least {GITHUB_MIN_LENGTH} characters"
        return None
    if token.startswith(GITLAB_PREFIX):
        if len(token) < GITLAB_MIN_LENGTH:
            return f"GitLab tokens are at least {GITLAB_MIN_LENGTH} characters"
        return None

    if _CLASSIC_HEX.match(token) or _GITEE_HEX.match(token):
        return None
    return "Unrecognized token format"


def validate_token_format(token: str) -> bool:
    """Validate that a token has a recognized format

    Accepts GitHub tokens (ghp_, gho_, ghu_, ghs_, ghr_, github_pat_) of at
    least 40 characters, GitLab glpat- tokens of at least 20 characters, and
    otherwise 40-character (classic) or 32-character (Gitee) hex strings.

    Args:
        token: The token string to validate

    Returns:
        True if token format is valid, False otherwise
    """
    return token_format_error(token) is None
