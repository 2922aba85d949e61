"""
Current-provider session holder.

The application controller owns one CurrentProvider and hands it to the
menus; there is no module-level "current provider" global.
"""
import logging
from enum import Enum
from typing import Callable, Dict, Optional

import httpx

from providers.base_provider import GitProvider
from providers.demo_provider import DemoProvider
from providers.gitee_provider import GiteeProvider
from providers.github_provider import GitHubProvider
from providers.gitlab_provider import GitLabProvider

logger = logging.getLogger(__name__)


class ProviderType(str, Enum):
    GITHUB = "github"
    GITLAB = "gitlab"
    GITEE = "gitee"
    DEMO = "demo"

    @property
    def label(self) -> str:
        return _PROVIDER_CLASSES[self].display_name


_PROVIDER_CLASSES: Dict[ProviderType, type] = {
    ProviderType.GITHUB: GitHubProvider,
    ProviderType.GITLAB: GitLabProvider,
    ProviderType.GITEE: GiteeProvider,
    ProviderType.DEMO: DemoProvider,
}

ProviderFactory = Callable[[ProviderType, Optional[str]], GitProvider]


def create_provider(
    provider_type: ProviderType,
    api_base_url: Optional[str] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> GitProvider:
    """Instantiate a fresh, unauthenticated provider

    Args:
        provider_type: Which backend to talk to
        api_base_url: Optional override for self-hosted instances
        transport: Optional httpx transport (tests)

    Returns:
        New provider instance
    """
    provider_class = _PROVIDER_CLASSES[ProviderType(provider_type)]
    return provider_class(api_base_url=api_base_url, transport=transport)


class CurrentProvider:
    """Holds the single active provider and its display name"""

    def __init__(self, factory: ProviderFactory = create_provider):
        self._factory = factory
        self._provider: Optional[GitProvider] = None
        self._type: Optional[ProviderType] = None

    def select(self, provider_type: ProviderType, api_base_url: Optional[str] = None) -> GitProvider:
        """Replace the active provider with a fresh instance of another type

        The previous provider is ended and its HTTP handle closed first.
        """
        self.clear()
        self._provider = self._factory(provider_type, api_base_url)
        self._type = ProviderType(provider_type)
        logger.info(f"Selected provider {self._provider.display_name}")
        return self._provider

    def clear(self) -> None:
        if self._provider is not None:
            self._provider.close()
        self._provider = None
        self._type = None

    @property
    def provider(self) -> Optional[GitProvider]:
        return self._provider

    @property
    def provider_type(self) -> Optional[ProviderType]:
        return self._type

    @property
    def display_name(self) -> str:
        return self._provider.display_name if self._provider else "None"

    def is_authenticated(self) -> bool:
        return self._provider is not None and self._provider.is_authenticated()

    def __bool__(self) -> bool:
        return self._provider is not None
