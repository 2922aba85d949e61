"""
Git hosting providers.
One implementation per REST dialect behind the GitProvider contract.
"""
from providers.base_provider import GitProvider
from providers.demo_provider import DemoProvider
from providers.errors import FailureKind
from providers.gitee_provider import GiteeProvider
from providers.github_provider import GitHubProvider
from providers.gitlab_provider import GitLabProvider
from providers.models import (
    Comment,
    Issue,
    IssueDraft,
    Label,
    Milestone,
    Page,
    RepoFile,
    Repository,
    User,
)
from providers.session import CurrentProvider, ProviderType, create_provider

__all__ = [
    'GitProvider',
    'GitHubProvider',
    'GitLabProvider',
    'GiteeProvider',
    'DemoProvider',
    'FailureKind',
    'CurrentProvider',
    'ProviderType',
    'create_provider',
    'Comment',
    'Issue',
    'IssueDraft',
    'Label',
    'Milestone',
    'Page',
    'RepoFile',
    'Repository',
    'User',
]
