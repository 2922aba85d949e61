"""Normalized, backend-agnostic records returned by every Git provider

Records are frozen once built. Parsing goes through
providers.mappings.parse_record, which either produces a fully validated
record or the default (empty) one.
"""

from dataclasses import dataclass
from typing import Generic, Iterator, List, TypeVar

from pydantic import BaseModel, ConfigDict, Field


class Record(BaseModel):
    """Base for normalized records"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    def is_empty(self) -> bool:
        """True for the default record (what a failed call returns)"""
        return self == type(self)()


class Repository(Record):
    name: str = ""
    full_name: str = ""
    description: str = ""
    clone_url: str = ""
    ssh_url: str = ""
    html_url: str = ""
    private: bool = False
    default_branch: str = ""
    stars: int = 0
    forks: int = 0


class Issue(Record):
    number: int = 0
    title: str = ""
    body: str = ""
    state: str = ""
    author: str = ""
    created_at: str = ""
    updated_at: str = ""
    html_url: str = ""
    labels: List[str] = Field(default_factory=list)
    assignees: List[str] = Field(default_factory=list)
    milestone: str = ""
    comments: int = 0
    is_pull_request: bool = False


class Comment(Record):
    id: int = 0
    body: str = ""
    author: str = ""
    created_at: str = ""
    updated_at: str = ""
    html_url: str = ""


class Label(Record):
    name: str = ""
    color: str = ""
    description: str = ""


class Milestone(Record):
    # id is what the backend wants when attaching; number is what users see
    id: int = 0
    number: int = 0
    title: str = ""
    description: str = ""
    state: str = ""
    due_on: str = ""


class User(Record):
    id: int = 0
    login: str = ""
    name: str = ""
    email: str = ""
    bio: str = ""
    avatar_url: str = ""
    html_url: str = ""
    public_repos: int = 0
    followers: int = 0
    following: int = 0


class RepoFile(Record):
    """A file read through a content API; content is already decoded"""
    path: str = ""
    content: str = ""
    sha: str = ""


class Webhook(Record):
    """A repository webhook; events use normalized names ("push", "issues", ...)"""
    id: int = 0
    url: str = ""
    events: List[str] = Field(default_factory=list)
    active: bool = False


class IssueTemplate(Record):
    """An issue template

    name is the identifier (file name without ".md", or GitLab's template
    key). Listings fill in name and path only; get_issue_template also parses
    the front matter into display_name, about, title and labels, and the
    rest of the file into content.
    """
    name: str = ""
    path: str = ""
    display_name: str = ""
    about: str = ""
    title: str = ""
    labels: List[str] = Field(default_factory=list)
    content: str = ""


class IssueDraft(BaseModel):
    """Fields for creating or updating an issue

    Empty strings/lists mean "leave unchanged" on update.
    """

    model_config = ConfigDict(frozen=True)

    title: str = ""
    body: str = ""
    labels: List[str] = Field(default_factory=list)
    assignees: List[str] = Field(default_factory=list)
    milestone: str = ""
    draft: bool = False


T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    """A bounded slice of a listing

    Attributes:
        items: At most the requested number of records
        has_more: True when the backend holds more results than were returned
    """
    items: List[T]
    has_more: bool = False

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __bool__(self) -> bool:
        return bool(self.items)

    @classmethod
    def empty(cls) -> "Page[T]":
        return cls(items=[], has_more=False)


@dataclass(frozen=True)
class ProviderSession:
    """Credential state owned by exactly one provider instance

    A new instance replaces the old one on every transition, so readers never
    observe a token without its matching authenticated flag.
    """
    api_base_url: str
    display_name: str
    token: str = ""
    username: str = ""
    authenticated: bool = False

    def __post_init__(self):
        if self.authenticated and not self.token:
            raise ValueError("An authenticated session requires a token")

    def with_token(self, token: str) -> "ProviderSession":
        return ProviderSession(
            api_base_url=self.api_base_url,
            display_name=self.display_name,
            token=token,
        )

    def authenticate(self, username: str) -> "ProviderSession":
        return ProviderSession(
            api_base_url=self.api_base_url,
            display_name=self.display_name,
            token=self.token,
            username=username,
            authenticated=True,
        )

    def cleared(self) -> "ProviderSession":
        return ProviderSession(api_base_url=self.api_base_url, display_name=self.display_name)

    def with_api_base_url(self, url: str) -> "ProviderSession":
        return ProviderSession(
            api_base_url=url,
            display_name=self.display_name,
            token=self.token,
            username=self.username,
            authenticated=self.authenticated,
        )
