"""
Base provider interface for Git hosting backends.
Defines the contract that all provider implementations must follow.

Every operation reports failure through an empty record, an empty Page or
False. The detail is available afterwards through last_error(),
response_code() and last_failure().
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Mapping, Optional, Type, TypeVar

import httpx

from providers.errors import NOT_AUTHENTICATED_MESSAGE, FailureKind
from providers import mappings, templates
from providers.mappings import FieldTable, parse_record, parse_records
from providers.models import (
    Issue,
    IssueDraft,
    IssueTemplate,
    Milestone,
    Page,
    ProviderSession,
    Record,
    RepoFile,
    Repository,
    User,
)
from providers.transport import RestTransport
from utils.encoding import build_url, has_next_page, page_size

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)

# Local limits checked before an issue is sent anywhere
MAX_TITLE_LENGTH = 256
MAX_BODY_LENGTH = 65536
MAX_LABELS = 10
MAX_ASSIGNEES = 10
MAX_SEARCH_PAGE = 100

ISSUE_STATES = ("open", "closed", "all")
DRAFT_PREFIX = "Draft: "


class GitProvider(ABC):
    """Abstract base class for Git hosting providers

    Subclasses fix the auth header shape, resource addressing and field
    mapping tables of one REST dialect.
    """

    name: str = ""
    display_name: str = ""
    user_table: FieldTable = {}

    def __init__(
        self,
        api_base_url: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize provider with its API base

        Args:
            api_base_url: Override for self-hosted instances
            transport: Optional httpx transport, used by tests
        """
        self._session = ProviderSession(
            api_base_url=(api_base_url or self.default_api_base()).rstrip("/"),
            display_name=self.display_name,
        )
        self._http = RestTransport(self._current_auth_headers, transport=transport)

    # ------------------------------------------------------------------
    # Backend specifics
    # ------------------------------------------------------------------

    @abstractmethod
    def default_api_base(self) -> str:
        pass

    @abstractmethod
    def auth_headers(self, token: str) -> Dict[str, str]:
        """Build the backend's native auth header for a token"""
        pass

    def _current_auth_headers(self) -> Dict[str, str]:
        if not self._session.token:
            return {}
        return self.auth_headers(self._session.token)

    # ------------------------------------------------------------------
    # Authentication lifecycle
    # ------------------------------------------------------------------

    def begin(self, token: str = "") -> bool:
        """Store a token and confirm it with one identity check

        Args:
            token: Access token; empty reuses a token stored by an earlier call

        Returns:
            True if the backend accepted the token
        """
        token = token.strip() or self._session.token
        if not token:
            self._http.fail(
                FailureKind.NOT_AUTHENTICATED,
                f"{NOT_AUTHENTICATED_MESSAGE}: no token provided",
                code=0,
            )
            return False

        self._session = ProviderSession(
            api_base_url=self._session.api_base_url,
            display_name=self.display_name,
            token=token,
        )

        response = self._http.request("GET", self._url("/user"))
        if response is None:
            logger.info(f"{self.display_name} identity check failed: {self._http.last_error}")
            return False

        user = parse_record(User, self._http.decode(response), self.user_table)
        if not user.login:
            self._http.fail(FailureKind.PARSE, "Identity check returned no username")
            return False

        self._session = self._session.authenticate(user.login)
        logger.info(f"Authenticated with {self.display_name} as {user.login}")
        return True

    def is_authenticated(self) -> bool:
        return self._session.authenticated

    def end(self) -> None:
        """Forget the token and username; safe to call repeatedly"""
        self._session = self._session.cleared()

    def close(self) -> None:
        """End the session and release the HTTP handle"""
        self.end()
        self._http.close()

    @property
    def username(self) -> str:
        return self._session.username

    @property
    def token(self) -> str:
        return self._session.token

    @property
    def session(self) -> ProviderSession:
        return self._session

    # ------------------------------------------------------------------
    # Error introspection and configuration
    # ------------------------------------------------------------------

    def last_error(self) -> str:
        return self._http.last_error

    def response_code(self) -> int:
        """Last HTTP status; 0 before any request, -1 after a connection error"""
        return self._http.response_code

    def last_failure(self) -> FailureKind:
        return self._http.last_failure

    @property
    def api_base_url(self) -> str:
        return self._session.api_base_url

    def set_api_base_url(self, url: str) -> None:
        self._session = self._session.with_api_base_url(url.rstrip("/"))

    # ------------------------------------------------------------------
    # Request helpers
    # ------------------------------------------------------------------

    def _url(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> str:
        return build_url(self._session.api_base_url, endpoint, params)

    def _require_auth(self) -> bool:
        if self._session.authenticated:
            return True
        self._http.fail(FailureKind.NOT_AUTHENTICATED, NOT_AUTHENTICATED_MESSAGE, code=0)
        return False

    def _invalid(self, message: str) -> bool:
        self._http.fail(FailureKind.INVALID_INPUT, message, code=0)
        return False

    def _unsupported(self, feature: str) -> None:
        self._http.fail(FailureKind.UNSUPPORTED, f"{self.display_name} does not support {feature}", code=0)

    def _send(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Optional[httpx.Response]:
        return self._http.request(method, self._url(endpoint, params), json=json)

    def _call(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> bool:
        """Authenticated request whose only result is success or failure"""
        if not self._require_auth():
            return False
        return self._send(method, endpoint, params=params, json=json) is not None

    def _get_json(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = self._send("GET", endpoint, params=params)
        if response is None:
            return None
        return self._http.decode(response)

    def _fetch_record(
        self,
        model: Type[R],
        table: FieldTable,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> R:
        if not self._require_auth():
            return model()
        data = self._get_json(endpoint, params)
        if data is None:
            return model()
        record = parse_record(model, data, table)
        if record.is_empty():
            self._http.fail(FailureKind.PARSE, f"Unexpected {model.__name__} response shape")
        return record

    def _fetch_page(
        self,
        model: Type[R],
        table: FieldTable,
        endpoint: str,
        limit: int,
        params: Optional[Dict[str, Any]] = None,
        items_key: Optional[str] = None,
        include: Optional[Callable[[Any], bool]] = None,
    ) -> Page:
        """Fetch one bounded listing page

        Asks for limit + 1 items so a truncated listing can be flagged even
        when the backend sends no paging headers.

        Args:
            model: Record class of the items
            table: Field-mapping table for the items
            endpoint: List endpoint
            limit: Maximum number of items to return
            params: Extra query parameters
            items_key: Key holding the items when the body is an object
                (search responses), with "total_count" next to it
            include: Optional predicate on the raw items, applied before parsing

        Returns:
            Page of at most limit items
        """
        if not self._require_auth():
            return Page.empty()
        if limit < 1:
            self._invalid("limit must be at least 1")
            return Page.empty()

        query = dict(params or {})
        query["per_page"] = page_size(limit)
        response = self._send("GET", endpoint, params=query)
        if response is None:
            return Page.empty()

        data = self._http.decode(response)
        if data is None:
            return Page.empty()

        total = None
        if items_key is not None:
            if not isinstance(data, dict):
                self._http.fail(FailureKind.PARSE, "Search response is not an object")
                return Page.empty()
            total = data.get("total_count")
            data = data.get(items_key)

        if not isinstance(data, list):
            self._http.fail(FailureKind.PARSE, f"Expected a list of {model.__name__}")
            return Page.empty()

        if include is not None:
            data = [item for item in data if include(item)]

        records = parse_records(model, data, table)
        items = records[:limit]
        has_more = (
            len(records) > limit
            or has_next_page(response)
            or (isinstance(total, int) and total > len(items))
        )
        return Page(items=items, has_more=has_more)

    def _validate_draft(self, draft: IssueDraft, require_title: bool = True) -> bool:
        """Check an issue draft against the local limits before sending it"""
        if require_title and not draft.title.strip():
            return self._invalid("Issue title is required")
        if len(draft.title) > MAX_TITLE_LENGTH:
            return self._invalid(f"Issue title exceeds {MAX_TITLE_LENGTH} characters")
        if len(draft.body) > MAX_BODY_LENGTH:
            return self._invalid(f"Issue body exceeds {MAX_BODY_LENGTH} characters")
        if len(draft.labels) > MAX_LABELS:
            return self._invalid(f"At most {MAX_LABELS} labels per issue")
        if len(draft.assignees) > MAX_ASSIGNEES:
            return self._invalid(f"At most {MAX_ASSIGNEES} assignees per issue")
        return True

    def _validate_state(self, state: str) -> bool:
        if state in ISSUE_STATES:
            return True
        return self._invalid(f"Unknown issue state: {state}")

    def _issue_title(self, draft: IssueDraft) -> str:
        """Draft issues carry the conventional "Draft: " title prefix"""
        if draft.draft and draft.title and not draft.title.startswith(DRAFT_PREFIX):
            return f"{DRAFT_PREFIX}{draft.title}"
        return draft.title

    # ------------------------------------------------------------------
    # Repository operations
    # ------------------------------------------------------------------

    @abstractmethod
    def list_user_repos(self, limit: int = 100) -> Page:
        pass

    @abstractmethod
    def get_repo(self, owner: str, repo: str) -> Repository:
        pass

    @abstractmethod
    def create_repo(self, name: str, description: str = "", private: bool = False) -> bool:
        pass

    @abstractmethod
    def delete_repo(self, owner: str, repo: str) -> bool:
        pass

    @abstractmethod
    def search_repositories(self, query: str, per_page: int = 10) -> Page:
        """Search repositories; per_page is clamped to 1..100"""
        pass

    # ------------------------------------------------------------------
    # Issue operations
    # ------------------------------------------------------------------

    @abstractmethod
    def list_issues(self, owner: str, repo: str, state: str = "open", limit: int = 100) -> Page:
        """List issues filtered by state ("open", "closed" or "all")"""
        pass

    @abstractmethod
    def get_issue(self, owner: str, repo: str, number: int) -> Issue:
        pass

    def create_issue(self, owner: str, repo: str, title: str, body: str = "") -> bool:
        return self.create_issue_ex(owner, repo, IssueDraft(title=title, body=body))

    @abstractmethod
    def create_issue_ex(self, owner: str, repo: str, draft: IssueDraft) -> bool:
        """Create an issue with labels, assignees, milestone and draft flag"""
        pass

    @abstractmethod
    def close_issue(self, owner: str, repo: str, number: int) -> bool:
        pass

    @abstractmethod
    def reopen_issue(self, owner: str, repo: str, number: int) -> bool:
        pass

    @abstractmethod
    def update_issue(self, owner: str, repo: str, number: int, draft: IssueDraft) -> bool:
        """Update the non-empty fields of draft on an existing issue"""
        pass

    # ------------------------------------------------------------------
    # Comment operations
    # ------------------------------------------------------------------

    @abstractmethod
    def list_issue_comments(self, owner: str, repo: str, number: int, limit: int = 100) -> Page:
        pass

    @abstractmethod
    def add_issue_comment(self, owner: str, repo: str, number: int, body: str) -> bool:
        pass

    @abstractmethod
    def edit_issue_comment(
        self, owner: str, repo: str, number: int, comment_id: int, body: str
    ) -> bool:
        pass

    @abstractmethod
    def delete_issue_comment(self, owner: str, repo: str, number: int, comment_id: int) -> bool:
        pass

    # ------------------------------------------------------------------
    # Labels, assignees and milestones
    # ------------------------------------------------------------------

    @abstractmethod
    def list_labels(self, owner: str, repo: str, limit: int = 100) -> Page:
        pass

    @abstractmethod
    def list_assignees(self, owner: str, repo: str, limit: int = 100) -> Page:
        pass

    @abstractmethod
    def list_milestones(self, owner: str, repo: str, limit: int = 100) -> Page:
        pass

    def get_available_labels(self, owner: str, repo: str) -> List[str]:
        return [label.name for label in self.list_labels(owner, repo)]

    def get_available_assignees(self, owner: str, repo: str) -> List[str]:
        return [user.login for user in self.list_assignees(owner, repo)]

    def get_available_milestones(self, owner: str, repo: str) -> List[str]:
        return [milestone.title for milestone in self.list_milestones(owner, repo)]

    @abstractmethod
    def add_label_to_issue(self, owner: str, repo: str, number: int, label: str) -> bool:
        pass

    @abstractmethod
    def remove_label_from_issue(self, owner: str, repo: str, number: int, label: str) -> bool:
        pass

    @abstractmethod
    def add_assignee_to_issue(self, owner: str, repo: str, number: int, assignee: str) -> bool:
        pass

    @abstractmethod
    def remove_assignee_from_issue(self, owner: str, repo: str, number: int, assignee: str) -> bool:
        pass

    @abstractmethod
    def set_issue_milestone(self, owner: str, repo: str, number: int, title: str) -> bool:
        """Attach the milestone with the given title"""
        pass

    @abstractmethod
    def clear_issue_milestone(self, owner: str, repo: str, number: int) -> bool:
        pass

    def _find_milestone(self, owner: str, repo: str, title: str) -> Optional[Milestone]:
        milestones = self.list_milestones(owner, repo)
        if not milestones and self.last_failure() != FailureKind.NONE:
            return None
        for milestone in milestones:
            if milestone.title == title:
                return milestone
        self._http.fail(FailureKind.RESOLUTION, f"Milestone not found: {title}")
        return None

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    @abstractmethod
    def get_user_info(self, username: str = "") -> User:
        """Fetch a user, or the authenticated user when username is empty"""
        pass

    def search_users(self, query: str, per_page: int = 10) -> Page:
        """Search users; per_page is clamped to 1..100"""
        self._unsupported("user search")
        return Page.empty()

    def list_user_followers(self, username: str = "", limit: int = 100) -> Page:
        """Followers of a user, or of the authenticated user when username is empty"""
        self._unsupported("followers")
        return Page.empty()

    def list_user_following(self, username: str = "", limit: int = 100) -> Page:
        """Users a user follows, or the authenticated user when username is empty"""
        self._unsupported("followers")
        return Page.empty()

    # ------------------------------------------------------------------
    # Webhooks (optional)
    # ------------------------------------------------------------------

    def list_webhooks(self, owner: str, repo: str, limit: int = 100) -> Page:
        self._unsupported("webhooks")
        return Page.empty()

    def create_webhook(self, owner: str, repo: str, url: str, events: Optional[List[str]] = None) -> bool:
        """Register a JSON webhook delivering the given events (default: push)"""
        self._unsupported("webhooks")
        return False

    def delete_webhook(self, owner: str, repo: str, url: str) -> bool:
        """Delete the webhook that delivers to url"""
        hooks = self.list_webhooks(owner, repo)
        if not hooks and self.last_failure() != FailureKind.NONE:
            return False
        for hook in hooks:
            if hook.url == url:
                return self._delete_webhook_id(owner, repo, hook.id)
        self._http.fail(FailureKind.RESOLUTION, f"Webhook not found: {url}")
        return False

    def _delete_webhook_id(self, owner: str, repo: str, hook_id: int) -> bool:
        self._unsupported("webhooks")
        return False

    def _validate_webhook(self, url: str, events: List[str]) -> bool:
        if not url.startswith(("http://", "https://")):
            return self._invalid("Webhook URL must start with http:// or https://")
        if not events:
            return self._invalid("At least one webhook event is required")
        return True

    # ------------------------------------------------------------------
    # Issue templates
    # ------------------------------------------------------------------

    def list_issue_templates(self, owner: str, repo: str, limit: int = 100) -> Page:
        """Issue templates of a repository, with name and path filled in"""
        self._unsupported("issue templates")
        return Page.empty()

    def get_issue_template(self, owner: str, repo: str, name: str, ref: str = "main") -> IssueTemplate:
        """Fetch one template and parse its front matter"""
        self._unsupported("issue templates")
        return IssueTemplate()

    def get_issue_template_content(self, owner: str, repo: str, name: str, ref: str = "main") -> str:
        return self.get_issue_template(owner, repo, name, ref).content

    def format_issue_body(self, title: str, description: str, template: str = "") -> str:
        return templates.format_issue_body(title, description, template)

    def generate_issue_from_template(self, template: IssueTemplate, variables: Mapping[str, str]) -> IssueDraft:
        return templates.generate_issue_from_template(template, variables)

    def _file_template(self, owner: str, repo: str, directory: str, name: str, ref: str) -> IssueTemplate:
        """Read <directory>/<name>.md through the contents API and parse it"""
        filename = name if name.lower().endswith(".md") else f"{name}.md"
        repo_file = self.get_file(owner, repo, f"{directory}/{filename}", ref)
        if repo_file.is_empty():
            return IssueTemplate()
        return templates.parse_template(mappings.template_name(filename), repo_file.path, repo_file.content)

    # ------------------------------------------------------------------
    # Files (callers always pass and receive plain text)
    # ------------------------------------------------------------------

    @abstractmethod
    def get_file(self, owner: str, repo: str, path: str, ref: str = "main") -> RepoFile:
        pass

    def get_file_content(self, owner: str, repo: str, path: str, ref: str = "main") -> str:
        return self.get_file(owner, repo, path, ref).content

    @abstractmethod
    def create_file(
        self, owner: str, repo: str, path: str, content: str, message: str, branch: str = "main"
    ) -> bool:
        pass

    @abstractmethod
    def update_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        sha: str,
        branch: str = "main",
    ) -> bool:
        pass

    @abstractmethod
    def delete_file(
        self, owner: str, repo: str, path: str, message: str, sha: str, branch: str = "main"
    ) -> bool:
        pass

    # ------------------------------------------------------------------
    # Gists (optional)
    # ------------------------------------------------------------------

    def create_gist(self, description: str, filename: str, content: str, public: bool = False) -> str:
        """Create a gist and return its id; empty string on failure"""
        self._unsupported("gists")
        return ""

    def delete_gist(self, gist_id: str) -> bool:
        self._unsupported("gists")
        return False

    def __repr__(self) -> str:
        state = f"as {self.username}" if self.is_authenticated() else "unauthenticated"
        return f"<{type(self).__name__} {self.api_base_url} {state}>"

