"""
In-memory demo provider.

Backs the simulated OAuth mode: it accepts the tokens the simulated OAuth
backend issues and serves a small seeded repository without any network
access, so the whole portal flow can be exercised with no real OAuth app.
"""
import hashlib
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from providers import mappings
from providers.base_provider import MAX_SEARCH_PAGE, GitProvider
from providers.errors import NOT_AUTHENTICATED_MESSAGE, FailureKind
from providers.models import (
    Comment,
    Issue,
    IssueDraft,
    IssueTemplate,
    Label,
    Milestone,
    Page,
    ProviderSession,
    RepoFile,
    Repository,
    User,
    Webhook,
)

logger = logging.getLogger(__name__)

DEMO_API_BASE = "demo://local"
DEMO_TOKEN_PREFIX = "demo_"
DEMO_USERNAME = "demo-user"
TEMPLATE_DIR = ".github/ISSUE_TEMPLATE"

BUG_TEMPLATE = """---
name: Bug report
about: Something in the demo is broken
title: "[BUG] {{summary}}"
labels: bug
---
## What happened
{{details}}
"""


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _blob_sha(content: str) -> str:
    return hashlib.sha1(content.encode("utf-8")).hexdigest()


class DemoProvider(GitProvider):
    """Provider backed by an in-memory store seeded with one repository"""

    name = "demo"
    display_name = "Demo"

    def __init__(self, api_base_url: Optional[str] = None, transport=None):
        super().__init__(api_base_url=api_base_url, transport=transport)
        self._repos: Dict[str, Repository] = {}
        self._issues: Dict[str, List[Issue]] = {}
        self._comments: Dict[Tuple[str, int], List[Comment]] = {}
        self._labels: Dict[str, List[Label]] = {}
        self._milestones: Dict[str, List[Milestone]] = {}
        self._files: Dict[Tuple[str, str], RepoFile] = {}
        self._gists: Dict[str, str] = {}
        self._hooks: Dict[str, List[Webhook]] = {}
        self._next_id = 1000
        self._seed()

    def default_api_base(self) -> str:
        return DEMO_API_BASE

    def auth_headers(self, token: str) -> Dict[str, str]:
        return {}

    def _seed(self) -> None:
        key = f"{DEMO_USERNAME}/hello-world"
        self._repos[key] = Repository(
            name="hello-world",
            full_name=key,
            description="Demo repository",
            clone_url=f"https://example.invalid/{key}.git",
            html_url=f"https://example.invalid/{key}",
            default_branch="main",
        )
        self._labels[key] = [
            Label(name="bug", color="d73a4a", description="Something isn't working"),
            Label(name="enhancement", color="a2eeef", description="New feature or request"),
        ]
        self._milestones[key] = [Milestone(id=1, number=1, title="v1.0", state="open")]
        self._issues[key] = [
            Issue(number=1, title="Welcome to the demo", body="Try closing this issue.", state="open",
                  author=DEMO_USERNAME, created_at=_now(), updated_at=_now(), labels=["enhancement"]),
        ]
        readme = "# hello-world\n\nThis file lives in memory.\n"
        self._files[(key, "README.md")] = RepoFile(path="README.md", content=readme, sha=_blob_sha(readme))
        template_path = f"{TEMPLATE_DIR}/bug_report.md"
        self._files[(key, template_path)] = RepoFile(
            path=template_path, content=BUG_TEMPLATE, sha=_blob_sha(BUG_TEMPLATE),
        )

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    # Authentication

    def begin(self, token: str = "") -> bool:
        token = token.strip() or self._session.token
        if not token:
            self._http.fail(
                FailureKind.NOT_AUTHENTICATED, f"{NOT_AUTHENTICATED_MESSAGE}: no token provided", code=0,
            )
            return False
        if not token.startswith(DEMO_TOKEN_PREFIX):
            self._http.fail(FailureKind.HTTP, "HTTP 401: Bad credentials", code=401)
            return False
        self._session = ProviderSession(
            api_base_url=self._session.api_base_url, display_name=self.display_name, token=token,
        ).authenticate(DEMO_USERNAME)
        self._ok()
        logger.info("Authenticated with the demo provider")
        return True

    # Local request emulation

    def _ok(self, code: int = 200) -> None:
        self._http.reset()
        self._http.response_code = code

    def _not_found(self, what: str):
        self._http.fail(FailureKind.HTTP, f"HTTP 404: {what} not found", code=404)

    def _repo(self, owner: str, repo: str) -> Optional[str]:
        if not self._require_auth():
            return None
        key = f"{owner}/{repo}"
        if key not in self._repos:
            self._not_found(f"Repository {key}")
            return None
        return key

    def _page(self, items: list, limit: int) -> Page:
        if limit < 1:
            self._invalid("limit must be at least 1")
            return Page.empty()
        self._ok()
        return Page(items=list(items[:limit]), has_more=len(items) > limit)

    def _find_issue(self, key: str, number: int) -> Optional[int]:
        for index, issue in enumerate(self._issues.get(key, [])):
            if issue.number == number:
                return index
        self._not_found(f"Issue #{number}")
        return None

    def _replace_issue(self, owner: str, repo: str, number: int, **changes) -> bool:
        key = self._repo(owner, repo)
        if key is None:
            return False
        index = self._find_issue(key, number)
        if index is None:
            return False
        issues = self._issues[key]
        issues[index] = issues[index].model_copy(update=dict(changes, updated_at=_now()))
        self._ok()
        return True

    def _issue(self, owner: str, repo: str, number: int) -> Optional[Issue]:
        key = self._repo(owner, repo)
        if key is None:
            return None
        index = self._find_issue(key, number)
        return None if index is None else self._issues[key][index]

    # Repositories

    def list_user_repos(self, limit: int = 100) -> Page:
        if not self._require_auth():
            return Page.empty()
        return self._page(list(self._repos.values()), limit)

    def get_repo(self, owner: str, repo: str) -> Repository:
        key = self._repo(owner, repo)
        if key is None:
            return Repository()
        self._ok()
        return self._repos[key]

    def create_repo(self, name: str, description: str = "", private: bool = False) -> bool:
        if not self._require_auth():
            return False
        if not name.strip():
            return self._invalid("Repository name is required")
        key = f"{DEMO_USERNAME}/{name}"
        if key in self._repos:
            self._http.fail(FailureKind.HTTP, "HTTP 422: name already exists on this account", code=422)
            return False
        self._repos[key] = Repository(
            name=name, full_name=key, description=description, private=private, default_branch="main",
        )
        self._ok(201)
        return True

    def delete_repo(self, owner: str, repo: str) -> bool:
        key = self._repo(owner, repo)
        if key is None:
            return False
        del self._repos[key]
        self._issues.pop(key, None)
        self._ok(204)
        return True

    def search_repositories(self, query: str, per_page: int = 10) -> Page:
        if not self._require_auth():
            return Page.empty()
        per_page = max(1, min(per_page, MAX_SEARCH_PAGE))
        needle = query.lower()
        matches = [
            r for r in self._repos.values()
            if needle in r.full_name.lower() or needle in r.description.lower()
        ]
        return self._page(matches, per_page)

    # Issues

    def list_issues(self, owner: str, repo: str, state: str = "open", limit: int = 100) -> Page:
        if not self._validate_state(state):
            return Page.empty()
        key = self._repo(owner, repo)
        if key is None:
            return Page.empty()
        issues = [i for i in self._issues.get(key, []) if state == "all" or i.state == state]
        return self._page(issues, limit)

    def get_issue(self, owner: str, repo: str, number: int) -> Issue:
        issue = self._issue(owner, repo, number)
        if issue is None:
            return Issue()
        self._ok()
        return issue

    def create_issue_ex(self, owner: str, repo: str, draft: IssueDraft) -> bool:
        if not self._validate_draft(draft):
            return False
        key = self._repo(owner, repo)
        if key is None:
            return False
        issues = self._issues.setdefault(key, [])
        number = max((i.number for i in issues), default=0) + 1
        issues.append(Issue(
            number=number,
            title=self._issue_title(draft),
            body=draft.body,
            state="open",
            author=self.username,
            created_at=_now(),
            updated_at=_now(),
            labels=list(draft.labels),
            assignees=list(draft.assignees),
            milestone=draft.milestone,
        ))
        self._ok(201)
        return True

    def close_issue(self, owner: str, repo: str, number: int) -> bool:
        return self._replace_issue(owner, repo, number, state="closed")

    def reopen_issue(self, owner: str, repo: str, number: int) -> bool:
        return self._replace_issue(owner, repo, number, state="open")

    def update_issue(self, owner: str, repo: str, number: int, draft: IssueDraft) -> bool:
        if not self._validate_draft(draft, require_title=False):
            return False
        changes = {}
        if draft.title:
            changes["title"] = self._issue_title(draft)
        if draft.body:
            changes["body"] = draft.body
        if draft.labels:
            changes["labels"] = list(draft.labels)
        if draft.assignees:
            changes["assignees"] = list(draft.assignees)
        if draft.milestone:
            changes["milestone"] = draft.milestone
        if not changes:
            return self._invalid("Nothing to update")
        return self._replace_issue(owner, repo, number, **changes)

    # Comments

    def list_issue_comments(self, owner: str, repo: str, number: int, limit: int = 100) -> Page:
        issue = self._issue(owner, repo, number)
        if issue is None:
            return Page.empty()
        return self._page(self._comments.get((f"{owner}/{repo}", number), []), limit)

    def add_issue_comment(self, owner: str, repo: str, number: int, body: str) -> bool:
        if not body.strip():
            return self._invalid("Comment body is required")
        issue = self._issue(owner, repo, number)
        if issue is None:
            return False
        comments = self._comments.setdefault((f"{owner}/{repo}", number), [])
        comments.append(Comment(
            id=self._new_id(), body=body, author=self.username, created_at=_now(), updated_at=_now(),
        ))
        return self._replace_issue(owner, repo, number, comments=issue.comments + 1)

    def _comment_index(self, owner: str, repo: str, number: int, comment_id: int) -> Optional[int]:
        if self._issue(owner, repo, number) is None:
            return None
        for index, comment in enumerate(self._comments.get((f"{owner}/{repo}", number), [])):
            if comment.id == comment_id:
                return index
        self._not_found(f"Comment {comment_id}")
        return None

    def edit_issue_comment(
        self, owner: str, repo: str, number: int, comment_id: int, body: str
    ) -> bool:
        if not body.strip():
            return self._invalid("Comment body is required")
        index = self._comment_index(owner, repo, number, comment_id)
        if index is None:
            return False
        comments = self._comments[(f"{owner}/{repo}", number)]
        comments[index] = comments[index].model_copy(update={"body": body, "updated_at": _now()})
        self._ok()
        return True

    def delete_issue_comment(self, owner: str, repo: str, number: int, comment_id: int) -> bool:
        index = self._comment_index(owner, repo, number, comment_id)
        if index is None:
            return False
        del self._comments[(f"{owner}/{repo}", number)][index]
        issue = self._issue(owner, repo, number)
        return self._replace_issue(owner, repo, number, comments=max(0, issue.comments - 1))

    # Labels, assignees, milestones

    def list_labels(self, owner: str, repo: str, limit: int = 100) -> Page:
        key = self._repo(owner, repo)
        if key is None:
            return Page.empty()
        return self._page(self._labels.get(key, []), limit)

    def list_assignees(self, owner: str, repo: str, limit: int = 100) -> Page:
        if self._repo(owner, repo) is None:
            return Page.empty()
        return self._page([User(id=1, login=DEMO_USERNAME, name="Demo User")], limit)

    def list_milestones(self, owner: str, repo: str, limit: int = 100) -> Page:
        key = self._repo(owner, repo)
        if key is None:
            return Page.empty()
        return self._page(self._milestones.get(key, []), limit)

    def add_label_to_issue(self, owner: str, repo: str, number: int, label: str) -> bool:
        issue = self._issue(owner, repo, number)
        if issue is None:
            return False
        labels = issue.labels if label in issue.labels else issue.labels + [label]
        return self._replace_issue(owner, repo, number, labels=labels)

    def remove_label_from_issue(self, owner: str, repo: str, number: int, label: str) -> bool:
        issue = self._issue(owner, repo, number)
        if issue is None:
            return False
        return self._replace_issue(owner, repo, number, labels=[l for l in issue.labels if l != label])

    def add_assignee_to_issue(self, owner: str, repo: str, number: int, assignee: str) -> bool:
        issue = self._issue(owner, repo, number)
        if issue is None:
            return False
        assignees = issue.assignees if assignee in issue.assignees else issue.assignees + [assignee]
        return self._replace_issue(owner, repo, number, assignees=assignees)

    def remove_assignee_from_issue(self, owner: str, repo: str, number: int, assignee: str) -> bool:
        issue = self._issue(owner, repo, number)
        if issue is None:
            return False
        return self._replace_issue(
            owner, repo, number, assignees=[a for a in issue.assignees if a != assignee],
        )

    def set_issue_milestone(self, owner: str, repo: str, number: int, title: str) -> bool:
        if self._find_milestone(owner, repo, title) is None:
            return False
        return self._replace_issue(owner, repo, number, milestone=title)

    def clear_issue_milestone(self, owner: str, repo: str, number: int) -> bool:
        return self._replace_issue(owner, repo, number, milestone="")

    # Users

    def get_user_info(self, username: str = "") -> User:
        if not self._require_auth():
            return User()
        if username and username != DEMO_USERNAME:
            self._not_found(f"User {username}")
            return User()
        self._ok()
        return self._demo_user()

    def _demo_user(self) -> User:
        return User(id=1, login=DEMO_USERNAME, name="Demo User", public_repos=len(self._repos))

    def search_users(self, query: str, per_page: int = 10) -> Page:
        if not self._require_auth():
            return Page.empty()
        per_page = max(1, min(per_page, MAX_SEARCH_PAGE))
        user = self._demo_user()
        needle = query.lower()
        matches = [user] if needle in user.login.lower() or needle in user.name.lower() else []
        return self._page(matches, per_page)

    def _follow_page(self, username: str, limit: int) -> Page:
        # Nobody follows anybody in the demo
        if not self._require_auth():
            return Page.empty()
        if username and username != DEMO_USERNAME:
            self._not_found(f"User {username}")
            return Page.empty()
        return self._page([], limit)

    def list_user_followers(self, username: str = "", limit: int = 100) -> Page:
        return self._follow_page(username, limit)

    def list_user_following(self, username: str = "", limit: int = 100) -> Page:
        return self._follow_page(username, limit)

    # Webhooks

    def list_webhooks(self, owner: str, repo: str, limit: int = 100) -> Page:
        key = self._repo(owner, repo)
        if key is None:
            return Page.empty()
        return self._page(self._hooks.get(key, []), limit)

    def create_webhook(self, owner: str, repo: str, url: str, events: Optional[List[str]] = None) -> bool:
        events = list(events or ["push"])
        if not self._validate_webhook(url, events):
            return False
        key = self._repo(owner, repo)
        if key is None:
            return False
        hooks = self._hooks.setdefault(key, [])
        if any(hook.url == url for hook in hooks):
            self._http.fail(FailureKind.HTTP, "HTTP 422: hook already exists on this repository", code=422)
            return False
        hooks.append(Webhook(id=self._new_id(), url=url, events=events, active=True))
        self._ok(201)
        return True

    def _delete_webhook_id(self, owner: str, repo: str, hook_id: int) -> bool:
        key = self._repo(owner, repo)
        if key is None:
            return False
        hooks = self._hooks.get(key, [])
        remaining = [hook for hook in hooks if hook.id != hook_id]
        if len(remaining) == len(hooks):
            self._not_found(f"Webhook {hook_id}")
            return False
        self._hooks[key] = remaining
        self._ok(204)
        return True

    # Issue templates (kept as files under .github/ISSUE_TEMPLATE)

    def list_issue_templates(self, owner: str, repo: str, limit: int = 100) -> Page:
        key = self._repo(owner, repo)
        if key is None:
            return Page.empty()
        prefix = f"{TEMPLATE_DIR}/"
        found = [
            IssueTemplate(name=mappings.template_name(path[len(prefix):]), path=path)
            for (repo_key, path) in sorted(self._files)
            if repo_key == key and path.startswith(prefix) and path.lower().endswith(".md")
        ]
        return self._page(found, limit)

    def get_issue_template(self, owner: str, repo: str, name: str, ref: str = "main") -> IssueTemplate:
        return self._file_template(owner, repo, TEMPLATE_DIR, name, ref)

    # Files

    def get_file(self, owner: str, repo: str, path: str, ref: str = "main") -> RepoFile:
        key = self._repo(owner, repo)
        if key is None:
            return RepoFile()
        repo_file = self._files.get((key, path.strip("/")))
        if repo_file is None:
            self._not_found(f"File {path}")
            return RepoFile()
        self._ok()
        return repo_file

    def create_file(
        self, owner: str, repo: str, path: str, content: str, message: str, branch: str = "main"
    ) -> bool:
        key = self._repo(owner, repo)
        if key is None:
            return False
        path = path.strip("/")
        if (key, path) in self._files:
            self._http.fail(FailureKind.HTTP, "HTTP 422: file already exists", code=422)
            return False
        self._files[(key, path)] = RepoFile(path=path, content=content, sha=_blob_sha(content))
        self._ok(201)
        return True

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
        current = self.get_file(owner, repo, path)
        if current.is_empty():
            return False
        if sha != current.sha:
            self._http.fail(FailureKind.HTTP, "HTTP 409: sha does not match", code=409)
            return False
        key = f"{owner}/{repo}"
        self._files[(key, current.path)] = RepoFile(path=current.path, content=content, sha=_blob_sha(content))
        self._ok()
        return True

    def delete_file(
        self, owner: str, repo: str, path: str, message: str, sha: str, branch: str = "main"
    ) -> bool:
        current = self.get_file(owner, repo, path)
        if current.is_empty():
            return False
        if sha != current.sha:
            self._http.fail(FailureKind.HTTP, "HTTP 409: sha does not match", code=409)
            return False
        del self._files[(f"{owner}/{repo}", current.path)]
        self._ok()
        return True

    # Gists

    def create_gist(self, description: str, filename: str, content: str, public: bool = False) -> str:
        if not self._require_auth():
            return ""
        if not filename.strip():
            self._invalid("Gist filename is required")
            return ""
        gist_id = _blob_sha(f"{filename}:{content}:{self._new_id()}")[:20]
        self._gists[gist_id] = content
        self._ok(201)
        return gist_id

    def delete_gist(self, gist_id: str) -> bool:
        if not self._require_auth():
            return False
        if self._gists.pop(gist_id, None) is None:
            self._not_found(f"Gist {gist_id}")
            return False
        self._ok(204)
        return True
