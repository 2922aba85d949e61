"""
Gitee API v5 provider implementation.

Gitee mirrors GitHub's resource layout closely, with a few differences: the
token goes in an "Authorization: token" header, issue writes are addressed
by owner only and carry the repository in the body, an issue has a single
assignee, and file deletion takes its arguments as query parameters.
"""
import logging
from typing import Any, Dict, List, Optional

from settings import GITEE_API_BASE
from providers import mappings
from providers.base_provider import MAX_SEARCH_PAGE, GitProvider
from providers.errors import FailureKind
from providers.models import (
    Comment,
    Issue,
    IssueDraft,
    IssueTemplate,
    Label,
    Milestone,
    Page,
    RepoFile,
    Repository,
    User,
    Webhook,
)
from utils.encoding import decode_content, encode_content, encode_path, percent_encode

logger = logging.getLogger(__name__)


class GiteeProvider(GitProvider):
    """Provider implementation for Gitee"""

    name = "gitee"
    display_name = "Gitee"
    user_table = mappings.GITEE_USER
    template_dir = ".gitee/ISSUE_TEMPLATE"

    def default_api_base(self) -> str:
        return GITEE_API_BASE

    def auth_headers(self, token: str) -> Dict[str, str]:
        return {"Authorization": f"token {token}"}

    def _repo_path(self, owner: str, repo: str) -> str:
        return f"/repos/{percent_encode(owner)}/{percent_encode(repo)}"

    def _issue_path(self, owner: str, repo: str, number: int) -> str:
        return f"{self._repo_path(owner, repo)}/issues/{int(number)}"

    def _issue_write_path(self, owner: str, number: Optional[int] = None) -> str:
        path = f"/repos/{percent_encode(owner)}/issues"
        return path if number is None else f"{path}/{int(number)}"

    def _patch_issue(self, owner: str, repo: str, number: int, fields: Dict[str, Any]) -> bool:
        return self._call("PATCH", self._issue_write_path(owner, number), json={"repo": repo, **fields})

    # Repositories

    def list_user_repos(self, limit: int = 100) -> Page:
        return self._fetch_page(
            Repository, mappings.GITEE_REPOSITORY, "/user/repos", limit,
            params={"sort": "updated"},
        )

    def get_repo(self, owner: str, repo: str) -> Repository:
        return self._fetch_record(Repository, mappings.GITEE_REPOSITORY, self._repo_path(owner, repo))

    def create_repo(self, name: str, description: str = "", private: bool = False) -> bool:
        if not name.strip():
            return self._invalid("Repository name is required")
        return self._call(
            "POST", "/user/repos",
            json={"name": name, "description": description, "private": private},
        )

    def delete_repo(self, owner: str, repo: str) -> bool:
        return self._call("DELETE", self._repo_path(owner, repo))

    def search_repositories(self, query: str, per_page: int = 10) -> Page:
        # Gitee answers search with a bare array rather than {total_count, items}
        per_page = max(1, min(per_page, MAX_SEARCH_PAGE))
        return self._fetch_page(
            Repository, mappings.GITEE_REPOSITORY, "/search/repositories", per_page,
            params={"q": query},
        )

    # Issues

    def list_issues(self, owner: str, repo: str, state: str = "open", limit: int = 100) -> Page:
        if not self._validate_state(state):
            return Page.empty()
        return self._fetch_page(
            Issue, mappings.GITEE_ISSUE, f"{self._repo_path(owner, repo)}/issues", limit,
            params={"state": state},
        )

    def get_issue(self, owner: str, repo: str, number: int) -> Issue:
        return self._fetch_record(Issue, mappings.GITEE_ISSUE, self._issue_path(owner, repo, number))

    def _issue_payload(self, owner: str, repo: str, draft: IssueDraft) -> Optional[Dict[str, Any]]:
        payload: Dict[str, Any] = {}
        if draft.title:
            payload["title"] = self._issue_title(draft)
        if draft.body:
            payload["body"] = draft.body
        if draft.labels:
            payload["labels"] = ",".join(draft.labels)
        if draft.assignees:
            payload["assignee"] = draft.assignees[0]
            if len(draft.assignees) > 1:
                payload["collaborators"] = ",".join(draft.assignees[1:])
        if draft.milestone:
            milestone = self._find_milestone(owner, repo, draft.milestone)
            if milestone is None:
                return None
            payload["milestone"] = milestone.number
        return payload

    def create_issue_ex(self, owner: str, repo: str, draft: IssueDraft) -> bool:
        if not self._validate_draft(draft):
            return False
        if not self._require_auth():
            return False
        payload = self._issue_payload(owner, repo, draft)
        if payload is None:
            return False
        return self._call("POST", self._issue_write_path(owner), json={"repo": repo, **payload})

    def close_issue(self, owner: str, repo: str, number: int) -> bool:
        return self._patch_issue(owner, repo, number, {"state": "closed"})

    def reopen_issue(self, owner: str, repo: str, number: int) -> bool:
        return self._patch_issue(owner, repo, number, {"state": "open"})

    def update_issue(self, owner: str, repo: str, number: int, draft: IssueDraft) -> bool:
        if not self._validate_draft(draft, require_title=False):
            return False
        if not self._require_auth():
            return False
        payload = self._issue_payload(owner, repo, draft)
        if payload is None:
            return False
        if not payload:
            return self._invalid("Nothing to update")
        return self._patch_issue(owner, repo, number, payload)

    # Comments

    def list_issue_comments(self, owner: str, repo: str, number: int, limit: int = 100) -> Page:
        return self._fetch_page(
            Comment, mappings.GITEE_COMMENT, f"{self._issue_path(owner, repo, number)}/comments", limit,
        )

    def add_issue_comment(self, owner: str, repo: str, number: int, body: str) -> bool:
        if not body.strip():
            return self._invalid("Comment body is required")
        return self._call("POST", f"{self._issue_path(owner, repo, number)}/comments", json={"body": body})

    def edit_issue_comment(
        self, owner: str, repo: str, number: int, comment_id: int, body: str
    ) -> bool:
        if not body.strip():
            return self._invalid("Comment body is required")
        return self._call(
            "PATCH", f"{self._repo_path(owner, repo)}/issues/comments/{int(comment_id)}",
            json={"body": body},
        )

    def delete_issue_comment(self, owner: str, repo: str, number: int, comment_id: int) -> bool:
        return self._call("DELETE", f"{self._repo_path(owner, repo)}/issues/comments/{int(comment_id)}")

    # Labels, assignees, milestones

    def list_labels(self, owner: str, repo: str, limit: int = 100) -> Page:
        return self._fetch_page(Label, mappings.GITEE_LABEL, f"{self._repo_path(owner, repo)}/labels", limit)

    def list_assignees(self, owner: str, repo: str, limit: int = 100) -> Page:
        return self._fetch_page(
            User, mappings.GITEE_USER, f"{self._repo_path(owner, repo)}/collaborators", limit,
        )

    def list_milestones(self, owner: str, repo: str, limit: int = 100) -> Page:
        return self._fetch_page(
            Milestone, mappings.GITEE_MILESTONE, f"{self._repo_path(owner, repo)}/milestones", limit,
            params={"state": "all"},
        )

    def add_label_to_issue(self, owner: str, repo: str, number: int, label: str) -> bool:
        return self._call("POST", f"{self._issue_path(owner, repo, number)}/labels", json=[label])

    def remove_label_from_issue(self, owner: str, repo: str, number: int, label: str) -> bool:
        return self._call("DELETE", f"{self._issue_path(owner, repo, number)}/labels/{percent_encode(label)}")

    def add_assignee_to_issue(self, owner: str, repo: str, number: int, assignee: str) -> bool:
        return self._patch_issue(owner, repo, number, {"assignee": assignee})

    def remove_assignee_from_issue(self, owner: str, repo: str, number: int, assignee: str) -> bool:
        if not self._require_auth():
            return False
        issue = self.get_issue(owner, repo, number)
        if issue.is_empty():
            return False
        if assignee not in issue.assignees:
            return self._invalid(f"{assignee} is not assigned to issue #{number}")
        return self._patch_issue(owner, repo, number, {"assignee": ""})

    def set_issue_milestone(self, owner: str, repo: str, number: int, title: str) -> bool:
        if not self._require_auth():
            return False
        milestone = self._find_milestone(owner, repo, title)
        if milestone is None:
            return False
        return self._patch_issue(owner, repo, number, {"milestone": milestone.number})

    def clear_issue_milestone(self, owner: str, repo: str, number: int) -> bool:
        return self._patch_issue(owner, repo, number, {"milestone": None})

    # Users

    def get_user_info(self, username: str = "") -> User:
        endpoint = f"/users/{percent_encode(username)}" if username else "/user"
        return self._fetch_record(User, mappings.GITEE_USER, endpoint)

    def search_users(self, query: str, per_page: int = 10) -> Page:
        per_page = max(1, min(per_page, MAX_SEARCH_PAGE))
        return self._fetch_page(User, mappings.GITEE_USER, "/search/users", per_page, params={"q": query})

    def _follow_path(self, username: str, relation: str) -> str:
        return f"/users/{percent_encode(username)}/{relation}" if username else f"/user/{relation}"

    def list_user_followers(self, username: str = "", limit: int = 100) -> Page:
        return self._fetch_page(User, mappings.GITEE_USER, self._follow_path(username, "followers"), limit)

    def list_user_following(self, username: str = "", limit: int = 100) -> Page:
        return self._fetch_page(User, mappings.GITEE_USER, self._follow_path(username, "following"), limit)

    # Webhooks (one boolean flag per event, as on GitLab)

    def list_webhooks(self, owner: str, repo: str, limit: int = 100) -> Page:
        return self._fetch_page(Webhook, mappings.GITEE_WEBHOOK, f"{self._repo_path(owner, repo)}/hooks", limit)

    def create_webhook(self, owner: str, repo: str, url: str, events: Optional[List[str]] = None) -> bool:
        events = list(events or ["push"])
        if not self._validate_webhook(url, events):
            return False
        flags = mappings.hook_flags(events)
        if flags is None:
            return self._invalid(f"Unsupported webhook events: {', '.join(events)}")
        return self._call("POST", f"{self._repo_path(owner, repo)}/hooks", json={"url": url, **flags})

    def _delete_webhook_id(self, owner: str, repo: str, hook_id: int) -> bool:
        return self._call("DELETE", f"{self._repo_path(owner, repo)}/hooks/{int(hook_id)}")

    # Issue templates

    def list_issue_templates(self, owner: str, repo: str, limit: int = 100) -> Page:
        return self._fetch_page(
            IssueTemplate, mappings.CONTENTS_TEMPLATE, self._contents_path(owner, repo, self.template_dir), limit,
            include=mappings.is_template_entry,
        )

    def get_issue_template(self, owner: str, repo: str, name: str, ref: str = "main") -> IssueTemplate:
        return self._file_template(owner, repo, self.template_dir, name, ref)

    # Files

    def _contents_path(self, owner: str, repo: str, path: str) -> str:
        return f"{self._repo_path(owner, repo)}/contents/{encode_path(path)}"

    def get_file(self, owner: str, repo: str, path: str, ref: str = "main") -> RepoFile:
        if not self._require_auth():
            return RepoFile()
        data = self._get_json(self._contents_path(owner, repo, path), {"ref": ref})
        if data is None:
            return RepoFile()
        if not isinstance(data, dict) or "content" not in data:
            self._http.fail(FailureKind.PARSE, "Path does not point at a file")
            return RepoFile()
        content = decode_content(data.get("content") or "")
        if content is None:
            self._http.fail(FailureKind.PARSE, "File content is not valid base64 text")
            return RepoFile()
        return RepoFile(path=data.get("path", path), content=content, sha=data.get("sha", ""))

    def create_file(
        self, owner: str, repo: str, path: str, content: str, message: str, branch: str = "main"
    ) -> bool:
        return self._call(
            "POST", self._contents_path(owner, repo, path),
            json={"message": message, "content": encode_content(content), "branch": branch},
        )

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
        if not sha:
            return self._invalid("Updating a file requires its current sha")
        return self._call(
            "PUT", self._contents_path(owner, repo, path),
            json={"message": message, "content": encode_content(content), "sha": sha, "branch": branch},
        )

    def delete_file(
        self, owner: str, repo: str, path: str, message: str, sha: str, branch: str = "main"
    ) -> bool:
        if not sha:
            return self._invalid("Deleting a file requires its current sha")
        return self._call(
            "DELETE", self._contents_path(owner, repo, path),
            params={"message": message, "sha": sha, "branch": branch},
        )

    # Gists (Gitee calls them code snippets but keeps the GitHub endpoints)

    def create_gist(self, description: str, filename: str, content: str, public: bool = False) -> str:
        if not self._require_auth():
            return ""
        if not filename.strip():
            self._invalid("Gist filename is required")
            return ""
        response = self._send(
            "POST", "/gists",
            json={"description": description, "public": public, "files": {filename: {"content": content}}},
        )
        if response is None:
            return ""
        data = self._http.decode(response)
        gist_id = data.get("id") if isinstance(data, dict) else None
        if not gist_id:
            self._http.fail(FailureKind.PARSE, "Gist response carried no id")
            return ""
        return str(gist_id)

    def delete_gist(self, gist_id: str) -> bool:
        return self._call("DELETE", f"/gists/{percent_encode(gist_id)}")
