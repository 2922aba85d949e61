"""
GitLab REST v4 provider implementation.

GitLab addresses projects by numeric id. Every repository-scoped operation
first resolves owner/name through GET /projects/{url-encoded path}; when
that lookup fails or carries no id, the operation stops with a RESOLUTION
failure and the dependent request is never sent.
"""
import logging
from typing import Any, Dict, List, Optional

from settings import GITLAB_API_BASE
from providers import mappings, templates
from providers.base_provider import MAX_SEARCH_PAGE, GitProvider
from providers.errors import FailureKind
from providers.mappings import parse_record
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
from utils.encoding import decode_content, encode_content, percent_encode

logger = logging.getLogger(__name__)

# Normalized issue state -> GitLab's state filter ("all" means no filter)
STATE_FILTERS = {"open": "opened", "closed": "closed", "all": None}


class GitLabProvider(GitProvider):
    """Provider implementation for gitlab.com and self-hosted GitLab"""

    name = "gitlab"
    display_name = "GitLab"
    user_table = mappings.GITLAB_USER

    def default_api_base(self) -> str:
        return GITLAB_API_BASE

    def auth_headers(self, token: str) -> Dict[str, str]:
        return {"PRIVATE-TOKEN": token}

    # ------------------------------------------------------------------
    # owner/name -> project id
    # ------------------------------------------------------------------

    def _lookup_project(self, owner: str, repo: str) -> Optional[Dict[str, Any]]:
        """Fetch the project object for owner/name

        Returns:
            The project JSON object, or None after recording a failure
        """
        if not self._require_auth():
            return None

        full_path = f"{owner}/{repo}"
        data = self._get_json(f"/projects/{percent_encode(full_path)}")
        if data is None:
            # Connection errors and a busy handle keep their own kind
            if self.last_failure() not in (FailureKind.TRANSPORT, FailureKind.BUSY):
                self._http.fail(FailureKind.RESOLUTION, f"Project not found: {full_path}")
            return None
        if not isinstance(data, dict) or not isinstance(data.get("id"), int):
            self._http.fail(FailureKind.RESOLUTION, f"Project not found: {full_path}")
            return None
        return data

    def _project_path(self, owner: str, repo: str) -> Optional[str]:
        project = self._lookup_project(owner, repo)
        if project is None:
            return None
        return f"/projects/{project['id']}"

    def _issue_path(self, project: str, number: int) -> str:
        return f"{project}/issues/{int(number)}"

    def _user_id(self, username: str) -> Optional[int]:
        """Resolve a username to GitLab's numeric user id"""
        users = self._get_json("/users", {"username": username})
        if users is None:
            return None
        if isinstance(users, list) and users and isinstance(users[0], dict):
            user_id = users[0].get("id")
            if isinstance(user_id, int):
                return user_id
        self._http.fail(FailureKind.RESOLUTION, f"User not found: {username}")
        return None

    def _user_ids(self, usernames: List[str]) -> Optional[List[int]]:
        ids = []
        for username in usernames:
            user_id = self._user_id(username)
            if user_id is None:
                return None
            ids.append(user_id)
        return ids

    def _current_assignee_ids(self, project: str, number: int) -> Optional[List[int]]:
        issue = self._get_json(self._issue_path(project, number))
        if not isinstance(issue, dict):
            if issue is not None:
                self._http.fail(FailureKind.PARSE, "Unexpected issue response shape")
            return None
        return [a["id"] for a in issue.get("assignees") or [] if isinstance(a, dict) and "id" in a]

    # ------------------------------------------------------------------
    # Repositories
    # ------------------------------------------------------------------

    def list_user_repos(self, limit: int = 100) -> Page:
        return self._fetch_page(
            Repository, mappings.GITLAB_REPOSITORY, "/projects", limit,
            params={"membership": "true", "order_by": "last_activity_at"},
        )

    def get_repo(self, owner: str, repo: str) -> Repository:
        project = self._lookup_project(owner, repo)
        if project is None:
            return Repository()
        return parse_record(Repository, project, mappings.GITLAB_REPOSITORY)

    def create_repo(self, name: str, description: str = "", private: bool = False) -> bool:
        if not name.strip():
            return self._invalid("Repository name is required")
        return self._call(
            "POST", "/projects",
            json={
                "name": name,
                "description": description,
                "visibility": "private" if private else "public",
            },
        )

    def delete_repo(self, owner: str, repo: str) -> bool:
        project = self._project_path(owner, repo)
        if project is None:
            return False
        return self._call("DELETE", project)

    def search_repositories(self, query: str, per_page: int = 10) -> Page:
        per_page = max(1, min(per_page, MAX_SEARCH_PAGE))
        return self._fetch_page(
            Repository, mappings.GITLAB_REPOSITORY, "/projects", per_page,
            params={"search": query},
        )

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    def list_issues(self, owner: str, repo: str, state: str = "open", limit: int = 100) -> Page:
        if not self._validate_state(state):
            return Page.empty()
        project = self._project_path(owner, repo)
        if project is None:
            return Page.empty()
        return self._fetch_page(
            Issue, mappings.GITLAB_ISSUE, f"{project}/issues", limit,
            params={"state": STATE_FILTERS[state]},
        )

    def get_issue(self, owner: str, repo: str, number: int) -> Issue:
        project = self._project_path(owner, repo)
        if project is None:
            return Issue()
        return self._fetch_record(Issue, mappings.GITLAB_ISSUE, self._issue_path(project, number))

    def _issue_payload(self, project: str, draft: IssueDraft) -> Optional[Dict[str, Any]]:
        payload: Dict[str, Any] = {}
        if draft.title:
            payload["title"] = self._issue_title(draft)
        if draft.body:
            payload["description"] = draft.body
        if draft.labels:
            payload["labels"] = ",".join(draft.labels)
        if draft.assignees:
            ids = self._user_ids(list(draft.assignees))
            if ids is None:
                return None
            payload["assignee_ids"] = ids
        if draft.milestone:
            milestone = self._find_project_milestone(project, draft.milestone)
            if milestone is None:
                return None
            payload["milestone_id"] = milestone.id
        return payload

    def create_issue_ex(self, owner: str, repo: str, draft: IssueDraft) -> bool:
        if not self._validate_draft(draft):
            return False
        project = self._project_path(owner, repo)
        if project is None:
            return False
        payload = self._issue_payload(project, draft)
        if payload is None:
            return False
        return self._call("POST", f"{project}/issues", json=payload)

    def _put_issue(self, owner: str, repo: str, number: int, fields: Dict[str, Any]) -> bool:
        project = self._project_path(owner, repo)
        if project is None:
            return False
        return self._call("PUT", self._issue_path(project, number), json=fields)

    def close_issue(self, owner: str, repo: str, number: int) -> bool:
        return self._put_issue(owner, repo, number, {"state_event": "close"})

    def reopen_issue(self, owner: str, repo: str, number: int) -> bool:
        return self._put_issue(owner, repo, number, {"state_event": "reopen"})

    def update_issue(self, owner: str, repo: str, number: int, draft: IssueDraft) -> bool:
        if not self._validate_draft(draft, require_title=False):
            return False
        project = self._project_path(owner, repo)
        if project is None:
            return False
        payload = self._issue_payload(project, draft)
        if payload is None:
            return False
        if not payload:
            return self._invalid("Nothing to update")
        return self._call("PUT", self._issue_path(project, number), json=payload)

    # ------------------------------------------------------------------
    # Comments (GitLab "notes"; system notes are activity entries, not comments)
    # ------------------------------------------------------------------

    def list_issue_comments(self, owner: str, repo: str, number: int, limit: int = 100) -> Page:
        project = self._project_path(owner, repo)
        if project is None:
            return Page.empty()
        return self._fetch_page(
            Comment, mappings.GITLAB_COMMENT, f"{self._issue_path(project, number)}/notes", limit,
            params={"sort": "asc"},
            include=lambda note: isinstance(note, dict) and not note.get("system", False),
        )

    def add_issue_comment(self, owner: str, repo: str, number: int, body: str) -> bool:
        if not body.strip():
            return self._invalid("Comment body is required")
        project = self._project_path(owner, repo)
        if project is None:
            return False
        return self._call("POST", f"{self._issue_path(project, number)}/notes", json={"body": body})

    def edit_issue_comment(
        self, owner: str, repo: str, number: int, comment_id: int, body: str
    ) -> bool:
        if not body.strip():
            return self._invalid("Comment body is required")
        project = self._project_path(owner, repo)
        if project is None:
            return False
        return self._call(
            "PUT", f"{self._issue_path(project, number)}/notes/{int(comment_id)}", json={"body": body},
        )

    def delete_issue_comment(self, owner: str, repo: str, number: int, comment_id: int) -> bool:
        project = self._project_path(owner, repo)
        if project is None:
            return False
        return self._call("DELETE", f"{self._issue_path(project, number)}/notes/{int(comment_id)}")

    # ------------------------------------------------------------------
    # Labels, assignees, milestones
    # ------------------------------------------------------------------

    def list_labels(self, owner: str, repo: str, limit: int = 100) -> Page:
        project = self._project_path(owner, repo)
        if project is None:
            return Page.empty()
        return self._fetch_page(Label, mappings.GITLAB_LABEL, f"{project}/labels", limit)

    def list_assignees(self, owner: str, repo: str, limit: int = 100) -> Page:
        project = self._project_path(owner, repo)
        if project is None:
            return Page.empty()
        return self._fetch_page(User, mappings.GITLAB_USER, f"{project}/members/all", limit)

    def list_milestones(self, owner: str, repo: str, limit: int = 100) -> Page:
        project = self._project_path(owner, repo)
        if project is None:
            return Page.empty()
        return self._fetch_page(Milestone, mappings.GITLAB_MILESTONE, f"{project}/milestones", limit)

    def _find_project_milestone(self, project: str, title: str) -> Optional[Milestone]:
        # Milestone titles are unique per project, so the title filter is exact
        milestones = self._fetch_page(
            Milestone, mappings.GITLAB_MILESTONE, f"{project}/milestones", 1,
            params={"title": title},
        )
        for milestone in milestones:
            if milestone.title == title:
                return milestone
        if self.last_failure() == FailureKind.NONE:
            self._http.fail(FailureKind.RESOLUTION, f"Milestone not found: {title}")
        return None

    def add_label_to_issue(self, owner: str, repo: str, number: int, label: str) -> bool:
        return self._put_issue(owner, repo, number, {"add_labels": label})

    def remove_label_from_issue(self, owner: str, repo: str, number: int, label: str) -> bool:
        return self._put_issue(owner, repo, number, {"remove_labels": label})

    def _change_assignees(self, owner: str, repo: str, number: int, assignee: str, add: bool) -> bool:
        project = self._project_path(owner, repo)
        if project is None:
            return False
        user_id = self._user_id(assignee)
        if user_id is None:
            return False
        current = self._current_assignee_ids(project, number)
        if current is None:
            return False
        if add:
            ids = current if user_id in current else current + [user_id]
        else:
            ids = [i for i in current if i != user_id]
        return self._call("PUT", self._issue_path(project, number), json={"assignee_ids": ids})

    def add_assignee_to_issue(self, owner: str, repo: str, number: int, assignee: str) -> bool:
        return self._change_assignees(owner, repo, number, assignee, add=True)

    def remove_assignee_from_issue(self, owner: str, repo: str, number: int, assignee: str) -> bool:
        return self._change_assignees(owner, repo, number, assignee, add=False)

    def set_issue_milestone(self, owner: str, repo: str, number: int, title: str) -> bool:
        project = self._project_path(owner, repo)
        if project is None:
            return False
        milestone = self._find_project_milestone(project, title)
        if milestone is None:
            return False
        return self._call("PUT", self._issue_path(project, number), json={"milestone_id": milestone.id})

    def clear_issue_milestone(self, owner: str, repo: str, number: int) -> bool:
        # 0 unassigns the milestone
        return self._put_issue(owner, repo, number, {"milestone_id": 0})

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def get_user_info(self, username: str = "") -> User:
        if not username:
            return self._fetch_record(User, mappings.GITLAB_USER, "/user")
        if not self._require_auth():
            return User()
        users = self._get_json("/users", {"username": username})
        if users is None:
            return User()
        if not isinstance(users, list) or not users:
            self._http.fail(FailureKind.RESOLUTION, f"User not found: {username}")
            return User()
        return parse_record(User, users[0], mappings.GITLAB_USER)

    def search_users(self, query: str, per_page: int = 10) -> Page:
        per_page = max(1, min(per_page, MAX_SEARCH_PAGE))
        return self._fetch_page(User, mappings.GITLAB_USER, "/users", per_page, params={"search": query})

    def _follow_page(self, username: str, relation: str, limit: int) -> Page:
        # The follow endpoints are keyed by user id
        if not self._require_auth():
            return Page.empty()
        user_id = self._user_id(username or self.username)
        if user_id is None:
            return Page.empty()
        return self._fetch_page(User, mappings.GITLAB_USER, f"/users/{user_id}/{relation}", limit)

    def list_user_followers(self, username: str = "", limit: int = 100) -> Page:
        return self._follow_page(username, "followers", limit)

    def list_user_following(self, username: str = "", limit: int = 100) -> Page:
        return self._follow_page(username, "following", limit)

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def list_webhooks(self, owner: str, repo: str, limit: int = 100) -> Page:
        project = self._project_path(owner, repo)
        if project is None:
            return Page.empty()
        return self._fetch_page(Webhook, mappings.GITLAB_WEBHOOK, f"{project}/hooks", limit)

    def create_webhook(self, owner: str, repo: str, url: str, events: Optional[List[str]] = None) -> bool:
        events = list(events or ["push"])
        if not self._validate_webhook(url, events):
            return False
        flags = mappings.hook_flags(events)
        if flags is None:
            return self._invalid(f"Unsupported webhook events: {', '.join(events)}")
        project = self._project_path(owner, repo)
        if project is None:
            return False
        return self._call("POST", f"{project}/hooks", json={"url": url, **flags})

    def _delete_webhook_id(self, owner: str, repo: str, hook_id: int) -> bool:
        project = self._project_path(owner, repo)
        if project is None:
            return False
        return self._call("DELETE", f"{project}/hooks/{int(hook_id)}")

    # ------------------------------------------------------------------
    # Issue templates (served by the templates API from the default branch)
    # ------------------------------------------------------------------

    def list_issue_templates(self, owner: str, repo: str, limit: int = 100) -> Page:
        project = self._project_path(owner, repo)
        if project is None:
            return Page.empty()
        return self._fetch_page(IssueTemplate, mappings.GITLAB_TEMPLATE, f"{project}/templates/issues", limit)

    def get_issue_template(self, owner: str, repo: str, name: str, ref: str = "main") -> IssueTemplate:
        project = self._project_path(owner, repo)
        if project is None:
            return IssueTemplate()
        data = self._get_json(f"{project}/templates/issues/{percent_encode(name)}")
        if data is None:
            return IssueTemplate()
        if not isinstance(data, dict) or not isinstance(data.get("content"), str):
            self._http.fail(FailureKind.PARSE, "Unexpected template response shape")
            return IssueTemplate()
        return templates.parse_template(name, name, data["content"])

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def _file_path(self, project: str, path: str) -> str:
        # The whole file path is one URL segment here, slashes included
        return f"{project}/repository/files/{percent_encode(path.strip('/'))}"

    def get_file(self, owner: str, repo: str, path: str, ref: str = "main") -> RepoFile:
        project = self._project_path(owner, repo)
        if project is None:
            return RepoFile()
        data = self._get_json(self._file_path(project, path), {"ref": ref})
        if data is None:
            return RepoFile()
        if not isinstance(data, dict) or "content" not in data:
            self._http.fail(FailureKind.PARSE, "Unexpected file response shape")
            return RepoFile()
        content = decode_content(data.get("content") or "")
        if content is None:
            self._http.fail(FailureKind.PARSE, "File content is not valid base64 text")
            return RepoFile()
        # last_commit_id is what GitLab checks for conflicting writes
        return RepoFile(
            path=data.get("file_path", path),
            content=content,
            sha=data.get("last_commit_id", ""),
        )

    def _write_file(
        self, method: str, owner: str, repo: str, path: str, fields: Dict[str, Any]
    ) -> bool:
        project = self._project_path(owner, repo)
        if project is None:
            return False
        return self._call(method, self._file_path(project, path), json=fields)

    def create_file(
        self, owner: str, repo: str, path: str, content: str, message: str, branch: str = "main"
    ) -> bool:
        return self._write_file("POST", owner, repo, path, {
            "branch": branch,
            "commit_message": message,
            "content": encode_content(content),
            "encoding": "base64",
        })

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
        fields = {
            "branch": branch,
            "commit_message": message,
            "content": encode_content(content),
            "encoding": "base64",
        }
        if sha:
            fields["last_commit_id"] = sha
        return self._write_file("PUT", owner, repo, path, fields)

    def delete_file(
        self, owner: str, repo: str, path: str, message: str, sha: str, branch: str = "main"
    ) -> bool:
        fields = {"branch": branch, "commit_message": message}
        if sha:
            fields["last_commit_id"] = sha
        return self._write_file("DELETE", owner, repo, path, fields)
