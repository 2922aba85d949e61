"""Field-mapping tables: the single place where backend naming differences live

Each table maps a normalized record field to either a dotted path into the
backend's JSON object or a callable taking that object. parse_record builds
the keyword arguments from the table and validates them in one go, so a
record is either complete or the default one.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar, Union

from pydantic import ValidationError

from providers.models import Record

logger = logging.getLogger(__name__)

FieldSource = Union[str, Callable[[Dict[str, Any]], Any]]
FieldTable = Dict[str, FieldSource]

R = TypeVar("R", bound=Record)


def dig(data: Any, path: str) -> Any:
    """Follow a dotted path through nested dicts, returning None on any miss"""
    current = data
    for key in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def parse_record(model: Type[R], data: Any, table: FieldTable) -> R:
    """Build a normalized record from one backend JSON object

    Args:
        model: Record class to build
        data: Decoded JSON value
        table: Field-mapping table for this backend and record type

    Returns:
        The populated record, or model() if data is not an object or any
        mapped field fails validation
    """
    if not isinstance(data, dict):
        return model()

    values: Dict[str, Any] = {}
    try:
        for field, source in table.items():
            value = source(data) if callable(source) else dig(data, source)
            if value is not None:
                values[field] = value
        return model.model_validate(values)
    except (ValidationError, TypeError, AttributeError, KeyError) as e:
        logger.debug(f"Discarding malformed {model.__name__}: {e}")
        return model()


def parse_records(model: Type[R], data: Any, table: FieldTable) -> List[R]:
    """Parse a JSON array, dropping entries that do not parse"""
    if not isinstance(data, list):
        return []
    records = []
    for item in data:
        record = parse_record(model, item, table)
        if not record.is_empty():
            records.append(record)
    return records


def _names(key: str) -> Callable[[Dict[str, Any]], Any]:
    """Extract `key` from each object of a list field (labels, assignees)"""
    def extract(items: Any) -> Any:
        if items is None:
            return None
        return [item[key] for item in items]
    return extract


def _list_of(field: str, key: str) -> Callable[[Dict[str, Any]], Any]:
    names = _names(key)
    return lambda data: names(data.get(field))


# ---------------------------------------------------------------------------
# GitHub (and the Gitee dialect, which mirrors it closely)
# ---------------------------------------------------------------------------

GITHUB_REPOSITORY: FieldTable = {
    "name": "name",
    "full_name": "full_name",
    "description": "description",
    "clone_url": "clone_url",
    "ssh_url": "ssh_url",
    "html_url": "html_url",
    "private": "private",
    "default_branch": "default_branch",
    "stars": "stargazers_count",
    "forks": "forks_count",
}

GITHUB_ISSUE: FieldTable = {
    "number": "number",
    "title": "title",
    "body": "body",
    "state": "state",
    "author": "user.login",
    "created_at": "created_at",
    "updated_at": "updated_at",
    "html_url": "html_url",
    "labels": _list_of("labels", "name"),
    "assignees": _list_of("assignees", "login"),
    "milestone": "milestone.title",
    "comments": "comments",
    "is_pull_request": lambda data: "pull_request" in data,
}

GITHUB_COMMENT: FieldTable = {
    "id": "id",
    "body": "body",
    "author": "user.login",
    "created_at": "created_at",
    "updated_at": "updated_at",
    "html_url": "html_url",
}

GITHUB_LABEL: FieldTable = {
    "name": "name",
    "color": "color",
    "description": "description",
}

GITHUB_MILESTONE: FieldTable = {
    "id": "number",
    "number": "number",
    "title": "title",
    "description": "description",
    "state": "state",
    "due_on": "due_on",
}

GITHUB_USER: FieldTable = {
    "id": "id",
    "login": "login",
    "name": "name",
    "email": "email",
    "bio": "bio",
    "avatar_url": "avatar_url",
    "html_url": "html_url",
    "public_repos": "public_repos",
    "followers": "followers",
    "following": "following",
}

GITHUB_WEBHOOK: FieldTable = {
    "id": "id",
    "url": "config.url",
    "events": "events",
    "active": "active",
}

# Entries of a contents-API directory listing (.github/ISSUE_TEMPLATE)
CONTENTS_TEMPLATE: FieldTable = {
    "name": lambda data: template_name(data["name"]),
    "path": "path",
}


def template_name(filename: str) -> str:
    """Template name shown to users: the file name without ".md" """
    return filename[:-3] if filename.lower().endswith(".md") else filename


def is_template_entry(data: Any) -> bool:
    """Markdown files of a contents listing; issue forms and config.yml are skipped"""
    return (
        isinstance(data, dict)
        and data.get("type", "file") == "file"
        and str(data.get("name", "")).lower().endswith(".md")
    )


# Normalized webhook event -> the boolean flag GitLab and Gitee use for it
HOOK_EVENT_FLAGS: Dict[str, str] = {
    "push": "push_events",
    "tag_push": "tag_push_events",
    "issues": "issues_events",
    "note": "note_events",
    "merge_request": "merge_requests_events",
}

# GitHub event names accepted as aliases on the flag-based backends
HOOK_EVENT_ALIASES: Dict[str, str] = {
    "create": "tag_push",
    "issue_comment": "note",
    "pull_request": "merge_request",
}


def hook_flags(events: List[str]) -> Optional[Dict[str, bool]]:
    """Translate event names to flag fields; None if any event is unknown"""
    wanted = set()
    for event in events:
        event = HOOK_EVENT_ALIASES.get(event, event)
        if event not in HOOK_EVENT_FLAGS:
            return None
        wanted.add(event)
    return {flag: event in wanted for event, flag in HOOK_EVENT_FLAGS.items()}


def _flag_events(data: Dict[str, Any]) -> List[str]:
    return [event for event, flag in HOOK_EVENT_FLAGS.items() if data.get(flag)]


FLAG_WEBHOOK: FieldTable = {
    "id": "id",
    "url": "url",
    "events": _flag_events,
    # Neither backend can pause a hook through the API
    "active": lambda data: True,
}

# Gitee returns GitHub-shaped objects with a few renamed keys
GITEE_REPOSITORY: FieldTable = dict(GITHUB_REPOSITORY, clone_url="html_url")
GITEE_ISSUE: FieldTable = GITHUB_ISSUE
GITEE_COMMENT: FieldTable = GITHUB_COMMENT
GITEE_LABEL: FieldTable = GITHUB_LABEL
GITEE_MILESTONE: FieldTable = GITHUB_MILESTONE
GITEE_USER: FieldTable = GITHUB_USER
GITEE_WEBHOOK: FieldTable = FLAG_WEBHOOK


# ---------------------------------------------------------------------------
# GitLab
# ---------------------------------------------------------------------------

GITLAB_REPOSITORY: FieldTable = {
    "name": "name",
    "full_name": "path_with_namespace",
    "description": "description",
    "clone_url": "http_url_to_repo",
    "ssh_url": "ssh_url_to_repo",
    "html_url": "web_url",
    "private": lambda data: data.get("visibility", "public") != "public",
    "default_branch": "default_branch",
    "stars": "star_count",
    "forks": "forks_count",
}

GITLAB_ISSUE: FieldTable = {
    "number": "iid",
    "title": "title",
    "body": "description",
    "state": lambda data: "open" if data.get("state") == "opened" else data.get("state"),
    "author": "author.username",
    "created_at": "created_at",
    "updated_at": "updated_at",
    "html_url": "web_url",
    "labels": "labels",
    "assignees": _list_of("assignees", "username"),
    "milestone": "milestone.title",
    "comments": "user_notes_count",
    "is_pull_request": lambda data: "merge_request_iid" in data,
}

GITLAB_COMMENT: FieldTable = {
    "id": "id",
    "body": "body",
    "author": "author.username",
    "created_at": "created_at",
    "updated_at": "updated_at",
}

GITLAB_LABEL: FieldTable = {
    "name": "name",
    "color": lambda data: (data.get("color") or "").lstrip("#") or None,
    "description": "description",
}

GITLAB_MILESTONE: FieldTable = {
    "id": "id",
    "number": "iid",
    "title": "title",
    "description": "description",
    "state": "state",
    "due_on": "due_date",
}

GITLAB_USER: FieldTable = {
    "id": "id",
    "login": "username",
    "name": "name",
    "email": "email",
    "bio": "bio",
    "avatar_url": "avatar_url",
    "html_url": "web_url",
    "followers": "followers",
    "following": "following",
}

GITLAB_WEBHOOK: FieldTable = FLAG_WEBHOOK

# GET /projects/:id/templates/issues lists {key, name}
GITLAB_TEMPLATE: FieldTable = {
    "name": "key",
    "path": "key",
}
