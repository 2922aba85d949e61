"""Tests for field-mapping tables and record parsing."""

import pytest
from pydantic import ValidationError

from providers import mappings
from providers.mappings import dig, parse_record, parse_records
from providers.models import Issue, ProviderSession, Repository


def test_dig_follows_paths_and_tolerates_misses():
    data = {"user": {"login": "octo"}}
    assert dig(data, "user.login") == "octo"
    assert dig(data, "user.name") is None
    assert dig(data, "milestone.title") is None


def test_github_issue_parses():
    issue = parse_record(Issue, {
        "number": 7,
        "title": "Crash",
        "body": None,
        "state": "open",
        "user": {"login": "octo"},
        "labels": [{"name": "bug"}],
        "assignees": [{"login": "hubot"}],
        "milestone": {"title": "v1"},
        "pull_request": {},
    }, mappings.GITHUB_ISSUE)

    assert issue.number == 7
    assert issue.author == "octo"
    assert issue.body == ""
    assert issue.labels == ["bug"]
    assert issue.assignees == ["hubot"]
    assert issue.milestone == "v1"
    assert issue.is_pull_request


def test_gitlab_issue_normalizes_state_and_number():
    issue = parse_record(Issue, {
        "id": 991,
        "iid": 3,
        "title": "Docs",
        "description": "Fix typo",
        "state": "opened",
        "author": {"username": "tanuki"},
        "labels": ["docs"],
    }, mappings.GITLAB_ISSUE)

    assert issue.number == 3
    assert issue.state == "open"
    assert issue.body == "Fix typo"
    assert issue.labels == ["docs"]


def test_gitlab_repository_visibility():
    repo = parse_record(Repository, {
        "name": "hello",
        "path_with_namespace": "group/hello",
        "visibility": "private",
    }, mappings.GITLAB_REPOSITORY)
    assert repo.full_name == "group/hello"
    assert repo.private


def test_malformed_record_is_default():
    # A label entry without a name makes the whole issue invalid
    issue = parse_record(Issue, {"number": 1, "title": "x", "labels": [{"id": 1}]}, mappings.GITHUB_ISSUE)
    assert issue.is_empty()
    assert parse_record(Issue, ["not", "a", "dict"], mappings.GITHUB_ISSUE).is_empty()
    assert parse_record(Issue, {"number": "seven"}, mappings.GITHUB_ISSUE).is_empty()


def test_parse_records_skips_bad_entries():
    records = parse_records(Repository, [
        {"name": "a", "full_name": "o/a"},
        "garbage",
        {"name": "b", "full_name": "o/b"},
    ], mappings.GITHUB_REPOSITORY)
    assert [r.name for r in records] == ["a", "b"]


def test_records_are_frozen():
    repo = Repository(name="a")
    with pytest.raises(ValidationError):
        repo.name = "b"


def test_provider_session_transitions():
    session = ProviderSession(api_base_url="https://api.test", display_name="GitHub")
    authed = session.with_token("tok").authenticate("octo")
    assert authed.authenticated and authed.username == "octo"

    cleared = authed.cleared()
    assert not cleared.authenticated
    assert cleared.token == "" and cleared.username == ""
    assert cleared.api_base_url == "https://api.test"

    with pytest.raises(ValueError):
        ProviderSession(api_base_url="x", display_name="y", authenticated=True)


def test_hook_flags_accept_github_aliases():
    flags = mappings.hook_flags(["pull_request", "push"])

    assert flags["merge_requests_events"] is True
    assert flags["push_events"] is True
    assert flags["note_events"] is False


def test_hook_flags_reject_unknown_events():
    assert mappings.hook_flags(["push", "release"]) is None
