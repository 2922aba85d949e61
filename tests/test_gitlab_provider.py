"""Tests for the GitLab provider: project resolution, notes, files."""

import base64

import pytest

from providers.errors import FailureKind
from providers.gitlab_provider import GitLabProvider
from providers.models import IssueDraft
from tests.conftest import authenticated

USER = {"username": "tanuki", "id": 7, "name": "Tanuki"}
PROJECT = {"id": 42, "name": "hello", "path_with_namespace": "octo/hello", "visibility": "public"}


@pytest.fixture
def gitlab(api):
    return authenticated(GitLabProvider, api, USER)


@pytest.fixture
def project(api):
    api.add("GET", "/projects/octo/hello", body=PROJECT)
    return PROJECT


def test_private_token_header(api):
    api.add("GET", "/user", body=USER)
    provider = GitLabProvider(api_base_url="https://api.test/", transport=api.transport)

    assert provider.begin("glpat-abcdefghijklmnop")
    assert provider.username == "tanuki"
    assert api.last().headers["PRIVATE-TOKEN"] == "glpat-abcdefghijklmnop"
    assert "Authorization" not in api.last().headers


class TestProjectResolution:
    def test_path_is_encoded_as_one_segment(self, gitlab, api, project):
        api.add("GET", "/projects/42/issues", body=[
            {"iid": 3, "title": "Docs", "state": "opened", "author": {"username": "tanuki"}},
        ])

        page = gitlab.list_issues("octo", "hello")

        assert api.requests[0].url.raw_path.startswith(b"/projects/octo%2Fhello")
        assert api.last().url.params["state"] == "opened"
        assert page.items[0].number == 3
        assert page.items[0].state == "open"

    def test_missing_project_reports_resolution(self, gitlab, api):
        assert not gitlab.close_issue("octo", "missing", 1)

        assert gitlab.last_failure() == FailureKind.RESOLUTION
        assert gitlab.last_error() == "Project not found: octo/missing"
        assert api.calls() == [("GET", "/projects/octo/missing")]

    def test_project_without_id_stops_dependent_request(self, gitlab, api):
        api.add("GET", "/projects/octo/hello", body={"name": "hello"})

        page = gitlab.list_labels("octo", "hello")

        assert not page
        assert gitlab.last_failure() == FailureKind.RESOLUTION
        assert len(api.requests) == 1

    def test_all_state_sends_no_filter(self, gitlab, api, project):
        api.add("GET", "/projects/42/issues", body=[])

        gitlab.list_issues("octo", "hello", state="all")

        assert "state" not in api.last().url.params

    def test_get_repo_uses_lookup(self, gitlab, api, project):
        repo = gitlab.get_repo("octo", "hello")

        assert repo.full_name == "octo/hello"
        assert len(api.requests) == 1


class TestIssues:
    def test_create_resolves_assignees_and_milestone(self, gitlab, api, project):
        api.add("GET", "/users", body=[{"id": 99, "username": "alice"}])
        api.add("GET", "/projects/42/milestones", body=[{"id": 5, "iid": 1, "title": "v1.0"}])
        api.add("POST", "/projects/42/issues", status=201, body={"iid": 8})

        assert gitlab.create_issue_ex("octo", "hello", IssueDraft(
            title="Plan", body="Details", labels=["a", "b"], assignees=["alice"], milestone="v1.0",
        ))

        assert api.last_json() == {
            "title": "Plan",
            "description": "Details",
            "labels": "a,b",
            "assignee_ids": [99],
            "milestone_id": 5,
        }

    def test_unknown_assignee_stops_create(self, gitlab, api, project):
        api.add("GET", "/users", body=[])

        assert not gitlab.create_issue_ex("octo", "hello", IssueDraft(title="Plan", assignees=["ghost"]))
        assert gitlab.last_failure() == FailureKind.RESOLUTION
        assert ("POST", "/projects/42/issues") not in api.calls()

    def test_close_uses_state_event(self, gitlab, api, project):
        api.add("PUT", "/projects/42/issues/3", body={"iid": 3})

        assert gitlab.close_issue("octo", "hello", 3)
        assert api.last_json() == {"state_event": "close"}

    def test_clear_milestone_sends_zero(self, gitlab, api, project):
        api.add("PUT", "/projects/42/issues/3", body={"iid": 3})

        assert gitlab.clear_issue_milestone("octo", "hello", 3)
        assert api.last_json() == {"milestone_id": 0}

    def test_add_assignee_merges_with_current(self, gitlab, api, project):
        api.add("GET", "/users", body=[{"id": 99, "username": "alice"}])
        api.add("GET", "/projects/42/issues/3", body={"iid": 3, "assignees": [{"id": 7}]})
        api.add("PUT", "/projects/42/issues/3", body={"iid": 3})

        assert gitlab.add_assignee_to_issue("octo", "hello", 3, "alice")
        assert api.last_json() == {"assignee_ids": [7, 99]}

    def test_system_notes_are_not_comments(self, gitlab, api, project):
        api.add("GET", "/projects/42/issues/3/notes", body=[
            {"id": 1, "body": "changed the description", "system": True, "author": {"username": "tanuki"}},
            {"id": 2, "body": "Looks good", "system": False, "author": {"username": "alice"}},
        ])

        page = gitlab.list_issue_comments("octo", "hello", 3)

        assert [(c.id, c.author) for c in page] == [(2, "alice")]

    def test_next_page_header(self, gitlab, api, project):
        api.add("GET", "/projects/42/labels", body=[{"name": "bug", "color": "#f00"}],
                headers={"X-Next-Page": "2"})

        assert gitlab.list_labels("octo", "hello").has_more


class TestFiles:
    def test_get_file_uses_last_commit_id(self, gitlab, api, project):
        api.add("GET", "/projects/42/repository/files/docs/README.md", body={
            "file_path": "docs/README.md",
            "content": base64.b64encode(b"hello").decode(),
            "encoding": "base64",
            "last_commit_id": "c0ffee",
        })

        repo_file = gitlab.get_file("octo", "hello", "docs/README.md")

        assert repo_file.content == "hello"
        assert repo_file.sha == "c0ffee"
        assert b"docs%2FREADME.md" in api.last().url.raw_path

    def test_update_file_sends_base64(self, gitlab, api, project):
        api.add("PUT", "/projects/42/repository/files/notes.txt", body={})

        assert gitlab.update_file("octo", "hello", "notes.txt", "new text", "Edit", sha="c0ffee")

        body = api.last_json()
        assert body["encoding"] == "base64"
        assert base64.b64decode(body["content"]).decode() == "new text"
        assert body["last_commit_id"] == "c0ffee"
        assert body["commit_message"] == "Edit"


def test_gists_are_unsupported(gitlab, api):
    assert gitlab.create_gist("d", "a.txt", "x") == ""
    assert gitlab.last_failure() == FailureKind.UNSUPPORTED
    assert not gitlab.delete_gist("abc")
    assert api.requests == []


class TestUsers:
    def test_search_users_uses_search_parameter(self, gitlab, api):
        api.add("GET", "/users", body=[{"username": "tanuki", "id": 7}])

        page = gitlab.search_users("tan")

        assert [user.login for user in page] == ["tanuki"]
        assert api.last().url.params["search"] == "tan"

    def test_followers_resolve_user_id(self, gitlab, api):
        api.add("GET", "/users", body=[{"username": "tanuki", "id": 7}])
        api.add("GET", "/users/7/followers", body=[{"username": "fox", "id": 8}])

        page = gitlab.list_user_followers()

        assert [user.login for user in page] == ["fox"]
        assert api.requests[-2].url.params["username"] == "tanuki"

    def test_unknown_user_stops_before_listing(self, gitlab, api):
        api.add("GET", "/users", body=[])

        assert not gitlab.list_user_following("ghost")
        assert gitlab.last_failure() == FailureKind.RESOLUTION
        assert api.calls()[-1] == ("GET", "/users")


class TestWebhooks:
    def test_create_sends_event_flags(self, gitlab, api, project):
        api.add("POST", "/projects/42/hooks", status=201, body={"id": 1})

        assert gitlab.create_webhook("octo", "hello", "https://ci.test/hook", ["issues", "issue_comment"])

        body = api.last_json()
        assert body["url"] == "https://ci.test/hook"
        assert body["issues_events"] is True
        assert body["note_events"] is True
        assert body["push_events"] is False

    def test_delete_by_url(self, gitlab, api, project):
        api.add("GET", "/projects/42/hooks", body=[
            {"id": 1, "url": "https://ci.test/hook", "push_events": True},
        ])
        api.add("DELETE", "/projects/42/hooks/1", status=204)

        assert gitlab.delete_webhook("octo", "hello", "https://ci.test/hook")
        assert api.calls()[-1] == ("DELETE", "/projects/42/hooks/1")


class TestIssueTemplates:
    def test_listing_uses_templates_api(self, gitlab, api, project):
        api.add("GET", "/projects/42/templates/issues", body=[{"key": "Bug", "name": "Bug"}])

        page = gitlab.list_issue_templates("octo", "hello")

        assert [(t.name, t.path) for t in page] == [("Bug", "Bug")]

    def test_get_template_parses_content(self, gitlab, api, project):
        api.add("GET", "/projects/42/templates/issues/Bug", body={
            "name": "Bug",
            "content": "---\ntitle: Crash\nlabels: [bug]\n---\nWhat broke?\n",
        })

        template = gitlab.get_issue_template("octo", "hello", "Bug")

        assert template.title == "Crash"
        assert template.labels == ["bug"]
        assert template.content == "What broke?\n"

    def test_plain_template_is_all_content(self, gitlab, api, project):
        api.add("GET", "/projects/42/templates/issues/Bug", body={"name": "Bug", "content": "What broke?"})

        assert gitlab.get_issue_template_content("octo", "hello", "Bug") == "What broke?"

    def test_unexpected_shape(self, gitlab, api, project):
        api.add("GET", "/projects/42/templates/issues/Bug", body=["no"])

        assert gitlab.get_issue_template("octo", "hello", "Bug").is_empty()
        assert gitlab.last_failure() == FailureKind.PARSE
