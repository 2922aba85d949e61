"""Tests for the Gitee provider's departures from the GitHub dialect."""

import base64

import pytest

from providers.errors import FailureKind
from providers.gitee_provider import GiteeProvider
from providers.models import IssueDraft
from tests.conftest import API_BASE, authenticated

USER = {"login": "panda", "id": 3, "name": "Red Panda"}


@pytest.fixture
def gitee(api):
    return authenticated(GiteeProvider, api, USER)


def test_token_header(api):
    api.add("GET", "/user", body=USER)
    provider = GiteeProvider(api_base_url=API_BASE, transport=api.transport)

    assert provider.begin("0123456789abcdef")
    assert api.last().headers["Authorization"] == "token 0123456789abcdef"


class TestIssues:
    def test_create_posts_to_owner_with_repo_in_body(self, gitee, api):
        api.add("POST", "/repos/panda/issues", status=201, body={"number": "I1A2B3"})

        assert gitee.create_issue_ex("panda", "bamboo", IssueDraft(
            title="Leaves", body="More please", labels=["food", "urgent"], assignees=["panda", "koala"],
        ))

        assert api.last_json() == {
            "repo": "bamboo",
            "title": "Leaves",
            "body": "More please",
            "labels": "food,urgent",
            "assignee": "panda",
            "collaborators": "koala",
        }

    def test_milestone_uses_number(self, gitee, api):
        api.add("GET", "/repos/panda/bamboo/milestones", body=[{"number": 12, "title": "Spring"}])
        api.add("POST", "/repos/panda/issues", status=201, body={})

        assert gitee.create_issue_ex("panda", "bamboo", IssueDraft(title="Plant", milestone="Spring"))
        assert api.last_json()["milestone"] == 12
        assert api.requests[0].url.params["state"] == "all"

    def test_close_patches_owner_path(self, gitee, api):
        api.add("PATCH", "/repos/panda/issues/4", body={})

        assert gitee.close_issue("panda", "bamboo", 4)
        assert api.last_json() == {"repo": "bamboo", "state": "closed"}

    def test_remove_assignee_not_assigned(self, gitee, api):
        api.add("GET", "/repos/panda/bamboo/issues/4", body={
            "number": 4, "title": "Leaves", "assignees": [{"login": "koala"}],
        })

        assert not gitee.remove_assignee_from_issue("panda", "bamboo", 4, "panda")
        assert gitee.last_failure() == FailureKind.INVALID_INPUT
        assert ("PATCH", "/repos/panda/issues/4") not in api.calls()

    def test_remove_assignee_clears_single_assignee(self, gitee, api):
        api.add("GET", "/repos/panda/bamboo/issues/4", body={
            "number": 4, "title": "Leaves", "assignees": [{"login": "panda"}],
        })
        api.add("PATCH", "/repos/panda/issues/4", body={})

        assert gitee.remove_assignee_from_issue("panda", "bamboo", 4, "panda")
        assert api.last_json() == {"repo": "bamboo", "assignee": ""}

    def test_assignees_come_from_collaborators(self, gitee, api):
        api.add("GET", "/repos/panda/bamboo/collaborators", body=[{"login": "panda"}, {"login": "koala"}])

        assert gitee.get_available_assignees("panda", "bamboo") == ["panda", "koala"]


def test_search_returns_bare_array(gitee, api):
    api.add("GET", "/search/repositories", body=[
        {"name": "bamboo", "full_name": "panda/bamboo", "html_url": "https://gitee.test/panda/bamboo"},
    ])

    page = gitee.search_repositories("bamboo", per_page=500)

    assert [repo.full_name for repo in page] == ["panda/bamboo"]
    assert page.items[0].clone_url == "https://gitee.test/panda/bamboo"
    assert api.last().url.params["per_page"] == "100"


class TestFiles:
    def test_create_file_posts(self, gitee, api):
        api.add("POST", "/repos/panda/bamboo/contents/a/b.txt", status=201, body={})

        assert gitee.create_file("panda", "bamboo", "a/b.txt", "text", "Add")
        assert base64.b64decode(api.last_json()["content"]).decode() == "text"

    def test_delete_file_uses_query_parameters(self, gitee, api):
        api.add("DELETE", "/repos/panda/bamboo/contents/a/b.txt", body={})

        assert gitee.delete_file("panda", "bamboo", "a/b.txt", "Remove", sha="beef")

        request = api.last()
        assert request.content == b""
        assert request.url.params["sha"] == "beef"
        assert request.url.params["message"] == "Remove"
        assert request.url.params["branch"] == "main"

    def test_delete_requires_sha(self, gitee, api):
        assert not gitee.delete_file("panda", "bamboo", "a/b.txt", "Remove", sha="")
        assert gitee.last_failure() == FailureKind.INVALID_INPUT
        assert api.requests == []


def test_search_users_returns_bare_array(gitee, api):
    api.add("GET", "/search/users", body=[{"login": "panda", "id": 3}])

    page = gitee.search_users("pan")

    assert [user.login for user in page] == ["panda"]
    assert api.last().url.params["q"] == "pan"


class TestWebhooks:
    def test_create_sends_event_flags(self, gitee, api):
        api.add("POST", "/repos/panda/bamboo/hooks", status=201, body={"id": 9})

        assert gitee.create_webhook("panda", "bamboo", "https://ci.test/hook", ["push", "pull_request"])

        body = api.last_json()
        assert body["url"] == "https://ci.test/hook"
        assert body["push_events"] is True
        assert body["merge_requests_events"] is True
        assert body["issues_events"] is False

    def test_unknown_event_is_rejected_without_network(self, gitee, api):
        assert not gitee.create_webhook("panda", "bamboo", "https://ci.test/hook", ["deployment"])
        assert gitee.last_failure() == FailureKind.INVALID_INPUT
        assert "deployment" in gitee.last_error()
        assert api.requests == []

    def test_listing_reads_flags(self, gitee, api):
        api.add("GET", "/repos/panda/bamboo/hooks", body=[
            {"id": 9, "url": "https://ci.test/hook", "push_events": True, "note_events": True},
        ])

        hook = gitee.list_webhooks("panda", "bamboo").items[0]

        assert hook.id == 9
        assert hook.events == ["push", "note"]
        assert hook.active
