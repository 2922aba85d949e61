"""Tests for the manual-token captive portal routes."""

import pytest
from fastapi.testclient import TestClient

from portal.detection import DETECTION_PATHS
from portal.token_portal import TokenPortal

GOOD_TOKEN = "ghp_" + "a" * 36


@pytest.fixture
def portal(access_point):
    return TokenPortal("github", "GitHub", access_point)


@pytest.fixture
def client(portal):
    return TestClient(portal.create_app())


def test_form_is_served(client):
    response = client.get("/")

    assert response.status_code == 200
    assert "GitHub" in response.text
    assert "name='token'" in response.text


@pytest.mark.parametrize("path", DETECTION_PATHS)
def test_detection_urls_redirect_to_root(client, path):
    response = client.get(path, follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == "/"


def test_unknown_path_redirects_to_root(client):
    response = client.get("/some/where/else", follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == "/"


def test_bad_token_is_rejected(client, portal):
    response = client.post("/setup", data={"token": "nope"})

    assert response.status_code == 400
    assert "too short" in response.text
    assert portal.channel.poll() is None
    assert not portal.session.token_received


@pytest.mark.parametrize("path", ["/setup", "/submit-token"])
def test_good_token_is_published_not_saved(client, portal, config_store, path):
    response = client.post(path, data={"token": f"  {GOOD_TOKEN} "}, follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == "/success"
    # Saved only after the menu has checked it against the provider
    assert config_store.get_token("github") == ""
    outcome = portal.channel.poll()
    assert outcome.token == GOOD_TOKEN
    assert outcome.provider == "github"
    assert portal.session.token_received


def test_status(client, portal):
    assert client.get("/status").json() == {"active": False, "tokenSet": False}

    client.post("/setup", data={"token": GOOD_TOKEN})

    assert client.get("/status").json()["tokenSet"] is True


def test_stop_clears_pending_token(portal, access_point):
    access_point.start("x")
    portal.accept_token(GOOD_TOKEN)

    portal.stop()

    assert portal.channel.poll() is None
    assert not portal.session.token_received
    assert not access_point.is_active


def test_stop_twice(portal, access_point, radio):
    access_point.start("x")
    portal.accept_token(GOOD_TOKEN)

    portal.stop()
    portal.stop()

    assert not portal.is_active
    assert not access_point.is_active
    assert portal.channel.poll() is None
    assert radio.stops >= 1
