"""Tests for the OAuth Authorization Code flow and its portal routes."""

from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from fastapi.testclient import TestClient

from oauth.backends import (
    SIMULATED_AUTHORIZE_PATH,
    ExchangeResult,
    HttpOAuthBackend,
    OAuthBackend,
    SimulatedOAuthBackend,
    create_backend,
)
from oauth.constants import GITHUB_OAUTH, OAuthEndpoints
from oauth.flow import (
    ALREADY_AUTHENTICATED,
    FlowState,
    OAuthFlow,
    OAuthPortal,
    create_oauth_app,
    default_redirect_uri,
)
from portal.outcome import OutcomeChannel
from providers.github_provider import GitHubProvider
from providers.session import ProviderType
from settings import OAUTH_CALLBACK_PATH
from tests.conftest import API_BASE


class RecordingBackend(OAuthBackend):
    """Exchange backend that records calls and returns a fixed result"""

    def __init__(self, result: ExchangeResult):
        super().__init__(GITHUB_OAUTH)
        self.result = result
        self.calls = []

    def exchange_code(self, code, client_id, client_secret, redirect_uri):
        self.calls.append((code, client_id, client_secret, redirect_uri))
        return self.result


@pytest.fixture
def backend():
    return RecordingBackend(ExchangeResult(access_token="gho_issued"))


@pytest.fixture
def flow(api, backend, config_store):
    api.add("GET", "/user", body={"login": "octo"})

    def factory(provider_type, api_base_url):
        return GitHubProvider(api_base_url=API_BASE, transport=api.transport)

    flow = OAuthFlow(ProviderType.GITHUB, backend, config_store, OutcomeChannel(), provider_factory=factory)
    flow.start("client-id", "client-secret", default_redirect_uri("192.168.4.1"))
    return flow


def state_of(url: str) -> str:
    return parse_qs(urlparse(url).query)["state"][0]


class TestFlow:
    def test_start_and_stop(self, flow):
        assert flow.is_active
        assert flow.state == FlowState.ACTIVE

        flow.stop()

        assert not flow.is_active
        assert flow.state == FlowState.IDLE
        assert flow.authorize_url() is None

    def test_authorize_url_carries_new_nonce(self, flow):
        url = flow.authorize_url()
        query = parse_qs(urlparse(url).query)

        assert url.startswith(GITHUB_OAUTH.authorize_url)
        assert query["client_id"] == ["client-id"]
        assert query["redirect_uri"] == [f"http://192.168.4.1{OAUTH_CALLBACK_PATH}"]
        assert query["state"] == [flow.current_nonce]
        assert flow.state == FlowState.AWAITING_CALLBACK

    def test_successful_callback(self, flow, backend, config_store):
        state = state_of(flow.authorize_url())

        assert flow.handle_callback("the-code", state) is None

        assert backend.calls == [
            ("the-code", "client-id", "client-secret", f"http://192.168.4.1{OAUTH_CALLBACK_PATH}"),
        ]
        assert flow.state == FlowState.AUTHENTICATED
        assert config_store.get_token("github") == "gho_issued"
        assert config_store.get("github", "oauth_enabled") is True
        assert config_store.get_active_provider() == "github"
        outcome = flow.channel.poll()
        assert outcome.token == "gho_issued"
        assert flow.status() == {"active": True, "hasToken": True, "state": "authenticated"}

    def test_state_mismatch_never_reaches_the_network(self, flow, backend, api):
        flow.authorize_url()
        api.requests.clear()

        assert flow.handle_callback("the-code", "forged") == "invalid_state"

        assert backend.calls == []
        assert api.requests == []
        assert flow.channel.poll().error == "invalid_state"
        assert flow.is_active

    def test_new_start_invalidates_old_nonce(self, flow, backend):
        first = state_of(flow.authorize_url())
        second = state_of(flow.authorize_url())

        assert first != second
        assert flow.handle_callback("the-code", first) == "invalid_state"
        assert flow.handle_callback("the-code", second) is None

    def test_nonce_is_single_use(self, flow, backend):
        state = state_of(flow.authorize_url())
        assert flow.handle_callback("the-code", state) is None

        # A second sign-in attempt on the same flow
        flow.authorize_url()

        assert flow.handle_callback("the-code", state) == "invalid_state"
        assert len(backend.calls) == 1

    def test_replayed_callback_keeps_success(self, flow, backend, config_store):
        state = state_of(flow.authorize_url())
        assert flow.handle_callback("the-code", state) is None

        assert flow.handle_callback("the-code", state) == ALREADY_AUTHENTICATED
        assert flow.handle_callback("other", "forged") == ALREADY_AUTHENTICATED

        assert len(backend.calls) == 1
        assert flow.state == FlowState.AUTHENTICATED
        assert config_store.get_token("github") == "gho_issued"
        assert flow.channel.poll().token == "gho_issued"
        assert flow.channel.poll() is None

    @pytest.mark.parametrize("code,state,error,reason", [
        ("c", "s", "access_denied", "access_denied"),
        (None, "s", None, "no_code"),
        ("c", None, None, "invalid_state"),
    ])
    def test_rejected_callbacks(self, flow, backend, code, state, error, reason):
        flow.authorize_url()

        assert flow.handle_callback(code, state, error) == reason
        assert backend.calls == []
        assert flow.channel.poll().error == reason

    def test_inactive_flow(self, flow, backend):
        flow.stop()

        assert flow.handle_callback("c", "s") == "flow_inactive"
        assert backend.calls == []
        assert flow.channel.poll() is None

    def test_stop_during_token_check_persists_nothing(self, api, backend, config_store):
        channel = OutcomeChannel()
        flows = []

        class StoppingProvider(GitHubProvider):
            def begin(self, token=""):
                accepted = super().begin(token)
                flows[0].stop()
                return accepted

        def factory(provider_type, api_base_url):
            return StoppingProvider(api_base_url=API_BASE, transport=api.transport)

        api.add("GET", "/user", body={"login": "octo"})
        flow = OAuthFlow(ProviderType.GITHUB, backend, config_store, channel, provider_factory=factory)
        flows.append(flow)
        flow.start("client-id", "client-secret")
        state = state_of(flow.authorize_url())

        assert flow.handle_callback("the-code", state) == "flow_inactive"

        assert config_store.get_token("github") == ""
        assert config_store.get_active_provider() != "github"
        assert channel.poll() is None
        assert flow.state == FlowState.IDLE
        assert not flow.status()["hasToken"]

    def test_restart_during_exchange_drops_old_callback(self, flow, backend, config_store):
        class RestartingBackend(RecordingBackend):
            def exchange_code(self, code, client_id, client_secret, redirect_uri):
                flow.stop()
                flow.start("client-id", "client-secret")
                return super().exchange_code(code, client_id, client_secret, redirect_uri)

        flow.backend = RestartingBackend(ExchangeResult(access_token="gho_issued"))
        state = state_of(flow.authorize_url())

        assert flow.handle_callback("the-code", state) == "flow_inactive"

        assert config_store.get_token("github") == ""
        assert flow.channel.poll() is None
        assert flow.state == FlowState.ACTIVE

    def test_exchange_failure(self, flow, backend, config_store):
        backend.result = ExchangeResult(error="no_token", detail="empty")
        state = state_of(flow.authorize_url())

        assert flow.handle_callback("c", state) == "no_token"
        assert flow.state == FlowState.FAILED
        assert config_store.get_token("github") == ""

    def test_rejected_token_is_not_persisted(self, flow, api, config_store):
        api.add("GET", "/user", status=401, body={"message": "Bad credentials"})
        state = state_of(flow.authorize_url())

        assert flow.handle_callback("c", state) == "token_validation_failed"
        assert config_store.get_token("github") == ""
        assert flow.channel.poll().error == "token_validation_failed"

    def test_stop_discards_secrets(self, flow):
        flow.authorize_url()
        session = flow._session

        flow.stop()

        assert session.state_nonce == ""
        assert session.client_secret == ""
        assert session.temp_token == ""


class TestRoutes:
    @pytest.fixture
    def client(self, flow):
        return TestClient(create_oauth_app(flow))

    def test_start_redirects_to_provider(self, client, flow):
        response = client.get("/start", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"].startswith(GITHUB_OAUTH.authorize_url)
        assert state_of(response.headers["location"]) == flow.current_nonce

    def test_start_without_flow(self, client, flow):
        flow.stop()

        response = client.get("/start", follow_redirects=False)

        assert response.headers["location"] == "/error?error=flow_inactive"

    def test_callback_success(self, client):
        state = state_of(client.get("/start", follow_redirects=False).headers["location"])

        response = client.get(OAUTH_CALLBACK_PATH, params={"code": "c", "state": state}, follow_redirects=False)

        assert response.headers["location"] == "/success"
        assert client.get("/status").json()["hasToken"] is True

    def test_callback_error_page(self, client):
        client.get("/start", follow_redirects=False)

        response = client.get(OAUTH_CALLBACK_PATH, params={"code": "c", "state": "forged"})

        assert response.status_code == 200
        assert "did not match" in response.text

    def test_replayed_callback_shows_success(self, client, flow):
        state = state_of(client.get("/start", follow_redirects=False).headers["location"])
        params = {"code": "c", "state": state}
        client.get(OAUTH_CALLBACK_PATH, params=params, follow_redirects=False)

        replay = client.get(OAUTH_CALLBACK_PATH, params=params, follow_redirects=False)

        assert replay.headers["location"] == "/success"
        assert flow.channel.poll().token == "gho_issued"
        assert client.get("/status").json()["state"] == "authenticated"

    def test_provider_error_is_url_encoded(self, client):
        client.get("/start", follow_redirects=False)

        response = client.get(
            OAUTH_CALLBACK_PATH, params={"error": "bad&next=/evil"}, follow_redirects=False,
        )

        location = urlparse(response.headers["location"])
        assert location.path == "/error"
        assert parse_qs(location.query) == {"error": ["bad&next=/evil"]}

    def test_index_mentions_provider(self, client):
        assert "GitHub" in client.get("/").text


class TestSimulatedFlow:
    @pytest.fixture
    def portal(self, access_point, config_store):
        flow = OAuthFlow(
            ProviderType.DEMO, SimulatedOAuthBackend(access_point.address), config_store, OutcomeChannel(),
        )
        portal = OAuthPortal(flow, access_point)
        portal.flow.start("simulated", "simulated", default_redirect_uri(access_point.address))
        return portal

    def follow(self, client, location, **params):
        parsed = urlparse(location)
        query = {k: v[0] for k, v in parse_qs(parsed.query).items()}
        query.update(params)
        return client.get(parsed.path, params=query, follow_redirects=False)

    def test_approve(self, portal, config_store):
        client = TestClient(portal.create_app())

        start = client.get("/start", follow_redirects=False)
        assert urlparse(start.headers["location"]).path == SIMULATED_AUTHORIZE_PATH

        consent = self.follow(client, start.headers["location"])
        assert consent.status_code == 200

        approved = self.follow(client, start.headers["location"], approve="1")
        callback = self.follow(client, approved.headers["location"])

        assert callback.headers["location"] == "/success"
        token = config_store.get_token("demo")
        assert token.startswith("demo_")
        assert portal.channel.poll().token == token

    def test_deny(self, portal):
        client = TestClient(portal.create_app())
        start = client.get("/start", follow_redirects=False)

        denied = self.follow(client, start.headers["location"], approve="0")
        callback = self.follow(client, denied.headers["location"])

        assert callback.headers["location"] == "/error?error=access_denied"
        assert portal.channel.poll().error == "access_denied"

    def test_foreign_redirect_uri_is_refused(self, portal):
        client = TestClient(portal.create_app())
        start = client.get("/start", follow_redirects=False)

        response = self.follow(
            client, start.headers["location"], redirect_uri="https://evil.test/steal", approve="1",
        )

        assert response.status_code == 400
        assert "location" not in response.headers
        assert "did not come from this device" in response.text

    def test_stop_twice(self, portal, access_point):
        access_point.start("x")
        portal.flow.authorize_url()

        portal.stop()
        portal.stop()

        assert not portal.is_active
        assert not portal.flow.is_active
        assert portal.flow.state == FlowState.IDLE
        assert portal.channel.poll() is None

    def test_codes_are_single_use(self):
        backend = SimulatedOAuthBackend()
        code = backend.issue_code()

        assert backend.exchange_code(code, "", "", "").access_token.startswith("demo_")
        assert backend.exchange_code(code, "", "", "").error == "exchange_failed"


class TestHttpBackend:
    def make(self, handler):
        return HttpOAuthBackend(GITHUB_OAUTH, transport=httpx.MockTransport(handler))

    def test_exchange_posts_form(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"access_token": "gho_new", "token_type": "bearer"})

        result = self.make(handler).exchange_code("c", "id", "secret", "http://192.168.4.1/callback")

        assert result.access_token == "gho_new"
        assert seen[0].url == GITHUB_OAUTH.token_url
        form = parse_qs(seen[0].content.decode())
        assert form["grant_type"] == ["authorization_code"]
        assert form["client_secret"] == ["secret"]
        assert seen[0].headers["Accept"] == "application/json"

    @pytest.mark.parametrize("response,reason", [
        (httpx.Response(400, json={"error": "bad"}), "exchange_failed"),
        (httpx.Response(200, json={"error": "bad_verification_code"}), "exchange_failed"),
        (httpx.Response(200, text="not json"), "exchange_failed"),
        (httpx.Response(200, json={"token_type": "bearer"}), "no_token"),
    ])
    def test_failures(self, response, reason):
        result = self.make(lambda request: response).exchange_code("c", "id", "secret", "uri")

        assert result.error == reason
        assert result.access_token == ""

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("down")

        assert self.make(handler).exchange_code("c", "id", "s", "uri").error == "exchange_failed"

    def test_token_endpoint_must_be_https(self):
        with pytest.raises(ValueError):
            HttpOAuthBackend(OAuthEndpoints("http://x/authorize", "http://x/token", "api"))


def test_create_backend():
    assert isinstance(create_backend("github", simulated=False), HttpOAuthBackend)
    assert isinstance(create_backend("github", simulated=True), SimulatedOAuthBackend)
    with pytest.raises(ValueError):
        create_backend("demo", simulated=False)
