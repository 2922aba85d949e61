"""Tests for the CLI authentication handlers."""

import io

import pytest
from rich.console import Console

from cli import auth_handlers
from cli.status_display import get_auth_status
from providers.session import CurrentProvider, ProviderType


@pytest.fixture
def console():
    return Console(file=io.StringIO(), force_terminal=False, width=100)


def output(console):
    return console.file.getvalue()


def test_ssid_has_prefix_and_suffix():
    ssid = auth_handlers.make_ssid("GitPortal")

    assert ssid.startswith("GitPortal-")
    assert len(ssid) == len("GitPortal-") + 4


def test_accepted_token_is_saved(config_store, console):
    current = CurrentProvider()

    assert auth_handlers.authenticate_with_token(current, config_store, ProviderType.DEMO, "demo_abc", console)

    assert current.is_authenticated()
    assert config_store.get_token("demo") == "demo_abc"
    assert config_store.get_active_provider() == "demo"
    assert "demo_abc" not in output(console)
    assert get_auth_status(current)[0] == "AUTHENTICATED"


def test_rejected_token_is_not_saved(config_store, console):
    current = CurrentProvider()

    assert not auth_handlers.authenticate_with_token(current, config_store, ProviderType.DEMO, "nope_abc", console)

    assert config_store.get_token("demo") == ""
    assert "Authentication failed" in output(console)
    assert get_auth_status(current)[0] == "FAILED"


def test_restore_session(config_store, console):
    config_store.save_token("demo", "demo_saved")
    config_store.set_active_provider("demo")
    current = CurrentProvider()

    assert auth_handlers.restore_session(current, config_store, console)
    assert current.provider_type == ProviderType.DEMO


def test_restore_ignores_unknown_provider(config_store, console):
    config_store.set_active_provider("bitbucket")
    current = CurrentProvider()

    assert not auth_handlers.restore_session(current, config_store, console)
    assert get_auth_status(current)[0] == "NO PROVIDER"


def test_finish_portal_reports_timeout(config_store, console):
    result = auth_handlers.WaitResult(timed_out=True)

    assert not auth_handlers._finish_portal(result, CurrentProvider(), config_store, ProviderType.DEMO, console)
    assert "Timed out" in output(console)
