"""Tests for the JSON configuration store."""

import os
import platform

import pytest

from utils.storage import ConfigStore


def test_missing_file_reads_as_empty(config_store):
    assert config_store.get("github", "token") is None
    assert config_store.get_token("github") == ""
    assert config_store.get_active_provider() is None


def test_token_round_trip(config_store):
    config_store.save_token("gitlab", "glpat-abcdefghijklmnop")

    assert config_store.get_token("gitlab") == "glpat-abcdefghijklmnop"
    assert config_store.get_token("github") == ""

    config_store.clear_token("gitlab")
    assert config_store.get_token("gitlab") == ""


def test_update_and_active_provider(config_store):
    config_store.update("github", client_id="id", client_secret="secret", oauth_enabled=True)
    config_store.set_active_provider("github")

    assert config_store.get("github", "client_id") == "id"
    assert config_store.get("github", "oauth_enabled") is True
    assert config_store.get_active_provider() == "github"

    config_store.set_active_provider(None)
    assert config_store.get_active_provider() is None


def test_unknown_keys_are_rejected(config_store):
    with pytest.raises(KeyError):
        config_store.set("github", "password", "x")
    with pytest.raises(KeyError):
        config_store.update("github", token="t", colour="blue")
    assert config_store.get_token("github") == ""


def test_status_hides_secrets(config_store):
    config_store.update("github", token="ghp_secret", client_secret="shh", default_repo="octo/hello")

    status = config_store.get_status("github")

    assert status["has_token"] is True
    assert status["has_client_secret"] is True
    assert status["default_repo"] == "octo/hello"
    assert "token" not in status
    assert "client_secret" not in status
    assert "ghp_secret" not in repr(status)


def test_remove_missing_key_is_noop(config_store):
    config_store.remove("github", "default_repo")

    assert not config_store.config_file.exists()


def test_unreadable_file_is_ignored(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")

    assert ConfigStore(str(path)).get_token("github") == ""


@pytest.mark.skipif(platform.system() == "Windows", reason="POSIX permissions")
def test_file_permissions(config_store):
    config_store.save_token("github", "ghp_secret")

    assert os.stat(config_store.config_file).st_mode & 0o777 == 0o600
    assert os.stat(config_store.config_file.parent).st_mode & 0o777 == 0o700


def test_shared_file_between_instances(config_store):
    config_store.save_token("gitee", "0123456789abcdef0123456789abcdef")

    other = ConfigStore(str(config_store.config_file))

    assert other.get_token("gitee") == "0123456789abcdef0123456789abcdef"
