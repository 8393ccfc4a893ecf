"""Tests for Settings validation."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from outlook_node.auth import TokenProvider
from outlook_node.config import Settings, split_list


def build(**env):
    return Settings(_env_file=None, **env)


def test_split_list_handles_both_delimiters():
    assert split_list("Mail.Read; Mail.Send,,", coerce_lower=False) == ["Mail.Read", "Mail.Send"]


def test_access_token_mode_requires_token():
    with pytest.raises(ValidationError, match="GRAPH_ACCESS_TOKEN"):
        build(GRAPH_AUTH_MODE="access_token", GRAPH_ACCESS_TOKEN="  ")


def test_client_credentials_requires_secret_and_mailbox():
    with pytest.raises(ValidationError, match="GRAPH_CLIENT_SECRET"):
        build(GRAPH_AUTH_MODE="client_credentials", GRAPH_CLIENT_ID="app", GRAPH_MAILBOX="ops@example.com")
    with pytest.raises(ValidationError, match="GRAPH_MAILBOX"):
        build(GRAPH_AUTH_MODE="client_credentials", GRAPH_CLIENT_ID="app", GRAPH_CLIENT_SECRET="s")


def test_device_code_requires_client_id():
    with pytest.raises(ValidationError, match="GRAPH_CLIENT_ID"):
        build(GRAPH_AUTH_MODE="device_code")


def test_defaults_and_derived_values():
    settings = build(
        GRAPH_AUTH_MODE="access_token",
        GRAPH_ACCESS_TOKEN="t",
        GRAPH_TENANT_ID="contoso",
        GRAPH_BASE_URL="https://graph.microsoft.com/beta/",
    )

    assert settings.graph_base_url == "https://graph.microsoft.com/beta"
    assert settings.authority_url == "https://login.microsoftonline.com/contoso"
    assert settings.graph_page_size == 100
    assert settings.graph_scopes == ["Mail.ReadWrite", "Mail.Send"]
    assert settings.continue_on_fail is False


def test_page_size_must_be_positive():
    with pytest.raises(ValidationError):
        build(GRAPH_AUTH_MODE="access_token", GRAPH_ACCESS_TOKEN="t", GRAPH_PAGE_SIZE=0)


def test_static_token_provider(tmp_path: Path):
    settings = build(
        GRAPH_AUTH_MODE="access_token",
        GRAPH_ACCESS_TOKEN="abc",
        GRAPH_TOKEN_CACHE=str(tmp_path / "cache.bin"),
    )

    assert TokenProvider(settings)() == "abc"
