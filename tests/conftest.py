"""Shared fixtures for the Outlook node tests."""

import json
from unittest.mock import Mock

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from outlook_node.config import Settings
from outlook_node.graph_client import GraphClient


def make_response(status_code=200, json_data=None, content=None, headers=None, url="https://graph.test"):
    """Build a real ``requests.Response`` carrying a canned body."""
    response = requests.Response()
    response.status_code = status_code
    response.url = url
    response.headers = CaseInsensitiveDict(headers or {})
    if json_data is not None:
        response._content = json.dumps(json_data).encode("utf-8")
        response.headers.setdefault("Content-Type", "application/json")
    else:
        response._content = content if content is not None else b""
    return response


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        GRAPH_AUTH_MODE="access_token",
        GRAPH_ACCESS_TOKEN="test-token",
        GRAPH_MAILBOX="",
        GRAPH_PAGE_SIZE=100,
    )


@pytest.fixture
def session():
    return Mock(spec=requests.Session)


@pytest.fixture
def graph_client(settings, session):
    return GraphClient(settings, token_provider=lambda: "test-token", session=session)


@pytest.fixture
def mock_client():
    """A GraphClient double for dispatcher and transfer tests."""
    client = Mock(spec=GraphClient)
    client.request.return_value = {}
    client.request_all_items.return_value = []
    client.upload_chunk.return_value = {}
    return client
