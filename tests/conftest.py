"""Shared fixtures for the client test suite."""

from __future__ import annotations

from typing import Any

import pytest

from issue_db.api import IssueAPI
from tests.fakes import BASE_URL, FakeServer


@pytest.fixture
def server() -> FakeServer:
    """Provide an empty fake server."""
    return FakeServer()


@pytest.fixture
def api(server: FakeServer):
    """Provide an authenticated client talking to the fake server."""
    client = IssueAPI(BASE_URL, token="test-token", transport=server.transport)
    yield client
    client.close()


@pytest.fixture
def read_only_api(server: FakeServer):
    """Provide a client without a token."""
    client = IssueAPI(BASE_URL, transport=server.transport)
    yield client
    client.close()


@pytest.fixture
def issue_payload() -> dict[str, Any]:
    """A full issue payload as the server stores it."""
    return {
        "key": "HADOOP-1",
        "summary": "Replace the block scanner",
        "description": "The block scanner should be rewritten.",
        "comments": [{"body": "Agreed."}, {"body": "Done in trunk."}],
        "status": {"name": "Resolved"},
        "priority": {"name": "Major"},
        "resolution": None,
        "issuetype": {"name": "Improvement"},
        "issuelinks": ["i-7"],
        "parent": None,
        "subtasks": ["i-2", "i-3"],
        "watches": {"watchCount": 4},
        "votes": {"votes": 2},
        "created": "2020-01-01T10:00:00",
        "updated": "2020-02-01T10:00:00",
        "resolutiondate": None,
        "labels": ["storage"],
        "components": [{"name": "hdfs"}],
        "versions": [{"name": "3.0.0"}],
        "fixVersions": [{"name": "3.1.0"}],
    }
