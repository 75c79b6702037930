"""Tests for policy-governed name and config handling of models and embeddings."""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from issue_db.api import IssueAPI
from issue_db.embeddings import Embedding
from issue_db.errors import RemoteError
from issue_db.models import Model
from issue_db.policies import ConfigHandlingPolicy
from tests.fakes import FakeServer, request_json

NO_FETCH = ConfigHandlingPolicy.READ_LOCAL_WRITE_NO_FETCH
WITH_FETCH = ConfigHandlingPolicy.READ_FETCH_WRITE_WITH_FETCH
LOCAL_READ_FETCH_WRITE = ConfigHandlingPolicy.READ_LOCAL_WRITE_WITH_FETCH

REMOTE_CONFIG: dict[str, Any] = {"classifier": "LinearSVM", "epochs": 10}


@pytest.fixture(autouse=True)
def model_routes(server: FakeServer) -> None:
    """Serve model m-1, whose remote name differs from the local one."""
    server.route(
        "GET",
        "/models/m-1",
        {"model_id": "m-1", "model_name": "remote-name", "model_config": REMOTE_CONFIG},
    )
    server.route("POST", "/models/m-1", None)


def _model(api: IssueAPI, policy: ConfigHandlingPolicy, config: Any = None) -> Model:
    return Model(api, "m-1", "local-name", config, policy)


def _fail(status: int):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, text="boom")

    return handler


class TestPolicies:
    """Test the policy behaviour table."""

    @pytest.mark.parametrize(
        ("policy", "reads_local", "fetches_before_write"),
        [
            (NO_FETCH, True, False),
            (WITH_FETCH, False, True),
            (LOCAL_READ_FETCH_WRITE, True, True),
        ],
    )
    def test_behaviour(
        self, policy: ConfigHandlingPolicy, reads_local: bool, fetches_before_write: bool
    ) -> None:
        """Test that every policy is handled explicitly."""
        assert policy.reads_local is reads_local
        assert policy.fetches_before_write is fetches_before_write


class TestReadContract:
    """Test how config and name reads reach the server."""

    def test_with_fetch_never_serves_from_cache(self, server: FakeServer, api: IssueAPI) -> None:
        """Test that every read round-trips under the fetching policy."""
        model = _model(api, WITH_FETCH, config={"stale": True})
        assert model.config() == REMOTE_CONFIG
        assert model.config() == REMOTE_CONFIG
        assert len(server.calls("GET", "/models/m-1")) == 2

    def test_no_fetch_reuses_first_fetch(self, server: FakeServer, api: IssueAPI) -> None:
        """Test that the second read is answered locally."""
        model = _model(api, NO_FETCH)
        assert model.config() == REMOTE_CONFIG
        assert model.config() == REMOTE_CONFIG
        assert len(server.calls("GET", "/models/m-1")) == 1

    def test_known_config_needs_no_fetch(self, server: FakeServer, api: IssueAPI) -> None:
        """Test that a config given at construction is used as is."""
        model = _model(api, NO_FETCH, config={"classifier": "Bert"})
        assert model.config() == {"classifier": "Bert"}
        assert server.calls("GET", "/models/m-1") == []

    def test_returned_config_is_a_copy(self, server: FakeServer, api: IssueAPI) -> None:
        """Test that mutating a returned config leaves the cache intact."""
        model = _model(api, NO_FETCH)
        model.config()["epochs"] = 99
        assert model.config() == REMOTE_CONFIG

    def test_nested_config_is_isolated(self, server: FakeServer, api: IssueAPI) -> None:
        """Test that nested values of the cache cannot be changed by callers."""
        given = {"outer": {"x": 1}}
        model = _model(api, NO_FETCH, config=given)
        given["outer"]["x"] = 2
        model.config()["outer"]["x"] = 999

        assert model.config() == {"outer": {"x": 1}}

    def test_nested_config_written_is_isolated(
        self, server: FakeServer, api: IssueAPI
    ) -> None:
        """Test that changing a written config afterwards leaves the cache intact."""
        model = _model(api, NO_FETCH, config={})
        new_config = {"layers": [64, 32]}
        model.update_config(new_config)
        new_config["layers"].append(16)

        assert model.config() == {"layers": [64, 32]}

    def test_name_follows_policy(self, server: FakeServer, api: IssueAPI) -> None:
        """Test local and fetched name reads."""
        assert _model(api, NO_FETCH).name() == "local-name"
        assert server.calls("GET", "/models/m-1") == []
        assert _model(api, WITH_FETCH).name() == "remote-name"
        assert len(server.calls("GET", "/models/m-1")) == 1


class TestWriteContract:
    """Test what a write sends and how it updates local state."""

    def test_no_fetch_sends_local_name(self, server: FakeServer, api: IssueAPI) -> None:
        """Test that the companion field comes from the local cache."""
        model = _model(api, NO_FETCH)
        model.update_config({"classifier": "Bert"})

        assert server.calls("GET", "/models/m-1") == []
        assert request_json(server.calls("POST", "/models/m-1")[0]) == {
            "model_name": "local-name",
            "model_config": {"classifier": "Bert"},
        }
        assert model.config() == {"classifier": "Bert"}
        assert server.calls("GET", "/models/m-1") == []

    def test_with_fetch_sends_remote_name(self, server: FakeServer, api: IssueAPI) -> None:
        """Test that the companion field is fetched right before writing."""
        model = _model(api, WITH_FETCH)
        model.update_config({"classifier": "Bert"})

        assert len(server.calls("GET", "/models/m-1")) == 1
        assert request_json(server.calls("POST", "/models/m-1")[0]) == {
            "model_name": "remote-name",
            "model_config": {"classifier": "Bert"},
        }

    def test_update_name_fetches_unknown_config_once(
        self, server: FakeServer, api: IssueAPI
    ) -> None:
        """Test renaming without a cached config under the no-fetch policy."""
        model = _model(api, NO_FETCH)
        model.update_name("renamed")
        model.update_name("renamed again")

        assert len(server.calls("GET", "/models/m-1")) == 1
        posts = server.calls("POST", "/models/m-1")
        assert [request_json(p)["model_name"] for p in posts] == ["renamed", "renamed again"]
        assert all(request_json(p)["model_config"] == REMOTE_CONFIG for p in posts)
        assert model.name() == "renamed again"

    def test_update_name_with_fetch_uses_fresh_config(
        self, server: FakeServer, api: IssueAPI
    ) -> None:
        """Test that a stale local config is never written back."""
        model = _model(api, LOCAL_READ_FETCH_WRITE, config={"stale": True})
        model.update_name("renamed")

        post = request_json(server.calls("POST", "/models/m-1")[0])
        assert post == {"model_name": "renamed", "model_config": REMOTE_CONFIG}
        assert model.config() == REMOTE_CONFIG
        assert model.name() == "renamed"

    def test_failed_pre_write_fetch_aborts_write(
        self, server: FakeServer, api: IssueAPI
    ) -> None:
        """Test that nothing is written when the companion fetch fails."""
        server.route("GET", "/models/m-1", handler=_fail(500))
        model = _model(api, LOCAL_READ_FETCH_WRITE, config={"classifier": "Old"})

        with pytest.raises(RemoteError):
            model.update_config({"classifier": "New"})

        assert server.calls("POST", "/models/m-1") == []
        assert model.config() == {"classifier": "Old"}
        assert model.name() == "local-name"

    def test_failed_write_keeps_local_cache(self, server: FakeServer, api: IssueAPI) -> None:
        """Test that the cache is only updated after a successful write."""
        server.route("POST", "/models/m-1", handler=_fail(503))
        model = _model(api, NO_FETCH, config={"classifier": "Old"})

        with pytest.raises(RemoteError) as exc_info:
            model.update_config({"classifier": "New"})
        with pytest.raises(RemoteError):
            model.update_name("new-name")

        assert exc_info.value.retryable is True
        assert model.config() == {"classifier": "Old"}
        assert model.name() == "local-name"


class TestEmbeddingPolicies:
    """Test that embeddings share the policy handling."""

    @pytest.fixture(autouse=True)
    def _routes(self, server: FakeServer) -> None:
        server.route(
            "GET",
            "/embeddings/e-1",
            {"id": "e-1", "name": "remote", "config": {"dim": 300}, "has_file": True},
        )
        server.route("POST", "/embeddings/e-1", None)

    def test_with_fetch_update(self, server: FakeServer, api: IssueAPI) -> None:
        """Test that the remote name is sent along with a new config."""
        embedding = Embedding(api, "e-1", "local", None, WITH_FETCH)
        embedding.update_config({"dim": 100})

        assert request_json(server.calls("POST", "/embeddings/e-1")[0]) == {
            "name": "remote",
            "config": {"dim": 100},
        }
        assert embedding.has_binary is True

    def test_no_fetch_read(self, server: FakeServer, api: IssueAPI) -> None:
        """Test that embedding configs are cached under the no-fetch policy."""
        embedding = Embedding(api, "e-1", "local", None, NO_FETCH)
        assert embedding.config() == {"dim": 300}
        assert embedding.config() == {"dim": 300}
        assert len(server.calls("GET", "/embeddings/e-1")) == 1
