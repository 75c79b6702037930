"""Low-level HTTP client for the issue database REST API.

``IssueAPI`` owns the HTTP session and the bearer token, and exposes each
endpoint as a method returning parsed data. It performs no caching; the entity
handles built on top of it decide when a call is needed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from issue_db.errors import APIError, AuthenticationError, ProtocolViolationError, RemoteError
from issue_db.policies import IssueAttribute
from issue_db.schemas import (
    EmbeddingInfo,
    EmbeddingsResponse,
    IssueDataResponse,
    IssueIdMappingResponse,
    IssueIdResponse,
    IssueIdsResponse,
    IssueTagsResponse,
    Label,
    LabelingCommentsResponse,
    ManualLabelsResponse,
    ModelConfig,
    ModelInfo,
    ModelsResponse,
    NewCommentResponse,
    NewModelResponse,
    NewPerformanceResponse,
    NewVersionResponse,
    PerformanceData,
    PerformanceInfo,
    PerformancesResponse,
    PredictionsResponse,
    ProjectsResponse,
    RawIssueData,
    RawLabelingComment,
    ReposResponse,
    TagInfo,
    TagInfoResponse,
    TagListResponse,
    VersionInfo,
    VersionsResponse,
)

logger = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)

_AUTHENTICATED_METHODS = frozenset({"POST", "PATCH", "PUT", "DELETE"})
_RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})
_STRING_ADAPTER = TypeAdapter(str)


class IssueAPI:
    """Client for the issue database REST API."""

    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        url: str,
        *,
        token: str | None = None,
        allow_self_signed_certs: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Initialize a client without logging in.

        Args:
            url: Base URL of the server.
            token: Bearer token for write endpoints, if already known.
            allow_self_signed_certs: Skip TLS certificate verification.
            timeout: Request timeout in seconds.
            transport: Custom httpx transport, used by tests.
        """
        self.url = url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._client = httpx.Client(
            base_url=self.url + "/",
            timeout=timeout,
            verify=not allow_self_signed_certs,
            transport=transport,
        )

    @classmethod
    def login(
        cls,
        url: str,
        username: str,
        password: str,
        *,
        allow_self_signed_certs: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> IssueAPI:
        """
        Create a client and obtain a bearer token.

        Raises:
            AuthenticationError: If the server does not issue a token.
        """
        api = cls(
            url,
            allow_self_signed_certs=allow_self_signed_certs,
            timeout=timeout,
            transport=transport,
        )
        try:
            api.authenticate(username, password)
        except AuthenticationError:
            api.close()
            raise
        return api

    def authenticate(self, username: str, password: str) -> None:
        """Exchange credentials for a bearer token and store it."""
        try:
            response = self._client.post(
                "token", data={"username": username, "password": password}
            )
            response.raise_for_status()
            self.token = str(response.json()["access_token"])
        except httpx.HTTPStatusError as e:
            raise AuthenticationError(
                f"Login failed ({e.response.status_code}): {e.response.text}"
            ) from e
        except httpx.RequestError as e:
            raise AuthenticationError(f"Login request failed: {e!s}") from e
        except (ValueError, KeyError, TypeError) as e:
            raise AuthenticationError("Received invalid token payload from server") from e
        logger.info("Authenticated against %s as %s", self.url, username)

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> IssueAPI:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # Shared request handling

    def _headers(self, method: str) -> dict[str, str]:
        if method not in _AUTHENTICATED_METHODS:
            return {}
        if self.token is None:
            raise AuthenticationError(
                f"{method} requests require authentication; log in first"
            )
        return {"Authorization": f"Bearer {self.token}"}

    def _send(
        self,
        method: str,
        endpoint: str,
        *,
        json: Any = None,
        files: Mapping[str, Any] | None = None,
    ) -> httpx.Response:
        headers = self._headers(method)
        logger.debug("%s %s", method, endpoint)
        try:
            if files is not None:
                response = self._client.request(method, endpoint, files=files, headers=headers)
            else:
                response = self._client.request(
                    method, endpoint, json=json if json is not None else {}, headers=headers
                )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._status_error(method, endpoint, e.response) from e
        except httpx.RequestError as e:
            logger.warning("%s %s failed: %s", method, endpoint, e)
            raise RemoteError(f"Request failed: {e!s}", retryable=True) from e
        return response

    @staticmethod
    def _status_error(method: str, endpoint: str, response: httpx.Response) -> Exception:
        status = response.status_code
        if status == 401:
            return AuthenticationError(f"Authentication failed: {response.text}")
        logger.warning("%s %s returned %d", method, endpoint, status)
        return RemoteError(
            f"API error ({status}): {response.text}",
            status_code=status,
            retryable=status in _RETRYABLE_STATUSES,
        )

    def _call(
        self,
        method: str,
        endpoint: str,
        schema: type[ResponseT],
        *,
        json: Any = None,
        files: Mapping[str, Any] | None = None,
    ) -> ResponseT:
        response = self._send(method, endpoint, json=json, files=files)
        try:
            return schema.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ProtocolViolationError(
                f"Received invalid response from {method} {endpoint}: {e!s}"
            ) from e

    def _call_no_content(self, method: str, endpoint: str, *, json: Any = None) -> None:
        self._send(method, endpoint, json=json)

    def _download(self, endpoint: str, target: str | Path) -> None:
        logger.debug("GET %s -> %s", endpoint, target)
        target = Path(target)
        started = False
        try:
            with self._client.stream("GET", endpoint, json={}) as response:
                if response.is_error:
                    response.read()
                    raise self._status_error("GET", endpoint, response)
                started = True
                with target.open("wb") as f:
                    for chunk in response.iter_bytes():
                        f.write(chunk)
        except httpx.RequestError as e:
            if started:
                # No partial file is left behind.
                target.unlink(missing_ok=True)
            raise RemoteError(f"Download failed: {e!s}", retryable=True) from e

    def _upload(self, endpoint: str, path: str | Path, schema: type[ResponseT] | None) -> Any:
        path = Path(path)
        with path.open("rb") as f:
            files = {"file": (path.name, f)}
            if schema is None:
                self._send("POST", endpoint, files=files)
                return None
            return self._call("POST", endpoint, schema, files=files)

    # Issues

    def search(self, query: Mapping[str, Any]) -> list[str]:
        """Return the ids of all issues matching a query filter."""
        result = self._call("GET", "issue-ids", IssueIdsResponse, json={"filter": query})
        return result.issue_ids

    def find_issue_id_by_key(self, project: str, key: str) -> str:
        result = self._call("GET", f"issue-ids/{project}/{key}", IssueIdResponse)
        return result.issue_id

    def find_issue_ids_by_keys(self, keys: Iterable[tuple[str, str]]) -> list[str]:
        """Resolve ``(project, key)`` pairs to issue ids, preserving order.

        Raises:
            APIError: If any key has no id on the server.
        """
        issue_keys = [f"{project}-{key}" for project, key in keys]
        result = self._call(
            "GET",
            "bulk/get-issue-ids-from-keys",
            IssueIdMappingResponse,
            json={"issue_keys": issue_keys},
        )
        ids: list[str] = []
        for issue_key in issue_keys:
            issue_id = result.issue_ids.get(issue_key)
            if issue_id is None:
                raise APIError(f'No ID found for key "{issue_key}"')
            ids.append(issue_id)
        return ids

    def get_issue_data(
        self, issue_ids: Iterable[str], attributes: Iterable[IssueAttribute]
    ) -> dict[str, RawIssueData]:
        """Fetch the given attributes for the given issues in one request."""
        payload = {
            "issue_ids": list(issue_ids),
            "attributes": [attribute.value for attribute in attributes],
        }
        return self._call("GET", "issue-data", IssueDataResponse, json=payload).data

    # Tags

    def get_all_tags(self) -> list[TagInfo]:
        return self._call("GET", "tags", TagListResponse).tags

    def register_new_tag(self, name: str, description: str) -> None:
        self._call_no_content("POST", "tags", json={"tag": name, "description": description})

    def get_tag_info(self, tag: str) -> TagInfo:
        return self._call("GET", f"tags/{tag}", TagInfoResponse).tag

    def update_tag(self, tag: str, description: str) -> None:
        self._call_no_content("POST", f"tags/{tag}", json={"description": description})

    def delete_tag(self, tag: str) -> None:
        self._call_no_content("DELETE", f"tags/{tag}")

    # Issue tags and reviews

    def start_issue_review(self, issue_id: str) -> None:
        self._call_no_content("POST", f"issues/{issue_id}/mark-review")

    def finish_issue_review(self, issue_id: str) -> None:
        self._call_no_content("POST", f"issues/{issue_id}/finish-review")

    def get_tags_for_issue(self, issue_id: str) -> list[str]:
        return self._call("GET", f"issues/{issue_id}/tags", IssueTagsResponse).tags

    def add_tag_to_issue(self, issue_id: str, tag: str) -> None:
        self._call_no_content("POST", f"issues/{issue_id}/tags", json={"tag": tag})

    def remove_tag_from_issue(self, issue_id: str, tag: str) -> None:
        self._call_no_content("DELETE", f"issues/{issue_id}/tags/{tag}")

    def bulk_add_tags(self, tags_by_issue: Mapping[str, Iterable[str]]) -> None:
        data = [
            {"issue_id": issue_id, "tags": list(tags)}
            for issue_id, tags in tags_by_issue.items()
        ]
        self._call_no_content("POST", "bulk/add-tags", json={"data": data})

    # Manual labels and labeling comments

    def get_labeling_comments(self, issue_id: str) -> dict[str, RawLabelingComment]:
        """Return the labeling comments of an issue keyed by comment id (unordered)."""
        return self._call(
            "GET", f"manual-labels/{issue_id}/comments", LabelingCommentsResponse
        ).comments

    def add_labeling_comment(self, issue_id: str, text: str) -> str:
        result = self._call(
            "POST",
            f"manual-labels/{issue_id}/comments",
            NewCommentResponse,
            json={"comment": text},
        )
        return result.comment_id

    def update_labeling_comment(self, issue_id: str, comment_id: str, text: str) -> None:
        self._call_no_content(
            "PATCH", f"manual-labels/{issue_id}/comments/{comment_id}", json={"comment": text}
        )

    def delete_labeling_comment(self, issue_id: str, comment_id: str) -> None:
        self._call_no_content("DELETE", f"manual-labels/{issue_id}/comments/{comment_id}")

    def get_manual_labels(self, issue_ids: Iterable[str]) -> dict[str, Label]:
        result = self._call(
            "GET", "manual-labels", ManualLabelsResponse, json={"issue_ids": list(issue_ids)}
        )
        return result.manual_labels

    def update_manual_label(self, issue_id: str, label: Label) -> None:
        self._call_no_content("POST", f"manual-labels/{issue_id}", json=label.model_dump())

    # Embeddings

    def get_all_embeddings(self) -> list[EmbeddingInfo]:
        return self._call("GET", "embeddings", EmbeddingsResponse).embeddings

    def create_embedding(self, name: str, config: Mapping[str, Any]) -> str:
        """Create an embedding and return its id."""
        response = self._send("POST", "embeddings", json={"name": name, "config": dict(config)})
        try:
            return _STRING_ADAPTER.validate_python(response.json())
        except (ValueError, ValidationError) as e:
            raise ProtocolViolationError(f"Invalid embedding id in response: {e!s}") from e

    def get_embedding(self, embedding_id: str) -> EmbeddingInfo:
        return self._call("GET", f"embeddings/{embedding_id}", EmbeddingInfo)

    def update_embedding(self, embedding_id: str, name: str, config: Mapping[str, Any]) -> None:
        self._call_no_content(
            "POST", f"embeddings/{embedding_id}", json={"name": name, "config": dict(config)}
        )

    def delete_embedding(self, embedding_id: str) -> None:
        self._call_no_content("DELETE", f"embeddings/{embedding_id}")

    def upload_embedding_binary(self, embedding_id: str, path: str | Path) -> None:
        self._upload(f"embeddings/{embedding_id}/file", path, None)

    def download_embedding_binary(self, embedding_id: str, path: str | Path) -> None:
        self._download(f"embeddings/{embedding_id}/file", path)

    def delete_embedding_binary(self, embedding_id: str) -> None:
        self._call_no_content("DELETE", f"embeddings/{embedding_id}/file")

    # Repos and projects

    def get_all_repos(self) -> list[str]:
        return self._call("GET", "repos", ReposResponse).repos

    def get_projects_for_repo(self, repo: str) -> list[str]:
        return self._call("GET", f"repos/{repo}/projects", ProjectsResponse).projects

    # Model configs

    def get_all_models(self) -> list[ModelInfo]:
        return self._call("GET", "models", ModelsResponse).models

    def create_model_config(self, name: str, config: Mapping[str, Any]) -> str:
        """Create a model and return its id."""
        result = self._call(
            "POST",
            "models",
            NewModelResponse,
            json={"model_name": name, "model_config": dict(config)},
        )
        return result.model_id

    def get_model_config(self, model_id: str) -> ModelConfig:
        return self._call("GET", f"models/{model_id}", ModelConfig)

    def update_model_config(self, model_id: str, name: str, config: Mapping[str, Any]) -> None:
        self._call_no_content(
            "POST",
            f"models/{model_id}",
            json={"model_name": name, "model_config": dict(config)},
        )

    def delete_model_config(self, model_id: str) -> None:
        self._call_no_content("DELETE", f"models/{model_id}")

    # Model versions

    def get_versions_for_model(self, model_id: str) -> list[VersionInfo]:
        return self._call("GET", f"models/{model_id}/versions", VersionsResponse).versions

    def upload_model_version(self, model_id: str, path: str | Path) -> str:
        """Upload a trained model file and return the new version id."""
        result: NewVersionResponse = self._upload(
            f"models/{model_id}/versions", path, NewVersionResponse
        )
        return result.version_id

    def download_model_version(self, model_id: str, version_id: str, path: str | Path) -> None:
        self._download(f"models/{model_id}/versions/{version_id}", path)

    def delete_model_version(self, model_id: str, version_id: str) -> None:
        self._call_no_content("DELETE", f"models/{model_id}/versions/{version_id}")

    def update_version_description(
        self, model_id: str, version_id: str, description: str
    ) -> None:
        self._call_no_content(
            "PUT",
            f"models/{model_id}/versions/{version_id}/description",
            json={"description": description},
        )

    # Predictions

    def get_predictions(
        self, model_id: str, version_id: str, issue_ids: Iterable[str] | None = None
    ) -> dict[str, Any]:
        """Return stored predictions, for all issues when ``issue_ids`` is None."""
        payload = {"issue_ids": None if issue_ids is None else list(issue_ids)}
        result = self._call(
            "GET",
            f"models/{model_id}/versions/{version_id}/predictions",
            PredictionsResponse,
            json=payload,
        )
        return result.predictions

    def store_predictions(
        self, model_id: str, version_id: str, predictions: Mapping[str, Any]
    ) -> None:
        self._call_no_content(
            "POST",
            f"models/{model_id}/versions/{version_id}/predictions",
            json={"predictions": dict(predictions)},
        )

    def delete_predictions(self, model_id: str, version_id: str) -> None:
        self._call_no_content("DELETE", f"models/{model_id}/versions/{version_id}/predictions")

    # Model performance

    def get_performances_for_model(self, model_id: str) -> list[PerformanceInfo]:
        return self._call(
            "GET", f"models/{model_id}/performances", PerformancesResponse
        ).performances

    def store_model_performance(self, model_id: str, data: Iterable[Any]) -> str:
        """Store a test run and return its id."""
        result = self._call(
            "POST",
            f"models/{model_id}/performances",
            NewPerformanceResponse,
            json={"performance": list(data)},
        )
        return result.performance_id

    def get_performance_data(self, model_id: str, performance_id: str) -> PerformanceData:
        return self._call(
            "GET", f"models/{model_id}/performances/{performance_id}", PerformanceData
        )

    def delete_performance_data(self, model_id: str, performance_id: str) -> None:
        self._call_no_content("DELETE", f"models/{model_id}/performances/{performance_id}")

    def update_performance_description(
        self, model_id: str, performance_id: str, description: str
    ) -> None:
        self._call_no_content(
            "PUT",
            f"models/{model_id}/performances/{performance_id}/description",
            json={"description": description},
        )
