"""Machine learning models, their trained versions and their test runs."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from issue_db.configurable import ConfigurableEntity
from issue_db.identity import KeyedEntity

if TYPE_CHECKING:
    from issue_db.api import IssueAPI

logger = logging.getLogger(__name__)


class Model(ConfigurableEntity):
    """A model configuration stored on the server."""

    def _fetch_remote(self) -> tuple[str, dict[str, Any]]:
        result = self._api.get_model_config(self._id)
        return result.model_name, dict(result.model_config_data)

    def _write_remote(self, name: str, config: dict[str, Any]) -> None:
        self._api.update_model_config(self._id, name, config)

    def upload_version(self, path: str | Path) -> ModelVersion:
        """Upload a trained model file as a new version."""
        version_id = self._api.upload_model_version(self._id, path)
        logger.info("Uploaded version %s of model %s", version_id, self._id)
        return ModelVersion(self._api, self._id, version_id)

    def versions(self) -> list[ModelVersion]:
        return [
            ModelVersion(self._api, self._id, v.version_id, v.description)
            for v in self._api.get_versions_for_model(self._id)
        ]

    def delete_version(self, version: ModelVersion) -> None:
        self._check_owner(version.model_id)
        self._api.delete_model_version(self._id, version.version_id)

    def runs(self) -> list[TestRun]:
        return [
            TestRun(self._api, self._id, r.performance_id, r.description)
            for r in self._api.get_performances_for_model(self._id)
        ]

    def store_run(self, data: Iterable[Any], description: str | None = None) -> TestRun:
        """Store the results of a test run.

        Args:
            data: JSON-serializable per-fold or per-split results.
            description: Optional description, set in a second request.
        """
        run_id = self._api.store_model_performance(self._id, data)
        run = TestRun(self._api, self._id, run_id)
        if description is not None:
            run.update_description(description)
        return run

    def delete_run(self, run: TestRun) -> None:
        self._check_owner(run.model_id)
        self._api.delete_performance_data(self._id, run.run_id)

    def delete(self) -> None:
        """Delete the model, with all its versions and runs, on the server."""
        self._api.delete_model_config(self._id)

    def _check_owner(self, model_id: str) -> None:
        if model_id != self._id:
            raise ValueError(f"Object belongs to model {model_id}, not to model {self._id}")


class ModelVersion(KeyedEntity):
    """A trained version of a model, identified by model id and version id."""

    def __init__(
        self, api: IssueAPI, model_id: str, version_id: str, description: str = ""
    ) -> None:
        self._api = api
        self.model_id = model_id
        self.version_id = version_id
        self.description = description

    def identity_key(self) -> tuple[str, str]:
        return self.model_id, self.version_id

    def download(self, path: str | Path) -> None:
        self._api.download_model_version(self.model_id, self.version_id, path)

    def update_description(self, description: str) -> None:
        self._api.update_version_description(self.model_id, self.version_id, description)
        self.description = description

    def predictions(self, issue_ids: Iterable[str] | None = None) -> dict[str, Any]:
        """Return predictions keyed by issue id, for all issues when none are given."""
        return self._api.get_predictions(self.model_id, self.version_id, issue_ids)

    def store_predictions(self, predictions: Mapping[str, Any]) -> None:
        self._api.store_predictions(self.model_id, self.version_id, predictions)

    def delete_predictions(self) -> None:
        self._api.delete_predictions(self.model_id, self.version_id)

    def __repr__(self) -> str:
        return f"ModelVersion(model_id={self.model_id!r}, version_id={self.version_id!r})"


class TestRun(KeyedEntity):
    """Stored results of evaluating a model, identified by model id and run id."""

    __test__ = False

    def __init__(self, api: IssueAPI, model_id: str, run_id: str, description: str = "") -> None:
        self._api = api
        self.model_id = model_id
        self.run_id = run_id
        self.description = description

    def identity_key(self) -> tuple[str, str]:
        return self.model_id, self.run_id

    def data(self) -> list[Any]:
        return self._api.get_performance_data(self.model_id, self.run_id).performance

    def update_description(self, description: str) -> None:
        self._api.update_performance_description(self.model_id, self.run_id, description)
        self.description = description

    def __repr__(self) -> str:
        return f"TestRun(model_id={self.model_id!r}, run_id={self.run_id!r})"
