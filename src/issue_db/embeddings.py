"""Word embeddings stored on the server."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from issue_db.configurable import ConfigurableEntity
from issue_db.policies import ConfigHandlingPolicy

if TYPE_CHECKING:
    from issue_db.api import IssueAPI


class Embedding(ConfigurableEntity):
    """An embedding configuration with an optional trained binary."""

    def __init__(
        self,
        api: IssueAPI,
        entity_id: str,
        name: str,
        config: Mapping[str, Any] | None,
        policy: ConfigHandlingPolicy,
        has_binary: bool = False,
    ) -> None:
        super().__init__(api, entity_id, name, config, policy)
        self._has_binary = has_binary

    @property
    def has_binary(self) -> bool:
        """Whether a binary was uploaded, as last seen by this handle."""
        return self._has_binary

    def _fetch_remote(self) -> tuple[str, dict[str, Any]]:
        info = self._api.get_embedding(self._id)
        self._has_binary = info.has_file
        return info.name, dict(info.config)

    def _write_remote(self, name: str, config: dict[str, Any]) -> None:
        self._api.update_embedding(self._id, name, config)

    def upload_binary(self, path: str | Path) -> None:
        self._api.upload_embedding_binary(self._id, path)
        self._has_binary = True

    def download_binary(self, path: str | Path) -> None:
        self._api.download_embedding_binary(self._id, path)

    def delete_binary(self) -> None:
        self._api.delete_embedding_binary(self._id)
        self._has_binary = False

    def delete(self) -> None:
        self._api.delete_embedding(self._id)
