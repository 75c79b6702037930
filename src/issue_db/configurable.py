"""Remote entities with a mutable name and config.

Models and embeddings both carry a name and a config mapping that are written
together in one request. How reads are answered and what a write sends along
with the changed field is decided by the ``ConfigHandlingPolicy`` fixed at
construction:

* reads under a local-read policy use the cached config, which is fetched
  once on first use; otherwise every read goes to the server;
* writes under a fetch-before-write policy first re-read the companion field
  from the server; otherwise the locally known value is sent.

A write that fails, or whose pre-write fetch fails, leaves the local state
untouched.
"""

from __future__ import annotations

import copy
import logging
from abc import abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from issue_db.identity import KeyedEntity
from issue_db.lazy import CachedValue
from issue_db.policies import ConfigHandlingPolicy

if TYPE_CHECKING:
    from issue_db.api import IssueAPI

logger = logging.getLogger(__name__)


class ConfigurableEntity(KeyedEntity):
    """Base class for entities with a policy-governed name and config."""

    def __init__(
        self,
        api: IssueAPI,
        entity_id: str,
        name: str,
        config: Mapping[str, Any] | None,
        policy: ConfigHandlingPolicy,
    ) -> None:
        self._api = api
        self._id = entity_id
        self._name = name
        self._config: CachedValue[dict[str, Any]] = (
            CachedValue() if config is None else CachedValue.of(copy.deepcopy(dict(config)))
        )
        self._policy = policy

    @property
    def id(self) -> str:
        return self._id

    @property
    def policy(self) -> ConfigHandlingPolicy:
        return self._policy

    def identity_key(self) -> str:
        return self._id

    @abstractmethod
    def _fetch_remote(self) -> tuple[str, dict[str, Any]]:
        """Fetch the current ``(name, config)`` from the server."""

    @abstractmethod
    def _write_remote(self, name: str, config: dict[str, Any]) -> None:
        """Write name and config to the server in one request."""

    def _fetch_config(self) -> dict[str, Any]:
        logger.debug("Fetching config of %s %s", type(self).__name__, self._id)
        return self._fetch_remote()[1]

    def name(self) -> str:
        """Return the entity name."""
        if self._policy.reads_local:
            return self._name
        return self._fetch_remote()[0]

    def config(self) -> dict[str, Any]:
        """Return the entity config.

        The result is a deep copy; changing it does not affect the cache.
        """
        if self._policy.reads_local:
            return copy.deepcopy(self._config.get_or_populate(self._fetch_config))
        return self._fetch_config()

    def update_config(self, config: Mapping[str, Any]) -> None:
        """Replace the config, keeping the name."""
        new_config = copy.deepcopy(dict(config))
        if self._policy.fetches_before_write:
            name = self._fetch_remote()[0]
        else:
            name = self._name
        self._write_remote(name, new_config)
        self._name = name
        if self._policy.reads_local:
            self._config.set(new_config)

    def update_name(self, name: str) -> None:
        """Rename the entity, keeping the config."""
        if self._policy.fetches_before_write:
            config = self._fetch_config()
        else:
            config = self._config.get_or_populate(self._fetch_config)
        self._write_remote(name, config)
        self._name = name
        if self._policy.reads_local:
            self._config.set(config)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self._id!r}, name={self._name!r})"
