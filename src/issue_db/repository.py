"""Entry point of the client: a repository of issues, tags, models and embeddings."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

import httpx

from issue_db.api import IssueAPI
from issue_db.config import get_config_value
from issue_db.embeddings import Embedding
from issue_db.identity import KeyedEntity
from issue_db.issues import Issue, IssueData, IssueLoadingSettings
from issue_db.models import Model
from issue_db.policies import CachingPolicy, ConfigHandlingPolicy
from issue_db.tags import Tag

logger = logging.getLogger(__name__)


class IssueRepository:
    """Access to everything stored on one issue database server.

    Every handle returned by the repository shares the repository's API
    client and policies, but owns its own cache.
    """

    def __init__(
        self,
        api: IssueAPI,
        label_caching: CachingPolicy = CachingPolicy.NO_CACHING,
        config_handling: ConfigHandlingPolicy = ConfigHandlingPolicy.READ_LOCAL_WRITE_NO_FETCH,
    ) -> None:
        self.api = api
        self.label_caching = label_caching
        self.config_handling = config_handling

    @classmethod
    def connect(
        cls,
        url: str,
        username: str | None = None,
        password: str | None = None,
        *,
        label_caching: CachingPolicy = CachingPolicy.NO_CACHING,
        config_handling: ConfigHandlingPolicy = ConfigHandlingPolicy.READ_LOCAL_WRITE_NO_FETCH,
        allow_self_signed_certs: bool = False,
        timeout: float = IssueAPI.DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> IssueRepository:
        """
        Connect to a server.

        Without credentials the repository is read-only: every write raises
        ``AuthenticationError``.

        Raises:
            AuthenticationError: If credentials are given and login fails.
        """
        if username is not None and password is not None:
            api = IssueAPI.login(
                url,
                username,
                password,
                allow_self_signed_certs=allow_self_signed_certs,
                timeout=timeout,
                transport=transport,
            )
        else:
            api = IssueAPI(
                url,
                allow_self_signed_certs=allow_self_signed_certs,
                timeout=timeout,
                transport=transport,
            )
            logger.info("Connected to %s in read-only mode", url)
        return cls(api, label_caching, config_handling)

    @classmethod
    def from_config(cls, transport: httpx.BaseTransport | None = None) -> IssueRepository:
        """Connect using ``~/.config/issue-db/config.json`` and the environment."""
        url = get_config_value("server_url")
        if not url:
            raise ValueError("No server_url configured; set ISSUE_DB_URL or add it to config.json")
        return cls.connect(
            str(url),
            get_config_value("username"),
            get_config_value("password"),
            label_caching=CachingPolicy(
                get_config_value("label_caching", CachingPolicy.NO_CACHING.value)
            ),
            config_handling=ConfigHandlingPolicy(
                get_config_value(
                    "config_handling", ConfigHandlingPolicy.READ_LOCAL_WRITE_NO_FETCH.value
                )
            ),
            allow_self_signed_certs=bool(get_config_value("allow_self_signed_certs", False)),
            timeout=float(get_config_value("timeout", IssueAPI.DEFAULT_TIMEOUT)),
            transport=transport,
        )

    def close(self) -> None:
        self.api.close()

    def __enter__(self) -> IssueRepository:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # Issues

    def issue(self, issue_id: str) -> Issue:
        """Return a handle on an issue without contacting the server."""
        return Issue(self.api, IssueData(issue_id), self.label_caching)

    def search(
        self,
        query: Mapping[str, Any],
        loading: IssueLoadingSettings | None = None,
    ) -> list[Issue]:
        """Return the issues matching a server-side query filter."""
        ids = self.api.search(query)
        return (loading or IssueLoadingSettings.lazy()).load_issues(
            self.api, ids, self.label_caching
        )

    def find_issue_by_key(
        self, project: str, key: str, loading: IssueLoadingSettings | None = None
    ) -> Issue:
        issue_id = self.api.find_issue_id_by_key(project, key)
        return (loading or IssueLoadingSettings.lazy()).load_issue(
            self.api, issue_id, self.label_caching
        )

    def find_issues_by_key(
        self,
        keys: Iterable[tuple[str, str]],
        loading: IssueLoadingSettings | None = None,
    ) -> list[Issue]:
        """Look up several ``(project, key)`` pairs; the result keeps their order."""
        ids = self.api.find_issue_ids_by_keys(keys)
        return (loading or IssueLoadingSettings.lazy()).load_issues(
            self.api, ids, self.label_caching
        )

    # Repos

    def repos(self) -> list[IssueRepo]:
        return [IssueRepo(self.api, name) for name in self.api.get_all_repos()]

    # Tags

    def tags(self) -> list[Tag]:
        return [Tag(self.api, t.name, t.description) for t in self.api.get_all_tags()]

    def tag(self, name: str) -> Tag:
        """Return a handle on a tag; its description is fetched on demand."""
        return Tag(self.api, name)

    def add_new_tag(self, name: str, description: str) -> Tag:
        self.api.register_new_tag(name, description)
        return Tag(self.api, name, description)

    def bulk_add_tags(self, tags: Mapping[Issue, Iterable[str]]) -> None:
        """Attach tags to many issues in one request."""
        self.api.bulk_add_tags({issue.ident: list(names) for issue, names in tags.items()})

    # Embeddings

    def embeddings(self) -> list[Embedding]:
        return [
            Embedding(self.api, e.id, e.name, e.config, self.config_handling, e.has_file)
            for e in self.api.get_all_embeddings()
        ]

    def create_embedding(self, name: str, config: Mapping[str, Any]) -> Embedding:
        embedding_id = self.api.create_embedding(name, config)
        logger.info("Created embedding %s (%s)", embedding_id, name)
        return Embedding(self.api, embedding_id, name, config, self.config_handling)

    # Models

    def models(self) -> list[Model]:
        """List models; configs are loaded on first access."""
        return [
            Model(self.api, m.model_id, m.model_name, None, self.config_handling)
            for m in self.api.get_all_models()
        ]

    def add_model(self, name: str, config: Mapping[str, Any]) -> Model:
        model_id = self.api.create_model_config(name, config)
        logger.info("Created model %s (%s)", model_id, name)
        return Model(self.api, model_id, name, config, self.config_handling)


class IssueRepo(KeyedEntity):
    """A source repository whose issues are stored on the server."""

    def __init__(self, api: IssueAPI, name: str) -> None:
        self._api = api
        self.name = name

    def identity_key(self) -> str:
        return self.name

    def projects(self) -> list[str]:
        return self._api.get_projects_for_repo(self.name)

    def __repr__(self) -> str:
        return f"IssueRepo({self.name!r})"
