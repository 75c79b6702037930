"""Tags that can be attached to issues."""

from __future__ import annotations

from typing import TYPE_CHECKING

from issue_db.identity import KeyedEntity
from issue_db.lazy import CachedValue

if TYPE_CHECKING:
    from issue_db.api import IssueAPI


class Tag(KeyedEntity):
    """A tag, identified by its name.

    The description is cached once known; handles created by name only
    fetch it on first access.
    """

    def __init__(self, api: IssueAPI, name: str, description: str | None = None) -> None:
        self._api = api
        self.name = name
        self._description: CachedValue[str] = CachedValue()
        if description is not None:
            self._description.set(description)

    def identity_key(self) -> str:
        return self.name

    def description(self) -> str:
        return self._description.get_or_populate(
            lambda: self._api.get_tag_info(self.name).description
        )

    def update_description(self, description: str) -> None:
        self._api.update_tag(self.name, description)
        self._description.set(description)

    def delete(self) -> None:
        self._api.delete_tag(self.name)

    def __repr__(self) -> str:
        return f"Tag({self.name!r})"
