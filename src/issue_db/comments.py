"""Labeling comments attached to an issue."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, TypeVar

from issue_db.errors import IDParsingError
from issue_db.identity import KeyedEntity

if TYPE_CHECKING:
    from issue_db.api import IssueAPI

T = TypeVar("T")

MAX_ORDERING_KEY = 2**128 - 1
_DIGITS = re.compile(r"[0-9]+")


def parse_ordering_key(key: str) -> int:
    """Parse a server-assigned id as an unsigned 128-bit integer.

    Raises:
        IDParsingError: If ``key`` is not a base-10 integer in ``[0, 2**128)``.
    """
    if not _DIGITS.fullmatch(key):
        raise IDParsingError(f"Invalid ordering key {key!r}: not an unsigned integer")
    value = int(key)
    if value > MAX_ORDERING_KEY:
        raise IDParsingError(f"Invalid ordering key {key!r}: exceeds 128 bits")
    return value


def restore_creation_order(items: Mapping[str, T]) -> list[T]:
    """Return the values of a mapping keyed by numeric ids, oldest first.

    The server assigns increasing ids, so sorting by the numeric value of the
    key restores creation order. Keys are dropped from the result.
    """
    keyed = [(parse_ordering_key(key), value) for key, value in items.items()]
    keyed.sort(key=lambda pair: pair[0])
    return [value for _, value in keyed]


class LabelingComment(KeyedEntity):
    """A comment left on an issue while labeling it."""

    def __init__(
        self, api: IssueAPI, issue_id: str, comment_id: str, author: str | None, text: str
    ) -> None:
        self._api = api
        self.issue_id = issue_id
        self.comment_id = comment_id
        self.author = author
        self.text = text

    def identity_key(self) -> tuple[str, str]:
        return self.issue_id, self.comment_id

    def update_text(self, text: str) -> None:
        """Replace the comment text on the server, then locally."""
        self._api.update_labeling_comment(self.issue_id, self.comment_id, text)
        self.text = text

    def delete(self) -> None:
        self._api.delete_labeling_comment(self.issue_id, self.comment_id)

    def __repr__(self) -> str:
        return f"LabelingComment(issue_id={self.issue_id!r}, comment_id={self.comment_id!r})"


def load_labeling_comments(api: IssueAPI, issue_id: str) -> list[LabelingComment]:
    """Fetch the labeling comments of an issue in creation order."""
    raw = api.get_labeling_comments(issue_id)
    ordered_ids = restore_creation_order({key: key for key in raw})
    return [
        LabelingComment(api, issue_id, comment_id, raw[comment_id].author, raw[comment_id].comment)
        for comment_id in ordered_ids
    ]
