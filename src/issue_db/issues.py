"""Lazily loaded issue records and issue handles.

An ``IssueData`` record holds one write-once cell per ``IssueAttribute``.
Cells are filled from the server on first access, one attribute per request,
or in bulk through ``prefetch`` and ``IssueLoadingSettings``. Two records of
the same issue can be merged: populated cells of the donor fill the empty
cells of the target, and populated target cells are never overwritten.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from issue_db.comments import LabelingComment, load_labeling_comments
from issue_db.errors import ProtocolViolationError
from issue_db.identity import KeyedEntity
from issue_db.lazy import CachedValue, LazyCell
from issue_db.policies import CachingPolicy, IssueAttribute
from issue_db.schemas import Label, RawIssueData

if TYPE_CHECKING:
    from issue_db.api import IssueAPI

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _AttributeSpec:
    """Where an attribute lives in a raw payload and how to convert it."""

    field: str
    convert: Callable[[Any], Any] = lambda value: value
    nullable: bool = False


def _name(value: Any) -> str:
    return str(value.name)


def _names(values: Iterable[Any]) -> tuple[str, ...]:
    return tuple(value.name for value in values)


_SCHEMA: dict[IssueAttribute, _AttributeSpec] = {
    IssueAttribute.KEY: _AttributeSpec("key"),
    IssueAttribute.SUMMARY: _AttributeSpec("summary"),
    IssueAttribute.DESCRIPTION: _AttributeSpec("description"),
    IssueAttribute.COMMENTS: _AttributeSpec(
        "comments", lambda comments: tuple(c.body for c in comments)
    ),
    IssueAttribute.STATUS: _AttributeSpec("status", _name),
    IssueAttribute.PRIORITY: _AttributeSpec("priority", _name),
    IssueAttribute.RESOLUTION: _AttributeSpec("resolution", _name, nullable=True),
    IssueAttribute.ISSUE_TYPE: _AttributeSpec("issuetype", _name),
    IssueAttribute.ISSUE_LINKS: _AttributeSpec("issuelinks", tuple),
    IssueAttribute.PARENT: _AttributeSpec("parent", nullable=True),
    IssueAttribute.SUBTASKS: _AttributeSpec("subtasks", tuple),
    IssueAttribute.WATCHES: _AttributeSpec("watches", lambda w: w.watch_count),
    IssueAttribute.VOTES: _AttributeSpec("votes", lambda v: v.votes),
    IssueAttribute.DATE_CREATED: _AttributeSpec("created"),
    IssueAttribute.DATE_UPDATED: _AttributeSpec("updated"),
    IssueAttribute.DATE_RESOLVED: _AttributeSpec("resolutiondate", nullable=True),
    IssueAttribute.LABELS: _AttributeSpec("labels", tuple),
    IssueAttribute.COMPONENTS: _AttributeSpec("components", _names),
    IssueAttribute.AFFECTED_VERSIONS: _AttributeSpec("versions", _names),
    IssueAttribute.FIX_VERSIONS: _AttributeSpec("fix_versions", _names),
}


def _ordered(attributes: Iterable[IssueAttribute]) -> list[IssueAttribute]:
    wanted = set(attributes)
    return [attribute for attribute in IssueAttribute if attribute in wanted]


class IssueData(KeyedEntity):
    """Per-issue cache of attribute values, keyed by issue id."""

    def __init__(self, ident: str) -> None:
        self.ident = ident
        self._cells: dict[IssueAttribute, LazyCell[Any]] = {
            attribute: LazyCell() for attribute in IssueAttribute
        }

    @classmethod
    def from_raw(cls, ident: str, raw: RawIssueData) -> IssueData:
        """Build a record populated with the attributes present in ``raw``.

        Attributes absent from the payload stay empty. A ``null`` value
        populates nullable attributes with ``None`` and is treated as absent
        for the others.
        """
        record = cls(ident)
        present = raw.model_fields_set
        for attribute, spec in _SCHEMA.items():
            if spec.field not in present:
                continue
            value = getattr(raw, spec.field)
            if value is None:
                if spec.nullable:
                    record._cells[attribute] = LazyCell.of(None)
                continue
            record._cells[attribute] = LazyCell.of(spec.convert(value))
        return record

    def identity_key(self) -> str:
        return self.ident

    def is_loaded(self, attribute: IssueAttribute) -> bool:
        return self._cells[attribute].populated

    @property
    def loaded_attributes(self) -> frozenset[IssueAttribute]:
        return frozenset(a for a, cell in self._cells.items() if cell.populated)

    def missing(self, attributes: Iterable[IssueAttribute] | None = None) -> list[IssueAttribute]:
        """Return the attributes (all by default) whose cells are still empty."""
        candidates = IssueAttribute if attributes is None else _ordered(attributes)
        return [a for a in candidates if not self._cells[a].populated]

    def peek(self, attribute: IssueAttribute, default: Any = None) -> Any:
        """Return a cached value without contacting the server."""
        return self._cells[attribute].get(default)

    def get(self, attribute: IssueAttribute, api: IssueAPI) -> Any:
        """Return an attribute, fetching it from the server on a cache miss.

        Raises:
            ProtocolViolationError: If the server answers without the attribute.
        """
        fetched: list[IssueData] = []

        def produce() -> Any:
            logger.debug("Cache miss for %s of issue %s", attribute.value, self.ident)
            fresh = self._fetch_record(api, [attribute])
            fetched.append(fresh)
            return fresh._cells[attribute].get()

        value = self._cells[attribute].get_or_populate(produce)
        # Co-fetched attributes are merged after the cell lock is released.
        for fresh in fetched:
            self._copy_from(fresh)
        return value

    def prefetch(self, api: IssueAPI, attributes: Iterable[IssueAttribute] | None = None) -> None:
        """Load every empty attribute of ``attributes`` (all by default) in one request."""
        wanted = self.missing(attributes)
        if not wanted:
            return
        logger.debug("Prefetching %d attributes of issue %s", len(wanted), self.ident)
        self._copy_from(self._fetch_record(api, wanted))

    def merge(self, donor: IssueData) -> None:
        """Fill empty cells of this record from populated cells of ``donor``.

        Raises:
            ValueError: If ``donor`` describes a different issue.
        """
        if donor.ident != self.ident:
            raise ValueError(f"Cannot merge issue {donor.ident} into issue {self.ident}")
        self._copy_from(donor)

    def _copy_from(self, donor: IssueData) -> None:
        for attribute, cell in self._cells.items():
            donor_cell = donor._cells[attribute]
            if donor_cell.populated and not cell.populated:
                cell.fill(donor_cell.get())

    def _fetch_record(self, api: IssueAPI, attributes: Sequence[IssueAttribute]) -> IssueData:
        response = api.get_issue_data([self.ident], attributes)
        raw = response.get(self.ident)
        if raw is None:
            raise ProtocolViolationError(
                f"Issue data lookup returned nothing for issue {self.ident}"
            )
        fresh = IssueData.from_raw(self.ident, raw)
        fresh._require(attributes)
        return fresh

    def _require(self, attributes: Iterable[IssueAttribute]) -> None:
        missing = self.missing(attributes)
        if missing:
            names = ", ".join(a.value for a in missing)
            raise ProtocolViolationError(
                f"Server response for issue {self.ident} is missing requested attributes: {names}"
            )

    def __repr__(self) -> str:
        return f"IssueData({self.ident!r}, loaded={len(self.loaded_attributes)})"


def _lazy_attribute(attribute: IssueAttribute, doc: str) -> property:
    def getter(self: Issue) -> Any:
        return self._data.get(attribute, self._api)

    return property(getter, doc=doc)


class Issue(KeyedEntity):
    """Handle on a single issue.

    Attribute properties contact the server only the first time they are
    read on this handle. Tags and the manual label follow the
    ``CachingPolicy`` given at construction.
    """

    def __init__(
        self,
        api: IssueAPI,
        data: IssueData,
        caching: CachingPolicy = CachingPolicy.NO_CACHING,
    ) -> None:
        self._api = api
        self._data = data
        self._caching = caching
        self._tags: CachedValue[tuple[str, ...]] = CachedValue()
        self._manual_label: CachedValue[Label] = CachedValue()

    @property
    def ident(self) -> str:
        return self._data.ident

    @property
    def data(self) -> IssueData:
        return self._data

    @property
    def caching(self) -> CachingPolicy:
        return self._caching

    def identity_key(self) -> str:
        return self._data.ident

    key = _lazy_attribute(IssueAttribute.KEY, "Issue key, e.g. ``HADOOP-1234``.")
    summary = _lazy_attribute(IssueAttribute.SUMMARY, "One-line summary.")
    description = _lazy_attribute(IssueAttribute.DESCRIPTION, "Full description.")
    comments = _lazy_attribute(IssueAttribute.COMMENTS, "Bodies of the tracker comments.")
    status = _lazy_attribute(IssueAttribute.STATUS, "Status name.")
    priority = _lazy_attribute(IssueAttribute.PRIORITY, "Priority name.")
    resolution = _lazy_attribute(IssueAttribute.RESOLUTION, "Resolution name, or None.")
    issue_type = _lazy_attribute(IssueAttribute.ISSUE_TYPE, "Issue type name.")
    issue_links = _lazy_attribute(IssueAttribute.ISSUE_LINKS, "Linked issues.")
    parent = _lazy_attribute(IssueAttribute.PARENT, "Parent issue, or None.")
    subtasks = _lazy_attribute(IssueAttribute.SUBTASKS, "Subtask issues.")
    watches = _lazy_attribute(IssueAttribute.WATCHES, "Number of watchers.")
    votes = _lazy_attribute(IssueAttribute.VOTES, "Number of votes.")
    date_created = _lazy_attribute(IssueAttribute.DATE_CREATED, "Creation timestamp.")
    date_updated = _lazy_attribute(IssueAttribute.DATE_UPDATED, "Last update timestamp.")
    date_resolved = _lazy_attribute(IssueAttribute.DATE_RESOLVED, "Resolution timestamp, or None.")
    labels = _lazy_attribute(IssueAttribute.LABELS, "Tracker labels.")
    components = _lazy_attribute(IssueAttribute.COMPONENTS, "Component names.")
    affected_versions = _lazy_attribute(IssueAttribute.AFFECTED_VERSIONS, "Affected versions.")
    fix_versions = _lazy_attribute(IssueAttribute.FIX_VERSIONS, "Fix versions.")

    def attribute(self, attribute: IssueAttribute) -> Any:
        """Return any attribute by enum member."""
        return self._data.get(attribute, self._api)

    def prefetch(self, attributes: Iterable[IssueAttribute] | None = None) -> None:
        """Load all empty attributes of ``attributes`` with a single request."""
        self._data.prefetch(self._api, attributes)

    def merge(self, other: Issue) -> None:
        """Copy everything ``other`` has loaded that this handle has not."""
        self._data.merge(other._data)
        if other._tags.populated:
            self._tags.fill(other._tags.get())
        if other._manual_label.populated:
            self._manual_label.fill(other._manual_label.get())

    # Tags

    def tags(self) -> tuple[str, ...]:
        if self._caching is CachingPolicy.NO_CACHING:
            return tuple(self._api.get_tags_for_issue(self.ident))
        return self._tags.get_or_populate(
            lambda: tuple(self._api.get_tags_for_issue(self.ident))
        )

    def add_tag(self, tag: str) -> None:
        self._api.add_tag_to_issue(self.ident, tag)
        if self._caching is CachingPolicy.USE_LOCAL_AFTER_LOAD and self._tags.populated:
            current = self._tags.get()
            if tag not in current:
                self._tags.set((*current, tag))

    def remove_tag(self, tag: str) -> None:
        self._api.remove_tag_from_issue(self.ident, tag)
        if self._caching is CachingPolicy.USE_LOCAL_AFTER_LOAD and self._tags.populated:
            self._tags.set(tuple(t for t in self._tags.get() if t != tag))

    # Manual labels and labeling

    def manual_label(self) -> Label:
        if self._caching is CachingPolicy.NO_CACHING:
            return self._fetch_manual_label()
        return self._manual_label.get_or_populate(self._fetch_manual_label)

    def _fetch_manual_label(self) -> Label:
        labels = self._api.get_manual_labels([self.ident])
        label = labels.get(self.ident)
        if label is None:
            raise ProtocolViolationError(f"No manual label returned for issue {self.ident}")
        return label

    def set_manual_label(self, label: Label) -> None:
        self._api.update_manual_label(self.ident, label)
        if self._caching is CachingPolicy.USE_LOCAL_AFTER_LOAD:
            self._manual_label.set(label)

    def labeling_comments(self) -> list[LabelingComment]:
        """Return the labeling comments of this issue, oldest first."""
        return load_labeling_comments(self._api, self.ident)

    def add_labeling_comment(self, text: str) -> LabelingComment:
        comment_id = self._api.add_labeling_comment(self.ident, text)
        return LabelingComment(self._api, self.ident, comment_id, None, text)

    def start_review(self) -> None:
        self._api.start_issue_review(self.ident)

    def finish_review(self) -> None:
        self._api.finish_issue_review(self.ident)

    def __repr__(self) -> str:
        return f"Issue({self.ident!r})"


def _chunks(items: Sequence[str], size: int | None) -> Iterator[Sequence[str]]:
    if size is None:
        yield items
        return
    for start in range(0, len(items), size):
        yield items[start : start + size]


@dataclass(frozen=True)
class IssueLoadingSettings:
    """Which attributes to load up front when issue handles are created in bulk."""

    attributes: frozenset[IssueAttribute] = frozenset()
    batch_size: int | None = None

    def __post_init__(self) -> None:
        if self.batch_size is not None and self.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {self.batch_size}")

    @classmethod
    def lazy(cls) -> IssueLoadingSettings:
        """Load nothing up front; every attribute is fetched on first access."""
        return cls()

    @classmethod
    def eager(
        cls, attributes: Iterable[IssueAttribute], batch_size: int | None = None
    ) -> IssueLoadingSettings:
        return cls(frozenset(attributes), batch_size)

    @classmethod
    def all_attributes(cls, batch_size: int | None = None) -> IssueLoadingSettings:
        return cls(frozenset(IssueAttribute), batch_size)

    def load_issue(self, api: IssueAPI, issue_id: str, caching: CachingPolicy) -> Issue:
        return self.load_issues(api, [issue_id], caching)[0]

    def load_issues(
        self, api: IssueAPI, issue_ids: Iterable[str], caching: CachingPolicy
    ) -> list[Issue]:
        """Create handles for ``issue_ids``, loading the configured attributes.

        Raises:
            ProtocolViolationError: If the server omits an issue or attribute.
        """
        ids = list(issue_ids)
        if not self.attributes or not ids:
            return [Issue(api, IssueData(issue_id), caching) for issue_id in ids]
        attributes = _ordered(self.attributes)
        unique_ids = list(dict.fromkeys(ids))
        fetched: dict[str, RawIssueData] = {}
        for chunk in _chunks(unique_ids, self.batch_size):
            response = api.get_issue_data(chunk, attributes)
            for issue_id in chunk:
                raw = response.get(issue_id)
                if raw is None:
                    raise ProtocolViolationError(
                        f"Issue data lookup returned nothing for issue {issue_id}"
                    )
                IssueData.from_raw(issue_id, raw)._require(attributes)
                fetched[issue_id] = raw
        logger.debug("Loaded %d issues with %d attributes", len(fetched), len(attributes))
        # Each handle owns its record, also when an id is listed twice.
        return [
            Issue(api, IssueData.from_raw(issue_id, fetched[issue_id]), caching)
            for issue_id in ids
        ]
