"""Caching policies and the issue attribute schema."""

from __future__ import annotations

from enum import Enum


class ConfigHandlingPolicy(str, Enum):
    """How models and embeddings read and write their name and config."""

    # Reads use the local cache (filled by one fetch on first use); writes
    # send the locally known companion field.
    READ_LOCAL_WRITE_NO_FETCH = "read_local_write_no_fetch"
    # Every read and every write goes to the server first.
    READ_FETCH_WRITE_WITH_FETCH = "read_fetch_write_with_fetch"
    # Reads use the local cache; writes fetch the companion field first.
    READ_LOCAL_WRITE_WITH_FETCH = "read_local_write_with_fetch"

    @property
    def reads_local(self) -> bool:
        """Whether reads may be answered from the local cache."""
        return _POLICY_BEHAVIOUR[self][0]

    @property
    def fetches_before_write(self) -> bool:
        """Whether the companion field is re-fetched right before a write."""
        return _POLICY_BEHAVIOUR[self][1]


# (reads_local, fetches_before_write); every policy must have an entry.
_POLICY_BEHAVIOUR: dict[ConfigHandlingPolicy, tuple[bool, bool]] = {
    ConfigHandlingPolicy.READ_LOCAL_WRITE_NO_FETCH: (True, False),
    ConfigHandlingPolicy.READ_FETCH_WRITE_WITH_FETCH: (False, True),
    ConfigHandlingPolicy.READ_LOCAL_WRITE_WITH_FETCH: (True, True),
}


class CachingPolicy(str, Enum):
    """How an issue handle caches its tags and manual label."""

    NO_CACHING = "no_caching"
    USE_LOCAL_AFTER_LOAD = "use_local_after_load"


class IssueAttribute(str, Enum):
    """Attributes of an issue, valued by their name in the issue-data endpoint."""

    KEY = "key"
    SUMMARY = "summary"
    DESCRIPTION = "description"
    COMMENTS = "comments"
    STATUS = "status"
    PRIORITY = "priority"
    RESOLUTION = "resolution"
    ISSUE_TYPE = "issuetype"
    ISSUE_LINKS = "issuelinks"
    PARENT = "parent"
    SUBTASKS = "subtasks"
    WATCHES = "watches"
    VOTES = "votes"
    DATE_CREATED = "created"
    DATE_UPDATED = "updated"
    DATE_RESOLVED = "resolutiondate"
    LABELS = "labels"
    COMPONENTS = "components"
    AFFECTED_VERSIONS = "versions"
    FIX_VERSIONS = "fixVersions"

    def __str__(self) -> str:
        return self.value
