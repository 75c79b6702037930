"""Pydantic schemas for payloads returned by the issue database server."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ServerModel(BaseModel):
    """Base schema; unknown keys sent by the server are ignored."""

    model_config = ConfigDict(
        extra="ignore", populate_by_name=True, protected_namespaces=()
    )


# Issues


class NamedValue(ServerModel):
    """A Jira-style object of which only the name is used."""

    name: str


class RawIssueComment(ServerModel):
    body: str


class RawWatches(ServerModel):
    watch_count: int = Field(..., alias="watchCount")


class RawVotes(ServerModel):
    votes: int


class RawIssueData(ServerModel):
    """Sparse issue payload; only the requested attributes are present."""

    key: str | None = None
    summary: str | None = None
    description: str | None = None
    comments: list[RawIssueComment] | None = None
    status: NamedValue | None = None
    priority: NamedValue | None = None
    resolution: NamedValue | None = None
    issuetype: NamedValue | None = None
    issuelinks: list[str] | None = None
    parent: str | None = None
    subtasks: list[str] | None = None
    watches: RawWatches | None = None
    votes: RawVotes | None = None
    created: str | None = None
    updated: str | None = None
    resolutiondate: str | None = None
    labels: list[str] | None = None
    components: list[NamedValue] | None = None
    versions: list[NamedValue] | None = None
    fix_versions: list[NamedValue] | None = Field(None, alias="fixVersions")


class IssueDataResponse(ServerModel):
    data: dict[str, RawIssueData] = Field(..., description="Issue data keyed by issue id")


class IssueIdsResponse(ServerModel):
    issue_ids: list[str]


class IssueIdResponse(ServerModel):
    issue_id: str


class IssueIdMappingResponse(ServerModel):
    issue_ids: dict[str, str] = Field(..., description="Issue ids keyed by issue key")


# Tags and labels


class TagInfo(ServerModel):
    """Tag as listed by the server."""

    name: str = Field(..., description="Tag name")
    description: str = Field("", description="Tag description")


class TagListResponse(ServerModel):
    tags: list[TagInfo]


class TagInfoResponse(ServerModel):
    tag: TagInfo


class IssueTagsResponse(ServerModel):
    tags: list[str]


class Label(ServerModel):
    """Manual architectural-decision label of an issue."""

    existence: bool = Field(..., description="Issue describes an existence decision")
    executive: bool = Field(..., description="Issue describes an executive decision")
    property: bool = Field(..., description="Issue describes a property decision")


class ManualLabelsResponse(ServerModel):
    manual_labels: dict[str, Label]


class RawLabelingComment(ServerModel):
    author: str
    comment: str


class LabelingCommentsResponse(ServerModel):
    comments: dict[str, RawLabelingComment] = Field(
        ..., description="Comments keyed by their numeric id"
    )


class NewCommentResponse(ServerModel):
    comment_id: str


# Repos


class ReposResponse(ServerModel):
    repos: list[str]


class ProjectsResponse(ServerModel):
    projects: list[str]


# Embeddings


class EmbeddingInfo(ServerModel):
    """Embedding as returned by the server."""

    id: str = Field(..., description="Embedding id")
    name: str = Field(..., description="Embedding name")
    config: dict[str, Any] = Field(default_factory=dict, description="Embedding config")
    has_file: bool = Field(False, description="Whether a binary has been uploaded")


class EmbeddingsResponse(ServerModel):
    embeddings: list[EmbeddingInfo]


# Models


class ModelInfo(ServerModel):
    model_id: str
    model_name: str


class ModelsResponse(ServerModel):
    models: list[ModelInfo]


class ModelConfig(ServerModel):
    """Full model configuration."""

    model_id: str
    model_name: str
    model_config_data: dict[str, Any] = Field(..., alias="model_config")


class NewModelResponse(ServerModel):
    model_id: str


class VersionInfo(ServerModel):
    version_id: str
    description: str = ""


class VersionsResponse(ServerModel):
    versions: list[VersionInfo]


class NewVersionResponse(ServerModel):
    version_id: str


class PredictionsResponse(ServerModel):
    predictions: dict[str, Any]


class PerformanceInfo(ServerModel):
    performance_id: str
    description: str = ""


class PerformancesResponse(ServerModel):
    performances: list[PerformanceInfo]


class PerformanceData(ServerModel):
    performance_id: str
    description: str = ""
    performance: list[Any]


class NewPerformanceResponse(ServerModel):
    performance_id: str
