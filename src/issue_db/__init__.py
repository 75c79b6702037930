"""Client library for the issue database REST API."""

__version__ = "0.1.0"

from issue_db.api import IssueAPI
from issue_db.comments import LabelingComment
from issue_db.embeddings import Embedding
from issue_db.errors import (
    APIError,
    AuthenticationError,
    IDParsingError,
    IssueDBError,
    ProtocolViolationError,
    RemoteError,
)
from issue_db.issues import Issue, IssueData, IssueLoadingSettings
from issue_db.models import Model, ModelVersion, TestRun
from issue_db.policies import CachingPolicy, ConfigHandlingPolicy, IssueAttribute
from issue_db.repository import IssueRepo, IssueRepository
from issue_db.schemas import Label
from issue_db.tags import Tag

__all__ = [
    "APIError",
    "AuthenticationError",
    "CachingPolicy",
    "ConfigHandlingPolicy",
    "Embedding",
    "IDParsingError",
    "Issue",
    "IssueAPI",
    "IssueAttribute",
    "IssueData",
    "IssueDBError",
    "IssueLoadingSettings",
    "IssueRepo",
    "IssueRepository",
    "Label",
    "LabelingComment",
    "Model",
    "ModelVersion",
    "ProtocolViolationError",
    "RemoteError",
    "Tag",
    "TestRun",
    "__version__",
]
