"""Argument models for every tool; their JSON Schema is the tool's inputSchema."""
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ..utils.validation import validate_owner, validate_repo
from .pagination import DEFAULT_PER_PAGE, MAX_PER_PAGE


class PingInput(BaseModel):
    message: Optional[str] = Field(None, description="Text echoed back (default 'pong')")


class RepoInput(BaseModel):
    owner: str = Field(..., min_length=1, description="Repository owner (user or organisation)")
    repo: str = Field(..., min_length=1, description="Repository name")

    @field_validator("owner")
    @classmethod
    def _check_owner(cls, value: str) -> str:
        if not validate_owner(value):
            raise ValueError(f"invalid owner: {value!r}")
        return value

    @field_validator("repo")
    @classmethod
    def _check_repo(cls, value: str) -> str:
        if not validate_repo(value):
            raise ValueError(f"invalid repository name: {value!r}")
        return value


class GraphQLPageInput(BaseModel):
    cursor: Optional[str] = Field(None, description="Opaque cursor from a previous call")
    limit: int = Field(DEFAULT_PER_PAGE, ge=1, le=MAX_PER_PAGE, description="Page size (1..100)")


class RestPageInput(BaseModel):
    cursor: Optional[str] = Field(None, description="Opaque cursor from a previous call")
    page: Optional[int] = Field(None, ge=1, description="Page number when no cursor is given")
    per_page: Optional[int] = Field(None, ge=1, le=MAX_PER_PAGE, description="Page size (1..100)")
    limit: Optional[int] = Field(None, ge=1, le=MAX_PER_PAGE, description="Alias of per_page")

    @property
    def page_size(self) -> Optional[int]:
        return self.per_page or self.limit


class AuthorFlag(BaseModel):
    include_author: bool = Field(False, description="Include author_login on each item")


# Issues

class ListIssuesInput(RepoInput, GraphQLPageInput, AuthorFlag):
    state: Optional[Literal["open", "closed", "OPEN", "CLOSED"]] = None
    labels: Optional[List[str]] = None
    creator: Optional[str] = None
    assignee: Optional[str] = None
    mentions: Optional[str] = None
    since: Optional[str] = Field(None, description="ISO 8601 timestamp")
    sort: Optional[Literal["created_at", "updated_at", "comments"]] = None
    direction: Optional[Literal["asc", "desc"]] = None


class IssueNumberInput(RepoInput, AuthorFlag):
    number: int = Field(..., ge=1)


class ListIssueCommentsInput(IssueNumberInput, GraphQLPageInput):
    pass


# Pull requests

class ListPullRequestsInput(RepoInput, GraphQLPageInput, AuthorFlag):
    state: Optional[Literal["open", "closed", "merged", "OPEN", "CLOSED", "MERGED"]] = None
    base: Optional[str] = Field(None, description="Base branch name")
    head: Optional[str] = Field(None, description="Head branch name")


class PullNumberInput(RepoInput):
    number: int = Field(..., ge=1)


class GetPullRequestInput(PullNumberInput, AuthorFlag):
    pass


class ListPrCommentsInput(PullNumberInput, GraphQLPageInput, AuthorFlag):
    pass


class ListPrReviewThreadsInput(PullNumberInput, GraphQLPageInput, AuthorFlag):
    include_location: bool = Field(False, description="Include path/line/side of each thread")


class PrStatusSummaryInput(PullNumberInput):
    include_failing_contexts: bool = False
    limit_contexts: int = Field(10, ge=1, le=MAX_PER_PAGE)


class ReviewThreadInput(BaseModel):
    thread_id: str = Field(..., min_length=1, description="GraphQL node id of the review thread")


class ListPrFilesInput(PullNumberInput, RestPageInput):
    include_patch: bool = False


# Actions

class ListWorkflowsInput(RepoInput, RestPageInput):
    pass


class ListWorkflowRunsInput(RepoInput, RestPageInput):
    branch: Optional[str] = None
    event: Optional[str] = None
    status: Optional[str] = None
    actor: Optional[str] = None


class RunIdInput(RepoInput):
    run_id: int = Field(..., ge=1)


class GetWorkflowRunInput(RunIdInput):
    exclude_pull_requests: bool = False


class ListWorkflowJobsInput(RunIdInput, RestPageInput):
    filter: Optional[Literal["latest", "all"]] = None


class GetJobLogsInput(RepoInput):
    job_id: int = Field(..., ge=1)
    tail_lines: Optional[int] = Field(None, ge=1, description="Keep only the last N lines of each log file")
    include_timestamps: bool = Field(False, description="Keep the timestamp GitHub prefixes to each line")
