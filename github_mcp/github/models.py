"""Shared models for upstream calls: errors, rate telemetry, pagination meta."""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, RootModel, field_validator, model_validator


class ErrorInfo(BaseModel):
    """Classified upstream failure surfaced to the caller."""

    code: str
    message: str
    retriable: bool


class RateMeta(BaseModel):
    """Rate-limit telemetry. ``None`` means unknown, never zero."""

    remaining: Optional[int] = None
    used: Optional[int] = None
    reset_at: Optional[str] = None

    def is_empty(self) -> bool:
        return self.remaining is None and self.used is None and self.reset_at is None


class Meta(BaseModel):
    """Pagination and rate metadata attached to every tool result."""

    next_cursor: Optional[str] = None
    has_more: bool = False
    rate: Optional[RateMeta] = None

    @model_validator(mode="after")
    def _cursor_iff_more(self) -> "Meta":
        if self.has_more and not self.next_cursor:
            raise ValueError("has_more requires next_cursor")
        if self.next_cursor and not self.has_more:
            raise ValueError("next_cursor requires has_more")
        return self

    @classmethod
    def page(cls, next_cursor: Optional[str], rate: Optional[RateMeta] = None) -> "Meta":
        """Build meta from an optional next cursor; has_more follows it."""
        return cls(next_cursor=next_cursor or None, has_more=bool(next_cursor), rate=rate)

    @classmethod
    def from_page_info(cls, page_info: Optional[Dict[str, Any]], rate: Optional[RateMeta] = None) -> "Meta":
        """GraphQL ``pageInfo``; ``endCursor`` passes through untouched."""
        if not isinstance(page_info, dict):
            page_info = {}
        cursor = page_info.get("endCursor") if page_info.get("hasNextPage") else None
        return cls.page(cursor, rate)


class RestCursor(BaseModel):
    """Position in a REST page-numbered listing."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    page: int
    per_page: int
    # Exact next path (query included) taken from the Link header.
    path: Optional[str] = None

    @model_validator(mode="after")
    def _non_negative(self) -> "RestCursor":
        if self.page < 0 or self.per_page < 0:
            raise ValueError("page and per_page must be unsigned")
        return self

    @field_validator("path")
    @classmethod
    def _relative_path(cls, value: Optional[str]) -> Optional[str]:
        # Only paths under the API base URL; never another host.
        if value is not None and not is_relative_api_path(value):
            raise ValueError("path must be relative to the API base URL")
        return value


class HttpOutcome(BaseModel):
    """Result of one GitHubClient call, after any retries."""

    value: Optional[Any] = None
    status: Optional[int] = None
    headers: Optional[Dict[str, str]] = None
    rate: Optional[RateMeta] = None
    error: Optional[ErrorInfo] = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.error is None

    def header(self, name: str) -> Optional[str]:
        if not self.headers:
            return None
        return self.headers.get(name.lower())


def not_found(what: str) -> ErrorInfo:
    """GraphQL reports missing objects as null data rather than 404."""
    return ErrorInfo(code="not_found", message=f"{what} not found", retriable=False)


def dig(value: Any, *keys: str) -> Any:
    """Walk nested dicts, returning None at the first missing level."""
    for key in keys:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def is_relative_api_path(path: str) -> bool:
    """True for ``/some/path?query``; false for absolute or scheme-relative URLs."""
    if not path.startswith("/") or path.startswith("//") or path.startswith("/\\"):
        return False
    return "://" not in path.split("?", 1)[0]


def connection_nodes(connection: Any) -> List[Dict[str, Any]]:
    """``nodes`` of a GraphQL connection; null entries are skipped."""
    if not isinstance(connection, dict):
        return []
    return [node for node in connection.get("nodes") or [] if isinstance(node, dict)]


# Expected shapes of REST payloads; a mismatch is a decode failure.

class JsonObject(RootModel[Dict[str, Any]]):
    pass


class JsonObjectList(RootModel[List[Dict[str, Any]]]):
    pass


class WorkflowsPayload(BaseModel):
    workflows: List[Dict[str, Any]] = []


class WorkflowRunsPayload(BaseModel):
    workflow_runs: List[Dict[str, Any]] = []


class WorkflowJobsPayload(BaseModel):
    jobs: List[Dict[str, Any]] = []
