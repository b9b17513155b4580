"""Shaping tool results into MCP ``tools/call`` envelopes."""
import json
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .github.models import ErrorInfo, Meta, RateMeta


class ToolResult(BaseModel):
    """What a tool handler hands back before wrapping.

    ``data`` holds the tool-specific fields (``items``, ``item``, ``diff``...);
    ``meta`` and ``error`` are added by the envelope.
    """

    data: Dict[str, Any] = Field(default_factory=dict)
    meta: Meta = Field(default_factory=Meta)
    error: Optional[ErrorInfo] = None
    text: Optional[str] = None

    @classmethod
    def failure(
        cls,
        error: ErrorInfo,
        rate: Optional[RateMeta] = None,
        **data: Any,
    ) -> "ToolResult":
        """A result carrying an upstream error; ``data`` gives the empty fields."""
        return cls(data=data, meta=Meta(rate=rate), error=error)


def prune_meta(meta: Meta, include_rate: bool) -> Optional[Dict[str, Any]]:
    """Drop pagination and rate fields that carry no information.

    Returns None when nothing is left, in which case ``meta`` is omitted.
    """
    pruned: Dict[str, Any] = {}
    if meta.has_more:
        pruned["next_cursor"] = meta.next_cursor
        pruned["has_more"] = True
    if include_rate and meta.rate is not None:
        pruned["rate"] = meta.rate.model_dump()
    return pruned or None


def wrap_tool_result(result: ToolResult, include_rate: bool = False) -> Dict[str, Any]:
    """Build ``{content, structuredContent, isError?}`` for a tool result.

    Args:
        result: Output of a tool handler
        include_rate: Keep ``meta.rate`` (the caller's ``_include_rate`` flag)

    Returns:
        JSON-ready dict for the JSON-RPC ``result`` member
    """
    structured: Dict[str, Any] = dict(result.data)
    meta = prune_meta(result.meta, include_rate)
    if meta is not None:
        structured["meta"] = meta
    if result.error is not None:
        structured["error"] = result.error.model_dump()

    text = result.text
    if text is None:
        text = json.dumps(structured, separators=(",", ":"), ensure_ascii=False)

    envelope: Dict[str, Any] = {
        "content": [{"type": "text", "text": text}],
        "structuredContent": structured,
    }
    if result.error is not None:
        envelope["isError"] = True
    return envelope
