"""Opaque REST pagination cursors and Link header parsing.

REST listings are page-numbered; the cursor handed to callers is the
URL-safe, unpadded base64 of compact JSON ``{"page", "per_page", "path"?}``.
GraphQL listings carry their own ``endCursor`` and never go through here.
"""
import base64
import binascii
import json
import logging
from typing import Optional, Tuple
from urllib.parse import urlsplit

from pydantic import ValidationError

from .models import RestCursor, is_relative_api_path

logger = logging.getLogger(__name__)

DEFAULT_PER_PAGE = 30
MAX_PER_PAGE = 100


def encode_rest_cursor(cursor: RestCursor) -> str:
    """Encode a cursor as an opaque token (deterministic)."""
    payload = cursor.model_dump(exclude_none=True)
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_rest_cursor(token: Optional[str]) -> Optional[RestCursor]:
    """Decode an opaque token; any malformed input yields None."""
    if not isinstance(token, str) or not token:
        return None
    padded = token + "=" * (-len(token) % 4)
    try:
        raw = base64.b64decode(padded, altchars=b"-_", validate=True)
        payload = json.loads(raw.decode("utf-8"))
        return RestCursor.model_validate(payload)
    except (binascii.Error, ValueError, UnicodeDecodeError, ValidationError):
        logger.debug(f"Ignoring undecodable cursor: {token[:40]!r}")
        return None


def _link_parts(link_header: Optional[str]):
    if not link_header:
        return
    for part in link_header.split(","):
        segment = part.strip()
        start = segment.find("<")
        end = segment.find(">")
        if start == -1 or end <= start:
            continue
        yield segment[start + 1:end], segment[end + 1:]


def has_next_page_from_link(link_header: Optional[str]) -> bool:
    """True when the Link header advertises a ``rel="next"`` page."""
    return any('rel="next"' in params for _, params in _link_parts(link_header))


def extract_next_path_from_link(link_header: Optional[str]) -> Optional[str]:
    """Relative path (query included) of the ``rel="next"`` link.

    ``<https://api.github.com/repos/o/r/pulls?page=2>; rel="next"`` gives
    ``/repos/o/r/pulls?page=2``.
    """
    for target, params in _link_parts(link_header):
        if 'rel="next"' not in params:
            continue
        parts = urlsplit(target)
        path = parts.path or "/"
        if parts.query:
            path = f"{path}?{parts.query}"
        return path if is_relative_api_path(path) else None
    return None


def resolve_page_cursor(
    cursor: Optional[str],
    page: Optional[int] = None,
    per_page: Optional[int] = None,
) -> Tuple[int, int, Optional[str]]:
    """Work out where a REST listing resumes.

    Args:
        cursor: Opaque token from a previous call, if any
        page: Explicit page number (used when no valid cursor)
        per_page: Explicit page size (used when no valid cursor)

    Returns:
        (page, per_page, exact_path). ``exact_path`` is set when the cursor
        carried the upstream's own next link.
    """
    decoded = decode_rest_cursor(cursor) if cursor else None
    if decoded is not None:
        return decoded.page, decoded.per_page, decoded.path
    size = min(per_page or DEFAULT_PER_PAGE, MAX_PER_PAGE)
    return page or 1, size, None


def next_rest_cursor(
    link_header: Optional[str],
    page: int,
    per_page: int,
    item_count: int,
    resumed_from_link: bool = False,
) -> Optional[str]:
    """Next-page token for a REST listing, or None when it is exhausted.

    The Link header's exact next path wins. Without any Link header, a full
    page is taken to mean more pages may follow (a full last page gives a
    false positive), unless this page was itself reached through a Link
    path: such an endpoint advertises every next page, so silence means
    the listing ended.
    """
    if link_header is not None:
        if not has_next_page_from_link(link_header):
            return None
        return encode_rest_cursor(
            RestCursor(page=page + 1, per_page=per_page, path=extract_next_path_from_link(link_header))
        )
    if resumed_from_link:
        return None
    if per_page and item_count >= per_page:
        return encode_rest_cursor(RestCursor(page=page + 1, per_page=per_page))
    return None
