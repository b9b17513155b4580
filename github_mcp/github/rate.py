"""Rate-limit telemetry from REST headers and GraphQL ``rateLimit`` fields."""
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from .models import RateMeta


def _to_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _epoch_to_rfc3339(value: Any) -> Optional[str]:
    epoch = _to_int(value)
    if epoch is None:
        return None
    try:
        return datetime.fromtimestamp(epoch, tz=timezone.utc).isoformat()
    except (OverflowError, OSError, ValueError):
        return None


def extract_rate_from_rest(headers: Optional[Mapping[str, str]]) -> Optional[RateMeta]:
    """Read ``x-ratelimit-*`` headers.

    Returns None when none of the headers is present; individual missing
    or unparseable values stay None.
    """
    if not headers:
        return None
    lowered = {str(k).lower(): v for k, v in headers.items()}
    rate = RateMeta(
        remaining=_to_int(lowered.get("x-ratelimit-remaining")),
        used=_to_int(lowered.get("x-ratelimit-used")),
        reset_at=_epoch_to_rfc3339(lowered.get("x-ratelimit-reset")),
    )
    return None if rate.is_empty() else rate


def extract_rate_from_graphql(payload: Any) -> Optional[RateMeta]:
    """Read ``data.rateLimit {remaining used resetAt}`` from a GraphQL body."""
    if not isinstance(payload, dict):
        return None
    data = payload.get("data")
    if not isinstance(data, dict):
        return None
    limit = data.get("rateLimit")
    if not isinstance(limit, dict):
        return None
    reset_at = limit.get("resetAt")
    rate = RateMeta(
        remaining=_to_int(limit.get("remaining")),
        used=_to_int(limit.get("used")),
        reset_at=reset_at if isinstance(reset_at, str) else None,
    )
    return None if rate.is_empty() else rate
