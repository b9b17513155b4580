"""Input validation helpers for tool arguments."""
import re
from urllib.parse import quote

VALID_OWNER_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9\-]*$")
VALID_REPO_NAME = re.compile(r"^[A-Za-z0-9_.\-]+$")


def encode_path_segment(value: str) -> str:
    """Percent-encode one URL path segment.

    Only RFC 3986 unreserved characters (``A-Za-z0-9-._~``) pass through,
    so ``/`` and spaces inside a value can never change the request path.
    """
    return quote(str(value), safe="-._~")


def validate_owner(name: str) -> bool:
    """Validate a GitHub user/organisation login."""
    return bool(VALID_OWNER_NAME.match(name))


def validate_repo(name: str) -> bool:
    """Validate a repository name."""
    return bool(VALID_REPO_NAME.match(name)) and name not in (".", "..")


def repo_path(owner: str, repo: str, *segments) -> str:
    """Build ``/repos/{owner}/{repo}/...`` with every segment encoded.

    Example:
        repo_path("octo", "hello", "issues", 7) -> "/repos/octo/hello/issues/7"
    """
    parts = [encode_path_segment(owner), encode_path_segment(repo)]
    parts.extend(encode_path_segment(str(s)) for s in segments)
    return "/repos/" + "/".join(parts)
