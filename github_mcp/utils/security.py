"""Keeping credentials out of logs and error messages."""
import re
from typing import Optional

# Classic and fine-grained GitHub token formats.
GITHUB_TOKEN_PATTERN = re.compile(r"\b(?:gh[pousr]_[A-Za-z0-9]{20,}|github_pat_[A-Za-z0-9_]{20,})\b")
BEARER_PATTERN = re.compile(r"(?i)(bearer|token)\s+[A-Za-z0-9_\-\.]{10,}")

REDACTED = "***"


def redact_secrets(text: str, token: Optional[str] = None) -> str:
    """Mask the configured token and anything shaped like a GitHub token."""
    if not text:
        return text
    if token:
        text = text.replace(token, REDACTED)
    text = GITHUB_TOKEN_PATTERN.sub(REDACTED, text)
    return BEARER_PATTERN.sub(lambda m: f"{m.group(1)} {REDACTED}", text)
