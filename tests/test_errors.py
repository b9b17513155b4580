"""Tests for upstream error classification and secret redaction."""
import httpx
import pytest

from github_mcp.utils.errors import (
    MAX_ERROR_MESSAGE_CHARS,
    classify_decode_error,
    classify_status,
    classify_transport_error,
)
from github_mcp.utils.security import redact_secrets
from github_mcp.utils.validation import encode_path_segment, repo_path


@pytest.mark.parametrize("status,code,retriable", [
    (400, "bad_request", False),
    (401, "unauthorized", False),
    (403, "forbidden", False),
    (404, "not_found", False),
    (409, "conflict", False),
    (429, "rate_limited", True),
    (500, "upstream_error", True),
    (502, "upstream_error", True),
    (599, "upstream_error", True),
    (418, "server_error", False),
    (422, "server_error", False),
    (302, "server_error", False),
])
def test_classify_status_table(status, code, retriable):
    error = classify_status(status, "")
    assert error.code == code
    assert error.retriable is retriable


def test_message_prefers_github_json_message():
    body = '{"message": "Not Found", "documentation_url": "https://docs.github.com"}'
    assert classify_status(404, body).message == "Not Found"


def test_message_falls_back_to_body_then_status():
    assert classify_status(500, "upstream exploded").message == "upstream exploded"
    assert classify_status(500, "").message == "HTTP 500"


def test_message_is_truncated():
    error = classify_status(400, "x" * (MAX_ERROR_MESSAGE_CHARS * 3))
    assert len(error.message) == MAX_ERROR_MESSAGE_CHARS


def test_transport_error_is_retriable_upstream_error():
    error = classify_transport_error(httpx.ConnectError("connection refused"))
    assert error.code == "upstream_error"
    assert error.retriable is True
    assert "connection refused" in error.message


def test_decode_error_is_terminal_server_error():
    error = classify_decode_error(ValueError("Expecting value"))
    assert error.code == "server_error"
    assert error.retriable is False
    assert error.message.startswith("Failed to decode response")


class TestRedaction:

    def test_configured_token_is_masked(self):
        assert redact_secrets("bad credentials for s3cr3t-value", "s3cr3t-value") == "bad credentials for ***"

    def test_github_token_shapes_are_masked(self):
        text = "token ghp_" + "a" * 36 + " rejected"
        assert "ghp_" not in redact_secrets(text)

    def test_bearer_header_is_masked(self):
        assert redact_secrets("Authorization: Bearer abcdefghijklmnop") == "Authorization: Bearer ***"

    def test_plain_text_untouched(self):
        assert redact_secrets("Repository not found") == "Repository not found"


class TestPathSegments:

    def test_unreserved_characters_pass_through(self):
        assert encode_path_segment("my-repo_1.x~") == "my-repo_1.x~"

    def test_reserved_characters_are_encoded(self):
        assert encode_path_segment("a/b c?d#e") == "a%2Fb%20c%3Fd%23e"

    def test_repo_path(self):
        assert repo_path("octo", "hello world", "pulls", 7, "files") == "/repos/octo/hello%20world/pulls/7/files"
