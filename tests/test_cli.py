"""Tests for the command-line entry point and process-level logging hooks."""
import logging
import sys

from click.testing import CliRunner

from github_mcp.config import SERVER_VERSION, Settings
from github_mcp.server import install_crash_guard, main, startup_summary


def test_version():
    result = CliRunner().invoke(main, ["--version"])
    assert result.exit_code == 0
    assert SERVER_VERSION in result.output


def test_help_lists_log_level():
    result = CliRunner().invoke(main, ["--help"])
    assert result.exit_code == 0
    assert "--log-level" in result.output


def test_rejects_unknown_log_level():
    result = CliRunner().invoke(main, ["--log-level", "chatty"])
    assert result.exit_code == 2


def test_startup_summary_never_contains_token():
    summary = startup_summary(Settings(token="super-secret"))
    assert summary["token_present"] is True
    assert "super-secret" not in str(summary)


def test_crash_guard_logs_then_delegates(monkeypatch, caplog):
    seen = []
    monkeypatch.setattr(sys, "excepthook", lambda *args: seen.append(args[0]))

    install_crash_guard()
    with caplog.at_level(logging.CRITICAL, logger="github_mcp.diag"):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            sys.excepthook(*sys.exc_info())

    assert seen == [RuntimeError]
    assert any(record.getMessage() == "Unhandled exception" for record in caplog.records)
