"""GitHub Actions tools (REST): workflows, runs, jobs, logs and run control."""
import io
import logging
import re
import zipfile
from typing import Any, Dict, List, Optional, Tuple

from ..envelope import ToolResult
from ..utils.validation import repo_path
from .client import GitHubClient, RequestSpec
from .models import (
    ErrorInfo,
    JsonObject,
    Meta,
    WorkflowJobsPayload,
    WorkflowRunsPayload,
    WorkflowsPayload,
)
from .schemas import (
    GetJobLogsInput,
    GetWorkflowRunInput,
    ListWorkflowJobsInput,
    ListWorkflowRunsInput,
    ListWorkflowsInput,
    RunIdInput,
)

logger = logging.getLogger(__name__)

# GitHub prefixes every log line with an RFC 3339 timestamp.
LOG_TIMESTAMP = re.compile(r"^\ufeff?\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?Z ")
TRUNCATION_MARKER = "…(truncated)"


def map_workflow_run(run: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": run.get("id"),
        "run_number": run.get("run_number"),
        "event": run.get("event"),
        "status": run.get("status"),
        "conclusion": run.get("conclusion"),
        "head_sha": run.get("head_sha"),
        "created_at": run.get("created_at"),
        "updated_at": run.get("updated_at"),
    }


def map_workflow_job(job: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": job.get("id"),
        "name": job.get("name"),
        "status": job.get("status"),
        "conclusion": job.get("conclusion"),
        "started_at": job.get("started_at"),
        "completed_at": job.get("completed_at"),
    }


def _log_lines(text: str, tail_lines: Optional[int], include_timestamps: bool) -> Tuple[List[str], bool]:
    lines = text.splitlines()
    truncated = False
    if tail_lines is not None and len(lines) > tail_lines:
        lines = lines[-tail_lines:]
        truncated = True
    if not include_timestamps:
        lines = [LOG_TIMESTAMP.sub("", line, count=1) for line in lines]
    return lines, truncated


def aggregate_logs(
    payload: bytes,
    tail_lines: Optional[int] = None,
    include_timestamps: bool = False,
) -> Tuple[str, bool]:
    """Flatten a log download into one text blob.

    Job logs arrive as plain text; run log archives arrive as a ZIP whose
    ``.txt`` members are concatenated in archive order. ``tail_lines``
    applies per file.

    Raises:
        zipfile.BadZipFile: payload looks like a ZIP but cannot be read
    """
    if payload[:2] != b"PK":
        lines, truncated = _log_lines(payload.decode("utf-8", errors="replace"), tail_lines, include_timestamps)
        return "\n".join(lines), truncated

    lines = []
    truncated = False
    with zipfile.ZipFile(io.BytesIO(payload)) as archive:
        for info in archive.infolist():
            if info.is_dir() or not info.filename.endswith(".txt"):
                continue
            text = archive.read(info).decode("utf-8", errors="replace")
            file_lines, file_truncated = _log_lines(text, tail_lines, include_timestamps)
            lines.extend(file_lines)
            truncated = truncated or file_truncated
    return "\n".join(lines), truncated


class ActionsTools:
    """Workflow, run and job tools."""

    def __init__(self, client: GitHubClient):
        self.client = client

    async def list_workflows(self, params: ListWorkflowsInput) -> ToolResult:
        path = repo_path(params.owner, params.repo, "actions", "workflows")
        page = await self.client.rest_page(
            path, params.cursor, params.page, params.page_size, response_model=WorkflowsPayload
        )
        outcome = page.outcome
        if outcome.error:
            return ToolResult.failure(outcome.error, outcome.rate, items=None)

        workflows = outcome.value.workflows
        items = [
            {"id": w.get("id"), "name": w.get("name"), "path": w.get("path"), "state": w.get("state")}
            for w in workflows
        ]
        return ToolResult(
            data={"items": items},
            meta=Meta.page(page.next_cursor(len(workflows)), outcome.rate),
            text=f"{len(items)} workflows",
        )

    async def list_workflow_runs(self, params: ListWorkflowRunsInput) -> ToolResult:
        path = repo_path(params.owner, params.repo, "actions", "runs")
        filters = {
            "branch": params.branch,
            "event": params.event,
            "status": params.status,
            "actor": params.actor,
        }
        page = await self.client.rest_page(
            path, params.cursor, params.page, params.page_size,
            params=filters, response_model=WorkflowRunsPayload,
        )
        outcome = page.outcome
        if outcome.error:
            return ToolResult.failure(outcome.error, outcome.rate, items=None)

        runs = outcome.value.workflow_runs
        items = [map_workflow_run(run) for run in runs]
        return ToolResult(
            data={"items": items},
            meta=Meta.page(page.next_cursor(len(runs)), outcome.rate),
            text=f"{len(items)} workflow runs",
        )

    async def get_workflow_run(self, params: GetWorkflowRunInput) -> ToolResult:
        spec = RequestSpec(
            path=repo_path(params.owner, params.repo, "actions", "runs", params.run_id),
            params={"exclude_pull_requests": True} if params.exclude_pull_requests else None,
            response_model=JsonObject,
        )
        outcome = await self.client.rest(spec)
        if outcome.error:
            return ToolResult.failure(outcome.error, outcome.rate, item=None)

        item = map_workflow_run(outcome.value.root)
        state = item["conclusion"] or item["status"]
        return ToolResult(
            data={"item": item},
            meta=Meta(rate=outcome.rate),
            text=f"run {item['id']} {state}",
        )

    async def list_workflow_jobs(self, params: ListWorkflowJobsInput) -> ToolResult:
        path = repo_path(params.owner, params.repo, "actions", "runs", params.run_id, "jobs")
        page = await self.client.rest_page(
            path, params.cursor, params.page, params.page_size,
            params={"filter": params.filter}, response_model=WorkflowJobsPayload,
        )
        outcome = page.outcome
        if outcome.error:
            return ToolResult.failure(outcome.error, outcome.rate, items=None)

        jobs = outcome.value.jobs
        items = [map_workflow_job(job) for job in jobs]
        return ToolResult(
            data={"items": items},
            meta=Meta.page(page.next_cursor(len(jobs)), outcome.rate),
            text=f"{len(items)} jobs",
        )

    async def get_workflow_job_logs(self, params: GetJobLogsInput) -> ToolResult:
        """Download a job's logs.

        The endpoint redirects to a short-lived storage URL; httpx drops the
        Authorization header when the redirect leaves the API host.
        """
        spec = RequestSpec(
            path=repo_path(params.owner, params.repo, "actions", "jobs", params.job_id, "logs"),
            expect="bytes",
            follow_redirects=True,
        )
        outcome = await self.client.rest(spec)
        if outcome.error:
            return ToolResult.failure(outcome.error, outcome.rate, logs=None, truncated=False)

        try:
            logs, truncated = aggregate_logs(outcome.value or b"", params.tail_lines, params.include_timestamps)
        except zipfile.BadZipFile as e:
            logger.warning(f"Job {params.job_id} logs are not a readable archive: {e}")
            error = ErrorInfo(code="server_error", message="Invalid ZIP", retriable=False)
            return ToolResult.failure(error, outcome.rate, logs=None, truncated=False)

        text = f"{logs}\n{TRUNCATION_MARKER}" if truncated else logs
        return ToolResult(
            data={"logs": logs, "truncated": truncated},
            meta=Meta(rate=outcome.rate),
            text=text,
        )

    async def _run_action(self, params: RunIdInput, action: str, label: str) -> ToolResult:
        spec = RequestSpec(
            method="POST",
            path=repo_path(params.owner, params.repo, "actions", "runs", params.run_id, action),
            expect="none",
        )
        outcome = await self.client.rest(spec)
        if outcome.error:
            result = ToolResult.failure(outcome.error, outcome.rate, ok=False)
            result.text = f"{label} failed"
            return result

        logger.info(f"{label} accepted for run {params.run_id} (HTTP {outcome.status})")
        return ToolResult(data={"ok": True}, meta=Meta(rate=outcome.rate), text=f"{label} accepted")

    async def rerun_workflow_run(self, params: RunIdInput) -> ToolResult:
        return await self._run_action(params, "rerun", "rerun")

    async def rerun_workflow_run_failed(self, params: RunIdInput) -> ToolResult:
        return await self._run_action(params, "rerun-failed-jobs", "rerun of failed jobs")

    async def cancel_workflow_run(self, params: RunIdInput) -> ToolResult:
        return await self._run_action(params, "cancel", "cancel")
