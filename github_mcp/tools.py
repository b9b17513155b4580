"""The tool catalogue: every tool name, description, argument model and handler."""
import logging

from .config import Settings
from .envelope import ToolResult
from .github.actions import ActionsTools
from .github.client import GitHubClient
from .github.issues import IssueTools
from .github.pulls import PullRequestTools
from .github.schemas import (
    GetJobLogsInput,
    GetPullRequestInput,
    GetWorkflowRunInput,
    IssueNumberInput,
    ListIssueCommentsInput,
    ListIssuesInput,
    ListPrCommentsInput,
    ListPrFilesInput,
    ListPrReviewThreadsInput,
    ListPullRequestsInput,
    ListWorkflowJobsInput,
    ListWorkflowRunsInput,
    ListWorkflowsInput,
    PingInput,
    PrStatusSummaryInput,
    PullNumberInput,
    ReviewThreadInput,
    RunIdInput,
)
from .mcp_handler import MCPHandler

logger = logging.getLogger(__name__)


async def ping(params: PingInput) -> ToolResult:
    message = params.message if params.message is not None else "pong"
    return ToolResult(data={"message": message}, text=message)


def register_all_tools(mcp_handler: MCPHandler, client: GitHubClient, settings: Settings) -> None:
    """Populate the registry once at startup.

    Args:
        mcp_handler: Registry to fill
        client: Shared upstream client used by every GitHub tool
        settings: Feature flags (the ping tool is optional)
    """
    if settings.enable_ping:
        mcp_handler.register_tool(
            "ping", "Health check; echoes a message.", PingInput, ping, requires_token=False
        )

    issues = IssueTools(client)
    mcp_handler.register_tool(
        "list_issues", "List issues in a repository", ListIssuesInput, issues.list_issues
    )
    mcp_handler.register_tool(
        "get_issue", "Get a single issue by number", IssueNumberInput, issues.get_issue
    )
    mcp_handler.register_tool(
        "list_issue_comments_plain",
        "List issue comments (plain)",
        ListIssueCommentsInput,
        issues.list_issue_comments,
    )

    pulls = PullRequestTools(client)
    mcp_handler.register_tool(
        "list_pull_requests", "List pull requests", ListPullRequestsInput, pulls.list_pull_requests
    )
    mcp_handler.register_tool(
        "get_pull_request", "Get a single PR", GetPullRequestInput, pulls.get_pull_request
    )
    mcp_handler.register_tool(
        "get_pr_status_summary",
        "Summarize check runs and commit statuses on a PR's head commit",
        PrStatusSummaryInput,
        pulls.get_pr_status_summary,
    )
    mcp_handler.register_tool(
        "list_pr_comments_plain", "List PR issue comments (plain)", ListPrCommentsInput, pulls.list_pr_comments
    )
    mcp_handler.register_tool(
        "list_pr_review_threads_light",
        "List PR review threads (light)",
        ListPrReviewThreadsInput,
        pulls.list_pr_review_threads,
    )
    mcp_handler.register_tool(
        "resolve_pr_review_thread", "Resolve a PR review thread", ReviewThreadInput, pulls.resolve_review_thread
    )
    mcp_handler.register_tool(
        "unresolve_pr_review_thread",
        "Unresolve a PR review thread",
        ReviewThreadInput,
        pulls.unresolve_review_thread,
    )
    mcp_handler.register_tool(
        "list_pr_files_light", "List PR files (REST)", ListPrFilesInput, pulls.list_pr_files
    )
    mcp_handler.register_tool("get_pr_diff", "Get PR diff (REST)", PullNumberInput, pulls.get_pr_diff)
    mcp_handler.register_tool("get_pr_patch", "Get PR patch (REST)", PullNumberInput, pulls.get_pr_patch)

    actions = ActionsTools(client)
    mcp_handler.register_tool(
        "list_workflows_light", "List repository workflows (light)", ListWorkflowsInput, actions.list_workflows
    )
    mcp_handler.register_tool(
        "list_workflow_runs_light",
        "List workflow runs (light)",
        ListWorkflowRunsInput,
        actions.list_workflow_runs,
    )
    mcp_handler.register_tool(
        "get_workflow_run_light", "Get a workflow run (light)", GetWorkflowRunInput, actions.get_workflow_run
    )
    mcp_handler.register_tool(
        "list_workflow_jobs_light",
        "List jobs of a workflow run (light)",
        ListWorkflowJobsInput,
        actions.list_workflow_jobs,
    )
    mcp_handler.register_tool(
        "get_workflow_job_logs",
        "Get a job's logs as text, optionally tailed",
        GetJobLogsInput,
        actions.get_workflow_job_logs,
    )
    mcp_handler.register_tool(
        "rerun_workflow_run", "Re-run a workflow run", RunIdInput, actions.rerun_workflow_run
    )
    mcp_handler.register_tool(
        "rerun_workflow_run_failed",
        "Re-run only the failed jobs of a workflow run",
        RunIdInput,
        actions.rerun_workflow_run_failed,
    )
    mcp_handler.register_tool(
        "cancel_workflow_run", "Cancel a workflow run", RunIdInput, actions.cancel_workflow_run
    )

    logger.info(f"Registered {len(mcp_handler.tools)} tools")
