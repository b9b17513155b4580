"""Pull request tools: GraphQL for conversation data, REST for files and diffs."""
import logging
from typing import Any, Dict, List, Optional

from ..envelope import ToolResult
from ..utils.validation import repo_path
from .client import ACCEPT_DIFF, ACCEPT_PATCH, GitHubClient, RequestSpec
from .issues import map_comment
from .models import JsonObjectList, Meta, connection_nodes, dig, not_found
from .schemas import (
    GetPullRequestInput,
    ListPrCommentsInput,
    ListPrFilesInput,
    ListPrReviewThreadsInput,
    ListPullRequestsInput,
    PrStatusSummaryInput,
    PullNumberInput,
    ReviewThreadInput,
)

logger = logging.getLogger(__name__)

LIST_PULL_REQUESTS_QUERY = """
query ListPullRequests($owner: String!, $repo: String!, $first: Int = 30, $after: String,
                       $states: [PullRequestState!], $base: String, $head: String) {
  repository(owner: $owner, name: $repo) {
    pullRequests(first: $first, after: $after, states: $states, baseRefName: $base, headRefName: $head,
                 orderBy: { field: UPDATED_AT, direction: DESC }) {
      nodes { id number title state createdAt updatedAt author { login } }
      pageInfo { hasNextPage endCursor }
    }
  }
  rateLimit { remaining used resetAt }
}
"""

GET_PULL_REQUEST_QUERY = """
query GetPullRequest($owner: String!, $repo: String!, $number: Int!) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $number) {
      id number title body state isDraft merged mergedAt createdAt updatedAt author { login }
    }
  }
  rateLimit { remaining used resetAt }
}
"""

PR_STATUS_SUMMARY_QUERY = """
query GetPrStatusSummary($owner: String!, $repo: String!, $number: Int!, $limit_contexts: Int = 10) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $number) {
      commits(last: 1) {
        nodes {
          commit {
            oid
            statusCheckRollup {
              state
              contexts(first: $limit_contexts) {
                nodes {
                  __typename
                  ... on CheckRun { name conclusion status }
                  ... on StatusContext { context state }
                }
              }
            }
          }
        }
      }
    }
  }
  rateLimit { remaining used resetAt }
}
"""

LIST_PR_COMMENTS_QUERY = """
query ListPrComments($owner: String!, $repo: String!, $number: Int!, $first: Int = 30, $after: String) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $number) {
      comments(first: $first, after: $after) {
        nodes { id body createdAt updatedAt author { login } }
        pageInfo { hasNextPage endCursor }
      }
    }
  }
  rateLimit { remaining used resetAt }
}
"""

LIST_PR_REVIEW_THREADS_QUERY = """
query ListPrReviewThreads($owner: String!, $repo: String!, $number: Int!, $first: Int = 30, $after: String) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $number) {
      reviewThreads(first: $first, after: $after) {
        nodes {
          id isResolved isOutdated comments { totalCount } resolvedBy { login }
          path line startLine diffSide startDiffSide
        }
        pageInfo { hasNextPage endCursor }
      }
    }
  }
  rateLimit { remaining used resetAt }
}
"""

RESOLVE_THREAD_MUTATION = """
mutation ResolvePrReviewThread($thread_id: ID!) {
  resolveReviewThread(input: { threadId: $thread_id }) { thread { id isResolved } }
}
"""

UNRESOLVE_THREAD_MUTATION = """
mutation UnresolvePrReviewThread($thread_id: ID!) {
  unresolveReviewThread(input: { threadId: $thread_id }) { thread { id isResolved } }
}
"""

SUCCESS_STATES = {"SUCCESS", "NEUTRAL", "SKIPPED"}
PENDING_STATES = {"PENDING", "QUEUED", "IN_PROGRESS", "EXPECTED", "WAITING", "REQUESTED"}
FAILURE_STATES = {"FAILURE", "ERROR", "CANCELLED", "TIMED_OUT", "ACTION_REQUIRED", "STARTUP_FAILURE"}


def _context_name_and_state(node: Dict[str, Any]):
    if node.get("__typename") == "CheckRun":
        # A CheckRun has no conclusion until it completes.
        state = node.get("conclusion") or node.get("status")
        return node.get("name"), (state or "").upper()
    return node.get("context"), (node.get("state") or "").upper()


def summarize_status_contexts(nodes: List[Dict[str, Any]], include_failing: bool) -> Dict[str, Any]:
    """Count check runs and commit statuses by outcome.

    Returns:
        ``{overall_state, counts: {success, pending, failure}, failing_contexts?}``
    """
    counts = {"success": 0, "pending": 0, "failure": 0}
    failing: List[str] = []
    for node in nodes:
        name, state = _context_name_and_state(node)
        if state in SUCCESS_STATES:
            counts["success"] += 1
        elif state in PENDING_STATES:
            counts["pending"] += 1
        elif state in FAILURE_STATES:
            counts["failure"] += 1
            if name:
                failing.append(name)

    if counts["failure"]:
        overall = "FAILURE"
    elif counts["pending"]:
        overall = "PENDING"
    else:
        overall = "SUCCESS"

    summary: Dict[str, Any] = {"overall_state": overall, "counts": counts}
    if include_failing:
        summary["failing_contexts"] = failing
    return summary


class PullRequestTools:
    """Read and light-write operations on pull requests."""

    def __init__(self, client: GitHubClient):
        self.client = client

    async def list_pull_requests(self, params: ListPullRequestsInput) -> ToolResult:
        variables = {
            "owner": params.owner,
            "repo": params.repo,
            "first": params.limit,
            "after": params.cursor,
            "states": [params.state.upper()] if params.state else None,
            "base": params.base,
            "head": params.head,
        }
        outcome = await self.client.graphql(LIST_PULL_REQUESTS_QUERY, variables)
        if outcome.error:
            return ToolResult.failure(outcome.error, outcome.rate, items=None)

        pulls = dig(outcome.value, "repository", "pullRequests")
        if not isinstance(pulls, dict):
            return ToolResult.failure(not_found("Repository"), outcome.rate, items=None)

        items = []
        for node in connection_nodes(pulls):
            item = {
                "id": node.get("id"),
                "number": node.get("number"),
                "title": node.get("title"),
                "state": node.get("state"),
                "created_at": node.get("createdAt"),
                "updated_at": node.get("updatedAt"),
            }
            login = dig(node, "author", "login")
            if params.include_author and login:
                item["author_login"] = login
            items.append(item)

        return ToolResult(
            data={"items": items},
            meta=Meta.from_page_info(pulls.get("pageInfo"), outcome.rate),
            text=f"{len(items)} pull requests",
        )

    async def get_pull_request(self, params: GetPullRequestInput) -> ToolResult:
        variables = {"owner": params.owner, "repo": params.repo, "number": params.number}
        outcome = await self.client.graphql(GET_PULL_REQUEST_QUERY, variables)
        if outcome.error:
            return ToolResult.failure(outcome.error, outcome.rate, item=None)

        node = dig(outcome.value, "repository", "pullRequest")
        if not isinstance(node, dict):
            return ToolResult.failure(not_found("Pull request"), outcome.rate, item=None)

        item = {
            "id": node.get("id"),
            "number": node.get("number"),
            "title": node.get("title"),
            "state": node.get("state"),
            "is_draft": bool(node.get("isDraft")),
            "created_at": node.get("createdAt"),
            "updated_at": node.get("updatedAt"),
            "merged": bool(node.get("merged")),
        }
        if node.get("body") is not None:
            item["body"] = node["body"]
        if node.get("mergedAt"):
            item["merged_at"] = node["mergedAt"]
        login = dig(node, "author", "login")
        if params.include_author and login:
            item["author_login"] = login

        return ToolResult(
            data={"item": item},
            meta=Meta(rate=outcome.rate),
            text=f"PR #{item['number']} {item['state']}",
        )

    async def get_pr_status_summary(self, params: PrStatusSummaryInput) -> ToolResult:
        variables = {
            "owner": params.owner,
            "repo": params.repo,
            "number": params.number,
            "limit_contexts": params.limit_contexts,
        }
        outcome = await self.client.graphql(PR_STATUS_SUMMARY_QUERY, variables)
        if outcome.error:
            return ToolResult.failure(outcome.error, outcome.rate, item=None)

        pull = dig(outcome.value, "repository", "pullRequest")
        if not isinstance(pull, dict):
            return ToolResult.failure(not_found("Pull request"), outcome.rate, item=None)

        commits = connection_nodes(pull.get("commits"))
        contexts: List[Dict[str, Any]] = []
        if commits:
            contexts = connection_nodes(dig(commits[0], "commit", "statusCheckRollup", "contexts"))

        summary = summarize_status_contexts(contexts, params.include_failing_contexts)
        counts = summary["counts"]
        return ToolResult(
            data={"item": summary},
            meta=Meta(rate=outcome.rate),
            text=f"status: S={counts['success']} P={counts['pending']} F={counts['failure']}",
        )

    async def list_pr_comments(self, params: ListPrCommentsInput) -> ToolResult:
        variables = {
            "owner": params.owner,
            "repo": params.repo,
            "number": params.number,
            "first": params.limit,
            "after": params.cursor,
        }
        outcome = await self.client.graphql(LIST_PR_COMMENTS_QUERY, variables)
        if outcome.error:
            return ToolResult.failure(outcome.error, outcome.rate, items=None)

        comments = dig(outcome.value, "repository", "pullRequest", "comments")
        if not isinstance(comments, dict):
            return ToolResult.failure(not_found("Pull request"), outcome.rate, items=None)

        items = [map_comment(node, params.include_author) for node in connection_nodes(comments)]
        return ToolResult(
            data={"items": items},
            meta=Meta.from_page_info(comments.get("pageInfo"), outcome.rate),
            text=f"{len(items)} comments",
        )

    async def list_pr_review_threads(self, params: ListPrReviewThreadsInput) -> ToolResult:
        variables = {
            "owner": params.owner,
            "repo": params.repo,
            "number": params.number,
            "first": params.limit,
            "after": params.cursor,
        }
        outcome = await self.client.graphql(LIST_PR_REVIEW_THREADS_QUERY, variables)
        if outcome.error:
            return ToolResult.failure(outcome.error, outcome.rate, items=None)

        threads = dig(outcome.value, "repository", "pullRequest", "reviewThreads")
        if not isinstance(threads, dict):
            return ToolResult.failure(not_found("Pull request"), outcome.rate, items=None)

        items = []
        for node in connection_nodes(threads):
            item: Dict[str, Any] = {
                "id": node.get("id"),
                "is_resolved": bool(node.get("isResolved")),
                "is_outdated": bool(node.get("isOutdated")),
                "comments_count": dig(node, "comments", "totalCount") or 0,
            }
            resolved_by = dig(node, "resolvedBy", "login")
            if params.include_author and resolved_by:
                item["resolved_by_login"] = resolved_by
            if params.include_location:
                location = {
                    "path": node.get("path"),
                    "line": node.get("line"),
                    "start_line": node.get("startLine"),
                    "side": node.get("diffSide"),
                    "start_side": node.get("startDiffSide"),
                }
                item.update({k: v for k, v in location.items() if v is not None})
            items.append(item)

        return ToolResult(
            data={"items": items},
            meta=Meta.from_page_info(threads.get("pageInfo"), outcome.rate),
            text=f"{len(items)} review threads",
        )

    async def _set_thread_resolution(self, thread_id: str, resolve: bool) -> ToolResult:
        mutation = RESOLVE_THREAD_MUTATION if resolve else UNRESOLVE_THREAD_MUTATION
        field = "resolveReviewThread" if resolve else "unresolveReviewThread"
        verb = "resolved" if resolve else "unresolved"

        outcome = await self.client.graphql(mutation, {"thread_id": thread_id})
        if outcome.error:
            result = ToolResult.failure(outcome.error, outcome.rate, ok=False, thread_id=thread_id, is_resolved=False)
            result.text = f"thread {verb}: false"
            return result

        is_resolved = bool(dig(outcome.value, field, "thread", "isResolved"))
        logger.info(f"Review thread {thread_id} {verb}")
        return ToolResult(
            data={"ok": True, "thread_id": thread_id, "is_resolved": is_resolved},
            meta=Meta(rate=outcome.rate),
            text=f"thread {verb}: {str(is_resolved if resolve else not is_resolved).lower()}",
        )

    async def resolve_review_thread(self, params: ReviewThreadInput) -> ToolResult:
        return await self._set_thread_resolution(params.thread_id, resolve=True)

    async def unresolve_review_thread(self, params: ReviewThreadInput) -> ToolResult:
        return await self._set_thread_resolution(params.thread_id, resolve=False)

    async def list_pr_files(self, params: ListPrFilesInput) -> ToolResult:
        path = repo_path(params.owner, params.repo, "pulls", params.number, "files")
        page = await self.client.rest_page(
            path, params.cursor, params.page, params.page_size, response_model=JsonObjectList
        )
        outcome = page.outcome
        if outcome.error:
            return ToolResult.failure(outcome.error, outcome.rate, items=None)

        files = outcome.value.root
        items = []
        for f in files:
            item = {
                "filename": f.get("filename"),
                "status": f.get("status"),
                "additions": f.get("additions", 0),
                "deletions": f.get("deletions", 0),
                "changes": f.get("changes", 0),
                "sha": f.get("sha"),
            }
            if params.include_patch and f.get("patch") is not None:
                item["patch"] = f["patch"]
            items.append(item)

        return ToolResult(
            data={"items": items},
            meta=Meta.page(page.next_cursor(len(files)), outcome.rate),
            text=f"{len(items)} files",
        )

    async def _get_pr_text(self, params: PullNumberInput, kind: str) -> ToolResult:
        accept = ACCEPT_DIFF if kind == "diff" else ACCEPT_PATCH
        spec = RequestSpec(
            path=repo_path(params.owner, params.repo, "pulls", params.number),
            accept=accept,
            expect="text",
        )
        outcome = await self.client.rest(spec)
        if outcome.error:
            return ToolResult.failure(outcome.error, outcome.rate, **{kind: None})
        text: Optional[str] = outcome.value
        return ToolResult(data={kind: text}, meta=Meta(rate=outcome.rate), text=text)

    async def get_pr_diff(self, params: PullNumberInput) -> ToolResult:
        return await self._get_pr_text(params, "diff")

    async def get_pr_patch(self, params: PullNumberInput) -> ToolResult:
        return await self._get_pr_text(params, "patch")
