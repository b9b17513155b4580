"""Issue tools backed by the GraphQL API."""
import logging
from typing import Any, Dict, List, Optional

from ..envelope import ToolResult
from .client import GitHubClient
from .models import Meta, connection_nodes, dig, not_found
from .schemas import IssueNumberInput, ListIssueCommentsInput, ListIssuesInput

logger = logging.getLogger(__name__)

LIST_ISSUES_QUERY = """
query ListIssues($owner: String!, $repo: String!, $first: Int = 30, $after: String,
                 $states: [IssueState!], $filterBy: IssueFilters, $orderBy: IssueOrder) {
  repository(owner: $owner, name: $repo) {
    issues(first: $first, after: $after, states: $states, filterBy: $filterBy, orderBy: $orderBy) {
      nodes { id number title state createdAt updatedAt author { login } }
      pageInfo { hasNextPage endCursor }
    }
  }
  rateLimit { remaining used resetAt }
}
"""

GET_ISSUE_QUERY = """
query GetIssue($owner: String!, $repo: String!, $number: Int!) {
  repository(owner: $owner, name: $repo) {
    issue(number: $number) { id number title body state createdAt updatedAt author { login } }
  }
  rateLimit { remaining used resetAt }
}
"""

LIST_ISSUE_COMMENTS_QUERY = """
query ListIssueComments($owner: String!, $repo: String!, $number: Int!, $first: Int = 30, $after: String) {
  repository(owner: $owner, name: $repo) {
    issue(number: $number) {
      comments(first: $first, after: $after) {
        nodes { id body createdAt updatedAt author { login } }
        pageInfo { hasNextPage endCursor }
      }
    }
  }
  rateLimit { remaining used resetAt }
}
"""

_ORDER_FIELDS = {"created_at": "CREATED_AT", "updated_at": "UPDATED_AT", "comments": "COMMENTS"}


def _author(node: Dict[str, Any], include_author: bool) -> Dict[str, Any]:
    login = dig(node, "author", "login")
    if include_author and login:
        return {"author_login": login}
    return {}


def map_comment(node: Dict[str, Any], include_author: bool) -> Dict[str, Any]:
    """Plain comment shape shared by issue and PR conversation comments."""
    item = {"id": node.get("id"), "body": node.get("body") or ""}
    item.update(_author(node, include_author))
    item["created_at"] = node.get("createdAt")
    item["updated_at"] = node.get("updatedAt")
    return item


def _issue_filters(params: ListIssuesInput) -> Optional[Dict[str, Any]]:
    filters = {
        "labels": params.labels,
        "createdBy": params.creator,
        "assignee": params.assignee,
        "mentioned": params.mentions,
        "since": params.since,
    }
    filters = {k: v for k, v in filters.items() if v is not None}
    return filters or None


class IssueTools:
    """list_issues, get_issue and list_issue_comments_plain."""

    def __init__(self, client: GitHubClient):
        self.client = client

    async def list_issues(self, params: ListIssuesInput) -> ToolResult:
        variables: Dict[str, Any] = {
            "owner": params.owner,
            "repo": params.repo,
            "first": params.limit,
            "after": params.cursor,
            "states": [params.state.upper()] if params.state else None,
            "filterBy": _issue_filters(params),
        }
        if params.sort:
            variables["orderBy"] = {
                "field": _ORDER_FIELDS[params.sort],
                "direction": (params.direction or "desc").upper(),
            }

        outcome = await self.client.graphql(LIST_ISSUES_QUERY, variables)
        if outcome.error:
            return ToolResult.failure(outcome.error, outcome.rate, items=None)

        issues = dig(outcome.value, "repository", "issues")
        if not isinstance(issues, dict):
            return ToolResult.failure(not_found("Repository"), outcome.rate, items=None)

        items: List[Dict[str, Any]] = []
        for node in connection_nodes(issues):
            item = {
                "id": node.get("id"),
                "number": node.get("number"),
                "title": node.get("title"),
                "state": node.get("state"),
                "created_at": node.get("createdAt"),
                "updated_at": node.get("updatedAt"),
            }
            item.update(_author(node, params.include_author))
            items.append(item)

        return ToolResult(
            data={"items": items},
            meta=Meta.from_page_info(issues.get("pageInfo"), outcome.rate),
            text=f"{len(items)} issues",
        )

    async def get_issue(self, params: IssueNumberInput) -> ToolResult:
        variables = {"owner": params.owner, "repo": params.repo, "number": params.number}
        outcome = await self.client.graphql(GET_ISSUE_QUERY, variables)
        if outcome.error:
            return ToolResult.failure(outcome.error, outcome.rate, item=None)

        node = dig(outcome.value, "repository", "issue")
        if not isinstance(node, dict):
            return ToolResult.failure(not_found("Issue"), outcome.rate, item=None)

        item = {
            "id": node.get("id"),
            "number": node.get("number"),
            "title": node.get("title"),
            "body": node.get("body"),
            "state": node.get("state"),
            "created_at": node.get("createdAt"),
            "updated_at": node.get("updatedAt"),
        }
        if item["body"] is None:
            del item["body"]
        item.update(_author(node, params.include_author))
        return ToolResult(
            data={"item": item},
            meta=Meta(rate=outcome.rate),
            text=f"Issue #{item['number']} {item['state']}",
        )

    async def list_issue_comments(self, params: ListIssueCommentsInput) -> ToolResult:
        variables = {
            "owner": params.owner,
            "repo": params.repo,
            "number": params.number,
            "first": params.limit,
            "after": params.cursor,
        }
        outcome = await self.client.graphql(LIST_ISSUE_COMMENTS_QUERY, variables)
        if outcome.error:
            return ToolResult.failure(outcome.error, outcome.rate, items=None)

        comments = dig(outcome.value, "repository", "issue", "comments")
        if not isinstance(comments, dict):
            return ToolResult.failure(not_found("Issue"), outcome.rate, items=None)

        items = [map_comment(node, params.include_author) for node in connection_nodes(comments)]
        return ToolResult(
            data={"items": items},
            meta=Meta.from_page_info(comments.get("pageInfo"), outcome.rate),
            text=f"{len(items)} comments",
        )
