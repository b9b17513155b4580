"""End-to-end tests of the stdio transport: framing, ordering and dispatch."""
import io
import json
import random
from typing import List

import pytest

from github_mcp.config import SERVER_NAME, SERVER_VERSION, Settings
from github_mcp.jsonrpc.models import ErrorCode
from github_mcp.mcp_transport import MCP_PROTOCOL_VERSION, StdioTransport
from github_mcp.server import GitHubMCPServer


def make_server(settings, http_client, sleeper) -> GitHubMCPServer:
    return GitHubMCPServer(settings, http_client=http_client, sleep=sleeper, rng=random.Random(1))


async def run_session(server: GitHubMCPServer, messages: List) -> List[dict]:
    """Feed messages (dicts or raw strings) through stdio and parse every output line."""
    lines = [m if isinstance(m, str) else json.dumps(m) for m in messages]
    reader = io.StringIO("".join(line + "\n" for line in lines))
    writer = io.StringIO()
    await server.serve(reader=reader, writer=writer)
    return [json.loads(line) for line in writer.getvalue().splitlines()]


def call(request_id, name, arguments=None):
    params = {"name": name}
    if arguments is not None:
        params["arguments"] = arguments
    return {"jsonrpc": "2.0", "id": request_id, "method": "tools/call", "params": params}


@pytest.mark.asyncio
async def test_initialize(settings, http_client, sleeper):
    server = make_server(settings, http_client, sleeper)

    [response] = await run_session(server, [
        {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {"protocolVersion": "2024-11-05"}},
    ])

    assert response == {
        "jsonrpc": "2.0",
        "id": 1,
        "result": {
            "protocolVersion": MCP_PROTOCOL_VERSION,
            "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
            "capabilities": {"tools": {"listChanged": False}},
        },
    }


@pytest.mark.asyncio
async def test_notifications_get_no_reply(settings, http_client, sleeper):
    server = make_server(settings, http_client, sleeper)

    responses = await run_session(server, [
        {"jsonrpc": "2.0", "method": "notifications/initialized"},
        {"jsonrpc": "2.0", "method": "tools/list"},
        {"jsonrpc": "2.0", "method": "something/else", "params": {}},
    ])

    assert responses == []


@pytest.mark.asyncio
async def test_explicit_null_id_is_answered(settings, http_client, sleeper):
    server = make_server(settings, http_client, sleeper)

    [response] = await run_session(server, [{"jsonrpc": "2.0", "id": None, "method": "tools/list"}])

    assert response["id"] is None
    assert "tools" in response["result"]


@pytest.mark.asyncio
async def test_responses_follow_request_order(settings, http_client, sleeper):
    server = make_server(settings, http_client, sleeper)

    responses = await run_session(server, [
        {"jsonrpc": "2.0", "id": "a", "method": "initialize"},
        {"jsonrpc": "2.0", "method": "notifications/initialized"},
        call("b", "ping", {"message": "hi"}),
        {"jsonrpc": "2.0", "id": "c", "method": "tools/list"},
    ])

    assert [r["id"] for r in responses] == ["a", "b", "c"]
    assert responses[1]["result"]["structuredContent"] == {"message": "hi"}


@pytest.mark.asyncio
async def test_parse_errors_and_blank_lines(settings, http_client, sleeper):
    server = make_server(settings, http_client, sleeper)

    responses = await run_session(server, [
        "",
        "   ",
        "{not json",
        "[1, 2]",
        json.dumps({"jsonrpc": "1.0", "id": 9, "method": "initialize"}),
        json.dumps({"jsonrpc": "2.0", "id": 10, "method": "initialize"}),
    ])

    assert len(responses) == 4
    for response in responses[:3]:
        assert response["id"] is None
        assert response["error"]["code"] == ErrorCode.PARSE_ERROR
    assert responses[3]["id"] == 10
    assert "result" in responses[3]


@pytest.mark.asyncio
async def test_unknown_method_and_top_level_ping(settings, http_client, sleeper):
    server = make_server(settings, http_client, sleeper)

    responses = await run_session(server, [
        {"jsonrpc": "2.0", "id": 1, "method": "ping"},
        {"jsonrpc": "2.0", "id": 2, "method": "resources/list"},
    ])

    assert [r["error"]["code"] for r in responses] == [ErrorCode.METHOD_NOT_FOUND] * 2
    assert all("result" not in r for r in responses)


@pytest.mark.asyncio
async def test_unknown_tool(settings, http_client, sleeper):
    server = make_server(settings, http_client, sleeper)

    [response] = await run_session(server, [call(1, "delete_everything", {})])

    assert response["error"]["code"] == ErrorCode.METHOD_NOT_FOUND
    assert "delete_everything" in response["error"]["message"]


@pytest.mark.asyncio
async def test_invalid_params(settings, http_client, sleeper):
    server = make_server(settings, http_client, sleeper)

    responses = await run_session(server, [
        {"jsonrpc": "2.0", "id": 1, "method": "tools/call", "params": {"arguments": {}}},
        {"jsonrpc": "2.0", "id": 2, "method": "tools/call", "params": [1]},
        call(3, "get_issue", {"owner": "o", "repo": "r"}),
        call(4, "get_issue", {"owner": "o", "repo": "r", "number": "seven"}),
        call(5, "list_issues", "not an object"),
        call(6, "list_issues", {"owner": "../admin", "repo": "r"}),
    ])

    assert [r["id"] for r in responses] == [1, 2, 3, 4, 5, 6]
    assert all(r["error"]["code"] == ErrorCode.INVALID_PARAMS for r in responses)
    assert "number" in responses[2]["error"]["message"]
    assert "owner" in responses[5]["error"]["message"]


@pytest.mark.asyncio
async def test_missing_token(http_client, sleeper, upstream):
    server = make_server(Settings(token=None), http_client, sleeper)

    responses = await run_session(server, [
        {"jsonrpc": "2.0", "id": 1, "method": "initialize"},
        {"jsonrpc": "2.0", "id": 2, "method": "tools/list"},
        call(3, "ping"),
        call(4, "list_issues", {"owner": "o", "repo": "r"}),
        call(5, "get_issue", {"owner": "o", "repo": "r"}),
    ])

    assert "result" in responses[0]
    assert "result" in responses[1]
    assert responses[2]["result"]["structuredContent"] == {"message": "pong"}
    assert responses[3]["error"] == {
        "code": ErrorCode.INTERNAL_ERROR,
        "message": "Missing GITHUB_TOKEN or GH_TOKEN",
    }
    # Argument problems are reported before the missing token.
    assert responses[4]["error"]["code"] == ErrorCode.INVALID_PARAMS
    assert upstream.requests == []


@pytest.mark.asyncio
async def test_tools_list_catalogue(settings, http_client, sleeper):
    server = make_server(settings, http_client, sleeper)

    [response] = await run_session(server, [{"jsonrpc": "2.0", "id": 1, "method": "tools/list"}])

    tools = {tool["name"]: tool for tool in response["result"]["tools"]}
    assert "ping" in tools
    assert "list_workflow_runs_light" in tools
    assert "get_workflow_job_logs" in tools
    schema = tools["get_issue"]["inputSchema"]
    assert schema["type"] == "object"
    assert set(schema["required"]) == {"owner", "repo", "number"}


@pytest.mark.asyncio
async def test_ping_hidden_when_disabled(settings, http_client, sleeper):
    server = make_server(settings.model_copy(update={"enable_ping": False}), http_client, sleeper)

    responses = await run_session(server, [
        {"jsonrpc": "2.0", "id": 1, "method": "tools/list"},
        call(2, "ping"),
    ])

    names = [tool["name"] for tool in responses[0]["result"]["tools"]]
    assert "ping" not in names
    assert responses[1]["error"]["code"] == ErrorCode.METHOD_NOT_FOUND


class _BrokenWriter(io.StringIO):
    def write(self, s):
        raise BrokenPipeError("peer went away")


@pytest.mark.asyncio
async def test_broken_stdout_stops_the_loop(settings, http_client, sleeper):
    server = make_server(settings, http_client, sleeper)
    reader = io.StringIO(
        json.dumps({"jsonrpc": "2.0", "id": 1, "method": "initialize"}) + "\n"
        + json.dumps({"jsonrpc": "2.0", "id": 2, "method": "initialize"}) + "\n"
    )
    transport = StdioTransport(server.jsonrpc_handler, reader=reader, writer=_BrokenWriter())

    await transport.serve()

    assert transport.closed is True
    # The second request is never read.
    assert reader.readline() != ""
