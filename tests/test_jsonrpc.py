"""Unit tests for JSON-RPC models and handler."""
import pytest
from github_mcp.jsonrpc.handler import JSONRPCHandler
from github_mcp.jsonrpc.models import JSONRPCError, JSONRPCRequest, JSONRPCResponse, ErrorCode
from github_mcp.utils.errors import ConfigError, InvalidParamsError, ToolNotFoundError


@pytest.mark.asyncio
async def test_jsonrpc_method_not_found():
    """Unknown methods return METHOD_NOT_FOUND naming the method."""
    handler = JSONRPCHandler()

    request = JSONRPCRequest(
        method="nonexistent_method",
        params={},
        id=1
    )

    response = await handler.handle_request(request)

    assert response.error is not None
    assert response.error.code == ErrorCode.METHOD_NOT_FOUND
    assert "nonexistent_method" in response.error.message
    assert response.result is None


@pytest.mark.asyncio
async def test_jsonrpc_successful_call():
    handler = JSONRPCHandler()

    async def test_method(params):
        return {"result": "success", "input": params}

    handler.register_method("test", test_method)

    request = JSONRPCRequest(
        method="test",
        params={"key": "value"},
        id=1
    )

    response = await handler.handle_request(request)

    assert response.error is None
    assert response.result == {"result": "success", "input": {"key": "value"}}
    assert response.id == 1


@pytest.mark.asyncio
async def test_invalid_params_error_maps_to_32602():
    handler = JSONRPCHandler()

    async def error_method(params):
        raise InvalidParamsError("Invalid params: owner missing")

    handler.register_method("error_test", error_method)

    response = await handler.handle_request(JSONRPCRequest(method="error_test", params={}, id=2))

    assert response.error.code == ErrorCode.INVALID_PARAMS
    assert "owner missing" in response.error.message


@pytest.mark.asyncio
async def test_tool_not_found_maps_to_32601():
    handler = JSONRPCHandler()

    async def call(params):
        raise ToolNotFoundError("does_not_exist")

    handler.register_method("tools/call", call)

    response = await handler.handle_request(JSONRPCRequest(method="tools/call", params={}, id=3))

    assert response.error.code == ErrorCode.METHOD_NOT_FOUND
    assert response.error.message == "Tool not found: does_not_exist"


@pytest.mark.asyncio
async def test_config_error_maps_to_32603_with_message():
    handler = JSONRPCHandler()

    async def call(params):
        raise ConfigError("Missing GITHUB_TOKEN or GH_TOKEN")

    handler.register_method("tools/call", call)

    response = await handler.handle_request(JSONRPCRequest(method="tools/call", params={}, id=4))

    assert response.error.code == ErrorCode.INTERNAL_ERROR
    assert "GITHUB_TOKEN" in response.error.message


@pytest.mark.asyncio
async def test_jsonrpc_internal_error():
    """Unexpected exceptions return INTERNAL_ERROR with details."""
    handler = JSONRPCHandler()

    async def crash_method(params):
        raise RuntimeError("Something went wrong")

    handler.register_method("crash", crash_method)

    response = await handler.handle_request(JSONRPCRequest(method="crash", params={}, id=5))

    assert response.error is not None
    assert response.error.code == ErrorCode.INTERNAL_ERROR
    assert response.error.message == "Internal error"
    assert response.error.data == {"details": "Something went wrong"}


@pytest.mark.asyncio
async def test_jsonrpc_no_params():
    """Missing params reach the method as an empty dict."""
    handler = JSONRPCHandler()

    async def no_params_method(params):
        assert params == {}
        return {"status": "ok"}

    handler.register_method("no_params", no_params_method)

    response = await handler.handle_request(JSONRPCRequest(method="no_params", id=6))

    assert response.error is None
    assert response.result == {"status": "ok"}


def test_notification_detection():
    assert JSONRPCRequest.model_validate({"jsonrpc": "2.0", "method": "x"}).is_notification
    # An explicit null id is still a request.
    assert not JSONRPCRequest.model_validate({"jsonrpc": "2.0", "method": "x", "id": None}).is_notification
    assert not JSONRPCRequest.model_validate({"jsonrpc": "2.0", "method": "x", "id": "a"}).is_notification


def test_response_wire_format_has_exactly_one_of_result_or_error():
    ok = JSONRPCResponse(id=1, result={"items": None}).to_wire()
    assert ok == {"jsonrpc": "2.0", "id": 1, "result": {"items": None}}

    err = JSONRPCResponse(
        id=None, error=JSONRPCError(code=ErrorCode.PARSE_ERROR, message="Parse error")
    ).to_wire()
    assert err == {"jsonrpc": "2.0", "id": None, "error": {"code": -32700, "message": "Parse error"}}


def test_error_codes():
    assert ErrorCode.PARSE_ERROR == -32700
    assert ErrorCode.INVALID_REQUEST == -32600
    assert ErrorCode.METHOD_NOT_FOUND == -32601
    assert ErrorCode.INVALID_PARAMS == -32602
    assert ErrorCode.INTERNAL_ERROR == -32603
