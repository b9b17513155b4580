"""JSON-RPC 2.0 request/response models."""
from pydantic import BaseModel
from typing import Any, Dict, Optional, Union, Literal


class JSONRPCRequest(BaseModel):
    """JSON-RPC 2.0 request model."""

    jsonrpc: Literal["2.0"] = "2.0"
    method: str
    params: Optional[Any] = None
    id: Optional[Union[str, int]] = None

    @property
    def is_notification(self) -> bool:
        """A request without an ``id`` member is a notification.

        An explicit ``"id": null`` still counts as a request and is answered.
        """
        return "id" not in self.model_fields_set


class JSONRPCError(BaseModel):
    """JSON-RPC 2.0 error model."""

    code: int
    message: str
    data: Optional[Any] = None


class JSONRPCResponse(BaseModel):
    """JSON-RPC 2.0 response model."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: Optional[Union[str, int]]
    result: Optional[Any] = None
    error: Optional[JSONRPCError] = None

    def to_wire(self) -> Dict[str, Any]:
        """Dump for the wire: exactly one of result/error, id always present."""
        data: Dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            data["error"] = self.error.model_dump(exclude_none=True)
        else:
            data["result"] = self.result
        return data


class ErrorCode:
    """JSON-RPC 2.0 standard error codes."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
