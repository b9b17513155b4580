"""JSON-RPC 2.0 messages and method routing for the stdio server."""
from .models import JSONRPCRequest, JSONRPCResponse, JSONRPCError, ErrorCode
from .handler import JSONRPCHandler

__all__ = [
    "ErrorCode",
    "JSONRPCError",
    "JSONRPCHandler",
    "JSONRPCRequest",
    "JSONRPCResponse",
]
