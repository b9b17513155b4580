"""JSON-RPC 2.0 method routing."""
from typing import Any, Dict, Callable
import logging
from .models import (
    JSONRPCRequest,
    JSONRPCResponse,
    JSONRPCError,
    ErrorCode
)
from ..utils.errors import ConfigError, InvalidParamsError, ToolNotFoundError

logger = logging.getLogger(__name__)


class JSONRPCHandler:
    """Routes JSON-RPC 2.0 requests to registered methods."""

    def __init__(self):
        self.methods: Dict[str, Callable] = {}

    def register_method(self, method_name: str, handler: Callable):
        """Register a JSON-RPC method handler.

        Args:
            method_name: Name of the JSON-RPC method (e.g., "tools/list")
            handler: Async callable taking the request params
        """
        self.methods[method_name] = handler
        logger.debug(f"Registered JSON-RPC method: {method_name}")

    @staticmethod
    def _error(request_id: Any, code: int, message: str, data: Any = None) -> JSONRPCResponse:
        return JSONRPCResponse(
            id=request_id,
            error=JSONRPCError(code=code, message=message, data=data)
        )

    async def handle_request(
        self,
        request: JSONRPCRequest
    ) -> JSONRPCResponse:
        """Handle a JSON-RPC 2.0 request.

        Args:
            request: JSONRPCRequest object

        Returns:
            JSONRPCResponse with result or error
        """
        if request.method not in self.methods:
            return self._error(
                request.id, ErrorCode.METHOD_NOT_FOUND, f"Method not found: {request.method}"
            )

        handler = self.methods[request.method]
        try:
            result = await handler(request.params if request.params is not None else {})
            return JSONRPCResponse(id=request.id, result=result)

        except ToolNotFoundError as e:
            return self._error(request.id, ErrorCode.METHOD_NOT_FOUND, str(e))
        except InvalidParamsError as e:
            return self._error(request.id, ErrorCode.INVALID_PARAMS, str(e))
        except ConfigError as e:
            logger.warning(f"{request.method} rejected: {e}")
            return self._error(request.id, ErrorCode.INTERNAL_ERROR, str(e))
        except Exception as e:
            logger.error(f"Internal error handling {request.method}: {e}", exc_info=True)
            return self._error(
                request.id, ErrorCode.INTERNAL_ERROR, "Internal error", {"details": str(e)}
            )
