"""MCP stdio transport: newline-delimited JSON-RPC on stdin/stdout."""
import json
import asyncio
import logging
import sys
from typing import Optional, TextIO

from .jsonrpc.handler import JSONRPCHandler
from .jsonrpc.models import JSONRPCError, JSONRPCRequest, JSONRPCResponse, ErrorCode

logger = logging.getLogger(__name__)
# Startup, per-line, EOF and crash diagnostics; also goes to MCP_DIAG_LOG.
diag_logger = logging.getLogger("github_mcp.diag")

MCP_PROTOCOL_VERSION = "2024-11-05"

INITIALIZED_NOTIFICATIONS = ("notifications/initialized", "initialized")


class StdioTransport:
    """Reads one request per line and writes one response per line.

    Requests are handled strictly in order: a line is fully answered before
    the next one is read. Notifications (no ``id`` member) never get a reply.
    """

    def __init__(
        self,
        jsonrpc_handler: JSONRPCHandler,
        reader: Optional[TextIO] = None,
        writer: Optional[TextIO] = None,
    ):
        self.jsonrpc_handler = jsonrpc_handler
        self.reader = reader if reader is not None else sys.stdin
        self.writer = writer if writer is not None else sys.stdout
        self.closed = False

    async def _read_line(self) -> str:
        # Blocking reads stay off the event loop.
        return await asyncio.to_thread(self.reader.readline)

    def write_response(self, response: JSONRPCResponse) -> None:
        """Serialize one response as a single line and flush it."""
        line = json.dumps(response.to_wire(), ensure_ascii=False, separators=(",", ":"))
        try:
            self.writer.write(line + "\n")
            self.writer.flush()
        except (BrokenPipeError, OSError) as e:
            self.closed = True
            diag_logger.warning(f"stdout closed while writing response: {e}")

    def _handle_notification(self, request: JSONRPCRequest) -> None:
        if request.method in INITIALIZED_NOTIFICATIONS:
            logger.info("Client finished initialization")
        else:
            logger.debug(f"Ignoring notification: {request.method}")

    async def handle_line(self, line: str) -> Optional[JSONRPCResponse]:
        """Process one input line.

        Returns:
            The response to write, or None for blank lines and notifications
        """
        text = line.strip()
        if not text:
            return None

        try:
            payload = json.loads(text)
            if not isinstance(payload, dict):
                raise ValueError("message is not a JSON object")
            request = JSONRPCRequest.model_validate(payload)
        except ValueError as e:
            diag_logger.info(f"Parse error: {e}")
            return JSONRPCResponse(
                id=None,
                error=JSONRPCError(code=ErrorCode.PARSE_ERROR, message="Parse error"),
            )

        if request.is_notification:
            self._handle_notification(request)
            return None

        diag_logger.debug(f"Dispatching {request.method} (id={request.id!r})")
        return await self.jsonrpc_handler.handle_request(request)

    async def serve(self) -> None:
        """Run until EOF on the reader or the writer goes away."""
        diag_logger.info("stdio transport started")
        while not self.closed:
            line = await self._read_line()
            if line == "":
                diag_logger.info("EOF on stdin; shutting down")
                break
            diag_logger.debug(f"Received line ({len(line)} chars)")
            response = await self.handle_line(line)
            if response is not None:
                self.write_response(response)
