"""GitHub MCP server over stdio: wiring, logging and the command-line entry point."""
import asyncio
import logging
import random
import sys
from typing import Any, Awaitable, Callable, Dict, Optional, TextIO

import click
import httpx

from .config import SERVER_NAME, SERVER_VERSION, Settings
from .github.client import GitHubClient
from .jsonrpc.handler import JSONRPCHandler
from .mcp_handler import MCPHandler
from .mcp_transport import MCP_PROTOCOL_VERSION, StdioTransport, diag_logger
from .tools import register_all_tools
from .utils.errors import InvalidParamsError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def register_jsonrpc_methods(jsonrpc_handler: JSONRPCHandler, mcp_handler: MCPHandler) -> None:
    """Register all JSON-RPC 2.0 methods."""

    # Method: initialize
    async def initialize(params: Any):
        return {
            "protocolVersion": MCP_PROTOCOL_VERSION,
            "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
            "capabilities": {"tools": {"listChanged": False}},
        }

    # Method: tools/list
    async def tools_list(params: Any):
        return {"tools": mcp_handler.list_tools()}

    # Method: tools/call
    async def tools_call(params: Any):
        if not isinstance(params, dict) or not isinstance(params.get("name"), str):
            raise InvalidParamsError("Invalid params: expected {name, arguments?}")
        return await mcp_handler.execute_tool(params["name"], params.get("arguments"))

    jsonrpc_handler.register_method("initialize", initialize)
    jsonrpc_handler.register_method("tools/list", tools_list)
    jsonrpc_handler.register_method("tools/call", tools_call)


class GitHubMCPServer:
    """Everything one process needs: settings, upstream client, registries."""

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings
        self.client = GitHubClient(settings, http_client=http_client, sleep=sleep, rng=rng)
        self.mcp_handler = MCPHandler(token_check=settings.require_token)
        self.jsonrpc_handler = JSONRPCHandler()
        register_all_tools(self.mcp_handler, self.client, settings)
        register_jsonrpc_methods(self.jsonrpc_handler, self.mcp_handler)

    async def serve(self, reader: Optional[TextIO] = None, writer: Optional[TextIO] = None) -> None:
        """Serve stdio until EOF, then release the HTTP client."""
        transport = StdioTransport(self.jsonrpc_handler, reader=reader, writer=writer)
        try:
            await transport.serve()
        finally:
            await self.client.aclose()


def configure_logging(level: str = "INFO", diag_log: Optional[str] = None) -> None:
    """Log to stderr (stdout carries the protocol); mirror diagnostics to a file."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, stream=sys.stderr)
    if diag_log:
        try:
            handler = logging.FileHandler(diag_log, encoding="utf-8")
        except OSError as e:
            logger.warning(f"Cannot open diagnostic log {diag_log}: {e}")
            return
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        diag_logger.addHandler(handler)
        diag_logger.setLevel(logging.DEBUG)


def install_crash_guard() -> None:
    """Log uncaught exceptions to the diagnostic sink, then let the process die."""
    previous_hook = sys.excepthook

    def _log_and_exit(exc_type, exc_value, exc_traceback):
        if not issubclass(exc_type, KeyboardInterrupt):
            diag_logger.critical("Unhandled exception", exc_info=(exc_type, exc_value, exc_traceback))
        previous_hook(exc_type, exc_value, exc_traceback)

    sys.excepthook = _log_and_exit


def startup_summary(settings: Settings) -> Dict[str, Any]:
    """Non-secret settings worth logging at startup."""
    return {
        "api_url": settings.api_url,
        "graphql_url": settings.graphql_url,
        "api_version": settings.api_version,
        "timeout_secs": settings.timeout_secs,
        "token_present": bool(settings.token),
        "debug": settings.debug,
        "enable_ping": settings.enable_ping,
    }


@click.command()
@click.option(
    "--log-level",
    default="INFO",
    envvar="LOG_LEVEL",
    show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level for stderr output.",
)
@click.version_option(version=SERVER_VERSION, prog_name=SERVER_NAME)
def main(log_level: str) -> None:
    """Serve GitHub tools over MCP on stdin/stdout."""
    settings = Settings.from_env()
    configure_logging(log_level, settings.diag_log)
    install_crash_guard()

    diag_logger.info(f"{SERVER_NAME} {SERVER_VERSION} starting: {startup_summary(settings)}")
    if not settings.token:
        logger.warning("GITHUB_TOKEN/GH_TOKEN not set; GitHub tools will fail until it is provided")

    server = GitHubMCPServer(settings)
    asyncio.run(server.serve())


if __name__ == "__main__":
    main()
