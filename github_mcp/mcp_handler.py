"""MCP tool registry: schemas, argument decoding and execution."""
from typing import Dict, Any, Awaitable, Callable, List, Optional, Type
import logging
from pydantic import BaseModel, ConfigDict, ValidationError

from .envelope import ToolResult, wrap_tool_result
from .utils.errors import InvalidParamsError, ToolNotFoundError

logger = logging.getLogger(__name__)

INCLUDE_RATE_ARG = "_include_rate"


class ToolSchema(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    inputSchema: Dict[str, Any]


class RegisteredTool:
    """A catalogue entry: public schema plus how to run it."""

    def __init__(
        self,
        schema: ToolSchema,
        input_model: Type[BaseModel],
        handler: Callable[[Any], Awaitable[ToolResult]],
        requires_token: bool = True,
    ):
        self.schema = schema
        self.input_model = input_model
        self.handler = handler
        self.requires_token = requires_token


def _format_validation_error(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "arguments"
        problems.append(f"{location}: {item.get('msg')}")
    return "Invalid params: " + "; ".join(problems)


class MCPHandler:
    def __init__(self, token_check: Optional[Callable[[], Any]] = None):
        self.tools: Dict[str, RegisteredTool] = {}
        # Called before any tool that talks to GitHub; raises ConfigError.
        self._token_check = token_check

    def register_tool(
        self,
        name: str,
        description: str,
        input_model: Type[BaseModel],
        handler: Callable[[Any], Awaitable[ToolResult]],
        requires_token: bool = True,
    ) -> None:
        """Register an MCP tool; its inputSchema comes from ``input_model``."""
        input_schema = input_model.model_json_schema()
        input_schema.pop("title", None)
        self.tools[name] = RegisteredTool(
            schema=ToolSchema(name=name, description=description, inputSchema=input_schema),
            input_model=input_model,
            handler=handler,
            requires_token=requires_token,
        )
        logger.debug(f"Registered tool: {name}")

    def list_tools(self) -> List[Dict[str, Any]]:
        """List all registered tools."""
        return [tool.schema.model_dump() for tool in self.tools.values()]

    def decode_arguments(self, tool_name: str, arguments: Dict[str, Any]) -> BaseModel:
        """Validate raw arguments against a tool's input model."""
        if tool_name not in self.tools:
            raise ToolNotFoundError(tool_name)
        try:
            return self.tools[tool_name].input_model.model_validate(arguments)
        except ValidationError as e:
            raise InvalidParamsError(_format_validation_error(e)) from e

    async def execute_tool(self, tool_name: str, arguments: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Execute a registered tool and return the wrapped envelope.

        The reserved ``_include_rate`` flag is removed before decoding and
        only affects how ``meta`` is pruned.
        """
        if tool_name not in self.tools:
            raise ToolNotFoundError(tool_name)
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise InvalidParamsError("Invalid params: arguments must be an object")

        arguments = dict(arguments)
        include_rate = arguments.pop(INCLUDE_RATE_ARG, False)
        if include_rate is None:
            include_rate = False
        if not isinstance(include_rate, bool):
            raise InvalidParamsError(f"Invalid params: {INCLUDE_RATE_ARG} must be a boolean")

        tool = self.tools[tool_name]
        params = self.decode_arguments(tool_name, arguments)
        if tool.requires_token and self._token_check is not None:
            self._token_check()

        result = await tool.handler(params)
        return wrap_tool_result(result, include_rate=include_rate)
