"""MCP tool definitions and dispatch onto the review service."""

import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, NamedTuple, Type

from pydantic import BaseModel, ValidationError

from review_relay.models import (
    Backend,
    ConfigureAIServiceRequest,
    GetAIServiceStatusRequest,
    ReviewChangesRequest,
    ReviewCodeRequest,
    ReviewCommitRequest,
    ReviewFilesRequest,
)
from review_relay.service import ReviewService

logger = logging.getLogger(__name__)


class ToolSpec(NamedTuple):
    name: str
    description: str
    request_model: Type[BaseModel]


TOOLS: List[ToolSpec] = [
    ToolSpec(
        "review_code",
        "Review a code snippet. Examples: 'Review this function', 'Is this code safe?'",
        ReviewCodeRequest,
    ),
    ToolSpec(
        "review_changes",
        "Review uncommitted git changes (staged and unstaged) in a repository",
        ReviewChangesRequest,
    ),
    ToolSpec(
        "review_commit",
        "Review a single git commit, HEAD when no hash is given",
        ReviewCommitRequest,
    ),
    ToolSpec(
        "review_files",
        "Review one or more files read from the repository",
        ReviewFilesRequest,
    ),
    ToolSpec(
        "configure_ai_service",
        "Set the preferred AI service and its API key, language, timeout or retries",
        ConfigureAIServiceRequest,
    ),
    ToolSpec(
        "get_ai_service_status",
        "Show the configured AI services, the active one and the failover settings",
        GetAIServiceStatusRequest,
    ),
]

TOOLS_BY_NAME: Dict[str, ToolSpec] = {tool.name: tool for tool in TOOLS}


def input_schema(model: Type[BaseModel]) -> Dict[str, Any]:
    """JSON schema for a request model, with the definitions inlined."""
    schema = model.model_json_schema()
    definitions = schema.pop("$defs", {})

    def resolve(node: Any) -> Any:
        if isinstance(node, dict):
            ref = node.get("$ref")
            if ref and ref.startswith("#/$defs/"):
                return resolve(definitions[ref.split("/")[-1]])
            return {key: resolve(value) for key, value in node.items()}
        if isinstance(node, list):
            return [resolve(item) for item in node]
        return node

    schema = resolve(schema)
    schema.pop("title", None)
    schema.setdefault("properties", {})
    return schema


def tool_definitions() -> List[Dict[str, Any]]:
    return [
        {
            "name": tool.name,
            "description": tool.description,
            "inputSchema": input_schema(tool.request_model),
        }
        for tool in TOOLS
    ]


def _suggestions(error: ValidationError) -> List[str]:
    services = ", ".join(backend.value for backend in Backend)
    suggestions = []
    for item in error.errors():
        field = ".".join(str(part) for part in item["loc"]) or "arguments"
        if item["type"] == "missing":
            suggestions.append(f"Provide the required argument '{field}'")
        elif field in ("ai_service", "service"):
            suggestions.append(f"'{field}' must be one of: {services}")
        elif field == "scope":
            suggestions.append("'scope' must be 'project' or 'global'")
        else:
            suggestions.append(f"Check '{field}': {item['msg']}")
    return suggestions


def text_content(text: str, is_error: bool = False) -> Dict[str, Any]:
    result: Dict[str, Any] = {"content": [{"type": "text", "text": text}]}
    if is_error:
        result["isError"] = True
    return result


def _error_response(message: str, suggestions: List[str]) -> Dict[str, Any]:
    lines = [f"Error: {message}"]
    if suggestions:
        lines.append("")
        lines.append("Suggestions:")
        lines.extend(f"- {suggestion}" for suggestion in suggestions)
    return text_content("\n".join(lines), is_error=True)


class MCPTools:
    """Validates tool arguments and calls the matching service operation."""

    def __init__(self, service: ReviewService):
        self.service = service
        self._handlers: Dict[str, Callable[[Any], Awaitable[BaseModel]]] = {
            "review_code": service.review_code,
            "review_changes": service.review_changes,
            "review_commit": service.review_commit,
            "review_files": service.review_files,
            "configure_ai_service": service.configure_ai_service,
            "get_ai_service_status": self._status,
        }

    async def _status(self, request: GetAIServiceStatusRequest) -> BaseModel:
        return await self.service.get_ai_service_status(probe=request.probe)

    async def call(self, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Run tool name with arguments and wrap the result as MCP content.

        Raises:
            ValueError: If no tool is called name
        """
        tool = TOOLS_BY_NAME.get(name)
        if tool is None:
            raise ValueError(f"Unknown tool: {name}")

        try:
            request = tool.request_model.model_validate(arguments or {})
        except ValidationError as e:
            logger.warning(f"Invalid arguments for {name}: {e.error_count()} error(s)")
            return _error_response(f"Invalid arguments for {name}", _suggestions(e))

        response = await self._handlers[name](request)
        payload = response.model_dump(mode="json")
        is_error = payload.get("status") == "failed" or payload.get("success") is False
        return text_content(json.dumps(payload, indent=2, ensure_ascii=False), is_error=is_error)
