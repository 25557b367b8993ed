"""Model Context Protocol endpoint (JSON-RPC 2.0 over HTTP POST).

Messages are validated and serialized with the MCP SDK's types. Stateless:
every POST carries one message or a batch of messages, and each request gets
a plain JSON response. No SSE stream is offered, so GET and DELETE answer 405.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable
from urllib.parse import urlparse

import pydantic
from flask import Blueprint, jsonify, request
from mcp import types
from mcp.shared.version import SUPPORTED_PROTOCOL_VERSIONS

from .. import __version__
from ..errors import AnalyzerError, ConfigurationError, EmailDeliveryError, ValidationError
from ..notify.email import default_subject
from ..pipeline import AnalysisContext, AnalysisOptions, AnalysisPipeline
from ..storage.models import AnalysisStatus, ContentType, SummaryLength
from .routes import get_context, send_analysis_email

logger = logging.getLogger(__name__)

bp = Blueprint("mcp", __name__)

SERVER_INFO = types.Implementation(name="url-analyzer-mcp", version=__version__)
INSTRUCTIONS = "Analyze, search and email summaries of web pages."

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


# ---- Argument helpers ----


def _url_arg(args: dict, name: str = "url") -> str:
    value = args.get(name)
    if not isinstance(value, str):
        raise ValidationError(f"{name} is required")
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(f"{name} must be an http(s) URL")
    return value


def _int_arg(args: dict, name: str, default: int, low: int, high: int) -> int:
    value = args.get(name, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer")
    if not low <= value <= high:
        raise ValidationError(f"{name} must be between {low} and {high}")
    return value


def _str_arg(args: dict, name: str, required: bool = False) -> str | None:
    value = args.get(name)
    if value is None and not required:
        return None
    if not isinstance(value, str) or (required and not value.strip()):
        raise ValidationError(f"{name} is required")
    return value


# ---- Tools ----


async def analyze_url(context: AnalysisContext, args: dict) -> str:
    url = _url_arg(args)
    try:
        length = SummaryLength(args.get("summary_length", SummaryLength.MEDIUM.value))
    except ValueError:
        raise ValidationError("summary_length must be one of: short, medium, long")

    record = await AnalysisPipeline(context).analyze(
        url, AnalysisOptions(generate_tags=True, summary_length=length)
    )
    return (
        f"Analysis completed for: {url}\n\n"
        f"Title: {record.title}\n"
        f"Summary: {record.summary}\n"
        f"Word Count: {record.word_count}\n"
        f"Status: {record.status.value}"
    )


async def get_summaries(context: AnalysisContext, args: dict) -> str:
    limit = _int_arg(args, "limit", 10, 1, 50)
    content_type = _str_arg(args, "content_type")
    try:
        content_type = ContentType(content_type) if content_type else None
    except ValueError:
        raise ValidationError("content_type must be one of: article, blog, news")

    records, _ = context.db.list_records(
        per_page=limit, status=AnalysisStatus.COMPLETED, content_type=content_type
    )
    text = "\n\n".join(
        f"URL: {r.url}\nTitle: {r.title}\nSummary: {r.summary}\n"
        f"Date: {r.analysis_date}\n---"
        for r in records
    )
    return text or "No summaries found"


async def search_content(context: AnalysisContext, args: dict) -> str:
    query = _str_arg(args, "query", required=True)
    limit = _int_arg(args, "limit", 5, 1, 20)

    records, _ = context.db.list_records(
        per_page=limit, status=AnalysisStatus.COMPLETED, search=query
    )
    text = "\n\n".join(
        f"URL: {r.url}\nTitle: {r.title}\nSummary: {r.summary}\n"
        f"Relevant content: {(r.content or '')[:200]}...\n---"
        for r in records
    )
    return text or f"No results found for query: {query}"


async def get_url_details(context: AnalysisContext, args: dict) -> str:
    url = _url_arg(args)
    record = context.db.get_by_url(url)
    if not record:
        return f"No analysis found for URL: {url}"

    tags = ", ".join(t.tag for t in context.db.get_tags(record.id))
    return (
        f"URL: {record.url}\n"
        f"Title: {record.title}\n"
        f"Summary: {record.summary}\n"
        f"Word Count: {record.word_count}\n"
        f"Content Type: {record.content_type.value if record.content_type else None}\n"
        f"Language: {record.language}\n"
        f"Tags: {tags}\n"
        f"Status: {record.status.value}\n"
        f"Analysis Date: {record.analysis_date}"
    )


async def email_analysis(context: AnalysisContext, args: dict) -> str:
    url = _url_arg(args)
    email = _str_arg(args, "email", required=True)
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("email must be a valid email address")
    subject = _str_arg(args, "subject")
    include_full_content = bool(args.get("include_full_content", False))

    if context.notifier is None:
        raise ConfigurationError(
            "Email functionality is not configured. Please set RESEND_API_KEY."
        )

    record = await AnalysisPipeline(context).analyze(
        url, AnalysisOptions(generate_tags=True)
    )
    delivery = await send_analysis_email(
        context,
        record,
        email,
        subject or default_subject(record),
        include_full_content,
    )
    if not delivery.success:
        raise EmailDeliveryError(f"Failed to send email: {delivery.error}")

    return (
        "Analysis completed and emailed successfully!\n\n"
        f"URL: {record.url}\n"
        f"Title: {record.title}\n"
        f"Summary: {record.summary}\n\n"
        f"Email sent to: {email}\n"
        f"Email ID: {delivery.id}"
    )


@dataclass
class ToolSpec:
    """An advertised tool plus the coroutine that runs it."""

    definition: types.Tool
    handler: Callable[[AnalysisContext, dict], Awaitable[str]]
    error_prefix: str


TOOLS = {
    spec.definition.name: spec
    for spec in (
        ToolSpec(
            definition=types.Tool(
                name="analyze_url",
                description="Fetch a web page, summarize it and tag it",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "url": {"type": "string", "format": "uri", "description": "URL to analyze"},
                        "summary_length": {
                            "type": "string",
                            "enum": [s.value for s in SummaryLength],
                            "default": "medium",
                            "description": "Length of summary to generate",
                        },
                    },
                    "required": ["url"],
                },
            ),
            handler=analyze_url,
            error_prefix="Error analyzing URL",
        ),
        ToolSpec(
            definition=types.Tool(
                name="get_summaries",
                description="List the most recent completed analyses",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "limit": {
                            "type": "integer",
                            "minimum": 1,
                            "maximum": 50,
                            "default": 10,
                            "description": "Number of summaries to retrieve",
                        },
                        "content_type": {
                            "type": "string",
                            "enum": [c.value for c in ContentType],
                            "description": "Filter by content type",
                        },
                    },
                },
            ),
            handler=get_summaries,
            error_prefix="Error retrieving summaries",
        ),
        ToolSpec(
            definition=types.Tool(
                name="search_content",
                description="Find completed analyses whose content contains a phrase",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "query": {"type": "string", "minLength": 1, "description": "Search query"},
                        "limit": {
                            "type": "integer",
                            "minimum": 1,
                            "maximum": 20,
                            "default": 5,
                            "description": "Number of results to return",
                        },
                    },
                    "required": ["query"],
                },
            ),
            handler=search_content,
            error_prefix="Error searching content",
        ),
        ToolSpec(
            definition=types.Tool(
                name="get_url_details",
                description="Show the stored analysis and tags for a URL",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "url": {"type": "string", "format": "uri", "description": "URL to get details for"},
                    },
                    "required": ["url"],
                },
            ),
            handler=get_url_details,
            error_prefix="Error getting URL details",
        ),
        ToolSpec(
            definition=types.Tool(
                name="email_analysis",
                description="Analyze a URL and email the summary",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "url": {"type": "string", "format": "uri", "description": "URL to analyze and email"},
                        "email": {"type": "string", "format": "email", "description": "Recipient address"},
                        "subject": {"type": "string", "description": "Custom email subject"},
                        "include_full_content": {
                            "type": "boolean",
                            "default": False,
                            "description": "Include full content in email",
                        },
                    },
                    "required": ["url", "email"],
                },
            ),
            handler=email_analysis,
            error_prefix="Error analyzing and emailing URL",
        ),
    )
}


# ---- JSON-RPC dispatch ----


def _dump(model: pydantic.BaseModel) -> dict:
    return model.model_dump(by_alias=True, mode="json", exclude_none=True)


def _result(msg_id: types.RequestId, result: pydantic.BaseModel) -> dict:
    return _dump(types.JSONRPCResponse(jsonrpc="2.0", id=msg_id, result=_dump(result)))


def _error(msg_id: types.RequestId | None, code: int, message: str) -> dict:
    error = types.ErrorData(code=code, message=message)
    if msg_id is None:
        # Requests whose id cannot be read are answered with a null id
        return {"jsonrpc": "2.0", "id": None, "error": _dump(error)}
    return _dump(types.JSONRPCError(jsonrpc="2.0", id=msg_id, error=error))


def _text(text: str, is_error: bool = False) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)], isError=is_error
    )


async def call_tool(context: AnalysisContext, name: str, arguments: dict) -> types.CallToolResult:
    """Run a tool. Failures become an error-flagged text block."""
    spec = TOOLS[name]
    try:
        text = await spec.handler(context, arguments)
    except (ConfigurationError, EmailDeliveryError) as e:
        return _text(str(e), is_error=True)
    except AnalyzerError as e:
        return _text(f"{spec.error_prefix}: {e}", is_error=True)
    except Exception as e:
        logger.exception(f"MCP tool {name} crashed")
        return _text(f"{spec.error_prefix}: {str(e) or 'Unknown error'}", is_error=True)
    return _text(text)


async def dispatch(message: Any) -> dict | None:
    """Handle one JSON-RPC message; notifications return None."""
    if isinstance(message, dict) and "id" not in message:
        try:
            notification = types.JSONRPCNotification.model_validate(message)
        except pydantic.ValidationError:
            return _error(None, types.INVALID_REQUEST, "Invalid Request")
        logger.debug(f"MCP notification: {notification.method}")
        return None

    try:
        req = types.JSONRPCRequest.model_validate(message)
    except pydantic.ValidationError:
        return _error(None, types.INVALID_REQUEST, "Invalid Request")

    params = req.params or {}

    if req.method == "initialize":
        requested = params.get("protocolVersion")
        if requested in SUPPORTED_PROTOCOL_VERSIONS:
            version = requested
        else:
            version = types.LATEST_PROTOCOL_VERSION
        return _result(
            req.id,
            types.InitializeResult(
                protocolVersion=version,
                capabilities=types.ServerCapabilities(
                    tools=types.ToolsCapability(listChanged=False)
                ),
                serverInfo=SERVER_INFO,
                instructions=INSTRUCTIONS,
            ),
        )

    if req.method == "ping":
        return _result(req.id, types.EmptyResult())

    if req.method == "tools/list":
        return _result(
            req.id, types.ListToolsResult(tools=[s.definition for s in TOOLS.values()])
        )

    if req.method == "tools/call":
        try:
            call = types.CallToolRequestParams.model_validate(params)
        except pydantic.ValidationError:
            return _error(req.id, types.INVALID_PARAMS, "Invalid tool call parameters")
        if call.name not in TOOLS:
            return _error(req.id, types.INVALID_PARAMS, f"Unknown tool: {call.name}")
        logger.info(f"MCP tool call: {call.name}")
        return _result(req.id, await call_tool(get_context(), call.name, call.arguments or {}))

    return _error(req.id, types.METHOD_NOT_FOUND, f"Method not found: {req.method}")


@bp.route("/mcp", methods=["GET", "POST", "DELETE"])
async def mcp_endpoint():
    if request.method != "POST":
        return jsonify(error="Method not allowed", message="Send JSON-RPC messages with POST"), 405

    payload = request.get_json(silent=True)
    if payload is None:
        return jsonify(_error(None, types.PARSE_ERROR, "Parse error")), 400

    if isinstance(payload, list):
        if not payload:
            return jsonify(_error(None, types.INVALID_REQUEST, "Invalid Request")), 400
        responses = []
        for message in payload:
            response = await dispatch(message)
            if response is not None:
                responses.append(response)
        return (jsonify(responses), 200) if responses else ("", 202)

    response = await dispatch(payload)
    if response is None:
        return "", 202
    return jsonify(response)
