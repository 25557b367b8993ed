"""Flask route handlers for the webhook and query APIs."""

import logging
from enum import Enum
from typing import TypeVar

from flask import Blueprint, current_app, g, jsonify, request

from .. import __version__
from ..errors import AnalysisError, ConfigurationError, NotFoundError, ValidationError
from ..notify.email import DeliveryResult, default_subject, format_batch_email, format_email
from ..pipeline import (
    MAX_BATCH_SIZE,
    AnalysisContext,
    AnalysisOptions,
    AnalysisPipeline,
)
from ..storage.models import AnalysisRecord, AnalysisStatus, ContentType
from .background import post_callback, spawn_detached

logger = logging.getLogger(__name__)

bp = Blueprint("main", __name__)

E = TypeVar("E", bound=Enum)

EMAIL_NOT_CONFIGURED = "Email functionality not configured"


def get_context() -> AnalysisContext:
    """Get the analysis context for the current request."""
    if "analysis_context" not in g:
        g.analysis_context = current_app.config["CONTEXT_FACTORY"]()
    return g.analysis_context


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _parse_enum(enum_cls: type[E], value: str | None, name: str) -> E | None:
    if not value:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{name} must be one of: {allowed}")


def _failure(title: str, error: Exception):
    return jsonify(error=title, message=str(error) or "Unknown error"), 500


async def send_analysis_email(
    context: AnalysisContext,
    record: AnalysisRecord,
    to: str,
    subject: str | None = None,
    include_full_content: bool = False,
) -> DeliveryResult:
    """Email one analysis; a missing email setup is reported, not raised."""
    if context.notifier is None:
        return DeliveryResult(success=False, error=EMAIL_NOT_CONFIGURED)

    tags = [t.tag for t in context.db.get_tags(record.id)]
    html = format_email(record, tags, include_full_content=include_full_content)
    return await context.notifier.send(to, subject or default_subject(record), html)


@bp.route("/")
def index():
    """Service description and endpoint listing."""
    return jsonify(
        name="URL Content Analyzer & Summarizer",
        version=__version__,
        description="Analyze and summarize web content with AI-powered insights",
        endpoints={
            "webhook": {
                "analyze": "POST /webhook/analyze",
                "analyze_and_email": "POST /webhook/analyze-and-email",
                "batch_analyze": "POST /webhook/batch-analyze",
            },
            "api": {
                "summaries": "GET /api/summaries",
                "search": "GET /api/search",
                "analysis": "GET|DELETE /api/analysis/<id>",
                "tags": "GET /api/tags",
            },
            "mcp": "POST /mcp",
            "openapi": "GET /openapi.json",
        },
    )


def _operation(summary: str, *params: str, body: bool = False) -> dict:
    op: dict = {"summary": summary, "responses": {"200": {"description": "OK"}}}
    if params:
        op["parameters"] = [
            {
                "name": name,
                "in": "path" if name == "id" else "query",
                "required": name in ("id", "q"),
                "schema": {"type": "integer" if name == "id" else "string"},
            }
            for name in params
        ]
    if body:
        op["requestBody"] = {
            "required": True,
            "content": {"application/json": {"schema": {"type": "object"}}},
        }
    return op


@bp.route("/openapi.json")
def openapi():
    """Static OpenAPI description of the HTTP API."""
    return jsonify(
        openapi="3.0.0",
        info={
            "title": "URL Content Analyzer & Summarizer",
            "version": __version__,
            "description": "Analyze and summarize web content with AI-powered insights",
        },
        paths={
            "/webhook/analyze": {"post": _operation("Analyze one URL", body=True)},
            "/webhook/analyze-and-email": {
                "post": _operation("Analyze a URL and email the summary", body=True)
            },
            "/webhook/batch-analyze": {
                "post": _operation("Analyze up to ten URLs", body=True)
            },
            "/api/summaries": {
                "get": _operation(
                    "List analyses", "page", "limit", "status", "content_type", "search"
                )
            },
            "/api/search": {
                "get": _operation(
                    "Search completed analyses",
                    "q", "limit", "content_type", "language", "date_from", "date_to",
                )
            },
            "/api/analysis/{id}": {
                "get": _operation("Get one analysis with its tags", "id"),
                "delete": _operation("Delete an analysis", "id"),
            },
            "/api/tags": {"get": _operation("Tag counts", "min_confidence", "limit")},
            "/mcp": {"post": _operation("MCP JSON-RPC messages", body=True)},
        },
    )


# ---- Webhooks ----


@bp.route("/webhook/analyze", methods=["POST"])
async def webhook_analyze():
    """Analyze one URL, optionally emailing it or reporting to a callback."""
    data = _json_body()
    url = data.get("url")
    if not url:
        raise ValidationError("URL is required")

    # Options may be nested under "options" or given at the top level
    options = AnalysisOptions.from_dict(data.get("options") or data)
    email = data.get("email")
    subject = data.get("subject")
    include_full_content = bool(data.get("include_full_content"))
    callback_url = data.get("callback_url")

    context = get_context()
    pipeline = AnalysisPipeline(context)

    if callback_url:
        try:
            record = pipeline.begin(url)
        except AnalysisError as e:
            return _failure("Analysis failed", e)

        async def finish() -> None:
            payload = {"analysis_id": record.id}
            try:
                try:
                    if record.status is AnalysisStatus.COMPLETED:
                        result = record
                    else:
                        result = await pipeline.process(record, options)
                except Exception as e:
                    payload.update(status="failed", error=str(e) or "Unknown error")
                    return

                payload.update(status=result.status.value, result=result.to_dict())
                if email:
                    delivery = await send_analysis_email(
                        context, result, email, subject, include_full_content
                    )
                    payload["email"] = delivery.to_dict()
            finally:
                # Exactly one callback, whatever happened above
                await post_callback(callback_url, payload)

        spawn_detached(finish, name=f"analysis-{record.id}")
        return (
            jsonify(
                analysis_id=record.id,
                status=record.status.value,
                message="Analysis started, callback will be sent when complete",
            ),
            202,
        )

    try:
        record = await pipeline.analyze(url, options)
    except AnalysisError as e:
        return _failure("Failed to analyze URL", e)

    body = {
        "success": True,
        "analysis_id": record.id,
        "status": record.status.value,
        "analysis": record.to_dict(),
    }
    if email:
        delivery = await send_analysis_email(
            context, record, email, subject, include_full_content
        )
        body["email"] = delivery.to_dict()

    return jsonify(body)


@bp.route("/webhook/analyze-and-email", methods=["POST"])
async def webhook_analyze_and_email():
    """Analyze a URL with tags and email the result."""
    data = _json_body()
    url = data.get("url")
    email = data.get("email")
    if not url or not email:
        raise ValidationError("URL and email are required")

    context = get_context()
    if context.notifier is None:
        raise ConfigurationError(EMAIL_NOT_CONFIGURED)

    try:
        record = await AnalysisPipeline(context).analyze(
            url, AnalysisOptions(generate_tags=True)
        )
    except AnalysisError as e:
        return _failure("Failed to analyze and email", e)

    delivery = await send_analysis_email(context, record, email, data.get("subject"))
    if not delivery.success:
        return jsonify(
            success=False,
            analysis=record.to_dict(),
            email={"sent": False, "error": delivery.error},
        )

    return jsonify(
        success=True,
        message="URL analyzed and summary emailed successfully",
        analysis={
            "url": record.url,
            "title": record.title,
            "summary": record.summary,
            "wordCount": record.word_count,
            "status": record.status.value,
        },
        email={"sent": True, "emailId": delivery.id, "recipient": email},
    )


@bp.route("/webhook/batch-analyze", methods=["POST"])
async def webhook_batch_analyze():
    """Analyze up to ten URLs in order and return every outcome."""
    data = _json_body()
    urls = data.get("urls")
    if not isinstance(urls, list) or not urls:
        raise ValidationError("URLs array is required")
    if len(urls) > MAX_BATCH_SIZE:
        raise ValidationError(f"Maximum {MAX_BATCH_SIZE} URLs per batch")
    if not all(isinstance(u, str) and u for u in urls):
        raise ValidationError("URLs must be non-empty strings")

    options = AnalysisOptions.from_dict(data.get("options"), generate_tags=True)
    email = data.get("email")
    callback_url = data.get("callback_url")

    context = get_context()
    items = await AnalysisPipeline(context).analyze_batch(urls, options)
    results = [item.to_dict() for item in items]
    body = {"success": True, "batch_results": results}

    if email:
        if context.notifier is None:
            body["email"] = {"sent": False, "error": EMAIL_NOT_CONFIGURED}
        else:
            succeeded = sum(1 for i in items if i.success)
            subject = (
                f"{data.get('subject_prefix') or 'Batch Analysis'} - "
                f"{succeeded} URLs processed"
            )
            delivery = await context.notifier.send(
                email, subject, format_batch_email(items)
            )
            body["email"] = delivery.to_dict()

    if callback_url:
        spawn_detached(
            lambda: post_callback(callback_url, {"batch_results": results}),
            name="batch-callback",
        )

    return jsonify(body)


# ---- Query API ----


@bp.route("/api/summaries")
def list_summaries():
    """Paginated analyses with optional filters."""
    page = max(request.args.get("page", 1, type=int), 1)
    limit = min(max(request.args.get("limit", 20, type=int), 1), 100)
    status = _parse_enum(AnalysisStatus, request.args.get("status"), "status")
    content_type = _parse_enum(
        ContentType, request.args.get("content_type"), "content_type"
    )

    records, total = get_context().db.list_records(
        page=page,
        per_page=limit,
        status=status,
        content_type=content_type,
        search=request.args.get("search") or None,
    )
    return jsonify(
        summaries=[r.to_dict() for r in records],
        pagination={"page": page, "limit": limit, "total": total},
    )


@bp.route("/api/search")
def search():
    """Substring search over completed analyses."""
    query = request.args.get("q", "").strip()
    if not query:
        raise ValidationError("Search query (q) is required")

    limit = min(max(request.args.get("limit", 10, type=int), 1), 100)
    content_type = _parse_enum(
        ContentType, request.args.get("content_type"), "content_type"
    )

    records, _ = get_context().db.list_records(
        per_page=limit,
        status=AnalysisStatus.COMPLETED,
        content_type=content_type,
        search=query,
        language=request.args.get("language") or None,
        date_from=request.args.get("date_from") or None,
        date_to=request.args.get("date_to") or None,
    )
    return jsonify(results=[r.to_dict() for r in records], query=query)


@bp.route("/api/analysis/<int:analysis_id>")
def get_analysis(analysis_id: int):
    """Single analysis with its tags."""
    db = get_context().db
    record = db.get_by_id(analysis_id)
    if not record:
        raise NotFoundError("Analysis not found")

    return jsonify({**record.to_dict(), "tags": [t.to_dict() for t in db.get_tags(analysis_id)]})


@bp.route("/api/analysis/<int:analysis_id>", methods=["DELETE"])
def delete_analysis(analysis_id: int):
    if not get_context().db.delete_record(analysis_id):
        raise NotFoundError("Analysis not found")
    return jsonify(message="Analysis deleted successfully")


@bp.route("/api/tags")
def list_tags():
    """Tag histogram, most used first."""
    min_confidence = request.args.get("min_confidence", 0.0, type=float)
    limit = min(max(request.args.get("limit", 50, type=int), 1), 500)

    counts = get_context().db.get_tag_counts(min_confidence=min_confidence, limit=limit)
    return jsonify(tags=[{"tag": tag, "count": count} for tag, count in counts])
