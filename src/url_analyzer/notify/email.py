"""Email formatting and delivery through the Resend API."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

import aiohttp
from jinja2 import Environment, PackageLoader, select_autoescape

from ..errors import EmailDeliveryError
from ..storage.models import AnalysisRecord

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
MAX_EXCERPT_LENGTH = 2000

_env = Environment(
    loader=PackageLoader("url_analyzer", "templates"),
    autoescape=select_autoescape(["html"]),
)


@dataclass
class DeliveryResult:
    """Outcome of a single delivery attempt."""

    success: bool
    id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        if self.success:
            return {"sent": True, "emailId": self.id}
        return {"sent": False, "error": self.error}


def format_email(
    record: AnalysisRecord,
    tags: Iterable[str] = (),
    include_full_content: bool = False,
) -> str:
    """Render the HTML body for one analysis."""
    excerpt = None
    if include_full_content and record.content:
        excerpt = record.content[:MAX_EXCERPT_LENGTH]
        if len(record.content) > MAX_EXCERPT_LENGTH:
            excerpt += "..."

    return _env.get_template("analysis_email.html").render(
        record=record,
        tags=[t.strip() for t in tags if t.strip()],
        analyzed_at=record.analysis_date or record.created_at,
        excerpt=excerpt,
    )


def format_batch_email(items: list) -> str:
    """Render the HTML body summarizing a batch run."""
    return _env.get_template("batch_email.html").render(
        items=items,
        successful=[i for i in items if i.success],
        failed=[i for i in items if not i.success],
    )


def default_subject(record: AnalysisRecord) -> str:
    return f"Analysis: {record.title or 'Web Content'}"


class ResendNotifier:
    """Send HTML emails through Resend. One attempt, no retries."""

    def __init__(
        self,
        api_key: str,
        sender: str = "onboarding@resend.dev",
        timeout_seconds: int = 30,
        api_url: str = RESEND_API_URL,
    ):
        self.api_key = api_key
        self.sender = sender
        self.api_url = api_url
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def send(self, to: str, subject: str, html: str) -> DeliveryResult:
        """Deliver an email. Failures are reported in the result, never raised."""
        try:
            email_id = await self._post(to, subject, html)
        except EmailDeliveryError as e:
            logger.warning(f"Email to {to} rejected: {e}")
            return DeliveryResult(success=False, error=str(e))
        except asyncio.TimeoutError:
            logger.warning(f"Email to {to} timed out")
            return DeliveryResult(success=False, error="Email request timed out")
        except aiohttp.ClientError as e:
            logger.warning(f"Email to {to} failed: {e}")
            return DeliveryResult(success=False, error=str(e) or e.__class__.__name__)

        logger.info(f"Email {email_id} sent to {to}")
        return DeliveryResult(success=True, id=email_id)

    async def _post(self, to: str, subject: str, html: str) -> str:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {"from": self.sender, "to": to, "subject": subject, "html": html}

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(self.api_url, json=payload, headers=headers) as response:
                if not 200 <= response.status < 300:
                    body = await response.text()
                    raise EmailDeliveryError(
                        f"Resend API error: {response.status} {body}".rstrip()
                    )
                try:
                    data = await response.json(content_type=None)
                    return data.get("id")
                except (ValueError, AttributeError) as e:
                    raise EmailDeliveryError(
                        "Resend API returned an unreadable response"
                    ) from e
