"""Abstract base class for summarizers."""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from ..storage.models import SummaryLength

logger = logging.getLogger(__name__)

MAX_PROMPT_CONTENT = 4000
MAX_TAGS = 5
FALLBACK_SUMMARY_LENGTH = 300

SYSTEM_PROMPT = "You are a content analyst. Provide concise summaries and relevant tags."

LENGTH_INSTRUCTIONS = {
    SummaryLength.SHORT: "in 2-3 sentences",
    SummaryLength.MEDIUM: "in 1-2 paragraphs",
    SummaryLength.LONG: "in 3-4 paragraphs with detailed analysis",
}

SUMMARY_PATTERN = re.compile(r"SUMMARY:\s*(.*?)(?=TAGS:|\Z)", re.DOTALL)
TAGS_PATTERN = re.compile(r"TAGS:\s*(.*)\Z", re.DOTALL)


@dataclass
class SummaryResult:
    summary: str
    tags: list[str] = field(default_factory=list)


def build_prompt(content: str, length: SummaryLength) -> str:
    """Build the user prompt asking for a summary and tags."""
    return f"""Please analyze the following content and provide:
1. A summary {LENGTH_INSTRUCTIONS[length]}
2. 3-5 relevant tags (single words or short phrases)

Content:
{content[:MAX_PROMPT_CONTENT]}

Format your response as:
SUMMARY: [your summary here]
TAGS: tag1, tag2, tag3, tag4, tag5"""


def parse_reply(reply: str) -> SummaryResult:
    """Split a model reply into summary text and at most five tags."""
    summary_match = SUMMARY_PATTERN.search(reply)
    tags_match = TAGS_PATTERN.search(reply)

    summary = (
        summary_match.group(1).strip()
        if summary_match
        else reply[:FALLBACK_SUMMARY_LENGTH]
    )
    tags_string = tags_match.group(1).strip() if tags_match else ""
    tags = [t.strip() for t in tags_string.split(",") if t.strip()]

    return SummaryResult(summary=summary, tags=tags[:MAX_TAGS])


def degraded_summary(content: str) -> SummaryResult:
    """Plain truncation used when the model cannot be reached."""
    if len(content) > FALLBACK_SUMMARY_LENGTH:
        return SummaryResult(summary=content[:FALLBACK_SUMMARY_LENGTH] + "...")
    return SummaryResult(summary=content)


class BaseSummarizer(ABC):
    """Abstract base class for content summarizers.

    Subclasses only implement the model call; prompt construction, reply
    parsing and the fallback on model errors are shared.
    """

    async def summarize(
        self, content: str, length: SummaryLength = SummaryLength.MEDIUM
    ) -> SummaryResult:
        """Summarize content. Model errors yield a degraded result, never an exception."""
        prompt = build_prompt(content, length)
        try:
            reply = await self.complete(SYSTEM_PROMPT, prompt)
        except Exception as e:
            logger.error(f"AI summarization failed with {self.model_name}: {e}")
            return degraded_summary(content)

        return parse_reply(reply or "")

    @abstractmethod
    async def complete(self, system: str, prompt: str) -> str:
        """Send a system/user message pair to the model and return its text."""
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model identifier."""
        pass
