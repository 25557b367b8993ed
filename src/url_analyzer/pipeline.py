"""Analysis pipeline: fetch, extract, summarize and persist one URL at a time."""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from .config import Config
from .errors import AnalysisError, AnalyzerError, ExtractionError, ValidationError
from .fetching.content import MIN_CONTENT_LENGTH, ContentExtractor
from .fetching.fetcher import PageFetcher
from .notify.email import ResendNotifier
from .storage.database import Database
from .storage.models import (
    DEFAULT_LANGUAGE,
    AnalysisRecord,
    AnalysisStatus,
    ContentType,
    SummaryLength,
)
from .summarization.base import BaseSummarizer
from .summarization.bedrock import BedrockSummarizer

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 10
TAG_CONFIDENCE = 0.8


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def classify_content_type(url: str) -> ContentType:
    """Coarse type from the URL text; "blog" wins over "news"."""
    if "blog" in url:
        return ContentType.BLOG
    if "news" in url:
        return ContentType.NEWS
    return ContentType.ARTICLE


@dataclass
class AnalysisOptions:
    generate_tags: bool = False
    summary_length: SummaryLength = SummaryLength.MEDIUM

    @classmethod
    def from_dict(cls, data: Any, generate_tags: bool = False) -> "AnalysisOptions":
        """Build options from a request payload, validating the summary length."""
        data = data or {}
        if not isinstance(data, dict):
            raise ValidationError("options must be a JSON object")
        length = data.get("summary_length") or SummaryLength.MEDIUM.value
        try:
            summary_length = SummaryLength(length)
        except ValueError:
            raise ValidationError(
                f"summary_length must be one of: "
                f"{', '.join(s.value for s in SummaryLength)}"
            )
        tags = data.get("generate_tags")
        return cls(
            generate_tags=generate_tags if tags is None else bool(tags),
            summary_length=summary_length,
        )


@dataclass
class BatchItem:
    """Outcome of one URL in a batch."""

    url: str
    success: bool
    record: Optional[AnalysisRecord] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        if self.success and self.record is not None:
            return {
                "success": True,
                "url": self.url,
                "status": self.record.status.value,
                "analysis_id": self.record.id,
                "analysis": self.record.to_dict(),
            }
        return {"success": False, "url": self.url, "status": "failed", "error": self.error}


@dataclass
class AnalysisContext:
    """Collaborators an analysis needs, passed explicitly to the pipeline."""

    db: Database
    fetcher: PageFetcher
    summarizer: BaseSummarizer
    extractor: ContentExtractor = field(default_factory=ContentExtractor)
    notifier: Optional[ResendNotifier] = None
    config: Config = field(default_factory=Config)

    @classmethod
    def from_config(cls, config: Config) -> "AnalysisContext":
        notifier = None
        if config.email_enabled:
            notifier = ResendNotifier(config.resend_api_key, sender=config.email_from)

        return cls(
            db=Database(config.database_path),
            fetcher=PageFetcher(
                timeout_seconds=config.fetch_timeout_seconds,
                max_content_length=config.max_content_length,
                user_agent=config.user_agent,
            ),
            summarizer=BedrockSummarizer(
                model_id=config.bedrock_model,
                region=config.bedrock_region,
                max_tokens=config.max_tokens,
            ),
            notifier=notifier,
            config=config,
        )


class AnalysisPipeline:
    """Run analyses against the record store.

    Record lifecycle per URL: absent -> pending -> completed | failed, and
    failed -> pending on retry. Completed records are returned as-is and
    never re-analyzed; delete the record to force a fresh analysis.
    """

    def __init__(self, context: AnalysisContext, clock: Callable[[], str] = utc_now):
        self.context = context
        self.db = context.db
        self.clock = clock

    async def analyze(
        self, url: str, options: AnalysisOptions | None = None
    ) -> AnalysisRecord:
        """Analyze a URL, or return its completed analysis."""
        record = self.begin(url)
        if record.status is AnalysisStatus.COMPLETED:
            logger.info(f"Using completed analysis #{record.id} for {url}")
            return record
        return await self.process(record, options or AnalysisOptions())

    def begin(self, url: str) -> AnalysisRecord:
        """Claim the record for a URL and mark it pending.

        Completed records are returned unchanged. If another caller inserts
        the same new URL first, StoreConflictError propagates and that
        caller's record is left alone.
        """
        if not url:
            raise ValidationError("URL is required")

        now = self.clock()
        existing = self.db.get_by_url(url)

        if existing and existing.status is AnalysisStatus.COMPLETED:
            return existing

        if existing:
            record = replace(
                existing,
                status=AnalysisStatus.PENDING,
                error_message=None,
                updated_at=now,
            )
            self.db.update_record(record)
            logger.info(f"Retrying analysis #{record.id} for {url}")
            return record

        record = self.db.insert_record(
            AnalysisRecord(
                id=None,
                url=url,
                status=AnalysisStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info(f"Started analysis #{record.id} for {url}")
        return record

    async def process(
        self, record: AnalysisRecord, options: AnalysisOptions
    ) -> AnalysisRecord:
        """Fetch, extract and summarize a pending record, then commit the outcome."""
        try:
            page = await self.context.fetcher.fetch(record.url)
            extracted = self.context.extractor.extract(page.content)

            if not extracted.content or len(extracted.content) < MIN_CONTENT_LENGTH:
                raise ExtractionError("Insufficient content extracted from URL")

            result = await self.context.summarizer.summarize(
                extracted.content, options.summary_length
            )
        except Exception as e:
            self._commit_failure(record, e)
            raise

        now = self.clock()
        completed = replace(
            record,
            title=extracted.title,
            content=extracted.content,
            summary=result.summary,
            word_count=extracted.word_count,
            content_type=classify_content_type(record.url),
            language=DEFAULT_LANGUAGE,
            analysis_date=now,
            status=AnalysisStatus.COMPLETED,
            error_message=None,
            updated_at=now,
        )
        self.db.update_record(completed)

        if options.generate_tags and result.tags:
            self.db.add_tags(completed.id, result.tags, TAG_CONFIDENCE, now)

        logger.info(
            f"Completed analysis #{completed.id} for {record.url} "
            f"({completed.word_count} words, {len(result.tags)} tags)"
        )
        return completed

    def _commit_failure(self, record: AnalysisRecord, error: Exception) -> None:
        message = str(error) or "Unknown error"
        if not isinstance(error, AnalysisError):
            logger.exception(f"Unexpected error analyzing {record.url}")
        else:
            logger.warning(f"Analysis #{record.id} for {record.url} failed: {message}")

        # Prior title/content/summary are kept
        self.db.update_record(
            replace(
                record,
                status=AnalysisStatus.FAILED,
                error_message=message,
                updated_at=self.clock(),
            )
        )

    async def analyze_batch(
        self, urls: list[str], options: AnalysisOptions | None = None
    ) -> list[BatchItem]:
        """Analyze URLs one after another; one failure does not stop the rest."""
        if not urls:
            raise ValidationError("URLs array is required")
        if len(urls) > MAX_BATCH_SIZE:
            raise ValidationError(f"Maximum {MAX_BATCH_SIZE} URLs per batch")

        items = []
        for url in urls:
            try:
                record = await self.analyze(url, options)
                items.append(BatchItem(url=url, success=True, record=record))
            except AnalyzerError as e:
                items.append(BatchItem(url=url, success=False, error=str(e)))
            except Exception as e:
                logger.exception(f"Batch item {url} failed unexpectedly")
                items.append(BatchItem(url=url, success=False, error=str(e) or "Unknown error"))

        succeeded = sum(1 for i in items if i.success)
        logger.info(f"Batch finished: {succeeded}/{len(items)} URLs analyzed")
        return items
