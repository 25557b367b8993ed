"""Data models for URL analysis."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class AnalysisStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class ContentType(Enum):
    ARTICLE = "article"
    BLOG = "blog"
    NEWS = "news"


class SummaryLength(Enum):
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


DEFAULT_LANGUAGE = "en"


@dataclass
class AnalysisRecord:
    """Latest analysis attempt for one URL."""

    id: Optional[int]
    url: str
    status: AnalysisStatus = AnalysisStatus.PENDING
    title: Optional[str] = None
    content: Optional[str] = None
    summary: Optional[str] = None
    word_count: Optional[int] = None
    analysis_date: Optional[str] = None
    content_type: Optional[ContentType] = None
    language: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the JSON field names of the HTTP API."""
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "content": self.content,
            "summary": self.summary,
            "wordCount": self.word_count,
            "analysisDate": self.analysis_date,
            "status": self.status.value,
            "errorMessage": self.error_message,
            "contentType": self.content_type.value if self.content_type else None,
            "language": self.language,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class ContentTag:
    """A label attached to an analysis record."""

    id: Optional[int]
    url_id: int
    tag: str
    confidence: Optional[float] = None
    created_at: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "urlId": self.url_id,
            "tag": self.tag,
            "confidence": self.confidence,
            "createdAt": self.created_at,
        }
