"""Pydantic models for the deep search pipeline.

This module contains the data structures passed between the extractor,
strategies, crawler, scorer and orchestrator.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.core.constants import (
    LINK_RELEVANCE_THRESHOLD_DEFAULT,
    MAX_CRAWL_DEPTH_DEFAULT,
    MAX_CRAWL_PAGES_DEFAULT,
    NODE_TIE_BREAK_MARGIN,
)


class DataPointType(str, Enum):
    """Classification of an extracted value."""

    STATISTIC = "statistic"
    PERCENTAGE = "percentage"
    CURRENCY = "currency"
    DATE = "date"
    REFERENCE = "reference"


class VerificationStatus(str, Enum):
    """How well a result's data points are corroborated by other results."""

    VERIFIED = "verified"
    PARTIALLY_VERIFIED = "partially-verified"
    UNVERIFIED = "unverified"


ContentType = Literal["webpage", "file", "database", "spreadsheet"]


def _finite_unit(v: float) -> float:
    if math.isnan(v) or math.isinf(v):
        msg = "Score must be a finite number"
        raise ValueError(msg)
    return v


class DataPoint(BaseModel):
    """A single extracted value with provenance. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    value: str | int | float
    type: DataPointType
    context: str = ""
    confidence: float = Field(ge=0.0, le=1.0)
    source: str


class SearchResult(BaseModel):
    """A retrieved page or document, before quality scoring."""

    url: str
    title: str = ""
    content: str = ""
    summary: str = ""
    data_points: list[DataPoint] = Field(default_factory=list)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    strategy: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class QualityMetrics(BaseModel):
    """Per-dimension quality scores in [0, 1] plus a human-readable explanation."""

    model_config = ConfigDict(validate_assignment=True)

    authority: float = Field(ge=0.0, le=1.0)
    freshness: float = Field(ge=0.0, le=1.0)
    completeness: float = Field(ge=0.0, le=1.0)
    accuracy: float = Field(ge=0.0, le=1.0)
    relevance: float = Field(ge=0.0, le=1.0)
    overall: float = Field(ge=0.0, le=1.0)
    confidence: float = Field(ge=0.0, le=1.0)
    explanation: str = ""

    @field_validator(
        "authority",
        "freshness",
        "completeness",
        "accuracy",
        "relevance",
        "overall",
        "confidence",
    )
    @classmethod
    def validate_finite(cls, v: float) -> float:
        """Reject NaN and infinity, which ge/le constraints let through."""
        return _finite_unit(v)


class ScoredResult(SearchResult):
    """A search result annotated with quality and corroboration data."""

    quality_metrics: QualityMetrics
    verification_status: VerificationStatus = VerificationStatus.UNVERIFIED
    cross_references: list[str] = Field(default_factory=list)


@dataclass
class CrawlNode:
    """Frontier entry owned by a single crawl run."""

    url: str
    depth: int
    relevance: float
    parent: str | None = None
    explored: bool = False


class CrawlOptions(BaseModel):
    """Knobs for one intelligent crawl."""

    max_depth: int = Field(default=MAX_CRAWL_DEPTH_DEFAULT, ge=0)
    max_pages: int = Field(default=MAX_CRAWL_PAGES_DEFAULT, ge=1)
    follow_links: bool = True
    adaptive_depth: bool = True
    data_patterns: list[str] = Field(default_factory=list)
    relevance_threshold: float = Field(
        default=LINK_RELEVANCE_THRESHOLD_DEFAULT, ge=0.0, le=1.0
    )
    include_files: bool = True
    file_extensions: tuple[str, ...] = (".pdf", ".docx")
    tie_break_margin: float = Field(default=NODE_TIE_BREAK_MARGIN, ge=0.0)


class CrawlResult(BaseModel):
    """One crawled page or file."""

    url: str
    title: str = ""
    content: str = ""
    depth: int = 0
    data_points: list[DataPoint] = Field(default_factory=list)
    links: list[str] = Field(default_factory=list)
    file_links: list[str] = Field(default_factory=list)
    relevance_score: float = Field(default=0.0, ge=0.0, le=1.0)
    metadata: dict[str, Any] = Field(default_factory=dict)


class SearchOptions(BaseModel):
    """Options handed to every search strategy."""

    max_results: int = Field(default=10, ge=1)
    timeout: float = Field(default=30.0, gt=0)
    depth: int = Field(default=1, ge=0)
    include_files: bool = True
    include_data: bool = True


class DeepSearchOptions(BaseModel):
    """Caller-facing options for one pipeline run."""

    max_depth: int = Field(default=MAX_CRAWL_DEPTH_DEFAULT, ge=0)
    include_files: bool = True
    include_spreadsheets: bool = False
    include_databases: bool = True
    target_data_points: list[str] = Field(default_factory=list)
    use_quality_scoring: bool = True
    use_intelligent_crawling: bool = True
    use_multi_strategy: bool = True
    sector: str | None = None


class DeepSearchCredentials(BaseModel):
    """Per-call credentials; fall back to settings when omitted."""

    fetch_api_key: str | None = None
    llm_api_key: str | None = None


class SourceDescriptor(BaseModel):
    """Description of the site a final result came from."""

    domain: str
    name: str
    description: str = ""
    content_types: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)


class DeepSearchResult(BaseModel):
    """Final, caller-facing pipeline result."""

    url: str
    title: str
    content: str
    content_type: ContentType = "webpage"
    file_type: str | None = None
    relevance_score: float = Field(ge=0.0, le=1.0)
    data_points: list[str] = Field(default_factory=list)
    source: SourceDescriptor
    quality_metrics: QualityMetrics | None = None
    verification_status: VerificationStatus | None = None
    cross_references: list[str] = Field(default_factory=list)
    strategy: str = ""


class SearchProgress(BaseModel):
    """Progress notification emitted at each stage boundary and per crawled seed."""

    completed: int = Field(ge=0)
    total: int = Field(ge=0)
    stage: str = "crawling"
    current_seed: str | None = None


class MentionedReport(BaseModel):
    """A named report or publication mentioned in page text."""

    name: str = Field(min_length=1, description="Title of the report or dataset")
    publisher: str | None = Field(
        default=None, description="Organization that published it"
    )
    year: str | None = Field(default=None, description="Publication year, if stated")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Strip whitespace and quotes the model sometimes adds."""
        return v.strip().strip('"').strip()


class MentionedReports(BaseModel):
    """LLM output listing reports that likely contain the requested data."""

    reports: list[MentionedReport] = Field(default_factory=list)
