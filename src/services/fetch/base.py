"""Fetch collaborator contract shared by all backends.

A fetcher performs two operations:
- ``search``: web search returning hits (possibly empty)
- ``scrape``: fetch a single page as markdown and HTML

Failures are signalled with exceptions so they are never confused with
"zero results": ``FetchError`` for transient per-request failures and
``CollaboratorQuotaError`` for credential/quota problems the caller must act on.
"""

from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from src.core.constants import (
    HTTP_FORBIDDEN,
    HTTP_GATEWAY_TIMEOUT,
    HTTP_PAYMENT_REQUIRED,
    HTTP_TOO_MANY_REQUESTS,
    HTTP_UNAUTHORIZED,
)
from src.core.exceptions import CollaboratorQuotaError, QuotaErrorKind

_STATUS_KINDS: dict[int, QuotaErrorKind] = {
    HTTP_UNAUTHORIZED: QuotaErrorKind.INVALID_CREDENTIAL,
    HTTP_FORBIDDEN: QuotaErrorKind.INVALID_CREDENTIAL,
    HTTP_PAYMENT_REQUIRED: QuotaErrorKind.INSUFFICIENT_QUOTA,
    HTTP_TOO_MANY_REQUESTS: QuotaErrorKind.RATE_LIMITED,
    HTTP_GATEWAY_TIMEOUT: QuotaErrorKind.TIMED_OUT,
}


class SearchHit(BaseModel):
    """A single web search hit."""

    url: str
    title: str = ""
    description: str = ""
    markdown: str = ""
    score: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class FetchedPage(BaseModel):
    """A scraped page."""

    url: str
    title: str = ""
    markdown: str = ""
    html: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


@runtime_checkable
class WebFetcher(Protocol):
    """Search and page-fetch collaborator."""

    async def search(
        self,
        query: str,
        limit: int,
        *,
        formats: tuple[str, ...] = ("markdown",),
        only_main_content: bool = True,
    ) -> list[SearchHit]: ...

    async def scrape(
        self,
        url: str,
        *,
        formats: tuple[str, ...] = ("markdown", "html"),
        only_main_content: bool = True,
        wait_for_ms: int = 0,
    ) -> FetchedPage: ...


def classify_http_status(status: int) -> QuotaErrorKind | None:
    """Map a collaborator HTTP status to a quota error kind, if it is one."""
    return _STATUS_KINDS.get(status)


def raise_for_quota_status(status: int) -> None:
    """Raise ``CollaboratorQuotaError`` for statuses the caller has to act on."""
    kind = classify_http_status(status)
    if kind is not None:
        raise CollaboratorQuotaError(kind, status=status)
