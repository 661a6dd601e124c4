"""Downloading linked files and extracting their text."""

import asyncio
import io
import logging

import aiohttp
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from src.core.constants import HTTP_OK, HTTP_REQUEST_TIMEOUT_DEFAULT
from src.core.exceptions import FetchError, ParseError

logger = logging.getLogger(__name__)

MAX_PDF_BYTES = 25 * 1024 * 1024


def extract_pdf_text(data: bytes, page_separator: str = "\n\n") -> str:
    """Extract text from every page of a PDF.

    Raises:
        ParseError: If the bytes are not a readable PDF
    """
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except (PdfReadError, ValueError, KeyError) as e:
        msg = f"Could not read PDF: {e}"
        raise ParseError(msg) from e
    return page_separator.join(text for text in pages if text.strip())


async def download_file(
    url: str, timeout: float = HTTP_REQUEST_TIMEOUT_DEFAULT
) -> bytes:
    """Download a file directly, bypassing the page-fetch collaborator."""
    client_timeout = aiohttp.ClientTimeout(total=timeout)
    try:
        async with aiohttp.ClientSession(timeout=client_timeout) as session:
            async with session.get(url) as response:
                if response.status != HTTP_OK:
                    msg = f"Download of {url} returned {response.status}"
                    raise FetchError(msg, status=response.status)
                if (response.content_length or 0) > MAX_PDF_BYTES:
                    msg = f"{url} is larger than {MAX_PDF_BYTES} bytes"
                    raise FetchError(msg)
                return await response.read()
    except aiohttp.ClientError as e:
        msg = f"Download of {url} failed: {e}"
        raise FetchError(msg) from e
    except asyncio.TimeoutError as e:
        msg = f"Download of {url} timed out after {timeout}s"
        raise FetchError(msg) from e


async def fetch_pdf_text(url: str, timeout: float = HTTP_REQUEST_TIMEOUT_DEFAULT) -> str:
    """Download a PDF and return its text; parsing runs in a worker thread."""
    data = await download_file(url, timeout=timeout)
    text = await asyncio.to_thread(extract_pdf_text, data)
    logger.debug("Extracted %d characters from %s", len(text), url)
    return text
