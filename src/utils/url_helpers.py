"""URL helpers shared by the crawler, scorer and fetch backends."""

from urllib.parse import urldefrag, urljoin, urlparse

from src.core.constants import FILE_EXTENSIONS


def normalize_url(url: str) -> str:
    """Strip the fragment and surrounding whitespace from a URL."""
    return urldefrag(url.strip())[0]


def extract_domain_from_url(url: str) -> str:
    """Return the lowercase hostname of a URL without a leading ``www.``.

    Returns an empty string when the URL has no hostname.
    """
    try:
        hostname = urlparse(url).hostname or ""
    except ValueError:
        return ""
    hostname = hostname.lower()
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname


def is_same_domain(url: str, domain: str) -> bool:
    """Check whether ``url`` lives on ``domain`` or one of its subdomains."""
    host = extract_domain_from_url(url)
    domain = domain.lower().removeprefix("www.")
    if not host or not domain:
        return False
    return host == domain or host.endswith("." + domain)


def resolve_link(href: str, base_url: str) -> str | None:
    """Resolve ``href`` against ``base_url``; only http(s) results are kept."""
    href = href.strip()
    if not href or href.startswith(("javascript:", "mailto:", "tel:", "data:")):
        return None
    try:
        absolute = urljoin(base_url, href)
    except ValueError:
        return None
    if urlparse(absolute).scheme not in ("http", "https"):
        return None
    return absolute


def file_extension(url: str) -> str | None:
    """Return the downloadable-file extension of a URL path, if it has one."""
    path = urlparse(url).path.lower()
    for extension in FILE_EXTENSIONS:
        if path.endswith(extension):
            return extension
    return None


def is_file_url(url: str, extensions: tuple[str, ...] = FILE_EXTENSIONS) -> bool:
    """Check whether the URL points at one of ``extensions``."""
    ext = file_extension(url)
    return ext is not None and ext in extensions


def is_pdf_url(url: str) -> bool:
    return urlparse(url).path.lower().endswith(".pdf")


def file_name_from_url(url: str) -> str:
    """Last path segment of a URL, used as a title for downloaded files."""
    segments = [s for s in urlparse(url).path.split("/") if s]
    return segments[-1] if segments else url
