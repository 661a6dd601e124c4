"""Validation utilities for the deep research server."""

import ipaddress
from typing import Any
from urllib.parse import urlparse

from src.core.constants import MAX_QUERY_LENGTH, MAX_URL_LENGTH

from .url_helpers import normalize_url


def is_safe_hostname(hostname: str) -> dict[str, Any]:
    """Validate a hostname is safe to fetch (SSRF protection).

    Blocks:
    - Localhost addresses (127.0.0.1, ::1, localhost, etc.)
    - Private, link-local and reserved IP literals
    - Internal domain suffixes (.local, .internal, .corp)

    Hostnames are not resolved; discovered links are checked on every hop
    so the check stays offline.
    """
    if not hostname:
        return {"safe": False, "error": "Empty hostname"}

    hostname = hostname.lower().strip()

    localhost_variants = {
        "localhost",
        "localhost.localdomain",
        "127.0.0.1",
        "::1",
        "0.0.0.0",
    }
    if hostname in localhost_variants:
        return {
            "safe": False,
            "error": f"Localhost addresses are not allowed: {hostname}",
        }

    internal_suffixes = (".local", ".internal", ".corp", ".localhost")
    if any(hostname.endswith(suffix) for suffix in internal_suffixes):
        return {
            "safe": False,
            "error": f"Internal domain suffixes are not allowed: {hostname}",
        }

    try:
        ip_obj = ipaddress.ip_address(hostname.strip("[]"))
    except ValueError:
        return {"safe": True}

    if (
        ip_obj.is_loopback
        or ip_obj.is_private
        or ip_obj.is_link_local
        or ip_obj.is_reserved
    ):
        return {
            "safe": False,
            "error": f"Non-public IP addresses are not allowed: {hostname}",
        }
    return {"safe": True}


def validate_crawl_url(url: str) -> dict[str, Any]:
    """Validate a URL before it is fetched.

    Returns:
        Dictionary with validation result and normalized URL
    """
    if not url or not isinstance(url, str):
        return {"valid": False, "error": "URL is required and must be a string"}

    url = url.strip()
    if len(url) > MAX_URL_LENGTH:
        return {"valid": False, "error": f"URL exceeds {MAX_URL_LENGTH} characters"}

    if not url.startswith(("http://", "https://")):
        return {
            "valid": False,
            "error": f"URL must start with http:// or https://. Got: '{url}'",
        }

    try:
        hostname = urlparse(url).hostname
    except ValueError as e:
        return {"valid": False, "error": f"URL parsing failed: {e}"}

    if not hostname:
        return {"valid": False, "error": f"Invalid URL - cannot extract hostname: {url}"}

    hostname_check = is_safe_hostname(hostname)
    if not hostname_check["safe"]:
        return {"valid": False, "error": f"SSRF protection: {hostname_check['error']}"}

    return {"valid": True, "normalized_url": normalize_url(url)}


def validate_query(query: str) -> dict[str, Any]:
    """Validate a research query."""
    if not query or not isinstance(query, str) or not query.strip():
        return {"valid": False, "error": "Query is required and must be non-empty"}
    if len(query) > MAX_QUERY_LENGTH:
        return {
            "valid": False,
            "error": f"Query exceeds {MAX_QUERY_LENGTH} characters",
        }
    return {"valid": True, "query": query.strip()}
