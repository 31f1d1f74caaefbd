"""
URL normalisation helpers.

GSC reports absolute URLs, DataForSEO reports absolute URLs with or
without ``www``, optimisation tasks store whatever the operator typed.
These helpers reduce all of them to comparable keys.
"""

import logging
import re
from typing import Optional
from urllib.parse import unquote, urlsplit

logger = logging.getLogger(__name__)

PLACEHOLDER_ORIGIN = "https://www.alanranger.com"

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)


def normalise_path(url_or_path: Optional[str]) -> str:
    """
    Reduce a URL or bare path to a lower-cased path.

    Bare paths are resolved against a placeholder origin. The trailing
    slash is dropped except for the root. Anything unparsable becomes "/".
    """
    if not isinstance(url_or_path, str) or not url_or_path.strip():
        return "/"

    raw = url_or_path.strip()
    if not _SCHEME_RE.match(raw):
        if raw.startswith("//"):
            raw = "https:" + raw
        else:
            raw = PLACEHOLDER_ORIGIN + ("" if raw.startswith("/") else "/") + raw

    try:
        path = urlsplit(raw).path or "/"
    except ValueError:
        return "/"

    path = path.lower()
    if len(path) > 1 and path.endswith("/"):
        path = path.rstrip("/") or "/"
    return path


def normalize_gsc_page_key(url: Optional[str]) -> str:
    """
    Key GSC page URLs by lower-cased, decoded path.

    Strips protocol, host, query string and fragment, then the trailing
    slash, then percent-decodes.
    """
    if not url:
        return ""
    text = _SCHEME_RE.sub("", str(url).strip().lower())
    text = text.split("#", 1)[0].split("?", 1)[0]
    slash = text.find("/")
    path = text[slash:] if slash >= 0 else "/"
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return unquote(path)


def tracked_path_key(url: Optional[str]) -> str:
    """
    Path of a page URL for tracked-task matching.

    Lower-cased, without scheme, ``www.``, trailing slash, query or the
    leading slash: ``https://www.site.com/a/b/`` → ``a/b``.
    """
    if not url:
        return ""
    text = _SCHEME_RE.sub("", str(url).strip().lower())
    text = text.split("#", 1)[0].split("?", 1)[0].rstrip("/")
    if text.startswith("www."):
        text = text[4:]
    slash = text.find("/")
    return text[slash + 1:] if slash >= 0 else ""


def normalize_task_url(url: Optional[str]) -> str:
    """
    Match pattern for an optimisation-task target URL.

    Task URLs may be absolute, host-relative or bare slugs. A bare host
    yields "" which matches every page.
    """
    if not url or not str(url).strip():
        return ""
    text = str(url).strip().lower()
    if text.startswith("/"):
        return text.strip("/")
    if not _SCHEME_RE.match(text) and "/" not in text and "." not in text:
        return text
    return tracked_path_key(text)


def path_matches_pattern(path: str, pattern: str) -> bool:
    """Tracked-page test: an empty pattern matches every path."""
    if not pattern:
        return True
    return pattern in path or path.startswith(pattern + "/")


def extract_domain(url: Optional[str]) -> str:
    """Registered host without ``www.``; "" when there is none."""
    if not url:
        return ""
    raw = str(url).strip().lower()
    if not _SCHEME_RE.match(raw):
        raw = "https://" + raw
    try:
        host = urlsplit(raw).hostname or ""
    except ValueError:
        logger.debug(f"Could not parse host from {url!r}")
        return ""
    return host[4:] if host.startswith("www.") else host
