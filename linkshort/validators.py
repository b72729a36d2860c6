"""Input checks applied before anything touches the store."""

import re
from urllib.parse import urlsplit

CODE_RE = re.compile(r"[A-Za-z0-9]{6,8}")
SCHEME_RE = re.compile(r"[A-Za-z][A-Za-z0-9+.\-]*")


def is_valid_code(code) -> bool:
    """True for 6 to 8 ASCII letters or digits, nothing else."""
    return isinstance(code, str) and CODE_RE.fullmatch(code) is not None


def is_valid_url(url) -> bool:
    """Syntactic check for an absolute URL.

    A scheme is required. ``scheme://`` URLs also need a host, any other
    scheme (``mailto:``, ``urn:``) needs something after the colon.
    Reachability is never checked.
    """
    if not isinstance(url, str) or not url or url != url.strip():
        return False
    if any(ch.isspace() for ch in url):
        return False
    try:
        parts = urlsplit(url)
        # Touching .port validates it (raises ValueError when out of range)
        parts.port
    except ValueError:
        return False

    if not parts.scheme or not SCHEME_RE.fullmatch(parts.scheme):
        return False
    if url[len(parts.scheme) + 1:].startswith("//"):
        return bool(parts.hostname)
    return bool(parts.path or parts.query or parts.fragment)
