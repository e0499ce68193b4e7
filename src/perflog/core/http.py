"""HTTP request helpers shared by loggers and middleware."""

import random
import re
import string
import time

from perflog.core.models import StatusCategory

SNIPPET_LIMIT = 1000

_ALPHABET = string.digits + string.ascii_lowercase
_UUID_SEGMENT = re.compile(
    r"/[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}(?=/|$)"
)
_NUMERIC_SEGMENT = re.compile(r"/\d+(?=/|$)")


def generate_request_id(rng: random.Random | None = None) -> str:
    """Return ``req_<epoch-ms>_<6 base36 chars>``."""
    choice = (rng or random).choices
    suffix = "".join(choice(_ALPHABET, k=6))
    return f"req_{int(time.time() * 1000)}_{suffix}"


def categorize_status(status: int) -> StatusCategory:
    """Classify ``status`` by its hundreds range."""
    if 200 <= status < 300:
        return StatusCategory.SUCCESS
    if 300 <= status < 400:
        return StatusCategory.REDIRECT
    if 400 <= status < 500:
        return StatusCategory.CLIENT_ERROR
    if 500 <= status < 600:
        return StatusCategory.SERVER_ERROR
    return StatusCategory.UNKNOWN


def extract_url_pattern(url: str) -> str:
    """Normalize ``url`` into a low-cardinality route pattern.

    The query string is dropped, UUID path segments become ``:uuid`` and
    numeric segments become ``:id``.
    """
    path = url.split("?", 1)[0].split("#", 1)[0]
    path = _UUID_SEGMENT.sub("/:uuid", path)
    return _NUMERIC_SEGMENT.sub("/:id", path)


def truncate_snippet(text: str, limit: int = SNIPPET_LIMIT) -> str:
    """Cut ``text`` to ``limit`` characters, marking the cut with ``...``."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
