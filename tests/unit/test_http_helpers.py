"""Tests for HTTP request helpers."""

import random
import re

import pytest

from perflog.core.http import (
    categorize_status,
    extract_url_pattern,
    generate_request_id,
    truncate_snippet,
)
from perflog.core.models import StatusCategory

pytestmark = pytest.mark.core


@pytest.mark.parametrize(
    ("url", "pattern"),
    [
        ("/products/123", "/products/:id"),
        ("/orders/3fa85f64-5717-4562-b3fc-2c963f66afa6", "/orders/:uuid"),
        ("/search?q=pizza", "/search"),
        ("/api/products/42/reviews/7", "/api/products/:id/reviews/:id"),
        ("/menu#specials", "/menu"),
        ("/v2/items", "/v2/items"),
    ],
)
def test_extract_url_pattern(url: str, pattern: str) -> None:
    assert extract_url_pattern(url) == pattern


@pytest.mark.parametrize(
    ("status", "category"),
    [
        (200, StatusCategory.SUCCESS),
        (301, StatusCategory.REDIRECT),
        (404, StatusCategory.CLIENT_ERROR),
        (500, StatusCategory.SERVER_ERROR),
        (102, StatusCategory.UNKNOWN),
    ],
)
def test_categorize_status(status: int, category: StatusCategory) -> None:
    assert categorize_status(status) is category


class TestRequestId:
    def test_format(self) -> None:
        assert re.fullmatch(r"req_\d+_[0-9a-z]{6}", generate_request_id())

    def test_unique_across_many_calls(self) -> None:
        ids = {generate_request_id() for _ in range(1000)}
        assert len(ids) == 1000

    def test_injected_rng_is_deterministic(self) -> None:
        first = generate_request_id(random.Random(7)).rsplit("_", 1)[1]
        second = generate_request_id(random.Random(7)).rsplit("_", 1)[1]
        assert first == second


class TestTruncateSnippet:
    def test_short_text_unchanged(self) -> None:
        assert truncate_snippet("ok") == "ok"

    def test_long_text_is_cut_at_limit(self) -> None:
        snippet = truncate_snippet("x" * 1500)
        assert snippet == "x" * 1000 + "..."
