"""
Unit tests for portal/query_cache.py
"""

import pytest
from unittest.mock import MagicMock

from portal.query_cache import (
    ASSESSMENTS, TEMPLATES, QueryCache, assessment_key, template_key,
)


class TestFetch:
    def test_loader_called_once(self):
        cache = QueryCache()
        loader = MagicMock(return_value=["a"])
        assert cache.fetch(TEMPLATES, loader) == ["a"]
        assert cache.fetch(TEMPLATES, loader) == ["a"]
        loader.assert_called_once()

    def test_peek_does_not_load(self):
        cache = QueryCache()
        assert cache.peek(TEMPLATES) is None
        cache.fetch(TEMPLATES, lambda: [1])
        assert cache.peek(TEMPLATES) == [1]

    def test_loader_error_not_cached(self):
        cache = QueryCache()
        loader = MagicMock(side_effect=[RuntimeError("boom"), ["ok"]])
        with pytest.raises(RuntimeError):
            cache.fetch(TEMPLATES, loader)
        assert TEMPLATES not in cache
        assert cache.fetch(TEMPLATES, loader) == ["ok"]

    def test_load_straddling_invalidation_not_stored(self):
        cache = QueryCache()

        def loader():
            cache.invalidate(ASSESSMENTS)
            return "stale"

        assert cache.fetch(assessment_key("a1"), loader) == "stale"
        assert assessment_key("a1") not in cache


class TestInvalidate:
    def test_prefix_drops_list_and_items(self):
        cache = QueryCache()
        cache.fetch(ASSESSMENTS, lambda: [])
        cache.fetch(assessment_key("a1"), lambda: "a1")
        cache.fetch(template_key("t1"), lambda: "t1")

        assert cache.invalidate(ASSESSMENTS) == 2
        assert ASSESSMENTS not in cache
        assert assessment_key("a1") not in cache
        assert template_key("t1") in cache

    def test_template_list_prefix_keeps_details(self):
        cache = QueryCache()
        cache.fetch(TEMPLATES, lambda: [])
        cache.fetch(template_key("t1"), lambda: "t1")

        assert cache.invalidate(TEMPLATES) == 1
        assert template_key("t1") in cache

    def test_exact_key_leaves_siblings(self):
        cache = QueryCache()
        cache.fetch(assessment_key("a1"), lambda: "a1")
        cache.fetch(assessment_key("a2"), lambda: "a2")
        cache.invalidate(assessment_key("a1"))
        assert assessment_key("a2") in cache

    def test_clear(self):
        cache = QueryCache()
        cache.fetch(TEMPLATES, lambda: [])
        cache.clear()
        assert TEMPLATES not in cache
