"""
Unit tests for relation parsing and batched hydration.
"""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from core.domain.work_item import TESTED_BY_RELATION
from core.services.relation_resolver import (
    RelationResolver,
    extract_linked_ids,
    parse_relation_target,
)
from tests.fakes import InMemoryWorkItemRepository, make_credentials

BASE = "https://dev.azure.com/contoso/_apis/wit/workItems"


class TestParseRelationTarget:
    """Test trailing-id extraction."""

    @pytest.mark.parametrize("url,expected", [
        (f"{BASE}/456", 456),
        (f"{BASE}/456/", 456),
        (f"{BASE}/456?api-version=7.1", 456),
        (f"{BASE}/abc", None),
        (f"{BASE}/0", None),
        ("", None),
        (None, None),
        (42, None),
    ])
    def test_parse(self, url, expected):
        """Test well-formed and malformed relation URLs."""
        assert parse_relation_target(url) == expected


class TestExtractLinkedIds:
    """Test relation list handling."""

    def test_malformed_relation_skipped(self):
        """Test a malformed URL is skipped without failing the batch."""
        relations = [
            {"rel": TESTED_BY_RELATION, "url": f"{BASE}/456"},
            {"rel": TESTED_BY_RELATION, "url": f"{BASE}/abc"},
        ]
        assert extract_linked_ids(relations) == [456]

    def test_duplicates_removed_in_order(self):
        """Test repeated targets appear once, first-seen order."""
        relations = [
            {"rel": "a", "url": f"{BASE}/3"},
            {"rel": "b", "url": f"{BASE}/1"},
            {"rel": "a", "url": f"{BASE}/3"},
            "not-a-dict",
            {"rel": "a"},
        ]
        assert extract_linked_ids(relations) == [3, 1]

    def test_filter_by_relation_type(self):
        """Test only the requested link types are kept."""
        relations = [
            {"rel": TESTED_BY_RELATION, "url": f"{BASE}/7"},
            {"rel": "System.LinkTypes.Hierarchy-Forward", "url": f"{BASE}/8"},
        ]
        assert extract_linked_ids(relations, [TESTED_BY_RELATION]) == [7]

    def test_none_relations(self):
        """Test a work item without relations yields no ids."""
        assert extract_linked_ids(None) == []


class TestRelationResolver:
    """Test batched hydration."""

    def _repo_with(self, count):
        repo = InMemoryWorkItemRepository(start_id=0)
        for index in range(count):
            repo.add("Test Case", f"Case {index}")
        return repo

    def test_250_ids_use_two_batches(self):
        """Test the 200-item cap splits requests and preserves order."""
        repo = self._repo_with(250)
        ids = list(range(250, 0, -1))

        items = RelationResolver(repo).hydrate(make_credentials(), ids)

        assert [len(batch) for batch in repo.batch_calls] == [200, 50]
        assert [item.id for item in items] == ids

    def test_omitted_items_dropped(self):
        """Test ids the server omits are absent from the result."""
        repo = self._repo_with(3)
        items = RelationResolver(repo).hydrate(make_credentials(), [1, 99, 3])
        assert [item.id for item in items] == [1, 3]

    def test_smaller_batch_size(self):
        """Test a per-call batch size override."""
        repo = self._repo_with(5)
        RelationResolver(repo).hydrate(make_credentials(), [1, 2, 3, 4, 5], batch_size=2)
        assert repo.batch_calls == [[1, 2], [3, 4], [5]]

    def test_empty_ids_make_no_calls(self):
        """Test nothing is fetched for an empty id list."""
        repo = self._repo_with(0)
        assert RelationResolver(repo).hydrate(make_credentials(), []) == []
        assert repo.batch_calls == []

    @pytest.mark.parametrize("size", [0, 201])
    def test_batch_size_bounds(self, size):
        """Test batch sizes outside 1..200 are rejected."""
        with pytest.raises(ValueError):
            RelationResolver(self._repo_with(0), batch_size=size)
