"""Tests for tiered search (modern -> legacy)."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from curator.common.backend_client import AuthError, BackendError
from curator.common.normalizer import SchemaViolation
from curator.retriever.query_planner import plan_search
from curator.retriever.searcher import Searcher, SearchOptions


@pytest.fixture
def client():
    mock = MagicMock()
    mock.search_v2 = AsyncMock(return_value={"results": []})
    mock.search_legacy = AsyncMock(return_value={"results": []})
    return mock


class TestTiers:
    @pytest.mark.asyncio
    async def test_primary_results_returned_in_backend_order(self, client):
        client.search_v2.return_value = {"results": [
            {"id": "b", "relevanceScore": 0.2},
            {"id": "a", "relevanceScore": 0.9},
        ]}
        results = await Searcher(client).search("growth")

        assert [r.id for r in results] == ["b", "a"]
        client.search_legacy.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_primary_error_calls_legacy_once(self, client):
        client.search_v2.side_effect = BackendError("Service Unavailable", status_code=503)
        client.search_legacy.return_value = {"results": [{"id": "x", "content_type": "article"}]}

        results = await Searcher(client).search("productivity", SearchOptions(mode="any"))

        assert [r.id for r in results] == ["x"]
        client.search_legacy.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_empty_primary_broadens_to_legacy(self, client):
        client.search_legacy.return_value = [{"id": "legacy"}]
        results = await Searcher(client).search("growth")

        assert [r.id for r in results] == ["legacy"]
        client.search_legacy.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_full_content_results_skip_legacy(self, client):
        client.search_v2.return_value = {"results": [{"id": "a", "rawText": "text"}]}
        results = await Searcher(client).search("growth", SearchOptions(include_full_content=True))

        assert len(results) == 1
        client.search_legacy.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_full_content_does_not_double_fetch(self, client):
        results = await Searcher(client).search("growth", SearchOptions(include_full_content=True))

        assert results == []
        client.search_legacy.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_primary_error_with_full_content_still_falls_back(self, client):
        client.search_v2.side_effect = BackendError("boom", status_code=500)
        client.search_legacy.return_value = {"results": [{"id": "x"}]}

        results = await Searcher(client).search("growth", SearchOptions(include_full_content=True))

        assert [r.id for r in results] == ["x"]

    @pytest.mark.asyncio
    async def test_both_tiers_fail_returns_empty(self, client):
        client.search_v2.side_effect = BackendError("down", status_code=503)
        client.search_legacy.side_effect = BackendError("also down", status_code=503)

        assert await Searcher(client).search("growth") == []

    @pytest.mark.asyncio
    async def test_missing_results_key_counts_as_empty(self, client):
        client.search_v2.return_value = {"success": True}
        assert await Searcher(client).search("growth") == []
        client.search_legacy.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_auth_error_never_falls_back(self, client):
        client.search_v2.side_effect = AuthError("expired", status_code=401)

        with pytest.raises(AuthError):
            await Searcher(client).search("growth")
        client.search_legacy.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_schema_violation_propagates(self, client):
        client.search_v2.return_value = {"results": [{"id": "a", "contentType": "hologram"}]}

        with pytest.raises(SchemaViolation):
            await Searcher(client).search("growth")


class TestRequestBuilding:
    @pytest.mark.asyncio
    async def test_any_mode_rewrites_query(self, client):
        await Searcher(client).search("growth marketing", SearchOptions(mode="any"))

        body = client.search_v2.await_args.args[0]
        assert body["query"] == "growth OR marketing"
        assert body["mode"] == "hybrid"
        assert body["features"]["expandConcepts"] is True

    def test_primary_body_without_filters(self):
        body = Searcher.build_primary_request("q", SearchOptions(limit=7), plan_search("phrase"))

        assert body["mode"] == "fulltext"
        assert body["options"] == {
            "limit": 7,
            "includeContent": False,
            "includeMetadata": True,
            "includeSnippets": True,
            "minRelevance": 0.25,
        }
        assert body["features"]["includeRelated"] is False
        assert "filters" not in body

    def test_primary_body_with_filters(self):
        options = SearchOptions(
            content_types=["youtube"],
            tags=["growth"],
            date_from="2024-01-01",
            exclude_domains=["spam.test"],
        )
        body = Searcher.build_primary_request("q", options, plan_search(None, True))

        assert body["mode"] == "semantic"
        assert body["filters"] == {
            "contentTypes": ["youtube"],
            "tags": ["growth"],
            "dateRange": {"from": "2024-01-01"},
            "domains": {"exclude": ["spam.test"]},
        }

    def test_legacy_params_drop_advanced_filters(self):
        options = SearchOptions(
            limit=3,
            content_types=["youtube", "pdf"],
            tags=["a", "b"],
            date_from="2024-01-01",
            exclude_domains=["spam.test"],
        )
        params = Searcher.build_legacy_params("q", options)

        assert params == {
            "q": "q",
            "limit": 3,
            "includeFullContent": "false",
            "contentTypes": "youtube,pdf",
            "tags": "a,b",
        }
