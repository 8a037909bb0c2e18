"""Tests for typed insight extraction over search hits."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from curator.common.backend_client import AuthError
from curator.common.schemas.content import Content, InsightType
from curator.retriever.insight_extractor import InsightExtractor, extract_typed_insights
from curator.retriever.searcher import Searcher


def hit(id, tags=(), summary=None, title=None):
    return Content(id=id, title=title, tags=list(tags), summary=summary)


class TestPatterns:
    def test_tags_shared_by_two_or_more(self):
        hits = [
            hit("a", ["growth", "pricing"], title="A"),
            hit("b", ["growth"]),
            hit("c", ["growth", "pricing", "hiring"], title="C"),
        ]

        insights = extract_typed_insights(hits, "patterns", min_confidence=0.5)

        assert [i.text for i in insights] == ["growth", "pricing"]
        assert insights[0].confidence == 1.0
        assert insights[0].frequency == 3
        assert [e.text for e in insights[0].examples] == ["A", "Untitled", "C"]
        assert insights[1].source_ids == ["a", "c"]

    def test_min_confidence_filters(self):
        hits = [hit("a", ["growth", "pricing"]), hit("b", ["growth"]), hit("c", ["growth", "pricing"])]

        insights = extract_typed_insights(hits, InsightType.PATTERNS)

        assert [i.text for i in insights] == ["growth"]

    def test_no_hits(self):
        assert extract_typed_insights([], "patterns") == []


class TestSummaries:
    def test_actionable_takeaways(self):
        hits = [
            hit("a", summary={"one_sentence": "x", "actionable_takeaways": ["Raise prices", "Cut churn"]}),
            hit("b", summary={"actionableTakeaways": ["Ship weekly"]}),
            hit("c", summary="plain text"),
        ]

        insights = extract_typed_insights(hits, "actionable")

        assert [i.text for i in insights] == ["Raise prices", "Cut churn", "Ship weekly"]
        assert all(i.priority == "medium" and i.confidence == 0.8 for i in insights)

    def test_other_types_use_first_five_summaries(self):
        hits = [hit(str(n), summary=f"Point {n}") for n in range(7)]
        hits[1] = hit("1", summary={"oneSentence": "Structured point"})

        insights = extract_typed_insights(hits, "consensus")

        assert [i.text for i in insights] == ["Point 0", "Structured point", "Point 2", "Point 3", "Point 4"]
        assert all(i.confidence == 0.75 for i in insights)

    def test_generic_confidence_below_threshold(self):
        assert extract_typed_insights([hit("a", summary="Point")], "warnings", min_confidence=0.9) == []


class TestExtractor:
    @pytest.fixture
    def client(self):
        mock = MagicMock()
        mock.search_v2 = AsyncMock(return_value={"results": [
            {"id": "a", "tags": ["growth"], "relevanceScore": 0.9},
            {"id": "b", "tags": ["growth", "pricing"], "relevanceScore": 0.7},
        ]})
        mock.search_legacy = AsyncMock(return_value={"results": []})
        return mock

    @pytest.mark.asyncio
    async def test_extract_searches_with_expansion(self, client):
        extraction = await InsightExtractor(Searcher(client)).extract("growth", max_sources=4)

        body = client.search_v2.await_args.args[0]
        assert body["expandConcepts"] is True
        assert body["limit"] == 4
        assert [i.text for i in extraction.insights] == ["growth"]
        assert extraction.contributing_sources == 2
        assert extraction.average_confidence == 1.0

    @pytest.mark.asyncio
    async def test_nothing_found(self, client):
        client.search_v2.return_value = {"results": []}

        extraction = await InsightExtractor(Searcher(client)).extract("unknown topic")

        assert extraction.sources == []
        assert extraction.insights == []
        assert extraction.average_confidence == 0.0

    @pytest.mark.asyncio
    async def test_auth_error_propagates(self, client):
        client.search_v2.side_effect = AuthError("expired", status_code=401)

        with pytest.raises(AuthError):
            await InsightExtractor(Searcher(client)).extract("growth")
