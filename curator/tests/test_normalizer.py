"""Tests for backend response normalization."""

import pytest

from curator.common.normalizer import (
    SchemaViolation,
    normalize_content,
    normalize_content_list,
    normalize_search_result,
    normalize_search_results,
    normalize_synthesis,
    unwrap_list,
)
from curator.common.schemas import ContentStatus, ContentType


class TestNormalizeContent:
    def test_defaults_for_missing_fields(self):
        content = normalize_content({"title": "Only a title"})
        assert content.id == ""
        assert content.url == ""
        assert content.content_type == ContentType.ARTICLE
        assert content.status == ContentStatus.COMPLETED
        assert content.tags == []
        assert content.created_at
        assert content.updated_at

    def test_camel_case_wins_over_snake_case(self):
        content = normalize_content({
            "id": "c1",
            "contentType": "youtube",
            "content_type": "pdf",
            "rawText": "camel",
            "raw_text": "snake",
        })
        assert content.content_type == ContentType.VIDEO
        assert content.raw_text == "camel"

    def test_snake_case_fallback(self):
        content = normalize_content({
            "_id": "c2",
            "user_id": "u1",
            "content_type": "reddit",
            "token_count": "1200",
            "created_at": "2024-01-01T00:00:00Z",
        })
        assert content.id == "c2"
        assert content.user_id == "u1"
        assert content.content_type == ContentType.FORUM_THREAD
        assert content.token_count == 1200
        assert content.created_at == "2024-01-01T00:00:00Z"

    def test_summary_kept_verbatim(self):
        structured = {"one_sentence": "Short.", "key_insights": ["a", "b"]}
        assert normalize_content({"summary": structured}).summary == structured
        assert normalize_content({"summary": "plain"}).summary == "plain"

    def test_tag_objects_become_names(self):
        content = normalize_content({"tags": ["growth", {"name": "marketing", "id": "t1"}, {"id": "x"}]})
        assert content.tags == ["growth", "marketing"]

    def test_unknown_content_type_is_violation(self):
        raw = {"id": "c3", "contentType": "podcast"}
        with pytest.raises(SchemaViolation) as exc:
            normalize_content(raw)
        assert exc.value.payload == raw

    def test_non_object_is_violation(self):
        with pytest.raises(SchemaViolation):
            normalize_content(["not", "a", "record"])

    def test_payload_uses_camel_case(self):
        payload = normalize_content({"id": "c1", "raw_text": "body", "token_count": 3}).to_payload()
        assert payload["rawText"] == "body"
        assert payload["tokenCount"] == 3
        assert payload["contentType"] == "article"
        assert "raw_text" not in payload
        assert "content_type" not in payload


class TestNormalizeSearchResult:
    def test_relevance_priority(self):
        assert normalize_search_result({"relevanceScore": 0.9, "score": 0.1}).relevance_score == 0.9
        assert normalize_search_result({"relevance_score": 0.4}).relevance_score == 0.4
        assert normalize_search_result({"score": 0.3}).relevance_score == 0.3
        assert normalize_search_result({}).relevance_score == 0.0

    def test_relevance_clamped(self):
        assert normalize_search_result({"relevanceScore": 3}).relevance_score == 1.0
        assert normalize_search_result({"relevanceScore": "bad"}).relevance_score == 0.0

    def test_match_reason(self):
        hit = normalize_search_result({"match_reason": ["title", "tags"]})
        assert hit.match_reason == ["title", "tags"]


class TestUnwrapList:
    def test_bare_array(self):
        assert unwrap_list([1, 2], keys=("results",)) == [1, 2]

    def test_wrapped_array(self):
        assert unwrap_list({"contents": [1]}, keys=("results", "contents")) == [1]

    def test_missing_key_strict(self):
        with pytest.raises(SchemaViolation):
            unwrap_list({"items": []}, keys=("results",))

    def test_missing_key_tolerated(self):
        assert unwrap_list({"success": True}, keys=("results",), missing_ok=True) == []

    def test_list_helpers(self):
        items = normalize_content_list({"contents": [{"id": "a"}, {"id": "b"}]})
        assert [i.id for i in items] == ["a", "b"]
        hits = normalize_search_results([{"id": "a", "score": 0.5}])
        assert hits[0].relevance_score == 0.5


class TestNormalizeSynthesis:
    def test_nested_and_flat_shapes_agree(self):
        body = {"summary": "Overview", "insights": ["One insight"]}
        nested = normalize_synthesis({"success": True, "synthesis": body})
        flat = normalize_synthesis(body)
        assert nested.summary == flat.summary == "Overview"
        assert [i.text for i in nested.insights] == [i.text for i in flat.insights] == ["One insight"]

    def test_insight_field_variants(self):
        result = normalize_synthesis({
            "actionableInsights": [
                {"insight": "Ship weekly", "category": "process", "contentId": "c9"},
                {"text": "Measure retention"},
                {"unrelated": True},
            ],
        })
        assert [i.text for i in result.insights] == ["Ship weekly", "Measure retention"]
        assert result.insights[0].category == "process"
        assert result.insights[0].source_id == "c9"

    def test_key_insights_variant(self):
        result = normalize_synthesis({"keyInsights": ["A", ""]})
        assert [i.text for i in result.insights] == ["A"]

    def test_summary_variants(self):
        assert normalize_synthesis({"executiveSummary": "Exec"}).summary == "Exec"
        assert normalize_synthesis({"overview": "Over"}).summary == "Over"

    def test_themes_connections_gaps(self):
        result = normalize_synthesis({
            "keyThemes": [{"theme": "Growth", "frequency": 3, "insight": "Compounding"}],
            "patterns": [{"concept": "Habits", "strength": "strong"}, "Plain pattern"],
            "gaps": ["Pricing", {"description": "Hiring"}],
        })
        assert result.themes[0].theme == "Growth"
        assert result.themes[0].frequency == 3
        assert [c.pattern for c in result.connections] == ["Habits", "Plain pattern"]
        assert result.connections[0].strength == "strong"
        assert result.knowledge_gaps == ["Pricing", "Hiring"]

    def test_empty_body(self):
        result = normalize_synthesis({})
        assert result.summary is None
        assert result.insights == []

    def test_non_object_is_violation(self):
        with pytest.raises(SchemaViolation):
            normalize_synthesis(["nope"])

    def test_raw_not_serialized(self):
        payload = normalize_synthesis({"summary": "S"}).to_payload()
        assert "raw" not in payload
        assert "knowledgeGaps" in payload
