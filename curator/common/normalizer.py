"""
Response Normalizer

Converts backend JSON into the canonical schemas. The backend mixes
camelCase and snake_case, nests some payloads and flattens others, and
omits fields inconsistently; all of that is absorbed here.

Field priority per canonical field: camelCase key, then snake_case key,
then a literal default. Only after defaulting is the record validated;
a record that still fails is a backend contract change and raises
SchemaViolation with the offending payload attached.
"""

import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from .schemas.content import (
    Connection,
    Content,
    ContentStatus,
    ContentType,
    Insight,
    SearchResult,
    SynthesisResult,
    Theme,
    utc_now_iso,
)

logger = logging.getLogger("curator.common.normalizer")


class SchemaViolation(ValueError):
    """A backend record could not be normalized into the canonical model."""

    def __init__(self, message: str, payload: Any = None):
        super().__init__(message)
        self.payload = payload


# canonical field -> accepted backend keys, in priority order
CONTENT_FIELDS: Dict[str, Tuple[str, ...]] = {
    "id": ("id", "_id"),
    "user_id": ("userId", "user_id"),
    "url": ("url",),
    "title": ("title",),
    "description": ("description",),
    "content_type": ("contentType", "content_type"),
    "status": ("status",),
    "summary": ("summary",),
    "key_insights": ("keyInsights", "key_insights"),
    "raw_text": ("rawText", "raw_text"),
    "token_count": ("tokenCount", "token_count"),
    "og_image": ("ogImage", "og_image"),
    "processing_metadata": ("processingMetadata", "processing_metadata"),
    "tags": ("tags",),
    "created_at": ("createdAt", "created_at"),
    "updated_at": ("updatedAt", "updated_at"),
}

RELEVANCE_KEYS = ("relevanceScore", "relevance_score", "score", "similarity")
MATCH_REASON_KEYS = ("matchReason", "match_reason")

SYNTHESIS_SUMMARY_KEYS = ("summary", "executiveSummary", "executive_summary", "overview")
SYNTHESIS_INSIGHT_KEYS = ("insights", "actionableInsights", "actionable_insights", "keyInsights", "key_insights")
SYNTHESIS_THEME_KEYS = ("themes", "keyThemes", "key_themes")
SYNTHESIS_CONNECTION_KEYS = ("connections", "patterns")
SYNTHESIS_GAP_KEYS = ("knowledgeGaps", "knowledge_gaps", "gaps")
SYNTHESIS_CONTRADICTION_KEYS = ("contradictions",)
SYNTHESIS_QUOTE_KEYS = ("quotes", "keyQuotes", "key_quotes")
SYNTHESIS_ACTION_PLAN_KEYS = ("actionPlan", "action_plan")


def pick(raw: Dict[str, Any], keys: Sequence[str], default: Any = None) -> Any:
    """Return the first non-None value among keys, else default."""
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return default


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _as_optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(round(value))
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _as_tag_names(value: Any) -> List[str]:
    """Tags arrive as names or as tag objects ({name, slug, ...})."""
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    names = []
    for tag in value:
        if isinstance(tag, str):
            names.append(tag)
        elif isinstance(tag, dict) and tag.get("name"):
            names.append(str(tag["name"]))
    return names


def _as_str_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [item if isinstance(item, str) else str(item) for item in value if item is not None]


def _clamp_unit(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(score):
        return 0.0
    return min(max(score, 0.0), 1.0)


def _content_fields(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Resolve every canonical Content field with its default applied."""
    values = {name: pick(raw, keys) for name, keys in CONTENT_FIELDS.items()}

    now = utc_now_iso()
    return {
        "id": _as_str(values["id"]),
        "user_id": _as_str(values["user_id"]),
        "url": _as_str(values["url"]),
        "title": values["title"],
        "description": values["description"],
        "content_type": values["content_type"] or ContentType.ARTICLE.value,
        "status": values["status"] or ContentStatus.COMPLETED.value,
        "summary": values["summary"],
        "key_insights": _as_str_list(values["key_insights"]),
        "raw_text": values["raw_text"],
        "token_count": _as_optional_int(values["token_count"]),
        "og_image": values["og_image"],
        "processing_metadata": values["processing_metadata"],
        "tags": _as_tag_names(values["tags"]),
        "created_at": _as_str(values["created_at"]) or now,
        "updated_at": _as_str(values["updated_at"]) or now,
    }


def _require_mapping(raw: Any, kind: str) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        raise SchemaViolation(f"Expected a {kind} object, got {type(raw).__name__}", payload=raw)
    return raw


def normalize_content(raw: Any) -> Content:
    """
    Normalize one backend content record.

    Raises:
        SchemaViolation: if the defaulted record still fails validation
    """
    raw = _require_mapping(raw, "content")
    try:
        return Content.model_validate(_content_fields(raw))
    except ValidationError as e:
        logger.error("Content record failed validation: %s", e)
        raise SchemaViolation(f"Invalid content record from backend: {e}", payload=raw) from e


def normalize_search_result(raw: Any) -> SearchResult:
    """
    Normalize one backend search hit.

    Relevance is read from relevanceScore, relevance_score, score, then
    similarity (similar-content hits), and clamped into [0, 1].
    """
    raw = _require_mapping(raw, "search result")
    fields = _content_fields(raw)
    fields["relevance_score"] = _clamp_unit(pick(raw, RELEVANCE_KEYS, 0.0))
    fields["match_reason"] = pick(raw, MATCH_REASON_KEYS)
    try:
        return SearchResult.model_validate(fields)
    except ValidationError as e:
        logger.error("Search result failed validation: %s", e)
        raise SchemaViolation(f"Invalid search result from backend: {e}", payload=raw) from e


def unwrap_list(data: Any, keys: Iterable[str], missing_ok: bool = False) -> List[Any]:
    """
    Extract a record list from a bare array or an object wrapping one.

    Args:
        data: Decoded response body
        keys: Wrapper keys to try, in order
        missing_ok: Treat an object with none of the keys as empty

    Raises:
        SchemaViolation: if no list can be found
    """
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in keys:
            value = data.get(key)
            if isinstance(value, list):
                return value
            if value is None and key in data:
                return []
        if missing_ok:
            return []
    raise SchemaViolation("Expected a list of records from backend", payload=data)


def normalize_content_list(data: Any, keys: Iterable[str] = ("contents", "content", "results")) -> List[Content]:
    return [normalize_content(item) for item in unwrap_list(data, keys)]


def normalize_search_results(
    data: Any,
    keys: Iterable[str] = ("results",),
    missing_ok: bool = False,
) -> List[SearchResult]:
    return [normalize_search_result(item) for item in unwrap_list(data, keys, missing_ok)]


# ---------------------------------------------------------------------------
# Synthesis
# ---------------------------------------------------------------------------

def _insight(item: Any) -> Optional[Insight]:
    if isinstance(item, str):
        return Insight(text=item) if item.strip() else None
    if isinstance(item, dict):
        text = pick(item, ("insight", "text", "content", "description"))
        if not text:
            return None
        category = pick(item, ("category", "type"))
        source_id = pick(item, ("sourceId", "source_id", "contentId", "content_id"))
        return Insight(
            text=_as_str(text),
            category=_as_str(category) if category else None,
            source_id=_as_str(source_id) if source_id else None,
        )
    return None


def _theme(item: Any) -> Optional[Theme]:
    if isinstance(item, str):
        return Theme(theme=item) if item.strip() else None
    if isinstance(item, dict):
        name = pick(item, ("theme", "name", "title"))
        if not name:
            return None
        insight = pick(item, ("insight", "description", "summary"))
        return Theme(
            theme=_as_str(name),
            frequency=_as_optional_int(pick(item, ("frequency", "count"))),
            insight=_as_str(insight) if insight else None,
        )
    return None


def _connection(item: Any) -> Optional[Connection]:
    if isinstance(item, str):
        return Connection(pattern=item) if item.strip() else None
    if isinstance(item, dict):
        pattern = pick(item, ("pattern", "concept", "connection", "description"))
        if not pattern:
            return None
        implication = item.get("implication")
        strength = item.get("strength")
        if not isinstance(strength, (int, float, str)) or isinstance(strength, bool):
            strength = None
        return Connection(
            pattern=_as_str(pattern),
            implication=_as_str(implication) if implication else None,
            strength=strength,
        )
    return None


def _gap(item: Any) -> Optional[str]:
    if isinstance(item, str):
        return item or None
    if isinstance(item, dict):
        text = pick(item, ("gap", "description", "text", "area"))
        return _as_str(text) if text else None
    return None


def _collect(values: Any, convert) -> List[Any]:
    if not isinstance(values, list):
        return []
    converted = (convert(v) for v in values)
    return [v for v in converted if v is not None]


def unwrap_synthesis(raw: Any) -> Dict[str, Any]:
    """The backend either nests the result under `synthesis` or returns it flat."""
    if not isinstance(raw, dict):
        return {}
    nested = raw.get("synthesis")
    if isinstance(nested, dict):
        return nested
    return raw


def normalize_synthesis(raw: Any) -> SynthesisResult:
    """
    Fold any known synthesis response shape into a SynthesisResult.

    Each concept is accepted under every historical field name; none is
    assumed to be present.
    """
    if raw is not None and not isinstance(raw, dict):
        raise SchemaViolation("Expected a synthesis object from backend", payload=raw)
    body = unwrap_synthesis(raw)

    summary = pick(body, SYNTHESIS_SUMMARY_KEYS)
    if isinstance(summary, dict):
        summary = pick(summary, ("text", "summary", "one_sentence"))

    contradictions = pick(body, SYNTHESIS_CONTRADICTION_KEYS, [])
    quotes = pick(body, SYNTHESIS_QUOTE_KEYS, [])

    return SynthesisResult(
        summary=_as_str(summary) if summary else None,
        insights=_collect(pick(body, SYNTHESIS_INSIGHT_KEYS), _insight),
        themes=_collect(pick(body, SYNTHESIS_THEME_KEYS), _theme),
        connections=_collect(pick(body, SYNTHESIS_CONNECTION_KEYS), _connection),
        knowledge_gaps=_collect(pick(body, SYNTHESIS_GAP_KEYS), _gap),
        contradictions=contradictions if isinstance(contradictions, list) else [],
        quotes=quotes if isinstance(quotes, list) else [],
        action_plan=pick(body, SYNTHESIS_ACTION_PLAN_KEYS),
        raw=body,
    )
