"""
Insight Extractor

Searches the library for a topic and pulls typed insights out of the
hits' own metadata (tags and summaries), without a synthesis round trip.

Insight types:
- patterns: tags shared by at least two hits; confidence is the share
  of hits carrying the tag
- actionable: each actionable takeaway in a structured summary (0.8)
- everything else: the one-sentence summary of the first five hits (0.75)
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Union

from ..common.schemas.content import Content, ExtractedInsight, InsightExample, InsightType, SearchResult
from .searcher import Searcher, SearchOptions

logger = logging.getLogger("curator.retriever.insight_extractor")

DEFAULT_MAX_SOURCES = 15
DEFAULT_MIN_CONFIDENCE = 0.7

MIN_PATTERN_FREQUENCY = 2
MAX_PATTERN_EXAMPLES = 3
GENERIC_SOURCE_COUNT = 5
ACTIONABLE_CONFIDENCE = 0.8
GENERIC_CONFIDENCE = 0.75


def _summary_sentence(summary) -> str:
    if isinstance(summary, str):
        return summary
    if isinstance(summary, dict):
        return str(summary.get("one_sentence") or summary.get("oneSentence") or "")
    return ""


def _takeaways(summary) -> List[str]:
    if not isinstance(summary, dict):
        return []
    takeaways = summary.get("actionable_takeaways") or summary.get("actionableTakeaways") or []
    return [str(t) for t in takeaways if t]


def extract_typed_insights(
    results: Sequence[Content],
    insight_type: Union[str, InsightType] = InsightType.PATTERNS,
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
) -> List[ExtractedInsight]:
    """
    Extract insights of one type from search hits.

    Pure: the same hits always yield the same insights.

    Returns:
        Insights at or above min_confidence, highest confidence first
    """
    insight_type = InsightType(insight_type)
    insights: List[ExtractedInsight] = []

    if insight_type == InsightType.PATTERNS and results:
        by_tag: Dict[str, List[Content]] = {}
        for result in results:
            for tag in result.tags:
                by_tag.setdefault(tag, []).append(result)

        for tag, carriers in by_tag.items():
            if len(carriers) < MIN_PATTERN_FREQUENCY:
                continue
            insights.append(ExtractedInsight(
                type=insight_type,
                text=tag,
                frequency=len(carriers),
                confidence=len(carriers) / len(results),
                source_ids=[c.id for c in carriers],
                examples=[
                    InsightExample(text=c.title or "Untitled", content_type=c.content_type.value)
                    for c in carriers[:MAX_PATTERN_EXAMPLES]
                ],
            ))

    elif insight_type == InsightType.ACTIONABLE:
        for result in results:
            for action in _takeaways(result.summary):
                insights.append(ExtractedInsight(
                    type=insight_type,
                    text=action,
                    priority="medium",
                    confidence=ACTIONABLE_CONFIDENCE,
                    source_ids=[result.id],
                ))

    else:
        for result in results[:GENERIC_SOURCE_COUNT]:
            sentence = _summary_sentence(result.summary)
            if not sentence:
                continue
            insights.append(ExtractedInsight(
                type=insight_type,
                text=sentence,
                confidence=GENERIC_CONFIDENCE,
                source_ids=[result.id],
                examples=[InsightExample(text=result.title or "Untitled", content_type=result.content_type.value)],
            ))

    kept = [i for i in insights if i.confidence >= min_confidence]
    kept.sort(key=lambda i: i.confidence, reverse=True)
    return kept


@dataclass
class InsightExtraction:
    """Result of extracting insights for one query"""
    query: str
    insight_type: InsightType
    sources: List[SearchResult] = field(default_factory=list)
    insights: List[ExtractedInsight] = field(default_factory=list)

    @property
    def contributing_sources(self) -> int:
        return len({sid for i in self.insights for sid in i.source_ids})

    @property
    def average_confidence(self) -> float:
        if not self.insights:
            return 0.0
        return round(sum(i.confidence for i in self.insights) / len(self.insights), 2)


class InsightExtractor:
    """Searches with concept expansion, then extracts typed insights from the hits."""

    def __init__(self, searcher: Searcher):
        self._searcher = searcher

    async def extract(
        self,
        query: str,
        insight_type: Union[str, InsightType] = InsightType.PATTERNS,
        max_sources: int = DEFAULT_MAX_SOURCES,
        min_confidence: float = DEFAULT_MIN_CONFIDENCE,
    ) -> InsightExtraction:
        """
        Raises:
            AuthError: the token was rejected
        """
        insight_type = InsightType(insight_type)
        sources = await self._searcher.search(query, SearchOptions(expand_concepts=True, limit=max_sources))

        extraction = InsightExtraction(query=query, insight_type=insight_type, sources=sources)
        if not sources:
            logger.info("No content found for extracting insights about %r", query)
            return extraction

        extraction.insights = extract_typed_insights(sources, insight_type, min_confidence)
        logger.info("Extracted %d %s insights from %d sources", len(extraction.insights), insight_type.value, len(sources))
        return extraction
