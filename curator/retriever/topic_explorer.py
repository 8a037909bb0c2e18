"""
Topic Explorer

Cross-source exploration of one topic: search for related content, then
synthesize across the hits and keep only on-topic findings.

Unlike plain synthesis, exploration never falls back to recent content;
a topic with no matching content is reported as NO_SOURCES together
with suggestions for broadening the query.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..common.schemas.content import SearchResult, SynthesisResult
from .searcher import Searcher, SearchOptions
from .synthesizer import (
    SynthesisMode,
    SynthesisRequest,
    SynthesisStatus,
    Synthesizer,
    filter_by_topic,
)

logger = logging.getLogger("curator.retriever.topic_explorer")

DEFAULT_MAX_SOURCES = 20


class ExplorationDepth(str, Enum):
    SURFACE = "surface"
    COMPREHENSIVE = "comprehensive"
    EXPERT = "expert"


@dataclass
class Exploration:
    """Result of exploring one topic"""
    topic: str
    depth: str
    status: SynthesisStatus
    sources: List[SearchResult] = field(default_factory=list)
    synthesis: Optional[SynthesisResult] = None
    suggestions: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == SynthesisStatus.COMPLETED


def mode_for_depth(depth: ExplorationDepth) -> SynthesisMode:
    # The actionable mode is the one that carries mined frameworks
    if ExplorationDepth(depth) == ExplorationDepth.SURFACE:
        return SynthesisMode.OVERVIEW
    return SynthesisMode.ACTIONABLE


def broadening_suggestions(topic: str) -> List[str]:
    terms = [t for t in topic.split() if len(t) > 2]
    return [
        f'Try broader terms (e.g., "{terms[0] if terms else topic}")',
        'Use search_content with search_mode "any" for looser matching',
        "Use list_saved_content to browse what's available",
        "Save relevant content first, then re-explore",
    ]


class TopicExplorer:
    """
    Explores a topic across saved content.

    Pipeline:
    1. Concept-expanded search bounded by max_sources
    2. Synthesis over the hits (overview for surface depth, else actionable)
    3. Topic relevance filter against the bare topic
    """

    def __init__(self, synthesizer: Synthesizer, searcher: Searcher):
        self._synthesizer = synthesizer
        self._searcher = searcher

    async def explore(
        self,
        topic: str,
        depth: ExplorationDepth = ExplorationDepth.COMPREHENSIVE,
        include_connections: bool = True,
        max_sources: int = DEFAULT_MAX_SOURCES,
    ) -> Exploration:
        """
        Explore a topic.

        Args:
            topic: Topic to explore
            depth: surface, comprehensive or expert
            include_connections: Ask the backend for cross-source connections
            max_sources: Maximum sources searched and synthesized

        Returns:
            Exploration (status COMPLETED, NO_SOURCES or FAILED)

        Raises:
            AuthError: the token was rejected
        """
        depth = ExplorationDepth(depth)
        exploration = Exploration(topic=topic, depth=depth.value, status=SynthesisStatus.FAILED)

        sources = await self._searcher.search(
            topic, SearchOptions(expand_concepts=True, limit=max_sources),
        )
        exploration.sources = sources
        if not sources:
            logger.info("No content found for topic %r", topic)
            exploration.status = SynthesisStatus.NO_SOURCES
            exploration.error = f'No content found for topic: "{topic}".'
            exploration.suggestions = broadening_suggestions(topic)
            return exploration

        outcome = await self._synthesizer.synthesize(SynthesisRequest(
            query=f"Comprehensive exploration of {topic}",
            content_ids=[s.id for s in sources[:max_sources] if s.id],
            mode=mode_for_depth(depth),
            find_contradictions=True,
            find_connections=include_connections,
            max_sources=max_sources,
        ))
        exploration.status = outcome.status
        exploration.error = outcome.error
        if not outcome.ok:
            return exploration

        result = outcome.synthesis
        dropped = filter_by_topic(result, topic)
        if dropped:
            logger.info("Dropped %d entries unrelated to %r", dropped, topic)
        if not include_connections:
            result.connections = []

        exploration.synthesis = result
        return exploration
