"""
Synthesizer

Cross-source synthesis orchestration.

Pipeline:
1. Resolve sources: explicit IDs -> semantic search -> most recent items
2. Translate the caller's synthesis mode to the backend vocabulary
3. Request synthesis on the modern surface; on failure, the legacy one
4. Unwrap and normalize the result, then drop off-topic insights

Synthesis failure is an expected outcome: it is reported as a FAILED
SynthesisOutcome rather than raised. Only auth errors propagate.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..common.backend_client import AuthError, BackendClient, BackendError
from ..common.normalizer import normalize_synthesis
from ..common.schemas.content import SynthesisResult
from .query_planner import SearchMode, extract_topic_keywords, is_relevant
from .searcher import Searcher, SearchOptions

logger = logging.getLogger("curator.retriever.synthesizer")

NO_SOURCES_MESSAGE = (
    "No content found to synthesize. Please save some content first "
    "or provide specific content IDs."
)

DEFAULT_SEARCH_SOURCES = 10
DEFAULT_RECENT_SOURCES = 5


class SynthesisMode(str, Enum):
    """Caller-facing synthesis modes"""
    OVERVIEW = "overview"
    DEEP = "deep"
    ACTIONABLE = "actionable"
    COMPARISON = "comparison"


# Caller mode -> backend mode ("deep" is "thematic" on the backend)
BACKEND_SYNTHESIS_MODES = {
    SynthesisMode.OVERVIEW: "overview",
    SynthesisMode.DEEP: "thematic",
    SynthesisMode.ACTIONABLE: "actionable",
    SynthesisMode.COMPARISON: "comparative",
}


class SynthesisStatus(str, Enum):
    COMPLETED = "completed"
    NO_SOURCES = "no_sources"
    FAILED = "failed"


class SourceOrigin(str, Enum):
    """Which resolution step produced the source set"""
    EXPLICIT = "explicit"
    SEARCH = "search"
    RECENT = "recent"
    NONE = "none"


@dataclass
class SynthesisRequest:
    """One synthesis call"""
    query: str
    content_ids: List[str] = field(default_factory=list)
    mode: SynthesisMode = SynthesisMode.ACTIONABLE
    find_contradictions: bool = False
    find_connections: bool = True
    max_sources: Optional[int] = None


@dataclass
class SynthesisOutcome:
    """Result of a synthesis call, including the expected failure modes"""
    status: SynthesisStatus
    source_ids: List[str] = field(default_factory=list)
    source_origin: SourceOrigin = SourceOrigin.NONE
    mode: str = SynthesisMode.ACTIONABLE.value
    backend_mode: str = "actionable"
    synthesis: Optional[SynthesisResult] = None
    used_legacy: bool = False
    filtered_out: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == SynthesisStatus.COMPLETED


def backend_mode_for(mode: SynthesisMode) -> str:
    return BACKEND_SYNTHESIS_MODES[SynthesisMode(mode)]


def filter_by_topic(result: SynthesisResult, query: str) -> int:
    """
    Drop insights, themes and connections that never mention the topic.

    Mutates result in place and returns how many entries were dropped.
    With no usable keywords in the query, nothing is dropped.
    """
    keywords = extract_topic_keywords(query)
    if not keywords:
        return 0

    before = len(result.insights) + len(result.themes) + len(result.connections)

    result.insights = [i for i in result.insights if is_relevant(i.text, keywords)]
    result.themes = [
        t for t in result.themes
        if is_relevant(f"{t.theme} {t.insight or ''}", keywords)
    ]
    result.connections = [
        c for c in result.connections
        if is_relevant(f"{c.pattern} {c.implication or ''}", keywords)
    ]

    after = len(result.insights) + len(result.themes) + len(result.connections)
    return before - after


class Synthesizer:
    """
    Orchestrates backend synthesis across saved content.

    Responsibilities:
    1. Resolve a non-empty source set, or report NO_SOURCES
    2. Map synthesis modes to backend vocabulary
    3. Degrade from the modern to the legacy synthesis endpoint
    4. Reconcile result shapes and filter off-topic entries
    """

    def __init__(self, client: BackendClient, searcher: Optional[Searcher] = None):
        """
        Initialize synthesizer.

        Args:
            client: Backend client
            searcher: Searcher used for source resolution (built from client if omitted)
        """
        self._client = client
        self._searcher = searcher or Searcher(client)

    async def resolve_sources(self, request: SynthesisRequest) -> tuple:
        """
        Resolve source IDs, stopping at the first non-empty step.

        Returns:
            (source_ids, SourceOrigin)
        """
        if request.content_ids:
            return list(request.content_ids), SourceOrigin.EXPLICIT

        results = await self._searcher.search(
            request.query,
            SearchOptions(
                mode=SearchMode.SEMANTIC.value,
                expand_concepts=True,
                limit=request.max_sources or DEFAULT_SEARCH_SOURCES,
            ),
        )
        ids = [r.id for r in results if r.id]
        if ids:
            return ids, SourceOrigin.SEARCH

        logger.info("Search found no sources for %r; using most recent content", request.query)
        try:
            recent = await self._client.list_content(limit=request.max_sources or DEFAULT_RECENT_SOURCES)
        except AuthError:
            raise
        except BackendError as e:
            logger.warning("Failed to get recent content: %s", e)
            return [], SourceOrigin.NONE
        ids = [c.id for c in recent if c.id]
        if ids:
            return ids, SourceOrigin.RECENT

        return [], SourceOrigin.NONE

    def build_primary_request(self, request: SynthesisRequest, source_ids: List[str]) -> Dict[str, Any]:
        mode = SynthesisMode(request.mode)
        return {
            "sources": {
                "contentIds": source_ids,
                "limit": request.max_sources or DEFAULT_SEARCH_SOURCES,
            },
            "synthesis": {
                "mode": backend_mode_for(mode),
                "depth": "standard",
            },
            "output": {
                "includeContradictions": request.find_contradictions,
                "includeConnections": request.find_connections,
                "includeQuotes": True,
                "includeActionPlan": mode == SynthesisMode.ACTIONABLE,
            },
        }

    async def synthesize(self, request: SynthesisRequest) -> SynthesisOutcome:
        """
        Run a synthesis.

        Args:
            request: SynthesisRequest

        Returns:
            SynthesisOutcome with status COMPLETED, NO_SOURCES or FAILED

        Raises:
            AuthError: the token was rejected
        """
        mode = SynthesisMode(request.mode)
        outcome = SynthesisOutcome(
            status=SynthesisStatus.FAILED,
            mode=mode.value,
            backend_mode=backend_mode_for(mode),
        )

        try:
            source_ids, origin = await self.resolve_sources(request)
        except AuthError:
            raise
        except BackendError as e:
            logger.warning("Source resolution failed: %s", e)
            outcome.error = f"Synthesis failed: {e}"
            return outcome

        outcome.source_ids = source_ids
        outcome.source_origin = origin
        if not source_ids:
            outcome.status = SynthesisStatus.NO_SOURCES
            outcome.error = NO_SOURCES_MESSAGE
            return outcome

        try:
            raw = await self._client.synthesize_v2(self.build_primary_request(request, source_ids))
        except AuthError:
            raise
        except BackendError as e:
            logger.warning("Synthesis failed (%s); falling back to legacy synthesis", e)
            try:
                raw = await self._client.synthesize_legacy({
                    "query": request.query,
                    "contentIds": source_ids,
                    "mode": mode.value,
                })
            except AuthError:
                raise
            except BackendError as legacy_error:
                logger.warning("Legacy synthesis failed: %s", legacy_error)
                outcome.error = f"Synthesis failed: {legacy_error}"
                return outcome
            outcome.used_legacy = True

        result = normalize_synthesis(raw)
        outcome.filtered_out = filter_by_topic(result, request.query)
        if outcome.filtered_out:
            logger.info("Dropped %d off-topic synthesis entries", outcome.filtered_out)

        outcome.synthesis = result
        outcome.status = SynthesisStatus.COMPLETED
        return outcome
