"""
Searcher

Multi-tier search over the content library.

Pipeline:
1. Plan the backend strategy (QueryPlanner)
2. Primary tier: structured search on the modern surface
3. Secondary tier: legacy query-string search, when the primary fails,
   or returns nothing and full content was not requested
4. Normalize every hit into SearchResult

Tiers run strictly one after the other. Exhausting both yields an empty
list, not an error. Auth failures are never retried on another tier.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..common.backend_client import AuthError, BackendClient, BackendError
from ..common.normalizer import normalize_search_results
from ..common.schemas.content import SearchResult
from .query_planner import SearchMode, SearchPlan, coerce_mode, expand_any_query, plan_search

logger = logging.getLogger("curator.retriever.searcher")

DEFAULT_MIN_RELEVANCE = 0.25


@dataclass
class SearchOptions:
    """Caller options for one search call"""
    mode: Optional[str] = None
    expand_concepts: Optional[bool] = None
    limit: int = 10
    include_full_content: bool = False
    content_types: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    exclude_domains: List[str] = field(default_factory=list)
    min_relevance: float = DEFAULT_MIN_RELEVANCE


class Searcher:
    """
    Searches the content library with tiered fallback.

    Features:
    - Backend strategy planning
    - Modern -> legacy degradation on failure
    - Legacy broadening when the modern tier finds nothing
    - Normalized, backend-ordered results
    """

    def __init__(self, client: BackendClient):
        """
        Initialize searcher.

        Args:
            client: Backend client (shared, lazily initialized)
        """
        self._client = client

    async def search(self, query: str, options: Optional[SearchOptions] = None) -> List[SearchResult]:
        """
        Search for content matching query.

        Args:
            query: Free-text query
            options: Search options (defaults when omitted)

        Returns:
            SearchResult list in backend relevance order; empty when
            nothing matched on any tier

        Raises:
            AuthError: the token was rejected
            SchemaViolation: a hit could not be normalized
        """
        options = options or SearchOptions()
        plan = plan_search(options.mode, options.expand_concepts)
        if coerce_mode(options.mode) == SearchMode.ANY:
            query = expand_any_query(query)

        primary_failed = False
        try:
            raw = await self._client.search_v2(self.build_primary_request(query, options, plan))
            results = normalize_search_results(raw, keys=("results",), missing_ok=True)
        except AuthError:
            raise
        except BackendError as e:
            logger.warning("Primary search failed (%s); falling back to legacy search", e)
            primary_failed = True
            results = []

        if results:
            return results

        if not primary_failed and options.include_full_content:
            # Avoid doubling an expensive full-content fetch
            return []

        if not primary_failed:
            logger.info("Primary search returned no results; trying legacy search for %r", query)

        return await self._search_legacy(query, options)

    async def _search_legacy(self, query: str, options: SearchOptions) -> List[SearchResult]:
        """Secondary tier. Failures end the chain with an empty list."""
        try:
            raw = await self._client.search_legacy(self.build_legacy_params(query, options))
        except AuthError:
            raise
        except BackendError as e:
            logger.warning("Legacy search failed: %s", e)
            return []
        return normalize_search_results(raw, keys=("results", "contents"), missing_ok=True)

    @staticmethod
    def build_primary_request(query: str, options: SearchOptions, plan: SearchPlan) -> Dict[str, Any]:
        """Structured body for the modern search surface."""
        body: Dict[str, Any] = {
            "query": query,
            "mode": plan.backend_mode.value,
            "options": {
                "limit": options.limit,
                "includeContent": options.include_full_content,
                "includeMetadata": True,
                "includeSnippets": True,
                "minRelevance": options.min_relevance,
            },
            "features": {
                "expandConcepts": plan.expand_concepts,
                "includeRelated": False,
                "aggregateInsights": False,
            },
        }

        filters: Dict[str, Any] = {}
        if options.content_types:
            filters["contentTypes"] = list(options.content_types)
        if options.tags:
            filters["tags"] = list(options.tags)
        if options.date_from or options.date_to:
            date_range = {}
            if options.date_from:
                date_range["from"] = options.date_from
            if options.date_to:
                date_range["to"] = options.date_to
            filters["dateRange"] = date_range
        if options.exclude_domains:
            filters["domains"] = {"exclude": list(options.exclude_domains)}
        if filters:
            body["filters"] = filters

        return body

    @staticmethod
    def build_legacy_params(query: str, options: SearchOptions) -> Dict[str, Any]:
        """Query string for the legacy surface (text, limit, type and tag filters only)."""
        params: Dict[str, Any] = {
            "q": query,
            "limit": options.limit,
            "includeFullContent": "true" if options.include_full_content else "false",
        }
        if options.content_types:
            params["contentTypes"] = ",".join(options.content_types)
        if options.tags:
            params["tags"] = ",".join(options.tags)
        return params

