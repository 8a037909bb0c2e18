"""
Curator MCP Server.

Exposes the content library to an LLM tool host over MCP.
Transport: stdio only (stdout carries the protocol; logs go to stderr).

Expected MCP Tool Return Format:
{
    "ok": bool,
    ...,                    # Tool-specific fields, present if ok is True
    "error": str            # Present if ok is False
}

Large full-text payloads are not errors: they come back with
"ok": True, "requires_confirmation": True and a bounded preview.
"""

import argparse
import logging
import os
import signal
import sys
from typing import Annotated, Any, Dict, List, Literal, Optional

from dotenv import load_dotenv
from fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field

from curator.common.backend_client import (
    AuthError,
    BackendClient,
    BackendError,
    ReadOnlyError,
    create_backend_client,
)
from curator.common.config import load_config
from curator.common.normalizer import SchemaViolation
from curator.retriever.connection_finder import ConnectionFinder
from curator.retriever.framework_extractor import FrameworkExtractor, mine_frameworks
from curator.retriever.insight_extractor import InsightExtractor
from curator.retriever.searcher import Searcher, SearchOptions
from curator.retriever.section_detector import SectionDetector
from curator.retriever.synthesizer import SynthesisRequest, SynthesisStatus, Synthesizer
from curator.retriever.token_guard import TokenBudgetGuard
from curator.retriever.topic_explorer import TopicExplorer

logger = logging.getLogger("curator.mcp")

MAX_TAG_LENGTH = 50
MAX_TAGS_PER_CALL = 10
SECTION_PREVIEW_CHARS = 500


def _failure(error: Exception) -> Dict[str, Any]:
    """Map a typed error onto the tool error response."""
    response: Dict[str, Any] = {"ok": False, "error": str(error)}
    if isinstance(error, SchemaViolation):
        response["payload"] = error.payload
    elif isinstance(error, AuthError):
        response["auth"] = True
    elif isinstance(error, ReadOnlyError):
        response["read_only"] = True
    return response


def _validate_tags(tags: List[str]) -> List[str]:
    cleaned = [t.strip() for t in tags or []]
    if not 1 <= len(cleaned) <= MAX_TAGS_PER_CALL:
        raise ValueError(f"Provide between 1 and {MAX_TAGS_PER_CALL} tags")
    for tag in cleaned:
        if not 1 <= len(tag) <= MAX_TAG_LENGTH:
            raise ValueError(f"Tag names must be 1-{MAX_TAG_LENGTH} characters: {tag!r}")
    return cleaned


def _filter_tags(listing: Dict[str, Any], tag_filter: str, show_usage: bool) -> List[Dict[str, Any]]:
    tags = [t for t in listing.get("tags", []) if isinstance(t, dict)]
    grouped = listing.get("grouped") or {}

    if tag_filter == "system":
        tags = grouped.get("system") or [t for t in tags if t.get("isSystem")]
    elif tag_filter == "custom":
        tags = grouped.get("custom") or [t for t in tags if not t.get("isSystem")]

    if show_usage:
        return sorted(tags, key=lambda t: t.get("usageCount") or 0, reverse=True)
    return sorted(tags, key=lambda t: str(t.get("name", "")).lower())


class MCPServerApp:
    """
    Main application class for the MCP server.

    Read-only deployments (the default) reject every mutating tool before
    any network call is made.
    """
    def __init__(
            self,
            client: BackendClient,
            mcp_server_name: str = "curator_mcp_server",
            guard: Optional[TokenBudgetGuard] = None,
            default_limit: int = 10,
            min_relevance: float = 0.25,
        ) -> None:
        """
        Initializes the MCPServerApp with the given backend client and server name.
        Args:
            client (BackendClient): Client for the content library (lazily initialized).
            mcp_server_name (str): The name of the MCP server.
            guard (TokenBudgetGuard): Token budget gates (defaults: 50k single item, 100k batch).
            default_limit (int): Default search result limit.
            min_relevance (float): Minimum relevance sent with structured searches.
        """
        self.client = client
        self.guard = guard or TokenBudgetGuard()
        self.searcher = Searcher(client)
        self.synthesizer = Synthesizer(client, self.searcher)
        self.explorer = TopicExplorer(self.synthesizer, self.searcher)
        self.extractor = FrameworkExtractor()
        self.sections = SectionDetector()
        self.insights = InsightExtractor(self.searcher)
        self.connections = ConnectionFinder(client)
        self._default_limit = default_limit
        self._min_relevance = min_relevance
        # mcp
        self.mcp = FastMCP(name=mcp_server_name)

        # ---------- MCP Tools: Search ---------- #
        @self.mcp.tool(
            name="search_content",
            description=(
                "Search saved content. Returns summaries by default; full text only with "
                "include_full_content (may use many tokens)."
            ),
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_search_content(
            query: Annotated[str, Field(description="search query")],
            search_mode: Annotated[str, Field(description="smart, semantic, hybrid, fulltext, any (OR), all (AND) or phrase")] = "any",
            fuzzy_match: Annotated[bool, Field(description="expand the query with related concepts; true forces semantic search")] = True,
            limit: Annotated[Optional[int], Field(description="maximum number of results", ge=1, le=100)] = None,
            include_full_content: Annotated[bool, Field(description="include full text of each result")] = False,
            content_types: Annotated[Optional[List[str]], Field(description="restrict to content types (youtube, x_twitter, reddit, article, pdf)")] = None,
            tags: Annotated[Optional[List[str]], Field(description="restrict to content carrying these tags")] = None,
            date_from: Annotated[Optional[str], Field(description="ISO date lower bound")] = None,
            date_to: Annotated[Optional[str], Field(description="ISO date upper bound")] = None,
            exclude_domains: Annotated[Optional[List[str]], Field(description="domains to exclude")] = None,
            accept_large_content: Annotated[bool, Field(description="return full text even when the results are very large")] = False,
        ) -> Dict[str, Any]:
            """
            MCP tool to search the content library with legacy fallback.

            Full text above the single-item gate comes back as previews with
            requires_confirmation until accept_large_content is set.

            Returns:
                Dict[str, Any]: {"ok", "requires_confirmation", "results", "count", "total_tokens", "warning"}
            """
            options = SearchOptions(
                mode=search_mode,
                expand_concepts=fuzzy_match,
                limit=limit or self._default_limit,
                include_full_content=include_full_content,
                content_types=list(content_types or []),
                tags=list(tags or []),
                date_from=date_from,
                date_to=date_to,
                exclude_domains=list(exclude_domains or []),
                min_relevance=self._min_relevance,
            )
            try:
                results = await self.searcher.search(query, options)
            except (BackendError, ValueError) as e:
                return _failure(e)

            decision = self.guard.guard_search(results, include_full_content, accept_large=accept_large_content)
            response = {
                "ok": True,
                "requires_confirmation": decision.requires_confirmation,
                "results": decision.items,
                "count": len(results),
                "total_tokens": decision.total_tokens,
                "tier": decision.tier.value,
                "warning": decision.warning,
            }
            if decision.requires_confirmation:
                response["override_parameter"] = decision.override_parameter
            return response

        # ---------- MCP Tools: Get Content Details ---------- #
        @self.mcp.tool(
            name="get_content_details",
            description=(
                "Get one saved item with its full text, summary and metadata. Items above "
                "50,000 tokens return a preview unless accept_large_content is true."
            ),
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_get_content_details(
            content_id: Annotated[str, Field(description="ID of the content to retrieve")],
            accept_large_content: Annotated[bool, Field(description="return full text even when it is very large")] = False,
        ) -> Dict[str, Any]:
            try:
                content = await self.client.get_content(content_id)
            except (BackendError, ValueError) as e:
                return _failure(e)

            decision = self.guard.guard_content(content, accept_large=accept_large_content)
            if decision.requires_confirmation:
                return {
                    "ok": True,
                    "requires_confirmation": True,
                    "tokens": decision.tokens,
                    "tier": decision.tier.value,
                    "override_parameter": decision.override_parameter,
                    "warning": decision.warning,
                    "preview": decision.preview,
                }
            return {
                "ok": True,
                "requires_confirmation": False,
                "tokens": decision.tokens,
                "tier": decision.tier.value,
                "warning": decision.warning,
                "content": decision.content.to_payload(),
            }

        # ---------- MCP Tools: Batch Get ---------- #
        @self.mcp.tool(
            name="batch_get_content",
            description="Fetch up to 50 items in one request. Full text is opt-in and gated above 100,000 tokens.",
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_batch_get_content(
            ids: Annotated[List[str], Field(description="content IDs to fetch (1-50)")],
            include_full_content: Annotated[bool, Field(description="include full text (may use many tokens)")] = False,
            accept_large_batch: Annotated[bool, Field(description="release full text even above the batch budget")] = False,
        ) -> Dict[str, Any]:
            try:
                fetched = await self.client.batch_get_content(ids, include_content=include_full_content)
            except (BackendError, ValueError) as e:
                return _failure(e)

            decision = self.guard.guard_batch(fetched.items, include_full_content, accept_large=accept_large_batch)
            response = {
                "ok": True,
                "requires_confirmation": decision.requires_confirmation,
                "items": decision.items,
                "requested": len(ids),
                "found": fetched.found,
                "errors": fetched.errors,
                "total_tokens": decision.total_tokens,
                "tier": decision.tier.value,
                "warning": decision.warning,
            }
            if decision.requires_confirmation:
                response["override_parameter"] = decision.override_parameter
            return response

        # ---------- MCP Tools: Synthesis ---------- #
        @self.mcp.tool(
            name="synthesize_content",
            description=(
                "Synthesize insights across saved content. Without content_ids, sources are found "
                "by semantic search, falling back to the most recent items."
            ),
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_synthesize_content(
            query: Annotated[str, Field(description="topic or question to synthesize")],
            content_ids: Annotated[Optional[List[str]], Field(description="explicit source IDs")] = None,
            synthesis_mode: Annotated[Literal["overview", "deep", "actionable", "comparison"], Field(description="synthesis mode")] = "actionable",
            find_contradictions: Annotated[bool, Field(description="look for contradicting claims")] = False,
            find_connections: Annotated[bool, Field(description="look for cross-source connections")] = True,
            max_sources: Annotated[Optional[int], Field(description="maximum number of sources", ge=1, le=50)] = None,
        ) -> Dict[str, Any]:
            request = SynthesisRequest(
                query=query,
                content_ids=list(content_ids or []),
                mode=synthesis_mode,
                find_contradictions=find_contradictions,
                find_connections=find_connections,
                max_sources=max_sources,
            )
            try:
                outcome = await self.synthesizer.synthesize(request)
            except (BackendError, ValueError) as e:
                return _failure(e)

            if outcome.status == SynthesisStatus.FAILED:
                return {"ok": False, "status": outcome.status.value, "error": outcome.error}
            if outcome.status == SynthesisStatus.NO_SOURCES:
                return {"ok": True, "status": outcome.status.value, "message": outcome.error, "source_ids": []}
            return {
                "ok": True,
                "status": outcome.status.value,
                "mode": outcome.mode,
                "backend_mode": outcome.backend_mode,
                "source_ids": outcome.source_ids,
                "source_origin": outcome.source_origin.value,
                "used_legacy": outcome.used_legacy,
                "filtered_out": outcome.filtered_out,
                "synthesis": outcome.synthesis.to_payload(),
            }

        # ---------- MCP Tools: Frameworks ---------- #
        @self.mcp.tool(
            name="extract_frameworks",
            description="Extract named frameworks and methodologies (with ordered steps) from saved content.",
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_extract_frameworks(
            query: Annotated[Optional[str], Field(description="topic the frameworks should relate to")] = None,
            content_ids: Annotated[Optional[List[str]], Field(description="restrict to these content IDs")] = None,
            min_confidence: Annotated[float, Field(description="minimum confidence", ge=0.0, le=1.0)] = 0.7,
            limit: Annotated[int, Field(description="maximum frameworks returned", ge=1, le=100)] = 20,
        ) -> Dict[str, Any]:
            try:
                mined = await mine_frameworks(
                    self.synthesizer, query, content_ids,
                    min_confidence=min_confidence, limit=limit, extractor=self.extractor,
                )
            except (BackendError, ValueError) as e:
                return _failure(e)

            if mined["status"] == SynthesisStatus.FAILED.value:
                return {"ok": False, "status": mined["status"], "error": mined["error"]}
            return {
                "ok": True,
                "status": mined["status"],
                "frameworks": [f.to_payload() for f in mined["frameworks"]],
                "count": len(mined["frameworks"]),
                "source_ids": mined["source_ids"],
                "message": mined["error"],
            }

        # ---------- MCP Tools: Explore Topic ---------- #
        @self.mcp.tool(
            name="explore_topic",
            description="Search and synthesize across saved content about one topic: themes, insights, connections and gaps.",
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_explore_topic(
            topic: Annotated[str, Field(description="topic to explore")],
            depth: Annotated[Literal["surface", "comprehensive", "expert"], Field(description="depth of exploration")] = "comprehensive",
            include_connections: Annotated[bool, Field(description="include connections to related topics")] = True,
            max_sources: Annotated[int, Field(description="maximum number of sources", ge=1, le=50)] = 20,
        ) -> Dict[str, Any]:
            try:
                exploration = await self.explorer.explore(
                    topic, depth=depth, include_connections=include_connections, max_sources=max_sources,
                )
            except (BackendError, ValueError) as e:
                return _failure(e)

            response = {
                "ok": exploration.status != SynthesisStatus.FAILED,
                "status": exploration.status.value,
                "topic": exploration.topic,
                "depth": exploration.depth,
                "sources_analyzed": len(exploration.sources),
                "sources": [s.to_payload() for s in exploration.sources],
            }
            if exploration.synthesis is not None:
                response["synthesis"] = exploration.synthesis.to_payload()
            if exploration.suggestions:
                response["suggestions"] = exploration.suggestions
            if exploration.error:
                response["error" if not response["ok"] else "message"] = exploration.error
            return response

        # ---------- MCP Tools: Smart Sections ---------- #
        @self.mcp.tool(
            name="smart_sections",
            description=(
                "Split one saved item into sections (headings, numbered steps) and return the ones "
                "matching a query or section type. Use this to read large items piecewise."
            ),
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_smart_sections(
            content_id: Annotated[str, Field(description="ID of the content to split")],
            query: Annotated[Optional[str], Field(description="only sections matching this text, most relevant first")] = None,
            section_type: Annotated[
                Literal["all", "introduction", "methods", "results", "examples", "conclusion", "code", "steps"],
                Field(description="keep only this kind of section"),
            ] = "all",
            max_sections: Annotated[int, Field(description="maximum sections returned", ge=1, le=50)] = 10,
        ) -> Dict[str, Any]:
            try:
                content = await self.client.get_content(content_id)
            except (BackendError, ValueError) as e:
                return _failure(e)

            if not content.raw_text:
                return {
                    "ok": True,
                    "content_id": content_id,
                    "title": content.title,
                    "sections": [],
                    "total_sections": 0,
                    "message": "This item has no full text to split into sections.",
                }

            sections = self.sections.sections(content.raw_text, query=query, section_type=section_type, max_sections=max_sections)
            payloads = []
            for section in sections:
                payload = section.to_payload()
                payload["preview"] = section.content[:SECTION_PREVIEW_CHARS]
                payloads.append(payload)
            return {
                "ok": True,
                "content_id": content_id,
                "title": content.title,
                "query": query,
                "sections": payloads,
                "total_sections": len(payloads),
            }

        # ---------- MCP Tools: Insights ---------- #
        @self.mcp.tool(
            name="extract_insights",
            description=(
                "Extract patterns, actionable takeaways or other insights from saved content about a "
                "topic, using each item's tags and summaries."
            ),
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_extract_insights(
            query: Annotated[str, Field(description="topic to extract insights about")],
            insight_type: Annotated[
                Literal["patterns", "contradictions", "consensus", "evolution", "actionable", "warnings"],
                Field(description="kind of insight to extract"),
            ] = "patterns",
            max_sources: Annotated[int, Field(description="maximum number of sources", ge=1, le=50)] = 15,
            min_confidence: Annotated[float, Field(description="minimum confidence", ge=0.0, le=1.0)] = 0.7,
        ) -> Dict[str, Any]:
            try:
                extraction = await self.insights.extract(
                    query, insight_type, max_sources=max_sources, min_confidence=min_confidence,
                )
            except (BackendError, ValueError) as e:
                return _failure(e)

            response = {
                "ok": True,
                "query": query,
                "insight_type": extraction.insight_type.value,
                "insights": [i.to_payload() for i in extraction.insights],
                "count": len(extraction.insights),
                "sources_analyzed": len(extraction.sources),
                "contributing_sources": extraction.contributing_sources,
                "average_confidence": extraction.average_confidence,
            }
            if not extraction.sources:
                response["message"] = f"No content found about {query!r}."
            return response

        # ---------- MCP Tools: Connections ---------- #
        @self.mcp.tool(
            name="find_connections",
            description="Find relationships between saved items through the concepts (tags) they share.",
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_find_connections(
            content_ids: Annotated[List[str], Field(description="content IDs to relate (at least 2)")],
            connection_type: Annotated[
                Literal["all", "causal", "contradictory", "complementary", "sequential"],
                Field(description="kind of connection; contradictory also keeps pairs sharing nothing"),
            ] = "all",
            depth: Annotated[int, Field(description="how many levels deep to look (1-3)", ge=1, le=3)] = 1,
        ) -> Dict[str, Any]:
            try:
                analysis = await self.connections.find(content_ids, connection_type)
            except (BackendError, ValueError) as e:
                return _failure(e)

            if len(analysis.contents) < 2:
                return {
                    "ok": False,
                    "error": "Unable to find connections. Need at least 2 valid content items.",
                    "errors": analysis.errors,
                }

            response = {
                "ok": True,
                "connection_type": analysis.connection_type.value,
                "items_analyzed": len(analysis.contents),
                "connections": [c.to_payload() for c in analysis.connections],
                "count": len(analysis.connections),
                "by_relationship": {k: len(v) for k, v in analysis.by_relationship.items()},
                "network_stats": analysis.network_stats,
                "errors": analysis.errors,
            }
            if depth > 1 and analysis.connections:
                response["note"] = "Use find_similar_content on the most connected items to explore indirect connections."
            return response

        # ---------- MCP Tools: List Content ---------- #
        @self.mcp.tool(
            name="list_saved_content",
            description="List saved content, most recent first. Optionally filter by status or content type.",
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_list_saved_content(
            status: Annotated[Optional[Literal["pending", "processing", "completed", "failed"]], Field(description="processing status filter")] = None,
            content_type: Annotated[Optional[Literal["youtube", "x_twitter", "reddit", "article", "pdf"]], Field(description="content type filter")] = None,
            limit: Annotated[int, Field(description="maximum number of items", ge=1, le=100)] = 20,
        ) -> Dict[str, Any]:
            try:
                items = await self.client.list_content(status=status, content_type=content_type, limit=limit)
            except (BackendError, ValueError) as e:
                return _failure(e)

            payloads = []
            for item in items:
                payload = item.to_payload()
                payload.pop("rawText", None)
                payloads.append(payload)
            return {"ok": True, "contents": payloads, "count": len(payloads)}

        # ---------- MCP Tools: Similar Content ---------- #
        @self.mcp.tool(
            name="find_similar_content",
            description="Find saved items similar to a given item.",
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_find_similar_content(
            content_id: Annotated[str, Field(description="ID of the reference content")],
            limit: Annotated[int, Field(description="maximum number of results", ge=1, le=50)] = 5,
            min_similarity: Annotated[Optional[float], Field(description="minimum similarity (0-1)", ge=0.0, le=1.0)] = None,
        ) -> Dict[str, Any]:
            try:
                similar = await self.client.find_similar_content(content_id, limit=limit, min_similarity=min_similarity)
            except (BackendError, ValueError) as e:
                return _failure(e)
            return {"ok": True, "results": [r.to_payload() for r in similar], "count": len(similar)}

        # ---------- MCP Tools: Token Estimate ---------- #
        @self.mcp.tool(
            name="estimate_search_tokens",
            description="Estimate how many tokens a search would return, without running it.",
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_estimate_search_tokens(
            query: Annotated[str, Field(description="search query")],
            limit: Annotated[int, Field(description="number of results the search would return", ge=1, le=100)] = 10,
        ) -> Dict[str, Any]:
            try:
                estimate = await self.client.estimate_search_tokens(query, limit=limit)
            except (BackendError, ValueError) as e:
                return _failure(e)
            return {"ok": True, "estimate": estimate}

        # ---------- MCP Tools: Tags ---------- #
        @self.mcp.tool(
            name="list_tags",
            description="List available tags (system and custom), optionally sorted by usage.",
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_list_tags(
            filter: Annotated[Literal["all", "system", "custom"], Field(description="which tags to show")] = "all",
            show_usage: Annotated[bool, Field(description="sort by usage count instead of name")] = True,
        ) -> Dict[str, Any]:
            try:
                listing = await self.client.list_tags()
            except (BackendError, ValueError) as e:
                return _failure(e)
            tags = _filter_tags(listing, filter, show_usage)
            return {"ok": True, "tags": tags, "count": len(tags), "total": listing.get("total", len(tags))}

        @self.mcp.tool(
            name="get_content_tags",
            description="List the tags attached to one saved item.",
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_get_content_tags(
            content_id: Annotated[str, Field(description="ID of the content")],
        ) -> Dict[str, Any]:
            try:
                tags = await self.client.get_content_tags(content_id)
            except (BackendError, ValueError) as e:
                return _failure(e)
            return {"ok": True, "content_id": content_id, "tags": tags, "count": len(tags)}

        @self.mcp.tool(
            name="add_tags",
            description="Add one or more tags to a saved item. Unknown tags are created.",
            annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=True)
        )
        async def tool_add_tags(
            content_id: Annotated[str, Field(description="ID of the content to tag")],
            tags: Annotated[List[str], Field(description="tag names (1-10, each 1-50 characters)")],
        ) -> Dict[str, Any]:
            try:
                result = await self.client.add_tags(content_id, _validate_tags(tags))
            except (BackendError, ValueError) as e:
                return _failure(e)
            return {"ok": True, "content_id": content_id, "result": result}

        @self.mcp.tool(
            name="remove_tags",
            description="Remove one or more tags from a saved item.",
            annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=True)
        )
        async def tool_remove_tags(
            content_id: Annotated[str, Field(description="ID of the content to untag")],
            tags: Annotated[List[str], Field(description="tag names to remove (1-10)")],
        ) -> Dict[str, Any]:
            try:
                result = await self.client.remove_tags(content_id, _validate_tags(tags))
            except (BackendError, ValueError) as e:
                return _failure(e)
            return {"ok": True, "content_id": content_id, "result": result}

        @self.mcp.tool(
            name="create_tag",
            description="Create a custom tag.",
            annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=True)
        )
        async def tool_create_tag(
            name: Annotated[str, Field(description="tag name (1-50 characters)")],
        ) -> Dict[str, Any]:
            try:
                tag_name = _validate_tags([name])[0]
                result = await self.client.create_tag(tag_name)
            except (BackendError, ValueError) as e:
                return _failure(e)
            return {"ok": True, "result": result}

        # ---------- MCP Tools: Save ---------- #
        @self.mcp.tool(
            name="save_content",
            description="Save a URL (YouTube, X/Twitter, Reddit, article or PDF) for processing, optionally tagged.",
            annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=True)
        )
        async def tool_save_content(
            url: Annotated[str, Field(description="URL to save")],
            tags: Annotated[Optional[List[str]], Field(description="tags to apply after saving")] = None,
            is_swipe_file: Annotated[bool, Field(description="mark for swipe-file craft analysis once processed")] = False,
        ) -> Dict[str, Any]:
            try:
                if tags:
                    tags = _validate_tags(tags)
                content = await self.client.save_content(url)
            except (BackendError, ValueError) as e:
                return _failure(e)

            response: Dict[str, Any] = {"ok": True, "content": content.to_payload(), "added_tags": []}
            if tags and content.id:
                try:
                    result = await self.client.add_tags(content.id, tags)
                    added = result.get("addedTags", []) if isinstance(result, dict) else []
                    response["added_tags"] = [t.get("name") if isinstance(t, dict) else t for t in added]
                except AuthError as e:
                    return _failure(e)
                except BackendError as e:
                    # The save itself succeeded
                    logger.warning("Saved %s but tagging failed: %s", content.id, e)
                    response["note"] = "Failed to add tags, but content was saved"
            if is_swipe_file and content.id:
                response["swipe_file_status"] = "pending_analysis"
            return response

        # ---------- MCP Tools: Swipe File ---------- #
        @self.mcp.tool(
            name="mark_swipe_file",
            description="Mark a saved item as a swipe file and trigger craft analysis (hooks, CTAs, storytelling).",
            annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=True)
        )
        async def tool_mark_swipe_file(
            content_id: Annotated[str, Field(description="ID of the content to mark")],
        ) -> Dict[str, Any]:
            try:
                result = await self.client.mark_swipe_file(content_id)
            except (BackendError, ValueError) as e:
                return _failure(e)
            return {"ok": True, "content_id": content_id, "result": result}

        @self.mcp.tool(
            name="unmark_swipe_file",
            description="Remove the swipe-file mark from a saved item.",
            annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=True)
        )
        async def tool_unmark_swipe_file(
            content_id: Annotated[str, Field(description="ID of the content to unmark")],
        ) -> Dict[str, Any]:
            try:
                result = await self.client.unmark_swipe_file(content_id)
            except (BackendError, ValueError) as e:
                return _failure(e)
            return {"ok": True, "content_id": content_id, "result": result}

        @self.mcp.tool(
            name="swipe_file_status",
            description="Get swipe-file status and craft tags of a saved item.",
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_swipe_file_status(
            content_id: Annotated[str, Field(description="ID of the content")],
        ) -> Dict[str, Any]:
            try:
                status = await self.client.get_swipe_file_status(content_id)
            except (BackendError, ValueError) as e:
                return _failure(e)
            return {"ok": True, "content_id": content_id, "status": status}

    def run(self) -> None:
        """Runs the MCP server using stdio transport."""
        self.mcp.run(transport="stdio")


def main() -> None:
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("CURATOR_LOG_LEVEL", "INFO").upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = load_config()

    parser = argparse.ArgumentParser(description="Run the Curator MCP server (stdio).")
    parser.add_argument(
        "--server-name",
        default=config.server.server_name,
        help="Advertised MCP server name.",
    )
    parser.add_argument(
        "--api-url",
        default=config.backend.api_url,
        help="Content library base URL.",
    )
    access = parser.add_mutually_exclusive_group()
    access.add_argument(
        "--read-only",
        dest="read_only",
        action="store_true",
        default=config.server.read_only,
        help="Reject mutating tools (default unless NOVERLOAD_READ_ONLY=false).",
    )
    access.add_argument(
        "--read-write",
        dest="read_only",
        action="store_false",
        help="Allow mutating tools (save, tag, swipe file).",
    )
    args = parser.parse_args()

    config.server.server_name = args.server_name
    config.backend.api_url = args.api_url
    config.server.read_only = args.read_only

    if not config.backend.access_token:
        logger.warning("No access token configured; every tool call will fail until NOVERLOAD_ACCESS_TOKEN is set")
    logger.info(
        "Starting %s against %s (%s)",
        config.server.server_name, config.backend.api_url,
        "read-only" if config.server.read_only else "read-write",
    )

    app = MCPServerApp(
        client=create_backend_client(config),
        mcp_server_name=config.server.server_name,
        guard=TokenBudgetGuard(
            single_item_gate=config.retriever.single_item_gate,
            batch_gate=config.retriever.batch_gate,
            preview_chars=config.retriever.preview_chars,
        ),
        default_limit=config.retriever.default_limit,
        min_relevance=config.retriever.min_relevance,
    )

    def _handle_shutdown(signum, frame):
        raise SystemExit(0)
    for sig in (signal.SIGINT, getattr(signal, "SIGTERM", None)):
        if sig is not None:
            signal.signal(sig, _handle_shutdown)

    app.run()


if __name__ == "__main__":
    main()
