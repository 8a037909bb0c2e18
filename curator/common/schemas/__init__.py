"""
Curator Canonical Schemas

Normalized record types shared by the retriever and the MCP server.
"""

from .content import (
    Content,
    ContentStatus,
    ContentType,
    SearchResult,
    SynthesisResult,
    Insight,
    Theme,
    Connection,
    Framework,
    FrameworkType,
    FrameworkStep,
    FrameworkComponent,
    FrameworkSource,
    SectionType,
    ContentSection,
    InsightType,
    InsightExample,
    ExtractedInsight,
    LinkEndpoint,
    ContentLink,
    utc_now_iso,
)

__all__ = [
    "Content",
    "ContentStatus",
    "ContentType",
    "SearchResult",
    "SynthesisResult",
    "Insight",
    "Theme",
    "Connection",
    "Framework",
    "FrameworkType",
    "FrameworkStep",
    "FrameworkComponent",
    "FrameworkSource",
    "SectionType",
    "ContentSection",
    "InsightType",
    "InsightExample",
    "ExtractedInsight",
    "LinkEndpoint",
    "ContentLink",
    "utc_now_iso",
]
