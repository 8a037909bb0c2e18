"""
Retriever - Library Retrieval and Synthesis

Searches the remote content library and reconciles what comes back.

Key Components:
- query_planner: Maps caller search modes onto backend strategies
- Searcher: Modern -> legacy tiered search
- Synthesizer: Source resolution and cross-source synthesis
- TokenBudgetGuard: Gates release of large full-text payloads
- FrameworkExtractor: Mines named methodologies from insight text
- TopicExplorer: Search + synthesis over one topic
- SectionDetector: Splits one item into navigable sections
- InsightExtractor: Typed insights from search hits' tags and summaries
- ConnectionFinder: Relates items through shared tags

Pipeline:
1. Plan the backend search strategy
2. Search (with legacy fallback), normalize hits
3. Synthesize over resolved sources, filter off-topic findings
4. Gate bulk text before release
"""

from .query_planner import SearchMode, BackendMode, SearchPlan, plan_search
from .searcher import Searcher, SearchOptions
from .synthesizer import (
    Synthesizer,
    SynthesisMode,
    SynthesisRequest,
    SynthesisOutcome,
    SynthesisStatus,
)
from .token_guard import TokenBudgetGuard, TokenTier, GateDecision, BatchGateDecision
from .framework_extractor import FrameworkExtractor, score_confidence, mine_frameworks
from .topic_explorer import TopicExplorer, Exploration, ExplorationDepth
from .section_detector import SectionDetector, detect_section_type
from .insight_extractor import InsightExtractor, InsightExtraction, extract_typed_insights
from .connection_finder import ConnectionFinder, ConnectionAnalysis, ConnectionType, analyze_connections

__all__ = [
    "SearchMode",
    "BackendMode",
    "SearchPlan",
    "plan_search",
    "Searcher",
    "SearchOptions",
    "Synthesizer",
    "SynthesisMode",
    "SynthesisRequest",
    "SynthesisOutcome",
    "SynthesisStatus",
    "TokenBudgetGuard",
    "TokenTier",
    "GateDecision",
    "BatchGateDecision",
    "FrameworkExtractor",
    "score_confidence",
    "mine_frameworks",
    "TopicExplorer",
    "Exploration",
    "ExplorationDepth",
    "SectionDetector",
    "detect_section_type",
    "InsightExtractor",
    "InsightExtraction",
    "extract_typed_insights",
    "ConnectionFinder",
    "ConnectionAnalysis",
    "ConnectionType",
    "analyze_connections",
]
