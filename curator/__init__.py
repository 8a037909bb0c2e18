"""
Curator

Retrieval orchestration between an LLM tool host and a remote content library.

Philosophy:
- The library stores and ranks; Curator retrieves and reconciles
- Every backend record is normalized before anyone else sees it
- Large payloads are gated, never silently truncated

Usage:
    from curator.common import load_config, BackendClient
    from curator.common.schemas import Content, SearchResult, Framework
    from curator.retriever import Searcher, Synthesizer, FrameworkExtractor
"""

__version__ = "0.1.0"
