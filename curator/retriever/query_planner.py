"""
Query Planner

Maps caller-facing search intent onto the library's backend search
strategies, and extracts topic keywords used for relevance filtering.

Everything here is pure: no I/O, no state.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union


class SearchMode(str, Enum):
    """Caller-facing search modes"""
    SMART = "smart"
    SEMANTIC = "semantic"
    HYBRID = "hybrid"
    FULLTEXT = "fulltext"
    ANY = "any"  # OR logic
    ALL = "all"  # AND logic
    PHRASE = "phrase"  # exact phrase


class BackendMode(str, Enum):
    """Search strategies understood by the modern search surface"""
    SMART = "smart"
    SEMANTIC = "semantic"
    HYBRID = "hybrid"
    FULLTEXT = "fulltext"


@dataclass(frozen=True)
class SearchPlan:
    """Resolved backend strategy for one search call"""
    backend_mode: BackendMode
    expand_concepts: bool


# Stop words dropped from topic keywords
STOP_WORDS = frozenset({
    "a", "an", "the", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "shall", "can", "need", "dare", "ought",
    "used", "to", "of", "in", "for", "on", "with", "at", "by", "from", "as",
    "into", "through", "during", "before", "after", "above", "below",
    "between", "out", "off", "over", "under", "again", "further", "then",
    "once", "and", "but", "or", "nor", "not", "so", "yet", "both", "each",
    "few", "more", "most", "other", "some", "such", "no", "only", "own",
    "same", "than", "too", "very", "just", "about", "how", "what", "which",
    "who", "whom", "this", "that", "these", "those", "am", "it", "its",
    "my", "your", "our", "their", "all", "any", "if", "up", "down", "here",
    "there", "when", "where", "why", "impact", "effect", "effects", "role",
    "using", "use",
})


def coerce_mode(mode: Union[str, SearchMode, None]) -> Optional[SearchMode]:
    if mode is None:
        return None
    if isinstance(mode, SearchMode):
        return mode
    try:
        return SearchMode(str(mode).strip().lower())
    except ValueError:
        return None


def plan_search(
    mode: Union[str, SearchMode, None] = None,
    expand_concepts: Optional[bool] = None,
) -> SearchPlan:
    """
    Resolve a caller mode and concept-expansion flag into a backend plan.

    Rules, in priority order:
    1. expand_concepts=True forces semantic, whatever the mode
    2. "phrase" / "all" -> fulltext
    3. "any" -> hybrid
    4. backend-native modes (semantic, hybrid, fulltext) pass through
    5. anything else -> smart

    Concept expansion is on unless explicitly False. Total over all
    inputs: unknown modes resolve to smart.

    Args:
        mode: Caller-facing mode token
        expand_concepts: Explicit concept-expansion request, or None

    Returns:
        SearchPlan
    """
    resolved_expansion = expand_concepts is not False

    if expand_concepts is True:
        return SearchPlan(BackendMode.SEMANTIC, resolved_expansion)

    caller_mode = coerce_mode(mode)
    if caller_mode in (SearchMode.PHRASE, SearchMode.ALL):
        backend_mode = BackendMode.FULLTEXT
    elif caller_mode == SearchMode.ANY:
        backend_mode = BackendMode.HYBRID
    elif caller_mode in (SearchMode.SEMANTIC, SearchMode.HYBRID, SearchMode.FULLTEXT):
        backend_mode = BackendMode(caller_mode.value)
    else:
        backend_mode = BackendMode.SMART

    return SearchPlan(backend_mode, resolved_expansion)


def expand_any_query(query: str) -> str:
    """
    Rewrite "a b c" as "a OR b OR c" for any-mode searches.

    Terms of two characters or fewer are dropped; queries that already
    contain OR, or have a single usable term, are returned unchanged.
    """
    if "OR" in query:
        return query
    terms = [t for t in query.split() if len(t) > 2]
    if len(terms) > 1:
        return " OR ".join(terms)
    return query


def extract_topic_keywords(text: str) -> List[str]:
    """
    Extract topic keywords from a query.

    Lower-cased, stripped of punctuation (hyphens kept), tokens longer
    than two characters that are not stop words. Order kept, duplicates
    removed.
    """
    cleaned = re.sub(r"[^a-z0-9\s-]", " ", (text or "").lower())
    words = [w for w in cleaned.split() if len(w) > 2 and w not in STOP_WORDS]
    return list(dict.fromkeys(words))


def is_relevant(text: str, keywords: List[str]) -> bool:
    """True when any keyword appears in text. No keywords means no filtering."""
    if not keywords:
        return True
    lowered = (text or "").lower()
    return any(k in lowered for k in keywords)
