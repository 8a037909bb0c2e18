"""
Token Budget Guard

Estimates the token cost of a would-be response, classifies it into a
warning tier, and gates release of full text above a hard threshold.

Tiers (by estimated tokens):
    < 1,000   none
    < 5,000   mild
    < 10,000  strong
    < 50,000  critical
    otherwise extreme

Two gates are deployed: one for single-item retrieval and a higher one
for aggregate batches. Below a gate the full payload is released with an
advisory note; above it, a bounded preview is returned instead and the
caller must re-request with the override flag.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..common.schemas.content import Content, SearchResult

SMALL = 1_000
MEDIUM = 5_000
LARGE = 10_000
HUGE = 50_000
MASSIVE = 100_000

WORD_TOKEN_RATIO = 1.3

SINGLE_ITEM_OVERRIDE = "accept_large_content"
BATCH_OVERRIDE = "accept_large_batch"


class TokenTier(str, Enum):
    """Warning tiers, in increasing order of severity"""
    NONE = "none"
    MILD = "mild"
    STRONG = "strong"
    CRITICAL = "critical"
    EXTREME = "extreme"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)


_TIER_ORDER = [TokenTier.NONE, TokenTier.MILD, TokenTier.STRONG, TokenTier.CRITICAL, TokenTier.EXTREME]


def estimate_tokens(token_count: Optional[int] = None, text: Optional[str] = None) -> int:
    """Reported count when positive, else ceil(words * 1.3), else 0.

    A reported count of 0 means "not counted" and falls through to the
    word estimate.
    """
    if token_count:
        return max(int(token_count), 0)
    if text:
        return math.ceil(len(text.split()) * WORD_TOKEN_RATIO)
    return 0


def estimate_content_tokens(content: Content) -> int:
    return estimate_tokens(content.token_count, content.raw_text)


def classify(tokens: int) -> TokenTier:
    """Map a token estimate onto its tier. Monotonic in tokens."""
    if tokens < SMALL:
        return TokenTier.NONE
    if tokens < MEDIUM:
        return TokenTier.MILD
    if tokens < LARGE:
        return TokenTier.STRONG
    if tokens < HUGE:
        return TokenTier.CRITICAL
    return TokenTier.EXTREME


def warning_message(tokens: int, operation: str, item_count: Optional[int] = None) -> str:
    """Advisory note for a tier, or "" when none is needed."""
    tier = classify(tokens)
    items = f" for {item_count} items" if item_count else ""

    if tier == TokenTier.NONE:
        return ""
    if tier == TokenTier.MILD:
        return f"Note: this {operation}{items} uses ~{tokens:,} tokens."
    if tier == TokenTier.STRONG:
        return f"Warning: this {operation}{items} consumes ~{tokens:,} tokens (significant context usage)."
    if tier == TokenTier.CRITICAL:
        return (
            f"Critical: this {operation}{items} consumes ~{tokens:,} tokens and may fill most of the "
            "context window. Consider fewer items, narrower filters, or summaries only."
        )
    return (
        f"Extreme: this {operation}{items} would consume ~{tokens:,} tokens, beyond typical context "
        "windows. Break the request down, search more specifically, or request summaries only."
    )


@dataclass
class GateDecision:
    """Outcome of gating one payload"""
    requires_confirmation: bool
    tokens: int
    tier: TokenTier
    warning: str = ""
    override_parameter: str = SINGLE_ITEM_OVERRIDE
    content: Optional[Content] = None
    preview: Optional[Dict[str, Any]] = None


@dataclass
class BatchGateDecision:
    """Outcome of gating a multi-item payload"""
    requires_confirmation: bool
    total_tokens: int
    tier: TokenTier
    items: List[Dict[str, Any]] = field(default_factory=list)
    warning: str = ""
    override_parameter: str = BATCH_OVERRIDE


class TokenBudgetGuard:
    """
    Decides whether full text may be released.

    Responsibilities:
    1. Estimate tokens (reported count or word-based)
    2. Classify into a tier and build the advisory note
    3. Substitute a bounded preview above the gate unless overridden
    """

    def __init__(
        self,
        single_item_gate: int = HUGE,
        batch_gate: int = MASSIVE,
        preview_chars: int = 500,
    ):
        """
        Initialize guard.

        Args:
            single_item_gate: Tokens above which one item needs confirmation
            batch_gate: Summed tokens above which a batch needs confirmation
            preview_chars: Characters of text kept in a preview
        """
        self.single_item_gate = single_item_gate
        self.batch_gate = batch_gate
        self.preview_chars = preview_chars

    def build_preview(self, content: Content) -> Dict[str, Any]:
        """Title, type, URL, summary and the head of the text."""
        text = content.raw_text or ""
        return {
            "id": content.id,
            "title": content.title,
            "contentType": content.content_type.value,
            "url": content.url,
            "summary": content.summary,
            "textPreview": text[:self.preview_chars],
            "textTruncated": len(text) > self.preview_chars,
        }

    def guard_content(self, content: Content, accept_large: bool = False) -> GateDecision:
        """
        Gate a single item's full text.

        Args:
            content: Normalized item, possibly with raw_text
            accept_large: Caller explicitly accepted a large payload

        Returns:
            GateDecision carrying either the full content or a preview
        """
        tokens = estimate_content_tokens(content)
        tier = classify(tokens)

        if tokens > self.single_item_gate and not accept_large:
            return GateDecision(
                requires_confirmation=True,
                tokens=tokens,
                tier=tier,
                warning=(
                    f"Large content - requires confirmation. Full text is ~{tokens:,} tokens; "
                    f"re-run with {SINGLE_ITEM_OVERRIDE}=true to retrieve it, or read it piecewise with smart_sections."
                ),
                preview=self.build_preview(content),
            )

        return GateDecision(
            requires_confirmation=False,
            tokens=tokens,
            tier=tier,
            warning=warning_message(tokens, "content retrieval"),
            content=content,
        )

    def guard_batch(
        self,
        items: List[Content],
        include_full_content: bool,
        accept_large: bool = False,
    ) -> BatchGateDecision:
        """
        Gate a batch on its summed token estimate.

        Only full-text batches can trip the gate; summary-only batches are
        always released.
        """
        return self._guard_many(
            items, include_full_content, accept_large,
            gate=self.batch_gate, override=BATCH_OVERRIDE, operation="batch",
        )

    def guard_search(
        self,
        results: List[Content],
        include_full_content: bool,
        accept_large: bool = False,
    ) -> BatchGateDecision:
        """
        Gate full-text search results on their summed token estimate.

        Search shares the single-item gate: a full-text search above it
        returns previews until re-run with accept_large_content.
        """
        return self._guard_many(
            results, include_full_content, accept_large,
            gate=self.single_item_gate, override=SINGLE_ITEM_OVERRIDE, operation="search",
        )

    def _guard_many(
        self,
        items: List[Content],
        include_full_content: bool,
        accept_large: bool,
        gate: int,
        override: str,
        operation: str,
    ) -> BatchGateDecision:
        total = sum(estimate_content_tokens(item) for item in items)
        tier = classify(total)

        if include_full_content and total > gate and not accept_large:
            previews = []
            for item in items:
                preview = self.build_preview(item)
                if isinstance(item, SearchResult):
                    preview["relevanceScore"] = item.relevance_score
                previews.append(preview)
            return BatchGateDecision(
                requires_confirmation=True,
                total_tokens=total,
                tier=tier,
                items=previews,
                warning=(
                    f"Full text of this {operation} is ~{total:,} tokens across {len(items)} items; "
                    f"re-run with {override}=true, or request fewer items."
                ),
                override_parameter=override,
            )

        payloads = []
        for item in items:
            payload = item.to_payload()
            if not include_full_content:
                payload.pop("rawText", None)
            payloads.append(payload)

        warning = warning_message(total, operation, len(items)) if include_full_content else ""
        return BatchGateDecision(
            requires_confirmation=False,
            total_tokens=total,
            tier=tier,
            items=payloads,
            warning=warning,
            override_parameter=override,
        )
