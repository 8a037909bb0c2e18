"""
Framework Extractor

Mines named methodologies (with ordered steps) out of synthesis insight
text using pattern heuristics and a deterministic confidence score.

Confidence formula:
    0.50  base
  + 0.15  name matches the named-framework pattern
  + 0.10  name has a numeric/lettered prefix ("3-Step", "ABC")
  + 0.10  at least 2 steps, + 0.05 more for at least 4
  + 0.05  description longer than 100 chars, + 0.05 more past 200
  + 0.05  source attribution present
  capped at 0.95
"""

import logging
import re
from typing import Dict, Iterable, List, Optional, Union

from ..common.schemas.content import (
    Framework,
    FrameworkComponent,
    FrameworkSource,
    FrameworkStep,
    FrameworkType,
    Insight,
)
from .query_planner import extract_topic_keywords, is_relevant
from .synthesizer import SynthesisMode, SynthesisRequest, SynthesisStatus, Synthesizer

logger = logging.getLogger("curator.retriever.framework_extractor")

DEFAULT_FRAMEWORK_QUERY = "framework methodology process steps guide how to tutorial"

MAX_CONFIDENCE = 0.95
MAX_STEP_NUMBER = 20
MIN_STEP_CLAUSE = 10
NAME_FALLBACK_LENGTH = 50


def score_confidence(name: str, description: str, step_count: int, has_source: bool) -> float:
    """
    Deterministic confidence for one framework candidate.

    Pure: identical inputs always give an identical score in [0, 0.95].
    """
    confidence = 0.5

    if FrameworkExtractor.NAMED_PATTERN.search(name or ""):
        confidence += 0.15
    if FrameworkExtractor.PREFIX_PATTERN.match(name or ""):
        confidence += 0.10

    if step_count >= 2:
        confidence += 0.10
    if step_count >= 4:
        confidence += 0.05

    description_length = len(description or "")
    if description_length > 100:
        confidence += 0.05
    if description_length > 200:
        confidence += 0.05

    if has_source:
        confidence += 0.05

    return round(min(max(confidence, 0.0), MAX_CONFIDENCE), 2)


class FrameworkExtractor:
    """
    Extracts Framework records from insight text.

    Responsibilities:
    1. Select candidate insights (framework vocabulary present)
    2. Extract a name (named pattern, else first sentence)
    3. Extract ordered steps, skipping quantity phrases
    4. Score, deduplicate, filter and rank
    """

    CANDIDATE_KEYWORDS = ("framework", "methodology", "process", "step", "approach", "system")

    # "3-Step Growth Framework", "ABC Method", "Jobs To Be Done Approach"
    NAMED_PATTERN = re.compile(
        r"\b((?:\d+[-\s]?[A-Za-z]+\s+|[A-Z]{2,}\s+)?"
        r"(?:(?!(?:The|A|An|Our|Your|This|That|Use|Using|Try|With)\s)[A-Z][A-Za-z'&-]*\s+){0,4}"
        r"(?:Framework|Method|Process|System|Approach|Model|Strategy))\b"
    )

    PREFIX_PATTERN = re.compile(r"^(?:\d+[-\s]?[A-Za-z]+|[A-Z]{2,}\b)")

    # "1. Plan", "Step 2: Execute", "3) Review", "4 - Repeat"
    STEP_MARKER = re.compile(r"(?:(?<=\s)|^)(?:Step\s+)?(\d{1,2})\s*[.:)\-]\s+(?=[A-Z])", re.MULTILINE)

    SENTENCE_END = re.compile(r"[.!?](?:\s|$)")
    NAME_DELIMITER = re.compile(r"[.!?:]")

    # First words that mark "8 seconds", "4 key elements" style quantities
    QUANTITY_WORDS = frozenset({
        "second", "seconds", "minute", "minutes", "hour", "hours", "day", "days",
        "week", "weeks", "month", "months", "year", "years", "percent", "times",
        "key", "ways", "steps", "elements", "tips", "things", "reasons",
        "people", "users", "customers", "x",
    })

    COMPONENT_PATTERN = re.compile(
        r"\b(?:components?|pillars?|elements?|principles?)\s*(?:are|include|:)\s*([^.;]+)",
        re.IGNORECASE,
    )
    USE_CASE_PATTERN = re.compile(
        r"\b(?:use (?:it|this) (?:for|when)|useful for|best for|ideal for|works well for)\s+([^.;]+)",
        re.IGNORECASE,
    )

    TYPE_BY_NAME_SUFFIX = {
        "framework": FrameworkType.FRAMEWORK,
        "method": FrameworkType.METHODOLOGY,
        "process": FrameworkType.PROCESS,
        "system": FrameworkType.FRAMEWORK,
        "approach": FrameworkType.TECHNIQUE,
        "model": FrameworkType.FRAMEWORK,
        "strategy": FrameworkType.TECHNIQUE,
    }

    def is_candidate(self, text: str) -> bool:
        lowered = (text or "").lower()
        return any(k in lowered for k in self.CANDIDATE_KEYWORDS)

    def extract_name(self, text: str) -> str:
        """Named-framework phrase if present, else the first clause (max 50 chars)."""
        match = self.NAMED_PATTERN.search(text)
        if match:
            return match.group(1).strip()
        first = self.NAME_DELIMITER.split(text, 1)[0].strip()
        return first[:NAME_FALLBACK_LENGTH].strip()

    def extract_steps(self, text: str) -> List[FrameworkStep]:
        """
        Ordered steps found in text.

        A marker counts when it sits at the start of the text, a line, or a
        sentence, or when it continues a numbered run ("1. Plan 2. Execute").
        Isolated markers need a clause of at least 10 characters; markers in
        a run may be single words.
        """
        markers = list(self.STEP_MARKER.finditer(text))
        numbers = [int(m.group(1)) for m in markers]
        steps: Dict[int, FrameworkStep] = {}

        for idx, marker in enumerate(markers):
            number = numbers[idx]
            if number < 1 or number > MAX_STEP_NUMBER or number in steps:
                continue

            in_run = (idx > 0 and numbers[idx - 1] == number - 1) or (
                idx + 1 < len(numbers) and numbers[idx + 1] == number + 1
            )
            before = text[:marker.start()].rstrip(" \t")
            anchored = not before or before[-1] in "\n.!?:;"
            if not (anchored or in_run):
                continue

            end = markers[idx + 1].start() if idx + 1 < len(markers) else len(text)
            clause = self.SENTENCE_END.split(text[marker.end():end], 1)[0].strip().rstrip(",;")
            if not clause:
                continue
            if len(clause) < (2 if in_run else MIN_STEP_CLAUSE):
                continue
            if clause.split()[0].lower().strip(",:") in self.QUANTITY_WORDS:
                continue

            title, _, detail = clause.partition(":")
            if not detail:
                title, _, detail = clause.partition(" - ")
            steps[number] = FrameworkStep(order=number, title=title.strip(), description=detail.strip())

        return [steps[n] for n in sorted(steps)]

    def infer_type(self, name: str, text: str) -> FrameworkType:
        last_word = name.split()[-1].lower() if name.split() else ""
        if last_word in self.TYPE_BY_NAME_SUFFIX:
            return self.TYPE_BY_NAME_SUFFIX[last_word]

        lowered = text.lower()
        if "methodology" in lowered:
            return FrameworkType.METHODOLOGY
        if "process" in lowered or "step" in lowered:
            return FrameworkType.PROCESS
        if "pattern" in lowered:
            return FrameworkType.PATTERN
        if "technique" in lowered or "approach" in lowered:
            return FrameworkType.TECHNIQUE
        return FrameworkType.FRAMEWORK

    def extract_components(self, text: str) -> List[FrameworkComponent]:
        match = self.COMPONENT_PATTERN.search(text)
        if not match:
            return []
        parts = re.split(r",\s*|\s+and\s+", match.group(1))
        return [FrameworkComponent(name=p.strip()) for p in parts if p.strip()]

    def extract_use_cases(self, text: str) -> List[str]:
        return [m.group(1).strip() for m in self.USE_CASE_PATTERN.finditer(text)]

    def build(self, text: str, source: Optional[FrameworkSource] = None) -> Optional[Framework]:
        """Build one Framework from candidate text, or None if it is not a candidate."""
        text = (text or "").strip()
        if not text or not self.is_candidate(text):
            return None

        name = self.extract_name(text)
        if not name:
            return None
        steps = self.extract_steps(text)

        return Framework(
            name=name,
            type=self.infer_type(name, text),
            description=text,
            steps=steps,
            components=self.extract_components(text),
            use_cases=self.extract_use_cases(text),
            confidence=score_confidence(name, text, len(steps), source is not None),
            source=source,
        )

    def extract(
        self,
        insights: Iterable[Union[Insight, str]],
        query: str = "",
        min_confidence: float = 0.7,
        limit: int = 20,
        source: Optional[FrameworkSource] = None,
    ) -> List[Framework]:
        """
        Extract frameworks from an insight list.

        Args:
            insights: Insight records or raw strings
            query: Topic; insights never mentioning it are skipped
            min_confidence: Keep frameworks scoring at least this
            limit: Maximum frameworks returned
            source: Attribution applied when an insight carries none

        Returns:
            Frameworks sorted by confidence, highest first
        """
        keywords = extract_topic_keywords(query)
        best: Dict[str, Framework] = {}

        for insight in insights:
            if isinstance(insight, Insight):
                text = insight.text
                attribution = FrameworkSource(content_id=insight.source_id) if insight.source_id else source
            else:
                text, attribution = str(insight), source

            if not is_relevant(text, keywords):
                continue
            framework = self.build(text, attribution)
            if framework is None:
                continue

            # Deduplicate by name, keep the stronger candidate
            key = framework.name.lower()
            if key not in best or framework.confidence > best[key].confidence:
                best[key] = framework

        kept = [f for f in best.values() if f.confidence >= min_confidence]
        kept.sort(key=lambda f: f.confidence, reverse=True)
        return kept[:limit]


async def mine_frameworks(
    synthesizer: Synthesizer,
    query: Optional[str] = None,
    content_ids: Optional[List[str]] = None,
    min_confidence: float = 0.7,
    limit: int = 20,
    extractor: Optional[FrameworkExtractor] = None,
) -> dict:
    """
    Synthesize across the library and extract frameworks from the insights.

    Returns:
        {"status", "frameworks", "source_ids", "error"}
    """
    extractor = extractor or FrameworkExtractor()
    query = query or DEFAULT_FRAMEWORK_QUERY

    outcome = await synthesizer.synthesize(SynthesisRequest(
        query=query,
        content_ids=list(content_ids or []),
        mode=SynthesisMode.ACTIONABLE,
        max_sources=30,
    ))
    if outcome.status != SynthesisStatus.COMPLETED:
        return {
            "status": outcome.status.value,
            "frameworks": [],
            "source_ids": outcome.source_ids,
            "error": outcome.error,
        }

    source = None
    if len(outcome.source_ids) == 1:
        source = FrameworkSource(content_id=outcome.source_ids[0])

    insights = list(outcome.synthesis.insights)
    # Themes often carry the methodology prose as well
    insights.extend(Insight(text=f"{t.theme}: {t.insight}") for t in outcome.synthesis.themes if t.insight)

    frameworks = extractor.extract(insights, query, min_confidence=min_confidence, limit=limit, source=source)
    logger.info("Extracted %d frameworks from %d insights", len(frameworks), len(insights))
    return {
        "status": outcome.status.value,
        "frameworks": frameworks,
        "source_ids": outcome.source_ids,
        "error": None,
    }
