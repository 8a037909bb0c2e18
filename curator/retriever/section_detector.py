"""
Section Detector

Splits one item's full text into navigable sections so large documents
can be read piecewise instead of released whole.

Boundaries:
- Markdown headings ("# Title" .. "###### Title") open a section typed
  from the heading words
- A numbered line ("1. Do this") opens a "steps" section unless one is
  already open
- Text before the first boundary becomes an introduction section
"""

import logging
import math
import re
from typing import Dict, List, Optional, Tuple, Union

from ..common.schemas.content import ContentSection, SectionType

logger = logging.getLogger("curator.retriever.section_detector")

DEFAULT_MAX_SECTIONS = 10
CHARS_PER_TOKEN = 4
MAX_KEY_TOPICS = 5

# Heading keywords per section type, checked in this order
SECTION_KEYWORDS: Dict[SectionType, Tuple[str, ...]] = {
    SectionType.INTRODUCTION: ("introduction", "overview", "background", "summary", "abstract", "preface"),
    SectionType.METHODS: ("method", "approach", "process", "procedure", "technique", "algorithm"),
    SectionType.RESULTS: ("results", "findings", "outcomes", "performance", "metrics", "data"),
    SectionType.EXAMPLES: ("example", "case", "instance", "scenario", "demonstration", "illustration"),
    SectionType.CONCLUSION: ("conclusion", "summary", "takeaway", "final", "closing", "recap"),
    SectionType.CODE: ("code", "snippet", "implementation", "function", "class", "script"),
    SectionType.STEPS: ("step", "phase", "stage", "instruction", "direction", "procedure"),
}


def detect_section_type(title: str) -> SectionType:
    """First section type whose keyword appears in the heading, else content."""
    lowered = title.lower()
    for section_type, keywords in SECTION_KEYWORDS.items():
        if any(k in lowered for k in keywords):
            return section_type
    return SectionType.CONTENT


class SectionDetector:
    """
    Detects, filters and ranks sections of a document.

    Usage:
        detector = SectionDetector()
        sections = detector.sections(text, query="pricing", max_sections=5)
    """

    HEADING = re.compile(r"^(#{1,6})\s+(.+)")
    NUMBERED_LINE = re.compile(r"^(\d+)\.\s+(.+)")

    CODE_BLOCK = re.compile(r"```[\s\S]*?```")
    STEP_LINE = re.compile(r"^(?:\d+\.\s+|Step \d+)", re.MULTILINE)
    EXAMPLE_PHRASE = re.compile(r"example|instance|such as|for instance", re.IGNORECASE)
    CAPITALIZED_PHRASE = re.compile(r"[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*")
    TOPIC_STOP = frozenset({"The", "This", "That", "These", "Those", "A", "An"})

    def detect(self, text: str, section_type: Union[str, None] = "all") -> List[ContentSection]:
        """
        Split text into sections in document order.

        Args:
            text: Full text of one item
            section_type: "all", or a SectionType value; numbered lines only
                open steps sections for "all" and "steps"

        Returns:
            Sections with positions, token estimates and feature flags
        """
        if not text.strip():
            return []
        numbered_opens_steps = section_type in (None, "all", SectionType.STEPS.value, SectionType.STEPS)

        sections: List[ContentSection] = []
        current: Optional[ContentSection] = None
        position = 0

        for line in text.split("\n"):
            line_position = position
            position += len(line) + 1

            heading = self.HEADING.match(line)
            if heading:
                if current is not None and current.content:
                    sections.append(current)
                title = heading.group(2).strip()
                current = self._new_section(detect_section_type(title), title, line_position)
                continue

            if numbered_opens_steps and self.NUMBERED_LINE.match(line):
                if current is None or current.type != SectionType.STEPS:
                    if current is not None and current.content:
                        sections.append(current)
                    current = self._new_section(SectionType.STEPS, "Steps", line_position)

            if current is None:
                current = self._new_section(SectionType.INTRODUCTION, "Content", 0)
            current.content += line + "\n"
            current.end_position = line_position + len(line)

        if current is not None and current.content:
            sections.append(current)

        for index, section in enumerate(sections, start=1):
            section.id = f"section-{index}"
            self._annotate(section)
        return sections

    @staticmethod
    def _new_section(section_type: SectionType, title: str, start: int) -> ContentSection:
        # ids are assigned once detection is complete
        return ContentSection(
            id="",
            type=section_type,
            title=title,
            start_position=start,
            end_position=start,
        )

    def _annotate(self, section: ContentSection) -> None:
        body = section.content
        section.token_count = math.ceil(len(body) / CHARS_PER_TOKEN)
        section.has_code = bool(self.CODE_BLOCK.search(body))
        section.has_steps = bool(self.STEP_LINE.search(body))
        section.has_examples = bool(self.EXAMPLE_PHRASE.search(body))
        section.key_topics = self.key_topics(body)

    def key_topics(self, text: str) -> List[str]:
        """Capitalized phrases longer than three characters, first five distinct."""
        topics: List[str] = []
        for phrase in self.CAPITALIZED_PHRASE.findall(text):
            if len(phrase) > 3 and phrase not in self.TOPIC_STOP and phrase not in topics:
                topics.append(phrase)
        return topics[:MAX_KEY_TOPICS]

    @staticmethod
    def rank_by_query(sections: List[ContentSection], query: str) -> List[ContentSection]:
        """
        Score sections against a query and drop the ones that never match.

        Scoring: whole query in title or body +10, each query word +2,
        whole query in the title +5. Highest score first.
        """
        phrase = query.lower().strip()
        words = phrase.split()
        scored = []
        for section in sections:
            haystack = f"{section.title} {section.content}".lower()
            score = 0
            if phrase and phrase in haystack:
                score += 10
            score += 2 * sum(1 for w in words if w in haystack)
            if phrase and phrase in section.title.lower():
                score += 5
            if score > 0:
                scored.append(section.model_copy(update={"relevance": score}))
        scored.sort(key=lambda s: s.relevance, reverse=True)
        return scored

    def sections(
        self,
        text: str,
        query: Optional[str] = None,
        section_type: str = "all",
        max_sections: int = DEFAULT_MAX_SECTIONS,
    ) -> List[ContentSection]:
        """
        Detect sections, keep one type if asked, rank by query if given.

        Args:
            text: Full text of one item
            query: Optional text the sections should match
            section_type: "all" or a SectionType value
            max_sections: Maximum sections returned

        Returns:
            Sections in document order, or by relevance when a query is given
        """
        found = self.detect(text or "", section_type)
        if section_type and section_type != "all":
            wanted = SectionType(section_type)
            found = [s for s in found if s.type == wanted]
        if query:
            found = self.rank_by_query(found, query)
        logger.debug("Detected %d sections (type=%s, query=%r)", len(found), section_type, query)
        return found[:max_sections]
