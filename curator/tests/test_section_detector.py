"""Tests for section detection and query ranking."""

import pytest

from curator.common.schemas.content import SectionType
from curator.retriever.section_detector import SectionDetector, detect_section_type

GUIDE = (
    "# Introduction\n"
    "This guide covers onboarding.\n"
    "## Steps\n"
    "1. Invite the team\n"
    "2. Set goals\n"
    "# Conclusion\n"
    "Ship it for example weekly."
)


@pytest.fixture
def detector():
    return SectionDetector()


class TestSectionType:
    @pytest.mark.parametrize("title,expected", [
        ("Executive Summary", SectionType.INTRODUCTION),
        ("Key Findings", SectionType.RESULTS),
        ("Final recap", SectionType.CONCLUSION),
        ("Implementation", SectionType.CODE),
        ("Random thoughts", SectionType.CONTENT),
    ])
    def test_heading_keywords(self, title, expected):
        assert detect_section_type(title) == expected


class TestDetect:
    def test_headings_split_document(self, detector):
        sections = detector.detect(GUIDE)

        assert [s.type for s in sections] == [SectionType.INTRODUCTION, SectionType.STEPS, SectionType.CONCLUSION]
        assert [s.id for s in sections] == ["section-1", "section-2", "section-3"]
        assert sections[0].start_position == 0
        assert sections[0].start_position < sections[1].start_position < sections[2].start_position
        assert sections[1].has_steps
        assert sections[1].key_topics == ["Invite"]
        assert sections[2].has_examples
        assert not sections[0].has_code

    def test_numbered_lines_open_steps(self, detector):
        sections = detector.detect("Intro text\n1. First thing\n2. Second thing")

        assert [(s.type, s.title) for s in sections] == [
            (SectionType.INTRODUCTION, "Content"),
            (SectionType.STEPS, "Steps"),
        ]

    def test_numbered_lines_stay_inline_for_other_types(self, detector):
        sections = detector.sections("Intro text\n1. First thing\n2. Second thing", section_type="introduction")

        assert len(sections) == 1
        assert sections[0].has_steps

    def test_code_block(self, detector):
        sections = detector.detect("# Implementation\n```\nx = 1\n```")

        assert sections[0].type == SectionType.CODE
        assert sections[0].has_code
        assert sections[0].token_count == 4

    def test_empty_text(self, detector):
        assert detector.sections("") == []


class TestSections:
    def test_query_ranks_and_drops_non_matching(self, detector):
        sections = detector.sections(GUIDE, query="goals")

        assert [s.type for s in sections] == [SectionType.STEPS]
        assert sections[0].relevance == 12

    def test_title_match_scores_higher(self, detector):
        text = "# Pricing\nSee the table.\n# Notes\nPricing changes yearly."
        sections = detector.sections(text, query="pricing")

        assert [s.title for s in sections] == ["Pricing", "Notes"]
        assert sections[0].relevance == 17
        assert sections[1].relevance == 12

    def test_type_filter_and_limit(self, detector):
        text = "\n".join(f"# Example {i}\nbody {i}" for i in range(5))

        assert len(detector.sections(text, section_type="examples")) == 5
        assert len(detector.sections(text, max_sections=2)) == 2
        assert detector.sections(text, section_type="code") == []

    def test_payload_omits_body(self, detector):
        payload = detector.sections(GUIDE)[1].to_payload()

        assert "content" not in payload
        assert payload["hasSteps"] is True
        assert payload["type"] == "steps"
