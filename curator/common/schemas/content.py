"""
Canonical Content Schemas

Shape-independent record types that every retrieval component works against.
Backend payloads are converted into these by the normalizer; nothing downstream
ever reads a raw backend dict.

Serialized form uses camelCase keys (contentType, rawText, ...). The summary
field is the one exception: it is relayed exactly as the backend sent it.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now_iso() -> str:
    """Current UTC timestamp in ISO-8601 form"""
    return datetime.now(timezone.utc).isoformat()


# ============================================================================
# Enums
# ============================================================================

class ContentType(str, Enum):
    """Source kinds of saved content (values are the backend wire names)"""
    VIDEO = "youtube"
    SOCIAL_POST = "x_twitter"
    FORUM_THREAD = "reddit"
    ARTICLE = "article"
    DOCUMENT = "pdf"


class ContentStatus(str, Enum):
    """Backend processing lifecycle"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class FrameworkType(str, Enum):
    """Kinds of extracted methodology"""
    METHODOLOGY = "methodology"
    PROCESS = "process"
    FRAMEWORK = "framework"
    PATTERN = "pattern"
    TECHNIQUE = "technique"


class _CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys"""
        return self.model_dump(by_alias=True, mode="json")


# ============================================================================
# Content
# ============================================================================

class Content(_CamelModel):
    """
    A saved item in the remote library.

    id and url are always strings (possibly empty) so callers never
    null-check them.
    """
    id: str = ""
    user_id: str = ""
    url: str = ""
    title: Optional[str] = None
    description: Optional[str] = None
    content_type: ContentType = Field(default=ContentType.ARTICLE)
    status: ContentStatus = Field(default=ContentStatus.COMPLETED)
    summary: Optional[Union[str, Dict[str, Any]]] = Field(
        default=None, description="Plain text or structured summary object, never coerced"
    )
    key_insights: List[str] = Field(default_factory=list)
    raw_text: Optional[str] = None
    token_count: Optional[int] = Field(default=None, ge=0)
    og_image: Optional[str] = None
    processing_metadata: Optional[Dict[str, Any]] = None
    tags: List[str] = Field(default_factory=list)
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)


class SearchResult(Content):
    """A Content record ranked by the backend for one search call"""
    relevance_score: float = Field(default=0.0, ge=0.0, le=1.0)
    match_reason: Optional[Union[str, List[str]]] = None


# ============================================================================
# Synthesis
# ============================================================================

class Insight(_CamelModel):
    text: str
    category: Optional[str] = None
    source_id: Optional[str] = None


class Theme(_CamelModel):
    theme: str
    frequency: Optional[int] = None
    insight: Optional[str] = None


class Connection(_CamelModel):
    pattern: str
    implication: Optional[str] = None
    strength: Optional[Union[float, str]] = None


class SynthesisResult(_CamelModel):
    """
    Reconciled synthesis output.

    The backend has shipped several shapes for the same concepts; the
    normalizer folds them into these fields. `raw` keeps the unwrapped
    backend dict for diagnostics and is not serialized.
    """
    summary: Optional[str] = None
    insights: List[Insight] = Field(default_factory=list)
    themes: List[Theme] = Field(default_factory=list)
    connections: List[Connection] = Field(default_factory=list)
    knowledge_gaps: List[str] = Field(default_factory=list)
    contradictions: List[Any] = Field(default_factory=list)
    quotes: List[Any] = Field(default_factory=list)
    action_plan: Optional[Any] = None
    raw: Dict[str, Any] = Field(default_factory=dict, exclude=True)


# ============================================================================
# Frameworks
# ============================================================================

class FrameworkStep(_CamelModel):
    order: int = Field(ge=1)
    title: str
    description: str = ""


class FrameworkComponent(_CamelModel):
    name: str
    description: str = ""
    importance: Optional[str] = None


class FrameworkSource(_CamelModel):
    content_id: Optional[str] = None
    title: Optional[str] = None


class Framework(_CamelModel):
    """A named methodology mined from synthesis prose"""
    name: str
    type: FrameworkType = Field(default=FrameworkType.FRAMEWORK)
    description: str = ""
    steps: List[FrameworkStep] = Field(default_factory=list)
    components: List[FrameworkComponent] = Field(default_factory=list)
    use_cases: List[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=0.95, default=0.5)
    source: Optional[FrameworkSource] = None


# ============================================================================
# Sections, Extracted Insights, Content Links
# ============================================================================

class SectionType(str, Enum):
    """Kinds of document section recognized by heading and layout"""
    INTRODUCTION = "introduction"
    METHODS = "methods"
    RESULTS = "results"
    EXAMPLES = "examples"
    CONCLUSION = "conclusion"
    CODE = "code"
    STEPS = "steps"
    CONTENT = "content"


class ContentSection(_CamelModel):
    """A contiguous region of one item's full text"""
    id: str
    type: SectionType = Field(default=SectionType.CONTENT)
    title: str = ""
    content: str = Field(default="", exclude=True)
    start_position: int = 0
    end_position: int = 0
    token_count: int = 0
    relevance: Optional[int] = None
    has_code: bool = False
    has_steps: bool = False
    has_examples: bool = False
    key_topics: List[str] = Field(default_factory=list)


class InsightType(str, Enum):
    PATTERNS = "patterns"
    CONTRADICTIONS = "contradictions"
    CONSENSUS = "consensus"
    EVOLUTION = "evolution"
    ACTIONABLE = "actionable"
    WARNINGS = "warnings"


class InsightExample(_CamelModel):
    text: str
    content_type: Optional[str] = None


class ExtractedInsight(_CamelModel):
    """One insight pulled from search hits"""
    type: InsightType
    text: str
    confidence: float = Field(ge=0.0, le=1.0)
    frequency: Optional[int] = None
    priority: Optional[str] = None
    source_ids: List[str] = Field(default_factory=list)
    examples: List[InsightExample] = Field(default_factory=list)


class LinkEndpoint(_CamelModel):
    id: str
    title: str = "Untitled"


class ContentLink(_CamelModel):
    """A relationship between two saved items, derived from shared tags"""
    source1: LinkEndpoint
    source2: LinkEndpoint
    kind: str = "weak"  # strong: more than 2 shared concepts
    relationship: str = "independent"
    strength: float = Field(default=0.0, ge=0.0, le=1.0)
    shared_concepts: List[str] = Field(default_factory=list)
    explanation: str = ""
