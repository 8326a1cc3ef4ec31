"""
Domain types for the SEL question resolution and data-quality engine.

Templates, template sets and answer records are immutable once built.
Closed enumerations carry an explicit ``UNRECOGNIZED`` member so that
distribution maps keyed by them are always exhaustive.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union


class SelInsightsError(Exception):
    """Base class for errors raised by this package."""


class ConfigurationError(SelInsightsError):
    """The template registry or its source files are unusable."""


class RecordFormatError(SelInsightsError):
    """A stored document cannot be converted into answer records."""


class GradeBand(str, Enum):
    LOWER = "lower"  # grades 3-4
    UPPER = "upper"  # grades 5-6

    @classmethod
    def from_label(cls, label: str) -> "GradeBand":
        """Accept either a band name or the grade range used in template files."""
        normalized = str(label).strip().lower()
        if normalized in ("lower", "3-4"):
            return cls.LOWER
        if normalized in ("upper", "5-6"):
            return cls.UPPER
        raise ValueError(f"Unknown grade band: {label!r}")


# Highest school grade that belongs to the lower band.
LOWER_BAND_MAX_GRADE = 4


def grade_band_for(grade: int) -> GradeBand:
    """Map a school grade (1-6) to its template grade band."""
    return GradeBand.LOWER if int(grade) <= LOWER_BAND_MAX_GRADE else GradeBand.UPPER


class SELDomain(str, Enum):
    SELF_AWARENESS = "selfAwareness"
    SELF_MANAGEMENT = "selfManagement"
    SOCIAL_AWARENESS = "socialAwareness"
    RELATIONSHIP_SKILLS = "relationshipSkills"
    RESPONSIBLE_DECISION_MAKING = "responsibleDecisionMaking"
    UNRECOGNIZED = "unrecognized"

    @classmethod
    def parse(cls, value: Any) -> "SELDomain":
        for member in cls:
            if member.value == value:
                return member
        return cls.UNRECOGNIZED


# Question id prefixes used by the built-in template sets.
DOMAIN_CODES = {
    "sa": SELDomain.SELF_AWARENESS,
    "sm": SELDomain.SELF_MANAGEMENT,
    "soa": SELDomain.SOCIAL_AWARENESS,
    "rs": SELDomain.RELATIONSHIP_SKILLS,
    "rdm": SELDomain.RESPONSIBLE_DECISION_MAKING,
}


class ResponseType(str, Enum):
    NUMERIC_SCALE = "scale"
    SINGLE_CHOICE = "multipleChoice"
    FREE_TEXT = "text"
    EMOTION_CHOICE = "emotion"
    UNRECOGNIZED = "unrecognized"

    @classmethod
    def parse(cls, value: Any) -> "ResponseType":
        for member in cls:
            if member.value == value:
                return member
        return cls.UNRECOGNIZED


class MatchTier(str, Enum):
    EXACT = "exact"
    CROSS_GRADE = "cross-grade"
    HEURISTIC = "heuristic"
    UNRESOLVED = "unresolved"

    @property
    def confidence(self) -> int:
        return TIER_CONFIDENCE[self]


TIER_CONFIDENCE = {
    MatchTier.EXACT: 100,
    MatchTier.CROSS_GRADE: 75,
    MatchTier.HEURISTIC: 50,
    MatchTier.UNRESOLVED: 0,
}


class QualityLevel(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class InferenceMethod(str, Enum):
    TEMPLATE_PATTERN = "template-pattern"
    OVERLAP_MATCH = "overlap-match"
    FALLBACK_DEFAULT = "fallback-default"


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScaleLabels:
    min: str
    max: str


@dataclass(frozen=True)
class QuestionTemplate:
    """One question definition inside a template set."""

    id: str
    text: str
    response_type: ResponseType
    domain: SELDomain
    grade_band: GradeBand
    choice_options: Tuple[str, ...] = ()
    scale_labels: Optional[ScaleLabels] = None
    sub_category: Optional[str] = None
    analysis_weight: int = 1
    required: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "response_type": self.response_type.value,
            "domain": self.domain.value,
            "grade_band": self.grade_band.value,
            "choice_options": list(self.choice_options),
            "scale_labels": (
                {"min": self.scale_labels.min, "max": self.scale_labels.max} if self.scale_labels else None
            ),
            "sub_category": self.sub_category,
            "analysis_weight": self.analysis_weight,
            "required": self.required,
        }


@dataclass(frozen=True)
class TemplateSet:
    id: str
    grade_band: GradeBand
    templates: Tuple[QuestionTemplate, ...]
    title: str = ""

    def find(self, question_id: str) -> Optional[QuestionTemplate]:
        """Return the first template whose id equals ``question_id``."""
        for template in self.templates:
            if template.id == question_id:
                return template
        return None

    @property
    def question_ids(self) -> Tuple[str, ...]:
        return tuple(t.id for t in self.templates)


# ---------------------------------------------------------------------------
# Answers
# ---------------------------------------------------------------------------


class AnswerKind(str, Enum):
    NUMERIC = "numeric"
    TEXTUAL = "textual"
    LIST = "list"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class Numeric:
    value: float
    kind = AnswerKind.NUMERIC


@dataclass(frozen=True)
class Text:
    value: str
    kind = AnswerKind.TEXTUAL


@dataclass(frozen=True)
class Choices:
    value: Tuple[str, ...]
    kind = AnswerKind.LIST


@dataclass(frozen=True)
class Unrecognized:
    """Stored answer whose shape matches none of the known variants."""

    value: Any = None
    kind = AnswerKind.UNRECOGNIZED


AnswerValue = Union[Numeric, Text, Choices, Unrecognized]


def answer_value_from_raw(raw: Any) -> AnswerValue:
    """Convert a stored answer into its tagged variant.

    Booleans are not numbers here, and a list only counts as a choice list
    when every element is a string.
    """
    if isinstance(raw, bool):
        return Unrecognized(raw)
    if isinstance(raw, (int, float)):
        return Numeric(raw)
    if isinstance(raw, str):
        return Text(raw)
    if isinstance(raw, (list, tuple)) and all(isinstance(item, str) for item in raw):
        return Choices(tuple(raw))
    return Unrecognized(raw)


def answer_value_to_raw(answer: AnswerValue) -> Any:
    if isinstance(answer, Choices):
        return list(answer.value)
    return answer.value


@dataclass(frozen=True)
class AnswerRecord:
    question_id: Any
    answer_value: AnswerValue
    domain: SELDomain
    respondent_grade_band: GradeBand


# ---------------------------------------------------------------------------
# Derived results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MatchResult:
    """Outcome of resolving one question id.

    ``template`` and ``source_set_id`` are present exactly when ``resolved``.
    For heuristic matches ``template`` is an annotated copy of the matched
    template, never the registered instance.
    """

    question_id: Any
    tier: MatchTier
    template: Optional[QuestionTemplate] = None
    source_set_id: Optional[str] = None
    source_set_title: Optional[str] = None
    matched_template_id: Optional[str] = None

    def __post_init__(self):
        if self.tier is MatchTier.UNRESOLVED:
            if self.template is not None or self.source_set_id is not None:
                raise ValueError("An unresolved match cannot carry a template or source set")
        elif self.template is None or self.source_set_id is None:
            raise ValueError(f"A {self.tier.value} match needs a template and source set")

    @property
    def resolved(self) -> bool:
        return self.tier is not MatchTier.UNRESOLVED

    @property
    def confidence(self) -> int:
        return self.tier.confidence

    @property
    def display_text(self) -> str:
        if self.template is not None:
            return self.template.text
        return f"Question ID: {self.question_id} (question text not found)"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question_id": self.question_id,
            "resolved": self.resolved,
            "tier": self.tier.value,
            "confidence": self.confidence,
            "source_set_id": self.source_set_id,
            "source_set_title": self.source_set_title,
            "matched_template_id": self.matched_template_id,
            "template": self.template.to_dict() if self.template else None,
        }


@dataclass(frozen=True)
class QualityReport:
    total_answers: int
    counts_by_tier: Dict[MatchTier, int]
    match_rate: float
    domain_distribution: Dict[SELDomain, int]
    answer_type_distribution: Dict[AnswerKind, int]
    quality_level: QualityLevel
    unique_question_count: int = 0
    unmatched_answer_count: int = 0
    average_confidence: float = 100.0
    confidence_level: ConfidenceLevel = ConfidenceLevel.HIGH
    question_matches: Tuple[MatchResult, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_answers": self.total_answers,
            "unique_question_count": self.unique_question_count,
            "counts_by_tier": {tier.value: count for tier, count in self.counts_by_tier.items()},
            "match_rate": self.match_rate,
            "quality_level": self.quality_level.value,
            "average_confidence": self.average_confidence,
            "confidence_level": self.confidence_level.value,
            "unmatched_answer_count": self.unmatched_answer_count,
            "domain_distribution": {d.value: count for d, count in self.domain_distribution.items()},
            "answer_type_distribution": {k.value: count for k, count in self.answer_type_distribution.items()},
            "question_matches": [m.to_dict() for m in self.question_matches],
        }


@dataclass(frozen=True)
class SurveyIdentityLink:
    answer_batch_id: str
    inferred_survey_id: str
    method: InferenceMethod
    overlap_ratio: Optional[float] = None

    def __post_init__(self):
        if (self.method is InferenceMethod.OVERLAP_MATCH) != (self.overlap_ratio is not None):
            raise ValueError("overlap_ratio is recorded only for overlap matches")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "answer_batch_id": self.answer_batch_id,
            "inferred_survey_id": self.inferred_survey_id,
            "method": self.method.value,
            "overlap_ratio": self.overlap_ratio,
        }
