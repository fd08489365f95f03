"""Data classes for the study-module domain model."""
from dataclasses import dataclass, field
from typing import Optional

# Knowledge base categories, in the order they are listed in curriculum files.
CATEGORIES = (
    "anatomy",
    "physiology",
    "pathophysiology",
    "pharmacokinetics",
    "pharmacodynamics",
    "therapeutics",
    "clinical_assessment",
    "drug_interactions",
    "adverse_effects",
    "patient_counseling",
)

ORGAN_SYSTEMS = (
    "cardiovascular",
    "respiratory",
    "gastrointestinal",
    "hepatic",
    "renal",
    "neurological",
    "endocrine",
    "musculoskeletal",
    "integumentary",
    "reproductive",
    "immune",
    "other",
)

# Module lifecycle
CREATED = "created"
PROCESSING = "processing"
READY = "ready"
STUDYING = "studying"
COMPLETED = "completed"

STATUS_TRANSITIONS = {
    CREATED: {PROCESSING},
    PROCESSING: {READY, CREATED},
    READY: {PROCESSING, STUDYING},
    STUDYING: {COMPLETED},
    COMPLETED: set(),
}

GAP_NOT_FOUND = "not found in slides"
GAP_LOW_CONFIDENCE = "found but below confidence threshold"


def can_transition(current: str, new: str) -> bool:
    return new in STATUS_TRANSITIONS.get(current, set())


@dataclass(frozen=True)
class KnowledgeBase:
    """Topic labels for one organ system, grouped by category.

    ``synonyms`` holds ``(label, (synonym, ...))`` pairs so the whole value
    stays hashable and can key the catalog cache.
    """
    anatomy: tuple = ()
    physiology: tuple = ()
    pathophysiology: tuple = ()
    pharmacokinetics: tuple = ()
    pharmacodynamics: tuple = ()
    therapeutics: tuple = ()
    clinical_assessment: tuple = ()
    drug_interactions: tuple = ()
    adverse_effects: tuple = ()
    patient_counseling: tuple = ()
    synonyms: tuple = ()

    @classmethod
    def from_dict(cls, data: dict) -> "KnowledgeBase":
        topics = {name: tuple(data.get(name, ())) for name in CATEGORIES}
        synonyms = tuple(
            (label, tuple(values))
            for label, values in sorted(data.get("synonyms", {}).items())
        )
        return cls(synonyms=synonyms, **topics)

    def categories(self) -> dict[str, tuple]:
        return {name: getattr(self, name) for name in CATEGORIES}

    def synonyms_for(self, label: str) -> tuple:
        for key, values in self.synonyms:
            if key == label:
                return values
        return ()


@dataclass(frozen=True)
class ModuleTemplate:
    organ_system: str
    knowledge_base: KnowledgeBase
    required_topics: tuple = ()
    common_drugs: tuple = ()
    assessment_types: tuple = ()


@dataclass(frozen=True)
class Topic:
    id: str
    label: str
    category: str
    phrases: tuple = ()  # normalized label variants and synonyms


@dataclass
class ContentStats:
    total_power_points: int = 0
    total_slides: int = 0
    extracted_topics: int = 0
    identified_drugs: int = 0
    clinical_pearls: int = 0
    knowledge_gaps: int = 0
    coverage_score: int = 0


@dataclass
class StudyProgress:
    completed_topics: set = field(default_factory=set)
    total_topics: int = 0
    study_time_minutes: int = 0
    last_study_date: Optional[str] = None
    mastered_concepts: set = field(default_factory=set)
    needs_review: set = field(default_factory=set)
    match_streaks: dict = field(default_factory=dict)


@dataclass
class StudyModule:
    id: str
    name: str
    organ_system: str
    display_name: str = ""
    description: str = ""
    status: str = CREATED
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    content_stats: ContentStats = field(default_factory=ContentStats)
    study_progress: StudyProgress = field(default_factory=StudyProgress)


@dataclass
class SlideDeck:
    source: str
    slides: list = field(default_factory=list)


@dataclass(frozen=True)
class TopicSignal:
    topic_id: str
    confidence: float = 0.0
    matched: bool = False
    slides: tuple = ()  # indexes of slides that evidence the topic
    mentions: int = 0


@dataclass
class MatchResult:
    signals: dict = field(default_factory=dict)
    drug_mentions: dict = field(default_factory=dict)
    clinical_pearls: list = field(default_factory=list)
    total_slides: int = 0
    threshold: float = 0.75

    @property
    def matched_ids(self) -> set:
        return {topic_id for topic_id, signal in self.signals.items() if signal.matched}


@dataclass(frozen=True)
class GapDescriptor:
    topic_id: str
    label: str
    category: str
    reason: str
    confidence: float = 0.0


@dataclass
class GapAnalysis:
    stats: ContentStats
    gaps: list = field(default_factory=list)
    matched_required: set = field(default_factory=set)
    missing_drugs: list = field(default_factory=list)
    recommendations: list = field(default_factory=list)


@dataclass
class AnalysisOutcome:
    ok: bool
    module: Optional[StudyModule] = None
    gaps: list = field(default_factory=list)
    missing_drugs: list = field(default_factory=list)
    recommendations: list = field(default_factory=list)
    error: Optional[Exception] = None
