"""Curriculum loading and the knowledge base topic catalog."""
import json
import logging
import re
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType

from pharm_study.errors import InvalidKnowledgeBase, TemplateNotFound
from pharm_study.models import ORGAN_SYSTEMS, KnowledgeBase, ModuleTemplate, Topic

logger = logging.getLogger(__name__)

CONTENT_DIR = Path(__file__).parent / "content"

# Topic ids are "<prefix>-<slug>", e.g. "pharm-betablockers".
CATEGORY_PREFIXES = {
    "anatomy": "anatomy",
    "physiology": "physio",
    "pathophysiology": "patho",
    "pharmacokinetics": "pk",
    "pharmacodynamics": "pharm",
    "therapeutics": "tx",
    "clinical_assessment": "assess",
    "drug_interactions": "ddi",
    "adverse_effects": "ae",
    "patient_counseling": "counsel",
}

CATEGORY_LABELS = {
    "anatomy": "Anatomy",
    "physiology": "Physiology",
    "pathophysiology": "Pathophysiology",
    "pharmacokinetics": "Pharmacokinetics",
    "pharmacodynamics": "Pharmacodynamics",
    "therapeutics": "Therapeutics",
    "clinical_assessment": "Clinical Assessment",
    "drug_interactions": "Drug Interactions",
    "adverse_effects": "Adverse Effects",
    "patient_counseling": "Patient Counseling",
}

_PARENTHETICAL = re.compile(r"\s*\([^)]*\)")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_text(text: str) -> str:
    """Lowercase, spell out beta, and collapse everything else to single spaces."""
    text = text.lower().replace("β", "beta")
    return " ".join(_NON_ALNUM.sub(" ", text).split())


def strip_qualifier(label: str) -> str:
    """'Hepatitis (A, B, C)' -> 'Hepatitis'."""
    return _PARENTHETICAL.sub("", label).strip()


def slugify(label: str) -> str:
    return normalize_text(strip_qualifier(label)).replace(" ", "")


class TopicCatalog:
    """Read-only index of a knowledge base's topics, in category order."""

    def __init__(self, topics):
        self.topics = tuple(topics)
        self._by_id = {topic.id: topic for topic in self.topics}

    def __len__(self):
        return len(self.topics)

    def __iter__(self):
        return iter(self.topics)

    def __contains__(self, topic_id):
        return topic_id in self._by_id

    def get(self, topic_id: str) -> Topic:
        return self._by_id[topic_id]

    def in_category(self, *categories: str) -> tuple:
        return tuple(topic for topic in self.topics if topic.category in categories)


def _phrases(label: str, synonyms) -> tuple:
    phrases = []
    for candidate in (label, strip_qualifier(label), *synonyms):
        normalized = normalize_text(candidate)
        if normalized and normalized not in phrases:
            phrases.append(normalized)
    return tuple(phrases)


@lru_cache(maxsize=None)
def build_catalog(knowledge_base: KnowledgeBase) -> TopicCatalog:
    """Index every topic label in the knowledge base under a stable id.

    Ids depend only on category and label, so progress sets saved in one
    session still resolve after the catalog is rebuilt in the next. Calls
    with an equal knowledge base return the same catalog object.
    """
    topics = []
    for category, labels in knowledge_base.categories().items():
        if not labels:
            raise InvalidKnowledgeBase(f"Knowledge base has no {category} topics")
        seen = {}
        for label in labels:
            slug = slugify(label)
            if not slug:
                raise InvalidKnowledgeBase(f"Topic label {label!r} in {category} has no usable characters")
            seen[slug] = seen.get(slug, 0) + 1
            topic_id = f"{CATEGORY_PREFIXES[category]}-{slug}"
            if seen[slug] > 1:
                topic_id = f"{topic_id}-{seen[slug]}"
            topics.append(Topic(
                id=topic_id,
                label=label,
                category=category,
                phrases=_phrases(label, knowledge_base.synonyms_for(label)),
            ))
    return TopicCatalog(topics)


def parse_curriculum(data: dict) -> MappingProxyType:
    """Build module templates, keyed by organ system, from curriculum data."""
    templates = {}
    for entry in data.get("organ_systems", []):
        organ_system = entry["organ_system"]
        if organ_system not in ORGAN_SYSTEMS:
            raise InvalidKnowledgeBase(f"Unknown organ system: {organ_system}")
        templates[organ_system] = ModuleTemplate(
            organ_system=organ_system,
            knowledge_base=KnowledgeBase.from_dict(entry.get("knowledge_base", {})),
            required_topics=tuple(entry.get("required_topics", ())),
            common_drugs=tuple(entry.get("common_drugs", ())),
            assessment_types=tuple(entry.get("assessment_types", ())),
        )
    return MappingProxyType(templates)


@lru_cache(maxsize=None)
def load_curriculum(path: str | None = None) -> MappingProxyType:
    """Load curriculum.json once per process; later calls share the result."""
    source = Path(path) if path else CONTENT_DIR / "curriculum.json"
    try:
        data = json.loads(source.read_text())
    except (OSError, json.JSONDecodeError) as exc:
        raise InvalidKnowledgeBase(f"Cannot read curriculum {source}: {exc}") from exc
    templates = parse_curriculum(data)
    logger.debug("Loaded curriculum for %s", ", ".join(templates))
    return templates


def get_template(organ_system: str, curriculum=None) -> ModuleTemplate:
    templates = load_curriculum() if curriculum is None else curriculum
    try:
        return templates[organ_system]
    except KeyError:
        raise TemplateNotFound(f"No module template for organ system '{organ_system}'") from None


def get_knowledge_base(organ_system: str, curriculum=None) -> KnowledgeBase:
    return get_template(organ_system, curriculum).knowledge_base


def catalog_for(template: ModuleTemplate) -> TopicCatalog:
    """Catalog for a template, checking its required topics are indexed."""
    catalog = build_catalog(template.knowledge_base)
    unknown = [topic_id for topic_id in template.required_topics if topic_id not in catalog]
    if unknown:
        raise InvalidKnowledgeBase(
            f"Required topics not in the {template.organ_system} knowledge base: {', '.join(unknown)}"
        )
    return catalog
