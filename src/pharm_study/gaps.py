"""Coverage scoring and knowledge gap ranking."""
from pharm_study.knowledge import CATEGORY_LABELS, TopicCatalog
from pharm_study.models import (
    GAP_LOW_CONFIDENCE, GAP_NOT_FOUND, ContentStats, GapAnalysis, GapDescriptor,
    MatchResult, ModuleTemplate,
)

# Exam relevance, highest first.
CATEGORY_PRIORITY = (
    "therapeutics",
    "drug_interactions",
    "adverse_effects",
    "pharmacodynamics",
    "pharmacokinetics",
    "clinical_assessment",
    "patient_counseling",
    "pathophysiology",
    "physiology",
    "anatomy",
)

MAX_TOPIC_RECOMMENDATIONS = 5
MAX_DRUG_RECOMMENDATIONS = 5


def coverage_score(matched: set, required) -> int:
    """Percentage of required topics matched, rounded half up. 100 when nothing is required."""
    required = set(required)
    if not required:
        return 100
    covered = len(matched & required)
    score = (200 * covered + len(required)) // (2 * len(required))
    return max(0, min(100, score))


def gap_sort_key(gap: GapDescriptor) -> tuple:
    return (CATEGORY_PRIORITY.index(gap.category), gap.label.lower(), gap.topic_id)


def find_gaps(match: MatchResult, required, catalog: TopicCatalog) -> list[GapDescriptor]:
    gaps = []
    for topic_id in set(required):
        signal = match.signals.get(topic_id)
        if signal is not None and signal.matched:
            continue
        topic = catalog.get(topic_id)
        confidence = signal.confidence if signal is not None else 0.0
        gaps.append(GapDescriptor(
            topic_id=topic_id,
            label=topic.label,
            category=topic.category,
            reason=GAP_LOW_CONFIDENCE if confidence > 0 else GAP_NOT_FOUND,
            confidence=confidence,
        ))
    return sorted(gaps, key=gap_sort_key)


def find_missing_drugs(match: MatchResult, common_drugs) -> list[str]:
    mentioned = {name.lower() for name, count in match.drug_mentions.items() if count}
    return [drug for drug in common_drugs if drug.lower() not in mentioned]


def build_recommendations(gaps: list[GapDescriptor], missing_drugs: list[str]) -> list[str]:
    recommendations = []
    for gap in gaps[:MAX_TOPIC_RECOMMENDATIONS]:
        category = CATEGORY_LABELS[gap.category]
        if gap.reason == GAP_LOW_CONFIDENCE:
            recommendations.append(f"Expand coverage of {gap.label} ({category}); it is only touched on")
        else:
            recommendations.append(f"Add coverage of {gap.label} ({category})")
    for drug in missing_drugs[:MAX_DRUG_RECOMMENDATIONS]:
        recommendations.append(f"Add {drug}: metabolism, dosing and clinical considerations")
    if len(missing_drugs) > MAX_DRUG_RECOMMENDATIONS:
        recommendations.append("Create a drug interaction matrix for the uncovered medications")
    return recommendations


def analyze_gaps(
    match: MatchResult,
    template: ModuleTemplate,
    catalog: TopicCatalog,
    total_power_points: int = 0,
) -> GapAnalysis:
    """Compute content stats and the ranked gap list for one analysis run."""
    required = set(template.required_topics)
    matched = match.matched_ids
    gaps = find_gaps(match, required, catalog)
    missing_drugs = find_missing_drugs(match, template.common_drugs)
    stats = ContentStats(
        total_power_points=total_power_points,
        total_slides=match.total_slides,
        extracted_topics=len(matched),
        identified_drugs=sum(1 for count in match.drug_mentions.values() if count),
        clinical_pearls=len(match.clinical_pearls),
        knowledge_gaps=len(gaps),
        coverage_score=coverage_score(matched, required),
    )
    return GapAnalysis(
        stats=stats,
        gaps=gaps,
        matched_required=matched & required,
        missing_drugs=missing_drugs,
        recommendations=build_recommendations(gaps, missing_drugs),
    )
