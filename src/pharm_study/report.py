"""Coverage labels and the Markdown gap analysis report."""
from datetime import datetime
from pathlib import Path

from pharm_study.knowledge import CATEGORY_LABELS
from pharm_study.models import GAP_LOW_CONFIDENCE, StudyModule


def get_coverage_label(score: float) -> str:
    if score >= 80:
        return "WELL COVERED"
    elif score >= 65:
        return "MOSTLY COVERED"
    elif score >= 50:
        return "PARTIAL"
    return "SPARSE"


def get_coverage_color(score: float) -> str:
    if score >= 80:
        return "green"
    elif score >= 65:
        return "yellow"
    elif score >= 50:
        return "dark_orange"
    return "red"


def _gap_line(gap: dict) -> str:
    category = CATEGORY_LABELS.get(gap["category"], gap["category"])
    note = " (mentioned, needs more depth)" if gap["reason"] == GAP_LOW_CONFIDENCE else ""
    return f"- [ ] {category}: {gap['label']}{note}"


def render_gap_report(module: StudyModule, run: dict, generated_at: str | None = None) -> str:
    """Markdown report for a module and one stored analysis run."""
    stats = module.content_stats
    progress = module.study_progress
    generated_at = generated_at or datetime.now().isoformat(timespec="seconds")
    gaps = run.get("gaps", [])
    missing_drugs = run.get("missing_drugs", [])
    recommendations = run.get("recommendations", [])

    lines = [
        f"# {module.display_name or module.name} - Knowledge Gap Analysis Report",
        "",
        f"*Generated: {generated_at}*",
        "",
        "## Coverage Summary",
        "",
        f"**Overall Coverage Score: {stats.coverage_score}% ({get_coverage_label(stats.coverage_score)})**",
        "",
        f"- Decks analyzed: {stats.total_power_points}",
        f"- Slides analyzed: {stats.total_slides}",
        f"- Topics found: {stats.extracted_topics}",
        f"- Drugs identified: {stats.identified_drugs}",
        f"- Clinical pearls: {stats.clinical_pearls}",
        f"- Knowledge gaps: {stats.knowledge_gaps}",
        "",
        "## Missing Essential Topics",
        "",
    ]
    lines.extend(_gap_line(gap) for gap in gaps)
    if not gaps:
        lines.append("All required topics are covered.")
    lines += ["", "## Missing Drug Coverage", ""]
    lines.extend(f"- [ ] **{drug}**" for drug in missing_drugs)
    if not missing_drugs:
        lines.append("Every common drug is mentioned.")
    lines += ["", "## Priority Recommendations", ""]
    lines.extend(f"{i}. {rec}" for i, rec in enumerate(recommendations, 1))
    lines += [
        "",
        "## Study Progress",
        "",
        f"- Completed topics: {len(progress.completed_topics)}/{progress.total_topics}",
        f"- Mastered: {', '.join(sorted(progress.mastered_concepts)) or 'none yet'}",
        f"- Needs review: {', '.join(sorted(progress.needs_review)) or 'none'}",
        f"- Study time: {progress.study_time_minutes} minutes",
        "",
    ]
    return "\n".join(lines)


def write_gap_report(path: str, module: StudyModule, run: dict) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(render_gap_report(module, run))
    return target
