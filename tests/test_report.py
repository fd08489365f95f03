from pharm_study.models import (
    GAP_LOW_CONFIDENCE, GAP_NOT_FOUND, ContentStats, StudyModule, StudyProgress,
)
from pharm_study.report import (
    get_coverage_color, get_coverage_label, render_gap_report, write_gap_report,
)


def make_module():
    return StudyModule(
        id="m1",
        name="Liver Block",
        organ_system="hepatic",
        display_name="Liver & Hepatic System",
        content_stats=ContentStats(
            total_power_points=2, total_slides=40, extracted_topics=18,
            identified_drugs=5, clinical_pearls=7, knowledge_gaps=2, coverage_score=86,
        ),
        study_progress=StudyProgress(
            completed_topics={"patho-cirrhosis", "ae-hepatotoxicity"},
            total_topics=14,
            study_time_minutes=45,
            mastered_concepts={"patho-cirrhosis"},
            needs_review={"ae-hepatotoxicity"},
        ),
    )


RUN = {
    "gaps": [
        {"topic_id": "tx-hepaticimpairmentdosing", "label": "Hepatic impairment dosing",
         "category": "therapeutics", "reason": GAP_NOT_FOUND, "confidence": 0.0},
        {"topic_id": "assess-childpughclassification", "label": "Child-Pugh classification",
         "category": "clinical_assessment", "reason": GAP_LOW_CONFIDENCE, "confidence": 0.5},
    ],
    "missing_drugs": ["Phenytoin", "Rifampin"],
    "recommendations": ["Add coverage of Hepatic impairment dosing (Therapeutics)"],
}


def test_coverage_label():
    assert get_coverage_label(95) == "WELL COVERED"
    assert get_coverage_label(80) == "WELL COVERED"
    assert get_coverage_label(70) == "MOSTLY COVERED"
    assert get_coverage_label(50) == "PARTIAL"
    assert get_coverage_label(10) == "SPARSE"


def test_coverage_color():
    assert get_coverage_color(85) == "green"
    assert get_coverage_color(65) == "yellow"
    assert get_coverage_color(55) == "dark_orange"
    assert get_coverage_color(0) == "red"


def test_render_gap_report():
    report = render_gap_report(make_module(), RUN, generated_at="2026-03-01T09:00:00")
    assert report.startswith("# Liver & Hepatic System - Knowledge Gap Analysis Report")
    assert "*Generated: 2026-03-01T09:00:00*" in report
    assert "**Overall Coverage Score: 86% (WELL COVERED)**" in report
    assert "- [ ] Therapeutics: Hepatic impairment dosing\n" in report
    assert "- [ ] Clinical Assessment: Child-Pugh classification (mentioned, needs more depth)" in report
    assert "- [ ] **Phenytoin**" in report
    assert "1. Add coverage of Hepatic impairment dosing (Therapeutics)" in report
    assert "- Completed topics: 2/14" in report
    assert "- Mastered: patho-cirrhosis" in report
    assert "- Study time: 45 minutes" in report


def test_render_gap_report_without_gaps():
    report = render_gap_report(make_module(), {}, generated_at="2026-03-01T09:00:00")
    assert "All required topics are covered." in report
    assert "Every common drug is mentioned." in report


def test_write_gap_report(tmp_path):
    path = write_gap_report(str(tmp_path / "reports" / "liver.md"), make_module(), RUN)
    assert path.exists()
    assert "## Missing Drug Coverage" in path.read_text()
