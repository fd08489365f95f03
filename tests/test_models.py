"""Tests for data model classes."""
from pharm_study.models import (
    CATEGORIES, ContentStats, KnowledgeBase, StudyModule, StudyProgress, can_transition,
)


def test_content_stats_defaults():
    stats = ContentStats()
    assert stats.coverage_score == 0
    assert stats.total_slides == 0
    assert stats.knowledge_gaps == 0


def test_study_progress_defaults_are_independent():
    a = StudyProgress()
    b = StudyProgress()
    a.completed_topics.add("anatomy-heart")
    assert b.completed_topics == set()
    assert a.last_study_date is None
    assert a.match_streaks == {}


def test_study_module_defaults():
    m = StudyModule(id="m1", name="Cardio", organ_system="cardiovascular")
    assert m.status == "created"
    assert m.display_name == ""
    assert m.content_stats == ContentStats()
    assert m.study_progress == StudyProgress()


def test_knowledge_base_from_dict():
    kb = KnowledgeBase.from_dict({
        "anatomy": ["Heart"],
        "pharmacodynamics": ["Beta blockers"],
        "synonyms": {"Beta blockers": ["beta adrenergic antagonists"]},
    })
    assert kb.anatomy == ("Heart",)
    assert kb.physiology == ()
    assert kb.synonyms_for("Beta blockers") == ("beta adrenergic antagonists",)
    assert kb.synonyms_for("Heart") == ()
    assert list(kb.categories()) == list(CATEGORIES)


def test_knowledge_base_is_hashable():
    data = {"anatomy": ["Heart"], "synonyms": {"Heart": ["cardiac muscle"]}}
    assert hash(KnowledgeBase.from_dict(data)) == hash(KnowledgeBase.from_dict(data))


def test_status_transitions():
    assert can_transition("created", "processing")
    assert can_transition("processing", "ready")
    assert can_transition("processing", "created")
    assert can_transition("ready", "processing")
    assert can_transition("ready", "studying")
    assert can_transition("studying", "completed")
    assert not can_transition("ready", "created")
    assert not can_transition("completed", "studying")
    assert not can_transition("studying", "processing")
