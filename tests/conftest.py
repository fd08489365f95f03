import pytest

from pharm_study.db import init_db
from pharm_study.knowledge import parse_curriculum

CARDIO_CURRICULUM = {
    "organ_systems": [
        {
            "organ_system": "cardiovascular",
            "knowledge_base": {
                "anatomy": ["Heart"],
                "physiology": ["Cardiac output"],
                "pathophysiology": ["Hypertension"],
                "pharmacokinetics": ["Renal clearance"],
                "pharmacodynamics": ["Beta blockers"],
                "therapeutics": ["Hypertension management"],
                "clinical_assessment": ["Blood pressure monitoring"],
                "drug_interactions": ["Warfarin interactions"],
                "adverse_effects": ["Bradycardia"],
                "patient_counseling": ["Medication adherence"],
            },
            "required_topics": ["anatomy-heart", "pharm-betablockers"],
            "common_drugs": ["Metoprolol", "Warfarin"],
            "assessment_types": ["multiple_choice"],
        }
    ]
}


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_study.db")
    return db_path


@pytest.fixture
def ready_db(tmp_db):
    init_db(tmp_db)
    return tmp_db


@pytest.fixture
def cardio_curriculum():
    """Cardiovascular template requiring anatomy-heart and pharm-betablockers."""
    return parse_curriculum(CARDIO_CURRICULUM)
