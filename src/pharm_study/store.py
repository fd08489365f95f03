"""SQLite persistence for study modules and analysis runs."""
import json
import logging
import sqlite3
import uuid
from dataclasses import asdict
from datetime import datetime

from pharm_study.db import get_connection
from pharm_study.errors import (
    AnalysisInProgress, InvalidStatusTransition, ModuleNotFound, PersistenceFailed,
)
from pharm_study.models import (
    CREATED, ORGAN_SYSTEMS, PROCESSING, READY, ContentStats, StudyModule, StudyProgress,
    can_transition,
)

logger = logging.getLogger(__name__)


def _connect(db_path: str) -> sqlite3.Connection:
    try:
        return get_connection(db_path)
    except sqlite3.Error as exc:
        raise PersistenceFailed(f"Could not open {db_path}: {exc}") from exc


def _write_stats(conn: sqlite3.Connection, module_id: str, stats: ContentStats) -> None:
    conn.execute(
        """INSERT OR REPLACE INTO content_stats
        (module_id, total_power_points, total_slides, extracted_topics, identified_drugs,
         clinical_pearls, knowledge_gaps, coverage_score)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (module_id, stats.total_power_points, stats.total_slides, stats.extracted_topics,
         stats.identified_drugs, stats.clinical_pearls, stats.knowledge_gaps, stats.coverage_score),
    )


def _write_progress(conn: sqlite3.Connection, module_id: str, progress: StudyProgress) -> None:
    conn.execute(
        """INSERT OR REPLACE INTO study_progress
        (module_id, completed_topics, total_topics, study_time_minutes, last_study_date,
         mastered_concepts, needs_review, match_streaks)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (module_id, json.dumps(sorted(progress.completed_topics)), progress.total_topics,
         progress.study_time_minutes, progress.last_study_date,
         json.dumps(sorted(progress.mastered_concepts)), json.dumps(sorted(progress.needs_review)),
         json.dumps(progress.match_streaks, sort_keys=True)),
    )


def _build_module(row, stats_row, progress_row) -> StudyModule:
    stats = ContentStats()
    if stats_row:
        stats = ContentStats(
            total_power_points=stats_row["total_power_points"],
            total_slides=stats_row["total_slides"],
            extracted_topics=stats_row["extracted_topics"],
            identified_drugs=stats_row["identified_drugs"],
            clinical_pearls=stats_row["clinical_pearls"],
            knowledge_gaps=stats_row["knowledge_gaps"],
            coverage_score=stats_row["coverage_score"],
        )
    progress = StudyProgress()
    if progress_row:
        progress = StudyProgress(
            completed_topics=set(json.loads(progress_row["completed_topics"])),
            total_topics=progress_row["total_topics"],
            study_time_minutes=progress_row["study_time_minutes"],
            last_study_date=progress_row["last_study_date"],
            mastered_concepts=set(json.loads(progress_row["mastered_concepts"])),
            needs_review=set(json.loads(progress_row["needs_review"])),
            match_streaks=json.loads(progress_row["match_streaks"]),
        )
    return StudyModule(
        id=row["id"],
        name=row["name"],
        organ_system=row["organ_system"],
        display_name=row["display_name"] or "",
        description=row["description"] or "",
        status=row["status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        content_stats=stats,
        study_progress=progress,
    )


def create_module(
    db_path: str,
    name: str,
    organ_system: str,
    display_name: str = "",
    description: str = "",
    module_id: str | None = None,
) -> StudyModule:
    """Create a new study module in the 'created' state."""
    if organ_system not in ORGAN_SYSTEMS:
        raise ValueError(f"Unknown organ system: {organ_system}")
    now = datetime.now().isoformat()
    module = StudyModule(
        id=module_id or uuid.uuid4().hex,
        name=name,
        organ_system=organ_system,
        display_name=display_name or name,
        description=description,
        created_at=now,
        updated_at=now,
    )
    conn = _connect(db_path)
    try:
        with conn:
            conn.execute(
                """INSERT INTO study_modules
                (id, name, display_name, description, organ_system, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (module.id, module.name, module.display_name, module.description,
                 module.organ_system, module.status, now, now),
            )
            _write_stats(conn, module.id, module.content_stats)
            _write_progress(conn, module.id, module.study_progress)
    except sqlite3.Error as exc:
        raise PersistenceFailed(f"Could not create module {name!r}: {exc}") from exc
    finally:
        conn.close()
    return module


def load_module(db_path: str, module_id: str) -> StudyModule:
    conn = _connect(db_path)
    try:
        row = conn.execute("SELECT * FROM study_modules WHERE id = ?", (module_id,)).fetchone()
        if row is None:
            raise ModuleNotFound(f"No study module with id {module_id}")
        stats = conn.execute("SELECT * FROM content_stats WHERE module_id = ?", (module_id,)).fetchone()
        progress = conn.execute("SELECT * FROM study_progress WHERE module_id = ?", (module_id,)).fetchone()
    except sqlite3.Error as exc:
        raise PersistenceFailed(f"Could not load module {module_id}: {exc}") from exc
    finally:
        conn.close()
    return _build_module(row, stats, progress)


def list_modules(db_path: str) -> list[StudyModule]:
    conn = _connect(db_path)
    try:
        ids = [r["id"] for r in conn.execute("SELECT id FROM study_modules ORDER BY created_at, id").fetchall()]
    except sqlite3.Error as exc:
        raise PersistenceFailed(f"Could not list modules: {exc}") from exc
    finally:
        conn.close()
    return [load_module(db_path, module_id) for module_id in ids]


def save_module(db_path: str, module: StudyModule, run: dict | None = None) -> None:
    """Write the module, its stats and progress, and an optional run record in one transaction.

    Either everything is committed or nothing is: a failure rolls back and
    raises PersistenceFailed, so a stored 'ready' status never sits next to
    stale stats.
    """
    updated_at = datetime.now().isoformat()
    conn = _connect(db_path)
    try:
        with conn:
            cursor = conn.execute(
                """UPDATE study_modules SET name=?, display_name=?, description=?, status=?, updated_at=?
                WHERE id=?""",
                (module.name, module.display_name, module.description, module.status, updated_at, module.id),
            )
            if cursor.rowcount == 0:
                raise ModuleNotFound(f"No study module with id {module.id}")
            _write_stats(conn, module.id, module.content_stats)
            _write_progress(conn, module.id, module.study_progress)
            if run is not None:
                conn.execute(
                    """INSERT INTO analysis_runs
                    (module_id, finished_at, source_refs, coverage_score, gaps, missing_drugs, recommendations)
                    VALUES (?, ?, ?, ?, ?, ?, ?)""",
                    (module.id, updated_at, json.dumps(run.get("source_refs", [])),
                     module.content_stats.coverage_score,
                     json.dumps([asdict(gap) for gap in run.get("gaps", [])]),
                     json.dumps(run.get("missing_drugs", [])),
                     json.dumps(run.get("recommendations", []))),
                )
    except sqlite3.Error as exc:
        logger.error("Saving module %s failed: %s", module.id, exc)
        raise PersistenceFailed(f"Could not save module {module.id}: {exc}") from exc
    finally:
        conn.close()
    module.updated_at = updated_at


def begin_analysis(db_path: str, module_id: str) -> None:
    """Atomically move a module from created/ready to processing.

    The conditional UPDATE is the only guard against two runs on the same
    module: whichever request flips the status first owns the run.
    """
    conn = _connect(db_path)
    try:
        with conn:
            cursor = conn.execute(
                "UPDATE study_modules SET status=?, updated_at=? WHERE id=? AND status IN (?, ?)",
                (PROCESSING, datetime.now().isoformat(), module_id, CREATED, READY),
            )
            if cursor.rowcount == 1:
                return
            row = conn.execute("SELECT status FROM study_modules WHERE id = ?", (module_id,)).fetchone()
    except sqlite3.Error as exc:
        raise PersistenceFailed(f"Could not start analysis of module {module_id}: {exc}") from exc
    finally:
        conn.close()
    if row is None:
        raise ModuleNotFound(f"No study module with id {module_id}")
    if row["status"] == PROCESSING:
        raise AnalysisInProgress(f"Module {module_id} is already being analyzed")
    raise InvalidStatusTransition(f"Cannot analyze module {module_id} while it is {row['status']}")


def set_status(db_path: str, module_id: str, status: str) -> None:
    """Overwrite a module's status without lifecycle checks (used to revert failed runs)."""
    conn = _connect(db_path)
    try:
        with conn:
            conn.execute(
                "UPDATE study_modules SET status=?, updated_at=? WHERE id=?",
                (status, datetime.now().isoformat(), module_id),
            )
    except sqlite3.Error as exc:
        raise PersistenceFailed(f"Could not set status of module {module_id}: {exc}") from exc
    finally:
        conn.close()


def transition_status(db_path: str, module_id: str, new_status: str) -> StudyModule:
    """Move a module along its lifecycle, e.g. ready -> studying -> completed."""
    module = load_module(db_path, module_id)
    if not can_transition(module.status, new_status):
        raise InvalidStatusTransition(f"Module {module_id} cannot go from {module.status} to {new_status}")
    conn = _connect(db_path)
    try:
        with conn:
            cursor = conn.execute(
                "UPDATE study_modules SET status=?, updated_at=? WHERE id=? AND status=?",
                (new_status, datetime.now().isoformat(), module_id, module.status),
            )
    except sqlite3.Error as exc:
        raise PersistenceFailed(f"Could not set status of module {module_id}: {exc}") from exc
    finally:
        conn.close()
    if cursor.rowcount == 0:
        raise InvalidStatusTransition(f"Module {module_id} changed status concurrently")
    return load_module(db_path, module_id)


def _run_from_row(row) -> dict:
    return {
        "id": row["id"],
        "module_id": row["module_id"],
        "finished_at": row["finished_at"],
        "source_refs": json.loads(row["source_refs"]),
        "coverage_score": row["coverage_score"],
        "gaps": json.loads(row["gaps"]),
        "missing_drugs": json.loads(row["missing_drugs"]),
        "recommendations": json.loads(row["recommendations"]),
    }


def _query_runs(db_path: str, sql: str, params: tuple) -> list:
    conn = _connect(db_path)
    try:
        return conn.execute(sql, params).fetchall()
    except sqlite3.Error as exc:
        raise PersistenceFailed(f"Could not read analysis runs: {exc}") from exc
    finally:
        conn.close()


def list_runs(db_path: str, module_id: str) -> list[dict]:
    rows = _query_runs(db_path, "SELECT * FROM analysis_runs WHERE module_id = ? ORDER BY id", (module_id,))
    return [_run_from_row(r) for r in rows]


def get_latest_run(db_path: str, module_id: str) -> dict | None:
    rows = _query_runs(
        db_path, "SELECT * FROM analysis_runs WHERE module_id = ? ORDER BY id DESC LIMIT 1", (module_id,)
    )
    return _run_from_row(rows[0]) if rows else None
