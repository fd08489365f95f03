"""Database initialization and connection management."""
import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = str(Path.home() / ".pharm_study" / "study.db")

# Seconds a connection waits on another writer before raising "database is locked".
BUSY_TIMEOUT = 5.0

SCHEMA = """
CREATE TABLE IF NOT EXISTS study_modules (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    display_name TEXT,
    description TEXT,
    organ_system TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'created',
    created_at TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS content_stats (
    module_id TEXT PRIMARY KEY REFERENCES study_modules(id) ON DELETE CASCADE,
    total_power_points INTEGER DEFAULT 0,
    total_slides INTEGER DEFAULT 0,
    extracted_topics INTEGER DEFAULT 0,
    identified_drugs INTEGER DEFAULT 0,
    clinical_pearls INTEGER DEFAULT 0,
    knowledge_gaps INTEGER DEFAULT 0,
    coverage_score INTEGER DEFAULT 0
);

CREATE TABLE IF NOT EXISTS study_progress (
    module_id TEXT PRIMARY KEY REFERENCES study_modules(id) ON DELETE CASCADE,
    completed_topics TEXT DEFAULT '[]',  -- JSON
    total_topics INTEGER DEFAULT 0,
    study_time_minutes INTEGER DEFAULT 0,
    last_study_date TEXT,
    mastered_concepts TEXT DEFAULT '[]',  -- JSON
    needs_review TEXT DEFAULT '[]',  -- JSON
    match_streaks TEXT DEFAULT '{}'  -- JSON
);

CREATE TABLE IF NOT EXISTS analysis_runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    module_id TEXT NOT NULL REFERENCES study_modules(id) ON DELETE CASCADE,
    finished_at TEXT,
    source_refs TEXT DEFAULT '[]',  -- JSON
    coverage_score INTEGER,
    gaps TEXT DEFAULT '[]',  -- JSON
    missing_drugs TEXT DEFAULT '[]',  -- JSON
    recommendations TEXT DEFAULT '[]'  -- JSON
);

CREATE TABLE IF NOT EXISTS user_settings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    key TEXT NOT NULL UNIQUE,
    value TEXT
);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled."""
    conn = sqlite3.connect(db_path, timeout=BUSY_TIMEOUT)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()
