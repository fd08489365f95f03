"""User settings and analysis configuration."""
import sqlite3
from dataclasses import dataclass

from pharm_study.db import get_connection
from pharm_study.errors import InvalidSettings, PersistenceFailed

DEFAULT_MATCH_THRESHOLD = 0.75
DEFAULT_MASTERY_RUNS = 2
DEFAULT_MATCH_WORKERS = 1


@dataclass
class AnalysisSettings:
    match_threshold: float = DEFAULT_MATCH_THRESHOLD
    mastery_runs: int = DEFAULT_MASTERY_RUNS
    match_workers: int = DEFAULT_MATCH_WORKERS


def get_setting(db_path: str, key: str, default: str = None) -> str | None:
    try:
        conn = get_connection(db_path)
        try:
            row = conn.execute("SELECT value FROM user_settings WHERE key = ?", (key,)).fetchone()
        finally:
            conn.close()
    except sqlite3.Error as exc:
        raise PersistenceFailed(f"Could not read setting {key!r}: {exc}") from exc
    return row["value"] if row else default


def set_setting(db_path: str, key: str, value: str) -> None:
    try:
        conn = get_connection(db_path)
        try:
            conn.execute(
                "INSERT INTO user_settings (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value=?",
                (key, value, value),
            )
            conn.commit()
        finally:
            conn.close()
    except sqlite3.Error as exc:
        raise PersistenceFailed(f"Could not write setting {key!r}: {exc}") from exc


def load_analysis_settings(db_path: str) -> AnalysisSettings:
    """Read analysis tuning from user_settings, falling back to defaults.

    Raises:
        InvalidSettings: a stored value is not a number or is out of range.
    """
    try:
        threshold = float(get_setting(db_path, "match_threshold", str(DEFAULT_MATCH_THRESHOLD)))
        mastery_runs = int(get_setting(db_path, "mastery_runs", str(DEFAULT_MASTERY_RUNS)))
        workers = int(get_setting(db_path, "match_workers", str(DEFAULT_MATCH_WORKERS)))
    except ValueError as exc:
        raise InvalidSettings(f"Analysis settings must be numeric: {exc}") from exc
    if not 0 < threshold <= 1:
        raise InvalidSettings(f"match_threshold must be in (0, 1], got {threshold}")
    if mastery_runs < 1:
        raise InvalidSettings(f"mastery_runs must be at least 1, got {mastery_runs}")
    return AnalysisSettings(
        match_threshold=threshold,
        mastery_runs=mastery_runs,
        match_workers=max(1, workers),
    )
