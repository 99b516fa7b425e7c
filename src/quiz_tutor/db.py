"""Database initialization and connection management."""
import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = str(Path.home() / ".quiz_tutor" / "tutor.db")

SCHEMA = """
CREATE TABLE IF NOT EXISTS session_outcomes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT NOT NULL UNIQUE,
    mode TEXT NOT NULL,
    set_id TEXT,
    score INTEGER NOT NULL,
    correct INTEGER NOT NULL,
    attempted INTEGER NOT NULL,
    total INTEGER NOT NULL,
    duration INTEGER NOT NULL,
    incorrect_ids TEXT NOT NULL DEFAULT '[]',
    metrics TEXT NOT NULL DEFAULT '{}',
    reason TEXT,
    finished_at TEXT
);

CREATE TABLE IF NOT EXISTS session_results (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    outcome_id INTEGER NOT NULL REFERENCES session_outcomes(id),
    position INTEGER NOT NULL,
    question_id TEXT NOT NULL,
    answered INTEGER NOT NULL,
    selected_index INTEGER,
    is_correct INTEGER NOT NULL,
    time_spent INTEGER DEFAULT 0,
    category TEXT
);

CREATE TABLE IF NOT EXISTS review_items (
    question_id TEXT PRIMARY KEY,
    last_reviewed TEXT NOT NULL,
    next_review TEXT NOT NULL,
    repetition INTEGER NOT NULL DEFAULT 0,
    ease_factor REAL NOT NULL DEFAULT 2.5,
    last_interval REAL NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_review_items_next ON review_items(next_review);

CREATE TABLE IF NOT EXISTS user_settings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    key TEXT NOT NULL UNIQUE,
    value TEXT
);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled."""
    conn = sqlite3.connect(db_path)
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
