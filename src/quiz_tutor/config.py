"""Session configuration and the persisted settings it is read from."""
import logging
from dataclasses import dataclass, fields
from typing import Optional

from quiz_tutor.db import get_connection

logger = logging.getLogger(__name__)


@dataclass
class SessionConfig:
    """Everything a controller needs to know, passed in at construction.

    None means "use the mode's default"; 0 switches a timer or limit off.
    """
    question_seconds: Optional[int] = None
    session_seconds: Optional[int] = None
    mistake_limit: int = 0
    incorrect_penalty: Optional[int] = None
    shuffle_questions: bool = True
    shuffle_options: bool = True
    show_animations: bool = True
    update_reviews: bool = True
    seed: Optional[int] = None
    set_id: Optional[str] = None


# Settings keys map 1:1 onto SessionConfig fields, optionally scoped by mode
# ("time_attack.mistake_limit" wins over "mistake_limit").
SETTING_FIELDS = tuple(
    f.name for f in fields(SessionConfig) if f.name not in ("seed", "set_id")
)

_FALSE = ("0", "false", "no", "off")


def get_setting(db_path: str, key: str, default: str = None) -> str | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT value FROM user_settings WHERE key = ?", (key,)).fetchone()
    conn.close()
    return row["value"] if row else default


def set_setting(db_path: str, key: str, value: str) -> None:
    conn = get_connection(db_path)
    conn.execute(
        "INSERT INTO user_settings (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value=?",
        (key, value, value),
    )
    conn.commit()
    conn.close()


def get_all_settings(db_path: str) -> dict:
    conn = get_connection(db_path)
    rows = conn.execute("SELECT key, value FROM user_settings ORDER BY key").fetchall()
    conn.close()
    return {r["key"]: r["value"] for r in rows}


def _coerce(name: str, raw: str):
    if name in ("shuffle_questions", "shuffle_options", "show_animations", "update_reviews"):
        return raw.strip().lower() not in _FALSE
    return int(raw)


def load_session_config(db_path: str, mode: str, **overrides) -> SessionConfig:
    """Build a SessionConfig from stored settings, then apply explicit overrides."""
    stored = get_all_settings(db_path)
    values = {}
    # Mock tests are exam conditions: no celebration animations unless asked for.
    if mode == "mock_test":
        values["show_animations"] = False
    for name in SETTING_FIELDS:
        for key in (name, f"{mode}.{name}"):
            if key in stored and stored[key] is not None:
                try:
                    values[name] = _coerce(name, stored[key])
                except ValueError:
                    logger.warning("ignoring setting %s=%r: not an integer", key, stored[key])
    values.update({k: v for k, v in overrides.items() if v is not None})
    return SessionConfig(**values)
