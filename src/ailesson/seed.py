"""Seed the database with the achievement catalog."""
import json
from pathlib import Path

from ailesson.db import get_connection

CONTENT_DIR = Path(__file__).parent / "content"


def is_seeded(db_path: str) -> bool:
    """Check whether the achievement catalog has already been loaded."""
    conn = get_connection(db_path)
    count = conn.execute("SELECT COUNT(*) FROM achievements").fetchone()[0]
    conn.close()
    return count > 0


def seed_achievements(db_path: str) -> None:
    """Insert catalog rows from achievements.json; existing names are left alone."""
    data = json.loads((CONTENT_DIR / "achievements.json").read_text(encoding="utf-8"))
    conn = get_connection(db_path)
    for a in data["achievements"]:
        conn.execute(
            "INSERT OR IGNORE INTO achievements (name, description, condition, icon) VALUES (?, ?, ?, ?)",
            (a["name"], a["description"], a["condition"], a["icon"]),
        )
    conn.commit()
    conn.close()


def seed_all(db_path: str) -> None:
    """Run all seed functions in order. Safe to repeat; new catalog entries are picked up."""
    seed_achievements(db_path)
