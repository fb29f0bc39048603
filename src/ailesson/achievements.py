"""Achievement engine.

Each catalog row names a `Condition`; `CONDITIONS` maps every condition to a
predicate over a `StatsSnapshot`. Unlocking relies on the
UNIQUE(user_id, achievement_id) constraint: `INSERT OR IGNORE` only reports
a row as new when this call actually wrote it, so concurrent checks for the
same user cannot both award the same achievement.
"""
import logging
import sqlite3
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Callable

from ailesson.db import get_connection, transaction
from ailesson.models import Achievement

logger = logging.getLogger(__name__)


class Condition(str, Enum):
    FIRST_QUIZ = "FIRST_QUIZ"
    PERFECT_QUIZ = "PERFECT_QUIZ"
    TEN_QUIZZES = "TEN_QUIZZES"
    FIFTY_QUIZZES = "FIFTY_QUIZZES"
    HUNDRED_QUIZZES = "HUNDRED_QUIZZES"
    DAILY_STREAK_7 = "DAILY_STREAK_7"
    DAILY_STREAK_30 = "DAILY_STREAK_30"


@dataclass(frozen=True)
class StatsSnapshot:
    quiz_count: int = 0
    correct_answers: int = 0
    total_answers: int = 0
    perfect_attempts: int = 0
    streak_days: int = 0


CONDITIONS: dict[Condition, Callable[[StatsSnapshot], bool]] = {
    Condition.FIRST_QUIZ: lambda s: s.quiz_count >= 1,
    Condition.PERFECT_QUIZ: lambda s: s.perfect_attempts >= 1,
    Condition.TEN_QUIZZES: lambda s: s.quiz_count >= 10,
    Condition.FIFTY_QUIZZES: lambda s: s.quiz_count >= 50,
    Condition.HUNDRED_QUIZZES: lambda s: s.quiz_count >= 100,
    Condition.DAILY_STREAK_7: lambda s: s.streak_days >= 7,
    Condition.DAILY_STREAK_30: lambda s: s.streak_days >= 30,
}

# (snapshot field, target) for conditions that have measurable progress
PROGRESS_TARGETS: dict[Condition, tuple[str, int]] = {
    Condition.FIRST_QUIZ: ("quiz_count", 1),
    Condition.PERFECT_QUIZ: ("perfect_attempts", 1),
    Condition.TEN_QUIZZES: ("quiz_count", 10),
    Condition.FIFTY_QUIZZES: ("quiz_count", 50),
    Condition.HUNDRED_QUIZZES: ("quiz_count", 100),
    Condition.DAILY_STREAK_7: ("streak_days", 7),
    Condition.DAILY_STREAK_30: ("streak_days", 30),
}


def streak_length(days: set[date], today: date | None = None) -> int:
    """Count consecutive active days ending today, or yesterday if today is not active yet."""
    today = today or date.today()
    cursor = today if today in days else today - timedelta(days=1)
    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def _completion_days(conn: sqlite3.Connection, user_id: int) -> set[date]:
    rows = conn.execute(
        "SELECT DISTINCT substr(completed_at, 1, 10) AS day FROM quiz_attempts "
        "WHERE user_id = ? AND completed_at IS NOT NULL",
        (user_id,),
    ).fetchall()
    return {date.fromisoformat(r["day"]) for r in rows}


def _snapshot(conn: sqlite3.Connection, user_id: int, entry: sqlite3.Row) -> StatsSnapshot:
    perfect = conn.execute(
        "SELECT COUNT(*) FROM quiz_attempts WHERE user_id = ? AND is_perfect = 1 AND completed_at IS NOT NULL",
        (user_id,),
    ).fetchone()[0]
    return StatsSnapshot(
        quiz_count=entry["quiz_count"],
        correct_answers=entry["correct_answers"],
        total_answers=entry["total_answers"],
        perfect_attempts=perfect,
        streak_days=streak_length(_completion_days(conn, user_id)),
    )


def get_stats_snapshot(db_path: str, user_id: int) -> StatsSnapshot | None:
    conn = get_connection(db_path)
    entry = conn.execute(
        "SELECT * FROM leaderboard_entries WHERE user_id = ?", (user_id,)
    ).fetchone()
    snapshot = _snapshot(conn, user_id, entry) if entry else None
    conn.close()
    return snapshot


def _to_achievement(row: sqlite3.Row) -> Achievement:
    return Achievement(
        id=row["id"],
        name=row["name"],
        condition=row["condition"],
        description=row["description"] or "",
        icon=row["icon"] or "",
    )


def evaluate(condition: str, snapshot: StatsSnapshot) -> bool:
    """Evaluate a stored condition name; unknown names never hold."""
    try:
        predicate = CONDITIONS[Condition(condition)]
    except ValueError:
        logger.debug("unknown achievement condition %r", condition)
        return False
    return predicate(snapshot)


def check_achievements(db_path: str, user_id: int) -> list[Achievement]:
    """Unlock every achievement whose condition now holds. Returns only the new ones."""
    unlocked = []
    with transaction(db_path) as conn:
        entry = conn.execute(
            "SELECT * FROM leaderboard_entries WHERE user_id = ?", (user_id,)
        ).fetchone()
        if entry is None:
            return []
        snapshot = _snapshot(conn, user_id, entry)
        catalog = conn.execute("SELECT * FROM achievements ORDER BY id").fetchall()
        now = datetime.now().isoformat()
        for row in catalog:
            if not evaluate(row["condition"], snapshot):
                continue
            cur = conn.execute(
                "INSERT OR IGNORE INTO user_achievements (user_id, achievement_id, earned_at) VALUES (?, ?, ?)",
                (user_id, row["id"], now),
            )
            if cur.rowcount == 1:
                unlocked.append(_to_achievement(row))
    for a in unlocked:
        logger.info("user %s unlocked achievement %s", user_id, a.name)
    return unlocked


def get_user_achievements(db_path: str, user_id: int) -> list[dict]:
    """Full catalog with earned status, and progress towards locked achievements."""
    conn = get_connection(db_path)
    catalog = conn.execute("SELECT * FROM achievements ORDER BY id").fetchall()
    earned = {
        r["achievement_id"]: r["earned_at"]
        for r in conn.execute(
            "SELECT achievement_id, earned_at FROM user_achievements WHERE user_id = ?", (user_id,)
        ).fetchall()
    }
    entry = conn.execute(
        "SELECT * FROM leaderboard_entries WHERE user_id = ?", (user_id,)
    ).fetchone()
    snapshot = _snapshot(conn, user_id, entry) if entry else StatsSnapshot()
    conn.close()

    results = []
    for row in catalog:
        is_earned = row["id"] in earned
        progress, total = 0, 1
        try:
            target = PROGRESS_TARGETS.get(Condition(row["condition"]))
        except ValueError:
            target = None
        if target:
            field_name, total = target
            progress = total if is_earned else min(getattr(snapshot, field_name), total)
        results.append({
            "id": row["id"],
            "name": row["name"],
            "description": row["description"],
            "icon": row["icon"],
            "condition": row["condition"],
            "is_earned": is_earned,
            "earned_at": earned.get(row["id"]),
            "progress": progress,
            "total": total,
        })
    return results
