"""Leaderboard ranking and the daily reset."""
import logging
import sqlite3
from datetime import datetime

from ailesson.db import get_connection, transaction
from ailesson.ledger import credit
from ailesson.models import LEADERBOARD_REWARD, STUDENT, LeaderInfo, ResetResult

logger = logging.getLogger(__name__)

LEADER_REWARD_COINS = 25


def _accuracy(correct: int, total: int) -> float:
    if not total:
        return 0.0
    return round((correct / total) * 100, 1)


def get_leaderboard(db_path: str, limit: int | None = None) -> list[dict]:
    """Student entries ranked by score, highest first; ties go to the lower user id."""
    conn = get_connection(db_path)
    sql = """SELECT le.*, u.name, u.email
        FROM leaderboard_entries le
        JOIN users u ON le.user_id = u.id
        WHERE u.role = ?
        ORDER BY le.score DESC, le.user_id ASC"""
    params: tuple = (STUDENT,)
    if limit is not None:
        sql += " LIMIT ?"
        params = (STUDENT, limit)
    rows = conn.execute(sql, params).fetchall()
    conn.close()
    return [
        {
            "rank": i,
            "user_id": r["user_id"],
            "name": r["name"],
            "score": r["score"],
            "quiz_count": r["quiz_count"],
            "correct_answers": r["correct_answers"],
            "total_answers": r["total_answers"],
            "accuracy": _accuracy(r["correct_answers"], r["total_answers"]),
            "last_reset_at": r["last_reset_at"],
        }
        for i, r in enumerate(rows, 1)
    ]


def reset_daily_leaderboard(db_path: str) -> ResetResult:
    """Reward the top student, then zero every student's ranking statistics.

    The winner is picked and paid against pre-reset scores, and the whole
    sequence commits as one transaction. Not safe to run concurrently with
    itself.
    """
    try:
        with transaction(db_path) as conn:
            top = conn.execute(
                """SELECT le.user_id, le.score, u.name
                FROM leaderboard_entries le
                JOIN users u ON le.user_id = u.id
                WHERE u.role = ?
                ORDER BY le.score DESC, le.user_id ASC
                LIMIT 1""",
                (STUDENT,),
            ).fetchone()

            leader = None
            if top is not None:
                credit(conn, top["user_id"], LEADER_REWARD_COINS, LEADERBOARD_REWARD, "Daily leaderboard winner")
                leader = LeaderInfo(
                    user_id=top["user_id"],
                    name=top["name"],
                    score=top["score"],
                    coins_awarded=LEADER_REWARD_COINS,
                )

            cur = conn.execute(
                """UPDATE leaderboard_entries
                SET score = 0, quiz_count = 0, correct_answers = 0, total_answers = 0, last_reset_at = ?
                WHERE user_id IN (SELECT id FROM users WHERE role = ?)""",
                (datetime.now().isoformat(), STUDENT),
            )
            reset_count = cur.rowcount
    except sqlite3.Error as e:
        logger.exception("leaderboard reset failed")
        return ResetResult(success=False, error=str(e))

    if leader:
        logger.info("leaderboard reset: user %s won with %s points", leader.user_id, leader.score)
    logger.info("leaderboard reset: %s student entries cleared", reset_count)
    return ResetResult(success=True, leader=leader, students_reset=reset_count)
