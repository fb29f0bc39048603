"""Reward ledger: wisdom coins, leaderboard deltas and the transaction log.

Every balance change goes through `credit` (or `debit`) so that the user's
balance and its token_transactions row are written on the same connection.
The connection-level helpers join the caller's transaction; the `apply_*`,
`grant_*` and `spend_*` functions each run in their own `transaction()`.
"""
import logging
import sqlite3
from datetime import datetime

from ailesson.db import get_connection, transaction
from ailesson.errors import InsufficientCoinsError, NotFoundError
from ailesson.models import (
    ANSWER_REWARD, DAILY_REWARD, AnswerReward,
)

logger = logging.getLogger(__name__)

CORRECT_POINTS = 10
INCORRECT_POINTS = -1
CORRECT_COINS = 2
PERFECT_QUIZ_BONUS = 50
DAILY_REWARD_COINS = 20


def credit(conn: sqlite3.Connection, user_id: int, amount: int, tx_type: str, description: str) -> int:
    """Apply a signed balance delta and append its transaction row. Returns the new balance."""
    cur = conn.execute(
        "UPDATE users SET wisdom_coins = wisdom_coins + ? WHERE id = ?", (amount, user_id)
    )
    if cur.rowcount == 0:
        raise NotFoundError(f"User {user_id} not found")
    conn.execute(
        "INSERT INTO token_transactions (user_id, amount, type, description, created_at) VALUES (?, ?, ?, ?, ?)",
        (user_id, amount, tx_type, description, datetime.now().isoformat()),
    )
    return conn.execute("SELECT wisdom_coins FROM users WHERE id = ?", (user_id,)).fetchone()[0]


def _bump_leaderboard(
    conn: sqlite3.Connection,
    user_id: int,
    score: int = 0,
    quiz_count: int = 0,
    correct_answers: int = 0,
    total_answers: int = 0,
) -> None:
    """Add deltas to the user's leaderboard entry, creating it from zero if missing."""
    conn.execute(
        """INSERT INTO leaderboard_entries (user_id, score, quiz_count, correct_answers, total_answers)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(user_id) DO UPDATE SET
            score = score + excluded.score,
            quiz_count = quiz_count + excluded.quiz_count,
            correct_answers = correct_answers + excluded.correct_answers,
            total_answers = total_answers + excluded.total_answers""",
        (user_id, score, quiz_count, correct_answers, total_answers),
    )


def _require_user(conn: sqlite3.Connection, user_id: int) -> None:
    if conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,)).fetchone() is None:
        raise NotFoundError(f"User {user_id} not found")


def record_answer_reward(conn: sqlite3.Connection, user_id: int, is_correct: bool) -> AnswerReward:
    _require_user(conn, user_id)
    if is_correct:
        _bump_leaderboard(conn, user_id, score=CORRECT_POINTS, correct_answers=1, total_answers=1)
        credit(conn, user_id, CORRECT_COINS, ANSWER_REWARD, "Correct quiz answer")
        return AnswerReward(points_delta=CORRECT_POINTS, coins_delta=CORRECT_COINS)
    _bump_leaderboard(conn, user_id, score=INCORRECT_POINTS, total_answers=1)
    return AnswerReward(points_delta=INCORRECT_POINTS, coins_delta=0)


def record_quiz_completion(conn: sqlite3.Connection, user_id: int, is_perfect: bool) -> int:
    _require_user(conn, user_id)
    bonus = PERFECT_QUIZ_BONUS if is_perfect else 0
    _bump_leaderboard(conn, user_id, score=bonus, quiz_count=1)
    return bonus


def apply_answer_reward(db_path: str, user_id: int, is_correct: bool) -> AnswerReward:
    """Apply the leaderboard and coin effects of one judged answer."""
    with transaction(db_path) as conn:
        reward = record_answer_reward(conn, user_id, is_correct)
    logger.debug("user %s answer reward: %s", user_id, reward)
    return reward


def apply_quiz_completion(db_path: str, user_id: int, is_perfect: bool) -> int:
    """Count a completed quiz; perfect quizzes also earn the bonus. Returns the bonus."""
    with transaction(db_path) as conn:
        return record_quiz_completion(conn, user_id, is_perfect)


def apply_perfect_quiz_bonus(db_path: str, user_id: int) -> int:
    return apply_quiz_completion(db_path, user_id, is_perfect=True)


def grant_coins(db_path: str, user_id: int, amount: int, tx_type: str, description: str) -> int:
    """Credit a positive amount. Returns the new balance."""
    if amount <= 0:
        raise ValueError("grant amount must be positive")
    with transaction(db_path) as conn:
        balance = credit(conn, user_id, amount, tx_type, description)
    logger.info("granted %s coins to user %s (%s)", amount, user_id, tx_type)
    return balance


def debit(conn: sqlite3.Connection, user_id: int, amount: int, tx_type: str, description: str) -> int:
    row = conn.execute("SELECT wisdom_coins FROM users WHERE id = ?", (user_id,)).fetchone()
    if row is None:
        raise NotFoundError(f"User {user_id} not found")
    if row["wisdom_coins"] < amount:
        raise InsufficientCoinsError(row["wisdom_coins"], amount)
    return credit(conn, user_id, -amount, tx_type, description)


def spend_coins(db_path: str, user_id: int, amount: int, tx_type: str, description: str) -> int:
    """Debit `amount` coins, refusing to take the balance below zero. Returns the new balance."""
    if amount <= 0:
        raise ValueError("spend amount must be positive")
    with transaction(db_path) as conn:
        balance = debit(conn, user_id, amount, tx_type, description)
    logger.info("user %s spent %s coins (%s)", user_id, amount, tx_type)
    return balance


def grant_daily_reward(db_path: str, user_id: int) -> int:
    return grant_coins(db_path, user_id, DAILY_REWARD_COINS, DAILY_REWARD, "Daily login reward")


def get_transactions(db_path: str, user_id: int, limit: int = 50) -> list[dict]:
    """Newest transactions first."""
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT * FROM token_transactions WHERE user_id = ? ORDER BY id DESC LIMIT ?",
        (user_id, limit),
    ).fetchall()
    conn.close()
    return [dict(r) for r in rows]


def get_leaderboard_entry(db_path: str, user_id: int) -> dict | None:
    conn = get_connection(db_path)
    row = conn.execute(
        "SELECT * FROM leaderboard_entries WHERE user_id = ?", (user_id,)
    ).fetchone()
    conn.close()
    return dict(row) if row else None
