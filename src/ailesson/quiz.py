"""Quiz persistence and the quiz attempt lifecycle.

An attempt is in progress while `completed_at` is NULL and completed once it
is set. Answers are accepted only while in progress, at most one per
question (enforced by UNIQUE(attempt_id, question_id)), and the attempt can
complete only when every question of the quiz has an answer.
"""
import json
import logging
import sqlite3
from datetime import datetime
from typing import Any

from ailesson.achievements import check_achievements
from ailesson.db import get_connection, transaction
from ailesson.errors import (
    AlreadyAnsweredError, AttemptCompletedError, AuthorizationError,
    IncompleteAttemptError, NotFoundError,
)
from ailesson.judge import check_answer
from ailesson.ledger import record_answer_reward, record_quiz_completion
from ailesson.models import AnswerResult, CompletionResult, Question, Quiz

logger = logging.getLogger(__name__)

IN_PROGRESS = "IN_PROGRESS"
COMPLETED = "COMPLETED"


def _row_to_question(row: sqlite3.Row) -> Question:
    return Question(
        id=row["id"],
        type=row["type"],
        text=row["text"],
        options=json.loads(row["options"]) if row["options"] else None,
        correct_answer=json.loads(row["correct_answer"]),
        order=row["position"],
    )


def _encode_answer(value: Any) -> str:
    # sets and tuples are stored as JSON lists
    if isinstance(value, (set, frozenset)):
        value = sorted(value, key=str)
    elif isinstance(value, tuple):
        value = list(value)
    return json.dumps(value, ensure_ascii=False)


def insert_quiz(conn: sqlite3.Connection, lesson_id: int, quiz: Quiz) -> int:
    """Write a validated quiz and its questions on the caller's connection."""
    cur = conn.execute(
        "INSERT INTO quizzes (lesson_id, created_at) VALUES (?, ?)",
        (lesson_id, datetime.now().isoformat()),
    )
    quiz_id = cur.lastrowid
    for q in quiz.questions:
        conn.execute(
            "INSERT INTO questions (quiz_id, type, text, options, correct_answer, position) VALUES (?, ?, ?, ?, ?, ?)",
            (
                quiz_id, q.type, q.text,
                json.dumps(q.options, ensure_ascii=False) if q.options else None,
                json.dumps(q.correct_answer, ensure_ascii=False),
                q.order,
            ),
        )
    return quiz_id


def save_quiz(db_path: str, lesson_id: int, quiz: Quiz) -> int:
    """Persist a quiz for a lesson: all of its questions or nothing."""
    with transaction(db_path) as conn:
        quiz_id = insert_quiz(conn, lesson_id, quiz)
    logger.info("saved quiz %s for lesson %s (%s questions)", quiz_id, lesson_id, len(quiz.questions))
    return quiz_id


def get_quiz_questions(db_path: str, quiz_id: int) -> list[Question]:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT * FROM questions WHERE quiz_id = ? ORDER BY position, id", (quiz_id,)
    ).fetchall()
    conn.close()
    return [_row_to_question(r) for r in rows]


def get_quiz_for_lesson(db_path: str, lesson_id: int) -> dict | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM quizzes WHERE lesson_id = ?", (lesson_id,)).fetchone()
    conn.close()
    return dict(row) if row else None


def start_attempt(db_path: str, quiz_id: int, user_id: int) -> int:
    with transaction(db_path) as conn:
        if conn.execute("SELECT 1 FROM quizzes WHERE id = ?", (quiz_id,)).fetchone() is None:
            raise NotFoundError(f"Quiz {quiz_id} not found")
        if conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,)).fetchone() is None:
            raise NotFoundError(f"User {user_id} not found")
        cur = conn.execute(
            "INSERT INTO quiz_attempts (quiz_id, user_id, started_at) VALUES (?, ?, ?)",
            (quiz_id, user_id, datetime.now().isoformat()),
        )
        attempt_id = cur.lastrowid
    logger.debug("user %s started attempt %s on quiz %s", user_id, attempt_id, quiz_id)
    return attempt_id


def _load_attempt(conn: sqlite3.Connection, attempt_id: int, user_id: int | None) -> sqlite3.Row:
    attempt = conn.execute("SELECT * FROM quiz_attempts WHERE id = ?", (attempt_id,)).fetchone()
    if attempt is None:
        raise NotFoundError(f"Quiz attempt {attempt_id} not found")
    if user_id is not None and attempt["user_id"] != user_id:
        raise AuthorizationError(f"Quiz attempt {attempt_id} belongs to another user")
    if attempt["completed_at"] is not None:
        raise AttemptCompletedError(attempt_id)
    return attempt


def submit_answer(
    db_path: str,
    attempt_id: int,
    question_id: int,
    value: Any,
    user_id: int | None = None,
) -> AnswerResult:
    """Judge one answer and apply its reward in the same transaction.

    Pass `user_id` to reject attempts owned by someone else.
    """
    with transaction(db_path) as conn:
        attempt = _load_attempt(conn, attempt_id, user_id)
        row = conn.execute(
            "SELECT * FROM questions WHERE id = ? AND quiz_id = ?", (question_id, attempt["quiz_id"])
        ).fetchone()
        if row is None:
            raise NotFoundError(f"Question {question_id} not found in quiz {attempt['quiz_id']}")
        is_correct = check_answer(_row_to_question(row), value)
        try:
            conn.execute(
                """INSERT INTO user_answers (attempt_id, question_id, user_id, answer, is_correct, answered_at)
                VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    attempt_id, question_id, attempt["user_id"],
                    _encode_answer(value), int(is_correct),
                    datetime.now().isoformat(),
                ),
            )
        except sqlite3.IntegrityError as e:
            raise AlreadyAnsweredError(attempt_id, question_id) from e
        reward = record_answer_reward(conn, attempt["user_id"], is_correct)
    return AnswerResult(is_correct=is_correct, points_delta=reward.points_delta, coins_delta=reward.coins_delta)


def complete_attempt(db_path: str, attempt_id: int, user_id: int | None = None) -> CompletionResult:
    """Finish an attempt: final score, perfect bonus, quiz count, then achievements."""
    with transaction(db_path) as conn:
        attempt = _load_attempt(conn, attempt_id, user_id)
        total = conn.execute(
            "SELECT COUNT(*) FROM questions WHERE quiz_id = ?", (attempt["quiz_id"],)
        ).fetchone()[0]
        answers = conn.execute(
            "SELECT is_correct FROM user_answers WHERE attempt_id = ?", (attempt_id,)
        ).fetchall()
        if len(answers) < total:
            raise IncompleteAttemptError(len(answers), total)

        correct = sum(a["is_correct"] for a in answers)
        incorrect = len(answers) - correct
        score = correct * 10 - incorrect
        is_perfect = incorrect == 0

        cur = conn.execute(
            "UPDATE quiz_attempts SET completed_at = ?, score = ?, is_perfect = ? WHERE id = ? AND completed_at IS NULL",
            (datetime.now().isoformat(), score, int(is_perfect), attempt_id),
        )
        if cur.rowcount == 0:
            raise AttemptCompletedError(attempt_id)
        bonus = record_quiz_completion(conn, attempt["user_id"], is_perfect)

    logger.info(
        "attempt %s completed: %s/%s correct, score %s%s",
        attempt_id, correct, total, score, " (perfect)" if is_perfect else "",
    )
    new_achievements = check_achievements(db_path, attempt["user_id"])
    return CompletionResult(
        score=score,
        correct_count=correct,
        total_count=total,
        is_perfect=is_perfect,
        bonus_awarded=bonus,
        new_achievements=new_achievements,
    )


def get_attempt(db_path: str, attempt_id: int) -> dict:
    conn = get_connection(db_path)
    attempt = conn.execute("SELECT * FROM quiz_attempts WHERE id = ?", (attempt_id,)).fetchone()
    if attempt is None:
        conn.close()
        raise NotFoundError(f"Quiz attempt {attempt_id} not found")
    answers = conn.execute(
        "SELECT question_id, answer, is_correct, answered_at FROM user_answers WHERE attempt_id = ? ORDER BY id",
        (attempt_id,),
    ).fetchall()
    conn.close()
    result = dict(attempt)
    result["state"] = COMPLETED if attempt["completed_at"] else IN_PROGRESS
    result["answers"] = [
        {**dict(a), "answer": json.loads(a["answer"]), "is_correct": bool(a["is_correct"])}
        for a in answers
    ]
    return result
