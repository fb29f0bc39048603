"""Lesson authoring: a lesson, its generated quiz and the authoring fee."""
import logging
from datetime import datetime
from typing import Sequence

from ailesson.db import get_connection, transaction
from ailesson.errors import AuthorizationError, InsufficientCoinsError, NotFoundError
from ailesson.generation import generate_quiz
from ailesson.ledger import debit
from ailesson.models import ADMIN, LESSON_COST, TEACHER
from ailesson.providers import TextProvider
from ailesson.quiz import insert_quiz
from ailesson.users import get_user

logger = logging.getLogger(__name__)

LESSON_COST_COINS = 20
AUTHOR_ROLES = (TEACHER, ADMIN)


def create_lesson(
    db_path: str,
    creator_id: int,
    title: str,
    content: str,
    subject: str | None = None,
    providers: Sequence[TextProvider] | None = None,
) -> dict:
    """Generate a quiz for the material and store lesson, quiz and fee together.

    The quiz is generated before anything is written, so a failed or
    abandoned generation leaves no rows behind. Admins author for free.
    """
    if not title.strip() or not content.strip():
        raise ValueError("Lesson title and content are required")
    creator = get_user(db_path, creator_id)
    if creator["role"] not in AUTHOR_ROLES:
        raise AuthorizationError("Only teachers and admins can create lessons")
    charge = creator["role"] != ADMIN
    if charge and creator["wisdom_coins"] < LESSON_COST_COINS:
        raise InsufficientCoinsError(creator["wisdom_coins"], LESSON_COST_COINS)

    quiz = generate_quiz(content, title, providers)

    with transaction(db_path) as conn:
        cur = conn.execute(
            "INSERT INTO lessons (title, content, subject, creator_id, created_at) VALUES (?, ?, ?, ?, ?)",
            (title.strip(), content, subject, creator_id, datetime.now().isoformat()),
        )
        lesson_id = cur.lastrowid
        quiz_id = insert_quiz(conn, lesson_id, quiz)
        if charge:
            debit(conn, creator_id, LESSON_COST_COINS, LESSON_COST, f"Created lesson: {title.strip()}")

    logger.info("user %s created lesson %s with quiz %s", creator_id, lesson_id, quiz_id)
    return {"lesson_id": lesson_id, "quiz_id": quiz_id, "question_count": len(quiz.questions)}


def get_lesson(db_path: str, lesson_id: int) -> dict:
    conn = get_connection(db_path)
    row = conn.execute(
        """SELECT l.*, q.id as quiz_id
        FROM lessons l
        LEFT JOIN quizzes q ON q.lesson_id = l.id
        WHERE l.id = ?""",
        (lesson_id,),
    ).fetchone()
    conn.close()
    if row is None:
        raise NotFoundError(f"Lesson {lesson_id} not found")
    return dict(row)


def list_lessons(db_path: str, creator_id: int | None = None) -> list[dict]:
    conn = get_connection(db_path)
    sql = """SELECT l.id, l.title, l.subject, l.creator_id, l.created_at, q.id as quiz_id,
            (SELECT COUNT(*) FROM questions WHERE quiz_id = q.id) as question_count
        FROM lessons l
        LEFT JOIN quizzes q ON q.lesson_id = l.id"""
    if creator_id is not None:
        rows = conn.execute(sql + " WHERE l.creator_id = ? ORDER BY l.id DESC", (creator_id,)).fetchall()
    else:
        rows = conn.execute(sql + " ORDER BY l.id DESC").fetchall()
    conn.close()
    return [dict(r) for r in rows]
