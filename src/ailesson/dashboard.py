"""Student progress statistics for teachers and the student dashboard."""
from ailesson.achievements import get_user_achievements
from ailesson.db import get_connection
from ailesson.errors import AuthorizationError, NotFoundError
from ailesson.models import ADMIN, STUDENT, TEACHER
from ailesson.users import get_user

VIEWER_ROLES = (TEACHER, ADMIN)


def get_progress_label(accuracy: float) -> str:
    if accuracy >= 90:
        return "EXCELLENT"
    elif accuracy >= 70:
        return "GOOD"
    elif accuracy >= 50:
        return "FAIR"
    return "NEEDS WORK"


def get_progress_color(accuracy: float) -> str:
    if accuracy >= 90:
        return "green"
    elif accuracy >= 70:
        return "yellow"
    elif accuracy >= 50:
        return "dark_orange"
    return "red"


def get_completed_attempts(db_path: str, user_id: int) -> list[dict]:
    """Completed attempts, newest first, with per-attempt accuracy."""
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT a.id, a.quiz_id, a.score, a.is_perfect, a.completed_at,
            l.id as lesson_id, l.title as lesson_title, l.subject,
            COUNT(ua.id) as total, COALESCE(SUM(ua.is_correct), 0) as correct
        FROM quiz_attempts a
        JOIN quizzes q ON a.quiz_id = q.id
        JOIN lessons l ON q.lesson_id = l.id
        LEFT JOIN user_answers ua ON ua.attempt_id = a.id
        WHERE a.user_id = ? AND a.completed_at IS NOT NULL
        GROUP BY a.id
        ORDER BY a.completed_at DESC""",
        (user_id,),
    ).fetchall()
    conn.close()
    return [
        {
            **dict(r),
            "is_perfect": bool(r["is_perfect"]),
            "accuracy": round((r["correct"] / r["total"]) * 100, 1) if r["total"] else 0.0,
        }
        for r in rows
    ]


def get_student_stats(db_path: str, user_id: int) -> dict:
    """All-time answer statistics, independent of leaderboard resets."""
    conn = get_connection(db_path)
    quizzes = conn.execute(
        "SELECT COUNT(*) FROM quiz_attempts WHERE user_id = ? AND completed_at IS NOT NULL", (user_id,)
    ).fetchone()[0]
    perfect = conn.execute(
        "SELECT COUNT(*) FROM quiz_attempts WHERE user_id = ? AND completed_at IS NOT NULL AND is_perfect = 1",
        (user_id,),
    ).fetchone()[0]
    row = conn.execute(
        "SELECT COUNT(*) as t, SUM(is_correct) as c FROM user_answers WHERE user_id = ?", (user_id,)
    ).fetchone()
    avg_row = conn.execute(
        "SELECT AVG(score) as avg FROM quiz_attempts WHERE user_id = ? AND completed_at IS NOT NULL",
        (user_id,),
    ).fetchone()
    conn.close()
    accuracy = round((row["c"] / row["t"]) * 100, 1) if row["t"] else 0.0
    return {
        "quizzes_completed": quizzes,
        "perfect_quizzes": perfect,
        "answers_total": row["t"],
        "answers_correct": row["c"] or 0,
        "accuracy": accuracy,
        "avg_quiz_score": round(avg_row["avg"], 1) if avg_row["avg"] is not None else 0.0,
    }


def get_student_progress(db_path: str, student_id: int, viewer_id: int | None = None) -> dict:
    """Progress report for one student.

    When `viewer_id` is given the viewer must be a teacher or an admin.
    """
    if viewer_id is not None and viewer_id != student_id:
        viewer = get_user(db_path, viewer_id)
        if viewer["role"] not in VIEWER_ROLES:
            raise AuthorizationError("Only teachers and admins can view student progress")
    student = get_user(db_path, student_id)
    if student["role"] != STUDENT:
        raise NotFoundError(f"User {student_id} is not a student")
    stats = get_student_stats(db_path, student_id)
    achievements = [a for a in get_user_achievements(db_path, student_id) if a["is_earned"]]
    return {
        "student": {
            "id": student["id"],
            "name": student["name"],
            "email": student["email"],
            "wisdom_coins": student["wisdom_coins"],
        },
        "stats": stats,
        "label": get_progress_label(stats["accuracy"]),
        "attempts": get_completed_attempts(db_path, student_id),
        "achievements": achievements,
    }
