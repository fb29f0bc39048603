import sqlite3
from unittest.mock import patch

from ailesson.db import get_connection
from ailesson.leaderboard import LEADER_REWARD_COINS, get_leaderboard, reset_daily_leaderboard
from ailesson.ledger import get_leaderboard_entry, get_transactions
from ailesson.models import LEADERBOARD_REWARD
from ailesson.users import get_balance


def set_entry(db, user_id, score, quiz_count=1, correct=0, total=0):
    conn = get_connection(db)
    conn.execute(
        "INSERT INTO leaderboard_entries (user_id, score, quiz_count, correct_answers, total_answers) "
        "VALUES (?, ?, ?, ?, ?)",
        (user_id, score, quiz_count, correct, total),
    )
    conn.commit()
    conn.close()


def test_reset_rewards_leader_and_zeroes_everyone(db, make_user):
    students = [make_user("STUDENT") for _ in range(3)]
    for user_id, score in zip(students, [100, 80, 60]):
        set_entry(db, user_id, score, quiz_count=3, correct=5, total=6)

    result = reset_daily_leaderboard(db)

    assert result.success is True
    assert result.leader.user_id == students[0]
    assert result.leader.score == 100
    assert result.leader.coins_awarded == LEADER_REWARD_COINS
    assert result.students_reset == 3
    assert get_balance(db, students[0]) == 175
    assert get_balance(db, students[1]) == 150
    rewards = [t for t in get_transactions(db, students[0]) if t["type"] == LEADERBOARD_REWARD]
    assert len(rewards) == 1
    assert "leaderboard" in rewards[0]["description"].lower()
    for user_id in students:
        entry = get_leaderboard_entry(db, user_id)
        assert (entry["score"], entry["quiz_count"], entry["correct_answers"], entry["total_answers"]) == (0, 0, 0, 0)
        assert entry["last_reset_at"] is not None


def test_reset_with_no_students(db):
    result = reset_daily_leaderboard(db)
    assert result.success is True
    assert result.leader is None
    assert result.students_reset == 0


def test_reset_ignores_non_students(db, make_user):
    student = make_user("STUDENT")
    teacher = make_user("TEACHER")
    set_entry(db, student, 10)
    set_entry(db, teacher, 500)

    result = reset_daily_leaderboard(db)

    assert result.leader.user_id == student
    assert result.students_reset == 1
    assert get_leaderboard_entry(db, teacher)["score"] == 500
    assert get_balance(db, teacher) == 250


def test_reset_tie_goes_to_lower_id(db, make_user):
    first = make_user("STUDENT")
    second = make_user("STUDENT")
    set_entry(db, second, 40)
    set_entry(db, first, 40)

    result = reset_daily_leaderboard(db)

    assert result.leader.user_id == first
    conn = get_connection(db)
    count = conn.execute(
        "SELECT COUNT(*) FROM token_transactions WHERE type = ?", (LEADERBOARD_REWARD,)
    ).fetchone()[0]
    conn.close()
    assert count == 1


def test_reset_failure_rolls_back(db, make_user):
    student = make_user("STUDENT")
    set_entry(db, student, 30)
    with patch("ailesson.leaderboard.credit", side_effect=sqlite3.OperationalError("disk I/O error")):
        result = reset_daily_leaderboard(db)
    assert result.success is False
    assert "disk I/O error" in result.error
    assert get_leaderboard_entry(db, student)["score"] == 30
    assert get_balance(db, student) == 150


def test_leaderboard_ordering_with_negative_scores(db, make_user):
    students = [make_user("STUDENT") for _ in range(3)]
    for user_id, score in zip(students, [-10, -5, -20]):
        set_entry(db, user_id, score)
    board = get_leaderboard(db)
    assert [e["score"] for e in board] == [-5, -10, -20]
    assert [e["rank"] for e in board] == [1, 2, 3]

    result = reset_daily_leaderboard(db)
    assert result.leader.user_id == students[1]
    assert result.leader.score == -5


def test_leaderboard_accuracy_and_limit(db, make_user):
    a = make_user("STUDENT")
    b = make_user("STUDENT")
    set_entry(db, a, 20, correct=3, total=4)
    set_entry(db, b, 10)
    board = get_leaderboard(db)
    assert board[0]["accuracy"] == 75.0
    assert board[1]["accuracy"] == 0.0
    assert len(get_leaderboard(db, limit=1)) == 1


def test_leaderboard_excludes_teachers(db, make_user):
    teacher = make_user("TEACHER")
    set_entry(db, teacher, 99)
    assert get_leaderboard(db) == []
