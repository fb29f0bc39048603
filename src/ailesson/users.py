"""User registration and lookup."""
import logging
from datetime import datetime

from ailesson.db import get_connection, transaction
from ailesson.errors import NotFoundError
from ailesson.ledger import credit
from ailesson.models import ADMIN, INITIAL, PARENT, ROLES, STUDENT, TEACHER

logger = logging.getLogger(__name__)

STARTING_COINS = {
    STUDENT: 150,
    TEACHER: 250,
    PARENT: 100,
    ADMIN: 999999,
}


def create_user(db_path: str, name: str, email: str, role: str = STUDENT) -> int:
    """Register a user with the role's starting balance and its INITIAL transaction."""
    role = role.upper()
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")
    coins = STARTING_COINS[role]
    with transaction(db_path) as conn:
        cur = conn.execute(
            "INSERT INTO users (name, email, role, wisdom_coins, created_at) VALUES (?, ?, ?, 0, ?)",
            (name, email.strip().lower(), role, datetime.now().isoformat()),
        )
        user_id = cur.lastrowid
        credit(conn, user_id, coins, INITIAL, f"Initial {role.lower()} registration bonus")
    logger.info("registered %s user %s (%s)", role, user_id, email)
    return user_id


def get_user(db_path: str, user_id: int) -> dict:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    conn.close()
    if row is None:
        raise NotFoundError(f"User {user_id} not found")
    return dict(row)


def find_user_by_email(db_path: str, email: str) -> dict | None:
    conn = get_connection(db_path)
    row = conn.execute(
        "SELECT * FROM users WHERE email = ?", (email.strip().lower(),)
    ).fetchone()
    conn.close()
    return dict(row) if row else None


def list_users(db_path: str, role: str | None = None) -> list[dict]:
    conn = get_connection(db_path)
    if role:
        rows = conn.execute("SELECT * FROM users WHERE role = ? ORDER BY id", (role,)).fetchall()
    else:
        rows = conn.execute("SELECT * FROM users ORDER BY id").fetchall()
    conn.close()
    return [dict(r) for r in rows]


def get_balance(db_path: str, user_id: int) -> int:
    return get_user(db_path, user_id)["wisdom_coins"]
