import itertools
import json
from datetime import datetime

import pytest

from ailesson.db import get_connection, init_db
from ailesson.models import MULTIPLE, SINGLE, TEXT, Question, Quiz
from ailesson.quiz import get_quiz_questions, save_quiz, submit_answer
from ailesson.seed import seed_all
from ailesson.users import create_user

_emails = itertools.count(1)


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_ailesson.db")
    return db_path


@pytest.fixture
def db(tmp_db):
    """Initialized and seeded database."""
    init_db(tmp_db)
    seed_all(tmp_db)
    return tmp_db


@pytest.fixture
def make_user(db):
    def _make(role="STUDENT", name=None):
        n = next(_emails)
        return create_user(db, name or f"{role.title()} {n}", f"user{n}@example.com", role)
    return _make


@pytest.fixture
def student(make_user):
    return make_user("STUDENT")


@pytest.fixture
def teacher(make_user):
    return make_user("TEACHER")


def sample_questions():
    return [
        Question(type=TEXT, text="What is the capital of France?", correct_answer="Paris", order=1),
        Question(type=SINGLE, text="Which planet is known as the red planet?",
                 options=["Venus", "Mars", "Jupiter"], correct_answer="Mars", order=2),
        Question(type=MULTIPLE, text="Which colours are primary?",
                 options=["Red", "Green", "Blue", "Purple"], correct_answer=["Red", "Blue"], order=3),
        Question(type=TEXT, text="H2O is commonly called?", correct_answer="Water", order=4),
        Question(type=SINGLE, text="Largest ocean?",
                 options=["Atlantic", "Pacific", "Indian"], correct_answer="Pacific", order=5),
    ]


def wrong_answer(q: Question):
    if q.type == TEXT:
        return "definitely wrong"
    if q.type == SINGLE:
        return next(o for o in q.options if o != q.correct_answer)
    return [q.options[-1]]


@pytest.fixture
def make_quiz(db, make_user):
    """Create a lesson with a saved quiz; returns the quiz id."""
    def _make(creator_id=None, questions=None):
        if creator_id is None:
            creator_id = make_user("TEACHER")
        conn = get_connection(db)
        cur = conn.execute(
            "INSERT INTO lessons (title, content, subject, creator_id, created_at) VALUES (?, ?, ?, ?, ?)",
            ("Sample lesson", "Some content", "General", creator_id, datetime.now().isoformat()),
        )
        lesson_id = cur.lastrowid
        conn.commit()
        conn.close()
        return save_quiz(db, lesson_id, Quiz(questions=questions or sample_questions()))
    return _make


@pytest.fixture
def quiz_id(make_quiz):
    return make_quiz()


@pytest.fixture
def answer_quiz(db):
    """Answer every question of an attempt; positions listed in `wrong` get a wrong answer."""
    def _answer(attempt_id, quiz_id, wrong=(), user_id=None):
        results = []
        for i, q in enumerate(get_quiz_questions(db, quiz_id)):
            value = wrong_answer(q) if i in wrong else q.correct_answer
            results.append(submit_answer(db, attempt_id, q.id, value, user_id=user_id))
        return results
    return _answer


def quiz_payload(count=5, **overrides):
    questions = []
    for i in range(count):
        kind = (TEXT, SINGLE, MULTIPLE)[i % 3]
        q = {"type": kind, "text": f"Question {i + 1}?", "order": i + 1}
        if kind == TEXT:
            q["correctAnswer"] = f"Answer {i + 1}"
        elif kind == SINGLE:
            q["options"] = ["A", "B", "C", "D"]
            q["correctAnswer"] = "B"
        else:
            q["options"] = ["A", "B", "C", "D"]
            q["correctAnswer"] = ["A", "C"]
        questions.append(q)
    payload = {"questions": questions}
    payload.update(overrides)
    return payload


@pytest.fixture
def payload_factory():
    return quiz_payload


class FakeProvider:
    """Scripted provider: each call consumes the next response; the last one repeats."""

    def __init__(self, name, responses):
        self.name = name
        self.responses = list(responses)
        self.prompts = []

    @property
    def calls(self):
        return len(self.prompts)

    def complete(self, prompt):
        self.prompts.append(prompt)
        r = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(r, Exception):
            raise r
        return r


@pytest.fixture
def fake_provider():
    return FakeProvider


@pytest.fixture
def good_response():
    return json.dumps(quiz_payload(5))
