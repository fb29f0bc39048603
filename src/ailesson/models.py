"""Data classes for the learning progress domain model."""
from dataclasses import dataclass, field
from typing import Any, Optional

# Question types
TEXT = "TEXT"
SINGLE = "SINGLE"
MULTIPLE = "MULTIPLE"
QUESTION_TYPES = (TEXT, SINGLE, MULTIPLE)

# Roles
STUDENT = "STUDENT"
TEACHER = "TEACHER"
PARENT = "PARENT"
ADMIN = "ADMIN"
ROLES = (STUDENT, TEACHER, PARENT, ADMIN)

# Token transaction types
INITIAL = "INITIAL"
ANSWER_REWARD = "ANSWER_REWARD"
LEADERBOARD_REWARD = "LEADERBOARD_REWARD"
LESSON_COST = "LESSON_COST"
DAILY_REWARD = "DAILY_REWARD"


@dataclass
class Question:
    type: str
    text: str
    correct_answer: Any
    options: Optional[list[str]] = None
    order: int = 0
    id: Optional[int] = None


@dataclass
class Quiz:
    questions: list[Question]
    id: Optional[int] = None
    lesson_id: Optional[int] = None


@dataclass
class Achievement:
    id: int
    name: str
    condition: str
    description: str = ""
    icon: str = ""


@dataclass
class AnswerReward:
    points_delta: int
    coins_delta: int


@dataclass
class AnswerResult:
    is_correct: bool
    points_delta: int
    coins_delta: int


@dataclass
class CompletionResult:
    score: int
    correct_count: int
    total_count: int
    is_perfect: bool
    bonus_awarded: int = 0
    new_achievements: list[Achievement] = field(default_factory=list)


@dataclass
class LeaderInfo:
    user_id: int
    name: str
    score: int
    coins_awarded: int


@dataclass
class ResetResult:
    success: bool
    leader: Optional[LeaderInfo] = None
    students_reset: int = 0
    error: Optional[str] = None
