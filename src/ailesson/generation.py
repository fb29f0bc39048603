"""Quiz generation: prompt a provider, extract its JSON, validate the quiz.

Nothing here touches the database. A `Quiz` returned by `generate_quiz` or
`validate_quiz` already satisfies every question invariant and can be
persisted as-is with `quiz.save_quiz`.
"""
import logging
from typing import Any, Sequence

from ailesson.errors import (
    ProviderError, ProvidersExhaustedError, QuizValidationError, ValidationError,
)
from ailesson.extraction import extract_json
from ailesson.models import MULTIPLE, QUESTION_TYPES, SINGLE, TEXT, Question, Quiz
from ailesson.providers import TextProvider, default_providers

logger = logging.getLogger(__name__)

MIN_QUESTIONS = 5
MAX_QUESTIONS = 10
MIN_OPTIONS = 2

QUIZ_PROMPT = """You are a quiz generator for an educational platform. Based on the provided lesson content, create a comprehensive quiz with {min_q}-{max_q} questions.

Lesson Title: {title}

Lesson Content: {content}

Generate a JSON response with the following structure (respond ONLY with valid JSON, no additional text):
{{
  "questions": [
    {{
      "type": "TEXT" or "SINGLE" or "MULTIPLE",
      "text": "The question text",
      "correctAnswer": "For TEXT: the correct answer string. For SINGLE: the correct option string. For MULTIPLE: array of correct option strings",
      "options": ["Option 1", "Option 2", "Option 3", "Option 4"] (only for SINGLE and MULTIPLE types, 4-6 options),
      "order": 1
    }}
  ]
}}

Requirements:
- Create {min_q}-{max_q} questions total
- Mix question types: include TEXT (open-ended), SINGLE (one correct answer), and MULTIPLE (multiple correct answers)
- For SINGLE type: correctAnswer should be one of the options
- For MULTIPLE type: correctAnswer should be an array of option strings
- For TEXT type: correctAnswer should be a short string with the expected answer
- Questions should test understanding of key concepts from the lesson
- Order questions from 1 to N sequentially"""


def build_quiz_prompt(lesson_content: str, lesson_title: str) -> str:
    return QUIZ_PROMPT.format(
        min_q=MIN_QUESTIONS, max_q=MAX_QUESTIONS, title=lesson_title, content=lesson_content,
    )


def _validate_question(raw: Any, index: int) -> Question:
    if not isinstance(raw, dict):
        raise QuizValidationError("invalid_question", "must be a JSON object", index)

    qtype = raw.get("type")
    if not qtype:
        raise QuizValidationError("invalid_type", "missing type", index)
    if qtype not in QUESTION_TYPES:
        raise QuizValidationError("invalid_type", f"invalid type: {qtype}", index)

    text = raw.get("text")
    if not isinstance(text, str) or not text.strip():
        raise QuizValidationError("missing_text", "missing text", index)

    answer = raw.get("correctAnswer")
    if answer is None:
        raise QuizValidationError("missing_correct_answer", "missing correctAnswer", index)

    options = None
    if qtype in (SINGLE, MULTIPLE):
        options = raw.get("options")
        if not isinstance(options, list) or len(options) < MIN_OPTIONS:
            raise QuizValidationError(
                "too_few_options", f"{qtype} question must have at least {MIN_OPTIONS} options", index,
            )
        options = [str(o) for o in options]

    if qtype == SINGLE:
        if not isinstance(answer, (str, int, float)) or str(answer) not in options:
            raise QuizValidationError(
                "answer_not_in_options", "correctAnswer must be one of the options", index,
            )
        answer = str(answer)
    elif qtype == MULTIPLE:
        if not isinstance(answer, list):
            raise QuizValidationError(
                "answer_not_list", "MULTIPLE question must have an array correctAnswer", index,
            )
        if not answer:
            raise QuizValidationError(
                "empty_correct_answer", "MULTIPLE question must have at least one correct answer", index,
            )
        answer = [str(a) for a in answer]
        if not all(a in options for a in answer):
            raise QuizValidationError(
                "answer_not_in_options", "all correctAnswers must be in options", index,
            )
    elif qtype == TEXT:
        if isinstance(answer, (list, dict)):
            raise QuizValidationError(
                "invalid_correct_answer", "TEXT question must have a string correctAnswer", index,
            )
        answer = str(answer)

    order = raw.get("order")
    if not isinstance(order, int) or isinstance(order, bool):
        order = index

    return Question(type=qtype, text=text.strip(), correct_answer=answer, options=options, order=order)


def validate_quiz(payload: Any) -> Quiz:
    """Check a decoded provider payload against the quiz rules and build a Quiz."""
    if not isinstance(payload, dict) or not isinstance(payload.get("questions"), list):
        raise QuizValidationError("missing_questions", "Generated quiz is missing questions array")
    raw_questions = payload["questions"]
    count = len(raw_questions)
    if count < MIN_QUESTIONS or count > MAX_QUESTIONS:
        raise QuizValidationError(
            "question_count",
            f"Quiz must have between {MIN_QUESTIONS} and {MAX_QUESTIONS} questions, got {count}",
        )
    return Quiz(questions=[_validate_question(q, i) for i, q in enumerate(raw_questions, 1)])


def generate_quiz(
    lesson_content: str,
    lesson_title: str,
    providers: Sequence[TextProvider] | None = None,
) -> Quiz:
    """Ask each provider in turn for a quiz until one yields a valid one.

    A provider that fails or returns an unusable quiz hands over to the
    next. When all of them fail, the first validation error is raised if
    there was one, otherwise `ProvidersExhaustedError`.
    """
    if providers is None:
        providers = default_providers()
    prompt = build_quiz_prompt(lesson_content, lesson_title)
    errors: list[Exception] = []
    for provider in providers:
        try:
            raw = provider.complete(prompt)
            quiz = validate_quiz(extract_json(raw))
        except (ProviderError, ValidationError) as e:
            logger.warning("quiz generation with %s failed: %s", provider.name, e)
            errors.append(e)
            continue
        logger.info("generated %s-question quiz for %r with %s", len(quiz.questions), lesson_title, provider.name)
        return quiz

    for e in errors:
        if isinstance(e, ValidationError):
            raise e
    raise ProvidersExhaustedError(errors)
