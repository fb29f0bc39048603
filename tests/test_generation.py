import json
from unittest.mock import patch

import pytest

from ailesson.errors import (
    JSONExtractionError, ProviderError, ProvidersExhaustedError, QuizValidationError,
)
from ailesson.generation import build_quiz_prompt, generate_quiz, validate_quiz
from ailesson.models import MULTIPLE, SINGLE, TEXT


def _with_question(payload, index, **changes):
    q = payload["questions"][index]
    for key, value in changes.items():
        if value is None:
            q.pop(key, None)
        else:
            q[key] = value
    return payload


def test_valid_quiz(payload_factory):
    quiz = validate_quiz(payload_factory(5))
    assert len(quiz.questions) == 5
    assert [q.type for q in quiz.questions] == [TEXT, SINGLE, MULTIPLE, TEXT, SINGLE]
    assert quiz.questions[0].options is None
    assert quiz.questions[1].correct_answer == "B"
    assert quiz.questions[2].correct_answer == ["A", "C"]


def test_ten_questions_allowed(payload_factory):
    assert len(validate_quiz(payload_factory(10)).questions) == 10


@pytest.mark.parametrize("count", [0, 1, 4, 11, 15])
def test_question_count_bounds(payload_factory, count):
    with pytest.raises(QuizValidationError) as exc:
        validate_quiz(payload_factory(count))
    assert exc.value.rule == "question_count"
    assert "between 5 and 10" in str(exc.value)
    assert f"got {count}" in str(exc.value)


@pytest.mark.parametrize("payload", [{}, {"questions": "lots"}, [], "quiz"])
def test_missing_questions_array(payload):
    with pytest.raises(QuizValidationError) as exc:
        validate_quiz(payload)
    assert exc.value.rule == "missing_questions"


def test_question_not_an_object(payload_factory):
    payload = payload_factory(5)
    payload["questions"][3] = "What?"
    with pytest.raises(QuizValidationError) as exc:
        validate_quiz(payload)
    assert exc.value.rule == "invalid_question"
    assert exc.value.question_index == 4


def test_missing_type(payload_factory):
    payload = _with_question(payload_factory(5), 0, type=None)
    with pytest.raises(QuizValidationError) as exc:
        validate_quiz(payload)
    assert str(exc.value) == "Question 1: missing type"


def test_invalid_type(payload_factory):
    payload = _with_question(payload_factory(5), 1, type="ESSAY")
    with pytest.raises(QuizValidationError) as exc:
        validate_quiz(payload)
    assert exc.value.rule == "invalid_type"
    assert "ESSAY" in str(exc.value)


def test_missing_text(payload_factory):
    payload = _with_question(payload_factory(5), 2, text="   ")
    with pytest.raises(QuizValidationError) as exc:
        validate_quiz(payload)
    assert exc.value.rule == "missing_text"


def test_missing_correct_answer(payload_factory):
    payload = _with_question(payload_factory(5), 0, correctAnswer=None)
    with pytest.raises(QuizValidationError) as exc:
        validate_quiz(payload)
    assert "missing correctAnswer" in str(exc.value)


def test_single_needs_two_options(payload_factory):
    payload = _with_question(payload_factory(5), 1, options=["B"])
    with pytest.raises(QuizValidationError) as exc:
        validate_quiz(payload)
    assert exc.value.rule == "too_few_options"
    assert "at least 2 options" in str(exc.value)


def test_single_answer_must_be_an_option(payload_factory):
    payload = _with_question(payload_factory(5), 1, correctAnswer="Z")
    with pytest.raises(QuizValidationError) as exc:
        validate_quiz(payload)
    assert exc.value.rule == "answer_not_in_options"
    assert str(exc.value) == "Question 2: correctAnswer must be one of the options"


def test_multiple_answer_must_be_list(payload_factory):
    payload = _with_question(payload_factory(5), 2, correctAnswer="A")
    with pytest.raises(QuizValidationError) as exc:
        validate_quiz(payload)
    assert exc.value.rule == "answer_not_list"


def test_multiple_answer_must_not_be_empty(payload_factory):
    payload = _with_question(payload_factory(5), 2, correctAnswer=[])
    with pytest.raises(QuizValidationError) as exc:
        validate_quiz(payload)
    assert exc.value.rule == "empty_correct_answer"


def test_multiple_answers_must_be_options(payload_factory):
    payload = _with_question(payload_factory(5), 2, correctAnswer=["A", "Z"])
    with pytest.raises(QuizValidationError) as exc:
        validate_quiz(payload)
    assert "all correctAnswers must be in options" in str(exc.value)


def test_text_answer_must_be_scalar(payload_factory):
    payload = _with_question(payload_factory(5), 0, correctAnswer=["Paris"])
    with pytest.raises(QuizValidationError) as exc:
        validate_quiz(payload)
    assert exc.value.rule == "invalid_correct_answer"


def test_text_options_dropped(payload_factory):
    payload = _with_question(payload_factory(5), 0, options=["x", "y"])
    assert validate_quiz(payload).questions[0].options is None


def test_missing_order_uses_position(payload_factory):
    payload = _with_question(payload_factory(5), 3, order=None)
    assert validate_quiz(payload).questions[3].order == 4


def test_numeric_options_normalized(payload_factory):
    payload = _with_question(payload_factory(5), 1, options=[1, 2, 3], correctAnswer=2)
    q = validate_quiz(payload).questions[1]
    assert q.options == ["1", "2", "3"]
    assert q.correct_answer == "2"


def test_prompt_mentions_lesson():
    prompt = build_quiz_prompt("Photosynthesis turns light into sugar.", "Plants")
    assert "Lesson Title: Plants" in prompt
    assert "Photosynthesis turns light into sugar." in prompt
    assert "5-10 questions" in prompt


def test_generate_from_fenced_prose(fake_provider, payload_factory):
    body = json.dumps(payload_factory(6))
    response = f"Of course! Here's a quiz about the lesson:\n```json\n{body}\n```\nGood luck!"
    provider = fake_provider("primary", [response])
    quiz = generate_quiz("content", "Title", [provider])
    assert len(quiz.questions) == 6
    assert "Title" in provider.prompts[0]


def test_failover_on_provider_error(fake_provider, good_response):
    primary = fake_provider("primary", [ProviderError("primary", "503")])
    secondary = fake_provider("secondary", [good_response])
    quiz = generate_quiz("content", "Title", [primary, secondary])
    assert len(quiz.questions) == 5
    assert primary.calls == 1
    assert secondary.calls == 1


def test_primary_success_skips_secondary(fake_provider, good_response):
    primary = fake_provider("primary", [good_response])
    secondary = fake_provider("secondary", [good_response])
    generate_quiz("content", "Title", [primary, secondary])
    assert secondary.calls == 0


def test_failover_on_invalid_quiz(fake_provider, payload_factory, good_response):
    primary = fake_provider("primary", [json.dumps(payload_factory(2))])
    secondary = fake_provider("secondary", [good_response])
    assert len(generate_quiz("content", "Title", [primary, secondary]).questions) == 5


def test_all_providers_fail(fake_provider):
    primary = fake_provider("primary", [ProviderError("primary", "down")])
    secondary = fake_provider("secondary", [ProviderError("secondary", "down")])
    with pytest.raises(ProvidersExhaustedError) as exc:
        generate_quiz("content", "Title", [primary, secondary])
    assert len(exc.value.errors) == 2


def test_validation_error_surfaces_when_all_fail(fake_provider, payload_factory):
    primary = fake_provider("primary", [json.dumps(payload_factory(15))])
    secondary = fake_provider("secondary", [ProviderError("secondary", "down")])
    with pytest.raises(QuizValidationError) as exc:
        generate_quiz("content", "Title", [primary, secondary])
    assert exc.value.rule == "question_count"


def test_unparseable_response(fake_provider):
    provider = fake_provider("primary", ["I cannot do that."])
    with pytest.raises(JSONExtractionError):
        generate_quiz("content", "Title", [provider])


def test_no_providers():
    with pytest.raises(ProvidersExhaustedError):
        generate_quiz("content", "Title", [])


def test_uses_default_providers(fake_provider, good_response):
    provider = fake_provider("default", [good_response])
    with patch("ailesson.generation.default_providers", return_value=[provider]):
        quiz = generate_quiz("content", "Title")
    assert len(quiz.questions) == 5
    assert provider.calls == 1
