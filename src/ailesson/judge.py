"""Answer correctness rules per question type."""
from typing import Any

from ailesson.models import MULTIPLE, SINGLE, TEXT, Question


def _normalize_text(value: Any) -> str:
    return str(value).strip().casefold()


def _resolve_option(value: Any, options: list[str] | None) -> str:
    """Map an option string or option index to the option string.

    A value that is itself one of the options wins over an index reading,
    so numeric option labels still compare as strings.
    """
    text = str(value).strip()
    if not options:
        return text
    if text in options:
        return text
    if isinstance(value, bool):
        return text
    try:
        index = int(text)
    except ValueError:
        return text
    if 0 <= index < len(options):
        return options[index]
    return text


def _as_list(value: Any) -> list:
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def check_answer(question: Question, value: Any) -> bool:
    """Return True if `value` is a correct answer to `question`."""
    if value is None:
        return False
    if question.type == TEXT:
        return _normalize_text(value) == _normalize_text(question.correct_answer)
    if question.type == SINGLE:
        if isinstance(value, (list, tuple)):
            if len(value) != 1:
                return False
            value = value[0]
        return (
            _resolve_option(value, question.options)
            == _resolve_option(question.correct_answer, question.options)
        )
    if question.type == MULTIPLE:
        submitted = {_resolve_option(v, question.options) for v in _as_list(value)}
        expected = {_resolve_option(v, question.options) for v in _as_list(question.correct_answer)}
        return submitted == expected
    return False
