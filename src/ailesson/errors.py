"""Exception types raised by the learning progress engine."""


class LessonEngineError(Exception):
    """Base class for every error the engine reports to callers."""


class NotFoundError(LessonEngineError):
    pass


class AuthorizationError(LessonEngineError):
    pass


class ValidationError(LessonEngineError):
    pass


class JSONExtractionError(ValidationError):
    """No well-formed JSON object could be found in a provider response."""


class QuizValidationError(ValidationError):
    """A generated quiz broke a structural rule.

    `rule` is a short machine-readable name for the broken rule and
    `question_index` is the 1-based question number, when the rule applies
    to a single question.
    """

    def __init__(self, rule: str, message: str, question_index: int | None = None):
        self.rule = rule
        self.question_index = question_index
        if question_index is not None:
            message = f"Question {question_index}: {message}"
        super().__init__(message)


class StateError(LessonEngineError):
    pass


class AlreadyAnsweredError(StateError):
    def __init__(self, attempt_id: int, question_id: int):
        self.attempt_id = attempt_id
        self.question_id = question_id
        super().__init__(f"Question {question_id} already answered in attempt {attempt_id}")


class AttemptCompletedError(StateError):
    def __init__(self, attempt_id: int):
        self.attempt_id = attempt_id
        super().__init__(f"Quiz attempt {attempt_id} is already completed")


class IncompleteAttemptError(StateError):
    def __init__(self, answered: int, total: int):
        self.answered = answered
        self.total = total
        super().__init__(f"Please answer all questions. {answered}/{total} answered.")


class InsufficientCoinsError(LessonEngineError):
    def __init__(self, balance: int, required: int):
        self.balance = balance
        self.required = required
        super().__init__(
            f"Insufficient wisdom coins. You have {balance}, but need {required}."
        )


class ProviderError(LessonEngineError):
    """A text-generation provider could not produce a response."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class ProvidersExhaustedError(ProviderError):
    def __init__(self, errors: list[Exception]):
        self.errors = errors
        detail = "; ".join(str(e) for e in errors) or "no providers configured"
        super().__init__("all providers", f"failed ({detail})")
