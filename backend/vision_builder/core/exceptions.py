class VisionBuilderError(Exception):
    """Base exception for Vision Builder application."""

    pass


# ---------------------------------------------------------------------------
# Validation: refused locally, nothing is written and no remote call is made
# ---------------------------------------------------------------------------


class ValidationError(VisionBuilderError):
    """Raised when a request is refused before touching the store or the model."""

    pass


class InvalidStageError(ValidationError):
    """Raised when a stage outside 1..10 is requested."""

    def __init__(self, stage: int):
        self.stage = stage
        super().__init__(f"Stage must be between 1 and 10, got {stage}")


class InvalidQuestionError(ValidationError):
    """Raised when a question number outside 1..10 is used."""

    def __init__(self, question_number: int):
        self.question_number = question_number
        super().__init__(f"Question number must be between 1 and 10, got {question_number}")


class EmptyAnswerError(ValidationError):
    """Raised when navigating forward from a question without an answer."""

    def __init__(self, question_number: int):
        self.question_number = question_number
        super().__init__(f"Question {question_number} must be answered before continuing")


class IncompleteAnswersError(ValidationError):
    """Raised when analysis is requested before all ten answers exist."""

    def __init__(self, missing: list[int]):
        self.missing = missing
        super().__init__(
            f"All 10 questions must be answered before analysis (missing: {', '.join(map(str, missing))})"
        )


# ---------------------------------------------------------------------------
# Lookup / state conflicts
# ---------------------------------------------------------------------------


class SessionNotFoundError(VisionBuilderError):
    """Raised when a session does not exist or belongs to another user."""

    def __init__(self, session_id: object):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class AnalysisNotFoundError(VisionBuilderError):
    """Raised when a rewrite or read needs an analysis the session does not have."""

    def __init__(self, session_id: object):
        self.session_id = session_id
        super().__init__(f"No analysis exists for session {session_id}")


class AnalysisInProgressError(VisionBuilderError):
    """Raised when analyze() is called while an orchestrator run is still RUNNING."""

    pass


# ---------------------------------------------------------------------------
# Generative-text service failures
# ---------------------------------------------------------------------------


class TransientServiceError(VisionBuilderError):
    """Retryable failure of the generative-text service (timeout, network, HTTP)."""

    pass


class TextGenerationError(TransientServiceError):
    """Raised when the text backend rejects a request or returns no content."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class GenerationTimeoutError(TransientServiceError):
    """Raised when one attempt does not answer within its time budget."""

    def __init__(self, attempt_id: int, timeout: float):
        self.attempt_id = attempt_id
        self.timeout = timeout
        super().__init__(f"Attempt {attempt_id} timed out after {timeout:g}s")


class TerminalServiceError(VisionBuilderError):
    """Non-retryable failure: attempts exhausted or unusable response."""

    pass


class RetryLimitExceededError(TerminalServiceError):
    """Raised when retry limit is exceeded for an orchestrated step."""

    def __init__(self, step: str, attempts: int):
        self.step = step
        self.attempts = attempts
        super().__init__(f"Retry limit exceeded for step '{step}' after {attempts} attempts")


class MalformedResponseError(TerminalServiceError):
    """Raised when the model output has no usable structured payload."""

    pass


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class PersistenceError(VisionBuilderError):
    """Raised when a store read or write fails."""

    pass
