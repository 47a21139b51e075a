"""Error taxonomy for the quiz attempt engine."""

from enum import Enum
from typing import Optional


class QuizEngineError(Exception):
    """Base class for all engine errors"""


class AuthErrorReason(str, Enum):
    WRONG_PASSWORD = "wrong_password"


class AccessDeniedReason(str, Enum):
    NOT_YET_OPEN = "not_yet_open"
    ENDED = "ended"
    ATTEMPT_LIMIT_REACHED = "attempt_limit_reached"
    CONTENT_LOCKED = "content_locked"
    NOT_OWNER = "not_owner"


class AuthError(QuizEngineError):
    """Recoverable: the learner may retry, nothing was written."""

    def __init__(self, reason: AuthErrorReason = AuthErrorReason.WRONG_PASSWORD,
                 message: str = "Incorrect password. Please try again."):
        super().__init__(message)
        self.reason = reason
        self.message = message


class AccessDeniedError(QuizEngineError):
    """Terminal for this entry attempt; no Attempt is created."""

    MESSAGES = {
        AccessDeniedReason.NOT_YET_OPEN: "This quiz is not open yet.",
        AccessDeniedReason.ENDED: "This quiz has ended.",
        AccessDeniedReason.ATTEMPT_LIMIT_REACHED: "You have used all attempts for this quiz.",
        AccessDeniedReason.CONTENT_LOCKED: "Questions are released when the quiz starts.",
        AccessDeniedReason.NOT_OWNER: "This attempt belongs to another user.",
    }

    def __init__(self, reason: AccessDeniedReason, message: Optional[str] = None):
        self.reason = reason
        self.message = message or self.MESSAGES[reason]
        super().__init__(self.message)


class AttemptClosedError(QuizEngineError):
    """Write against an attempt that is already submitted."""

    def __init__(self, attempt_id: str):
        self.attempt_id = attempt_id
        super().__init__(f"Attempt {attempt_id} is already submitted")


class NotFoundError(QuizEngineError):
    def __init__(self, entity: str, key):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} {key} not found")


class StoreUnavailableError(QuizEngineError):
    """The persistent store failed or reported that nothing was persisted."""

    def __init__(self, operation: str, table: str, detail: str = ""):
        self.operation = operation
        self.table = table
        self.detail = detail
        message = f"{operation} on {table} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ScoringInconsistencyError(QuizEngineError):
    """Data-integrity problem found while scoring.

    Never raised out of the scoring engine: the affected question scores as
    incorrect and the error is logged and reported on the result.
    """

    def __init__(self, question_id: str, detail: str):
        self.question_id = question_id
        self.detail = detail
        super().__init__(f"Question {question_id}: {detail}")
