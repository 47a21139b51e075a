from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator

from quiz_engine.utils.time_utils import parse_ist


class AttemptStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    AUTO_SUBMITTED = "auto_submitted"

    @property
    def is_terminal(self) -> bool:
        return self != AttemptStatus.IN_PROGRESS


class SubmissionReason(str, Enum):
    MANUAL = "manual"
    TIME_EXPIRED = "time_expired"

    @property
    def status(self) -> AttemptStatus:
        if self == SubmissionReason.TIME_EXPIRED:
            return AttemptStatus.AUTO_SUBMITTED
        return AttemptStatus.SUBMITTED


class AttemptPhase(str, Enum):
    LOCKED = "locked"
    GATED_WAIT = "gated_wait"
    ACTIVE = "active"
    SUBMITTED = "submitted"
    AUTO_SUBMITTED = "auto_submitted"


class Attempt(BaseModel):
    id: str
    quiz_id: str
    user_id: str
    attempt_number: int = 1
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    started_at: datetime
    submitted_at: Optional[datetime] = None
    time_remaining_seconds: Optional[int] = None
    total_questions: Optional[int] = None
    correct_answers: Optional[int] = None
    total_points: Optional[int] = None
    score_percentage: Optional[float] = None

    @field_validator("started_at", "submitted_at", mode="before")
    @classmethod
    def _to_ist(cls, value):
        return parse_ist(value)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @classmethod
    def from_row(cls, row: dict) -> "Attempt":
        return cls(
            id=str(row["id"]),
            quiz_id=str(row["quiz_id"]),
            user_id=str(row["user_id"]),
            attempt_number=row.get("attempt_number") or 1,
            status=row.get("status") or AttemptStatus.IN_PROGRESS,
            started_at=row["started_at"],
            submitted_at=row.get("submitted_at"),
            time_remaining_seconds=row.get("time_remaining_seconds"),
            total_questions=row.get("total_questions"),
            correct_answers=row.get("correct_answers"),
            total_points=row.get("total_points"),
            score_percentage=row.get("score_percentage"),
        )
