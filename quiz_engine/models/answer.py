from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from quiz_engine.utils.time_utils import parse_ist


class Answer(BaseModel):
    id: Optional[str] = None
    attempt_id: str
    question_id: str
    # None means unanswered
    selected_option_id: Optional[str] = None
    answer_text: Optional[str] = None
    # both stay None until the attempt is scored
    is_correct: Optional[bool] = None
    points_earned: Optional[int] = None
    answered_at: Optional[datetime] = None

    @field_validator("answered_at", mode="before")
    @classmethod
    def _to_ist(cls, value):
        return parse_ist(value)

    @property
    def is_scored(self) -> bool:
        return self.is_correct is not None

    @classmethod
    def from_row(cls, row: dict) -> "Answer":
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            attempt_id=str(row["attempt_id"]),
            question_id=str(row["question_id"]),
            selected_option_id=(str(row["selected_option_id"])
                                if row.get("selected_option_id") is not None else None),
            answer_text=row.get("answer_text"),
            is_correct=row.get("is_correct"),
            points_earned=row.get("points_earned"),
            answered_at=row.get("answered_at"),
        )
