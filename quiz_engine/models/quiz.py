from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

from quiz_engine.config import settings
from quiz_engine.utils.time_utils import parse_ist


class QuizMode(str, Enum):
    LIVE = "live"
    UNLIVE = "unlive"


class Quiz(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    mode: QuizMode = QuizMode.UNLIVE
    duration_seconds: int
    # LIVE: fixed start shared by every learner
    start_time: Optional[datetime] = None
    login_window_seconds: int = settings.default_login_window_seconds
    # UNLIVE: entry refused after this instant; None means open-ended
    deadline: Optional[datetime] = None
    password: str = ""
    instructions: Optional[str] = None
    max_attempts: int = 1
    show_results_immediately: bool = True
    show_correct_answers: bool = True
    allow_review: bool = True
    is_published: bool = True
    is_active: bool = True

    @field_validator("start_time", "deadline", mode="before")
    @classmethod
    def _to_ist(cls, value):
        return parse_ist(value)

    @model_validator(mode="after")
    def _live_needs_start(self):
        if self.mode == QuizMode.LIVE and self.start_time is None:
            raise ValueError("LIVE quizzes must define start_time")
        if self.duration_seconds <= 0:
            raise ValueError("duration must be positive")
        return self

    @property
    def is_live(self) -> bool:
        return self.mode == QuizMode.LIVE

    @classmethod
    def from_row(cls, row: dict) -> "Quiz":
        """Build from a ``quizzes`` row (minute-based columns)"""
        login_window = row.get("login_window_minutes")
        return cls(
            id=str(row["id"]),
            title=row["title"],
            description=row.get("description"),
            mode=row.get("quiz_type") or QuizMode.UNLIVE,
            duration_seconds=int(row["duration_minutes"]) * 60,
            start_time=row.get("start_time"),
            login_window_seconds=(int(login_window) * 60 if login_window is not None
                                  else settings.default_login_window_seconds),
            deadline=row.get("end_time"),
            password=row.get("password") or "",
            instructions=row.get("instructions"),
            max_attempts=row.get("max_attempts") or 1,
            show_results_immediately=row.get("show_results_immediately", True),
            show_correct_answers=row.get("show_correct_answers", True),
            allow_review=row.get("allow_review", True),
            is_published=row.get("is_published", True),
            is_active=row.get("is_active", True),
        )


class AccessState(str, Enum):
    UPCOMING = "upcoming"
    LOGIN_WINDOW_OPEN = "login_window_open"
    ACTIVE = "active"
    ENDED = "ended"
