from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from quiz_engine.models.attempt import Attempt, AttemptPhase, AttemptStatus
from quiz_engine.models.quiz import AccessState


class ResumeKind(str, Enum):
    NONE = "none"
    IN_PROGRESS = "in_progress"
    TERMINAL = "terminal"


class ResumeState(BaseModel):
    """Where a learner lands when (re)opening a quiz"""
    kind: ResumeKind
    phase: AttemptPhase
    access: AccessState
    attempt: Optional[Attempt] = None
    seconds_remaining: Optional[int] = None
    seconds_until_start: Optional[int] = None
    instructions: Optional[str] = None


class QuestionOutcome(BaseModel):
    question_id: str
    ordinal: int
    selected_option_id: Optional[str] = None
    correct_option_id: Optional[str] = None
    is_correct: bool = False
    points_earned: int = 0
    points: int = 0


class ScoredResult(BaseModel):
    attempt_id: str
    quiz_id: str
    user_id: str
    status: AttemptStatus
    submitted_at: Optional[datetime] = None
    time_remaining_seconds: Optional[int] = None
    total_questions: int
    correct_answers: int
    total_points: int
    max_points: int
    score_percentage: float
    grade: str
    outcomes: List[QuestionOutcome] = []
    warnings: List[str] = []


class ReviewQuestion(BaseModel):
    question: dict
    selected_option_id: Optional[str] = None
    is_correct: bool = False
    points_earned: int = 0
    correct_option_id: Optional[str] = None
    explanation: Optional[str] = None


class AttemptReview(BaseModel):
    attempt_id: str
    quiz_title: str
    pending: bool = False
    result: Optional[ScoredResult] = None
    questions: List[ReviewQuestion] = []


class LeaderboardEntry(BaseModel):
    rank: int
    attempt_id: str
    user_id: str
    full_name: Optional[str] = None
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    score_percentage: float
    total_points: int
    correct_answers: int
    total_questions: int
    submitted_at: datetime
    time_remaining_seconds: Optional[int] = None


class QuizStats(BaseModel):
    completed_attempts: int = 0
    average_score: float = 0.0
    highest_score: float = 0.0
    lowest_score: float = 0.0
    average_time_taken_seconds: float = 0.0


class QuestionAnalysis(BaseModel):
    question_id: str
    ordinal: int
    question_text: str
    points: int
    total_attempts: int
    correct_attempts: int
    accuracy_percentage: float
