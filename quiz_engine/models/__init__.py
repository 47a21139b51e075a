from .quiz import Quiz, QuizMode, AccessState
from .question import Question, Option, QuestionType
from .attempt import Attempt, AttemptStatus, AttemptPhase, SubmissionReason
from .answer import Answer
from .results import (
    ResumeKind, ResumeState, QuestionOutcome, ScoredResult, ReviewQuestion,
    AttemptReview, LeaderboardEntry, QuizStats, QuestionAnalysis,
)

__all__ = [
    "Quiz", "QuizMode", "AccessState", "Question", "Option", "QuestionType",
    "Attempt", "AttemptStatus", "AttemptPhase", "SubmissionReason", "Answer",
    "ResumeKind", "ResumeState", "QuestionOutcome", "ScoredResult", "ReviewQuestion",
    "AttemptReview", "LeaderboardEntry", "QuizStats", "QuestionAnalysis",
]
