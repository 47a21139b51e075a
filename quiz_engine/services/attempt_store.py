"""Typed access to quiz, question, attempt and answer records."""
import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from quiz_engine.database import Database
from quiz_engine.exceptions import NotFoundError, StoreUnavailableError
from quiz_engine.models import Answer, Attempt, AttemptStatus, Question, Quiz
from quiz_engine.utils.time_utils import to_iso

logger = logging.getLogger(__name__)

QUIZZES = "quizzes"
QUESTIONS = "quiz_questions"
OPTIONS = "quiz_options"
ATTEMPTS = "quiz_attempts"
ANSWERS = "quiz_answers"
PROFILES = "profiles"

ANSWER_KEY = "attempt_id,question_id"


class AttemptStore:
    def __init__(self, database: Database):
        self.db = database

    # Quizzes and questions

    def get_quiz(self, quiz_id: str) -> Quiz:
        rows = self.db.select(QUIZZES, "*", {"id": quiz_id})
        if not rows:
            raise NotFoundError("Quiz", quiz_id)
        return Quiz.from_row(rows[0])

    def list_questions(self, quiz_id: str) -> List[Question]:
        """Questions of a quiz with their options, in ordinal order"""
        rows = self.db.select(QUESTIONS, "*", {"quiz_id": quiz_id}, order_by="question_number")
        if not rows:
            return []
        option_rows = self.db.select(OPTIONS, "*", in_filters={"question_id": [r["id"] for r in rows]})
        options_by_question = defaultdict(list)
        for option in option_rows:
            options_by_question[str(option["question_id"])].append(option)
        questions = [Question.from_row(r, options_by_question[str(r["id"])]) for r in rows]
        return sorted(questions, key=lambda q: q.ordinal)

    def get_question(self, question_id: str) -> Question:
        rows = self.db.select(QUESTIONS, "*", {"id": question_id})
        if not rows:
            raise NotFoundError("Question", question_id)
        options = self.db.select(OPTIONS, "*", {"question_id": question_id})
        return Question.from_row(rows[0], options)

    # Attempts

    def get_attempt(self, attempt_id: str) -> Attempt:
        rows = self.db.select(ATTEMPTS, "*", {"id": attempt_id})
        if not rows:
            raise NotFoundError("Attempt", attempt_id)
        return Attempt.from_row(rows[0])

    def list_attempts(self, quiz_id: str, user_id: Optional[str] = None,
                      statuses: Optional[Iterable[AttemptStatus]] = None) -> List[Attempt]:
        filters = {"quiz_id": quiz_id}
        if user_id is not None:
            filters["user_id"] = user_id
        in_filters = None
        if statuses is not None:
            in_filters = {"status": [AttemptStatus(s).value for s in statuses]}
        rows = self.db.select(ATTEMPTS, "*", filters, in_filters=in_filters)
        return [Attempt.from_row(r) for r in rows]

    def find_in_progress(self, quiz_id: str, user_id: str) -> Optional[Attempt]:
        attempts = self.list_attempts(quiz_id, user_id, [AttemptStatus.IN_PROGRESS])
        if len(attempts) > 1:
            logger.warning(f"User {user_id} has {len(attempts)} in-progress attempts on quiz {quiz_id}")
        return min(attempts, key=lambda a: a.started_at) if attempts else None

    def list_terminal(self, quiz_id: str, user_id: Optional[str] = None) -> List[Attempt]:
        return self.list_attempts(quiz_id, user_id,
                                  [AttemptStatus.SUBMITTED, AttemptStatus.AUTO_SUBMITTED])

    def latest_terminal(self, quiz_id: str, user_id: str) -> Optional[Attempt]:
        attempts = self.list_terminal(quiz_id, user_id)
        return max(attempts, key=lambda a: a.submitted_at or a.started_at) if attempts else None

    def create_attempt(self, quiz_id: str, user_id: str, attempt_number: int,
                       started_at: datetime) -> Attempt:
        row = self.db.insert(ATTEMPTS, {
            "quiz_id": quiz_id,
            "user_id": user_id,
            "attempt_number": attempt_number,
            "status": AttemptStatus.IN_PROGRESS.value,
            "started_at": to_iso(started_at),
        })
        if not row:
            raise StoreUnavailableError("insert", ATTEMPTS, "no row returned")
        return Attempt.from_row(row)

    def mark_terminal(self, attempt_id: str, status: AttemptStatus, submitted_at: datetime,
                      time_remaining_seconds: int) -> Optional[Attempt]:
        """Move an attempt out of IN_PROGRESS.

        Conditional on the row still being in progress; returns None when
        nothing was updated.
        """
        row = self.db.update(ATTEMPTS, {
            "status": status.value,
            "submitted_at": to_iso(submitted_at),
            "time_remaining_seconds": time_remaining_seconds,
        }, {"id": attempt_id, "status": AttemptStatus.IN_PROGRESS.value})
        return Attempt.from_row(row) if row else None

    def write_scores(self, attempt_id: str, total_questions: int, correct_answers: int,
                     total_points: int, score_percentage: float) -> Optional[Attempt]:
        row = self.db.update(ATTEMPTS, {
            "total_questions": total_questions,
            "correct_answers": correct_answers,
            "total_points": total_points,
            "score_percentage": score_percentage,
        }, {"id": attempt_id})
        if not row:
            raise StoreUnavailableError("update", ATTEMPTS, f"scores for {attempt_id} not persisted")
        return Attempt.from_row(row)

    # Answers

    def list_answers(self, attempt_id: str) -> List[Answer]:
        rows = self.db.select(ANSWERS, "*", {"attempt_id": attempt_id})
        return [Answer.from_row(r) for r in rows]

    def list_answers_for_questions(self, question_ids: List[str]) -> List[Answer]:
        if not question_ids:
            return []
        rows = self.db.select(ANSWERS, "*", in_filters={"question_id": question_ids})
        return [Answer.from_row(r) for r in rows]

    def upsert_answer(self, attempt_id: str, question_id: str, selected_option_id: Optional[str],
                      answered_at: datetime) -> Optional[Answer]:
        row = self.db.upsert(ANSWERS, {
            "attempt_id": attempt_id,
            "question_id": question_id,
            "selected_option_id": selected_option_id,
            "answered_at": to_iso(answered_at),
        }, on_conflict=ANSWER_KEY)
        return Answer.from_row(row) if row else None

    def delete_answer(self, attempt_id: str, question_id: str) -> int:
        return len(self.db.delete(ANSWERS, {"attempt_id": attempt_id, "question_id": question_id}))

    def record_answer_score(self, answer: Answer, is_correct: bool, points_earned: int) -> None:
        self.db.update(ANSWERS, {"is_correct": is_correct, "points_earned": points_earned},
                       {"attempt_id": answer.attempt_id, "question_id": answer.question_id})

    def insert_unanswered(self, attempt_id: str, question_id: str, answered_at: datetime) -> None:
        """Zero-value row for a question the learner never answered"""
        self.db.upsert(ANSWERS, {
            "attempt_id": attempt_id,
            "question_id": question_id,
            "selected_option_id": None,
            "answer_text": None,
            "is_correct": False,
            "points_earned": 0,
            "answered_at": to_iso(answered_at),
        }, on_conflict=ANSWER_KEY)

    # Profiles

    def get_profiles(self, user_ids: Iterable[str]) -> Dict[str, dict]:
        user_ids = list(set(user_ids))
        if not user_ids:
            return {}
        rows = self.db.select(PROFILES, "id,full_name,username,avatar_url,is_admin",
                              in_filters={"id": user_ids})
        return {str(r["id"]): r for r in rows}
