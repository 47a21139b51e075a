"""Scoring of submitted attempts.

Percentages are over question *count*, not points: an attempt with 3 of 5
questions right scores 60.0 whatever the questions were worth.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Tuple

from quiz_engine.exceptions import AccessDeniedError, AccessDeniedReason, ScoringInconsistencyError
from quiz_engine.models import (
    Answer, Attempt, AttemptReview, Question, QuestionOutcome, ReviewQuestion, ScoredResult,
)
from quiz_engine.services.attempt_store import AttemptStore
from quiz_engine.utils.time_utils import Clock

logger = logging.getLogger(__name__)

GRADE_BANDS = ((90, "A"), (80, "B"), (70, "C"), (60, "D"))


def score_percentage(correct_answers: int, total_questions: int) -> float:
    """Share of questions answered correctly, rounded half-up to one decimal"""
    if total_questions <= 0:
        return 0.0
    raw = Decimal(correct_answers) * 100 / Decimal(total_questions)
    return float(raw.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def grade_for(percentage: float) -> str:
    for threshold, grade in GRADE_BANDS:
        if percentage >= threshold:
            return grade
    return "F"


def evaluate_question(question: Question, answer: Optional[Answer]) -> QuestionOutcome:
    correct = question.correct_option()
    selected = answer.selected_option_id if answer else None
    is_correct = bool(selected is not None and correct is not None and selected == correct.id)
    return QuestionOutcome(
        question_id=question.id,
        ordinal=question.ordinal,
        selected_option_id=selected,
        correct_option_id=correct.id if correct else None,
        is_correct=is_correct,
        points_earned=question.points if is_correct else 0,
        points=question.points,
    )


def integrity_warnings(questions: List[Question]) -> List[str]:
    warnings = []
    for question in questions:
        for issue in question.integrity_issues():
            error = ScoringInconsistencyError(question.id, issue)
            logger.warning(f"Data integrity: {error}")
            warnings.append(str(error))
    return warnings


def build_result(attempt: Attempt, questions: List[Question],
                 answers: Dict[str, Answer]) -> Tuple[ScoredResult, List[QuestionOutcome]]:
    """Pure evaluation of an attempt against the quiz's answer key"""
    outcomes = [evaluate_question(q, answers.get(q.id)) for q in sorted(questions, key=lambda q: q.ordinal)]
    total_questions = len(outcomes)
    correct_answers = sum(1 for o in outcomes if o.is_correct)
    percentage = score_percentage(correct_answers, total_questions)
    result = ScoredResult(
        attempt_id=attempt.id,
        quiz_id=attempt.quiz_id,
        user_id=attempt.user_id,
        status=attempt.status,
        submitted_at=attempt.submitted_at,
        time_remaining_seconds=attempt.time_remaining_seconds,
        total_questions=total_questions,
        correct_answers=correct_answers,
        total_points=sum(o.points_earned for o in outcomes),
        max_points=sum(q.points for q in questions),
        score_percentage=percentage,
        grade=grade_for(percentage),
        outcomes=outcomes,
    )
    return result, outcomes


class ScoringEngine:
    def __init__(self, store: AttemptStore, clock: Clock):
        self.store = store
        self.clock = clock

    def score(self, attempt_id: str) -> ScoredResult:
        """Score an attempt and persist per-answer and aggregate results.

        Idempotent: the outcome depends only on the quiz and the stored
        answers, so re-running it rewrites identical values. After it returns
        every question has exactly one answer row.
        """
        attempt = self.store.get_attempt(attempt_id)
        questions = self.store.list_questions(attempt.quiz_id)
        answers = {a.question_id: a for a in self.store.list_answers(attempt_id)}

        warnings = integrity_warnings(questions)
        result, outcomes = build_result(attempt, questions, answers)

        now = self.clock.now()
        for outcome in outcomes:
            answer = answers.get(outcome.question_id)
            if answer is None:
                self.store.insert_unanswered(attempt_id, outcome.question_id, now)
            else:
                self.store.record_answer_score(answer, outcome.is_correct, outcome.points_earned)

        updated = self.store.write_scores(
            attempt_id,
            total_questions=result.total_questions,
            correct_answers=result.correct_answers,
            total_points=result.total_points,
            score_percentage=result.score_percentage,
        )
        result.status = updated.status
        result.submitted_at = updated.submitted_at
        result.time_remaining_seconds = updated.time_remaining_seconds
        result.warnings = warnings

        logger.info(f"Scored attempt {attempt_id}: {result.correct_answers}/{result.total_questions} "
                    f"correct, {result.total_points} points, {result.score_percentage}%")
        return result

    def review(self, attempt_id: str, user_id: Optional[str] = None) -> AttemptReview:
        """Post-submission view, shaped by the quiz's visibility flags"""
        attempt = self.store.get_attempt(attempt_id)
        if user_id is not None and attempt.user_id != user_id:
            raise AccessDeniedError(AccessDeniedReason.NOT_OWNER)
        if not attempt.is_terminal:
            raise AccessDeniedError(AccessDeniedReason.CONTENT_LOCKED,
                                    "Review is available after submission.")

        quiz = self.store.get_quiz(attempt.quiz_id)
        review = AttemptReview(attempt_id=attempt.id, quiz_title=quiz.title)
        if not quiz.show_results_immediately:
            review.pending = True
            return review

        questions = self.store.list_questions(attempt.quiz_id)
        answers = {a.question_id: a for a in self.store.list_answers(attempt_id)}
        result, outcomes = build_result(attempt, questions, answers)
        if not quiz.show_correct_answers:
            for outcome in result.outcomes:
                outcome.correct_option_id = None
        review.result = result
        if not quiz.allow_review:
            return review

        by_id = {q.id: q for q in questions}
        for outcome in outcomes:
            question = by_id[outcome.question_id]
            reveal = quiz.show_correct_answers
            review.questions.append(ReviewQuestion(
                question=question.public_view(reveal_answers=reveal),
                selected_option_id=outcome.selected_option_id,
                is_correct=outcome.is_correct,
                points_earned=outcome.points_earned,
                correct_option_id=outcome.correct_option_id if reveal else None,
                explanation=question.explanation,
            ))
        return review
