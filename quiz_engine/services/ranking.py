"""Leaderboards and result analytics for a quiz.

Ranks are never stored: they are recomputed from completed attempts on
every read. Order is score percentage descending, then earlier submission,
then attempt id so that the order is total.
"""
import csv
import io
import logging
from collections import defaultdict
from typing import List, Optional

from quiz_engine.models import Attempt, LeaderboardEntry, QuestionAnalysis, QuizStats
from quiz_engine.services.attempt_store import AttemptStore
from quiz_engine.utils.time_utils import format_time_for_display

logger = logging.getLogger(__name__)

CSV_HEADER = ["Rank", "Name", "Username", "Score (%)", "Correct", "Total Questions",
              "Points", "Submitted At (IST)"]


def ranking_key(attempt: Attempt):
    return (-attempt.score_percentage, attempt.submitted_at, attempt.id)


def rank_attempts(attempts: List[Attempt]) -> List[Attempt]:
    """Completed, scored attempts in leaderboard order"""
    ranked = []
    for attempt in attempts:
        if not attempt.is_terminal:
            continue
        if attempt.score_percentage is None or attempt.submitted_at is None:
            logger.warning(f"Attempt {attempt.id} is submitted but not scored; left off the leaderboard")
            continue
        ranked.append(attempt)
    return sorted(ranked, key=ranking_key)


class RankingAggregator:
    def __init__(self, store: AttemptStore):
        self.store = store

    def _ranked(self, quiz_id: str) -> List[Attempt]:
        return rank_attempts(self.store.list_terminal(quiz_id))

    def get_leaderboard(self, quiz_id: str, limit: Optional[int] = None) -> List[LeaderboardEntry]:
        ranked = self._ranked(quiz_id)
        if limit:
            ranked = ranked[:limit]
        profiles = self.store.get_profiles(a.user_id for a in ranked)

        leaderboard = []
        for position, attempt in enumerate(ranked, start=1):
            profile = profiles.get(attempt.user_id, {})
            leaderboard.append(LeaderboardEntry(
                rank=position,
                attempt_id=attempt.id,
                user_id=attempt.user_id,
                full_name=profile.get("full_name"),
                username=profile.get("username"),
                avatar_url=profile.get("avatar_url"),
                score_percentage=attempt.score_percentage,
                total_points=attempt.total_points or 0,
                correct_answers=attempt.correct_answers or 0,
                total_questions=attempt.total_questions or 0,
                submitted_at=attempt.submitted_at,
                time_remaining_seconds=attempt.time_remaining_seconds,
            ))
        return leaderboard

    def get_rank(self, quiz_id: str, user_id: str) -> Optional[int]:
        """1-based rank of the learner's latest completed attempt"""
        latest = self.store.latest_terminal(quiz_id, user_id)
        if latest is None:
            return None
        for position, attempt in enumerate(self._ranked(quiz_id), start=1):
            if attempt.id == latest.id:
                return position
        return None

    def quiz_stats(self, quiz_id: str) -> QuizStats:
        ranked = self._ranked(quiz_id)
        if not ranked:
            return QuizStats()

        quiz = self.store.get_quiz(quiz_id)
        scores = [a.score_percentage for a in ranked]
        time_taken = [quiz.duration_seconds - (a.time_remaining_seconds or 0) for a in ranked]
        return QuizStats(
            completed_attempts=len(ranked),
            average_score=round(sum(scores) / len(scores), 1),
            highest_score=max(scores),
            lowest_score=min(scores),
            average_time_taken_seconds=round(sum(time_taken) / len(time_taken), 1),
        )

    def question_analysis(self, quiz_id: str) -> List[QuestionAnalysis]:
        """Accuracy per question over scored answers"""
        questions = self.store.list_questions(quiz_id)
        answers = self.store.list_answers_for_questions([q.id for q in questions])

        scored = defaultdict(int)
        correct = defaultdict(int)
        for answer in answers:
            if not answer.is_scored:
                continue
            scored[answer.question_id] += 1
            if answer.is_correct:
                correct[answer.question_id] += 1

        analysis = []
        for question in questions:
            total = scored[question.id]
            right = correct[question.id]
            analysis.append(QuestionAnalysis(
                question_id=question.id,
                ordinal=question.ordinal,
                question_text=question.text,
                points=question.points,
                total_attempts=total,
                correct_attempts=right,
                accuracy_percentage=round(right / total * 100, 1) if total else 0.0,
            ))
        return analysis

    def export_csv(self, quiz_id: str) -> str:
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(CSV_HEADER)
        for entry in self.get_leaderboard(quiz_id):
            writer.writerow([
                entry.rank,
                entry.full_name or "",
                entry.username or "",
                f"{entry.score_percentage:.1f}",
                entry.correct_answers,
                entry.total_questions,
                entry.total_points,
                format_time_for_display(entry.submitted_at),
            ])
        return output.getvalue()
