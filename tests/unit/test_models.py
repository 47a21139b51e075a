from datetime import datetime

import pytest
from pydantic import ValidationError

from quiz_engine.models import Attempt, AttemptStatus, Question, Quiz, QuizMode, SubmissionReason
from quiz_engine.utils.time_utils import IST, format_countdown, parse_ist
from tests.conftest import T0


class TestQuizModel:

    def test_from_row_converts_minutes(self):
        quiz = Quiz.from_row({
            "id": 7, "title": "Networks", "quiz_type": "live", "duration_minutes": 30,
            "login_window_minutes": 15, "start_time": "2025-03-10T04:30:00Z",
            "password": "pw",
        })
        assert quiz.id == "7"
        assert quiz.mode == QuizMode.LIVE
        assert quiz.duration_seconds == 1800
        assert quiz.login_window_seconds == 900
        assert quiz.start_time == T0

    def test_missing_login_window_uses_default(self):
        quiz = Quiz.from_row({"id": "q", "title": "t", "quiz_type": "live", "duration_minutes": 10,
                              "start_time": T0.isoformat(), "login_window_minutes": None})
        assert quiz.login_window_seconds == 600

    def test_live_requires_start_time(self):
        with pytest.raises(ValidationError):
            Quiz(id="q", title="t", mode=QuizMode.LIVE, duration_seconds=60)


class TestQuestionModel:

    def _question(self, correct_letters, count=4, question_type="multiple_choice"):
        options = [
            {"id": f"o{i}", "question_id": "q1", "option_letter": "", "is_correct": letter in correct_letters}
            for i, letter in enumerate("ABCD"[:count])
        ]
        return Question.from_row({"id": "q1", "quiz_id": "z", "question_number": 1,
                                  "question_type": question_type, "points": 2}, options)

    def test_letters_assigned_by_position(self):
        question = self._question("B")
        assert [o.letter for o in question.options] == ["A", "B", "C", "D"]
        assert question.correct_option().id == "o1"

    def test_integrity_issues(self):
        assert self._question("B").integrity_issues() == []
        assert "no option is marked correct" in self._question("").integrity_issues()
        assert any("expects 2 options" in i for i in self._question("A", 4, "true_false").integrity_issues())
        assert any("2 options are marked correct" in i for i in self._question("AB").integrity_issues())

    def test_short_answer_has_no_correct_option(self):
        question = self._question("", count=0, question_type="short_answer")
        assert question.correct_option() is None
        assert question.integrity_issues() == []

    def test_public_view_hides_correctness(self):
        view = self._question("B").public_view()
        assert all("is_correct" not in o for o in view["options"])
        assert "explanation" not in view


class TestAttemptModel:

    def test_terminal_statuses(self):
        assert not AttemptStatus.IN_PROGRESS.is_terminal
        assert AttemptStatus.SUBMITTED.is_terminal
        assert SubmissionReason.TIME_EXPIRED.status == AttemptStatus.AUTO_SUBMITTED

    def test_from_row_parses_timestamps(self):
        attempt = Attempt.from_row({"id": 1, "quiz_id": "z", "user_id": "u",
                                    "status": "in_progress", "started_at": "2025-03-10T10:00:00"})
        assert attempt.started_at == T0
        assert not attempt.is_terminal


class TestTimeUtils:

    def test_parse_ist_variants(self):
        assert parse_ist("2025-03-10T04:30:00Z") == T0
        assert parse_ist(datetime(2025, 3, 10, 10, 0)) == T0
        assert parse_ist(None) is None
        assert parse_ist(T0).utcoffset() == IST.localize(datetime(2025, 1, 1)).utcoffset()

    def test_format_countdown(self):
        assert format_countdown(125) == "02:05"
        assert format_countdown(-3) == "00:00"
