"""Lifecycle of a learner's attempt at a quiz.

    LOCKED --password--> GATED_WAIT --start_time--> ACTIVE --submit--> SUBMITTED
                 \\____________________________/        \\--time up--> AUTO_SUBMITTED

Phase and remaining time are always derived from persisted ``started_at``
and the quiz's ``start_time`` against the injected clock; nothing here
trusts a client countdown. Terminal attempts are never modified again
except for (idempotent) rescoring.
"""
import logging
import secrets
import time
from datetime import datetime
from typing import Optional

from quiz_engine.config import settings
from quiz_engine.exceptions import (
    AccessDeniedError, AccessDeniedReason, AttemptClosedError, AuthError, NotFoundError,
    StoreUnavailableError,
)
from quiz_engine.models import (
    AccessState, Attempt, AttemptPhase, AttemptStatus, Quiz, ResumeKind, ResumeState,
    ScoredResult, SubmissionReason,
)
from quiz_engine.services import time_window
from quiz_engine.services.attempt_store import ATTEMPTS, AttemptStore
from quiz_engine.services.autosave import AutosaveChannel
from quiz_engine.services.scoring import ScoringEngine
from quiz_engine.utils.time_utils import Clock

logger = logging.getLogger(__name__)

DENIED_BY_ACCESS = {
    AccessState.UPCOMING: AccessDeniedReason.NOT_YET_OPEN,
    AccessState.ENDED: AccessDeniedReason.ENDED,
}


def terminal_phase(attempt: Attempt) -> AttemptPhase:
    if attempt.status == AttemptStatus.AUTO_SUBMITTED:
        return AttemptPhase.AUTO_SUBMITTED
    return AttemptPhase.SUBMITTED


def live_phase(quiz: Quiz, attempt: Attempt, now: datetime):
    """Phase of an attempt plus the relevant countdown value.

    Returns ``(phase, seconds_remaining, seconds_until_start)``.
    """
    if attempt.is_terminal:
        return terminal_phase(attempt), attempt.time_remaining_seconds, None
    if not time_window.content_released(quiz, now):
        return AttemptPhase.GATED_WAIT, None, time_window.seconds_until_start(quiz, now)
    return AttemptPhase.ACTIVE, time_window.time_remaining(quiz, attempt.started_at, now), None


class AttemptStateMachine:
    def __init__(self, store: AttemptStore, clock: Clock, scoring: ScoringEngine,
                 autosave: Optional[AutosaveChannel] = None,
                 submit_retries: int = settings.submit_retries,
                 backoff_seconds: float = settings.retry_backoff_seconds):
        self.store = store
        self.clock = clock
        self.scoring = scoring
        self.autosave = autosave
        self.submit_retries = submit_retries
        self.backoff_seconds = backoff_seconds
        if autosave is not None:
            autosave.on_expired = self.expire

    def _open_quiz(self, quiz_id: str) -> Quiz:
        quiz = self.store.get_quiz(quiz_id)
        if not (quiz.is_published and quiz.is_active):
            raise NotFoundError("Quiz", quiz_id)
        return quiz

    def _owned_attempt(self, attempt_id: str, user_id: Optional[str]) -> Attempt:
        attempt = self.store.get_attempt(attempt_id)
        if user_id is not None and attempt.user_id != user_id:
            raise AccessDeniedError(AccessDeniedReason.NOT_OWNER)
        return attempt

    def evaluate_access(self, quiz_id: str) -> AccessState:
        return time_window.evaluate_access(self._open_quiz(quiz_id), self.clock.now())

    def resume_state(self, quiz: Quiz, attempt: Attempt, now: datetime) -> ResumeState:
        phase, remaining, until_start = live_phase(quiz, attempt, now)
        return ResumeState(
            kind=ResumeKind.TERMINAL if attempt.is_terminal else ResumeKind.IN_PROGRESS,
            phase=phase,
            access=time_window.evaluate_access(quiz, now),
            attempt=attempt,
            seconds_remaining=remaining,
            seconds_until_start=until_start,
            instructions=quiz.instructions if phase == AttemptPhase.GATED_WAIT else None,
        )

    def get_or_resume_attempt(self, quiz_id: str, user_id: str) -> ResumeState:
        """Recompute where the learner stands on this quiz.

        An in-progress attempt is restored into GATED_WAIT or ACTIVE (and
        auto-submitted if its time ran out while the learner was away). With
        no in-progress attempt, a completed one routes to results; otherwise
        the learner is LOCKED at the password gate.
        """
        quiz = self.store.get_quiz(quiz_id)
        now = self.clock.now()

        attempt = self.store.find_in_progress(quiz_id, user_id)
        if attempt is not None:
            phase, remaining, _ = live_phase(quiz, attempt, now)
            if phase == AttemptPhase.ACTIVE and remaining <= 0:
                logger.info(f"Attempt {attempt.id} expired while away, auto-submitting")
                self.expire(attempt.id)
                attempt = self.store.get_attempt(attempt.id)
            return self.resume_state(quiz, attempt, now)

        completed = self.store.latest_terminal(quiz_id, user_id)
        if completed is not None:
            return self.resume_state(quiz, completed, now)

        return ResumeState(
            kind=ResumeKind.NONE,
            phase=AttemptPhase.LOCKED,
            access=time_window.evaluate_access(quiz, now),
        )

    def open_quiz(self, quiz_id: str, user_id: str) -> ResumeState:
        """Entry point when a learner opens the quiz page"""
        quiz = self._open_quiz(quiz_id)
        state = self.get_or_resume_attempt(quiz_id, user_id)
        if state.kind != ResumeKind.NONE:
            return state
        if state.access in DENIED_BY_ACCESS:
            raise AccessDeniedError(DENIED_BY_ACCESS[state.access])
        state.instructions = quiz.instructions
        return state

    def authenticate(self, quiz_id: str, user_id: str, password: str) -> Attempt:
        """Pass the password gate and create the learner's attempt.

        An existing in-progress attempt is returned without re-checking the
        password. Nothing is written when any check fails.
        """
        quiz = self._open_quiz(quiz_id)

        existing = self.store.find_in_progress(quiz_id, user_id)
        if existing is not None:
            return existing

        completed = self.store.list_terminal(quiz_id, user_id)
        if len(completed) >= quiz.max_attempts:
            raise AccessDeniedError(AccessDeniedReason.ATTEMPT_LIMIT_REACHED)

        now = self.clock.now()
        access = time_window.evaluate_access(quiz, now)
        if access in DENIED_BY_ACCESS:
            raise AccessDeniedError(DENIED_BY_ACCESS[access])

        if not secrets.compare_digest((password or "").encode(), quiz.password.encode()):
            logger.info(f"Wrong password for quiz {quiz_id} from user {user_id}")
            raise AuthError()

        attempt = self.store.create_attempt(quiz_id, user_id, len(completed) + 1, now)
        logger.info(f"Attempt {attempt.id} started on quiz {quiz_id} by user {user_id} ({access.value})")
        return attempt

    def get_questions(self, attempt_id: str, user_id: Optional[str] = None) -> dict:
        """Question content for an ACTIVE attempt"""
        attempt = self._owned_attempt(attempt_id, user_id)
        if attempt.is_terminal:
            raise AttemptClosedError(attempt_id)

        quiz = self.store.get_quiz(attempt.quiz_id)
        now = self.clock.now()
        phase, remaining, until_start = live_phase(quiz, attempt, now)
        if phase == AttemptPhase.GATED_WAIT:
            raise AccessDeniedError(
                AccessDeniedReason.CONTENT_LOCKED,
                f"Questions are released in {until_start} seconds.",
            )
        if remaining <= 0:
            self.expire(attempt_id)
            raise AttemptClosedError(attempt_id)

        questions = self.store.list_questions(attempt.quiz_id)
        if self.autosave is not None:
            selections = self.autosave.saved_answers(attempt_id)
        else:
            selections = {a.question_id: a.selected_option_id
                          for a in self.store.list_answers(attempt_id)
                          if a.selected_option_id is not None}
        return {
            "attempt": attempt,
            "phase": phase,
            "seconds_remaining": remaining,
            "questions": [q.public_view() for q in questions],
            "answers": selections,
        }

    def _write_terminal(self, attempt: Attempt, status: AttemptStatus, submitted_at: datetime,
                        remaining: int) -> Attempt:
        """Persist the terminal transition, retrying the whole write.

        The write only applies to a row still in progress, so a competing
        submission from another tab is detected instead of overwritten.
        """
        for attempt_no in range(self.submit_retries + 1):
            try:
                updated = self.store.mark_terminal(attempt.id, status, submitted_at, remaining)
                if updated is not None:
                    return updated
                current = self.store.get_attempt(attempt.id)
                if current.is_terminal:
                    logger.info(f"Attempt {attempt.id} was already submitted elsewhere")
                    return current
                logger.warning(f"Submission of attempt {attempt.id} not persisted "
                               f"(attempt {attempt_no + 1})")
            except StoreUnavailableError as e:
                logger.warning(f"Submission of attempt {attempt.id} failed "
                               f"(attempt {attempt_no + 1}): {e}")
            if attempt_no < self.submit_retries:
                time.sleep(self.backoff_seconds * (attempt_no + 1))
        raise StoreUnavailableError("update", ATTEMPTS, f"submission of {attempt.id} not persisted")

    def submit(self, attempt_id: str, reason: SubmissionReason = SubmissionReason.MANUAL,
               user_id: Optional[str] = None) -> ScoredResult:
        """Finish an attempt and score it.

        Safe to call again with the same attempt: a terminal attempt keeps
        its status and submission time and is simply rescored. The stored
        status follows the server-computed remaining time, so ``reason`` only
        records what triggered the call.
        """
        attempt = self._owned_attempt(attempt_id, user_id)
        if attempt.is_terminal:
            return self.scoring.score(attempt_id)

        quiz = self.store.get_quiz(attempt.quiz_id)
        submitted_at = self.clock.now()
        if not time_window.content_released(quiz, submitted_at):
            raise AccessDeniedError(AccessDeniedReason.CONTENT_LOCKED,
                                    "The quiz has not started yet.")

        # the server clock decides expiry, whatever the caller claims
        remaining = time_window.time_remaining(quiz, attempt.started_at, submitted_at)
        if remaining > 0:
            if reason == SubmissionReason.TIME_EXPIRED:
                logger.warning(f"Attempt {attempt_id} reported expired with {remaining}s left, "
                               "recording a manual submission")
            reason = SubmissionReason.MANUAL
        else:
            reason = SubmissionReason.TIME_EXPIRED

        updated = self._write_terminal(attempt, reason.status, submitted_at, remaining)
        if self.autosave is not None:
            self.autosave.forget(attempt_id)
        logger.info(f"Attempt {attempt_id} {updated.status.value} with {updated.time_remaining_seconds}s left")
        return self.scoring.score(attempt_id)

    def expire(self, attempt_id: str) -> ScoredResult:
        """Auto-submit an attempt whose time has run out"""
        return self.submit(attempt_id, SubmissionReason.TIME_EXPIRED)

    def countdown(self, attempt_id: str):
        """Current ``(phase, seconds)`` for an attempt's timer"""
        attempt = self.store.get_attempt(attempt_id)
        quiz = self.store.get_quiz(attempt.quiz_id)
        phase, remaining, until_start = live_phase(quiz, attempt, self.clock.now())
        if phase == AttemptPhase.GATED_WAIT:
            return phase, until_start
        return phase, remaining
