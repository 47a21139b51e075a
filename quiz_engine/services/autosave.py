"""Incremental answer persistence while an attempt is in progress.

Writes are last-write-wins upserts keyed by (attempt_id, question_id). The
in-memory selection is updated before persistence is tried, and a failed
write never blocks navigation: it is retried a few times, logged, and
counted. Until the next successful write the stored answer may be stale;
scoring treats any question without a row as unanswered.
"""
import logging
import time
from typing import Callable, Dict, Optional

from pydantic import BaseModel

from quiz_engine.config import settings
from quiz_engine.exceptions import (
    AccessDeniedError, AccessDeniedReason, AttemptClosedError, StoreUnavailableError,
)
from quiz_engine.services import time_window
from quiz_engine.services.attempt_store import AttemptStore
from quiz_engine.utils.time_utils import Clock

logger = logging.getLogger(__name__)


class SaveOutcome(BaseModel):
    attempt_id: str
    question_id: str
    selected_option_id: Optional[str] = None
    persisted: bool
    consecutive_failures: int = 0
    warning: Optional[str] = None


class AutosaveChannel:
    def __init__(self, store: AttemptStore, clock: Clock,
                 retries: int = settings.autosave_retries,
                 warning_threshold: int = settings.autosave_warning_threshold,
                 backoff_seconds: float = settings.retry_backoff_seconds,
                 on_expired: Optional[Callable[[str], object]] = None):
        self.store = store
        self.clock = clock
        self.retries = retries
        self.warning_threshold = warning_threshold
        self.backoff_seconds = backoff_seconds
        # auto-submits an attempt found out of time on the write path
        self.on_expired = on_expired
        self._selections: Dict[str, Dict[str, Optional[str]]] = {}
        self._failures: Dict[str, int] = {}

    def _check_writable(self, attempt_id: str, question_id: str, option_id: Optional[str],
                        user_id: Optional[str]):
        attempt = self.store.get_attempt(attempt_id)
        if user_id is not None and attempt.user_id != user_id:
            raise AccessDeniedError(AccessDeniedReason.NOT_OWNER)
        if attempt.is_terminal:
            raise AttemptClosedError(attempt_id)
        self._check_window(attempt)
        question = self.store.get_question(question_id)
        if question.quiz_id != attempt.quiz_id:
            raise ValueError(f"Question {question_id} is not part of this quiz")
        if option_id is not None and not question.has_option(option_id):
            raise ValueError(f"Option {option_id} does not belong to question {question_id}")

    def _check_window(self, attempt):
        """Writes are accepted only while the attempt's clock is running"""
        quiz = self.store.get_quiz(attempt.quiz_id)
        now = self.clock.now()
        if not time_window.content_released(quiz, now):
            raise AccessDeniedError(AccessDeniedReason.CONTENT_LOCKED)
        if time_window.time_remaining(quiz, attempt.started_at, now) > 0:
            return

        logger.info(f"Answer write for attempt {attempt.id} after time ran out")
        if self.on_expired is not None:
            try:
                self.on_expired(attempt.id)
            except StoreUnavailableError as e:
                logger.warning(f"Could not auto-submit attempt {attempt.id}: {e}")
        raise AttemptClosedError(attempt.id)

    def _persist(self, attempt_id: str, question_id: str, write) -> bool:
        for attempt in range(self.retries + 1):
            try:
                write()
                return True
            except StoreUnavailableError as e:
                logger.warning(f"Autosave failed for attempt {attempt_id}, question {question_id} "
                               f"(attempt {attempt + 1}): {e}")
                if attempt < self.retries:
                    time.sleep(self.backoff_seconds * (attempt + 1))
        return False

    def _outcome(self, attempt_id: str, question_id: str, option_id: Optional[str],
                 persisted: bool) -> SaveOutcome:
        if persisted:
            self._failures[attempt_id] = 0
        else:
            self._failures[attempt_id] = self._failures.get(attempt_id, 0) + 1
            logger.error(f"Giving up on autosave for attempt {attempt_id}, question {question_id}")

        failures = self._failures[attempt_id]
        warning = None
        if failures >= self.warning_threshold:
            warning = (f"Your last {failures} answer changes could not be saved. "
                       "Check your connection before submitting.")
        return SaveOutcome(
            attempt_id=attempt_id,
            question_id=question_id,
            selected_option_id=option_id,
            persisted=persisted,
            consecutive_failures=failures,
            warning=warning,
        )

    def set_answer(self, attempt_id: str, question_id: str, selected_option_id: str,
                   user_id: Optional[str] = None) -> SaveOutcome:
        """Record the learner's choice for a question"""
        try:
            self._check_writable(attempt_id, question_id, selected_option_id, user_id)
        except StoreUnavailableError as e:
            logger.warning(f"Could not validate answer for attempt {attempt_id}: {e}")
            self._selections.setdefault(attempt_id, {})[question_id] = selected_option_id
            return self._outcome(attempt_id, question_id, selected_option_id, False)

        self._selections.setdefault(attempt_id, {})[question_id] = selected_option_id
        persisted = self._persist(
            attempt_id, question_id,
            lambda: self.store.upsert_answer(attempt_id, question_id, selected_option_id, self.clock.now()),
        )
        return self._outcome(attempt_id, question_id, selected_option_id, persisted)

    def clear_answer(self, attempt_id: str, question_id: str,
                     user_id: Optional[str] = None) -> SaveOutcome:
        """Remove the learner's choice; the question becomes unanswered"""
        try:
            self._check_writable(attempt_id, question_id, None, user_id)
        except StoreUnavailableError as e:
            logger.warning(f"Could not validate clear for attempt {attempt_id}: {e}")
            self._selections.setdefault(attempt_id, {}).pop(question_id, None)
            return self._outcome(attempt_id, question_id, None, False)

        self._selections.setdefault(attempt_id, {}).pop(question_id, None)
        persisted = self._persist(
            attempt_id, question_id,
            lambda: self.store.delete_answer(attempt_id, question_id),
        )
        return self._outcome(attempt_id, question_id, None, persisted)

    def saved_answers(self, attempt_id: str) -> Dict[str, Optional[str]]:
        """Reload selections from the store, e.g. after a page reload"""
        answers = self.store.list_answers(attempt_id)
        selections = {a.question_id: a.selected_option_id for a in answers
                      if a.selected_option_id is not None}
        self._selections[attempt_id] = dict(selections)
        return selections

    def selections(self, attempt_id: str) -> Dict[str, Optional[str]]:
        return dict(self._selections.get(attempt_id, {}))

    def answered_count(self, attempt_id: str) -> int:
        return sum(1 for v in self._selections.get(attempt_id, {}).values() if v is not None)

    def consecutive_failures(self, attempt_id: str) -> int:
        return self._failures.get(attempt_id, 0)

    def forget(self, attempt_id: str) -> None:
        self._selections.pop(attempt_id, None)
        self._failures.pop(attempt_id, None)
