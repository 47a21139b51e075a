"""Access-window evaluation for quizzes.

Every function here is pure: the caller supplies ``now`` (from a ``Clock``)
and nothing is read from or written to the store.

LIVE quizzes divide time into four half-open intervals around ``start_time``::

    UPCOMING           now < start - login_window
    LOGIN_WINDOW_OPEN  start - login_window <= now < start
    ACTIVE             start <= now < start + duration
    ENDED              now >= start + duration

UNLIVE quizzes are ACTIVE until their optional deadline (inclusive) and
ENDED afterwards.
"""
import math
from datetime import datetime, timedelta
from typing import Optional

from quiz_engine.models.quiz import AccessState, Quiz
from quiz_engine.utils.time_utils import parse_ist, seconds_between


def login_opens_at(quiz: Quiz) -> Optional[datetime]:
    if not quiz.is_live:
        return None
    return quiz.start_time - timedelta(seconds=quiz.login_window_seconds)


def ends_at(quiz: Quiz) -> Optional[datetime]:
    """Instant after which the quiz refuses entry, or None if open-ended"""
    if quiz.is_live:
        return quiz.start_time + timedelta(seconds=quiz.duration_seconds)
    return quiz.deadline


def evaluate_access(quiz: Quiz, now: datetime) -> AccessState:
    now = parse_ist(now)
    if quiz.is_live:
        if now < login_opens_at(quiz):
            return AccessState.UPCOMING
        if now < quiz.start_time:
            return AccessState.LOGIN_WINDOW_OPEN
        if now < ends_at(quiz):
            return AccessState.ACTIVE
        return AccessState.ENDED

    if quiz.deadline is None or now <= quiz.deadline:
        return AccessState.ACTIVE
    return AccessState.ENDED


def is_available(quiz: Quiz, now: datetime) -> bool:
    """True when a learner may authenticate and enter the quiz"""
    return evaluate_access(quiz, now) in (AccessState.LOGIN_WINDOW_OPEN, AccessState.ACTIVE)


def content_released(quiz: Quiz, now: datetime) -> bool:
    """Question content is withheld until a LIVE quiz actually starts"""
    if not quiz.is_live:
        return True
    return parse_ist(now) >= quiz.start_time


def seconds_until_start(quiz: Quiz, now: datetime) -> int:
    if not quiz.is_live:
        return 0
    remaining = (quiz.start_time - parse_ist(now)).total_seconds()
    return max(0, math.ceil(remaining))


def effective_start(quiz: Quiz, started_at: datetime) -> datetime:
    """When the attempt's clock starts running.

    A LIVE attempt created during the login window starts its clock at the
    quiz start, not at authentication.
    """
    started_at = parse_ist(started_at)
    if quiz.is_live and started_at < quiz.start_time:
        return quiz.start_time
    return started_at


def time_remaining(quiz: Quiz, started_at: datetime, now: datetime) -> int:
    """Seconds left on an attempt, derived from persisted ``started_at``.

    Never trusts a client-held countdown, so a reload resumes with the same
    value. LIVE attempts are also capped at the shared window end.
    """
    now = parse_ist(now)
    clock_start = effective_start(quiz, started_at)
    elapsed = max(0, seconds_between(clock_start, now))
    remaining = quiz.duration_seconds - elapsed
    if quiz.is_live:
        remaining = min(remaining, seconds_between(now, ends_at(quiz)))
    return max(0, remaining)


def next_status_change(quiz: Quiz, now: datetime) -> Optional[datetime]:
    """Next boundary strictly after ``now`` at which the access state flips"""
    now = parse_ist(now)
    if quiz.is_live:
        boundaries = [login_opens_at(quiz), quiz.start_time, ends_at(quiz)]
    elif quiz.deadline is not None:
        # deadline is inclusive, the flip happens just after it
        boundaries = [quiz.deadline + timedelta(microseconds=1)]
    else:
        boundaries = []
    upcoming = [b for b in boundaries if b > now]
    return min(upcoming) if upcoming else None


def describe_access(quiz: Quiz, now: datetime) -> dict:
    """Status label for quiz listings"""
    state = evaluate_access(quiz, now)
    change = next_status_change(quiz, now)
    minutes_until_change = None
    if change is not None:
        minutes_until_change = math.ceil((change - parse_ist(now)).total_seconds() / 60)

    if state == AccessState.UPCOMING:
        message = f"Login opens in {minutes_until_change} min"
    elif state == AccessState.LOGIN_WINDOW_OPEN:
        message = f"Starts in {minutes_until_change} min"
    elif state == AccessState.ACTIVE:
        message = "Live now" if quiz.is_live else "Available"
    else:
        message = "Ended"

    return {
        "state": state,
        "message": message,
        "next_change_at": change,
        "minutes_until_change": minutes_until_change,
    }
