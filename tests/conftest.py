import asyncio
import uuid
from datetime import datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient

from quiz_engine.dependencies import build_engine, get_engine
from quiz_engine.exceptions import StoreUnavailableError
from quiz_engine.main import app
from quiz_engine.services.attempt_store import AttemptStore
from quiz_engine.utils.auth_utils import get_current_user
from quiz_engine.utils.time_utils import IST, Clock

# Reference instant used as a LIVE quiz start time
T0 = IST.localize(datetime(2025, 3, 10, 10, 0, 0))


class FakeClock(Clock):
    """Clock the tests move by hand"""

    def __init__(self, now: datetime = T0):
        self._now = now

    def now(self) -> datetime:
        return self._now

    def set(self, now: datetime):
        self._now = now

    def advance(self, seconds: float):
        self._now = self._now + timedelta(seconds=seconds)


class InMemoryDatabase:
    """Stand-in for the Supabase-backed Database with the same call surface.

    ``fail(operation, table, times)`` makes the next ``times`` calls raise
    StoreUnavailableError; ``swallow(operation, table, times)`` makes writes
    report that nothing was persisted.
    """

    def __init__(self):
        self.tables = {}
        self._failures = {}
        self._swallowed = {}
        self.calls = []

    def rows(self, table):
        return self.tables.setdefault(table, [])

    def fail(self, operation, table, times=1):
        self._failures[(operation, table)] = times

    def swallow(self, operation, table, times=1):
        self._swallowed[(operation, table)] = times

    def _check(self, operation, table):
        self.calls.append((operation, table))
        remaining = self._failures.get((operation, table), 0)
        if remaining:
            self._failures[(operation, table)] = remaining - 1
            raise StoreUnavailableError(operation, table, "simulated outage")

    def _swallow(self, operation, table):
        remaining = self._swallowed.get((operation, table), 0)
        if remaining:
            self._swallowed[(operation, table)] = remaining - 1
            return True
        return False

    @staticmethod
    def _matches(row, filters=None, in_filters=None):
        for key, value in (filters or {}).items():
            if row.get(key) != value:
                return False
        for key, values in (in_filters or {}).items():
            if row.get(key) not in list(values):
                return False
        return True

    def insert(self, table, data):
        self._check("insert", table)
        if self._swallow("insert", table):
            return None
        row = dict(data)
        row.setdefault("id", str(uuid.uuid4()))
        self.rows(table).append(row)
        return dict(row)

    def select(self, table, columns="*", filters=None, in_filters=None, order_by=None,
               descending=False, limit=None):
        self._check("select", table)
        found = [dict(r) for r in self.rows(table) if self._matches(r, filters, in_filters)]
        if order_by:
            found.sort(key=lambda r: r.get(order_by), reverse=descending)
        if limit:
            found = found[:limit]
        return found

    def update(self, table, data, filters):
        self._check("update", table)
        if self._swallow("update", table):
            return None
        updated = []
        for row in self.rows(table):
            if self._matches(row, filters):
                row.update(data)
                updated.append(dict(row))
        return updated[0] if updated else None

    def upsert(self, table, data, on_conflict):
        self._check("upsert", table)
        if self._swallow("upsert", table):
            return None
        keys = on_conflict.split(",")
        for row in self.rows(table):
            if all(row.get(k) == data.get(k) for k in keys):
                row.update(data)
                return dict(row)
        row = dict(data)
        row.setdefault("id", str(uuid.uuid4()))
        self.rows(table).append(row)
        return dict(row)

    def delete(self, table, filters):
        self._check("delete", table)
        kept, removed = [], []
        for row in self.rows(table):
            (removed if self._matches(row, filters) else kept).append(row)
        self.tables[table] = kept
        return [dict(r) for r in removed]


def seed_quiz(database, **overrides):
    """Insert a quiz row in the store's column layout and return its id"""
    row = {
        "id": str(uuid.uuid4()),
        "title": "Data Structures Midterm",
        "description": "Trees, heaps and hashing",
        "quiz_type": "unlive",
        "duration_minutes": 30,
        "start_time": None,
        "end_time": None,
        "login_window_minutes": 10,
        "password": "secret",
        "instructions": "Answer every question.",
        "max_attempts": 1,
        "show_results_immediately": True,
        "show_correct_answers": True,
        "allow_review": True,
        "is_published": True,
        "is_active": True,
    }
    row.update(overrides)
    for key in ("start_time", "end_time"):
        if isinstance(row[key], datetime):
            row[key] = row[key].isoformat()
    database.rows("quizzes").append(row)
    return row["id"]


def seed_question(database, quiz_id, number, correct="C", points=1,
                  question_type="multiple_choice", explanation=None):
    """Insert a question with options; returns (question_id, {letter: option_id})"""
    question_id = str(uuid.uuid4())
    database.rows("quiz_questions").append({
        "id": question_id,
        "quiz_id": quiz_id,
        "question_number": number,
        "question_text": f"Question {number}",
        "question_type": question_type,
        "points": points,
        "explanation": explanation,
    })
    letters = {"multiple_choice": "ABCD", "true_false": "AB", "short_answer": ""}[question_type]
    options = {}
    for letter in letters:
        option_id = str(uuid.uuid4())
        options[letter] = option_id
        database.rows("quiz_options").append({
            "id": option_id,
            "question_id": question_id,
            "option_letter": letter,
            "option_text": f"Option {letter}",
            "is_correct": letter == correct,
        })
    return question_id, options


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def database():
    return InMemoryDatabase()


@pytest.fixture
def store(database):
    return AttemptStore(database)


@pytest.fixture
def engine(database, clock):
    return build_engine(database, clock, backoff_seconds=0)


@pytest.fixture
def unlive_quiz(database):
    quiz_id = seed_quiz(database)
    questions = [seed_question(database, quiz_id, n, correct="C", points=2) for n in range(1, 6)]
    return quiz_id, questions


@pytest.fixture
def live_quiz(database):
    quiz_id = seed_quiz(database, quiz_type="live", start_time=T0, duration_minutes=30,
                        login_window_minutes=10)
    questions = [seed_question(database, quiz_id, n, correct="A") for n in range(1, 4)]
    return quiz_id, questions


@pytest.fixture
def current_user():
    """Signed-in user for API tests; mutate it to switch users"""
    return {"id": "learner-1", "email": "learner@example.com", "full_name": "Asha Rao", "is_admin": False}


@pytest.fixture
async def client(engine, current_user):
    """Test client wired to the in-memory engine"""
    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_current_user] = lambda: current_user
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    engine.scheduler.cancel_all()
    await asyncio.sleep(0)
    app.dependency_overrides.clear()
