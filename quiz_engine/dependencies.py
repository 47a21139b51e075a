"""Wiring of store, clock and services for the HTTP layer."""
from dataclasses import dataclass
from functools import lru_cache

from quiz_engine.config import settings
from quiz_engine.database import Database, db
from quiz_engine.services.attempt_machine import AttemptStateMachine
from quiz_engine.services.attempt_store import AttemptStore
from quiz_engine.services.autosave import AutosaveChannel
from quiz_engine.services.countdown import CountdownScheduler
from quiz_engine.services.ranking import RankingAggregator
from quiz_engine.services.scoring import ScoringEngine
from quiz_engine.utils.time_utils import Clock, SystemClock


@dataclass
class QuizEngine:
    store: AttemptStore
    clock: Clock
    scoring: ScoringEngine
    autosave: AutosaveChannel
    machine: AttemptStateMachine
    ranking: RankingAggregator
    scheduler: CountdownScheduler


def build_engine(database: Database, clock: Clock,
                 backoff_seconds: float = settings.retry_backoff_seconds,
                 **machine_options) -> QuizEngine:
    store = AttemptStore(database)
    scoring = ScoringEngine(store, clock)
    autosave = AutosaveChannel(store, clock, backoff_seconds=backoff_seconds)
    machine = AttemptStateMachine(store, clock, scoring, autosave,
                                  backoff_seconds=backoff_seconds, **machine_options)
    return QuizEngine(
        store=store,
        clock=clock,
        scoring=scoring,
        autosave=autosave,
        machine=machine,
        ranking=RankingAggregator(store),
        scheduler=CountdownScheduler(machine),
    )


@lru_cache(maxsize=1)
def get_engine() -> QuizEngine:
    """Process-wide engine; autosave state and timers live here"""
    return build_engine(db, SystemClock())
