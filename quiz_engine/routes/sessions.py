import asyncio

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from quiz_engine.dependencies import QuizEngine, get_engine
from quiz_engine.exceptions import QuizEngineError
from quiz_engine.models import ResumeKind, ResumeState
from quiz_engine.services import time_window
from quiz_engine.utils.auth_utils import get_current_user
from quiz_engine.utils.errors import to_http_exception

router = APIRouter()

class PasswordRequest(BaseModel):
    password: str

def _watch_if_running(engine: QuizEngine, state: ResumeState):
    if state.kind == ResumeKind.IN_PROGRESS:
        engine.scheduler.watch(state.attempt.id)

@router.get("/{quiz_id}/access")
async def get_access(quiz_id: str, engine: QuizEngine = Depends(get_engine)):
    """Where the quiz's access window stands right now"""
    try:
        quiz = engine.store.get_quiz(quiz_id)
        now = engine.clock.now()
        status = time_window.describe_access(quiz, now)
        return {
            "quiz_id": quiz.id,
            "available": time_window.is_available(quiz, now),
            "content_released": time_window.content_released(quiz, now),
            **status,
        }
    except QuizEngineError as e:
        raise to_http_exception(e)

@router.get("/{quiz_id}/open", response_model=ResumeState)
async def open_quiz(quiz_id: str, current_user: dict = Depends(get_current_user),
                    engine: QuizEngine = Depends(get_engine)):
    """Open the quiz page: password gate, waiting room, quiz or results"""
    try:
        state = await asyncio.to_thread(engine.machine.open_quiz, quiz_id, current_user["id"])
        _watch_if_running(engine, state)
        return state
    except QuizEngineError as e:
        raise to_http_exception(e)

@router.post("/{quiz_id}/authenticate", response_model=ResumeState)
async def authenticate(quiz_id: str, body: PasswordRequest, current_user: dict = Depends(get_current_user),
                       engine: QuizEngine = Depends(get_engine)):
    """Submit the quiz password and enter the quiz"""
    try:
        await asyncio.to_thread(engine.machine.authenticate, quiz_id, current_user["id"], body.password)
        state = await asyncio.to_thread(engine.machine.get_or_resume_attempt, quiz_id, current_user["id"])
        _watch_if_running(engine, state)
        return state
    except QuizEngineError as e:
        raise to_http_exception(e)

@router.get("/{quiz_id}/attempt", response_model=ResumeState)
async def get_attempt(quiz_id: str, current_user: dict = Depends(get_current_user),
                      engine: QuizEngine = Depends(get_engine)):
    """Resume state of the learner's attempt, recomputed from the server clock"""
    try:
        state = await asyncio.to_thread(engine.machine.get_or_resume_attempt, quiz_id, current_user["id"])
        _watch_if_running(engine, state)
        return state
    except QuizEngineError as e:
        raise to_http_exception(e)
