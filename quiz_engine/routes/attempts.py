import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from quiz_engine.dependencies import QuizEngine, get_engine
from quiz_engine.exceptions import QuizEngineError
from quiz_engine.models import AttemptReview, ScoredResult, SubmissionReason
from quiz_engine.services.autosave import SaveOutcome
from quiz_engine.utils.auth_utils import get_current_user
from quiz_engine.utils.errors import to_http_exception
from quiz_engine.utils.time_utils import format_countdown

router = APIRouter()

class AnswerRequest(BaseModel):
    selected_option_id: str

class SubmitRequest(BaseModel):
    reason: SubmissionReason = SubmissionReason.MANUAL

@router.get("/{attempt_id}/questions")
async def get_questions(attempt_id: str, current_user: dict = Depends(get_current_user),
                        engine: QuizEngine = Depends(get_engine)):
    """Question content and saved answers for an active attempt"""
    try:
        content = await asyncio.to_thread(engine.machine.get_questions, attempt_id, current_user["id"])
        content["countdown"] = format_countdown(content["seconds_remaining"])
        return content
    except QuizEngineError as e:
        raise to_http_exception(e)

@router.put("/{attempt_id}/answers/{question_id}", response_model=SaveOutcome)
async def set_answer(attempt_id: str, question_id: str, body: AnswerRequest,
                     current_user: dict = Depends(get_current_user),
                     engine: QuizEngine = Depends(get_engine)):
    """Autosave the selected option for a question"""
    try:
        return await asyncio.to_thread(engine.autosave.set_answer, attempt_id, question_id,
                                       body.selected_option_id, current_user["id"])
    except QuizEngineError as e:
        raise to_http_exception(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.delete("/{attempt_id}/answers/{question_id}", response_model=SaveOutcome)
async def clear_answer(attempt_id: str, question_id: str,
                       current_user: dict = Depends(get_current_user),
                       engine: QuizEngine = Depends(get_engine)):
    """Clear the answer for a question"""
    try:
        return await asyncio.to_thread(engine.autosave.clear_answer, attempt_id, question_id,
                                       current_user["id"])
    except QuizEngineError as e:
        raise to_http_exception(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.post("/{attempt_id}/submit", response_model=ScoredResult)
async def submit_attempt(attempt_id: str, body: Optional[SubmitRequest] = None,
                         current_user: dict = Depends(get_current_user),
                         engine: QuizEngine = Depends(get_engine)):
    """Submit the attempt and return its scored result"""
    reason = body.reason if body else SubmissionReason.MANUAL
    try:
        result = await asyncio.to_thread(engine.machine.submit, attempt_id, reason, current_user["id"])
        engine.scheduler.cancel(attempt_id)
        return result
    except QuizEngineError as e:
        raise to_http_exception(e)

@router.get("/{attempt_id}/review", response_model=AttemptReview)
async def review_attempt(attempt_id: str, current_user: dict = Depends(get_current_user),
                         engine: QuizEngine = Depends(get_engine)):
    """Post-submission review of an attempt"""
    try:
        return engine.scoring.review(attempt_id, current_user["id"])
    except QuizEngineError as e:
        raise to_http_exception(e)
