from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse

from quiz_engine.config import settings
from quiz_engine.dependencies import QuizEngine, get_engine
from quiz_engine.exceptions import QuizEngineError
from quiz_engine.models import LeaderboardEntry, QuestionAnalysis, QuizStats
from quiz_engine.utils.auth_utils import get_current_user, require_admin
from quiz_engine.utils.errors import to_http_exception

router = APIRouter()

@router.get("/leaderboards/quiz/{quiz_id}")
async def get_quiz_leaderboard(quiz_id: str, limit: int = Query(settings.leaderboard_limit, ge=1),
                               current_user: dict = Depends(get_current_user),
                               engine: QuizEngine = Depends(get_engine)):
    """Ranked completed attempts for a quiz"""
    try:
        quiz = engine.store.get_quiz(quiz_id)
        leaderboard: List[LeaderboardEntry] = engine.ranking.get_leaderboard(quiz_id, limit)
        return {
            "quiz": {"id": quiz.id, "title": quiz.title},
            "leaderboard": leaderboard,
            "total_participants": len(leaderboard),
            "my_rank": engine.ranking.get_rank(quiz_id, current_user["id"]),
        }
    except QuizEngineError as e:
        raise to_http_exception(e)

@router.get("/{quiz_id}/rank")
async def get_my_rank(quiz_id: str, current_user: dict = Depends(get_current_user),
                      engine: QuizEngine = Depends(get_engine)):
    try:
        rank: Optional[int] = engine.ranking.get_rank(quiz_id, current_user["id"])
        return {"quiz_id": quiz_id, "rank": rank}
    except QuizEngineError as e:
        raise to_http_exception(e)

@router.get("/{quiz_id}/stats", response_model=QuizStats)
async def get_quiz_stats(quiz_id: str, admin: dict = Depends(require_admin),
                         engine: QuizEngine = Depends(get_engine)):
    """Aggregate score and timing statistics (admin only)"""
    try:
        return engine.ranking.quiz_stats(quiz_id)
    except QuizEngineError as e:
        raise to_http_exception(e)

@router.get("/{quiz_id}/analysis", response_model=List[QuestionAnalysis])
async def get_question_analysis(quiz_id: str, admin: dict = Depends(require_admin),
                                engine: QuizEngine = Depends(get_engine)):
    """Per-question accuracy (admin only)"""
    try:
        return engine.ranking.question_analysis(quiz_id)
    except QuizEngineError as e:
        raise to_http_exception(e)

@router.get("/{quiz_id}/export", response_class=PlainTextResponse)
async def export_results(quiz_id: str, admin: dict = Depends(require_admin),
                         engine: QuizEngine = Depends(get_engine)):
    """Leaderboard as CSV (admin only)"""
    try:
        csv_text = engine.ranking.export_csv(quiz_id)
    except QuizEngineError as e:
        raise to_http_exception(e)
    return PlainTextResponse(
        csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="quiz-{quiz_id}-results.csv"'},
    )
