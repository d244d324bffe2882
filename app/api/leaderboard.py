from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_lifecycle
from app.config import settings
from app.schemas.gamification import LeaderboardEntry, ScoreBreakdown, UserRankRead
from app.services.kb_lifecycle import DocumentLifecycle

router = APIRouter(tags=["gamification"])


@router.get("/leaderboard", response_model=list[LeaderboardEntry])
def get_leaderboard(
    limit: int = Query(default=settings.leaderboard_default_limit, ge=1, le=100),
    period: str = Query(default="allTime"),
    db: Session = Depends(get_db),
    lifecycle: DocumentLifecycle = Depends(get_lifecycle),
):
    return lifecycle.gamification.get_leaderboard(db, limit, period)


@router.get("/users/{user_id}/rank", response_model=UserRankRead)
def get_user_rank(
    user_id: str,
    db: Session = Depends(get_db),
    lifecycle: DocumentLifecycle = Depends(get_lifecycle),
):
    return lifecycle.gamification.get_user_rank(db, user_id)


@router.get("/users/{user_id}/score", response_model=ScoreBreakdown)
def get_score_breakdown(
    user_id: str,
    db: Session = Depends(get_db),
    lifecycle: DocumentLifecycle = Depends(get_lifecycle),
):
    return lifecycle.gamification.get_score_breakdown(db, user_id)
