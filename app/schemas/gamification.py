from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.gamification import ScoreAction
from app.models.user import UserRole
from app.schemas.common import RequestModel


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserCreate(RequestModel):
    name: str = Field(min_length=1, max_length=200)
    email: str = Field(min_length=3, max_length=320)
    role: UserRole = UserRole.consultant
    department: str | None = None


class BadgeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    description: str | None = None
    icon: str | None = None
    earned_at: datetime


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    role: UserRole
    department: str | None = None
    score: int
    onboarding_progress: int
    is_active: bool
    badges: list[BadgeRead] = Field(default_factory=list)
    created_at: datetime


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


class AwardResult(BaseModel):
    points_awarded: int
    new_total: int
    new_badges: list[str] = Field(default_factory=list)


class LeaderboardUser(BaseModel):
    id: UUID
    name: str
    email: str
    role: UserRole
    department: str | None = None


class LeaderboardEntry(BaseModel):
    rank: int
    user: LeaderboardUser
    score: int
    badge_count: int


class UserRankRead(BaseModel):
    rank: int
    score: int
    badges: list[BadgeRead] = Field(default_factory=list)


class ScoreEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    action: ScoreAction
    points: int
    description: str | None = None
    document_id: UUID | None = None
    created_at: datetime


class ActionTally(BaseModel):
    count: int = 0
    points: int = 0


class ScoreBreakdown(BaseModel):
    total_score: int
    breakdown: dict[str, ActionTally] = Field(default_factory=dict)
    history: list[ScoreEventRead] = Field(default_factory=list)
    level: int
    next_level_points: int
