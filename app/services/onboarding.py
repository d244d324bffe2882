"""New-hire onboarding: a fixed module catalogue and per-user progress.

Progress is a percentage stored on ``User.onboarding_progress``. Finishing
module ``n`` of ``N`` moves it to ``n * 100 / N``; it never goes backwards,
so revisiting an earlier module keeps the furthest point reached.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import String, cast, or_, select, update
from sqlalchemy.orm import Session

from app.errors import NotFoundError, ValidationError
from app.models.knowledge import Document, DocumentStatus
from app.models.user import User
from app.services.common import coerce_uuid

logger = logging.getLogger(__name__)

COMPLETE = 100
RECOMMENDATION_LIMIT = 6
RECOMMENDATION_MINIMUM = 3
RECOMMENDED_TAGS = ("onboarding", "beginner", "getting-started", "training")
RECOMMENDED_DOMAINS = ("Training", "Onboarding", "HR")


@dataclass(frozen=True)
class OnboardingModule:
    id: int
    title: str
    description: str
    icon: str
    estimated_time: str
    tags: tuple[str, ...]


ONBOARDING_MODULES = (
    OnboardingModule(
        1,
        "Welcome to the Organization",
        "Learn about our company culture, values, and mission.",
        "🏢",
        "10 min",
        ("onboarding", "culture"),
    ),
    OnboardingModule(
        2,
        "Understanding the Knowledge System",
        "How to use this platform to find and share knowledge.",
        "📚",
        "15 min",
        ("onboarding", "tutorial"),
    ),
    OnboardingModule(
        3,
        "Your Role & Responsibilities",
        "What is expected of you and how to grow in your role.",
        "🎯",
        "20 min",
        ("onboarding", "career"),
    ),
    OnboardingModule(
        4,
        "Key Contacts & Resources",
        "Who to reach out to and where to find help.",
        "👥",
        "10 min",
        ("onboarding", "resources"),
    ),
    OnboardingModule(
        5,
        "Compliance & Policies",
        "Important policies and guidelines to follow.",
        "📋",
        "25 min",
        ("onboarding", "compliance"),
    ),
)


@dataclass(frozen=True)
class ProgressUpdate:
    user: User
    progress: int
    just_completed: bool


def progress_for_module(module_id: int) -> int:
    for index, module in enumerate(ONBOARDING_MODULES, start=1):
        if module.id == module_id:
            return min(COMPLETE, index * COMPLETE // len(ONBOARDING_MODULES))
    raise ValidationError("Invalid module")


def completed_module_count(progress: int) -> int:
    return progress * len(ONBOARDING_MODULES) // COMPLETE


class Onboarding:
    @staticmethod
    def _get_user(db: Session, user_id) -> User:
        if not user_id:
            raise ValidationError("userId is required")
        user = db.get(User, coerce_uuid(user_id))
        if not user:
            raise NotFoundError("User not found")
        return user

    @classmethod
    def modules_for(cls, db: Session, user_id) -> dict:
        user = cls._get_user(db, user_id)
        done = completed_module_count(user.onboarding_progress)
        return {
            "modules": [
                {
                    "id": module.id,
                    "title": module.title,
                    "description": module.description,
                    "icon": module.icon,
                    "estimated_time": module.estimated_time,
                    "tags": list(module.tags),
                    "completed": index < done,
                }
                for index, module in enumerate(ONBOARDING_MODULES)
            ],
            "progress": user.onboarding_progress,
            "total_modules": len(ONBOARDING_MODULES),
            "completed_modules": done,
        }

    @classmethod
    def record_module(cls, db: Session, user_id, module_id: int) -> ProgressUpdate:
        """Advance a user's progress for a finished module.

        The conditional UPDATE only raises progress, so of several concurrent
        completions of the last module exactly one reports ``just_completed``.
        """
        user = cls._get_user(db, user_id)
        target = progress_for_module(module_id)
        result = db.execute(
            update(User)
            .where(User.id == user.id, User.onboarding_progress < target)
            .values(onboarding_progress=target)
            .execution_options(synchronize_session=False)
        )
        db.flush()
        db.refresh(user)
        advanced = result.rowcount == 1
        if advanced:
            logger.info(
                "User %s onboarding progress now %d%%", user.id, user.onboarding_progress
            )
        return ProgressUpdate(
            user=user,
            progress=user.onboarding_progress,
            just_completed=advanced and target == COMPLETE,
        )

    @classmethod
    def recommendations(cls, db: Session, user_id) -> list[Document]:
        """Approved starter material, topped up with the best-rated documents."""
        cls._get_user(db, user_id)
        tag_matches = [
            cast(Document.tags, String).like(f'%"{tag}"%') for tag in RECOMMENDED_TAGS
        ]
        picked = list(
            db.scalars(
                select(Document)
                .where(
                    Document.status == DocumentStatus.approved,
                    or_(Document.domain.in_(RECOMMENDED_DOMAINS), *tag_matches),
                )
                .order_by(Document.created_at.desc())
                .limit(RECOMMENDATION_LIMIT)
            ).all()
        )
        if len(picked) < RECOMMENDATION_MINIMUM:
            stmt = select(Document).where(Document.status == DocumentStatus.approved)
            if picked:
                stmt = stmt.where(Document.id.not_in([doc.id for doc in picked]))
            picked += db.scalars(
                stmt.order_by(Document.average_rating.desc()).limit(
                    RECOMMENDATION_LIMIT - len(picked)
                )
            ).all()
        return picked


onboarding = Onboarding()
