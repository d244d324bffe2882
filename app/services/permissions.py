"""Role capabilities.

Every ``UserRole`` has an explicit row in ``ROLE_CAPABILITIES``; a role added
to the enum without a row fails at import time.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import or_

from app.models.knowledge import Document, DocumentStatus
from app.models.user import User, UserRole


@dataclass(frozen=True)
class Capabilities:
    review: bool = False
    govern: bool = False
    view_history: bool = False
    view_all: bool = False
    administer: bool = False


ROLE_CAPABILITIES: dict[UserRole, Capabilities] = {
    UserRole.new_hire: Capabilities(),
    UserRole.consultant: Capabilities(),
    UserRole.project_manager: Capabilities(view_all=True),
    UserRole.knowledge_champion: Capabilities(view_history=True, view_all=True),
    UserRole.senior_consultant: Capabilities(
        review=True, view_history=True, view_all=True
    ),
    UserRole.it_infrastructure: Capabilities(review=True, view_all=True),
    UserRole.knowledge_governance_council: Capabilities(
        review=True, govern=True, view_history=True, view_all=True
    ),
    UserRole.admin: Capabilities(
        review=True, govern=True, view_history=True, view_all=True, administer=True
    ),
}

_missing = set(UserRole) - set(ROLE_CAPABILITIES)
if _missing:
    raise RuntimeError(
        f"Roles without capabilities: {sorted(r.value for r in _missing)}"
    )

REVIEWER_ROLES = frozenset(r for r, c in ROLE_CAPABILITIES.items() if c.review)
GOVERNANCE_ROLES = frozenset(r for r, c in ROLE_CAPABILITIES.items() if c.govern)
PENDING_REVIEW_NOTIFY_ROLES = (
    UserRole.senior_consultant,
    UserRole.knowledge_champion,
)


def capabilities(role: UserRole) -> Capabilities:
    return ROLE_CAPABILITIES[role]


def can_review(role: UserRole) -> bool:
    return capabilities(role).review


def can_govern(role: UserRole) -> bool:
    return capabilities(role).govern


def can_view_history(role: UserRole) -> bool:
    return capabilities(role).view_history


def can_administer(role: UserRole) -> bool:
    return capabilities(role).administer


def visibility_filter(user: User):
    """SQL predicate limiting which documents ``user`` may list.

    Returns ``None`` when the user may see every document.
    """
    if capabilities(user.role).view_all:
        return None
    return or_(
        Document.status == DocumentStatus.approved,
        Document.uploader_id == user.id,
    )
