from app.models.user import User, UserBadge, UserRole  # noqa: F401
from app.models.audit import AuditAction, AuditLog, AuditTargetType  # noqa: F401
from app.models.gamification import (  # noqa: F401
    LeaderboardPeriod,
    LeaderboardSnapshot,
    ScoreAction,
    ScoreEvent,
)
from app.models.knowledge import (  # noqa: F401
    Document,
    DocumentComment,
    DocumentLike,
    DocumentRating,
    DocumentStatus,
    DocumentVersion,
)
from app.models.notification import Notification, NotificationType  # noqa: F401
