from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.schemas.audit import AuditLogRead
from app.schemas.common import ListResponse
from app.services.audit import audit_trail

router = APIRouter(prefix="/audit-logs", tags=["audit"])


@router.get("", response_model=ListResponse[AuditLogRead])
def list_audit_logs(
    actor_id: str | None = None,
    action: str | None = None,
    target_id: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return audit_trail.list_response(
        db, actor_id, action, target_id, order_by, order_dir, limit, offset
    )
