from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from app.api.deps import get_db, get_lifecycle
from app.errors import ValidationError
from app.schemas.audit import AuditLogRead
from app.schemas.common import ListResponse
from app.schemas.knowledge import (
    CommentCreate,
    ComplianceFlagRequest,
    DocumentCommentRead,
    DocumentDetailRead,
    DocumentRead,
    DocumentUploadRequest,
    DocumentVersionRead,
    LikeRequest,
    LikeResult,
    RatingRequest,
    RatingResult,
    ReviewResponse,
    RevisionRequest,
    StatusUpdateRequest,
    UploadResponse,
    VersionCreate,
)
from app.services.kb_lifecycle import DocumentLifecycle
from app.services.kb_storage import attachment_storage

router = APIRouter(prefix="/documents", tags=["knowledge-documents"])
upload_alias_router = APIRouter(tags=["knowledge-documents"])

_FORM_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")
_FILE_FIELDS = ("files", "file", "attachments")


async def _read_upload(request: Request) -> tuple[DocumentUploadRequest, list]:
    """Parse an upload sent either as JSON or as a multipart form."""
    content_type = request.headers.get("content-type", "")
    files: list[UploadFile] = []
    if content_type.startswith(_FORM_TYPES):
        form = await request.form()
        fields: dict[str, list] = {}
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if key in _FILE_FIELDS:
                    files.append(value)
                continue
            fields.setdefault(key, []).append(value)
        # Repeated fields become lists, single fields stay scalar
        data = {k: v[0] if len(v) == 1 else v for k, v in fields.items()}
    else:
        try:
            data = await request.json()
        except ValueError:
            raise ValidationError("Request body must be JSON or multipart form data")
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
    try:
        payload = DocumentUploadRequest.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(
            "Invalid upload fields",
            details=exc.errors(include_url=False, include_context=False),
        )
    return payload, files


async def upload_document(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    lifecycle: DocumentLifecycle = Depends(get_lifecycle),
):
    payload, files = await _read_upload(request)
    attachments = await run_in_threadpool(attachment_storage.save_all, files)
    result = await run_in_threadpool(lifecycle.upload, db, payload, attachments)
    if result.code == "DUPLICATE_WARNING":
        response.status_code = status.HTTP_409_CONFLICT
    return result


router.add_api_route(
    "/upload",
    upload_document,
    methods=["POST"],
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
)
upload_alias_router.add_api_route(
    "/upload",
    upload_document,
    methods=["POST"],
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
)


# ------------------------------------------------------------------
# Reads
# ------------------------------------------------------------------


@router.get("", response_model=ListResponse[DocumentRead])
def list_documents(
    user_id: str = Query(...),
    status_filter: str | None = Query(default=None, alias="status"),
    uploader_id: str | None = None,
    domain: str | None = None,
    tag: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    lifecycle: DocumentLifecycle = Depends(get_lifecycle),
):
    return lifecycle.documents.list_response(
        db,
        lifecycle.visibility_for(db, user_id),
        status_filter,
        uploader_id,
        domain,
        tag,
        order_by,
        order_dir,
        limit,
        offset,
    )


@router.get("/search", response_model=ListResponse[DocumentRead])
def search_documents(
    q: str = Query(..., min_length=1),
    user_id: str = Query(...),
    limit: int = Query(default=25, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    lifecycle: DocumentLifecycle = Depends(get_lifecycle),
):
    items = lifecycle.documents.search(
        db, q, lifecycle.visibility_for(db, user_id), limit, offset
    )
    return {"items": items, "count": len(items), "limit": limit, "offset": offset}


@router.get("/pending", response_model=list[DocumentRead])
def list_pending(
    user_id: str = Query(...),
    db: Session = Depends(get_db),
    lifecycle: DocumentLifecycle = Depends(get_lifecycle),
):
    return lifecycle.list_pending(db, user_id)


@router.get("/flagged", response_model=list[DocumentRead])
def list_flagged(
    user_id: str = Query(...),
    db: Session = Depends(get_db),
    lifecycle: DocumentLifecycle = Depends(get_lifecycle),
):
    return lifecycle.list_flagged(db, user_id)


@router.get("/{document_id}", response_model=DocumentDetailRead)
def get_document(
    document_id: str,
    user_id: str | None = None,
    db: Session = Depends(get_db),
    lifecycle: DocumentLifecycle = Depends(get_lifecycle),
):
    return lifecycle.get_document(db, document_id, user_id)


@router.get("/{document_id}/history", response_model=list[AuditLogRead])
def document_history(
    document_id: str,
    user_id: str = Query(...),
    db: Session = Depends(get_db),
    lifecycle: DocumentLifecycle = Depends(get_lifecycle),
):
    return lifecycle.document_history(db, document_id, user_id)


# ------------------------------------------------------------------
# Versions
# ------------------------------------------------------------------


@router.get("/{document_id}/versions", response_model=list[DocumentVersionRead])
def list_versions(
    document_id: str,
    db: Session = Depends(get_db),
    lifecycle: DocumentLifecycle = Depends(get_lifecycle),
):
    lifecycle.documents.get(db, document_id)
    return lifecycle.documents.list_versions(db, document_id)


@router.post(
    "/{document_id}/versions",
    response_model=DocumentVersionRead,
    status_code=status.HTTP_201_CREATED,
)
def add_version(
    document_id: str,
    payload: VersionCreate,
    db: Session = Depends(get_db),
    lifecycle: DocumentLifecycle = Depends(get_lifecycle),
):
    return lifecycle.add_version(
        db, document_id, payload.user_id, payload.file_url, payload.changelog
    )


# ------------------------------------------------------------------
# Review and governance
# ------------------------------------------------------------------


@router.put("/{document_id}/status", response_model=ReviewResponse)
def update_status(
    document_id: str,
    payload: StatusUpdateRequest,
    db: Session = Depends(get_db),
    lifecycle: DocumentLifecycle = Depends(get_lifecycle),
):
    return lifecycle.review(
        db, document_id, payload.user_id, payload.status, payload.rejection_reason
    )


@router.post("/{document_id}/request-revision", response_model=DocumentRead)
def request_revision(
    document_id: str,
    payload: RevisionRequest,
    db: Session = Depends(get_db),
    lifecycle: DocumentLifecycle = Depends(get_lifecycle),
):
    return lifecycle.request_revision(db, document_id, payload.user_id, payload.notes)


@router.put("/{document_id}/flag", response_model=DocumentRead)
def set_flag(
    document_id: str,
    payload: ComplianceFlagRequest,
    db: Session = Depends(get_db),
    lifecycle: DocumentLifecycle = Depends(get_lifecycle),
):
    return lifecycle.set_compliance_flag(
        db, document_id, payload.user_id, payload.flag, payload.flag_reason
    )


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(
    document_id: str,
    user_id: str = Query(...),
    db: Session = Depends(get_db),
    lifecycle: DocumentLifecycle = Depends(get_lifecycle),
):
    lifecycle.delete_document(db, document_id, user_id)


# ------------------------------------------------------------------
# Interactions
# ------------------------------------------------------------------


@router.post("/{document_id}/rate", response_model=RatingResult)
def rate_document(
    document_id: str,
    payload: RatingRequest,
    db: Session = Depends(get_db),
    lifecycle: DocumentLifecycle = Depends(get_lifecycle),
):
    return lifecycle.rate(db, document_id, payload.user_id, payload.rating)


@router.post("/{document_id}/like", response_model=LikeResult)
def like_document(
    document_id: str,
    payload: LikeRequest,
    db: Session = Depends(get_db),
    lifecycle: DocumentLifecycle = Depends(get_lifecycle),
):
    return lifecycle.toggle_like(db, document_id, payload.user_id)


@router.post(
    "/{document_id}/comments",
    response_model=DocumentCommentRead,
    status_code=status.HTTP_201_CREATED,
)
def add_comment(
    document_id: str,
    payload: CommentCreate,
    db: Session = Depends(get_db),
    lifecycle: DocumentLifecycle = Depends(get_lifecycle),
):
    return lifecycle.add_comment(db, document_id, payload.user_id, payload.text)


@router.delete(
    "/{document_id}/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT
)
def delete_comment(
    document_id: str,
    comment_id: str,
    user_id: str = Query(...),
    db: Session = Depends(get_db),
    lifecycle: DocumentLifecycle = Depends(get_lifecycle),
):
    lifecycle.delete_comment(db, document_id, comment_id, user_id)
