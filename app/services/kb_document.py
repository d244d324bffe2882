from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import ConflictError, NotFoundError, ValidationError
from app.models.knowledge import (
    Document,
    DocumentComment,
    DocumentLike,
    DocumentRating,
    DocumentStatus,
    DocumentVersion,
)
from app.models.user import User
from app.services.common import apply_ordering, apply_pagination, coerce_uuid
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

REVIEW_TARGETS = frozenset(
    {DocumentStatus.approved, DocumentStatus.rejected, DocumentStatus.archived}
)

_ORDER_COLUMNS = {
    "created_at": Document.created_at,
    "updated_at": Document.updated_at,
    "title": Document.title,
    "average_rating": Document.average_rating,
}


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def parse_status(status: str | DocumentStatus) -> DocumentStatus:
    if isinstance(status, DocumentStatus):
        return status
    try:
        return DocumentStatus(status)
    except ValueError:
        allowed = sorted(s.value for s in DocumentStatus)
        raise ValidationError(f"Invalid status. Allowed: {allowed}")


class KnowledgeDocuments(ListResponseMixin):
    """Document entities and their owned versions, ratings, comments and likes.

    Methods flush but never commit; the caller owns the transaction.
    """

    @staticmethod
    def get(db: Session, document_id) -> Document:
        document = db.get(Document, coerce_uuid(document_id))
        if not document:
            raise NotFoundError("Document not found")
        return document

    @staticmethod
    def _lock(db: Session, document_id) -> Document:
        # Row lock serializes writes per document; the locked row replaces any
        # copy already in the session, so pending changes are flushed first
        db.flush()
        document = db.scalars(
            select(Document)
            .where(Document.id == coerce_uuid(document_id))
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if not document:
            raise NotFoundError("Document not found")
        return document

    @staticmethod
    def create(
        db: Session,
        uploader_id,
        title: str | None,
        description: str | None = None,
        domain: str | None = None,
        region: str | None = None,
        tags: list[str] | None = None,
        metadata: list[dict] | None = None,
        file_urls: list[str] | None = None,
        status: DocumentStatus = DocumentStatus.pending,
        is_sensitive: bool = False,
        compliance_notes: str | None = None,
        is_duplicate_warning: bool = False,
        similar_document_id=None,
        changelog: str | None = None,
    ) -> Document:
        if not title or not title.strip():
            raise ValidationError("Title is required")
        file_urls = list(file_urls or [])
        document = Document(
            title=title.strip(),
            description=description,
            domain=domain,
            region=region,
            tags=list(tags or []),
            metadata_=list(metadata or []),
            file_urls=file_urls,
            status=status,
            is_sensitive=is_sensitive,
            compliance_notes=compliance_notes,
            uploader_id=coerce_uuid(uploader_id),
            is_duplicate_warning=is_duplicate_warning,
            similar_document_id=coerce_uuid(similar_document_id),
        )
        if file_urls:
            document.versions.append(
                DocumentVersion(
                    version_number=1,
                    file_url=file_urls[0],
                    changelog=changelog,
                    created_by=document.uploader_id,
                )
            )
        db.add(document)
        db.flush()
        db.refresh(document)
        logger.info("Created document %s (%s)", document.id, document.status.value)
        return document

    @staticmethod
    def list(
        db: Session,
        visibility,
        status: str | None,
        uploader_id: str | None,
        domain: str | None,
        tag: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[Document]:
        stmt = select(Document)
        if visibility is not None:
            stmt = stmt.where(visibility)
        if status is not None:
            stmt = stmt.where(Document.status == parse_status(status))
        if uploader_id is not None:
            stmt = stmt.where(Document.uploader_id == coerce_uuid(uploader_id))
        if domain is not None:
            stmt = stmt.where(func.lower(Document.domain) == domain.strip().lower())
        if tag is not None:
            # Tags are a JSON array; match the quoted element in its text form
            pattern = f'%"{_escape_like(tag)}"%'
            stmt = stmt.where(cast(Document.tags, String).like(pattern, escape="\\"))
        stmt = apply_ordering(stmt, order_by, order_dir, _ORDER_COLUMNS)
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def search(
        db: Session,
        q: str,
        visibility,
        limit: int,
        offset: int,
    ) -> list[Document]:
        if not q or not q.strip():
            raise ValidationError("Search query is required")
        pattern = f"%{_escape_like(q.strip())}%"
        stmt = select(Document).where(
            or_(
                Document.title.ilike(pattern, escape="\\"),
                Document.description.ilike(pattern, escape="\\"),
                Document.domain.ilike(pattern, escape="\\"),
            )
        )
        if visibility is not None:
            stmt = stmt.where(visibility)
        stmt = stmt.order_by(Document.created_at.desc())
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def all_titles(db: Session) -> list:
        return db.execute(
            select(Document.id, Document.title).order_by(Document.created_at)
        ).all()

    @staticmethod
    def find_by_title(db: Session, title: str) -> Document | None:
        """Case-insensitive whole-title match; the oldest document wins."""
        return db.scalars(
            select(Document)
            .where(func.lower(func.trim(Document.title)) == title.strip().lower())
            .order_by(Document.created_at.asc())
            .limit(1)
        ).first()

    @staticmethod
    def list_pending(db: Session) -> list[Document]:
        return db.scalars(
            select(Document)
            .where(Document.status == DocumentStatus.pending)
            .order_by(Document.created_at.desc())
        ).all()

    @staticmethod
    def list_flagged(db: Session) -> list[Document]:
        return db.scalars(
            select(Document)
            .where(Document.compliance_flag.is_(True))
            .order_by(Document.updated_at.desc())
        ).all()

    @staticmethod
    def delete(db: Session, document_id) -> None:
        document = db.get(Document, coerce_uuid(document_id))
        if not document:
            raise NotFoundError("Document not found")
        db.delete(document)
        db.flush()
        logger.info("Deleted document %s", document_id)

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    @classmethod
    def append_version(
        cls,
        db: Session,
        document_id,
        user_id,
        file_url: str | None = None,
        changelog: str | None = None,
    ) -> DocumentVersion:
        if not file_url and not (changelog and changelog.strip()):
            raise ValidationError("A version needs a file or a changelog")

        attempts = max(settings.version_append_retries, 1)
        for attempt in range(1, attempts + 1):
            document = cls._lock(db, document_id)
            current = db.scalar(
                select(func.coalesce(func.max(DocumentVersion.version_number), 0))
                .where(DocumentVersion.document_id == document.id)
            )
            version = DocumentVersion(
                document_id=document.id,
                version_number=current + 1,
                file_url=file_url,
                changelog=changelog,
                created_by=coerce_uuid(user_id),
            )
            try:
                with db.begin_nested():
                    db.add(version)
            except IntegrityError:
                logger.warning(
                    "Version %d of document %s taken, retry %d/%d",
                    current + 1,
                    document.id,
                    attempt,
                    attempts,
                )
                continue
            if file_url and file_url not in document.file_urls:
                document.file_urls = [*document.file_urls, file_url]
            db.flush()
            db.refresh(document)
            logger.info(
                "Added version %d to document %s", version.version_number, document.id
            )
            return version
        raise ConflictError("Could not allocate a version number, try again")

    @staticmethod
    def list_versions(db: Session, document_id) -> list[DocumentVersion]:
        return db.scalars(
            select(DocumentVersion)
            .where(DocumentVersion.document_id == coerce_uuid(document_id))
            .order_by(DocumentVersion.version_number.asc())
        ).all()

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    @classmethod
    def add_comment(
        cls, db: Session, document_id, user_id, text: str
    ) -> DocumentComment:
        if not text or not text.strip():
            raise ValidationError("Comment text is required")
        document = cls.get(db, document_id)
        comment = DocumentComment(
            document_id=document.id, user_id=coerce_uuid(user_id), text=text.strip()
        )
        db.add(comment)
        db.flush()
        logger.info("Added comment %s to document %s", comment.id, document.id)
        return comment

    @staticmethod
    def get_comment(db: Session, document_id, comment_id) -> DocumentComment:
        comment = db.get(DocumentComment, coerce_uuid(comment_id))
        if not comment or comment.document_id != coerce_uuid(document_id):
            raise NotFoundError("Comment not found")
        return comment

    @classmethod
    def delete_comment(cls, db: Session, document_id, comment_id) -> None:
        comment = cls.get_comment(db, document_id, comment_id)
        db.delete(comment)
        db.flush()
        logger.info("Deleted comment %s from document %s", comment_id, document_id)

    # ------------------------------------------------------------------
    # Likes
    # ------------------------------------------------------------------

    @classmethod
    def toggle_like(cls, db: Session, document_id, user_id) -> tuple[bool, int]:
        document = cls._lock(db, document_id)
        user_uuid = coerce_uuid(user_id)
        existing = db.scalars(
            select(DocumentLike).where(
                DocumentLike.document_id == document.id,
                DocumentLike.user_id == user_uuid,
            )
        ).first()
        if existing:
            db.delete(existing)
            liked = False
        else:
            try:
                with db.begin_nested():
                    db.add(DocumentLike(document_id=document.id, user_id=user_uuid))
            except IntegrityError:
                # A concurrent request already liked it
                logger.warning(
                    "Like by %s on %s already present", user_uuid, document.id
                )
            liked = True
        db.flush()
        db.refresh(document)
        return liked, document.likes_count

    # ------------------------------------------------------------------
    # Ratings
    # ------------------------------------------------------------------

    @classmethod
    def upsert_rating(
        cls, db: Session, document_id, user_id, rating: int
    ) -> DocumentRating:
        if isinstance(rating, bool) or not isinstance(rating, int):
            raise ValidationError("Rating must be an integer between 1 and 5")
        if not 1 <= rating <= 5:
            raise ValidationError("Rating must be an integer between 1 and 5")
        document = cls._lock(db, document_id)
        user_uuid = coerce_uuid(user_id)
        now = datetime.now(timezone.utc)

        def _existing():
            return db.scalars(
                select(DocumentRating).where(
                    DocumentRating.document_id == document.id,
                    DocumentRating.user_id == user_uuid,
                )
            ).first()

        entry = _existing()
        if entry is None:
            try:
                with db.begin_nested():
                    entry = DocumentRating(
                        document_id=document.id,
                        user_id=user_uuid,
                        rating=rating,
                        created_at=now,
                    )
                    db.add(entry)
            except IntegrityError:
                entry = _existing()
        entry.rating = rating
        entry.created_at = now
        db.flush()

        average = db.scalar(
            select(func.avg(DocumentRating.rating)).where(
                DocumentRating.document_id == document.id
            )
        )
        document.average_rating = float(average or 0)
        db.flush()
        logger.info(
            "User %s rated document %s %d (avg %.2f)",
            user_uuid,
            document.id,
            rating,
            document.average_rating,
        )
        return entry

    @staticmethod
    def rating_count(db: Session, document_id) -> int:
        return db.scalar(
            select(func.count(DocumentRating.id)).where(
                DocumentRating.document_id == coerce_uuid(document_id)
            )
        )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @classmethod
    def apply_status_transition(
        cls,
        db: Session,
        document_id,
        new_status,
        reviewer_id,
        reviewed_at: datetime | None = None,
        rejection_reason: str | None = None,
        expected: DocumentStatus | None = None,
    ) -> tuple[Document, DocumentStatus]:
        """Move a document to a review outcome; returns it with its prior status.

        When ``expected`` is given the locked row must still be in that status,
        otherwise a concurrent reviewer got there first and ConflictError is
        raised.
        """
        status = parse_status(new_status)
        if status not in REVIEW_TARGETS:
            allowed = sorted(s.value for s in REVIEW_TARGETS)
            raise ValidationError(f"Invalid review status. Allowed: {allowed}")
        document = cls._lock(db, document_id)
        previous = document.status
        if expected is not None and previous != expected:
            raise ConflictError(
                f"Only {expected.value.lower()} documents can be reviewed; "
                f"this one is {previous.value}"
            )
        document.status = status
        document.reviewed_by = coerce_uuid(reviewer_id)
        document.reviewed_at = reviewed_at or datetime.now(timezone.utc)
        if status == DocumentStatus.rejected and rejection_reason:
            document.rejection_reason = rejection_reason
        db.flush()
        db.refresh(document)
        logger.info(
            "Document %s moved %s -> %s", document.id, previous.value, status.value
        )
        return document, previous

    @classmethod
    def return_to_draft(
        cls, db: Session, document_id, reviewer_id, notes: str
    ) -> Document:
        document = cls._lock(db, document_id)
        if document.status != DocumentStatus.pending:
            raise ConflictError(
                "Only pending documents can be sent back; "
                f"this one is {document.status.value}"
            )
        document.status = DocumentStatus.draft
        document.reviewed_by = coerce_uuid(reviewer_id)
        document.reviewed_at = datetime.now(timezone.utc)
        document.revision_notes = notes
        db.flush()
        db.refresh(document)
        logger.info("Document %s returned to draft", document.id)
        return document

    @staticmethod
    def uploader_of(db: Session, document: Document) -> User:
        return db.get(User, document.uploader_id)


knowledge_documents = KnowledgeDocuments()
