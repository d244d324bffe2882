"""Document lifecycle orchestration.

Upload and review flows coordinate the similarity detector, the compliance
checker, the document store and the gamification engine, then fan out
notifications and audit entries.

The primary mutation and its audit entry are committed together. Every
follow-up side effect (scoring, badge announcements, notification fan-out)
commits on its own; a database failure inside one is rolled back and logged
and never undoes the primary mutation.
"""

from __future__ import annotations

import logging
from dataclasses import asdict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import (
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.models.audit import AuditAction, AuditTargetType
from app.models.gamification import ScoreAction
from app.models.knowledge import Document, DocumentStatus
from app.models.notification import NotificationType
from app.models.user import User
from app.observability import REVIEWS, UPLOADS
from app.schemas.knowledge import (
    ComplianceResult,
    DocumentRead,
    DocumentUploadRequest,
    LikeResult,
    RatingResult,
    ReviewResponse,
    ReviewResult,
    SimilarDocument,
    UploadData,
    UploadResponse,
)
from app.schemas.onboarding import OnboardingProgressRead
from app.services.audit import audit_trail
from app.services.common import coerce_uuid
from app.services.gamification import gamification
from app.services.kb_compliance import check_compliance, validate_metadata
from app.services.kb_document import REVIEW_TARGETS, knowledge_documents, parse_status
from app.services.kb_similarity import find_similar
from app.services.notification import notification_sink
from app.services.onboarding import COMPLETE, onboarding
from app.services.permissions import (
    PENDING_REVIEW_NOTIFY_ROLES,
    can_administer,
    can_govern,
    can_review,
    can_view_history,
    capabilities,
    visibility_filter,
)

logger = logging.getLogger(__name__)

_REVIEW_AUDIT_ACTIONS = {
    DocumentStatus.approved: AuditAction.approve,
    DocumentStatus.rejected: AuditAction.reject,
    DocumentStatus.archived: AuditAction.archive,
}

NO_REASON = "No reason provided"


class DocumentLifecycle:
    def __init__(
        self,
        documents,
        gamification,
        notifier,
        audit,
        onboarding,
        duplicate_threshold: float | None = None,
    ):
        self.documents = documents
        self.gamification = gamification
        self.notifier = notifier
        self.audit = audit
        self.onboarding = onboarding
        self.duplicate_threshold = (
            settings.duplicate_threshold
            if duplicate_threshold is None
            else duplicate_threshold
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _get_user(db: Session, user_id, label: str = "User") -> User:
        if not user_id:
            raise ValidationError(f"{label} id is required")
        user = db.get(User, coerce_uuid(user_id))
        if not user:
            raise NotFoundError(f"{label} not found")
        return user

    @staticmethod
    def _side_effect(db: Session, label: str, fn, *args, **kwargs):
        try:
            result = fn(*args, **kwargs)
            db.commit()
            return result
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Side effect '%s' failed", label)
            return None

    def _award(
        self,
        db: Session,
        user: User,
        action: ScoreAction,
        description: str,
        document_id,
    ) -> tuple[int, list[str]]:
        """Award points and announce new badges; returns (points, badge names)."""
        award = self._side_effect(
            db,
            f"award {action.value}",
            self.gamification.award_points,
            db,
            user.id,
            action,
            description,
            document_id,
        )
        if award is None:
            return 0, []
        if award.new_badges:
            self._side_effect(
                db,
                "badge announcements",
                self._announce_badges,
                db,
                user,
                award.new_badges,
            )
        return award.points_awarded, list(award.new_badges)

    def _announce_badges(self, db: Session, user: User, badges: list[str]) -> None:
        for name in badges:
            self.audit.record(
                db,
                user,
                AuditAction.badge_earned,
                user.id,
                target_type=AuditTargetType.user,
                details=f"Earned badge: {name}",
            )
            self.notifier.notify(
                db,
                user.id,
                NotificationType.badge_earned,
                "Badge Earned!",
                f"Congratulations! You earned the {name} badge.",
            )

    def _notify_reviewers(self, db: Session, uploader: User, document: Document) -> int:
        sent = 0
        for role in PENDING_REVIEW_NOTIFY_ROLES:
            sent += self.notifier.notify_by_role(
                db,
                role,
                NotificationType.document_pending,
                "New Document Pending Review",
                f'"{document.title}" uploaded by {uploader.name} requires review.',
                document.id,
            )
        return sent

    @staticmethod
    def _visible_to(user: User, document: Document) -> bool:
        if capabilities(user.role).view_all:
            return True
        return (
            document.status == DocumentStatus.approved
            or document.uploader_id == user.id
        )

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def upload(
        self,
        db: Session,
        payload: DocumentUploadRequest,
        attachments: list[str] | None = None,
    ) -> UploadResponse:
        if not payload.title or not payload.title.strip() or not payload.uploader_id:
            raise ValidationError("Title and uploaderId are required")
        uploader = self._get_user(db, payload.uploader_id, "Uploader")
        title = payload.title.strip()

        metadata = [pair.model_dump() for pair in payload.metadata]
        report = validate_metadata(metadata)
        if not report.is_valid:
            raise ValidationError("Invalid metadata", details=report.errors)
        file_urls = [*(attachments or []), *payload.attachment_urls()]

        matches = find_similar(
            title,
            self.documents.all_titles(db),
            threshold=self.duplicate_threshold,
            title_of=lambda row: row.title,
        )
        if matches and not payload.confirm_duplicate:
            return self._duplicate_warning(db, uploader, title, matches)

        compliance = check_compliance(metadata, payload.region)
        existing = None
        if payload.confirm_duplicate:
            existing = self.documents.find_by_title(db, title)

        if existing is not None:
            document, version_number = self._append_upload(
                db, existing, uploader, file_urls, payload.changelog, compliance
            )
            self.audit.record(
                db,
                uploader,
                AuditAction.version_update,
                document.id,
                details=f"Added version {version_number}",
            )
        else:
            top = matches[0].match if matches else None
            document = self.documents.create(
                db,
                uploader.id,
                title,
                description=payload.description,
                domain=payload.domain,
                region=payload.region,
                tags=payload.tags,
                metadata=metadata,
                file_urls=file_urls,
                status=DocumentStatus.pending
                if compliance.passed
                else DocumentStatus.rejected,
                is_sensitive=compliance.is_sensitive,
                compliance_notes=compliance.reason,
                is_duplicate_warning=bool(matches),
                similar_document_id=top.id if top is not None else None,
                changelog=payload.changelog,
            )
            self.audit.record(
                db,
                uploader,
                AuditAction.upload,
                document.id,
                details=f"New document created: {title}",
            )
        if not compliance.passed:
            self.audit.record(
                db,
                uploader,
                AuditAction.compliance_flag,
                document.id,
                details=compliance.reason,
            )
        db.commit()

        is_new_version = existing is not None
        if not compliance.passed:
            code = "COMPLIANCE_REJECTED"
            message = "Document flagged for compliance review"
        elif is_new_version:
            code, message = "NEW_VERSION", "New version added successfully"
        else:
            code, message = "UPLOADED", "Document uploaded successfully"
        UPLOADS.labels(code.lower()).inc()
        logger.info(
            "Upload of %s by %s finished with %s", document.id, uploader.id, code
        )

        points, badges = self._award(
            db, uploader, ScoreAction.upload, f"Uploaded {title}", document.id
        )
        if document.status == DocumentStatus.pending:
            self._side_effect(
                db,
                "pending review fan-out",
                self._notify_reviewers,
                db,
                uploader,
                document,
            )

        db.refresh(document)
        return UploadResponse(
            success=True,
            code=code,
            message=message,
            data=UploadData(
                document=DocumentRead.model_validate(document),
                is_new_version=is_new_version,
                compliance_check=ComplianceResult(**asdict(compliance)),
                points_earned=points,
                badges_earned=badges,
                metadata_warnings=report.warnings,
            ),
        )

    def _duplicate_warning(self, db: Session, uploader: User, title: str, matches):
        top = matches[0]
        self.audit.record(
            db,
            uploader,
            AuditAction.duplicate_detected,
            title,
            details=(
                f"Similar document found: {top.match.title} ({top.similarity}% match)"
            ),
            metadata={
                "similar_documents": [
                    {"id": str(m.match.id), "similarity": m.similarity} for m in matches
                ]
            },
        )
        db.commit()
        UPLOADS.labels("duplicate_warning").inc()
        logger.info("Duplicate warning for '%s' by %s", title, uploader.id)
        return UploadResponse(
            success=False,
            code="DUPLICATE_WARNING",
            message=(
                "Possible duplicate detected. "
                "Set confirmDuplicate to true to proceed."
            ),
            similar_documents=[
                SimilarDocument(
                    id=m.match.id, title=m.match.title, similarity=m.similarity
                )
                for m in matches
            ],
        )

    def _append_upload(
        self,
        db: Session,
        document: Document,
        uploader: User,
        file_urls: list[str],
        changelog: str | None,
        compliance,
    ) -> tuple[Document, int]:
        version = self.documents.append_version(
            db,
            document.id,
            uploader.id,
            file_url=file_urls[0] if file_urls else None,
            changelog=changelog or f"Uploaded as a new version by {uploader.name}",
        )
        extra = [url for url in file_urls[1:] if url not in document.file_urls]
        if extra:
            document.file_urls = [*document.file_urls, *extra]
        if not compliance.passed:
            document.is_sensitive = True
            document.compliance_notes = compliance.reason
            if document.status in (DocumentStatus.pending, DocumentStatus.draft):
                document.status = DocumentStatus.rejected
            else:
                # Reviewed documents keep their outcome and go to governance
                document.compliance_flag = True
                document.flag_reason = compliance.reason
        elif document.status == DocumentStatus.draft:
            # Resubmission after a revision request
            document.status = DocumentStatus.pending
        db.flush()
        return document, version.version_number

    # ------------------------------------------------------------------
    # Review
    # ------------------------------------------------------------------

    def review(
        self,
        db: Session,
        document_id,
        reviewer_id,
        status: str | None,
        rejection_reason: str | None = None,
    ) -> ReviewResponse:
        if not reviewer_id or not status:
            raise ValidationError("userId and status are required")
        target = parse_status(status)
        if target not in REVIEW_TARGETS:
            allowed = sorted(s.value for s in REVIEW_TARGETS)
            raise ValidationError(f"Invalid review status. Allowed: {allowed}")

        reviewer = self._get_user(db, reviewer_id, "Reviewer")
        if not can_review(reviewer.role):
            raise PermissionDeniedError(
                f"Role {reviewer.role.value} is not permitted to review documents"
            )
        document, previous = self.documents.apply_status_transition(
            db,
            document_id,
            target,
            reviewer.id,
            rejection_reason=rejection_reason,
            expected=DocumentStatus.pending,
        )
        details = (
            f"Status changed from {previous.value} to {target.value}: "
            f"{document.title}"
        )
        if target == DocumentStatus.rejected:
            details = f"{details}. Reason: {rejection_reason or NO_REASON}"
        self.audit.record(
            db, reviewer, _REVIEW_AUDIT_ACTIONS[target], document.id, details=details
        )
        db.commit()
        REVIEWS.labels(target.value).inc()
        logger.info(
            "Document %s reviewed by %s: %s", document.id, reviewer.id, target.value
        )

        if target in (DocumentStatus.approved, DocumentStatus.rejected):
            self._award(
                db,
                reviewer,
                ScoreAction.review,
                f"Reviewed {document.title}",
                document.id,
            )

        uploader = db.get(User, document.uploader_id)
        if target == DocumentStatus.approved and uploader is not None:
            self._award(
                db,
                uploader,
                ScoreAction.approval,
                f"Document approved: {document.title}",
                document.id,
            )
            self._side_effect(
                db,
                "approval notifications",
                self._notify_approved,
                db,
                uploader,
                document,
            )
        elif target == DocumentStatus.rejected and uploader is not None:
            self._side_effect(
                db,
                "rejection notification",
                self.notifier.notify,
                db,
                uploader.id,
                NotificationType.document_rejected,
                "Document Rejected",
                f'Your document "{document.title}" was rejected. '
                f"Reason: {rejection_reason or NO_REASON}",
                document.id,
            )

        db.refresh(document)
        return ReviewResponse(
            message=f"Document {target.value.lower()} successfully",
            data=ReviewResult(
                id=document.id,
                title=document.title,
                status=document.status,
                reviewed_by=reviewer.name,
                reviewed_at=document.reviewed_at,
            ),
        )

    def _notify_approved(self, db: Session, uploader: User, document: Document) -> None:
        self.notifier.notify(
            db,
            uploader.id,
            NotificationType.document_approved,
            "Document Approved",
            f'Your document "{document.title}" has been approved.',
            document.id,
        )
        self.notifier.notify_all(
            db,
            NotificationType.new_knowledge,
            "New Knowledge Available",
            f'"{document.title}" is now available in the knowledge base.',
            document.id,
        )

    def request_revision(
        self, db: Session, document_id, reviewer_id, notes: str
    ) -> Document:
        if not notes or not notes.strip():
            raise ValidationError("Revision notes are required")
        reviewer = self._get_user(db, reviewer_id, "Reviewer")
        if not can_review(reviewer.role):
            raise PermissionDeniedError(
                f"Role {reviewer.role.value} is not permitted to request revisions"
            )
        document = self.documents.return_to_draft(
            db, document_id, reviewer.id, notes.strip()
        )
        db.commit()
        self._side_effect(
            db,
            "revision notification",
            self.notifier.notify,
            db,
            document.uploader_id,
            NotificationType.revision_requested,
            "Revision Requested",
            f'Revisions requested for "{document.title}": {notes.strip()}',
            document.id,
        )
        db.refresh(document)
        return document

    # ------------------------------------------------------------------
    # Governance
    # ------------------------------------------------------------------

    def set_compliance_flag(
        self, db: Session, document_id, user_id, flag: bool, reason: str | None = None
    ) -> Document:
        user = self._get_user(db, user_id)
        if not can_govern(user.role):
            raise PermissionDeniedError("Governance permission required")
        document = self.documents.get(db, document_id)
        document.compliance_flag = flag
        document.flag_reason = reason if flag else None
        self.audit.record(
            db,
            user,
            AuditAction.compliance_flag,
            document.id,
            details=f"Flagged: {reason or NO_REASON}" if flag else "Flag resolved",
        )
        db.commit()
        db.refresh(document)
        logger.info("Compliance flag on %s set to %s by %s", document.id, flag, user.id)
        return document

    def list_flagged(self, db: Session, user_id) -> list[Document]:
        user = self._get_user(db, user_id)
        if not can_govern(user.role):
            raise PermissionDeniedError("Governance permission required")
        return self.documents.list_flagged(db)

    def list_pending(self, db: Session, user_id) -> list[Document]:
        user = self._get_user(db, user_id)
        if not can_review(user.role):
            raise PermissionDeniedError("Insufficient permissions to review")
        return self.documents.list_pending(db)

    def document_history(self, db: Session, document_id, user_id) -> list:
        user = self._get_user(db, user_id)
        document = self.documents.get(db, document_id)
        allowed = (
            can_review(user.role)
            or can_view_history(user.role)
            or document.uploader_id == user.id
        )
        if not allowed:
            raise PermissionDeniedError("Not permitted to view this document's history")
        return self.audit.for_target(db, document.id)

    def delete_document(self, db: Session, document_id, user_id) -> None:
        user = self._get_user(db, user_id)
        if not can_administer(user.role):
            raise PermissionDeniedError("Only administrators can delete documents")
        document = self.documents.get(db, document_id)
        self.audit.record(
            db,
            user,
            AuditAction.delete,
            document.id,
            details=f"Deleted document: {document.title}",
        )
        self.documents.delete(db, document.id)
        db.commit()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def visibility_for(self, db: Session, user_id):
        user = self._get_user(db, user_id)
        return visibility_filter(user)

    def get_document(self, db: Session, document_id, user_id=None) -> Document:
        document = self.documents.get(db, document_id)
        if user_id is not None:
            viewer = self._get_user(db, user_id)
            if not self._visible_to(viewer, document):
                raise NotFoundError("Document not found")
        return document

    # ------------------------------------------------------------------
    # Interactions
    # ------------------------------------------------------------------

    def add_version(
        self,
        db: Session,
        document_id,
        user_id,
        file_url: str | None = None,
        changelog: str | None = None,
    ):
        user = self._get_user(db, user_id)
        document = self.documents.get(db, document_id)
        if document.uploader_id != user.id and not can_administer(user.role):
            raise PermissionDeniedError("Only the uploader can add versions")
        version = self.documents.append_version(
            db, document.id, user.id, file_url=file_url, changelog=changelog
        )
        resubmitted = document.status == DocumentStatus.draft
        if resubmitted:
            document.status = DocumentStatus.pending
        self.audit.record(
            db,
            user,
            AuditAction.version_update,
            document.id,
            details=f"Added version {version.version_number}",
        )
        db.commit()
        if resubmitted:
            uploader = db.get(User, document.uploader_id)
            self._side_effect(
                db,
                "pending review fan-out",
                self._notify_reviewers,
                db,
                uploader,
                document,
            )
        db.refresh(version)
        return version

    def toggle_like(self, db: Session, document_id, user_id) -> LikeResult:
        user = self._get_user(db, user_id)
        document = self.documents.get(db, document_id)
        liked, count = self.documents.toggle_like(db, document.id, user.id)
        db.commit()
        logger.info(
            "User %s %s document %s",
            user.id,
            "liked" if liked else "unliked",
            document.id,
        )

        if liked and document.uploader_id != user.id:
            uploader = db.get(User, document.uploader_id)
            if uploader is not None:
                self._award(
                    db,
                    uploader,
                    ScoreAction.like_received,
                    f"{user.name} liked {document.title}",
                    document.id,
                )
                self._side_effect(
                    db,
                    "like notification",
                    self.notifier.notify,
                    db,
                    uploader.id,
                    NotificationType.like,
                    "New Like",
                    f'{user.name} liked your document "{document.title}"',
                    document.id,
                )
        return LikeResult(is_liked=liked, likes_count=count)

    def rate(self, db: Session, document_id, user_id, rating: int) -> RatingResult:
        user = self._get_user(db, user_id)
        document = self.documents.get(db, document_id)
        entry = self.documents.upsert_rating(db, document.id, user.id, rating)
        db.commit()
        db.refresh(document)
        return RatingResult(
            average_rating=document.average_rating,
            rating_count=self.documents.rating_count(db, document.id),
            user_rating=entry.rating,
        )

    def add_comment(self, db: Session, document_id, user_id, text: str):
        user = self._get_user(db, user_id)
        document = self.documents.get(db, document_id)
        comment = self.documents.add_comment(db, document.id, user.id, text)
        db.commit()

        self._award(
            db, user, ScoreAction.comment, f"Commented on {document.title}", document.id
        )
        if document.uploader_id != user.id:
            self._side_effect(
                db,
                "comment notification",
                self.notifier.notify,
                db,
                document.uploader_id,
                NotificationType.comment,
                "New Comment",
                f'{user.name} commented on your document "{document.title}"',
                document.id,
            )
        db.refresh(comment)
        return comment

    def delete_comment(self, db: Session, document_id, comment_id, user_id) -> None:
        user = self._get_user(db, user_id)
        comment = self.documents.get_comment(db, document_id, comment_id)
        if comment.user_id != user.id and not can_administer(user.role):
            raise PermissionDeniedError(
                "Only the author or an administrator can delete a comment"
            )
        self.documents.delete_comment(db, document_id, comment.id)
        db.commit()

    # ------------------------------------------------------------------
    # Onboarding
    # ------------------------------------------------------------------

    def complete_onboarding_module(
        self, db: Session, user_id, module_id: int
    ) -> OnboardingProgressRead:
        outcome = self.onboarding.record_module(db, user_id, module_id)
        db.commit()

        points, badges = 0, []
        if outcome.just_completed:
            points, badges = self._award(
                db,
                outcome.user,
                ScoreAction.training_complete,
                "Completed onboarding",
                None,
            )
        message = (
            "Congratulations! Onboarding complete!"
            if outcome.progress >= COMPLETE
            else "Progress updated!"
        )
        return OnboardingProgressRead(
            progress=outcome.progress,
            message=message,
            points_earned=points,
            badges_earned=badges,
        )


def build_lifecycle() -> DocumentLifecycle:
    return DocumentLifecycle(
        documents=knowledge_documents,
        gamification=gamification,
        notifier=notification_sink,
        audit=audit_trail,
        onboarding=onboarding,
    )
