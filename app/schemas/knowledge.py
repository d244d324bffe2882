from __future__ import annotations

import json
from datetime import datetime
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from app.models.knowledge import DocumentStatus
from app.schemas.common import RequestModel


def _parse_json_list(value):
    # Multipart forms send arrays as JSON-encoded strings
    if value is None:
        return []
    if isinstance(value, str):
        if not value.strip():
            return []
        try:
            value = json.loads(value)
        except ValueError:
            return []
    if not isinstance(value, list):
        return []
    return value


class MetadataPair(BaseModel):
    key: str
    value: str

    @field_validator("key", "value", mode="before")
    @classmethod
    def _strip(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------


class DocumentUploadRequest(RequestModel):
    title: str | None = Field(default=None, max_length=500)
    uploader_id: str | None = None
    description: str | None = None
    domain: str | None = None
    region: str | None = None
    tags: list[str] = Field(default_factory=list)
    metadata: list[MetadataPair] = Field(default_factory=list)
    file_url: str | None = None
    file_urls: list[str] = Field(default_factory=list)
    changelog: str | None = None
    confirm_duplicate: bool = False

    @field_validator("tags", "metadata", "file_urls", mode="before")
    @classmethod
    def _coerce_lists(cls, value):
        return _parse_json_list(value)

    @field_validator("confirm_duplicate", mode="before")
    @classmethod
    def _coerce_confirm(cls, value):
        if value is None or value == "":
            return False
        return value

    def attachment_urls(self) -> list[str]:
        if self.file_urls:
            return list(self.file_urls)
        if self.file_url:
            return [self.file_url]
        return []


class ComplianceResult(BaseModel):
    passed: bool
    is_sensitive: bool
    reason: str | None = None


class SimilarDocument(BaseModel):
    id: UUID
    title: str
    similarity: int


# ---------------------------------------------------------------------------
# Document read models
# ---------------------------------------------------------------------------


class DocumentVersionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    version_number: int
    file_url: str | None = None
    changelog: str | None = None
    created_by: UUID | None = None
    created_at: datetime


class DocumentCommentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    document_id: UUID
    user_id: UUID
    text: str
    created_at: datetime


class DocumentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    document_id: str
    title: str
    description: str | None = None
    domain: str | None = None
    region: str | None = None
    tags: list[str] = Field(default_factory=list)
    metadata: list[MetadataPair] = Field(
        default_factory=list, validation_alias=AliasChoices("metadata_", "metadata")
    )
    file_urls: list[str] = Field(default_factory=list)
    status: DocumentStatus
    is_sensitive: bool
    compliance_notes: str | None = None
    compliance_flag: bool
    flag_reason: str | None = None
    uploader_id: UUID
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    rejection_reason: str | None = None
    revision_notes: str | None = None
    is_duplicate_warning: bool
    similar_document_id: UUID | None = None
    average_rating: float
    version_count: int
    likes_count: int
    versions: list[DocumentVersionRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class DocumentDetailRead(DocumentRead):
    comments: list[DocumentCommentRead] = Field(default_factory=list)


class UploadData(BaseModel):
    document: DocumentRead
    is_new_version: bool
    compliance_check: ComplianceResult
    points_earned: int
    badges_earned: list[str] = Field(default_factory=list)
    metadata_warnings: list[str] = Field(default_factory=list)


class UploadResponse(BaseModel):
    success: bool
    code: str
    message: str
    data: UploadData | None = None
    similar_documents: list[SimilarDocument] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Review / governance
# ---------------------------------------------------------------------------


class StatusUpdateRequest(RequestModel):
    user_id: str | None = None
    status: str | None = None
    rejection_reason: str | None = None


class ReviewResult(BaseModel):
    id: UUID
    title: str
    status: DocumentStatus
    reviewed_by: str
    reviewed_at: datetime


class ReviewResponse(BaseModel):
    success: bool = True
    message: str
    data: ReviewResult


class RevisionRequest(RequestModel):
    user_id: UUID
    notes: str = Field(min_length=1)


class ComplianceFlagRequest(RequestModel):
    user_id: UUID
    flag: bool
    flag_reason: str | None = None


# ---------------------------------------------------------------------------
# Interactions
# ---------------------------------------------------------------------------


class VersionCreate(RequestModel):
    user_id: UUID
    file_url: str | None = None
    changelog: str | None = None


class RatingRequest(RequestModel):
    user_id: UUID
    rating: int


class RatingResult(BaseModel):
    average_rating: float
    rating_count: int
    user_rating: int


class LikeRequest(RequestModel):
    user_id: UUID


class LikeResult(BaseModel):
    is_liked: bool
    likes_count: int


class CommentCreate(RequestModel):
    user_id: UUID
    text: str = Field(min_length=1)


class UserActionRequest(RequestModel):
    user_id: UUID
