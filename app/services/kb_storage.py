import logging
import re
import uuid
from pathlib import Path

import boto3
from botocore.config import Config
from fastapi import UploadFile

from app.config import settings
from app.errors import ValidationError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def _safe_name(file_name: str | None) -> str:
    name = Path(file_name or "").name
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    return name or "attachment"


class AttachmentStorage:
    """Stores uploaded attachments and returns the locator kept on documents.

    S3-compatible storage is used when it is configured; otherwise files land
    in ``ATTACHMENT_UPLOAD_DIR`` and are served under ``ATTACHMENT_URL_PREFIX``.
    """

    @staticmethod
    def is_configured() -> bool:
        return bool(
            settings.s3_endpoint_url
            and settings.s3_access_key
            and settings.s3_secret_key
        )

    @staticmethod
    def _get_client():
        return boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            region_name=settings.s3_region,
            config=Config(signature_version="s3v4"),
        )

    @staticmethod
    def generate_storage_key(file_name: str | None) -> str:
        unique = uuid.uuid4().hex[:12]
        return f"attachments/{unique}/{_safe_name(file_name)}"

    @staticmethod
    def _check_size(content: bytes) -> None:
        if not content:
            raise ValidationError("Attachment is empty")
        if len(content) > settings.attachment_max_size_bytes:
            raise ValidationError(
                "File too large. Maximum size: "
                f"{settings.attachment_max_size_bytes // 1024 // 1024}MB"
            )

    @classmethod
    def save(cls, file: UploadFile) -> str:
        content = file.file.read()
        cls._check_size(content)
        key = cls.generate_storage_key(file.filename)

        if cls.is_configured():
            client = cls._get_client()
            client.put_object(
                Bucket=settings.s3_bucket_name,
                Key=key,
                Body=content,
                ContentType=file.content_type or "application/octet-stream",
            )
            base = settings.s3_endpoint_url.rstrip("/")
            url = f"{base}/{settings.s3_bucket_name}/{key}"
            logger.info(
                "Stored attachment %s in bucket %s", key, settings.s3_bucket_name
            )
            return url

        relative = key.removeprefix("attachments/")
        file_path = Path(settings.attachment_upload_dir) / relative
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "wb") as f:
            f.write(content)
        logger.info("Stored attachment %s on local disk", file_path)
        return f"{settings.attachment_url_prefix}/{relative}"

    @classmethod
    def save_all(cls, files: list[UploadFile] | None) -> list[str]:
        return [cls.save(f) for f in files or [] if f is not None and f.filename]


attachment_storage = AttachmentStorage()
