from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from brandguard.config import settings
from brandguard.errors import AssetDownloadError

logger = logging.getLogger(__name__)


class MediaStorageConfigurationError(RuntimeError):
    pass


@dataclass(frozen=True)
class StoredObject:
    key: str
    size_bytes: int
    content_type: Optional[str]


class MediaStorage:
    """
    Thin wrapper around the S3-compatible bucket holding uploaded creative assets.

    The analysis worker only reads: object metadata plus presigned GET URLs that the
    analysis services fetch themselves.
    """

    def __init__(self) -> None:
        if not settings.ASSET_STORAGE_BUCKET:
            raise MediaStorageConfigurationError("ASSET_STORAGE_BUCKET is required")
        if not settings.ASSET_STORAGE_ENDPOINT:
            raise MediaStorageConfigurationError("ASSET_STORAGE_ENDPOINT is required")
        if not settings.ASSET_STORAGE_ACCESS_KEY or not settings.ASSET_STORAGE_SECRET_KEY:
            raise MediaStorageConfigurationError(
                "ASSET_STORAGE_ACCESS_KEY and ASSET_STORAGE_SECRET_KEY are required"
            )

        addressing_style = "path" if settings.ASSET_STORAGE_FORCE_PATH_STYLE else "auto"
        self.bucket = settings.ASSET_STORAGE_BUCKET
        self.presign_ttl = int(settings.ASSET_STORAGE_PRESIGN_TTL_SECONDS or 900)

        session = boto3.session.Session()
        self.client = session.client(
            "s3",
            endpoint_url=settings.ASSET_STORAGE_ENDPOINT,
            aws_access_key_id=settings.ASSET_STORAGE_ACCESS_KEY,
            aws_secret_access_key=settings.ASSET_STORAGE_SECRET_KEY,
            region_name=settings.ASSET_STORAGE_REGION or "us-east-1",
            use_ssl=bool(settings.ASSET_STORAGE_USE_SSL),
            config=Config(
                s3={"addressing_style": addressing_style},
                signature_version="s3v4",
            ),
        )

    def stat_object(self, *, key: str) -> StoredObject:
        try:
            head = self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code") if hasattr(exc, "response") else None
            if code in ("404", "NoSuchKey", "NotFound"):
                raise AssetDownloadError(f"Asset file not found in storage: {key}") from exc
            raise AssetDownloadError(f"Failed to read asset file {key}: {exc}") from exc
        except BotoCoreError as exc:
            raise AssetDownloadError(f"Failed to read asset file {key}: {exc}") from exc
        return StoredObject(
            key=key,
            size_bytes=int(head.get("ContentLength") or 0),
            content_type=head.get("ContentType"),
        )

    def presign_get(self, *, key: str, expires_in: Optional[int] = None) -> str:
        ttl = int(expires_in or self.presign_ttl or 900)
        try:
            return self.client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=ttl,
            )
        except (BotoCoreError, ClientError) as exc:
            raise AssetDownloadError(f"Failed to create download URL for {key}: {exc}") from exc
