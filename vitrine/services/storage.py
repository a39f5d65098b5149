"""Object storage for verification documents."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from vitrine.core.logging import get_logger
from vitrine.core.settings import Settings, get_settings

logger = get_logger(__name__)


class StorageError(RuntimeError):
    """Raised when a storage operation fails."""


class StorageService:
    """Bucket/key object store with a local filesystem or S3 backend.

    ``upload`` never overwrites: a key that already exists is an error, the
    same way the hosted bucket rejects a duplicate path.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self._client = None
        if self.settings.storage_backend == "s3":
            session = boto3.session.Session(
                aws_access_key_id=self.settings.storage_s3_access_key,
                aws_secret_access_key=self.settings.storage_s3_secret_key,
                region_name=self.settings.storage_s3_region,
            )
            self._client = session.client(
                "s3",
                endpoint_url=self.settings.storage_s3_endpoint,
            )

    def _local_path(self, bucket: str, path: str) -> Path:
        root = (self.settings.resolved_storage_path / bucket).resolve()
        target = (root / path).resolve()
        if root not in target.parents:
            raise StorageError(f"Key escapes bucket: {path}")
        return target

    def upload(self, bucket: str, key: str, data: bytes, content_type: str | None = None) -> str:
        """Store ``data`` under ``bucket/key`` and return the stored path."""
        if self.settings.storage_backend == "local":
            target = self._local_path(bucket, key)
            target.parent.mkdir(parents=True, exist_ok=True)
            try:
                with target.open("xb") as handle:
                    handle.write(data)
            except FileExistsError as exc:
                raise StorageError(f"Object already exists: {bucket}/{key}") from exc
            except OSError as exc:
                logger.error("local_upload_failed", error=str(exc), bucket=bucket, key=key)
                raise StorageError("Failed to write object") from exc
            return key

        assert self._client is not None
        extra = {"ContentType": content_type} if content_type else {}
        try:
            self._client.put_object(Bucket=bucket, Key=key, Body=data, IfNoneMatch="*", **extra)
        except (ClientError, BotoCoreError) as exc:  # pragma: no cover - network
            logger.error("s3_upload_failed", error=str(exc), bucket=bucket, key=key)
            raise StorageError("Failed to upload object to S3") from exc
        return key

    def get_public_url(self, bucket: str, path: str) -> str:
        base = self.settings.storage_public_base_url
        if base:
            return f"{base.rstrip('/')}/{quote(bucket)}/{quote(path)}"
        if self.settings.storage_backend == "local":
            return self._local_path(bucket, path).as_uri()
        if self.settings.storage_s3_endpoint:
            return f"{self.settings.storage_s3_endpoint.rstrip('/')}/{quote(bucket)}/{quote(path)}"
        return f"https://{bucket}.s3.amazonaws.com/{quote(path)}"

    def remove(self, bucket: str, paths: Iterable[str]) -> None:
        """Delete objects; missing objects are ignored."""
        paths = list(paths)
        if not paths:
            return
        if self.settings.storage_backend == "local":
            for path in paths:
                try:
                    self._local_path(bucket, path).unlink(missing_ok=True)
                except OSError as exc:
                    raise StorageError(f"Failed to delete {bucket}/{path}") from exc
            return

        assert self._client is not None
        try:
            self._client.delete_objects(
                Bucket=bucket,
                Delete={"Objects": [{"Key": path} for path in paths], "Quiet": True},
            )
        except (ClientError, BotoCoreError) as exc:  # pragma: no cover - network
            logger.error("s3_delete_failed", error=str(exc), bucket=bucket)
            raise StorageError("Failed to delete objects from S3") from exc


_storage_service: StorageService | None = None


def get_storage_service() -> StorageService:
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService()
    return _storage_service


__all__ = ["get_storage_service", "StorageError", "StorageService"]
