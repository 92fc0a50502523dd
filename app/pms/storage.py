from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

PRESIGNED_URL_EXPIRY = 3600
MAX_FILENAME_LENGTH = 100


class StorageError(RuntimeError):
    pass


def sanitize_filename(filename: str) -> str:
    """Lowercase, replace anything outside [a-z0-9.-] with '-', collapse runs, cap length."""
    name = re.sub(r"[^a-z0-9.-]", "-", (filename or "").lower())
    name = re.sub(r"-+", "-", name)
    return name[:MAX_FILENAME_LENGTH]


def build_object_key(project_id: str, filename: str, task_id: str | None = None) -> str:
    """
    projects/{projectId}/files/{uuid}-{name}
    projects/{projectId}/tasks/{taskId}/{uuid}-{name}
    """
    name = f"{uuid.uuid4()}-{sanitize_filename(filename)}"
    if task_id:
        return f"projects/{project_id}/tasks/{task_id}/{name}"
    return f"projects/{project_id}/files/{name}"


class Storage:
    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        raise NotImplementedError

    def open(self, key: str) -> BinaryIO:
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def stat(self, key: str) -> dict[str, Any]:
        raise NotImplementedError

    def presigned_url(self, key: str, *, expires: int = PRESIGNED_URL_EXPIRY) -> str | None:
        """Direct download URL, or None when the backend cannot sign URLs."""
        return None

    def ensure_bucket(self) -> None:
        return None


@dataclass(frozen=True)
class LocalStorage(Storage):
    root: Path

    def _path(self, key: str) -> Path:
        safe_key = key.lstrip("/").replace("\\", "/")
        if ".." in safe_key.split("/"):
            raise StorageError(f"Invalid storage key: {key}")
        return self.root / safe_key

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        p = self._path(key)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)

    def open(self, key: str) -> BinaryIO:
        p = self._path(key)
        if not p.exists():
            raise StorageError(f"Object not found: {key}")
        return p.open("rb")

    def exists(self, key: str) -> bool:
        return self._path(key).exists()

    def delete(self, key: str) -> None:
        p = self._path(key)
        if p.exists():
            p.unlink()

    def stat(self, key: str) -> dict[str, Any]:
        p = self._path(key)
        if not p.exists():
            raise StorageError(f"Object not found: {key}")
        return {"size": p.stat().st_size}


@dataclass
class S3Storage(Storage):
    """
    S3-compatible object storage (MinIO in development).
    The boto3 client is created once and reused; boto3 clients are safe to share across threads.
    """

    endpoint: str
    region: str
    bucket: str
    access_key_id: str
    secret_access_key: str
    use_ssl: bool = False
    _client_cache: Any = field(default=None, init=False, repr=False, compare=False)

    def _client(self):
        if self._client_cache is None:
            endpoint_url = None
            if self.endpoint:
                scheme = "https" if self.use_ssl else "http"
                endpoint_url = self.endpoint if "://" in self.endpoint else f"{scheme}://{self.endpoint}"
            self._client_cache = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                region_name=self.region or None,
                aws_access_key_id=self.access_key_id,
                aws_secret_access_key=self.secret_access_key,
            )
        return self._client_cache

    def ensure_bucket(self) -> None:
        try:
            self._client().head_bucket(Bucket=self.bucket)
            logger.info("Storage bucket '%s' accessible", self.bucket)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code not in ("404", "NoSuchBucket", "NotFound"):
                raise
            self._client().create_bucket(Bucket=self.bucket)
            logger.info("Created storage bucket '%s'", self.bucket)

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        extra: dict[str, object] = {}
        if content_type:
            extra["ContentType"] = content_type
        self._client().put_object(Bucket=self.bucket, Key=key, Body=data, **extra)

    def open(self, key: str) -> BinaryIO:
        obj = self._client().get_object(Bucket=self.bucket, Key=key)
        return obj["Body"]  # type: ignore[return-value]

    def exists(self, key: str) -> bool:
        try:
            self._client().head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError:
            return False

    def delete(self, key: str) -> None:
        self._client().delete_object(Bucket=self.bucket, Key=key)

    def stat(self, key: str) -> dict[str, Any]:
        head = self._client().head_object(Bucket=self.bucket, Key=key)
        return {
            "size": head.get("ContentLength"),
            "contentType": head.get("ContentType"),
            "lastModified": head.get("LastModified"),
            "etag": head.get("ETag"),
        }

    def presigned_url(self, key: str, *, expires: int = PRESIGNED_URL_EXPIRY) -> str | None:
        return self._client().generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires,
        )


def storage_from_config(config: dict) -> Storage:
    backend = (config.get("STORAGE_BACKEND") or "local").strip().lower()
    if backend == "s3":
        return S3Storage(
            endpoint=(config.get("S3_ENDPOINT") or "").strip(),
            region=(config.get("S3_REGION") or "").strip(),
            bucket=(config.get("S3_BUCKET") or "").strip(),
            access_key_id=(config.get("S3_ACCESS_KEY_ID") or "").strip(),
            secret_access_key=(config.get("S3_SECRET_ACCESS_KEY") or "").strip(),
            use_ssl=bool(config.get("S3_USE_SSL")),
        )
    # default local
    return LocalStorage(root=Path(config.get("STORAGE_ROOT") or "storage"))
