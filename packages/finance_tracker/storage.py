"""S3 object storage for uploaded statement files (via boto3).

Uploads are archived under a hierarchical key::

    uploads/<email>/<ACCOUNT>/<start>_to_<end>/<url-quoted filename>

so that a later reprocess can list everything a user uploaded and recover the
account classification from the key alone.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any, Protocol
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .logging_setup import get_logger
from .models import AccountType, DateRange

logger = get_logger("finance_tracker.storage")

UPLOADS_PREFIX = "uploads"

# Mark characters left literal in archived filenames.
_FILENAME_SAFE = "!*'()"

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class StorageError(Exception):
    """Base error for object storage operations."""


class StorageConfigError(StorageError):
    """Missing or invalid object storage configuration."""


class StorageUploadError(StorageError):
    """Failed to upload an object."""


class StorageDownloadError(StorageError):
    """Failed to list or download objects."""


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ObjectStoreConfig:
    bucket: str
    region: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    endpoint_url: str | None = None


def load_object_store_config_from_env(
    environ: Mapping[str, str] | None = None,
) -> ObjectStoreConfig:
    """Load object store configuration from environment variables.

    ``AWS_BUCKET`` is required. ``AWS_REGION``, ``AWS_ACCESS_KEY_ID``,
    ``AWS_SECRET_ACCESS_KEY`` and ``AWS_ENDPOINT_URL`` are optional; without
    explicit keys boto3 falls back to its default credential chain.

    Raises:
        StorageConfigError: If ``AWS_BUCKET`` is missing.
    """
    env = os.environ if environ is None else environ
    bucket = env.get("AWS_BUCKET")
    if not bucket:
        raise StorageConfigError("Server configuration error: AWS_BUCKET missing.")
    return ObjectStoreConfig(
        bucket=bucket,
        region=env.get("AWS_REGION") or None,
        access_key_id=env.get("AWS_ACCESS_KEY_ID") or None,
        secret_access_key=env.get("AWS_SECRET_ACCESS_KEY") or None,
        endpoint_url=env.get("AWS_ENDPOINT_URL") or None,
    )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class ObjectStore(Protocol):
    def put(self, key: str, body: bytes, content_type: str) -> None: ...

    def list_keys(self, prefix: str) -> list[str]: ...

    def get(self, key: str) -> bytes: ...


class S3ObjectStore:
    """Object store backed by an S3 (or S3-compatible) bucket."""

    def __init__(self, config: ObjectStoreConfig, *, client: Any | None = None) -> None:
        self.config = config
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client(
                "s3",
                region_name=self.config.region,
                aws_access_key_id=self.config.access_key_id,
                aws_secret_access_key=self.config.secret_access_key,
                endpoint_url=self.config.endpoint_url,
            )
        return self._client

    def put(self, key: str, body: bytes, content_type: str) -> None:
        try:
            self.client.put_object(
                Bucket=self.config.bucket, Key=key, Body=body, ContentType=content_type
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageUploadError(
                f"Failed to upload {key!r} to {self.config.bucket}: {exc}"
            ) from exc
        logger.info("Uploaded %s to %s", key, self.config.bucket)

    def list_keys(self, prefix: str) -> list[str]:
        """Return every key under ``prefix`` (all pages)."""

        keys: list[str] = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.config.bucket, Prefix=prefix):
                keys.extend(obj["Key"] for obj in page.get("Contents", []) if obj.get("Key"))
        except (BotoCoreError, ClientError) as exc:
            raise StorageDownloadError(
                f"Failed to list s3://{self.config.bucket}/{prefix}: {exc}"
            ) from exc
        return keys

    def get(self, key: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=self.config.bucket, Key=key)
            body: bytes = response["Body"].read()
        except (BotoCoreError, ClientError) as exc:
            raise StorageDownloadError(
                f"Failed to download {key!r} from {self.config.bucket}: {exc}"
            ) from exc
        return body


# ---------------------------------------------------------------------------
# Key helpers
# ---------------------------------------------------------------------------


def user_prefix(email: str) -> str:
    return f"{UPLOADS_PREFIX}/{email}/"


def make_upload_key(
    *, email: str, account_type: AccountType, date_range: DateRange, filename: str
) -> str:
    """Build the archive key for an uploaded statement."""

    return (
        f"{user_prefix(email)}{account_type.value}/"
        f"{date_range.as_key_fragment()}/{quote(filename, safe=_FILENAME_SAFE)}"
    )


def account_type_from_key(key: str) -> AccountType | None:
    """Recover the account classification from an upload key.

    ``uploads/<email>/<ACCOUNT>/...`` → ``ACCOUNT``; ``None`` when the key is
    too short or the segment is not a known classification.
    """

    parts = key.split("/")
    if len(parts) < 4:
        return None
    candidate = parts[2].upper()
    if candidate not in AccountType.__members__:
        return None
    return AccountType(candidate)


def fallback_date_range(today: date) -> DateRange:
    """Range used when a file has no parseable dates: first of the month, twice."""

    first = today.replace(day=1)
    return DateRange(start_date=first, end_date=first)


__all__ = [
    "ObjectStore",
    "ObjectStoreConfig",
    "S3ObjectStore",
    "StorageConfigError",
    "StorageDownloadError",
    "StorageError",
    "StorageUploadError",
    "account_type_from_key",
    "fallback_date_range",
    "load_object_store_config_from_env",
    "make_upload_key",
    "user_prefix",
]
