# core/storage.py
"""
Core Storage Utilities.

Adapters that persist an uploaded artifact under a storage key in an externally
owned object store and return its public location. Two backends are supported:

- Supabase Storage (default), through the service-role client from
  `core.supabase_client`.
- AWS S3 or an S3-compatible store, through boto3.

Neither adapter overwrites an existing object: Supabase uploads are sent with
`upsert: false` and S3 writes are conditional on the key not existing yet. Any
backend failure is raised as `StorageError` and reported by the caller without
further classification.
"""
import asyncio
from typing import BinaryIO, Optional, Protocol
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from core.config import settings, logger as core_logger
from core.models import StoredObject
from core.supabase_client import get_supabase_client

logger = core_logger.getChild("Storage")


class StorageError(Exception):
    """Raised when the storage backend could not persist an object."""


class StorageAdapter(Protocol):
    backend_name: str

    def store(self, key: str, stream: BinaryIO, content_type: str) -> StoredObject:
        ...


class SupabaseStorageAdapter:
    backend_name = "supabase"

    def __init__(self, client, bucket: str):
        self.client = client
        self.bucket = bucket

    def store(self, key: str, stream: BinaryIO, content_type: str) -> StoredObject:
        stream.seek(0)
        file_content = stream.read() # storage3 only accepts bytes, paths or BufferedReader
        logger.debug(f"Uploading {len(file_content)} bytes to Supabase Storage: Bucket='{self.bucket}', Object='{key}'")
        try:
            bucket = self.client.storage.from_(self.bucket)
            bucket.upload(
                path=key,
                file=file_content,
                file_options={"content-type": content_type or "application/octet-stream", "upsert": "false"}
            )
            location = bucket.get_public_url(key)
        except Exception as e:
            logger.error(f"Supabase Storage upload failed for '{key}': {e}", exc_info=True)
            raise StorageError(f"Supabase Storage upload failed: {e}") from e
        logger.info(f"Stored '{key}' in Supabase bucket '{self.bucket}'")
        return StoredObject(key=key, location=location)


class S3StorageAdapter:
    backend_name = "s3"

    def __init__(
        self,
        s3_client,
        bucket: str,
        region: str,
        endpoint_url: Optional[str] = None,
        public_base_url: Optional[str] = None,
    ):
        self.s3 = s3_client
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self.public_base_url = public_base_url

    def public_location(self, key: str) -> str:
        quoted = quote(key)
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{quoted}"
        if self.endpoint_url:
            # S3-compatible stores are addressed path-style
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{quoted}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{quoted}"

    def store(self, key: str, stream: BinaryIO, content_type: str) -> StoredObject:
        stream.seek(0)
        logger.debug(f"Uploading to S3: Bucket='{self.bucket}', Key='{key}'")
        try:
            self.s3.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=stream,
                ContentType=content_type or "application/octet-stream",
                IfNoneMatch="*", # Refuse to overwrite an existing key
            )
        except ClientError as e:
            err = e.response.get("Error", {}) or {}
            code = err.get("Code", "")
            msg = err.get("Message", "") or str(e)
            logger.error(f"S3 rejected upload of '{key}' (Code: {code}): {msg}")
            raise StorageError(f"S3 upload failed ({code}): {msg}") from e
        except BotoCoreError as e:
            logger.error(f"S3 upload of '{key}' failed: {e}", exc_info=True)
            raise StorageError(f"S3 upload failed: {e}") from e
        location = self.public_location(key)
        logger.info(f"Stored '{key}' in S3 bucket '{self.bucket}'")
        return StoredObject(key=key, location=location)


def create_s3_client():
    """Builds the boto3 S3 client. Retries are disabled; every failure is terminal."""
    boto_cfg = Config(
        region_name=settings.AWS_REGION,
        retries={"max_attempts": 1, "mode": "standard"},
        connect_timeout=5,
        read_timeout=60,
    )
    return boto3.client(
        "s3",
        endpoint_url=settings.S3_ENDPOINT_URL or None,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
        config=boto_cfg,
    )


# Lazily created adapter, shared by all requests
_storage_adapter: Optional[StorageAdapter] = None
_init_lock = asyncio.Lock()

async def get_storage_adapter() -> StorageAdapter:
    """Returns the configured storage adapter, creating it on first use.

    Configuration problems (missing bucket, missing credentials) are raised as
    StorageError so the caller reports them like any other backend failure.
    """
    global _storage_adapter

    if _storage_adapter is not None:
        return _storage_adapter

    async with _init_lock:
        if _storage_adapter is not None:
            return _storage_adapter

        if not settings.STORAGE_BUCKET:
            logger.error("STORAGE_BUCKET not configured. Cannot create storage adapter.")
            raise StorageError("Storage bucket not configured")

        try:
            if settings.STORAGE_BACKEND == "s3":
                s3_client = await asyncio.to_thread(create_s3_client)
                _storage_adapter = S3StorageAdapter(
                    s3_client,
                    bucket=settings.STORAGE_BUCKET,
                    region=settings.AWS_REGION,
                    endpoint_url=settings.S3_ENDPOINT_URL or None,
                    public_base_url=settings.S3_PUBLIC_BASE_URL,
                )
            else:
                supabase = await get_supabase_client()
                _storage_adapter = SupabaseStorageAdapter(supabase, bucket=settings.STORAGE_BUCKET)
        except (ValueError, RuntimeError, BotoCoreError) as e:
            raise StorageError(f"Storage backend unavailable: {e}") from e

        logger.info(f"Storage adapter initialized: backend={_storage_adapter.backend_name}, bucket={settings.STORAGE_BUCKET}")
        return _storage_adapter


def reset_storage_adapter() -> None:
    global _storage_adapter
    _storage_adapter = None
