# disclosure/clients/object_store.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, BinaryIO, Iterator, Optional, Protocol, Sequence, Union

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..config import settings
from ..errors import DependencyUnavailable, NotFound

log = logging.getLogger("disclosure.object_store")


@dataclass
class StoredObject:
    body: Union[bytes, BinaryIO]
    content_type: str

    def iter_chunks(self, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
        if isinstance(self.body, (bytes, bytearray)):
            yield bytes(self.body)
            return
        try:
            while True:
                chunk = self.body.read(chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            close = getattr(self.body, "close", None)
            if close:
                close()


class ObjectStore(Protocol):
    def put(self, key: str, data: bytes, content_type: str) -> None: ...

    def get(self, key: str) -> StoredObject: ...

    def delete_batch(self, keys: Sequence[str]) -> list[str]:
        """Deletes up to 1000 keys; returns the keys the backend refused."""
        ...


class S3ObjectStore:
    """S3 / MinIO gateway. No business logic lives here."""

    def __init__(self, *, bucket: str, client: Any) -> None:
        self.bucket = bucket
        self.client = client

    def put(self, key: str, data: bytes, content_type: str) -> None:
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        except (BotoCoreError, ClientError) as e:
            log.error("put_object failed key=%s: %s", key, e)
            raise DependencyUnavailable("object storage write failed") from e

    def get(self, key: str) -> StoredObject:
        try:
            obj = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in ("NoSuchKey", "404", "NotFound"):
                raise NotFound("stored object not found") from e
            log.error("get_object failed key=%s: %s", key, e)
            raise DependencyUnavailable("object storage read failed") from e
        except BotoCoreError as e:
            log.error("get_object failed key=%s: %s", key, e)
            raise DependencyUnavailable("object storage read failed") from e

        return StoredObject(
            body=obj["Body"],
            content_type=obj.get("ContentType") or "application/octet-stream",
        )

    def delete_batch(self, keys: Sequence[str]) -> list[str]:
        keys = [k for k in keys if k]
        if not keys:
            return []
        if len(keys) > 1000:
            raise ValueError("delete_batch accepts at most 1000 keys")
        try:
            resp = self.client.delete_objects(
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": k} for k in keys], "Quiet": True},
            )
        except (BotoCoreError, ClientError) as e:
            raise DependencyUnavailable(f"object storage batch delete failed: {e}") from e
        return [str(err.get("Key")) for err in resp.get("Errors", []) or []]


_store: Optional[ObjectStore] = None
_store_lock = threading.Lock()


def _build_s3_client():
    return boto3.client(
        "s3",
        region_name=settings.s3_region,
        endpoint_url=settings.s3_endpoint or None,
        aws_access_key_id=settings.aws_access_key_id or None,
        aws_secret_access_key=settings.aws_secret_access_key or None,
        config=BotoConfig(s3={"addressing_style": "path" if settings.s3_force_path_style else "auto"}),
    )


def get_object_store() -> ObjectStore:
    """Process-wide store, created on first use. boto3 clients are thread-safe."""
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                _store = S3ObjectStore(bucket=settings.s3_bucket, client=_build_s3_client())
    return _store
