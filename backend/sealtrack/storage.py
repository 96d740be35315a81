"""Helpers for persisting checkpoint evidence images."""

from __future__ import annotations

import hashlib
import io
import logging
import os
import re
from pathlib import Path
from typing import Optional
from uuid import uuid4

from minio import Minio
from minio.error import S3Error

# purpose: durable byte storage for evidence photos; MinIO when configured,
#   the local upload directory otherwise
# outputs: stable storage references persisted on event rows
# status: active

logger = logging.getLogger(__name__)

S3_SCHEME = "s3://"
DEFAULT_BUCKET = "evidence"

_object_store: Optional[Minio] = None


def _bucket() -> str:
    return os.getenv("MINIO_BUCKET", DEFAULT_BUCKET)


def object_store() -> Optional[Minio]:
    """Return the shared MinIO client, or ``None`` when ``MINIO_*`` is unset."""

    global _object_store
    endpoint = os.getenv("MINIO_ENDPOINT", "").strip()
    credentials = os.getenv("MINIO_ACCESS_KEY"), os.getenv("MINIO_SECRET_KEY")
    if not endpoint or not all(credentials):
        return None
    if _object_store is None:
        store = Minio(
            endpoint.removeprefix("https://").removeprefix("http://"),
            access_key=credentials[0],
            secret_key=credentials[1],
            secure=endpoint.startswith("https"),
        )
        if not store.bucket_exists(_bucket()):
            store.make_bucket(_bucket())
        _object_store = store
    return _object_store


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def evidence_key(namespace: str | None, filename: str) -> str:
    """Unique key for an upload: ``<namespace>/<uuid>_<sanitized filename>``."""

    leaf = f"{uuid4()}_{re.sub(r'[^A-Za-z0-9_.-]', '_', filename) or 'evidence.bin'}"
    prefix = re.sub(r"[^A-Za-z0-9/_.-]", "_", namespace or "").strip("/")
    return f"{prefix}/{leaf}" if prefix else leaf


def save_binary_payload(
    data: bytes,
    filename: str,
    *,
    upload_dir: str,
    content_type: str = "application/octet-stream",
    namespace: str | None = None,
) -> tuple[str, int]:
    """Write the payload and return ``(storage reference, size)``.

    The write has completed when this returns; callers record the reference
    only afterwards.
    """

    key = evidence_key(namespace, filename)
    store = object_store()
    if store is not None:
        store.put_object(_bucket(), key, io.BytesIO(data), len(data), content_type=content_type)
        return f"{S3_SCHEME}{_bucket()}/{key}", len(data)

    target = Path(upload_dir).joinpath(*key.split("/"))
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("wb") as fh:
        fh.write(data)
        fh.flush()
        os.fsync(fh.fileno())
    logger.debug("Stored %d bytes at %s", len(data), target)
    return str(target), len(data)


def load_binary_payload(reference: str) -> bytes:
    """Read back a payload written by :func:`save_binary_payload`."""

    if not reference.startswith(S3_SCHEME):
        return Path(reference).read_bytes()

    store = object_store()
    if store is None:
        raise FileNotFoundError(f"No object store configured for {reference}")
    bucket, key = reference[len(S3_SCHEME):].split("/", 1)
    try:
        response = store.get_object(bucket, key)
    except S3Error as exc:
        raise FileNotFoundError(reference) from exc
    try:
        return response.read()
    finally:
        response.close()
        response.release_conn()


def validate_checksum(reference: str, expected_checksum: str) -> bool:
    """Recompute the stored payload's SHA-256 for a later integrity audit."""

    return sha256_hex(load_binary_payload(reference)) == expected_checksum
