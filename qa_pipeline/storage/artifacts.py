"""Report artifact storage: a local directory or a Supabase Storage bucket."""

import asyncio
import logging
import os
import re
import shutil
import time
from abc import ABC, abstractmethod
from typing import Optional

from qa_pipeline.errors import ReportError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(filename: str) -> str:
    name = _UNSAFE_CHARS.sub("_", os.path.basename(filename)).strip("._")
    if not name:
        raise ValueError(f"Unusable artifact filename: {filename!r}")
    return name


class ArtifactStore(ABC):
    @abstractmethod
    async def save(self, filename: str, data: bytes, content_type: str) -> str:
        """Persist an artifact and return its public URL."""
        ...


class LocalArtifactStore(ArtifactStore):
    """Writes artifacts to a directory served by GET /api/v1/reports/{filename}.

    Files older than the TTL are removed by cleanup_expired().
    """

    def __init__(self, base_dir: str, public_base_url: str, ttl_hours: int = 72):
        self._base_dir = base_dir
        self._public_base_url = public_base_url.rstrip("/")
        os.makedirs(self._base_dir, exist_ok=True)
        self._ttl_seconds = ttl_hours * 3600

    async def save(self, filename: str, data: bytes, content_type: str) -> str:
        name = safe_filename(filename)
        path = self.get_path(name)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, _write_bytes, path, data)
        except OSError as e:
            raise ReportError(f"Could not write report {name}: {e}") from e
        logger.info("Saved %s (%d bytes, %s)", path, len(data), content_type)
        return f"{self._public_base_url}/api/v1/reports/{name}"

    def get_path(self, filename: str) -> str:
        return os.path.join(self._base_dir, safe_filename(filename))

    def file_exists(self, filename: str) -> bool:
        try:
            return os.path.isfile(self.get_path(filename))
        except ValueError:
            return False

    def cleanup_expired(self) -> int:
        """Remove artifacts older than TTL. Returns count of removed files."""
        now = time.time()
        removed = 0
        if not os.path.exists(self._base_dir):
            return 0
        for entry in os.listdir(self._base_dir):
            path = os.path.join(self._base_dir, entry)
            if now - os.path.getmtime(path) <= self._ttl_seconds:
                continue
            if os.path.isdir(path):
                shutil.rmtree(path, ignore_errors=True)
            else:
                os.remove(path)
            removed += 1
        return removed


class SupabaseArtifactStore(ArtifactStore):
    """Uploads artifacts to a public Supabase Storage bucket."""

    def __init__(self, client, bucket: str):
        self._client = client
        self._bucket = bucket

    async def save(self, filename: str, data: bytes, content_type: str) -> str:
        name = safe_filename(filename)
        loop = asyncio.get_running_loop()
        try:
            # supabase-py storage calls are synchronous
            return await loop.run_in_executor(None, self._upload, name, data, content_type)
        except Exception as e:
            raise ReportError(f"Upload of {name} to bucket {self._bucket} failed: {e}") from e

    def _upload(self, name: str, data: bytes, content_type: str) -> str:
        bucket = self._client.storage.from_(self._bucket)
        bucket.upload(name, data, {"content-type": content_type, "upsert": "true"})
        return bucket.get_public_url(name)


def _write_bytes(path: str, data: bytes) -> None:
    with open(path, "wb") as f:
        f.write(data)


def build_artifact_store(settings) -> ArtifactStore:
    if settings.artifact_store_mode == "supabase":
        from qa_pipeline.storage.supabase_client import get_supabase

        client = get_supabase(settings.supabase_url, settings.supabase_service_role_key)
        return SupabaseArtifactStore(client, settings.report_bucket)
    return LocalArtifactStore(
        settings.report_dir, settings.public_base_url, settings.report_ttl_hours
    )
