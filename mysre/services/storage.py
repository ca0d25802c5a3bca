"""Local-disk object storage with named buckets.

Each bucket is a directory under ``settings.storage_root``. Paths handed
back to callers are bucket-relative (``folder/1718000000000-k3j9x2.pdf``).
"""

import asyncio
import logging
import secrets
import string
import time
from pathlib import Path, PurePosixPath

from mysre.core.config import get_settings
from mysre.core.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

BUCKETS = frozenset({"uploads", "documents"})

_ALPHABET = string.ascii_lowercase + string.digits


def unique_filename(original: str) -> str:
    """``<epoch ms>-<6 random chars>.<original extension>``."""
    ext = PurePosixPath(original or "").suffix.lstrip(".").lower() or "bin"
    rand = "".join(secrets.choice(_ALPHABET) for _ in range(6))
    return f"{int(time.time() * 1000)}-{rand}.{ext}"


class ObjectStorage:
    def __init__(self, root: str | Path | None = None, max_size: int | None = None) -> None:
        settings = get_settings()
        self.root = Path(root if root is not None else settings.storage_root)
        self.max_size = max_size if max_size is not None else settings.max_upload_size

    def _resolve(self, bucket: str, path: str) -> Path:
        if bucket not in BUCKETS:
            raise ValidationError(f"Unknown bucket: {bucket!r}")
        base = (self.root / bucket).resolve()
        target = (base / path).resolve()
        if base not in target.parents:
            raise ValidationError(f"Invalid storage path: {path!r}")
        return target

    async def upload(
        self, bucket: str, filename: str, content: bytes, folder: str | None = None,
    ) -> str:
        """Store ``content`` under a fresh unique name; returns the bucket-relative path."""
        if not content:
            raise ValidationError("No file provided")
        if len(content) > self.max_size:
            raise ValidationError(
                f"File size must be less than {self.max_size // (1024 * 1024)}MB"
            )

        name = unique_filename(filename)
        rel = f"{folder.strip('/')}/{name}" if folder and folder.strip("/") else name
        target = self._resolve(bucket, rel)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)

        await asyncio.to_thread(_write)
        logger.info("Stored %d bytes at %s/%s", len(content), bucket, rel)
        return rel

    async def download(self, bucket: str, path: str) -> bytes:
        target = self._resolve(bucket, path)
        try:
            return await asyncio.to_thread(target.read_bytes)
        except FileNotFoundError:
            raise NotFoundError("File not found") from None

    async def delete(self, bucket: str, path: str) -> None:
        """Remove a stored object. Raises ``NotFoundError`` if it is absent."""
        target = self._resolve(bucket, path)
        try:
            await asyncio.to_thread(target.unlink)
        except FileNotFoundError:
            raise NotFoundError("File not found") from None


def get_storage() -> ObjectStorage:
    """FastAPI dependency; overridden in tests to point at a tmp dir."""
    return ObjectStorage()
