"""
Document Blob Storage

Stores uploaded document binaries on the local filesystem under
`{upload_dir}/{registration_number}/{document_type}-{uuid}{ext}` and
returns the descriptor recorded on the registration. Writes run in a
worker thread so the event loop is never blocked on disk I/O.
"""

import asyncio
import logging
import re
import uuid
from datetime import UTC, datetime
from functools import lru_cache
from pathlib import Path
from typing import Any

from admissions.core.config import settings
from admissions.modules.registrations.models import DocumentType

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "application/pdf": ".pdf",
    "image/jpeg": ".jpg",
    "image/png": ".png",
}

_SAFE_SEGMENT = re.compile(r"[^A-Za-z0-9._-]")


class LocalBlobStore:
    """Filesystem-backed store keyed by (registration_number, document_type)."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _target(
        self,
        registration_number: str,
        document_type: DocumentType,
        content_type: str | None,
        original_name: str,
    ) -> Path:
        ext = _EXTENSIONS.get(content_type or "") or Path(original_name).suffix.lower()
        folder = self.root / _SAFE_SEGMENT.sub("_", registration_number)
        return folder / f"{document_type.value}-{uuid.uuid4().hex}{ext}"

    @staticmethod
    def _write(path: Path, content: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

    async def save(
        self,
        registration_number: str,
        document_type: DocumentType,
        content: bytes,
        original_name: str,
        content_type: str | None,
    ) -> dict[str, Any]:
        """
        Persist a document and return its descriptor.

        Returns:
            Dict with filename, original_name, storage_ref, content_type,
            size and uploaded_at (ISO 8601)
        """
        path = self._target(registration_number, document_type, content_type, original_name)
        await asyncio.to_thread(self._write, path, content)

        logger.info(
            f"Stored {document_type.value} for {registration_number} ({len(content)} bytes)"
        )
        return {
            "filename": path.name,
            "original_name": original_name,
            "storage_ref": path.relative_to(self.root).as_posix(),
            "content_type": content_type,
            "size": len(content),
            "uploaded_at": datetime.now(UTC).isoformat(),
        }

    async def delete(self, storage_ref: str) -> None:
        """Remove a stored blob if it exists."""
        path = self.root / storage_ref
        await asyncio.to_thread(path.unlink, True)


@lru_cache
def get_blob_store() -> LocalBlobStore:
    """Store rooted at the configured upload directory (FastAPI dependency)."""
    return LocalBlobStore(settings.upload_dir)
