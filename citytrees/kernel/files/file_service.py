"""
Local file storage for tree photos.
"""

import asyncio
import uuid
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from fastapi import UploadFile
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession

from citytrees.config import Settings, get_settings
from citytrees.kernel.errors import NotFoundError, UserInputError
from citytrees.kernel.models.file import StoredFile
from citytrees.logging_config import get_logger

logger = get_logger(__name__)


class FileService:
    """
    Writes uploads to disk and keeps their metadata in the files table.

    Bytes are written after the metadata row is flushed. Files written inside
    a transaction that is later rolled back are removed again.
    """

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or get_settings()
        self.storage_dir = Path(self.settings.file_storage_dir)
        self._pending: List[Path] = []

        sync_session = session.sync_session
        event.listen(sync_session, "after_commit", self._forget_pending)
        event.listen(sync_session, "after_rollback", self._discard_pending)

    def _forget_pending(self, session) -> None:
        self._pending.clear()

    def _discard_pending(self, session) -> None:
        for path in self._pending:
            path.unlink(missing_ok=True)
            logger.info("Discarded file of rolled back upload", extra={"path": str(path)})
        self._pending.clear()

    def _check_size(self, size: int) -> None:
        limit = self.settings.max_upload_size_bytes
        if size > limit:
            raise UserInputError(f"File exceeds {limit} bytes")

    async def read_upload(self, upload: UploadFile) -> bytes:
        """
        Read an upload without buffering more than max_upload_size_bytes + 1.

        Raises:
            UserInputError: If the upload is larger than max_upload_size_bytes
        """
        if upload.size is not None:
            self._check_size(upload.size)
        content = await upload.read(self.settings.max_upload_size_bytes + 1)
        self._check_size(len(content))
        return content

    async def store(
        self,
        uploader_id: uuid.UUID,
        filename: str,
        content: bytes,
        mime_type: Optional[str] = None,
    ) -> StoredFile:
        """
        Persist uploaded bytes.

        Raises:
            UserInputError: If the file is empty or larger than max_upload_size_bytes
        """
        if not content:
            raise UserInputError("Uploaded file is empty")
        self._check_size(len(content))

        file_id = uuid.uuid4()
        path = self.storage_dir / file_id.hex

        stored = StoredFile(
            id=file_id,
            user_id=uploader_id,
            name=Path(filename or file_id.hex).name,
            size=len(content),
            mime_type=mime_type,
            storage_path=str(path),
        )
        self.session.add(stored)
        await self.session.flush()

        self._pending.append(path)
        try:
            await asyncio.to_thread(self._write, path, content)
        except OSError:
            path.unlink(missing_ok=True)
            raise

        logger.info("File stored", extra={"file_id": str(file_id), "size": stored.size})
        return stored

    def _write(self, path: Path, content: bytes) -> None:
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

    async def get(self, file_id: uuid.UUID) -> Optional[StoredFile]:
        result = await self.session.execute(select(StoredFile).where(StoredFile.id == file_id))
        return result.scalar_one_or_none()

    async def get_many(self, file_ids: Iterable[uuid.UUID]) -> List[StoredFile]:
        """Fetch files preserving the given order; unknown ids are skipped."""
        ids = list(file_ids)
        if not ids:
            return []
        result = await self.session.execute(select(StoredFile).where(StoredFile.id.in_(ids)))
        by_id: Dict[uuid.UUID, StoredFile] = {f.id: f for f in result.scalars().all()}
        return [by_id[i] for i in ids if i in by_id]

    def path_for(self, stored: StoredFile) -> Path:
        """Local path of a stored file's bytes."""
        path = Path(stored.storage_path)
        if not path.is_file():
            raise NotFoundError("File content is missing", file_id=str(stored.id))
        return path

    def download_url(self, file_id: uuid.UUID) -> str:
        base = self.settings.public_base_url.rstrip("/")
        return f"{base}{self.settings.api_v1_prefix}/files/{file_id}/download"
