"""
File download endpoint.
"""

import uuid

from fastapi import APIRouter
from fastapi.responses import FileResponse

from citytrees.api.deps import Files
from citytrees.kernel.errors import NotFoundError

router = APIRouter()


@router.get("/{file_id}/download")
async def download_file(file_id: uuid.UUID, files: Files):
    stored = await files.get(file_id)
    if stored is None:
        raise NotFoundError("File not found", file_id=str(file_id))
    return FileResponse(
        files.path_for(stored),
        media_type=stored.mime_type or "application/octet-stream",
        filename=stored.name,
    )
