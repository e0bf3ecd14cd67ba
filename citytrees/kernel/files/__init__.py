"""
File storage for tree photos.
"""

from citytrees.kernel.files.file_service import FileService

__all__ = ["FileService"]
