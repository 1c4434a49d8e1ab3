# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Content-type inference for restored files.

The store reports a content type on download, but restore uploads
from plain files on disk, so the type is derived from the extension.
The table matches the image types the backend accepts for uploads.
"""

from pathlib import PurePosixPath
from typing import Dict

DEFAULT_CONTENT_TYPE = "application/octet-stream"

CONTENT_TYPES: Dict[str, str] = {
    # Images
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".jfif": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    # Documents
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".txt": "text/plain",
    ".csv": "text/csv",
    # Media
    ".mp4": "video/mp4",
    ".mp3": "audio/mpeg",
    # Archives and data
    ".zip": "application/zip",
    ".json": "application/json",
}


def guess_content_type(path: str) -> str:
    """
    Return the MIME type for a file name or object key.

    Args:
        path: File name, relative path or object key

    Returns:
        Mapped MIME type, or application/octet-stream for unknown extensions
    """
    suffix = PurePosixPath(path).suffix.lower()
    return CONTENT_TYPES.get(suffix, DEFAULT_CONTENT_TYPE)
