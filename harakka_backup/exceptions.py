# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Harakka Backup Exceptions - Custom exceptions for the harakka_backup package.
"""


class HarakkaBackupError(Exception):
    """Base exception for all backup/restore errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(HarakkaBackupError):
    """Raised when configuration is invalid."""

    pass


class StorageOperationError(HarakkaBackupError):
    """Raised when a call to the object store fails."""

    pass


class ListError(HarakkaBackupError):
    """Raised when buckets or objects cannot be enumerated."""

    pass


class TransferError(HarakkaBackupError):
    """Raised when a single object download or upload fails."""

    pass


class BucketMetadataError(HarakkaBackupError):
    """Raised when a bucket cannot be created or updated."""

    pass


class ManifestError(HarakkaBackupError):
    """Raised when a manifest or summary is missing or unreadable."""

    pass


class DumpError(HarakkaBackupError):
    """Raised when a database dump command fails."""

    pass
