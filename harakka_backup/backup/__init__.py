# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Engine - Bucket enumeration, recursive listing, export and restore.
"""

from harakka_backup.backup.enumerator import list_buckets

from harakka_backup.backup.lister import list_all_objects

from harakka_backup.backup.export import (
    download_object,
    export_bucket,
    export_storage,
)

from harakka_backup.backup.restore import (
    discover_bucket_dirs,
    ensure_bucket,
    iter_backup_files,
    restore_bucket,
    restore_storage,
    upload_file,
)

from harakka_backup.backup.manifest import (
    BucketExportResult,
    BucketRestoreResult,
    ExportSummary,
    RestoreSummary,
    TransferResult,
)

from harakka_backup.backup.mime import guess_content_type

__all__ = [
    # Enumeration
    "list_buckets",
    "list_all_objects",
    # Export
    "download_object",
    "export_bucket",
    "export_storage",
    # Restore
    "discover_bucket_dirs",
    "ensure_bucket",
    "iter_backup_files",
    "restore_bucket",
    "restore_storage",
    "upload_file",
    # Results
    "BucketExportResult",
    "BucketRestoreResult",
    "ExportSummary",
    "RestoreSummary",
    "TransferResult",
    "guess_content_type",
]
