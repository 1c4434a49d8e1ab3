# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Storage Restore - Recreates buckets and re-uploads files from a backup tree.

Every subdirectory of the storage directory that holds a bucket-info.json
is a bucket. For each one the bucket is created (or its metadata updated
to match the manifest) and every file under files/ is uploaded with
upsert semantics, so running a restore twice leaves the same objects.

Note that an existing bucket gets the visibility, size limit and MIME
allow-list from the manifest, even if the live bucket was configured
differently since the backup was taken.
"""

from pathlib import Path
from typing import Any, Dict, List, Tuple

import aiofiles
import structlog

from harakka_backup.backup.manifest import (
    BUCKET_INFO_FILE,
    RESTORE_SUMMARY_FILE,
    BucketRestoreResult,
    RestoreSummary,
    TransferResult,
    format_mb,
    read_json,
    utc_timestamp,
    write_json,
)
from harakka_backup.backup.mime import guess_content_type
from harakka_backup.config import BackupConfig
from harakka_backup.exceptions import BucketMetadataError, ManifestError
from harakka_backup.storage.base import BucketInfo, StorageClient

logger = structlog.get_logger()

FILES_DIR = "files"

# Supabase keeps empty folders alive with this zero-byte object
EMPTY_FOLDER_PLACEHOLDER = ".emptyFolderPlaceholder"


def discover_bucket_dirs(storage_dir: Path) -> Tuple[List[Path], List[Path]]:
    """
    Find bucket directories in a storage backup.

    Returns:
        Tuple of (bucket directories, skipped directories), both sorted by name

    Raises:
        ManifestError: If storage_dir does not exist
    """
    if not storage_dir.is_dir():
        raise ManifestError(
            f"Backup directory not found: {storage_dir}",
            details={"storage_dir": str(storage_dir)},
        )

    bucket_dirs: List[Path] = []
    skipped: List[Path] = []

    for item in sorted(storage_dir.iterdir(), key=lambda p: p.name):
        if not item.is_dir():
            continue
        if (item / BUCKET_INFO_FILE).is_file():
            bucket_dirs.append(item)
        else:
            logger.warning("bucket_dir_skipped", path=str(item), reason="no bucket-info.json")
            skipped.append(item)

    return bucket_dirs, skipped


async def read_bucket_info(bucket_dir: Path) -> Dict[str, Any]:
    """
    Read and parse a bucket's bucket-info.json.

    Raises:
        ManifestError: If the manifest is missing or malformed
    """
    return await read_json(bucket_dir / BUCKET_INFO_FILE)


def bucket_from_manifest(name: str, info: Dict[str, Any]) -> BucketInfo:
    """
    Bucket settings to apply on restore.

    The directory name is the bucket name; the manifest supplies
    visibility, size limit and allowed MIME types.
    """
    allowed = info.get("allowed_mime_types")
    if allowed is not None and not isinstance(allowed, list):
        raise ManifestError(
            "allowed_mime_types must be a list or null",
            details={"bucket": name},
        )
    return BucketInfo(
        name=name,
        id=name,
        public=bool(info.get("public", False)),
        file_size_limit=info.get("file_size_limit"),
        allowed_mime_types=allowed,
    )


async def ensure_bucket(client: StorageClient, bucket: BucketInfo) -> str:
    """
    Create the bucket, or update its metadata if it already exists.

    If creation fails because the bucket appeared in the meantime, the
    metadata is applied with an update instead (last write wins).

    Returns:
        "created" or "updated"

    Raises:
        BucketMetadataError: If the bucket can be neither created nor updated
    """
    try:
        existing = await client.get_bucket(bucket.name)
        if existing is not None:
            logger.info("bucket_exists_updating", bucket=bucket.name)
            await client.update_bucket(bucket)
            return "updated"

        try:
            await client.create_bucket(bucket)
        except Exception:
            if await client.get_bucket(bucket.name) is None:
                raise
            logger.info("bucket_created_concurrently", bucket=bucket.name)
            await client.update_bucket(bucket)
            return "updated"

        logger.info("bucket_created", bucket=bucket.name, public=bucket.public)
        return "created"

    except Exception as e:
        raise BucketMetadataError(
            f"Failed to create or update bucket {bucket.name}: {e}",
            details={"bucket": bucket.name},
        ) from e


def iter_backup_files(files_dir: Path, prefix: str = "") -> List[Tuple[str, Path]]:
    """
    Walk a bucket's files/ directory depth-first.

    Entries are visited in name order per directory. Placeholder files
    for empty folders are skipped.

    Returns:
        List of (object key, local path) pairs, keys using "/" separators
    """
    found: List[Tuple[str, Path]] = []

    for item in sorted(files_dir.iterdir(), key=lambda p: p.name):
        if item.name == EMPTY_FOLDER_PLACEHOLDER:
            continue
        if item.is_dir():
            found.extend(iter_backup_files(item, f"{prefix}{item.name}/"))
        elif item.is_file():
            found.append((f"{prefix}{item.name}", item))

    return found


async def upload_file(
    client: StorageClient,
    bucket: str,
    key: str,
    path: Path,
) -> TransferResult:
    """
    Upload one local file, overwriting any object at the same key.

    Errors never leave this function; they come back as a failed
    TransferResult.
    """
    content_type = guess_content_type(key)

    try:
        async with aiofiles.open(path, "rb") as f:
            data = await f.read()
        await client.upload(bucket, key, data, content_type, upsert=True)
    except Exception as e:
        logger.error("object_upload_failed", bucket=bucket, key=key, error=str(e))
        return TransferResult(key=key, success=False, error=str(e))

    logger.info(
        "object_uploaded",
        bucket=bucket,
        key=key,
        content_type=content_type,
        size=len(data),
    )
    return TransferResult(key=key, success=True, size=len(data))


async def restore_bucket(
    client: StorageClient,
    bucket_dir: Path,
    *,
    dry_run: bool = False,
) -> BucketRestoreResult:
    """
    Restore one bucket directory.

    Args:
        client: Storage client
        bucket_dir: <storage>/<bucket> directory holding bucket-info.json
        dry_run: If True, only report what would be uploaded

    Returns:
        BucketRestoreResult (action "failed" when the bucket could not be
        ensured or its files/ directory could not be walked)

    Raises:
        ManifestError: If bucket-info.json is missing or malformed
    """
    name = bucket_dir.name
    info = await read_bucket_info(bucket_dir)
    bucket = bucket_from_manifest(name, info)

    logger.info("bucket_restore_started", bucket=name, dry_run=dry_run)

    if dry_run:
        action = "dry_run"
    else:
        try:
            action = await ensure_bucket(client, bucket)
        except BucketMetadataError as e:
            logger.error("bucket_restore_failed", bucket=name, error=str(e))
            return BucketRestoreResult(bucket=name, action="failed", error=str(e))

    result = BucketRestoreResult(bucket=name, action=action)

    files_dir = bucket_dir / FILES_DIR
    try:
        files = iter_backup_files(files_dir) if files_dir.is_dir() else []
    except OSError as e:
        logger.error("bucket_files_unreadable", bucket=name, path=str(files_dir), error=str(e))
        result.action = "failed"
        result.error = f"Cannot read backup files: {e}"
        return result

    for key, path in files:
        if dry_run:
            try:
                size = path.stat().st_size
            except OSError as e:
                logger.error("object_unreadable", bucket=name, key=key, error=str(e))
                result.transfers.append(TransferResult(key=key, success=False, error=str(e)))
                continue
            logger.info(
                "object_would_upload",
                bucket=name,
                key=key,
                content_type=guess_content_type(key),
                size=size,
            )
            result.transfers.append(TransferResult(key=key, success=True, size=size))
            continue

        result.transfers.append(await upload_file(client, name, key, path))

    logger.info(
        "bucket_restore_completed",
        bucket=name,
        action=action,
        uploaded=result.uploaded,
        failed=result.failed,
        total=result.file_count,
    )
    return result


async def restore_storage(
    client: StorageClient,
    config: BackupConfig,
    *,
    dry_run: bool = False,
    run_id: str | None = None,
) -> RestoreSummary:
    """
    Restore every bucket found in the storage backup and write restore-summary.json.

    A directory with a missing or malformed manifest is skipped with a
    warning; a bucket that cannot be created is recorded as failed. Neither
    stops the remaining buckets.

    Raises:
        ManifestError: If the storage directory does not exist
    """
    if run_id is None:
        from ulid import ULID

        run_id = str(ULID())

    storage_dir = config.storage_dir
    bucket_dirs, skipped = discover_bucket_dirs(storage_dir)

    logger.info(
        "storage_restore_started",
        run_id=run_id,
        source_dir=str(storage_dir),
        buckets=[d.name for d in bucket_dirs],
        dry_run=dry_run,
    )

    summary = RestoreSummary(
        run_id=run_id,
        project_url=config.project_url,
        source_dir=str(storage_dir),
        dry_run=dry_run,
        skipped_dirs=[d.name for d in skipped],
    )

    for bucket_dir in bucket_dirs:
        try:
            summary.buckets.append(await restore_bucket(client, bucket_dir, dry_run=dry_run))
        except ManifestError as e:
            logger.warning("bucket_dir_skipped", path=str(bucket_dir), reason=str(e))
            summary.skipped_dirs.append(bucket_dir.name)

    summary.restore_date = utc_timestamp()
    await write_json(storage_dir / RESTORE_SUMMARY_FILE, summary.to_dict())

    logger.info(
        "storage_restore_completed",
        run_id=run_id,
        buckets=len(summary.buckets),
        uploaded=summary.total_uploaded,
        failed=summary.total_failed,
        size_mb=format_mb(summary.total_size),
        dry_run=dry_run,
    )

    if summary.total_failed or summary.failed_buckets:
        logger.warning(
            "storage_restore_incomplete",
            run_id=run_id,
            failed_files=summary.total_failed,
            failed_buckets=summary.failed_buckets,
        )

    return summary
