# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Storage Export - Downloads every bucket into a local mirror.

Layout written under the storage directory:

    <storage>/<bucket>/bucket-info.json
    <storage>/<bucket>/files/<key with slashes as directories>
    <storage>/export-summary.json

Objects are downloaded one at a time in listing order. A failed object
is recorded and the next one is attempted; a bucket whose listing fails
is recorded with zero counts and the remaining buckets still run. Only a
failure to list buckets aborts the run.

All paths derive from bucket name and key, so re-running overwrites
the previous mirror in place.
"""

from pathlib import Path

import aiofiles
import structlog

from harakka_backup.backup.enumerator import list_buckets
from harakka_backup.backup.lister import DEFAULT_MAX_DEPTH, list_all_objects
from harakka_backup.backup.manifest import (
    BUCKET_INFO_FILE,
    EXPORT_SUMMARY_FILE,
    BucketExportResult,
    ExportSummary,
    TransferResult,
    format_mb,
    utc_timestamp,
    write_json,
)
from harakka_backup.config import BackupConfig
from harakka_backup.exceptions import ListError, TransferError
from harakka_backup.storage.base import BucketInfo, StorageClient

logger = structlog.get_logger()

FILES_DIR = "files"


def resolve_destination(bucket_dir: Path, key: str) -> Path:
    """
    Local path for an object key under <bucket_dir>/files.

    Raises:
        TransferError: If the key would resolve outside the files directory
    """
    segments = key.split("/")
    if not key or any(segment in ("", ".", "..") for segment in segments):
        raise TransferError(
            f"Unsafe object key: {key!r}",
            details={"key": key},
        )
    return bucket_dir.joinpath(FILES_DIR, *segments)


async def download_object(
    client: StorageClient,
    bucket: str,
    key: str,
    bucket_dir: Path,
) -> TransferResult:
    """
    Download one object to <bucket_dir>/files/<key>.

    Parent directories are created as needed and an existing file is
    overwritten. Errors never leave this function; they come back as a
    failed TransferResult.
    """
    try:
        out_path = resolve_destination(bucket_dir, key)
        data = await client.download(bucket, key)

        out_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(out_path, "wb") as f:
            await f.write(data)

    except Exception as e:
        logger.error("object_download_failed", bucket=bucket, key=key, error=str(e))
        return TransferResult(key=key, success=False, error=str(e))

    return TransferResult(key=key, success=True, size=len(data))


async def export_bucket(
    client: StorageClient,
    bucket: BucketInfo,
    storage_dir: Path,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> BucketExportResult:
    """
    Export one bucket and write its bucket-info.json.

    A manifest is written for every bucket, including empty buckets and
    buckets whose listing failed (zero counts plus the error).

    Args:
        client: Storage client
        bucket: Bucket to export
        storage_dir: Root of the storage mirror
        max_depth: Maximum folder nesting to follow

    Returns:
        BucketExportResult with per-object outcomes
    """
    bucket_dir = storage_dir / bucket.name
    bucket_dir.mkdir(parents=True, exist_ok=True)

    logger.info(
        "bucket_export_started",
        bucket=bucket.name,
        bucket_id=bucket.id,
        public=bucket.public,
    )

    result = BucketExportResult(bucket=bucket)

    try:
        files = await list_all_objects(client, bucket.name, max_depth=max_depth)
    except ListError as e:
        logger.error("bucket_export_failed", bucket=bucket.name, error=str(e))
        result.error = str(e)
        result.export_date = utc_timestamp()
        await write_json(bucket_dir / BUCKET_INFO_FILE, result.to_bucket_info())
        return result

    result.files = files

    if not files:
        logger.warning("bucket_empty", bucket=bucket.name)
    else:
        logger.info("bucket_files_found", bucket=bucket.name, count=len(files))

    for key in files:
        transfer = await download_object(client, bucket.name, key, bucket_dir)
        result.transfers.append(transfer)

        if transfer.success:
            logger.info(
                "object_downloaded",
                bucket=bucket.name,
                key=key,
                progress=f"{result.downloaded}/{len(files)}",
                size_mb=format_mb(transfer.size),
            )

    result.export_date = utc_timestamp()
    await write_json(bucket_dir / BUCKET_INFO_FILE, result.to_bucket_info())

    logger.info(
        "bucket_export_completed",
        bucket=bucket.name,
        downloaded=result.downloaded,
        failed=result.failed,
        total=result.file_count,
        size_mb=format_mb(result.total_size),
    )
    return result


async def export_storage(
    client: StorageClient,
    config: BackupConfig,
    *,
    run_id: str | None = None,
) -> ExportSummary:
    """
    Export every bucket and write export-summary.json.

    Buckets are processed in the order the store lists them.

    Args:
        client: Storage client
        config: Backup configuration (storage_dir, max_depth, project)
        run_id: Identifier for this run (a new ULID by default)

    Returns:
        ExportSummary for the run

    Raises:
        ListError: If the bucket list cannot be fetched
    """
    if run_id is None:
        from ulid import ULID

        run_id = str(ULID())

    storage_dir = config.storage_dir
    storage_dir.mkdir(parents=True, exist_ok=True)

    logger.info(
        "storage_export_started",
        run_id=run_id,
        output_dir=str(storage_dir),
        project_url=config.project_url,
    )

    buckets = await list_buckets(client)

    summary = ExportSummary(
        run_id=run_id,
        project_id=config.project_id,
        project_url=config.project_url,
    )

    for bucket in buckets:
        bucket_result = await export_bucket(
            client,
            bucket,
            storage_dir,
            max_depth=config.max_depth,
        )
        summary.buckets.append(bucket_result)

    summary.export_date = utc_timestamp()
    await write_json(storage_dir / EXPORT_SUMMARY_FILE, summary.to_dict())

    logger.info(
        "storage_export_completed",
        run_id=run_id,
        buckets=len(summary.buckets),
        files=summary.total_files,
        downloaded=summary.total_downloaded,
        failed=summary.total_failed,
        size_mb=format_mb(summary.total_size),
    )

    if summary.total_failed or summary.failed_buckets:
        logger.warning(
            "storage_export_incomplete",
            run_id=run_id,
            failed_files=summary.total_failed,
            failed_buckets=summary.failed_buckets,
        )

    return summary
