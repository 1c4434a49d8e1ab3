# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Harakka Backup Core - Run orchestration for export, restore and full backups.

Each run gets a ULID run id, opens (or borrows) a storage client, and
hands it explicitly to the backup engine. Long-lived callers such as
the FastAPI plugin keep a BackupState to report on past runs.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import AsyncIterator, List, TypedDict

import structlog

from harakka_backup.backup.export import export_storage
from harakka_backup.backup.manifest import ExportSummary, RestoreSummary
from harakka_backup.backup.restore import restore_storage
from harakka_backup.config import BackupConfig
from harakka_backup.dumps import DumpResult, backup_timestamp, run_database_dumps
from harakka_backup.storage import StorageClient, create_storage_client

logger = structlog.get_logger()


class BackupState(TypedDict):
    """Runtime bookkeeping across runs."""

    last_export_at: datetime | None
    last_restore_at: datetime | None
    last_run_id: str | None
    total_runs: int
    last_error: str | None


@dataclass
class FullBackupResult:
    """Result of dumps plus storage export."""

    run_id: str
    timestamp: str
    storage: ExportSummary
    dumps: List[DumpResult] = field(default_factory=list)


def initialize_backup_state() -> BackupState:
    return BackupState(
        last_export_at=None,
        last_restore_at=None,
        last_run_id=None,
        total_runs=0,
        last_error=None,
    )


def _new_run_id() -> str:
    from ulid import ULID

    return str(ULID())


@asynccontextmanager
async def open_storage_client(config: BackupConfig) -> AsyncIterator[StorageClient]:
    """Create the configured storage client and close it afterwards."""
    client = await create_storage_client(config)
    try:
        yield client
    finally:
        await client.close()


async def run_storage_export(
    config: BackupConfig,
    client: StorageClient | None = None,
    state: BackupState | None = None,
) -> ExportSummary:
    """
    Export all buckets to config.storage_dir.

    Args:
        config: Backup configuration
        client: Storage client to use (one is opened from config if None)
        state: Optional runtime state to update

    Returns:
        ExportSummary (also written to export-summary.json)
    """
    run_id = _new_run_id()

    try:
        if client is None:
            async with open_storage_client(config) as owned_client:
                summary = await export_storage(owned_client, config, run_id=run_id)
        else:
            summary = await export_storage(client, config, run_id=run_id)
    except Exception as e:
        if state is not None:
            state["last_error"] = str(e)
        logger.error("storage_export_run_failed", run_id=run_id, error=str(e))
        raise

    if state is not None:
        state["last_export_at"] = datetime.now(UTC)
        state["last_run_id"] = run_id
        state["total_runs"] += 1
        state["last_error"] = None

    return summary


async def run_storage_restore(
    config: BackupConfig,
    client: StorageClient | None = None,
    state: BackupState | None = None,
    *,
    dry_run: bool = False,
) -> RestoreSummary:
    """
    Restore all buckets from config.storage_dir.

    Args:
        config: Backup configuration
        client: Storage client to use (one is opened from config if None)
        state: Optional runtime state to update
        dry_run: If True, only report what would be uploaded

    Returns:
        RestoreSummary (also written to restore-summary.json)
    """
    run_id = _new_run_id()

    try:
        if client is None:
            async with open_storage_client(config) as owned_client:
                summary = await restore_storage(
                    owned_client, config, dry_run=dry_run, run_id=run_id
                )
        else:
            summary = await restore_storage(client, config, dry_run=dry_run, run_id=run_id)
    except Exception as e:
        if state is not None:
            state["last_error"] = str(e)
        logger.error("storage_restore_run_failed", run_id=run_id, error=str(e))
        raise

    if state is not None:
        state["last_restore_at"] = datetime.now(UTC)
        state["last_run_id"] = run_id
        state["total_runs"] += 1
        state["last_error"] = None

    return summary


async def run_backup_all(
    config: BackupConfig,
    client: StorageClient | None = None,
    state: BackupState | None = None,
) -> FullBackupResult:
    """
    Complete backup: the three database dumps, then the storage export.

    A failing dump aborts before any storage is exported.
    """
    timestamp = backup_timestamp()
    logger.info("full_backup_started", timestamp=timestamp, backup_dir=str(config.backup_dir))

    try:
        dumps = await run_database_dumps(config, timestamp)
    except Exception as e:
        if state is not None:
            state["last_error"] = str(e)
        logger.error("full_backup_failed", timestamp=timestamp, error=str(e))
        raise

    summary = await run_storage_export(config, client, state)

    logger.info(
        "full_backup_completed",
        timestamp=timestamp,
        dumps=[d.path.name for d in dumps],
        files=summary.total_files,
        failed=summary.total_failed,
    )

    return FullBackupResult(
        run_id=summary.run_id,
        timestamp=timestamp,
        storage=summary,
        dumps=dumps,
    )
