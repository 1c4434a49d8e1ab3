# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Harakka Backup FastAPI Integration - Admin endpoints for backup runs.

This module provides:
- Protected admin endpoints to trigger export, restore and verify
- Lifespan management (startup/shutdown)
- An optional daily scheduled export
- A run lock: only one export or restore runs at a time
"""

import asyncio
import os
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime, UTC
from typing import Any, Callable

import structlog
from fastapi import Depends, FastAPI, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from harakka_backup.backup.manifest import EXPORT_SUMMARY_FILE, read_json
from harakka_backup.config import BackupConfig
from harakka_backup.core import (
    BackupState,
    initialize_backup_state,
    open_storage_client,
    run_storage_export,
    run_storage_restore,
)
from harakka_backup.exceptions import HarakkaBackupError, ManifestError
from harakka_backup.storage import StorageClient
from harakka_backup.verify import verify_backup

logger = structlog.get_logger()

# Security
security = HTTPBearer(auto_error=False)

DEFAULT_PREFIX = "/admin/storage-backup"

# Returns a long-lived client owned by the caller, which the routes use
# but never close, or None to let each run open and close its own
ClientFactory = Callable[[], StorageClient | None]


async def verify_api_key(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> bool:
    """
    Verify API key from Authorization header.

    The API key is read from the HARAKKA_ADMIN_API_KEY environment variable.
    Requests must include: Authorization: Bearer <api_key>

    Raises:
        HTTPException: If API key is missing or invalid
    """
    api_key = os.getenv("HARAKKA_ADMIN_API_KEY")

    if not api_key:
        raise HTTPException(
            status_code=500,
            detail="HARAKKA_ADMIN_API_KEY environment variable not set",
        )

    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Authorization header required",
        )

    if credentials.credentials != api_key:
        raise HTTPException(
            status_code=403,
            detail="Invalid API key",
        )

    return True


def register_backup_routes(
    app: FastAPI,
    config: BackupConfig,
    state: BackupState,
    client_factory: ClientFactory | None = None,
    prefix: str = DEFAULT_PREFIX,
) -> None:
    """
    Register backup admin endpoints on a FastAPI app.

    All endpoints require Bearer token authentication.

    Args:
        app: FastAPI application
        config: Backup configuration
        state: Runtime state
        client_factory: Supplies a caller-owned storage client per run; the
            routes never close it (default: open and close one from config)
        prefix: URL prefix for endpoints
    """
    run_lock = asyncio.Lock()
    app.state.harakka_run_lock = run_lock

    def _client() -> StorageClient | None:
        return client_factory() if client_factory else None

    def _ensure_idle() -> None:
        if run_lock.locked():
            raise HTTPException(
                status_code=409,
                detail="Another backup or restore run is in progress",
            )

    @app.post(f"{prefix}/export", dependencies=[Depends(verify_api_key)])
    async def trigger_export() -> dict:
        """
        Export every bucket to the configured backup directory.

        Returns the export summary (the content of export-summary.json).
        """
        _ensure_idle()
        async with run_lock:
            try:
                summary = await run_storage_export(config, _client(), state)
            except HarakkaBackupError as e:
                raise HTTPException(status_code=502, detail=str(e))
        return summary.to_dict()

    @app.post(f"{prefix}/restore", dependencies=[Depends(verify_api_key)])
    async def trigger_restore(dry_run: bool = True) -> dict:
        """
        Restore every bucket from the configured backup directory.

        Args:
            dry_run: If true, only report what would be uploaded
        """
        _ensure_idle()
        async with run_lock:
            try:
                summary = await run_storage_restore(
                    config, _client(), state, dry_run=dry_run
                )
            except HarakkaBackupError as e:
                raise HTTPException(status_code=502, detail=str(e))
        return summary.to_dict()

    @app.get(f"{prefix}/verify", dependencies=[Depends(verify_api_key)])
    async def verify() -> dict:
        """
        Verify the backup tree (dumps and storage export).
        """
        report = await verify_backup(config)
        return {
            "ok": report.ok,
            "errors": report.errors,
            "warnings": report.warnings,
            "latest_timestamp": report.latest_timestamp,
            "checks": [asdict(check) for check in report.checks],
        }

    @app.get(f"{prefix}/summary", dependencies=[Depends(verify_api_key)])
    async def last_summary() -> dict:
        """
        Return the most recent export-summary.json.
        """
        try:
            return await read_json(config.storage_dir / EXPORT_SUMMARY_FILE)
        except ManifestError as e:
            raise HTTPException(status_code=404, detail=e.message)

    @app.get(f"{prefix}/status", dependencies=[Depends(verify_api_key)])
    async def get_status() -> dict:
        """
        Current run status and totals since startup.
        """
        return {
            "running": run_lock.locked(),
            "last_export_at": (
                state["last_export_at"].isoformat() if state["last_export_at"] else None
            ),
            "last_restore_at": (
                state["last_restore_at"].isoformat() if state["last_restore_at"] else None
            ),
            "last_run_id": state["last_run_id"],
            "total_runs": state["total_runs"],
            "last_error": state["last_error"],
            "backend": config.backend.value,
            "project_url": config.project_url,
            "backup_dir": str(config.backup_dir),
        }

    @app.get(f"{prefix}/health", dependencies=[Depends(verify_api_key)])
    async def health_check() -> dict:
        """
        Health check endpoint.

        Verifies the backup directory is writable and the store answers.
        """
        backup_dir_ok = False
        try:
            config.backup_dir.mkdir(parents=True, exist_ok=True)
            backup_dir_ok = os.access(config.backup_dir, os.W_OK)
        except OSError:
            backup_dir_ok = False

        store_ok = False
        store_error = None
        client = _client()
        try:
            if client is None:
                async with open_storage_client(config) as owned_client:
                    await owned_client.list_buckets()
            else:
                await client.list_buckets()
            store_ok = True
        except Exception as e:
            store_error = str(e)

        status = "healthy"
        if not backup_dir_ok or not store_ok:
            status = "degraded"
        if not backup_dir_ok and not store_ok:
            status = "unhealthy"

        return {
            "status": status,
            "backup_dir_writable": backup_dir_ok,
            "store_reachable": store_ok,
            "store_error": store_error,
            "timestamp": datetime.now(UTC).isoformat(),
        }


def _setup_scheduled_export(app: FastAPI, config: BackupConfig, state: BackupState) -> Any:
    """Set up APScheduler for a daily export; returns the scheduler or None."""
    try:
        from apscheduler.schedulers.asyncio import AsyncIOScheduler
        from apscheduler.triggers.cron import CronTrigger

        scheduler = AsyncIOScheduler()
        hour, minute = map(int, config.schedule_cron.split(":"))

        async def scheduled_export():
            """Run scheduled export unless a run is already active."""
            run_lock: asyncio.Lock = app.state.harakka_run_lock
            if run_lock.locked():
                logger.warning("scheduled_export_skipped", reason="run in progress")
                return

            logger.info("scheduled_export_starting")
            async with run_lock:
                try:
                    summary = await run_storage_export(config, None, state)
                    logger.info(
                        "scheduled_export_completed",
                        downloaded=summary.total_downloaded,
                        failed=summary.total_failed,
                    )
                except Exception as e:
                    logger.error("scheduled_export_failed", error=str(e))

        scheduler.add_job(
            scheduled_export,
            trigger=CronTrigger(hour=hour, minute=minute, timezone="UTC"),
            id="harakka_scheduled_export",
            replace_existing=True,
        )
        scheduler.start()

        logger.info("scheduler_started", schedule=config.schedule_cron)
        return scheduler

    except ImportError:
        logger.warning(
            "apscheduler_not_installed",
            message="Install apscheduler for scheduled exports",
        )
    except Exception as e:
        logger.error("scheduler_setup_failed", error=str(e))
    return None


@asynccontextmanager
async def backup_lifespan(
    app: FastAPI,
    config: BackupConfig,
    client_factory: ClientFactory | None = None,
    prefix: str = DEFAULT_PREFIX,
):
    """
    Lifespan context manager for FastAPI.

        app = FastAPI(lifespan=lambda app: backup_lifespan(app, config))

    Args:
        app: FastAPI application
        config: Backup configuration
        client_factory: Supplies a caller-owned storage client per run
        prefix: URL prefix for admin endpoints
    """
    logger.info("backup_plugin_starting", backend=config.backend.value)

    state = initialize_backup_state()
    app.state.harakka_state = state
    app.state.harakka_config = config

    register_backup_routes(app, config, state, client_factory, prefix)

    scheduler = None
    if config.schedule_cron:
        scheduler = _setup_scheduled_export(app, config, state)

    logger.info("backup_plugin_started")

    try:
        yield
    finally:
        logger.info("backup_plugin_stopping")
        if scheduler is not None:
            scheduler.shutdown(wait=False)
        logger.info("backup_plugin_stopped")


def setup_backup_plugin(
    app: FastAPI,
    config: BackupConfig,
    client_factory: ClientFactory | None = None,
    prefix: str = DEFAULT_PREFIX,
) -> BackupState:
    """
    Set up the backup plugin on an existing FastAPI app.

    Routes are registered immediately. The scheduled export (if
    config.schedule_cron is set) is wrapped around the app's existing
    lifespan, so it starts with the app and stops with it.

    Returns:
        The runtime state shared by the endpoints
    """
    state = initialize_backup_state()
    app.state.harakka_state = state
    app.state.harakka_config = config
    app.state.harakka_scheduler = None

    register_backup_routes(app, config, state, client_factory, prefix)

    app_lifespan = app.router.lifespan_context

    @asynccontextmanager
    async def lifespan(app_: FastAPI):
        async with app_lifespan(app_) as app_state:
            logger.info("backup_plugin_starting", backend=config.backend.value)
            if config.schedule_cron:
                app.state.harakka_scheduler = _setup_scheduled_export(app, config, state)
            logger.info("backup_plugin_started")
            try:
                yield app_state
            finally:
                logger.info("backup_plugin_stopping")
                scheduler = app.state.harakka_scheduler
                if scheduler is not None:
                    scheduler.shutdown(wait=False)
                    app.state.harakka_scheduler = None
                logger.info("backup_plugin_stopped")

    app.router.lifespan_context = lifespan
    return state


def get_backup_state(app: FastAPI) -> BackupState:
    """
    Get backup runtime state from a FastAPI app.

    Raises:
        RuntimeError: If the plugin is not initialized
    """
    state = getattr(app.state, "harakka_state", None)
    if not state:
        raise RuntimeError("Backup plugin not initialized. Use backup_lifespan first.")
    return state
