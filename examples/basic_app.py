# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Example FastAPI Application with Harakka Backup Integration.

This example mounts the storage backup admin endpoints on an app and
schedules a nightly export.

Run with:
    uvicorn examples.basic_app:app --reload

Environment variables:
    SUPABASE_PROJECT_ID: Project reference (or SUPABASE_URL)
    SUPABASE_SERVICE_ROLE_KEY: Service role key
    HARAKKA_ADMIN_API_KEY: API key for admin endpoints
    HARAKKA_BACKUP_DIR: Where the backup tree is written
"""

import os
from pathlib import Path

from fastapi import FastAPI

from harakka_backup.builder import (
    build_config,
    create_empty_config,
    run_daily_at,
    with_backup_dir,
    with_project,
    with_service_key,
    with_supabase_url,
)
from harakka_backup.integrations.fastapi import setup_backup_plugin

app = FastAPI(
    title="My App with Harakka Backup",
    description="Example application exposing storage backup admin endpoints",
    version="1.0.0",
)


def create_backup_config():
    """
    Create the backup configuration from environment variables.

    This uses the functional builder pattern for clean, composable configuration.
    """
    config = create_empty_config()

    project_id = os.getenv("SUPABASE_PROJECT_ID")
    if project_id:
        config = with_project(config, project_id)

    supabase_url = os.getenv("SUPABASE_URL")
    if supabase_url:
        config = with_supabase_url(config, supabase_url)

    config = with_service_key(config, os.getenv("SUPABASE_SERVICE_ROLE_KEY", ""))
    config = with_backup_dir(
        config, Path(os.getenv("HARAKKA_BACKUP_DIR", "/var/lib/harakka/backup"))
    )

    # Nightly export at 02:30 UTC
    config = run_daily_at(config, "02:30")

    return build_config(config)


setup_backup_plugin(app, create_backup_config())


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Welcome to My App with Harakka Backup",
        "docs": "/docs",
        "backup_admin": "/admin/storage-backup/health",
    }


# ============================================================================
# Backup Admin Endpoints (auto-registered by plugin)
# ============================================================================
#
# POST /admin/storage-backup/export            - Export every bucket
# POST /admin/storage-backup/restore?dry_run=  - Restore the backup tree
# GET  /admin/storage-backup/verify            - Verify dumps and export
# GET  /admin/storage-backup/summary           - Last export-summary.json
# GET  /admin/storage-backup/status            - Run status
# GET  /admin/storage-backup/health            - Health check
#
# All endpoints require: Authorization: Bearer <HARAKKA_ADMIN_API_KEY>


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
