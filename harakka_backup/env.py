# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers and profiles.

These helpers are small wrappers around create_config() and
BackupConfig.with_updates(). They make it easy to:

- Build a configuration from environment variables (optionally loaded
  from a dotenv file first)
- Retarget a configuration at the local Supabase stack
"""

from __future__ import annotations

import os
from pathlib import Path

import structlog
from dotenv import load_dotenv

from harakka_backup.builder import create_config
from harakka_backup.config import (
    LOCAL_SUPABASE_SERVICE_KEY,
    LOCAL_SUPABASE_URL,
    BackupConfig,
    StorageBackend,
)
from harakka_backup.errors import (
    explain_invalid_backend_env,
    explain_invalid_positive_int_env,
    explain_missing_env_file,
    explain_missing_project_env,
    explain_missing_service_key_env,
)
from harakka_backup.exceptions import ConfigurationError

logger = structlog.get_logger()


def _parse_backend(value: str | None) -> StorageBackend:
    if not value:
        return StorageBackend.SUPABASE
    try:
        return StorageBackend(value.lower())
    except ValueError as exc:
        raise ConfigurationError(explain_invalid_backend_env(value)) from exc


def _parse_positive_int(name: str, value: str | None, default: int) -> int:
    if not value:
        return default
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_positive_int_env(name, value)) from exc
    if number < 1:
        raise ConfigurationError(explain_invalid_positive_int_env(name, value))
    return number


def load_env_file(env_file: str | Path) -> None:
    """
    Load variables from a dotenv file into the process environment.

    Variables already present in the environment win over the file.

    Raises:
        ConfigurationError: If the file does not exist
    """
    path = Path(env_file)
    if not path.is_file():
        raise ConfigurationError(explain_missing_env_file(str(path)))
    load_dotenv(path, override=False)
    logger.debug("env_file_loaded", path=str(path))


def create_config_from_env(
    *,
    env_file: str | Path | None = None,
    require_credentials: bool = True,
) -> BackupConfig:
    """
    Create a BackupConfig from environment variables.

    Required for the supabase backend (unless require_credentials=False,
    for commands that never talk to the store):
        - SUPABASE_PROJECT_ID or SUPABASE_URL
        - SUPABASE_SERVICE_ROLE_KEY

    Optional environment variables:
        - HARAKKA_STORAGE_BACKEND: 'supabase' | 's3' (default: supabase)
        - HARAKKA_S3_ENDPOINT_URL: S3-compatible endpoint for the s3 backend
        - AWS_REGION: Region for the s3 backend (default: us-east-1)
        - HARAKKA_BACKUP_DIR: Root of the backup tree (default: supabase/backup)
        - HARAKKA_LIST_PAGE_SIZE: Entries per listing page (default: 1000)
        - HARAKKA_MAX_DEPTH: Maximum folder depth (default: 64)
        - HARAKKA_SUPABASE_CLI: Supabase CLI command (default: 'npx supabase')
        - HARAKKA_SCHEDULE_CRON: Daily schedule in HH:MM (UTC)
    """

    if env_file is not None:
        load_env_file(env_file)

    backend = _parse_backend(os.getenv("HARAKKA_STORAGE_BACKEND"))
    project_id = os.getenv("SUPABASE_PROJECT_ID")
    supabase_url = os.getenv("SUPABASE_URL")
    service_key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")

    if require_credentials and backend == StorageBackend.SUPABASE:
        if not project_id and not supabase_url:
            raise ConfigurationError(explain_missing_project_env())
        if not service_key:
            raise ConfigurationError(explain_missing_service_key_env())

    backup_dir_env = os.getenv("HARAKKA_BACKUP_DIR")

    return create_config(
        project_id=project_id,
        supabase_url=supabase_url,
        service_key=service_key,
        backend=backend,
        s3_endpoint_url=os.getenv("HARAKKA_S3_ENDPOINT_URL"),
        region=os.getenv("AWS_REGION", "us-east-1"),
        backup_dir=Path(backup_dir_env) if backup_dir_env else None,
        schedule_cron=os.getenv("HARAKKA_SCHEDULE_CRON"),
        list_page_size=_parse_positive_int(
            "HARAKKA_LIST_PAGE_SIZE", os.getenv("HARAKKA_LIST_PAGE_SIZE"), 1000
        ),
        max_depth=_parse_positive_int("HARAKKA_MAX_DEPTH", os.getenv("HARAKKA_MAX_DEPTH"), 64),
        supabase_cli=os.getenv("HARAKKA_SUPABASE_CLI", "npx supabase"),
    )


# ============================================================================
# Profiles
# ============================================================================

def local_supabase(config: BackupConfig, url: str = LOCAL_SUPABASE_URL) -> BackupConfig:
    """
    Retarget a configuration at a local Supabase stack.

    Restores are usually rehearsed against `supabase start` before they
    touch a hosted project. A configured service key is kept; without one
    the local stack's demo service role key is used.
    """

    return config.with_updates(
        backend=StorageBackend.SUPABASE,
        supabase_url=url,
        service_key=config.service_key or LOCAL_SUPABASE_SERVICE_KEY,
    )
