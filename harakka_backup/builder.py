# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Harakka Backup Builder - Functional builder pattern for configuration.

This module provides pure functions for building BackupConfig objects.
Each function takes a config dict and returns a new dict with the
modification applied (immutable updates).
"""

from pathlib import Path
from typing import Any, Callable, Dict

from harakka_backup.config import (
    DEFAULT_BACKUP_DIR,
    BackupConfig,
    StorageBackend,
)


# Type alias for builder functions
ConfigDict = Dict[str, Any]
BuilderFunc = Callable[[ConfigDict], ConfigDict]


def create_empty_config() -> ConfigDict:
    """
    Create an initial empty configuration dictionary.

    Returns:
        Dict with default values for all configuration fields
    """
    return {
        "backend": StorageBackend.SUPABASE,
        "project_id": None,
        "supabase_url": None,
        "service_key": None,
        "s3_endpoint_url": None,
        "region": "us-east-1",
        "backup_dir": DEFAULT_BACKUP_DIR,
        "list_page_size": 1000,
        "max_depth": 64,
        "request_timeout": 60.0,
        "supabase_cli": "npx supabase",
        "schedule_cron": None,
    }


def with_project(config: ConfigDict, project_id: str) -> ConfigDict:
    """
    Set the Supabase project reference.

    Args:
        config: Current configuration dictionary
        project_id: Project reference (the subdomain of <ref>.supabase.co)

    Returns:
        New configuration dictionary with project set
    """
    return {**config, "project_id": project_id}


def with_supabase_url(config: ConfigDict, url: str) -> ConfigDict:
    """
    Point the configuration at an explicit Supabase URL.

    Useful for self-hosted and local stacks where the URL does not follow
    the <ref>.supabase.co pattern.
    """
    return {**config, "supabase_url": url}


def with_service_key(config: ConfigDict, service_key: str) -> ConfigDict:
    """Set the service role key."""
    return {**config, "service_key": service_key}


def with_backup_dir(config: ConfigDict, backup_dir: Path | str) -> ConfigDict:
    """
    Set the root of the local backup tree.

    Args:
        config: Current configuration dictionary
        backup_dir: Directory holding storage/ and cloud-export/

    Returns:
        New configuration dictionary with backup_dir set
    """
    path = Path(backup_dir) if isinstance(backup_dir, str) else backup_dir
    return {**config, "backup_dir": path}


def with_s3_endpoint(
    config: ConfigDict,
    endpoint_url: str | None,
    region: str = "us-east-1",
) -> ConfigDict:
    """
    Switch to the S3 backend.

    Args:
        config: Current configuration dictionary
        endpoint_url: S3-compatible endpoint (None for AWS)
        region: Region name passed to the client

    Returns:
        New configuration dictionary using the S3 backend
    """
    return {
        **config,
        "backend": StorageBackend.S3,
        "s3_endpoint_url": endpoint_url,
        "region": region,
    }


def with_list_page_size(config: ConfigDict, page_size: int) -> ConfigDict:
    """
    Set the number of entries requested per listing page.

    Raises:
        ValueError: If page_size is outside 1-1000
    """
    if page_size < 1 or page_size > 1000:
        raise ValueError(f"list_page_size must be 1-1000, got {page_size}")
    return {**config, "list_page_size": page_size}


def with_max_depth(config: ConfigDict, max_depth: int) -> ConfigDict:
    """Set the maximum folder depth followed by the recursive lister."""
    if max_depth < 1:
        raise ValueError(f"max_depth must be >= 1, got {max_depth}")
    return {**config, "max_depth": max_depth}


def with_supabase_cli(config: ConfigDict, command: str) -> ConfigDict:
    """Set the command used to invoke the Supabase CLI (e.g. 'supabase')."""
    return {**config, "supabase_cli": command}


def run_daily_at(config: ConfigDict, time: str) -> ConfigDict:
    """
    Set the daily schedule time (UTC).

    Args:
        config: Current configuration dictionary
        time: Time in HH:MM format (e.g., '02:30' for 2:30 AM UTC)

    Returns:
        New configuration dictionary with schedule set
    """
    parts = time.split(":")
    if len(parts) != 2:
        raise ValueError(f"Invalid time format: {time}, expected HH:MM")
    try:
        hour, minute = int(parts[0]), int(parts[1])
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise ValueError(f"Invalid time: {time}")
    except ValueError:
        raise ValueError(f"Invalid time format: {time}, expected HH:MM")

    return {**config, "schedule_cron": time}


def build_config(config_dict: ConfigDict) -> BackupConfig:
    """
    Validate and build an immutable BackupConfig from a configuration dictionary.

    Args:
        config_dict: Configuration dictionary built using builder functions

    Returns:
        Validated, immutable BackupConfig instance

    Raises:
        ConfigurationError: If validation fails
    """
    return BackupConfig(**config_dict)


def pipe(*funcs: BuilderFunc) -> BuilderFunc:
    """
    Compose multiple builder functions into a single function.

        config = pipe(
            lambda c: with_project(c, "abcd1234"),
            lambda c: with_backup_dir(c, "/var/backups/harakka"),
        )(create_empty_config())
    """

    def composed(config: ConfigDict) -> ConfigDict:
        result = config
        for func in funcs:
            result = func(result)
        return result

    return composed


def build_from_steps(*steps: BuilderFunc) -> BackupConfig:
    """
    Build config by applying a sequence of builder functions.

    This is a convenience function that combines pipe() and build_config().
    """
    config = create_empty_config()
    for step in steps:
        config = step(config)
    return build_config(config)


def create_config(
    *,
    project_id: str | None = None,
    supabase_url: str | None = None,
    service_key: str | None = None,
    backend: str | StorageBackend = StorageBackend.SUPABASE,
    s3_endpoint_url: str | None = None,
    region: str = "us-east-1",
    backup_dir: str | Path | None = None,
    schedule_cron: str | None = None,
    **kwargs: Any,
) -> BackupConfig:
    """
    Create a backup configuration from simple parameters.

    This is the recommended user-facing API for creating configurations.

    Args:
        project_id: Supabase project reference
        supabase_url: Explicit Supabase URL (overrides project_id)
        service_key: Service role key
        backend: "supabase" (default) or "s3"
        s3_endpoint_url: Endpoint for the S3 backend
        region: Region for the S3 backend
        backup_dir: Root of the local backup tree (default: supabase/backup)
        schedule_cron: Daily schedule in HH:MM format (optional)
        **kwargs: Additional configuration options

    Returns:
        Validated, immutable BackupConfig instance

    Example:
        config = create_config(
            project_id="abcd1234",
            service_key=os.environ["SUPABASE_SERVICE_ROLE_KEY"],
            backup_dir="supabase/backup",
        )
    """
    config_dict = create_empty_config()

    if project_id:
        config_dict = with_project(config_dict, project_id)

    if supabase_url:
        config_dict = with_supabase_url(config_dict, supabase_url)

    if service_key:
        config_dict = with_service_key(config_dict, service_key)

    if isinstance(backend, str):
        backend = StorageBackend(backend.lower())
    if backend == StorageBackend.S3:
        config_dict = with_s3_endpoint(config_dict, s3_endpoint_url, region)
    else:
        config_dict["region"] = region

    if backup_dir:
        config_dict = with_backup_dir(config_dict, backup_dir)

    if schedule_cron:
        config_dict = run_daily_at(config_dict, schedule_cron)

    # Apply any additional kwargs
    for key, value in kwargs.items():
        if key in config_dict:
            config_dict[key] = value

    return build_config(config_dict)
