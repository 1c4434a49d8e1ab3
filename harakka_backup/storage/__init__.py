# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Storage Clients - Object store backends used by export and restore.
"""

from harakka_backup.config import BackupConfig, StorageBackend
from harakka_backup.errors import explain_missing_project_env, explain_missing_service_key_env
from harakka_backup.exceptions import ConfigurationError
from harakka_backup.storage.base import BucketInfo, StorageClient, StorageEntry
from harakka_backup.storage.s3 import S3StorageClient, create_s3_storage_client
from harakka_backup.storage.supabase import SupabaseStorageClient


async def create_storage_client(config: BackupConfig) -> StorageClient:
    """
    Build the client selected by config.backend.

    The caller owns the client and must close() it.

    Raises:
        ConfigurationError: If the supabase backend lacks a URL or service key
    """
    if config.backend == StorageBackend.S3:
        return await create_s3_storage_client(
            config.s3_endpoint_url,
            region=config.region,
            page_size=config.list_page_size,
        )

    if not config.project_url:
        raise ConfigurationError(explain_missing_project_env())
    if not config.service_key:
        raise ConfigurationError(explain_missing_service_key_env())

    return SupabaseStorageClient(
        config.project_url,
        config.service_key,
        page_size=config.list_page_size,
        timeout=config.request_timeout,
    )


__all__ = [
    "BucketInfo",
    "StorageClient",
    "StorageEntry",
    "S3StorageClient",
    "SupabaseStorageClient",
    "create_s3_storage_client",
    "create_storage_client",
]
