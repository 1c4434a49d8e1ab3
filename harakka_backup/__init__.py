# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Harakka Backup - Storage bucket backup and restore for Supabase projects.

Mirrors every storage bucket into a local directory tree with per-bucket
and per-run JSON manifests, restores that tree into a project (or a
local stack), and takes the timestamped database dumps that go with it.
Package name: harakka_backup.
"""

__version__ = "0.1.0"

# Configuration creation (user-facing API)
from harakka_backup.builder import create_config
from harakka_backup.config import BackupConfig, StorageBackend

# Core functions
from harakka_backup.core import (
    initialize_backup_state,
    run_backup_all,
    run_storage_export,
    run_storage_restore,
)

# Environment-based configuration and profiles
from harakka_backup.env import (
    create_config_from_env,
    local_supabase,
)

from harakka_backup.verify import verify_backup

__all__ = [
    # Version
    "__version__",
    # Configuration
    "BackupConfig",
    "StorageBackend",
    "create_config",
    "create_config_from_env",
    "local_supabase",
    # Runs
    "initialize_backup_state",
    "run_backup_all",
    "run_storage_export",
    "run_storage_restore",
    "verify_backup",
]
