# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Harakka Backup Configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation so a run cannot
change its own target halfway through.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List


class StorageBackend(str, Enum):
    """Object store API used to reach the buckets."""

    SUPABASE = "supabase"  # Supabase Storage REST API
    S3 = "s3"  # Any S3-compatible endpoint


DEFAULT_BACKUP_DIR = Path("supabase/backup")
LOCAL_SUPABASE_URL = "http://127.0.0.1:54321"

# Service role key every `supabase start` stack ships with (public demo value)
LOCAL_SUPABASE_SERVICE_KEY = (
    "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9."
    "eyJpc3MiOiJzdXBhYmFzZS1kZW1vIiwicm9sZSI6InNlcnZpY2Vfcm9sZSIsImV4cCI6MTk4MzgxMjk5Nn0."
    "EGIM96RAZx35lJzdJsyH-qQwv8Hdp7fsn3W0YpN81IU"
)


def _validate_cron_time(time_str: str) -> bool:
    """Validate HH:MM time format."""
    if not time_str:
        return False
    try:
        parts = time_str.split(":")
        if len(parts) != 2:
            return False
        hour, minute = int(parts[0]), int(parts[1])
        return 0 <= hour <= 23 and 0 <= minute <= 59
    except (ValueError, AttributeError):
        return False


@dataclass(frozen=True)
class BackupConfig:
    """
    Immutable configuration for storage backup and restore runs.

    The same configuration drives both directions: export reads from the
    configured project into ``storage_dir``, restore reads ``storage_dir``
    back into the configured project.
    """

    # Object store API
    backend: StorageBackend = StorageBackend.SUPABASE

    # Supabase project reference, e.g. "abcd1234" -> https://abcd1234.supabase.co
    project_id: str | None = None

    # Explicit Supabase URL (overrides project_id, used for local stacks)
    supabase_url: str | None = None

    # Service role key (needed to see private buckets)
    service_key: str | None = field(default=None, repr=False)

    # Endpoint for the S3 backend (None means AWS)
    s3_endpoint_url: str | None = None

    # Region for the S3 backend
    region: str = "us-east-1"

    # Root of the local backup tree
    backup_dir: Path = field(default_factory=lambda: DEFAULT_BACKUP_DIR)

    # Entries requested per listing page
    list_page_size: int = 1000

    # Maximum folder nesting followed by the recursive lister
    max_depth: int = 64

    # Per-request timeout in seconds
    request_timeout: float = 60.0

    # Command used to run the Supabase CLI for database dumps
    supabase_cli: str = "npx supabase"

    # Daily schedule in HH:MM format (UTC), used by the FastAPI plugin
    schedule_cron: str | None = None

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        # Credentials are checked when a storage client is created, so
        # offline commands (verify) work without them.
        if self.supabase_url and not self.supabase_url.startswith(("http://", "https://")):
            errors.append(f"supabase_url must be an http(s) URL, got {self.supabase_url}")

        if self.list_page_size < 1:
            errors.append(f"list_page_size must be >= 1, got {self.list_page_size}")

        if self.max_depth < 1:
            errors.append(f"max_depth must be >= 1, got {self.max_depth}")

        if self.request_timeout <= 0:
            errors.append(f"request_timeout must be > 0, got {self.request_timeout}")

        if not self.supabase_cli.strip():
            errors.append("supabase_cli must not be empty")

        if self.schedule_cron and not _validate_cron_time(self.schedule_cron):
            errors.append(f"Invalid schedule_cron format: {self.schedule_cron}, expected HH:MM")

        if errors:
            from harakka_backup.exceptions import ConfigurationError

            raise ConfigurationError(
                "Configuration validation failed",
                details={"errors": errors},
            )

    @property
    def project_url(self) -> str | None:
        """Base URL of the Supabase project."""
        if self.supabase_url:
            return self.supabase_url.rstrip("/")
        if self.project_id:
            return f"https://{self.project_id}.supabase.co"
        return None

    @property
    def storage_dir(self) -> Path:
        """Directory holding one subdirectory per bucket."""
        return self.backup_dir / "storage"

    @property
    def dumps_dir(self) -> Path:
        """Directory holding timestamped database dumps."""
        return self.backup_dir / "cloud-export"

    def with_updates(self, **kwargs) -> "BackupConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        from dataclasses import asdict

        current = asdict(self)
        current.update(kwargs)
        return BackupConfig(**current)
