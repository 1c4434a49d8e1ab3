# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Manifests - Result records and the JSON artifacts built from them.

Per-item outcomes are accumulated in TransferResult records. Bucket and
run level numbers (counts, byte totals) are always derived from those
records, so downloaded + failed == fileCount holds by construction.

Artifacts:
- <storage>/<bucket>/bucket-info.json   one per exported bucket
- <storage>/export-summary.json         one per export run
- <storage>/restore-summary.json        one per restore run
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, List

import aiofiles
import structlog

from harakka_backup.exceptions import ManifestError
from harakka_backup.storage.base import BucketInfo

logger = structlog.get_logger()

BUCKET_INFO_FILE = "bucket-info.json"
EXPORT_SUMMARY_FILE = "export-summary.json"
RESTORE_SUMMARY_FILE = "restore-summary.json"


def utc_timestamp(now: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with milliseconds and a Z suffix."""
    now = now or datetime.now(UTC)
    return now.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_mb(size_bytes: int) -> str:
    """Bytes as megabytes with two decimals, e.g. '1.50'."""
    return f"{size_bytes / (1024 * 1024):.2f}"


@dataclass
class TransferResult:
    """Outcome of one download or upload."""

    key: str
    success: bool
    size: int = 0
    error: str | None = None


def _failures(transfers: List[TransferResult]) -> List[Dict[str, Any]]:
    return [{"key": t.key, "error": t.error} for t in transfers if not t.success]


@dataclass
class BucketExportResult:
    """Everything known about one bucket after its export finished."""

    bucket: BucketInfo
    files: List[str] = field(default_factory=list)
    transfers: List[TransferResult] = field(default_factory=list)
    error: str | None = None
    export_date: str = field(default_factory=utc_timestamp)

    @property
    def file_count(self) -> int:
        return len(self.files)

    @property
    def downloaded(self) -> int:
        return sum(1 for t in self.transfers if t.success)

    @property
    def failed(self) -> int:
        return sum(1 for t in self.transfers if not t.success)

    @property
    def total_size(self) -> int:
        return sum(t.size for t in self.transfers if t.success)

    def to_summary_dict(self) -> Dict[str, Any]:
        """Per-bucket entry of export-summary.json."""
        entry: Dict[str, Any] = {
            "bucket": self.bucket.name,
            "fileCount": self.file_count,
            "downloaded": self.downloaded,
            "failed": self.failed,
            "totalSize": self.total_size,
        }
        if self.error:
            entry["error"] = self.error
        return entry

    def to_bucket_info(self) -> Dict[str, Any]:
        """Content of bucket-info.json: bucket metadata plus run metadata."""
        info: Dict[str, Any] = {
            **self.bucket.to_dict(),
            "exportDate": self.export_date,
            "totalFiles": self.file_count,
            "downloadedFiles": self.downloaded,
            "failedFiles": self.failed,
            "totalSizeBytes": self.total_size,
            "totalSizeMB": format_mb(self.total_size),
            "files": list(self.files),
            "failures": _failures(self.transfers),
        }
        if self.error:
            info["error"] = self.error
        return info


@dataclass
class ExportSummary:
    """Aggregate of one export run."""

    run_id: str
    project_id: str | None
    project_url: str | None
    buckets: List[BucketExportResult] = field(default_factory=list)
    export_date: str = field(default_factory=utc_timestamp)

    @property
    def total_files(self) -> int:
        return sum(b.file_count for b in self.buckets)

    @property
    def total_downloaded(self) -> int:
        return sum(b.downloaded for b in self.buckets)

    @property
    def total_failed(self) -> int:
        return sum(b.failed for b in self.buckets)

    @property
    def total_size(self) -> int:
        return sum(b.total_size for b in self.buckets)

    @property
    def failed_buckets(self) -> List[str]:
        return [b.bucket.name for b in self.buckets if b.error]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exportDate": self.export_date,
            "runId": self.run_id,
            "projectId": self.project_id,
            "projectUrl": self.project_url,
            "totalBuckets": len(self.buckets),
            "totalFiles": self.total_files,
            "totalDownloaded": self.total_downloaded,
            "totalFailed": self.total_failed,
            "totalSizeBytes": self.total_size,
            "totalSizeMB": format_mb(self.total_size),
            "buckets": [b.to_summary_dict() for b in self.buckets],
        }


@dataclass
class BucketRestoreResult:
    """Outcome of restoring one bucket directory."""

    bucket: str
    action: str  # created | updated | dry_run | failed
    transfers: List[TransferResult] = field(default_factory=list)
    error: str | None = None

    @property
    def file_count(self) -> int:
        return len(self.transfers)

    @property
    def uploaded(self) -> int:
        return sum(1 for t in self.transfers if t.success)

    @property
    def failed(self) -> int:
        return sum(1 for t in self.transfers if not t.success)

    @property
    def total_size(self) -> int:
        return sum(t.size for t in self.transfers if t.success)

    def to_dict(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "bucket": self.bucket,
            "action": self.action,
            "fileCount": self.file_count,
            "uploaded": self.uploaded,
            "failed": self.failed,
            "totalSize": self.total_size,
            "failures": _failures(self.transfers),
        }
        if self.error:
            entry["error"] = self.error
        return entry


@dataclass
class RestoreSummary:
    """Aggregate of one restore run."""

    run_id: str
    project_url: str | None
    source_dir: str
    dry_run: bool = False
    buckets: List[BucketRestoreResult] = field(default_factory=list)
    skipped_dirs: List[str] = field(default_factory=list)
    restore_date: str = field(default_factory=utc_timestamp)

    @property
    def total_files(self) -> int:
        return sum(b.file_count for b in self.buckets)

    @property
    def total_uploaded(self) -> int:
        return sum(b.uploaded for b in self.buckets)

    @property
    def total_failed(self) -> int:
        return sum(b.failed for b in self.buckets)

    @property
    def total_size(self) -> int:
        return sum(b.total_size for b in self.buckets)

    @property
    def failed_buckets(self) -> List[str]:
        return [b.bucket for b in self.buckets if b.error]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "restoreDate": self.restore_date,
            "runId": self.run_id,
            "projectUrl": self.project_url,
            "sourceDir": self.source_dir,
            "dryRun": self.dry_run,
            "totalBuckets": len(self.buckets),
            "totalFiles": self.total_files,
            "totalUploaded": self.total_uploaded,
            "totalFailed": self.total_failed,
            "totalSizeBytes": self.total_size,
            "totalSizeMB": format_mb(self.total_size),
            "skippedDirectories": list(self.skipped_dirs),
            "buckets": [b.to_dict() for b in self.buckets],
        }


async def write_json(path: Path, payload: Dict[str, Any]) -> Path:
    """
    Write a JSON artifact (indent 2), replacing any previous version.

    The document is written to a temp file first and then moved into
    place, so readers never see a half-written manifest.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = path.with_suffix(path.suffix + ".tmp")

        async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(payload, indent=2, ensure_ascii=False))

        temp_path.replace(path)
    except OSError as e:
        raise ManifestError(
            f"Failed to write {path.name}: {e}",
            details={"path": str(path)},
        ) from e

    logger.debug("manifest_written", path=str(path))
    return path


async def read_json(path: Path) -> Dict[str, Any]:
    """
    Read a JSON artifact.

    Raises:
        ManifestError: If the file is missing, unreadable or not a JSON object
    """
    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            content = await f.read()
    except FileNotFoundError as e:
        raise ManifestError(
            f"Manifest not found: {path}",
            details={"path": str(path)},
        ) from e
    except OSError as e:
        raise ManifestError(
            f"Failed to read manifest: {e}",
            details={"path": str(path)},
        ) from e

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ManifestError(
            f"Manifest is not valid JSON: {e}",
            details={"path": str(path)},
        ) from e

    if not isinstance(data, dict):
        raise ManifestError(
            "Manifest must be a JSON object",
            details={"path": str(path)},
        )
    return data
