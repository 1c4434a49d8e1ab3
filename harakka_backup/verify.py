# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Verification - Checks that a backup tree is complete and usable.

Errors mean something needed for a migration is missing (a dump file,
the export summary). Warnings mean the backup exists but may be
incomplete (a dump without the expected statements, failed downloads).
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

import aiofiles
import structlog

from harakka_backup.backup.manifest import (
    BUCKET_INFO_FILE,
    EXPORT_SUMMARY_FILE,
    format_mb,
    read_json,
)
from harakka_backup.config import BackupConfig
from harakka_backup.exceptions import ManifestError

logger = structlog.get_logger()

OK = "ok"
WARNING = "warning"
ERROR = "error"


@dataclass(frozen=True)
class DumpExpectation:
    marker: str
    description: str
    pattern: re.Pattern
    content_description: str


DUMP_EXPECTATIONS = (
    DumpExpectation(
        "_schemas",
        "Database schemas",
        re.compile(r"CREATE TABLE|CREATE FUNCTION|CREATE POLICY"),
        "schema definitions",
    ),
    DumpExpectation(
        "_seed_data",
        "Database data (seed)",
        re.compile(r"INSERT INTO"),
        "INSERT statements",
    ),
    DumpExpectation(
        "_storage_schema",
        "Storage schema",
        re.compile(r"storage\.buckets|storage\.objects"),
        "storage definitions",
    ),
)


@dataclass
class VerificationCheck:
    name: str
    status: str
    message: str


@dataclass
class VerificationReport:
    """Outcome of verify_backup()."""

    checks: List[VerificationCheck] = field(default_factory=list)
    latest_timestamp: str | None = None
    latest_dumps: Dict[str, str] = field(default_factory=dict)
    storage_summary: Dict[str, Any] | None = None

    def add(self, name: str, status: str, message: str) -> None:
        self.checks.append(VerificationCheck(name=name, status=status, message=message))
        log = logger.error if status == ERROR else logger.warning if status == WARNING else logger.info
        log("backup_check", check=name, status=status, detail=message)

    @property
    def errors(self) -> int:
        return sum(1 for c in self.checks if c.status == ERROR)

    @property
    def warnings(self) -> int:
        return sum(1 for c in self.checks if c.status == WARNING)

    @property
    def ok(self) -> bool:
        return self.errors == 0

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1


def find_latest_dump(files: Iterable[str], marker: str) -> str | None:
    """
    Newest dump file whose name contains marker.

    Dump files are named YYYYMMDDHHMMSS_<name>.sql, so the leading
    timestamp orders them.
    """
    candidates = [f for f in files if marker in f and f.endswith(".sql")]
    if not candidates:
        return None
    return max(candidates, key=lambda f: f.split("_")[0])


async def _count_matches(path, pattern: re.Pattern) -> int:
    async with aiofiles.open(path, "r", encoding="utf-8", errors="replace") as f:
        content = await f.read()
    return len(pattern.findall(content))


async def _verify_dumps(config: BackupConfig, report: VerificationReport) -> None:
    files = [p.name for p in config.dumps_dir.iterdir() if p.is_file()]

    for expectation in DUMP_EXPECTATIONS:
        latest = find_latest_dump(files, expectation.marker)
        if latest is None:
            report.add(
                expectation.description,
                ERROR,
                f"No dump found (expected YYYYMMDDHHMMSS{expectation.marker}.sql)",
            )
            continue

        report.latest_dumps[expectation.marker.lstrip("_")] = latest
        if report.latest_timestamp is None:
            report.latest_timestamp = latest.split("_")[0]

        path = config.dumps_dir / latest
        size = path.stat().st_size
        try:
            matches = await _count_matches(path, expectation.pattern)
        except OSError as e:
            report.add(expectation.description, ERROR, f"Cannot read {latest}: {e}")
            continue

        if matches == 0:
            report.add(
                expectation.description,
                WARNING,
                f"{latest} ({format_mb(size)} MB) has no {expectation.content_description}",
            )
        else:
            report.add(
                expectation.description,
                OK,
                f"{latest} ({format_mb(size)} MB), {matches} {expectation.content_description}",
            )


async def _verify_storage(config: BackupConfig, report: VerificationReport) -> None:
    summary_path = config.storage_dir / EXPORT_SUMMARY_FILE

    try:
        summary = await read_json(summary_path)
    except ManifestError as e:
        report.add("Storage export summary", ERROR, e.message)
        return

    report.storage_summary = summary
    report.add(
        "Storage export summary",
        OK,
        f"{summary.get('totalBuckets', 0)} buckets, "
        f"{summary.get('totalDownloaded', 0)}/{summary.get('totalFiles', 0)} files, "
        f"{summary.get('totalSizeMB', '0.00')} MB",
    )

    total_failed = summary.get("totalFailed", 0)
    if total_failed:
        report.add("Storage downloads", WARNING, f"{total_failed} files failed to download")

    for entry in summary.get("buckets", []):
        name = entry.get("bucket", "?")
        check = f"Bucket {name}"

        if entry.get("error"):
            report.add(check, WARNING, f"export failed: {entry['error']}")
            continue

        if not (config.storage_dir / name / BUCKET_INFO_FILE).is_file():
            report.add(check, WARNING, f"{BUCKET_INFO_FILE} is missing")
            continue

        downloaded = entry.get("downloaded", 0)
        file_count = entry.get("fileCount", 0)
        if downloaded == file_count:
            report.add(check, OK, f"{downloaded}/{file_count} files")
        else:
            report.add(check, WARNING, f"{downloaded}/{file_count} files")


async def verify_backup(config: BackupConfig) -> VerificationReport:
    """
    Verify the database dumps and storage export under config.backup_dir.

    Returns:
        VerificationReport; report.exit_code is 1 when any error was found
    """
    report = VerificationReport()

    logger.info("backup_verification_started", backup_dir=str(config.backup_dir))

    if not config.dumps_dir.is_dir():
        report.add(
            "Cloud export directory",
            ERROR,
            f"Not found: {config.dumps_dir}",
        )
        return report

    await _verify_dumps(config, report)
    await _verify_storage(config, report)

    logger.info(
        "backup_verification_completed",
        errors=report.errors,
        warnings=report.warnings,
    )
    return report
