# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Database Dumps - Timestamped `supabase db dump` exports.

Each full backup writes three SQL files into <backup>/cloud-export, all
named after the run's start time (YYYYMMDDHHMMSS, UTC):

    <ts>_schemas.sql          all schemas
    <ts>_seed_data.sql        data only
    <ts>_storage_schema.sql   the storage schema (buckets, policies)

The timestamp keeps successive runs side by side instead of overwriting
each other. The Supabase CLI must be linked to the project beforehand.
"""

import asyncio
import shlex
from dataclasses import dataclass
from datetime import datetime, UTC
from pathlib import Path
from typing import List, Sequence, Tuple

import aiofiles
import structlog

from harakka_backup.backup.manifest import format_mb
from harakka_backup.config import BackupConfig
from harakka_backup.exceptions import DumpError

logger = structlog.get_logger()


@dataclass(frozen=True)
class DumpStep:
    """One `db dump` invocation."""

    name: str
    suffix: str
    extra_args: Tuple[str, ...] = ()
    # Statement that must appear in a healthy dump, if any
    expected_statement: str | None = None


DUMP_STEPS: Tuple[DumpStep, ...] = (
    DumpStep("Database schemas", "schemas"),
    DumpStep("Database data (seed)", "seed_data", ("--data-only",), "INSERT INTO"),
    DumpStep("Storage schema", "storage_schema", ("--schema", "storage")),
)


@dataclass
class DumpResult:
    """A dump file written by one step."""

    step: str
    path: Path
    size_bytes: int
    statement_count: int | None = None


def backup_timestamp(now: datetime | None = None) -> str:
    """Run timestamp in migration-file style: YYYYMMDDHHMMSS (UTC)."""
    now = now or datetime.now(UTC)
    return now.astimezone(UTC).strftime("%Y%m%d%H%M%S")


def get_dump_step(suffix: str) -> DumpStep:
    """Look up a dump step by its file suffix (schemas, seed_data, storage_schema)."""
    for step in DUMP_STEPS:
        if step.suffix == suffix:
            return step
    raise KeyError(suffix)


def build_dump_command(config: BackupConfig, step: DumpStep, output_file: Path) -> List[str]:
    return [
        *shlex.split(config.supabase_cli),
        "db",
        "dump",
        "--linked",
        *step.extra_args,
        "-f",
        str(output_file),
    ]


async def _count_statements(path: Path, statement: str) -> int:
    async with aiofiles.open(path, "r", encoding="utf-8", errors="replace") as f:
        content = await f.read()
    return content.count(statement)


async def run_dump_step(config: BackupConfig, step: DumpStep, timestamp: str) -> DumpResult:
    """
    Run one dump and check its output.

    The CLI's own output goes straight to the terminal.

    Raises:
        DumpError: If the command cannot start, exits non-zero, or
            produces no file
    """
    output_file = config.dumps_dir / f"{timestamp}_{step.suffix}.sql"
    command = build_dump_command(config, step, output_file)

    logger.info("database_dump_started", step=step.name, output=str(output_file))

    try:
        process = await asyncio.create_subprocess_exec(*command)
    except OSError as e:
        raise DumpError(
            f"Failed to start Supabase CLI: {e}",
            details={"step": step.name, "command": command[0]},
        ) from e

    returncode = await process.wait()
    if returncode != 0:
        raise DumpError(
            f"{step.name} dump failed with exit code {returncode}",
            details={"step": step.name, "returncode": returncode},
        )

    if not output_file.is_file():
        raise DumpError(
            f"{step.name} dump produced no file",
            details={"step": step.name, "path": str(output_file)},
        )

    size = output_file.stat().st_size
    statement_count = None

    if step.expected_statement:
        statement_count = await _count_statements(output_file, step.expected_statement)
        if statement_count == 0:
            logger.warning(
                "database_dump_has_no_data",
                step=step.name,
                file=output_file.name,
                expected=step.expected_statement,
            )

    logger.info(
        "database_dump_saved",
        step=step.name,
        file=output_file.name,
        size_mb=format_mb(size),
        statements=statement_count,
    )

    return DumpResult(
        step=step.name,
        path=output_file,
        size_bytes=size,
        statement_count=statement_count,
    )


async def run_database_dumps(
    config: BackupConfig,
    timestamp: str | None = None,
    steps: Sequence[DumpStep] = DUMP_STEPS,
) -> List[DumpResult]:
    """
    Run the dump steps one after another.

    Args:
        config: Backup configuration (dumps_dir, supabase_cli)
        timestamp: Shared file timestamp (defaults to now)
        steps: Steps to run (all three by default)

    Returns:
        One DumpResult per step

    Raises:
        DumpError: On the first failing step
    """
    timestamp = timestamp or backup_timestamp()
    config.dumps_dir.mkdir(parents=True, exist_ok=True)

    results: List[DumpResult] = []
    for step in steps:
        results.append(await run_dump_step(config, step, timestamp))
    return results
