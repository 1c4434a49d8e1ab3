# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Command-line entry point: harakka-backup.

    harakka-backup export              download every bucket
    harakka-backup restore [--dry-run] re-upload the storage backup
    harakka-backup dump [--only NAME]  database dumps via the Supabase CLI
    harakka-backup all                 dumps + storage export
    harakka-backup verify              check the backup tree

Exit status is 0 when the run completed, even if some objects failed
(check the summary), and 1 on fatal errors or a failed verification.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Sequence

import structlog

from harakka_backup import __version__
from harakka_backup.backup.manifest import ExportSummary, RestoreSummary, format_mb
from harakka_backup.config import BackupConfig
from harakka_backup.core import run_backup_all, run_storage_export, run_storage_restore
from harakka_backup.dumps import DUMP_STEPS, DumpResult, get_dump_step, run_database_dumps
from harakka_backup.env import create_config_from_env, local_supabase
from harakka_backup.exceptions import HarakkaBackupError
from harakka_backup.verify import ERROR, WARNING, VerificationReport, verify_backup

logger = structlog.get_logger()

# Commands that only touch the local filesystem or the Supabase CLI
OFFLINE_COMMANDS = {"dump", "verify"}

_STATUS_MARKS = {"ok": "OK  ", WARNING: "WARN", ERROR: "FAIL"}


def configure_logging(verbose: bool = False) -> None:
    """Console logging for CLI runs (debug level with --verbose)."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if verbose else logging.INFO
        ),
        cache_logger_on_first_use=False,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="harakka-backup",
        description="Back up and restore Supabase storage buckets and database dumps.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--env-file",
        help="dotenv file to load before reading the environment (e.g. .env.production)",
    )
    parser.add_argument(
        "--backup-dir",
        help="root of the backup tree (default: $HARAKKA_BACKUP_DIR or supabase/backup)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("export", help="download every storage bucket")

    restore = subparsers.add_parser("restore", help="re-upload a storage backup")
    restore.add_argument(
        "--dry-run",
        action="store_true",
        help="list what would be uploaded without touching the store",
    )
    restore.add_argument(
        "--local",
        action="store_true",
        help="target the local Supabase stack (http://127.0.0.1:54321)",
    )

    dump = subparsers.add_parser("dump", help="database dumps via the Supabase CLI")
    dump.add_argument(
        "--only",
        action="append",
        choices=[step.suffix for step in DUMP_STEPS],
        help="run only this dump (repeatable)",
    )

    subparsers.add_parser("all", help="database dumps followed by the storage export")
    subparsers.add_parser("verify", help="check that the latest backup is complete")

    return parser


def load_config(args: argparse.Namespace) -> BackupConfig:
    require_credentials = args.command not in OFFLINE_COMMANDS and not getattr(args, "local", False)
    config = create_config_from_env(
        env_file=args.env_file,
        require_credentials=require_credentials,
    )
    if args.backup_dir:
        config = config.with_updates(backup_dir=Path(args.backup_dir))
    if getattr(args, "local", False):
        config = local_supabase(config)
    return config


def print_export_summary(summary: ExportSummary) -> None:
    print("")
    print("Storage export summary")
    print("======================")
    for entry in summary.buckets:
        line = f"  {entry.bucket.name}: {entry.downloaded}/{entry.file_count} files"
        if entry.failed:
            line += f", {entry.failed} failed"
        if entry.total_size:
            line += f", {format_mb(entry.total_size)} MB"
        if entry.error:
            line += f" (listing failed: {entry.error})"
        print(line)
    print("")
    print(f"  Buckets:    {len(summary.buckets)}")
    print(f"  Files:      {summary.total_files}")
    print(f"  Downloaded: {summary.total_downloaded}")
    print(f"  Failed:     {summary.total_failed}")
    print(f"  Size:       {format_mb(summary.total_size)} MB")

    if summary.total_failed or summary.failed_buckets:
        print("")
        print(
            f"⚠️  WARNING: {summary.total_failed} files and "
            f"{len(summary.failed_buckets)} buckets failed. See export-summary.json."
        )


def print_restore_summary(summary: RestoreSummary) -> None:
    print("")
    print("Storage restore summary" + (" (dry run)" if summary.dry_run else ""))
    print("=======================")
    for entry in summary.buckets:
        line = f"  {entry.bucket} [{entry.action}]: {entry.uploaded}/{entry.file_count} files"
        if entry.failed:
            line += f", {entry.failed} failed"
        if entry.error:
            line += f" ({entry.error})"
        print(line)
    for name in summary.skipped_dirs:
        print(f"  {name}: skipped (no usable bucket-info.json)")
    print("")
    print(f"  Uploaded: {summary.total_uploaded}/{summary.total_files}")
    print(f"  Failed:   {summary.total_failed}")

    if summary.total_failed or summary.failed_buckets:
        print("")
        print(
            f"⚠️  WARNING: {summary.total_failed} files and "
            f"{len(summary.failed_buckets)} buckets failed. See restore-summary.json."
        )


def print_dump_results(results: Sequence[DumpResult]) -> None:
    print("")
    for result in results:
        line = f"  {result.path.name} ({format_mb(result.size_bytes)} MB)"
        if result.statement_count is not None:
            line += f", {result.statement_count} INSERT statements"
        print(line)


def print_verification(report: VerificationReport) -> None:
    print("")
    print("Backup verification")
    print("===================")
    if report.latest_timestamp:
        print(f"  Latest backup timestamp: {report.latest_timestamp}")
    for check in report.checks:
        print(f"  [{_STATUS_MARKS.get(check.status, check.status)}] {check.name}: {check.message}")
    print("")

    if report.errors == 0 and report.warnings == 0:
        print("All backups verified successfully.")
    elif report.errors == 0:
        print(f"⚠️  Backup verified with {report.warnings} warning(s).")
    else:
        print(
            f"Backup verification failed: {report.errors} error(s), "
            f"{report.warnings} warning(s). Run: harakka-backup all"
        )


async def _run(args: argparse.Namespace, config: BackupConfig) -> int:
    if args.command == "export":
        print_export_summary(await run_storage_export(config))
        return 0

    if args.command == "restore":
        print_restore_summary(await run_storage_restore(config, dry_run=args.dry_run))
        return 0

    if args.command == "dump":
        steps = [get_dump_step(name) for name in args.only] if args.only else DUMP_STEPS
        print_dump_results(await run_database_dumps(config, steps=steps))
        return 0

    if args.command == "all":
        result = await run_backup_all(config)
        print_dump_results(result.dumps)
        print_export_summary(result.storage)
        return 0

    report = await verify_backup(config)
    print_verification(report)
    return report.exit_code


def main(argv: List[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = load_config(args)
        return asyncio.run(_run(args, config))
    except HarakkaBackupError as e:
        logger.error("command_failed", command=args.command, error=str(e))
        print(f"\n{args.command} failed: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.warning("command_interrupted", command=args.command)
        return 1
    except Exception as e:
        logger.exception("command_crashed", command=args.command, error=str(e))
        return 1


def run() -> None:
    sys.exit(main())
