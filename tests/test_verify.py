# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Verification Tests.
"""

import pytest

from harakka_backup.backup.export import export_storage
from harakka_backup.verify import ERROR, OK, WARNING, find_latest_dump, verify_backup


def _write_dumps(config, timestamp: str, seed: str = "INSERT INTO t VALUES (1);\n") -> None:
    config.dumps_dir.mkdir(parents=True, exist_ok=True)
    (config.dumps_dir / f"{timestamp}_schemas.sql").write_text("CREATE TABLE t ();\n")
    (config.dumps_dir / f"{timestamp}_seed_data.sql").write_text(seed)
    (config.dumps_dir / f"{timestamp}_storage_schema.sql").write_text(
        "ALTER TABLE storage.objects ENABLE ROW LEVEL SECURITY;\n"
    )


def _statuses(report):
    return {check.name: check.status for check in report.checks}


def test_find_latest_dump_uses_timestamp_prefix():
    files = [
        "20240101000000_schemas.sql",
        "20240301000000_schemas.sql",
        "20240201000000_schemas.sql",
        "20240401000000_seed_data.sql",
        "notes.txt",
    ]

    assert find_latest_dump(files, "_schemas") == "20240301000000_schemas.sql"
    assert find_latest_dump(files, "_storage_schema") is None


@pytest.mark.asyncio
async def test_complete_backup_verifies(fake_client, test_config):
    _write_dumps(test_config, "20240309070501")
    fake_client.add_bucket("images")
    fake_client.put("images", "cat.jpg", b"meow")
    await export_storage(fake_client, test_config)

    report = await verify_backup(test_config)

    assert report.ok
    assert report.exit_code == 0
    assert report.warnings == 0
    assert report.latest_timestamp == "20240309070501"
    assert _statuses(report)["Bucket images"] == OK


@pytest.mark.asyncio
async def test_missing_cloud_export_is_an_error(test_config):
    report = await verify_backup(test_config)

    assert not report.ok
    assert report.exit_code == 1
    assert report.checks[0].name == "Cloud export directory"


@pytest.mark.asyncio
async def test_missing_dump_and_summary_are_errors(test_config):
    test_config.dumps_dir.mkdir(parents=True)
    (test_config.dumps_dir / "20240309070501_schemas.sql").write_text("CREATE TABLE t ();\n")

    report = await verify_backup(test_config)

    statuses = _statuses(report)
    assert statuses["Database schemas"] == OK
    assert statuses["Database data (seed)"] == ERROR
    assert statuses["Storage schema"] == ERROR
    assert statuses["Storage export summary"] == ERROR
    assert report.errors == 3


@pytest.mark.asyncio
async def test_empty_seed_and_failed_downloads_are_warnings(fake_client, test_config):
    _write_dumps(test_config, "20240309070501", seed="-- nothing\n")
    fake_client.add_bucket("images")
    fake_client.put("images", "cat.jpg", b"meow")
    fake_client.put("images", "dog.jpg", b"woof")
    fake_client.fail_download.add(("images", "dog.jpg"))
    await export_storage(fake_client, test_config)

    report = await verify_backup(test_config)

    statuses = _statuses(report)
    assert report.ok
    assert statuses["Database data (seed)"] == WARNING
    assert statuses["Storage downloads"] == WARNING
    assert statuses["Bucket images"] == WARNING


@pytest.mark.asyncio
async def test_missing_bucket_manifest_is_a_warning(fake_client, test_config):
    _write_dumps(test_config, "20240309070501")
    fake_client.add_bucket("images")
    await export_storage(fake_client, test_config)
    (test_config.storage_dir / "images" / "bucket-info.json").unlink()

    report = await verify_backup(test_config)

    assert _statuses(report)["Bucket images"] == WARNING
