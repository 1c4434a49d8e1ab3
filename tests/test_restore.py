# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Storage Restore Tests.

These tests verify the restore guarantees:
1. Round trip - export then restore reproduces keys and bytes
2. Idempotence - restoring twice yields the same objects as once
3. Dry-run safety - dry-run never touches the store
4. Bad bucket directories are skipped, not fatal
"""

import json
from pathlib import Path

import pytest

from harakka_backup.backup.export import export_storage
from harakka_backup.backup.restore import (
    bucket_from_manifest,
    discover_bucket_dirs,
    ensure_bucket,
    iter_backup_files,
    restore_bucket,
    restore_storage,
)
from harakka_backup.exceptions import BucketMetadataError, ManifestError
from harakka_backup.storage.base import BucketInfo
from tests.conftest import FakeStorageClient, read_manifest


def _write_bucket_dir(storage_dir: Path, name: str, info: dict, files: dict) -> Path:
    bucket_dir = storage_dir / name
    (bucket_dir / "files").mkdir(parents=True, exist_ok=True)
    (bucket_dir / "bucket-info.json").write_text(json.dumps(info), encoding="utf-8")
    for key, data in files.items():
        path = bucket_dir / "files" / key
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    return bucket_dir


# ============================================================================
# Round trip and idempotence
# ============================================================================

@pytest.mark.asyncio
async def test_round_trip_into_fresh_store(fake_client, test_config):
    """Export a bucket, restore into an empty store, compare keys and bytes."""
    fake_client.add_bucket("docs", public=True, file_size_limit=1024)
    fake_client.put("docs", "a.txt", b"alpha")
    fake_client.put("docs", "sub/b.png", b"\x89PNG beta")

    await export_storage(fake_client, test_config)

    target = FakeStorageClient()
    summary = await restore_storage(target, test_config)

    assert target.objects["docs"] == {"a.txt": b"alpha", "sub/b.png": b"\x89PNG beta"}
    assert target.created == ["docs"]
    assert target.buckets["docs"].public is True
    assert target.buckets["docs"].file_size_limit == 1024
    assert summary.total_uploaded == 2
    assert summary.total_failed == 0


@pytest.mark.asyncio
async def test_restore_twice_is_idempotent(fake_client, test_config):
    fake_client.add_bucket("docs")
    fake_client.put("docs", "a.txt", b"alpha")
    fake_client.put("docs", "sub/b.png", b"beta")
    await export_storage(fake_client, test_config)

    target = FakeStorageClient()
    await restore_storage(target, test_config)
    after_first = {b: dict(objs) for b, objs in target.objects.items()}

    second = await restore_storage(target, test_config)

    assert target.objects == after_first
    assert second.buckets[0].action == "updated"
    assert all(upload["upsert"] for upload in target.uploads)


@pytest.mark.asyncio
async def test_restore_overwrites_existing_objects(test_config):
    _write_bucket_dir(test_config.storage_dir, "docs", {"public": False}, {"a.txt": b"backup"})
    target = FakeStorageClient()
    target.add_bucket("docs")
    target.put("docs", "a.txt", b"live")
    target.put("docs", "other.txt", b"untouched")

    await restore_storage(target, test_config)

    assert target.objects["docs"]["a.txt"] == b"backup"
    assert target.objects["docs"]["other.txt"] == b"untouched"


# ============================================================================
# Bucket creation
# ============================================================================

@pytest.mark.asyncio
async def test_ensure_bucket_creates_missing_bucket(fake_client):
    action = await ensure_bucket(fake_client, BucketInfo(name="new", id="new", public=True))

    assert action == "created"
    assert fake_client.created == ["new"]


@pytest.mark.asyncio
async def test_ensure_bucket_updates_existing_bucket(fake_client):
    fake_client.add_bucket("docs", public=False)

    action = await ensure_bucket(fake_client, BucketInfo(name="docs", id="docs", public=True))

    assert action == "updated"
    assert fake_client.buckets["docs"].public is True


@pytest.mark.asyncio
async def test_ensure_bucket_falls_back_to_update_when_created_concurrently(fake_client):
    class RacingClient(FakeStorageClient):
        async def create_bucket(self, bucket):
            self.add_bucket(bucket.name)
            raise RuntimeError("already exists")

    client = RacingClient()
    action = await ensure_bucket(client, BucketInfo(name="docs", id="docs"))

    assert action == "updated"
    assert client.updated == ["docs"]


@pytest.mark.asyncio
async def test_ensure_bucket_failure_raises(fake_client):
    fake_client.fail_create.add("docs")

    with pytest.raises(BucketMetadataError):
        await ensure_bucket(fake_client, BucketInfo(name="docs", id="docs"))


@pytest.mark.asyncio
async def test_bucket_creation_failure_marks_bucket_failed(test_config):
    _write_bucket_dir(test_config.storage_dir, "docs", {}, {"a.txt": b"a"})
    _write_bucket_dir(test_config.storage_dir, "media", {}, {"b.txt": b"b"})
    target = FakeStorageClient()
    target.fail_create.add("docs")

    summary = await restore_storage(target, test_config)

    actions = {b.bucket: b.action for b in summary.buckets}
    assert actions == {"docs": "failed", "media": "created"}
    assert summary.failed_buckets == ["docs"]
    assert target.objects["media"] == {"b.txt": b"b"}


@pytest.mark.asyncio
async def test_unreadable_files_dir_fails_only_that_bucket(test_config, monkeypatch):
    """A filesystem error while walking one bucket leaves the others running."""
    from harakka_backup.backup import restore as restore_module

    _write_bucket_dir(test_config.storage_dir, "broken", {}, {"a.txt": b"a"})
    _write_bucket_dir(test_config.storage_dir, "media", {}, {"b.txt": b"b"})
    real_iter = restore_module.iter_backup_files

    def failing_iter(files_dir, prefix=""):
        if files_dir.parent.name == "broken":
            raise PermissionError(13, "Permission denied", str(files_dir))
        return real_iter(files_dir, prefix)

    monkeypatch.setattr(restore_module, "iter_backup_files", failing_iter)
    target = FakeStorageClient()

    summary = await restore_storage(target, test_config)

    actions = {b.bucket: b.action for b in summary.buckets}
    assert actions == {"broken": "failed", "media": "created"}
    assert "Permission denied" in summary.buckets[0].error
    assert target.objects["media"] == {"b.txt": b"b"}
    written = read_manifest(test_config.storage_dir / "restore-summary.json")
    assert written["buckets"][0]["action"] == "failed"


@pytest.mark.asyncio
async def test_dry_run_records_unreadable_file(test_config, monkeypatch):
    """A file removed between the walk and its stat is a failed transfer."""
    from harakka_backup.backup import restore as restore_module

    bucket_dir = _write_bucket_dir(
        test_config.storage_dir, "docs", {}, {"a.txt": b"a", "b.txt": b"bb"}
    )
    real_iter = restore_module.iter_backup_files

    def walk_then_delete(files_dir, prefix=""):
        found = real_iter(files_dir, prefix)
        (files_dir / "a.txt").unlink()
        return found

    monkeypatch.setattr(restore_module, "iter_backup_files", walk_then_delete)

    result = await restore_bucket(FakeStorageClient(), bucket_dir, dry_run=True)

    assert result.failed == 1
    assert result.uploaded == 1
    assert result.to_dict()["failures"][0]["key"] == "a.txt"


# ============================================================================
# Dry run
# ============================================================================

@pytest.mark.asyncio
async def test_dry_run_touches_nothing(test_config):
    _write_bucket_dir(
        test_config.storage_dir, "docs", {}, {"a.txt": b"12345", "sub/b.txt": b"678"}
    )
    target = FakeStorageClient()

    summary = await restore_storage(target, test_config, dry_run=True)

    assert target.uploads == []
    assert target.created == []
    assert target.updated == []
    assert summary.dry_run is True
    assert summary.buckets[0].action == "dry_run"
    assert summary.total_files == 2
    assert summary.total_size == 8

    written = read_manifest(test_config.storage_dir / "restore-summary.json")
    assert written["dryRun"] is True


# ============================================================================
# Backup tree discovery
# ============================================================================

@pytest.mark.asyncio
async def test_directory_without_manifest_is_skipped(test_config):
    _write_bucket_dir(test_config.storage_dir, "docs", {}, {"a.txt": b"a"})
    (test_config.storage_dir / "stray").mkdir()

    summary = await restore_storage(FakeStorageClient(), test_config)

    assert [b.bucket for b in summary.buckets] == ["docs"]
    assert summary.skipped_dirs == ["stray"]


@pytest.mark.asyncio
async def test_malformed_manifest_is_skipped(test_config):
    _write_bucket_dir(test_config.storage_dir, "docs", {}, {"a.txt": b"a"})
    bad = test_config.storage_dir / "bad"
    bad.mkdir(parents=True)
    (bad / "bucket-info.json").write_text("{not json", encoding="utf-8")

    target = FakeStorageClient()
    summary = await restore_storage(target, test_config)

    assert summary.skipped_dirs == ["bad"]
    assert "bad" not in target.buckets
    assert target.objects["docs"] == {"a.txt": b"a"}


def test_discover_bucket_dirs_requires_storage_dir(temp_dir: Path):
    with pytest.raises(ManifestError):
        discover_bucket_dirs(temp_dir / "missing")


def test_discover_bucket_dirs_ignores_files(temp_dir: Path):
    _write_bucket_dir(temp_dir, "b", {}, {})
    _write_bucket_dir(temp_dir, "a", {}, {})
    (temp_dir / "export-summary.json").write_text("{}", encoding="utf-8")

    bucket_dirs, skipped = discover_bucket_dirs(temp_dir)

    assert [d.name for d in bucket_dirs] == ["a", "b"]
    assert skipped == []


def test_iter_backup_files_skips_placeholders(temp_dir: Path):
    files_dir = _write_bucket_dir(
        temp_dir,
        "docs",
        {},
        {
            "b.txt": b"b",
            "a/.emptyFolderPlaceholder": b"",
            "a/c.txt": b"c",
            "empty/.emptyFolderPlaceholder": b"",
        },
    ) / "files"

    keys = [key for key, _ in iter_backup_files(files_dir)]

    assert keys == ["a/c.txt", "b.txt"]


def test_bucket_from_manifest_rejects_bad_mime_list():
    with pytest.raises(ManifestError):
        bucket_from_manifest("docs", {"allowed_mime_types": "image/png"})

    bucket = bucket_from_manifest(
        "docs",
        {"id": "other", "public": True, "allowed_mime_types": ["image/png"]},
    )
    assert bucket.name == "docs"
    assert bucket.id == "docs"
    assert bucket.allowed_mime_types == ["image/png"]


# ============================================================================
# Uploads
# ============================================================================

@pytest.mark.asyncio
async def test_uploads_use_content_type_from_extension(test_config):
    bucket_dir = _write_bucket_dir(
        test_config.storage_dir,
        "docs",
        {},
        {"photo.JPG": b"j", "report.pdf": b"p", "data.unknownext": b"u"},
    )
    target = FakeStorageClient()

    await restore_bucket(target, bucket_dir)

    types = {u["key"]: u["content_type"] for u in target.uploads}
    assert types == {
        "data.unknownext": "application/octet-stream",
        "photo.JPG": "image/jpeg",
        "report.pdf": "application/pdf",
    }


@pytest.mark.asyncio
async def test_failed_upload_does_not_stop_bucket(test_config):
    bucket_dir = _write_bucket_dir(
        test_config.storage_dir, "docs", {}, {"a.txt": b"a", "b.txt": b"b", "c.txt": b"c"}
    )
    target = FakeStorageClient()
    target.fail_upload.add(("docs", "b.txt"))

    result = await restore_bucket(target, bucket_dir)

    assert result.uploaded == 2
    assert result.failed == 1
    assert result.to_dict()["failures"][0]["key"] == "b.txt"
    assert "c.txt" in target.objects["docs"]
