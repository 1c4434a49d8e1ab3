# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for Harakka Backup tests.

Provides an in-memory storage client, test configuration helpers and
temporary backup directories.
"""

import os
import tempfile
from pathlib import Path
from typing import Dict, Generator, List, Set, Tuple

import pytest

from harakka_backup.exceptions import StorageOperationError
from harakka_backup.storage.base import BucketInfo, StorageEntry

# Set test environment variables
os.environ["HARAKKA_ADMIN_API_KEY"] = "test-api-key-12345"

AUTH_HEADERS = {"Authorization": "Bearer test-api-key-12345"}


class FakeStorageClient:
    """
    In-memory StorageClient.

    Folder entries are synthesized from shared key prefixes the way the
    Supabase listing API does it (no id). Failures can be injected per
    bucket/prefix for listing and per key for transfers.
    """

    def __init__(self) -> None:
        self.buckets: Dict[str, BucketInfo] = {}
        self.objects: Dict[str, Dict[str, bytes]] = {}
        self.extra_entries: Dict[Tuple[str, str], List[StorageEntry]] = {}

        self.fail_list_buckets = False
        self.fail_list: Set[Tuple[str, str]] = set()
        self.fail_download: Set[Tuple[str, str]] = set()
        self.fail_upload: Set[Tuple[str, str]] = set()
        self.fail_create: Set[str] = set()

        self.list_calls: List[Tuple[str, str]] = []
        self.download_calls: List[Tuple[str, str]] = []
        self.uploads: List[Dict] = []
        self.created: List[str] = []
        self.updated: List[str] = []
        self.closed = False

    def add_bucket(self, name: str, public: bool = False, **options) -> BucketInfo:
        bucket = BucketInfo(name=name, id=name, public=public, **options)
        self.buckets[name] = bucket
        self.objects.setdefault(name, {})
        return bucket

    def put(self, bucket: str, key: str, data: bytes) -> None:
        self.objects.setdefault(bucket, {})[key] = data

    async def list_buckets(self) -> List[BucketInfo]:
        if self.fail_list_buckets:
            raise StorageOperationError("bucket listing unavailable")
        return list(self.buckets.values())

    async def get_bucket(self, name: str) -> BucketInfo | None:
        return self.buckets.get(name)

    async def create_bucket(self, bucket: BucketInfo) -> None:
        if bucket.name in self.fail_create or bucket.name in self.buckets:
            raise StorageOperationError(f"cannot create {bucket.name}")
        self.buckets[bucket.name] = bucket
        self.objects.setdefault(bucket.name, {})
        self.created.append(bucket.name)

    async def update_bucket(self, bucket: BucketInfo) -> None:
        self.buckets[bucket.name] = bucket
        self.updated.append(bucket.name)

    async def list_folder(self, bucket: str, prefix: str = "") -> List[StorageEntry]:
        self.list_calls.append((bucket, prefix))
        if (bucket, prefix) in self.fail_list:
            raise StorageOperationError(f"listing failed for {bucket}/{prefix}")
        if bucket not in self.objects:
            raise StorageOperationError(f"bucket not found: {bucket}")

        entries: Dict[str, StorageEntry] = {}
        for key in self.objects[bucket]:
            if prefix:
                if not key.startswith(prefix + "/"):
                    continue
                rest = key[len(prefix) + 1:]
            else:
                rest = key

            if "/" in rest:
                folder = rest.split("/", 1)[0]
                entries.setdefault(folder, StorageEntry(name=folder, id=None))
            else:
                entries[rest] = StorageEntry(name=rest, id=f"id-{key}")

        result = sorted(entries.values(), key=lambda e: e.name)
        result.extend(self.extra_entries.get((bucket, prefix), []))
        return result

    async def download(self, bucket: str, key: str) -> bytes:
        self.download_calls.append((bucket, key))
        if (bucket, key) in self.fail_download:
            raise StorageOperationError(f"download failed: {key}")
        try:
            return self.objects[bucket][key]
        except KeyError:
            raise StorageOperationError(f"object not found: {bucket}/{key}")

    async def upload(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        upsert: bool = True,
    ) -> None:
        if (bucket, key) in self.fail_upload:
            raise StorageOperationError(f"upload failed: {key}")
        if bucket not in self.buckets:
            raise StorageOperationError(f"bucket not found: {bucket}")
        if not upsert and key in self.objects.get(bucket, {}):
            raise StorageOperationError(f"object exists: {key}")
        self.objects.setdefault(bucket, {})[key] = data
        self.uploads.append(
            {"bucket": bucket, "key": key, "content_type": content_type, "upsert": upsert}
        )

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fake_client() -> FakeStorageClient:
    return FakeStorageClient()


@pytest.fixture
def test_config(temp_dir: Path):
    """Create a test configuration writing under temp_dir/backup."""
    from harakka_backup.builder import create_config

    return create_config(
        project_id="testproject",
        service_key="test-service-key",
        backup_dir=temp_dir / "backup",
    )


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every variable the env loader reads."""
    for name in (
        "SUPABASE_PROJECT_ID",
        "SUPABASE_URL",
        "SUPABASE_SERVICE_ROLE_KEY",
        "HARAKKA_STORAGE_BACKEND",
        "HARAKKA_S3_ENDPOINT_URL",
        "AWS_REGION",
        "HARAKKA_BACKUP_DIR",
        "HARAKKA_LIST_PAGE_SIZE",
        "HARAKKA_MAX_DEPTH",
        "HARAKKA_SUPABASE_CLI",
        "HARAKKA_SCHEDULE_CRON",
    ):
        # setenv first so teardown also removes values loaded from env files
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


def read_manifest(path: Path) -> Dict:
    """Load a JSON manifest synchronously."""
    import json

    return json.loads(path.read_text(encoding="utf-8"))
