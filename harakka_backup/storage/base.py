# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Storage client interface shared by every object store backend.

Clients are created once per run and passed explicitly into the
enumerator, the lister and the transfer functions.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol

_BUCKET_FIELDS = ("id", "name", "public", "file_size_limit", "allowed_mime_types")


@dataclass
class BucketInfo:
    """One bucket as reported by the store (or read back from a manifest)."""

    name: str
    id: str | None = None
    public: bool = False
    file_size_limit: int | None = None
    allowed_mime_types: List[str] | None = None
    # Provider metadata we do not interpret (owner, created_at, ...)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BucketInfo":
        """Build from a Supabase bucket object or a bucket-info.json document."""
        return cls(
            name=data["name"],
            id=data.get("id"),
            public=bool(data.get("public", False)),
            file_size_limit=data.get("file_size_limit"),
            allowed_mime_types=data.get("allowed_mime_types"),
            metadata={k: v for k, v in data.items() if k not in _BUCKET_FIELDS},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id or self.name,
            "name": self.name,
            **self.metadata,
            "public": self.public,
            "file_size_limit": self.file_size_limit,
            "allowed_mime_types": self.allowed_mime_types,
        }


@dataclass
class StorageEntry:
    """
    One listing entry directly under a prefix.

    The store synthesizes folder entries for shared key prefixes. They
    carry no object id and have no content of their own.
    """

    name: str
    id: str | None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_folder(self) -> bool:
        return self.id is None


class StorageClient(Protocol):
    """Async operations the backup pipeline needs from an object store."""

    async def list_buckets(self) -> List[BucketInfo]:
        ...

    async def get_bucket(self, name: str) -> BucketInfo | None:
        """Return the bucket, or None when it does not exist."""
        ...

    async def create_bucket(self, bucket: BucketInfo) -> None:
        ...

    async def update_bucket(self, bucket: BucketInfo) -> None:
        ...

    async def list_folder(self, bucket: str, prefix: str = "") -> List[StorageEntry]:
        """Return every entry directly under prefix, sorted by name."""
        ...

    async def download(self, bucket: str, key: str) -> bytes:
        ...

    async def upload(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        upsert: bool = True,
    ) -> None:
        ...

    async def close(self) -> None:
        ...
