# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Recursive Object Lister - Flattens a bucket into its leaf object keys.

Object stores have no directories. The listing API synthesizes folder
entries (no object id) for shared key prefixes; the lister follows them
and only ever emits real objects. The full key list is materialized
before returning because callers report progress against the total.
"""

from typing import List, Set

import structlog

from harakka_backup.exceptions import ListError
from harakka_backup.storage.base import StorageClient

logger = structlog.get_logger()

DEFAULT_MAX_DEPTH = 64


def join_key(prefix: str, name: str) -> str:
    """Key of an entry named `name` under `prefix` (bare name at the root)."""
    return f"{prefix}/{name}" if prefix else name


async def _collect(
    client: StorageClient,
    bucket: str,
    prefix: str,
    depth: int,
    max_depth: int,
    keys: List[str],
    seen: Set[str],
) -> None:
    if depth > max_depth:
        raise ListError(
            f"Folder nesting deeper than {max_depth} levels",
            details={"bucket": bucket, "prefix": prefix, "max_depth": max_depth},
        )

    try:
        entries = await client.list_folder(bucket, prefix)
    except Exception as e:
        raise ListError(
            f"Failed to list objects in {bucket}/{prefix}: {e}",
            details={"bucket": bucket, "prefix": prefix, "cause": str(e)},
        ) from e

    for entry in entries:
        full_path = join_key(prefix, entry.name)

        if entry.is_folder:
            logger.debug("folder_scanning", bucket=bucket, prefix=full_path)
            await _collect(client, bucket, full_path, depth + 1, max_depth, keys, seen)
            continue

        if full_path in seen:
            logger.warning("duplicate_key_skipped", bucket=bucket, key=full_path)
            continue

        seen.add(full_path)
        keys.append(full_path)


async def list_all_objects(
    client: StorageClient,
    bucket: str,
    prefix: str = "",
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> List[str]:
    """
    List every object key under a prefix, recursing through folders.

    Keys come back depth-first in the store's name-ascending order, with
    each folder's contents spliced in where the folder was listed.

    Args:
        client: Storage client
        bucket: Bucket name
        prefix: Folder to start from ("" for the whole bucket)
        max_depth: Maximum folder nesting to follow below prefix

    Returns:
        Duplicate-free list of leaf object keys (empty for an empty bucket)

    Raises:
        ListError: If any level fails to list or nesting exceeds max_depth
    """
    keys: List[str] = []
    await _collect(client, bucket, prefix.strip("/"), 0, max_depth, keys, set())
    return keys
