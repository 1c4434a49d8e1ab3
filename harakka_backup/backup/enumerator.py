# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bucket Enumerator - Lists every bucket visible to the configured credentials.
"""

from typing import List

import structlog

from harakka_backup.exceptions import ListError
from harakka_backup.storage.base import BucketInfo, StorageClient

logger = structlog.get_logger()


async def list_buckets(client: StorageClient) -> List[BucketInfo]:
    """
    List all buckets in the store, in the order the store returns them.

    There are no retries here: without a bucket list the run has nothing
    well-defined to do, so the caller aborts.

    Raises:
        ListError: If the store cannot list buckets
    """
    try:
        buckets = await client.list_buckets()
    except Exception as e:
        logger.error("bucket_listing_failed", error=str(e))
        raise ListError(
            f"Failed to list buckets: {e}",
            details={"cause": str(e)},
        ) from e

    logger.info(
        "buckets_listed",
        count=len(buckets),
        buckets=[b.name for b in buckets],
    )
    return buckets
