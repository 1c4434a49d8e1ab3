# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
S3-compatible storage client on aiobotocore.

S3 has no folder entries of its own. Listing with Delimiter="/" returns
CommonPrefixes for shared key prefixes; those are surfaced as folder
entries (no id) so the recursive lister treats both backends alike.
Bucket visibility, size limits and MIME allow-lists are Supabase
concepts and are not applied here.
"""

from contextlib import AsyncExitStack
from typing import Any, List

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from harakka_backup.exceptions import StorageOperationError
from harakka_backup.storage.base import BucketInfo, StorageEntry

logger = structlog.get_logger()

_NOT_FOUND_CODES = {"404", "NoSuchBucket", "NotFound"}


def _wrap(action: str, error: Exception, **details: Any) -> StorageOperationError:
    if isinstance(error, ClientError):
        details["error_code"] = error.response.get("Error", {}).get("Code")
    return StorageOperationError(f"S3 {action} failed: {error}", details=details)


class S3StorageClient:
    """Adapter from an aiobotocore S3 client to the StorageClient interface."""

    def __init__(
        self,
        s3_client: Any,
        *,
        region: str = "us-east-1",
        page_size: int = 1000,
        exit_stack: AsyncExitStack | None = None,
    ) -> None:
        self._s3 = s3_client
        self._region = region
        self._page_size = page_size
        self._exit_stack = exit_stack

    async def list_buckets(self) -> List[BucketInfo]:
        try:
            response = await self._s3.list_buckets()
        except (ClientError, BotoCoreError) as e:
            raise _wrap("list_buckets", e) from e

        buckets: List[BucketInfo] = []
        for item in response.get("Buckets", []):
            metadata = {}
            if item.get("CreationDate") is not None:
                metadata["created_at"] = item["CreationDate"].isoformat()
            buckets.append(BucketInfo(name=item["Name"], id=item["Name"], metadata=metadata))
        return buckets

    async def get_bucket(self, name: str) -> BucketInfo | None:
        try:
            await self._s3.head_bucket(Bucket=name)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _NOT_FOUND_CODES:
                return None
            raise _wrap("head_bucket", e, bucket=name) from e
        except BotoCoreError as e:
            raise _wrap("head_bucket", e, bucket=name) from e
        return BucketInfo(name=name, id=name)

    async def create_bucket(self, bucket: BucketInfo) -> None:
        params: dict = {"Bucket": bucket.name}
        if self._region != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": self._region}
        try:
            await self._s3.create_bucket(**params)
        except (ClientError, BotoCoreError) as e:
            raise _wrap("create_bucket", e, bucket=bucket.name) from e

    async def update_bucket(self, bucket: BucketInfo) -> None:
        logger.debug(
            "bucket_metadata_not_applied",
            bucket=bucket.name,
            public=bucket.public,
            file_size_limit=bucket.file_size_limit,
        )

    async def list_folder(self, bucket: str, prefix: str = "") -> List[StorageEntry]:
        s3_prefix = f"{prefix}/" if prefix else ""
        entries: List[StorageEntry] = []
        paginator = self._s3.get_paginator("list_objects_v2")

        try:
            async for page in paginator.paginate(
                Bucket=bucket,
                Prefix=s3_prefix,
                Delimiter="/",
                MaxKeys=self._page_size,
            ):
                for common in page.get("CommonPrefixes", []):
                    name = common["Prefix"][len(s3_prefix):].rstrip("/")
                    if name:
                        entries.append(StorageEntry(name=name, id=None))

                for obj in page.get("Contents", []):
                    name = obj["Key"][len(s3_prefix):]
                    # Zero-byte "directory" objects created by some consoles
                    if not name:
                        continue
                    entries.append(
                        StorageEntry(
                            name=name,
                            id=obj.get("ETag", "").strip('"') or obj["Key"],
                            metadata={"size": obj.get("Size")},
                        )
                    )
        except (ClientError, BotoCoreError) as e:
            raise _wrap("list_objects_v2", e, bucket=bucket, prefix=prefix) from e

        entries.sort(key=lambda entry: entry.name)
        return entries

    async def download(self, bucket: str, key: str) -> bytes:
        try:
            response = await self._s3.get_object(Bucket=bucket, Key=key)
            async with response["Body"] as stream:
                return await stream.read()
        except (ClientError, BotoCoreError) as e:
            raise _wrap("get_object", e, bucket=bucket, key=key) from e

    async def upload(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        upsert: bool = True,
    ) -> None:
        try:
            if not upsert:
                try:
                    await self._s3.head_object(Bucket=bucket, Key=key)
                except ClientError as e:
                    if e.response.get("Error", {}).get("Code") not in _NOT_FOUND_CODES:
                        raise
                else:
                    raise StorageOperationError(
                        "S3 put_object refused: object already exists",
                        details={"bucket": bucket, "key": key},
                    )

            await self._s3.put_object(
                Bucket=bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            raise _wrap("put_object", e, bucket=bucket, key=key) from e

    async def close(self) -> None:
        if self._exit_stack is not None:
            await self._exit_stack.aclose()
            self._exit_stack = None


async def create_s3_storage_client(
    endpoint_url: str | None,
    *,
    region: str = "us-east-1",
    page_size: int = 1000,
) -> S3StorageClient:
    """
    Open an aiobotocore S3 client and wrap it.

    Credentials come from the usual botocore chain (environment,
    shared config, instance role). close() releases the client.
    """
    from aiobotocore.session import get_session

    session = get_session()
    stack = AsyncExitStack()
    s3_client = await stack.enter_async_context(
        session.create_client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url,
        )
    )
    return S3StorageClient(
        s3_client,
        region=region,
        page_size=page_size,
        exit_stack=stack,
    )
