# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Supabase Storage client over the Storage REST API.

Uses a single httpx.AsyncClient per run. Listing pages through
/object/list/{bucket} by offset until a short page comes back, so
folders with more than one page of entries are listed completely.
"""

from typing import Any, Dict, List
from urllib.parse import quote

import httpx
import structlog

from harakka_backup.exceptions import StorageOperationError
from harakka_backup.storage.base import BucketInfo, StorageEntry

logger = structlog.get_logger()

DEFAULT_PAGE_SIZE = 1000


def _quote_key(key: str) -> str:
    return quote(key, safe="/")


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)


class SupabaseStorageClient:
    """Async client for the Supabase Storage API (storage/v1)."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._page_size = page_size
        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/storage/v1",
            headers={
                "Authorization": f"Bearer {service_key}",
                "apikey": service_key,
            },
            timeout=timeout,
            transport=transport,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise StorageOperationError(
                f"Storage request failed: {e}",
                details={"method": method, "path": path},
            ) from e

        if response.is_error:
            raise StorageOperationError(
                f"Storage request failed: {_error_message(response)}",
                details={
                    "method": method,
                    "path": path,
                    "status_code": response.status_code,
                },
            )
        return response

    async def list_buckets(self) -> List[BucketInfo]:
        response = await self._request("GET", "/bucket")
        return [BucketInfo.from_dict(item) for item in response.json()]

    async def get_bucket(self, name: str) -> BucketInfo | None:
        try:
            response = await self._request("GET", f"/bucket/{quote(name, safe='')}")
        except StorageOperationError as e:
            # Older storage versions answer 400 with a "not found" body
            status = e.details.get("status_code")
            if status == 404 or (status == 400 and "not found" in e.message.lower()):
                return None
            raise
        return BucketInfo.from_dict(response.json())

    @staticmethod
    def _bucket_options(bucket: BucketInfo) -> Dict[str, Any]:
        return {
            "id": bucket.name,
            "name": bucket.name,
            "public": bucket.public,
            "file_size_limit": bucket.file_size_limit,
            "allowed_mime_types": bucket.allowed_mime_types,
        }

    async def create_bucket(self, bucket: BucketInfo) -> None:
        await self._request("POST", "/bucket", json=self._bucket_options(bucket))

    async def update_bucket(self, bucket: BucketInfo) -> None:
        await self._request(
            "PUT",
            f"/bucket/{quote(bucket.name, safe='')}",
            json=self._bucket_options(bucket),
        )

    async def list_folder(self, bucket: str, prefix: str = "") -> List[StorageEntry]:
        entries: List[StorageEntry] = []
        offset = 0

        while True:
            response = await self._request(
                "POST",
                f"/object/list/{quote(bucket, safe='')}",
                json={
                    "prefix": prefix,
                    "limit": self._page_size,
                    "offset": offset,
                    "sortBy": {"column": "name", "order": "asc"},
                },
            )
            page = response.json()
            for item in page:
                entries.append(
                    StorageEntry(
                        name=item["name"],
                        id=item.get("id"),
                        metadata=item.get("metadata") or {},
                    )
                )

            if len(page) < self._page_size:
                break
            offset += len(page)

        return entries

    async def download(self, bucket: str, key: str) -> bytes:
        response = await self._request(
            "GET", f"/object/{quote(bucket, safe='')}/{_quote_key(key)}"
        )
        return response.content

    async def upload(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        upsert: bool = True,
    ) -> None:
        await self._request(
            "POST",
            f"/object/{quote(bucket, safe='')}/{_quote_key(key)}",
            content=data,
            headers={
                "Content-Type": content_type,
                "x-upsert": "true" if upsert else "false",
                "cache-control": "max-age=3600",
            },
        )

    async def close(self) -> None:
        await self._client.aclose()
