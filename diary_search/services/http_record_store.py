"""
Record store backed by a remote document service over HTTP.

The remote service exposes diary records as JSON under ``/records``:
listing by owner (newest first, paginated), listing by date range, single
record reads, batch creation and deletion, replacement updates and counts.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

import httpx

from ..api.models import Record, RecordDraft
from ..utils.http import safe_api_request
from .record_store import (
    FetchFailure,
    MutationFailure,
    OwnershipError,
    RecordNotFoundError,
    RecordStoreClient,
)

# Setup logging
logger = logging.getLogger(__name__)

T = TypeVar("T")

# Undecodable JSON and payloads failing validation (pydantic errors are ValueErrors)
MALFORMED_RESPONSE_ERRORS = (ValueError, KeyError, TypeError)


class HttpRecordStore(RecordStoreClient):
    """
    Record store client for a remote document service.

    Attributes:
        base_url: Root URL of the document service
        max_retries: Attempts per request, 1 disables retries
    """

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 15.0,
        max_retries: int = 1,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: Root URL of the document service
            client: Preconfigured HTTPX client (optional)
            timeout: Request timeout in seconds when creating a client
            max_retries: Attempts per request
        """
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this store created it."""
        if self._owns_client:
            await self.client.aclose()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/records{path}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        return await safe_api_request(
            self.client, method, self._url(path), max_retries=self.max_retries, **kwargs
        )

    async def _read(self, path: str, parse: Callable[[Any], T], **kwargs: Any) -> T:
        try:
            return parse(await self._request("GET", path, **kwargs))
        except httpx.HTTPError as e:
            logger.error(f"Error reading {path or '/'} from record store: {str(e)}")
            raise FetchFailure(f"Record store read failed: {str(e)}") from e
        except MALFORMED_RESPONSE_ERRORS as e:
            logger.error(f"Malformed response reading {path or '/'} from record store: {str(e)}")
            raise FetchFailure(f"Record store returned a malformed response: {str(e)}") from e

    async def _write(
        self,
        method: str,
        path: str,
        parse: Callable[[Any], T],
        record_id: Optional[str] = None,
        **kwargs: Any,
    ) -> T:
        try:
            return parse(await self._request(method, path, **kwargs))
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if status_code == 404 and record_id is not None:
                raise RecordNotFoundError(record_id) from e
            if status_code == 403:
                raise OwnershipError(f"Record store refused {method} {path}") from e
            logger.error(f"Error writing {path or '/'} to record store: {str(e)}")
            raise MutationFailure(f"Record store write failed: {str(e)}") from e
        except httpx.HTTPError as e:
            logger.error(f"Error writing {path or '/'} to record store: {str(e)}")
            raise MutationFailure(f"Record store write failed: {str(e)}") from e
        except MALFORMED_RESPONSE_ERRORS as e:
            logger.error(f"Malformed response writing {path or '/'} to record store: {str(e)}")
            raise MutationFailure(f"Record store returned a malformed response: {str(e)}") from e

    @staticmethod
    def _records(data: Optional[Dict[str, Any]]) -> List[Record]:
        return [Record.model_validate(item) for item in (data or {}).get("records", [])]

    @staticmethod
    def _record(data: Optional[Dict[str, Any]]) -> Optional[Record]:
        return Record.model_validate(data) if data else None

    async def fetch_by_owner(self, owner_id: str, limit: int, offset: int = 0) -> List[Record]:
        params = {
            "owner_id": owner_id,
            "order_by": "occurred_at",
            "direction": "desc",
            "limit": limit,
            "offset": offset,
        }
        return await self._read("", self._records, params=params)

    async def fetch_by_owner_and_date_range(
        self, owner_id: str, start: datetime, end: datetime
    ) -> List[Record]:
        params = {
            "owner_id": owner_id,
            "order_by": "occurred_at",
            "direction": "desc",
            "start": start.isoformat(),
            "end": end.isoformat(),
        }
        return await self._read("", self._records, params=params)

    async def get(self, record_id: str) -> Optional[Record]:
        try:
            return self._record(await self._request("GET", f"/{record_id}"))
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return None
            raise FetchFailure(f"Record store read failed: {str(e)}") from e
        except httpx.HTTPError as e:
            raise FetchFailure(f"Record store read failed: {str(e)}") from e
        except MALFORMED_RESPONSE_ERRORS as e:
            raise FetchFailure(f"Record store returned a malformed response: {str(e)}") from e

    async def create(self, draft: RecordDraft) -> str:
        return await self._write(
            "POST", "", lambda data: str(data["id"]), json=draft.model_dump(mode="json")
        )

    async def create_many(self, drafts: Sequence[RecordDraft]) -> List[str]:
        payload = {"records": [draft.model_dump(mode="json") for draft in drafts]}
        return await self._write(
            "POST", "/batch", lambda data: [str(record_id) for record_id in data["ids"]], json=payload
        )

    async def update(self, record: Record) -> None:
        await self._write(
            "PUT", f"/{record.id}", lambda data: None, record_id=record.id, json=record.model_dump(mode="json")
        )

    async def delete(self, record_id: str) -> Record:
        return await self._write("DELETE", f"/{record_id}", Record.model_validate, record_id=record_id)

    async def delete_many(self, record_ids: Sequence[str]) -> List[Record]:
        return await self._write("POST", "/batch-delete", self._records, json={"ids": list(record_ids)})

    async def count(self, owner_id: str) -> int:
        return await self._read(
            "/count", lambda data: int((data or {}).get("count", 0)), params={"owner_id": owner_id}
        )
