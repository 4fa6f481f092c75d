from typing import Any, Dict, List
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from pdf_dev_server import config
from pdf_dev_server.app.models.entry import RemoteEntry
from pdf_dev_server.app.services.storage_backend import StorageBackend, StorageError
from pdf_dev_server.logger_config import setup_logger

logger = setup_logger()


class SupabaseStorage(StorageBackend):
    """Storage backend talking to the Supabase Storage REST API."""

    def __init__(self, url: str, key: str, bucket: str = config.STORAGE_BUCKET,
                 timeout: float = config.STORAGE_TIMEOUT, transport: httpx.AsyncBaseTransport = None):
        self.url = url.rstrip("/")
        self.bucket = bucket
        self._client = httpx.AsyncClient(
            base_url=f"{self.url}/storage/v1",
            headers={"apikey": key, "Authorization": f"Bearer {key}"},
            timeout=timeout,
            transport=transport,
        )

    async def close(self):
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.error(f"Storage request error for {method} {path}: {str(e)}")
            raise StorageError(f"Error contacting storage: {str(e)}")

        if response.is_error:
            message = self._error_message(response)
            logger.error(f"Storage returned {response.status_code} for {method} {path}: {message}")
            raise StorageError(message)
        return response

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Pull the human readable message out of a Supabase error payload."""
        try:
            payload = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(payload, dict):
            return str(payload.get("message") or payload.get("error") or payload)
        return str(payload)

    async def _list(self, body: Dict[str, Any]) -> List[RemoteEntry]:
        response = await self._request("POST", f"/object/list/{self.bucket}", json=body)
        try:
            return [RemoteEntry.model_validate(item) for item in response.json()]
        except (ValueError, TypeError, ValidationError) as e:
            raise StorageError(f"Unexpected listing response: {str(e)}")

    async def list(self, prefix: str = "", limit: int = 100, offset: int = 0,
                   sort_by: str = "name", order: str = "asc") -> List[RemoteEntry]:
        return await self._list({
            "prefix": prefix,
            "limit": limit,
            "offset": offset,
            "sortBy": {"column": sort_by, "order": order},
        })

    async def find_by_name(self, name: str) -> List[RemoteEntry]:
        # search is a substring match on the server, keep exact names only
        entries = await self._list({
            "prefix": "",
            "limit": 100,
            "offset": 0,
            "search": name,
            "sortBy": {"column": "name", "order": "asc"},
        })
        return [entry for entry in entries if entry.name == name]

    def get_public_url(self, name: str) -> str:
        return f"{self.url}/storage/v1/object/public/{self.bucket}/{quote(name)}"

    async def upload(self, name: str, data: bytes, content_type: str, overwrite: bool = False) -> None:
        await self._request(
            "POST",
            f"/object/{self.bucket}/{quote(name)}",
            content=data,
            headers={
                "Content-Type": content_type,
                "x-upsert": "true" if overwrite else "false",
            },
        )
        logger.info(f"Uploaded {name} ({len(data)} bytes) to bucket {self.bucket}")

    async def remove(self, names: List[str]) -> None:
        await self._request("DELETE", f"/object/{self.bucket}", json={"prefixes": names})
        logger.info(f"Removed {', '.join(names)} from bucket {self.bucket}")
