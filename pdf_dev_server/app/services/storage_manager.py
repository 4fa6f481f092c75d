import os
import json
import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.parse import quote

import aiofiles
import aiofiles.os

from pdf_dev_server.app.models.entry import RemoteEntry
from pdf_dev_server.app.services.storage_backend import StorageBackend, StorageError
from pdf_dev_server.logger_config import setup_logger

logger = setup_logger()


class StorageManager(StorageBackend):
    """Storage backend keeping blobs on the local disk.

    Used when no remote storage is configured. Blobs are served back by the
    server itself under /storage/<name>.
    """

    def __init__(self, data_dir: Path, temp_dir: Path, public_base_url: str):
        self.data_dir = Path(data_dir)
        self.temp_dir = Path(temp_dir)
        self.public_base_url = public_base_url.rstrip("/")

    async def initialize(self):
        """Create the storage directories and clear leftovers from earlier runs."""
        logger.info("Initializing local storage...")

        self.data_dir.mkdir(exist_ok=True, parents=True)
        self.temp_dir.mkdir(exist_ok=True, parents=True)
        logger.debug(f"Storage directories created/verified: {self.data_dir}, {self.temp_dir}")

        files_removed = 0
        for file in self.temp_dir.glob("*"):
            if file.is_file():
                await aiofiles.os.unlink(file)
                files_removed += 1
        logger.info(f"Cleaned temporary directory, removed {files_removed} files")

    def get_blob_path(self, name: str, create: bool = False) -> Tuple[Path, Path]:
        """Get the paths where a blob and its metadata are stored."""
        # Names are user supplied, so the file name is a hash of it
        digest = hashlib.md5(name.encode()).hexdigest()
        directory = self.data_dir / digest[:2]
        if create:
            directory.mkdir(exist_ok=True, parents=True)

        blob_path = directory / f"{digest}.blob"
        metadata_path = directory / f"{digest}.meta"
        return blob_path, metadata_path

    async def get_metadata(self, name: str) -> Optional[dict]:
        _, metadata_path = self.get_blob_path(name)
        return await self._read_metadata(metadata_path)

    async def _read_metadata(self, metadata_path: Path) -> Optional[dict]:
        try:
            async with aiofiles.open(metadata_path, 'r') as f:
                return json.loads(await f.read())
        except (FileNotFoundError, json.JSONDecodeError):
            return None

    async def _all_entries(self) -> List[RemoteEntry]:
        entries = []
        for folder_path, _, files in os.walk(self.data_dir):
            for file in files:
                if not file.endswith(".meta"):
                    continue
                metadata = await self._read_metadata(Path(folder_path) / file)
                if metadata and metadata.get("name"):
                    entries.append(RemoteEntry.model_validate(metadata))
        return entries

    async def list(self, prefix: str = "", limit: int = 100, offset: int = 0,
                   sort_by: str = "name", order: str = "asc") -> List[RemoteEntry]:
        entries = [entry for entry in await self._all_entries() if entry.name.startswith(prefix)]
        entries.sort(key=lambda entry: getattr(entry, sort_by, None) or "", reverse=(order == "desc"))
        return entries[offset:offset + limit]

    async def find_by_name(self, name: str) -> List[RemoteEntry]:
        metadata = await self.get_metadata(name)
        return [RemoteEntry.model_validate(metadata)] if metadata else []

    def get_public_url(self, name: str) -> str:
        return f"{self.public_base_url}/storage/{quote(name)}"

    async def upload(self, name: str, data: bytes, content_type: str, overwrite: bool = False) -> None:
        blob_path, metadata_path = self.get_blob_path(name, create=True)
        if not overwrite and await aiofiles.os.path.exists(metadata_path):
            raise StorageError("The resource already exists")

        digest = blob_path.stem
        temp_blob_path = self.temp_dir / f"{digest}_temp.blob"
        temp_metadata_path = self.temp_dir / f"{digest}_temp.meta"
        metadata = {
            "name": name,
            "content_type": content_type,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }

        try:
            async with aiofiles.open(temp_blob_path, 'wb') as f:
                await f.write(data)
            async with aiofiles.open(temp_metadata_path, 'w') as f:
                await f.write(json.dumps(metadata))

            # Blob first, so a visible .meta always has its content
            await aiofiles.os.rename(str(temp_blob_path), str(blob_path))
            await aiofiles.os.rename(str(temp_metadata_path), str(metadata_path))
        except OSError as e:
            logger.error(f"Error storing blob {name}: {str(e)}", exc_info=True)
            for temp_path in (temp_blob_path, temp_metadata_path):
                if await aiofiles.os.path.exists(temp_path):
                    await aiofiles.os.unlink(temp_path)
            raise StorageError(f"Could not store {name}: {str(e)}")

        logger.info(f"Stored blob {name} ({len(data)} bytes)")

    async def remove(self, names: List[str]) -> None:
        for name in names:
            blob_path, metadata_path = self.get_blob_path(name)
            try:
                # Metadata first, so the entry disappears from listings before its content
                for path in (metadata_path, blob_path):
                    if await aiofiles.os.path.exists(path):
                        await aiofiles.os.unlink(path)
            except OSError as e:
                logger.error(f"Error deleting blob {name}: {str(e)}", exc_info=True)
                raise StorageError(f"Could not delete {name}: {str(e)}")
            logger.info(f"Deleted blob {name}")

    async def locate(self, name: str) -> Optional[Tuple[Path, int, str]]:
        """Return (blob path, size, content type) for a stored name, or None."""
        metadata = await self.get_metadata(name)
        if not metadata:
            return None
        blob_path, _ = self.get_blob_path(name)
        try:
            stat = await aiofiles.os.stat(blob_path)
        except FileNotFoundError:
            return None
        return blob_path, stat.st_size, metadata.get("content_type", "application/octet-stream")
