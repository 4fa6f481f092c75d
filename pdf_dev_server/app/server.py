from pathlib import Path
from typing import Dict, List, Optional

from pdf_dev_server import config
from pdf_dev_server.app.services.delete_service import DeleteService
from pdf_dev_server.app.services.directory_index import DirectoryIndexRenderer
from pdf_dev_server.app.services.file_server import StaticFileServer
from pdf_dev_server.app.services.hooks import MethodHook, default_hooks
from pdf_dev_server.app.services.storage_backend import StorageBackend
from pdf_dev_server.app.services.storage_manager import StorageManager
from pdf_dev_server.app.services.supabase_storage import SupabaseStorage
from pdf_dev_server.app.services.upload_service import UploadService


def create_storage(server_config: config.ServerConfig) -> StorageBackend:
    """Pick Supabase when credentials are configured, the local disk otherwise."""
    if server_config.use_supabase:
        return SupabaseStorage(server_config.supabase_url, server_config.supabase_key, server_config.bucket)
    return StorageManager(
        Path(server_config.data_dir),
        Path(server_config.temp_dir),
        f"http://{server_config.host}:{server_config.port}",
    )


class DevServer:
    """Per-process server state handed to every request.

    Built once by the application factory; nothing here changes while
    requests are being served.
    """

    def __init__(self, server_config: config.ServerConfig, storage: Optional[StorageBackend] = None,
                 hooks: Optional[Dict[str, List[MethodHook]]] = None):
        self.config = server_config
        self.root = Path(server_config.root).resolve()
        self.storage = storage if storage is not None else create_storage(server_config)
        self.hooks = hooks if hooks is not None else default_hooks()

        self.file_server = StaticFileServer(server_config)
        self.directory_index = DirectoryIndexRenderer(self.storage)
        self.upload_service = UploadService(self.storage, server_config.max_body_size)
        self.delete_service = DeleteService(self.storage, server_config.max_body_size)

    async def start(self):
        await self.storage.initialize()

    async def stop(self):
        await self.storage.close()
