import time
from email.utils import formatdate
from pathlib import Path
from typing import Optional

import aiofiles
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from pdf_dev_server import config
from pdf_dev_server.app.context import RequestContext
from pdf_dev_server.app.errors import InternalError
from pdf_dev_server.app.services.mime import get_content_type
from pdf_dev_server.app.services.ranges import ByteRange
from pdf_dev_server.logger_config import setup_logger

logger = setup_logger()

BREAK_RANGES_PARAM = "test-network-break-ranges"
INVALID_CONTENT_RANGE = "bytes abc-def/qwerty"


class StaticFileServer:
    def __init__(self, server_config: config.ServerConfig):
        self.config = server_config

    async def serve(
        self,
        ctx: RequestContext,
        file_path: Path,
        total_size: int,
        byte_range: Optional[ByteRange] = None,
        content_type: Optional[str] = None,
    ) -> StreamingResponse:
        """Stream a whole file (200) or a validated byte range of it (206)."""
        # Open before any header goes out so a failure can still become a 500
        try:
            file = await aiofiles.open(file_path, 'rb')
        except OSError as e:
            logger.error(f"Error opening {file_path}: {str(e)}")
            raise InternalError()

        headers = {"Content-Type": content_type or get_content_type(file_path)}

        if byte_range is None:
            if not self.config.disable_range_requests:
                headers["Accept-Ranges"] = "bytes"
            headers["Content-Length"] = str(total_size)
            if self.config.cache_expiration_time > 0:
                expires = time.time() + self.config.cache_expiration_time
                headers["Expires"] = formatdate(expires, usegmt=True)
            start, length, status_code = 0, total_size, 200
        else:
            headers["Accept-Ranges"] = "bytes"
            headers["Content-Length"] = str(byte_range.length)
            headers["Content-Range"] = byte_range.content_range(total_size)

            # Deliberately broken responses for client robustness tests
            broken = ctx.query_param(BREAK_RANGES_PARAM)
            if broken == "missing":
                del headers["Content-Range"]
            elif broken == "invalid":
                headers["Content-Range"] = INVALID_CONTENT_RANGE
            start, length, status_code = byte_range.start, byte_range.length, 206

        # The background close also covers streams that never start; closing twice is a no-op
        return StreamingResponse(
            self._iter_file(file, file_path, start, length),
            status_code=status_code,
            headers=headers,
            background=BackgroundTask(file.close),
        )

    async def _iter_file(self, file, file_path: Path, start: int, length: int):
        try:
            await file.seek(start)
            remaining = length
            while remaining > 0:
                chunk = await file.read(min(config.STREAM_CHUNK_SIZE, remaining))
                if not chunk:
                    break
                remaining -= len(chunk)
                yield chunk
        except OSError as e:
            # Headers are already sent, the only option left is to drop the stream
            logger.error(f"Error streaming {file_path}: {str(e)}", exc_info=True)
            raise
        finally:
            await file.close()
