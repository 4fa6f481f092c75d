import stat
from pathlib import Path
from typing import Optional

import aiofiles.os
from fastapi import Request
from fastapi.responses import PlainTextResponse, Response
from starlette.datastructures import MutableHeaders

from pdf_dev_server.app.context import RequestContext, decode_path
from pdf_dev_server.app.errors import TEXT, BadRange, InternalError, MethodNotAllowed, NotFound, ServerError, error_response
from pdf_dev_server.app.server import DevServer
from pdf_dev_server.app.services.ranges import parse_range
from pdf_dev_server.app.services.storage_manager import StorageManager
from pdf_dev_server.logger_config import setup_logger

logger = setup_logger()

UPLOAD_PATH = "/upload"
DELETE_PATH = "/delete"
INDEX_PATH = "/web/pdfs/"
FAVICON_PATH = "/favicon.ico"
FAVICON_RESOURCE = "/test/resources/favicon.ico"
STORAGE_PREFIX = "/storage/"


def redirect(location: str) -> Response:
    return PlainTextResponse("Redirected", status_code=301, headers={"Location": location})


class RequestRouter:
    """Single entry point for every request the server receives."""

    def __init__(self, server: DevServer):
        self.server = server
        self.config = server.config

    async def dispatch(self, request: Request) -> Response:
        ctx = RequestContext.from_request(request, self.config.host, self.config.port)
        hook_headers = MutableHeaders()
        try:
            response = await self._dispatch(request, ctx, hook_headers)
        except ServerError as e:
            response = error_response(e)

        for key, value in hook_headers.items():
            response.headers[key] = value
        return response

    async def _dispatch(self, request: Request, ctx: RequestContext, hook_headers: MutableHeaders) -> Response:
        if ctx.path == UPLOAD_PATH:
            return await self.server.upload_service.handle(request)
        if ctx.path == DELETE_PATH:
            return await self.server.delete_service.handle(request)

        method_hooks = self.server.hooks.get(ctx.method)
        if method_hooks is None:
            raise MethodNotAllowed("Unsupported request method", body=TEXT)
        for hook in method_hooks:
            response = hook.try_handle(ctx, hook_headers)
            if response is not None:
                return response

        if ctx.path == FAVICON_PATH:
            ctx = ctx.with_path(FAVICON_RESOURCE)
        return await self.check_request(ctx)

    async def check_request(self, ctx: RequestContext) -> Response:
        if ctx.path in (INDEX_PATH, INDEX_PATH.rstrip("/")):
            if not ctx.path.endswith("/"):
                return redirect(f"{INDEX_PATH}{ctx.search}")
            return await self.server.directory_index.render()

        if ctx.path.startswith(STORAGE_PREFIX) and isinstance(self.server.storage, StorageManager):
            return await self.serve_blob(ctx)

        file_path = self.resolve(ctx)
        try:
            file_stat = await aiofiles.os.stat(file_path)
        except OSError as e:
            logger.error(f"Error reading properties of {file_path}: {str(e)}")
            raise InternalError()

        if stat.S_ISDIR(file_stat.st_mode):
            if not ctx.path.endswith("/"):
                return redirect(f"{ctx.path}/{ctx.search}")
            return await self.server.directory_index.render()

        return await self.serve_file(ctx, file_path, file_stat.st_size)

    def resolve(self, ctx: RequestContext) -> Path:
        """Map the request path onto an existing file or folder below the root."""
        relative_path = ctx.decoded_path().lstrip("/")
        root = self.server.root
        try:
            resolved = (root / relative_path).resolve(strict=True)
        except (OSError, RuntimeError):
            resolved = None

        # Symlinks may still point outside of the root
        if resolved is None or (resolved != root and root not in resolved.parents):
            if self.config.verbose:
                logger.info(f"{ctx.url}: not found")
            raise NotFound()
        return resolved

    async def serve_blob(self, ctx: RequestContext) -> Response:
        name = decode_path(ctx.path[len(STORAGE_PREFIX):])
        located = await self.server.storage.locate(name)
        if located is None:
            if self.config.verbose:
                logger.info(f"{ctx.url}: not found")
            raise NotFound()
        blob_path, size, content_type = located
        return await self.serve_file(ctx, blob_path, size, content_type)

    async def serve_file(self, ctx: RequestContext, file_path: Path, size: int,
                         content_type: Optional[str] = None) -> Response:
        range_header = ctx.header("range")
        if range_header and not self.config.disable_range_requests:
            try:
                byte_range = parse_range(range_header, size)
            except BadRange:
                if self.config.verbose:
                    logger.info(f"{ctx.url}: bad range: {range_header}")
                raise

            if self.config.verbose:
                logger.info(f"{ctx.url}: range {byte_range.start}-{byte_range.end_exclusive - 1}")
            byte_range.validate(size)
            return await self.server.file_server.serve(ctx, file_path, size, byte_range, content_type)

        if self.config.verbose:
            logger.info(ctx.url)
        return await self.server.file_server.serve(ctx, file_path, size, content_type=content_type)
