from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.formparsers import FormParser

from pdf_dev_server import config
from pdf_dev_server.app.body import read_body, replay
from pdf_dev_server.app.errors import JSON, BadRequest, MethodNotAllowed, UpstreamFailure
from pdf_dev_server.app.services.storage_backend import StorageBackend, StorageError
from pdf_dev_server.logger_config import setup_logger

logger = setup_logger()


class DeleteService:
    def __init__(self, storage: StorageBackend, max_body_size: int = config.MAX_BODY_SIZE):
        self.storage = storage
        self.max_body_size = max_body_size

    async def handle(self, request: Request) -> JSONResponse:
        """Remove the object named by the form-encoded `filename` field."""
        if request.method != "POST":
            raise MethodNotAllowed("Method not allowed", body=JSON)

        body = await read_body(request, self.max_body_size)
        # Decoded as a urlencoded form whatever Content-Type says
        form = await FormParser(request.headers, replay(body)).parse()
        filename = form.get("filename")
        if not filename:
            raise BadRequest("No filename provided", body=JSON)

        logger.info(f"Receiving delete request for {filename}")
        try:
            await self.storage.remove([filename])
        except StorageError as e:
            logger.error(f"Delete error for {filename}: {str(e)}", exc_info=True)
            raise UpstreamFailure(f"Delete failed: {str(e)}")

        return JSONResponse({"success": True})
