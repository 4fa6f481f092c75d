from typing import Iterable, Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse

from pdf_dev_server import config
from pdf_dev_server.app.body import read_body
from pdf_dev_server.app.errors import JSON, BadRequest, Conflict, MethodNotAllowed, UpstreamFailure
from pdf_dev_server.app.multipart import MultipartPart, parse_multipart
from pdf_dev_server.app.services.storage_backend import StorageBackend, StorageError
from pdf_dev_server.logger_config import setup_logger

logger = setup_logger()

PDF_CONTENT_TYPE = "application/pdf"
PDF_FIELD_NAME = "pdf"
DEFAULT_FILENAME = "uploaded.pdf"


def select_pdf_part(parts: Iterable[MultipartPart]) -> Optional[MultipartPart]:
    """Return the first part declared as a PDF or sent under the `pdf` field."""
    for part in parts:
        if part.content_type == PDF_CONTENT_TYPE or part.name == PDF_FIELD_NAME:
            return part
    return None


def read_part(part: MultipartPart) -> Tuple[str, bytes]:
    """Return (filename, payload) of a selected part."""
    return part.filename or DEFAULT_FILENAME, bytes(part.data)


class UploadService:
    def __init__(self, storage: StorageBackend, max_body_size: int = config.MAX_BODY_SIZE):
        self.storage = storage
        self.max_body_size = max_body_size

    async def handle(self, request: Request) -> JSONResponse:
        """Store the PDF carried by a multipart upload in the storage backend."""
        if request.method != "POST":
            raise MethodNotAllowed()

        body = await read_body(request, self.max_body_size)
        logger.debug(f"Receiving upload request, {len(body)} bytes")

        part = select_pdf_part(parse_multipart(request.headers.get("content-type"), body))
        if part is None:
            raise BadRequest("No PDF file found in upload", body=JSON)
        filename, payload = read_part(part)

        try:
            # Not atomic: a concurrent upload of the same name can slip in between
            existing = await self.storage.find_by_name(filename)
            if existing:
                raise Conflict("A file with the same name already exists.")

            await self.storage.upload(filename, payload, PDF_CONTENT_TYPE, overwrite=True)
        except StorageError as e:
            logger.error(f"Upload error for {filename}: {str(e)}", exc_info=True)
            raise UpstreamFailure(f"Upload failed: {str(e)}")

        logger.info(f"Uploaded {filename} ({len(payload)} bytes)")
        return JSONResponse({"success": True})
