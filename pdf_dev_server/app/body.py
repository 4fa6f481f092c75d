from fastapi import Request

from pdf_dev_server.app.errors import JSON, BadRequest, PayloadTooLarge


async def read_body(request: Request, max_size: int) -> bytes:
    """Buffer the whole request body, refusing anything above max_size bytes."""
    content_length = request.headers.get("content-length")
    if content_length is not None:
        try:
            declared_size = int(content_length)
        except ValueError:
            raise BadRequest("Invalid Content-Length header", body=JSON)
        if declared_size > max_size:
            raise PayloadTooLarge("Request body too large")

    # Chunked bodies have no declared size, so count as we go
    chunks = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > max_size:
            raise PayloadTooLarge("Request body too large")
        chunks.append(chunk)
    return b"".join(chunks)


async def replay(body: bytes):
    """Feed an already buffered body to one of Starlette's form parsers."""
    yield body
