import posixpath
from typing import Dict

MIME_TYPES: Dict[str, str] = {
    ".css": "text/css",
    ".html": "text/html",
    ".js": "application/javascript",
    ".mjs": "application/javascript",
    ".json": "application/json",
    ".svg": "image/svg+xml",
    ".pdf": "application/pdf",
    ".xhtml": "application/xhtml+xml",
    ".gif": "image/gif",
    ".ico": "image/x-icon",
    ".png": "image/png",
    ".log": "text/plain",
    ".bcmap": "application/octet-stream",
    ".ftl": "text/plain",
    ".wasm": "application/wasm",
}
DEFAULT_MIME_TYPE = "application/octet-stream"


def get_content_type(path) -> str:
    """Map the extension of the last path segment to a content type."""
    name = posixpath.basename(str(path).replace("\\", "/"))
    _, extension = posixpath.splitext(name)
    return MIME_TYPES.get(extension.lower(), DEFAULT_MIME_TYPE)
