import re
from dataclasses import dataclass, replace
from typing import Optional, Tuple
from urllib.parse import parse_qsl, quote, unquote

from fastapi import Request
from starlette.datastructures import Headers

from pdf_dev_server.app.errors import BadRequest

SINGLE_DOT_SEGMENTS = (".", "%2e")
DOUBLE_DOT_SEGMENTS = ("..", ".%2e", "%2e.", "%2e%2e")

INVALID_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def normalize_path(raw_path: str) -> str:
    """Collapse dot-segments of a percent-encoded request path.

    The result always starts with "/" and never climbs above it, so
    "/../../etc/passwd" becomes "/etc/passwd".
    """
    raw_path = raw_path.replace("\\", "/")
    if not raw_path.startswith("/"):
        raw_path = "/" + raw_path

    segments = raw_path.split("/")[1:]
    output = []
    for index, segment in enumerate(segments):
        is_last = index == len(segments) - 1
        lowered = segment.lower()
        if lowered in DOUBLE_DOT_SEGMENTS:
            if output:
                output.pop()
            if is_last:
                output.append("")
        elif lowered in SINGLE_DOT_SEGMENTS:
            if is_last:
                output.append("")
        else:
            output.append(segment)
    return "/" + "/".join(output)


def decode_path(path: str) -> str:
    """Percent-decode a normalized path, rejecting malformed escapes."""
    if INVALID_ESCAPE.search(path):
        raise BadRequest("Bad request")
    try:
        decoded = unquote(path, errors="strict")
    except UnicodeDecodeError:
        raise BadRequest("Bad request")
    if "\x00" in decoded:
        raise BadRequest("Bad request")
    return decoded


@dataclass(frozen=True)
class RequestContext:
    """Read-only view of one inbound request."""
    method: str
    path: str
    query_string: str
    query: Tuple[Tuple[str, str], ...]
    headers: Headers
    host: str
    port: int

    @classmethod
    def from_request(cls, request: Request, host: str, port: int) -> 'RequestContext':
        raw_path = request.scope.get("raw_path")
        if raw_path:
            path = raw_path.split(b"?", 1)[0].decode("latin-1")
        else:
            path = quote(request.url.path)
        query_string = request.url.query
        return cls(
            method=request.method.upper(),
            path=normalize_path(path),
            query_string=query_string,
            query=tuple(parse_qsl(query_string, keep_blank_values=True)),
            headers=Headers(raw=request.headers.raw),
            host=host,
            port=port,
        )

    @property
    def search(self) -> str:
        return f"?{self.query_string}" if self.query_string else ""

    @property
    def url(self) -> str:
        """Absolute URL of the request against the configured host and port."""
        return f"http://{self.host}:{self.port}{self.path}{self.search}"

    def query_param(self, name: str) -> Optional[str]:
        for key, value in self.query:
            if key == name:
                return value
        return None

    def has_query_param(self, name: str) -> bool:
        return any(key == name for key, _ in self.query)

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name)

    def with_path(self, path: str) -> 'RequestContext':
        return replace(self, path=path)

    def decoded_path(self) -> str:
        return decode_path(self.path)
