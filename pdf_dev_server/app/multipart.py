from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from python_multipart.exceptions import FormParserError
from python_multipart.multipart import MultipartParser, parse_options_header

from pdf_dev_server.app.errors import JSON, BadRequest

MULTIPART_FORM_DATA = b"multipart/form-data"


def _decode_option(value: bytes) -> str:
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError:
        return value.decode("latin-1")


@dataclass
class MultipartPart:
    """One part of a multipart body, payload kept exactly as sent."""
    headers: List[Tuple[bytes, bytes]] = field(default_factory=list)
    data: bytearray = field(default_factory=bytearray)

    def header(self, name: bytes) -> Optional[bytes]:
        for header_name, value in self.headers:
            if header_name == name:
                return value
        return None

    def _disposition_option(self, option: bytes) -> Optional[str]:
        _, options = parse_options_header(self.header(b"content-disposition"))
        value = options.get(option)
        return None if value is None else _decode_option(value)

    @property
    def name(self) -> Optional[str]:
        return self._disposition_option(b"name")

    @property
    def filename(self) -> Optional[str]:
        return self._disposition_option(b"filename")

    @property
    def content_type(self) -> Optional[str]:
        value = self.header(b"content-type")
        if value is None:
            return None
        content_type, _ = parse_options_header(value)
        return content_type.decode("latin-1").lower()


class MultipartCollector:
    """Callbacks for python-multipart's MultipartParser, collecting every part in memory."""

    def __init__(self):
        self.parts: List[MultipartPart] = []
        self._part = MultipartPart()
        self._header_field = b""
        self._header_value = b""

    def on_part_begin(self) -> None:
        self._part = MultipartPart()

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        self._part.data.extend(data[start:end])

    def on_part_end(self) -> None:
        self.parts.append(self._part)

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        self._part.headers.append((self._header_field.lower(), self._header_value))
        self._header_field = b""
        self._header_value = b""

    def callbacks(self) -> dict:
        return {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
        }


def parse_multipart(content_type: Optional[str], body: bytes) -> List[MultipartPart]:
    """Split a buffered multipart/form-data body into its parts."""
    media_type, params = parse_options_header(content_type)
    boundary = params.get(b"boundary")
    if media_type.lower() != MULTIPART_FORM_DATA or not boundary:
        raise BadRequest("Invalid multipart body: missing boundary", body=JSON)

    collector = MultipartCollector()
    try:
        parser = MultipartParser(boundary, collector.callbacks())
        parser.write(body)
        parser.finalize()
    except FormParserError as e:
        raise BadRequest(f"Invalid multipart body: {str(e)}", body=JSON)
    return collector.parts
