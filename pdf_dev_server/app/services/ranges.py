import re
from dataclasses import dataclass
from typing import Optional

from pdf_dev_server.app.errors import BadRange, RangeNotSatisfiable

# Only the first range is honoured, anything after it is ignored
RANGE_PATTERN = re.compile(r"^bytes=(\d+)-(\d+)?")


@dataclass(frozen=True)
class ByteRange:
    start: int
    end_exclusive: int

    @property
    def length(self) -> int:
        return self.end_exclusive - self.start

    def validate(self, total_size: int) -> 'ByteRange':
        """Raise RangeNotSatisfiable unless 0 <= start <= end_exclusive <= total_size."""
        if self.end_exclusive > total_size or self.start > self.end_exclusive:
            raise RangeNotSatisfiable()
        return self

    def content_range(self, total_size: int) -> str:
        return f"bytes {self.start}-{self.end_exclusive - 1}/{total_size}"


def parse_range(range_header: Optional[str], total_size: int) -> Optional[ByteRange]:
    """Parse a Range header into a ByteRange.

    Returns None when the header is absent and raises BadRange when it does
    not look like "bytes=<start>-<end>?". The result is not validated against
    total_size; call ByteRange.validate() for that.
    """
    if range_header is None:
        return None

    match = RANGE_PATTERN.match(range_header)
    if not match:
        raise BadRange()

    try:
        start = int(match.group(1))
        end = match.group(2)
        end_exclusive = total_size if end is None else int(end) + 1
    except ValueError:
        # Digit runs past the int conversion limit are far beyond any file size
        raise RangeNotSatisfiable()
    return ByteRange(start, end_exclusive)
