"""
=============================================================================
MULTIPART/FORM-DATA PARSING
=============================================================================

    --boundary\r\n
    Content-Disposition: form-data; name="title"\r\n
    \r\n
    Holiday\r\n
    --boundary\r\n
    Content-Disposition: form-data; name="avatar"; filename="me.png"\r\n
    Content-Type: image/png\r\n
    \r\n
    <bytes>\r\n
    --boundary--\r\n

Each section becomes a Part. A part with a filename is a file; one
without is an ordinary form field. The byte-level state machine is
python-multipart's MultipartParser; this module only collects its
callbacks into Part objects.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from python_multipart import MultipartParser
from python_multipart.multipart import parse_options_header


@dataclass
class Part:
    """One section of a multipart body, held in memory."""

    name: str
    filename: Optional[str] = None
    content_type: Optional[str] = None
    data: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def is_file(self) -> bool:
        return self.filename is not None

    @property
    def size(self) -> int:
        return len(self.data)

    def text(self, charset: str = "utf-8") -> str:
        return self.data.decode(charset, errors="replace")


def parse_multipart(body: bytes, boundary: Union[str, bytes]) -> List[Part]:
    """
    Split a multipart body into Parts, in body order.

    Parts without a Content-Disposition name are dropped.

    Raises:
        ValueError: If the body is not valid multipart data
            (python-multipart's MultipartParseError is a ValueError).
    """
    parts: List[Part] = []
    state = {
        "field": bytearray(),
        "value": bytearray(),
        "headers": {},
        "data": bytearray(),
    }

    def on_part_begin():
        state["headers"] = {}
        state["data"] = bytearray()

    def on_header_field(data: bytes, start: int, end: int):
        state["field"].extend(data[start:end])

    def on_header_value(data: bytes, start: int, end: int):
        state["value"].extend(data[start:end])

    def on_header_end():
        if state["field"]:
            name = state["field"].decode("utf-8", errors="replace").lower()
            state["headers"][name] = state["value"].decode("utf-8", errors="replace")
        state["field"] = bytearray()
        state["value"] = bytearray()

    def on_part_data(data: bytes, start: int, end: int):
        state["data"].extend(data[start:end])

    def on_part_end():
        headers = state["headers"]
        _, options = parse_options_header(headers.get("content-disposition", ""))

        name = _decode(options.get(b"name"))
        if not name:
            return

        parts.append(Part(
            name=name,
            filename=_decode(options.get(b"filename")),
            content_type=headers.get("content-type"),
            data=bytes(state["data"]),
            headers=dict(headers),
        ))

    callbacks = {
        "on_part_begin": on_part_begin,
        "on_part_data": on_part_data,
        "on_part_end": on_part_end,
        "on_header_field": on_header_field,
        "on_header_value": on_header_value,
        "on_header_end": on_header_end,
    }

    if isinstance(boundary, str):
        boundary = boundary.encode("latin-1")

    parser = MultipartParser(boundary, callbacks)
    parser.write(body)
    parser.finalize()
    return parts


def _decode(value: Optional[bytes]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value
