"""
Multipart/form-data encoding for request form fields
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, Union

from urllib3.filepost import encode_multipart_formdata


@dataclass(frozen=True)
class FormFile:
    """Binary attachment for a multipart form field"""
    data: bytes
    filename: str
    mime: str = "application/octet-stream"


FormValue = Union[str, int, bool, FormFile]


def render_field_value(value: FormValue) -> str:
    """
    Render a non-file form value as text

    bool is checked before int since bool is an int subclass.
    """
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value
    raise TypeError(f"Unsupported form field type: {type(value).__name__}")


def is_supported_value(value: object) -> bool:
    if isinstance(value, FormFile):
        return isinstance(value.data, (bytes, bytearray))
    return isinstance(value, (str, int, bool))


def encode_multipart(
    fields: Iterable[Tuple[str, FormValue]], boundary: Optional[str] = None
) -> Tuple[bytes, str]:
    """
    Encode form fields as multipart/form-data, preserving field order

    Args:
        fields: Ordered (name, value) pairs
        boundary: Part boundary; urllib3 picks a random one when omitted

    Returns:
        Tuple of (encoded body, Content-Type header value)
    """
    parts: List[Tuple[str, Union[str, Tuple[str, bytes, str]]]] = []
    for name, value in fields:
        if isinstance(value, FormFile):
            parts.append((name, (value.filename, bytes(value.data), value.mime)))
        else:
            parts.append((name, render_field_value(value)))

    return encode_multipart_formdata(parts, boundary=boundary)
