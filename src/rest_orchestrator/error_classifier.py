"""
ErrorClassifier module normalising failed responses into one error shape
"""

import json
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union


# The only status codes treated as success by any executor
SUCCESS_STATUS_CODES = frozenset({200, 201, 204})

NO_CONNECTION_CODE = "no_connection"
NO_CONNECTION_DESCRIPTION = "No internet connection. Check your network"
UNCLASSIFIABLE_CODE = "unclassifiable_error"
UNCLASSIFIABLE_DESCRIPTION = "Unrecognized error response"
INVALID_REQUEST_CODE = "invalid_request"


class ErrorKind(Enum):
    CONNECTIVITY = "connectivity"
    STRUCTURED = "structured"
    GENERIC = "generic"
    UNCLASSIFIABLE = "unclassifiable"
    INVALID_SPEC = "invalid_spec"


@dataclass(frozen=True)
class NormalizedError:
    """Uniform error record handed to exactly one error callback"""
    raw: str
    status_code: int
    code: str
    description: str
    headers: Dict[str, str] = field(default_factory=dict)
    kind: ErrorKind = ErrorKind.GENERIC


class _EnvelopeParseError(Exception):
    pass


def is_success_status(status_code: int) -> bool:
    return status_code in SUCCESS_STATUS_CODES


def _decode_body(body: Union[bytes, str, None]) -> str:
    if body is None:
        return ""
    if isinstance(body, (bytes, bytearray)):
        return bytes(body).decode("utf-8", errors="replace")
    return body


def _parse_nested_envelope(raw: str) -> Dict[str, Any]:
    """Parse {status, message, data: {error, errorDescription}}"""
    try:
        document = json.loads(raw)
    except ValueError as e:
        raise _EnvelopeParseError(str(e))

    if not isinstance(document, dict):
        raise _EnvelopeParseError("envelope is not an object")

    data = document.get("data")
    if data is not None and not isinstance(data, dict):
        raise _EnvelopeParseError("data is not an object")
    return document


def _parse_flat_envelope(document: Dict[str, Any]) -> Dict[str, Any]:
    """Read {status, message} where data, if present, is a scalar"""
    data = document.get("data")
    if isinstance(data, (dict, list)):
        raise _EnvelopeParseError("data is not a scalar")

    status = document.get("status")
    if status is None or isinstance(status, (dict, list)):
        raise _EnvelopeParseError("status is missing")

    message = document.get("message")
    if isinstance(message, (dict, list)):
        raise _EnvelopeParseError("message is not a scalar")

    return {"status": status, "message": message}


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def classify_error(
    body: Union[bytes, str, None],
    status_code: int,
    headers: Optional[Mapping[str, str]] = None,
) -> NormalizedError:
    """
    Classify a failed response into a NormalizedError

    1. Body that does not parse as the nested error envelope is reported as a
       connectivity failure, whatever the status code.
    2. A non-empty data.error is a structured API error.
    3. Otherwise the flat {status, message} envelope is a generic API error;
       if that parse fails too the error is reported as unclassifiable.

    Never raises.

    Args:
        body: Raw response body
        status_code: HTTP status, 0 when no response was received
        headers: Response headers

    Returns:
        NormalizedError for the response
    """
    raw = _decode_body(body)
    response_headers = dict(headers or {})

    def build(code: str, description: str, kind: ErrorKind) -> NormalizedError:
        return NormalizedError(
            raw=raw,
            status_code=status_code,
            code=code,
            description=description,
            headers=response_headers,
            kind=kind,
        )

    try:
        document = _parse_nested_envelope(raw)
    except _EnvelopeParseError:
        return build(NO_CONNECTION_CODE, NO_CONNECTION_DESCRIPTION, ErrorKind.CONNECTIVITY)

    data = document.get("data") or {}
    error_code = data.get("error")
    if error_code:
        return build(_as_text(error_code), _as_text(data.get("errorDescription")), ErrorKind.STRUCTURED)

    try:
        flat = _parse_flat_envelope(document)
    except _EnvelopeParseError:
        return build(UNCLASSIFIABLE_CODE, UNCLASSIFIABLE_DESCRIPTION, ErrorKind.UNCLASSIFIABLE)

    return build(_as_text(flat["status"]), _as_text(flat["message"]), ErrorKind.GENERIC)


def undecodable_response_error(
    body: Union[bytes, str, None],
    status_code: int,
    headers: Optional[Mapping[str, str]] = None,
) -> NormalizedError:
    """Error record for a success response whose payload could not be decoded"""
    return NormalizedError(
        raw=_decode_body(body),
        status_code=status_code,
        code=UNCLASSIFIABLE_CODE,
        description="Response payload could not be decoded",
        headers=dict(headers or {}),
        kind=ErrorKind.UNCLASSIFIABLE,
    )


def invalid_spec_error(message: str) -> NormalizedError:
    """Error record for a call whose request could not be built"""
    return NormalizedError(
        raw="",
        status_code=0,
        code=INVALID_REQUEST_CODE,
        description=message,
        headers={},
        kind=ErrorKind.INVALID_SPEC,
    )
