"""
Transport boundary consumed by the call executors
"""

from dataclasses import dataclass, field
from typing import Dict, Protocol

from .request_spec import RequestSpec


class TransportError(Exception):
    """Raised when the transport could not obtain any response"""
    pass


@dataclass
class TransportResult:
    """Outcome of one transmission as seen by the transport"""
    status_code: int
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def no_response(cls) -> "TransportResult":
        return cls(status_code=0, body=b"", headers={})


class Exchange(Protocol):
    """One in-flight transmission of a RequestSpec"""

    @property
    def uploaded_bytes(self) -> int:
        ...

    @property
    def upload_progress(self) -> float:
        """Fraction of the request body sent so far, 0.0 to 1.0"""
        ...

    async def send(self) -> TransportResult:
        """Transmit the request and suspend until the response is complete"""
        ...

    def dispose(self) -> None:
        """Release transport resources; safe to call more than once"""
        ...


class Transport(Protocol):
    """Capability that sends RequestSpecs over the network"""

    def open(self, spec: RequestSpec) -> Exchange:
        """Claim the request and prepare a transmission for it"""
        ...
