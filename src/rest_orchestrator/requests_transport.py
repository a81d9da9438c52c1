"""
Default Transport implementation built on requests
"""

import asyncio
import logging
from typing import Iterator, Optional

import requests

from .config_loader import ClientConfig
from .request_spec import RequestSpec
from .transport import TransportError, TransportResult


UPLOAD_CHUNK_SIZE = 64 * 1024
DOWNLOAD_CHUNK_SIZE = 64 * 1024


class ProgressReader:
    """File-like view over a request body that counts bytes handed to the socket"""

    def __init__(self, data: bytes, chunk_size: int = UPLOAD_CHUNK_SIZE):
        self._data = data
        self._offset = 0
        self.chunk_size = chunk_size

    @property
    def bytes_read(self) -> int:
        return self._offset

    def __len__(self) -> int:
        return len(self._data)

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            size = len(self._data) - self._offset
        chunk = self._data[self._offset:self._offset + size]
        self._offset += len(chunk)
        return chunk

    def __iter__(self) -> Iterator[bytes]:
        while True:
            chunk = self.read(self.chunk_size)
            if not chunk:
                return
            yield chunk


class RequestsExchange:
    """Single transmission of a RequestSpec through a requests.Session"""

    def __init__(self, session: requests.Session, spec: RequestSpec, timeout: Optional[float] = None):
        self.session = session
        self.spec = spec
        self.timeout = timeout

        body, content_type = spec.encode_body()
        self._headers = spec.wire_headers(content_type)
        self._reader = ProgressReader(body) if body else None
        self._total_bytes = len(body) if body else 0
        self._response: Optional[requests.Response] = None
        self._completed = False
        self._disposed = False
        self.logger = logging.getLogger(__name__)

    @property
    def uploaded_bytes(self) -> int:
        return self._reader.bytes_read if self._reader else 0

    @property
    def upload_progress(self) -> float:
        if self._total_bytes == 0:
            return 1.0 if self._completed else 0.0
        return min(1.0, self.uploaded_bytes / self._total_bytes)

    @property
    def disposed(self) -> bool:
        return self._disposed

    async def send(self) -> TransportResult:
        """
        Transmit on a worker thread so the event loop keeps running

        Raises:
            TransportError: If no response could be obtained
        """
        return await asyncio.to_thread(self._send_blocking)

    def _send_blocking(self) -> TransportResult:
        method = self.spec.method.value
        url = self.spec.url
        sink = self.spec.sink

        try:
            response = self.session.request(
                method,
                url,
                data=self._reader,
                headers=self._headers,
                verify=self.spec.trust.requests_verify,
                timeout=self.timeout,
                stream=True
            )
        except requests.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e}") from e

        self._response = response
        if self._disposed:
            response.close()
            raise TransportError(f"{method} {url} was disposed while in flight")

        try:
            for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                if chunk:
                    sink.write(chunk)
        except requests.RequestException as e:
            raise TransportError(f"{method} {url} failed while reading response: {e}") from e
        finally:
            response.close()

        self._completed = True

        return TransportResult(
            status_code=response.status_code,
            body=sink.content,
            headers=dict(response.headers)
        )

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        if self._response is not None:
            self._response.close()
        self.logger.debug(f"Disposed exchange for {self.spec.url}")


class RequestsTransport:
    """Transport sending each RequestSpec through one shared requests.Session"""

    def __init__(self, session: Optional[requests.Session] = None, timeout: Optional[float] = None):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_config(cls, config: ClientConfig) -> "RequestsTransport":
        return cls(timeout=config.transport.timeout_seconds)

    def open(self, spec: RequestSpec) -> RequestsExchange:
        """
        Claim the request's response sink and prepare its transmission

        Raises:
            InvalidSpecError: If the request was already transmitted
        """
        spec.sink.claim()
        if not spec.trust.verify_certificates:
            self.logger.warning(f"Certificate validation disabled for {spec.url}")
        return RequestsExchange(self.session, spec, timeout=self.timeout)

    def close(self) -> None:
        """
        Close HTTP session and release resources
        """
        self.session.close()
