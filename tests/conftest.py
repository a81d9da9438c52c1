"""
Shared fixtures and fake transport for the request orchestrator tests
"""

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import pytest

from rest_orchestrator.request_spec import RequestSpec
from rest_orchestrator.transport import TransportResult


@dataclass
class FakeResponse:
    """Scripted response for one URL"""
    status_code: int = 200
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)
    upload_steps: int = 1
    gate: Optional[asyncio.Event] = None
    error: Optional[Exception] = None


class FakeExchange:
    """Exchange that records lifecycle events on its transport"""

    def __init__(self, transport: "FakeTransport", spec: RequestSpec, response: FakeResponse):
        self.transport = transport
        self.spec = spec
        self.response = response
        body, _ = spec.encode_body()
        self.sent_body = body or b""
        self._uploaded = 0
        self.dispose_count = 0
        self.started = asyncio.Event()

    @property
    def uploaded_bytes(self) -> int:
        return self._uploaded

    @property
    def upload_progress(self) -> float:
        if not self.sent_body:
            return 0.0
        return self._uploaded / len(self.sent_body)

    async def send(self) -> TransportResult:
        self.transport.in_flight += 1
        self.transport.max_in_flight = max(self.transport.max_in_flight, self.transport.in_flight)
        self.transport.events.append(("start", self.spec.url))
        self.started.set()
        try:
            total = len(self.sent_body)
            for step in range(1, self.response.upload_steps + 1):
                await asyncio.sleep(0)
                self._uploaded = total * step // self.response.upload_steps

            if self.response.gate is not None:
                await self.response.gate.wait()

            if self.response.error is not None:
                raise self.response.error

            self.spec.sink.write(self.response.body)
            return TransportResult(
                status_code=self.response.status_code,
                body=self.response.body,
                headers=dict(self.response.headers)
            )
        finally:
            self.transport.in_flight -= 1
            self.transport.events.append(("end", self.spec.url))

    def dispose(self) -> None:
        self.dispose_count += 1


class FakeTransport:
    """Transport returning scripted responses keyed by URL"""

    def __init__(self, responses: Optional[Dict[str, FakeResponse]] = None,
                 default: Optional[FakeResponse] = None,
                 open_errors: Optional[Dict[str, Exception]] = None):
        self.responses = responses or {}
        self.open_errors = open_errors or {}
        self.default = default or FakeResponse()
        self.exchanges: List[FakeExchange] = []
        self.events: List[Tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def open(self, spec: RequestSpec) -> FakeExchange:
        if spec.url in self.open_errors:
            raise self.open_errors[spec.url]
        spec.sink.claim()
        exchange = FakeExchange(self, spec, self.responses.get(spec.url, self.default))
        self.exchanges.append(exchange)
        return exchange

    def exchange_for(self, url: str) -> FakeExchange:
        return next(exchange for exchange in self.exchanges if exchange.spec.url == url)


async def wait_until(condition, attempts: int = 200) -> None:
    """Yield to the event loop until condition() holds"""
    for _ in range(attempts):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition was not met")


@pytest.fixture
def fake_transport():
    return FakeTransport()
