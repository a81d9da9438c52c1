"""
Test suite for ConcurrentCallRunner and UploadCallRunner components
Following AAA pattern and descriptive naming
"""

import asyncio

import pytest

from rest_orchestrator.concurrent_runner import ConcurrentCallRunner, UploadCallRunner
from rest_orchestrator.request_builder import RequestBuilder
from rest_orchestrator.request_spec import FormFile, HttpMethod, InvalidSpecError

from conftest import FakeResponse, FakeTransport, wait_until


def upload_builder(url: str, size: int = 1000) -> RequestBuilder:
    return (
        RequestBuilder(boundary="B")
        .set_url(url)
        .set_method(HttpMethod.POST)
        .add_form_field("file", FormFile(data=b"x" * size, filename="blob.bin"))
    )


class TestConcurrentCallRunner:
    """Test suite for unordered fire-and-forget calls"""

    def test_each_call_gets_exactly_one_callback_and_one_dispose(self):
        """
        Test that successes and failures each fire a single callback
        """
        # Arrange
        transport = FakeTransport(responses={
            "https://ok": FakeResponse(status_code=204),
            "https://bad": FakeResponse(status_code=400, body=b'{"status":"400","message":"nope"}'),
        })
        events = []

        async def scenario():
            runner = ConcurrentCallRunner(transport)
            runner.start(RequestBuilder().set_url("https://ok"),
                         lambda sink: events.append("ok completed"),
                         lambda error: events.append("ok failed"))
            runner.start(RequestBuilder().set_url("https://bad"),
                         lambda sink: events.append("bad completed"),
                         lambda error: events.append(f"bad failed {error.description}"))
            await runner.wait_all()
            return runner

        # Act
        runner = asyncio.run(scenario())

        # Assert
        assert sorted(events) == ["bad failed nope", "ok completed"]
        assert [exchange.dispose_count for exchange in transport.exchanges] == [1, 1]
        assert runner.active == 0

    def test_calls_complete_in_their_own_order(self):
        """
        Test that a later call may complete before an earlier one
        """
        # Arrange
        transport = FakeTransport()
        completed = []

        async def scenario():
            slow_gate = asyncio.Event()
            transport.responses["https://slow"] = FakeResponse(gate=slow_gate)
            runner = ConcurrentCallRunner(transport)
            runner.start(RequestBuilder().set_url("https://slow"), lambda sink: completed.append("slow"), None)
            runner.start(RequestBuilder().set_url("https://fast"), lambda sink: completed.append("fast"), None)
            await wait_until(lambda: completed == ["fast"])
            max_in_flight = transport.max_in_flight
            slow_gate.set()
            await runner.wait_all()
            return max_in_flight

        # Act
        max_in_flight = asyncio.run(scenario())

        # Assert
        assert completed == ["fast", "slow"]
        assert max_in_flight == 2

    def test_start_with_invalid_builder_raises_immediately(self, fake_transport):
        """
        Test that an invalid spec is rejected before any transmission
        """
        # Arrange
        builder = RequestBuilder().set_method(HttpMethod.POST).set_body(b"x")

        async def scenario():
            ConcurrentCallRunner(fake_transport).start(builder, None, None)

        # Act & Assert
        with pytest.raises(InvalidSpecError):
            asyncio.run(scenario())
        assert fake_transport.exchanges == []

    def test_start_with_already_transmitted_spec_raises(self, fake_transport):
        spec = RequestBuilder().set_url("https://once").build()

        async def scenario():
            runner = ConcurrentCallRunner(fake_transport)
            runner.start(spec, None, None)
            runner.start(spec, None, None)

        with pytest.raises(InvalidSpecError):
            asyncio.run(scenario())

    def test_transport_exception_is_delivered_as_no_connection(self):
        transport = FakeTransport(default=FakeResponse(error=OSError("socket closed")))
        errors = []

        async def scenario():
            runner = ConcurrentCallRunner(transport)
            runner.start(RequestBuilder().set_url("https://down"), None, errors.append)
            await runner.wait_all()

        asyncio.run(scenario())

        assert len(errors) == 1
        assert errors[0].code == "no_connection"
        assert errors[0].status_code == 0

    def test_start_without_running_loop_leaves_request_unclaimed(self, fake_transport):
        """
        Test that a start outside an event loop opens nothing and the request stays usable
        """
        # Arrange
        spec = RequestBuilder().set_url("https://later").build()
        runner = ConcurrentCallRunner(fake_transport)

        # Act & Assert
        with pytest.raises(RuntimeError):
            runner.start(spec, None, None)

        assert fake_transport.exchanges == []
        assert runner.active == 0
        fake_transport.open(spec)


class TestUploadCallRunner:
    """Test suite for progress reporting on upload calls"""

    def test_progress_is_monotonic_and_ends_at_one_before_completion(self):
        """
        Test that a 1000 byte upload reports rising progress and 1.0 before on_completion
        """
        # Arrange
        transport = FakeTransport(default=FakeResponse(status_code=200, upload_steps=4))
        events = []

        async def scenario():
            runner = UploadCallRunner(transport, poll_interval=0)
            runner.start(
                upload_builder("https://upload"),
                lambda sink: events.append(("completion", None)),
                lambda error: events.append(("error", error)),
                lambda fraction: events.append(("progress", fraction)),
            )
            await runner.wait_all()

        # Act
        asyncio.run(scenario())

        # Assert
        progress = [value for kind, value in events if kind == "progress"]
        assert events[-1] == ("completion", None)
        assert events[-2] == ("progress", 1.0)
        assert progress == sorted(progress)
        assert all(0.0 <= value <= 1.0 for value in progress)
        assert transport.exchanges[0].uploaded_bytes == len(transport.exchanges[0].sent_body)

    def test_failed_upload_reports_error_after_all_progress(self):
        transport = FakeTransport(default=FakeResponse(status_code=500))
        events = []

        async def scenario():
            transport.default.gate = asyncio.Event()
            runner = UploadCallRunner(transport, poll_interval=0)
            runner.start(upload_builder("https://upload"), None,
                         lambda error: events.append("error"),
                         lambda fraction: events.append(fraction))
            await wait_until(lambda: transport.exchanges[0].upload_progress == 1.0)
            transport.default.gate.set()
            await runner.wait_all()

        asyncio.run(scenario())

        assert events[-1] == "error"
        assert "error" not in events[:-1]

    def test_upload_without_progress_callback_still_completes(self):
        transport = FakeTransport()
        completed = []

        async def scenario():
            runner = UploadCallRunner(transport, poll_interval=0)
            runner.start(upload_builder("https://upload"), completed.append, None)
            await runner.wait_all()

        asyncio.run(scenario())

        assert len(completed) == 1
        assert transport.exchanges[0].dispose_count == 1

    def test_raising_progress_callback_does_not_abort_upload(self):
        """
        Test that a progress callback exception is contained
        """
        # Arrange
        transport = FakeTransport(default=FakeResponse(upload_steps=3))
        completed = []

        def explode(fraction):
            raise ValueError("bad progress handler")

        async def scenario():
            runner = UploadCallRunner(transport, poll_interval=0)
            runner.start(upload_builder("https://upload"), completed.append, None, explode)
            await runner.wait_all()

        # Act
        asyncio.run(scenario())

        # Assert
        assert len(completed) == 1

    def test_upload_runner_runs_uploads_concurrently(self):
        transport = FakeTransport()
        gate_holder = {}
        completed = []

        async def scenario():
            gate_holder["gate"] = asyncio.Event()
            transport.default = FakeResponse(gate=gate_holder["gate"])
            runner = UploadCallRunner(transport, poll_interval=0)
            for i in range(3):
                runner.start(upload_builder(f"https://upload/{i}"), completed.append, None)
            await wait_until(lambda: transport.in_flight == 3)
            gate_holder["gate"].set()
            await runner.wait_all()

        asyncio.run(scenario())

        assert transport.max_in_flight == 3
        assert len(completed) == 3
