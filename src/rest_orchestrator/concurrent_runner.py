"""
ConcurrentCallRunner module for calls executed outside the ordered queue
"""

import asyncio
import logging
from typing import Optional, Set

from .call_outcome import (
    CallOutcome,
    CallSuccess,
    OnCompletion,
    OnError,
    OnProgress,
    SpecSource,
    dispatch_outcome,
    execute_exchange,
    resolve_spec,
)
from .config_loader import DEFAULT_PROGRESS_POLL_INTERVAL
from .request_spec import RequestSpec
from .transport import Exchange, Transport


class ConcurrentCallRunner:
    """
    Fire-and-forget execution path

    Every started call runs as its own task with no ordering relationship to
    other calls or to any SequentialCallQueue.
    """

    def __init__(self, transport: Transport):
        self.transport = transport
        self._tasks: Set[asyncio.Task] = set()
        self.logger = logging.getLogger(__name__)

    @property
    def active(self) -> int:
        return len(self._tasks)

    def start(
        self,
        spec: SpecSource,
        on_completion: Optional[OnCompletion],
        on_error: Optional[OnError],
    ) -> asyncio.Task:
        """
        Transmit a call immediately on the running event loop

        Args:
            spec: RequestSpec, or a RequestBuilder which is built right away
            on_completion: Invoked with the response sink on 200/201/204
            on_error: Invoked with a NormalizedError otherwise

        Returns:
            The task driving the call

        Raises:
            InvalidSpecError: If the builder is invalid or the request was already transmitted
            RuntimeError: If called with no running event loop
        """
        loop = asyncio.get_running_loop()
        request = resolve_spec(spec)
        exchange = self.transport.open(request)
        return self._spawn(loop, exchange, self._run(exchange, request, on_completion, on_error))

    async def wait_all(self) -> None:
        """Wait for every call started by this runner"""
        pending = [task for task in self._tasks if not task.done()]
        while pending:
            await asyncio.gather(*pending, return_exceptions=True)
            pending = [task for task in self._tasks if not task.done()]

    def _spawn(self, loop: asyncio.AbstractEventLoop, exchange: Exchange, coroutine) -> asyncio.Task:
        try:
            task = loop.create_task(coroutine)
        except Exception:
            coroutine.close()
            exchange.dispose()
            raise
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(
        self,
        exchange: Exchange,
        spec: RequestSpec,
        on_completion: Optional[OnCompletion],
        on_error: Optional[OnError],
    ) -> None:
        try:
            outcome = await execute_exchange(exchange, spec)
            dispatch_outcome(outcome, on_completion, on_error)
        finally:
            exchange.dispose()


class _ProgressReporter:
    """Forwards upload fractions to a callback without ever going backwards"""

    def __init__(self, on_progress: Optional[OnProgress]):
        self.on_progress = on_progress
        self.last_reported = 0.0
        self.logger = logging.getLogger(__name__)

    def report(self, fraction: float) -> None:
        if self.on_progress is None:
            return

        fraction = max(self.last_reported, min(1.0, max(0.0, fraction)))
        self.last_reported = fraction
        try:
            self.on_progress(fraction)
        except Exception:
            self.logger.exception("Upload progress callback raised an exception")


class UploadCallRunner(ConcurrentCallRunner):
    """Concurrent runner that reports upload progress while the transfer runs"""

    def __init__(self, transport: Transport, poll_interval: float = DEFAULT_PROGRESS_POLL_INTERVAL):
        super().__init__(transport)
        self.poll_interval = poll_interval

    def start(
        self,
        spec: SpecSource,
        on_completion: Optional[OnCompletion],
        on_error: Optional[OnError],
        on_progress: Optional[OnProgress] = None,
    ) -> asyncio.Task:
        """
        Transmit a call immediately, reporting upload progress every tick

        Progress is the fraction of request body bytes sent. A final 1.0 is
        reported before on_completion when the call succeeds.

        Raises:
            InvalidSpecError: If the builder is invalid or the request was already transmitted
            RuntimeError: If called with no running event loop
        """
        loop = asyncio.get_running_loop()
        request = resolve_spec(spec)
        exchange = self.transport.open(request)
        return self._spawn(loop, exchange, self._run_upload(exchange, request, on_completion, on_error, on_progress))

    async def _run_upload(
        self,
        exchange: Exchange,
        spec: RequestSpec,
        on_completion: Optional[OnCompletion],
        on_error: Optional[OnError],
        on_progress: Optional[OnProgress],
    ) -> None:
        reporter = _ProgressReporter(on_progress)
        send_task: asyncio.Task = asyncio.ensure_future(execute_exchange(exchange, spec))
        try:
            while not send_task.done():
                reporter.report(exchange.upload_progress)
                await asyncio.wait({send_task}, timeout=self.poll_interval)

            outcome: CallOutcome = send_task.result()
            if isinstance(outcome, CallSuccess):
                reporter.report(1.0)
            dispatch_outcome(outcome, on_completion, on_error)
        finally:
            if not send_task.done():
                send_task.cancel()
            exchange.dispose()
