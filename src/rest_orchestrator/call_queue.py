"""
SequentialCallQueue module executing queued calls one at a time in FIFO order
"""

import asyncio
import itertools
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Optional

from .call_outcome import (
    CallFailure,
    CallOutcome,
    OnCompletion,
    OnError,
    SpecSource,
    dispatch_outcome,
    execute_exchange,
    resolve_spec,
)
from .error_classifier import invalid_spec_error
from .request_spec import InvalidSpecError
from .transport import Exchange, Transport


class QueueState(Enum):
    IDLE = "idle"
    DRAINING = "draining"
    STOPPING = "stopping"
    STOPPED = "stopped"


@dataclass
class QueuedCall:
    """A call owned by the queue from enqueue until it completes or errors"""
    sequence: int
    source: SpecSource
    on_completion: Optional[OnCompletion]
    on_error: Optional[OnError]
    exchange: Optional[Exchange] = None
    disposed: bool = False
    dispose_requested: asyncio.Event = field(default_factory=asyncio.Event)


class SequentialCallQueue:
    """
    Ordered execution path with at most one call in flight

    A single driving task is the only consumer of the backlog; enqueue is the
    only producer. Both run on the same event loop, so the backlog needs no
    lock.

    States move IDLE -> DRAINING on enqueue, back to IDLE once the backlog is
    empty, to STOPPING on a graceful stop request and to STOPPED once the
    driving task has exited.
    """

    def __init__(self, transport: Transport):
        self.transport = transport
        self._backlog: Deque[QueuedCall] = deque()
        self._counter = itertools.count()
        self._current: Optional[QueuedCall] = None
        self._task: Optional[asyncio.Task] = None
        self._state = QueueState.IDLE
        self._stop_requested = False
        self._wakeup = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        self._stopped = asyncio.Event()
        self.logger = logging.getLogger(__name__)

    @property
    def state(self) -> QueueState:
        return self._state

    @property
    def pending(self) -> int:
        """Number of calls waiting behind the in-flight one"""
        return len(self._backlog)

    @property
    def current_sequence(self) -> Optional[int]:
        return self._current.sequence if self._current else None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """
        Spawn the driving task on the running event loop

        Returns:
            The driving task; calling start again while it runs returns the same task

        Raises:
            RuntimeError: If the queue was already stopped or no loop is running
        """
        if self._state is QueueState.STOPPED:
            raise RuntimeError("Queue has been stopped and cannot be restarted")

        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())
            self.logger.debug("Call queue started")
        return self._task

    def enqueue(
        self,
        builder: SpecSource,
        on_completion: Optional[OnCompletion],
        on_error: Optional[OnError],
    ) -> int:
        """
        Append a call to the tail of the queue

        Args:
            builder: RequestBuilder (built when the call reaches the head) or a RequestSpec
            on_completion: Invoked with the response sink on 200/201/204
            on_error: Invoked with a NormalizedError otherwise

        Returns:
            Sequence number of the call, increasing by one per enqueue
        """
        sequence = next(self._counter)
        self._backlog.append(QueuedCall(
            sequence=sequence,
            source=builder,
            on_completion=on_completion,
            on_error=on_error
        ))

        if self._state is QueueState.IDLE:
            self._state = QueueState.DRAINING
        if self._state is not QueueState.STOPPED:
            self._idle.clear()
        self._wakeup.set()

        self.logger.debug(f"Queued call {sequence}, {len(self._backlog)} in queue")
        return sequence

    def request_graceful_stop(self) -> None:
        """Stop once the in-flight call has finished; queued calls are not started"""
        if self._state is QueueState.STOPPED:
            return

        self._stop_requested = True
        self._state = QueueState.STOPPING
        self._wakeup.set()
        self.logger.info(f"Graceful stop requested with {len(self._backlog)} calls still queued")

        if self._task is None:
            self._finish()

    def force_stop(self) -> None:
        """
        Halt the driving task immediately

        The in-flight call, if any, gets no callback and keeps its transport
        resources until force_dispose() is called.
        """
        self._stop_requested = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self.logger.warning(
            f"Call queue force stopped; in-flight call: {self.current_sequence}, "
            f"queued calls: {len(self._backlog)}"
        )
        self._finish()

    def force_dispose(self) -> None:
        """Release the in-flight call's transport resources without invoking any callback"""
        call = self._current
        if call is None:
            return

        call.disposed = True
        call.dispose_requested.set()
        self._current = None
        if call.exchange is not None:
            call.exchange.dispose()
        self.logger.warning(f"Force disposed call {call.sequence}")

    async def wait_idle(self) -> None:
        """Wait until nothing is queued or in flight, or the queue has stopped"""
        await self._idle.wait()

    async def wait_stopped(self) -> None:
        await self._stopped.wait()

    async def _run(self) -> None:
        try:
            while not self._stop_requested:
                if not self._backlog:
                    self._mark_idle()
                    self._wakeup.clear()
                    await self._wakeup.wait()
                    continue

                call = self._backlog.popleft()
                await self._process(call)
        finally:
            self._finish()

    async def _process(self, call: QueuedCall) -> None:
        self._current = call
        try:
            outcome = await self._transmit(call)
        except asyncio.CancelledError:
            self.logger.warning(
                f"Call {call.sequence} abandoned by force stop; resources held until force_dispose"
            )
            raise

        if call.disposed or outcome is None:
            self.logger.warning(f"Call {call.sequence} was disposed in flight; no callback invoked")
        else:
            dispatch_outcome(outcome, call.on_completion, call.on_error)

        self._release(call)

    async def _transmit(self, call: QueuedCall) -> Optional[CallOutcome]:
        """
        Build, open and send one call

        Returns:
            The call's outcome, or None when force_dispose() abandoned the send
        """
        try:
            spec = resolve_spec(call.source)
            call.exchange = self.transport.open(spec)
        except InvalidSpecError as e:
            self.logger.error(f"Call {call.sequence} could not be built: {e}")
            return CallFailure(invalid_spec_error(str(e)))
        except Exception as e:
            self.logger.exception(f"Call {call.sequence} could not be prepared: {e}")
            return CallFailure(invalid_spec_error(f"Request could not be prepared: {e}"))

        send_task = asyncio.ensure_future(execute_exchange(call.exchange, spec))
        dispose_task = asyncio.ensure_future(call.dispose_requested.wait())
        try:
            await asyncio.wait({send_task, dispose_task}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            send_task.cancel()
            raise
        finally:
            dispose_task.cancel()

        if not send_task.done():
            send_task.cancel()
            return None
        return send_task.result()

    def _release(self, call: QueuedCall) -> None:
        if call.exchange is not None and not call.disposed:
            call.exchange.dispose()
        if self._current is call:
            self._current = None

    def _mark_idle(self) -> None:
        if self._state is QueueState.DRAINING:
            self._state = QueueState.IDLE
        self._idle.set()

    def _finish(self) -> None:
        self._state = QueueState.STOPPED
        self._idle.set()
        self._stopped.set()
