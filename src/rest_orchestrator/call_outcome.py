"""
Call outcome types and the transmit/classify/dispatch steps shared by all executors
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from .error_classifier import NormalizedError, classify_error, is_success_status
from .request_builder import RequestBuilder
from .request_spec import RequestSpec, ResponseSink
from .transport import Exchange, TransportError, TransportResult


OnCompletion = Callable[[ResponseSink], None]
OnError = Callable[[NormalizedError], None]
OnProgress = Callable[[float], None]
SpecSource = Union[RequestSpec, RequestBuilder]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallSuccess:
    sink: ResponseSink


@dataclass(frozen=True)
class CallFailure:
    error: NormalizedError


CallOutcome = Union[CallSuccess, CallFailure]


def resolve_spec(source: SpecSource) -> RequestSpec:
    """
    Return the RequestSpec for a call, building it when given a builder

    Raises:
        InvalidSpecError: If the builder is in a contradictory state
    """
    if isinstance(source, RequestBuilder):
        return source.build()
    return source


async def execute_exchange(exchange: Exchange, spec: RequestSpec) -> CallOutcome:
    """
    Transmit one exchange and classify its outcome

    A transport that could not obtain any response is treated as status 0
    with an empty body, which the classifier reports as no connection.

    Args:
        exchange: Opened exchange for the request
        spec: The request being transmitted

    Returns:
        CallSuccess for 200/201/204, CallFailure otherwise
    """
    logger.info(f"Making {spec.method.value} call to: {spec.url}")

    try:
        result = await exchange.send()
    except TransportError as e:
        logger.warning(f"No response for {spec.method.value} {spec.url}: {e}")
        result = TransportResult.no_response()
    except Exception as e:
        logger.exception(f"Transport failed unexpectedly for {spec.method.value} {spec.url}: {e}")
        result = TransportResult.no_response()

    spec.sink.status_code = result.status_code
    spec.sink.headers = dict(result.headers)
    logger.info(f"Call {spec.url} completed with status {result.status_code}")

    if is_success_status(result.status_code):
        return CallSuccess(sink=spec.sink)

    error = classify_error(result.body, result.status_code, result.headers)
    logger.debug(f"Call {spec.url} failed as {error.kind.value}: {error.code} - {error.description}")
    return CallFailure(error=error)


def dispatch_outcome(
    outcome: CallOutcome,
    on_completion: Optional[OnCompletion],
    on_error: Optional[OnError],
) -> None:
    """
    Invoke exactly one of the callbacks for an outcome

    An exception raised by the callback is logged and not propagated, so one
    misbehaving caller cannot stall the executor that delivered it.
    """
    try:
        if isinstance(outcome, CallSuccess):
            if on_completion is not None:
                on_completion(outcome.sink)
        elif on_error is not None:
            on_error(outcome.error)
    except Exception:
        logger.exception("Call callback raised an exception")
