"""
Client-side request orchestrator for a JSON/multipart pinning service API
Provides an ordered call queue, concurrent call runners with upload progress,
and uniform normalisation of failed responses
"""

from .config_loader import ConfigLoader, ClientConfig, TransportSettings, ConfigurationError, EnvironmentVariableError
from .log_setup import configure_logging
from .request_spec import HttpMethod, FormFile, TrustPolicy, ResponseSink, RequestSpec, InvalidSpecError
from .request_builder import RequestBuilder
from .error_classifier import ErrorKind, NormalizedError, classify_error, is_success_status
from .transport import Transport, Exchange, TransportResult, TransportError
from .requests_transport import RequestsTransport
from .call_outcome import CallSuccess, CallFailure
from .call_queue import SequentialCallQueue, QueueState
from .concurrent_runner import ConcurrentCallRunner, UploadCallRunner
from .pinning_client import PinningServiceClient, PinResponse

__all__ = [
    'ConfigLoader',
    'ClientConfig',
    'TransportSettings',
    'ConfigurationError',
    'EnvironmentVariableError',
    'configure_logging',
    'HttpMethod',
    'FormFile',
    'TrustPolicy',
    'ResponseSink',
    'RequestSpec',
    'InvalidSpecError',
    'RequestBuilder',
    'ErrorKind',
    'NormalizedError',
    'classify_error',
    'is_success_status',
    'Transport',
    'Exchange',
    'TransportResult',
    'TransportError',
    'RequestsTransport',
    'CallSuccess',
    'CallFailure',
    'SequentialCallQueue',
    'QueueState',
    'ConcurrentCallRunner',
    'UploadCallRunner',
    'PinningServiceClient',
    'PinResponse'
]
