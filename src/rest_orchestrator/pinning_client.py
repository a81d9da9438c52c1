"""
PinningServiceClient module adapting the request core to an IPFS pinning API
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from .call_outcome import OnError, OnProgress
from .call_queue import SequentialCallQueue
from .concurrent_runner import UploadCallRunner
from .config_loader import ClientConfig, ConfigLoader
from .error_classifier import undecodable_response_error
from .request_builder import RequestBuilder
from .request_spec import FormFile, HttpMethod, ResponseSink, TrustPolicy
from .transport import Transport


PIN_FILE_TO_IPFS = "/pinning/pinFileToIPFS"
PIN_JSON_TO_IPFS = "/pinning/pinJSONToIPFS"


@dataclass
class PinResponse:
    """Pin record returned by the pinning service"""
    ipfs_hash: str
    pin_size: int
    timestamp: Optional[datetime] = None

    @classmethod
    def from_json(cls, payload: Dict[str, Any]) -> "PinResponse":
        """
        Build a PinResponse from the service's JSON payload

        Raises:
            ValueError: If required keys are missing or malformed
        """
        if not isinstance(payload, dict) or 'IpfsHash' not in payload:
            raise ValueError("Pin response has no IpfsHash")

        timestamp = payload.get('Timestamp')
        return cls(
            ipfs_hash=str(payload['IpfsHash']),
            pin_size=int(payload.get('PinSize', 0)),
            timestamp=datetime.fromisoformat(timestamp) if timestamp else None
        )


class PinningServiceClient:
    """
    Pinning service endpoints built on the request core

    JSON pins go through the ordered queue; file pins are uploads that run
    concurrently and can report progress.
    """

    def __init__(self, config: ClientConfig, transport: Transport):
        self.config = config
        self.transport = transport
        self.trust = TrustPolicy(
            verify_certificates=config.transport.verify_certificates,
            ca_bundle=config.transport.ca_bundle
        )
        self.queue = SequentialCallQueue(transport)
        self.upload_runner = UploadCallRunner(transport, poll_interval=config.progress_poll_interval)
        self.logger = logging.getLogger(__name__)

        if not self.trust.verify_certificates:
            self.logger.warning(f"Certificate validation disabled for {config.name}")

    def start(self) -> None:
        self.queue.start()

    async def close(self) -> None:
        """Drain queued and in-flight work, then stop the queue"""
        await self.upload_runner.wait_all()
        if self.queue.running:
            await self.queue.wait_idle()
        self.queue.request_graceful_stop()
        if self.queue.running:
            await self.queue.wait_stopped()

    def auth_headers(self) -> Dict[str, str]:
        """
        Resolve credential headers from the environment

        Raises:
            EnvironmentVariableError: If a credential variable is not set
        """
        auth = self.config.authentication
        return {
            'pinata_api_key': ConfigLoader.get_environment_value(auth['api_key_env']),
            'pinata_secret_api_key': ConfigLoader.get_environment_value(auth['secret_key_env']),
        }

    def new_builder(self, path: str) -> RequestBuilder:
        builder = RequestBuilder(trust=self.trust).set_url(f"{self.config.base_url}{path}")
        builder.set_headers(self.config.default_headers)
        builder.set_headers(self.auth_headers())
        return builder

    def pin_json_to_ipfs(
        self,
        json_text: str,
        on_completion: Callable[[PinResponse], None],
        on_error: Optional[OnError],
    ) -> int:
        """
        Queue a JSON document to be pinned

        Returns:
            Queue sequence number of the call
        """
        builder = (
            self.new_builder(PIN_JSON_TO_IPFS)
            .set_method(HttpMethod.POST)
            .set_body(json_text, "application/json")
            .set_content_type("application/json")
        )
        self.logger.debug(f"Pinning JSON document of {len(json_text)} characters")
        return self.queue.enqueue(builder, self._decode_pin(on_completion, on_error), on_error)

    def pin_file_to_ipfs(
        self,
        file: FormFile,
        pinata_metadata: str,
        pinata_options: str,
        on_completion: Callable[[PinResponse], None],
        on_error: Optional[OnError],
        on_progress: Optional[OnProgress] = None,
    ) -> asyncio.Task:
        """
        Upload and pin a file, reporting upload progress when requested

        Returns:
            Task driving the upload
        """
        builder = (
            self.new_builder(PIN_FILE_TO_IPFS)
            .set_method(HttpMethod.POST)
            .add_form_field('file', file)
            .add_form_field('pinataMetadata', pinata_metadata)
            .add_form_field('pinataOptions', pinata_options)
        )
        self.logger.info(f"Pinning file {file.filename} ({len(file.data)} bytes)")
        return self.upload_runner.start(
            builder,
            self._decode_pin(on_completion, on_error),
            on_error,
            on_progress
        )

    def _decode_pin(
        self,
        on_completion: Callable[[PinResponse], None],
        on_error: Optional[OnError],
    ) -> Callable[[ResponseSink], None]:
        def handle(sink: ResponseSink) -> None:
            try:
                pin = PinResponse.from_json(sink.json())
            except (ValueError, TypeError) as e:
                self.logger.error(f"Could not decode pin response: {e}")
                if on_error is not None:
                    on_error(undecodable_response_error(sink.content, sink.status_code, sink.headers))
                return
            on_completion(pin)

        return handle
