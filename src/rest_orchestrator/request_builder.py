"""
RequestBuilder module for accumulating request state into immutable RequestSpecs
"""

import logging
from typing import Dict, Mapping, Optional, Union

from requests.structures import CaseInsensitiveDict

from .multipart import is_supported_value
from .request_spec import (
    FormFile,
    FormValue,
    HttpMethod,
    InvalidSpecError,
    RequestSpec,
    ResponseSink,
    TrustPolicy,
)


JSON_MIME = "application/json"
BINARY_MIME = "application/octet-stream"

# Methods that may carry a multipart form
FORM_METHODS = {HttpMethod.POST, HttpMethod.PUT}


class RequestBuilder:
    """
    Fluent builder producing RequestSpec snapshots

    The builder can be reused: each call to build() returns an independent
    spec with its own response sink, so later edits never leak into specs
    that were already produced.
    """

    def __init__(self, trust: Optional[TrustPolicy] = None, boundary: Optional[str] = None):
        self._url: Optional[str] = None
        self._method = HttpMethod.GET
        self._headers: CaseInsensitiveDict = CaseInsensitiveDict()
        self._body: Optional[bytes] = None
        self._body_mime: Optional[str] = None
        self._form_fields: Dict[str, FormValue] = {}
        self._trust = trust or TrustPolicy()
        self._boundary = boundary
        self.logger = logging.getLogger(__name__)

    @property
    def url(self) -> Optional[str]:
        return self._url

    @property
    def method(self) -> HttpMethod:
        return self._method

    def set_url(self, url: str) -> "RequestBuilder":
        self._url = url
        return self

    def set_method(self, method: Union[HttpMethod, str]) -> "RequestBuilder":
        """Set the call's HTTP method, accepting an HttpMethod or its name"""
        if isinstance(method, str):
            try:
                method = HttpMethod(method.upper())
            except ValueError:
                raise InvalidSpecError(f"Unsupported HTTP method: {method}")
        self._method = method
        return self

    def set_header(self, name: str, value: str) -> "RequestBuilder":
        self._headers[name] = value
        return self

    def set_headers(self, headers: Mapping[str, str]) -> "RequestBuilder":
        for name, value in headers.items():
            self.set_header(name, value)
        return self

    def set_content_type(self, mime: str) -> "RequestBuilder":
        return self.set_header("Content-Type", mime)

    def set_body(self, data: Union[bytes, str], mime: Optional[str] = None) -> "RequestBuilder":
        """
        Attach a raw payload to the call

        Args:
            data: Payload bytes, or text which is sent UTF-8 encoded
            mime: Payload MIME type; defaults to JSON for text and binary for bytes
        """
        if isinstance(data, str):
            self._body = data.encode("utf-8")
            self._body_mime = mime or JSON_MIME
        else:
            self._body = bytes(data)
            self._body_mime = mime or BINARY_MIME
        return self

    def add_form_field(self, name: str, value: FormValue) -> "RequestBuilder":
        """Add a multipart form field; repeating a name replaces its value in place"""
        self._form_fields[name] = value
        return self

    def set_trust_policy(self, trust: TrustPolicy) -> "RequestBuilder":
        self._trust = trust
        return self

    def build(self) -> RequestSpec:
        """
        Produce an immutable RequestSpec from the accumulated state

        Returns:
            A new RequestSpec with a fresh response sink

        Raises:
            InvalidSpecError: If no URL was set, both a body and form fields were
                set, a form value has an unsupported type, or the payload does not
                fit the method
        """
        if not self._url:
            raise InvalidSpecError("Request URL was not set")

        if self._body is not None and self._form_fields:
            raise InvalidSpecError("A request cannot carry both a raw body and form fields")

        if self._form_fields and self._method not in FORM_METHODS:
            raise InvalidSpecError(f"{self._method.value} requests cannot carry form fields")

        if self._body is not None and self._method is HttpMethod.GET:
            raise InvalidSpecError("GET requests cannot have a body")

        for name, value in self._form_fields.items():
            if isinstance(value, FormFile) and not is_supported_value(value):
                raise InvalidSpecError(
                    f"Form file '{name}' must carry bytes, got {type(value.data).__name__}"
                )
            if not is_supported_value(value):
                raise InvalidSpecError(
                    f"Form field '{name}' has unsupported type {type(value).__name__}"
                )

        spec = RequestSpec(
            url=self._url,
            method=self._method,
            headers=CaseInsensitiveDict(self._headers),
            body=self._body,
            body_mime=self._body_mime,
            form_fields=tuple(self._form_fields.items()),
            boundary=self._boundary,
            trust=self._trust,
            sink=ResponseSink(),
        )
        self.logger.debug(f"Built {spec.method.value} request for {spec.url}")
        return spec
