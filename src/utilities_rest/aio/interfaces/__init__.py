#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from collections.abc import AsyncIterable, Mapping
from typing import Protocol, runtime_checkable

from ...interfaces import HTTPRequestConfiguration

type StreamingBlob = bytes | bytearray | AsyncIterable[bytes]
"""Request and response payloads, either in memory or streamed."""


class HTTPRequest(Protocol):
    """HTTP primitive for an exchange to a URL."""

    url: str
    method: str
    headers: dict[str, str]
    body: StreamingBlob

    def get_header(self, name: str) -> str | None: ...

    def set_header(self, name: str, value: str) -> None: ...


@runtime_checkable
class HTTPResponse(Protocol):
    """HTTP primitive for a streamed response."""

    @property
    def status(self) -> int:
        """The 3 digit response status code (1xx, 2xx, 3xx, 4xx, 5xx)."""
        ...

    @property
    def headers(self) -> Mapping[str, str]: ...

    @property
    def reason(self) -> str | None:
        """Optional string provided by the server explaining the status."""
        ...

    @property
    def body(self) -> AsyncIterable[bytes]:
        """The response payload as an async iterable of chunks."""
        ...

    async def close(self) -> None:
        """Release the underlying connection."""
        ...


class HTTPClient(Protocol):
    """An asynchronous HTTP client interface."""

    async def send(
        self,
        request: HTTPRequest,
        *,
        request_config: HTTPRequestConfiguration | None = None,
    ) -> HTTPResponse:
        """Send HTTP request over the wire and return the response.

        The response body is streamed. The caller must close the response once it is
        done reading it.

        :param request: The request including destination URL, headers, payload.
        :param request_config: Configuration specific to this request.
        """
        ...
