#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from collections.abc import AsyncIterable, Mapping
from dataclasses import dataclass, field

from ..utils import get_header
from . import interfaces
from .interfaces import StreamingBlob


@dataclass(kw_only=True)
class HTTPRequest(interfaces.HTTPRequest):
    """HTTP primitive for an exchange to a URL."""

    url: str
    method: str
    headers: dict[str, str] = field(default_factory=dict[str, str])
    body: StreamingBlob = field(repr=False, default=b"")

    def get_header(self, name: str) -> str | None:
        """Look up a header, ignoring case."""
        return get_header(self.headers, name)

    def set_header(self, name: str, value: str) -> None:
        """Set a header, replacing any existing header with the same name."""
        lowered = name.lower()
        for key in [k for k in self.headers if k.lower() == lowered]:
            del self.headers[key]
        self.headers[name] = value


# HTTPResponse implements interfaces.HTTPResponse but cannot be explicitly annotated
# to reflect this because the protocol's properties can't be assigned by a dataclass.
@dataclass(kw_only=True)
class HTTPResponse:
    """Basic implementation of :py:class:`.interfaces.HTTPResponse`.

    Implementations of :py:class:`.interfaces.HTTPClient` may return instances of this
    class or of custom response implementations.
    """

    status: int
    """The 3 digit response status code (1xx, 2xx, 3xx, 4xx, 5xx)."""

    headers: Mapping[str, str] = field(default_factory=dict[str, str])

    body: AsyncIterable[bytes] = field(repr=False)
    """The response payload as an async iterable of chunks."""

    reason: str | None = None
    """Optional string provided by the server explaining the status."""

    async def close(self) -> None:
        pass
