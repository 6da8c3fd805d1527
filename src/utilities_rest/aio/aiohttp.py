#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import logging
from collections.abc import AsyncGenerator, AsyncIterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    # pyright doesn't like optional imports. This is reasonable because if we use these
    # in type hints then they'd result in runtime errors.
    import aiohttp

try:
    import aiohttp  # noqa: F811

    HAS_AIOHTTP = True
except ImportError:
    HAS_AIOHTTP = False  # type: ignore

from ..exceptions import MissingDependencyError
from ..interfaces import HTTPClientConfiguration, HTTPRequestConfiguration
from .interfaces import HTTPClient, HTTPRequest
from .interfaces import HTTPResponse as HTTPResponseInterface

logger = logging.getLogger(__name__)


def _assert_aiohttp() -> None:
    if not HAS_AIOHTTP:
        raise MissingDependencyError(
            "Attempted to use aiohttp component, but aiohttp is not installed."
        )


@dataclass(kw_only=True)
class AIOHTTPClientConfig(HTTPClientConfiguration):
    def __post_init__(self) -> None:
        _assert_aiohttp()


class AIOHTTPResponse(HTTPResponseInterface):
    """A streamed response backed by an ``aiohttp.ClientResponse``."""

    def __init__(
        self, response: "aiohttp.ClientResponse", *, read_buffer_size: int
    ) -> None:
        self._response = response
        self._read_buffer_size = read_buffer_size
        self._headers = self._marshal_headers(response)

    @property
    def status(self) -> int:
        return self._response.status

    @property
    def headers(self) -> Mapping[str, str]:
        return self._headers

    @property
    def reason(self) -> str | None:
        return self._response.reason

    @property
    def body(self) -> AsyncIterable[bytes]:
        return self.chunks()

    async def chunks(self) -> AsyncGenerator[bytes, None]:
        async for chunk in self._response.content.iter_chunked(self._read_buffer_size):
            yield chunk

    async def close(self) -> None:
        self._response.release()

    def _marshal_headers(self, response: "aiohttp.ClientResponse") -> dict[str, str]:
        headers: dict[str, str] = {}
        for name, value in response.headers.items():
            if name in headers:
                headers[name] = f"{headers[name]}, {value}"
            else:
                headers[name] = value
        return headers

    def __repr__(self) -> str:
        return f"AIOHTTPResponse(status={self.status}, headers={self._headers!r}, body=...)"


class AIOHTTPClient(HTTPClient):
    """Implementation of :py:class:`.interfaces.HTTPClient` using aiohttp."""

    def __init__(
        self,
        *,
        client_config: AIOHTTPClientConfig | None = None,
        _session: "aiohttp.ClientSession | None" = None,
    ) -> None:
        """
        :param client_config: Configuration that applies to all requests made with this
        client.
        """
        _assert_aiohttp()
        self._config = client_config or AIOHTTPClientConfig()
        # The session binds to the running event loop, so it is created on first use.
        self._session = _session

    async def send(
        self,
        request: HTTPRequest,
        *,
        request_config: HTTPRequestConfiguration | None = None,
    ) -> AIOHTTPResponse:
        """Send HTTP request using aiohttp client.

        :param request: The request including destination URL, headers, payload.
        :param request_config: Configuration specific to this request.
        """
        request_config = request_config or HTTPRequestConfiguration()
        session = self._get_session()

        kwargs: dict[str, Any] = {
            "method": request.method,
            "url": request.url,
            "headers": request.headers,
            "max_redirects": request_config.max_redirects,
            "timeout": aiohttp.ClientTimeout(
                total=None, sock_read=request_config.read_timeout
            ),
        }
        if request.body:
            kwargs["data"] = request.body
        if request_config.ssl is not None:
            kwargs["ssl"] = request_config.ssl

        logger.debug("Sending %s request to %s", request.method, request.url)
        response = await session.request(**kwargs)
        return AIOHTTPResponse(response, read_buffer_size=self._config.read_buffer_size)

    def _get_session(self) -> "aiohttp.ClientSession":
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
