#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
#  pyright: reportMissingTypeStubs=false,reportUnknownMemberType=false
#  flake8: noqa: F811
import logging
from collections.abc import AsyncGenerator, AsyncIterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import SplitResult, urlsplit

if TYPE_CHECKING:
    # pyright doesn't like optional imports. This is reasonable because if we use these
    # in type hints then they'd result in runtime errors.
    from awscrt import http as crt_http
    from awscrt import io as crt_io
    from awscrt.aio.http import (
        AIOHttpClientConnectionUnified,
        AIOHttpClientStreamUnified,
    )

try:
    from awscrt import http as crt_http
    from awscrt import io as crt_io
    from awscrt.aio.http import (
        AIOHttpClientConnectionUnified,
        AIOHttpClientStreamUnified,
    )

    HAS_CRT = True
except ImportError:
    HAS_CRT = False  # type: ignore

from ..exceptions import MissingDependencyError, RestError
from ..interfaces import HTTPClientConfiguration, HTTPRequestConfiguration
from .interfaces import HTTPClient, HTTPRequest, HTTPResponse, StreamingBlob

logger = logging.getLogger(__name__)


def _assert_crt() -> None:
    if not HAS_CRT:
        raise MissingDependencyError(
            "Attempted to use awscrt component, but awscrt is not installed."
        )


class _AWSCRTEventLoop:
    def __init__(self) -> None:
        _assert_crt()
        self.bootstrap = self._initialize_default_loop()

    def _initialize_default_loop(self) -> "crt_io.ClientBootstrap":
        event_loop_group = crt_io.EventLoopGroup(1)
        host_resolver = crt_io.DefaultHostResolver(event_loop_group)
        return crt_io.ClientBootstrap(event_loop_group, host_resolver)


class AWSCRTHTTPResponse(HTTPResponse):
    def __init__(
        self,
        *,
        status: int,
        headers: Mapping[str, str],
        stream: "AIOHttpClientStreamUnified",
    ) -> None:
        _assert_crt()
        self._status = status
        self._headers = headers
        self._stream = stream

    @property
    def status(self) -> int:
        return self._status

    @property
    def headers(self) -> Mapping[str, str]:
        return self._headers

    @property
    def body(self) -> AsyncIterable[bytes]:
        return self.chunks()

    @property
    def reason(self) -> str | None:
        return None

    async def chunks(self) -> AsyncGenerator[bytes, None]:
        while True:
            chunk = await self._stream.get_next_response_chunk()
            if chunk:
                yield chunk
            else:
                break

    async def close(self) -> None:
        pass

    def __repr__(self) -> str:
        return (
            f"AWSCRTHTTPResponse("
            f"status={self.status}, "
            f"headers={self.headers!r}, body=...)"
        )


ConnectionPoolKey = tuple[str, str, int | None]
ConnectionPoolDict = dict[ConnectionPoolKey, "AIOHttpClientConnectionUnified"]


@dataclass(kw_only=True)
class AWSCRTHTTPClientConfig(HTTPClientConfiguration):
    """AWS CRT HTTP client configuration.

    :param force_http_2: Whether to require HTTP/2.
    """

    force_http_2: bool = False

    def __post_init__(self) -> None:
        _assert_crt()


class AWSCRTHTTPClient(HTTPClient):
    """Implementation of :py:class:`.interfaces.HTTPClient` using the AWS CRT.

    Certificate validation can only be disabled, by passing ``ssl=False`` in the
    request configuration. Redirects are not followed.
    """

    _HTTP_PORT = 80
    _HTTPS_PORT = 443

    def __init__(
        self,
        eventloop: _AWSCRTEventLoop | None = None,
        client_config: AWSCRTHTTPClientConfig | None = None,
    ) -> None:
        """
        :param client_config: Configuration that applies to all requests made with this
        client.
        """
        _assert_crt()
        self._config = client_config or AWSCRTHTTPClientConfig()
        if eventloop is None:
            eventloop = _AWSCRTEventLoop()
        self._eventloop = eventloop
        self._client_bootstrap = self._eventloop.bootstrap
        self._tls_ctx = crt_io.ClientTlsContext(crt_io.TlsContextOptions())
        self._insecure_tls_ctx: "crt_io.ClientTlsContext | None" = None
        self._socket_options = crt_io.SocketOptions()
        self._connections: ConnectionPoolDict = {}

    async def send(
        self,
        request: HTTPRequest,
        *,
        request_config: HTTPRequestConfiguration | None = None,
    ) -> AWSCRTHTTPResponse:
        """Send HTTP request using awscrt client.

        :param request: The request including destination URL, headers, payload.
        :param request_config: Configuration specific to this request.
        """
        request_config = request_config or HTTPRequestConfiguration()
        url = urlsplit(request.url)
        crt_request = self._marshal_request(request, url)
        connection = await self._get_connection(url, verify=request_config.ssl is not False)

        crt_stream = connection.request(
            crt_request,
            request_body_generator=self._create_body_generator(request.body),
        )

        logger.debug("Sent %s request to %s", request.method, request.url)
        return await self._await_response(crt_stream)

    async def _await_response(
        self, stream: "AIOHttpClientStreamUnified"
    ) -> AWSCRTHTTPResponse:
        status_code = await stream.get_response_status_code()
        headers: dict[str, str] = {}
        for header_name, header_val in await stream.get_response_headers():
            if header_name in headers:
                headers[header_name] = f"{headers[header_name]}, {header_val}"
            else:
                headers[header_name] = header_val
        return AWSCRTHTTPResponse(status=status_code, headers=headers, stream=stream)

    async def _get_connection(
        self, url: SplitResult, *, verify: bool = True
    ) -> "AIOHttpClientConnectionUnified":
        connection_key = (url.scheme, url.hostname or "", url.port)
        connection = self._connections.get(connection_key)

        if connection and connection.is_open():
            return connection

        connection = await self._build_new_connection(url, verify=verify)
        await self._validate_connection(connection)
        self._connections[connection_key] = connection
        return connection

    async def _build_new_connection(
        self, url: SplitResult, *, verify: bool = True
    ) -> "AIOHttpClientConnectionUnified":
        host = url.hostname or ""
        if url.scheme == "http":
            port = self._HTTP_PORT
            tls_connection_options = None
        elif url.scheme == "https":
            port = self._HTTPS_PORT
            tls_connection_options = self._get_tls_context(
                verify
            ).new_connection_options()
            tls_connection_options.set_server_name(host)
            tls_connection_options.set_alpn_list(["h2", "http/1.1"])
        else:
            raise RestError(f"AWSCRTHTTPClient does not support URL scheme {url.scheme}")
        if url.port is not None:
            port = url.port

        return await AIOHttpClientConnectionUnified.new(
            bootstrap=self._client_bootstrap,
            host_name=host,
            port=port,
            socket_options=self._socket_options,
            tls_connection_options=tls_connection_options,
        )

    def _get_tls_context(self, verify: bool) -> "crt_io.ClientTlsContext":
        if verify:
            return self._tls_ctx
        if self._insecure_tls_ctx is None:
            options = crt_io.TlsContextOptions()
            options.verify_peer = False
            self._insecure_tls_ctx = crt_io.ClientTlsContext(options)
        return self._insecure_tls_ctx

    async def _validate_connection(
        self, connection: "AIOHttpClientConnectionUnified"
    ) -> None:
        if self._config.force_http_2 and connection.version is not crt_http.HttpVersion.Http2:
            await connection.close()
            negotiated = crt_http.HttpVersion(connection.version).name
            raise RestError(f"HTTP/2 could not be negotiated: {negotiated}")

    def _render_path(self, url: SplitResult) -> str:
        path = url.path or "/"
        query = f"?{url.query}" if url.query else ""
        return f"{path}{query}"

    def _marshal_request(
        self, request: HTTPRequest, url: SplitResult
    ) -> "crt_http.HttpRequest":
        """Create :py:class:`awscrt.http.HttpRequest` from
        :py:class:`utilities_rest.aio.HTTPRequest`"""
        if request.get_header("host") is None:
            request.set_header("host", url.netloc)

        if request.get_header("accept") is None:
            request.set_header("accept", "*/*")

        return crt_http.HttpRequest(
            method=request.method,
            path=self._render_path(url),
            headers=crt_http.HttpHeaders(list(request.headers.items())),
        )

    async def _create_body_generator(
        self, body: StreamingBlob
    ) -> AsyncGenerator[bytes, None]:
        """Convert the request body to an async generator for request_body_generator."""
        if isinstance(body, bytes):
            if body:
                yield body
        elif isinstance(body, bytearray):
            if body:
                yield bytes(body)
        else:
            async for chunk in body:
                yield bytes(chunk) if isinstance(chunk, bytearray) else chunk
