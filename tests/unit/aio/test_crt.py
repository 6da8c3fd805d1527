#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
#  pyright: reportPrivateUsage=false
from collections.abc import AsyncIterator
from unittest.mock import AsyncMock, Mock, patch
from urllib.parse import urlsplit

import pytest

crt_http = pytest.importorskip("awscrt.http")

from utilities_rest.aio import HTTPRequest  # noqa: E402
from utilities_rest.aio.crt import (  # noqa: E402
    AWSCRTHTTPClient,
    AWSCRTHTTPClientConfig,
    AWSCRTHTTPResponse,
)
from utilities_rest.exceptions import RestError  # noqa: E402


def _connection(version: object, *, is_open: bool = True) -> AsyncMock:
    connection = AsyncMock()
    connection.version = version
    connection.is_open = Mock(return_value=is_open)
    return connection


def test_client_marshal_request() -> None:
    client = AWSCRTHTTPClient()
    request = HTTPRequest(
        url="https://example.com/path?key1=value1&key2=value2", method="GET"
    )

    crt_request = client._marshal_request(request, urlsplit(request.url))

    assert crt_request.headers.get("host") == "example.com"
    assert crt_request.headers.get("accept") == "*/*"
    assert crt_request.method == "GET"
    assert crt_request.path == "/path?key1=value1&key2=value2"


def test_marshal_request_keeps_port_and_default_path() -> None:
    client = AWSCRTHTTPClient()
    request = HTTPRequest(url="http://example.com:8080", method="GET")

    crt_request = client._marshal_request(request, urlsplit(request.url))

    assert crt_request.headers.get("host") == "example.com:8080"
    assert crt_request.path == "/"


async def test_body_generator_bytes() -> None:
    client = AWSCRTHTTPClient()

    chunks = [chunk async for chunk in client._create_body_generator(b"Hello")]

    assert chunks == [b"Hello"]


async def test_body_generator_empty_bytes() -> None:
    client = AWSCRTHTTPClient()

    assert [chunk async for chunk in client._create_body_generator(b"")] == []


async def test_body_generator_async_iterable_with_bytearray() -> None:
    async def generator() -> AsyncIterator[bytes]:
        yield b"bytes chunk"
        yield bytearray(b"bytearray chunk")  # type: ignore[misc]

    client = AWSCRTHTTPClient()

    chunks = [chunk async for chunk in client._create_body_generator(generator())]

    assert chunks == [b"bytes chunk", b"bytearray chunk"]
    assert all(isinstance(chunk, bytes) for chunk in chunks)


async def test_build_connection_https() -> None:
    client = AWSCRTHTTPClient()

    with patch(
        "utilities_rest.aio.crt.AIOHttpClientConnectionUnified.new"
    ) as mock_new:
        mock_new.return_value = _connection(crt_http.HttpVersion.Http2)

        await client._build_new_connection(urlsplit("https://secure.example.com"))

        call_kwargs = mock_new.call_args.kwargs
        assert call_kwargs["host_name"] == "secure.example.com"
        assert call_kwargs["port"] == 443
        assert call_kwargs["tls_connection_options"] is not None


async def test_build_connection_http_with_port() -> None:
    client = AWSCRTHTTPClient()

    with patch(
        "utilities_rest.aio.crt.AIOHttpClientConnectionUnified.new"
    ) as mock_new:
        mock_new.return_value = _connection(crt_http.HttpVersion.Http1_1)

        await client._build_new_connection(urlsplit("http://example.com:8080"))

        call_kwargs = mock_new.call_args.kwargs
        assert call_kwargs["port"] == 8080
        assert call_kwargs["tls_connection_options"] is None


async def test_build_connection_unsupported_scheme() -> None:
    client = AWSCRTHTTPClient()

    with pytest.raises(RestError, match="does not support URL scheme ftp"):
        await client._build_new_connection(urlsplit("ftp://example.com"))


def test_insecure_tls_context_is_cached() -> None:
    client = AWSCRTHTTPClient()

    insecure = client._get_tls_context(verify=False)

    assert insecure is not client._get_tls_context(verify=True)
    assert insecure is client._get_tls_context(verify=False)


async def test_validate_connection_http2_required() -> None:
    client = AWSCRTHTTPClient(client_config=AWSCRTHTTPClientConfig(force_http_2=True))
    connection = _connection(crt_http.HttpVersion.Http1_1)

    with pytest.raises(RestError, match="HTTP/2 could not be negotiated"):
        await client._validate_connection(connection)

    connection.close.assert_called_once()


async def test_connection_pooling() -> None:
    client = AWSCRTHTTPClient()
    url = urlsplit("https://example.com")

    with patch(
        "utilities_rest.aio.crt.AIOHttpClientConnectionUnified.new"
    ) as mock_new:
        mock_new.return_value = _connection(crt_http.HttpVersion.Http2)

        first = await client._get_connection(url)
        second = await client._get_connection(url)

        assert mock_new.call_count == 1
        assert first is second


async def test_closed_connection_is_replaced() -> None:
    client = AWSCRTHTTPClient()
    url = urlsplit("https://example.com")
    closed = _connection(crt_http.HttpVersion.Http2, is_open=False)
    fresh = _connection(crt_http.HttpVersion.Http2)

    with patch(
        "utilities_rest.aio.crt.AIOHttpClientConnectionUnified.new"
    ) as mock_new:
        mock_new.side_effect = [closed, fresh]

        assert await client._get_connection(url) is closed
        assert await client._get_connection(url) is fresh


async def test_response_chunks() -> None:
    stream = AsyncMock()
    stream.get_next_response_chunk.side_effect = [b"chunk1", b"chunk2", b""]

    response = AWSCRTHTTPResponse(
        status=404, headers={"content-type": "text/plain"}, stream=stream
    )

    assert [chunk async for chunk in response.body] == [b"chunk1", b"chunk2"]
    assert response.status == 404
    assert response.headers == {"content-type": "text/plain"}
    assert response.reason is None
