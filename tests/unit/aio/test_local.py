#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from pathlib import Path

from utilities_rest.aio import HTTPRequest
from utilities_rest.aio.local import LocalFileHTTPClient
from utilities_rest.aio.utils import read_streaming_blob_async
from utilities_rest.interfaces import HTTPClientConfiguration


async def test_reads_file_in_chunks(tmp_path: Path) -> None:
    path = tmp_path / "data.bin"
    path.write_bytes(b"0123456789")
    client = LocalFileHTTPClient(
        client_config=HTTPClientConfiguration(read_buffer_size=4)
    )

    response = await client.send(HTTPRequest(url=path.as_uri(), method="GET"))
    chunks = [chunk async for chunk in response.body]

    assert response.status == 200
    assert response.headers == {"Content-Length": "10"}
    assert chunks == [b"0123", b"4567", b"89"]


async def test_missing_file(tmp_path: Path) -> None:
    client = LocalFileHTTPClient()

    response = await client.send(
        HTTPRequest(url=(tmp_path / "missing").as_uri(), method="GET")
    )

    assert response.status == 404
    assert response.reason == "Not Found"
    assert await read_streaming_blob_async(response.body) == b""


async def test_only_get_is_supported(tmp_path: Path) -> None:
    path = tmp_path / "data.bin"
    path.write_bytes(b"x")

    response = await LocalFileHTTPClient().send(
        HTTPRequest(url=path.as_uri(), method="POST", body=b"y")
    )

    assert response.status == 405
    assert path.read_bytes() == b"x"
