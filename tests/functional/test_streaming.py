#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import asyncio
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from utilities_rest import (
    Progress,
    Response,
    RestClient,
    RestParameters,
    ServerSentEvent,
    ServerSentEventKind,
)
from utilities_rest.aio.aiohttp import AIOHTTPClient
from utilities_rest.config import RestConfig


async def events(request: web.Request) -> web.StreamResponse:
    response = web.StreamResponse(headers={"Content-Type": "text/event-stream"})
    await response.prepare(request)
    frames = [
        b": connected\n\n",
        b'event: message\ndata: {"n": 1}\n\n',
        b'data: {"n": 2}\n',
        b"\n",
        b"data: [DONE]\n\n",
        b"data: ignored\n\n",
    ]
    for frame in frames:
        await response.write(frame)
        await asyncio.sleep(0.01)
    await response.write_eof()
    return response


async def todo(request: web.Request) -> web.Response:
    return web.json_response({"id": int(request.match_info["id"]), "done": False})


async def echo(request: web.Request) -> web.Response:
    return web.json_response(
        {
            "contentType": request.headers.get("Content-Type"),
            "body": (await request.read()).decode(),
        }
    )


async def slow(request: web.Request) -> web.Response:
    await asyncio.sleep(0.5)
    return web.Response(text="late")


async def report(request: web.Request) -> web.StreamResponse:
    response = web.StreamResponse(headers={"Content-Length": "30000"})
    await response.prepare(request)
    for _ in range(3):
        await response.write(b"x" * 10000)
        await asyncio.sleep(0.01)
    await response.write_eof()
    return response


@pytest.fixture
async def server() -> AsyncIterator[TestServer]:
    app = web.Application()
    app.router.add_get("/events", events)
    app.router.add_get("/todos/{id}", todo)
    app.router.add_post("/echo", echo)
    app.router.add_get("/slow", slow)
    app.router.add_get("/files/report.txt", report)
    test_server = TestServer(app)
    await test_server.start_server()
    yield test_server
    await test_server.close()


@pytest.fixture
async def client(tmp_path: Path) -> AsyncIterator[RestClient]:
    async def empty_loader() -> dict[str, Any]:
        return {}

    config = RestConfig(download_location=tmp_path, poll_interval=0.005)
    await config.resolve(environment_loader=empty_loader, config_file_loader=empty_loader)
    async with RestClient(config=config, http_client=AIOHTTPClient()) as rest_client:
        yield rest_client


def _url(server: TestServer, path: str) -> str:
    return str(server.make_url(path))


async def test_get_json(server: TestServer, client: RestClient) -> None:
    response = await client.get(_url(server, "/todos/7"))

    response.validate()
    assert response.code == 200
    assert response.body == '{"id": 7, "done": false}'


async def test_post_json_is_echoed(server: TestServer, client: RestClient) -> None:
    response = await client.post(_url(server, "/echo"), '{"title": "x"}')

    response.validate()
    assert response.body is not None
    assert '"contentType": "application/json"' in response.body
    assert '"body": "{\\"title\\": \\"x\\"}"' in response.body


async def test_post_form_content_type_is_unquoted(
    server: TestServer, client: RestClient
) -> None:
    response = await client.post(_url(server, "/echo"), {"field": "value"})

    response.validate()
    assert response.body is not None
    assert "boundary=" in response.body
    assert 'boundary=\\"' not in response.body


async def test_missing_resource(server: TestServer, client: RestClient) -> None:
    response = await client.get(_url(server, "/missing"))

    assert not response.successful
    assert response.code == 404
    assert response.error == "HTTP/1.1 404 Not Found"


async def test_server_sent_events(server: TestServer, client: RestClient) -> None:
    received: list[tuple[str | None, ServerSentEvent]] = []

    async def handler(response: Response, event: ServerSentEvent) -> None:
        received.append((response.body, event))

    parameters = RestParameters()
    response = await client.get(
        _url(server, "/events"),
        server_sent_event_handler=handler,
        parameters=parameters,
    )

    response.validate()
    assert [event.kind for _, event in received] == [
        ServerSentEventKind.COMMENT,
        ServerSentEventKind.EVENT,
        ServerSentEventKind.DATA,
    ]
    assert [body for body, _ in received] == ["connected", '{"n": 1}', '{"n": 2}']
    assert parameters.server_sent_event_count == 3


async def test_timeout(server: TestServer, client: RestClient) -> None:
    response = await client.get(
        _url(server, "/slow"), parameters=RestParameters(timeout=0.1)
    )

    assert not response.successful
    assert response.code == 0
    assert response.error == "Request timeout"


async def test_connection_error(client: RestClient) -> None:
    response = await client.get("http://127.0.0.1:1/unreachable")

    assert not response.successful
    assert response.code == 0
    assert response.error


async def test_download_file_with_progress(
    server: TestServer, client: RestClient, tmp_path: Path
) -> None:
    reports: list[Progress] = []

    path = await client.download_file(
        _url(server, "/files/report.txt"),
        parameters=RestParameters(progress=reports.append),
    )

    assert path.stat().st_size == 30000
    assert path.parent == tmp_path / "download_cache"
    assert reports[-1] == Progress.completed(30000)
