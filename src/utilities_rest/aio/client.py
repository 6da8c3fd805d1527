#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import asyncio
import json
import logging
from collections.abc import AsyncGenerator, Mapping
from enum import Enum

from ..cache import is_file_url
from ..handlers import (
    BufferDownloadHandler,
    CallbackDownloadHandler,
    DownloadHandler,
    DownloadHandlerKind,
)
from ..interfaces import (
    HTTPRequestConfiguration,
    ProgressSink,
    ServerSentEventHandler,
    TransferStatus,
)
from ..multipart import describe_request_body
from ..parameters import RestParameters
from ..progress import DEFAULT_POLL_INTERVAL, Progress, ProgressSampler
from ..response import Response
from ..sse import ServerSentEvent, ServerSentEventParser
from .eventstream import ServerSentEventQueue
from .interfaces import HTTPClient, HTTPRequest, StreamingBlob
from .local import LocalFileHTTPClient
from .utils import close

_LOGGER = logging.getLogger(__name__)

UPLOAD_METHODS = frozenset({"POST", "PUT", "PATCH"})

# Upload bodies held in memory are sent in slices so upload progress can advance.
_UPLOAD_CHUNK_SIZE = 64 * 1024


class ExchangeResult(Enum):
    """The outcome of an exchange as reported by the transport."""

    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    CONNECTION_ERROR = "connection_error"
    PROTOCOL_ERROR = "protocol_error"
    DATA_PROCESSING_ERROR = "data_processing_error"


class _HandlerError(Exception):
    """Raised when the download handler fails to store received data."""


class Exchange(TransferStatus):
    """Mutable state of a single in-flight HTTP exchange."""

    def __init__(self, request: HTTPRequest, handler: DownloadHandler) -> None:
        self.request = request
        self.handler = handler
        self._has_upload = request.method in UPLOAD_METHODS and bool(request.body)
        self.upload_length: int | None = (
            len(request.body) if isinstance(request.body, bytes | bytearray) else None
        )
        self.uploaded_bytes = 0
        self._upload_complete = not self._has_upload
        self.status = 0
        self.reason: str | None = None
        self.headers: dict[str, str] = {}
        self.result = ExchangeResult.IN_PROGRESS
        self.error: str | None = None
        self._done = asyncio.Event()

    @property
    def downloaded_bytes(self) -> int:
        return self.handler.received_bytes

    @property
    def content_length(self) -> int | None:
        for name, value in self.headers.items():
            if name.lower() == "content-length":
                try:
                    return int(value)
                except ValueError:
                    return None
        return None

    @property
    def has_upload(self) -> bool:
        return self._has_upload

    @property
    def upload_complete(self) -> bool:
        return self._upload_complete

    @property
    def upload_progress(self) -> float:
        if self._upload_complete:
            return 1.0
        if self.upload_length:
            return self.uploaded_bytes / self.upload_length
        return 0.0

    @property
    def download_progress(self) -> float:
        if self.is_done:
            return 1.0
        if self.content_length:
            return self.downloaded_bytes / self.content_length
        return 0.0

    @property
    def is_done(self) -> bool:
        return self._done.is_set()

    @property
    def text(self) -> str | None:
        return self.handler.text

    async def wait(self) -> None:
        await self._done.wait()

    async def track_upload(self, body: StreamingBlob) -> AsyncGenerator[bytes, None]:
        """Stream ``body`` while counting the bytes handed to the transport."""
        if isinstance(body, bytes | bytearray):
            view = memoryview(body)
            for offset in range(0, len(view), _UPLOAD_CHUNK_SIZE):
                chunk = bytes(view[offset : offset + _UPLOAD_CHUNK_SIZE])
                self.uploaded_bytes += len(chunk)
                yield chunk
        else:
            async for chunk in body:
                self.uploaded_bytes += len(chunk)
                yield chunk
        self._upload_complete = True

    def begin_response(
        self, status: int, headers: Mapping[str, str], reason: str | None
    ) -> None:
        self.status = status
        self.headers = dict(headers)
        self.reason = reason
        # Servers may answer before reading the whole request body.
        self._upload_complete = True

    def receive(self, chunk: bytes) -> None:
        try:
            self.handler.receive(chunk)
        except OSError as e:
            raise _HandlerError(str(e)) from e

    def complete(self) -> None:
        try:
            self.handler.complete()
        except OSError as e:
            raise _HandlerError(str(e)) from e

    def succeed(self) -> None:
        if self.status >= 400:
            self.result = ExchangeResult.PROTOCOL_ERROR
            self.error = f"HTTP/1.1 {self.status} {self.reason or ''}".rstrip()
        else:
            self.result = ExchangeResult.SUCCESS

    def fail(self, result: ExchangeResult, error: str) -> None:
        self.result = result
        self.error = error

    def finish(self) -> None:
        self._done.set()

    @property
    def failed(self) -> bool:
        """Whether the exchange counts as failed.

        Only connection and protocol errors count, and only when no status code was
        received or the status code is an error. Any other outcome is a success.
        """
        return self.result in (
            ExchangeResult.CONNECTION_ERROR,
            ExchangeResult.PROTOCOL_ERROR,
        ) and (self.status == 0 or self.status >= 400)


class RestPipeline:
    """Runs a single HTTP exchange and produces its :py:class:`Response`.

    While the exchange is in flight, a progress sampler and a server sent event
    delivery queue may run alongside it. Both are joined before :py:meth:`send`
    returns.
    """

    def __init__(
        self,
        transport: HTTPClient,
        *,
        local_transport: HTTPClient | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        """
        :param transport: The transport used for remote URLs.
        :param local_transport: The transport used for ``file://`` URLs.
        :param poll_interval: Seconds between progress samples and server sent event
            parse passes.
        """
        self.transport = transport
        self.local_transport = local_transport or LocalFileHTTPClient()
        self.poll_interval = poll_interval

    async def send(
        self,
        request: HTTPRequest,
        parameters: RestParameters | None = None,
        server_sent_event_handler: ServerSentEventHandler | None = None,
        *,
        download_handler: DownloadHandler | None = None,
        request_config: HTTPRequestConfiguration | None = None,
    ) -> Response:
        """Send ``request`` and build its response.

        Transport failures are reported on the returned response rather than raised.

        :param request: The request to send.
        :param parameters: Options for the exchange.
        :param server_sent_event_handler: Receives each server sent event parsed from
            the response body, serially and in arrival order.
        :param download_handler: Consumes the response body. Defaults to an in-memory
            buffer.
        :param request_config: Transport configuration for the request.
        """
        parameters = parameters or RestParameters()
        handler = download_handler or BufferDownloadHandler()

        if parameters.headers:
            for name, value in parameters.headers.items():
                request.set_header(name, value)

        if request.method in UPLOAD_METHODS and (
            content_type := request.get_header("Content-Type")
        ):
            request.set_header("Content-Type", content_type.replace('"', ""))

        upload_body = request.body
        request_body = describe_request_body(
            bytes(upload_body) if isinstance(upload_body, bytes | bytearray) else None,
            request.headers,
        )

        exchange = Exchange(request, handler)
        if exchange.has_upload:
            if (
                exchange.upload_length is not None
                and request.get_header("Content-Length") is None
            ):
                request.set_header("Content-Length", str(exchange.upload_length))
            request.body = exchange.track_upload(upload_body)

        if isinstance(handler, CallbackDownloadHandler):
            handler.bind(
                lambda block: self._build_response(
                    exchange, request_body, parameters, successful=True, data=block
                )
            )

        request_config = request_config or HTTPRequestConfiguration(
            ssl=parameters.certificate_handler
        )

        parser: ServerSentEventParser | None = None
        queue: ServerSentEventQueue | None = None
        if server_sent_event_handler is not None:
            parser = ServerSentEventParser()
            queue = ServerSentEventQueue(server_sent_event_handler)

        def enqueue_server_sent_events() -> None:
            if parser is None or queue is None or not (text := exchange.text):
                return
            for event in parser.parse(text):
                parameters.server_sent_events.append(event)
                queue.put(
                    self._event_response(exchange, request_body, parameters, event),
                    event,
                )

        completed = False
        try:
            async with asyncio.TaskGroup() as tg:
                if queue is not None:
                    tg.create_task(queue.run())
                if parameters.progress is not None or queue is not None:
                    sampler = ProgressSampler(
                        exchange,
                        parameters.progress,
                        interval=self.poll_interval,
                        on_tick=enqueue_server_sent_events if queue else None,
                    )
                    tg.create_task(sampler.run())

                try:
                    await self._transfer(exchange, request_config, parameters.timeout)
                finally:
                    exchange.finish()
                    if parameters.progress is not None:
                        self._report_progress(
                            parameters.progress,
                            Progress.completed(exchange.downloaded_bytes),
                        )

                if queue is not None:
                    enqueue_server_sent_events()
                    await queue.drain()
                    queue.stop()
            completed = True
        finally:
            if not completed or exchange.failed:
                handler.abort()
            if parameters.dispose_upload_handler:
                await close(upload_body)
            if (
                parameters.dispose_certificate_handler
                and parameters.certificate_handler is not None
            ):
                await close(parameters.certificate_handler)

        if exchange.failed:
            response = self._build_response(exchange, request_body, parameters, successful=False)
        else:
            match handler.kind:
                case DownloadHandlerKind.BUFFER | DownloadHandlerKind.SCRIPT:
                    body, data = handler.text, handler.data
                case _:
                    body = data = None
            response = self._build_response(
                exchange, request_body, parameters, successful=True, body=body, data=data
            )

        if parameters.dispose_download_handler:
            handler.close()

        _LOGGER.debug(
            "%s %s completed with status %s (%s)",
            request.method,
            request.url,
            exchange.status,
            exchange.result.value,
        )
        return response

    async def _transfer(
        self,
        exchange: Exchange,
        request_config: HTTPRequestConfiguration,
        timeout: float,
    ) -> None:
        request = exchange.request
        transport = self.local_transport if is_file_url(request.url) else self.transport
        try:
            async with asyncio.timeout(timeout if timeout > 0 else None):
                response = await transport.send(request, request_config=request_config)
                try:
                    exchange.begin_response(
                        response.status, response.headers, response.reason
                    )
                    async for chunk in response.body:
                        exchange.receive(chunk)
                finally:
                    await close(response)
            exchange.complete()
        except TimeoutError:
            exchange.fail(ExchangeResult.CONNECTION_ERROR, "Request timeout")
        except _HandlerError as e:
            exchange.fail(ExchangeResult.DATA_PROCESSING_ERROR, str(e))
        except Exception as e:
            # Transport failures are reported on the response rather than raised.
            _LOGGER.debug("%s %s failed", request.method, request.url, exc_info=True)
            exchange.fail(ExchangeResult.CONNECTION_ERROR, self._describe(e))
        else:
            exchange.succeed()

    def _describe(self, error: Exception) -> str:
        return str(error) or type(error).__name__

    def _report_progress(self, sink: ProgressSink, progress: Progress) -> None:
        try:
            sink(progress)
        except Exception:
            _LOGGER.exception("Progress sink raised an exception")

    def _event_response(
        self,
        exchange: Exchange,
        request_body: str | None,
        parameters: RestParameters,
        event: ServerSentEvent,
    ) -> Response:
        payload = event.data if event.data is not None else event.value
        body = payload if isinstance(payload, str) else json.dumps(payload)
        return self._build_response(
            exchange, request_body, parameters, successful=True, body=body
        )

    def _build_response(
        self,
        exchange: Exchange,
        request_body: str | None,
        parameters: RestParameters,
        *,
        successful: bool,
        body: str | None = None,
        data: bytes | None = None,
    ) -> Response:
        return Response(
            url=exchange.request.url,
            method=exchange.request.method,
            request_body=request_body,
            successful=successful,
            completed=exchange.result is ExchangeResult.SUCCESS,
            body=body,
            data=data,
            code=exchange.status,
            headers=dict(exchange.headers),
            error=exchange.error,
            parameters=parameters,
        )

    def __repr__(self) -> str:
        return f"RestPipeline(transport={self.transport!r})"
