#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import asyncio
import logging
import zlib
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Self

from .aio import HTTPRequest
from .aio.aiohttp import AIOHTTPClient
from .aio.client import RestPipeline
from .aio.interfaces import HTTPClient
from .aio.utils import close
from .assets import Asset, AssetBundleRequestOptions, AssetLoader, AudioType
from .cache import (
    DiskDownloadCache,
    file_url_to_path,
    generate_guid_string,
    get_file_name_from_url,
    is_file_url,
)
from .config import RestConfig
from .exceptions import RestResponseError
from .handlers import (
    DEFAULT_EVENT_CHUNK_SIZE,
    AssetDownloadHandler,
    BufferDownloadHandler,
    CallbackDownloadHandler,
    DownloadHandler,
    DownloadHandlerKind,
    FileDownloadHandler,
)
from .interfaces import (
    DataReceivedHandler,
    DownloadCache,
    HTTPRequestConfiguration,
    ServerSentEventHandler,
)
from .multipart import Form, encode_multipart
from .parameters import RestParameters
from .progress import Progress
from .response import Response

logger = logging.getLogger(__name__)

APPLICATION_JSON = "application/json"
APPLICATION_OCTET_STREAM = "application/octet-stream"

type RequestData = str | bytes | Form


class RestClient:
    """Issues REST requests and downloads assets.

    The client resolves its :py:class:`RestConfig` and creates its download cache the
    first time it is used, or when entered as an async context manager::

        async with RestClient() as client:
            response = await client.get("https://example.com/todos/1")
            response.validate()
    """

    def __init__(
        self,
        *,
        config: RestConfig | None = None,
        http_client: HTTPClient | None = None,
        download_cache: DownloadCache | None = None,
    ) -> None:
        """
        :param config: Client configuration. Resolved on first use if it isn't yet.
        :param http_client: The transport for remote URLs. Defaults to aiohttp.
        :param download_cache: The cache used by the download helpers. Defaults to a
            :py:class:`DiskDownloadCache` at the configured download location.
        """
        self._config = config or RestConfig()
        self._http_client = http_client
        self._download_cache = download_cache
        self._pipeline: RestPipeline | None = None
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> Self:
        await self.resolve()
        return self

    async def __aexit__(self, *exc_details: Any) -> None:
        await self.close()

    @property
    def config(self) -> RestConfig:
        return self._config

    @property
    def download_cache(self) -> DownloadCache:
        if self._download_cache is None:
            raise RuntimeError(
                "The download cache is created when the client is resolved. "
                "Call resolve() first."
            )
        return self._download_cache

    async def resolve(self) -> None:
        """Resolve configuration and create the transport and download cache."""
        async with self._lock:
            if self._pipeline is not None:
                return
            if not self._config.resolved:
                await self._config.resolve()
            if self._http_client is None:
                self._http_client = AIOHTTPClient()
            if self._download_cache is None:
                self._download_cache = DiskDownloadCache(self._config.download_location)
            await self._download_cache.validate_cache_directory_async()
            self._pipeline = RestPipeline(
                self._http_client, poll_interval=self._config.poll_interval
            )

    async def close(self) -> None:
        """Close the underlying transport."""
        await close(self._http_client)

    def default_parameters(self) -> RestParameters:
        """Parameters built from the client configuration."""
        return RestParameters(
            timeout=self._config.timeout,
            cache_downloads=self._config.cache_downloads,
            debug=self._config.debug,
        )

    async def send(
        self,
        request: HTTPRequest,
        parameters: RestParameters | None = None,
        server_sent_event_handler: ServerSentEventHandler | None = None,
        *,
        download_handler: DownloadHandler | None = None,
        request_config: HTTPRequestConfiguration | None = None,
    ) -> Response:
        """Send a request and return its response.

        Transport failures are reported on the response. Use
        :py:meth:`Response.validate` to raise on failure.

        :param request: The request to send.
        :param parameters: Options for the exchange. Defaults to the client config.
        :param server_sent_event_handler: Receives each server sent event parsed from
            the response body, serially and in arrival order.
        :param download_handler: Consumes the response body.
        :param request_config: Transport configuration for the request.
        """
        await self.resolve()
        assert self._pipeline is not None
        return await self._pipeline.send(
            request,
            parameters or self.default_parameters(),
            server_sent_event_handler,
            download_handler=download_handler,
            request_config=request_config,
        )

    # region CRUD

    async def get(
        self,
        url: str,
        *,
        server_sent_event_handler: ServerSentEventHandler | None = None,
        data_received: DataReceivedHandler | None = None,
        event_chunk_size: int = DEFAULT_EVENT_CHUNK_SIZE,
        parameters: RestParameters | None = None,
    ) -> Response:
        """Send a GET request.

        :param url: The url to request.
        :param server_sent_event_handler: Receives server sent events as they arrive.
        :param data_received: Receives the body in chunks of ``event_chunk_size``
            bytes as it arrives.
        :param event_chunk_size: Size of the chunks handed to ``data_received``.
        :param parameters: Options for the exchange.
        """
        return await self._send_data(
            "GET",
            url,
            None,
            server_sent_event_handler=server_sent_event_handler,
            data_received=data_received,
            event_chunk_size=event_chunk_size,
            parameters=parameters,
        )

    async def post(
        self,
        url: str,
        data: RequestData | None = None,
        *,
        server_sent_event_handler: ServerSentEventHandler | None = None,
        data_received: DataReceivedHandler | None = None,
        event_chunk_size: int = DEFAULT_EVENT_CHUNK_SIZE,
        parameters: RestParameters | None = None,
    ) -> Response:
        """Send a POST request.

        :param url: The url to request.
        :param data: A JSON string, raw bytes, or a multipart form.
        :param server_sent_event_handler: Receives server sent events as they arrive.
        :param data_received: Receives the body in chunks as it arrives.
        :param event_chunk_size: Size of the chunks handed to ``data_received``.
        :param parameters: Options for the exchange.
        """
        return await self._send_data(
            "POST",
            url,
            data,
            server_sent_event_handler=server_sent_event_handler,
            data_received=data_received,
            event_chunk_size=event_chunk_size,
            parameters=parameters,
        )

    async def put(
        self,
        url: str,
        data: str | bytes,
        *,
        parameters: RestParameters | None = None,
    ) -> Response:
        """Send a PUT request with a JSON string or raw bytes."""
        return await self._send_data("PUT", url, data, parameters=parameters)

    async def patch(
        self,
        url: str,
        data: str | bytes,
        *,
        parameters: RestParameters | None = None,
    ) -> Response:
        """Send a PATCH request with a JSON string or raw bytes."""
        return await self._send_data("PATCH", url, data, parameters=parameters)

    async def delete(
        self,
        url: str,
        *,
        parameters: RestParameters | None = None,
    ) -> Response:
        """Send a DELETE request."""
        return await self._send_data("DELETE", url, None, parameters=parameters)

    async def _send_data(
        self,
        method: str,
        url: str,
        data: RequestData | None,
        *,
        server_sent_event_handler: ServerSentEventHandler | None = None,
        data_received: DataReceivedHandler | None = None,
        event_chunk_size: int = DEFAULT_EVENT_CHUNK_SIZE,
        parameters: RestParameters | None = None,
    ) -> Response:
        request = HTTPRequest(url=url, method=method)
        match data:
            case None:
                pass
            case str():
                request.body = data.encode("utf-8")
                request.set_header("Content-Type", APPLICATION_JSON)
            case bytes():
                request.body = data
                request.set_header("Content-Type", APPLICATION_OCTET_STREAM)
            case Mapping():
                body, content_type = encode_multipart(data)
                request.body = body
                request.set_header("Content-Type", content_type)
            case _:
                raise TypeError(f"Unsupported request data type: {type(data)}")

        handler: DownloadHandler
        if data_received is not None:
            handler = CallbackDownloadHandler(data_received, event_chunk_size)
        else:
            handler = BufferDownloadHandler()

        return await self.send(
            request,
            parameters,
            server_sent_event_handler,
            download_handler=handler,
        )

    # endregion CRUD

    # region Multimedia

    async def download_texture(
        self,
        url: str,
        file_name: str | None = None,
        parameters: RestParameters | None = None,
        *,
        loader: AssetLoader | None = None,
    ) -> Asset:
        """Download an image, reading it from the download cache when possible.

        :param url: The url of the image. ``file://`` urls are read from disk.
        :param file_name: The name to cache the image under. Defaults to the file name
            in the url, or a hash of the url.
        :param parameters: Options for the exchange.
        :param loader: Builds the texture from the downloaded bytes.
        :raises RestResponseError: If the download fails or ``loader`` returns None.
        """
        return await self._download_asset(
            url,
            DownloadHandlerKind.TEXTURE,
            file_name=file_name,
            parameters=parameters,
            loader=loader,
            failure_message=f'Failed to load texture from "{url}"!',
        )

    async def download_audio_clip(
        self,
        url: str,
        audio_type: AudioType = AudioType.UNKNOWN,
        *,
        http_method: str = "GET",
        file_name: str | None = None,
        json_data: str | None = None,
        payload: bytes | None = None,
        parameters: RestParameters | None = None,
        loader: AssetLoader | None = None,
    ) -> Asset:
        """Download an audio clip, reading it from the download cache when possible.

        :param url: The url of the audio clip.
        :param audio_type: The expected encoding, sent as the ``Accept`` header.
        :param http_method: ``GET``, or ``POST`` to send ``json_data`` or ``payload``.
        :param file_name: The name to cache the clip under.
        :param json_data: JSON body of a ``POST`` request.
        :param payload: Raw body of a ``POST`` request.
        :param parameters: Options for the exchange.
        :param loader: Builds the audio clip from the downloaded bytes.
        """
        request_data, content_type = _audio_request_data(http_method, json_data, payload)
        return await self._download_asset(
            url,
            DownloadHandlerKind.AUDIO_CLIP,
            file_name=file_name,
            parameters=parameters,
            loader=loader,
            method=http_method,
            data=request_data,
            content_type=content_type,
            accept=audio_type.mime_type,
            failure_message=f'Failed to download audio clip from "{url}"!',
        )

    async def stream_audio(
        self,
        url: str,
        on_stream_playback_ready: Callable[[Asset], Any],
        audio_type: AudioType = AudioType.UNKNOWN,
        *,
        http_method: str = "POST",
        file_name: str | None = None,
        json_data: str | None = None,
        payload: bytes | None = None,
        playback_amount_threshold: int = 10000,
        parameters: RestParameters | None = None,
        loader: AssetLoader | None = None,
    ) -> Asset:
        """Download an audio clip, signalling once enough has arrived to start playback.

        ``on_stream_playback_ready`` is called once with the partial clip when more
        than ``playback_amount_threshold`` bytes have been downloaded, or with the full
        clip if the download completes first. Streamed audio isn't cached.

        :returns: The fully downloaded clip.
        """
        if is_file_url(url):
            http_method = "GET"
        request_data, content_type = _audio_request_data(
            http_method, json_data, payload
        )

        parameters = (parameters or self.default_parameters()).clone()
        name = Path(file_name).stem if file_name else _asset_name(url)
        handler = AssetDownloadHandler(DownloadHandlerKind.AUDIO_CLIP)
        stream_started = False
        caller_progress = parameters.progress

        def notify(data: bytes) -> None:
            nonlocal stream_started
            stream_started = True
            on_stream_playback_ready(
                Asset(
                    name=name,
                    kind=DownloadHandlerKind.AUDIO_CLIP,
                    data=data,
                    content=loader(data) if loader else None,
                )
            )

        def on_progress(report: Progress) -> None:
            if caller_progress is not None:
                caller_progress(report)
            if stream_started or handler.received_bytes <= playback_amount_threshold:
                return
            if report.percentage < 100:
                try:
                    notify(handler.data)
                except Exception:
                    logger.debug("Stream playback callback failed", exc_info=True)

        parameters.progress = on_progress
        parameters.dispose_download_handler = False
        request = self._build_request(
            url, http_method, request_data, content_type, audio_type.mime_type
        )

        try:
            response = await self.send(request, parameters, download_handler=handler)
            response.validate(parameters.debug)
            data = handler.data
        finally:
            handler.close()

        content = None
        if loader is not None:
            content = loader(data)
            if content is None:
                raise RestResponseError(
                    response, f'Failed to load audio clip from "{url}"!'
                )

        if not stream_started:
            notify(data)

        return Asset(
            name=name,
            kind=DownloadHandlerKind.AUDIO_CLIP,
            data=data,
            content=content,
        )

    async def download_asset_bundle(
        self,
        url: str,
        options: AssetBundleRequestOptions | None = None,
        parameters: RestParameters | None = None,
        *,
        loader: AssetLoader | None = None,
    ) -> Asset:
        """Download an asset bundle.

        Bundles are only cached when ``options.hash`` is set.

        :raises RestResponseError: If the download fails, the CRC doesn't match, or
            ``loader`` returns None.
        """
        options = options or AssetBundleRequestOptions()
        parameters = (parameters or self.default_parameters()).clone()
        request_config = HTTPRequestConfiguration(ssl=parameters.certificate_handler)
        if options.timeout > 0:
            parameters.timeout = options.timeout
        if options.max_redirects > 0:
            request_config.max_redirects = options.max_redirects

        file_name = None
        if options.hash:
            file_name = f"{options.bundle_name or _asset_name(url)}_{options.hash}"
        else:
            parameters.cache_downloads = False

        return await self._download_asset(
            url,
            DownloadHandlerKind.ASSET_BUNDLE,
            file_name=file_name,
            parameters=parameters,
            loader=loader,
            request_config=request_config,
            crc=options.crc,
            failure_message=f'Failed to download asset bundle from "{url}"!',
        )

    async def download_file(
        self,
        url: str,
        file_name: str | None = None,
        parameters: RestParameters | None = None,
    ) -> Path:
        """Download a file into the download cache.

        :returns: The path of the downloaded file. A cached copy is returned without
            downloading when ``parameters.cache_downloads`` is set.
        :raises RestResponseError: If the download fails. Partial files are removed.
        """
        await self.resolve()
        parameters = parameters or self.default_parameters()
        exists, path = await self.download_cache.try_get_download_cache_item_async(
            url, file_name
        )
        if exists and parameters.cache_downloads:
            logger.debug("Found %s in the download cache at %s", url, path)
            return path

        handler = FileDownloadHandler(path, remove_file_on_abort=True)
        response = await self.send(
            HTTPRequest(url=url, method="GET"), parameters, download_handler=handler
        )
        response.validate(parameters.debug)
        if not response.completed:
            handler.abort()
            raise RestResponseError(
                response, f'Incomplete download from "{url}": {response.error}'
            )
        return path

    async def download_file_bytes(
        self,
        url: str,
        file_name: str | None = None,
        parameters: RestParameters | None = None,
    ) -> bytes | None:
        """Download a file into the download cache and read it back."""
        path = await self.download_file(url, file_name, parameters)
        if not await asyncio.to_thread(path.exists):
            return None
        return await asyncio.to_thread(path.read_bytes)

    async def download_bytes(
        self,
        url: str,
        parameters: RestParameters | None = None,
    ) -> bytes:
        """Download a resource into memory without touching the download cache."""
        parameters = parameters or self.default_parameters()
        response = await self.send(
            HTTPRequest(url=url, method="GET"),
            parameters,
            download_handler=BufferDownloadHandler(),
        )
        response.validate(parameters.debug)
        return response.data or b""

    async def _download_asset(
        self,
        url: str,
        kind: DownloadHandlerKind,
        *,
        file_name: str | None,
        parameters: RestParameters | None,
        loader: AssetLoader | None,
        failure_message: str,
        method: str = "GET",
        data: bytes | None = None,
        content_type: str | None = None,
        accept: str | None = None,
        request_config: HTTPRequestConfiguration | None = None,
        crc: int = 0,
    ) -> Asset:
        await self.resolve()
        parameters = (parameters or self.default_parameters()).clone(
            dispose_download_handler=False
        )

        if is_file_url(url):
            is_cached = True
            cache_path = file_url_to_path(url)
        else:
            cache = self.download_cache
            found, cache_path = await cache.try_get_download_cache_item_async(
                url, file_name
            )
            is_cached = found and parameters.cache_downloads

        if is_cached:
            logger.debug("Loading %s from %s", url, cache_path)
            url = cache_path.absolute().as_uri()
            method, data, content_type = "GET", None, None

        handler = AssetDownloadHandler(kind)
        request = self._build_request(url, method, data, content_type, accept)
        try:
            response = await self.send(
                request,
                parameters,
                download_handler=handler,
                request_config=request_config,
            )
            response.validate(parameters.debug)
            asset_data = handler.data
        finally:
            handler.close()

        if crc and zlib.crc32(asset_data) & 0xFFFFFFFF != crc:
            raise RestResponseError(
                response, f'CRC mismatch for asset downloaded from "{url}"!'
            )

        stored = is_cached or (parameters.cache_downloads and response.completed)
        if stored and not is_cached:
            await self.download_cache.write_cache_item_async(asset_data, cache_path)

        content = None
        if loader is not None:
            content = loader(asset_data)
            if content is None:
                raise RestResponseError(response, failure_message)

        return Asset(
            name=cache_path.stem,
            kind=kind,
            data=asset_data,
            path=cache_path if stored else None,
            content=content,
        )

    def _build_request(
        self,
        url: str,
        method: str,
        data: bytes | None,
        content_type: str | None,
        accept: str | None,
    ) -> HTTPRequest:
        request = HTTPRequest(url=url, method=method)
        if data is not None:
            request.body = data
        if content_type:
            request.set_header("Content-Type", content_type)
        if accept:
            request.set_header("Accept", accept)
        return request

    # endregion Multimedia


def _audio_request_data(
    http_method: str, json_data: str | None, payload: bytes | None
) -> tuple[bytes | None, str | None]:
    if http_method != "POST":
        return None, None
    if json_data:
        if payload is not None:
            raise ValueError(
                "payload and json_data cannot be supplied in the same request. "
                "Choose either one or the other."
            )
        return json_data.encode("utf-8"), APPLICATION_JSON
    return payload, None


def _asset_name(url: str) -> str:
    file_name = get_file_name_from_url(url)
    return Path(file_name).stem if file_name else generate_guid_string(url)
