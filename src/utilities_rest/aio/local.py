#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import asyncio
import logging
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import IO

from ..cache import file_url_to_path
from ..interfaces import HTTPClientConfiguration, HTTPRequestConfiguration
from . import HTTPResponse
from .interfaces import HTTPClient, HTTPRequest
from .utils import async_list

logger = logging.getLogger(__name__)


class LocalFileHTTPClient(HTTPClient):
    """Serves ``file://`` URLs from the local file system.

    Only ``GET`` is supported. A missing file is reported as a 404 response so that
    callers see the same failure classification as for remote resources.
    """

    def __init__(self, *, client_config: HTTPClientConfiguration | None = None) -> None:
        self._config = client_config or HTTPClientConfiguration()

    async def send(
        self,
        request: HTTPRequest,
        *,
        request_config: HTTPRequestConfiguration | None = None,
    ) -> HTTPResponse:
        path = file_url_to_path(request.url)
        if request.method != "GET":
            return HTTPResponse(
                status=405, body=async_list([]), reason="Method Not Allowed"
            )

        if not await asyncio.to_thread(path.is_file):
            logger.debug("Local file %s does not exist", path)
            return HTTPResponse(status=404, body=async_list([]), reason="Not Found")

        size = (await asyncio.to_thread(path.stat)).st_size
        return HTTPResponse(
            status=200,
            headers={"Content-Length": str(size)},
            body=self._read_chunks(path),
            reason="OK",
        )

    async def _read_chunks(self, path: Path) -> AsyncGenerator[bytes, None]:
        file: IO[bytes] = await asyncio.to_thread(path.open, "rb")
        try:
            while chunk := await asyncio.to_thread(
                file.read, self._config.read_buffer_size
            ):
                yield chunk
        finally:
            file.close()
