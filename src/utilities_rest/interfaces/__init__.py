#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..progress import Progress
    from ..response import Response
    from ..sse import ServerSentEvent


type ProgressSink = Callable[["Progress"], None]
"""Receives progress snapshots while an exchange is in flight."""

type ServerSentEventHandler = Callable[
    ["Response", "ServerSentEvent"], Awaitable[None] | None
]
"""Receives each parsed server sent event along with a per-event response."""

type DataReceivedHandler = Callable[["Response"], Any]
"""Receives fixed-size chunks of a response body as they arrive."""


@dataclass(kw_only=True)
class HTTPClientConfiguration:
    """Client-level HTTP configuration.

    :param read_buffer_size: The size in bytes of the chunks read from response bodies.
    """

    read_buffer_size: int = 8192


@dataclass(kw_only=True)
class HTTPRequestConfiguration:
    """Request-level HTTP configuration.

    :param read_timeout: How long, in seconds, the client will wait for the next chunk
        of data before timing out.
    :param ssl: Certificate validation override passed to the transport. None uses the
        transport's default validation.
    :param max_redirects: The maximum number of redirects to follow.
    """

    read_timeout: float | None = None
    ssl: Any = None
    max_redirects: int = 10


class TransferStatus(Protocol):
    """Counters of an in-flight transfer, as read by the progress sampler."""

    @property
    def downloaded_bytes(self) -> int: ...

    @property
    def content_length(self) -> int | None: ...

    @property
    def has_upload(self) -> bool: ...

    @property
    def upload_complete(self) -> bool: ...

    @property
    def upload_progress(self) -> float: ...

    @property
    def download_progress(self) -> float: ...

    @property
    def is_done(self) -> bool: ...

    async def wait(self) -> None:
        """Wait until the transfer is done."""
        ...


@runtime_checkable
class DownloadCache(Protocol):
    """Local store of previously downloaded files."""

    def validate_cache_directory(self) -> None:
        """Create the cache directory if it doesn't exist."""
        ...

    async def validate_cache_directory_async(self) -> None: ...

    def try_get_download_cache_item(
        self, uri: str, file_name: str | None = None
    ) -> tuple[bool, Path]:
        """Look up the cache path for ``uri``.

        :returns: Whether the item exists, and the path it is or would be stored at.
        """
        ...

    async def try_get_download_cache_item_async(
        self, uri: str, file_name: str | None = None
    ) -> tuple[bool, Path]: ...

    def try_delete_cache_item(self, uri: str) -> bool: ...

    def delete_download_cache(self) -> None: ...

    async def write_cache_item_async(self, data: bytes, cache_path: Path) -> None: ...


class Authentication(Protocol):
    """Credentials required by a client of a specific web API."""


class Settings(Protocol):
    """Settings of a client of a specific web API."""

    @property
    def base_request_url_format(self) -> str:
        """The format of every request url.

        The single positional placeholder (``{}`` or ``{0}``) receives the endpoint
        path, e.g. ``"https://api.example.com/v1/{0}"``.
        """
        ...


class Client(Protocol):
    """A client of a specific web API."""

    enable_debug: bool
    """Log the debug dump of every validated response.

    Dumps include headers and bodies, so this can leak credentials in production.
    """
