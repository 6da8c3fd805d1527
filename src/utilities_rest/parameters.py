#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from dataclasses import dataclass, field, replace
from typing import Any, Self

from .interfaces import ProgressSink
from .sse import ServerSentEvent


@dataclass(kw_only=True)
class RestParameters:
    """Options that apply to a single REST exchange."""

    headers: dict[str, str] | None = None
    """Additional request headers."""

    progress: ProgressSink | None = None
    """Receives progress snapshots while the exchange is in flight."""

    timeout: float = -1
    """Timeout of the exchange in seconds. Values <= 0 disable the timeout."""

    dispose_download_handler: bool = True
    """Release the download handler's buffer once the response is built."""

    dispose_upload_handler: bool = True
    """Close the request body once it has been sent, if it can be closed."""

    certificate_handler: Any = None
    """Certificate validation override handed to the transport.

    For the aiohttp transport this is anything accepted by its ``ssl`` argument: an
    :py:class:`ssl.SSLContext`, an ``aiohttp.Fingerprint``, or ``False`` to skip
    validation.
    """

    dispose_certificate_handler: bool = True
    """Close the certificate handler once the exchange is done, if it can be closed."""

    cache_downloads: bool = True
    """Whether download helpers read from and write to the download cache."""

    debug: bool = False
    """Whether validated responses log their debug dump."""

    server_sent_events: list[ServerSentEvent] = field(
        default_factory=list[ServerSentEvent], init=False
    )
    """Every server sent event parsed during the exchange, in arrival order."""

    @property
    def server_sent_event_count(self) -> int:
        return len(self.server_sent_events)

    def clone(self, **overrides: Any) -> Self:
        """Copy these parameters, replacing the given fields.

        The copy starts with an empty list of server sent events.
        """
        return replace(self, **overrides)
