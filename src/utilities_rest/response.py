#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .exceptions import RestResponseError
from .parameters import RestParameters
from .utils import parse_json_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class Response:
    """The outcome of a single REST exchange."""

    url: str
    """The requested url."""

    method: str
    """The HTTP method of the request."""

    request_body: str | None = None
    """A description of the request body, kept for debugging."""

    successful: bool
    """Whether the exchange completed without a connection or protocol error."""

    completed: bool = True
    """Whether the transport delivered the whole body.

    A transfer that breaks off after a success status code is still ``successful``
    but not ``completed``.
    """

    body: str | None = None
    """The response body decoded as text."""

    data: bytes | None = field(default=None, repr=False)
    """The raw response body."""

    code: int = 0
    """The HTTP status code, or 0 if no response was received."""

    headers: Mapping[str, str] = field(default_factory=dict[str, str])
    """The response headers."""

    error: str | None = None
    """A description of the failure, if any."""

    parameters: RestParameters | None = field(default=None, repr=False, compare=False)
    """The parameters of the originating request."""

    def validate(self, debug: bool = False, method_name: str | None = None) -> None:
        """Raise if the exchange failed.

        :param debug: Log the response's debug dump when the exchange succeeded.
        :param method_name: Name of the caller, included in the debug dump.
        :raises RestResponseError: If the response isn't successful.
        """
        if not self.successful:
            raise RestResponseError(self, self.to_string(method_name))

        if debug:
            logger.info(self.to_string(method_name))

    def to_string(self, method_name: str | None = None) -> str:
        """Render the exchange as an indented JSON document for debugging."""
        request: dict[str, Any] = {"url": self.url, "method": self.method}
        if self.request_body:
            request["body"] = parse_json_token(self.request_body)

        response: dict[str, Any] = {
            "code": self.code,
            "successful": self.successful,
            "headers": dict(self.headers),
        }
        if self.body:
            response["body"] = parse_json_token(self.body)
        elif self.data:
            response["body"] = f"<{len(self.data)} bytes>"

        if self.parameters is not None and self.parameters.server_sent_events:
            response["server_sent_events"] = [
                json.loads(event.to_json_string())
                for event in self.parameters.server_sent_events
            ]

        if self.error:
            response["error"] = self.error

        document: dict[str, Any] = {"request": request, "response": response}
        if method_name:
            document = {method_name: document}
        return json.dumps(document, indent=2, default=str)

    def __str__(self) -> str:
        return self.to_string()
