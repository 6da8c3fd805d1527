#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .response import Response


class RestError(Exception):
    """Base exception type for all exceptions raised by utilities-rest."""


class RestResponseError(RestError):
    """Raised when a response fails validation.

    The failed :py:class:`Response` is kept on the exception so callers can inspect
    the status code, headers, and error text of the exchange.
    """

    def __init__(self, response: "Response", message: str | None = None) -> None:
        self.response = response
        super().__init__(message or response.to_string())


class MissingDependencyError(RestError):
    """Exception type raised when a feature that requires a missing optional
    dependency is called."""


class DownloadCacheError(RestError):
    """Raised when the download cache location is unusable."""


class AuthenticationError(RestError):
    """Raised when a client is missing credentials or its credentials are invalid."""
