#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from .base import BaseClient, BaseEndPoint
from .exceptions import AuthenticationError, RestError, RestResponseError
from .parameters import RestParameters
from .progress import DataUnit, Progress
from .response import Response
from .rest import RestClient
from .sse import ServerSentEvent, ServerSentEventKind

__version__: str = "0.1.0"

__all__ = [
    "AuthenticationError",
    "BaseClient",
    "BaseEndPoint",
    "DataUnit",
    "Progress",
    "Response",
    "RestClient",
    "RestError",
    "RestParameters",
    "RestResponseError",
    "ServerSentEvent",
    "ServerSentEventKind",
]
