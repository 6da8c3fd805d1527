#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from abc import ABCMeta, abstractmethod
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from .aio.interfaces import HTTPClient
from .config import RestConfig
from .exceptions import AuthenticationError
from .interfaces import Authentication, DownloadCache, Settings
from .parameters import RestParameters
from .rest import RestClient


class BaseClient[A: Authentication, S: Settings](RestClient, metaclass=ABCMeta):
    """Base class for clients of a specific web API.

    Subclasses check their credentials in :py:meth:`validate_authentication` and
    provide the headers sent with every request from
    :py:meth:`setup_default_request_headers`. Both run once, during construction.
    Requests made without explicit parameters carry the default headers and honour
    :py:attr:`enable_debug`.
    """

    def __init__(
        self,
        authentication: A | None,
        settings: S | None,
        *,
        enable_debug: bool = False,
        config: RestConfig | None = None,
        http_client: HTTPClient | None = None,
        download_cache: DownloadCache | None = None,
    ) -> None:
        """
        :param authentication: The credentials of the client.
        :param settings: The settings of the client.
        :param enable_debug: Log the debug dump of every validated response.
        :raises AuthenticationError: If ``authentication`` is missing or invalid.
        :raises ValueError: If ``settings`` is missing.
        """
        super().__init__(
            config=config, http_client=http_client, download_cache=download_cache
        )
        if authentication is None:
            raise AuthenticationError(
                f"Missing authentication for {type(self).__name__}"
            )
        if settings is None:
            raise ValueError(f"Missing settings for {type(self).__name__}")

        self._authentication = authentication
        self._settings = settings
        self.enable_debug = enable_debug
        self.validate_authentication()
        self._default_request_headers = MappingProxyType(
            dict(self.setup_default_request_headers())
        )

    @abstractmethod
    def validate_authentication(self) -> None:
        """Check the client's credentials.

        :raises AuthenticationError: If the credentials can't be used.
        """
        ...

    @abstractmethod
    def setup_default_request_headers(self) -> Mapping[str, str]:
        """Build the headers sent with every request of this client."""
        ...

    @property
    @abstractmethod
    def has_valid_authentication(self) -> bool:
        """Whether the client currently holds usable credentials."""
        ...

    @property
    def authentication(self) -> A:
        return self._authentication

    @property
    def settings(self) -> S:
        return self._settings

    @property
    def default_request_headers(self) -> Mapping[str, str]:
        return self._default_request_headers

    def default_parameters(self) -> RestParameters:
        parameters = super().default_parameters()
        parameters.headers = dict(self._default_request_headers)
        parameters.debug = parameters.debug or self.enable_debug
        return parameters


class BaseEndPoint[C: BaseClient[Any, Any]](metaclass=ABCMeta):
    """Base class for a group of related routes of a web API."""

    def __init__(self, client: C) -> None:
        self.client = client

    @property
    @abstractmethod
    def root(self) -> str:
        """The path shared by every route of this endpoint."""
        ...

    def get_url(self, endpoint: str = "") -> str:
        """Format the full url of ``endpoint`` with the client's url format.

        :param endpoint: The route, relative to :py:attr:`root`.
        """
        return self.client.settings.base_request_url_format.format(
            f"{self.root}{endpoint}"
        )
