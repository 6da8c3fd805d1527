#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import asyncio
import configparser
import logging
import os
from collections.abc import Awaitable, Callable, Mapping
from pathlib import Path
from typing import Any, ClassVar, Literal

from .cache import default_download_location
from .progress import DEFAULT_POLL_INTERVAL

logger = logging.getLogger(__name__)

SOURCE_CONSTRUCTOR = "constructor"
SOURCE_ENVIRONMENT = "environment"
SOURCE_CONFIG_FILE = "config_file"
SOURCE_DEFAULT = "default"
SOURCE_IN_CODE_UPDATE = "in_code_update"

SourceType = Literal[
    "constructor",
    "environment",
    "config_file",
    "default",
    "in_code_update",
]

CONFIG_FILE_ENV_VAR = "UTILITIES_REST_CONFIG_FILE"
PROFILE_ENV_VAR = "UTILITIES_REST_PROFILE"

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off"})


class ConfigValue:
    """Configuration value with metadata about its source"""

    def __init__(self, value: Any, source: SourceType):
        self.value = value
        self.source = source

    def __repr__(self) -> str:
        return f"ConfigValue(value={self.value!r}, source={self.source!r})"


class RestConfig:
    """
    REST client configuration with precedence-based resolution.

    Values are resolved from, in order of precedence: constructor arguments,
    environment variables, the config file, and defaults. Constructor arguments use
    the sentinel value (...) so that "not provided" can be told apart from an explicit
    None.

    The config file is an INI file located at ``~/.utilities-rest/config``, or at the
    path given by ``UTILITIES_REST_CONFIG_FILE``. Values are read from the section
    named by ``UTILITIES_REST_PROFILE``, defaulting to ``default``. Values read from
    the environment or the config file are strings and are converted by the field's
    validator.
    """

    CONFIG_FIELDS: ClassVar[dict[str, dict[str, Any]]] = {
        "download_location": {
            "env_var": "UTILITIES_REST_DOWNLOAD_LOCATION",
            "config_key": "download_location",
            "default": None,
            "validator": "_validate_path",
        },
        "timeout": {
            "env_var": "UTILITIES_REST_TIMEOUT",
            "config_key": "timeout",
            "default": -1.0,
            "validator": "_validate_float",
        },
        "poll_interval": {
            "env_var": "UTILITIES_REST_POLL_INTERVAL",
            "config_key": "poll_interval",
            "default": DEFAULT_POLL_INTERVAL,
            "validator": "_validate_poll_interval",
        },
        "cache_downloads": {
            "env_var": "UTILITIES_REST_CACHE_DOWNLOADS",
            "config_key": "cache_downloads",
            "default": True,
            "validator": "_validate_bool",
        },
        "debug": {
            "env_var": "UTILITIES_REST_DEBUG",
            "config_key": "debug",
            "default": False,
            "validator": "_validate_bool",
        },
    }

    def __init__(
        self,
        *,
        download_location: Path | str | None = ...,  # type: ignore[assignment]
        timeout: float = ...,  # type: ignore[assignment]
        poll_interval: float = ...,  # type: ignore[assignment]
        cache_downloads: bool = ...,  # type: ignore[assignment]
        debug: bool = ...,  # type: ignore[assignment]
    ):
        self._constructor_values = {
            k: v for k, v in locals().items() if k != "self" and v is not ...
        }
        self._resolved = False

    @property
    def resolved(self) -> bool:
        return self._resolved

    async def resolve(
        self,
        *,
        environment_loader: Callable[[], Awaitable[Mapping[str, Any]]] | None = None,
        config_file_loader: Callable[[], Awaitable[Mapping[str, Any]]] | None = None,
    ) -> None:
        """Resolve configuration from all sources

        Args:
            environment_loader: Custom environment loader function
            config_file_loader: Custom config file loader function
        """
        if self._resolved:
            raise RuntimeError(
                "Config has already been resolved. Multiple calls to resolve() are not allowed."
            )

        env_task = (environment_loader or self._load_environment_values)()
        config_task = (config_file_loader or self._load_config_file_values)()
        env_values, config_file_values = await asyncio.gather(env_task, config_task)

        for field_name, field_info in self.CONFIG_FIELDS.items():
            resolved_value = self._resolve_field(
                field_name,
                env_values,
                config_file_values,
                field_info["default"],
                field_info["validator"],
            )
            setattr(self, f"_{field_name}", resolved_value)

        self._resolved = True
        logger.debug("Resolved config: %s", self)

    async def _load_environment_values(self) -> Mapping[str, str]:
        return os.environ

    async def _load_config_file_values(self) -> dict[str, Any]:
        def _read_config() -> dict[str, str]:
            config_path = Path(
                os.environ.get(
                    CONFIG_FILE_ENV_VAR, Path.home() / ".utilities-rest" / "config"
                )
            )
            if not config_path.exists():
                return {}

            parser = configparser.ConfigParser()
            parser.read(config_path)

            profile = os.environ.get(PROFILE_ENV_VAR, "default")
            if profile not in parser:
                return {}

            return dict(parser[profile])

        return await asyncio.to_thread(_read_config)

    def _resolve_field(
        self,
        field_name: str,
        env_values: Mapping[str, Any],
        config_file_values: Mapping[str, Any],
        default_value: Any,
        validator: str,
    ) -> ConfigValue:
        field_config = self.CONFIG_FIELDS[field_name]
        env_var = field_config.get("env_var")
        config_key = field_config.get("config_key")

        if field_name in self._constructor_values:
            value = self._constructor_values[field_name]
            source = SOURCE_CONSTRUCTOR
        elif env_var and env_var in env_values:
            value = env_values[env_var]
            source = SOURCE_ENVIRONMENT
        elif config_key and config_key in config_file_values:
            value = config_file_values[config_key]
            source = SOURCE_CONFIG_FILE
        else:
            value = default_value
            source = SOURCE_DEFAULT

        return ConfigValue(getattr(self, validator)(value, field_name), source)

    def _validate_path(self, value: Any, field_name: str) -> Path | None:
        if value is None or value == "":
            return None
        if not isinstance(value, str | Path):
            raise TypeError(f"{field_name} must be a string or Path")
        return Path(value).expanduser()

    def _validate_float(self, value: Any, field_name: str) -> float:
        if isinstance(value, bool):
            raise TypeError(f"{field_name} must be a number, got bool")
        if isinstance(value, int | float):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                raise ValueError(
                    f"{field_name} must be a number, got {value!r}"
                ) from None
        raise TypeError(f"{field_name} must be a number, got {type(value).__name__}")

    def _validate_poll_interval(self, value: Any, field_name: str) -> float:
        interval = self._validate_float(value, field_name)
        if interval <= 0:
            raise ValueError(f"{field_name} must be greater than 0, got {interval}")
        return interval

    def _validate_bool(self, value: Any, field_name: str) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_STRINGS:
                return True
            if lowered in _FALSE_STRINGS:
                return False
            raise ValueError(f"{field_name} must be a boolean, got {value!r}")
        raise TypeError(f"{field_name} must be bool, got {type(value).__name__}")

    def get_config_value_object(self, field_name: str) -> ConfigValue:
        """Get the raw ConfigValue object for a field"""
        if not self._resolved:
            raise RuntimeError("Config must be resolved before accessing values")
        return getattr(self, f"_{field_name}")

    @property
    def download_location(self) -> Path:
        return self._download_location.value or default_download_location()

    @download_location.setter
    def download_location(self, value: Path | str | None) -> None:
        self._download_location = ConfigValue(
            self._validate_path(value, "download_location"), SOURCE_IN_CODE_UPDATE
        )

    @property
    def timeout(self) -> float:
        return self._timeout.value

    @timeout.setter
    def timeout(self, value: float) -> None:
        self._timeout = ConfigValue(
            self._validate_float(value, "timeout"), SOURCE_IN_CODE_UPDATE
        )

    @property
    def poll_interval(self) -> float:
        return self._poll_interval.value

    @poll_interval.setter
    def poll_interval(self, value: float) -> None:
        self._poll_interval = ConfigValue(
            self._validate_poll_interval(value, "poll_interval"), SOURCE_IN_CODE_UPDATE
        )

    @property
    def cache_downloads(self) -> bool:
        return self._cache_downloads.value

    @cache_downloads.setter
    def cache_downloads(self, value: bool) -> None:
        self._cache_downloads = ConfigValue(
            self._validate_bool(value, "cache_downloads"), SOURCE_IN_CODE_UPDATE
        )

    @property
    def debug(self) -> bool:
        return self._debug.value

    @debug.setter
    def debug(self, value: bool) -> None:
        self._debug = ConfigValue(
            self._validate_bool(value, "debug"), SOURCE_IN_CODE_UPDATE
        )

    def __repr__(self) -> str:
        if not self._resolved:
            return "RestConfig(<unresolved>)"
        values = ", ".join(
            f"{name}={getattr(self, f'_{name}').value!r}" for name in self.CONFIG_FIELDS
        )
        return f"RestConfig({values})"
