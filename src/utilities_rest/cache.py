#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import asyncio
import hashlib
import logging
import shutil
import tempfile
import uuid
from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlsplit
from urllib.request import url2pathname

from .exceptions import DownloadCacheError
from .interfaces import DownloadCache

logger = logging.getLogger(__name__)

DOWNLOAD_CACHE_DIRECTORY_NAME = "download_cache"


def default_download_location() -> Path:
    return Path(tempfile.gettempdir()) / "utilities_rest"


def generate_guid_string(value: str) -> str:
    """Derive a stable GUID string from the MD5 hash of ``value``.

    The hash bytes are laid out the way .NET's ``Guid(byte[])`` constructor reads
    them, so cache entries stay compatible with other clients of the same cache.
    """
    digest = hashlib.md5(value.encode("utf-8")).digest()
    return str(uuid.UUID(bytes_le=digest))


def get_file_name_from_url(url: str) -> str | None:
    """Return the last path segment of ``url`` if it looks like a file name."""
    path = PurePosixPath(unquote(urlsplit(url).path))
    if path.name and path.suffix:
        return path.name
    return None


def is_file_url(url: str) -> bool:
    return urlsplit(url).scheme == "file"


def file_url_to_path(url: str) -> Path:
    return Path(url2pathname(urlsplit(url).path))


class DiskDownloadCache(DownloadCache):
    """Stores downloads in ``<download_location>/download_cache``."""

    def __init__(self, download_location: Path | str | None = None) -> None:
        """
        :param download_location: Top level directory of the cache. Defaults to a
            directory in the system's temporary directory.
        """
        self._download_location = Path(download_location or default_download_location())

    @property
    def download_location(self) -> Path:
        return self._download_location

    @download_location.setter
    def download_location(self, value: Path | str) -> None:
        value = Path(value)
        if value == self._download_location:
            return
        if value.exists() and not value.is_dir():
            raise DownloadCacheError(f"Invalid download location specified: {value}")
        # Moving the cache abandons everything stored at the previous location.
        self.delete_download_cache()
        self._download_location = value

    @property
    def download_cache_directory(self) -> Path:
        return self._download_location / DOWNLOAD_CACHE_DIRECTORY_NAME

    def validate_cache_directory(self) -> None:
        self.download_cache_directory.mkdir(parents=True, exist_ok=True)

    async def validate_cache_directory_async(self) -> None:
        await asyncio.to_thread(self.validate_cache_directory)

    def try_get_download_cache_item(
        self, uri: str, file_name: str | None = None
    ) -> tuple[bool, Path]:
        self.validate_cache_directory()

        if is_file_url(uri):
            path = file_url_to_path(uri)
            return path.exists(), path

        name = file_name or get_file_name_from_url(uri) or generate_guid_string(uri)
        path = self.download_cache_directory / name
        if path.exists():
            return True, path.resolve()
        return False, path

    async def try_get_download_cache_item_async(
        self, uri: str, file_name: str | None = None
    ) -> tuple[bool, Path]:
        return await asyncio.to_thread(self.try_get_download_cache_item, uri, file_name)

    def try_delete_cache_item(self, uri: str) -> bool:
        exists, path = self.try_get_download_cache_item(uri)
        if not exists:
            return False

        try:
            path.unlink()
        except OSError:
            logger.exception("Failed to delete cached item %s", path)

        return not path.exists()

    def delete_download_cache(self) -> None:
        if self.download_cache_directory.exists():
            logger.debug("Deleting download cache %s", self.download_cache_directory)
            shutil.rmtree(self.download_cache_directory)

    async def write_cache_item_async(self, data: bytes, cache_path: Path) -> None:
        if cache_path.exists():
            return

        try:
            await asyncio.to_thread(cache_path.write_bytes, data)
        except OSError:
            logger.exception("Failed to write asset to disk at %s", cache_path)


class NoOpDownloadCache(DownloadCache):
    """A download cache that never stores anything.

    Lookups always miss. They still return a path under ``download_directory`` so
    file downloads have somewhere to go.
    """

    def __init__(self, download_directory: Path | str | None = None) -> None:
        self.download_directory = Path(download_directory or tempfile.gettempdir())

    def validate_cache_directory(self) -> None:
        pass

    async def validate_cache_directory_async(self) -> None:
        pass

    def try_get_download_cache_item(
        self, uri: str, file_name: str | None = None
    ) -> tuple[bool, Path]:
        if is_file_url(uri):
            return False, file_url_to_path(uri)
        name = file_name or get_file_name_from_url(uri) or generate_guid_string(uri)
        return False, self.download_directory / name

    async def try_get_download_cache_item_async(
        self, uri: str, file_name: str | None = None
    ) -> tuple[bool, Path]:
        return self.try_get_download_cache_item(uri, file_name)

    def try_delete_cache_item(self, uri: str) -> bool:
        return False

    def delete_download_cache(self) -> None:
        pass

    async def write_cache_item_async(self, data: bytes, cache_path: Path) -> None:
        pass
