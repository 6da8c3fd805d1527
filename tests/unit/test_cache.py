#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import asyncio
from pathlib import Path
from unittest.mock import patch

import pytest
from utilities_rest.cache import (
    DOWNLOAD_CACHE_DIRECTORY_NAME,
    DiskDownloadCache,
    NoOpDownloadCache,
    generate_guid_string,
    get_file_name_from_url,
)
from utilities_rest.exceptions import DownloadCacheError
from utilities_rest.interfaces import DownloadCache


def test_generate_guid_string_is_stable() -> None:
    guid = generate_guid_string("https://example.com/a")

    assert guid == generate_guid_string("https://example.com/a")
    assert guid != generate_guid_string("https://example.com/b")
    assert len(guid) == 36


def test_generate_guid_string_uses_little_endian_layout() -> None:
    # md5("") = d41d8cd98f00b204e9800998ecf8427e
    assert generate_guid_string("") == "d98c1dd4-008f-04b2-e980-0998ecf8427e"


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://example.com/images/cat.png", "cat.png"),
        ("https://example.com/images/cat%20one.png?size=2", "cat one.png"),
        ("https://example.com/images/", None),
        ("https://example.com/api/items", None),
        ("https://example.com", None),
    ],
)
def test_get_file_name_from_url(url: str, expected: str | None) -> None:
    assert get_file_name_from_url(url) == expected


def test_disk_cache_implements_protocol(tmp_path: Path) -> None:
    assert isinstance(DiskDownloadCache(tmp_path), DownloadCache)
    assert isinstance(NoOpDownloadCache(tmp_path), DownloadCache)


def test_cache_miss_then_hit(tmp_path: Path) -> None:
    cache = DiskDownloadCache(tmp_path)
    url = "https://example.com/files/data.bin"

    hit, path = cache.try_get_download_cache_item(url)

    assert not hit
    assert path == tmp_path / DOWNLOAD_CACHE_DIRECTORY_NAME / "data.bin"
    assert cache.download_cache_directory.is_dir()

    path.write_bytes(b"payload")
    hit, path = cache.try_get_download_cache_item(url)

    assert hit
    assert path.read_bytes() == b"payload"


async def test_async_lookup_runs_off_the_event_loop(tmp_path: Path) -> None:
    cache = DiskDownloadCache(tmp_path)
    url = "https://example.com/files/data.bin"

    with patch(
        "utilities_rest.cache.asyncio.to_thread", wraps=asyncio.to_thread
    ) as to_thread:
        hit, path = await cache.try_get_download_cache_item_async(url)

    assert not hit
    assert path == tmp_path / DOWNLOAD_CACHE_DIRECTORY_NAME / "data.bin"
    assert to_thread.call_args.args == (cache.try_get_download_cache_item, url, None)

    path.write_bytes(b"payload")
    assert await cache.try_get_download_cache_item_async(url) == (True, path.resolve())


def test_cache_item_names(tmp_path: Path) -> None:
    cache = DiskDownloadCache(tmp_path)
    url = "https://example.com/api/audio"

    _, named = cache.try_get_download_cache_item(url, "speech.mp3")
    _, hashed = cache.try_get_download_cache_item(url)

    assert named.name == "speech.mp3"
    assert hashed.name == generate_guid_string(url)


def test_file_url_is_its_own_cache_entry(tmp_path: Path) -> None:
    cache = DiskDownloadCache(tmp_path / "cache")
    local = tmp_path / "local.txt"

    assert cache.try_get_download_cache_item(local.as_uri()) == (False, local)

    local.write_text("x")
    assert cache.try_get_download_cache_item(local.as_uri()) == (True, local)


async def test_write_cache_item(tmp_path: Path) -> None:
    cache = DiskDownloadCache(tmp_path)
    await cache.validate_cache_directory_async()
    _, path = cache.try_get_download_cache_item("https://example.com/a.bin")

    await cache.write_cache_item_async(b"first", path)
    await cache.write_cache_item_async(b"second", path)

    assert path.read_bytes() == b"first"


def test_delete_cache_item(tmp_path: Path) -> None:
    cache = DiskDownloadCache(tmp_path)
    url = "https://example.com/a.bin"
    _, path = cache.try_get_download_cache_item(url)
    path.write_bytes(b"x")

    assert cache.try_delete_cache_item(url)
    assert not path.exists()
    assert not cache.try_delete_cache_item(url)


def test_delete_download_cache(tmp_path: Path) -> None:
    cache = DiskDownloadCache(tmp_path)
    _, path = cache.try_get_download_cache_item("https://example.com/a.bin")
    path.write_bytes(b"x")

    cache.delete_download_cache()

    assert not cache.download_cache_directory.exists()
    cache.delete_download_cache()


def test_moving_download_location_clears_old_cache(tmp_path: Path) -> None:
    cache = DiskDownloadCache(tmp_path / "old")
    _, path = cache.try_get_download_cache_item("https://example.com/a.bin")
    path.write_bytes(b"x")

    cache.download_location = tmp_path / "new"

    assert not path.exists()
    assert cache.download_cache_directory == (
        tmp_path / "new" / DOWNLOAD_CACHE_DIRECTORY_NAME
    )


def test_download_location_must_be_a_directory(tmp_path: Path) -> None:
    not_a_directory = tmp_path / "file"
    not_a_directory.write_text("x")
    cache = DiskDownloadCache(tmp_path / "cache")

    with pytest.raises(DownloadCacheError):
        cache.download_location = not_a_directory


async def test_no_op_cache_never_hits(tmp_path: Path) -> None:
    cache = NoOpDownloadCache(tmp_path)
    url = "https://example.com/a.bin"
    (tmp_path / "a.bin").write_bytes(b"x")

    assert cache.try_get_download_cache_item(url) == (False, tmp_path / "a.bin")
    assert await cache.try_get_download_cache_item_async(url) == (
        False,
        tmp_path / "a.bin",
    )
    assert not cache.try_delete_cache_item(url)

    await cache.write_cache_item_async(b"y", tmp_path / "b.bin")
    assert not (tmp_path / "b.bin").exists()
