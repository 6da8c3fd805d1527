#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .handlers import DownloadHandlerKind

type AssetLoader = Callable[[bytes], Any]
"""Builds an in-memory asset from downloaded bytes. Returning None signals failure."""


class AudioType(Enum):
    """Audio encodings that can be requested, mapped to their MIME type."""

    UNKNOWN = None
    ACC = "audio/aac"
    AIFF = "audio/aiff"
    MPEG = "audio/mpeg"
    OGGVORBIS = "audio/ogg"
    WAV = "audio/wav"

    @property
    def mime_type(self) -> str | None:
        return self.value


@dataclass(frozen=True)
class Asset:
    """A downloaded asset."""

    name: str
    """The asset's name, derived from its cache file name."""

    kind: DownloadHandlerKind

    data: bytes = field(repr=False)
    """The raw downloaded bytes."""

    path: Path | None = None
    """Where the asset is cached on disk, if it is."""

    content: Any = None
    """The loader's result, if a loader was given."""


@dataclass(kw_only=True)
class AssetBundleRequestOptions:
    """Options for downloading an asset bundle.

    :param bundle_name: Name used to key the cached bundle together with ``hash``.
    :param hash: Version hash of the bundle. When set, the bundle is cached under its
        name and hash.
    :param crc: Expected CRC-32 checksum of the bundle. 0 disables the check.
    :param timeout: Timeout in seconds. Values <= 0 leave the request's timeout as is.
    :param max_redirects: Maximum number of redirects. Values <= 0 use the default.
    """

    bundle_name: str | None = None
    hash: str | None = None
    crc: int = 0
    timeout: float = 0
    max_redirects: int = 0
