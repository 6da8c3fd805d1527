#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import logging
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .response import Response

logger = logging.getLogger(__name__)

DEFAULT_EVENT_CHUNK_SIZE = 512


class DownloadHandlerKind(Enum):
    """How the body of a response is consumed."""

    BUFFER = "buffer"
    """Kept in memory and surfaced as text and bytes."""

    SCRIPT = "script"
    """Kept in memory and additionally handed to a callback in fixed-size chunks."""

    FILE = "file"
    """Written straight to a file."""

    TEXTURE = "texture"
    AUDIO_CLIP = "audio_clip"
    ASSET_BUNDLE = "asset_bundle"


class BufferDownloadHandler:
    """Collects the response body in memory."""

    kind: DownloadHandlerKind = DownloadHandlerKind.BUFFER

    def __init__(self) -> None:
        self._buffer = bytearray()

    @property
    def data(self) -> bytes:
        return bytes(self._buffer)

    @property
    def text(self) -> str:
        return self._buffer.decode("utf-8", errors="replace")

    @property
    def received_bytes(self) -> int:
        return len(self._buffer)

    def receive(self, chunk: bytes) -> None:
        self._buffer += chunk

    def complete(self) -> None:
        pass

    def abort(self) -> None:
        pass

    def close(self) -> None:
        self._buffer = bytearray()


class CallbackDownloadHandler(BufferDownloadHandler):
    """Collects the response body and reports it in fixed-size chunks.

    Chunks are reported through a factory bound by the request pipeline, which wraps
    each chunk in a :py:class:`Response` for ``on_data_received``.
    """

    kind = DownloadHandlerKind.SCRIPT

    def __init__(
        self,
        on_data_received: Callable[["Response"], Any],
        chunk_size: int = DEFAULT_EVENT_CHUNK_SIZE,
    ) -> None:
        super().__init__()
        if chunk_size <= 0:
            raise ValueError("chunk_size must be greater than zero")
        self.on_data_received = on_data_received
        self.chunk_size = chunk_size
        self._pending = bytearray()
        self._response_factory: Callable[[bytes], "Response"] | None = None

    def bind(self, response_factory: Callable[[bytes], "Response"]) -> None:
        self._response_factory = response_factory

    def receive(self, chunk: bytes) -> None:
        super().receive(chunk)
        self._pending += chunk
        while len(self._pending) >= self.chunk_size:
            block = bytes(self._pending[: self.chunk_size])
            del self._pending[: self.chunk_size]
            self._emit(block)

    def complete(self) -> None:
        if self._pending:
            block = bytes(self._pending)
            self._pending.clear()
            self._emit(block)

    def _emit(self, block: bytes) -> None:
        if self._response_factory is None:
            return
        try:
            self.on_data_received(self._response_factory(block))
        except Exception:
            logger.exception("Data received callback raised an exception")


class FileDownloadHandler:
    """Writes the response body to ``path``."""

    kind: DownloadHandlerKind = DownloadHandlerKind.FILE

    def __init__(self, path: Path | str, *, remove_file_on_abort: bool = True) -> None:
        self.path = Path(path)
        self.remove_file_on_abort = remove_file_on_abort
        self._file: IO[bytes] | None = None
        self._received = 0

    @property
    def received_bytes(self) -> int:
        return self._received

    @property
    def data(self) -> bytes | None:
        return None

    @property
    def text(self) -> str | None:
        return None

    def receive(self, chunk: bytes) -> None:
        if self._file is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file = self.path.open("wb")
        self._file.write(chunk)
        self._received += len(chunk)

    def complete(self) -> None:
        if self._file is None:
            # Empty bodies still produce a file.
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.touch()
        self.close()

    def abort(self) -> None:
        self.close()
        if self.remove_file_on_abort and self.path.exists():
            logger.debug("Removing partially downloaded file %s", self.path)
            self.path.unlink()

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None


class AssetDownloadHandler(BufferDownloadHandler):
    """Collects the body of an asset download.

    The bytes are left for the caller to import rather than being surfaced on the
    response.
    """

    def __init__(self, kind: DownloadHandlerKind) -> None:
        super().__init__()
        if kind not in (
            DownloadHandlerKind.TEXTURE,
            DownloadHandlerKind.AUDIO_CLIP,
            DownloadHandlerKind.ASSET_BUNDLE,
        ):
            raise ValueError(f"{kind} is not an asset download handler kind")
        self.kind = kind


type DownloadHandler = (
    BufferDownloadHandler
    | CallbackDownloadHandler
    | FileDownloadHandler
    | AssetDownloadHandler
)
