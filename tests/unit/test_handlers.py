#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from pathlib import Path
from unittest.mock import Mock

import pytest
from utilities_rest.handlers import (
    AssetDownloadHandler,
    BufferDownloadHandler,
    CallbackDownloadHandler,
    DownloadHandlerKind,
    FileDownloadHandler,
)


def test_buffer_handler() -> None:
    handler = BufferDownloadHandler()
    handler.receive(b"caf")
    handler.receive("é".encode())

    assert handler.kind is DownloadHandlerKind.BUFFER
    assert handler.received_bytes == 5
    assert handler.text == "café"
    assert handler.data == "café".encode()

    handler.close()
    assert handler.data == b""


def test_buffer_handler_replaces_invalid_utf8() -> None:
    handler = BufferDownloadHandler()
    handler.receive(b"\xffok")

    assert handler.text == "\ufffdok"


def test_callback_handler_emits_fixed_size_chunks() -> None:
    callback = Mock()
    handler = CallbackDownloadHandler(callback, chunk_size=4)
    handler.bind(lambda block: block)  # type: ignore[arg-type, return-value]

    handler.receive(b"abcdef")
    handler.receive(b"ghij")
    handler.complete()

    assert handler.kind is DownloadHandlerKind.SCRIPT
    assert [c.args[0] for c in callback.call_args_list] == [b"abcd", b"efgh", b"ij"]
    assert handler.data == b"abcdefghij"


def test_callback_handler_unbound_is_silent() -> None:
    callback = Mock()
    handler = CallbackDownloadHandler(callback, chunk_size=1)
    handler.receive(b"ab")
    handler.complete()

    callback.assert_not_called()


def test_callback_handler_logs_callback_errors() -> None:
    callback = Mock(side_effect=ValueError("boom"))
    handler = CallbackDownloadHandler(callback, chunk_size=2)
    handler.bind(lambda block: block)  # type: ignore[arg-type, return-value]

    handler.receive(b"abcd")

    assert callback.call_count == 2


@pytest.mark.parametrize("chunk_size", [0, -1])
def test_callback_handler_rejects_invalid_chunk_size(chunk_size: int) -> None:
    with pytest.raises(ValueError):
        CallbackDownloadHandler(Mock(), chunk_size=chunk_size)


def test_file_handler_writes_body(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "out.bin"
    handler = FileDownloadHandler(path)

    handler.receive(b"hello ")
    handler.receive(b"world")
    handler.complete()

    assert handler.kind is DownloadHandlerKind.FILE
    assert handler.received_bytes == 11
    assert path.read_bytes() == b"hello world"
    assert handler.data is None
    assert handler.text is None


def test_file_handler_creates_empty_file(tmp_path: Path) -> None:
    path = tmp_path / "empty.bin"
    FileDownloadHandler(path).complete()

    assert path.read_bytes() == b""


def test_file_handler_abort_removes_partial_file(tmp_path: Path) -> None:
    path = tmp_path / "partial.bin"
    handler = FileDownloadHandler(path)
    handler.receive(b"part")

    handler.abort()

    assert not path.exists()


def test_file_handler_abort_can_keep_file(tmp_path: Path) -> None:
    path = tmp_path / "partial.bin"
    handler = FileDownloadHandler(path, remove_file_on_abort=False)
    handler.receive(b"part")

    handler.abort()

    assert path.read_bytes() == b"part"


@pytest.mark.parametrize(
    "kind",
    [
        DownloadHandlerKind.TEXTURE,
        DownloadHandlerKind.AUDIO_CLIP,
        DownloadHandlerKind.ASSET_BUNDLE,
    ],
)
def test_asset_handler(kind: DownloadHandlerKind) -> None:
    handler = AssetDownloadHandler(kind)
    handler.receive(b"\x89PNG")

    assert handler.kind is kind
    assert handler.data == b"\x89PNG"


@pytest.mark.parametrize(
    "kind",
    [DownloadHandlerKind.BUFFER, DownloadHandlerKind.SCRIPT, DownloadHandlerKind.FILE],
)
def test_asset_handler_rejects_other_kinds(kind: DownloadHandlerKind) -> None:
    with pytest.raises(ValueError):
        AssetDownloadHandler(kind)
