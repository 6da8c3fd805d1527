#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from asyncio import iscoroutine, sleep
from collections.abc import AsyncIterable, Iterable
from typing import Any

from .interfaces import StreamingBlob


async def async_list[E](lst: Iterable[E]) -> AsyncIterable[E]:
    """Turn an Iterable into an AsyncIterable."""
    for x in lst:
        await sleep(0)
        yield x


async def read_streaming_blob_async(body: StreamingBlob) -> bytes:
    """Asynchronously reads a streaming blob into bytes.

    :param body: The streaming blob to read from.
    """
    match body:
        case bytes():
            return body
        case bytearray():
            return bytes(body)
        case AsyncIterable():
            full = bytearray()
            async for chunk in body:
                full += chunk
            return bytes(full)
        case _:
            raise TypeError(f"Expected type {StreamingBlob}, but was {type(body)}")


async def close(stream: Any) -> None:
    """Close a stream, awaiting it if it's async."""
    if (close := getattr(stream, "close", None)) is not None:
        if iscoroutine(result := close()):
            await result


async def maybe_await(result: Any) -> Any:
    """Await ``result`` if it's a coroutine, otherwise return it unchanged."""
    if iscoroutine(result):
        return await result
    return result
