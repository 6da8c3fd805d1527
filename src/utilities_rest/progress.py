#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Self

from .interfaces import ProgressSink, TransferStatus

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.02


class DataUnit(Enum):
    """Unit used to express a transfer speed."""

    b = 1
    kB = 1_000
    MB = 1_000_000
    GB = 1_000_000_000
    TB = 1_000_000_000_000

    @property
    def magnitude(self) -> int:
        return self.value


def select_data_unit(byte_rate: float) -> tuple[int, DataUnit]:
    """Pick the largest unit whose magnitude ``byte_rate`` exceeds.

    :param byte_rate: The measured transfer rate in bytes per second.
    :returns: The rounded speed expressed in the selected unit, and the unit.
    """
    unit = DataUnit.b
    for candidate in (DataUnit.TB, DataUnit.GB, DataUnit.MB, DataUnit.kB):
        if byte_rate > candidate.magnitude:
            unit = candidate
            break
    return round(byte_rate / unit.magnitude), unit


@dataclass(frozen=True)
class Progress:
    """A snapshot of a transfer's progress."""

    position: int
    """The number of bytes transferred so far."""

    length: int
    """The expected total number of bytes, or the position if unknown."""

    percentage: float
    """Completion percentage in the range [0, 100]."""

    speed: float
    """Transfer speed expressed in ``unit`` per second."""

    unit: DataUnit

    @classmethod
    def completed(cls, position: int) -> Self:
        return cls(
            position=position,
            length=position,
            percentage=100.0,
            speed=0,
            unit=DataUnit.b,
        )

    def __str__(self) -> str:
        return (
            f"{self.percentage:.2f}% ({self.position}/{self.length}) "
            f"{self.speed} {self.unit.name}/s"
        )


class ProgressSampler:
    """Periodically samples a transfer and reports :py:class:`Progress` snapshots.

    The sampler also drives ``on_tick`` at the same cadence, which is how incremental
    server sent event parsing is scheduled while the body is still streaming.
    """

    def __init__(
        self,
        transfer: TransferStatus,
        sink: ProgressSink | None = None,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        on_tick: Callable[[], None] | None = None,
    ) -> None:
        """
        :param transfer: The transfer to sample.
        :param sink: Receives each progress snapshot.
        :param interval: Seconds between samples.
        :param on_tick: Called once per sample before progress is reported.
        """
        self._transfer = transfer
        self._sink = sink
        self._interval = interval
        self._on_tick = on_tick
        self._last_position = 0
        self._last_time = time.monotonic()

    def sample(self) -> Progress:
        """Compute a progress snapshot from the transfer's current counters."""
        now = time.monotonic()
        position = self._transfer.downloaded_bytes
        elapsed = now - self._last_time
        delta = position - self._last_position
        byte_rate = delta / elapsed if elapsed > 0 else 0
        self._last_position = position
        self._last_time = now

        speed, unit = select_data_unit(byte_rate)
        length = self._transfer.content_length or position

        if self._transfer.has_upload and not self._transfer.upload_complete:
            fraction = self._transfer.upload_progress
        else:
            fraction = self._transfer.download_progress

        return Progress(
            position=position,
            length=length,
            percentage=min(fraction, 1.0) * 100,
            speed=speed,
            unit=unit,
        )

    async def run(self) -> None:
        """Sample until the transfer is done."""
        logger.debug("Starting progress sampler with interval %s", self._interval)
        while not self._transfer.is_done:
            try:
                if self._on_tick is not None:
                    self._on_tick()
                if self._sink is not None:
                    self._sink(self.sample())
            except Exception:
                logger.exception("Progress sampler tick failed")
            await self._wait()
        logger.debug("Progress sampler finished")

    async def _wait(self) -> None:
        try:
            await asyncio.wait_for(self._transfer.wait(), timeout=self._interval)
        except TimeoutError:
            pass
