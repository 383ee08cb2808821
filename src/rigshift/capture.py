"""Photo capture capability.

The workflow only needs to know that a photo reference exists; how the
picture is taken is up to the device.  :class:`MockCamera` stands in for a
real camera on machines without one.
"""

from __future__ import annotations

import asyncio
import itertools
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol


@dataclass(frozen=True)
class PhotoRef:
    """Reference to a stored photo."""

    ref: str
    timestamp: str
    size_bytes: int

    def to_dict(self) -> dict[str, object]:
        return {"ref": self.ref, "timestamp": self.timestamp, "size_bytes": self.size_bytes}


class PhotoCapture(Protocol):
    async def capture_photo(self) -> PhotoRef: ...


class CaptureError(Exception):
    """Raised by a camera that could not take a picture."""


class MockCamera:
    """Produces ``file://mock-photo-<n>.jpg`` references without hardware.

    Args:
        delay: Seconds to wait per capture.
        seed: Seed for the simulated file sizes (1-5 MB).
    """

    def __init__(self, delay: float = 0.0, seed: int | None = None) -> None:
        self.delay = delay
        self._counter = itertools.count(1)
        self._random = random.Random(seed)
        self.captured: list[PhotoRef] = []

    async def capture_photo(self) -> PhotoRef:
        if self.delay:
            await asyncio.sleep(self.delay)
        photo = PhotoRef(
            ref=f"file://mock-photo-{next(self._counter)}.jpg",
            timestamp=datetime.now(timezone.utc).isoformat(),
            size_bytes=self._random.randint(1_000_000, 5_000_000),
        )
        self.captured.append(photo)
        return photo

    def total_size_mb(self) -> str:
        return f"{sum(p.size_bytes for p in self.captured) / 1024 / 1024:.2f}"


async def capture_multiple(camera: PhotoCapture, count: int) -> list[PhotoRef]:
    """Take ``count`` photos one after another; never concurrently."""
    photos: list[PhotoRef] = []
    for _ in range(count):
        photos.append(await camera.capture_photo())
    return photos
