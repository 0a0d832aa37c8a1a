from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import numpy as np

from .errors import AcquisitionError

logger = logging.getLogger(__name__)

# OpenCV delivers BGR(A); weights are listed in that channel order.
_BGR_LUMA_WEIGHTS = np.array([0.114, 0.587, 0.299], dtype=np.float64)


@dataclass(frozen=True)
class Frame:
    """Single acquired video frame with its timestamp in seconds."""

    t_s: float
    image: np.ndarray


class FrameSource(Protocol):
    wall_clock: bool

    async def open(self) -> None: ...

    async def read(self) -> Frame | None: ...

    async def close(self) -> None: ...


def to_grayscale(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return image
    if image.ndim != 3 or image.shape[2] not in (3, 4):
        raise ValueError(f"unsupported frame shape: {image.shape}")

    luma = image[:, :, :3].astype(np.float64) @ _BGR_LUMA_WEIGHTS
    return np.clip(np.rint(luma), 0, 255).astype(np.uint8)


class ArrayFrameSource:
    """Replays in-memory frames; used for offline runs and the synthetic bench."""

    wall_clock = False

    def __init__(self, frames: Sequence[np.ndarray], timestamps_s: Sequence[float]) -> None:
        if len(frames) != len(timestamps_s):
            raise ValueError("frames and timestamps_s must have equal length")
        self._frames = list(frames)
        self._timestamps_s = [float(value) for value in timestamps_s]
        self._index = 0
        self.is_open = False

    async def open(self) -> None:
        self._index = 0
        self.is_open = True

    async def read(self) -> Frame | None:
        if not self.is_open:
            raise AcquisitionError("frame source is not open")
        if self._index >= len(self._frames):
            return None
        frame = Frame(t_s=self._timestamps_s[self._index], image=self._frames[self._index])
        self._index += 1
        return frame

    async def close(self) -> None:
        self.is_open = False


class OpenCVFrameSource:
    """Camera index or video file read through cv2.VideoCapture off the event loop."""

    def __init__(self, source: int | str | Path, resize_width: int | None = None) -> None:
        self.source = source
        self.resize_width = resize_width
        self.wall_clock = isinstance(source, int)
        self._capture: Any = None
        self._fps = 30.0
        self._frame_index = 0

    def _open_sync(self) -> None:
        try:
            import cv2
        except ModuleNotFoundError as error:
            raise AcquisitionError(
                "opencv-python is required for video capture. "
                "Install with: pip install -e '.[video]'"
            ) from error

        if not isinstance(self.source, int) and not Path(self.source).exists():
            raise AcquisitionError(f"video not found: {self.source}")
        target = self.source if isinstance(self.source, int) else str(self.source)
        capture = cv2.VideoCapture(target)
        if not capture.isOpened():
            raise AcquisitionError(f"failed to open video source: {self.source}")

        fps = capture.get(cv2.CAP_PROP_FPS)
        self._fps = fps if fps > 0 else 30.0
        self._capture = capture
        self._frame_index = 0

    def _read_sync(self) -> Frame | None:
        import cv2

        if self._capture is None:
            raise AcquisitionError("frame source is not open")
        ok, image = self._capture.read()
        if not ok:
            return None

        if self.resize_width and image.shape[1] > self.resize_width:
            scale = self.resize_width / image.shape[1]
            image = cv2.resize(
                image,
                (self.resize_width, int(image.shape[0] * scale)),
                interpolation=cv2.INTER_AREA,
            )

        if self.wall_clock:
            t_s = time.time()
        else:
            t_s = self._frame_index / self._fps
        self._frame_index += 1
        return Frame(t_s=t_s, image=image)

    async def open(self) -> None:
        await asyncio.to_thread(self._open_sync)
        logger.info("frame source opened: %s @ %.1f fps", self.source, self._fps)

    async def read(self) -> Frame | None:
        return await asyncio.to_thread(self._read_sync)

    async def close(self) -> None:
        if self._capture is not None:
            capture, self._capture = self._capture, None
            await asyncio.to_thread(capture.release)
            logger.info("frame source released: %s", self.source)
