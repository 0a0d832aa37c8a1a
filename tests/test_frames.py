from __future__ import annotations

import asyncio
from pathlib import Path

import numpy as np
import pytest

from pourflow.errors import AcquisitionError
from pourflow.frames import ArrayFrameSource, OpenCVFrameSource, to_grayscale


def test_to_grayscale_passes_through_single_channel() -> None:
    gray = np.arange(6, dtype=np.uint8).reshape(2, 3)

    assert to_grayscale(gray) is gray


def test_to_grayscale_weights_bgr_channels() -> None:
    image = np.zeros((1, 3, 3), dtype=np.uint8)
    image[0, 0] = (255, 0, 0)
    image[0, 1] = (0, 255, 0)
    image[0, 2] = (0, 0, 255)

    assert to_grayscale(image).tolist() == [[29, 150, 76]]


def test_to_grayscale_ignores_alpha() -> None:
    image = np.full((2, 2, 4), 200, dtype=np.uint8)
    image[..., 3] = 0

    assert to_grayscale(image).tolist() == [[200, 200], [200, 200]]


def test_to_grayscale_rejects_unknown_shape() -> None:
    with pytest.raises(ValueError, match="unsupported frame shape"):
        to_grayscale(np.zeros((2, 2, 2), dtype=np.uint8))


def test_array_source_requires_open() -> None:
    source = ArrayFrameSource([np.zeros((2, 2), dtype=np.uint8)], [0.0])

    with pytest.raises(AcquisitionError):
        asyncio.run(source.read())


def test_array_source_rejects_mismatched_timestamps() -> None:
    with pytest.raises(ValueError, match="equal length"):
        ArrayFrameSource([np.zeros((2, 2), dtype=np.uint8)], [0.0, 1.0])


def test_video_source_missing_file(tmp_path: Path) -> None:
    source = OpenCVFrameSource(tmp_path / "missing.mp4")

    assert source.wall_clock is False
    with pytest.raises(AcquisitionError):
        asyncio.run(source.open())
