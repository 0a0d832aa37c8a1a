from __future__ import annotations

import math
from dataclasses import dataclass

from .config import SamplingConfig
from .markers import TagDetection


@dataclass(frozen=True)
class ROIRect:
    """Frame-bounded integer rectangle analyzed for motion."""

    x: int
    y: int
    width: int
    height: int

    @property
    def area(self) -> int:
        return self.width * self.height

    def as_tuple(self) -> tuple[int, int, int, int]:
        return self.x, self.y, self.width, self.height


def _validate_frame_size(frame_width: int, frame_height: int) -> None:
    if frame_width <= 0 or frame_height <= 0:
        raise ValueError("frame width and height must be positive")


def fallback_roi(
    frame_width: int, frame_height: int, config: SamplingConfig | None = None
) -> ROIRect:
    """Fixed-fraction box, horizontally centered, used when no marker is seen."""

    cfg = config or SamplingConfig()
    _validate_frame_size(frame_width, frame_height)

    width = min(frame_width, max(1, round(cfg.fallback_width_fraction * frame_width)))
    height = min(frame_height, max(1, round(cfg.fallback_height_fraction * frame_height)))
    x = (frame_width - width) // 2
    y = min(round(cfg.fallback_top_fraction * frame_height), frame_height - height)
    return ROIRect(x=x, y=y, width=width, height=height)


def plan_roi(
    tag: TagDetection | None,
    frame_width: int,
    frame_height: int,
    config: SamplingConfig | None = None,
) -> ROIRect:
    """Place the ROI relative to the marker, offset along its perpendicular axis.

    The ROI center is the marker center shifted by ``offset_factor * scale``
    along the marker's local perpendicular, where ``scale`` is the length of
    the first marker edge. The rectangle is ``roi_width_factor * scale`` by
    ``roi_height_factor * scale`` and is clipped to the frame. Without a
    marker, or when the clipped rectangle is empty, the fallback box is used.
    """

    cfg = config or SamplingConfig()
    _validate_frame_size(frame_width, frame_height)
    if tag is None:
        return fallback_roi(frame_width, frame_height, cfg)

    (x0, y0), (x1, y1) = tag.corners[0], tag.corners[1]
    edge_x = x1 - x0
    edge_y = y1 - y0
    scale = math.hypot(edge_x, edge_y)
    if scale == 0:
        return fallback_roi(frame_width, frame_height, cfg)

    axis_x = edge_x / scale
    axis_y = edge_y / scale
    perp_x, perp_y = -axis_y, axis_x

    marker_x, marker_y = tag.center
    center_x = marker_x + perp_x * cfg.offset_factor * scale
    center_y = marker_y + perp_y * cfg.offset_factor * scale
    half_width = 0.5 * cfg.roi_width_factor * scale
    half_height = 0.5 * cfg.roi_height_factor * scale

    left = max(0, round(center_x - half_width))
    top = max(0, round(center_y - half_height))
    right = min(frame_width, round(center_x + half_width))
    bottom = min(frame_height, round(center_y + half_height))
    if right - left <= 0 or bottom - top <= 0:
        return fallback_roi(frame_width, frame_height, cfg)

    return ROIRect(x=left, y=top, width=right - left, height=bottom - top)
