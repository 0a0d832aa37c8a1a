from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np

from .config import SamplingConfig
from .errors import DetectionError

logger = logging.getLogger(__name__)

Point = tuple[float, float]
RawDetector = Callable[[np.ndarray], Sequence[Any]]


@dataclass(frozen=True)
class TagDetection:
    """Fiducial marker with four cyclic corners in pixel coordinates."""

    corners: tuple[Point, Point, Point, Point]
    tag_id: int

    @property
    def center(self) -> Point:
        x = sum(corner[0] for corner in self.corners) / 4.0
        y = sum(corner[1] for corner in self.corners) / 4.0
        return x, y


def _field(raw: Any, name: str) -> Any:
    if isinstance(raw, dict):
        if name not in raw:
            raise DetectionError(f"detection has no '{name}' field")
        return raw[name]
    if not hasattr(raw, name):
        raise DetectionError(f"detection has no '{name}' field")
    return getattr(raw, name)


def _tag_id(raw: Any) -> int:
    value = _field(raw, "id")
    try:
        tag_id = int(value)
    except (TypeError, ValueError) as error:
        raise DetectionError(f"marker id must be an integer, got {value!r}") from error
    if tag_id != value:
        raise DetectionError(f"marker id must be an integer, got {value!r}")
    return tag_id


def _checked_corners(points: list[Point]) -> tuple[Point, Point, Point, Point]:
    if len(points) != 4:
        raise DetectionError(f"marker must have 4 corners, got {len(points)}")
    for x, y in points:
        if not (math.isfinite(x) and math.isfinite(y)):
            raise DetectionError("marker corners must be finite")
    return points[0], points[1], points[2], points[3]


def detection_from_pairs(raw: Any) -> TagDetection:
    """Normalize a detection whose corners are (x, y) coordinate pairs."""

    corners = np.asarray(_field(raw, "corners"), dtype=np.float64)
    if corners.ndim == 3 and corners.shape[0] == 1:
        corners = corners[0]
    if corners.ndim != 2 or corners.shape[1] != 2:
        raise DetectionError(f"corner pairs must have shape (4, 2), got {corners.shape}")
    points = [(float(x), float(y)) for x, y in corners]
    return TagDetection(corners=_checked_corners(points), tag_id=_tag_id(raw))


def detection_from_points(raw: Any) -> TagDetection:
    """Normalize a detection whose corners are objects exposing x and y."""

    points: list[Point] = []
    for corner in _field(raw, "corners"):
        try:
            points.append((float(_field(corner, "x")), float(_field(corner, "y"))))
        except (TypeError, ValueError) as error:
            raise DetectionError("corner coordinates must be numeric") from error
    return TagDetection(corners=_checked_corners(points), tag_id=_tag_id(raw))


CORNER_NORMALIZERS: dict[str, Callable[[Any], TagDetection]] = {
    "pairs": detection_from_pairs,
    "points": detection_from_points,
}


class MarkerAdapter:
    """Runs an external marker detector and normalizes its first detection."""

    def __init__(self, detector: RawDetector, corner_format: str = "pairs") -> None:
        if corner_format not in CORNER_NORMALIZERS:
            raise ValueError(
                "corner_format must be one of: " + ", ".join(sorted(CORNER_NORMALIZERS))
            )
        self.detector = detector
        self.corner_format = corner_format
        self._normalize = CORNER_NORMALIZERS[corner_format]

    def detect(self, gray_frame: np.ndarray) -> TagDetection | None:
        try:
            detections = self.detector(gray_frame)
            if not detections:
                return None
            return self._normalize(detections[0])
        except Exception as error:
            logger.warning("marker detection failed: %s", error)
            return None


class ArucoMarkerDetector:
    """OpenCV ArUco backend producing pair-form detections."""

    def __init__(self, dictionary_name: str = "DICT_4X4_50") -> None:
        try:
            import cv2
        except ModuleNotFoundError as error:
            raise RuntimeError(
                "opencv-python is required for marker detection. "
                "Install with: pip install -e '.[video]'"
            ) from error

        dictionary_enum = getattr(cv2.aruco, dictionary_name, None)
        if dictionary_enum is None:
            raise ValueError(f"unsupported ArUco dictionary: {dictionary_name}")
        dictionary = cv2.aruco.getPredefinedDictionary(dictionary_enum)
        self._detector = cv2.aruco.ArucoDetector(dictionary, cv2.aruco.DetectorParameters())

    def __call__(self, gray_frame: np.ndarray) -> list[dict[str, Any]]:
        corners, ids, _ = self._detector.detectMarkers(gray_frame)
        if ids is None:
            return []
        return [
            {"id": int(tag_id), "corners": np.asarray(corner).reshape(4, 2)}
            for corner, tag_id in zip(corners, ids.flatten(), strict=True)
        ]


def build_marker_adapter(config: SamplingConfig) -> MarkerAdapter | None:
    if config.marker_backend == "none":
        return None
    if config.marker_backend == "aruco":
        return MarkerAdapter(ArucoMarkerDetector(config.aruco_dictionary), corner_format="pairs")
    raise ValueError(f"unsupported marker backend: {config.marker_backend}")
