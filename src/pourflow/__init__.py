"""Core package for marker-guided poured-mass estimation."""

from .calibration import (
    CalibrationFit,
    CalibrationModel,
    CalibrationPoint,
    build_calibration_points,
    fit_affine,
)
from .config import SamplingConfig, load_sampling_config, validate_sampling_config
from .errors import (
    AcquisitionError,
    CalibrationError,
    DetectionError,
    InsufficientDataError,
    PourFlowError,
)
from .export import ExportRow, build_export_rows, export_rows_to_csv_text, write_export_csv
from .flow_proxy import FlowProxyEstimator, motion_density
from .frames import ArrayFrameSource, Frame, FrameSource, OpenCVFrameSource, to_grayscale
from .integration import RunningIntegral, integrate, trapz_integral
from .markers import (
    ArucoMarkerDetector,
    MarkerAdapter,
    TagDetection,
    build_marker_adapter,
    detection_from_pairs,
    detection_from_points,
)
from .metrics import PourSummary, calculate_pour_summary
from .ocr import (
    OcrThrottle,
    TesseractRecognizer,
    crop_region,
    enhance_display_region,
    parse_display_text,
)
from .readings import (
    ManualEntry,
    OcrResult,
    ScaleReading,
    ScheduledManualEntry,
    fuse_scale_reading,
    parse_manual_value,
)
from .roi import ROIRect, fallback_roi, plan_roi
from .session import FlowSample, IntegratedSample, SamplingController, SessionState
from .synthetic import (
    SUPPORTED_PROFILES,
    SyntheticPourConfig,
    SyntheticPourSeries,
    generate_pour_profile,
    generate_synthetic_pour,
    generate_timestamps,
    series_to_frame_source,
)

__all__ = [
    "SamplingConfig",
    "load_sampling_config",
    "validate_sampling_config",
    "PourFlowError",
    "AcquisitionError",
    "DetectionError",
    "CalibrationError",
    "InsufficientDataError",
    "TagDetection",
    "MarkerAdapter",
    "ArucoMarkerDetector",
    "build_marker_adapter",
    "detection_from_pairs",
    "detection_from_points",
    "ROIRect",
    "plan_roi",
    "fallback_roi",
    "FlowProxyEstimator",
    "motion_density",
    "trapz_integral",
    "integrate",
    "RunningIntegral",
    "CalibrationPoint",
    "CalibrationFit",
    "CalibrationModel",
    "fit_affine",
    "build_calibration_points",
    "ScaleReading",
    "OcrResult",
    "ManualEntry",
    "ScheduledManualEntry",
    "parse_manual_value",
    "fuse_scale_reading",
    "OcrThrottle",
    "TesseractRecognizer",
    "crop_region",
    "enhance_display_region",
    "parse_display_text",
    "Frame",
    "FrameSource",
    "ArrayFrameSource",
    "OpenCVFrameSource",
    "to_grayscale",
    "FlowSample",
    "IntegratedSample",
    "SessionState",
    "SamplingController",
    "ExportRow",
    "build_export_rows",
    "export_rows_to_csv_text",
    "write_export_csv",
    "PourSummary",
    "calculate_pour_summary",
    "SUPPORTED_PROFILES",
    "SyntheticPourConfig",
    "SyntheticPourSeries",
    "generate_timestamps",
    "generate_pour_profile",
    "generate_synthetic_pour",
    "series_to_frame_source",
]
