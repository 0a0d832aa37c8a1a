from __future__ import annotations

import argparse
import asyncio
import csv
import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any

from .calibration import CalibrationFit
from .config import (
    SamplingConfig,
    config_to_dict,
    load_sampling_config,
    validate_sampling_config,
)
from .errors import InsufficientDataError
from .export import build_export_rows, write_export_csv
from .frames import FrameSource, OpenCVFrameSource
from .markers import MarkerAdapter, build_marker_adapter
from .metrics import PourSummary, calculate_pour_summary
from .readings import ScheduledManualEntry
from .session import SamplingController, SessionState
from .synthetic import (
    SUPPORTED_PROFILES,
    SyntheticPourConfig,
    generate_synthetic_pour,
    series_to_frame_source,
)

logger = logging.getLogger(__name__)


def _parse_region(value: str | None) -> tuple[int, int, int, int] | None:
    if value is None:
        return None
    parts = [item.strip() for item in value.split(",")]
    if len(parts) != 4:
        raise argparse.ArgumentTypeError("region must be in format x,y,w,h")
    try:
        x, y, w, h = (int(part) for part in parts)
    except ValueError as error:
        raise argparse.ArgumentTypeError("region values must be integers") from error
    return x, y, w, h


def _summary_to_dict(summary: PourSummary) -> dict[str, float | int]:
    return {
        "start_time_s": summary.start_time_s,
        "end_time_s": summary.end_time_s,
        "duration_s": summary.duration_s,
        "pour_time_s": summary.pour_time_s,
        "poured_mass_g": summary.poured_mass_g,
        "peak_rate_g_s": summary.peak_rate_g_s,
        "mean_rate_g_s": summary.mean_rate_g_s,
        "time_to_peak_s": summary.time_to_peak_s,
        "interruptions_count": summary.interruptions_count,
    }


def _fit_to_dict(fit: CalibrationFit | None) -> dict[str, Any] | None:
    if fit is None:
        return None
    return {
        "slope": fit.slope,
        "offset": fit.offset,
        "n_points": fit.n_points,
        "degenerate": fit.degenerate,
        "rms_residual_g": fit.rms_residual_g,
    }


def _load_readings_csv(path: Path) -> list[tuple[float, float]]:
    if not path.exists():
        raise FileNotFoundError(path)

    readings: list[tuple[float, float]] = []
    with path.open(newline="", encoding="utf-8") as file:
        reader = csv.DictReader(file)
        if reader.fieldnames is None or not {"t_s", "mass_g"} <= set(reader.fieldnames):
            raise ValueError("readings CSV must have t_s and mass_g columns")
        for line_number, row in enumerate(reader, start=2):
            try:
                readings.append((float(row["t_s"]), float(row["mass_g"])))
            except ValueError as error:
                raise ValueError(f"invalid reading on line {line_number}") from error
    return readings


def _add_sampling_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="JSON file with sampling configuration.")
    parser.add_argument("--fps", type=float, default=None)
    parser.add_argument("--smooth-window", type=int, default=None)
    parser.add_argument("--diff-threshold", type=int, default=None)
    parser.add_argument("--offset-factor", type=float, default=None)
    parser.add_argument("--output-csv", help="Path for the sample export CSV.")
    parser.add_argument("--output-json", help="Path for the session summary JSON.")
    parser.add_argument("--rate-threshold-g-s", type=float, default=0.5)
    parser.add_argument("--min-pause-s", type=float, default=0.5)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pourflow",
        description="Concept CLI for estimating poured mass from marker-guided video.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_video = subparsers.add_parser(
        "analyze-video",
        help="Run the sampling pipeline offline over a recorded pour video.",
    )
    analyze_video.add_argument("video_path", help="Path to the pour recording.")
    analyze_video.add_argument(
        "--readings-csv",
        help="CSV with t_s,mass_g truth readings replayed as manual scale entries.",
    )
    analyze_video.add_argument("--resize-width", type=int, default=480)
    analyze_video.add_argument(
        "--marker-backend", choices=["aruco", "none"], default=None
    )
    analyze_video.add_argument("--ocr-region", type=str, default=None, help="x,y,w,h")
    _add_sampling_arguments(analyze_video)

    simulate = subparsers.add_parser(
        "simulate-pour",
        help="Run the sampling pipeline on a synthetic pour bench.",
    )
    simulate.add_argument("--profile", choices=SUPPORTED_PROFILES, default="bell")
    simulate.add_argument("--duration-s", type=float, default=12.0)
    simulate.add_argument("--sample-rate-hz", type=float, default=15.0)
    simulate.add_argument("--target-mass-g", type=float, default=250.0)
    simulate.add_argument("--reading-interval-s", type=float, default=2.0)
    simulate.add_argument("--seed", type=int, default=42)
    _add_sampling_arguments(simulate)

    return parser


def _resolve_config(args: argparse.Namespace) -> SamplingConfig:
    config = load_sampling_config(args.config) if args.config else SamplingConfig()
    overrides: dict[str, Any] = {}
    if args.fps is not None:
        overrides["fps"] = args.fps
    if args.smooth_window is not None:
        overrides["proxy_smooth_window"] = args.smooth_window
    if args.diff_threshold is not None:
        overrides["diff_threshold"] = args.diff_threshold
    if args.offset_factor is not None:
        overrides["offset_factor"] = args.offset_factor
    if getattr(args, "marker_backend", None) is not None:
        overrides["marker_backend"] = args.marker_backend
    if getattr(args, "ocr_region", None) is not None:
        overrides["ocr_region"] = _parse_region(args.ocr_region)
    return validate_sampling_config(replace(config, **overrides))


async def _no_wait(_: float) -> None:
    return None


def _run_offline(
    source: FrameSource,
    config: SamplingConfig,
    readings: list[tuple[float, float]],
    markers: MarkerAdapter | None,
) -> tuple[SamplingController, CalibrationFit | None]:
    controller = SamplingController(
        source,
        config=config,
        markers=markers,
        manual=ScheduledManualEntry(readings),
        sleep=_no_wait,
    )
    asyncio.run(controller.run_session())

    fit: CalibrationFit | None = None
    try:
        fit = controller.calibrate()
    except InsufficientDataError as error:
        logger.warning("calibration skipped: %s", error)
    return controller, fit


def _write_outputs(
    controller: SamplingController,
    fit: CalibrationFit | None,
    output_csv: Path,
    output_json: Path,
    extra: dict[str, Any],
    rate_threshold_g_s: float,
    min_pause_s: float,
) -> PourSummary | None:
    state: SessionState = controller.state
    rows = build_export_rows(state)
    write_export_csv(output_csv, rows)

    final_raw = state.integrated_samples[-1].integrated_raw if state.integrated_samples else 0.0
    summary: PourSummary | None = None
    if len(state.flow_samples) >= 2:
        summary = calculate_pour_summary(
            timestamps_s=[sample.t_s for sample in state.flow_samples],
            rate_g_s=[
                controller.calibration.slope * sample.smoothed_proxy
                for sample in state.flow_samples
            ],
            threshold_g_s=rate_threshold_g_s,
            min_pause_s=min_pause_s,
        )

    payload = {
        **extra,
        "config": config_to_dict(controller.config),
        "samples": len(state.flow_samples),
        "scale_readings": len(state.scale_readings),
        "final_integrated_raw": final_raw,
        "final_mass_g": controller.calibration.apply(final_raw),
        "calibration": _fit_to_dict(fit),
        "summary": _summary_to_dict(summary) if summary else None,
    }
    output_json.write_text(
        json.dumps(payload, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    return summary


def _print_results(
    controller: SamplingController,
    fit: CalibrationFit | None,
    output_csv: Path,
    output_json: Path,
) -> None:
    state = controller.state
    final_raw = state.integrated_samples[-1].integrated_raw if state.integrated_samples else 0.0
    print(f"Sample export CSV: {output_csv}")
    print(f"Summary JSON: {output_json}")
    print(f"Samples: {len(state.flow_samples)}")
    print(f"Scale readings: {len(state.scale_readings)}")
    if fit is None:
        print("Calibration: skipped (fewer than two readings)")
    else:
        flag = " (degenerate)" if fit.degenerate else ""
        print(f"Calibration: slope={fit.slope:.4f} offset={fit.offset:.4f}{flag}")
    print(f"Estimated poured mass: {controller.calibration.apply(final_raw):.2f} g")


def _handle_analyze_video(args: argparse.Namespace) -> int:
    video_path = Path(args.video_path)
    if not video_path.exists():
        raise FileNotFoundError(video_path)

    config = _resolve_config(args)
    readings = _load_readings_csv(Path(args.readings_csv)) if args.readings_csv else []
    source = OpenCVFrameSource(video_path, resize_width=args.resize_width)
    controller, fit = _run_offline(source, config, readings, build_marker_adapter(config))

    output_csv = Path(args.output_csv) if args.output_csv else video_path.with_name(
        f"{video_path.stem}_pour_samples.csv"
    )
    output_json = Path(args.output_json) if args.output_json else video_path.with_name(
        f"{video_path.stem}_pour_summary.json"
    )
    _write_outputs(
        controller,
        fit,
        output_csv,
        output_json,
        extra={"video_path": str(video_path)},
        rate_threshold_g_s=args.rate_threshold_g_s,
        min_pause_s=args.min_pause_s,
    )
    _print_results(controller, fit, output_csv, output_json)
    return 0


def _handle_simulate_pour(args: argparse.Namespace) -> int:
    config = replace(_resolve_config(args), marker_backend="none")
    bench_config = SyntheticPourConfig(
        profile=args.profile,
        duration_s=args.duration_s,
        sample_rate_hz=args.sample_rate_hz,
        target_mass_g=args.target_mass_g,
        reading_interval_s=args.reading_interval_s,
        seed=args.seed,
    )
    series = generate_synthetic_pour(bench_config, config)
    controller, fit = _run_offline(
        series_to_frame_source(series), config, series.readings, markers=None
    )

    default_stem = f"synthetic_pour_{args.profile}"
    output_csv = Path(args.output_csv) if args.output_csv else Path(f"{default_stem}.csv")
    output_json = Path(args.output_json) if args.output_json else Path(f"{default_stem}.json")
    _write_outputs(
        controller,
        fit,
        output_csv,
        output_json,
        extra={
            "generator": "simulate-pour",
            "profile": bench_config.profile,
            "seed": bench_config.seed,
            "true_mass_g": series.true_mass_g[-1],
        },
        rate_threshold_g_s=args.rate_threshold_g_s,
        min_pause_s=args.min_pause_s,
    )
    _print_results(controller, fit, output_csv, output_json)
    print(f"True poured mass: {series.true_mass_g[-1]:.2f} g")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.command == "analyze-video":
        return _handle_analyze_video(args)
    if args.command == "simulate-pour":
        return _handle_simulate_pour(args)

    parser.error(f"unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
