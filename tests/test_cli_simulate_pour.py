from __future__ import annotations

import csv
import json
from pathlib import Path

import pytest

from pourflow.cli import main as cli_main


def test_cli_simulate_pour_writes_outputs(tmp_path: Path) -> None:
    output_csv = tmp_path / "pour.csv"
    output_json = tmp_path / "pour.json"

    exit_code = cli_main(
        [
            "simulate-pour",
            "--duration-s",
            "6",
            "--sample-rate-hz",
            "10",
            "--reading-interval-s",
            "1.0",
            "--output-csv",
            str(output_csv),
            "--output-json",
            str(output_json),
        ]
    )

    assert exit_code == 0
    payload = json.loads(output_json.read_text(encoding="utf-8"))
    assert payload["generator"] == "simulate-pour"
    assert payload["samples"] == 61
    assert payload["scale_readings"] == 7
    assert payload["calibration"]["n_points"] == 7
    assert payload["calibration"]["slope"] > 0
    assert payload["config"]["marker_backend"] == "none"
    assert payload["summary"]["duration_s"] == pytest.approx(6.0)

    with output_csv.open(newline="", encoding="utf-8") as file:
        rows = list(csv.DictReader(file))
    assert len(rows) == 61
    assert rows[0]["scale_g"] == "0.000000"
    assert rows[7]["scale_g"] == ""


def test_cli_simulate_pour_accepts_config_file(tmp_path: Path) -> None:
    config_path = tmp_path / "sampling.json"
    config_path.write_text(
        json.dumps({"PROXY_SMOOTH_WINDOW": 3, "diffThreshold": 30}), encoding="utf-8"
    )
    output_json = tmp_path / "pour.json"

    exit_code = cli_main(
        [
            "simulate-pour",
            "--profile",
            "intermittent",
            "--duration-s",
            "4",
            "--config",
            str(config_path),
            "--smooth-window",
            "4",
            "--output-csv",
            str(tmp_path / "pour.csv"),
            "--output-json",
            str(output_json),
        ]
    )

    assert exit_code == 0
    payload = json.loads(output_json.read_text(encoding="utf-8"))
    assert payload["profile"] == "intermittent"
    assert payload["config"]["proxy_smooth_window"] == 4
    assert payload["config"]["diff_threshold"] == 30


def test_cli_simulate_pour_without_readings_skips_calibration(tmp_path: Path) -> None:
    output_json = tmp_path / "pour.json"

    exit_code = cli_main(
        [
            "simulate-pour",
            "--duration-s",
            "2",
            "--reading-interval-s",
            "0",
            "--output-csv",
            str(tmp_path / "pour.csv"),
            "--output-json",
            str(output_json),
        ]
    )

    assert exit_code == 0
    payload = json.loads(output_json.read_text(encoding="utf-8"))
    assert payload["scale_readings"] == 0
    assert payload["calibration"] is None


def test_cli_analyze_video_requires_existing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        cli_main(["analyze-video", str(tmp_path / "missing.mp4")])
