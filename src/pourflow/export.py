from __future__ import annotations

import csv
import io
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from .session import SessionState

EXPORT_COLUMNS = ["t_unix", "t_iso", "proxy", "integrated_mass_g", "scale_g"]


@dataclass(frozen=True)
class ExportRow:
    """One exported row; cells are None where the zipped sequence ran out."""

    t_unix: float
    t_iso: str
    proxy: float
    integrated_mass_g: float | None
    scale_g: float | None


def build_export_rows(state: SessionState) -> list[ExportRow]:
    """Zip flow samples, mass estimates and scale readings by index.

    Rows are aligned by position, not by timestamp: scale readings are sparser
    than flow samples, so row ``i`` pairs the ``i``-th reading with the
    ``i``-th flow sample even when they were recorded at different ticks.
    """

    rows: list[ExportRow] = []
    for index, flow_sample in enumerate(state.flow_samples):
        t_unix = state.origin_unix + flow_sample.t_s
        integrated = (
            state.integrated_samples[index].mass_g
            if index < len(state.integrated_samples)
            else None
        )
        scale = (
            state.scale_readings[index].mass_g if index < len(state.scale_readings) else None
        )
        rows.append(
            ExportRow(
                t_unix=t_unix,
                t_iso=datetime.fromtimestamp(t_unix, tz=UTC).isoformat(),
                proxy=flow_sample.smoothed_proxy,
                integrated_mass_g=integrated,
                scale_g=scale,
            )
        )
    return rows


def _format_optional(value: float | None) -> str:
    return "" if value is None else f"{value:.6f}"


def _write_rows(file: io.TextIOBase, rows: Iterable[ExportRow]) -> int:
    writer = csv.writer(file)
    writer.writerow(EXPORT_COLUMNS)
    count = 0
    for row in rows:
        writer.writerow(
            [
                f"{row.t_unix:.6f}",
                row.t_iso,
                f"{row.proxy:.6f}",
                _format_optional(row.integrated_mass_g),
                _format_optional(row.scale_g),
            ]
        )
        count += 1
    return count


def write_export_csv(path: str | Path, rows: Iterable[ExportRow]) -> int:
    with Path(path).open("w", newline="", encoding="utf-8") as file:
        return _write_rows(file, rows)


def export_rows_to_csv_text(rows: Iterable[ExportRow]) -> str:
    buffer = io.StringIO()
    _write_rows(buffer, rows)
    return buffer.getvalue()
