from __future__ import annotations

from bisect import bisect_right
from collections.abc import Sequence


def trapz_integral(timestamps_s: Sequence[float], values: Sequence[float]) -> float:
    if len(timestamps_s) != len(values):
        raise ValueError("timestamps_s and values must have equal length")
    if len(timestamps_s) < 2:
        return 0.0

    area = 0.0
    for index in range(1, len(timestamps_s)):
        dt = timestamps_s[index] - timestamps_s[index - 1]
        if dt < 0:
            raise ValueError(f"timestamps must be non-decreasing (index {index})")
        area += 0.5 * (values[index] + values[index - 1]) * dt
    return area


def integrate(history: Sequence[tuple[float, float]]) -> float:
    """Trapezoidal integral of (t, smoothed proxy) pairs in proxy-seconds."""

    timestamps_s = [sample[0] for sample in history]
    values = [sample[1] for sample in history]
    return trapz_integral(timestamps_s, values)


class RunningIntegral:
    """Prefix sums of the trapezoidal integral over an append-only series.

    Each prefix value is accumulated in the same order as ``trapz_integral``
    would over that prefix, so ``value_at`` equals full recomputation exactly.
    """

    def __init__(self) -> None:
        self._timestamps_s: list[float] = []
        self._values: list[float] = []
        self._cumulative: list[float] = []

    def __len__(self) -> int:
        return len(self._timestamps_s)

    @property
    def total(self) -> float:
        return self._cumulative[-1] if self._cumulative else 0.0

    def append(self, t_s: float, value: float) -> float:
        if self._timestamps_s and t_s < self._timestamps_s[-1]:
            raise ValueError(
                f"timestamps must be non-decreasing ({t_s} < {self._timestamps_s[-1]})"
            )

        if self._timestamps_s:
            dt = t_s - self._timestamps_s[-1]
            area = self.total + 0.5 * (value + self._values[-1]) * dt
        else:
            area = 0.0

        self._timestamps_s.append(t_s)
        self._values.append(value)
        self._cumulative.append(area)
        return area

    def value_at(self, t_s: float) -> float:
        """Integral over the prefix of samples with timestamp <= t_s."""

        count = bisect_right(self._timestamps_s, t_s)
        if count == 0:
            return 0.0
        return self._cumulative[count - 1]

    def reset(self) -> None:
        self._timestamps_s.clear()
        self._values.clear()
        self._cumulative.clear()
