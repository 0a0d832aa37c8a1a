from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol

import numpy as np

from .calibration import CalibrationFit, CalibrationModel, build_calibration_points
from .config import SamplingConfig, validate_sampling_config
from .errors import AcquisitionError
from .flow_proxy import FlowProxyEstimator
from .frames import Frame, FrameSource, to_grayscale
from .integration import RunningIntegral
from .markers import MarkerAdapter
from .ocr import DigitRecognizer, OcrThrottle, crop_region
from .readings import (
    ManualEntry,
    OcrResult,
    ScaleReading,
    fuse_scale_reading,
    parse_manual_value,
)
from .roi import ROIRect, plan_roi

logger = logging.getLogger(__name__)


class ManualInput(Protocol):
    def take(self, t_s: float) -> str | None: ...

    def clear(self) -> None: ...


@dataclass(frozen=True)
class FlowSample:
    """Raw and smoothed motion proxy for one tick."""

    t_s: float
    raw_proxy: float
    smoothed_proxy: float


@dataclass(frozen=True)
class IntegratedSample:
    """Integrated proxy and calibrated mass estimate for one tick."""

    t_s: float
    integrated_raw: float
    mass_g: float


@dataclass
class SessionState:
    """Per-session histories and the previous-frame slot owned by the controller."""

    flow_samples: list[FlowSample] = field(default_factory=list)
    integrated_samples: list[IntegratedSample] = field(default_factory=list)
    scale_readings: list[ScaleReading] = field(default_factory=list)
    integral: RunningIntegral = field(default_factory=RunningIntegral)
    previous_gray: np.ndarray | None = None
    last_roi: ROIRect | None = None
    origin_unix: float = 0.0

    @property
    def last_t_s(self) -> float | None:
        return self.flow_samples[-1].t_s if self.flow_samples else None


class SamplingController:
    """Fixed-cadence sampling loop turning frames into a calibrated mass estimate.

    Ticks run strictly one after another on a single event loop. ``stop()``
    clears the running flag and waits for an in-flight tick before closing
    the frame source; that tick finishes its pending frame read or OCR call
    and then drops its results instead of applying them.
    """

    def __init__(
        self,
        source: FrameSource,
        config: SamplingConfig | None = None,
        markers: MarkerAdapter | None = None,
        recognizer: DigitRecognizer | None = None,
        manual: ManualInput | None = None,
        estimator: FlowProxyEstimator | None = None,
        calibration: CalibrationModel | None = None,
        grayscale: Callable[[np.ndarray], np.ndarray] = to_grayscale,
        clock: Callable[[], float] = time.perf_counter,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = validate_sampling_config(config or SamplingConfig())
        self.source = source
        self.markers = markers
        self.recognizer = recognizer
        self.manual = manual if manual is not None else ManualEntry()
        self.estimator = estimator or FlowProxyEstimator(
            window=self.config.proxy_smooth_window,
            diff_threshold=self.config.diff_threshold,
        )
        self.calibration = calibration or CalibrationModel(floor=self.config.calibration_floor)
        self.state = SessionState()
        self._grayscale = grayscale
        self._clock = clock
        self._sleep = sleep
        self._ocr_throttle = OcrThrottle(self.config.ocr_min_interval_s)
        self._running = False
        self._source_open = False
        self._generation = 0
        self._tick_done: asyncio.Future[None] | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def period_s(self) -> float:
        return 1.0 / self.config.fps

    async def start(self) -> None:
        if self._running:
            return
        try:
            await self.source.open()
        except AcquisitionError:
            raise
        except Exception as error:
            raise AcquisitionError(f"frame source unavailable: {error}") from error

        self._source_open = True
        self.state = SessionState(
            origin_unix=0.0 if getattr(self.source, "wall_clock", False) else time.time()
        )
        self.estimator.reset()
        self._ocr_throttle.reset()
        self.manual.clear()
        self._generation += 1
        self._running = True
        logger.info("sampling started at %.1f fps", self.config.fps)

    async def stop(self) -> None:
        """Halt sampling, let an in-flight tick finish, then release the source."""

        await self._halt(wait_for_tick=True)

    async def _halt(self, wait_for_tick: bool) -> None:
        was_running = self._running
        self._running = False
        self._generation += 1
        if wait_for_tick and self._tick_done is not None:
            await asyncio.shield(self._tick_done)
        self.state.previous_gray = None
        if self._source_open:
            self._source_open = False
            await self.source.close()
        if was_running:
            logger.info(
                "sampling stopped after %d samples and %d readings",
                len(self.state.flow_samples),
                len(self.state.scale_readings),
            )

    def submit_manual_reading(self, text: str | None) -> float | None:
        if not isinstance(self.manual, ManualEntry):
            raise RuntimeError("manual readings are scheduled for this session")
        return self.manual.submit(text)

    def _is_current(self, generation: int) -> bool:
        return self._running and self._generation == generation

    async def _recognize(self, t_s: float, gray: np.ndarray) -> OcrResult | None:
        if self.recognizer is None or not self._ocr_throttle.ready(t_s):
            return None
        self._ocr_throttle.mark(t_s)
        try:
            region = crop_region(gray, self.config.ocr_region)
            return await self.recognizer.recognize(region)
        except Exception as error:
            logger.warning("scale OCR failed: %s", error)
            return None

    async def tick(self) -> IntegratedSample | None:
        """Process one frame; returns the new sample or None when nothing was applied."""

        if not self._running:
            return None
        self._tick_done = asyncio.get_running_loop().create_future()
        try:
            return await self._tick()
        finally:
            done, self._tick_done = self._tick_done, None
            if not done.done():
                done.set_result(None)

    async def _tick(self) -> IntegratedSample | None:
        generation = self._generation

        try:
            frame: Frame | None = await self.source.read()
        except Exception as error:
            logger.warning("frame acquisition failed: %s", error)
            return None
        if not self._is_current(generation):
            logger.debug("discarding frame acquired after stop")
            return None
        if frame is None:
            logger.info("frame source exhausted")
            await self._halt(wait_for_tick=False)
            return None

        state = self.state
        t_s = frame.t_s
        if state.last_t_s is not None and t_s < state.last_t_s:
            logger.warning("frame timestamp %.6f went backwards; clamping", t_s)
            t_s = state.last_t_s

        gray = self._grayscale(frame.image)
        frame_height, frame_width = gray.shape[:2]
        tag = self.markers.detect(gray) if self.markers is not None else None
        roi = plan_roi(tag, frame_width, frame_height, self.config)
        smoothed = self.estimator.estimate(gray, state.previous_gray, roi)
        flow_sample = FlowSample(
            t_s=t_s, raw_proxy=self.estimator.last_raw, smoothed_proxy=smoothed
        )

        manual_text = self.manual.take(t_s)
        ocr = None
        if parse_manual_value(manual_text) is None:
            ocr = await self._recognize(t_s, gray)
            if not self._is_current(generation):
                logger.debug("discarding tick results after stop")
                return None
        reading = fuse_scale_reading(t_s, manual_text, ocr)

        integrated_raw = state.integral.append(t_s, smoothed)
        sample = IntegratedSample(
            t_s=t_s,
            integrated_raw=integrated_raw,
            mass_g=self.calibration.apply(integrated_raw),
        )
        state.flow_samples.append(flow_sample)
        state.integrated_samples.append(sample)
        if reading is not None:
            state.scale_readings.append(reading)
        state.previous_gray = gray
        state.last_roi = roi
        logger.debug(
            "tick t=%.3f roi=%s proxy=%.4f mass=%.2f", t_s, roi.as_tuple(), smoothed, sample.mass_g
        )
        return sample

    async def run(self) -> None:
        """Drive ticks at the configured cadence until stopped or the source ends."""

        period = self.period_s
        while self._running:
            started = self._clock()
            try:
                await self.tick()
            except Exception:
                logger.exception("sampling tick failed")
            if not self._running:
                break
            elapsed = self._clock() - started
            await self._sleep(max(0.0, period - elapsed))

    async def run_session(self) -> SessionState:
        await self.start()
        try:
            await self.run()
        finally:
            await self.stop()
        return self.state

    def calibrate(self) -> CalibrationFit:
        points = build_calibration_points(self.state.integral, self.state.scale_readings)
        return self.calibration.fit(points)
