import asyncio

from pourflow.config import SamplingConfig
from pourflow.readings import ScheduledManualEntry
from pourflow.session import SamplingController
from pourflow.synthetic import (
    SyntheticPourConfig,
    generate_synthetic_pour,
    series_to_frame_source,
)


async def _no_wait(_: float) -> None:
    return None


def main() -> None:
    series = generate_synthetic_pour(
        SyntheticPourConfig(profile="bell", duration_s=8.0, target_mass_g=180.0)
    )
    controller = SamplingController(
        series_to_frame_source(series),
        config=SamplingConfig(marker_backend="none"),
        manual=ScheduledManualEntry(series.readings),
        sleep=_no_wait,
    )

    state = asyncio.run(controller.run_session())
    fit = controller.calibrate()
    final_raw = state.integrated_samples[-1].integrated_raw

    print("Pour summary")
    print(f"Samples: {len(state.flow_samples)}")
    print(f"Scale readings: {len(state.scale_readings)}")
    print(f"Slope: {fit.slope:.2f} g per proxy-second")
    print(f"Offset: {fit.offset:.2f} g")
    print(f"Estimated mass: {controller.calibration.apply(final_raw):.2f} g")
    print(f"True mass: {series.true_mass_g[-1]:.2f} g")


if __name__ == "__main__":
    main()
