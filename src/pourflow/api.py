from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, Field

from .errors import AcquisitionError, InsufficientDataError
from .export import build_export_rows, export_rows_to_csv_text
from .session import SamplingController

logger = logging.getLogger(__name__)


class SessionStatus(BaseModel):
    running: bool
    flow_samples: int = Field(ge=0)
    scale_readings: int = Field(ge=0)
    last_t_s: float | None = None
    last_proxy: float | None = None
    last_mass_g: float | None = None
    slope: float
    offset: float


class ManualReadingCreate(BaseModel):
    value: str


class ManualReadingAccepted(BaseModel):
    accepted: bool
    mass_g: float | None = None


class CalibrationResponse(BaseModel):
    slope: float
    offset: float
    n_points: int = Field(ge=2)
    degenerate: bool
    rms_residual_g: float = Field(ge=0)


def _session_status(controller: SamplingController) -> SessionStatus:
    state = controller.state
    last_flow = state.flow_samples[-1] if state.flow_samples else None
    last_mass = state.integrated_samples[-1] if state.integrated_samples else None
    return SessionStatus(
        running=controller.running,
        flow_samples=len(state.flow_samples),
        scale_readings=len(state.scale_readings),
        last_t_s=last_flow.t_s if last_flow else None,
        last_proxy=last_flow.smoothed_proxy if last_flow else None,
        last_mass_g=last_mass.mass_g if last_mass else None,
        slope=controller.calibration.slope,
        offset=controller.calibration.offset,
    )


def create_control_app(controller: SamplingController) -> FastAPI:
    async def _stop_sampling(app: FastAPI) -> None:
        await controller.stop()
        task: asyncio.Task[None] | None = app.state.run_task
        app.state.run_task = None
        if task is not None:
            await task

    @asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await _stop_sampling(app)

    app = FastAPI(
        title="Pourflow Control API",
        version="0.1.0",
        description="Start/stop/calibrate/export verbs for the pour sampling loop.",
        lifespan=_lifespan,
    )
    app.state.controller = controller
    app.state.run_task = None

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/v1/session", response_model=SessionStatus)
    def get_session() -> SessionStatus:
        return _session_status(controller)

    @app.post("/api/v1/session/start", response_model=SessionStatus)
    async def start_session() -> SessionStatus:
        if controller.running:
            return _session_status(controller)
        try:
            await controller.start()
        except AcquisitionError as error:
            logger.error("session start failed: %s", error)
            raise HTTPException(status_code=503, detail=str(error)) from error
        app.state.run_task = asyncio.create_task(controller.run())
        return _session_status(controller)

    @app.post("/api/v1/session/stop", response_model=SessionStatus)
    async def stop_session() -> SessionStatus:
        await _stop_sampling(app)
        return _session_status(controller)

    @app.post(
        "/api/v1/manual-readings",
        response_model=ManualReadingAccepted,
        status_code=202,
    )
    def submit_manual_reading(payload: ManualReadingCreate) -> ManualReadingAccepted:
        try:
            mass_g = controller.submit_manual_reading(payload.value)
        except RuntimeError as error:
            raise HTTPException(status_code=409, detail=str(error)) from error
        return ManualReadingAccepted(accepted=mass_g is not None, mass_g=mass_g)

    @app.post("/api/v1/calibration", response_model=CalibrationResponse)
    def calibrate() -> CalibrationResponse:
        try:
            fit = controller.calibrate()
        except InsufficientDataError as error:
            raise HTTPException(status_code=409, detail=str(error)) from error
        return CalibrationResponse(
            slope=fit.slope,
            offset=fit.offset,
            n_points=fit.n_points,
            degenerate=fit.degenerate,
            rms_residual_g=fit.rms_residual_g,
        )

    @app.get("/api/v1/export.csv")
    def export_csv() -> Response:
        content = export_rows_to_csv_text(build_export_rows(controller.state))
        return Response(
            content=content,
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="pour_export.csv"'},
        )

    return app
