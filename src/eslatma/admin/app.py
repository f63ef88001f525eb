from __future__ import annotations

import time

import aiosqlite
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from eslatma import __version__
from eslatma.errors import StorageUnavailable
from eslatma.logger import logger
from eslatma.metrics import runtime_metrics

from .schemas import HealthResponse, RuntimeControl


def create_app(control: RuntimeControl) -> FastAPI:
    app = FastAPI(title="Eslatma Health API", version=__version__)

    async def health_payload() -> HealthResponse:
        status = "ok"
        reminders_stored = None
        try:
            reminders_stored = await control.ctx.store.count()
        except (StorageUnavailable, aiosqlite.Error) as e:
            logger.warning(f"健康检查读取数据库失败: {e}")
            status = "degraded"

        return HealthResponse(
            status=status,
            now_utc=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            uptime_seconds=max(0.0, time.time() - control.started_at),
            db_connected=control.ctx.store.is_open,
            reminders_stored=reminders_stored,
            pending_confirmations=len(control.ctx.confirmations),
            scheduler=control.scheduler.get_status(),
            metrics=runtime_metrics.snapshot(),
        )

    # 托管平台的探活只需要 200 + "OK"
    @app.get("/", include_in_schema=False)
    async def home() -> PlainTextResponse:
        return PlainTextResponse("OK")

    @app.get("/healthz", include_in_schema=False)
    async def healthz() -> PlainTextResponse:
        return PlainTextResponse("ok")

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return await health_payload()

    return app


__all__ = ["create_app"]
