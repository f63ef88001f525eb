from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field

from eslatma.core.context import AppContext
from eslatma.scheduler import DeliveryScheduler


@dataclass
class RuntimeControl:
    ctx: AppContext
    scheduler: DeliveryScheduler
    started_at: float


class HealthResponse(BaseModel):
    status: str = "ok"
    now_utc: str
    uptime_seconds: float
    db_connected: bool
    reminders_stored: int | None = None
    pending_confirmations: int
    scheduler: dict[str, Any] = Field(default_factory=dict)
    metrics: dict[str, Any] = Field(default_factory=dict)
