"""
一个简单的运行时指标收集类，统计 LLM 调用、消息流量与提醒生命周期，由 /health 接口输出。
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from eslatma.events import E, bus


@dataclass
class RuntimeMetrics:
    llm_call_count: int = 0
    llm_total_latency_ms: float = 0.0
    llm_error_count: int = 0
    llm_fallback_count: int = 0
    msg_in_count: int = 0
    reminder_created_count: int = 0
    reminder_delivered_count: int = 0
    reminder_cancelled_count: int = 0
    delivery_failed_count: int = 0
    confirmation_opened_count: int = 0
    last_llm_call_at: float | None = None

    def record_llm_call(self, latency_ms: float, error: bool = False) -> None:
        self.llm_call_count += 1
        self.llm_total_latency_ms += max(0.0, latency_ms)
        self.last_llm_call_at = time.time()
        if error:
            self.llm_error_count += 1

    def record_llm_fallback(self) -> None:
        self.llm_fallback_count += 1

    def record_msg_in(self) -> None:
        self.msg_in_count += 1

    def snapshot(self) -> dict:
        avg_latency_ms = 0.0
        if self.llm_call_count > 0:
            avg_latency_ms = self.llm_total_latency_ms / self.llm_call_count

        return {
            "llm_call_count": self.llm_call_count,
            "llm_error_count": self.llm_error_count,
            "llm_fallback_count": self.llm_fallback_count,
            "llm_total_latency_ms": round(self.llm_total_latency_ms, 2),
            "llm_avg_latency_ms": round(avg_latency_ms, 2),
            "msg_in_count": self.msg_in_count,
            "reminder_created_count": self.reminder_created_count,
            "reminder_delivered_count": self.reminder_delivered_count,
            "reminder_cancelled_count": self.reminder_cancelled_count,
            "delivery_failed_count": self.delivery_failed_count,
            "confirmation_opened_count": self.confirmation_opened_count,
            "last_llm_call_at_epoch": self.last_llm_call_at,
            "last_llm_call_at_utc": (
                time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(self.last_llm_call_at))
                if self.last_llm_call_at is not None
                else None
            ),
        }


runtime_metrics = RuntimeMetrics()


@bus.on(E.REMINDER_CREATED)
def _count_created(**_: object) -> None:
    runtime_metrics.reminder_created_count += 1


@bus.on(E.REMINDER_DELIVERED)
def _count_delivered(**_: object) -> None:
    runtime_metrics.reminder_delivered_count += 1


@bus.on(E.REMINDER_CANCELLED)
def _count_cancelled(**_: object) -> None:
    runtime_metrics.reminder_cancelled_count += 1


@bus.on(E.REMINDER_DELIVERY_FAILED)
def _count_delivery_failed(**_: object) -> None:
    runtime_metrics.delivery_failed_count += 1


@bus.on(E.CONFIRMATION_OPENED)
def _count_confirmation_opened(**_: object) -> None:
    runtime_metrics.confirmation_opened_count += 1


__all__ = ["RuntimeMetrics", "runtime_metrics"]
