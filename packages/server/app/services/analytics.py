"""
Analytics sinks. Emission is fire-and-forget: a failing sink is logged and
never fails the onboarding operation that triggered it.
"""

from __future__ import annotations

from typing import Any, Protocol

import structlog

log = structlog.get_logger()


class AnalyticsSink(Protocol):
    async def emit(self, event: str, properties: dict[str, Any]) -> None: ...


class LogAnalyticsSink:
    """Writes events to the structured log stream for downstream collection."""

    async def emit(self, event: str, properties: dict[str, Any]) -> None:
        log.info("analytics.event", name=event, **properties)


class NullAnalyticsSink:
    async def emit(self, event: str, properties: dict[str, Any]) -> None:
        return None


async def emit_safely(sink: AnalyticsSink, event: str, properties: dict[str, Any]) -> None:
    try:
        await sink.emit(event, properties)
    except Exception as exc:
        log.warning("analytics.emit_failed", analytics_event=event, error=str(exc))
