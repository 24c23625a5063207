from __future__ import annotations

from datetime import datetime, timezone

from app.backend.assist.types import TraceEvent, TraceStatus


def now_iso() -> str:
	return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def make_event(*, step: str, status: TraceStatus, detail: str) -> TraceEvent:
	return TraceEvent(step=step, status=status, detail=detail, timestamp=now_iso())

