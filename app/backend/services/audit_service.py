from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from app.backend.adapters import sqlite_adapter


logger = logging.getLogger(__name__)

_EXECUTOR = ThreadPoolExecutor(max_workers=2, thread_name_prefix="civis-audit")


@dataclass
class AuditEntry:
	user_id: Optional[str]
	action: str
	entity: str
	entity_id: str
	metadata: Dict[str, Any] = field(default_factory=dict)


class SqliteAuditSink:
	def __init__(self, db_path: Optional[str] = None):
		self._db_path = db_path

	def write(self, entry: AuditEntry) -> None:
		sqlite_adapter.insert_audit_log(
			user_id=entry.user_id,
			action=entry.action,
			entity=entry.entity,
			entity_id=entry.entity_id,
			metadata=entry.metadata,
			db_path=self._db_path,
		)


def chat_audit_entry(*, user_id: Optional[str], persisted: bool, mode: str, provider: str) -> AuditEntry:
	return AuditEntry(
		user_id=user_id if persisted else None,
		action="Civis AI request",
		entity="AI",
		entity_id=f"{mode}-{int(time.time() * 1000)}",
		metadata={"mode": mode, "provider": provider},
	)


def write_safely(sink: Any, entry: AuditEntry) -> bool:
	try:
		sink.write(entry)
	except Exception as exc:
		logger.warning(f"Failed to write AI audit log: {exc}")
		return False
	return True


def dispatch(sink: Any, entry: AuditEntry, submit: Callable[..., Any] | None = None) -> Optional[Future]:
	"""Queue the write on a background thread; the caller never waits on it."""
	runner = submit or _EXECUTOR.submit
	try:
		return runner(write_safely, sink, entry)
	except RuntimeError as exc:
		logger.warning(f"Audit executor unavailable: {exc}")
		return None
