from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from app.backend import constants
from app.backend.adapters import sqlite_adapter
from app.backend.assist.types import SnapshotRepositoryUnavailable


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
	return datetime.now(timezone.utc)


def _iso(value: datetime) -> str:
	return value.isoformat().replace("+00:00", "Z")


class SqliteSnapshotRepository:
	"""Live business metrics read from the Civis SQLite store.

	Every query raises SnapshotRepositoryUnavailable when the store is not
	configured or the query fails, so callers can switch to the demo snapshot.
	"""

	is_demo = False

	def __init__(self, db_path: Optional[str] = None, now_fn: Callable[[], datetime] = _utcnow):
		self._db_path = db_path
		self._now = now_fn

	def _run(self, query: Callable[..., Any], *args: Any) -> Any:
		try:
			return query(*args, db_path=self._db_path)
		except (sqlite_adapter.StoreNotConfigured, sqlite3.Error) as exc:
			raise SnapshotRepositoryUnavailable(str(exc)) from exc

	def _month_start_iso(self) -> str:
		now = self._now()
		return _iso(now.replace(day=1, hour=0, minute=0, second=0, microsecond=0))

	def count_employees(self) -> int:
		return self._run(sqlite_adapter.count_employees)

	def payroll_monthly(self) -> float:
		return self._run(sqlite_adapter.sum_payroll_monthly)

	def count_contacts(self) -> int:
		return self._run(sqlite_adapter.count_contacts)

	def count_inactive_contacts(self) -> int:
		cutoff = self._now() - timedelta(days=constants.CONTACT_INACTIVITY_DAYS)
		return self._run(sqlite_adapter.count_inactive_contacts, _iso(cutoff))

	def count_open_deals(self) -> int:
		return self._run(sqlite_adapter.count_open_deals)

	def count_stalled_deals(self) -> int:
		cutoff = self._now() - timedelta(days=constants.DEAL_STALL_DAYS)
		return self._run(sqlite_adapter.count_stalled_deals, _iso(cutoff))

	def count_overdue_invoices(self) -> int:
		return self._run(sqlite_adapter.count_overdue_invoices)

	def count_pending_expenses(self) -> int:
		return self._run(sqlite_adapter.count_pending_expenses)

	def finance_totals(self) -> Dict[str, float]:
		month_start = self._month_start_iso()
		revenue = self._run(sqlite_adapter.sum_paid_invoices_since, month_start)
		expenses = self._run(sqlite_adapter.sum_expenses_since, month_start)
		return {"revenue_mtd": revenue, "expenses_mtd": expenses, "profit_mtd": revenue - expenses}

	def count_active_portals(self) -> int:
		return self._run(sqlite_adapter.count_active_portals)

	def count_active_playbooks(self) -> int:
		return self._run(sqlite_adapter.count_active_playbooks)

	def count_active_automations(self) -> int:
		return self._run(sqlite_adapter.count_active_workflows)


class StaticSnapshotRepository:
	"""Fixed metrics; the demo snapshot by default, or any mapping in tests."""

	def __init__(self, values: Mapping[str, float] | None = None, *, is_demo: bool = True):
		self._values = dict(constants.DEMO_SNAPSHOT)
		if values:
			self._values.update(values)
		self.is_demo = is_demo

	def _get(self, key: str) -> Any:
		return self._values[key]

	def count_employees(self) -> int:
		return self._get("employees")

	def payroll_monthly(self) -> float:
		return self._get("payroll_monthly")

	def count_contacts(self) -> int:
		return self._get("contacts")

	def count_inactive_contacts(self) -> int:
		return self._get("inactive_contacts")

	def count_open_deals(self) -> int:
		return self._get("open_deals")

	def count_stalled_deals(self) -> int:
		return self._get("stalled_deals")

	def count_overdue_invoices(self) -> int:
		return self._get("overdue_invoices")

	def count_pending_expenses(self) -> int:
		return self._get("pending_expenses")

	def finance_totals(self) -> Dict[str, float]:
		revenue = self._get("revenue_mtd")
		expenses = self._get("expenses_mtd")
		return {"revenue_mtd": revenue, "expenses_mtd": expenses, "profit_mtd": revenue - expenses}

	def count_active_portals(self) -> int:
		return self._get("active_portals")

	def count_active_playbooks(self) -> int:
		return self._get("active_playbooks")

	def count_active_automations(self) -> int:
		return self._get("active_automations")


def demo_repository() -> StaticSnapshotRepository:
	return StaticSnapshotRepository()


def query_with_demo_fallback(
	repository: Any,
	query: Callable[[Any], Any],
) -> tuple[Any, bool]:
	"""Run `query` against `repository`; on outage rerun it on the demo snapshot.

	Returns the value and whether it came from demo data.
	"""
	try:
		return query(repository), bool(getattr(repository, "is_demo", False))
	except SnapshotRepositoryUnavailable as exc:
		logger.warning(f"Snapshot repository unavailable, serving demo snapshot: {exc}")
		return query(demo_repository()), True
