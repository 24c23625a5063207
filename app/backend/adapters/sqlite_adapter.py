from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

from app.backend import config, constants


class StoreNotConfigured(RuntimeError):
	pass


_SCHEMA = (
	"""
	CREATE TABLE IF NOT EXISTS users (
		id TEXT PRIMARY KEY,
		email TEXT NOT NULL UNIQUE,
		name TEXT NOT NULL,
		role TEXT NOT NULL,
		ai_provider TEXT,
		created_at TEXT NOT NULL,
		updated_at TEXT NOT NULL
	)
	""",
	"""
	CREATE TABLE IF NOT EXISTS contacts (
		id TEXT PRIMARY KEY,
		name TEXT NOT NULL,
		status TEXT NOT NULL DEFAULT 'LEAD',
		last_contact TEXT,
		created_at TEXT NOT NULL
	)
	""",
	"""
	CREATE TABLE IF NOT EXISTS deals (
		id TEXT PRIMARY KEY,
		title TEXT NOT NULL,
		stage TEXT NOT NULL,
		value REAL NOT NULL DEFAULT 0,
		updated_at TEXT NOT NULL
	)
	""",
	"""
	CREATE TABLE IF NOT EXISTS invoices (
		id TEXT PRIMARY KEY,
		status TEXT NOT NULL,
		amount REAL NOT NULL DEFAULT 0,
		issue_date TEXT NOT NULL
	)
	""",
	"""
	CREATE TABLE IF NOT EXISTS expenses (
		id TEXT PRIMARY KEY,
		status TEXT NOT NULL,
		amount REAL NOT NULL DEFAULT 0,
		date TEXT NOT NULL
	)
	""",
	"""
	CREATE TABLE IF NOT EXISTS employees (
		id TEXT PRIMARY KEY,
		name TEXT NOT NULL,
		status TEXT NOT NULL DEFAULT 'ACTIVE',
		salary REAL NOT NULL DEFAULT 0
	)
	""",
	"""
	CREATE TABLE IF NOT EXISTS playbooks (
		id TEXT PRIMARY KEY,
		name TEXT NOT NULL,
		status TEXT NOT NULL DEFAULT 'ACTIVE'
	)
	""",
	"""
	CREATE TABLE IF NOT EXISTS workflows (
		id TEXT PRIMARY KEY,
		name TEXT NOT NULL,
		active INTEGER NOT NULL DEFAULT 1
	)
	""",
	"""
	CREATE TABLE IF NOT EXISTS portals (
		id TEXT PRIMARY KEY,
		name TEXT NOT NULL,
		active INTEGER NOT NULL DEFAULT 1
	)
	""",
	"""
	CREATE TABLE IF NOT EXISTS audit_log (
		id INTEGER PRIMARY KEY AUTOINCREMENT,
		user_id TEXT,
		action TEXT NOT NULL,
		entity TEXT,
		entity_id TEXT,
		metadata TEXT,
		created_at TEXT NOT NULL
	)
	""",
)

_READY_PATHS: set[str] = set()
_READY_LOCK = Lock()


def _now_iso() -> str:
	return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _get_db_path(db_path: Optional[str]) -> str:
	path = db_path or config.database_path()
	if not path:
		raise StoreNotConfigured("CIVIS_DB_PATH is not set; the data store is unavailable.")
	return path


def _connect(path: str) -> sqlite3.Connection:
	conn = sqlite3.connect(path, timeout=constants.SQLITE_BUSY_TIMEOUT_MS / 1000)
	conn.execute("PRAGMA journal_mode=WAL")
	conn.execute("PRAGMA synchronous=NORMAL")
	conn.execute(f"PRAGMA busy_timeout={constants.SQLITE_BUSY_TIMEOUT_MS}")
	return conn


def init_db(db_path: Optional[str] = None) -> str:
	path = _get_db_path(db_path)
	Path(path).parent.mkdir(parents=True, exist_ok=True)
	conn = _connect(path)
	try:
		for statement in _SCHEMA:
			conn.execute(statement)
		conn.commit()
	finally:
		conn.close()
	with _READY_LOCK:
		_READY_PATHS.add(path)
	return path


def ensure_db(db_path: Optional[str] = None) -> str:
	"""Bootstrap the schema once per database file."""
	path = _get_db_path(db_path)
	with _READY_LOCK:
		ready = path in _READY_PATHS
	if ready and Path(path).exists():
		return path
	return init_db(path)


def _scalar(sql: str, params: tuple = (), db_path: Optional[str] = None) -> Any:
	path = ensure_db(db_path)
	conn = _connect(path)
	try:
		row = conn.execute(sql, params).fetchone()
	finally:
		conn.close()
	if row is None:
		return None
	return row[0]


def _count(sql: str, params: tuple = (), db_path: Optional[str] = None) -> int:
	return int(_scalar(sql, params, db_path) or 0)


def _sum(sql: str, params: tuple = (), db_path: Optional[str] = None) -> float:
	return float(_scalar(sql, params, db_path) or 0)


def upsert_user(email: str, name: str, role: str, db_path: Optional[str] = None) -> Dict[str, Any]:
	path = ensure_db(db_path)
	now = _now_iso()
	conn = _connect(path)
	try:
		conn.execute(
			"""
			INSERT INTO users (id, email, name, role, created_at, updated_at)
			VALUES (?, ?, ?, ?, ?, ?)
			ON CONFLICT(email)
			DO UPDATE SET name=excluded.name, updated_at=excluded.updated_at
			""",
			(uuid.uuid4().hex, email, name, role, now, now),
		)
		conn.commit()
		conn.row_factory = sqlite3.Row
		row = conn.execute(
			"SELECT id, email, name, role, ai_provider FROM users WHERE email = ?",
			(email,),
		).fetchone()
	finally:
		conn.close()
	return dict(row)


def set_user_ai_provider(user_id: str, provider: Optional[str], db_path: Optional[str] = None) -> None:
	path = ensure_db(db_path)
	conn = _connect(path)
	try:
		conn.execute(
			"UPDATE users SET ai_provider = ?, updated_at = ? WHERE id = ?",
			(provider, _now_iso(), user_id),
		)
		conn.commit()
	finally:
		conn.close()


def get_user_ai_provider(user_id: str, db_path: Optional[str] = None) -> Optional[str]:
	value = _scalar("SELECT ai_provider FROM users WHERE id = ?", (user_id,), db_path)
	if isinstance(value, str) and value.strip():
		return value.strip()
	return None


def count_employees(db_path: Optional[str] = None) -> int:
	return _count("SELECT COUNT(*) FROM employees WHERE status = 'ACTIVE'", db_path=db_path)


def sum_payroll_monthly(db_path: Optional[str] = None) -> float:
	return _sum("SELECT SUM(salary) FROM employees WHERE status = 'ACTIVE'", db_path=db_path)


def count_contacts(db_path: Optional[str] = None) -> int:
	return _count("SELECT COUNT(*) FROM contacts", db_path=db_path)


def count_inactive_contacts(cutoff_iso: str, db_path: Optional[str] = None) -> int:
	return _count(
		"""
		SELECT COUNT(*) FROM contacts
		WHERE status IN ('LEAD', 'PROSPECT')
		AND (last_contact IS NULL OR last_contact < ?)
		""",
		(cutoff_iso,),
		db_path,
	)


def count_open_deals(db_path: Optional[str] = None) -> int:
	return _count("SELECT COUNT(*) FROM deals WHERE stage NOT IN ('WON', 'LOST')", db_path=db_path)


def count_stalled_deals(cutoff_iso: str, db_path: Optional[str] = None) -> int:
	return _count(
		"""
		SELECT COUNT(*) FROM deals
		WHERE stage IN ('PROPOSAL', 'NEGOTIATION', 'QUALIFIED')
		AND updated_at < ?
		""",
		(cutoff_iso,),
		db_path,
	)


def count_overdue_invoices(db_path: Optional[str] = None) -> int:
	return _count("SELECT COUNT(*) FROM invoices WHERE status = 'OVERDUE'", db_path=db_path)


def sum_paid_invoices_since(since_iso: str, db_path: Optional[str] = None) -> float:
	return _sum(
		"SELECT SUM(amount) FROM invoices WHERE status = 'PAID' AND issue_date >= ?",
		(since_iso,),
		db_path,
	)


def count_pending_expenses(db_path: Optional[str] = None) -> int:
	return _count("SELECT COUNT(*) FROM expenses WHERE status = 'PENDING'", db_path=db_path)


def sum_expenses_since(since_iso: str, db_path: Optional[str] = None) -> float:
	return _sum("SELECT SUM(amount) FROM expenses WHERE date >= ?", (since_iso,), db_path)


def count_active_playbooks(db_path: Optional[str] = None) -> int:
	return _count("SELECT COUNT(*) FROM playbooks WHERE status = 'ACTIVE'", db_path=db_path)


def count_active_workflows(db_path: Optional[str] = None) -> int:
	return _count("SELECT COUNT(*) FROM workflows WHERE active = 1", db_path=db_path)


def count_active_portals(db_path: Optional[str] = None) -> int:
	return _count("SELECT COUNT(*) FROM portals WHERE active = 1", db_path=db_path)


def insert_audit_log(
	*,
	user_id: Optional[str],
	action: str,
	entity: Optional[str] = None,
	entity_id: Optional[str] = None,
	metadata: Optional[Dict[str, Any]] = None,
	db_path: Optional[str] = None,
) -> None:
	path = ensure_db(db_path)
	conn = _connect(path)
	try:
		conn.execute(
			"""
			INSERT INTO audit_log (user_id, action, entity, entity_id, metadata, created_at)
			VALUES (?, ?, ?, ?, ?, ?)
			""",
			(
				user_id,
				action,
				entity,
				entity_id,
				json.dumps(metadata) if metadata is not None else None,
				_now_iso(),
			),
		)
		conn.commit()
	finally:
		conn.close()


def list_audit_log(limit: int = 20, db_path: Optional[str] = None) -> list[Dict[str, Any]]:
	path = ensure_db(db_path)
	conn = _connect(path)
	try:
		conn.row_factory = sqlite3.Row
		rows = conn.execute(
			"""
			SELECT user_id, action, entity, entity_id, metadata, created_at
			FROM audit_log ORDER BY id DESC LIMIT ?
			""",
			(limit,),
		).fetchall()
	finally:
		conn.close()
	return [dict(row) for row in rows]

