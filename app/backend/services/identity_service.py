from __future__ import annotations

import logging
import sqlite3
from typing import Any, Mapping, Optional

from app.backend import config
from app.backend.adapters import sqlite_adapter
from app.backend.assist.types import Identity, IdentityUnresolved, LockState


logger = logging.getLogger(__name__)


class SqliteIdentityResolver:
	"""Upserts the requesting user in the Civis store, like a login-less session."""

	def __init__(self, db_path: Optional[str] = None):
		self._db_path = db_path

	def resolve(self, email: str, name: str, role: str) -> Identity:
		try:
			row = sqlite_adapter.upsert_user(email, name, role, db_path=self._db_path)
		except (sqlite_adapter.StoreNotConfigured, sqlite3.Error) as exc:
			raise IdentityUnresolved(str(exc)) from exc
		return Identity(
			id=str(row["id"]),
			name=str(row["name"]),
			email=str(row["email"]),
			role=str(row["role"]),
			persisted=True,
		)

	def provider_preference(self, identity: Identity) -> Optional[str]:
		if not identity.persisted:
			return None
		try:
			return sqlite_adapter.get_user_ai_provider(identity.id, db_path=self._db_path)
		except (sqlite_adapter.StoreNotConfigured, sqlite3.Error) as exc:
			logger.warning(f"Failed to load AI provider preference: {exc}")
			return None


def _header(headers: Mapping[str, str], name: str) -> str:
	value = headers.get(name)
	return value.strip() if isinstance(value, str) else ""


def requested_identity(headers: Mapping[str, str]) -> tuple[str, str, str]:
	email = _header(headers, "x-user-email") or config.default_user_email()
	name = _header(headers, "x-user-name") or email.split("@")[0]
	role = "SUPER_ADMIN" if email.lower() == config.super_admin_email() else "USER"
	return email, name, role


def fallback_identity(headers: Mapping[str, str]) -> Identity:
	email, name, role = requested_identity(headers)
	return Identity(id=f"fallback-{email.lower()}", name=name, email=email, role=role, persisted=False)


def resolve_identity(headers: Mapping[str, str], resolver: Any) -> Identity:
	"""Resolve the caller; never raises, degrading to a non-persisted identity."""
	email, name, role = requested_identity(headers)
	try:
		return resolver.resolve(email, name, role)
	except Exception as exc:
		logger.warning(f"Identity unresolved for {email}, using fallback identity: {exc}")
		return fallback_identity(headers)


def lock_state(headers: Mapping[str, str]) -> LockState:
	return LockState(
		hr_unlocked=_header(headers, "x-hr-sensitive-unlocked").lower() == "true",
		finance_unlocked=_header(headers, "x-finance-sensitive-unlocked").lower() == "true",
	)
