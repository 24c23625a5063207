import os
from unittest import TestCase
from unittest.mock import patch

from app.backend.assist.types import Identity, IdentityUnresolved
from app.backend.services import identity_service


class _FailingResolver:
	def resolve(self, email, name, role):
		raise IdentityUnresolved("store offline")


class _StaticResolver:
	def resolve(self, email, name, role):
		return Identity(id="u-1", name=name, email=email, role=role, persisted=True)


class IdentityServiceTests(TestCase):
	def test_headers_drive_requested_identity(self) -> None:
		headers = {"x-user-email": "ada@civis.local", "x-user-name": "Ada"}
		with patch.dict(os.environ, {"DEFAULT_SUPER_ADMIN_EMAIL": "boss@civis.local"}, clear=False):
			self.assertEqual(
				identity_service.requested_identity(headers),
				("ada@civis.local", "Ada", "USER"),
			)

	def test_name_defaults_to_email_local_part(self) -> None:
		email, name, _role = identity_service.requested_identity({"x-user-email": "grace.h@civis.local"})
		self.assertEqual(email, "grace.h@civis.local")
		self.assertEqual(name, "grace.h")

	def test_super_admin_email_gets_super_admin_role(self) -> None:
		with patch.dict(os.environ, {"DEFAULT_SUPER_ADMIN_EMAIL": "Boss@Civis.local"}, clear=False):
			_email, _name, role = identity_service.requested_identity({"x-user-email": "boss@civis.local"})
		self.assertEqual(role, "SUPER_ADMIN")

	def test_resolver_failure_yields_fallback_identity(self) -> None:
		with self.assertLogs("app.backend.services.identity_service", level="WARNING"):
			identity = identity_service.resolve_identity({"x-user-email": "ada@civis.local"}, _FailingResolver())
		self.assertFalse(identity.persisted)
		self.assertEqual(identity.id, "fallback-ada@civis.local")
		self.assertEqual(identity.name, "ada")

	def test_resolver_success_is_persisted(self) -> None:
		identity = identity_service.resolve_identity({"x-user-email": "ada@civis.local"}, _StaticResolver())
		self.assertTrue(identity.persisted)
		self.assertEqual(identity.id, "u-1")

	def test_sqlite_resolver_without_store_falls_back(self) -> None:
		with patch.dict(os.environ, {"CIVIS_DB_PATH": ""}, clear=False):
			with self.assertLogs("app.backend.services.identity_service", level="WARNING"):
				identity = identity_service.resolve_identity({}, identity_service.SqliteIdentityResolver())
		self.assertFalse(identity.persisted)

	def test_lock_state_only_unlocks_on_true(self) -> None:
		locks = identity_service.lock_state(
			{"x-hr-sensitive-unlocked": "TRUE", "x-finance-sensitive-unlocked": "yes"}
		)
		self.assertTrue(locks.hr_unlocked)
		self.assertFalse(locks.finance_unlocked)
