from __future__ import annotations

import math
import os

from app.backend import constants


_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _bool_env(name: str, default: bool) -> bool:
	raw = os.getenv(name, "").strip().lower()
	if raw in _TRUE_VALUES:
		return True
	if raw in _FALSE_VALUES:
		return False
	return default


def _float_env(name: str, default: float, minimum: float = 0.0) -> float:
	raw = os.getenv(name, "").strip()
	if not raw:
		return default
	try:
		value = float(raw)
	except ValueError:
		return default
	return value if math.isfinite(value) and value > minimum else default


def app_env() -> str:
	return os.getenv("APP_ENV", "development").strip().lower() or "development"


def expose_error_detail() -> bool:
	return app_env() != "production"


def log_level() -> str:
	return os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"


def local_fast_path_enabled() -> bool:
	return _bool_env("AI_LOCAL_ONLY", False)


def sensitive_gate_enabled() -> bool:
	return _bool_env("AI_SENSITIVE_GATE", True)


def rate_limit_per_minute() -> int | None:
	"""Per-key request budget for the chat endpoint; None disables limiting."""
	raw = os.getenv("AI_RATE_LIMIT_PER_MINUTE")
	if raw is None or not raw.strip():
		return constants.DEFAULT_RATE_LIMIT_PER_MINUTE
	try:
		value = int(float(raw.strip()))
	except (ValueError, OverflowError):
		return None
	return value if value > 0 else None


def rate_limit_redis_url() -> str:
	return os.getenv("AI_RATE_LIMIT_REDIS_URL", "").strip()


def provider_timeout_s() -> float:
	return _float_env("AI_PROVIDER_TIMEOUT_S", constants.DEFAULT_PROVIDER_TIMEOUT_S)


def temperature() -> float:
	raw = os.getenv("AI_TEMPERATURE", "").strip()
	if not raw:
		return constants.DEFAULT_TEMPERATURE
	try:
		value = float(raw)
	except ValueError:
		return constants.DEFAULT_TEMPERATURE
	return value if math.isfinite(value) else constants.DEFAULT_TEMPERATURE


def humor_probability() -> float:
	raw = os.getenv("AI_HUMOR_PROBABILITY", "").strip()
	if not raw:
		return constants.DEFAULT_HUMOR_PROBABILITY
	try:
		value = float(raw)
	except ValueError:
		return constants.DEFAULT_HUMOR_PROBABILITY
	if not math.isfinite(value):
		return constants.DEFAULT_HUMOR_PROBABILITY
	return max(0.0, min(1.0, value))


def preferred_provider() -> str:
	return os.getenv("AI_PROVIDER", "").strip().lower()


def database_path() -> str:
	return os.getenv("CIVIS_DB_PATH", "").strip()


def default_user_email() -> str:
	return os.getenv("DEFAULT_USER_EMAIL", "").strip() or constants.DEFAULT_USER_EMAIL


def super_admin_email() -> str:
	return (os.getenv("DEFAULT_SUPER_ADMIN_EMAIL", "").strip() or constants.DEFAULT_USER_EMAIL).lower()
