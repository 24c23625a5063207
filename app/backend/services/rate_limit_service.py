from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict

from app.backend import config, constants


logger = logging.getLogger(__name__)


class RateLimitStoreError(Exception):
	pass


@dataclass
class RateLimitRecord:
	key: str
	window_start: float
	count: int


@dataclass
class RateLimitDecision:
	ok: bool
	reset_at: float
	remaining: int


def _now_ms() -> float:
	return time.time() * 1000


class InMemoryRateLimitStore:
	"""Fixed-window counters for a single process, keyed by client."""

	def __init__(self, clock: Callable[[], float] = _now_ms):
		self._clock = clock
		self._records: Dict[str, RateLimitRecord] = {}
		self._lock = Lock()

	def check(self, key: str, limit: int, window_ms: int) -> RateLimitDecision:
		now = self._clock()
		with self._lock:
			record = self._records.get(key)
			if record is None or now >= record.window_start + window_ms:
				record = RateLimitRecord(key=key, window_start=now, count=0)
				self._records[key] = record
			reset_at = record.window_start + window_ms
			if record.count >= limit:
				return RateLimitDecision(ok=False, reset_at=reset_at, remaining=0)
			record.count += 1
			return RateLimitDecision(ok=True, reset_at=reset_at, remaining=limit - record.count)


class RedisRateLimitStore:
	"""Fixed-window counters shared across processes through Redis INCR/PEXPIRE."""

	def __init__(self, client: Any, *, prefix: str = "civis:rl", clock: Callable[[], float] = _now_ms):
		self._client = client
		self._prefix = prefix
		self._clock = clock

	def check(self, key: str, limit: int, window_ms: int) -> RateLimitDecision:
		redis_key = f"{self._prefix}:{key}"
		try:
			count = int(self._client.incr(redis_key))
			if count == 1:
				self._client.pexpire(redis_key, window_ms)
			ttl_ms = int(self._client.pttl(redis_key))
			if ttl_ms < 0:
				# Key lost its expiry; restart the window.
				self._client.pexpire(redis_key, window_ms)
				ttl_ms = window_ms
		except Exception as exc:
			raise RateLimitStoreError(f"Rate limit store failed: {exc}") from exc
		reset_at = self._clock() + ttl_ms
		if count > limit:
			return RateLimitDecision(ok=False, reset_at=reset_at, remaining=0)
		return RateLimitDecision(ok=True, reset_at=reset_at, remaining=limit - count)


def _build_redis_store(url: str) -> RedisRateLimitStore:
	import redis

	return RedisRateLimitStore(redis.Redis.from_url(url))


_STORE: Any = None
_STORE_LOCK = Lock()


def get_store() -> Any:
	global _STORE
	with _STORE_LOCK:
		if _STORE is None:
			url = config.rate_limit_redis_url()
			_STORE = _build_redis_store(url) if url else InMemoryRateLimitStore()
		return _STORE


def set_store(store: Any) -> None:
	"""Swap the process-wide store; passing None rebuilds it from config on next use."""
	global _STORE
	with _STORE_LOCK:
		_STORE = store


def client_key(headers: Any, client_host: str | None, scope: str = constants.RATE_LIMIT_SCOPE) -> str:
	forwarded = headers.get("x-forwarded-for") or ""
	ip = forwarded.split(",")[0].strip() or (client_host or "").strip()
	email = (headers.get("x-user-email") or "").strip()
	return f"{scope}:{ip or 'unknown'}:{email}"


def retry_after_seconds(reset_at_ms: float, now_ms: float | None = None) -> int:
	now = _now_ms() if now_ms is None else now_ms
	return max(1, math.ceil((reset_at_ms - now) / 1000))


def check(key: str, limit: int | None = None, window_ms: int = constants.RATE_LIMIT_WINDOW_MS) -> RateLimitDecision:
	"""Count one request for `key`; limiting is off when the configured limit is not positive."""
	if limit is None:
		limit = config.rate_limit_per_minute()
	if limit is None:
		return RateLimitDecision(ok=True, reset_at=_now_ms(), remaining=-1)
	try:
		decision = get_store().check(key, limit, window_ms)
	except RateLimitStoreError as exc:
		logger.warning(f"{exc}; allowing request")
		return RateLimitDecision(ok=True, reset_at=_now_ms() + window_ms, remaining=-1)
	if not decision.ok:
		logger.warning(f"Rate limit exceeded for {key} ({limit}/{window_ms}ms)")
	return decision
