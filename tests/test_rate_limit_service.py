import os
import threading
from concurrent.futures import ThreadPoolExecutor
from unittest import TestCase
from unittest.mock import patch

from app.backend.services import rate_limit_service
from app.backend.services.rate_limit_service import (
	InMemoryRateLimitStore,
	RateLimitStoreError,
	RedisRateLimitStore,
)


class _Clock:
	def __init__(self, now: float = 1_000_000.0):
		self.now = now

	def __call__(self) -> float:
		return self.now


class _FakeRedis:
	def __init__(self):
		self.counts = {}
		self.ttls = {}

	def incr(self, key):
		self.counts[key] = self.counts.get(key, 0) + 1
		return self.counts[key]

	def pexpire(self, key, ms):
		self.ttls[key] = ms
		return True

	def pttl(self, key):
		return self.ttls.get(key, -1)


class _BrokenRedis:
	def incr(self, key):
		raise ConnectionError("redis down")


class InMemoryRateLimitStoreTests(TestCase):
	def test_request_over_limit_is_rejected_until_window_resets(self) -> None:
		clock = _Clock()
		store = InMemoryRateLimitStore(clock=clock)
		for _ in range(3):
			self.assertTrue(store.check("ai:1.2.3.4:", 3, 60_000).ok)

		rejected = store.check("ai:1.2.3.4:", 3, 60_000)
		self.assertFalse(rejected.ok)
		self.assertEqual(rejected.remaining, 0)
		self.assertEqual(rejected.reset_at, clock.now + 60_000)

		clock.now += 60_000
		fresh = store.check("ai:1.2.3.4:", 3, 60_000)
		self.assertTrue(fresh.ok)
		self.assertEqual(fresh.remaining, 2)

	def test_keys_are_counted_independently(self) -> None:
		store = InMemoryRateLimitStore(clock=_Clock())
		self.assertTrue(store.check("a", 1, 60_000).ok)
		self.assertFalse(store.check("a", 1, 60_000).ok)
		self.assertTrue(store.check("b", 1, 60_000).ok)

	def test_concurrent_checks_admit_exactly_the_limit(self) -> None:
		store = InMemoryRateLimitStore(clock=_Clock())
		start = threading.Barrier(16)

		def hit(index: int) -> bool:
			if index < 16:
				start.wait()
			return store.check("ai:shared:", 25, 60_000).ok

		with ThreadPoolExecutor(max_workers=16) as pool:
			results = list(pool.map(hit, range(200)))
		self.assertEqual(sum(results), 25)
		self.assertEqual(results.count(False), 175)


class RedisRateLimitStoreTests(TestCase):
	def test_first_hit_sets_expiry_and_limit_applies(self) -> None:
		client = _FakeRedis()
		store = RedisRateLimitStore(client, clock=_Clock(5_000.0))
		first = store.check("ai:ip:", 2, 60_000)
		self.assertTrue(first.ok)
		self.assertEqual(client.ttls["civis:rl:ai:ip:"], 60_000)
		self.assertEqual(first.reset_at, 65_000.0)
		self.assertTrue(store.check("ai:ip:", 2, 60_000).ok)
		self.assertFalse(store.check("ai:ip:", 2, 60_000).ok)

	def test_client_errors_are_wrapped(self) -> None:
		store = RedisRateLimitStore(_BrokenRedis())
		with self.assertRaises(RateLimitStoreError):
			store.check("k", 1, 1000)


class RateLimitCheckTests(TestCase):
	def tearDown(self) -> None:
		rate_limit_service.set_store(None)

	def test_limit_from_environment(self) -> None:
		rate_limit_service.set_store(InMemoryRateLimitStore(clock=_Clock()))
		with patch.dict(os.environ, {"AI_RATE_LIMIT_PER_MINUTE": "2"}, clear=False):
			results = [rate_limit_service.check("ai:x:") for _ in range(3)]
		self.assertEqual([item.ok for item in results], [True, True, False])

	def test_non_positive_or_invalid_limit_disables_limiting(self) -> None:
		rate_limit_service.set_store(InMemoryRateLimitStore(clock=_Clock()))
		for raw in ("0", "-5", "lots", "inf", "-inf", "1e400", "nan"):
			with patch.dict(os.environ, {"AI_RATE_LIMIT_PER_MINUTE": raw}, clear=False):
				self.assertTrue(all(rate_limit_service.check("ai:y:").ok for _ in range(50)))

	def test_store_failure_allows_request(self) -> None:
		rate_limit_service.set_store(RedisRateLimitStore(_BrokenRedis()))
		with self.assertLogs("app.backend.services.rate_limit_service", level="WARNING"):
			decision = rate_limit_service.check("ai:z:", limit=1)
		self.assertTrue(decision.ok)

	def test_client_key_prefers_forwarded_ip(self) -> None:
		headers = {"x-forwarded-for": "10.0.0.1, 10.0.0.2", "x-user-email": "ada@civis.local"}
		self.assertEqual(rate_limit_service.client_key(headers, "127.0.0.1"), "ai:10.0.0.1:ada@civis.local")
		self.assertEqual(rate_limit_service.client_key({}, None), "ai:unknown:")

	def test_retry_after_is_at_least_one_second(self) -> None:
		self.assertEqual(rate_limit_service.retry_after_seconds(10_500.0, now_ms=10_000.0), 1)
		self.assertEqual(rate_limit_service.retry_after_seconds(9_000.0, now_ms=10_000.0), 1)
		self.assertEqual(rate_limit_service.retry_after_seconds(40_001.0, now_ms=10_000.0), 31)
