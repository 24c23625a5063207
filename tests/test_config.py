import os
from unittest import TestCase
from unittest.mock import patch

from app.backend import config, constants


class NumericSettingTests(TestCase):
	def test_rate_limit_parsing(self) -> None:
		cases = {"": 30, "45": 45, "12.9": 12, "0": None, "-1": None, "inf": None, "1e400": None, "nan": None}
		for raw, expected in cases.items():
			with patch.dict(os.environ, {"AI_RATE_LIMIT_PER_MINUTE": raw}, clear=False):
				self.assertEqual(config.rate_limit_per_minute(), expected, raw)

	def test_temperature_rejects_non_finite_values(self) -> None:
		for raw in ("nan", "inf", "-inf", "warm"):
			with patch.dict(os.environ, {"AI_TEMPERATURE": raw}, clear=False):
				self.assertEqual(config.temperature(), constants.DEFAULT_TEMPERATURE, raw)
		with patch.dict(os.environ, {"AI_TEMPERATURE": "0.7"}, clear=False):
			self.assertEqual(config.temperature(), 0.7)

	def test_provider_timeout_falls_back_on_non_finite_values(self) -> None:
		for raw in ("inf", "nan", "0", "-3"):
			with patch.dict(os.environ, {"AI_PROVIDER_TIMEOUT_S": raw}, clear=False):
				self.assertEqual(config.provider_timeout_s(), constants.DEFAULT_PROVIDER_TIMEOUT_S, raw)

	def test_humor_probability_is_clamped(self) -> None:
		with patch.dict(os.environ, {"AI_HUMOR_PROBABILITY": "nan"}, clear=False):
			self.assertEqual(config.humor_probability(), constants.DEFAULT_HUMOR_PROBABILITY)
		with patch.dict(os.environ, {"AI_HUMOR_PROBABILITY": "4"}, clear=False):
			self.assertEqual(config.humor_probability(), 1.0)
