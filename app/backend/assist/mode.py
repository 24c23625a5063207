from __future__ import annotations

import re
from typing import Optional

from app.backend import constants
from app.backend.assist.types import ChatMode


_TOUR_PATTERN = re.compile(
	r"\b(tour|guide me|walk me through|show me around|onboard me|getting started|get started|new team lead|step \d+)\b",
	re.IGNORECASE,
)
_EMAIL_PATTERN = re.compile(
	r"\b(draft|write|compose|prepare|send)\b.*\b(e-?mail|mail|note to|message to)\b",
	re.IGNORECASE,
)
_SUMMARY_PATTERN = re.compile(
	r"\b(summar(y|ise|ize)|recap|overview of|snapshot|digest|brief me|business pulse|wrap[- ]up)\b",
	re.IGNORECASE,
)


def normalize_mode(value: object) -> Optional[ChatMode]:
	if isinstance(value, str) and value.strip().lower() in constants.CHAT_MODES:
		return value.strip().lower()  # type: ignore[return-value]
	return None


def is_implicit(mode: Optional[ChatMode]) -> bool:
	return mode is None or mode == "qna"


def infer_mode(message: str) -> ChatMode:
	text = " ".join(message.split())
	if _TOUR_PATTERN.search(text):
		return "tour"
	if _EMAIL_PATTERN.search(text):
		return "email"
	if _SUMMARY_PATTERN.search(text):
		return "summary"
	return "qna"
