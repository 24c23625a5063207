from __future__ import annotations

import re
from typing import Optional

from app.backend.assist.types import LockState


PAYROLL_PATTERN = re.compile(
	r"\b(payroll|salary|salaries|bonus(es)?|paye|pension|wages?|compensation|payslips?)\b",
	re.IGNORECASE,
)
FINANCE_PATTERN = re.compile(
	r"\b(revenue|profits?|vat|margins?|income|cash\s*flow|earnings|turnover|p\s*&\s*l)\b",
	re.IGNORECASE,
)

_TONE_SENSITIVE_PATTERNS = [
	r"\bsecurity\b",
	r"\bbreach\b",
	r"\bpassword",
	r"\blegal\b",
	r"\blawsuit\b",
	r"\bcontract dispute\b",
	r"\bcompliance\b",
	r"\baudit\b",
	r"\btax(es)?\b",
	r"\bfired?\b",
	r"\bterminat",
	r"\bdisciplin",
]

_LEVITY_PATTERNS = [
	r"\bjoke\b",
	r"\bfunny\b",
	r"\bmake me (laugh|smile)\b",
	r"\blighten (it|things) up\b",
	r"\bhumou?r\b",
]

HR_LOCKED_MESSAGE = (
	"Payroll and salary figures are locked. Unlock HR sensitive data in the HR module first, "
	"then ask me again."
)
FINANCE_LOCKED_MESSAGE = (
	"Revenue, profit and VAT totals are locked. Unlock finance sensitive data in Accounting first, "
	"then ask me again."
)


def mentions_payroll(text: str) -> bool:
	return bool(PAYROLL_PATTERN.search(text))


def mentions_finance_totals(text: str) -> bool:
	return bool(FINANCE_PATTERN.search(text))


def sensitive_block(text: str, locks: LockState) -> Optional[str]:
	"""Name the locked module ("hr" or "accounting") guarding this query, if any."""
	if mentions_payroll(text) and not locks.hr_unlocked:
		return "hr"
	if mentions_finance_totals(text) and not locks.finance_unlocked:
		return "accounting"
	return None


def is_tone_sensitive(text: str) -> bool:
	content = text.lower()
	if mentions_payroll(content):
		return True
	return any(re.search(pattern, content) for pattern in _TONE_SENSITIVE_PATTERNS)


def asked_for_levity(text: str) -> bool:
	content = text.lower()
	return any(re.search(pattern, content) for pattern in _LEVITY_PATTERNS)
