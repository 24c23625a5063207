from __future__ import annotations

import logging
import re
from typing import Any, Optional

from app.backend.assist.types import Identity, SnapshotRepositoryUnavailable, TourContext


logger = logging.getLogger(__name__)

_ROLE_PATTERNS = [
	("sales lead", r"\b(sales|crm|pipeline|deals?|account exec)"),
	("finance lead", r"\b(finance|accounting|accountant|invoices?|cfo|bookkeep)"),
	("HR lead", r"\b(hr|human resources|people ops|payroll|recruit)"),
	("operations lead", r"\b(ops|operations|logistics|playbooks?|coo)\b"),
	("executive", r"\b(ceo|founder|owner|executive|director|md|managing director)\b"),
]

_STEP_PATTERN = re.compile(r"\bstep\s*(\d+)\b", re.IGNORECASE)


def infer_role(message: str) -> str:
	text = message.lower()
	for role, pattern in _ROLE_PATTERNS:
		if re.search(pattern, text):
			return role
	return "team lead"


def infer_phase(message: str) -> str:
	match = _STEP_PATTERN.search(message)
	if match:
		return f"step-{int(match.group(1))}"
	return "intro"


def build_tour_context(message: str, identity: Identity, snapshots: Any) -> Optional[TourContext]:
	"""Live counts for the guided tour; None for fallback identities or store outages."""
	if not identity.persisted:
		return None
	try:
		stats = {
			"contacts": snapshots.count_contacts(),
			"openDeals": snapshots.count_open_deals(),
			"overdueInvoices": snapshots.count_overdue_invoices(),
			"pendingExpenses": snapshots.count_pending_expenses(),
			"employees": snapshots.count_employees(),
			"activePlaybooks": snapshots.count_active_playbooks(),
			"activeAutomations": snapshots.count_active_automations(),
			"activePortals": snapshots.count_active_portals(),
		}
	except SnapshotRepositoryUnavailable as exc:
		logger.warning(f"Tour context unavailable, continuing without live numbers: {exc}")
		return None
	return TourContext(role=infer_role(message), phase=infer_phase(message), stats=stats)
