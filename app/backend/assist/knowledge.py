from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class KnowledgeEntry:
	title: str
	keywords: tuple[str, ...]
	content: str


CIVIS_KB: List[KnowledgeEntry] = [
	KnowledgeEntry(
		title="CRM custom fields",
		keywords=("crm", "field", "custom", "column", "property", "checkbox", "select"),
		content=(
			"Civis CRM supports custom fields on contacts, companies, and deals. Use text, number, currency, "
			"date, select, multi-select, or checkbox fields. You can mark a field as required, reorder columns, "
			"and hide fields per view."
		),
	),
	KnowledgeEntry(
		title="Ops command center",
		keywords=("ops", "command", "operations", "alerts", "anomaly", "decision"),
		content=(
			"The Ops Command Center shows your real-time business pulse: overdue invoices, pending expenses, "
			"stalled deals, and risky tasks. It suggests next actions and links directly to the right module."
		),
	),
	KnowledgeEntry(
		title="Client portal",
		keywords=("portal", "client", "share", "document", "update", "link"),
		content=(
			"Client portals let customers see updates, shared documents, and delivery status. You can post "
			"status updates, attach documents, and generate a secure share link for each client."
		),
	),
	KnowledgeEntry(
		title="Accounting reports",
		keywords=("accounting", "report", "vat", "invoice", "expense", "export"),
		content=(
			"Accounting reports include revenue vs expenses, VAT summaries, invoice aging, and CSV exports. "
			"Use the Reports panel to download or email CSV files."
		),
	),
	KnowledgeEntry(
		title="HR attendance",
		keywords=("hr", "attendance", "leave", "payroll", "employee"),
		content=(
			"The HR module supports attendance tracking, leave status, and payroll visibility controls. Use the "
			"attendance tracker to log check-ins, mark leave types, and set reminders for return dates."
		),
	),
	KnowledgeEntry(
		title="Playbooks and workflows",
		keywords=("playbook", "workflow", "automation", "steps", "checklist"),
		content=(
			"Playbooks provide guided workflows like onboarding, collections, or recruiting. Each run is tracked, "
			"with steps, owners, and completion status for audit readiness."
		),
	),
]


def find_knowledge(query: str) -> Optional[KnowledgeEntry]:
	"""Best keyword-overlap entry; ties keep the earlier entry."""
	text = query.lower()
	best: Optional[KnowledgeEntry] = None
	best_score = 0
	for entry in CIVIS_KB:
		score = sum(1 for keyword in entry.keywords if keyword in text)
		if score > best_score:
			best = entry
			best_score = score
	return best
