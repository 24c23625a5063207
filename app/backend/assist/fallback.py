from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional

from app.backend.assist.knowledge import find_knowledge
from app.backend.assist.types import TourContext


TOUR_STEPS: List[Dict[str, Any]] = [
	{
		"module": "overview",
		"summary": "Overview: your business pulse (KPIs + alerts).",
		"details": [
			"Pin the KPIs that matter for your role.",
			"Check the alert strip every morning; it links straight to the fix.",
		],
		"stats": ("contacts", "openDeals"),
	},
	{
		"module": "crm",
		"summary": "CRM: manage contacts, companies, and deals.",
		"details": [
			"Add custom fields for the data your team actually tracks.",
			"Move deals across stages on the board and set follow-up reminders.",
			"Use the follow-up scheduler to catch contacts that went quiet.",
		],
		"stats": ("contacts", "openDeals"),
	},
	{
		"module": "accounting",
		"summary": "Accounting: invoices, expenses, and VAT-ready reports.",
		"details": [
			"Chase overdue invoices from the aging view.",
			"Approve pending expenses before month end.",
			"Export VAT summaries as CSV for your accountant.",
		],
		"stats": ("overdueInvoices", "pendingExpenses"),
	},
	{
		"module": "hr",
		"summary": "HR: employees, payroll, and attendance.",
		"details": [
			"Keep employee records complete so payroll runs cleanly.",
			"Payroll figures stay hidden until HR sensitive data is unlocked.",
			"Log attendance and leave from the tracker.",
		],
		"stats": ("employees",),
	},
	{
		"module": "operations",
		"summary": "Operations: playbooks and decision trails.",
		"details": [
			"Run playbooks for onboarding, collections, and recruiting.",
			"Automations handle the repeat work; review them monthly.",
			"Decision trails record who approved what, and can be rolled back.",
		],
		"stats": ("activePlaybooks", "activeAutomations"),
	},
	{
		"module": "portal",
		"summary": "Client Portal: share updates and documents.",
		"details": [
			"Post status updates clients can see without emailing you.",
			"Attach documents and share a secure link per client.",
		],
		"stats": ("activePortals",),
	},
]

_STAT_LABELS = {
	"contacts": "contacts",
	"openDeals": "open deals",
	"overdueInvoices": "overdue invoices",
	"pendingExpenses": "pending expenses",
	"employees": "employees",
	"activePlaybooks": "active playbooks",
	"activeAutomations": "active automations",
	"activePortals": "active portals",
}

_ROLE_FOCUS = {
	"sales lead": 1,
	"finance lead": 2,
	"HR lead": 3,
	"operations lead": 4,
}


def _as_mapping(value: Any) -> Mapping[str, Any]:
	return value if isinstance(value, Mapping) else {}


def _stat_line(stats: Mapping[str, int], keys: tuple[str, ...]) -> str:
	parts = [f"{stats[key]} {_STAT_LABELS[key]}" for key in keys if key in stats]
	return f" (right now: {', '.join(parts)})" if parts else ""


def tour_step_number(phase: str) -> Optional[int]:
	match = re.fullmatch(r"step-(\d+)", phase or "")
	if not match:
		return None
	number = int(match.group(1))
	if 1 <= number <= len(TOUR_STEPS):
		return number
	return None


def build_tour_response(tour: Optional[TourContext], user_name: str = "there") -> str:
	stats = tour.stats if tour else {}
	step_number = tour_step_number(tour.phase) if tour else None
	if step_number is not None:
		step = TOUR_STEPS[step_number - 1]
		lines = [f"Step {step_number}: {step['summary']}{_stat_line(stats, step['stats'])}", ""]
		lines.extend(f"- {detail}" for detail in step["details"])
		if step_number < len(TOUR_STEPS):
			lines.append("")
			lines.append(f"Say \"guide me on step {step_number + 1}\" when you are ready to continue.")
		else:
			lines.append("")
			lines.append("That completes the tour. Ask me anything about a module.")
		return "\n".join(lines)

	role = tour.role if tour else "team lead"
	lines = [f"Welcome to Civis, {user_name}! Here is a quick tour for a {role}:", ""]
	for index, step in enumerate(TOUR_STEPS, start=1):
		lines.append(f"{index}) {step['summary']}{_stat_line(stats, step['stats'])}")
	focus = _ROLE_FOCUS.get(role)
	lines.append("")
	if focus is not None:
		lines.append(f"As a {role}, start with step {focus + 1}. Say \"guide me on step {focus + 1}\" for a deep dive.")
	else:
		lines.append("Tell me which section you want to explore next, for example \"guide me on step 2\".")
	return "\n".join(lines)


def _email_response(context: Any, user_name: str) -> str:
	details = _as_mapping(context)
	recipient = str(details.get("recipient") or "the client")
	tone = str(details.get("tone") or "professional")
	goal = str(details.get("goal") or "follow up")
	extra = f"Context: {details['context']}\n\n" if details.get("context") else ""
	return (
		f"Subject: Quick update on {goal}\n\n"
		f"Hi {recipient},\n\n"
		f"{extra}"
		f"I wanted to {goal.lower()}. Here is a quick update and the next step I recommend:\n\n"
		"- Status: In progress\n"
		"- Next action: Confirm timeline and dependencies\n\n"
		"Let me know if you'd like me to adjust anything.\n\n"
		f"Best,\n{user_name}\nTone: {tone}"
	)


def _summary_response(context: Any) -> str:
	summary = _as_mapping(context)
	stats = _as_mapping(summary.get("stats"))
	decisions = summary.get("decisions") if isinstance(summary.get("decisions"), list) else []
	activity = summary.get("recentActivity") if isinstance(summary.get("recentActivity"), list) else []
	stat_line = ", ".join(f"{key}: {value}" for key, value in list(stats.items())[:5])
	decision_items = [_as_mapping(item) for item in decisions[:3]]
	decision_line = (
		"\n".join(f"• {item.get('title', 'Decision')} ({item.get('detail', '')})" for item in decision_items)
		if decision_items
		else "• No urgent decisions right now."
	)
	activity_items = [_as_mapping(item) for item in activity[:3]]
	activity_line = (
		"\n".join(
			f"• {item.get('title', 'Activity')}" + (f" ({item['detail']})" if item.get("detail") else "")
			for item in activity_items
		)
		if activity_items
		else "• No recent activity yet."
	)
	return (
		"Here is your Civis snapshot:\n\n"
		f"Top stats: {stat_line or 'No data yet.'}\n\n"
		f"Priority decisions:\n{decision_line}\n\n"
		f"Recent activity:\n{activity_line}\n\n"
		"Want me to generate follow-up tasks or draft an update email?"
	)


def build_fallback_response(
	mode: str,
	prompt: str,
	context: Any = None,
	user_name: str = "there",
) -> str:
	"""Deterministic reply for any mode; never empty."""
	if mode == "email":
		return _email_response(context, user_name)
	if mode == "summary":
		return _summary_response(context)
	if mode == "tour":
		return build_tour_response(None, user_name)

	knowledge = find_knowledge(prompt)
	if knowledge:
		return f"{knowledge.content}\n\nWant a step-by-step guide? I can start the guided tour."
	return (
		f"Hi {user_name}! I can help with CRM, accounting, HR, and operations. "
		"Ask me to explain a feature, draft an email, or generate follow-up tasks."
	)
