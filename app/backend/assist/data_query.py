from __future__ import annotations

import re
from typing import Any, Callable, Dict, Optional, Tuple

from app.backend import constants
from app.backend.assist import policies
from app.backend.assist.types import ChatAction, ResolverResult, SessionState
from app.backend.services.snapshot_service import demo_repository, query_with_demo_fallback


COUNT_PATTERN = re.compile(r"\b(how many|how much|count|total|number of|sum of)\b", re.IGNORECASE)
ENTITY_PATTERN = re.compile(
	r"\b(employees?|staff|headcount|contacts?|leads?|deals?|pipeline|invoices?|expenses?|revenue|profits?|portals?)\b",
	re.IGNORECASE,
)

_METRIC_PATTERNS: Tuple[Tuple[str, re.Pattern], ...] = (
	("employees", re.compile(r"\b(employees?|staff|headcount|team size|workers?)\b", re.IGNORECASE)),
	("contacts", re.compile(r"\b(contacts?|leads?|customers?|clients?)\b", re.IGNORECASE)),
	("deals", re.compile(r"\b(deals?|pipeline|opportunit(y|ies))\b", re.IGNORECASE)),
	("invoices", re.compile(r"\binvoices?\b", re.IGNORECASE)),
	("expenses", re.compile(r"\bexpenses?\b", re.IGNORECASE)),
	("finance", policies.FINANCE_PATTERN),
	("portals", re.compile(r"\bportals?\b", re.IGNORECASE)),
)

DEMO_TAG = " (demo snapshot, not live data)"


def format_naira(value: float) -> str:
	return f"₦{value:,.0f}"


def _count(value: Any) -> str:
	return f"{int(value):,}"


def _navigate(module: str, selector: Optional[str] = None) -> ChatAction:
	return ChatAction(
		route=constants.MODULE_ROUTES[module],
		title=constants.MODULE_TITLES[module],
		selector=selector,
	)


def is_data_query(message: str) -> bool:
	return bool(
		COUNT_PATTERN.search(message)
		or ENTITY_PATTERN.search(message)
		or policies.mentions_payroll(message)
		or policies.mentions_finance_totals(message)
	)


def select_metric(message: str) -> str:
	"""Most specific metric named in the message, falling back to the full snapshot."""
	if policies.mentions_payroll(message):
		return "employees"
	for metric, pattern in _METRIC_PATTERNS:
		if pattern.search(message):
			return metric
	return "snapshot"


def _employees(repo: Any, include_payroll: bool) -> Dict[str, Any]:
	values = {"employees": repo.count_employees()}
	if include_payroll:
		values["payroll"] = repo.payroll_monthly()
	return values


def _queries(message: str, session: SessionState) -> Dict[str, Callable[[Any], Dict[str, Any]]]:
	include_payroll = policies.mentions_payroll(message) and (session.locks.hr_unlocked or not session.sensitive_gate)
	return {
		"employees": lambda repo: _employees(repo, include_payroll),
		"contacts": lambda repo: {"contacts": repo.count_contacts(), "inactive": repo.count_inactive_contacts()},
		"deals": lambda repo: {"open": repo.count_open_deals(), "stalled": repo.count_stalled_deals()},
		"invoices": lambda repo: {"overdue": repo.count_overdue_invoices()},
		"expenses": lambda repo: {"pending": repo.count_pending_expenses()},
		"finance": lambda repo: repo.finance_totals(),
		"portals": lambda repo: {"portals": repo.count_active_portals()},
		"snapshot": lambda repo: {
			"contacts": repo.count_contacts(),
			"open": repo.count_open_deals(),
			"overdue": repo.count_overdue_invoices(),
			"pending": repo.count_pending_expenses(),
			"employees": repo.count_employees(),
		},
	}


def _compose(metric: str, values: Dict[str, Any], tag: str) -> ResolverResult:
	if metric == "employees":
		message = f"You have {_count(values['employees'])} active employees{tag}."
		if "payroll" in values:
			message = (
				f"You have {_count(values['employees'])} active employees and a monthly payroll of "
				f"{format_naira(values['payroll'])}{tag}."
			)
		return ResolverResult(message=message, action=_navigate("hr", "#employees-table"))
	if metric == "contacts":
		return ResolverResult(
			message=(
				f"You have {_count(values['contacts'])} contacts in CRM{tag}. "
				f"{_count(values['inactive'])} leads and prospects have been quiet for "
				f"{constants.CONTACT_INACTIVITY_DAYS}+ days."
			),
			action=_navigate("crm", "#contacts-table"),
		)
	if metric == "deals":
		return ResolverResult(
			message=(
				f"There are {_count(values['open'])} open deals in the pipeline{tag}, and "
				f"{_count(values['stalled'])} have stalled for {constants.DEAL_STALL_DAYS}+ days."
			),
			action=_navigate("crm", "#deals-board"),
		)
	if metric == "invoices":
		return ResolverResult(
			message=f"{_count(values['overdue'])} invoices are overdue{tag}.",
			action=_navigate("accounting", "#invoices-table"),
		)
	if metric == "expenses":
		return ResolverResult(
			message=f"{_count(values['pending'])} expenses are waiting for approval{tag}.",
			action=_navigate("accounting", "#expenses-table"),
		)
	if metric == "finance":
		return ResolverResult(
			message=(
				f"Month to date{tag}: revenue {format_naira(values['revenue_mtd'])}, "
				f"expenses {format_naira(values['expenses_mtd'])}, "
				f"profit {format_naira(values['profit_mtd'])}."
			),
			action=_navigate("accounting", "#financial-reports"),
		)
	if metric == "portals":
		return ResolverResult(
			message=f"{_count(values['portals'])} client portals are active{tag}.",
			action=_navigate("portal"),
		)
	return ResolverResult(
		message=(
			f"Here is your snapshot{tag}: {_count(values['contacts'])} contacts, "
			f"{_count(values['open'])} open deals, {_count(values['overdue'])} overdue invoices, "
			f"{_count(values['pending'])} pending expenses, {_count(values['employees'])} employees."
		),
		action=_navigate("overview"),
	)


def resolve_data_query(message: str, _prior: str, session: SessionState) -> Optional[ResolverResult]:
	if session.sensitive_gate:
		blocked = policies.sensitive_block(message, session.locks)
		if blocked == "hr":
			return ResolverResult(
				message=policies.HR_LOCKED_MESSAGE,
				action=_navigate("hr", "#payroll-unlock"),
			)
		if blocked == "accounting":
			return ResolverResult(
				message=policies.FINANCE_LOCKED_MESSAGE,
				action=_navigate("accounting", "#finance-unlock"),
			)

	metric = select_metric(message)
	repository = session.snapshots if session.identity.persisted else demo_repository()
	values, is_demo = query_with_demo_fallback(repository, _queries(message, session)[metric])
	return _compose(metric, values, DEMO_TAG if is_demo else "")
