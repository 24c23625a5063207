from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from app.backend import constants
from app.backend.assist.data_query import DEMO_TAG, is_data_query, resolve_data_query
from app.backend.assist import policies
from app.backend.assist.fallback import build_tour_response
from app.backend.assist.mode import infer_mode
from app.backend.assist.types import ChatAction, ResolverResult, SessionState, TourContext
from app.backend.services.snapshot_service import demo_repository, query_with_demo_fallback


Predicate = Callable[[str, str, SessionState], bool]
Handler = Callable[[str, str, SessionState], Optional[ResolverResult]]


@dataclass(frozen=True)
class Resolver:
	name: str
	matches: Predicate
	handle: Handler


GREETINGS = (
	"Hi! I'm Civis AI. Ask me about your contacts, deals, invoices, or team, or say \"start the tour\".",
	"Hello! What can I help you with today? I can pull numbers, draft emails, or take you to a module.",
	"Hey there! Want a quick snapshot of the business, or should I take you somewhere?",
	"Hi! Good to see you. Try \"how many open deals do we have?\" or \"take me to accounting\".",
)

BRAND_LINES = (
	"Civis in one line: your CRM, books, people and ops in one calm place, so the week runs on decisions instead of spreadsheets.",
	"Here's a different angle: Civis is the quiet colleague who remembers every follow-up, every invoice and every approval.",
	"Try this: run Monday from the Overview. Five minutes with the alert strip beats an hour of digging through tabs.",
)

MODULE_BLURBS = {
	"overview": "Your KPIs and alerts live here.",
	"crm": "Contacts, companies and the deal board are here.",
	"accounting": "Invoices, expenses and VAT-ready reports are here.",
	"hr": "Employee records, payroll and attendance are here.",
	"operations": "Playbooks, automations and decision trails are here.",
	"portal": "Client updates and shared documents are here.",
}

ADD_EMPLOYEE_MESSAGE = (
	"To add an employee I need:\n"
	"- Full name\n"
	"- Work email\n"
	"- Job title\n"
	"- Department\n"
	"- Start date\n"
	"- Employment type (full-time, part-time or contract)\n\n"
	"Salary is optional and stays hidden until HR sensitive data is unlocked. "
	"I'll open HR so you can fill in the form."
)

EMAIL_CLARIFY_MESSAGE = (
	"Happy to draft it. Who is the email for (a client, a lead or a teammate), and what is it about? "
	"For example: an overdue invoice, a proposal or a meeting follow-up."
)

LOW_SIGNAL_MESSAGE = (
	"I didn't quite catch that. Tell me what you need in one sentence, "
	"for example \"How many open deals do we have?\" or \"Take me to HR\"."
)

META_MESSAGE = (
	"I'm Civis AI, the assistant built into Civis. I answer questions about CRM, accounting, HR and operations, "
	"pull your numbers, draft emails and take you to the right screen. What do you need?"
)

HIGHLIGHT_MESSAGE = (
	"Got it. I won't highlight anything for the rest of this conversation; "
	"I'll just take you to the page. Say \"highlight again\" if you change your mind."
)

_AFFIRMATIVE = re.compile(
	r"^\s*(yes|yeah|yep|yup|sure|ok(ay)?|please|go ahead|do it|absolutely|of course|let'?s (do it|go)|sounds good)\b",
	re.IGNORECASE,
)
_NEGATIVE = re.compile(r"^\s*(no|nope|nah|not now|later|skip( it)?|maybe later)\b", re.IGNORECASE)

_FOLLOWUP_OFFER = re.compile(r"follow-?up tasks|draft an? (update )?email\?", re.IGNORECASE)
_TOUR_OFFER = re.compile(r"(start|begin) the (guided )?(tour|guide)|step-by-step guide\?", re.IGNORECASE)
_MODULE_OFFER = re.compile(
	r"want me to (take you to|open) (the )?(crm|accounting|hr|operations|client portal|portal|overview)\b",
	re.IGNORECASE,
)

_GREETING = re.compile(
	r"^(hi+|hello+|hey+|hiya|howdy|yo|greetings|good (morning|afternoon|evening))"
	r"(\s+(there|civis|team|all|everyone))?[\s!.,]*$",
	re.IGNORECASE,
)

_HIGHLIGHT_OFF = re.compile(
	r"\b(don'?t|do not|stop|no more|quit|turn off|disable)\b.{0,24}\bhighlight|\bno highlight",
	re.IGNORECASE,
)

_ADD_EMPLOYEE = re.compile(
	r"\b(add|create|onboard|register|new)\b.{0,30}\b(employees?|staff|team member|hires?|workers?)\b"
	r"|\bhire (a|an|someone|new)\b",
	re.IGNORECASE,
)
_ADD_SHORT = re.compile(r"^\s*(please\s+)?(add|create)\s+(a\s+)?(new\s+)?(one|record|entry|them|another)\b", re.IGNORECASE)
_HR_CONTEXT = re.compile(r"\b(hr|employees?|staff|team member)\b", re.IGNORECASE)

_EMAIL_REQUEST = re.compile(r"\b(draft|write|compose|prepare|send)\b.{0,40}\b(e-?mail|mail)\b", re.IGNORECASE)
_EMAIL_RECIPIENT = re.compile(
	r"\b(clients?|customers?|leads?|prospects?|team|manager|boss|vendors?|suppliers?|investors?|partners?"
	r"|staff|employees?|accountant|board|ceo|hr|finance)\b|[\w.+-]+@[\w-]+\.[\w.]+",
	re.IGNORECASE,
)
_EMAIL_NAMED = re.compile(r"\bto\s+[A-Z][a-z]+")
_EMAIL_TOPIC = re.compile(
	r"\b(invoices?|payments?|follow[- ]?ups?|meetings?|proposals?|quotes?|updates?|deals?|renewals?|onboarding"
	r"|overdue|thanks?|thank you|welcome|reminders?|contracts?|delivery|projects?|launch|introductions?"
	r"|apolog(y|ies|ise|ize)|pricing|schedule)\b",
	re.IGNORECASE,
)

_FILLER = re.compile(
	r"^(m+|h+m+|u+h+m*|u+m+|e+r+m*|o+|k+|ok(ay)?|lol+|lmao|ha(ha)+|\?+|\.+|[^\w\s]+)$",
	re.IGNORECASE,
)
_KEYBOARD_MASH = re.compile(
	r"^([asdfghjkl;']{4,}|[qwertyuiop]{5,}|[zxcvbnm]{5,}|[bcdfghjklmnpqrstvwxz]{6,})$",
	re.IGNORECASE,
)
_META_QUESTION = re.compile(
	r"\b(who|what) are you\b|\bare you (a |an )?(bot|robot|human|real|ai|person)\b"
	r"|\bwho (made|built|created) you\b|\bwhat can you do\b",
	re.IGNORECASE,
)

_CREATIVE = re.compile(
	r"\b(something|anything)\s+(unique|different|creative|fun|interesting)\b|\bsurprise me\b|\bbe creative\b",
	re.IGNORECASE,
)

_NAV_VERB = re.compile(
	r"\b(take me to|go to|navigate to|bring me to|jump to|head to|switch to|where is|where's|where are"
	r"|where can i find|how do i get to)\b|^\s*(please\s+|can you\s+)?open\b",
	re.IGNORECASE,
)
_NAV_TARGETS: Tuple[Tuple[str, re.Pattern], ...] = (
	("crm", re.compile(r"\b(crm|contacts?|deals?|pipeline|leads?|companies)\b", re.IGNORECASE)),
	("accounting", re.compile(r"\b(accounting|invoices?|expenses?|finance|vat|books|reports?)\b", re.IGNORECASE)),
	("hr", re.compile(r"\b(hr|human resources|employees?|payroll|attendance|staff|people)\b", re.IGNORECASE)),
	(
		"operations",
		re.compile(r"\b(operations|ops|playbooks?|workflows?|automations?|decision trails?)\b", re.IGNORECASE),
	),
	("portal", re.compile(r"\b(client portal|portals?)\b", re.IGNORECASE)),
)

_OFFER_MODULES = {
	"crm": "crm",
	"accounting": "accounting",
	"hr": "hr",
	"operations": "operations",
	"client portal": "portal",
	"portal": "portal",
	"overview": "overview",
}


def _clean(text: str) -> str:
	return " ".join((text or "").split())


def _navigate(
	module: str,
	*,
	selector: Optional[str] = None,
	message: Optional[str] = None,
) -> ChatAction:
	return ChatAction(
		route=constants.MODULE_ROUTES[module],
		title=constants.MODULE_TITLES[module],
		selector=selector,
		message=message,
	)


def _pending_offer(prior: str) -> Optional[str]:
	if not prior:
		return None
	if _FOLLOWUP_OFFER.search(prior):
		return "followups"
	if _TOUR_OFFER.search(prior):
		return "tour"
	match = _MODULE_OFFER.search(prior)
	if match:
		return f"module:{_OFFER_MODULES[match.group(3).lower()]}"
	return None


# followup


def _is_followup(message: str, prior: str, _session: SessionState) -> bool:
	if _pending_offer(prior) is None:
		return False
	return bool(_AFFIRMATIVE.search(message) or _NEGATIVE.search(message))


def _followup_counts(session: SessionState) -> Tuple[int, int, bool]:
	repository = session.snapshots if session.identity.persisted else demo_repository()
	(inactive, stalled), is_demo = query_with_demo_fallback(
		repository,
		lambda repo: (repo.count_inactive_contacts(), repo.count_stalled_deals()),
	)
	return inactive, stalled, is_demo


def _handle_followup(message: str, prior: str, session: SessionState) -> Optional[ResolverResult]:
	offer = _pending_offer(prior)
	declined = bool(_NEGATIVE.search(message)) and not _AFFIRMATIVE.search(message)

	if offer == "followups":
		if declined:
			return ResolverResult(message="No problem, I'll leave follow-ups for now. Ask me whenever you want a fresh snapshot.")
		inactive, stalled, is_demo = _followup_counts(session)
		tag = DEMO_TAG if is_demo else ""
		return ResolverResult(
			message=(
				f"Here's where follow-ups stand{tag}: {inactive} contacts have gone quiet for "
				f"{constants.CONTACT_INACTIVITY_DAYS}+ days and {stalled} deals have stalled for "
				f"{constants.DEAL_STALL_DAYS}+ days.\n\n"
				"Pick one:\n"
				"1) Generate follow-up tasks for them\n"
				"2) Draft an update email to the quiet contacts"
			),
			action=_navigate("crm", selector="#crm-followups", message="Follow-ups are listed here"),
		)

	if offer == "tour":
		if declined:
			return ResolverResult(message="Sure. The guide is here whenever you want it; just say \"start the tour\".")
		first_step = build_tour_response(TourContext(role="team lead", phase="step-1"), session.identity.name)
		return ResolverResult(
			message=first_step,
			action=_navigate("overview"),
			label=constants.PROVIDER_LABEL_TOUR_ENGINE,
			mode="tour",
		)

	if offer and offer.startswith("module:"):
		module = offer.split(":", 1)[1]
		if declined:
			return ResolverResult(message="Okay, staying here. What would you like to do next?")
		title = constants.MODULE_TITLES[module]
		return ResolverResult(message=f"Opening {title} now. {MODULE_BLURBS[module]}", action=_navigate(module))
	return None


# greeting


def _is_greeting(message: str, _prior: str, _session: SessionState) -> bool:
	return bool(_GREETING.match(_clean(message)))


def _handle_greeting(_message: str, _prior: str, session: SessionState) -> ResolverResult:
	return ResolverResult(message=session.rng.choice(GREETINGS))


# highlight preference


def _is_highlight_preference(message: str, _prior: str, _session: SessionState) -> bool:
	return bool(_HIGHLIGHT_OFF.search(message))


def _handle_highlight_preference(_message: str, _prior: str, _session: SessionState) -> ResolverResult:
	return ResolverResult(message=HIGHLIGHT_MESSAGE)


# add employee


def _is_add_employee(message: str, prior: str, _session: SessionState) -> bool:
	if _ADD_EMPLOYEE.search(message):
		return True
	return bool(_ADD_SHORT.search(message) and _HR_CONTEXT.search(prior or ""))


def _handle_add_employee(_message: str, _prior: str, _session: SessionState) -> ResolverResult:
	return ResolverResult(
		message=ADD_EMPLOYEE_MESSAGE,
		action=_navigate("hr", selector="#add-employee", message="Fill in the new employee form"),
	)


# email clarification


def _is_vague_email(message: str, _prior: str, _session: SessionState) -> bool:
	if not _EMAIL_REQUEST.search(message):
		return False
	has_recipient = bool(_EMAIL_RECIPIENT.search(message) or _EMAIL_NAMED.search(message))
	has_topic = bool(_EMAIL_TOPIC.search(message))
	return not has_recipient and not has_topic


def _handle_vague_email(_message: str, _prior: str, _session: SessionState) -> ResolverResult:
	return ResolverResult(message=EMAIL_CLARIFY_MESSAGE)


# low signal


def is_low_signal(message: str) -> bool:
	text = _clean(message)
	if not text:
		return True
	compact = text.rstrip("!?.").lower() or text
	if _FILLER.match(compact) or _KEYBOARD_MASH.match(compact.replace(" ", "")):
		return True
	return bool(_META_QUESTION.search(text))


def _is_low_signal(message: str, _prior: str, _session: SessionState) -> bool:
	return is_low_signal(message)


def _handle_low_signal(message: str, _prior: str, _session: SessionState) -> ResolverResult:
	if _META_QUESTION.search(_clean(message)):
		return ResolverResult(message=META_MESSAGE)
	return ResolverResult(message=LOW_SIGNAL_MESSAGE)


# creative


def _is_creative(message: str, _prior: str, _session: SessionState) -> bool:
	return bool(_CREATIVE.search(message))


def _handle_creative(_message: str, _prior: str, session: SessionState) -> ResolverResult:
	return ResolverResult(message=session.rng.choice(BRAND_LINES))


# navigation


def navigation_target(message: str) -> str:
	for module, pattern in _NAV_TARGETS:
		if pattern.search(message):
			return module
	return "overview"


def _is_navigation(message: str, _prior: str, _session: SessionState) -> bool:
	return bool(_NAV_VERB.search(_clean(message)))


def _handle_navigation(message: str, _prior: str, session: SessionState) -> ResolverResult:
	module = navigation_target(message)
	route = constants.MODULE_ROUTES[module]
	title = constants.MODULE_TITLES[module]
	if session.current_path.rstrip("/") == route:
		text = f"You're already in {title}. {MODULE_BLURBS[module]}"
	else:
		text = f"Taking you to {title}. {MODULE_BLURBS[module]}"
	return ResolverResult(message=text, action=_navigate(module))


# data query


def _is_data_query(message: str, _prior: str, session: SessionState) -> bool:
	"""Metric questions only; drafting, summary and tour requests go on to mode inference.

	A locked payroll or finance mention is still refused here whatever the intent.
	"""
	if not is_data_query(message):
		return False
	if infer_mode(message) == "qna":
		return True
	return session.sensitive_gate and policies.sensitive_block(message, session.locks) is not None


RESOLVERS: List[Resolver] = [
	Resolver("followup", _is_followup, _handle_followup),
	Resolver("greeting", _is_greeting, _handle_greeting),
	Resolver("highlight_preference", _is_highlight_preference, _handle_highlight_preference),
	Resolver("add_employee", _is_add_employee, _handle_add_employee),
	Resolver("email_clarification", _is_vague_email, _handle_vague_email),
	Resolver("low_signal", _is_low_signal, _handle_low_signal),
	Resolver("creative", _is_creative, _handle_creative),
	Resolver("navigation", _is_navigation, _handle_navigation),
	Resolver("data_query", _is_data_query, resolve_data_query),
]


def resolve_first(
	message: str,
	prior: str,
	session: SessionState,
	resolvers: Optional[List[Resolver]] = None,
) -> Tuple[Optional[str], Optional[ResolverResult]]:
	"""Run the table in order and return the first (name, result) pair that answers."""
	for resolver in resolvers if resolvers is not None else RESOLVERS:
		if not resolver.matches(message, prior, session):
			continue
		result = resolver.handle(message, prior, session)
		if result is not None:
			return resolver.name, result
	return None, None
