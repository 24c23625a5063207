from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from app.backend import constants
from app.backend.assist import fallback, mode as mode_rules, tour as tour_rules
from app.backend.assist.composer import compose_reply
from app.backend.assist.resolvers import Resolver, resolve_first
from app.backend.assist.trace import make_event
from app.backend.assist.types import (
	ChatAction,
	ChatMode,
	ChatReply,
	ChatRequest,
	ProviderInvocationFailed,
	SessionState,
	TourContext,
	TraceEvent,
)


logger = logging.getLogger(__name__)

SelectProviderFn = Callable[[ChatRequest, SessionState], Any]
InvokeProviderFn = Callable[[Any, List[Dict[str, str]], ChatMode], str]
SystemPromptFn = Callable[[ChatMode, str, str], str]
RecordAuditFn = Callable[[SessionState, ChatMode, str], Any]


@dataclass
class AssistOrchestratorHooks:
	select_provider: SelectProviderFn
	invoke_provider: InvokeProviderFn
	system_prompt: SystemPromptFn
	record_audit: RecordAuditFn
	local_fast_path: bool = False
	humor_probability: float = 0.0
	resolvers: Optional[List[Resolver]] = None


def _tour_action(tour: TourContext) -> ChatAction:
	step = fallback.tour_step_number(tour.phase)
	module = fallback.TOUR_STEPS[step - 1]["module"] if step else "overview"
	return ChatAction(route=constants.MODULE_ROUTES[module], title=constants.MODULE_TITLES[module])


class AssistOrchestrator:
	def __init__(self, hooks: AssistOrchestratorHooks):
		self._hooks = hooks

	def run(self, request: ChatRequest, session: SessionState) -> ChatReply:
		trace: List[TraceEvent] = []
		prompt = request.last_user_message
		user_name = session.identity.name or "there"

		if mode_rules.is_implicit(request.mode):
			name, result = resolve_first(prompt, request.prior_assistant_message, session, self._hooks.resolvers)
			if result is not None:
				logger.debug(f"Resolver '{name}' answered")
				trace.append(make_event(step="resolver", status="matched", detail=str(name)))
				return self._finish(
					session=session,
					prompt=prompt,
					mode=result.mode or "qna",
					message=result.message,
					provider=result.label or constants.PROVIDER_LABEL_NAV_ENGINE,
					action=result.action,
					trace=trace,
				)
			trace.append(make_event(step="resolver", status="pass", detail="no resolver matched"))
			mode: ChatMode = mode_rules.infer_mode(prompt)
			trace.append(make_event(step="mode", status="matched", detail=f"inferred {mode}"))
		else:
			mode = request.mode  # type: ignore[assignment]
			trace.append(make_event(step="mode", status="skipped", detail=f"explicit {mode}"))

		if mode == "tour":
			tour = tour_rules.build_tour_context(prompt, session.identity, session.snapshots)
			if tour is None:
				tour = TourContext(role=tour_rules.infer_role(prompt), phase=tour_rules.infer_phase(prompt))
				trace.append(make_event(step="tour", status="degraded", detail="no live counts"))
			else:
				trace.append(make_event(step="tour", status="pass", detail=f"{tour.role}, {tour.phase}"))
			return self._finish(
				session=session,
				prompt=prompt,
				mode=mode,
				message=fallback.build_tour_response(tour, user_name),
				provider=constants.PROVIDER_LABEL_TOUR_ENGINE,
				action=_tour_action(tour),
				trace=trace,
			)

		if mode == "qna" and self._hooks.local_fast_path:
			trace.append(make_event(step="provider", status="skipped", detail="local fast path"))
			return self._finish(
				session=session,
				prompt=prompt,
				mode=mode,
				message=fallback.build_fallback_response(mode, prompt, request.context, user_name),
				provider=constants.PROVIDER_LABEL_LOCAL,
				trace=trace,
				allow_humor=True,
			)

		message, provider = self._generate(request, session, mode, prompt, user_name, trace)
		return self._finish(
			session=session,
			prompt=prompt,
			mode=mode,
			message=message,
			provider=provider,
			trace=trace,
			allow_humor=True,
		)

	def _generate(
		self,
		request: ChatRequest,
		session: SessionState,
		mode: ChatMode,
		prompt: str,
		user_name: str,
		trace: List[TraceEvent],
	) -> tuple[str, str]:
		descriptor = self._hooks.select_provider(request, session)
		if descriptor is None:
			trace.append(make_event(step="provider", status="skipped", detail="no provider configured"))
			return (
				fallback.build_fallback_response(mode, prompt, request.context, user_name),
				constants.PROVIDER_LABEL_FALLBACK,
			)

		logger.info(f"Using provider {descriptor.name} for {mode} request")
		messages = [{"role": "system", "content": self._hooks.system_prompt(mode, user_name, prompt)}]
		messages.extend(message.as_dict() for message in request.messages)
		try:
			reply = self._hooks.invoke_provider(descriptor, messages, mode)
		except ProviderInvocationFailed as exc:
			logger.warning(f"AI provider failed, using fallback: {exc.message}")
			trace.append(make_event(step="provider", status="fallback", detail=exc.message))
			return (
				fallback.build_fallback_response(mode, prompt, request.context, user_name),
				constants.PROVIDER_LABEL_FALLBACK,
			)
		trace.append(make_event(step="provider", status="pass", detail=descriptor.name))
		return reply, descriptor.name

	def _finish(
		self,
		*,
		session: SessionState,
		prompt: str,
		mode: ChatMode,
		message: str,
		provider: str,
		trace: List[TraceEvent],
		action: Optional[ChatAction] = None,
		allow_humor: bool = False,
	) -> ChatReply:
		reply = compose_reply(
			message=message,
			provider=provider,
			mode=mode,
			prompt=prompt,
			rng=session.rng,
			action=action,
			trace=trace,
			humor_probability=self._hooks.humor_probability,
			allow_humor=allow_humor,
		)
		self._hooks.record_audit(session, mode, provider)
		return reply
