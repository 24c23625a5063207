from __future__ import annotations

import random
from typing import Any, List, Mapping, Optional

from pydantic import ValidationError

from app.backend import config
from app.backend.assist.mode import normalize_mode
from app.backend.assist.orchestrator import AssistOrchestrator, AssistOrchestratorHooks
from app.backend.assist.types import ChatMessage, ChatMode, ChatReply, ChatRequest, SessionState
from app.backend.schemas import ChatMessageModel
from app.backend.services import audit_service, provider_service
from app.backend.services.identity_service import SqliteIdentityResolver, lock_state, resolve_identity
from app.backend.services.snapshot_service import SqliteSnapshotRepository


_ROLES = {"user", "assistant", "system"}


def _normalize_role(role: str) -> str:
	value = role.strip().lower()
	return value if value in _ROLES else "user"


def parse_chat_request(payload: Any) -> ChatRequest:
	"""Lenient body parsing: anything malformed degrades to an empty qna request."""
	body = payload if isinstance(payload, dict) else {}
	messages: List[ChatMessage] = []
	raw_messages = body.get("messages")
	if isinstance(raw_messages, list):
		for item in raw_messages:
			try:
				parsed = ChatMessageModel.model_validate(item)
			except ValidationError:
				continue
			messages.append(ChatMessage(role=_normalize_role(parsed.role), content=parsed.content))  # type: ignore[arg-type]
	provider = body.get("provider")
	return ChatRequest(
		messages=messages,
		mode=normalize_mode(body.get("mode")),
		context=body.get("context"),
		provider=provider.strip() if isinstance(provider, str) and provider.strip() else None,
	)


def build_session(
	headers: Mapping[str, str],
	*,
	identity_resolver: Any = None,
	snapshots: Any = None,
	rng: Optional[random.Random] = None,
) -> SessionState:
	resolver = identity_resolver or SqliteIdentityResolver()
	return SessionState(
		identity=resolve_identity(headers, resolver),
		locks=lock_state(headers),
		snapshots=snapshots or SqliteSnapshotRepository(),
		current_path=(headers.get("x-current-path") or "").strip(),
		sensitive_gate=config.sensitive_gate_enabled(),
		rng=rng or random.Random(),
	)


def build_hooks(identity_resolver: Any = None, audit_sink: Any = None) -> AssistOrchestratorHooks:
	resolver = identity_resolver or SqliteIdentityResolver()
	sink = audit_sink or audit_service.SqliteAuditSink()

	def select_provider(request: ChatRequest, session: SessionState) -> Optional[provider_service.ProviderDescriptor]:
		preference = None if request.provider else resolver.provider_preference(session.identity)
		return provider_service.select_provider(request.provider, preference)

	def system_prompt(mode: ChatMode, user_name: str, prompt: str) -> str:
		return provider_service.build_system_prompt(mode, user_name, prompt=prompt)

	def record_audit(session: SessionState, mode: ChatMode, provider: str) -> None:
		entry = audit_service.chat_audit_entry(
			user_id=session.identity.id,
			persisted=session.identity.persisted,
			mode=mode,
			provider=provider,
		)
		audit_service.dispatch(sink, entry)

	return AssistOrchestratorHooks(
		select_provider=select_provider,
		invoke_provider=provider_service.invoke,
		system_prompt=system_prompt,
		record_audit=record_audit,
		local_fast_path=config.local_fast_path_enabled(),
		humor_probability=config.humor_probability(),
	)


def handle_chat(payload: Any, headers: Mapping[str, str]) -> ChatReply:
	resolver = SqliteIdentityResolver()
	request = parse_chat_request(payload)
	session = build_session(headers, identity_resolver=resolver)
	orchestrator = AssistOrchestrator(build_hooks(identity_resolver=resolver))
	return orchestrator.run(request, session)
