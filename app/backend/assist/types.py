from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional


ChatRole = Literal["user", "assistant", "system"]
ChatMode = Literal["qna", "summary", "email", "tour"]
TraceStatus = Literal["pass", "matched", "skipped", "fallback", "degraded"]


class IdentityUnresolved(Exception):
	pass


class SnapshotRepositoryUnavailable(Exception):
	pass


class ProviderInvocationFailed(Exception):
	def __init__(self, provider: str, message: str):
		super().__init__(message)
		self.provider = provider
		self.message = message


class ProviderTimeout(ProviderInvocationFailed):
	pass


class ProviderLowQuality(ProviderInvocationFailed):
	pass


@dataclass
class ChatMessage:
	role: ChatRole
	content: str

	def as_dict(self) -> Dict[str, str]:
		return {"role": self.role, "content": self.content}


@dataclass
class ChatAction:
	route: str
	type: Literal["navigate"] = "navigate"
	selector: Optional[str] = None
	title: Optional[str] = None
	message: Optional[str] = None

	def as_dict(self) -> Dict[str, str]:
		payload = {"type": self.type, "route": self.route}
		for key in ("selector", "title", "message"):
			value = getattr(self, key)
			if value:
				payload[key] = value
		return payload


@dataclass
class ResolverResult:
	message: str
	action: Optional[ChatAction] = None
	label: Optional[str] = None
	mode: Optional[ChatMode] = None


@dataclass
class Identity:
	id: str
	name: str
	email: str
	role: str
	persisted: bool


@dataclass
class LockState:
	hr_unlocked: bool = False
	finance_unlocked: bool = False


@dataclass
class TourContext:
	role: str
	phase: str
	stats: Dict[str, int] = field(default_factory=dict)


@dataclass
class SessionState:
	identity: Identity
	locks: LockState
	snapshots: Any
	current_path: str = ""
	sensitive_gate: bool = True
	rng: random.Random = field(default_factory=random.Random)


@dataclass
class TraceEvent:
	step: str
	status: TraceStatus
	detail: str
	timestamp: str

	def as_dict(self) -> Dict[str, str]:
		return {
			"step": self.step,
			"status": self.status,
			"detail": self.detail,
			"timestamp": self.timestamp,
		}


@dataclass
class ChatRequest:
	messages: List[ChatMessage]
	mode: Optional[ChatMode] = None
	context: Any = None
	provider: Optional[str] = None

	@property
	def last_user_message(self) -> str:
		for message in reversed(self.messages):
			if message.role == "user":
				return message.content
		return ""

	@property
	def prior_assistant_message(self) -> str:
		seen_user = False
		for message in reversed(self.messages):
			if message.role == "user":
				seen_user = True
			elif message.role == "assistant" and seen_user:
				return message.content
		return ""


@dataclass
class ChatReply:
	message: str
	provider: str
	mode: ChatMode
	actions: List[ChatAction] = field(default_factory=list)
	trace: List[TraceEvent] = field(default_factory=list)

	def as_dict(self, *, include_trace: bool = False) -> Dict[str, Any]:
		payload: Dict[str, Any] = {
			"message": self.message,
			"provider": self.provider,
			"mode": self.mode,
			"actions": [action.as_dict() for action in self.actions],
		}
		if include_trace:
			payload["trace"] = [event.as_dict() for event in self.trace]
		return payload
