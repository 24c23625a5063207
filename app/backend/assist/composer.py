from __future__ import annotations

import random
from typing import List, Optional

from app.backend.assist import policies
from app.backend.assist.types import ChatAction, ChatMode, ChatReply, TraceEvent


HUMOR_LINES = (
	"P.S. Spreadsheets called. They miss you, but they'll cope.",
	"P.S. No invoices were harmed in the making of this answer.",
	"P.S. I'd offer you coffee, but I'm strictly a numbers person.",
)


def should_add_humor(prompt: str, mode: ChatMode, rng: random.Random, probability: float) -> bool:
	if mode != "qna" or policies.is_tone_sensitive(prompt):
		return False
	if policies.asked_for_levity(prompt):
		return True
	return rng.random() < probability


def compose_reply(
	*,
	message: str,
	provider: str,
	mode: ChatMode,
	prompt: str,
	rng: random.Random,
	action: Optional[ChatAction] = None,
	trace: Optional[List[TraceEvent]] = None,
	humor_probability: float = 0.0,
	allow_humor: bool = False,
) -> ChatReply:
	"""Final response shape; `actions` holds at most one navigation."""
	text = message.strip()
	if allow_humor and should_add_humor(prompt, mode, rng, humor_probability):
		text = f"{text}\n\n{rng.choice(HUMOR_LINES)}"
	return ChatReply(
		message=text,
		provider=provider,
		mode=mode,
		actions=[action] if action is not None else [],
		trace=list(trace or []),
	)
