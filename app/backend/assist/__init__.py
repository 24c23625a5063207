from app.backend.assist.types import (
	ChatAction,
	ChatMessage,
	ChatReply,
	ChatRequest,
	Identity,
	LockState,
	SessionState,
	TraceEvent,
)

__all__ = [
	"ChatAction",
	"ChatMessage",
	"ChatReply",
	"ChatRequest",
	"Identity",
	"LockState",
	"SessionState",
	"TraceEvent",
]
