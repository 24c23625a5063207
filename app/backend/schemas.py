from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ApiEnvelope(BaseModel):
	model_config = ConfigDict(extra="allow")

	ok: bool
	generated_at: str
	request_id: Optional[str] = None
	data: Optional[Dict[str, Any]] = None


class ChatMessageModel(BaseModel):
	"""One inbound conversation entry; anything without string role/content is rejected."""

	model_config = ConfigDict(extra="ignore", strict=True)

	role: str
	content: str


class ChatActionModel(BaseModel):
	model_config = ConfigDict(extra="forbid")

	type: Literal["navigate"] = "navigate"
	route: str
	selector: Optional[str] = None
	title: Optional[str] = None
	message: Optional[str] = None


class TraceEventModel(BaseModel):
	model_config = ConfigDict(extra="forbid")

	step: str
	status: str
	detail: str
	timestamp: str


class ChatResponseModel(BaseModel):
	model_config = ConfigDict(extra="forbid")

	message: str = Field(..., min_length=1)
	provider: str
	mode: Literal["qna", "summary", "email", "tour"]
	actions: List[ChatActionModel] = Field(default_factory=list, max_length=1)
	trace: Optional[List[TraceEventModel]] = None


class ProviderInfoModel(BaseModel):
	model_config = ConfigDict(extra="forbid")

	name: str
	model: str
	configured: bool


class ProviderCatalogData(BaseModel):
	model_config = ConfigDict(extra="forbid")

	providers: List[ProviderInfoModel]
	default_provider: str
	local_fast_path: bool
	rate_limit_per_minute: Optional[int] = None
