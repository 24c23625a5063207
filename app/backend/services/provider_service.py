from __future__ import annotations

import logging
import os
import re
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import httpx

from app.backend import config, constants
from app.backend.assist.knowledge import find_knowledge
from app.backend.assist.types import (
	ChatMode,
	ProviderInvocationFailed,
	ProviderLowQuality,
	ProviderTimeout,
)


logger = logging.getLogger(__name__)

PROVIDER_NAMES = ("openai", "anthropic", "gemini")

_API_KEY_ENV = {
	"openai": "OPENAI_API_KEY",
	"anthropic": "ANTHROPIC_API_KEY",
	"gemini": "GEMINI_API_KEY",
}
_MODEL_ENV = {
	"openai": "AI_MODEL_OPENAI",
	"anthropic": "AI_MODEL_ANTHROPIC",
	"gemini": "AI_MODEL_GEMINI",
}
_DEFAULT_MODELS = {
	"openai": "gpt-4o-mini",
	"anthropic": "claude-3-5-sonnet-20240620",
	"gemini": "gemini-1.5-flash",
}

_ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
_ANTHROPIC_VERSION = "2023-06-01"
_ANTHROPIC_MAX_TOKENS = 800
_GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

_MIN_REPLY_CHARS = {
	"qna": 12,
	"summary": 40,
	"email": 60,
	"tour": 40,
}
_NON_ANSWER_PATTERNS = [
	r"\bas an ai\b",
	r"\bi'?m not sure\b",
	r"\bi am not sure\b",
	r"\bi (cannot|can'?t) help with that\b",
	r"\bi don'?t have access\b",
	r"\bi do not have access\b",
	r"\bi'?m unable to\b",
	r"\bplease consult\b",
]

_MODE_PROMPTS = {
	"qna": "Answer questions about Civis features and best practices. Offer next steps.",
	"summary": "Summarize the provided business metrics and suggest 1-2 next actions.",
	"email": "Draft a professional email based on the provided context. Include a clear subject line.",
	"tour": "Give a short guided tour of Civis modules in numbered steps.",
}

_EXECUTOR = ThreadPoolExecutor(max_workers=4, thread_name_prefix="civis-provider")

Messages = List[Dict[str, str]]


@dataclass(frozen=True)
class ProviderDescriptor:
	name: str
	model: str
	invoke: Callable[[Messages], str]


def _api_key(name: str) -> str:
	return os.getenv(_API_KEY_ENV[name], "").strip()


def _model_for(name: str) -> str:
	return (
		os.getenv(_MODEL_ENV[name], "").strip()
		or os.getenv("AI_MODEL", "").strip()
		or _DEFAULT_MODELS[name]
	)


def configured_providers() -> List[str]:
	return [name for name in PROVIDER_NAMES if _api_key(name)]


def _build_openai_client(*, api_key: str, timeout_s: float):
	try:
		from openai import OpenAI
	except ImportError as exc:
		raise ProviderInvocationFailed("openai", "OpenAI SDK not installed. Add 'openai' dependency.") from exc
	return OpenAI(api_key=api_key, timeout=timeout_s)


def _extract_openai_text(response: Any) -> str:
	choices = getattr(response, "choices", None) or []
	if not choices:
		return ""
	message = getattr(choices[0], "message", None)
	content = getattr(message, "content", None)
	return content.strip() if isinstance(content, str) else ""


def _call_openai(api_key: str, model: str, messages: Messages) -> str:
	client = _build_openai_client(api_key=api_key, timeout_s=config.provider_timeout_s())
	try:
		response = client.chat.completions.create(
			model=model,
			temperature=config.temperature(),
			messages=messages,
		)
	except Exception as exc:
		raise ProviderInvocationFailed("openai", f"OpenAI request failed: {exc}") from exc
	return _extract_openai_text(response)


def _error_message(response: httpx.Response, default: str) -> str:
	try:
		payload = response.json()
	except ValueError:
		return default
	error = payload.get("error") if isinstance(payload, dict) else None
	if isinstance(error, dict) and isinstance(error.get("message"), str):
		return error["message"]
	return default


def _post_json(provider: str, url: str, **kwargs: Any) -> Dict[str, Any]:
	try:
		response = httpx.post(url, timeout=config.provider_timeout_s(), **kwargs)
	except httpx.HTTPError as exc:
		raise ProviderInvocationFailed(provider, f"{provider} request failed: {exc}") from exc
	if response.status_code >= 400:
		raise ProviderInvocationFailed(provider, _error_message(response, f"{provider} request failed"))
	try:
		payload = response.json()
	except ValueError as exc:
		raise ProviderInvocationFailed(provider, f"{provider} returned invalid JSON") from exc
	return payload if isinstance(payload, dict) else {}


def _split_system(messages: Messages) -> tuple[str, Messages]:
	system = next((item["content"] for item in messages if item["role"] == "system"), "")
	rest = [{"role": item["role"], "content": item["content"]} for item in messages if item["role"] != "system"]
	return system, rest


def _call_anthropic(api_key: str, model: str, messages: Messages) -> str:
	system, rest = _split_system(messages)
	payload = _post_json(
		"anthropic",
		_ANTHROPIC_URL,
		headers={"x-api-key": api_key, "anthropic-version": _ANTHROPIC_VERSION},
		json={
			"model": model,
			"system": system,
			"temperature": config.temperature(),
			"max_tokens": _ANTHROPIC_MAX_TOKENS,
			"messages": rest,
		},
	)
	content = payload.get("content") or []
	if content and isinstance(content[0], dict):
		return str(content[0].get("text") or "").strip()
	return ""


def _call_gemini(api_key: str, model: str, messages: Messages) -> str:
	prompt = "\n\n".join(f"{item['role'].upper()}: {item['content']}" for item in messages)
	payload = _post_json(
		"gemini",
		_GEMINI_URL.format(model=model),
		params={"key": api_key},
		json={
			"contents": [{"parts": [{"text": prompt}]}],
			"generationConfig": {"temperature": config.temperature()},
		},
	)
	try:
		return str(payload["candidates"][0]["content"]["parts"][0]["text"]).strip()
	except (KeyError, IndexError, TypeError):
		return ""


_CALLERS: Dict[str, Callable[[str, str, Messages], str]] = {
	"openai": _call_openai,
	"anthropic": _call_anthropic,
	"gemini": _call_gemini,
}


def build_descriptor(name: str) -> Optional[ProviderDescriptor]:
	api_key = _api_key(name)
	if not api_key:
		return None
	model = _model_for(name)
	caller = _CALLERS[name]
	return ProviderDescriptor(name=name, model=model, invoke=lambda messages: caller(api_key, model, messages))


def _normalize_choice(value: Optional[str]) -> str:
	choice = (value or "").strip().lower()
	return "" if choice == "auto" else choice


def select_provider(
	request_provider: Optional[str] = None,
	user_preference: Optional[str] = None,
) -> Optional[ProviderDescriptor]:
	"""Pick the provider for this request.

	An explicit choice (request field, stored user preference, then AI_PROVIDER)
	wins even when it has no key, in which case no provider is used. Without a
	valid explicit choice the first provider with a key is used.
	"""
	for candidate in (request_provider, user_preference, config.preferred_provider()):
		choice = _normalize_choice(candidate)
		if choice in PROVIDER_NAMES:
			return build_descriptor(choice)
	for name in PROVIDER_NAMES:
		descriptor = build_descriptor(name)
		if descriptor is not None:
			return descriptor
	return None


def list_providers() -> Dict[str, object]:
	configured = set(configured_providers())
	default = select_provider()
	return {
		"providers": [
			{"name": name, "model": _model_for(name), "configured": name in configured}
			for name in PROVIDER_NAMES
		],
		"default_provider": default.name if default else constants.PROVIDER_LABEL_FALLBACK,
		"local_fast_path": config.local_fast_path_enabled(),
		"rate_limit_per_minute": config.rate_limit_per_minute(),
	}


def build_system_prompt(
	mode: ChatMode,
	user_name: str,
	prompt: str = "",
	org_name: str = "",
) -> str:
	base = (
		"You are Civis AI, the in-app assistant for a CRM/ERP platform. Be concise, helpful, and action-oriented. "
		"Use NGN for currency and keep responses under 180 words unless asked for more. "
		f"Address the user as {user_name}."
	)
	knowledge = find_knowledge(prompt) if prompt else None
	knowledge_block = f"\nRelevant Civis context: {knowledge.content}" if knowledge else ""
	return f"{base}\n{_MODE_PROMPTS[mode]}{knowledge_block}\nOrg: {org_name or constants.DEFAULT_ORG_NAME}."


def quality_issue(mode: ChatMode, reply: str) -> Optional[str]:
	text = (reply or "").strip()
	if not text:
		return "empty reply"
	if len(text) < _MIN_REPLY_CHARS.get(mode, 12):
		return f"reply shorter than {_MIN_REPLY_CHARS.get(mode, 12)} characters"
	lowered = text.lower()
	for pattern in _NON_ANSWER_PATTERNS:
		if re.search(pattern, lowered):
			return "generic non-answer"
	return None


def invoke(
	descriptor: ProviderDescriptor,
	messages: Messages,
	mode: ChatMode,
	timeout_s: Optional[float] = None,
) -> str:
	"""Call the provider under a timeout and return a reply that passed the quality gate."""
	limit = timeout_s if timeout_s is not None else config.provider_timeout_s()
	future = _EXECUTOR.submit(descriptor.invoke, messages)
	try:
		reply = future.result(timeout=limit)
	except FutureTimeoutError as exc:
		future.cancel()
		raise ProviderTimeout(descriptor.name, f"{descriptor.name} timed out after {limit:g}s") from exc
	except ProviderInvocationFailed:
		raise
	except Exception as exc:
		raise ProviderInvocationFailed(descriptor.name, f"{descriptor.name} failed: {exc}") from exc

	issue = quality_issue(mode, reply)
	if issue:
		raise ProviderLowQuality(descriptor.name, f"{descriptor.name} reply rejected: {issue}")
	return reply.strip()
