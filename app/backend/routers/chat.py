from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from app.backend.response import error_response, success_response
from app.backend.schemas import ApiEnvelope, ChatResponseModel, ProviderCatalogData
from app.backend.services import chat_service, provider_service, rate_limit_service


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please wait a moment and try again."
CHAT_FAILED_MESSAGE = "Failed to generate AI response"


async def _read_json(request: Request) -> Any:
	try:
		return await request.json()
	except ValueError:
		return {}


def _trace_requested(request: Request) -> bool:
	return request.headers.get("X-Assist-Trace", "").strip() == "1"


@router.post("/chat", response_model=ChatResponseModel, response_model_exclude_none=True)
async def chat(request: Request):
	client_host = request.client.host if request.client else None
	key = rate_limit_service.client_key(request.headers, client_host)
	decision = await run_in_threadpool(rate_limit_service.check, key)
	if not decision.ok:
		return JSONResponse(
			status_code=429,
			content=error_response(RATE_LIMIT_MESSAGE),
			headers={"Retry-After": str(rate_limit_service.retry_after_seconds(decision.reset_at))},
		)

	payload = await _read_json(request)
	try:
		reply = await run_in_threadpool(chat_service.handle_chat, payload, request.headers)
	except Exception as exc:
		logger.exception("AI chat failed")
		return JSONResponse(status_code=500, content=error_response(CHAT_FAILED_MESSAGE, detail=exc))
	return reply.as_dict(include_trace=_trace_requested(request))


@router.get("/providers", response_model=ApiEnvelope)
def providers(request: Request):
	catalog = ProviderCatalogData.model_validate(provider_service.list_providers())
	return success_response(request=request, data=catalog.model_dump())
