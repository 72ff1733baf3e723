"""POST /api/chat: field assistant relay, with optional image."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from geoprospector.dependencies import get_gateway
from geoprospector.llm.gateway import GatewayError, ModelGateway
from geoprospector.llm.model_router import get_profile_for_task
from geoprospector.llm.prompts import build_chat_prompt
from geoprospector.models.requests import ChatRequest
from geoprospector.models.responses import ChatResponse

router = APIRouter()
logger = logging.getLogger(__name__)

CHAT_FAILURE_TEXT = "Error communicating with AI assistant."
EMPTY_ANSWER_TEXT = "I couldn't generate a response."


@router.post("/chat", response_model=ChatResponse)
async def chat(req: ChatRequest, gateway: ModelGateway = Depends(get_gateway)) -> ChatResponse:
    payload = build_chat_prompt(req.history, req.message, req.image_base64)
    try:
        result = await gateway.invoke(get_profile_for_task(payload.task), payload)
    except GatewayError as e:
        logger.warning("Chat relay failed: %s", e)
        return ChatResponse(answer=CHAT_FAILURE_TEXT, ok=False)
    return ChatResponse(answer=result.text or EMPTY_ANSWER_TEXT)
