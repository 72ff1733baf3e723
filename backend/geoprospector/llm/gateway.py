"""LangChain ChatAnthropic gateway: one entry point for every remote model call.

Each call picks a profile (fast / default / deep / structured). Capabilities
come from the payload: ``grounded`` binds the server-side web search tool
and surfaces the retrieved URLs as provenance; ``output_schema`` routes
through ``with_structured_output`` and returns JSON text. The raw provider
message is reduced to one of three response shapes and then to the fixed
``GatewayResult`` the rest of the pipeline consumes.

Failures are raised as ``GatewayError``. Nothing here retries.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from geoprospector.config import Settings, settings
from geoprospector.llm.model_router import get_model_for_profile
from geoprospector.models.llm import (
    CallProfile,
    GatewayResponse,
    GatewayResult,
    PlainResponse,
    PromptPayload,
    SearchGroundedResponse,
    StructuredResponse,
)

logger = logging.getLogger(__name__)

ModelFactory = Callable[[CallProfile, Settings], Any]


class GatewayError(Exception):
    """A remote call failed. Carries the profile it was made under."""

    def __init__(self, profile: CallProfile, message: str) -> None:
        self.profile = profile
        self.message = message
        super().__init__(f"{profile.value} call failed: {message}")


def default_model_factory(profile: CallProfile, config: Settings) -> Any:
    from langchain_anthropic import ChatAnthropic

    kwargs: dict[str, Any] = {
        "model": get_model_for_profile(profile, config),
        "api_key": config.anthropic_api_key,
        "max_tokens": config.max_tokens,
    }
    if profile == CallProfile.DEEP:
        # Thinking budget must stay below max_tokens
        kwargs["max_tokens"] = max(config.max_tokens, config.deep_thinking_budget + 4096)
        kwargs["thinking"] = {"type": "enabled", "budget_tokens": config.deep_thinking_budget}
    return ChatAnthropic(**kwargs)


def build_messages(payload: PromptPayload) -> list:
    from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

    messages: list = []
    if payload.system:
        messages.append(SystemMessage(content=payload.system))
    for turn in payload.history:
        if turn.role == "user":
            messages.append(HumanMessage(content=turn.text))
        else:
            messages.append(AIMessage(content=turn.text))

    if payload.image_base64:
        messages.append(
            HumanMessage(
                content=[
                    {
                        "type": "image",
                        "source": {
                            "type": "base64",
                            "media_type": "image/jpeg",
                            "data": payload.image_base64,
                        },
                    },
                    {"type": "text", "text": payload.instructions},
                ]
            )
        )
    else:
        messages.append(HumanMessage(content=payload.instructions))
    return messages


def message_text(content: Any) -> str:
    """Concatenate the text blocks of a message; thinking and tool blocks are dropped."""
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def grounding_references(content: Any) -> list[str]:
    """URLs retrieved by web search, then URLs cited by text blocks, first-seen order."""
    if isinstance(content, str):
        return []

    found: list[str] = []
    cited: list[str] = []
    for block in content or []:
        if not isinstance(block, dict):
            continue
        block_type = block.get("type", "")
        if block_type == "web_search_tool_result":
            results = block.get("content")
            # An error result is a single dict, not a list
            if isinstance(results, list):
                for item in results:
                    url = item.get("url") if isinstance(item, dict) else None
                    if url:
                        found.append(url)
        elif block_type == "text":
            for citation in block.get("citations") or []:
                url = citation.get("url") if isinstance(citation, dict) else None
                if url:
                    cited.append(url)

    return list(dict.fromkeys(found + cited))


def normalise_response(profile: CallProfile, response: GatewayResponse) -> GatewayResult:
    if isinstance(response, SearchGroundedResponse):
        provenance = list(dict.fromkeys(response.grounding_references))
    else:
        provenance = []
    return GatewayResult(profile=profile, text=response.text, provenance=provenance)


class ModelGateway:
    """Invokes the remote model under a named call profile."""

    def __init__(
        self,
        config: Settings | None = None,
        model_factory: ModelFactory | None = None,
    ) -> None:
        self.config = config or settings
        self._model_factory = model_factory

    @property
    def configured(self) -> bool:
        return self._model_factory is not None or bool(self.config.anthropic_api_key)

    async def invoke(self, profile: CallProfile, payload: PromptPayload) -> GatewayResult:
        if payload.output_schema is not None and profile != CallProfile.STRUCTURED:
            raise GatewayError(profile, "schema output requires the structured profile")
        if profile == CallProfile.STRUCTURED and payload.output_schema is None:
            raise GatewayError(profile, "structured profile requires an output schema")
        if not self.configured:
            raise GatewayError(profile, "LLM not configured, set ANTHROPIC_API_KEY in .env")

        factory = self._model_factory or default_model_factory
        messages = build_messages(payload)

        try:
            llm = factory(profile, self.config)
            if profile == CallProfile.STRUCTURED:
                response = await self._invoke_structured(llm, payload, messages)
            elif payload.grounded:
                response = await self._invoke_grounded(llm, messages)
            else:
                message = await llm.ainvoke(messages)
                response = PlainResponse(text=message_text(message.content))
        except ValidationError as e:
            logger.warning("Gateway %s/%s returned an unexpected shape: %s", profile.value, payload.task, e)
            raise GatewayError(profile, f"unexpected response shape: {e}") from e
        except Exception as e:
            logger.warning("Gateway %s/%s failed: %s", profile.value, payload.task, e)
            raise GatewayError(profile, str(e)) from e

        result = normalise_response(profile, response)
        logger.debug(
            "Gateway %s/%s: %d chars, %d provenance refs",
            profile.value,
            payload.task,
            len(result.text),
            len(result.provenance),
        )
        return result

    async def _invoke_grounded(self, llm: Any, messages: list) -> SearchGroundedResponse:
        tool = {
            "type": "web_search_20250305",
            "name": "web_search",
            "max_uses": self.config.web_search_max_uses,
        }
        message = await llm.bind_tools([tool]).ainvoke(messages)
        return SearchGroundedResponse(
            text=message_text(message.content),
            grounding_references=grounding_references(message.content),
        )

    async def _invoke_structured(
        self, llm: Any, payload: PromptPayload, messages: list
    ) -> StructuredResponse:
        structured = llm.with_structured_output(payload.output_schema)
        data = await structured.ainvoke(messages)
        if data is None:
            raise ValueError("structured call returned no data")
        return StructuredResponse(text=json.dumps(data), data=data)
