from typing import Optional

import structlog
from langchain_core.language_models import BaseChatModel

from shared.config.settings import ASSISTANT_MODEL, OPENAI_API_KEY
from shared.observability.metrics import market_assistant_fallback_total, market_llm_tokens_total

from .agent import assistant_prompt, build_llm
from .knowledge import NO_CONNECTION, fallback_response

logger = structlog.get_logger(__name__)


class ChatService:
    def __init__(self, llm: Optional[BaseChatModel] = None, api_key: str = OPENAI_API_KEY):
        self.api_key = api_key
        if llm is None and api_key:
            llm = build_llm(api_key=api_key)
        self.llm = llm

    def _track_usage(self, reply):
        usage = getattr(reply, "usage_metadata", None) or {}
        if usage:
            market_llm_tokens_total.labels(model=ASSISTANT_MODEL, type="prompt").inc(usage.get("input_tokens", 0))
            market_llm_tokens_total.labels(model=ASSISTANT_MODEL, type="completion").inc(usage.get("output_tokens", 0))

    async def process_message(self, message: str) -> tuple[str, str]:
        """Returns (reply, source) where source is 'llm', 'fallback' or 'unavailable'."""
        if self.llm is None:
            market_assistant_fallback_total.labels(reason="no_api_key").inc()
            logger.warning("assistant_not_configured")
            return NO_CONNECTION, "unavailable"

        try:
            reply = await (assistant_prompt | self.llm).ainvoke({"message": message})
        except Exception as e:
            # Any model or transport failure degrades to the canned answers
            market_assistant_fallback_total.labels(reason="llm_error").inc()
            logger.warning("assistant_llm_failed", error=str(e))
            return fallback_response(message), "fallback"

        self._track_usage(reply)
        return reply.content, "llm"
