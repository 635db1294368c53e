"""
GROQ SERVICE MODULE
===================

All LLM calls go through this service. Three kinds of call:

  1. generate_initial_response(prompt, model): first answer. The system prompt
     asks the model to say plainly when it has no recent information.
  2. extract_keywords(prompt): short comma-separated search keywords, made by a
     small fast model (KEYWORD_MODEL).
  3. generate_with_search_context(prompt, initial_answer, context, model):
     second answer, with web search results in the conversation and an
     instruction to cite them.

ROUND-ROBIN API KEYS:
  - Keys come from GROQ_API_KEY, GROQ_API_KEY_2, ... (see config).
  - A class-level counter picks the starting key so consecutive requests
    spread over all keys, whichever instance serves them.
  - If the call fails with one key, the next key is tried; when every key
    failed, UpstreamError is raised (status 429 if Groq said rate limit).
  - Keys are masked in logs.

TEST MODE:
  model == TEST_MODEL_ID returns canned Japanese answers and never touches the
  network, so the whole pipeline can be exercised without credentials.

There are no retries beyond trying the other keys; the caller decides whether
to retry a failed request.
"""

import logging
from typing import List, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_groq import ChatGroq

from app.errors import UpstreamError
from app.utils.time_info import get_time_information
from config import (
    GROQ_API_KEYS,
    GROQ_MODEL,
    INITIAL_SYSTEM_PROMPT,
    KEYWORD_EXTRACTION_PROMPT,
    KEYWORD_MAX_TOKENS,
    KEYWORD_MODEL,
    KEYWORD_TEMPERATURE,
    LLM_MAX_TOKENS,
    LLM_REQUEST_TIMEOUT_SECONDS,
    LLM_TEMPERATURE,
    SEARCH_SYSTEM_PROMPT,
    TEST_MODEL_ID,
)

logger = logging.getLogger("KENSAKU")

# Appended to the first answer in the second call so the model treats it as a draft.
SEARCH_HANDOFF_SUFFIX = "\n\n(この回答は最新情報ではない可能性があります。Web検索で確認してみます。)"

TEST_INITIAL_RESPONSE = "これはテストモードでの応答です。実際のAPIは呼び出されていません。"


def is_test_mode(model: Optional[str]) -> bool:
    """True if this model id means 'no external calls'."""
    return model == TEST_MODEL_ID


def is_rate_limit_error(exc: Exception) -> bool:
    """True if the exception is a Groq rate limit (429 / tokens per day)."""
    msg = str(exc).lower()
    return "429" in msg or "rate limit" in msg or "tokens per day" in msg


def mask_api_key(key: str) -> str:
    """Show only the first and last four characters of a key."""
    if len(key) <= 8:
        return "***"
    return f"{key[:4]}...{key[-4:]}"


# ==============================================================================
# GROQ SERVICE CLASS
# ==============================================================================

class GroqService:
    """
    Thin async wrapper around ChatGroq that knows the three prompts this
    backend needs and rotates over the configured API keys.
    """

    # Shared by every instance so rotation continues across services.
    _shared_key_index = 0

    def __init__(
        self,
        api_keys: Optional[List[str]] = None,
        request_timeout: float = LLM_REQUEST_TIMEOUT_SECONDS,
        max_tokens: int = LLM_MAX_TOKENS,
        temperature: float = LLM_TEMPERATURE,
    ):
        self.api_keys = list(GROQ_API_KEYS if api_keys is None else api_keys)
        self.request_timeout = request_timeout
        self.max_tokens = max_tokens
        self.temperature = temperature
        if self.api_keys:
            logger.info("Groq service ready with %s API key(s)", len(self.api_keys))
        else:
            logger.warning("GROQ_API_KEY not set. Only the test model will answer.")

    # ------------------------------------------------------------------------------
    # LOW-LEVEL CALL
    # ------------------------------------------------------------------------------

    def _build_llm(self, api_key: str, model: str, max_tokens: int, temperature: float) -> ChatGroq:
        return ChatGroq(
            api_key=api_key,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=self.request_timeout,
            max_retries=0,
        )

    def _next_key_order(self) -> List[str]:
        """All keys, starting from the shared round-robin position."""
        start = GroqService._shared_key_index % len(self.api_keys)
        GroqService._shared_key_index += 1
        return self.api_keys[start:] + self.api_keys[:start]

    async def _invoke_llm(
        self,
        messages: List[BaseMessage],
        model: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """Send messages to Groq, trying each key once. Returns the stripped answer text."""
        if not self.api_keys:
            raise UpstreamError("GROQ_API_KEY is not configured")

        max_tokens = self.max_tokens if max_tokens is None else max_tokens
        temperature = self.temperature if temperature is None else temperature

        last_error: Optional[Exception] = None
        rate_limited = False
        for api_key in self._next_key_order():
            llm = self._build_llm(api_key, model, max_tokens, temperature)
            try:
                response = await llm.ainvoke(messages)
            except Exception as e:
                last_error = e
                rate_limited = rate_limited or is_rate_limit_error(e)
                logger.warning("Groq call failed with key %s (model=%s): %s", mask_api_key(api_key), model, e)
                continue
            logger.info("Groq call succeeded with key %s (model=%s)", mask_api_key(api_key), model)
            return str(response.content or "").strip()

        raise UpstreamError(
            f"Failed to fetch response from Groq: {last_error}",
            status_code=429 if rate_limited else 500,
        ) from last_error

    # ------------------------------------------------------------------------------
    # PUBLIC CALLS
    # ------------------------------------------------------------------------------

    async def generate_initial_response(self, prompt: str, model: Optional[str] = None) -> str:
        """First answer to the user's prompt."""
        model = model or GROQ_MODEL
        if is_test_mode(model):
            logger.warning("Test model selected; Groq is not called")
            return TEST_INITIAL_RESPONSE

        messages = [
            SystemMessage(content=f"{INITIAL_SYSTEM_PROMPT}\n\n{get_time_information()}"),
            HumanMessage(content=prompt),
        ]
        return await self._invoke_llm(messages, model)

    async def extract_keywords(self, prompt: str) -> str:
        """Comma-separated search keywords for prompt; the prompt itself if the model returns nothing."""
        messages = [HumanMessage(content=KEYWORD_EXTRACTION_PROMPT.format(prompt=prompt))]
        keywords = await self._invoke_llm(
            messages,
            KEYWORD_MODEL,
            max_tokens=KEYWORD_MAX_TOKENS,
            temperature=KEYWORD_TEMPERATURE,
        )
        return keywords or prompt

    async def generate_with_search_context(
        self,
        prompt: str,
        initial_answer: str,
        search_context: str,
        model: Optional[str] = None,
    ) -> str:
        """Second answer, grounded on search_context. May return "" if the model says nothing."""
        model = model or GROQ_MODEL
        if is_test_mode(model):
            return (
                "これはテストモードでの応答です。Web検索機能も実際には実行されていません。\n"
                f"初期クエリ: {prompt}\n"
                f"初期応答: {initial_answer}"
            )

        messages = [
            SystemMessage(content=SEARCH_SYSTEM_PROMPT),
            HumanMessage(content=prompt),
            AIMessage(content=initial_answer + SEARCH_HANDOFF_SUFFIX),
            HumanMessage(
                content=f"{search_context}\n\n上記の情報を参考に、私の質問に回答してください: {prompt}"
            ),
        ]
        return await self._invoke_llm(messages, model)
