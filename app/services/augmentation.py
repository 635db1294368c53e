"""
AUGMENTATION ORCHESTRATOR
=========================

Runs the two-pass answer flow for one prompt:

  INITIAL      first LLM answer, bounded by `initial_timeout` seconds.
               Expiry -> RequestTimeoutError. Other LLM failures propagate.
  NEEDS SEARCH only if the search analyzer flags the first answer:
               keywords -> web search -> second LLM call with the results.
  DONE         the second answer, or the first answer whenever the
               augmentation step fails, finds nothing or returns "".

Augmentation failures are logged and swallowed: the user always gets at least
the first answer. Cancellation (asyncio.CancelledError) is not swallowed.
"""

import asyncio
import datetime
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from app.errors import RequestTimeoutError
from app.models import SearchResult
from app.services.groq_service import is_test_mode
from app.services.search_analyzer import needs_web_search
from app.services.web_search import extract_keywords_from_text, format_search_context
from config import REQUEST_TIMEOUT_SECONDS, SEARCH_RESULT_LIMIT

logger = logging.getLogger("KENSAKU")


@dataclass
class ChatOutcome:
    """Final answer plus what it took to get there."""
    text: str
    augmented: bool = False
    search_results: List[SearchResult] = field(default_factory=list)


class AugmentationOrchestrator:
    """
    Sequences first answer -> staleness check -> optional search-backed answer.

    llm_service needs generate_initial_response, extract_keywords and
    generate_with_search_context; search_service needs search. Both are
    normally GroqService and WebSearchService.
    """

    def __init__(
        self,
        llm_service,
        search_service,
        result_limit: int = SEARCH_RESULT_LIMIT,
        initial_timeout: float = REQUEST_TIMEOUT_SECONDS,
        analyzer: Callable[..., bool] = needs_web_search,
        today: Optional[Callable[[], datetime.date]] = None,
    ):
        self.llm_service = llm_service
        self.search_service = search_service
        self.result_limit = result_limit
        self.initial_timeout = initial_timeout
        self.analyzer = analyzer
        self._today = today or datetime.date.today

    async def answer(self, prompt: str, model: Optional[str] = None) -> ChatOutcome:
        """Answer prompt, re-answering with web search results when the first answer looks stale."""
        try:
            initial_answer = await asyncio.wait_for(
                self.llm_service.generate_initial_response(prompt, model),
                timeout=self.initial_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error("Initial answer timed out after %ss", self.initial_timeout)
            raise RequestTimeoutError("Request timed out") from e

        if not self.analyzer(initial_answer, self._today()):
            return ChatOutcome(text=initial_answer)

        logger.info("Answer looks stale; supplementing with web search")
        return await self.augment(prompt, initial_answer, model)

    async def augment(self, prompt: str, initial_answer: str, model: Optional[str] = None) -> ChatOutcome:
        """Search-backed second answer; initial_answer on any failure."""
        try:
            keywords = await self._extract_keywords(prompt, model)
            logger.info("Search keywords: %s", keywords)

            results = await self.search_service.search(keywords, self.result_limit, dummy=is_test_mode(model))
            if not results:
                logger.info("No search results; keeping the first answer")
                return ChatOutcome(text=initial_answer)

            final_answer = await self.llm_service.generate_with_search_context(
                prompt, initial_answer, format_search_context(results), model
            )
        except Exception as e:
            logger.error("Error while supplementing the answer: %s", e, exc_info=True)
            return ChatOutcome(text=initial_answer)

        if not final_answer:
            logger.warning("Search-backed answer was empty; keeping the first answer")
            return ChatOutcome(text=initial_answer)

        return ChatOutcome(text=final_answer, augmented=True, search_results=results)

    async def _extract_keywords(self, prompt: str, model: Optional[str]) -> str:
        if is_test_mode(model):
            return extract_keywords_from_text(prompt, "テスト, キーワード, 抽出")
        try:
            return await self.llm_service.extract_keywords(prompt)
        except Exception as e:
            logger.warning("Keyword extraction failed, using local tokens: %s", e)
            return extract_keywords_from_text(prompt)
