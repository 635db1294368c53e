"""
WEB SEARCH SERVICE MODULE
=========================

Tavily web search for answers the search analyzer flagged as stale. Used only
by the augmentation orchestrator; its errors never reach the user (the
orchestrator falls back to the first answer).

FLOW:
  1. search(query, limit): call Tavily, map each hit to SearchResult
     (title, url, description), keep at most `limit`.
  2. format_search_context(results): number the hits into a text block that
     goes into the second LLM call.

FAILURES:
  - No TAVILY_API_KEY, network or API error -> SearchError
  - Tavily answered with zero usable hits    -> NoResultsError

Also holds extract_keywords_from_text(), the local keyword fallback used when
the LLM keyword call is unavailable.
"""

import logging
from typing import List, Optional
from tavily import AsyncTavilyClient

from app.errors import NoResultsError, SearchError
from app.models import SearchResult
from config import SEARCH_RESULT_LIMIT, TAVILY_API_KEY

logger = logging.getLogger("KENSAKU")

# Canned hits for the test model; no network access.
_DUMMY_RESULTS = [
    ("テスト検索結果1 - {query}の解説", "https://example.com/test-result-1",
     "これはテストモードで生成されたダミーの検索結果です。検索クエリ: \"{query}\""),
    ("{query}に関する最新情報（テスト）", "https://example.com/test-result-2",
     "これはテストモードのダミー検索結果です。実際のWebコンテンツは含まれていません。"),
    ("{query}の使い方ガイド - テスト検索結果", "https://example.com/test-result-3",
     "テストモードで生成された3つ目のダミー検索結果です。"),
    ("テスト結果4: {query}のよくある質問", "https://example.com/test-result-4",
     "これは4つ目のテスト用ダミー検索結果です。"),
]


def extract_keywords_from_text(prompt: str, fallback: Optional[str] = None) -> str:
    """
    Naive keywords: whitespace-separated tokens longer than 2 characters, first 5,
    joined with ", ". Returns fallback (or the prompt) when no token qualifies.
    """
    keywords = [word for word in prompt.split() if len(word) > 2][:5]
    if keywords:
        return ", ".join(keywords)
    return fallback if fallback is not None else prompt


def format_search_context(results: List[SearchResult]) -> str:
    """Numbered text block of search hits for the second LLM call."""
    context = "以下は最新のWeb検索結果です:\n\n"
    for i, result in enumerate(results, 1):
        context += f"[{i}] {result.title}\n"
        context += f"URL: {result.url}\n"
        context += f"{result.description}\n\n"
    return context


# ==============================================================================
# WEB SEARCH SERVICE CLASS
# ==============================================================================

class WebSearchService:
    """Async Tavily search returning SearchResult lists."""

    def __init__(self, api_key: Optional[str] = None):
        """Create the Tavily client if a key is available."""
        api_key = TAVILY_API_KEY if api_key is None else api_key
        if api_key:
            self.tavily_client = AsyncTavilyClient(api_key=api_key)
            logger.info("Tavily search client initialized successfully")
        else:
            self.tavily_client = None
            logger.warning("TAVILY_API_KEY not set. Answers will not be augmented with web search.")

    async def search(self, query: str, limit: int = SEARCH_RESULT_LIMIT, dummy: bool = False) -> List[SearchResult]:
        """
        Search the web for query and return at most `limit` results.
        dummy=True returns canned results without calling Tavily.
        """
        if dummy:
            logger.info("Test mode: returning dummy search results for %r", query)
            return [
                SearchResult(title=title.format(query=query), url=url, description=desc.format(query=query))
                for title, url, desc in _DUMMY_RESULTS[:limit]
            ]

        if not self.tavily_client:
            raise SearchError("Tavily client not initialized. TAVILY_API_KEY not set.")

        logger.info("Searching Tavily for: %s", query)
        try:
            response = await self.tavily_client.search(
                query=query,
                search_depth="basic",
                max_results=limit,
                include_answer=False,
                include_raw_content=False,
            )
        except Exception as e:
            logger.error("Error performing Tavily search: %s", e)
            raise SearchError(f"Search failed: {e}") from e

        results = [
            SearchResult(
                title=hit.get("title") or "",
                url=hit.get("url") or "",
                description=hit.get("content") or "",
            )
            for hit in (response or {}).get("results", [])[:limit]
        ]

        if not results:
            raise NoResultsError(f"No search results found for query: {query}")

        logger.info("Tavily search completed for query: %s (%s results)", query, len(results))
        return results
