"""Shared fixtures -- fake clock, fixed date, stub LLM and search services."""

import datetime

import pytest

from app.models import SearchResult


# The staleness rules depend on the current year; tests judge against this date.
FIXED_DATE = datetime.date(2025, 6, 1)


class FakeClock:
    """Monotonic clock the tests move by hand (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubLLM:
    """Stands in for GroqService; records calls and returns configured answers."""

    def __init__(self, initial="", final="", keywords="キーワード", keyword_error=None, final_error=None):
        self.initial = initial
        self.final = final
        self.keywords = keywords
        self.keyword_error = keyword_error
        self.final_error = final_error
        self.calls = []

    async def generate_initial_response(self, prompt, model=None):
        self.calls.append(("initial", prompt, model))
        return self.initial

    async def extract_keywords(self, prompt):
        self.calls.append(("keywords", prompt))
        if self.keyword_error:
            raise self.keyword_error
        return self.keywords

    async def generate_with_search_context(self, prompt, initial_answer, search_context, model=None):
        self.calls.append(("final", prompt, initial_answer, search_context, model))
        if self.final_error:
            raise self.final_error
        return self.final


class StubSearch:
    """Stands in for WebSearchService."""

    def __init__(self, results=None, error=None):
        self.results = results if results is not None else []
        self.error = error
        self.queries = []

    async def search(self, query, limit=3, dummy=False):
        self.queries.append((query, limit, dummy))
        if self.error:
            raise self.error
        return self.results[:limit]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def search_results():
    return [
        SearchResult(title="Python 3.13 リリース", url="https://example.com/py313", description="Python 3.13が公開されました。"),
        SearchResult(title="What's New", url="https://example.com/whatsnew", description="新機能の一覧"),
    ]


# An answer the analyzer flags: explicit knowledge-cutoff admission.
STALE_ANSWER = "私の知識は2024年6月までです。それ以降のリリースについてはわかりません。"

# An answer the analyzer leaves alone: explicit confidence.
CONFIDENT_ANSWER = "この問題について詳しく説明します。まず、背景として考えられるのは次の3つのポイントです。"
