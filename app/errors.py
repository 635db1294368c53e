"""
ERROR TYPES
===========

Every failure the backend knows how to report. Each class carries the HTTP
status the API layer (app.main) answers with, so handlers never need to
inspect error messages.

  InvalidArgumentError   - bad rate-limit parameters (400)
  RateLimitExceededError - identity used up its quota in the current window (429)
  RequestTimeoutError    - the first LLM answer did not arrive in time (504)
  UpstreamError          - the LLM call failed for any other reason (500, or 429 on provider quota)
  SearchError            - web search failed; never reaches the user
  NoResultsError         - web search returned nothing; never reaches the user
"""


class ChatbotError(Exception):
    """Base class for all backend errors."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class InvalidArgumentError(ChatbotError):
    status_code = 400


class RateLimitExceededError(ChatbotError):
    """Raised by the rate limiter; retry_after is the window length in seconds."""

    status_code = 429

    def __init__(self, message: str = "", retry_after: float = 0.0):
        super().__init__(message)
        self.retry_after = retry_after


class RequestTimeoutError(ChatbotError):
    status_code = 504


class UpstreamError(ChatbotError):
    """LLM provider failure. status_code is 429 when the provider itself rate limited us."""

    def __init__(self, message: str = "", status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


class SearchError(ChatbotError):
    pass


class NoResultsError(SearchError):
    pass
