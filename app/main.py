"""
KENSAKU CHAT MAIN API
=====================

This module defines the FastAPI application and its HTTP endpoints. The
browser UI posts a prompt; the backend answers it with Groq and, when the
answer looks out of date, re-answers with Tavily web search results.

ENDPOINTS:
  GET  /         - Returns API name and list of endpoints.
  GET  /health   - Returns status of all services (for monitoring).
  GET  /models   - Models the client may choose and the default one.
  POST /chat     - {prompt, model?} -> {text, html, isMarkdown, searchResults?}. Rate limited per client IP.

ERRORS:
  Every failure is answered as {"error": "..."} with
  400 (bad input), 429 (rate limited), 504 (first answer timed out),
  503 (services not ready) or 500 (anything else).

STARTUP:
  The lifespan function creates the rate limiter (and starts its background
  sweep), the Groq service, the web search service and the orchestrator. On
  shutdown it stops the sweep.
"""


from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import uvicorn
import logging

from app.errors import ChatbotError, RateLimitExceededError
from app.models import ChatRequest, ChatResponse, ErrorResponse, ModelsResponse
from app.services.augmentation import AugmentationOrchestrator
from app.services.groq_service import GroqService
from app.services.web_search import WebSearchService
from app.utils.markdown_renderer import render_markdown
from app.utils.rate_limit import SlidingWindowRateLimiter
from config import (
    AVAILABLE_MODELS,
    GROQ_MODEL,
    MAX_PROMPT_LENGTH,
    RATE_LIMIT_INTERVAL_SECONDS,
    RATE_LIMIT_MAX_IDENTITIES,
    RATE_LIMIT_MAX_REQUESTS,
    REQUEST_TIMEOUT_SECONDS,
    SEARCH_RESULT_LIMIT,
    TEST_MODEL_ID,
    TRUST_FORWARDED_FOR,
)

# User-facing messages for the statuses the UI treats specially.
RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."
TIMEOUT_MESSAGE = "Request timed out"


# -----------------------------------------------------------------------------
# LOGGING
# -----------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger("KENSAKU")


# -----------------------------------------------------------------------------
# GLOBAL SERVICE REFERENCES
# -----------------------------------------------------------------------------
# Set during startup (lifespan) and used by all route handlers.
rate_limiter: SlidingWindowRateLimiter = None
groq_service: GroqService = None
search_service: WebSearchService = None
orchestrator: AugmentationOrchestrator = None


# -------------------------------------------------------------------------
# LIFESPAN (STARTUP / SHUTDOWN)
# -------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build the services at startup and stop the rate limiter sweep at shutdown.

    Order: rate limiter (independent), Groq and web search services, then the
    orchestrator that uses both.
    """
    global rate_limiter, groq_service, search_service, orchestrator

    logger.info("=" * 60)
    logger.info("Kensaku Chat - Starting Up...")
    logger.info("=" * 60)

    try:
        rate_limiter = SlidingWindowRateLimiter(
            interval=RATE_LIMIT_INTERVAL_SECONDS,
            max_unique_identities=RATE_LIMIT_MAX_IDENTITIES,
        )
        rate_limiter.start()
        logger.info(
            "Rate limiter ready (%s requests / %ss, %s identities)",
            RATE_LIMIT_MAX_REQUESTS, RATE_LIMIT_INTERVAL_SECONDS, RATE_LIMIT_MAX_IDENTITIES,
        )

        groq_service = GroqService()
        search_service = WebSearchService()
        orchestrator = AugmentationOrchestrator(
            groq_service,
            search_service,
            result_limit=SEARCH_RESULT_LIMIT,
            initial_timeout=REQUEST_TIMEOUT_SECONDS,
        )

        logger.info("Default model: %s", GROQ_MODEL)
        logger.info("Kensaku Chat is online. Docs: http://localhost:8000/docs")
        logger.info("=" * 60)
    except Exception as e:
        logger.error(f"Fatal error during startup: {e}", exc_info=True)
        raise

    yield

    logger.info("Shutting down Kensaku Chat...")
    if rate_limiter is not None:
        await rate_limiter.stop()
    logger.info("Goodbye!")


# -------------------------------------------------------------------------
# FASTAPI APP, CORS AND ERROR HANDLERS
# -------------------------------------------------------------------------
app = FastAPI(
    title="Kensaku Chat API",
    description="LLM chat with web search for out-of-date answers",
    lifespan=lifespan
)

# The browser UI is served from another origin.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, message: str, headers: dict = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


@app.exception_handler(ChatbotError)
async def chatbot_error_handler(request: Request, exc: ChatbotError):
    """Map the error taxonomy to {"error": ...} with the error's own status."""
    if isinstance(exc, RateLimitExceededError):
        return _error(429, RATE_LIMIT_MESSAGE, headers={"Retry-After": str(int(exc.retry_after))})
    if exc.status_code == 504:
        return _error(504, TIMEOUT_MESSAGE)
    if exc.status_code == 429:
        logger.warning(f"Upstream rate limit hit: {exc}")
        return _error(429, RATE_LIMIT_MESSAGE)
    if exc.status_code >= 500:
        logger.error(f"Error processing chat: {exc}")
        return _error(exc.status_code, "Failed to fetch response from the language model")
    return _error(exc.status_code, str(exc))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Bad request bodies are 400 with the first validation message."""
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return _error(400, message.removeprefix("Value error, "))


# =========================================================================
# DEPENDENCIES
# =========================================================================

def client_identity(request: Request) -> str:
    """
    First X-Forwarded-For hop, else the peer address, else 'anonymous'.

    The header is only read when TRUST_FORWARDED_FOR is on, i.e. when the app
    sits behind a proxy that sets it. Without such a proxy a client could send
    a new value on every request and get a fresh quota each time.
    """
    if TRUST_FORWARDED_FOR:
        first_hop = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
        if first_hop:
            return first_hop
    if request.client and request.client.host:
        return request.client.host
    return "anonymous"


async def enforce_rate_limit(request: Request) -> None:
    """Count this request against the caller's quota; runs before the body is validated."""
    if rate_limiter is None:
        return
    rate_limiter.check(RATE_LIMIT_MAX_REQUESTS, client_identity(request))


# =========================================================================
# API ENDPOINTS
# =========================================================================

@app.get("/")
async def root():
    """Return the API name and a short description of each endpoint (for discovery)."""
    return {
        "message": "Kensaku Chat API",
        "endpoints": {
            "/chat": "Chat; stale answers are supplemented with web search",
            "/models": "Available models",
            "/health": "System health check"
        }
    }


@app.get("/health")
async def health():
    """Return 'healthy' and whether each service is initialized."""
    return {
        "status": "healthy",
        "rate_limiter": rate_limiter is not None and rate_limiter.running,
        "groq_service": groq_service is not None,
        "search_service": search_service is not None and search_service.tavily_client is not None,
        "orchestrator": orchestrator is not None,
    }


@app.get("/models", response_model=ModelsResponse)
async def models():
    """Models the UI can offer; the test model answers without calling any API."""
    return ModelsResponse(default=GROQ_MODEL, models=AVAILABLE_MODELS + [TEST_MODEL_ID])


@app.post(
    "/chat",
    response_model=ChatResponse,
    dependencies=[Depends(enforce_rate_limit)],
    responses={code: {"model": ErrorResponse} for code in (400, 429, 500, 503, 504)},
)
async def chat(request: ChatRequest):
    """
    Answer a prompt.

    HOW IT WORKS:
    1. Rate limit check for the caller's IP (429 when exceeded).
    2. Prompt cut to MAX_PROMPT_LENGTH characters.
    3. First answer from Groq (504 if it takes longer than REQUEST_TIMEOUT_SECONDS).
    4. If the answer looks out of date: keywords -> Tavily -> second answer with sources.
       Any failure in this step silently keeps the first answer.
    5. Markdown rendered to HTML.

    REQUEST BODY:
    {
        "prompt": "最新のPythonのバージョンは？",
        "model": "optional-model-id"
    }

    RESPONSE:
    {
        "text": "...",
        "html": "<p>...</p>",
        "isMarkdown": true,
        "searchResults": [{"title": ..., "url": ..., "description": ...}]   # only when supplemented
    }
    """
    if orchestrator is None:
        return _error(503, "Chat service not initialized")

    prompt = request.prompt[:MAX_PROMPT_LENGTH]
    try:
        outcome = await orchestrator.answer(prompt, request.model)
    except ChatbotError:
        raise
    except Exception as e:
        logger.error(f"Error processing chat: {e}", exc_info=True)
        return _error(500, "Failed to fetch response from the language model")

    search_results = None
    if outcome.augmented:
        logger.info("Answer supplemented with %s search results", len(outcome.search_results))
        search_results = outcome.search_results

    return ChatResponse(
        text=outcome.text,
        html=render_markdown(outcome.text),
        isMarkdown=True,
        searchResults=search_results,
    )


# -------------------------------------------------------------------------
# STANDALONE RUN (python -m app.main)
# -------------------------------------------------------------------------
def run():
    """Start the uvicorn server (same as run.py); used if someone does python -m app.main"""
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )

if __name__ == "__main__":
    run()
