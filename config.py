"""
CONFIGURATION MODULE
====================

PURPOSE:
  Central place for all backend settings: API keys, model names, rate-limit
  window, timeouts and the system prompts sent to the LLM.

WHAT THIS FILE DOES:
  - Loads environment variables from .env (so API keys stay out of code).
  - Exposes GROQ_API_KEYS, GROQ_MODEL, KEYWORD_MODEL and TAVILY_API_KEY for the LLM and search.
  - Defines the rate-limit window, the per-identity request quota and the identity cap.
  - Defines the initial-answer timeout, the max prompt length and the search result limit.
  - Holds the system prompts for the first answer and the search-augmented answer.

USAGE:
  Import what you need: `from config import GROQ_API_KEYS, RATE_LIMIT_MAX_REQUESTS`
  All services import from here so behaviour is consistent.
"""

import os
import math
import logging
from dotenv import load_dotenv


# -----------------------------------------------------------------------------
# LOGGING
# -----------------------------------------------------------------------------
# Used when we need to log warnings (e.g. a malformed number in .env)
logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# ENVIRONMENT
# -----------------------------------------------------------------------------
# Load environment variables from .env file (if it exists).
load_dotenv()


def _env_number(name: str, default, cast=float):
    """Read a numeric setting; fall back to default (with a warning) when it is not a number."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r (not a number); using %s", name, raw, default)
        return default
    if not math.isfinite(value):
        logger.warning("Ignoring %s=%r (not a finite number); using %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring %s=%r (must be positive); using %s", name, raw, default)
        return default
    return value


# ============================================================================
# GROQ API CONFIGURATION
# ============================================================================
# Groq is the LLM provider. You can set one key (GROQ_API_KEY) or several:
#   GROQ_API_KEY, GROQ_API_KEY_2, GROQ_API_KEY_3, ... (no upper limit).
# Keys are used round-robin; if one fails the next one is tried.

def _load_groq_api_keys() -> list:
    """
    Load all GROQ API keys from the environment.
    Reads GROQ_API_KEY first, then GROQ_API_KEY_2, GROQ_API_KEY_3, ... until
    a number has no value. Returns a list of non-empty key strings.
    """
    keys = []
    first = os.getenv("GROQ_API_KEY", "").strip()
    if first:
        keys.append(first)
    i = 2
    while True:
        k = os.getenv(f"GROQ_API_KEY_{i}", "").strip()
        if not k:
            break
        keys.append(k)
        i += 1
    return keys


GROQ_API_KEYS = _load_groq_api_keys()
GROQ_MODEL = os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile")

# Keyword extraction only needs a small, fast model; the user's model choice is not used for it.
KEYWORD_MODEL = os.getenv("KEYWORD_MODEL", "llama-3.1-8b-instant")

# Models a client may pick with the "model" field of POST /chat.
AVAILABLE_MODELS = list(dict.fromkeys(
    m.strip()
    for m in os.getenv("AVAILABLE_MODELS", f"{GROQ_MODEL},llama-3.1-8b-instant").split(",")
    if m.strip()
))
if GROQ_MODEL not in AVAILABLE_MODELS:
    AVAILABLE_MODELS.insert(0, GROQ_MODEL)

# Selecting this model never calls Groq or Tavily; canned answers are returned instead.
TEST_MODEL_ID = "test-model"

# Per-call HTTP timeout handed to the Groq client (seconds).
LLM_REQUEST_TIMEOUT_SECONDS = _env_number("LLM_REQUEST_TIMEOUT_SECONDS", 30.0)
LLM_MAX_TOKENS = 1000
LLM_TEMPERATURE = 0.7
KEYWORD_MAX_TOKENS = 100
KEYWORD_TEMPERATURE = 0.3

# ============================================================================
# TAVILY API CONFIGURATION
# ============================================================================
# Tavily is the web search API used when an answer looks out of date.
# Get API key from: https://tavily.com (free tier available)

TAVILY_API_KEY = os.getenv("TAVILY_API_KEY", "")
SEARCH_RESULT_LIMIT = _env_number("SEARCH_RESULT_LIMIT", 3, int)

# ============================================================================
# REQUEST LIMITS
# ============================================================================
# Sliding window: each identity (client IP) may send RATE_LIMIT_MAX_REQUESTS
# requests per RATE_LIMIT_INTERVAL_SECONDS. At most RATE_LIMIT_MAX_IDENTITIES
# identities are tracked at once; the oldest is dropped beyond that.

RATE_LIMIT_INTERVAL_SECONDS = _env_number("RATE_LIMIT_INTERVAL_SECONDS", 60.0)
RATE_LIMIT_MAX_IDENTITIES = _env_number("RATE_LIMIT_MAX_IDENTITIES", 50, int)
RATE_LIMIT_MAX_REQUESTS = _env_number("RATE_LIMIT_MAX_REQUESTS", 5, int)

# The client IP is taken from the first X-Forwarded-For hop. Only leave this on
# behind a proxy that overwrites the header; otherwise a client can pick its own
# identity. When off, the peer address of the connection is used.
TRUST_FORWARDED_FOR = os.getenv("TRUST_FORWARDED_FOR", "true").strip().lower() not in ("0", "false", "no", "off")

# The first answer must arrive within this many seconds or the request fails with 504.
REQUEST_TIMEOUT_SECONDS = _env_number("REQUEST_TIMEOUT_SECONDS", 25.0)

# Longer prompts are cut to this many characters before they reach the LLM.
MAX_PROMPT_LENGTH = 1000

# ============================================================================
# SYSTEM PROMPTS
# ============================================================================
# Answers are requested in Japanese so the staleness classifier can read them.
# The first prompt asks the model to admit plainly when it lacks recent
# information; that admission is what triggers the web search.

INITIAL_SYSTEM_PROMPT = (
    "あなたは親切なアシスタントです。質問に対して最新の情報がない場合は、"
    "明確にその旨を伝えてください。「私の知識は〇〇までです」などと正直に答えてください。"
)

SEARCH_SYSTEM_PROMPT = (
    "あなたは親切なアシスタントです。提供された最新のWeb検索結果を参考にして、"
    "ユーザーの質問に回答してください。検索結果を適切に引用し、ソースを明示してください。"
)

KEYWORD_EXTRACTION_PROMPT = (
    "次の質問からWeb検索に使用する重要なキーワードを3〜5つ抽出してください。"
    "キーワードのみをカンマ区切りで出力してください。\n\n質問: {prompt}"
)
