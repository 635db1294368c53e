"""
KENSAKU CHAT APPLICATION PACKAGE
================================

Backend for the chat UI: answers prompts with Groq and supplements answers
that look out of date with Tavily web search results.

  from app.main import app
  from app.services.search_analyzer import needs_web_search

FILE STRUCTURE:
  app/
    __init__.py   - This file; marks 'app' as a package.
    main.py       - FastAPI app and HTTP endpoints (/chat, /models, /health).
    models.py     - Pydantic models for requests, responses and search results.
    errors.py     - Error types and the HTTP status each one maps to.
    services/     - LLM calls, web search, staleness check, two-pass orchestration.
    utils/        - Rate limiter, markdown rendering, current date for the prompt.
"""
