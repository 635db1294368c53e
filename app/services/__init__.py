"""
SERVICES PACKAGE
================

Business logic lives here. The API layer (app.main) calls these services;
they don't handle HTTP.

MODULES:
    groq_service     - Groq LLM calls (first answer, keywords, search-backed answer)
    web_search       - Tavily search, result formatting, local keyword fallback
    search_analyzer  - needs_web_search(): does the first answer look out of date?
    augmentation     - AugmentationOrchestrator: first answer -> check -> search -> second answer
"""
