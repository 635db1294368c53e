"""
DATA MODELS MODULE
==================

Pydantic models for API requests and responses, plus the web search result
shape shared by the search service and the orchestrator. FastAPI uses these to
validate incoming JSON and to serialize responses.

MODELS:
  ChatRequest    - Body of POST /chat (prompt + optional model id).
  ChatResponse   - Successful answer: plain text, rendered HTML, isMarkdown flag, sources.
  ErrorResponse  - Body of every failed request: {"error": "..."}.
  SearchResult   - One web search hit (title, url, description).
  ModelsResponse - Body of GET /models.
"""

from pydantic import BaseModel, Field, field_validator
from typing import List, Optional

from config import AVAILABLE_MODELS, TEST_MODEL_ID

# ==============================================================================
# REQUEST/RESPONSE MODELS
# ==============================================================================

class ChatRequest(BaseModel):
    """
    Request body for POST /chat.

    - prompt: Required, must contain something other than whitespace. Long
      prompts are not rejected; the API layer cuts them to MAX_PROMPT_LENGTH.
    - model: Optional. One of AVAILABLE_MODELS, or "test-model" to get canned
      answers without calling any external API. Defaults to GROQ_MODEL.
    """
    prompt: str = Field(..., min_length=1)
    model: Optional[str] = None

    @field_validator("prompt")
    @classmethod
    def prompt_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Prompt is required and must be a string")
        return value

    @field_validator("model")
    @classmethod
    def model_is_known(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in AVAILABLE_MODELS and value != TEST_MODEL_ID:
            raise ValueError(f"Unknown model: {value}")
        return value


class SearchResult(BaseModel):
    """One web search hit, as fed to the second LLM call and returned to the UI."""
    title: str = ""
    url: str = ""
    description: str = ""


class ChatResponse(BaseModel):
    """
    Response body for POST /chat.

    - text: The final answer (markdown source).
    - html: The same answer rendered to HTML.
    - isMarkdown: Always true; tells the UI to show html.
    - searchResults: The sources used when the answer was supplemented with
      web search; omitted (null) otherwise.
    """
    text: str
    html: str
    isMarkdown: bool = True
    searchResults: Optional[List[SearchResult]] = None


class ErrorResponse(BaseModel):
    error: str


class ModelsResponse(BaseModel):
    default: str
    models: List[str]
