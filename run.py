"""
RUN SCRIPT - Start the Kensaku Chat server
==========================================

PURPOSE:
  Single entry point to start the backend the browser UI talks to.

WHAT IT DOES:
  - Imports the FastAPI app from app.main.
  - Runs it with uvicorn on host 0.0.0.0 and port 8000 (override with HOST / PORT).
  - RELOAD=1 restarts the server when Python files change (development only).
    Keep it off in production: the rate-limit ledger lives in process memory.

USAGE:
  python run.py

  API docs: http://localhost:8000/docs

NOTE:
  Before running, set GROQ_API_KEY (and TAVILY_API_KEY for web search) in .env.
"""

import os

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "") == "1",
    )
