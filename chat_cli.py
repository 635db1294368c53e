"""
KENSAKU CHAT - Command-line client
==================================

PURPOSE:
Talk to a running backend from the terminal, without the browser UI. Handy
for checking that stale answers get supplemented with web search.

USAGE:
    python chat_cli.py [base_url]

    Make sure the server is running first: python run.py

COMMANDS:
    /models      - List the models the server accepts
    /model <id>  - Use that model for the next messages ("test-model" = no API calls)
    /quit        - Exit
"""

import sys

import requests


# -----------------------------------------------------------------------------
# CONFIGURATION
# -----------------------------------------------------------------------------
BASE_URL = "http://localhost:8000"
# Slightly longer than the server's own timeout so we see its 504 instead of ours.
REQUEST_TIMEOUT = 60


def print_header(base_url):
    print("\n" + "=" * 60)
    print("Kensaku Chat - " + base_url)
    print("=" * 60)
    print("Commands: /models, /model <id>, /quit")
    print("=" * 60 + "\n")


# -----------------------------------------------------------------------------
# API CALLS
# -----------------------------------------------------------------------------

def send_prompt(base_url, prompt, model=None):
    """
    POST the prompt to /chat and return the text to show.

    Errors come back as a message string rather than an exception, so the
    loop keeps running.
    """
    body = {"prompt": prompt}
    if model:
        body["model"] = model

    try:
        response = requests.post(f"{base_url}/chat", json=body, timeout=REQUEST_TIMEOUT)
    except requests.exceptions.ConnectionError:
        return "Cannot connect to backend. Start it with: python run.py"
    except requests.exceptions.Timeout:
        return "Request timed out. Try a simpler query."

    if response.status_code == 200:
        data = response.json()
        text = data.get("text", "")
        sources = data.get("searchResults") or []
        if sources:
            text += "\n\nSources:\n" + "\n".join(f"  - {s['title']} ({s['url']})" for s in sources)
        return text
    if response.status_code == 429:
        return "Too many requests. Wait a minute and try again."
    if response.status_code == 504:
        return "The model took too long to answer. Please try again."

    try:
        error = response.json().get("error")
    except ValueError:
        error = None
    return f"Error {response.status_code}: {error or response.text}"


def list_models(base_url):
    try:
        response = requests.get(f"{base_url}/models", timeout=10)
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        return f"Could not retrieve models: {e}"
    data = response.json()
    lines = [f"  {m}{' (default)' if m == data.get('default') else ''}" for m in data.get("models", [])]
    return "\n".join(lines)


# -----------------------------------------------------------------------------
# MAIN LOOP
# -----------------------------------------------------------------------------

def main():
    base_url = sys.argv[1].rstrip("/") if len(sys.argv) > 1 else BASE_URL
    model = None
    print_header(base_url)

    while True:
        try:
            user_input = input("\nYou: ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\nGoodbye!")
            break

        if not user_input:
            continue
        if user_input in ["/quit", "/exit"]:
            print("Goodbye!")
            break
        if user_input == "/models":
            print(list_models(base_url))
            continue
        if user_input.startswith("/model "):
            model = user_input.split(maxsplit=1)[1].strip()
            print(f"Using model: {model}")
            continue
        if user_input.startswith("/"):
            print(f"Unknown command: {user_input}")
            continue

        print("Assistant: ", end="", flush=True)
        print(send_prompt(base_url, user_input, model))


if __name__ == "__main__":
    main()
