"""
UTILITIES PACKAGE
=================

Helpers used by the services and the API layer (no business logic):

  rate_limit        - SlidingWindowRateLimiter: per-IP quota over a rolling window.
  markdown_renderer - render_markdown(text): answer markdown to HTML.
  time_info         - get_time_information(): current date line for the LLM prompt.
"""
