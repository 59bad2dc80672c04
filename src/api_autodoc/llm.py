"""Thin wrapper around litellm for multi-model support."""

import os

from litellm import completion

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class LlmClient:
    """Unified LLM client. Model is read from the caller, then AUTODOC_MODEL."""

    def __init__(self, model: str | None = None, max_retries: int = 3):
        self.model = model or os.environ.get("AUTODOC_MODEL") or DEFAULT_MODEL
        self.max_retries = max_retries

    def call(self, system: str, user: str) -> str:
        """Send a system + user message pair and return the text response."""
        response = completion(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            num_retries=self.max_retries,
        )
        return response.choices[0].message.content
