"""Minimal async client for OpenAI-compatible chat completion APIs."""

import json

import httpx

from apisentry.config import LLMSettings


class LLMClient:
    """Send single-turn prompts to ``{base_url}/chat/completions``."""

    def __init__(
        self,
        settings: LLMSettings,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self.timeout = timeout
        self.transport = transport

    @property
    def configured(self) -> bool:
        return self.settings.configured

    async def chat(self, message: str, system_prompt: str | None = None) -> str:
        """Send a chat message and return the assistant's text."""
        if not self.configured:
            raise RuntimeError("LLM API key is not configured")

        url = f"{self.settings.base_url.rstrip('/')}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
        }

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": message})

        payload = {
            "model": self.settings.model,
            "messages": messages,
            "temperature": 0.3,
            "max_tokens": 2048,
        }

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(url, headers=headers, json=payload)
        raw_text = response.text

        if response.status_code >= 400:
            response.raise_for_status()

        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise ValueError(
                f"LLM API returned invalid JSON (status {response.status_code}): {e}. "
                f"Raw response: {raw_text[:500]!r}"
            ) from e

        choices = data.get("choices") if isinstance(data, dict) else None
        if not isinstance(choices, list) or not choices:
            raise ValueError(f"LLM API response has no choices. Raw response: {raw_text[:500]!r}")
        message_data = choices[0].get("message") if isinstance(choices[0], dict) else None
        if not isinstance(message_data, dict) or "content" not in message_data:
            raise ValueError(
                f"LLM API response choices[0] missing 'message' with 'content'. "
                f"Raw response: {raw_text[:500]!r}"
            )
        return message_data["content"]
