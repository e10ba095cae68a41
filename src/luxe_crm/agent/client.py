"""OpenAI-compatible client for the sales-assistant flows."""

import json
import re

from openai import OpenAI, OpenAIError

from luxe_crm.config import Config

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class AgentResponseError(Exception):
    """The model could not be reached or replied with unusable output."""


class LLMClient:
    """Single-turn JSON completions against an OpenAI-compatible server."""

    def __init__(self, client: OpenAI | None = None):
        self.client = client or OpenAI(
            base_url=Config.LLM_BASE_URL,
            api_key=Config.LLM_API_KEY,
            timeout=Config.LLM_TIMEOUT,
        )

    def complete_json(self, system_prompt: str, user_message: str) -> dict:
        """Send one exchange and parse the reply as a JSON object."""
        try:
            response = self.client.chat.completions.create(
                model=Config.LLM_MODEL,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_message},
                ],
            )
        except OpenAIError as e:
            raise AgentResponseError(f"Connection error: {e}") from e

        content = (response.choices[0].message.content or "").strip()
        # Local models often wrap JSON in a markdown fence
        match = _FENCE_RE.match(content)
        if match:
            content = match.group(1)
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise AgentResponseError(f"Reply was not JSON: {content[:200]}") from e
        if not isinstance(data, dict):
            raise AgentResponseError("Reply was not a JSON object")
        return data

    def is_connected(self) -> bool:
        """Check if the LLM server is reachable."""
        try:
            self.client.models.list()
            return True
        except OpenAIError:
            return False
