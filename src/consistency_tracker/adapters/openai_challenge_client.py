"""OpenAI Responses API client for challenge generation."""

import json
from dataclasses import dataclass

from openai import AsyncOpenAI

from consistency_tracker.services.content import ChallengeClient

_FORMAT_NAME = "daily_challenge"


@dataclass
class OpenAIChallengeClient(ChallengeClient):
    """Challenge client backed by OpenAI Responses API.

    The coaching instructions travel as the request's ``instructions`` and the
    user's profile as its single input message. Incomplete responses are
    rejected even when they carry partial text.
    """

    client: AsyncOpenAI
    max_output_tokens: int | None = None

    @classmethod
    def create(
        cls, api_key: str, max_output_tokens: int | None = None
    ) -> "OpenAIChallengeClient":
        """Create an OpenAI challenge client."""
        return cls(
            client=AsyncOpenAI(api_key=api_key), max_output_tokens=max_output_tokens
        )

    async def generate(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        schema: dict[str, object],
        instructions: str,
        prompt: str,
    ) -> dict[str, object]:
        """Return the challenge object the model produced for the prompt."""
        request: dict[str, object] = {
            "model": model,
            "instructions": instructions,
            "input": prompt,
            "text": {
                "format": {
                    "type": "json_schema",
                    "name": _FORMAT_NAME,
                    "strict": True,
                    "schema": schema,
                }
            },
            "store": store,
        }
        if reasoning_effort:
            request["reasoning"] = {"effort": reasoning_effort}
        if self.max_output_tokens is not None:
            request["max_output_tokens"] = self.max_output_tokens

        response = await self.client.responses.create(**request)
        if response.status == "incomplete":
            details = response.incomplete_details
            reason = details.reason if details is not None else "unknown"
            raise RuntimeError(f"OpenAI challenge response incomplete: {reason}")
        if not response.output_text:
            raise RuntimeError("OpenAI returned an empty challenge")
        challenge = json.loads(response.output_text)
        if not isinstance(challenge, dict):
            raise RuntimeError("OpenAI challenge is not a JSON object")
        return challenge

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.close()
