"""Completion client: one Claude call per recommendation turn.

Every failure mode (no key, API error, timeout, empty reply) is reported as
ServiceUnavailable so the caller can switch to degraded mode. No retries.
"""

from __future__ import annotations

import asyncio

import anthropic
import structlog

from sommelier.config import settings
from sommelier.errors import ServiceUnavailable

log = structlog.get_logger("pipeline.completion")


class CompletionClient:
    def __init__(
        self,
        api_key: str | None = None,
        *,
        model: str | None = None,
        max_tokens: int | None = None,
        timeout_seconds: float | None = None,
        client: anthropic.AsyncAnthropic | None = None,
    ) -> None:
        self.api_key = settings.anthropic_api_key if api_key is None else api_key
        self.model = model or settings.completion_model
        self.max_tokens = max_tokens or settings.completion_max_tokens
        self.timeout_seconds = timeout_seconds or settings.completion_timeout_seconds
        self._client = client

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self.api_key)

    def _get_client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            if not self.api_key:
                raise ServiceUnavailable("ANTHROPIC_API_KEY not set")
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
        return self._client

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int | None = None,
    ) -> str:
        """Return the reply text. Raises ServiceUnavailable on any failure."""
        client = self._get_client()
        try:
            response = await asyncio.wait_for(
                client.messages.create(
                    model=self.model,
                    max_tokens=max_tokens or self.max_tokens,
                    system=system_prompt,
                    messages=[{"role": "user", "content": user_prompt}],
                ),
                timeout=self.timeout_seconds,
            )
        except anthropic.RateLimitError as e:
            log.warning("completion_rate_limited")
            raise ServiceUnavailable(f"Claude rate limited: {e}") from e
        except anthropic.APIStatusError as e:
            log.error("completion_api_error", status=e.status_code)
            raise ServiceUnavailable(f"Claude API error ({e.status_code}): {e}") from e
        except anthropic.APIError as e:
            log.error("completion_connection_error", error=str(e))
            raise ServiceUnavailable(f"Claude request failed: {e}") from e
        except asyncio.TimeoutError as e:
            log.warning("completion_timeout", timeout_seconds=self.timeout_seconds)
            raise ServiceUnavailable("Claude request timed out") from e

        log.info(
            "completion_tokens",
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=self.model,
        )

        text = ""
        for block in response.content:
            if hasattr(block, "text"):
                text += block.text
        if not text.strip():
            raise ServiceUnavailable("Claude returned an empty reply")
        return text
