"""
Model client for the elevator project.

Asynchronous HTTP handling via ``aiohttp`` against the Gemini
``generateContent`` endpoint, prompt construction for the elevation
strategies, response parsing, and retry with exponential backoff for
transient failures.
"""
from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import aiohttp

from .config import ElevatorConfig

logger = logging.getLogger(__name__)

GeminiPayload = Dict[str, Any]

ELEVATION_PROMPTS: Dict[str, str] = {
    "balanced": (
        "Rewrite the user's text as a more sophisticated, technically precise "
        "request. Keep the original intent and scope, replace vague wording "
        "with precise technical terminology, and structure the phrasing the "
        "way a subject matter expert would. Output only the rewritten text: "
        "no headers, no commentary, no markdown code fences."
    ),
    "concise": (
        "Rewrite the user's text as a technically precise request using "
        "professional terminology. Keep it short and keep the same intent. "
        "Output only the rewritten text, without code fences."
    ),
    "comprehensive": (
        "Rewrite the user's text as a detailed technical specification that "
        "covers architecture, implementation approach, quality assurance, "
        "security, performance and operational concerns, while asking for "
        "the same outcome. Output only the rewritten text, without code fences."
    ),
    "educational": (
        "Rewrite the user's text with educational framing: name the relevant "
        "technical concepts and learning objectives while asking for the same "
        "outcome. Output only the rewritten text, without code fences."
    ),
}

# Worked input/output pairs appended to the system instruction.
ELEVATION_EXAMPLES: List[Tuple[str, str]] = [
    (
        "make the page load faster",
        "Profile the page's critical rendering path, then reduce time to first "
        "contentful paint by deferring non-essential scripts and caching API "
        "responses where they are safe to reuse.",
    ),
    (
        "fix the login bug",
        "Diagnose and resolve the authentication failure in the login flow: "
        "reproduce it, identify the faulty step in credential validation or "
        "session creation, and add a regression test covering the fix.",
    ),
    (
        "write tests for the parser",
        "Design a unit test suite for the parser that covers well-formed input, "
        "malformed input with precise error reporting, and boundary cases such "
        "as empty documents.",
    ),
]

_BLOCKED_FINISH_REASONS ={"SAFETY", "RECITATION", "BLOCKLIST", "PROHIBITED_CONTENT", "SPII"}


def get_elevation_prompt(strategy: str = "balanced") -> str:
    try:
        return ELEVATION_PROMPTS[strategy]
    except KeyError:
        known = ", ".join(sorted(ELEVATION_PROMPTS))
        raise ValueError(f"Unknown elevation strategy {strategy!r} (expected one of: {known})") from None


def format_examples(examples: List[Tuple[str, str]] = ELEVATION_EXAMPLES) -> str:
    lines = ["Examples:"]
    for before, after in examples:
        lines.append(f"Input: {before}")
        lines.append(f"Output: {after}")
    return "\n".join(lines)


class ModelClientError(Exception):
    """Failure talking to the model API.

    ``code`` is a short machine-readable identifier such as ``RATE_LIMITED``;
    ``retryable`` tells :meth:`ModelClient._with_retry` whether another
    attempt makes sense.
    """

    def __init__(
        self,
        code: str,
        message: str,
        *,
        retryable: bool = False,
        retry_after: Optional[float] = None,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
        self.retryable = retryable
        self.retry_after = retry_after
        self.status = status


class ModelClient:
    """Client for the elevation model, used as an async context manager."""

    # ---------------------------------------------------------------------
    # Construction / context-manager helpers
    # ---------------------------------------------------------------------

    def __init__(
        self,
        config: ElevatorConfig,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        """
        Parameters
        ----------
        config:
            Project-wide configuration giving model name, API key and retry policy.
        session:
            Optional externally-managed :class:`aiohttp.ClientSession`.
            When *None* the client creates (and later closes) a private session.
        """
        self.config: ElevatorConfig = config
        self._session: Optional[aiohttp.ClientSession] = session
        self._owns_session: bool = session is None

    async def __aenter__(self) -> "ModelClient":
        if self._owns_session:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------

    async def elevate(self, text: str) -> str:
        """Return the elevated rewrite of *text*.

        Raises
        ------
        ModelClientError
            When no API key is configured or the API keeps failing.
        """
        api_key = self.config.resolve_api_key()
        if not api_key:
            raise ModelClientError(
                "CONFIGURATION_ERROR",
                f"No API key configured (set {self.config.api_key_env} or api_key).",
            )
        payload = self._construct_elevation_payload(text)
        data = await self._with_retry(
            lambda: self._make_api_call(self.config.model_name, payload, api_key)
        )
        return self._parse_response(data)

    # ---------------------------------------------------------------------
    # Low-level helpers
    # ---------------------------------------------------------------------

    async def _make_api_call(
        self, model_name: str, payload: GeminiPayload, api_key: str
    ) -> Dict[str, Any]:
        if self._session is None:
            raise ModelClientError(
                "CONFIGURATION_ERROR", "ModelClient used outside its async context."
            )
        url = f"{self.config.api_base_url.rstrip('/')}/models/{model_name}:generateContent"
        timeout = aiohttp.ClientTimeout(total=self.config.api_timeout)
        try:
            async with self._session.post(
                url,
                json=payload,
                headers={"x-goog-api-key": api_key},
                timeout=timeout,
            ) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    raise self._error_for_status(
                        resp.status, body, resp.headers.get("Retry-After")
                    )
                return await resp.json()
        except asyncio.TimeoutError as exc:
            raise ModelClientError(
                "TIMEOUT",
                f"No response within {self.config.api_timeout} seconds.",
                retryable=True,
            ) from exc
        except aiohttp.ClientError as exc:
            raise ModelClientError("NETWORK_ERROR", str(exc), retryable=True) from exc

    async def _with_retry(
        self, operation: Callable[[], Awaitable[Dict[str, Any]]]
    ) -> Dict[str, Any]:
        attempt = 0
        while True:
            try:
                return await operation()
            except ModelClientError as exc:
                if not exc.retryable or attempt >= self.config.max_retries:
                    raise
                delay = self._retry_delay(exc, attempt)
                logger.info(
                    "Model call failed with %s (attempt %d/%d); retrying in %.2fs",
                    exc.code, attempt + 1, self.config.max_retries + 1, delay,
                )
                await asyncio.sleep(delay)
                attempt += 1

    def _retry_delay(self, error: ModelClientError, attempt: int) -> float:
        """Exponential backoff with +/-12.5% jitter, seeded by ``Retry-After``."""
        base = error.retry_after if error.retry_after is not None else self.config.retry_base_delay
        delay = base * (2 ** attempt)
        jitter = delay * 0.25 * (random.random() - 0.5)
        return max(delay + jitter, 0.0)

    # ---------------------------------------------------------------------
    # Parse helpers
    # ---------------------------------------------------------------------

    @staticmethod
    def _error_for_status(
        status: int, body: str, retry_after: Optional[str] = None
    ) -> ModelClientError:
        snippet = (body or "").strip()[:500]
        if status in (401, 403):
            return ModelClientError("AUTHENTICATION_FAILED", snippet or "Authentication failed", status=status)
        if status == 429:
            try:
                wait = float(retry_after) if retry_after is not None else None
            except ValueError:
                wait = None
            return ModelClientError(
                "RATE_LIMITED", snippet or "Rate limit exceeded",
                retryable=True, retry_after=wait, status=status,
            )
        if status >= 500:
            return ModelClientError("SERVER_ERROR", snippet or "Server error", retryable=True, status=status)
        return ModelClientError("INVALID_REQUEST", snippet or f"HTTP {status}", status=status)

    @staticmethod
    def _parse_response(data: Dict[str, Any]) -> str:
        """Extract the candidate text from a ``generateContent`` response."""
        candidates = data.get("candidates") or []
        if not candidates:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason")
            if block_reason:
                raise ModelClientError("CONTENT_BLOCKED", f"Prompt blocked: {block_reason}")
            raise ModelClientError("EMPTY_RESPONSE", "Response contained no candidates.")

        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts).strip()
        if not text:
            finish = candidate.get("finishReason")
            if finish in _BLOCKED_FINISH_REASONS:
                raise ModelClientError("CONTENT_BLOCKED", f"Generation stopped: {finish}")
            raise ModelClientError("EMPTY_RESPONSE", "Candidate contained no text.")
        return text

    # ---------------------------------------------------------------------
    # Prompt construction helpers
    # ---------------------------------------------------------------------

    def _construct_system_instruction(self) -> str:
        prompt = get_elevation_prompt(self.config.strategy)
        if not self.config.include_examples:
            return prompt
        return f"{prompt}\n\n{format_examples()}"

    def _construct_elevation_payload(self, text: str) -> GeminiPayload:
        return {
            "systemInstruction": {
                "parts": [{"text": self._construct_system_instruction()}]
            },
            "contents": [{"role": "user", "parts": [{"text": text}]}],
            "generationConfig": {
                "temperature": self.config.temperature,
                "maxOutputTokens": self.config.max_output_tokens,
            },
        }
