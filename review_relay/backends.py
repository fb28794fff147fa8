"""AI backend registry.

Each backend in the closed Backend set gets one async invoker taking
(api_key, model, prompt, config). The registry looks credentials up from the
config store on every call so rewritten keys take effect after a reload.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

import aiohttp
import anthropic
from google import genai
from google.genai import errors as genai_errors

from review_relay.config import ConfigStore
from review_relay.errors import BackendError
from review_relay.models import Backend, BackendStatus

logger = logging.getLogger(__name__)

CLAUDE_MAX_TOKENS = 4000

Invoker = Callable[[str, str, str, ConfigStore], Awaitable[str]]

# Failures reported by a service or its transport; anything else is a bug
SERVICE_ERRORS = (
    aiohttp.ClientError,
    anthropic.APIError,
    genai_errors.APIError,
    asyncio.TimeoutError,
)


async def call_gemini(api_key: str, model: str, prompt: str, config: ConfigStore) -> str:
    """Generate text with the Gemini API."""
    client = genai.Client(api_key=api_key)
    try:
        response = await client.aio.models.generate_content(model=model, contents=prompt)
    finally:
        await client.aio.aclose()

    text = response.text
    if not text:
        raise BackendError(Backend.GEMINI.value, "Gemini returned an empty response")
    return text


async def call_claude(api_key: str, model: str, prompt: str, config: ConfigStore) -> str:
    """Generate text with the Anthropic Messages API."""
    client = anthropic.AsyncAnthropic(api_key=api_key)
    try:
        response = await client.messages.create(
            model=model,
            max_tokens=CLAUDE_MAX_TOKENS,
            messages=[{"role": "user", "content": prompt}],
        )
    finally:
        await client.close()

    if not response.content or response.content[0].type != "text":
        raise BackendError(Backend.CLAUDE.value, "Claude returned a non-text response")
    return response.content[0].text


async def call_openrouter(api_key: str, model: str, prompt: str, config: ConfigStore) -> str:
    """Generate text with an OpenAI-compatible chat completions endpoint."""
    url = config.get("OPENROUTER_API_URL")
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
    payload = {
        "model": model,
        "messages": [{"role": "user", "content": prompt}],
    }

    async with aiohttp.ClientSession() as session:
        async with session.post(url, headers=headers, json=payload) as resp:
            if resp.status != 200:
                error_text = await resp.text()
                raise BackendError(
                    Backend.OPENROUTER.value,
                    f"OpenRouter returned {resp.status}: {error_text[:200]}",
                )
            data = await resp.json()

    try:
        text = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        raise BackendError(Backend.OPENROUTER.value, "OpenRouter returned an unexpected payload")
    if not text:
        raise BackendError(Backend.OPENROUTER.value, "OpenRouter returned an empty response")
    return text


DEFAULT_INVOKERS: Dict[Backend, Invoker] = {
    Backend.GEMINI: call_gemini,
    Backend.CLAUDE: call_claude,
    Backend.OPENROUTER: call_openrouter,
}


class BackendRegistry:
    """Uniform access to the known backends."""

    def __init__(self, config: ConfigStore, invokers: Optional[Dict[Backend, Invoker]] = None):
        """Initialize the registry.

        Args:
            config: Initialized configuration store (credentials, models)
            invokers: Replacement invokers per backend, mainly for tests
        """
        self.config = config
        self._invokers = dict(DEFAULT_INVOKERS)
        if invokers:
            self._invokers.update(invokers)

    @property
    def backends(self) -> List[Backend]:
        return list(Backend)

    def is_configured(self, backend: Backend) -> bool:
        """A backend is usable when its credential is present."""
        return bool(self.config.get_api_key(backend))

    def configured_backends(self) -> List[Backend]:
        return [backend for backend in Backend if self.is_configured(backend)]

    async def invoke(self, backend: Backend, prompt: str) -> str:
        """Send prompt to backend and return the generated text.

        Raises:
            BackendError: On a missing credential or a service/transport failure
        """
        backend = Backend(backend)
        api_key = self.config.get_api_key(backend)
        if not api_key:
            raise BackendError(backend.value, f"{backend.value} is not configured")

        model = self.config.get_model(backend)
        logger.debug(f"Calling {backend.value} ({model}) with {len(prompt)} characters")
        try:
            return await self._invokers[backend](api_key, model, prompt, self.config)
        except SERVICE_ERRORS as e:
            raise BackendError(backend.value, f"{backend.value} API call failed: {e}") from e

    def status(self) -> List[BackendStatus]:
        return [
            BackendStatus(
                service=backend,
                configured=self.is_configured(backend),
                model=self.config.get_model(backend),
            )
            for backend in Backend
        ]
