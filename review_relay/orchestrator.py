"""Resilient multi-backend invocation.

A call tries the preferred backend up to AI_MAX_RETRIES times with
exponential backoff between attempts, then (when AI_AUTO_SWITCH is on) moves
to the other backends, configured ones first. Attempts are strictly
sequential. The first success wins; if everything fails the caller gets one
AllBackendsFailedError listing each attempted backend's last error.

Each attempt races a timer. When the timer wins the attempt counts as failed
but the underlying request is not cancelled: it keeps running in the
background and its outcome is ignored.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Set, Union

from review_relay.backends import BackendRegistry
from review_relay.config import ConfigStore
from review_relay.errors import AllBackendsFailedError, BackendError, BackendTimeoutError
from review_relay.models import Backend
from review_relay.retry import backoff_delay, retry_with_backoff

logger = logging.getLogger(__name__)

PROBE_PROMPT = "Reply with the single word: ok"


@dataclass
class CallAttempt:
    """One failed attempt against a backend."""
    backend: Backend
    attempt: int
    error: str


@dataclass
class InvocationResult:
    text: str
    used_backend: Backend
    # Failures seen before the successful attempt, for logging
    attempts: List[CallAttempt] = field(default_factory=list)


class Orchestrator:
    """Drives retries and failover across the backend registry."""

    def __init__(
        self,
        config: ConfigStore,
        registry: BackendRegistry,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ):
        self.config = config
        self.registry = registry
        self._sleep = sleep
        self._orphans: Set[asyncio.Future] = set()

    def backend_order(self, preferred: Union[Backend, str, None], auto_switch: bool) -> List[Backend]:
        """Priority order for a call.

        The preferred backend (normalized to the first known backend when
        unknown) comes first. With auto-switch the remaining backends follow,
        configured ones ahead of unconfigured ones.
        """
        primary = Backend.parse(preferred.value if isinstance(preferred, Backend) else preferred)
        if primary is None:
            logger.warning(f"Unknown AI service {preferred!r}, using {Backend.first().value}")
            primary = Backend.first()

        if not auto_switch:
            return [primary]

        others = [backend for backend in Backend if backend != primary]
        others.sort(key=lambda backend: not self.registry.is_configured(backend))
        return [primary] + others

    async def invoke(self, preferred: Union[Backend, str, None], prompt: str) -> InvocationResult:
        """Generate text for prompt, starting with the preferred backend.

        Returns:
            InvocationResult naming the backend that produced the text

        Raises:
            AllBackendsFailedError: If no eligible backend succeeded
        """
        max_retries = self.config.get_max_retries()
        timeout = self.config.get_timeout()
        auto_switch = self.config.is_auto_switch_enabled()

        attempts: List[CallAttempt] = []
        failures: Dict[str, str] = {}
        skipped: List[str] = []

        order = self.backend_order(preferred, auto_switch)
        for backend in order:
            if not self.registry.is_configured(backend):
                logger.debug(f"Skipping {backend.value}: not configured")
                skipped.append(backend.value)
                continue

            def record(attempt: int, error: BaseException, backend: Backend = backend) -> None:
                attempts.append(CallAttempt(backend, attempt, str(error)))
                logger.warning(f"{backend.value} attempt {attempt}/{max_retries} failed: {error}")

            try:
                text = await retry_with_backoff(
                    lambda backend=backend: self.call_with_timeout(backend, prompt, timeout),
                    max_attempts=max_retries,
                    backoff=backoff_delay,
                    is_retryable=lambda exc: isinstance(exc, BackendError),
                    on_failure=record,
                    sleep=self._sleep,
                    operation_name=backend.value,
                )
            except BackendError as e:
                failures[backend.value] = str(e)
                if auto_switch:
                    logger.warning(f"{backend.value} exhausted, trying the next AI service")
                continue

            if backend != order[0] or attempts:
                logger.info(f"Served by {backend.value} after {len(attempts)} failed attempts")
            return InvocationResult(text=text, used_backend=backend, attempts=attempts)

        error = AllBackendsFailedError(failures, skipped, auto_switch)
        logger.error(str(error))
        raise error

    async def call_with_timeout(self, backend: Backend, prompt: str, timeout: float) -> str:
        """One attempt against backend, bounded by timeout seconds.

        Raises:
            BackendTimeoutError: If the timer fires first
            BackendError: If the backend fails
        """
        task = asyncio.ensure_future(self.registry.invoke(backend, prompt))
        done, _ = await asyncio.wait({task}, timeout=timeout)
        if task in done:
            return task.result()

        # Not cancelled: keep a reference until it settles and drop its outcome
        self._orphans.add(task)
        task.add_done_callback(self._discard)
        raise BackendTimeoutError(Backend(backend).value, timeout)

    def _discard(self, task: asyncio.Future) -> None:
        self._orphans.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug(f"Timed-out call finished later with: {error}")

    async def probe(self, backend: Backend) -> Optional[str]:
        """Send a tiny prompt to backend once.

        Returns:
            None when the backend answered, otherwise the error message
        """
        if not self.registry.is_configured(backend):
            return f"{Backend(backend).value} is not configured"
        try:
            await self.call_with_timeout(backend, PROBE_PROMPT, self.config.get_timeout())
        except BackendError as e:
            return str(e)
        return None
