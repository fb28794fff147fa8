"""Exception types raised across the review relay."""

from typing import Dict, List, Optional


class ReviewRelayError(Exception):
    """Base class for all review relay errors."""


class ConfigNotInitializedError(ReviewRelayError, RuntimeError):
    """Raised when configuration or prompts are read before initialize()."""


class PromptResolutionError(ReviewRelayError):
    """Raised when a prompt key has no file and no built-in text."""

    def __init__(self, key: str):
        super().__init__(f"No prompt available for key '{key}'")
        self.key = key


class BackendError(ReviewRelayError):
    """A single backend invocation failed."""

    def __init__(self, backend: str, message: str):
        super().__init__(message)
        self.backend = backend


class BackendTimeoutError(BackendError):
    """A backend invocation did not finish within the configured timeout."""

    def __init__(self, backend: str, timeout: float):
        super().__init__(backend, f"{backend} timed out after {timeout:g}s")
        self.timeout = timeout


class AllBackendsFailedError(ReviewRelayError):
    """Every eligible backend was exhausted.

    Args:
        failures: Last error per attempted backend, in priority order
        skipped: Backends skipped because they have no credential
        auto_switch: Whether failover was enabled for the call
    """

    def __init__(
        self,
        failures: Dict[str, str],
        skipped: Optional[List[str]] = None,
        auto_switch: bool = True,
    ):
        self.failures = dict(failures)
        self.skipped = list(skipped or [])
        self.auto_switch = auto_switch
        super().__init__(self._format())

    def _format(self) -> str:
        lines = ["All AI services failed."]
        for backend, reason in self.failures.items():
            lines.append(f"  - {backend}: {reason}")
        for backend in self.skipped:
            lines.append(f"  - {backend}: skipped (not configured)")
        if not self.failures:
            lines.append("  No configured AI service was available to try.")
        if not self.auto_switch:
            lines.append("Automatic failover is disabled (AI_AUTO_SWITCH=false).")
        lines.append(
            "Check the API keys (GEMINI_API_KEY, CLAUDE_API_KEY, OPENROUTER_API_KEY) "
            "and the AI_AUTO_SWITCH setting."
        )
        return "\n".join(lines)


class GitError(ReviewRelayError):
    """A git command failed or its input was rejected."""


class FileReadError(ReviewRelayError):
    """A file requested for review could not be used."""
