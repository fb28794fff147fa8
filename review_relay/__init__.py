"""review-relay - AI code review with retries and automatic failover across AI services."""

__version__ = "0.1.0"
__author__ = "review-relay Contributors"
__email__ = ""

from review_relay.backends import BackendRegistry
from review_relay.config import ConfigStore
from review_relay.models import Backend
from review_relay.orchestrator import InvocationResult, Orchestrator
from review_relay.prompts import PromptStore

__all__ = [
    "Backend",
    "BackendRegistry",
    "ConfigStore",
    "InvocationResult",
    "Orchestrator",
    "PromptStore",
]
