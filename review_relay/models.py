"""Shared types: the backend set and request/response models."""

from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class Backend(str, Enum):
    """Known AI backends, in default priority order."""

    GEMINI = "gemini"
    CLAUDE = "claude"
    OPENROUTER = "openrouter"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Backend"]:
        """Return the backend named by value, or None if unknown."""
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    @classmethod
    def first(cls) -> "Backend":
        return next(iter(cls))


# Backend -> settings key holding its credential
BACKEND_API_KEYS = {
    Backend.GEMINI: "GEMINI_API_KEY",
    Backend.CLAUDE: "CLAUDE_API_KEY",
    Backend.OPENROUTER: "OPENROUTER_API_KEY",
}

# Backend -> settings key holding its model name
BACKEND_MODEL_KEYS = {
    Backend.GEMINI: "GEMINI_MODEL",
    Backend.CLAUDE: "CLAUDE_MODEL",
    Backend.OPENROUTER: "OPENROUTER_MODEL",
}

ReviewStatus = Literal["success", "empty", "failed"]
ConfigScope = Literal["project", "global"]


def _now() -> str:
    return datetime.now().isoformat()


class ReviewCodeRequest(BaseModel):
    """Request model for the review_code tool."""
    code: str = Field(description="Source code to review")
    language: Optional[str] = Field(None, description="Programming language of the code, used as a hint")
    context: Optional[str] = Field(None, description="Extra context about what the code is for")
    ai_service: Optional[Backend] = Field(None, description="Preferred AI service for this review")
    custom_prompt: Optional[str] = Field(
        None, description="Prompt that replaces the built-in one; {content} marks where the code goes"
    )


class ReviewChangesRequest(BaseModel):
    """Request model for the review_changes tool."""
    repository_path: Optional[str] = Field(None, description="Path to the git repository (defaults to cwd)")
    include_staged: bool = Field(True, description="Include staged changes (git diff --cached)")
    include_unstaged: bool = Field(True, description="Include unstaged working tree changes")
    ai_service: Optional[Backend] = Field(None, description="Preferred AI service for this review")
    custom_prompt: Optional[str] = Field(
        None, description="Prompt that replaces the built-in one; {content} marks where the diff goes"
    )


class ReviewCommitRequest(BaseModel):
    """Request model for the review_commit tool."""
    commit_hash: Optional[str] = Field(None, description="Commit hash to review (defaults to HEAD)")
    repository_path: Optional[str] = Field(None, description="Path to the git repository (defaults to cwd)")
    ai_service: Optional[Backend] = Field(None, description="Preferred AI service for this review")
    custom_prompt: Optional[str] = Field(
        None, description="Prompt that replaces the built-in one; {content} marks where the commit goes"
    )


class ReviewFilesRequest(BaseModel):
    """Request model for the review_files tool."""
    files: List[str] = Field(description="File paths to review, relative to the repository")
    repository_path: Optional[str] = Field(None, description="Path to the git repository (defaults to cwd)")
    ai_service: Optional[Backend] = Field(None, description="Preferred AI service for this review")
    custom_prompt: Optional[str] = Field(
        None, description="Prompt that replaces the built-in one; {content} marks where the files go"
    )


class ConfigureAIServiceRequest(BaseModel):
    """Request model for the configure_ai_service tool."""
    service: Backend = Field(description="AI service to configure")
    scope: ConfigScope = Field("project", description="Write to the project .env or the global settings file")
    api_key: Optional[str] = Field(None, description="API key for the service")
    language: Optional[str] = Field(None, description="Response language code, e.g. en-US or zh-CN")
    timeout: Optional[int] = Field(None, gt=0, description="Per-attempt timeout in seconds")
    max_retries: Optional[int] = Field(None, gt=0, description="Attempts per service before failing over")


class GetAIServiceStatusRequest(BaseModel):
    """Request model for the get_ai_service_status tool."""
    probe: bool = Field(False, description="Send a short test prompt to every configured service")


class ReviewResponse(BaseModel):
    """Result of any review operation."""
    status: ReviewStatus
    summary: str
    review: str
    ai_service_used: Backend
    timestamp: str = Field(default_factory=_now)


class ConfigureResponse(BaseModel):
    success: bool
    message: str
    config_path: str = ""
    restart_required: bool = False


class BackendStatus(BaseModel):
    service: Backend
    configured: bool
    model: str
    available: Optional[bool] = None
    error_message: Optional[str] = None


class ServiceStatusResponse(BaseModel):
    current_service: Backend
    services: List[BackendStatus]
    auto_switch_enabled: bool
    language: str
    timeout: int
    max_retries: int
    global_config_path: str
    project_config_path: str
