"""Review service: composes prompts and hands them to the orchestrator."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from review_relay.backends import BackendRegistry
from review_relay.config import ConfigStore
from review_relay.errors import ConfigNotInitializedError, FileReadError
from review_relay.git_operations import GitOperations, is_safe_path
from review_relay.models import (
    Backend,
    ConfigureAIServiceRequest,
    ConfigureResponse,
    ReviewChangesRequest,
    ReviewCodeRequest,
    ReviewCommitRequest,
    ReviewFilesRequest,
    ReviewResponse,
    ServiceStatusResponse,
)
from review_relay.orchestrator import Orchestrator
from review_relay.prompts import PromptStore

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything built once at startup and shared by reference."""
    config: ConfigStore
    prompts: PromptStore
    registry: BackendRegistry
    orchestrator: Orchestrator


async def create_context(
    project_root: Optional[Path] = None,
    home_dir: Optional[Path] = None,
) -> AppContext:
    """Initialize configuration and prompts and wire the components."""
    config = ConfigStore(project_root=project_root, home_dir=home_dir)
    await config.initialize()
    prompts = PromptStore(project_root=config.project_root, home_dir=config.home_dir)
    await prompts.initialize()
    registry = BackendRegistry(config)
    orchestrator = Orchestrator(config, registry)
    return AppContext(config=config, prompts=prompts, registry=registry, orchestrator=orchestrator)


def _read_files(files: List[str], base_path: Path, char_limit: int) -> List[Dict[str, str]]:
    """Read files relative to base_path, recording per-file errors."""
    results = []
    for file in files:
        if not is_safe_path(file):
            results.append({"path": file, "content": "", "error": "Invalid file path"})
            continue

        file_path = base_path / file
        if not file_path.is_file():
            results.append({"path": file, "content": "", "error": "File does not exist"})
            continue

        try:
            content = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            results.append({"path": file, "content": "", "error": str(e)})
            continue

        if len(content) > char_limit:
            content = content[:char_limit] + "\n\n[... content truncated ...]"
        results.append({"path": file, "content": content, "error": ""})
    return results


def _format_files(file_contents: List[Dict[str, str]]) -> str:
    parts = ["Files under review:", ""]
    for file in file_contents:
        parts.append(f"## File: {file['path']}")
        parts.append("")
        if file["error"]:
            parts.append(f"Error: {file['error']}")
        else:
            parts.append(f"```\n{file['content']}\n```")
        parts.append("")
    return "\n".join(parts)


class ReviewService:
    """Implements the review and configuration operations."""

    def __init__(self, context: AppContext):
        if not context.config.initialized:
            raise ConfigNotInitializedError(
                "ConfigStore is not initialized; await initialize() first"
            )
        self.context = context

    @property
    def config(self) -> ConfigStore:
        return self.context.config

    @property
    def prompts(self) -> PromptStore:
        return self.context.prompts

    def _preferred(self, ai_service: Optional[Backend]) -> Backend:
        return ai_service or self.config.get_ai_service()

    def _repo_path(self, repository_path: Optional[str]) -> Path:
        if repository_path is None:
            return self.config.project_root
        if not is_safe_path(repository_path):
            raise FileReadError(f"Invalid repository path: {repository_path}")
        return Path(repository_path)

    async def _run_review(
        self,
        prompt_key: str,
        content: str,
        ai_service: Optional[Backend],
        custom_prompt: Optional[str],
        summary: str,
    ) -> ReviewResponse:
        prompt = await self.prompts.build_prompt(
            prompt_key, content, custom_prompt, self.config.get_language()
        )
        result = await self.context.orchestrator.invoke(self._preferred(ai_service), prompt)
        return ReviewResponse(
            status="success",
            summary=summary,
            review=result.text,
            ai_service_used=result.used_backend,
        )

    def _failed(self, summary: str, error: Exception, ai_service: Optional[Backend]) -> ReviewResponse:
        logger.error(f"{summary}: {error}")
        return ReviewResponse(
            status="failed",
            summary=summary,
            review=f"Review failed: {error}",
            ai_service_used=self._preferred(ai_service),
        )

    def _empty(self, summary: str, message: str, ai_service: Optional[Backend]) -> ReviewResponse:
        return ReviewResponse(
            status="empty",
            summary=summary,
            review=message,
            ai_service_used=self._preferred(ai_service),
        )

    async def review_code(self, request: ReviewCodeRequest) -> ReviewResponse:
        """Review a code snippet."""
        logger.info(f"Reviewing code snippet ({len(request.code)} characters)")
        content = request.code
        if request.language or request.context:
            header = []
            if request.language:
                header.append(f"Language: {request.language}")
            if request.context:
                header.append(f"Context: {request.context}")
            content = "\n".join(header) + "\n\n" + request.code

        try:
            return await self._run_review(
                "review_code", content, request.ai_service, request.custom_prompt,
                "Code review completed",
            )
        except ConfigNotInitializedError:
            raise
        except Exception as e:
            return self._failed("Code review failed", e, request.ai_service)

    async def review_changes(self, request: ReviewChangesRequest) -> ReviewResponse:
        """Review uncommitted git changes."""
        try:
            repo_path = self._repo_path(request.repository_path)
            git_ops = await asyncio.to_thread(GitOperations, repo_path)
            changes = await asyncio.to_thread(
                git_ops.get_changes, request.include_staged, request.include_unstaged
            )
            if not changes.strip():
                return self._empty(
                    "No changes found", "There are no code changes to review.", request.ai_service
                )

            status = await asyncio.to_thread(git_ops.get_status)
            listing = "\n".join(
                f"{group}: {', '.join(files)}" for group, files in status.items() if files
            )
            content = f"Changed files:\n{listing}\n\n```diff\n{changes}\n```"

            return await self._run_review(
                "review_changes", content, request.ai_service, request.custom_prompt,
                "Change review completed",
            )
        except ConfigNotInitializedError:
            raise
        except Exception as e:
            return self._failed("Change review failed", e, request.ai_service)

    async def review_commit(self, request: ReviewCommitRequest) -> ReviewResponse:
        """Review one commit (HEAD by default)."""
        try:
            repo_path = self._repo_path(request.repository_path)
            git_ops = await asyncio.to_thread(GitOperations, repo_path)
            commit_info = await asyncio.to_thread(git_ops.get_commit_info, request.commit_hash)
            if not commit_info.strip():
                return self._empty(
                    "No commit found", "Could not read the requested commit.", request.ai_service
                )
            return await self._run_review(
                "review_commit", commit_info, request.ai_service, request.custom_prompt,
                "Commit review completed",
            )
        except ConfigNotInitializedError:
            raise
        except Exception as e:
            return self._failed("Commit review failed", e, request.ai_service)

    async def review_files(self, request: ReviewFilesRequest) -> ReviewResponse:
        """Review a set of files read from disk."""
        try:
            base_path = self._repo_path(request.repository_path)
            file_contents = await asyncio.to_thread(
                _read_files, request.files, base_path, self.config.get_char_limit()
            )
            if not any(file["content"] for file in file_contents):
                return self._empty(
                    "No readable files",
                    "None of the requested files could be read.\n\n" + _format_files(file_contents),
                    request.ai_service,
                )
            return await self._run_review(
                "review_files", _format_files(file_contents), request.ai_service,
                request.custom_prompt, "File review completed",
            )
        except ConfigNotInitializedError:
            raise
        except Exception as e:
            return self._failed("File review failed", e, request.ai_service)

    async def configure_ai_service(self, request: ConfigureAIServiceRequest) -> ConfigureResponse:
        """Persist settings for a backend and reload the configuration."""
        updates: Dict[str, str] = {"AI_SERVICE": request.service.value}
        if request.api_key:
            updates[self.config.get_api_key_name(request.service)] = request.api_key
        if request.language:
            updates["AI_LANGUAGE"] = request.language
        if request.timeout:
            updates["AI_TIMEOUT"] = str(request.timeout)
        if request.max_retries:
            updates["AI_MAX_RETRIES"] = str(request.max_retries)

        try:
            config_file = await self.config.persist(request.scope, updates)
            await self.config.reload()
        except OSError as e:
            logger.error(f"Failed to configure {request.service.value}: {e}")
            return ConfigureResponse(success=False, message=f"Configuration failed: {e}")

        return ConfigureResponse(
            success=True,
            message=f"AI service {request.service.value} configured",
            config_path=str(config_file),
        )

    async def get_ai_service_status(self, probe: bool = False) -> ServiceStatusResponse:
        """Report configuration and per-backend availability.

        Args:
            probe: Also send a tiny prompt to each configured backend
        """
        services = self.context.registry.status()
        if probe:
            for status in services:
                if not status.configured:
                    status.available = False
                    continue
                error = await self.context.orchestrator.probe(status.service)
                status.available = error is None
                status.error_message = error

        return ServiceStatusResponse(
            current_service=self.config.get_ai_service(),
            services=services,
            auto_switch_enabled=self.config.is_auto_switch_enabled(),
            language=self.config.get_language(),
            timeout=self.config.get_timeout(),
            max_retries=self.config.get_max_retries(),
            global_config_path=str(self.config.get_config_path("global").file),
            project_config_path=str(self.config.get_config_path("project").file),
        )
