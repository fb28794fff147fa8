"""Prompt templates with project / global / built-in lookup."""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional

from review_relay.config import GLOBAL_DIR_NAME
from review_relay.errors import ConfigNotInitializedError, PromptResolutionError

logger = logging.getLogger(__name__)

PROMPTS_DIR_NAME = "prompts"
PROMPT_FILE_NAME = "code-review-prompt.md"

# Every review tool shares one template family; what differs is the content.
PROMPT_FILE_MAPPING: Dict[str, str] = {
    "base": PROMPT_FILE_NAME,
    "review_code": PROMPT_FILE_NAME,
    "review_changes": PROMPT_FILE_NAME,
    "review_commit": PROMPT_FILE_NAME,
    "review_files": PROMPT_FILE_NAME,
    "code_review": PROMPT_FILE_NAME,
    "git_changes": PROMPT_FILE_NAME,
    "git_commit": PROMPT_FILE_NAME,
    "file_review": PROMPT_FILE_NAME,
}

DEFAULT_PROMPTS: Dict[str, str] = {
    "base": "You are an expert code reviewer. Analyze the provided material carefully and precisely.",
    "code_review": """# Code Review

As an expert code reviewer, analyze the provided code in depth:

## Review dimensions
1. **Correctness** - is the logic right, are there bugs
2. **Code quality** - is the structure clear, is naming consistent
3. **Performance** - are there bottlenecks
4. **Security** - are there vulnerabilities
5. **Maintainability** - readability and extensibility
6. **Conventions** - does the code follow the language's conventions

Give concrete improvement suggestions.""",
    "git_changes": """# Change Review

Review the changes in this git repository, focusing on:

## Review focus
1. **Completeness** - were all related files updated
2. **Consistency** - do the changes agree with each other across files
3. **Impact** - which other modules are affected
4. **Quality** - implementation quality and security
5. **Tests** - do the changes need new or updated tests
6. **Documentation** - does documentation need updating

Give an overall assessment and suggestions.""",
    "git_commit": """# Commit Review

As a senior reviewer, review this git commit thoroughly:

## Review dimensions
1. **Goal** - does the commit fully achieve what it sets out to do
2. **Functionality** - is the implementation correct and complete
3. **Code quality** - structure and conventions
4. **Maintainability** - readability and ease of change
5. **Extensibility** - does the design leave room to grow

Give a detailed report with suggestions.""",
    "file_review": """# Multi-file Review

Assess the quality of these files as a whole:

## Review dimensions
1. **Architecture** - consistent design across files
2. **Dependencies** - are the relationships between files reasonable
3. **Reuse** - is code duplicated
4. **Naming** - are naming conventions uniform
5. **Error handling** - is the error handling strategy consistent
6. **Performance** - do the files work together efficiently

Give an architectural assessment with suggestions.""",
    "review_code": "As an expert code reviewer, analyze the provided code snippet in depth.",
    "review_changes": "Review the changes in this git repository.",
    "review_commit": "Analyze the specified git commit in detail.",
    "review_files": "Assess the overall code quality of these files.",
}

LANGUAGE_NAMES: Dict[str, str] = {
    "en-US": "English",
    "zh-CN": "Simplified Chinese",
    "zh-TW": "Traditional Chinese",
    "ja-JP": "Japanese",
    "ko-KR": "Korean",
    "de-DE": "German",
    "fr-FR": "French",
    "es-ES": "Spanish",
}


def language_instruction(language: Optional[str]) -> str:
    """Sentence asking the backend to answer in the given language."""
    code = language or "en-US"
    return f"Please respond in {LANGUAGE_NAMES.get(code, code)}."


class PromptStore:
    """Resolves prompt text by logical key and caches it.

    Lookup order for a key: <project>/prompts/<file>, then
    ~/.review-relay/prompts/<file>, then the built-in text. The first source
    that exists is used as-is.
    """

    def __init__(self, project_root: Optional[Path] = None, home_dir: Optional[Path] = None):
        self.project_root = Path(project_root) if project_root else Path.cwd()
        self.home_dir = Path(home_dir) if home_dir else Path.home()
        self._prompts: Dict[str, str] = {}
        self._initialized = False

    @property
    def project_prompts_dir(self) -> Path:
        return self.project_root / PROMPTS_DIR_NAME

    @property
    def global_prompts_dir(self) -> Path:
        return self.home_dir / GLOBAL_DIR_NAME / PROMPTS_DIR_NAME

    async def initialize(self) -> None:
        """Resolve every known key once."""
        if self._initialized:
            return
        for key in PROMPT_FILE_MAPPING:
            await self.load_prompt(key)
        self._initialized = True
        logger.info(f"Prompt store initialized with {len(self._prompts)} prompts")

    async def load_prompt(self, key: str) -> str:
        """Return the prompt for key, resolving and caching it on first use.

        Raises:
            PromptResolutionError: If no file and no built-in text exist for key
        """
        if key in self._prompts:
            return self._prompts[key]

        for resolver in self._resolvers(key):
            content = await resolver()
            if content is not None:
                self._prompts[key] = content
                return content

        raise PromptResolutionError(key)

    def _resolvers(self, key: str) -> List[Callable[[], Awaitable[Optional[str]]]]:
        resolvers = []
        filename = PROMPT_FILE_MAPPING.get(key)
        if filename:
            for directory in (self.project_prompts_dir, self.global_prompts_dir):
                resolvers.append(lambda path=directory / filename: self._load_file(key, path))
        resolvers.append(lambda: self._load_default(key))
        return resolvers

    async def _load_file(self, key: str, path: Path) -> Optional[str]:
        try:
            content = await self._read_file(path)
        except (OSError, UnicodeDecodeError):
            return None
        logger.debug(f"Loaded prompt '{key}' from {path}")
        return content.strip()

    async def _read_file(self, path: Path) -> str:
        return await asyncio.to_thread(path.read_text, encoding="utf-8")

    async def _load_default(self, key: str) -> Optional[str]:
        content = DEFAULT_PROMPTS.get(key)
        if content is None:
            return None
        if key in PROMPT_FILE_MAPPING:
            logger.debug(f"No prompt file for '{key}', using built-in prompt")
        return content.strip()

    def get_prompt(self, key: str, variables: Optional[Dict[str, str]] = None) -> str:
        """Return a cached prompt with {name} placeholders filled in.

        Unknown keys fall back to the base prompt.
        """
        prompt = self._prompts.get(key)
        if prompt is None:
            if not self._initialized:
                raise ConfigNotInitializedError(
                    "PromptStore is not initialized; await initialize() first"
                )
            logger.warning(f"Prompt '{key}' not loaded, using base prompt")
            prompt = self._prompts.get("base", DEFAULT_PROMPTS["base"])

        for name, value in (variables or {}).items():
            prompt = prompt.replace(f"{{{name}}}", value)
        return prompt

    async def build_prompt(
        self,
        key: str,
        content: str,
        custom_prompt: Optional[str] = None,
        language: Optional[str] = None,
    ) -> str:
        """Compose the full prompt sent to a backend.

        A custom prompt replaces the templates entirely; its first {content}
        placeholder receives the content (appended when there is none).
        Otherwise the order is: base prompt, key prompt, language
        instruction, content.
        """
        if custom_prompt:
            if "{content}" in custom_prompt:
                return custom_prompt.replace("{content}", content, 1)
            return f"{custom_prompt}\n\n{content}"

        base_prompt = await self.load_prompt("base")
        tool_prompt = await self.load_prompt(key)

        return (
            f"{base_prompt}\n\n"
            f"{tool_prompt}\n\n"
            f"{language_instruction(language)}\n\n"
            f"Content:\n{content}"
        )

    def set_prompt(self, key: str, content: str) -> None:
        """Put content in the cache for key, bypassing file lookup."""
        self._prompts[key] = content
        logger.debug(f"Prompt '{key}' set directly")

    def clear_cache(self) -> None:
        self._prompts.clear()
        self._initialized = False

    def has_prompt(self, key: str) -> bool:
        return key in self._prompts

    def available_prompts(self) -> List[str]:
        return list(self._prompts)

    def get_prompt_paths(self, filename: str = PROMPT_FILE_NAME) -> List[Path]:
        """Candidate files for filename, in lookup order."""
        return [self.project_prompts_dir / filename, self.global_prompts_dir / filename]
