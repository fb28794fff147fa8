"""Layered configuration store.

Values are resolved once from four sources, highest priority last:

1. built-in defaults
2. the machine-wide settings file (~/.review-relay/env)
3. the project settings file (./.env)
4. process environment variables

Settings files use the .env format: KEY=VALUE per line, '#' comments,
optional quotes around the value. Parsing is done by python-dotenv.
"""

import asyncio
import io
import logging
import os
from pathlib import Path
from typing import Dict, Mapping, NamedTuple, Optional

from dotenv import dotenv_values

from review_relay.errors import ConfigNotInitializedError
from review_relay.models import BACKEND_API_KEYS, BACKEND_MODEL_KEYS, Backend

logger = logging.getLogger(__name__)

GLOBAL_DIR_NAME = ".review-relay"
GLOBAL_FILE_NAME = "env"
PROJECT_FILE_NAME = ".env"

DEFAULT_TIMEOUT = 30
DEFAULT_MAX_RETRIES = 3
DEFAULT_CHAR_LIMIT = 5000
DEFAULT_LANGUAGE = "en-US"

DEFAULTS: Dict[str, str] = {
    "AI_SERVICE": Backend.first().value,
    "AI_AUTO_SWITCH": "true",
    "AI_TIMEOUT": str(DEFAULT_TIMEOUT),
    "AI_MAX_RETRIES": str(DEFAULT_MAX_RETRIES),
    "AI_LANGUAGE": DEFAULT_LANGUAGE,
    "GEMINI_MODEL": "gemini-2.5-flash",
    "CLAUDE_MODEL": "claude-sonnet-4-20250514",
    "OPENROUTER_MODEL": "openai/gpt-4o-mini",
    "OPENROUTER_API_URL": "https://openrouter.ai/api/v1/chat/completions",
    "FILE_CONTENT_CHAR_LIMIT": str(DEFAULT_CHAR_LIMIT),
    "DEBUG": "false",
}

# Keys that environment variables may override
ENV_KEYS = tuple(DEFAULTS) + tuple(BACKEND_API_KEYS.values())

SENSITIVE_MARKERS = ("API_KEY", "TOKEN")


class ConfigPath(NamedTuple):
    dir: Path
    file: Path


class _SkipUnparsedLineWarnings(logging.Filter):
    """Drop python-dotenv's per-line parse warnings; bad lines are skipped quietly."""

    def filter(self, record: logging.LogRecord) -> bool:
        return not record.getMessage().startswith("python-dotenv could not parse")


logging.getLogger("dotenv.main").addFilter(_SkipUnparsedLineWarnings())


def parse_env_content(content: str) -> Dict[str, str]:
    """Parse settings file text into a dict.

    Lines without a value (no '=') are dropped; lines python-dotenv cannot
    parse are skipped silently. As in any .env file, a ' #' after an unquoted
    value starts a comment; quote values that contain one.
    """
    values = dotenv_values(stream=io.StringIO(content), interpolate=False)
    return {key: value for key, value in values.items() if value is not None}


def _format_value(value: str) -> str:
    if value and not any(ch.isspace() or ch in "#'\"" for ch in value):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class ConfigStore:
    """Resolved configuration with typed accessors.

    Construct once at startup, await initialize(), then pass the instance to
    whatever needs it.
    """

    def __init__(
        self,
        project_root: Optional[Path] = None,
        home_dir: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """Initialize the store without loading anything.

        Args:
            project_root: Directory holding the project .env (defaults to cwd)
            home_dir: Home directory for the global settings (defaults to ~)
            environ: Environment mapping (defaults to os.environ)
        """
        self.project_root = Path(project_root) if project_root else Path.cwd()
        self.home_dir = Path(home_dir) if home_dir else Path.home()
        self._environ = environ if environ is not None else os.environ
        self._config: Dict[str, str] = {}
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self, force: bool = False) -> None:
        """Merge defaults, settings files and environment.

        A no-op when already initialized unless force is set.
        """
        if self._initialized and not force:
            return

        config = dict(DEFAULTS)

        for scope in ("global", "project"):
            path = self.get_config_path(scope).file
            values = await self._load_file(path)
            if values is None:
                logger.debug(f"No {scope} settings file at {path}, skipping")
                continue
            config.update(values)
            logger.debug(f"Loaded {len(values)} {scope} settings from {path}")

        for key in ENV_KEYS:
            value = self._environ.get(key)
            if value:
                config[key] = value

        # Swap in one assignment so readers never see a half-built map
        self._config = config
        self._initialized = True
        logger.info(f"Configuration initialized: {self.safe_config()}")

    async def reload(self) -> None:
        await self.initialize(force=True)

    async def _load_file(self, path: Path) -> Optional[Dict[str, str]]:
        try:
            content = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read settings file {path}: {e}")
            return None
        return parse_env_content(content)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Return the resolved value for key, or default.

        Raises:
            ConfigNotInitializedError: If initialize() has not completed
        """
        if not self._initialized:
            raise ConfigNotInitializedError(
                "ConfigStore is not initialized; await initialize() first"
            )
        return self._config.get(key, default)

    def _get_positive_int(self, key: str, default: int) -> int:
        raw = self.get(key, str(default))
        try:
            value = int(str(raw).strip())
        except (TypeError, ValueError):
            logger.warning(f"Invalid {key}={raw!r}, using {default}")
            return default
        if value <= 0:
            logger.warning(f"Invalid {key}={raw!r}, using {default}")
            return default
        return value

    def get_timeout(self) -> int:
        """Per-attempt backend timeout in seconds."""
        return self._get_positive_int("AI_TIMEOUT", DEFAULT_TIMEOUT)

    def get_max_retries(self) -> int:
        """Attempts per backend before giving up on it."""
        return self._get_positive_int("AI_MAX_RETRIES", DEFAULT_MAX_RETRIES)

    def get_char_limit(self) -> int:
        return self._get_positive_int("FILE_CONTENT_CHAR_LIMIT", DEFAULT_CHAR_LIMIT)

    def is_auto_switch_enabled(self) -> bool:
        raw = str(self.get("AI_AUTO_SWITCH", "true")).strip().lower()
        if raw == "true":
            return True
        if raw == "false":
            return False
        logger.warning(f"Invalid AI_AUTO_SWITCH={raw!r}, using true")
        return True

    def is_debug(self) -> bool:
        return str(self.get("DEBUG", "false")).strip().lower() == "true"

    def get_ai_service(self) -> Backend:
        """Preferred backend; unknown names fall back to the first backend."""
        return Backend.parse(self.get("AI_SERVICE")) or Backend.first()

    def get_language(self) -> str:
        return self.get("AI_LANGUAGE") or DEFAULT_LANGUAGE

    @staticmethod
    def get_api_key_name(backend: Backend) -> str:
        return BACKEND_API_KEYS[Backend(backend)]

    def get_api_key(self, backend: Backend) -> str:
        return self.get(self.get_api_key_name(backend)) or ""

    def get_model(self, backend: Backend) -> str:
        key = BACKEND_MODEL_KEYS[Backend(backend)]
        return self.get(key) or DEFAULTS[key]

    def get_config_path(self, scope: str) -> ConfigPath:
        """Map a scope ("project" or "global") to its settings dir and file."""
        if scope == "global":
            config_dir = self.home_dir / GLOBAL_DIR_NAME
            return ConfigPath(config_dir, config_dir / GLOBAL_FILE_NAME)
        if scope == "project":
            return ConfigPath(self.project_root, self.project_root / PROJECT_FILE_NAME)
        raise ValueError(f"Unknown config scope: {scope}")

    def safe_config(self) -> Dict[str, str]:
        """Resolved values with credentials masked."""
        safe = {}
        for key, value in self._config.items():
            if any(marker in key for marker in SENSITIVE_MARKERS):
                safe[key] = "***" if value else ""
            else:
                safe[key] = value
        return safe

    async def persist(self, scope: str, updates: Mapping[str, str]) -> Path:
        """Write updates into the scope's settings file.

        Existing entries are kept unless overwritten. The live configuration
        is unchanged until the next reload().

        Returns:
            Path of the written settings file
        """
        config_dir, config_file = self.get_config_path(scope)

        def _write() -> None:
            config_dir.mkdir(parents=True, exist_ok=True)
            existing: Dict[str, str] = {}
            if config_file.exists():
                try:
                    existing = parse_env_content(config_file.read_text(encoding="utf-8"))
                except (OSError, UnicodeDecodeError) as e:
                    logger.warning(f"Could not read {config_file}, rewriting it: {e}")
            existing.update({key: str(value) for key, value in updates.items()})
            lines = [f"{key}={_format_value(value)}" for key, value in existing.items()]
            config_file.write_text("\n".join(lines) + "\n", encoding="utf-8")

        await asyncio.to_thread(_write)
        logger.info(f"Wrote {sorted(updates)} to {config_file}")
        return config_file
