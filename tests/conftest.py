"""Pytest configuration and shared fixtures."""

import asyncio
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator, List, Optional, Union

import pytest
from git import Repo

from review_relay.backends import BackendRegistry
from review_relay.config import ENV_KEYS, ConfigStore
from review_relay.errors import BackendError
from review_relay.models import Backend
from review_relay.orchestrator import Orchestrator
from review_relay.prompts import PromptStore
from review_relay.service import AppContext


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep real credentials and settings out of every test."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def temp_git_repo() -> Generator[Path, None, None]:
    """Create a temporary git repository for testing.

    Yields:
        Path to temporary repository
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        repo_path = Path(tmpdir)

        repo = Repo.init(repo_path)
        with repo.config_writer() as writer:
            writer.set_value("user", "name", "Test User")
            writer.set_value("user", "email", "test@example.com")

        readme = repo_path / "README.md"
        readme.write_text("# Test Repository\n")
        repo.index.add([str(readme)])
        repo.index.commit("Initial commit")

        yield repo_path


@pytest.fixture
def sample_python_project(temp_git_repo: Path) -> Path:
    """Add a small committed Python project to the temporary repository."""
    src_dir = temp_git_repo / "src"
    src_dir.mkdir()

    main_py = src_dir / "main.py"
    main_py.write_text('''"""Main module for sample project."""

def greet(name: str) -> str:
    """Greet a person by name."""
    return f"Hello, {name}!"


class Calculator:
    """Simple calculator class."""

    def add(self, a: int, b: int) -> int:
        return a + b

    def divide(self, a: int, b: int) -> float:
        return a / b
''')

    utils_py = src_dir / "utils.py"
    utils_py.write_text('''"""Utility functions."""

from typing import List


def parse_csv_line(line: str) -> List[str]:
    """Parse a CSV line."""
    return line.strip().split(',')
''')

    repo = Repo(temp_git_repo)
    repo.index.add(["src/main.py", "src/utils.py"])
    repo.index.commit("Add sample Python project")

    return temp_git_repo


@pytest.fixture
def home_dir(tmp_path: Path) -> Path:
    """Empty home directory for global settings and prompts."""
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Empty project directory for the project .env and prompts."""
    path = tmp_path / "project"
    path.mkdir()
    return path


Outcome = Union[str, Exception]


class FakeInvoker:
    """Scripted backend invoker.

    Each call consumes the next outcome: a string is returned, an exception
    is raised. The last outcome repeats once the script runs out.
    """

    def __init__(self, *outcomes: Outcome):
        self.outcomes: List[Outcome] = list(outcomes) or ["LGTM"]
        self.prompts: List[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def __call__(self, api_key: str, model: str, prompt: str, config: ConfigStore) -> str:
        self.prompts.append(prompt)
        index = min(len(self.prompts), len(self.outcomes)) - 1
        outcome = self.outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def failing(backend: Backend, message: str) -> BackendError:
    return BackendError(backend.value, message)


class SleepRecorder:
    """Stands in for asyncio.sleep and records the requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_context(project_dir: Path, home_dir: Path, sleep_recorder: SleepRecorder):
    """Factory for an initialized AppContext with fake invokers.

    Usage: await make_context({"GEMINI_API_KEY": "g"}, {Backend.GEMINI: FakeInvoker("ok")})
    """

    async def factory(
        environ: Optional[Dict[str, str]] = None,
        invokers: Optional[Dict[Backend, Callable]] = None,
        project_root: Optional[Path] = None,
    ) -> AppContext:
        config = ConfigStore(
            project_root=project_root or project_dir,
            home_dir=home_dir,
            environ=environ or {},
        )
        await config.initialize()
        prompts = PromptStore(project_root=config.project_root, home_dir=home_dir)
        await prompts.initialize()
        default_invokers = {backend: FakeInvoker(failing(backend, "unexpected call")) for backend in Backend}
        default_invokers.update(invokers or {})
        registry = BackendRegistry(config, invokers=default_invokers)
        orchestrator = Orchestrator(config, registry, sleep=sleep_recorder)
        return AppContext(config=config, prompts=prompts, registry=registry, orchestrator=orchestrator)

    return factory
