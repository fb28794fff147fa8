"""Command-line interface for review-relay."""

import asyncio
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional, Tuple, TypeVar

import click
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from review_relay import __version__
from review_relay.log import LOG_FILE, setup_logging
from review_relay.models import (
    Backend,
    ConfigureAIServiceRequest,
    ReviewChangesRequest,
    ReviewCommitRequest,
    ReviewFilesRequest,
    ReviewResponse,
)
from review_relay.service import ReviewService, create_context

console = Console()

T = TypeVar("T")

SERVICE_CHOICE = click.Choice([backend.value for backend in Backend], case_sensitive=False)


def _run(action: Callable[[ReviewService], Awaitable[T]], debug: bool = False) -> T:
    """Build the application context and run one service action."""

    async def runner() -> T:
        context = await create_context()
        setup_logging(debug=debug or context.config.is_debug())
        return await action(ReviewService(context))

    setup_logging(debug=debug)
    return asyncio.run(runner())


def _backend(value: Optional[str]) -> Optional[Backend]:
    return Backend.parse(value) if value else None


def _print_review(response: ReviewResponse, output_file: Optional[str] = None):
    """Render a review and exit non-zero when it failed."""
    if response.status == "failed":
        console.print(f"[red]✗ {response.summary}[/red]")
        console.print(response.review, markup=False)
        sys.exit(1)

    if response.status == "empty":
        console.print(f"[yellow]{response.summary}[/yellow]")
        console.print(response.review, markup=False)
        return

    console.print(Panel(
        f"{response.summary} using [bold]{response.ai_service_used.value}[/bold]",
        style="green",
    ))
    console.print(Markdown(response.review))

    if output_file:
        Path(output_file).write_text(response.review, encoding="utf-8")
        console.print(f"[dim]Review saved to: {output_file}[/dim]")


@click.group(invoke_without_command=True)
@click.version_option(__version__, prog_name="review-relay")
@click.pass_context
def main(ctx):
    """review-relay - AI code review with automatic failover.

    \b
    COMMANDS:
      review      Review uncommitted git changes (default)
      commit      Review a commit (HEAD by default)
      files       Review specific files
      status      Show AI service configuration
      configure   Save AI service settings
      mcp         Run the MCP stdio server

    \b
    EXAMPLES:
      review-relay                              # Review current changes
      review-relay commit a1b2c3d               # Review one commit
      review-relay files app.py utils.py        # Review two files
      review-relay configure claude --api-key sk-...
    """
    if ctx.invoked_subcommand is None:
        ctx.invoke(review_command)


@main.command("review")
@click.option("--repo", "-r", type=click.Path(), help="Path to the git repository")
@click.option("--staged/--no-staged", default=True, help="Include staged changes")
@click.option("--unstaged/--no-unstaged", default=True, help="Include unstaged changes")
@click.option("--service", "-s", type=SERVICE_CHOICE, help="Preferred AI service")
@click.option("--prompt", "-p", help="Custom prompt; {content} marks where the diff goes")
@click.option("--output-file", "-o", type=click.Path(), help="Save review to markdown file")
@click.option("--debug", "-d", is_flag=True, help="Verbose logging")
def review_command(repo, staged, unstaged, service, prompt, output_file, debug):
    """Review uncommitted git changes."""
    request = ReviewChangesRequest(
        repository_path=repo,
        include_staged=staged,
        include_unstaged=unstaged,
        ai_service=_backend(service),
        custom_prompt=prompt,
    )
    with console.status("Reviewing changes..."):
        response = _run(lambda svc: svc.review_changes(request), debug)
    _print_review(response, output_file)


@main.command("commit")
@click.argument("commit_hash", required=False)
@click.option("--repo", "-r", type=click.Path(), help="Path to the git repository")
@click.option("--service", "-s", type=SERVICE_CHOICE, help="Preferred AI service")
@click.option("--prompt", "-p", help="Custom prompt; {content} marks where the commit goes")
@click.option("--output-file", "-o", type=click.Path(), help="Save review to markdown file")
@click.option("--debug", "-d", is_flag=True, help="Verbose logging")
def commit_command(commit_hash, repo, service, prompt, output_file, debug):
    """Review a commit (HEAD when no hash is given)."""
    request = ReviewCommitRequest(
        commit_hash=commit_hash,
        repository_path=repo,
        ai_service=_backend(service),
        custom_prompt=prompt,
    )
    with console.status(f"Reviewing {commit_hash or 'HEAD'}..."):
        response = _run(lambda svc: svc.review_commit(request), debug)
    _print_review(response, output_file)


@main.command("files")
@click.argument("files", nargs=-1, required=True)
@click.option("--repo", "-r", type=click.Path(), help="Directory the file paths are relative to")
@click.option("--service", "-s", type=SERVICE_CHOICE, help="Preferred AI service")
@click.option("--prompt", "-p", help="Custom prompt; {content} marks where the files go")
@click.option("--output-file", "-o", type=click.Path(), help="Save review to markdown file")
@click.option("--debug", "-d", is_flag=True, help="Verbose logging")
def files_command(files: Tuple[str, ...], repo, service, prompt, output_file, debug):
    """Review one or more files."""
    request = ReviewFilesRequest(
        files=list(files),
        repository_path=repo,
        ai_service=_backend(service),
        custom_prompt=prompt,
    )
    with console.status(f"Reviewing {len(files)} file(s)..."):
        response = _run(lambda svc: svc.review_files(request), debug)
    _print_review(response, output_file)


@main.command()
@click.option("--probe", is_flag=True, help="Send a short test prompt to each configured service")
def status(probe):
    """Show AI service configuration and availability."""
    result = _run(lambda svc: svc.get_ai_service_status(probe=probe))

    table = Table(title="AI services")
    table.add_column("Service")
    table.add_column("Configured")
    table.add_column("Model")
    if probe:
        table.add_column("Available")

    for item in result.services:
        name = item.service.value
        if item.service == result.current_service:
            name = f"[bold]{name}[/bold] (preferred)"
        row = [name, "✓ Yes" if item.configured else "✗ No", item.model]
        if probe:
            row.append("✓ Yes" if item.available else f"✗ {item.error_message or 'No'}")
        table.add_row(*row)

    console.print(table)
    console.print(f"Auto switch: {'on' if result.auto_switch_enabled else 'off'}")
    console.print(f"Language:    {result.language}")
    console.print(f"Timeout:     {result.timeout}s")
    console.print(f"Max retries: {result.max_retries}")
    console.print(f"Global config:  {result.global_config_path}")
    console.print(f"Project config: {result.project_config_path}")
    console.print(f"[dim]Log file: {LOG_FILE}[/dim]")


@main.command()
@click.argument("service", type=SERVICE_CHOICE)
@click.option(
    "--scope",
    type=click.Choice(["project", "global"]),
    default="project",
    show_default=True,
    help="Write to ./.env or ~/.review-relay/env",
)
@click.option("--api-key", help="API key for the service")
@click.option("--language", help="Response language, e.g. en-US")
@click.option("--timeout", type=click.IntRange(min=1), help="Per-attempt timeout in seconds")
@click.option("--max-retries", type=click.IntRange(min=1), help="Attempts per service")
def configure(service, scope, api_key, language, timeout, max_retries):
    """Save settings for an AI service and make it the preferred one."""
    request = ConfigureAIServiceRequest(
        service=Backend.parse(service),
        scope=scope,
        api_key=api_key,
        language=language,
        timeout=timeout,
        max_retries=max_retries,
    )
    result = _run(lambda svc: svc.configure_ai_service(request))
    if not result.success:
        console.print(f"[red]✗ {result.message}[/red]")
        sys.exit(1)
    console.print(f"[green]✓ {result.message}[/green]")
    console.print(f"Saved to: {result.config_path}")


@main.command()
def mcp():
    """Run the MCP server on stdin/stdout."""
    from review_relay.mcp_server import run

    run()


if __name__ == "__main__":
    main()
