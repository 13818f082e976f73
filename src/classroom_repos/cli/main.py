"""
CLI for classroom-repos.

Creates one repository per student team and template on a hosting
platform, seeded with the template content.
"""

import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Any, Optional

import click
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from classroom_repos import __version__
from classroom_repos.platform.base import PlatformAPI
from classroom_repos.platform.exceptions import PlatformError
from classroom_repos.platform.factory import create_platform, list_platforms
from classroom_repos.settings.config import ENV_PREFIX, ClassroomConfig
from classroom_repos.setup.cache import TemplateCache
from classroom_repos.setup.models import SetupResult
from classroom_repos.setup.orchestrator import SetupOrchestrator
from classroom_repos.teams.exceptions import InvalidInputError
from classroom_repos.teams.models import StudentTeam, TeamPermission, TemplateRepo

# Load environment variables
load_dotenv()

console = Console()
logger = logging.getLogger(__name__)

TOKEN_ENV = f"{ENV_PREFIX}TOKEN"


def setup_logging(verbose: bool = False) -> None:
    """Setup rich logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )
    # Reduce noise from httpx and GitPython
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("git").setLevel(logging.WARNING)


def _fail(message: str) -> None:
    console.print(f"[bold red]Error:[/bold red] {message}")
    sys.exit(1)


def platform_options(func):
    """Options shared by all commands that talk to a platform."""
    options = [
        click.option(
            "--config",
            "-c",
            "config_path",
            type=click.Path(exists=True, dir_okay=False, path_type=Path),
            default=None,
            help="YAML or JSON config file (flags override its values)",
        ),
        click.option(
            "--platform",
            "-p",
            type=click.Choice(list_platforms()),
            default=None,
            help="Hosting platform (detected from --base-url if omitted)",
        ),
        click.option(
            "--base-url",
            "-u",
            default=None,
            help="Platform URL, or base directory for the local platform",
        ),
        click.option("--org", "-o", default=None, help="Organization or group for student repos"),
        click.option("--user", default=None, help="Acting user (teacher or admin)"),
        click.option(
            "--token",
            default=None,
            help=f"Access token (default: ${TOKEN_ENV})",
        ),
        click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_config(
    config_path: Optional[Path],
    platform_overrides: dict[str, Any],
    setup_overrides: Optional[dict[str, Any]] = None,
) -> ClassroomConfig:
    """
    Merge the config file with explicit command-line values.

    Values that are None (or empty lists) on the command line keep the
    file's value. The token falls back to the environment.
    """
    if config_path is not None:
        base = ClassroomConfig.from_file(config_path)
        platform_data = base.platform.model_dump(exclude_unset=True)
        setup_data = base.setup.model_dump(exclude_unset=True)
    else:
        platform_data, setup_data = {}, {}

    for key, value in platform_overrides.items():
        if value is not None:
            platform_data[key] = value
    for key, value in (setup_overrides or {}).items():
        if value is not None and value != ():
            setup_data[key] = list(value) if isinstance(value, tuple) else value

    if not platform_data.get("token") and os.environ.get(TOKEN_ENV):
        platform_data["token"] = os.environ[TOKEN_ENV]

    missing = [f"--{name.replace('_', '-')}" for name in ("base_url", "org") if not platform_data.get(name)]
    if missing:
        raise click.UsageError(f"Missing {' and '.join(missing)} (or a --config file providing them)")

    return ClassroomConfig(platform=platform_data, setup=setup_data)


@click.group()
@click.version_option(version=__version__)
def cli():
    """classroom-repos - set up student repositories from templates."""
    pass


@cli.command()
@platform_options
@click.option(
    "--team",
    "-t",
    "teams",
    multiple=True,
    help="Team as 'name:alice,bob' or 'alice,bob' (repeatable)",
)
@click.option(
    "--teams-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="JSON or YAML file listing the teams",
)
@click.option("--template", "templates", multiple=True, help="Template URL or path (repeatable)")
@click.option(
    "--assignment",
    "-a",
    "assignments",
    multiple=True,
    help="Assignment name resolved against --template-group (repeatable)",
)
@click.option("--template-group", default=None, help="Group or path holding the templates")
@click.option(
    "--work-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Work area for template clones (default: ./classroom-work)",
)
@click.option("--private/--public", default=None, help="Repository visibility (default: private)")
@click.option("--max-concurrency", "-j", type=click.IntRange(min=1), default=None, help="Parallel setups")
@click.option(
    "--permission",
    type=click.Choice([p.value for p in TeamPermission]),
    default=None,
    help="Access level granted to teams (default: push)",
)
@click.option("--name-format", default=None, help="Repository name format (default: {team}-{template})")
@click.option("--keep-work-dir", is_flag=True, help="Keep template clones after the run")
def setup(
    config_path: Optional[Path],
    platform: Optional[str],
    base_url: Optional[str],
    org: Optional[str],
    user: Optional[str],
    token: Optional[str],
    verbose: bool,
    teams: tuple[str, ...],
    teams_file: Optional[Path],
    templates: tuple[str, ...],
    assignments: tuple[str, ...],
    template_group: Optional[str],
    work_dir: Optional[Path],
    private: Optional[bool],
    max_concurrency: Optional[int],
    permission: Optional[str],
    name_format: Optional[str],
    keep_work_dir: bool,
):
    """
    Create student repositories from templates.

    Every team gets one repository per template, named
    '{team}-{template}'. Existing repositories are left untouched, so
    the command can be re-run safely.

    Examples:

        # Two teams, two templates on GitHub
        classroom-repos setup -u https://github.com -o course-2024 \\
            -t team1:alice,bob -t carol \\
            --template https://github.com/course-templates/task-1

        # Teams from a file, templates from a template group
        classroom-repos setup -c classroom.yaml -a task-1 -a task-2

        # Local dry run
        classroom-repos setup -u /tmp/repos -o course -t alice --template ./task-1
    """
    setup_logging(verbose)

    try:
        config = build_config(
            config_path,
            {"platform": platform, "base_url": base_url, "org": org, "user": user, "token": token},
            {
                "teams": teams,
                "teams_file": teams_file,
                "templates": templates,
                "assignments": assignments,
                "template_group": template_group,
                "work_dir": work_dir,
                "private": private,
                "max_concurrency": max_concurrency,
                "permission": permission,
                "name_format": name_format,
            },
        )
        student_teams = config.setup.load_teams()
        template_repos = config.setup.load_templates(config.platform)
        platform_type = config.platform.resolved_platform
    except (ValidationError, InvalidInputError, FileNotFoundError, ValueError) as e:
        _fail(str(e))

    console.print(
        Panel(
            f"[bold cyan]Student repository setup[/bold cyan]\n\n"
            f"Platform: [green]{platform_type.value}[/green] ([green]{config.platform.base_url}[/green])\n"
            f"Organization: [green]{config.platform.org}[/green]\n"
            f"Teams: [green]{len(student_teams)}[/green]\n"
            f"Templates: [green]{', '.join(t.name for t in template_repos) or '-'}[/green]\n"
            f"Work dir: [green]{config.setup.work_dir}[/green]\n\n"
            f"Press [yellow]Ctrl+C[/yellow] to stop after the repositories in progress.",
            title="Starting",
        )
    )

    try:
        result = asyncio.run(
            _run_setup(config, student_teams, template_repos, keep_work_dir=keep_work_dir)
        )
    except InvalidInputError as e:
        _fail(str(e))
    except PlatformError as e:
        _fail(f"Verification failed: {e}")

    _print_result(result)
    if result.cancelled or not result.is_success():
        sys.exit(1)


async def _run_setup(
    config: ClassroomConfig,
    teams: list[StudentTeam],
    templates: list[TemplateRepo],
    *,
    keep_work_dir: bool,
) -> SetupResult:
    """Run the orchestrator with SIGINT/SIGTERM wired to cancellation."""
    async with create_platform(config.platform) as api:
        cache = TemplateCache(config.setup.work_dir, credentials=api.git_credentials())
        orchestrator = SetupOrchestrator(
            api,
            cache,
            private=config.setup.private,
            max_concurrency=config.setup.max_concurrency,
            permission=config.setup.permission,
            name_format=config.setup.name_format,
        )

        loop = asyncio.get_running_loop()
        handled = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, orchestrator.cancel)
                handled.append(sig)
            except (NotImplementedError, RuntimeError):
                # No signal support on this loop (e.g. Windows)
                logger.debug(f"Cannot install handler for {sig.name}")

        try:
            return await orchestrator.run(templates, teams)
        finally:
            for sig in handled:
                loop.remove_signal_handler(sig)
            if not keep_work_dir:
                cache.cleanup()


def _print_result(result: SetupResult) -> None:
    for name in sorted(result.successful_repos):
        console.print(f"  [green]created[/green]  {name}")
    for name in sorted(result.existing_repos):
        console.print(f"  [yellow]existing[/yellow] {name}")

    if result.errors:
        console.print("\n[bold red]Errors:[/bold red]")
        for error in result.errors:
            console.print(f"  [red]{error.team_name}/{error.repo_name}[/red]: {error.error}")

    if result.cancelled and result.pending_repos:
        console.print("\n[bold yellow]Not started (cancelled):[/bold yellow]")
        for name in sorted(result.pending_repos):
            console.print(f"  {name}")

    style = "green" if result.is_success() and not result.cancelled else "red"
    console.print(Panel(f"[{style}]{result.summary()}[/{style}]", title="Result"))


@cli.command()
@platform_options
def verify(
    config_path: Optional[Path],
    platform: Optional[str],
    base_url: Optional[str],
    org: Optional[str],
    user: Optional[str],
    token: Optional[str],
    verbose: bool,
):
    """
    Check credentials and that the organization exists.

    Examples:

        classroom-repos verify -u https://gitlab.com -o course-2024

        classroom-repos verify -c classroom.yaml
    """
    setup_logging(verbose)

    try:
        config = build_config(
            config_path,
            {"platform": platform, "base_url": base_url, "org": org, "user": user, "token": token},
        )
        api = create_platform(config.platform)
    except (ValidationError, FileNotFoundError, ValueError) as e:
        _fail(str(e))

    try:
        asyncio.run(_verify(api))
    except PlatformError as e:
        console.print(f"[bold red]Verification failed:[/bold red] {e}")
        sys.exit(1)

    console.print(
        f"[green]Settings verified:[/green] {api.platform_name} "
        f"organization [bold]{api.org_name()}[/bold] at {config.platform.base_url}"
    )


async def _verify(api: PlatformAPI) -> None:
    async with api:
        await api.verify_settings()


@cli.command()
def platforms():
    """List available hosting platforms."""
    console.print("[bold]Available Platforms:[/bold]")
    for p in list_platforms():
        console.print(f"  • [green]{p}[/green]")


if __name__ == "__main__":
    cli()
