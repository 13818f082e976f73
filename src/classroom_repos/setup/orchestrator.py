"""
Bulk setup of student repositories.

For every (team, template) pair the orchestrator creates the student
repository, makes sure the team exists with the right members, grants the
team access and pushes the template content. Units of work run
concurrently on a fixed pool of asyncio workers; a failing unit never
affects its siblings.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Sequence, Union

from classroom_repos.git.auth import GitCredentials
from classroom_repos.git.exceptions import CloneError, GitError
from classroom_repos.platform.base import PlatformAPI
from classroom_repos.platform.exceptions import PlatformError
from classroom_repos.setup.cache import TemplateCache
from classroom_repos.setup.models import SetupResult, UnitOutcome, UnitStatus
from classroom_repos.teams.exceptions import InvalidInputError
from classroom_repos.teams.models import (
    DEFAULT_REPO_NAME_FORMAT,
    StudentRepo,
    StudentTeam,
    TeamPermission,
    TemplateRepo,
    slugify,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 8


def _check_name(name: str, kind: str) -> None:
    """Reject names that would escape the organization when used as a path."""
    if "/" in name or "\\" in name or ".." in name:
        raise InvalidInputError(f"{kind} name '{name}' must not contain path separators or '..'")


class SetupOrchestrator:
    """
    Runs the setup of student repositories against one platform.

    Steps of a run:
    1. Expand teams and templates into units and validate them
    2. Verify platform settings once
    3. Clone every template once
    4. Process units on ``max_concurrency`` workers
    5. Merge the per-worker outcomes into a ``SetupResult``

    Example:
        ```python
        async with create_platform(config) as api:
            orchestrator = SetupOrchestrator(api, TemplateCache("./work"))
            result = await orchestrator.run(templates, teams)
            print(result.summary())
        ```
    """

    def __init__(
        self,
        api: PlatformAPI,
        cache: TemplateCache,
        *,
        private: bool = True,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        permission: TeamPermission = TeamPermission.PUSH,
        credential: Optional[str] = None,
        name_format: str = DEFAULT_REPO_NAME_FORMAT,
    ):
        """
        Initialize the orchestrator.

        Args:
            api: Platform the repositories are created on
            cache: Template cache backed by the work area
            private: Create private repositories
            max_concurrency: Number of units processed at the same time
            permission: Access level granted to each team
            credential: Token embedded in push URLs (defaults to the platform token)
            name_format: Format of repository names, with ``{team}`` and ``{template}``
        """
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")

        self.api = api
        self.cache = cache
        self.private = private
        self.max_concurrency = max_concurrency
        self.permission = permission
        self.credential = credential
        self.name_format = name_format
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """
        Stop dispatching units.

        Units already in progress run to completion; the others are
        reported as pending in the result.
        """
        if not self._cancelled:
            logger.warning("Cancellation requested, finishing units in progress")
        self._cancelled = True

    # =========================================================================
    # Expansion
    # =========================================================================

    def expand(
        self,
        templates: Sequence[TemplateRepo],
        teams: Sequence[StudentTeam],
    ) -> list[StudentRepo]:
        """
        Compute the student repositories for all teams and templates.

        Raises:
            InvalidInputError: On empty input, empty teams, unsafe names or name collisions
        """
        if not teams:
            raise InvalidInputError("No student teams given")
        if not templates:
            raise InvalidInputError("No template repositories given")

        units: list[StudentRepo] = []
        seen: dict[str, StudentRepo] = {}
        team_slugs: dict[str, StudentTeam] = {}
        for team in teams:
            if not team.members:
                raise InvalidInputError(f"Team '{team.name}' has no members")
            _check_name(team.name, "Team")

            # Backends identify teams by slug
            slug = slugify(team.name)
            if not slug:
                raise InvalidInputError(f"Team name '{team.name}' has no usable characters")
            if slug in team_slugs:
                raise InvalidInputError(
                    f"Teams '{team_slugs[slug].name}' and '{team.name}' "
                    f"map to the same team '{slug}'"
                )
            team_slugs[slug] = team

            for template in templates:
                try:
                    unit = StudentRepo.derive(team, template, self.name_format)
                except (KeyError, IndexError, ValueError) as e:
                    raise InvalidInputError(
                        f"Invalid repository name format {self.name_format!r}: {e}"
                    ) from e
                _check_name(unit.name, "Repository")

                key = unit.name.lower()
                if key in seen:
                    other = seen[key]
                    raise InvalidInputError(
                        f"Repository name '{unit.name}' is derived twice: "
                        f"{other.team.name}/{other.template.name} and {team.name}/{template.name}"
                    )
                seen[key] = unit
                units.append(unit)
        return units

    # =========================================================================
    # Run
    # =========================================================================

    async def run(
        self,
        templates: Sequence[TemplateRepo],
        teams: Sequence[StudentTeam],
    ) -> SetupResult:
        """
        Set up all student repositories.

        Raises:
            InvalidInputError: If the input is invalid (nothing is touched)
            PlatformError: If verifying the platform settings fails
        """
        units = self.expand(templates, teams)
        logger.info(
            f"Setting up {len(units)} repositories for {len(teams)} teams "
            f"from {len(templates)} templates on {self.api.platform_name}"
        )

        await self.api.verify_settings()

        failed_templates = await self._acquire_templates(units)

        queue: asyncio.Queue[StudentRepo] = asyncio.Queue()
        for unit in units:
            queue.put_nowait(unit)

        worker_count = min(self.max_concurrency, len(units))
        workers = [
            asyncio.create_task(self._worker(queue, failed_templates), name=f"setup-worker-{i}")
            for i in range(worker_count)
        ]
        per_worker = await asyncio.gather(*workers)

        pending = []
        while not queue.empty():
            pending.append(queue.get_nowait().name)

        result = SetupResult.from_outcomes(
            (outcome for outcomes in per_worker for outcome in outcomes),
            cancelled=self._cancelled,
            pending_repos=pending,
        )
        logger.info(f"Setup finished: {result.summary()}")
        return result

    async def _acquire_templates(self, units: Sequence[StudentRepo]) -> dict[str, CloneError]:
        """Clone every distinct template; return the failures by template name."""
        templates: dict[str, TemplateRepo] = {}
        for unit in units:
            templates.setdefault(unit.template.name, unit.template)

        semaphore = asyncio.Semaphore(self.max_concurrency)
        failures: dict[str, CloneError] = {}

        async def acquire(template: TemplateRepo) -> None:
            async with semaphore:
                try:
                    await self.cache.acquire(template)
                except CloneError as e:
                    logger.error(f"Template {template.name} is unavailable: {e}")
                    failures[template.name] = e

        await asyncio.gather(*(acquire(t) for t in templates.values()))
        return failures

    async def _worker(
        self,
        queue: "asyncio.Queue[StudentRepo]",
        failed_templates: dict[str, CloneError],
    ) -> list[UnitOutcome]:
        outcomes: list[UnitOutcome] = []
        while not self._cancelled:
            try:
                unit = queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            outcomes.append(await self._process(unit, failed_templates))
        return outcomes

    async def _process(
        self,
        unit: StudentRepo,
        failed_templates: dict[str, CloneError],
    ) -> UnitOutcome:
        team = unit.team
        repo_name = unit.name

        clone_error = failed_templates.get(unit.template.name)
        if clone_error is not None:
            logger.error(f"{team.name}/{repo_name}: template not available")
            return UnitOutcome.failed(team.name, repo_name, clone_error)

        try:
            if await self.api.repo_exists(repo_name):
                logger.info(f"{repo_name}: already exists, skipped")
                return UnitOutcome(team.name, repo_name, UnitStatus.EXISTING)

            repo = await self.api.create_repo(
                repo_name,
                private=self.private,
                description=f"{unit.template.name} for team {team.name}",
            )
            if not repo.created:
                logger.info(f"{repo_name}: created concurrently elsewhere, skipped")
                return UnitOutcome(team.name, repo_name, UnitStatus.EXISTING)

            await self.api.ensure_team(team.name, team.members, self.permission)
            await self.api.assign_repo(team.name, repo_name, self.permission)

            async with self.cache.working_copy(unit.template) as copy:
                push_url = self.api.remote_url_for_push(repo_name, self.credential)
                await asyncio.to_thread(copy.push_to, push_url)
        except (PlatformError, GitError) as e:
            logger.error(f"{team.name}/{repo_name}: {e}")
            return UnitOutcome.failed(team.name, repo_name, e)
        except Exception as e:
            logger.exception(f"{team.name}/{repo_name}: unexpected error")
            return UnitOutcome.failed(team.name, repo_name, e)

        logger.info(f"{repo_name}: created for team {team.name}")
        return UnitOutcome(team.name, repo_name, UnitStatus.CREATED)


async def setup_student_repos(
    api: PlatformAPI,
    templates: Sequence[TemplateRepo],
    teams: Sequence[StudentTeam],
    work_dir: Union[str, Path],
    *,
    private: bool = True,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    permission: TeamPermission = TeamPermission.PUSH,
    credential: Optional[str] = None,
    name_format: str = DEFAULT_REPO_NAME_FORMAT,
    template_credentials: Optional[GitCredentials] = None,
    cleanup: bool = True,
) -> SetupResult:
    """
    Set up student repositories in one call.

    Template clones are made with ``template_credentials`` or, if not
    given, with the platform's own credentials, which are only used for
    templates on the platform host.

    Example:
        ```python
        teams = parse_teams(["team1:alice,bob", "carol"])
        templates = parse_templates(["https://github.com/course/task-1"])

        async with create_platform(config) as api:
            result = await setup_student_repos(api, templates, teams, "./classroom-work")
        ```
    """
    if template_credentials is None:
        template_credentials = api.git_credentials(credential)

    cache = TemplateCache(work_dir, credentials=template_credentials)
    orchestrator = SetupOrchestrator(
        api,
        cache,
        private=private,
        max_concurrency=max_concurrency,
        permission=permission,
        credential=credential,
        name_format=name_format,
    )
    try:
        return await orchestrator.run(templates, teams)
    finally:
        if cleanup:
            cache.cleanup()
