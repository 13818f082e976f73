"""
Template repository cache.

Each template is cloned once per run into the work area; every student
repository seeded from it gets its own working copy cloned from that
local clone.
"""

import asyncio
import logging
import shutil
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional, Union

from git.exc import GitError as GitPythonError

from classroom_repos.git.auth import GitCredentials
from classroom_repos.git.exceptions import CloneError, GitError
from classroom_repos.git.repository import GitRepository
from classroom_repos.teams.models import TemplateRepo

logger = logging.getLogger(__name__)


class TemplateCache:
    """
    Single-flight cache of template clones.

    The first ``acquire`` of a template starts the clone; concurrent and
    later callers wait for the same clone. A failed clone is remembered
    and raised to every caller for the rest of the run.

    Example:
        ```python
        cache = TemplateCache("./classroom-work")
        template = TemplateRepo(location="https://github.com/course/task-1.git")

        async with cache.working_copy(template) as copy:
            copy.push_to(push_url)
        ```
    """

    def __init__(
        self,
        work_dir: Union[str, Path],
        *,
        credentials: Optional[GitCredentials] = None,
    ):
        """
        Initialize the cache.

        Args:
            work_dir: Work area holding template clones and working copies
            credentials: Token injected into HTTPS template URLs
        """
        self.work_dir = Path(work_dir)
        self.credentials = credentials
        self._clones: dict[str, asyncio.Task] = {}

    @property
    def templates_dir(self) -> Path:
        return self.work_dir / "templates"

    @property
    def checkouts_dir(self) -> Path:
        return self.work_dir / "checkouts"

    def _clone(self, template: TemplateRepo) -> GitRepository:
        destination = self.templates_dir / template.name
        if destination.exists():
            # Left over from an earlier run
            shutil.rmtree(destination)
        self.templates_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"Cloning template {template.name}")
        return GitRepository.clone(
            template.location,
            destination,
            credentials=self.credentials,
        )

    async def _fetch(self, template: TemplateRepo) -> GitRepository:
        try:
            return await asyncio.to_thread(self._clone, template)
        except CloneError:
            raise
        except (GitError, GitPythonError, OSError) as e:
            raise CloneError(
                f"Failed to clone template '{template.name}': {e}",
                command="git clone",
                repo_path=str(self.templates_dir / template.name),
            ) from e

    async def acquire(self, template: TemplateRepo) -> GitRepository:
        """
        Get the local clone of a template, cloning it on first use.

        Raises:
            CloneError: If the template cannot be cloned
        """
        task = self._clones.get(template.name)
        if task is None:
            task = asyncio.create_task(self._fetch(template))
            self._clones[template.name] = task
        # A cancelled caller must not cancel the clone other callers wait on
        return await asyncio.shield(task)

    async def checkout_working_copy(self, template: TemplateRepo) -> GitRepository:
        """
        Create a fresh working copy of a template in a unique directory.

        Raises:
            CloneError: If the template or the working copy cannot be cloned
        """
        source = await self.acquire(template)

        self.checkouts_dir.mkdir(parents=True, exist_ok=True)
        destination = tempfile.mkdtemp(prefix=f"{template.name}-", dir=self.checkouts_dir)
        return await asyncio.to_thread(GitRepository.clone, str(source.path), destination)

    @asynccontextmanager
    async def working_copy(self, template: TemplateRepo) -> AsyncIterator[GitRepository]:
        """Working copy that is removed when the block exits."""
        copy = await self.checkout_working_copy(template)
        try:
            yield copy
        finally:
            await asyncio.to_thread(shutil.rmtree, copy.path, True)

    def is_cached(self, template: TemplateRepo) -> bool:
        """Whether the template was cloned successfully."""
        task = self._clones.get(template.name)
        return task is not None and task.done() and not task.cancelled() and task.exception() is None

    def cleanup(self) -> None:
        """Remove template clones and working copies from the work area."""
        for directory in (self.templates_dir, self.checkouts_dir):
            if directory.exists():
                shutil.rmtree(directory, ignore_errors=True)
        self._clones.clear()
        logger.debug(f"Cleaned up {self.work_dir}")
