"""
Local filesystem platform.

Repositories are bare Git repositories below a base directory:

    {base}/{org}/{repo}.git

Teams are JSON documents recording members, access level and the
repositories assigned to them:

    {base}/{org}/.teams/{team-slug}.json

Useful for dry runs, tests and courses that serve repositories from a
shared file server.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Optional, Sequence

from classroom_repos.git.exceptions import GitError
from classroom_repos.git.repository import GitRepository
from classroom_repos.platform.base import PlatformAPI
from classroom_repos.platform.config import PlatformConfig, PlatformType
from classroom_repos.platform.exceptions import (
    BackendError,
    NotFoundError,
    PermissionDenied,
)
from classroom_repos.platform.models import Repo, Team
from classroom_repos.teams.models import TeamPermission, slugify

logger = logging.getLogger(__name__)

TEAMS_DIR = ".teams"


def _path_from_base_url(base_url: str) -> Path:
    if base_url.startswith("file://"):
        base_url = base_url[len("file://"):]
    return Path(base_url).expanduser()


class LocalPlatform(PlatformAPI):
    """
    Platform that keeps repositories on the local filesystem.

    No token is needed. Team and repository updates are done without
    awaiting in between, so concurrent units on one event loop never
    interleave a read-modify-write of the same team file.
    """

    platform_type = PlatformType.LOCAL

    def __init__(self, config: PlatformConfig):
        super().__init__(config)
        self.base_path = _path_from_base_url(config.base_url)

    @property
    def org_path(self) -> Path:
        return self.base_path / self.config.org

    @property
    def teams_path(self) -> Path:
        return self.org_path / TEAMS_DIR

    def repo_path(self, name: str) -> Path:
        """Path of the bare repository for ``name``."""
        return self.org_path / f"{name}.git"

    def team_file(self, name: str) -> Path:
        return self.teams_path / f"{slugify(name)}.json"

    async def verify_settings(self) -> None:
        base = self.base_path
        if not base.exists():
            raise NotFoundError(
                f"Base directory does not exist: {base}",
                platform=self.platform_name,
            )
        if not base.is_dir():
            raise NotFoundError(
                f"Base path is not a directory: {base}",
                platform=self.platform_name,
            )
        if not os.access(base, os.W_OK | os.X_OK):
            raise PermissionDenied(
                f"Base directory is not writable: {base}",
                platform=self.platform_name,
            )
        if self.org_path.exists() and not self.org_path.is_dir():
            raise NotFoundError(
                f"Organization path is not a directory: {self.org_path}",
                platform=self.platform_name,
            )
        logger.info(f"Verified local repositories at {self.org_path}")

    async def repo_exists(self, name: str) -> bool:
        return self.repo_path(name).exists()

    async def create_repo(
        self,
        name: str,
        *,
        private: bool = True,
        description: Optional[str] = None,
    ) -> Repo:
        path = self.repo_path(name)
        if path.exists():
            logger.debug(f"Repository {path} already exists")
            return Repo(name=name, url=str(path), private=private, created=False)

        try:
            await asyncio.to_thread(
                GitRepository.init,
                path,
                bare=True,
                initial_branch=self.config.default_branch,
            )
            if description:
                (path / "description").write_text(description + "\n", encoding="utf-8")
        except PermissionError as e:
            raise PermissionDenied(
                f"Cannot create repository {path}: {e}",
                platform=self.platform_name,
            )
        except (GitError, OSError) as e:
            raise BackendError(
                f"Cannot create repository {path}: {e}",
                platform=self.platform_name,
            )

        logger.debug(f"Created bare repository {path}")
        return Repo(name=name, url=str(path), private=private, created=True)

    def _read_team(self, name: str) -> Optional[dict[str, Any]]:
        path = self.team_file(name)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise BackendError(
                f"Cannot read team file {path}: {e}",
                platform=self.platform_name,
            )

    def _write_team(self, name: str, data: dict[str, Any]) -> None:
        path = self.team_file(name)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
            tmp_path.replace(path)
        except PermissionError as e:
            raise PermissionDenied(
                f"Cannot write team file {path}: {e}",
                platform=self.platform_name,
            )
        except OSError as e:
            raise BackendError(
                f"Cannot write team file {path}: {e}",
                platform=self.platform_name,
            )

    async def ensure_team(
        self,
        name: str,
        members: Sequence[str],
        permission: TeamPermission = TeamPermission.PUSH,
    ) -> Team:
        data = self._read_team(name) or {"name": name, "repos": {}}
        data["members"] = sorted(members)
        data["permission"] = permission.value
        self._write_team(name, data)

        return Team(
            name=data["name"],
            id=self.team_file(name).stem,
            members=list(members),
            permission=permission,
        )

    async def assign_repo(
        self,
        team_name: str,
        repo_name: str,
        permission: TeamPermission = TeamPermission.PUSH,
    ) -> None:
        if not self.repo_path(repo_name).exists():
            raise NotFoundError(
                f"Repository '{repo_name}' not found in {self.org_path}",
                platform=self.platform_name,
            )
        data = self._read_team(team_name)
        if data is None:
            raise NotFoundError(
                f"Team '{team_name}' not found in {self.org_path}",
                platform=self.platform_name,
            )
        data.setdefault("repos", {})[repo_name] = permission.value
        self._write_team(team_name, data)

    def read_team(self, name: str) -> Optional[Team]:
        """Load a team from its JSON file, or None if it does not exist."""
        data = self._read_team(name)
        if data is None:
            return None
        return Team(
            name=data["name"],
            id=self.team_file(name).stem,
            members=data.get("members", []),
            permission=TeamPermission(data.get("permission", TeamPermission.PUSH.value)),
        )

    def team_repos(self, name: str) -> dict[str, TeamPermission]:
        """Repositories assigned to a team, with their access level."""
        data = self._read_team(name) or {}
        return {repo: TeamPermission(perm) for repo, perm in data.get("repos", {}).items()}

    def remote_url_for_push(self, repo_name: str, credential: Optional[str] = None) -> str:
        return str(self.repo_path(repo_name).resolve())
