"""
Abstract base class for hosting platforms.

This module defines the capability contract every backend implements.
The setup orchestrator only talks to this interface and never branches
on the concrete backend.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from classroom_repos.git.auth import GitCredentials
from classroom_repos.platform.config import PlatformConfig, PlatformType
from classroom_repos.platform.models import Repo, Team
from classroom_repos.teams.models import TeamPermission


class PlatformAPI(ABC):
    """
    Abstract base class for hosting platforms.

    Instances hold only their immutable configuration (and, for REST
    backends, a cached HTTP client); every call is an independent request.

    Example:
        ```python
        async with create_platform(config) as api:
            await api.verify_settings()
            if not await api.repo_exists("team1-task-1"):
                await api.create_repo("team1-task-1", private=True)
                await api.ensure_team("team1", ["alice", "bob"], TeamPermission.PUSH)
                await api.assign_repo("team1", "team1-task-1", TeamPermission.PUSH)
        ```
    """

    platform_type: PlatformType

    def __init__(self, config: PlatformConfig):
        """
        Initialize the platform with configuration.

        Args:
            config: Platform configuration settings
        """
        self.config = config

    @property
    def platform_name(self) -> str:
        """Get the platform name."""
        return self.platform_type.value

    def org_name(self) -> str:
        """Get the organization or namespace the repositories live in."""
        return self.config.org

    @abstractmethod
    async def verify_settings(self) -> None:
        """
        Check credentials and that the organization is reachable.

        Raises:
            AuthenticationError: If the token is missing or rejected
            NotFoundError: If the organization or base path does not exist
        """
        ...

    @abstractmethod
    async def repo_exists(self, name: str) -> bool:
        """Check whether a repository exists in the organization."""
        ...

    @abstractmethod
    async def create_repo(
        self,
        name: str,
        *,
        private: bool = True,
        description: Optional[str] = None,
    ) -> Repo:
        """
        Create a repository in the organization.

        An existing repository is not an error: it is returned with
        ``created=False``.
        """
        ...

    @abstractmethod
    async def ensure_team(
        self,
        name: str,
        members: Sequence[str],
        permission: TeamPermission = TeamPermission.PUSH,
    ) -> Team:
        """
        Create or update a team so that it matches the request.

        Missing members are added; members not requested (other than the
        acting user) are removed; the access level is updated.

        Raises:
            PermissionDenied: If the acting user may not manage teams
            RateLimited: If the backend throttles the requests
            NotFoundError: If a member does not exist on the backend
        """
        ...

    @abstractmethod
    async def assign_repo(
        self,
        team_name: str,
        repo_name: str,
        permission: TeamPermission = TeamPermission.PUSH,
    ) -> None:
        """Grant a team access to a repository."""
        ...

    @abstractmethod
    def remote_url_for_push(self, repo_name: str, credential: Optional[str] = None) -> str:
        """
        Get a URL that ``git push`` can use for a repository.

        Args:
            repo_name: Repository name in the organization
            credential: Token to embed (defaults to the configured token)
        """
        ...

    def git_credentials(self, credential: Optional[str] = None) -> Optional[GitCredentials]:
        """Credentials for cloning from this backend (None if not needed)."""
        return None

    def _membership_changes(
        self,
        current: Sequence[str],
        requested: Sequence[str],
    ) -> tuple[list[str], list[str]]:
        """
        Compute members to add and to remove.

        User names compare case-insensitively; the acting user is never
        removed since backends add the creator of a team as a member.
        """
        current_keys = {m.lower(): m for m in current}
        requested_keys = {m.lower(): m for m in requested}
        acting_user = self.config.user.lower()

        to_add = [m for key, m in requested_keys.items() if key not in current_keys]
        to_remove = [
            m
            for key, m in current_keys.items()
            if key not in requested_keys and key != acting_user
        ]
        return to_add, to_remove

    async def close(self) -> None:
        """Release any resources held by the platform."""
        return None

    async def __aenter__(self) -> "PlatformAPI":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(org={self.config.org!r}, base_url={self.config.base_url!r})"
