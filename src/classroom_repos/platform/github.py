"""
GitHub platform.

Works with github.com and GitHub Enterprise Server. Student teams are
organization teams; repositories are linked to them with a team
repository permission (pull, push or admin).
"""

import logging
from typing import Any, Optional, Sequence
from urllib.parse import urlparse

from classroom_repos.git.auth import GitProvider
from classroom_repos.platform.config import PlatformType
from classroom_repos.platform.exceptions import NotFoundError
from classroom_repos.platform.models import Repo, Team
from classroom_repos.platform.rest import RestPlatform
from classroom_repos.teams.models import TeamPermission, slugify

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"


class GitHubPlatform(RestPlatform):
    """
    GitHub REST API v3 platform.

    Example:
        ```python
        config = PlatformConfig(
            platform=PlatformType.GITHUB,
            base_url="https://github.com",
            org="course-2024",
            user="teacher",
            token="ghp_xxxx",
        )
        async with GitHubPlatform(config) as api:
            await api.verify_settings()
        ```
    """

    platform_type = PlatformType.GITHUB
    git_provider = GitProvider.GITHUB

    @property
    def web_url(self) -> str:
        base_url = self.config.base_url
        if urlparse(base_url).hostname == "api.github.com":
            return "https://github.com"
        if base_url.endswith("/api/v3"):
            return base_url[: -len("/api/v3")]
        return base_url

    @property
    def api_url(self) -> str:
        if urlparse(self.web_url).hostname == "github.com":
            return "https://api.github.com"
        return f"{self.web_url}/api/v3"

    def _auth_headers(self, token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    async def verify_settings(self) -> None:
        self._require_token()
        org = self.config.org

        user = (await self._request("GET", "/user")).json()
        login = user.get("login", "")
        if self.config.user and login and login.lower() != self.config.user.lower():
            logger.warning(
                f"Token belongs to '{login}', not to the configured user '{self.config.user}'"
            )

        if await self._get_optional(f"/orgs/{org}") is None:
            raise NotFoundError(
                f"Organization '{org}' not found on {self.web_url}",
                platform=self.platform_name,
                status_code=404,
            )
        logger.info(f"Verified GitHub access to '{org}' as '{login}'")

    async def repo_exists(self, name: str) -> bool:
        return await self._get_optional(f"/repos/{self.config.org}/{name}") is not None

    def _to_repo(self, data: dict[str, Any], *, created: bool) -> Repo:
        return Repo(
            name=data["name"],
            url=data.get("clone_url") or self.clone_url(data["name"]),
            private=data.get("private", True),
            created=created,
        )

    async def create_repo(
        self,
        name: str,
        *,
        private: bool = True,
        description: Optional[str] = None,
    ) -> Repo:
        org = self.config.org
        response = await self._request(
            "POST",
            f"/orgs/{org}/repos",
            json={
                "name": name,
                "private": private,
                "description": description or "",
                "auto_init": False,
            },
            accept=(422,),
        )
        if response.status_code == 422:
            # "name already exists on this account"
            existing = await self._get_optional(f"/repos/{org}/{name}")
            if existing is None:
                self._handle_error_response(response)
            logger.debug(f"Repository {org}/{name} already exists")
            return self._to_repo(existing, created=False)

        logger.debug(f"Created repository {org}/{name}")
        return self._to_repo(response.json(), created=True)

    async def _get_or_create_team(self, name: str, permission: TeamPermission) -> dict[str, Any]:
        org = self.config.org
        slug = slugify(name)

        team = await self._get_optional(f"/orgs/{org}/teams/{slug}")
        if team is not None:
            return team

        response = await self._request(
            "POST",
            f"/orgs/{org}/teams",
            json={"name": name, "privacy": "closed", "permission": permission.value},
            accept=(422,),
        )
        if response.status_code == 422:
            # Created concurrently by another unit of work
            team = await self._get_optional(f"/orgs/{org}/teams/{slug}")
            if team is None:
                self._handle_error_response(response)
            return team

        logger.debug(f"Created team {org}/{slug}")
        return response.json()

    async def ensure_team(
        self,
        name: str,
        members: Sequence[str],
        permission: TeamPermission = TeamPermission.PUSH,
    ) -> Team:
        org = self.config.org
        team = await self._get_or_create_team(name, permission)
        slug = team.get("slug") or slugify(name)

        if team.get("permission") and team["permission"] != permission.value:
            await self._request(
                "PATCH",
                f"/orgs/{org}/teams/{slug}",
                json={"permission": permission.value},
            )

        response = await self._request(
            "GET", f"/orgs/{org}/teams/{slug}/members", params={"per_page": 100}
        )
        current = [m["login"] for m in response.json()]
        to_add, to_remove = self._membership_changes(current, members)

        for username in to_add:
            response = await self._request(
                "PUT",
                f"/orgs/{org}/teams/{slug}/memberships/{username}",
                json={"role": "member"},
                accept=(404,),
            )
            if response.status_code == 404:
                raise NotFoundError(
                    f"User '{username}' not found on {self.web_url}",
                    platform=self.platform_name,
                    status_code=404,
                )
        for username in to_remove:
            await self._request("DELETE", f"/orgs/{org}/teams/{slug}/memberships/{username}")

        if to_add or to_remove:
            logger.debug(f"Team {slug}: added {to_add}, removed {to_remove}")

        return Team(name=team.get("name", name), id=slug, members=list(members), permission=permission)

    async def assign_repo(
        self,
        team_name: str,
        repo_name: str,
        permission: TeamPermission = TeamPermission.PUSH,
    ) -> None:
        org = self.config.org
        await self._request(
            "PUT",
            f"/orgs/{org}/teams/{slugify(team_name)}/repos/{org}/{repo_name}",
            json={"permission": permission.value},
        )
