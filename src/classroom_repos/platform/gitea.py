"""
Gitea platform.

Also works against Forgejo, which keeps the Gitea API.
"""

import logging
from typing import Any, Optional, Sequence

from classroom_repos.git.auth import GitProvider
from classroom_repos.platform.config import PlatformType
from classroom_repos.platform.exceptions import NotFoundError
from classroom_repos.platform.models import Repo, Team
from classroom_repos.platform.rest import RestPlatform
from classroom_repos.teams.models import TeamPermission

logger = logging.getLogger(__name__)

PERMISSIONS = {
    TeamPermission.PULL: "read",
    TeamPermission.PUSH: "write",
    TeamPermission.ADMIN: "admin",
}

TEAM_UNITS = [
    "repo.code",
    "repo.issues",
    "repo.pulls",
    "repo.releases",
    "repo.wiki",
]


class GiteaPlatform(RestPlatform):
    """Gitea REST API v1 platform."""

    platform_type = PlatformType.GITEA
    git_provider = GitProvider.GITEA

    @property
    def api_url(self) -> str:
        return f"{self.web_url}/api/v1"

    def _auth_headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"token {token}"}

    def _push_username(self) -> Optional[str]:
        return self.config.user or None

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
        logger.info(f"Verified Gitea access to '{org}' as '{login}'")

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
            json={"name": name, "private": private, "description": description or ""},
            accept=(409,),
        )
        if response.status_code == 409:
            existing = await self._get_optional(f"/repos/{org}/{name}")
            if existing is None:
                self._handle_error_response(response)
            logger.debug(f"Repository {org}/{name} already exists")
            return self._to_repo(existing, created=False)

        logger.debug(f"Created repository {org}/{name}")
        return self._to_repo(response.json(), created=True)

    async def _find_team(self, name: str) -> Optional[dict[str, Any]]:
        response = await self._request(
            "GET", f"/orgs/{self.config.org}/teams/search", params={"q": name}
        )
        for team in response.json().get("data") or []:
            if team.get("name", "").lower() == name.lower():
                return team
        return None

    def _team_payload(self, name: str, permission: TeamPermission) -> dict[str, Any]:
        return {
            "name": name,
            "permission": PERMISSIONS[permission],
            "units": TEAM_UNITS,
            "includes_all_repositories": False,
        }

    async def ensure_team(
        self,
        name: str,
        members: Sequence[str],
        permission: TeamPermission = TeamPermission.PUSH,
    ) -> Team:
        org = self.config.org
        team = await self._find_team(name)

        if team is None:
            response = await self._request(
                "POST",
                f"/orgs/{org}/teams",
                json=self._team_payload(name, permission),
                accept=(409, 422),
            )
            if response.is_success:
                team = response.json()
                logger.debug(f"Created team {org}/{name}")
            else:
                team = await self._find_team(name)
                if team is None:
                    self._handle_error_response(response)
        elif team.get("permission") != PERMISSIONS[permission]:
            await self._request(
                "PATCH",
                f"/teams/{team['id']}",
                json=self._team_payload(team["name"], permission),
            )

        team_id = team["id"]
        current = [m["login"] for m in (await self._request("GET", f"/teams/{team_id}/members")).json()]
        to_add, to_remove = self._membership_changes(current, members)

        for username in to_add:
            response = await self._request(
                "PUT", f"/teams/{team_id}/members/{username}", accept=(404, 422)
            )
            if not response.is_success:
                raise NotFoundError(
                    f"User '{username}' not found on {self.web_url}",
                    platform=self.platform_name,
                    status_code=response.status_code,
                )
        for username in to_remove:
            await self._request("DELETE", f"/teams/{team_id}/members/{username}")

        if to_add or to_remove:
            logger.debug(f"Team {name}: added {to_add}, removed {to_remove}")

        return Team(name=team.get("name", name), id=str(team_id), members=list(members), permission=permission)

    async def assign_repo(
        self,
        team_name: str,
        repo_name: str,
        permission: TeamPermission = TeamPermission.PUSH,
    ) -> None:
        team = await self._find_team(team_name)
        if team is None:
            raise NotFoundError(
                f"Team '{team_name}' not found in '{self.config.org}'",
                platform=self.platform_name,
                status_code=404,
            )
        await self._request("PUT", f"/teams/{team['id']}/repos/{self.config.org}/{repo_name}")
