"""
GitLab platform.

The organization is a GitLab group. Each student team becomes a subgroup
of it, and student projects are shared with their team's subgroup.
"""

import logging
from typing import Any, Optional, Sequence
from urllib.parse import quote

from classroom_repos.git.auth import GitProvider
from classroom_repos.platform.config import PlatformType
from classroom_repos.platform.exceptions import NotFoundError
from classroom_repos.platform.models import Repo, Team
from classroom_repos.platform.rest import RestPlatform
from classroom_repos.teams.models import TeamPermission, slugify

logger = logging.getLogger(__name__)

# Reporter, Developer, Maintainer
ACCESS_LEVELS = {
    TeamPermission.PULL: 20,
    TeamPermission.PUSH: 30,
    TeamPermission.ADMIN: 40,
}


def _encode(path: str) -> str:
    """URL-encode a full namespace path for use as an id."""
    return quote(path, safe="")


class GitLabPlatform(RestPlatform):
    """GitLab REST API v4 platform (gitlab.com or self-hosted)."""

    platform_type = PlatformType.GITLAB
    git_provider = GitProvider.GITLAB

    @property
    def api_url(self) -> str:
        return f"{self.web_url}/api/v4"

    def _auth_headers(self, token: str) -> dict[str, str]:
        return {"PRIVATE-TOKEN": token}

    async def _get_group(self, full_path: str) -> dict[str, Any]:
        group = await self._get_optional(f"/groups/{_encode(full_path)}")
        if group is None:
            raise NotFoundError(
                f"Group '{full_path}' not found on {self.web_url}",
                platform=self.platform_name,
                status_code=404,
            )
        return group

    async def verify_settings(self) -> None:
        self._require_token()
        user = (await self._request("GET", "/user")).json()
        username = user.get("username", "")
        if self.config.user and username and username.lower() != self.config.user.lower():
            logger.warning(
                f"Token belongs to '{username}', not to the configured user '{self.config.user}'"
            )
        await self._get_group(self.config.org)
        logger.info(f"Verified GitLab access to '{self.config.org}' as '{username}'")

    def _project_path(self, name: str) -> str:
        return _encode(f"{self.config.org}/{name}")

    async def repo_exists(self, name: str) -> bool:
        return await self._get_optional(f"/projects/{self._project_path(name)}") is not None

    def _to_repo(self, data: dict[str, Any], *, created: bool) -> Repo:
        name = data.get("path") or data["name"]
        return Repo(
            name=name,
            url=data.get("http_url_to_repo") or self.clone_url(name),
            private=data.get("visibility", "private") != "public",
            created=created,
        )

    async def create_repo(
        self,
        name: str,
        *,
        private: bool = True,
        description: Optional[str] = None,
    ) -> Repo:
        group = await self._get_group(self.config.org)
        response = await self._request(
            "POST",
            "/projects",
            json={
                "name": name,
                "path": name,
                "namespace_id": group["id"],
                "visibility": "private" if private else "public",
                "description": description or "",
            },
            accept=(400, 409),
        )
        if not response.is_success:
            # "has already been taken"
            existing = await self._get_optional(f"/projects/{self._project_path(name)}")
            if existing is None:
                self._handle_error_response(response)
            logger.debug(f"Project {self.config.org}/{name} already exists")
            return self._to_repo(existing, created=False)

        logger.debug(f"Created project {self.config.org}/{name}")
        return self._to_repo(response.json(), created=True)

    async def _get_or_create_subgroup(self, name: str) -> dict[str, Any]:
        path = slugify(name)
        full_path = f"{self.config.org}/{path}"

        group = await self._get_optional(f"/groups/{_encode(full_path)}")
        if group is not None:
            return group

        parent = await self._get_group(self.config.org)
        response = await self._request(
            "POST",
            "/groups",
            json={
                "name": name,
                "path": path,
                "parent_id": parent["id"],
                "visibility": "private",
            },
            accept=(400, 409),
        )
        if not response.is_success:
            group = await self._get_optional(f"/groups/{_encode(full_path)}")
            if group is None:
                self._handle_error_response(response)
            return group

        logger.debug(f"Created subgroup {full_path}")
        return response.json()

    async def _user_id(self, username: str) -> int:
        users = (await self._request("GET", "/users", params={"username": username})).json()
        if not users:
            raise NotFoundError(
                f"User '{username}' not found on {self.web_url}",
                platform=self.platform_name,
                status_code=404,
            )
        return users[0]["id"]

    async def ensure_team(
        self,
        name: str,
        members: Sequence[str],
        permission: TeamPermission = TeamPermission.PUSH,
    ) -> Team:
        group = await self._get_or_create_subgroup(name)
        group_id = group["id"]
        level = ACCESS_LEVELS[permission]

        current = (
            await self._request("GET", f"/groups/{group_id}/members", params={"per_page": 100})
        ).json()
        by_name = {m["username"]: m for m in current}
        to_add, to_remove = self._membership_changes(list(by_name), members)

        for username in to_add:
            user_id = await self._user_id(username)
            response = await self._request(
                "POST",
                f"/groups/{group_id}/members",
                json={"user_id": user_id, "access_level": level},
                accept=(409,),
            )
            if response.status_code == 409:
                await self._request(
                    "PUT",
                    f"/groups/{group_id}/members/{user_id}",
                    json={"access_level": level},
                )

        requested = {m.lower() for m in members}
        for username, member in by_name.items():
            if username.lower() in requested and member.get("access_level") != level:
                await self._request(
                    "PUT",
                    f"/groups/{group_id}/members/{member['id']}",
                    json={"access_level": level},
                )

        for username in to_remove:
            await self._request("DELETE", f"/groups/{group_id}/members/{by_name[username]['id']}")

        if to_add or to_remove:
            logger.debug(f"Subgroup {group.get('full_path')}: added {to_add}, removed {to_remove}")

        return Team(
            name=group.get("name", name),
            id=str(group_id),
            members=list(members),
            permission=permission,
        )

    async def assign_repo(
        self,
        team_name: str,
        repo_name: str,
        permission: TeamPermission = TeamPermission.PUSH,
    ) -> None:
        group = await self._get_group(f"{self.config.org}/{slugify(team_name)}")
        # 409 when the project is already shared with the group
        await self._request(
            "POST",
            f"/projects/{self._project_path(repo_name)}/share",
            json={"group_id": group["id"], "group_access": ACCESS_LEVELS[permission]},
            accept=(409,),
        )
