"""
Platform data models.

Backend-neutral views of the repositories and teams a platform manages.
"""

from typing import Optional

from pydantic import BaseModel, Field

from classroom_repos.teams.models import TeamPermission


class Repo(BaseModel):
    """A repository on a hosting backend."""

    name: str = Field(description="Repository name")
    url: str = Field(description="Clone URL (without credentials) or filesystem path")
    private: bool = Field(default=True, description="Whether the repository is private")
    created: bool = Field(
        default=True,
        description="False when the repository already existed",
    )


class Team(BaseModel):
    """A team or group on a hosting backend."""

    name: str = Field(description="Team display name")
    id: Optional[str] = Field(default=None, description="Backend identifier (slug, id or file)")
    members: list[str] = Field(default_factory=list, description="Member user names")
    permission: TeamPermission = Field(
        default=TeamPermission.PUSH,
        description="Access level the team is granted",
    )
