"""
Team and repository models.

This module defines the Pydantic value types that describe a setup run:
student teams, template repositories, the student repositories derived
from them, and the permission levels granted to teams.
"""

import re
from enum import Enum
from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_REPO_NAME_FORMAT = "{team}-{template}"


class TeamPermission(str, Enum):
    """Access level granted to a team on its repositories."""

    PULL = "pull"
    PUSH = "push"
    ADMIN = "admin"


def derive_team_name(members: Sequence[str]) -> str:
    """Derive a deterministic team name from its members."""
    return "-".join(sorted(members))


def slugify(value: str) -> str:
    """
    Convert a name to a URL- and filesystem-safe slug.

    Mirrors how hosting backends derive team slugs.
    """
    slug = value.strip()
    if slug.endswith(".git"):
        slug = slug[:-4]
    slug = re.sub(r"[^a-zA-Z0-9\-_]+", "-", slug)
    return slug.strip("-").lower()


def _clean_members(members) -> tuple[str, ...]:
    if isinstance(members, str):
        members = members.split(",")
    return tuple(str(m).strip() for m in members if str(m).strip())


def template_name_from_location(location: str) -> str:
    """
    Get the template name from a URL or path.

    The name is the final path segment with any ``.git`` suffix removed.
    """
    segment = location.strip().rstrip("/\\")
    segment = segment.replace("\\", "/").rsplit("/", 1)[-1]
    # scp-like SSH locations: git@host:template.git
    segment = segment.rsplit(":", 1)[-1]
    if segment.endswith(".git"):
        segment = segment[:-4]
    return segment


class StudentTeam(BaseModel):
    """
    A team of students that shares repositories.

    Example:
        ```python
        team = StudentTeam(name="team1", members=["alice", "bob"])

        # Name derived from the sorted members
        StudentTeam(members=["bob", "alice"]).name  # "alice-bob"
        ```
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="", description="Team name (derived from members if empty)")
    members: tuple[str, ...] = Field(description="Git hosting user names of the members")

    @model_validator(mode="before")
    @classmethod
    def fill_name(cls, data):
        if not isinstance(data, dict):
            return data
        members = _clean_members(data.get("members") or ())
        name = (data.get("name") or "").strip()
        return {**data, "name": name or derive_team_name(members), "members": members}

    @field_validator("members")
    @classmethod
    def check_members(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if not v:
            raise ValueError("team must have at least one member")
        duplicates = sorted({m for m in v if v.count(m) > 1})
        if duplicates:
            raise ValueError(f"duplicate members: {', '.join(duplicates)}")
        return v

    @classmethod
    def from_members(
        cls, members: Sequence[str], name: Optional[str] = None
    ) -> "StudentTeam":
        """Create a team, deriving the name when none is given."""
        return cls(name=name or "", members=tuple(members))

    def __str__(self) -> str:
        return self.name


class TemplateRepo(BaseModel):
    """A template repository holding assignment scaffolding."""

    model_config = ConfigDict(frozen=True)

    location: str = Field(description="URL or local path of the template")
    name: str = Field(default="", description="Template name (derived from location)")

    @model_validator(mode="before")
    @classmethod
    def fill_name(cls, data):
        if isinstance(data, dict) and not data.get("name"):
            location = str(data.get("location") or "")
            data = {**data, "name": template_name_from_location(location)}
        return data

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        if not v:
            raise ValueError("cannot derive a template name from an empty location")
        return v

    @classmethod
    def from_location(cls, location: str) -> "TemplateRepo":
        return cls(location=location)

    def __str__(self) -> str:
        return self.name


class StudentRepo(BaseModel):
    """
    A repository derived for one (team, template) pair.

    The team is a back-reference used for permission assignment.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Repository name on the backend")
    team: StudentTeam = Field(description="Team that gets access to the repository")
    template: TemplateRepo = Field(description="Template the repository is seeded from")

    @classmethod
    def derive(
        cls,
        team: StudentTeam,
        template: TemplateRepo,
        name_format: str = DEFAULT_REPO_NAME_FORMAT,
    ) -> "StudentRepo":
        """Compute the student repository for a team and a template."""
        name = name_format.format(team=team.name, template=template.name)
        return cls(name=name, team=team, template=template)

    def __str__(self) -> str:
        return self.name
