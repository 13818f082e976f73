"""
Classroom repository configuration.

This module provides configuration management for a setup run: which
platform to talk to, and how the student repositories are derived and
created.
"""

import json
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from classroom_repos.platform.config import PlatformConfig, PlatformType
from classroom_repos.setup.orchestrator import DEFAULT_MAX_CONCURRENCY
from classroom_repos.teams.models import (
    DEFAULT_REPO_NAME_FORMAT,
    StudentTeam,
    TeamPermission,
    TemplateRepo,
)
from classroom_repos.teams.roster import (
    load_teams_file,
    parse_teams,
    parse_templates,
    resolve_template_locations,
)

DEFAULT_WORK_DIR = Path("classroom-work")
ENV_PREFIX = "CLASSROOM_REPOS_"


class SetupSettings(BaseModel):
    """
    Settings of a setup run.

    Example:
        ```python
        settings = SetupSettings(
            teams_file="teams.yaml",
            assignments=["task-1", "task-2"],
            template_group="course-2024-templates",
        )
        ```
    """

    model_config = {"extra": "forbid"}

    work_dir: Path = Field(
        default=DEFAULT_WORK_DIR,
        description="Work area for template clones and working copies",
    )
    private: bool = Field(
        default=True,
        description="Create private repositories",
    )
    max_concurrency: int = Field(
        default=DEFAULT_MAX_CONCURRENCY,
        ge=1,
        description="Number of repositories set up at the same time",
    )
    permission: TeamPermission = Field(
        default=TeamPermission.PUSH,
        description="Access level granted to student teams",
    )
    teams_file: Optional[Path] = Field(
        default=None,
        description="JSON or YAML file listing the teams",
    )
    teams: list[str] = Field(
        default_factory=list,
        description="Inline teams ('name:alice,bob' or 'alice,bob')",
    )
    templates: list[str] = Field(
        default_factory=list,
        description="Template repository URLs or paths",
    )
    assignments: list[str] = Field(
        default_factory=list,
        description="Assignment names resolved against the template group",
    )
    template_group: Optional[str] = Field(
        default=None,
        description="Group or path holding the template repositories",
    )
    name_format: str = Field(
        default=DEFAULT_REPO_NAME_FORMAT,
        description="Repository name format with {team} and {template}",
    )

    @field_validator("name_format")
    @classmethod
    def check_name_format(cls, v: str) -> str:
        if "{team}" not in v or "{template}" not in v:
            raise ValueError("name_format must contain {team} and {template}")
        return v

    def load_teams(self) -> list[StudentTeam]:
        """Teams from the teams file followed by the inline teams."""
        teams = load_teams_file(self.teams_file) if self.teams_file else []
        return teams + parse_teams(self.teams)

    def load_templates(self, platform: PlatformConfig) -> list[TemplateRepo]:
        """Explicit templates followed by the resolved assignments."""
        locations = list(self.templates) + resolve_template_locations(
            self.assignments,
            base_url=platform.base_url,
            org=platform.org,
            template_group=self.template_group,
        )
        return parse_templates(locations)


class _EnvSettings(BaseSettings):
    """Flat view of the configuration as environment variables."""

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, extra="ignore")

    platform: Optional[PlatformType] = None
    base_url: Optional[str] = None
    org: Optional[str] = None
    user: str = ""
    token: Optional[SecretStr] = None
    timeout: float = 30.0
    default_branch: str = "main"

    work_dir: Path = DEFAULT_WORK_DIR
    private: bool = True
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    permission: TeamPermission = TeamPermission.PUSH
    teams_file: Optional[Path] = None
    # Comma-separated
    teams: str = ""
    templates: str = ""
    assignments: str = ""
    template_group: Optional[str] = None
    name_format: str = DEFAULT_REPO_NAME_FORMAT


def _split(value: str, separator: str = ",") -> list[str]:
    return [item.strip() for item in value.split(separator) if item.strip()]


class ClassroomConfig(BaseModel):
    """
    Complete configuration of a setup run.

    SECURITY: The platform token is a SecretStr. String representations
    mask it.

    Example:
        ```python
        config = ClassroomConfig.from_file("classroom.yaml")
        async with create_platform(config.platform) as api:
            ...
        ```
    """

    model_config = {"extra": "forbid"}

    platform: PlatformConfig = Field(
        description="Hosting platform configuration"
    )
    setup: SetupSettings = Field(
        default_factory=SetupSettings,
        description="Setup run settings"
    )

    def __repr__(self) -> str:
        """Safe representation that hides the token."""
        return f"ClassroomConfig(platform={self.platform!r}, setup={self.setup!r})"

    def __str__(self) -> str:
        """Safe string representation."""
        return f"ClassroomConfig(platform={self.platform}, work_dir={self.setup.work_dir})"

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ClassroomConfig":
        """
        Load configuration from a YAML or JSON file.

        File format (YAML):
            ```yaml
            platform:
              base_url: https://gitlab.example.com
              org: course-2024
              user: teacher
              token: glpat-xxxx

            setup:
              teams_file: teams.yaml
              assignments: [task-1, task-2]
              template_group: course-2024/templates
              max_concurrency: 8
            ```

        Raises:
            FileNotFoundError: If the config file doesn't exist
        """
        path = Path(path).expanduser().resolve()

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        content = path.read_text()

        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content)
        elif path.suffix == ".json":
            data = json.loads(content)
        else:
            # Try YAML first, then JSON
            try:
                data = yaml.safe_load(content)
            except yaml.YAMLError:
                data = json.loads(content)

        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: dict) -> "ClassroomConfig":
        """Create configuration from a dictionary."""
        return cls(**data)

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> "ClassroomConfig":
        """
        Load configuration from environment variables.

        Environment variables:
            CLASSROOM_REPOS_PLATFORM - github, gitlab, gitea or local (detected if unset)
            CLASSROOM_REPOS_BASE_URL - Web URL or base directory (required)
            CLASSROOM_REPOS_ORG - Organization or group (required)
            CLASSROOM_REPOS_USER - Acting user
            CLASSROOM_REPOS_TOKEN - Access token
            CLASSROOM_REPOS_TIMEOUT - HTTP timeout in seconds

            CLASSROOM_REPOS_WORK_DIR - Work area
            CLASSROOM_REPOS_PRIVATE - Create private repositories
            CLASSROOM_REPOS_MAX_CONCURRENCY - Parallel setups
            CLASSROOM_REPOS_TEAMS_FILE - Teams file
            CLASSROOM_REPOS_TEAMS - Inline teams separated by ';'
            CLASSROOM_REPOS_TEMPLATES - Comma-separated template locations
            CLASSROOM_REPOS_ASSIGNMENTS - Comma-separated assignment names
            CLASSROOM_REPOS_TEMPLATE_GROUP - Template group

        Raises:
            ValueError: If required environment variables are missing
        """
        env = _EnvSettings(_env_prefix=prefix)

        missing = [name for name in ("base_url", "org") if not getattr(env, name)]
        if missing:
            names = ", ".join(f"{prefix}{name.upper()}" for name in missing)
            raise ValueError(f"Missing required environment variable(s): {names}")

        platform = PlatformConfig(
            platform=env.platform,
            base_url=env.base_url,
            org=env.org,
            user=env.user,
            token=env.token,
            timeout=env.timeout,
            default_branch=env.default_branch,
        )
        setup = SetupSettings(
            work_dir=env.work_dir,
            private=env.private,
            max_concurrency=env.max_concurrency,
            permission=env.permission,
            teams_file=env.teams_file,
            # Team members are comma-separated, so teams use ';'
            teams=_split(env.teams, ";"),
            templates=_split(env.templates),
            assignments=_split(env.assignments),
            template_group=env.template_group,
            name_format=env.name_format,
        )
        return cls(platform=platform, setup=setup)
