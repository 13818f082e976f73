"""
classroom-repos - bulk student repository provisioning.

This package creates one repository per student team and template on
GitHub, GitLab, Gitea or a local directory, grants the team access and
seeds the repository with the template content.
"""

__version__ = "0.1.0"

from classroom_repos.teams import (
    InvalidInputError,
    StudentRepo,
    StudentTeam,
    TeamPermission,
    TemplateRepo,
    load_teams_file,
    parse_team,
    parse_teams,
    parse_templates,
)

from classroom_repos.git import (
    GitRepository,
    GitCredentials,
    GitProvider,
    GitError,
    CloneError,
    PushError,
)

from classroom_repos.platform import (
    PlatformAPI,
    PlatformConfig,
    PlatformType,
    PlatformError,
    AuthenticationError,
    NotFoundError,
    PermissionDenied,
    RateLimited,
    BackendError,
    create_platform,
    detect_platform,
    list_platforms,
)

from classroom_repos.setup import (
    SetupError,
    SetupOrchestrator,
    SetupResult,
    TemplateCache,
    setup_student_repos,
)

from classroom_repos.settings import ClassroomConfig, SetupSettings

__all__ = [
    # Version
    "__version__",
    # Teams
    "StudentTeam",
    "TemplateRepo",
    "StudentRepo",
    "TeamPermission",
    "parse_team",
    "parse_teams",
    "parse_templates",
    "load_teams_file",
    "InvalidInputError",
    # Git
    "GitRepository",
    "GitCredentials",
    "GitProvider",
    "GitError",
    "CloneError",
    "PushError",
    # Platforms
    "PlatformAPI",
    "PlatformConfig",
    "PlatformType",
    "create_platform",
    "detect_platform",
    "list_platforms",
    "PlatformError",
    "AuthenticationError",
    "NotFoundError",
    "PermissionDenied",
    "RateLimited",
    "BackendError",
    # Setup
    "SetupOrchestrator",
    "setup_student_repos",
    "TemplateCache",
    "SetupResult",
    "SetupError",
    # Settings
    "ClassroomConfig",
    "SetupSettings",
]
