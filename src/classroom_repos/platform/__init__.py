"""
Hosting platform abstraction layer.

Every backend (GitHub, GitLab, Gitea, local filesystem) implements the
same capability set, so the setup logic never branches on the backend.

Example:
    ```python
    from classroom_repos.platform import PlatformConfig, create_platform

    config = PlatformConfig(
        base_url="https://github.com",
        org="course-2024",
        user="teacher",
        token="ghp_xxxx",
    )
    async with create_platform(config) as api:
        await api.verify_settings()
        print(await api.repo_exists("alice-bob-task-1"))
    ```
"""

from classroom_repos.platform.base import PlatformAPI
from classroom_repos.platform.config import PlatformConfig, PlatformType, detect_platform
from classroom_repos.platform.exceptions import (
    AuthenticationError,
    BackendError,
    NotFoundError,
    PermissionDenied,
    PlatformError,
    PlatformNotFoundError,
    RateLimited,
)
from classroom_repos.platform.factory import (
    create_platform,
    is_platform_registered,
    list_platforms,
    register_platform,
)
from classroom_repos.platform.gitea import GiteaPlatform
from classroom_repos.platform.github import GitHubPlatform
from classroom_repos.platform.gitlab import GitLabPlatform
from classroom_repos.platform.local import LocalPlatform
from classroom_repos.platform.models import Repo, Team
from classroom_repos.platform.rest import RestPlatform

__all__ = [
    # Base
    "PlatformAPI",
    "RestPlatform",
    # Config
    "PlatformConfig",
    "PlatformType",
    "detect_platform",
    # Models
    "Repo",
    "Team",
    # Backends
    "GitHubPlatform",
    "GitLabPlatform",
    "GiteaPlatform",
    "LocalPlatform",
    # Factory
    "create_platform",
    "register_platform",
    "list_platforms",
    "is_platform_registered",
    # Exceptions
    "PlatformError",
    "AuthenticationError",
    "NotFoundError",
    "PermissionDenied",
    "RateLimited",
    "BackendError",
    "PlatformNotFoundError",
]
