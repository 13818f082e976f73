"""
Platform configuration models.

This module provides the Pydantic model describing which hosting backend
to talk to and how to authenticate against it.
"""

from enum import Enum
from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, SecretStr, field_validator


class PlatformType(str, Enum):
    """Supported hosting backends."""

    GITHUB = "github"
    GITLAB = "gitlab"
    GITEA = "gitea"
    LOCAL = "local"


def detect_platform(base_url: str) -> PlatformType:
    """
    Infer the backend from a base URL.

    Filesystem paths and ``file://`` URLs select the local backend;
    otherwise the hostname decides.

    Raises:
        ValueError: If the backend cannot be inferred
    """
    parsed = urlparse(base_url)
    # Single-letter schemes are Windows drive letters
    if parsed.scheme in ("", "file") or len(parsed.scheme) == 1:
        return PlatformType.LOCAL

    hostname = (parsed.hostname or "").lower()
    for platform in (PlatformType.GITHUB, PlatformType.GITLAB, PlatformType.GITEA):
        if platform.value in hostname:
            return platform

    raise ValueError(
        f"Cannot detect platform from {base_url!r}: the URL must contain "
        "'github', 'gitlab' or 'gitea', or be a filesystem path"
    )


class PlatformConfig(BaseModel):
    """
    Configuration for a hosting backend.

    SECURITY: The token is a SecretStr and is masked in string
    representations and logging.

    Example:
        ```python
        # GitHub organization
        config = PlatformConfig(
            platform=PlatformType.GITHUB,
            base_url="https://github.com",
            org="course-2024",
            user="teacher",
            token="ghp_xxxx",
        )

        # Local backend, platform detected from the path
        config = PlatformConfig(base_url="/srv/repos", org="course-2024")
        ```
    """

    model_config = {"extra": "forbid"}

    platform: Optional[PlatformType] = Field(
        default=None,
        description="Backend type (detected from base_url when unset)",
    )
    base_url: str = Field(
        description="Web URL of the hosting service, or base directory for the local backend"
    )
    org: str = Field(
        description="Organization, group or namespace holding the student repositories"
    )
    user: str = Field(
        default="",
        description="Acting user (typically the teacher or an admin)",
    )
    token: Optional[SecretStr] = Field(
        default=None,
        description="Access token (required for GitHub, GitLab and Gitea)",
    )
    timeout: float = Field(
        default=30.0,
        gt=0,
        description="HTTP request timeout in seconds",
    )
    default_branch: str = Field(
        default="main",
        description="Initial branch of repositories created by the local backend",
    )

    @field_validator("base_url")
    @classmethod
    def normalize_url(cls, v: str) -> str:
        """Normalize URL by removing trailing slash."""
        stripped = v.rstrip("/")
        return stripped or v

    @property
    def resolved_platform(self) -> PlatformType:
        """The configured platform, or the one detected from base_url."""
        if self.platform is not None:
            return self.platform
        return detect_platform(self.base_url)

    def get_token(self) -> Optional[str]:
        """Get the token as a plain string. Internal use only."""
        if self.token:
            return self.token.get_secret_value()
        return None

    def with_overrides(self, **kwargs) -> "PlatformConfig":
        """Create a copy with some fields replaced."""
        return self.model_copy(update=kwargs)

    def __repr__(self) -> str:
        """Safe representation that hides the token."""
        token = "'***'" if self.token else "None"
        return (
            f"PlatformConfig(platform={self.platform!r}, base_url={self.base_url!r}, "
            f"org={self.org!r}, user={self.user!r}, token={token})"
        )

    def __str__(self) -> str:
        """Safe string representation."""
        platform = self.platform.value if self.platform else "auto"
        return f"PlatformConfig(platform={platform}, base_url={self.base_url}, org={self.org})"
