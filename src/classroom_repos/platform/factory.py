"""
Platform factory.

This module creates platform instances from configuration. Backends are
kept in a registry so that additional ones can be plugged in.
"""

from typing import Callable, Optional

import httpx

from classroom_repos.platform.base import PlatformAPI
from classroom_repos.platform.config import PlatformConfig, PlatformType
from classroom_repos.platform.exceptions import PlatformNotFoundError
from classroom_repos.platform.gitea import GiteaPlatform
from classroom_repos.platform.github import GitHubPlatform
from classroom_repos.platform.gitlab import GitLabPlatform
from classroom_repos.platform.local import LocalPlatform


# Factory functions receive the config and an optional HTTP transport
PlatformFactory = Callable[[PlatformConfig, Optional[httpx.AsyncBaseTransport]], PlatformAPI]

_PLATFORM_REGISTRY: dict[PlatformType, PlatformFactory] = {}


def register_platform(
    platform_type: PlatformType,
    factory: Optional[PlatformFactory] = None,
) -> Callable[[PlatformFactory], PlatformFactory]:
    """
    Register a platform factory for a given platform type.

    Can be used as a decorator or called directly.

    Example:
        ```python
        @register_platform(PlatformType.GITEA)
        def create_forgejo(config, transport=None):
            return ForgejoPlatform(config, transport=transport)
        ```
    """

    def decorator(func: PlatformFactory) -> PlatformFactory:
        _PLATFORM_REGISTRY[platform_type] = func
        return func

    if factory is not None:
        return decorator(factory)
    return decorator


def create_platform(
    config: PlatformConfig,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> PlatformAPI:
    """
    Create a platform based on configuration.

    The platform type is taken from ``config.platform`` or detected from
    ``config.base_url``.

    Args:
        config: Platform configuration
        transport: Optional httpx transport for REST backends (used by tests)

    Raises:
        PlatformNotFoundError: If no backend is registered for the type
        ValueError: If the type cannot be detected from the base URL

    Example:
        ```python
        config = PlatformConfig(base_url="https://gitlab.com", org="course", token="glpat-x")
        async with create_platform(config) as api:
            await api.verify_settings()
        ```
    """
    platform_type = config.resolved_platform
    factory = _PLATFORM_REGISTRY.get(platform_type)
    if factory is None:
        available = ", ".join(list_platforms())
        raise PlatformNotFoundError(
            f"Unknown platform type: {platform_type.value}. Available platforms: {available}",
            platform=platform_type.value,
        )
    return factory(config, transport)


@register_platform(PlatformType.GITHUB)
def _create_github_platform(config, transport=None) -> PlatformAPI:
    return GitHubPlatform(config, transport=transport)


@register_platform(PlatformType.GITLAB)
def _create_gitlab_platform(config, transport=None) -> PlatformAPI:
    return GitLabPlatform(config, transport=transport)


@register_platform(PlatformType.GITEA)
def _create_gitea_platform(config, transport=None) -> PlatformAPI:
    return GiteaPlatform(config, transport=transport)


@register_platform(PlatformType.LOCAL)
def _create_local_platform(config, transport=None) -> PlatformAPI:
    """Create the filesystem platform (no HTTP involved)."""
    return LocalPlatform(config)


def list_platforms() -> list[str]:
    """List all registered platform types."""
    return [p.value for p in _PLATFORM_REGISTRY.keys()]


def is_platform_registered(platform_type: PlatformType) -> bool:
    """Check if a platform type is registered."""
    return platform_type in _PLATFORM_REGISTRY
