"""
Settings and configuration for classroom-repos.

Example:
    ```python
    from classroom_repos.settings import ClassroomConfig

    # From a file
    config = ClassroomConfig.from_file("classroom.yaml")

    # From CLASSROOM_REPOS_* environment variables
    config = ClassroomConfig.from_env()

    teams = config.setup.load_teams()
    templates = config.setup.load_templates(config.platform)
    ```
"""

from classroom_repos.settings.config import (
    DEFAULT_WORK_DIR,
    ENV_PREFIX,
    ClassroomConfig,
    SetupSettings,
)

__all__ = [
    "ClassroomConfig",
    "SetupSettings",
    "DEFAULT_WORK_DIR",
    "ENV_PREFIX",
]
