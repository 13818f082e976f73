"""
Setup of student repositories from templates.

Example:
    ```python
    from classroom_repos.setup import setup_student_repos

    async with create_platform(config) as api:
        result = await setup_student_repos(api, templates, teams, "./classroom-work")

    if not result.is_success():
        for error in result.errors:
            print(error)
    ```
"""

from classroom_repos.setup.cache import TemplateCache
from classroom_repos.setup.models import SetupError, SetupResult, UnitOutcome, UnitStatus
from classroom_repos.setup.orchestrator import (
    DEFAULT_MAX_CONCURRENCY,
    SetupOrchestrator,
    setup_student_repos,
)

__all__ = [
    # Orchestration
    "SetupOrchestrator",
    "setup_student_repos",
    "DEFAULT_MAX_CONCURRENCY",
    # Template cache
    "TemplateCache",
    # Results
    "SetupResult",
    "SetupError",
    "UnitOutcome",
    "UnitStatus",
]
