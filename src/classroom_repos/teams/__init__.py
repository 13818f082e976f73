"""
Teams, templates and the student repositories derived from them.

Example:
    ```python
    from classroom_repos.teams import parse_team, TemplateRepo, StudentRepo

    team = parse_team("team1:alice,bob")
    template = TemplateRepo(location="https://github.com/course/task-1.git")
    repo = StudentRepo.derive(team, template)
    print(repo.name)  # team1-task-1
    ```
"""

from classroom_repos.teams.exceptions import InvalidInputError
from classroom_repos.teams.models import (
    DEFAULT_REPO_NAME_FORMAT,
    StudentRepo,
    StudentTeam,
    TeamPermission,
    TemplateRepo,
    derive_team_name,
    slugify,
    template_name_from_location,
)
from classroom_repos.teams.roster import (
    load_teams_file,
    parse_team,
    parse_teams,
    parse_templates,
    resolve_template_locations,
    teams_from_data,
)

__all__ = [
    # Models
    "StudentTeam",
    "TemplateRepo",
    "StudentRepo",
    "TeamPermission",
    "DEFAULT_REPO_NAME_FORMAT",
    "derive_team_name",
    "slugify",
    "template_name_from_location",
    # Roster input
    "parse_team",
    "parse_teams",
    "parse_templates",
    "load_teams_file",
    "teams_from_data",
    "resolve_template_locations",
    # Exceptions
    "InvalidInputError",
]
