"""
Roster and template input.

This module turns the user-facing input formats into model objects:

- inline team strings: ``"team1:alice,bob"`` or ``"alice,bob"`` (name derived)
- team files: a JSON or YAML list of ``{name, members}`` objects
- template references: explicit locations, or assignment names resolved
  against a template group

All parse failures are reported as ``InvalidInputError``.
"""

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Optional, Union

import yaml
from pydantic import ValidationError

from classroom_repos.teams.exceptions import InvalidInputError
from classroom_repos.teams.models import StudentTeam, TemplateRepo

logger = logging.getLogger(__name__)


def _validation_message(e: ValidationError) -> str:
    return "; ".join(err["msg"] for err in e.errors())


def parse_team(value: str) -> StudentTeam:
    """
    Parse an inline team definition.

    Args:
        value: ``"name:member1,member2"`` or ``"member1,member2"``

    Returns:
        StudentTeam

    Raises:
        InvalidInputError: If the team has no members or duplicates
    """
    if ":" in value:
        name, members_str = value.split(":", 1)
        name = name.strip()
        if not name:
            raise InvalidInputError("Team name before ':' is empty", source=value)
    else:
        name, members_str = "", value

    members = [m.strip() for m in members_str.split(",") if m.strip()]
    try:
        return StudentTeam(name=name, members=members)
    except ValidationError as e:
        raise InvalidInputError(
            f"Invalid team '{value}': {_validation_message(e)}", source=value
        )


def parse_teams(values: Iterable[str]) -> list[StudentTeam]:
    """Parse several inline team definitions, keeping their order."""
    return [parse_team(v) for v in values]


def teams_from_data(data: Any, source: Optional[str] = None) -> list[StudentTeam]:
    """
    Build teams from already-decoded file content.

    Each entry is either a mapping with ``members`` (and optionally
    ``name``) or a bare list of members.
    """
    if not isinstance(data, list):
        raise InvalidInputError("Teams file must contain a list of teams", source=source)

    teams = []
    for index, entry in enumerate(data):
        if isinstance(entry, list):
            entry = {"members": entry}
        if not isinstance(entry, dict) or "members" not in entry:
            raise InvalidInputError(
                f"Team #{index + 1} must be an object with a 'members' list",
                source=source,
            )
        try:
            teams.append(StudentTeam(name=entry.get("name") or "", members=entry["members"]))
        except ValidationError as e:
            raise InvalidInputError(
                f"Invalid team #{index + 1}: {_validation_message(e)}", source=source
            )
    return teams


def load_teams_file(path: Union[str, Path]) -> list[StudentTeam]:
    """
    Load teams from a JSON or YAML file.

    File format (YAML):
        ```yaml
        - name: team1
          members: [alice]
        - members: [bob, carol]   # name derived: bob-carol
        ```

    Raises:
        FileNotFoundError: If the file doesn't exist
        InvalidInputError: If the content cannot be parsed
    """
    path = Path(path).expanduser().resolve()

    if not path.exists():
        raise FileNotFoundError(f"Teams file not found: {path}")

    content = path.read_text()

    try:
        if path.suffix == ".json":
            data = json.loads(content)
        elif path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content)
        else:
            # Try YAML first, then JSON
            try:
                data = yaml.safe_load(content)
            except yaml.YAMLError:
                data = json.loads(content)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise InvalidInputError(f"Failed to parse teams file: {e}", source=str(path))

    teams = teams_from_data(data, source=str(path))
    logger.debug(f"Loaded {len(teams)} team(s) from {path}")
    return teams


def resolve_template_locations(
    assignments: Iterable[str],
    *,
    base_url: str,
    org: str,
    template_group: Optional[str] = None,
) -> list[str]:
    """
    Build template locations from assignment names.

    - no template group: ``{base_url}/{org}/{assignment}``
    - absolute path group: ``{template_group}/{assignment}``
    - relative group: ``{base_url}/{template_group}/{assignment}``
    """
    base_url = base_url.rstrip("/")
    locations = []
    for assignment in assignments:
        assignment = assignment.strip()
        if not assignment:
            continue
        if not template_group:
            locations.append(f"{base_url}/{org}/{assignment}")
        elif template_group.startswith("/"):
            locations.append(f"{template_group.rstrip('/')}/{assignment}")
        else:
            locations.append(f"{base_url}/{template_group.strip('/')}/{assignment}")
    return locations


def parse_templates(locations: Iterable[str]) -> list[TemplateRepo]:
    """Create template references, keeping their order."""
    templates = []
    for location in locations:
        try:
            templates.append(TemplateRepo(location=location))
        except ValidationError as e:
            raise InvalidInputError(
                f"Invalid template '{location}': {_validation_message(e)}",
                source=location,
            )
    return templates
