"""
Setup run results.

A run produces one outcome per unit of work (one team and one template);
the outcomes are folded into a ``SetupResult`` once all workers are done.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional


class UnitStatus(str, Enum):
    """Final state of a unit of work."""

    CREATED = "created"
    EXISTING = "existing"
    FAILED = "failed"


@dataclass(frozen=True)
class SetupError:
    """A failure attributed to one student repository."""

    team_name: str
    repo_name: str
    error: str
    kind: str = "Error"

    def __str__(self) -> str:
        return f"{self.team_name}/{self.repo_name}: {self.error}"


@dataclass(frozen=True)
class UnitOutcome:
    """What happened to a single unit of work."""

    team_name: str
    repo_name: str
    status: UnitStatus
    error: Optional[SetupError] = None

    @classmethod
    def failed(cls, team_name: str, repo_name: str, exc: BaseException) -> "UnitOutcome":
        error = SetupError(
            team_name=team_name,
            repo_name=repo_name,
            error=str(exc) or type(exc).__name__,
            kind=type(exc).__name__,
        )
        return cls(team_name, repo_name, UnitStatus.FAILED, error)


@dataclass
class SetupResult:
    """
    Aggregated result of a setup run.

    For a run that was not cancelled, every student repository is in
    exactly one of ``successful_repos``, ``existing_repos`` or ``errors``.

    Example:
        ```python
        result = await setup_student_repos(api, templates, teams, work_dir)
        if not result.is_success():
            for error in result.errors:
                print(error)
        ```
    """

    successful_repos: set[str] = field(default_factory=set)
    existing_repos: set[str] = field(default_factory=set)
    errors: list[SetupError] = field(default_factory=list)
    cancelled: bool = False
    pending_repos: set[str] = field(default_factory=set)

    @classmethod
    def from_outcomes(
        cls,
        outcomes: Iterable[UnitOutcome],
        *,
        cancelled: bool = False,
        pending_repos: Iterable[str] = (),
    ) -> "SetupResult":
        result = cls(cancelled=cancelled, pending_repos=set(pending_repos))
        for outcome in outcomes:
            if outcome.status == UnitStatus.CREATED:
                result.successful_repos.add(outcome.repo_name)
            elif outcome.status == UnitStatus.EXISTING:
                result.existing_repos.add(outcome.repo_name)
            elif outcome.error is not None:
                result.errors.append(outcome.error)
        result.errors.sort(key=lambda e: e.repo_name)
        return result

    def is_success(self) -> bool:
        """True when no unit failed."""
        return not self.errors

    @property
    def total(self) -> int:
        return (
            len(self.successful_repos)
            + len(self.existing_repos)
            + len(self.errors)
            + len(self.pending_repos)
        )

    def summary(self) -> str:
        """One-line count of created, existing and failed repositories."""
        text = (
            f"{len(self.successful_repos)} created, "
            f"{len(self.existing_repos)} existing, "
            f"{len(self.errors)} failed"
        )
        if self.cancelled:
            text += f", {len(self.pending_repos)} not started (cancelled)"
        return text
