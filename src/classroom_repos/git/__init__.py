"""
Git interface for repository provisioning.

This module wraps the Git operations used while seeding student
repositories: cloning templates, creating bare repositories for the
local backend and pushing working copies to freshly created remotes.

Example:
    ```python
    from classroom_repos.git import GitRepository, GitCredentials

    creds = GitCredentials(token="ghp_xxxx")
    repo = GitRepository.clone(
        "https://github.com/course/task-1.git",
        "/tmp/task-1",
        credentials=creds,
    )
    repo.push_to("/srv/repos/course/team1-task-1.git")
    ```
"""

from classroom_repos.git.auth import (
    GitCredentials,
    GitProvider,
    inject_credentials,
    mask_credentials,
    redact_credentials,
)
from classroom_repos.git.exceptions import (
    CloneError,
    CommitError,
    GitError,
    PushError,
    RemoteError,
    RepositoryNotFoundError,
)
from classroom_repos.git.repository import GitRepository

__all__ = [
    # Main class
    "GitRepository",
    # Authentication
    "GitCredentials",
    "GitProvider",
    "inject_credentials",
    "mask_credentials",
    "redact_credentials",
    # Exceptions
    "GitError",
    "RepositoryNotFoundError",
    "CloneError",
    "CommitError",
    "PushError",
    "RemoteError",
]
