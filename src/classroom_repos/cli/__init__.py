"""
CLI module for classroom-repos.

Provides the command-line interface for verifying platform settings and
setting up student repositories.
"""

from classroom_repos.cli.main import cli

__all__ = ["cli"]
