"""Tests for settings and configuration."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from classroom_repos.platform import PlatformConfig, PlatformType
from classroom_repos.settings import ClassroomConfig, SetupSettings
from classroom_repos.teams import TeamPermission


class TestSetupSettings:
    """Tests for SetupSettings."""

    def test_defaults(self):
        """Test default values."""
        settings = SetupSettings()
        assert settings.work_dir == Path("classroom-work")
        assert settings.private is True
        assert settings.max_concurrency == 8
        assert settings.permission == TeamPermission.PUSH
        assert settings.name_format == "{team}-{template}"

    def test_max_concurrency_must_be_positive(self):
        """Test the concurrency lower bound."""
        with pytest.raises(ValidationError):
            SetupSettings(max_concurrency=0)

    def test_name_format_placeholders(self):
        """Test that both placeholders are required."""
        with pytest.raises(ValidationError):
            SetupSettings(name_format="{team}")

    def test_load_teams(self, tmp_path):
        """Test teams from a file followed by inline teams."""
        teams_file = tmp_path / "teams.yaml"
        teams_file.write_text("- name: t1\n  members: [alice]\n")
        settings = SetupSettings(teams_file=teams_file, teams=["bob,carol"])

        teams = settings.load_teams()

        assert [t.name for t in teams] == ["t1", "bob-carol"]

    def test_load_templates(self):
        """Test explicit templates followed by resolved assignments."""
        platform = PlatformConfig(base_url="https://gitlab.com", org="course")
        settings = SetupSettings(
            templates=["/srv/templates/intro"],
            assignments=["task-1"],
            template_group="course/templates",
        )

        templates = settings.load_templates(platform)

        assert [t.location for t in templates] == [
            "/srv/templates/intro",
            "https://gitlab.com/course/templates/task-1",
        ]


class TestClassroomConfig:
    """Tests for ClassroomConfig."""

    def test_from_dict(self):
        """Test creating configuration from a dictionary."""
        config = ClassroomConfig.from_dict({
            "platform": {"base_url": "https://github.com", "org": "course", "token": "ghp_x"},
            "setup": {"assignments": ["task-1"], "max_concurrency": 4},
        })
        assert config.platform.resolved_platform == PlatformType.GITHUB
        assert config.setup.max_concurrency == 4

    def test_setup_section_optional(self):
        """Test that the setup section has defaults."""
        config = ClassroomConfig.from_dict({"platform": {"base_url": "/srv", "org": "c"}})
        assert config.setup == SetupSettings()

    def test_from_yaml_file(self, tmp_path):
        """Test loading configuration from YAML."""
        path = tmp_path / "classroom.yaml"
        path.write_text(
            "platform:\n"
            "  base_url: https://gitea.example.com\n"
            "  org: course\n"
            "  user: teacher\n"
            "  token: secret\n"
            "setup:\n"
            "  templates:\n"
            "    - https://gitea.example.com/templates/task-1\n"
            "  private: false\n"
        )
        config = ClassroomConfig.from_file(path)

        assert config.platform.resolved_platform == PlatformType.GITEA
        assert config.platform.get_token() == "secret"
        assert config.setup.private is False

    def test_from_json_file(self, tmp_path):
        """Test loading configuration from JSON."""
        path = tmp_path / "classroom.json"
        path.write_text(json.dumps({"platform": {"base_url": "/srv/repos", "org": "course"}}))
        config = ClassroomConfig.from_file(path)
        assert config.platform.resolved_platform == PlatformType.LOCAL

    def test_missing_file(self, tmp_path):
        """Test a missing configuration file."""
        with pytest.raises(FileNotFoundError):
            ClassroomConfig.from_file(tmp_path / "missing.yaml")

    def test_unknown_keys_rejected(self):
        """Test that typos are reported."""
        with pytest.raises(ValidationError):
            ClassroomConfig.from_dict({
                "platform": {"base_url": "/srv", "org": "c"},
                "setup": {"max_concurency": 2},
            })

    def test_repr_hides_token(self):
        """Test that the token is masked."""
        config = ClassroomConfig.from_dict({
            "platform": {"base_url": "https://github.com", "org": "c", "token": "ghp_secret"},
        })
        assert "ghp_secret" not in repr(config)
        assert "ghp_secret" not in str(config)


class TestFromEnv:
    """Tests for loading configuration from the environment."""

    def test_from_env(self, monkeypatch):
        """Test reading CLASSROOM_REPOS_* variables."""
        monkeypatch.setenv("CLASSROOM_REPOS_BASE_URL", "https://gitlab.example.com")
        monkeypatch.setenv("CLASSROOM_REPOS_ORG", "course")
        monkeypatch.setenv("CLASSROOM_REPOS_TOKEN", "glpat-x")
        monkeypatch.setenv("CLASSROOM_REPOS_MAX_CONCURRENCY", "3")
        monkeypatch.setenv("CLASSROOM_REPOS_PRIVATE", "false")
        monkeypatch.setenv("CLASSROOM_REPOS_TEAMS", "t1:alice,bob; carol")
        monkeypatch.setenv("CLASSROOM_REPOS_ASSIGNMENTS", "task-1, task-2")

        config = ClassroomConfig.from_env()

        assert config.platform.resolved_platform == PlatformType.GITLAB
        assert config.platform.get_token() == "glpat-x"
        assert config.setup.max_concurrency == 3
        assert config.setup.private is False
        assert config.setup.teams == ["t1:alice,bob", "carol"]
        assert config.setup.assignments == ["task-1", "task-2"]

    def test_custom_prefix(self, monkeypatch):
        """Test a different variable prefix."""
        monkeypatch.setenv("COURSE_BASE_URL", "/srv/repos")
        monkeypatch.setenv("COURSE_ORG", "course")

        config = ClassroomConfig.from_env(prefix="COURSE_")

        assert config.platform.resolved_platform == PlatformType.LOCAL

    def test_missing_variables(self, monkeypatch):
        """Test that base URL and organization are required."""
        monkeypatch.delenv("CLASSROOM_REPOS_BASE_URL", raising=False)
        monkeypatch.delenv("CLASSROOM_REPOS_ORG", raising=False)
        with pytest.raises(ValueError, match="CLASSROOM_REPOS_BASE_URL"):
            ClassroomConfig.from_env()
