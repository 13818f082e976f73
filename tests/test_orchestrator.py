"""Tests for the setup orchestrator."""

import asyncio
import json

import httpx
import pytest

from classroom_repos.git import GitRepository
from classroom_repos.platform import (
    AuthenticationError,
    BackendError,
    GitHubPlatform,
    LocalPlatform,
    NotFoundError,
    PermissionDenied,
    PlatformConfig,
    PlatformType,
)
from classroom_repos.setup import (
    SetupOrchestrator,
    SetupResult,
    TemplateCache,
    setup_student_repos,
)
from classroom_repos.setup.models import SetupError, UnitOutcome, UnitStatus
from classroom_repos.teams import (
    InvalidInputError,
    StudentTeam,
    TeamPermission,
    TemplateRepo,
    parse_teams,
)


class RecordingLocalPlatform(LocalPlatform):
    """Local platform with hooks for failure injection and call tracking."""

    def __init__(
        self, config, *, fail_team=None, fail_create=None, fail_push=None, on_create=None, delay=0.0
    ):
        super().__init__(config)
        self.fail_team = fail_team
        self.fail_create = fail_create
        self.fail_push = fail_push
        self.on_create = on_create
        self.delay = delay
        self.created: list[str] = []
        self.verified = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def verify_settings(self) -> None:
        self.verified += 1
        await super().verify_settings()

    async def repo_exists(self, name: str) -> bool:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            return await super().repo_exists(name)
        finally:
            self.in_flight -= 1

    async def create_repo(self, name, *, private=True, description=None):
        self.created.append(name)
        if self.on_create:
            self.on_create(name)
        if name == self.fail_create:
            raise BackendError(f"Cannot create {name}", platform=self.platform_name, status_code=500)
        return await super().create_repo(name, private=private, description=description)

    async def ensure_team(self, name, members, permission=TeamPermission.PUSH):
        if name == self.fail_team:
            raise PermissionDenied(f"Cannot manage team {name}", platform=self.platform_name)
        return await super().ensure_team(name, members, permission)

    def remote_url_for_push(self, repo_name, credential=None):
        if repo_name == self.fail_push:
            return str(self.base_path / "missing" / f"{repo_name}.git")
        return super().remote_url_for_push(repo_name, credential)


@pytest.fixture
def remote_dir(workspace):
    return workspace / "remote"


@pytest.fixture
def config(remote_dir):
    return PlatformConfig(base_url=str(remote_dir), org="course")


@pytest.fixture
def templates(make_template):
    return [
        TemplateRepo(location=str(make_template("task-1"))),
        TemplateRepo(location=str(make_template("task-2", {"main.py": "print('todo')\n"}))),
    ]


@pytest.fixture
def teams():
    return parse_teams(["team1:alice,bob", "carol", "dave,erin"])


def _orchestrator(api, workspace, **kwargs) -> SetupOrchestrator:
    return SetupOrchestrator(api, TemplateCache(workspace / "work"), **kwargs)


class TestExpand:
    """Tests for unit expansion and input validation."""

    def test_units_in_input_order(self, config, workspace, templates, teams):
        """Test (team, template) pairs in input order."""
        orchestrator = _orchestrator(LocalPlatform(config), workspace)
        units = orchestrator.expand(templates, teams)
        assert [u.name for u in units] == [
            "team1-task-1",
            "team1-task-2",
            "carol-task-1",
            "carol-task-2",
            "dave-erin-task-1",
            "dave-erin-task-2",
        ]

    def test_no_teams(self, config, workspace, templates):
        """Test that an empty roster is rejected."""
        with pytest.raises(InvalidInputError, match="teams"):
            _orchestrator(LocalPlatform(config), workspace).expand(templates, [])

    def test_no_templates(self, config, workspace, teams):
        """Test that an empty template list is rejected."""
        with pytest.raises(InvalidInputError, match="template"):
            _orchestrator(LocalPlatform(config), workspace).expand([], teams)

    def test_empty_team(self, config, workspace, templates):
        """Test that a team without members is rejected."""
        empty = StudentTeam.model_construct(name="ghosts", members=())
        with pytest.raises(InvalidInputError, match="ghosts"):
            _orchestrator(LocalPlatform(config), workspace).expand(templates, [empty])

    def test_case_insensitive_collision(self, config, workspace):
        """Test that derived names differing only in case collide."""
        templates = [TemplateRepo(location="/a/Task"), TemplateRepo(location="/b/task")]
        teams = [StudentTeam(name="team1", members=["a"])]
        with pytest.raises(InvalidInputError, match="derived twice"):
            _orchestrator(LocalPlatform(config), workspace).expand(templates, teams)

    def test_teams_with_same_slug(self, config, workspace, templates):
        """Test that teams mapping to the same backend team are rejected."""
        teams = parse_teams(["Team A:alice", "team-a:bob"])
        with pytest.raises(InvalidInputError, match="same team 'team-a'"):
            _orchestrator(LocalPlatform(config), workspace).expand(templates, teams)

    @pytest.mark.asyncio
    async def test_teams_with_same_slug_touch_nothing(self, config, workspace, remote_dir, templates):
        """Test that a slug clash aborts before any repository is created."""
        api = RecordingLocalPlatform(config)
        with pytest.raises(InvalidInputError):
            await _orchestrator(api, workspace).run(templates, parse_teams(["Team A:alice", "team-a:bob"]))
        assert api.created == []
        assert not (remote_dir / "course").exists()

    @pytest.mark.parametrize("name", ["../../x", "a/b", "a\\b", ".."])
    def test_unsafe_team_name(self, config, workspace, templates, name):
        """Test that team names usable as path traversal are rejected."""
        teams = [StudentTeam(name=name, members=["alice"])]
        with pytest.raises(InvalidInputError, match="path separators"):
            _orchestrator(LocalPlatform(config), workspace).expand(templates, teams)

    def test_team_name_without_usable_characters(self, config, workspace, templates):
        """Test that a team name with an empty slug is rejected."""
        teams = [StudentTeam(name="!!!", members=["alice"])]
        with pytest.raises(InvalidInputError, match="usable"):
            _orchestrator(LocalPlatform(config), workspace).expand(templates, teams)

    def test_unsafe_name_format(self, config, workspace, templates, teams):
        """Test that a name format producing paths is rejected."""
        orchestrator = _orchestrator(LocalPlatform(config), workspace, name_format="{team}/{template}")
        with pytest.raises(InvalidInputError, match="path separators"):
            orchestrator.expand(templates, teams)

    def test_duplicate_template_names(self, config, workspace, teams):
        """Test two templates with the same name."""
        templates = [TemplateRepo(location="/a/task"), TemplateRepo(location="/b/task")]
        with pytest.raises(InvalidInputError):
            _orchestrator(LocalPlatform(config), workspace).expand(templates, teams)

    def test_bad_name_format(self, config, workspace, templates, teams):
        """Test a name format with an unknown placeholder."""
        orchestrator = _orchestrator(LocalPlatform(config), workspace, name_format="{course}-{team}")
        with pytest.raises(InvalidInputError):
            orchestrator.expand(templates, teams)

    def test_invalid_concurrency(self, config, workspace):
        """Test that at least one worker is required."""
        with pytest.raises(ValueError):
            _orchestrator(LocalPlatform(config), workspace, max_concurrency=0)

    @pytest.mark.asyncio
    async def test_invalid_input_before_verify(self, config, workspace, templates):
        """Test that invalid input fails without touching the platform."""
        api = RecordingLocalPlatform(config)
        with pytest.raises(InvalidInputError):
            await _orchestrator(api, workspace).run(templates, [])
        assert api.verified == 0


class TestLocalSetup:
    """End-to-end runs against the local platform."""

    @pytest.mark.asyncio
    async def test_three_teams_two_templates(self, config, workspace, remote_dir, templates, teams):
        """Test creating six repositories and re-running the setup."""
        api = LocalPlatform(config)

        result = await _orchestrator(api, workspace).run(templates, teams)

        assert result.is_success()
        assert len(result.successful_repos) == 6
        assert result.existing_repos == set()

        bare = GitRepository(remote_dir / "course" / "carol-task-2.git")
        assert bare.branch_names() == ["main"]
        assert "main.py" in bare._repo.git.ls_tree("-r", "--name-only", "main").split()
        assert api.team_repos("team1") == {
            "team1-task-1": TeamPermission.PUSH,
            "team1-task-2": TeamPermission.PUSH,
        }
        assert api.read_team("dave-erin").members == ["dave", "erin"]

        rerun = await _orchestrator(api, workspace).run(templates, teams)

        assert rerun.is_success()
        assert rerun.successful_repos == set()
        assert rerun.existing_repos == result.successful_repos

    @pytest.mark.asyncio
    async def test_existing_repo_is_left_alone(self, config, workspace, templates, teams):
        """Test that a pre-existing repository is reported as existing."""
        api = RecordingLocalPlatform(config)
        await api.create_repo("carol-task-1")
        api.created.clear()

        result = await _orchestrator(api, workspace).run(templates, teams)

        assert result.existing_repos == {"carol-task-1"}
        assert len(result.successful_repos) == 5
        assert "carol-task-1" not in api.created
        assert "carol-task-1" not in api.team_repos("carol")

    @pytest.mark.asyncio
    async def test_partial_failure(self, config, workspace, templates, teams):
        """Test that one failing team does not affect the others."""
        api = RecordingLocalPlatform(config, fail_team="carol")

        result = await _orchestrator(api, workspace).run(templates, teams)

        assert not result.is_success()
        assert [(e.team_name, e.repo_name) for e in result.errors] == [
            ("carol", "carol-task-1"),
            ("carol", "carol-task-2"),
        ]
        assert all(e.kind == "PermissionDenied" for e in result.errors)
        assert result.successful_repos == {
            "team1-task-1",
            "team1-task-2",
            "dave-erin-task-1",
            "dave-erin-task-2",
        }

    @pytest.mark.asyncio
    async def test_create_failure_is_isolated(self, config, workspace, templates, teams):
        """Test that a failing repository creation only fails its own unit."""
        api = RecordingLocalPlatform(config, fail_create="carol-task-1")

        result = await _orchestrator(api, workspace).run(templates, teams)

        assert [(e.team_name, e.repo_name, e.kind) for e in result.errors] == [
            ("carol", "carol-task-1", "BackendError"),
        ]
        assert result.successful_repos == {
            "team1-task-1",
            "team1-task-2",
            "carol-task-2",
            "dave-erin-task-1",
            "dave-erin-task-2",
        }
        assert not api.repo_path("carol-task-1").exists()
        assert api.team_repos("carol") == {"carol-task-2": TeamPermission.PUSH}

    @pytest.mark.asyncio
    async def test_push_failure_is_isolated(self, config, workspace, templates, teams):
        """Test that a rejected push only fails its own unit."""
        api = RecordingLocalPlatform(config, fail_push="dave-erin-task-2")

        result = await _orchestrator(api, workspace).run(templates, teams)

        assert [(e.team_name, e.repo_name, e.kind) for e in result.errors] == [
            ("dave-erin", "dave-erin-task-2", "PushError"),
        ]
        assert len(result.successful_repos) == 5
        assert "dave-erin-task-2" not in result.successful_repos

    @pytest.mark.asyncio
    async def test_every_unit_accounted_for(self, config, workspace, templates, teams):
        """Test that each unit ends up in exactly one bucket."""
        api = RecordingLocalPlatform(config, fail_team="team1")
        await api.create_repo("carol-task-2")

        result = await _orchestrator(api, workspace, max_concurrency=3).run(templates, teams)

        failed = {e.repo_name for e in result.errors}
        buckets = [result.successful_repos, result.existing_repos, failed]
        assert sum(len(b) for b in buckets) == 6
        assert not (result.successful_repos & result.existing_repos)
        assert not (result.successful_repos & failed)
        assert not (result.existing_repos & failed)

    @pytest.mark.asyncio
    async def test_template_clone_failure(self, config, workspace, make_template, teams):
        """Test that a broken template fails only its own units."""
        templates = [
            TemplateRepo(location=str(make_template("task-1"))),
            TemplateRepo(location=str(workspace / "missing" / "task-9")),
        ]
        api = RecordingLocalPlatform(config)

        result = await _orchestrator(api, workspace).run(templates, teams)

        assert {e.repo_name for e in result.errors} == {
            "team1-task-9",
            "carol-task-9",
            "dave-erin-task-9",
        }
        assert all(e.kind == "CloneError" for e in result.errors)
        assert result.successful_repos == {"team1-task-1", "carol-task-1", "dave-erin-task-1"}
        assert not any(name.endswith("task-9") for name in api.created)

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, config, workspace, templates, teams):
        """Test that no more than max_concurrency units run at once."""
        api = RecordingLocalPlatform(config, delay=0.05)

        result = await _orchestrator(api, workspace, max_concurrency=2).run(templates, teams)

        assert result.is_success()
        assert api.max_in_flight == 2

    @pytest.mark.asyncio
    async def test_cancel_stops_dispatch(self, config, workspace, make_template, teams):
        """Test that cancelling lets in-flight units finish and skips the rest."""
        templates = [TemplateRepo(location=str(make_template("task-1")))]
        api = RecordingLocalPlatform(config)
        orchestrator = _orchestrator(api, workspace, max_concurrency=1)
        api.on_create = lambda name: orchestrator.cancel()

        result = await orchestrator.run(templates, teams)

        assert result.cancelled
        assert result.successful_repos == {"team1-task-1"}
        assert result.pending_repos == {"carol-task-1", "dave-erin-task-1"}
        assert "cancelled" in result.summary()

    @pytest.mark.asyncio
    async def test_verify_failure_propagates(self, workspace, templates, teams):
        """Test that a missing base directory aborts the run."""
        api = LocalPlatform(PlatformConfig(base_url=str(workspace / "nope"), org="course"))
        with pytest.raises(NotFoundError):
            await _orchestrator(api, workspace).run(templates, teams)

    @pytest.mark.asyncio
    async def test_setup_student_repos(self, config, workspace, templates, teams):
        """Test the functional wrapper and its cleanup."""
        async with LocalPlatform(config) as api:
            result = await setup_student_repos(
                api,
                templates,
                teams,
                workspace / "work",
                permission=TeamPermission.ADMIN,
            )

        assert len(result.successful_repos) == 6
        assert not (workspace / "work" / "templates").exists()
        team_file = workspace / "remote" / "course" / ".teams" / "carol.json"
        assert json.loads(team_file.read_text())["permission"] == "admin"


class TestCredentialFailure:
    """Tests for authentication failures on REST platforms."""

    @pytest.mark.asyncio
    async def test_bad_token_aborts_before_any_repo(self, workspace, templates, teams):
        """Test that a rejected token stops the run before creating anything."""
        requests = []

        def handler(request):
            requests.append((request.method, request.url.path))
            return httpx.Response(401, json={"message": "Bad credentials"})

        config = PlatformConfig(
            platform=PlatformType.GITHUB,
            base_url="https://github.com",
            org="course",
            token="bad",
        )
        async with GitHubPlatform(config, transport=httpx.MockTransport(handler)) as api:
            with pytest.raises(AuthenticationError):
                await _orchestrator(api, workspace).run(templates, teams)

        assert requests == [("GET", "/user")]
        assert not (workspace / "work" / "templates").exists()


class TestSetupResult:
    """Tests for SetupResult aggregation."""

    def test_from_outcomes(self):
        """Test bucketing and error ordering."""
        outcomes = [
            UnitOutcome("t2", "t2-a", UnitStatus.FAILED, SetupError("t2", "t2-a", "boom", "BackendError")),
            UnitOutcome("t1", "t1-a", UnitStatus.CREATED),
            UnitOutcome("t0", "t0-a", UnitStatus.FAILED, SetupError("t0", "t0-a", "nope", "NotFoundError")),
            UnitOutcome("t3", "t3-a", UnitStatus.EXISTING),
        ]
        result = SetupResult.from_outcomes(outcomes)

        assert result.successful_repos == {"t1-a"}
        assert result.existing_repos == {"t3-a"}
        assert [e.repo_name for e in result.errors] == ["t0-a", "t2-a"]
        assert not result.is_success()
        assert result.total == 4
        assert result.summary() == "1 created, 1 existing, 2 failed"

    def test_failed_outcome(self):
        """Test converting an exception into an error record."""
        outcome = UnitOutcome.failed("t1", "t1-a", PermissionDenied("no rights"))
        assert outcome.status == UnitStatus.FAILED
        assert outcome.error.kind == "PermissionDenied"
        assert str(outcome.error) == "t1/t1-a: no rights"

    def test_empty_result_is_success(self):
        """Test the success predicate."""
        assert SetupResult().is_success()
