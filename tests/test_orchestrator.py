"""Tests for the orchestration root — context wiring, team assembly, pivots, errors."""

import asyncio

import pytest

from autocrew.agent.models import AgentConfig
from autocrew.core.config import Config
from autocrew.core.events import (
    LEAD_RESPONSE,
    PROJECT_CREATED,
    PROJECT_REALIGN,
    PURPOSE_SELECTED,
    SYSTEM_ERROR,
    SYSTEM_INIT,
    SYSTEM_SHUTDOWN,
    USER_MESSAGE,
    WORKFLOW_COMPLETED,
)
from autocrew.core.exceptions import ConfigurationError, ValidationError, WorkflowDefinitionError, WorkflowError
from autocrew.orchestrator import OrchestrationContext, Orchestrator
from autocrew.project.models import ConversationRole, ProjectStatus

ALL_ROLES = (
    "requirements",
    "architect",
    "backend",
    "frontend",
    "mobile",
    "game",
    "tester",
    "devops",
    "docs",
    "summarizer",
)


@pytest.fixture
def config(tmp_dir):
    return Config(data_dir=tmp_dir)


@pytest.fixture
def ctx(config):
    return OrchestrationContext.create(config)


@pytest.fixture
def factories(stub_worker_cls):
    return {role: (lambda cfg, role=role: stub_worker_cls(role)) for role in ALL_ROLES}


@pytest.fixture
def orch(ctx, factories):
    return Orchestrator(ctx, factories)


@pytest.mark.smoke
class TestContext:
    def test_create_builds_fresh_collaborators(self, config):
        a = OrchestrationContext.create(config)
        b = OrchestrationContext.create(config)
        assert a.bus is not b.bus
        assert a.registry is not b.registry
        assert a.store.backend.base_dir == b.store.backend.base_dir

    def test_history_size_from_config(self, config):
        config.set("events.history_size", 5)
        assert OrchestrationContext.create(config).bus.history_size == 5

    def test_purposes_file_from_config(self, config, tmp_path):
        path = tmp_path / "extra.yaml"
        path.write_text("- id: bot\n  name: Chat Bot\n  roles: [requirements]\n")
        config.set("purposes.file", str(path))
        assert OrchestrationContext.create(config).purposes.get("bot") is not None


class TestSelectPurpose:
    def test_creates_project_and_team(self, ctx, orch):
        project = orch.select_purpose("web-development", "Build a recipe site")

        assert ctx.store.get_current() is project
        assert project.status == ProjectStatus.INITIALIZING
        assert project.tech_stack["frontend"][0] == "React"
        assert ctx.store.get_conversation(project.id)[0].role == ConversationRole.USER

        roles = {a.role for a in ctx.registry.get_active_agents()}
        assert roles == {"requirements", "architect", "backend", "frontend", "tester", "devops", "docs", "summarizer"}

        channels = [e.channel for e in ctx.bus.history()]
        assert channels.index(PROJECT_CREATED) < channels.index(PURPOSE_SELECTED)

    def test_agent_config_carries_prompt(self, ctx, orch):
        orch.select_purpose("cli-tool")
        backend = ctx.registry.get_agents_by_role("backend")[0]
        assert backend.config == AgentConfig(role="backend", system_prompt="cli_tool")

    def test_roles_without_factory_are_skipped(self, ctx, stub_worker_cls):
        orch = Orchestrator(ctx, {"requirements": lambda cfg: stub_worker_cls("requirements")})
        orch.select_purpose("game-development")
        assert [a.role for a in ctx.registry.get_active_agents()] == ["requirements"]

    def test_unknown_purpose_raises(self, orch):
        with pytest.raises(ValidationError):
            orch.select_purpose("quantum-computer")

    def test_unknown_purpose_event_reports_error(self, ctx, orch):
        ctx.bus.publish(PURPOSE_SELECTED, {"purpose_id": "quantum-computer"}, source="lead")

        assert ctx.bus.history(SYSTEM_ERROR)[-1].payload["error"] == "Unknown purpose: quantum-computer"
        reply = ctx.bus.history(LEAD_RESPONSE)[-1].payload["message"]
        assert "quantum" not in reply
        assert ctx.registry.get_statistics().total == 0

    def test_failing_factory_reported(self, ctx):
        def broken(cfg):
            raise RuntimeError("no model configured")

        orch = Orchestrator(ctx, {"requirements": broken})
        orch.select_purpose("cli-tool")

        assert ctx.bus.history(SYSTEM_ERROR)
        assert "configuration" in ctx.bus.history(LEAD_RESPONSE)[-1].payload["message"]


class TestRun:
    async def test_start_runs_default_workflow(self, ctx, orch):
        project = orch.select_purpose("web-development", "Build a recipe site")

        orch.start()
        event = await asyncio.wait_for(ctx.bus.wait_for(WORKFLOW_COMPLETED), timeout=5)
        await ctx.bus.drain()

        assert event.payload["project_id"] == project.id
        assert project.status == ProjectStatus.COMPLETED
        assert orch.statistics()["agents"]["by_status"].get("completed", 0) >= 6

    def test_start_requires_project(self, orch):
        with pytest.raises(WorkflowError):
            orch.start()

    def test_start_unknown_workflow(self, orch):
        orch.select_purpose("cli-tool")
        with pytest.raises(WorkflowDefinitionError):
            orch.start("nightly")

    def test_handle_user_message(self, ctx, orch):
        project = orch.select_purpose("cli-tool")
        orch.handle_user_message("add a --verbose flag")

        assert project.last_user_message() == "add a --verbose flag"
        assert ctx.bus.history(USER_MESSAGE)[-1].payload["project_id"] == project.id


class TestRealign:
    def test_realign_clears_agents_and_keeps_record(self, ctx, orch):
        project = orch.select_purpose("web-development")
        record = ctx.store.backend.record_path(project.id)
        assert ctx.registry.get_statistics().total > 0

        orch.realign("ios-app")

        assert ctx.registry.get_active_agents() == []
        assert record.exists()
        assert ctx.store.backend.load(project.id) is not None
        event = ctx.bus.history(PROJECT_REALIGN)[-1]
        assert event.metadata == {"old_purpose": "web-development", "new_purpose": "ios-app"}


class TestLifecycle:
    def test_initialize_is_idempotent(self, config, factories):
        first = Orchestrator(OrchestrationContext.create(config), factories)
        first.select_purpose("cli-tool")

        ctx = OrchestrationContext.create(config)
        orch = Orchestrator(ctx, factories)
        assert orch.initialize() == 1
        assert orch.initialize() == 0
        assert len(ctx.bus.history(SYSTEM_INIT)) == 1
        assert len(ctx.store.list_projects()) == 1

    def test_shutdown(self, ctx, orch):
        orch.select_purpose("cli-tool")
        orch.shutdown()

        assert ctx.registry.get_statistics().total == 0
        assert ctx.bus.history(SYSTEM_SHUTDOWN)
        assert ctx.bus.subscriber_count(PURPOSE_SELECTED) == 0
        assert not orch.initialized

    def test_reinitialize_after_shutdown(self, ctx, orch):
        orch.initialize()
        orch.shutdown()
        orch.initialize()

        orch.select_purpose("web-development", "site")

        assert len(ctx.registry.get_agents_by_role("requirements")) == 1
        assert ctx.bus.subscriber_count(PURPOSE_SELECTED) == 1

        orch.realign("cli-tool")
        assert ctx.registry.get_statistics().total == 0

    def test_initialize_does_not_duplicate_handlers(self, ctx, orch):
        orch.initialize()
        orch.select_purpose("cli-tool")
        assert len(ctx.registry.get_agents_by_role("requirements")) == 1
        assert ctx.bus.subscriber_count(PROJECT_REALIGN) == 1

    def test_report_error_is_plain_language(self, ctx, orch):
        project = orch.select_purpose("cli-tool")
        orch.report_error(OSError("/var/lib/autocrew/projects/x.json: I/O error"))

        assert "/var/lib" in ctx.bus.history(SYSTEM_ERROR)[-1].payload["error"]
        reply = ctx.bus.history(LEAD_RESPONSE)[-1].payload
        assert "/var/lib" not in reply["message"]
        assert reply["error"] is True
        assert ctx.store.get_conversation(project.id)[-1].role == ConversationRole.LEAD

    def test_statistics(self, orch):
        orch.select_purpose("ios-app")
        stats = orch.statistics()
        assert stats["projects"] == 1
        assert stats["purposes"] == 8
        assert stats["agents"]["total"] == 6
        assert stats["workflow_running"] is False

    def test_configure_logging(self, ctx, monkeypatch):
        calls = []
        monkeypatch.setattr("autocrew.orchestrator.setup_logging", lambda **kw: calls.append(kw))
        Orchestrator(ctx, {}, configure_logging=True)
        assert calls == [{"level": "WARNING", "log_file": None}]

    def test_invalid_config_rejected(self, config):
        config.set("events.history_size", 0)
        with pytest.raises(ConfigurationError):
            OrchestrationContext.create(config)
