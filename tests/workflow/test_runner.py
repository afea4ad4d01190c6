"""Tests for PhaseRunner — driving agents through a workflow end to end."""

import asyncio

import pytest

from autocrew.agent.messages import GenericResult, WorkerRequest, WorkerResponse
from autocrew.agent.models import AgentConfig
from autocrew.core.events import (
    AGENT_STARTED,
    PHASE_DEVELOPMENT_COMPLETE,
    PHASE_FAILED,
    PROGRESS_UPDATE,
    WORKFLOW_COMPLETED,
)
from autocrew.project.models import PhaseStatus, ProjectStatus
from autocrew.workflow.engine import WorkflowEngine
from autocrew.workflow.models import PhaseSpec
from autocrew.workflow.runner import PhaseRunner


@pytest.fixture
def engine(bus, store):
    return WorkflowEngine(bus, store)


@pytest.fixture
def runner(bus, store, registry):
    return PhaseRunner(bus, store, registry)


@pytest.fixture
def project(store):
    project = store.create("web-development", "Web Development")
    store.append_conversation(project.id, "user", "Build a recipe sharing site")
    return project


def _start(engine, runner, name="default"):
    runner.attach(engine.get_workflow(name))
    engine.start_workflow(name)


class TestPhaseRunner:
    async def test_full_default_workflow(self, bus, store, registry, engine, runner, project, stub_worker_cls):
        workers = {}
        for role in ("requirements", "architect", "backend", "frontend", "tester", "devops", "docs"):
            workers[role] = stub_worker_cls(role, artifacts={f"{role}.md": f"# {role}"})
            registry.create_agent(role, None, workers[role])

        _start(engine, runner)
        await asyncio.wait_for(bus.drain(), timeout=5)

        assert project.status == ProjectStatus.COMPLETED
        assert len(bus.history(WORKFLOW_COMPLETED)) == 1
        assert all(rec.status == PhaseStatus.COMPLETED for rec in project.phases.values())
        assert set(project.artifacts) == {f"{r}.md" for r in workers}

        dev = project.phases["development"].result
        assert set(dev) == {"backend", "frontend"}
        assert dev["backend"] == {"data": {"role": "backend", "phase": "development"}, "kind": "generic"}

    async def test_requests_carry_context(self, bus, registry, engine, runner, project, stub_worker_cls):
        reqs = stub_worker_cls("requirements")
        arch = stub_worker_cls("architect")
        registry.create_agent("requirements", None, reqs)
        registry.create_agent("architect", None, arch)

        _start(engine, runner)
        await asyncio.wait_for(bus.drain(), timeout=5)

        request: WorkerRequest = arch.requests[0]
        assert request.user_message == "Build a recipe sharing site"
        assert request.phase == "architecture"
        assert request.role == "architect"
        assert request.project is project
        assert request.metadata["project_id"] == project.id
        assert request.metadata["workflow"] == "default"
        assert "requirements" in request.previous_results

    async def test_phase_without_agents_completes_immediately(self, bus, engine, runner, project):
        _start(engine, runner)
        await asyncio.wait_for(bus.drain(), timeout=5)

        assert project.status == ProjectStatus.COMPLETED
        assert project.phases["testing"].result == {}

    async def test_failure_publishes_phase_failed_once(self, bus, registry, engine, runner, project, stub_worker_cls):
        registry.create_agent("requirements", None, stub_worker_cls("requirements"))
        registry.create_agent("architect", None, stub_worker_cls("architect", fail=True))

        _start(engine, runner)
        await asyncio.wait_for(bus.drain(), timeout=5)

        failed = bus.history(PHASE_FAILED)
        assert len(failed) == 1
        assert failed[0].payload["phase"] == "architecture"
        assert failed[0].payload["role"] == "architect"
        assert project.status == ProjectStatus.FAILED
        assert project.phases["architecture"].status == PhaseStatus.FAILED
        assert "development" not in project.phases

    async def test_parallel_phase_runs_concurrently(self, bus, store, registry, engine, runner, project):
        running = 0
        peak = 0

        class SlowWorker:
            def __init__(self, role):
                self.role = role

            async def execute(self, request):
                nonlocal running, peak
                running += 1
                peak = max(peak, running)
                await asyncio.sleep(0.02)
                running -= 1
                return WorkerResponse.ok(GenericResult(data={"role": self.role}))

        for role in ("backend", "frontend", "mobile", "game"):
            registry.create_agent(role, None, SlowWorker(role))

        engine.register_workflow("dev-only", [PhaseSpec.build("development", ["backend", "frontend", "mobile", "game"], parallel=True)])
        _start(engine, runner, "dev-only")
        await asyncio.wait_for(bus.drain(), timeout=5)

        assert peak == 4
        complete = bus.history(PHASE_DEVELOPMENT_COMPLETE)
        assert len(complete) == 1
        assert set(complete[0].payload["result"]) == {"backend", "frontend", "mobile", "game"}
        assert project.status == ProjectStatus.COMPLETED

    async def test_sequential_phase_stops_at_first_failure(self, bus, registry, engine, runner, project, stub_worker_cls):
        first = stub_worker_cls("backend", fail=True)
        second = stub_worker_cls("frontend")
        registry.create_agent("backend", None, first)
        registry.create_agent("frontend", None, second)

        engine.register_workflow("build", [PhaseSpec.build("build", ["backend", "frontend"])])
        _start(engine, runner, "build")
        await asyncio.wait_for(bus.drain(), timeout=5)

        assert len(first.requests) == 1
        assert second.requests == []
        assert project.status == ProjectStatus.FAILED

    async def test_progress_events_published(self, bus, registry, engine, runner, project, stub_worker_cls):
        registry.create_agent("requirements", None, stub_worker_cls("requirements"))

        _start(engine, runner)
        await asyncio.wait_for(bus.drain(), timeout=5)

        phases = {e.payload["phase"] for e in bus.history(PROGRESS_UPDATE)}
        assert "requirements" in phases

    async def test_detach_stops_listening(self, bus, registry, engine, runner, project, stub_worker_cls):
        registry.create_agent("requirements", None, stub_worker_cls("requirements"))
        runner.attach(engine.get_workflow("default"))
        runner.detach()

        engine.start_workflow()
        await asyncio.wait_for(bus.drain(), timeout=5)

        assert not runner.attached
        assert bus.history(AGENT_STARTED) == []
        assert project.status == ProjectStatus.REQUIREMENTS

    async def test_detach_cancels_running_parallel_agents(self, bus, store, registry, engine, runner, project):
        finished = []

        class HangingWorker:
            def __init__(self, role):
                self.role = role

            async def execute(self, request):
                await asyncio.sleep(10)
                finished.append(self.role)
                return WorkerResponse.ok(artifacts={f"{self.role}.py": "print()"})

        for role in ("backend", "frontend"):
            registry.create_agent(role, None, HangingWorker(role))

        engine.register_workflow("dev-only", [PhaseSpec.build("development", ["backend", "frontend"], parallel=True)])
        _start(engine, runner, "dev-only")

        async def both_started():
            while len(bus.history(AGENT_STARTED)) < 2:
                await asyncio.sleep(0.01)

        await asyncio.wait_for(both_started(), timeout=5)
        runner.detach()
        await asyncio.wait_for(bus.drain(), timeout=5)
        await asyncio.sleep(0)

        assert finished == []
        assert project.artifacts == {}
        assert bus.history(PHASE_DEVELOPMENT_COMPLETE) == []
        assert bus.history(PHASE_FAILED) == []

    async def test_agent_removed_mid_phase_fails_phase(self, bus, registry, engine, runner, project, stub_worker_cls):
        frontend_id = registry.create_agent("frontend", None, stub_worker_cls("frontend"))

        class RemovingWorker:
            def execute(self, request):
                registry.remove_agent(frontend_id)
                return WorkerResponse.ok()

        registry.create_agent("backend", None, RemovingWorker())

        engine.register_workflow("build", [PhaseSpec.build("build", ["backend", "frontend"])])
        _start(engine, runner, "build")
        await asyncio.wait_for(bus.drain(), timeout=5)

        failed = bus.history(PHASE_FAILED)
        assert len(failed) == 1
        assert failed[0].payload["role"] == "frontend"
        assert "no longer registered" in failed[0].payload["error"]
        assert project.status == ProjectStatus.FAILED

    async def test_agent_priority_does_not_weight_progress(self, bus, registry, engine, runner, project, stub_worker_cls):
        registry.create_agent("backend", AgentConfig(role="backend", priority=9), stub_worker_cls("backend"))
        registry.create_agent("frontend", AgentConfig(role="frontend", priority=1), stub_worker_cls("frontend"))

        engine.register_workflow("build", [PhaseSpec.build("build", ["backend", "frontend"])])
        _start(engine, runner, "build")
        await asyncio.wait_for(bus.drain(), timeout=5)

        completed = [e for e in bus.history(PROGRESS_UPDATE) if e.payload["message"] == "Completed: backend"]
        assert completed[0].payload["progress"] == 50
