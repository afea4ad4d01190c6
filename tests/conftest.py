"""Shared test fixtures for autocrew."""

import os
import tempfile

import pytest

from autocrew.agent.messages import GenericResult, WorkerRequest, WorkerResponse
from autocrew.agent.registry import AgentRegistry
from autocrew.core.events import EventBus
from autocrew.project.store import ProjectStore


@pytest.fixture
def tmp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as d:
        yield d


@pytest.fixture
def tmp_config_file(tmp_dir):
    """Create a temporary YAML config file."""
    import yaml

    config_data = {
        "paths": {
            "data_dir": os.path.join(tmp_dir, "data"),
        },
        "events": {
            "history_size": 50,
        },
    }
    config_path = os.path.join(tmp_dir, "config.yaml")
    with open(config_path, "w") as f:
        yaml.dump(config_data, f)
    return config_path


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def store(tmp_path):
    return ProjectStore(tmp_path / "projects")


@pytest.fixture
def registry(bus):
    return AgentRegistry(bus)


class StubWorker:
    """Sync worker that echoes its role; optionally fails or raises."""

    def __init__(self, role: str = "stub", *, fail: bool = False, raises: Exception | None = None, artifacts=None):
        self.role = role
        self.fail = fail
        self.raises = raises
        self.artifacts = artifacts or {}
        self.requests: list[WorkerRequest] = []

    def execute(self, request: WorkerRequest) -> WorkerResponse:
        self.requests.append(request)
        if self.raises is not None:
            raise self.raises
        if self.fail:
            return WorkerResponse.failure(f"{self.role} could not finish")
        return WorkerResponse.ok(
            GenericResult(data={"role": self.role, "phase": request.phase}),
            artifacts=dict(self.artifacts),
            message=f"{self.role} done",
        )


class AsyncStubWorker(StubWorker):
    async def execute(self, request: WorkerRequest) -> WorkerResponse:
        return super().execute(request)


@pytest.fixture
def stub_worker_cls():
    return StubWorker


@pytest.fixture
def async_stub_worker_cls():
    return AsyncStubWorker
