"""Weighted progress tracking for a single phase run.

Each update is published on ``progress.update`` with the overall
percentage and a task summary, so a UI can follow along without polling.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from loguru import logger

from autocrew.core.events import PROGRESS_UPDATE, EventBus


class TaskStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class TrackedTask:
    id: str
    name: str
    weight: float = 1.0
    status: TaskStatus = TaskStatus.PENDING
    progress: float = 0.0  # 0-100


class ProgressTracker:
    """Tracks the tasks of one phase and publishes progress events."""

    def __init__(self, bus: EventBus, project_id: str, phase: str) -> None:
        self._bus = bus
        self.project_id = project_id
        self.phase = phase
        self._tasks: dict[str, TrackedTask] = {}

    # -- Tasks ---------------------------------------------------------------

    def add_task(self, task_id: str, name: str, weight: float = 1.0) -> TrackedTask:
        task = TrackedTask(id=task_id, name=name, weight=max(0.0, weight))
        self._tasks[task_id] = task
        return task

    def start_task(self, task_id: str) -> None:
        task = self._tasks.get(task_id)
        if task is None:
            return
        task.status = TaskStatus.IN_PROGRESS
        task.progress = 0.0
        self._emit("progress", f"Started: {task.name}")

    def update_task(self, task_id: str, progress: float, message: str = "") -> None:
        task = self._tasks.get(task_id)
        if task is None:
            return
        task.progress = min(100.0, max(0.0, progress))
        task.status = TaskStatus.IN_PROGRESS
        self._emit("progress", message or f"{task.name}: {task.progress:.0f}%")

    def complete_task(self, task_id: str, message: str = "") -> None:
        task = self._tasks.get(task_id)
        if task is None:
            return
        task.status = TaskStatus.COMPLETED
        task.progress = 100.0
        self._emit("progress", message or f"Completed: {task.name}")

    def fail_task(self, task_id: str, error: str) -> None:
        task = self._tasks.get(task_id)
        if task is None:
            return
        task.status = TaskStatus.FAILED
        logger.warning(f"Task {task.name} failed in {self.phase}: {error}")
        self._emit("failed", f"Failed: {task.name} - {error}")

    # -- Aggregates ----------------------------------------------------------

    def overall_progress(self) -> int:
        """Weighted progress across all tasks, 0-100."""
        total_weight = sum(t.weight for t in self._tasks.values())
        if not self._tasks or total_weight == 0:
            return 0
        return round(sum(t.progress * t.weight for t in self._tasks.values()) / total_weight)

    def summary(self) -> dict[str, int]:
        counts = {str(s): 0 for s in TaskStatus}
        for task in self._tasks.values():
            counts[str(task.status)] += 1
        counts["total"] = len(self._tasks)
        return counts

    # -- Phase ---------------------------------------------------------------

    def start(self) -> None:
        logger.info(f"Phase started: {self.phase} ({self.project_id})")
        self._emit("started", f"Starting {self.phase} phase")

    def complete(self, message: str = "") -> None:
        logger.info(f"Phase completed: {self.phase} ({self.project_id}) {self.summary()}")
        self._emit("completed", message or f"{self.phase} phase completed")

    def fail(self, error: str) -> None:
        logger.error(f"Phase failed: {self.phase} ({self.project_id}): {error}")
        self._emit("failed", f"{self.phase} phase failed: {error}")

    def _emit(self, status: str, message: str, metadata: dict[str, Any] | None = None) -> None:
        self._bus.publish(
            PROGRESS_UPDATE,
            {
                "project_id": self.project_id,
                "phase": self.phase,
                "status": status,
                "progress": self.overall_progress(),
                "message": message,
            },
            source="ProgressTracker",
            metadata={**(metadata or {}), "summary": self.summary()},
        )
