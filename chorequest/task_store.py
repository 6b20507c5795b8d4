"""Persistence for party tasks."""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterable, Optional, Tuple, TYPE_CHECKING

from .errors import InvalidInput, TaskNotFound
from .repository import JsonDocumentStore
from .tasks import Task, TaskRewardConfig

if TYPE_CHECKING:
    from .distribution import Assignment

__all__ = ["TaskStore"]


class TaskStore(JsonDocumentStore):
    """Concurrency-safe storage for tasks keyed by task id."""

    async def create(
        self,
        party_id: str,
        *,
        title: str,
        difficulty: str,
        frequency: str,
        rewards: TaskRewardConfig | None = None,
        description: str = "",
        category: str = "chores",
        assigned_to: Optional[str] = None,
    ) -> Task:
        """Create and persist a new pending task for ``party_id``."""

        cleaned = title.strip()
        if not cleaned:
            raise InvalidInput("Task title must not be empty")
        task = Task(
            task_id=uuid.uuid4().hex,
            title=cleaned,
            difficulty=difficulty,
            frequency=frequency,
            rewards=rewards or TaskRewardConfig(),
            assigned_to=assigned_to,
            party_id=str(party_id),
            description=description,
            category=category,
            created_at=datetime.now(timezone.utc),
        )
        await self.save(task)
        return task

    async def save(self, task: Task) -> None:
        async with self._lock:
            await self._ensure_loaded()
            self._cache[task.task_id] = task.to_dict()
            await self._persist()

    async def get(self, task_id: str) -> Optional[Task]:
        async with self._lock:
            await self._ensure_loaded()
            raw = self._cache.get(str(task_id))
            return Task.from_dict(raw) if raw else None

    async def require(self, task_id: str) -> Task:
        task = await self.get(task_id)
        if task is None:
            raise TaskNotFound(task_id)
        return task

    async def remove(self, task_id: str) -> bool:
        async with self._lock:
            await self._ensure_loaded()
            if str(task_id) not in self._cache:
                return False
            del self._cache[str(task_id)]
            await self._persist()
            return True

    async def list_party_tasks(
        self, party_id: str, *, include_completed: bool = False
    ) -> Tuple[Task, ...]:
        """Return the party's tasks ordered by creation time."""

        async with self._lock:
            await self._ensure_loaded()
            tasks = [
                Task.from_dict(payload)
                for payload in self._cache.values()
                if str(payload.get("party_id")) == str(party_id)
            ]
        if not include_completed:
            tasks = [task for task in tasks if not task.is_completed]
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        tasks.sort(key=lambda task: (task.created_at or epoch, task.task_id))
        return tuple(tasks)

    async def apply_assignments(self, assignments: Iterable["Assignment"]) -> Tuple[Task, ...]:
        """Write each assignment's member onto its task in a single save.

        Every task id is checked before anything is written.
        """

        async with self._lock:
            await self._ensure_loaded()
            updated: list[Task] = []
            for assignment in assignments:
                raw = self._cache.get(assignment.task_id)
                if not raw:
                    raise TaskNotFound(assignment.task_id)
                updated.append(replace(Task.from_dict(raw), assigned_to=assignment.member_id))
            for task in updated:
                self._cache[task.task_id] = task.to_dict()
            if updated:
                await self._persist()
            return tuple(updated)
