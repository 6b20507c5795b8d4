"""Task completion: the entry point that turns a finished chore into combat and loot."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Awaitable, Callable, Tuple

from .combat import CombatAction, encounter_damage, resolve_combat
from .errors import RewardLogError, TaskAlreadyCompleted
from .ledger import CombatLog
from .locks import KeyedLockRegistry
from .repository import CharacterRepository
from .rewards import RewardBundle, RewardDistributor, combine_bundles
from .task_store import TaskStore
from .tasks import CombatContribution, Task

__all__ = ["CompletionResult", "TaskCompletionService"]

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionResult:
    task: Task
    actions: Tuple[CombatAction, ...]
    task_reward: RewardBundle
    combat_rewards: Tuple[RewardBundle, ...]

    @property
    def total_xp(self) -> int:
        return self.task_reward.xp + sum(bundle.xp for bundle in self.combat_rewards)

    @property
    def total_gold(self) -> int:
        return self.task_reward.gold + sum(bundle.gold for bundle in self.combat_rewards)


class TaskCompletionService:
    """Complete tasks for members.

    The task and character are both resolved before anything is written, so a
    missing character never leaves a half-completed task behind. Every reward
    is granted even when its audit write fails; such failures are reported
    together once all grants are applied.
    """

    def __init__(
        self,
        task_store: TaskStore,
        characters: CharacterRepository,
        combat_log: CombatLog,
        rewards: RewardDistributor,
        *,
        locks: KeyedLockRegistry | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._task_store = task_store
        self._characters = characters
        self._combat_log = combat_log
        self._rewards = rewards
        self._locks = locks or KeyedLockRegistry()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def complete_task(self, task_id: str, user_id: str) -> CompletionResult:
        async with self._locks.hold(("task", str(task_id))):
            task = await self._task_store.require(task_id)
            if task.is_completed:
                raise TaskAlreadyCompleted(task.task_id)
            character = await self._characters.require(user_id)

            now = self._clock()
            actions = resolve_combat(character, task, now=now)
            completed = replace(
                task,
                status="completed",
                completed_at=now,
                completed_by=str(user_id),
                combat_contribution=CombatContribution(
                    damage=encounter_damage(actions),
                    attack_type=actions[0].attack_type,
                    target="encounter",
                ),
            )
            await self._task_store.save(completed)
            try:
                await self._combat_log.append_many(actions)
            except Exception:
                log.exception("Failed to log combat for task %s; reopening it", task.task_id)
                await self._task_store.save(task)
                raise

        log.info("%s completed task %s (%s)", character.name, task.title, task.task_id)
        granted: list[RewardBundle] = []
        failures: list[RewardLogError] = []

        async def grant(distribution: Awaitable[RewardBundle]) -> RewardBundle:
            try:
                bundle = await distribution
            except RewardLogError as exc:
                failures.append(exc)
                bundle = exc.bundle
            granted.append(bundle)
            return bundle

        task_reward = await grant(self._rewards.distribute_task_rewards(completed, user_id))
        combat_rewards = []
        for action in actions:
            combat_rewards.append(
                await grant(
                    self._rewards.distribute_combat_rewards(
                        action.damage, action.target, user_id, source_id=task.task_id
                    )
                )
            )
        if failures:
            raise RewardLogError(
                f"{len(failures)} of {len(granted)} rewards for task {task.task_id} were granted "
                "but could not be logged",
                bundle=combine_bundles(granted),
            ) from failures[0]
        return CompletionResult(
            task=completed,
            actions=actions,
            task_reward=task_reward,
            combat_rewards=tuple(combat_rewards),
        )
