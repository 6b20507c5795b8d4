import asyncio
from dataclasses import replace
from datetime import datetime, timezone
import random
from pathlib import Path
import sys

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from chorequest.characters import CharacterStats, create_character
from chorequest.errors import CharacterNotFound, RewardLogError, TaskAlreadyCompleted, TaskNotFound
from chorequest.ledger import CombatLog, RewardLog
from chorequest.quests import TaskCompletionService
from chorequest.repository import CharacterRepository, ItemCatalog
from chorequest.rewards import RewardDistributor
from chorequest.task_store import TaskStore

NOW = datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc)


class FlakyRewardLog(RewardLog):
    def __init__(self, storage_path: Path, failures: int = 1) -> None:
        super().__init__(storage_path)
        self.failures = failures

    async def append(self, record) -> None:
        if self.failures:
            self.failures -= 1
            raise OSError("disk full")
        await super().append(record)


class FlakyCombatLog(CombatLog):
    def __init__(self, storage_path: Path, failures: int = 1) -> None:
        super().__init__(storage_path)
        self.failures = failures

    async def append_many(self, records) -> int:
        if self.failures:
            self.failures -= 1
            raise OSError("disk full")
        return await super().append_many(records)


class Harness:
    def __init__(self, tmp_path: Path, *, reward_log: RewardLog | None = None, combat_log: CombatLog | None = None) -> None:
        self.characters = CharacterRepository(tmp_path / "characters.json")
        self.tasks = TaskStore(tmp_path / "tasks.json")
        self.combat_log = combat_log or CombatLog(tmp_path / "combat.json")
        self.reward_log = reward_log or RewardLog(tmp_path / "rewards.json")
        self.rewards = RewardDistributor(
            self.characters,
            ItemCatalog(tmp_path / "items.json"),
            self.reward_log,
            rng=random.Random(11),
            clock=lambda: NOW,
        )
        self.service = TaskCompletionService(
            self.tasks, self.characters, self.combat_log, self.rewards, clock=lambda: NOW
        )

    async def add_warrior(self, user_id: str = "u1") -> None:
        warrior = create_character(user_id, "Brakka", "Warrior", character_id="char-1")
        await self.characters.save(
            replace(warrior, level=10, stats=CharacterStats({"STR": 10, "DEX": 6, "INT": 4, "CON": 8}))
        )


def test_completing_a_weekly_hard_task(tmp_path) -> None:
    async def scenario() -> None:
        harness = Harness(tmp_path)
        await harness.add_warrior()
        task = await harness.tasks.create("party", title="Clean gutters", difficulty="hard", frequency="weekly")

        result = await harness.service.complete_task(task.task_id, "u1")

        assert [(a.target, a.damage, a.attack_type) for a in result.actions] == [
            ("encounter", 50, "special"),
            ("miniBoss", 50, "special"),
            ("boss", 50, "special"),
        ]
        assert (result.task_reward.xp, result.task_reward.gold) == (400, 200)
        assert [(b.xp, b.gold) for b in result.combat_rewards] == [(25, 10), (50, 20), (125, 50)]
        assert (result.total_xp, result.total_gold) == (600, 280)

        stored = await harness.tasks.require(task.task_id)
        assert stored.status == "completed"
        assert stored.completed_by == "u1"
        assert stored.completed_at == NOW
        assert stored.combat_contribution is not None
        assert stored.combat_contribution.damage == 50
        assert stored.combat_contribution.attack_type == "special"
        assert stored.combat_contribution.target == "encounter"

        assert len(await harness.combat_log.for_task(task.task_id)) == 3
        hero = await harness.characters.require("u1")
        assert hero.experience == 600
        assert hero.gold == 280
        history = await harness.reward_log.history("u1")
        assert [record.event_type for record in history] == ["combat", "combat", "combat", "task"]
        assert all(record.source_id == task.task_id for record in history)

    asyncio.run(scenario())


def test_missing_character_leaves_task_untouched(tmp_path) -> None:
    async def scenario() -> None:
        harness = Harness(tmp_path)
        task = await harness.tasks.create("party", title="Windows", difficulty="easy", frequency="daily")

        with pytest.raises(CharacterNotFound):
            await harness.service.complete_task(task.task_id, "nobody")

        stored = await harness.tasks.require(task.task_id)
        assert stored.status == "pending"
        assert stored.combat_contribution is None
        assert await harness.combat_log.all() == ()
        assert await harness.reward_log.all() == ()

    asyncio.run(scenario())


def test_unknown_task_is_reported(tmp_path) -> None:
    async def scenario() -> None:
        harness = Harness(tmp_path)
        await harness.add_warrior()
        with pytest.raises(TaskNotFound):
            await harness.service.complete_task("missing", "u1")

    asyncio.run(scenario())


def test_tasks_cannot_be_completed_twice(tmp_path) -> None:
    async def scenario() -> None:
        harness = Harness(tmp_path)
        await harness.add_warrior()
        task = await harness.tasks.create("party", title="Bins", difficulty="easy", frequency="daily")

        results = await asyncio.gather(
            harness.service.complete_task(task.task_id, "u1"),
            harness.service.complete_task(task.task_id, "u1"),
            return_exceptions=True,
        )

        assert sum(isinstance(result, TaskAlreadyCompleted) for result in results) == 1
        assert len(await harness.combat_log.for_task(task.task_id)) == 3

    asyncio.run(scenario())


def test_audit_failure_does_not_stop_later_grants(tmp_path) -> None:
    async def scenario() -> None:
        harness = Harness(tmp_path, reward_log=FlakyRewardLog(tmp_path / "rewards.json"))
        await harness.add_warrior()
        task = await harness.tasks.create("party", title="Dust shelves", difficulty="easy", frequency="daily")

        with pytest.raises(RewardLogError) as excinfo:
            await harness.service.complete_task(task.task_id, "u1")

        # 100/50 for the task plus 25 damage against each target.
        assert (excinfo.value.bundle.xp, excinfo.value.bundle.gold) == (199, 90)
        assert isinstance(excinfo.value.__cause__, RewardLogError)
        hero = await harness.characters.require("u1")
        assert (hero.experience, hero.gold) == (199, 90)
        history = await harness.reward_log.history("u1")
        assert [record.event_type for record in history] == ["combat", "combat", "combat"]
        assert (await harness.tasks.require(task.task_id)).status == "completed"

    asyncio.run(scenario())


def test_combat_log_failure_reopens_the_task(tmp_path) -> None:
    async def scenario() -> None:
        harness = Harness(tmp_path, combat_log=FlakyCombatLog(tmp_path / "combat.json"))
        await harness.add_warrior()
        task = await harness.tasks.create("party", title="Mop floor", difficulty="easy", frequency="daily")

        with pytest.raises(OSError):
            await harness.service.complete_task(task.task_id, "u1")

        stored = await harness.tasks.require(task.task_id)
        assert stored.status == "pending"
        assert stored.combat_contribution is None
        assert await harness.combat_log.all() == ()
        assert await harness.reward_log.all() == ()

        result = await harness.service.complete_task(task.task_id, "u1")
        assert result.task.status == "completed"
        assert len(await harness.combat_log.for_task(task.task_id)) == 3

    asyncio.run(scenario())
