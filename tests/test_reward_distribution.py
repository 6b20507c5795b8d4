import asyncio
import logging
import random
from pathlib import Path
import sys

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from chorequest.achievements import create_achievement, get_achievement_template
from chorequest.characters import create_character
from chorequest.errors import CharacterNotFound, RewardLogError
from chorequest.items import Item
from chorequest.ledger import RewardLog
from chorequest.repository import CharacterRepository, ItemCatalog
from chorequest.rewards import RewardDistributor
from chorequest.tasks import Task, TaskRewardConfig


class ScriptedRandom(random.Random):
    def __init__(self, values) -> None:
        super().__init__(0)
        self._values = list(values)

    def random(self) -> float:
        return self._values.pop(0)


class BrokenRewardLog:
    async def append(self, record) -> None:
        raise OSError("disk full")

    async def history(self, user_id, *, limit=None):
        return ()


def build(tmp_path, *, rng=None, reward_log=None):
    characters = CharacterRepository(tmp_path / "characters.json")
    catalog = ItemCatalog(tmp_path / "items.json")
    log = reward_log or RewardLog(tmp_path / "rewards.json")
    return characters, catalog, log, RewardDistributor(characters, catalog, log, rng=rng)


def make_task() -> Task:
    return Task(task_id="task-1", title="Laundry", difficulty="medium", frequency="daily")


def test_task_rewards_are_applied_and_recorded(tmp_path) -> None:
    async def scenario() -> None:
        characters, _, _, distributor = build(tmp_path, rng=ScriptedRandom([0.9]))
        await characters.save(create_character("u1", "Hero", "Warrior"))

        bundle = await distributor.distribute_task_rewards(make_task(), "u1")

        assert (bundle.xp, bundle.gold) == (150, 75)
        hero = await characters.require("u1")
        assert (hero.experience, hero.gold) == (150, 75)
        history = await distributor.reward_history("u1")
        assert [(record.event_type, record.source_id) for record in history] == [("task", "task-1")]
        assert history[0].bundle == bundle

    asyncio.run(scenario())


def test_missing_character_aborts_without_side_effects(tmp_path) -> None:
    async def scenario() -> None:
        characters, _, log, distributor = build(tmp_path, rng=random.Random(1))

        with pytest.raises(CharacterNotFound):
            await distributor.distribute_task_rewards(make_task(), "ghost")
        with pytest.raises(CharacterNotFound):
            await distributor.distribute_combat_rewards(50, "boss", "ghost")

        assert await log.history("ghost") == ()
        assert not await characters.exists("ghost")

    asyncio.run(scenario())


def test_audit_failure_is_reported_after_grant(tmp_path, caplog) -> None:
    async def scenario():
        characters, _, _, distributor = build(
            tmp_path, rng=ScriptedRandom([0.9]), reward_log=BrokenRewardLog()
        )
        await characters.save(create_character("u1", "Hero", "Mage"))
        with pytest.raises(RewardLogError) as excinfo:
            await distributor.distribute_task_rewards(make_task(), "u1")
        return excinfo.value, await characters.require("u1")

    with caplog.at_level(logging.ERROR, logger="chorequest.rewards"):
        error, hero = asyncio.run(scenario())

    assert (error.bundle.xp, error.bundle.gold) == (150, 75)
    assert hero.experience == 150
    assert isinstance(error.__cause__, OSError)
    assert "Failed to record task reward" in caplog.text


def test_combat_reward_draws_from_catalog(tmp_path) -> None:
    async def scenario() -> None:
        characters, catalog, _, distributor = build(tmp_path, rng=ScriptedRandom([0.2, 0.0]))
        await characters.save(create_character("u1", "Hero", "Ranger"))
        relic = Item(item_id="relic", name="Relic", rarity="epic", item_type="artifact", category="scifi")
        await catalog.add(relic)

        bundle = await distributor.distribute_combat_rewards(50, "boss", "u1", source_id="task-9")

        assert (bundle.xp, bundle.gold) == (125, 50)
        assert bundle.items == (relic,)
        hero = await characters.require("u1")
        assert [entry.item_id for entry in hero.inventory] == ["relic"]
        history = await distributor.reward_history("u1")
        assert history[0].source_id == "task-9"

    asyncio.run(scenario())


def test_combat_drop_without_catalog_match_grants_no_item(tmp_path) -> None:
    async def scenario() -> None:
        characters, _, _, distributor = build(tmp_path, rng=ScriptedRandom([0.0]))
        await characters.save(create_character("u1", "Hero", "Ranger"))

        bundle = await distributor.distribute_combat_rewards(20, "encounter", "u1")

        assert (bundle.xp, bundle.gold, bundle.items) == (10, 4, ())
        history = await distributor.reward_history("u1")
        assert history[0].source_id == "encounter"

    asyncio.run(scenario())


def test_achievement_rewards_unlock_the_achievement(tmp_path) -> None:
    async def scenario() -> None:
        characters, _, _, distributor = build(tmp_path)
        await characters.save(create_character("u1", "Hero", "Priest"))
        achievement = create_achievement(get_achievement_template("adventure", "Boss Slayer"))

        bundle = await distributor.distribute_achievement_rewards(achievement, "u1")

        assert (bundle.xp, bundle.gold) == (1500, 750)
        hero = await characters.require("u1")
        assert hero.achievements == ("adventure.boss_slayer",)
        assert hero.gold == 750
        assert hero.level > 1
        history = await distributor.reward_history("u1")
        assert history[0].event_type == "achievement"

    asyncio.run(scenario())


def test_concurrent_grants_for_one_member_all_apply(tmp_path) -> None:
    async def scenario() -> None:
        characters, _, _, distributor = build(tmp_path, rng=random.Random(5))
        await characters.save(create_character("u1", "Hero", "Monk"))

        await asyncio.gather(*(distributor.distribute_combat_rewards(10, "encounter", "u1") for _ in range(10)))

        hero = await characters.require("u1")
        assert hero.gold == 20
        assert len(await distributor.reward_history("u1")) == 10

    asyncio.run(scenario())


def test_task_grant_adds_authored_rewards(tmp_path) -> None:
    async def scenario() -> None:
        characters, _, _, distributor = build(tmp_path, rng=ScriptedRandom([0.9, 0.5, 0.0]))
        await characters.save(create_character("u1", "Hero", "Warrior"))
        sock = Item(item_id="sock", name="Lucky Sock", rarity="common", item_type="cosmetic", category="fantasy")
        task = Task(
            task_id="task-2",
            title="Pair socks",
            difficulty="medium",
            frequency="daily",
            rewards=TaskRewardConfig(xp=20, gold=10, item_chance=0.5, possible_items=(sock,)),
        )

        bundle = await distributor.distribute_task_rewards(task, "u1")

        assert (bundle.xp, bundle.gold, bundle.items) == (170, 85, (sock,))
        hero = await characters.require("u1")
        assert (hero.experience, hero.gold) == (170, 85)
        assert [entry.item_id for entry in hero.inventory] == ["sock"]

    asyncio.run(scenario())


def test_achievement_rewards_are_granted_once(tmp_path) -> None:
    async def scenario() -> None:
        characters, _, log, distributor = build(tmp_path)
        await characters.save(create_character("u1", "Hero", "Priest"))
        achievement = create_achievement(get_achievement_template("adventure", "Boss Slayer"))

        await distributor.distribute_achievement_rewards(achievement, "u1")
        again = await distributor.distribute_achievement_rewards(achievement, "u1")

        assert again.is_empty
        hero = await characters.require("u1")
        assert hero.gold == 750
        assert hero.achievements == ("adventure.boss_slayer",)
        assert len(await log.history("u1")) == 1

    asyncio.run(scenario())
