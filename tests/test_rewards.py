from dataclasses import replace
import random
from pathlib import Path
import sys

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from chorequest.errors import InvalidInput
from chorequest.items import Item
from chorequest.rewards import (
    RewardBundle,
    calculate_combat_rewards,
    calculate_task_rewards,
    combat_drop_rarity,
    combine_bundles,
    roll_combat_drop,
    roll_task_bonus,
)
from chorequest.tasks import Task, TaskRewardConfig


class ScriptedRandom(random.Random):
    def __init__(self, values) -> None:
        super().__init__(0)
        self._values = list(values)

    def random(self) -> float:
        return self._values.pop(0)


def make_task(difficulty: str, frequency: str, *, item_chance: float = 0.0, pool=()) -> Task:
    return Task(
        task_id="task-1",
        title="Laundry",
        difficulty=difficulty,
        frequency=frequency,
        rewards=TaskRewardConfig(item_chance=item_chance, possible_items=tuple(pool)),
    )


def make_item(item_id: str, rarity: str = "common") -> Item:
    return Item(item_id=item_id, name=item_id.title(), rarity=rarity, item_type="weapon", category="fantasy")


def test_medium_daily_task_rewards() -> None:
    bundle = calculate_task_rewards(make_task("medium", "daily"), rng=ScriptedRandom([0.99]))
    assert (bundle.xp, bundle.gold, bundle.items) == (150, 75, ())


@pytest.mark.parametrize(
    ("difficulty", "frequency", "xp", "gold"),
    [
        ("easy", "daily", 100, 50),
        ("hard", "weekly", 400, 200),
        ("very_hard", "monthly", 900, 450),
    ],
)
def test_task_rewards_scale_with_difficulty_and_frequency(difficulty, frequency, xp, gold) -> None:
    bundle = calculate_task_rewards(make_task(difficulty, frequency), rng=random.Random(1))
    assert (bundle.xp, bundle.gold) == (xp, gold)


def test_zero_item_chance_never_drops() -> None:
    generator = random.Random(42)
    task = make_task("hard", "monthly", item_chance=0.0, pool=[make_item("sword")])
    for _ in range(500):
        assert calculate_task_rewards(task, rng=generator).items == ()


def test_task_item_chance_is_dampened() -> None:
    task = make_task("easy", "daily", item_chance=1.0)
    # A full item chance only drops on rolls below 0.1.
    assert calculate_task_rewards(task, rng=ScriptedRandom([0.1])).items == ()
    dropped = calculate_task_rewards(task, rng=ScriptedRandom([0.05, 0.0, 0.0, 0.0, 0.0]))
    assert len(dropped.items) == 1


def test_task_drop_is_generated_even_with_possible_items() -> None:
    task = make_task("easy", "daily", item_chance=1.0, pool=[make_item("sock")])
    # drop, category, rarity, subtype, template
    bundle = calculate_task_rewards(task, rng=ScriptedRandom([0.0, 0.0, 0.0, 0.0, 0.0]))
    assert [(item.name, item.category) for item in bundle.items] == [("Enchanted Sword", "fantasy")]
    assert bundle.items[0].item_id != "sock"


def test_calculated_task_rewards_ignore_authored_amounts() -> None:
    task = replace(make_task("easy", "daily"), rewards=TaskRewardConfig(xp=999, gold=999))
    bundle = calculate_task_rewards(task, rng=ScriptedRandom([0.99]))
    assert (bundle.xp, bundle.gold) == (100, 50)


def test_task_bonus_grants_authored_amounts_and_pool_items() -> None:
    pool = [make_item("sword"), make_item("shield"), make_item("wand")]
    task = replace(
        make_task("easy", "daily"),
        rewards=TaskRewardConfig(xp=30, gold=12, item_chance=0.4, possible_items=tuple(pool)),
    )
    bonus = roll_task_bonus(task, ScriptedRandom([0.4, 0.7]))
    assert (bonus.xp, bonus.gold) == (30, 12)
    assert [item.item_id for item in bonus.items] == ["wand"]
    assert roll_task_bonus(task, ScriptedRandom([0.41])).items == ()


def test_task_bonus_without_pool_makes_no_roll() -> None:
    task = replace(make_task("hard", "weekly", item_chance=1.0), rewards=TaskRewardConfig(xp=5, item_chance=1.0))
    bonus = roll_task_bonus(task, ScriptedRandom([]))
    assert (bonus.xp, bonus.gold, bonus.items) == (5, 0, ())


def test_combine_bundles_sums_everything() -> None:
    sword, shield = make_item("sword"), make_item("shield")
    combined = combine_bundles(
        [RewardBundle(xp=10, gold=1, items=(sword,)), RewardBundle(), RewardBundle(xp=5, gold=4, items=(shield,))]
    )
    assert combined == RewardBundle(xp=15, gold=5, items=(sword, shield))
    assert combine_bundles([]).is_empty


def test_task_drop_without_pool_generates_an_item() -> None:
    task = make_task("easy", "daily", item_chance=1.0)
    # drop, category, rarity, subtype, template
    bundle = calculate_task_rewards(task, rng=ScriptedRandom([0.0, 0.0, 0.0, 0.0, 0.0]))
    assert len(bundle.items) == 1
    item = bundle.items[0]
    assert (item.name, item.rarity, item.category) == ("Enchanted Sword", "common", "fantasy")


def test_combat_rewards_for_boss_scenario() -> None:
    bundle = calculate_combat_rewards(50, "boss")
    assert (bundle.xp, bundle.gold, bundle.items) == (125, 50, ())


def test_boss_rewards_are_five_times_encounter_rewards() -> None:
    encounter = calculate_combat_rewards(40, "encounter")
    mini_boss = calculate_combat_rewards(40, "miniBoss")
    boss = calculate_combat_rewards(40, "boss")
    assert (encounter.xp, encounter.gold) == (20, 8)
    assert (mini_boss.xp, mini_boss.gold) == (40, 16)
    assert (boss.xp, boss.gold) == (5 * encounter.xp, 5 * encounter.gold)


def test_combat_rewards_reject_bad_input() -> None:
    with pytest.raises(InvalidInput):
        calculate_combat_rewards(-1, "boss")
    with pytest.raises(InvalidInput):
        calculate_combat_rewards(10, "dragon")


def test_combat_drop_roll_is_inclusive_and_undampened() -> None:
    assert roll_combat_drop("boss", ScriptedRandom([0.5]))
    assert not roll_combat_drop("boss", ScriptedRandom([0.51]))
    assert roll_combat_drop("miniBoss", ScriptedRandom([0.3]))
    assert not roll_combat_drop("encounter", ScriptedRandom([0.2]))
    assert [combat_drop_rarity(target) for target in ("encounter", "miniBoss", "boss")] == [
        "common",
        "rare",
        "epic",
    ]


def test_reward_bundle_rejects_negative_values() -> None:
    with pytest.raises(InvalidInput):
        RewardBundle(xp=-1)
    assert RewardBundle().is_empty
    assert not RewardBundle(gold=1).is_empty


def test_reward_bundle_serialises_items() -> None:
    bundle = RewardBundle(xp=10, gold=5, items=(make_item("sword", "rare"),))
    restored = RewardBundle.from_dict(bundle.to_dict())
    assert restored == bundle
