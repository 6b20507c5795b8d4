from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
import sys

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from chorequest.characters import Character, CharacterStats, create_character
from chorequest.combat import (
    CombatStats,
    calculate_combat_stats,
    channel_damage,
    encounter_damage,
    resolve_combat,
)
from chorequest.errors import InvalidInput
from chorequest.tasks import Task

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_warrior() -> Character:
    character = create_character("user-1", "Brakka", "Warrior", character_id="char-1")
    return replace(character, level=10, stats=CharacterStats({"STR": 10, "DEX": 6, "INT": 4, "CON": 8}))


def make_task(frequency: str, difficulty: str = "hard") -> Task:
    return Task(task_id="task-1", title="Scrub floors", difficulty=difficulty, frequency=frequency)


def test_combat_stats_formulas() -> None:
    stats = CharacterStats({"STR": 10, "DEX": 6, "INT": 4, "CON": 8})
    assert calculate_combat_stats(stats) == CombatStats(
        max_health=130,
        melee_damage=25,
        ranged_damage=17,
        magic_damage=13,
        heal_power=11.0,
    )


def test_weekly_task_by_warrior_hits_every_target_for_fifty() -> None:
    actions = resolve_combat(make_warrior(), make_task("weekly"), now=NOW)

    assert [action.target for action in actions] == ["encounter", "miniBoss", "boss"]
    assert all(action.damage == 50 for action in actions)
    assert all(action.attack_type == "special" for action in actions)
    assert all(action.character_id == "char-1" and action.task_id == "task-1" for action in actions)
    assert all(action.timestamp == NOW for action in actions)
    assert encounter_damage(actions) == 50


def test_attack_tiers_scale_damage() -> None:
    warrior = make_warrior()
    daily = resolve_combat(warrior, make_task("daily"), targets=("encounter",))[0]
    weekly = resolve_combat(warrior, make_task("weekly"), targets=("encounter",))[0]
    monthly = resolve_combat(warrior, make_task("monthly"), targets=("encounter",))[0]

    assert (daily.attack_type, weekly.attack_type, monthly.attack_type) == ("basic", "special", "ultimate")
    assert weekly.damage == 2 * daily.damage
    assert monthly.damage == 4 * daily.damage


def test_task_difficulty_does_not_change_damage() -> None:
    warrior = make_warrior()
    easy = resolve_combat(warrior, make_task("daily", "easy"))
    hard = resolve_combat(warrior, make_task("daily", "very_hard"))
    assert [a.damage for a in easy] == [a.damage for a in hard]


@pytest.mark.parametrize(
    ("class_key", "expected"),
    [
        ("Warrior", 25),
        ("Monk", 25),
        ("Ranger", 17),
        ("Gunner", 17),
        ("Mage", 13),
        ("Priest", 13),
        ("MagicSwordsman", 13),
        ("Rogue", 21),
    ],
)
def test_damage_channel_per_class(class_key: str, expected: float) -> None:
    combat = calculate_combat_stats(CharacterStats({"STR": 10, "DEX": 6, "INT": 4, "CON": 8}))
    assert channel_damage(class_key, combat) == expected


def test_unknown_class_has_no_damage_channel() -> None:
    combat = calculate_combat_stats(CharacterStats({"STR": 1, "DEX": 1, "INT": 1, "CON": 1}))
    with pytest.raises(InvalidInput):
        channel_damage("Bard", combat)


def test_resolve_combat_rejects_unknown_targets() -> None:
    with pytest.raises(InvalidInput):
        resolve_combat(make_warrior(), make_task("daily"), targets=("dragon",))
