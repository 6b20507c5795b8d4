"""Combat resolution for completed tasks.

Completing a task is an attack on every active party target. The task's
frequency picks the attack tier and the character's class picks which combat
stat deals the damage.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Mapping, Sequence, Tuple

from .characters import Character, CharacterStats
from .errors import InvalidInput
from .tasks import ATTACK_TARGETS, Task, require_frequency, require_target

__all__ = [
    "ATTACK_TIERS",
    "DAMAGE_CHANNELS",
    "AttackTier",
    "CombatAction",
    "CombatStats",
    "attack_for_frequency",
    "calculate_combat_stats",
    "channel_damage",
    "encounter_damage",
    "resolve_combat",
]


@dataclass(frozen=True)
class AttackTier:
    attack_type: str
    multiplier: int


ATTACK_TIERS: Mapping[str, AttackTier] = {
    "daily": AttackTier("basic", 1),
    "weekly": AttackTier("special", 2),
    "monthly": AttackTier("ultimate", 4),
}

DAMAGE_CHANNELS: Mapping[str, str] = {
    "Warrior": "melee",
    "Monk": "melee",
    "Ranger": "ranged",
    "Gunner": "ranged",
    "Mage": "magic",
    "Priest": "magic",
    "MagicSwordsman": "magic",
    "Rogue": "hybrid",
}


@dataclass(frozen=True)
class CombatStats:
    max_health: int
    melee_damage: int
    ranged_damage: int
    magic_damage: int
    heal_power: float


def calculate_combat_stats(stats: CharacterStats) -> CombatStats:
    """Derive combat stats from core attributes.

    Equipment does not contribute yet, so bonuses are always zero.
    """

    return CombatStats(
        max_health=50 + stats["CON"] * 10,
        melee_damage=5 + stats["STR"] * 2,
        ranged_damage=5 + stats["DEX"] * 2,
        magic_damage=5 + stats["INT"] * 2,
        heal_power=5 + stats["INT"] * 1.5,
    )


def attack_for_frequency(frequency: str) -> AttackTier:
    return ATTACK_TIERS[require_frequency(frequency)]


def channel_damage(class_key: str, combat_stats: CombatStats) -> float:
    """Return the per-hit damage for ``class_key`` before the tier multiplier."""

    try:
        channel = DAMAGE_CHANNELS[class_key]
    except KeyError:
        raise InvalidInput(f"No damage channel defined for class '{class_key}'") from None
    if channel == "melee":
        return combat_stats.melee_damage
    if channel == "ranged":
        return combat_stats.ranged_damage
    if channel == "magic":
        return combat_stats.magic_damage
    return (combat_stats.melee_damage + combat_stats.ranged_damage) / 2


@dataclass(frozen=True)
class CombatAction:
    """An append-only record of damage dealt to one target."""

    attack_type: str
    damage: float
    target: str
    character_id: str
    task_id: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, object]:
        return {
            "type": self.attack_type,
            "damage": self.damage,
            "target": self.target,
            "character_id": self.character_id,
            "task_id": self.task_id,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "CombatAction":
        return cls(
            attack_type=str(data["type"]),
            damage=float(data["damage"]),  # type: ignore[arg-type]
            target=require_target(data["target"]),
            character_id=str(data["character_id"]),
            task_id=str(data["task_id"]),
            timestamp=datetime.fromisoformat(str(data["timestamp"])),
        )


def resolve_combat(
    character: Character,
    task: Task,
    *,
    targets: Sequence[str] = ATTACK_TARGETS,
    now: datetime | None = None,
) -> Tuple[CombatAction, ...]:
    """Return one combat action per target for ``character`` completing ``task``."""

    tier = attack_for_frequency(task.frequency)
    damage = channel_damage(character.class_key, calculate_combat_stats(character.stats)) * tier.multiplier
    timestamp = now or datetime.now(timezone.utc)
    return tuple(
        CombatAction(
            attack_type=tier.attack_type,
            damage=damage,
            target=require_target(target),
            character_id=character.character_id,
            task_id=task.task_id,
            timestamp=timestamp,
        )
        for target in targets
    )


def encounter_damage(actions: Sequence[CombatAction]) -> float:
    """Damage dealt to the encounter target, the figure stored on the task."""

    return sum(action.damage for action in actions if action.target == "encounter")
