"""Reward calculation and distribution.

The calculators are pure functions over an injectable RNG. The
:class:`RewardDistributor` applies their bundles to stored characters and
records every grant in the reward log.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, Mapping, Optional, Sequence, Tuple, TYPE_CHECKING

from .characters import Character
from .errors import InvalidInput, RewardLogError
from .items import ITEM_CATEGORIES, Item, _pick, generate_item
from .ledger import RewardLog, RewardRecord
from .locks import KeyedLockRegistry
from .repository import CharacterRepository, ItemCatalog
from .tasks import PartyMember, Task, require_target

if TYPE_CHECKING:
    from .achievements import Achievement

__all__ = [
    "COMBAT_DROP_CHANCES",
    "COMBAT_DROP_RARITIES",
    "DIFFICULTY_MULTIPLIERS",
    "FREQUENCY_MULTIPLIERS",
    "ITEM_CHANCE_MULTIPLIER",
    "TARGET_MULTIPLIERS",
    "RewardBundle",
    "RewardDistributor",
    "calculate_combat_rewards",
    "calculate_task_rewards",
    "combat_drop_rarity",
    "combine_bundles",
    "roll_combat_drop",
    "roll_task_bonus",
]

log = logging.getLogger(__name__)

BASE_TASK_XP = 100
BASE_TASK_GOLD = 50

# Task drop chances are dampened; combat drop chances are not.
ITEM_CHANCE_MULTIPLIER = 0.1

DIFFICULTY_MULTIPLIERS: Mapping[str, float] = {
    "easy": 1,
    "medium": 1.5,
    "hard": 2,
    "very_hard": 3,
}

FREQUENCY_MULTIPLIERS: Mapping[str, int] = {
    "daily": 1,
    "weekly": 2,
    "monthly": 3,
}

TARGET_MULTIPLIERS: Mapping[str, int] = {
    "encounter": 1,
    "miniBoss": 2,
    "boss": 5,
}

COMBAT_XP_RATE = 0.5
COMBAT_GOLD_RATE = 0.2

COMBAT_DROP_CHANCES: Mapping[str, float] = {
    "encounter": 0.1,
    "miniBoss": 0.3,
    "boss": 0.5,
}

COMBAT_DROP_RARITIES: Mapping[str, str] = {
    "encounter": "common",
    "miniBoss": "rare",
    "boss": "epic",
}

CATALOG_CANDIDATES = 10


@dataclass(frozen=True)
class RewardBundle:
    """XP, gold and items granted for a single event."""

    xp: int = 0
    gold: int = 0
    items: Tuple[Item, ...] = ()

    def __post_init__(self) -> None:
        if self.xp < 0 or self.gold < 0:
            raise InvalidInput("Reward bundles cannot carry negative xp or gold")

    @property
    def is_empty(self) -> bool:
        return not self.xp and not self.gold and not self.items

    def to_dict(self) -> Dict[str, object]:
        return {
            "xp": self.xp,
            "gold": self.gold,
            "items": [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "RewardBundle":
        return cls(
            xp=int(data.get("xp", 0)),  # type: ignore[arg-type]
            gold=int(data.get("gold", 0)),  # type: ignore[arg-type]
            items=tuple(Item.from_dict(entry) for entry in data.get("items") or ()),  # type: ignore[union-attr]
        )


def combine_bundles(bundles: Iterable[RewardBundle]) -> RewardBundle:
    """Sum several bundles into one, keeping item order."""

    xp = gold = 0
    items: list[Item] = []
    for bundle in bundles:
        xp += bundle.xp
        gold += bundle.gold
        items.extend(bundle.items)
    return RewardBundle(xp=xp, gold=gold, items=tuple(items))


def calculate_task_rewards(
    task: Task,
    member: PartyMember | Character | None = None,
    *,
    rng: random.Random | None = None,
) -> RewardBundle:
    """Return the bundle earned by completing ``task``.

    ``member`` is accepted for parity with the other calculators; rewards do
    not depend on who completes the task.
    """

    generator = rng or random
    multiplier = DIFFICULTY_MULTIPLIERS[task.difficulty] * FREQUENCY_MULTIPLIERS[task.frequency]
    xp = math.floor(BASE_TASK_XP * multiplier)
    gold = math.floor(BASE_TASK_GOLD * multiplier)

    items: Tuple[Item, ...] = ()
    chance = task.rewards.item_chance * ITEM_CHANCE_MULTIPLIER
    if generator.random() < chance:
        category = _pick(generator, ITEM_CATEGORIES)
        items = (generate_item(category, rng=generator),)
    return RewardBundle(xp=xp, gold=gold, items=items)


def roll_task_bonus(task: Task, rng: random.Random | None = None) -> RewardBundle:
    """Return the rewards authored on ``task`` itself.

    The flat ``xp``/``gold`` are always granted. One item from
    ``possible_items`` drops when a roll lands at or below ``item_chance``;
    no roll is made without a pool.
    """

    config = task.rewards
    items: Tuple[Item, ...] = ()
    if config.possible_items and config.item_chance > 0:
        generator = rng or random
        if generator.random() <= config.item_chance:
            items = (_pick(generator, config.possible_items),)
    return RewardBundle(xp=config.xp, gold=config.gold, items=items)


def calculate_combat_rewards(damage: float, target: str) -> RewardBundle:
    """Return the xp/gold part of a combat reward (no item roll)."""

    if damage < 0:
        raise InvalidInput(f"Damage must not be negative (got {damage})")
    multiplier = TARGET_MULTIPLIERS[require_target(target)]
    return RewardBundle(
        xp=math.floor(damage * COMBAT_XP_RATE * multiplier),
        gold=math.floor(damage * COMBAT_GOLD_RATE * multiplier),
    )


def roll_combat_drop(target: str, rng: random.Random | None = None) -> bool:
    generator = rng or random
    return generator.random() <= COMBAT_DROP_CHANCES[require_target(target)]


def combat_drop_rarity(target: str) -> str:
    return COMBAT_DROP_RARITIES[require_target(target)]


class RewardDistributor:
    """Apply reward bundles to characters and record them.

    Grants for the same user are serialised. A grant either applies in full or
    not at all; a failing audit write is reported as :class:`RewardLogError`
    after the grant has been applied.
    """

    def __init__(
        self,
        characters: CharacterRepository,
        catalog: ItemCatalog,
        reward_log: RewardLog,
        *,
        locks: KeyedLockRegistry | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._characters = characters
        self._catalog = catalog
        self._reward_log = reward_log
        self._locks = locks or KeyedLockRegistry()
        self._rng = rng
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def distribute_task_rewards(self, task: Task, user_id: str) -> RewardBundle:
        async with self._locks.hold(("member", str(user_id))):
            character = await self._characters.require(user_id)
            bundle = combine_bundles(
                (
                    calculate_task_rewards(task, character, rng=self._rng),
                    roll_task_bonus(task, self._rng),
                )
            )
            await self._apply(user_id, bundle)
        await self._record(user_id, "task", task.task_id, bundle)
        return bundle

    async def distribute_combat_rewards(
        self,
        damage: float,
        target: str,
        user_id: str,
        *,
        source_id: Optional[str] = None,
    ) -> RewardBundle:
        async with self._locks.hold(("member", str(user_id))):
            await self._characters.require(user_id)
            base = calculate_combat_rewards(damage, target)
            items: Tuple[Item, ...] = ()
            if roll_combat_drop(target, self._rng):
                item = await self._catalog.random_item(
                    combat_drop_rarity(target), rng=self._rng, limit=CATALOG_CANDIDATES
                )
                if item is not None:
                    items = (item,)
            bundle = RewardBundle(xp=base.xp, gold=base.gold, items=items)
            await self._apply(user_id, bundle)
        await self._record(user_id, "combat", source_id or target, bundle)
        return bundle

    async def distribute_achievement_rewards(
        self, achievement: "Achievement", user_id: str
    ) -> RewardBundle:
        bundle = achievement.reward
        async with self._locks.hold(("member", str(user_id))):
            character = await self._characters.require(user_id)
            if achievement.achievement_id in character.achievements:
                log.info("%s already holds %s; nothing granted", user_id, achievement.achievement_id)
                return RewardBundle()
            await self._apply(
                user_id,
                bundle,
                extra=lambda character: character.unlock_achievement(achievement.achievement_id),
            )
        await self._record(user_id, "achievement", achievement.achievement_id, bundle)
        return bundle

    async def reward_history(self, user_id: str, *, limit: int | None = None) -> Sequence[RewardRecord]:
        return await self._reward_log.history(user_id, limit=limit)

    async def _apply(
        self,
        user_id: str,
        bundle: RewardBundle,
        *,
        extra: Callable[[Character], Character] | None = None,
    ) -> Character:
        before: list[int] = []

        def mutate(character: Character) -> Character:
            before.append(character.level)
            updated = character.add_experience(bundle.xp).add_gold(bundle.gold)
            if bundle.items:
                updated = updated.add_items(bundle.items)
            if extra is not None:
                updated = extra(updated)
            return updated

        updated = await self._characters.update(user_id, mutate)
        log.info(
            "Granted %s xp, %s gold and %s items to %s",
            bundle.xp,
            bundle.gold,
            len(bundle.items),
            user_id,
        )
        if before and updated.level > before[0]:
            log.info("%s reached level %s", updated.name, updated.level)
        return updated

    async def _record(self, user_id: str, event_type: str, source_id: str, bundle: RewardBundle) -> None:
        record = RewardRecord(
            user_id=str(user_id),
            event_type=event_type,
            source_id=str(source_id),
            bundle=bundle,
            timestamp=self._clock(),
        )
        try:
            await self._reward_log.append(record)
        except Exception as exc:
            log.exception("Failed to record %s reward for %s", event_type, user_id)
            raise RewardLogError(
                f"Reward for {user_id} was granted but could not be logged", bundle=bundle
            ) from exc
