"""Wiring of stores and services shared by every cog."""

from __future__ import annotations

import random
from dataclasses import dataclass

from .config import Settings
from .distribution import PartyTaskDistributor
from .ledger import CombatLog, RewardLog
from .locks import KeyedLockRegistry
from .quests import TaskCompletionService
from .repository import CharacterRepository, ItemCatalog
from .rewards import RewardDistributor
from .task_store import TaskStore

__all__ = ["ChoreQuestServices"]


@dataclass
class ChoreQuestServices:
    characters: CharacterRepository
    tasks: TaskStore
    catalog: ItemCatalog
    reward_log: RewardLog
    combat_log: CombatLog
    distributor: PartyTaskDistributor
    rewards: RewardDistributor
    completions: TaskCompletionService

    @classmethod
    def from_settings(cls, settings: Settings, *, rng: random.Random | None = None) -> "ChoreQuestServices":
        locks = KeyedLockRegistry()
        characters = CharacterRepository(settings.characters_path)
        tasks = TaskStore(settings.tasks_path)
        catalog = ItemCatalog(settings.items_path)
        reward_log = RewardLog(settings.rewards_path)
        combat_log = CombatLog(settings.combat_path)
        rewards = RewardDistributor(characters, catalog, reward_log, locks=locks, rng=rng)
        return cls(
            characters=characters,
            tasks=tasks,
            catalog=catalog,
            reward_log=reward_log,
            combat_log=combat_log,
            distributor=PartyTaskDistributor(tasks, locks=locks),
            rewards=rewards,
            completions=TaskCompletionService(tasks, characters, combat_log, rewards, locks=locks),
        )
