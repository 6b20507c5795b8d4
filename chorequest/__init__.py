"""ChoreQuest core: fair task distribution, rewards, loot and combat."""

from .achievements import (
    ACHIEVEMENT_TEMPLATES,
    Achievement,
    AchievementProgress,
    evaluate_achievements,
    get_achievement_template,
)
from .characters import (
    AVAILABLE_CLASSES,
    Character,
    CharacterClass,
    CharacterStats,
    create_character,
    experience_for_level,
)
from .combat import CombatAction, calculate_combat_stats, resolve_combat
from .config import Settings, load_settings
from .distribution import (
    Assignment,
    DistributionResult,
    PartyTaskDistributor,
    distribute_tasks,
    validate_distribution,
)
from .errors import (
    AchievementNotFound,
    CharacterNotFound,
    ChoreQuestError,
    InvalidInput,
    NotFoundError,
    RewardLogError,
    TaskAlreadyCompleted,
    TaskNotFound,
)
from .items import Item, generate_item, generate_random_items, select_rarity
from .ledger import CombatLog, RewardLog, RewardRecord
from .quests import CompletionResult, TaskCompletionService
from .repository import CharacterRepository, ItemCatalog
from .rewards import RewardBundle, RewardDistributor, calculate_task_rewards
from .services import ChoreQuestServices
from .task_store import TaskStore
from .tasks import (
    DIFFICULTIES,
    FREQUENCIES,
    TASK_CATEGORIES,
    PartyMember,
    Task,
    TaskRewardConfig,
)

__all__ = [
    "ACHIEVEMENT_TEMPLATES",
    "AVAILABLE_CLASSES",
    "DIFFICULTIES",
    "FREQUENCIES",
    "TASK_CATEGORIES",
    "Achievement",
    "AchievementNotFound",
    "AchievementProgress",
    "Assignment",
    "Character",
    "CharacterClass",
    "CharacterNotFound",
    "CharacterRepository",
    "CharacterStats",
    "ChoreQuestError",
    "ChoreQuestServices",
    "CombatAction",
    "CombatLog",
    "CompletionResult",
    "DistributionResult",
    "InvalidInput",
    "Item",
    "ItemCatalog",
    "NotFoundError",
    "PartyMember",
    "PartyTaskDistributor",
    "RewardBundle",
    "RewardDistributor",
    "RewardLog",
    "RewardLogError",
    "RewardRecord",
    "Settings",
    "Task",
    "TaskAlreadyCompleted",
    "TaskCompletionService",
    "TaskNotFound",
    "TaskRewardConfig",
    "TaskStore",
    "calculate_combat_stats",
    "calculate_task_rewards",
    "create_character",
    "distribute_tasks",
    "evaluate_achievements",
    "experience_for_level",
    "generate_item",
    "generate_random_items",
    "get_achievement_template",
    "load_settings",
    "resolve_combat",
    "select_rarity",
    "validate_distribution",
]
