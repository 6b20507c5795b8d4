"""Domain models for party tasks and the members they are assigned to."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Mapping, Optional, Sequence, TYPE_CHECKING

from .errors import InvalidInput

if TYPE_CHECKING:
    from .items import Item

__all__ = [
    "ATTACK_TARGETS",
    "DIFFICULTIES",
    "DIFFICULTY_WEIGHTS",
    "FREQUENCIES",
    "TASK_CATEGORIES",
    "TASK_STATUSES",
    "CombatContribution",
    "PartyMember",
    "Task",
    "TaskRewardConfig",
    "require_difficulty",
    "require_frequency",
    "require_target",
]

DIFFICULTIES: tuple[str, ...] = ("easy", "medium", "hard", "very_hard")
FREQUENCIES: tuple[str, ...] = ("daily", "weekly", "monthly")
TASK_CATEGORIES: tuple[str, ...] = ("chores", "work", "health", "learning", "social", "personal")
TASK_STATUSES: tuple[str, ...] = ("pending", "in_progress", "completed", "failed")
ATTACK_TARGETS: tuple[str, ...] = ("encounter", "miniBoss", "boss")

# Workload contributed to the assignee; strictly increasing with difficulty.
DIFFICULTY_WEIGHTS: Mapping[str, int] = {
    "easy": 1,
    "medium": 2,
    "hard": 3,
    "very_hard": 4,
}


def _require_key(kind: str, value: object, allowed: Sequence[str]) -> str:
    key = str(value)
    if key not in allowed:
        raise InvalidInput(f"Unknown {kind} '{value}' (expected one of: {', '.join(allowed)})")
    return key


def require_difficulty(value: object) -> str:
    return _require_key("difficulty", value, DIFFICULTIES)


def require_frequency(value: object) -> str:
    return _require_key("frequency", value, FREQUENCIES)


def require_target(value: object) -> str:
    return _require_key("target", value, ATTACK_TARGETS)


def _parse_datetime(value: object) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass(frozen=True)
class PartyMember:
    """A party member as seen by the task distributor."""

    member_id: str
    level: int = 1
    name: str = ""

    def __post_init__(self) -> None:
        if int(self.level) < 1:
            raise InvalidInput(f"Member level must be positive (got {self.level})")


@dataclass(frozen=True)
class TaskRewardConfig:
    """Reward settings authored on a task or task template."""

    xp: int = 0
    gold: int = 0
    item_chance: float = 0.0
    possible_items: tuple["Item", ...] = ()

    def __post_init__(self) -> None:
        if not 0.0 <= float(self.item_chance) <= 1.0:
            raise InvalidInput(f"item_chance must be within [0, 1] (got {self.item_chance})")

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {
            "xp": self.xp,
            "gold": self.gold,
            "item_chance": self.item_chance,
        }
        if self.possible_items:
            data["possible_items"] = [item.to_dict() for item in self.possible_items]
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "TaskRewardConfig":
        from .items import Item

        raw_items = data.get("possible_items") or ()
        return cls(
            xp=int(data.get("xp", 0)),
            gold=int(data.get("gold", 0)),
            item_chance=float(data.get("item_chance", 0.0)),
            possible_items=tuple(Item.from_dict(entry) for entry in raw_items),
        )


@dataclass(frozen=True)
class CombatContribution:
    """Summary stored on a completed task."""

    damage: float
    attack_type: str
    target: str = "encounter"

    def to_dict(self) -> Dict[str, object]:
        return {"damage": self.damage, "attack_type": self.attack_type, "target": self.target}

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "CombatContribution":
        return cls(
            damage=float(data["damage"]),
            attack_type=str(data["attack_type"]),
            target=str(data.get("target", "encounter")),
        )


@dataclass(frozen=True)
class Task:
    """A household chore modelled as a quest."""

    task_id: str
    title: str
    difficulty: str
    frequency: str
    rewards: TaskRewardConfig = field(default_factory=TaskRewardConfig)
    assigned_to: Optional[str] = None
    party_id: Optional[str] = None
    description: str = ""
    category: str = "chores"
    status: str = "pending"
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None
    combat_contribution: Optional[CombatContribution] = None

    def __post_init__(self) -> None:
        require_difficulty(self.difficulty)
        require_frequency(self.frequency)
        _require_key("category", self.category, TASK_CATEGORIES)
        _require_key("status", self.status, TASK_STATUSES)

    @property
    def weight(self) -> int:
        return DIFFICULTY_WEIGHTS[self.difficulty]

    @property
    def is_assigned(self) -> bool:
        return bool(self.assigned_to)

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {
            "id": self.task_id,
            "title": self.title,
            "difficulty": self.difficulty,
            "frequency": self.frequency,
            "rewards": self.rewards.to_dict(),
            "category": self.category,
            "status": self.status,
        }
        if self.description:
            data["description"] = self.description
        if self.assigned_to is not None:
            data["assigned_to"] = self.assigned_to
        if self.party_id is not None:
            data["party_id"] = self.party_id
        if self.created_at is not None:
            data["created_at"] = self.created_at.isoformat()
        if self.completed_at is not None:
            data["completed_at"] = self.completed_at.isoformat()
        if self.completed_by is not None:
            data["completed_by"] = self.completed_by
        if self.combat_contribution is not None:
            data["combat_contribution"] = self.combat_contribution.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "Task":
        contribution_raw = data.get("combat_contribution")
        assigned = data.get("assigned_to")
        party_id = data.get("party_id")
        completed_by = data.get("completed_by")
        return cls(
            task_id=str(data["id"]),
            title=str(data.get("title", "")),
            difficulty=str(data["difficulty"]),
            frequency=str(data["frequency"]),
            rewards=TaskRewardConfig.from_dict(dict(data.get("rewards") or {})),
            assigned_to=str(assigned) if assigned else None,
            party_id=str(party_id) if party_id else None,
            description=str(data.get("description", "")),
            category=str(data.get("category", "chores")),
            status=str(data.get("status", "pending")),
            created_at=_parse_datetime(data.get("created_at")),
            completed_at=_parse_datetime(data.get("completed_at")),
            completed_by=str(completed_by) if completed_by else None,
            combat_contribution=(
                CombatContribution.from_dict(dict(contribution_raw))
                if isinstance(contribution_raw, Mapping)
                else None
            ),
        )
