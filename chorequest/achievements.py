"""Achievement templates and unlock evaluation."""

from __future__ import annotations

import re
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .content import ContentLoadError, load_yaml, require_mapping, require_sequence
from .errors import AchievementNotFound
from .rewards import RewardBundle

__all__ = [
    "ACHIEVEMENT_CATEGORIES",
    "ACHIEVEMENT_TEMPLATES",
    "Achievement",
    "AchievementProgress",
    "AchievementTemplate",
    "achievement_id_for",
    "create_achievement",
    "evaluate_achievements",
    "get_achievement_template",
]

ACHIEVEMENT_CATEGORIES: tuple[str, ...] = ("task", "adventure", "social", "collection")


@dataclass(frozen=True)
class AchievementProgress:
    """Counters an achievement requirement can be measured against."""

    completed_tasks: int = 0
    adventures: int = 0
    party_members: int = 0
    unique_items: int = 0
    legendary_items: int = 0
    tasks_today: int = 0
    party_tasks: int = 0
    bosses_defeated: int = 0

    def value(self, metric: str) -> int:
        return int(getattr(self, metric))


_METRICS = frozenset(field.name for field in fields(AchievementProgress))


@dataclass(frozen=True)
class AchievementTemplate:
    category: str
    title: str
    description: str
    metric: str
    threshold: int
    reward: RewardBundle

    @property
    def achievement_id(self) -> str:
        return achievement_id_for(self.category, self.title)

    def is_met(self, progress: AchievementProgress) -> bool:
        return progress.value(self.metric) >= self.threshold


@dataclass(frozen=True)
class Achievement:
    achievement_id: str
    title: str
    description: str
    category: str
    reward: RewardBundle
    unlocked_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.achievement_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "rewards": self.reward.to_dict(),
            "unlocked_at": self.unlocked_at.isoformat() if self.unlocked_at else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "Achievement":
        unlocked = data.get("unlocked_at")
        return cls(
            achievement_id=str(data["id"]),
            title=str(data["title"]),
            description=str(data.get("description", "")),
            category=str(data["category"]),
            reward=RewardBundle.from_dict(dict(data.get("rewards") or {})),  # type: ignore[arg-type]
            unlocked_at=datetime.fromisoformat(str(unlocked)) if unlocked else None,
        )


def achievement_id_for(category: str, title: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "_", title.casefold()).strip("_")
    return f"{category}.{slug}"


def _load_templates() -> Dict[str, Tuple[AchievementTemplate, ...]]:
    raw = require_mapping("achievements", load_yaml("achievements.yaml"))
    templates: Dict[str, Tuple[AchievementTemplate, ...]] = {}
    for category, entries in raw.items():
        if category not in ACHIEVEMENT_CATEGORIES:
            raise ContentLoadError(f"Unknown achievement category '{category}'")
        loaded: List[AchievementTemplate] = []
        for entry in require_sequence(f"achievements.{category}", entries):
            mapping = require_mapping(f"achievement in {category}", entry)
            requirement = require_mapping("requirement", mapping.get("requirement"))
            metric = str(requirement.get("metric", ""))
            if metric not in _METRICS:
                raise ContentLoadError(f"Unknown achievement metric '{metric}'")
            reward = require_mapping("reward", mapping.get("reward") or {})
            loaded.append(
                AchievementTemplate(
                    category=str(category),
                    title=str(mapping["title"]),
                    description=str(mapping.get("description", "")),
                    metric=metric,
                    threshold=int(requirement.get("threshold", 0)),  # type: ignore[arg-type]
                    reward=RewardBundle(
                        xp=int(reward.get("xp", 0)),  # type: ignore[arg-type]
                        gold=int(reward.get("gold", 0)),  # type: ignore[arg-type]
                    ),
                )
            )
        templates[str(category)] = tuple(loaded)
    return templates


ACHIEVEMENT_TEMPLATES: Dict[str, Tuple[AchievementTemplate, ...]] = _load_templates()


def get_achievement_template(category: str, title: str) -> AchievementTemplate:
    for template in ACHIEVEMENT_TEMPLATES.get(category, ()):
        if template.title.casefold() == title.casefold():
            return template
    raise AchievementNotFound(f"Achievement '{title}' not found in category '{category}'")


def create_achievement(template: AchievementTemplate, *, unlocked_at: datetime | None = None) -> Achievement:
    return Achievement(
        achievement_id=template.achievement_id,
        title=template.title,
        description=template.description,
        category=template.category,
        reward=template.reward,
        unlocked_at=unlocked_at or datetime.now(timezone.utc),
    )


def evaluate_achievements(
    progress: AchievementProgress,
    unlocked: Iterable[str] = (),
    *,
    now: datetime | None = None,
) -> List[Achievement]:
    """Return the achievements ``progress`` satisfies that are not yet unlocked.

    ``unlocked`` may hold achievement ids or titles.
    """

    seen = {value.casefold() for value in unlocked}
    timestamp = now or datetime.now(timezone.utc)
    earned: List[Achievement] = []
    for category in ACHIEVEMENT_CATEGORIES:
        for template in ACHIEVEMENT_TEMPLATES.get(category, ()):
            if template.achievement_id in seen or template.title.casefold() in seen:
                continue
            if template.is_met(progress):
                earned.append(create_achievement(template, unlocked_at=timestamp))
    return earned
