"""Domain models and helpers for party characters."""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Mapping, Sequence, TYPE_CHECKING

from .content import ContentLoadError, load_yaml, require_mapping, require_sequence
from .errors import InvalidInput

if TYPE_CHECKING:
    from .items import Item

STAT_NAMES: tuple[str, ...] = ("STR", "DEX", "INT", "CON")
STAT_POINTS_PER_LEVEL = 5


@dataclass(frozen=True)
class CharacterClass:
    key: str
    name: str
    description: str
    base_stats: Mapping[str, int]
    stat_growth: Mapping[str, float]
    skills: tuple[str, ...] = ()

    def stats_at_level(self, level: int) -> "CharacterStats":
        """Return the class baseline at ``level`` (growth floored per stat)."""

        level_diff = max(0, int(level) - 1)
        return CharacterStats(
            {
                stat: math.floor(self.base_stats[stat] + self.stat_growth[stat] * level_diff)
                for stat in STAT_NAMES
            }
        )


@dataclass
class CharacterStats:
    """Core attributes driving combat stats."""

    values: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        missing = set(STAT_NAMES) - set(self.values)
        if missing:
            raise InvalidInput(f"Missing stats for: {', '.join(sorted(missing))}")
        for stat, value in self.values.items():
            if stat not in STAT_NAMES:
                raise InvalidInput(f"Unknown stat '{stat}'")
            self.values[stat] = int(value)

    def __getitem__(self, stat: str) -> int:
        return self.values[stat.upper()]

    def with_bonuses(self, bonuses: Mapping[str, int]) -> "CharacterStats":
        updated = {stat: self.values[stat] for stat in STAT_NAMES}
        for stat, bonus in bonuses.items():
            upper = stat.upper()
            if upper not in STAT_NAMES:
                raise InvalidInput(f"Unknown stat '{stat}' in bonuses")
            updated[upper] += int(bonus)
        return CharacterStats(updated)

    def as_lines(self) -> Iterable[str]:
        return (f"{stat}: {self.values[stat]}" for stat in STAT_NAMES)

    def to_dict(self) -> Dict[str, int]:
        return dict(self.values)

    @classmethod
    def from_dict(cls, data: Mapping[str, int]) -> "CharacterStats":
        return cls({str(k).upper(): int(v) for k, v in data.items()})


@dataclass(frozen=True)
class InventoryEntry:
    item_id: str
    quantity: int = 1
    name: str = ""

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {"id": self.item_id, "quantity": self.quantity}
        if self.name:
            data["name"] = self.name
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "InventoryEntry":
        return cls(
            item_id=str(data["id"]),
            quantity=int(data.get("quantity", 1)),
            name=str(data.get("name", "")),
        )


def merge_inventory(
    inventory: Sequence[InventoryEntry], items: Iterable["Item"]
) -> tuple[InventoryEntry, ...]:
    """Add ``items`` to ``inventory``, stacking entries that share an item id."""

    merged: Dict[str, InventoryEntry] = {entry.item_id: entry for entry in inventory}
    for item in items:
        existing = merged.get(item.item_id)
        if existing is None:
            merged[item.item_id] = InventoryEntry(item_id=item.item_id, quantity=1, name=item.name)
        else:
            merged[item.item_id] = replace(existing, quantity=existing.quantity + 1)
    return tuple(merged.values())


def experience_for_level(level: int) -> int:
    """Total experience required to reach ``level``."""

    return math.floor(100 * math.pow(level, 1.5))


@dataclass
class Character:
    """Persistent representation of a member's adventurer."""

    character_id: str
    user_id: str
    name: str
    class_key: str
    stats: CharacterStats
    level: int = 1
    experience: int = 0
    gold: int = 0
    inventory: tuple[InventoryEntry, ...] = ()
    achievements: tuple[str, ...] = ()
    unspent_stat_points: int = 0

    @property
    def character_class(self) -> CharacterClass:
        return AVAILABLE_CLASSES[self.class_key]

    @property
    def unique_item_count(self) -> int:
        return len({entry.item_id for entry in self.inventory})

    def add_experience(self, amount: int) -> "Character":
        """Return a copy with ``amount`` experience added, levelling up as needed."""

        if amount < 0:
            raise InvalidInput("Experience gains must not be negative")
        experience = self.experience + int(amount)
        level = self.level
        while experience >= experience_for_level(level + 1):
            level += 1
        if level == self.level:
            return replace(self, experience=experience)
        gained = level - self.level
        # Allocated points survive the baseline recalculation.
        previous = self.character_class.stats_at_level(self.level)
        allocated = {stat: self.stats[stat] - previous[stat] for stat in STAT_NAMES}
        return replace(
            self,
            experience=experience,
            level=level,
            stats=self.character_class.stats_at_level(level).with_bonuses(allocated),
            unspent_stat_points=self.unspent_stat_points + gained * STAT_POINTS_PER_LEVEL,
        )

    def add_gold(self, amount: int) -> "Character":
        if amount < 0:
            raise InvalidInput("Gold gains must not be negative")
        return replace(self, gold=self.gold + int(amount))

    def add_items(self, items: Iterable["Item"]) -> "Character":
        return replace(self, inventory=merge_inventory(self.inventory, items))

    def allocate_stat_points(self, points: Mapping[str, int]) -> "Character":
        spent = 0
        for stat, value in points.items():
            if int(value) < 0:
                raise InvalidInput(f"Cannot allocate negative points to {stat}")
            spent += int(value)
        if spent > self.unspent_stat_points:
            raise InvalidInput(
                f"Cannot allocate {spent} points; only {self.unspent_stat_points} available"
            )
        return replace(
            self,
            stats=self.stats.with_bonuses(points),
            unspent_stat_points=self.unspent_stat_points - spent,
        )

    def unlock_achievement(self, achievement_id: str) -> "Character":
        if achievement_id in self.achievements:
            return self
        return replace(self, achievements=(*self.achievements, achievement_id))

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.character_id,
            "user_id": self.user_id,
            "name": self.name,
            "class": self.class_key,
            "stats": self.stats.to_dict(),
            "level": self.level,
            "experience": self.experience,
            "gold": self.gold,
            "inventory": [entry.to_dict() for entry in self.inventory],
            "achievements": list(self.achievements),
            "unspent_stat_points": self.unspent_stat_points,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "Character":
        class_key = resolve_class_key(str(data["class"]))
        stats_raw = data.get("stats")
        if stats_raw is None:
            raise KeyError("stats")
        return cls(
            character_id=str(data["id"]),
            user_id=str(data["user_id"]),
            name=str(data.get("name", "Unnamed Adventurer")),
            class_key=class_key,
            stats=CharacterStats.from_dict(dict(stats_raw)),  # type: ignore[arg-type]
            level=int(data.get("level", 1)),
            experience=int(data.get("experience", 0)),
            gold=int(data.get("gold", 0)),
            inventory=tuple(
                InventoryEntry.from_dict(entry) for entry in data.get("inventory", [])  # type: ignore[union-attr]
            ),
            achievements=tuple(str(value) for value in data.get("achievements", [])),  # type: ignore[union-attr]
            unspent_stat_points=int(data.get("unspent_stat_points", 0)),
        )


def resolve_class_key(value: str) -> str:
    """Return the canonical class key for ``value`` (case and spacing insensitive)."""

    normalised = "".join(value.split()).casefold()
    for key in AVAILABLE_CLASSES:
        if key.casefold() == normalised:
            return key
    raise InvalidInput(f"Unknown character class '{value}'")


def create_character(
    user_id: str,
    name: str,
    class_key: str,
    *,
    character_id: str | None = None,
) -> Character:
    """Build a level 1 character using the class baseline stats."""

    key = resolve_class_key(class_key)
    character_class = AVAILABLE_CLASSES[key]
    cleaned = name.strip()
    if not cleaned:
        raise InvalidInput("Character name must not be empty")
    return Character(
        character_id=character_id or uuid.uuid4().hex,
        user_id=str(user_id),
        name=cleaned,
        class_key=key,
        stats=character_class.stats_at_level(1),
    )


def _stat_table(owner: str, raw: object, cast) -> Dict[str, object]:
    mapping = require_mapping(owner, raw)
    table = {str(stat).upper(): cast(value) for stat, value in mapping.items()}
    missing = set(STAT_NAMES) - set(table)
    if missing:
        raise ContentLoadError(f"{owner} is missing: {', '.join(sorted(missing))}")
    return table


def _load_classes() -> Dict[str, CharacterClass]:
    classes: Dict[str, CharacterClass] = {}
    for entry in require_sequence("classes", load_yaml("classes.yaml")):
        mapping = require_mapping("class entry", entry)
        key = str(mapping.get("key") or "")
        if not key:
            raise ContentLoadError("Class entry missing key")
        classes[key] = CharacterClass(
            key=key,
            name=str(mapping.get("name") or key),
            description=str(mapping.get("description", "")),
            base_stats=_stat_table(f"{key}.base_stats", mapping.get("base_stats", {}), int),
            stat_growth=_stat_table(f"{key}.stat_growth", mapping.get("stat_growth", {}), float),
            skills=tuple(str(skill) for skill in mapping.get("skills", [])),
        )
    return classes


AVAILABLE_CLASSES: Dict[str, CharacterClass] = _load_classes()


__all__ = [
    "STAT_NAMES",
    "STAT_POINTS_PER_LEVEL",
    "AVAILABLE_CLASSES",
    "Character",
    "CharacterClass",
    "CharacterStats",
    "InventoryEntry",
    "create_character",
    "experience_for_level",
    "merge_inventory",
    "resolve_class_key",
]
