"""Procedural loot generation.

Items are synthesised from the bundled template catalog
(``content/item_templates.yaml``). Every random draw goes through
``rng.random()`` so callers can inject a seeded or scripted generator.
"""

from __future__ import annotations

import math
import random
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Sequence, TypeVar

from .content import ContentLoadError, load_yaml, require_mapping, require_sequence
from .errors import InvalidInput
from .tasks import require_difficulty

__all__ = [
    "ITEM_CATEGORIES",
    "ITEM_TEMPLATES",
    "ITEM_TYPES",
    "RARITIES",
    "RARITY_VALUE_MULTIPLIERS",
    "RARITY_WEIGHTS",
    "STAT_NAMES",
    "Item",
    "ItemTemplate",
    "calculate_item_value",
    "describe_item",
    "generate_item",
    "generate_random_items",
    "rarity_prefix",
    "select_random_template",
    "select_rarity",
]

T = TypeVar("T")

RARITIES: tuple[str, ...] = ("common", "uncommon", "rare", "epic", "legendary", "mythic")
ITEM_TYPES: tuple[str, ...] = ("weapon", "armor", "artifact", "consumable", "cosmetic")
ITEM_CATEGORIES: tuple[str, ...] = ("fantasy", "steampunk", "scifi")
STAT_NAMES: tuple[str, ...] = ("power", "defense", "utility", "dexterity")

RARITY_WEIGHTS: Mapping[str, float] = {
    "common": 0.5,
    "uncommon": 0.25,
    "rare": 0.15,
    "epic": 0.07,
    "legendary": 0.025,
    "mythic": 0.005,
}

RARITY_VALUE_MULTIPLIERS: Mapping[str, int] = {
    "common": 1,
    "uncommon": 2,
    "rare": 4,
    "epic": 8,
    "legendary": 16,
    "mythic": 32,
}

GOLD_VALUE_MULTIPLIER = 10

_RARITY_PREFIXES: Mapping[str, str] = {
    "common": "",
    "uncommon": "Enhanced",
    "rare": "Mystic",
    "epic": "Ancient",
    "legendary": "Mythical",
    "mythic": "Cosmic",
}

_RARITY_PHRASES: Mapping[str, str] = {
    "common": "A standard",
    "uncommon": "An improved",
    "rare": "A powerful",
    "epic": "An ancient",
    "legendary": "A mythical",
    "mythic": "A cosmic",
}

_CATEGORY_PHRASES: Mapping[str, str] = {
    "fantasy": "with magical properties",
    "steampunk": "powered by steam and gears",
    "scifi": "using advanced technology",
}


def _new_item_id() -> str:
    return f"item_{uuid.uuid4().hex}"


def _stat_block(raw: Mapping[str, object] | None) -> Dict[str, int]:
    stats = {name: 0 for name in STAT_NAMES}
    for key, value in (raw or {}).items():
        name = str(key).lower()
        if name not in stats:
            raise InvalidInput(f"Unknown item stat '{key}'")
        stats[name] = int(value)
    return stats


@dataclass(frozen=True)
class Item:
    """An immutable loot item."""

    item_id: str
    name: str
    rarity: str
    item_type: str
    category: str
    stats: Mapping[str, int] = field(default_factory=dict)
    value: int = 0
    description: str = ""

    def __post_init__(self) -> None:
        if self.rarity not in RARITIES:
            raise InvalidInput(f"Unknown rarity '{self.rarity}'")
        if self.item_type not in ITEM_TYPES:
            raise InvalidInput(f"Unknown item type '{self.item_type}'")
        if self.category not in ITEM_CATEGORIES:
            raise InvalidInput(f"Unknown item category '{self.category}'")

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.item_id,
            "name": self.name,
            "rarity": self.rarity,
            "type": self.item_type,
            "category": self.category,
            "stats": dict(self.stats),
            "value": self.value,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "Item":
        return cls(
            item_id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            rarity=str(data.get("rarity", "common")).lower(),
            item_type=str(data.get("type", "artifact")).lower(),
            category=str(data.get("category", "fantasy")).lower(),
            stats=_stat_block(data.get("stats")),  # type: ignore[arg-type]
            value=int(data.get("value", 0)),
            description=str(data.get("description", "")),
        )


@dataclass(frozen=True)
class ItemTemplate:
    name: str
    item_type: str
    stats: Mapping[str, int]


def _load_item_templates() -> Dict[str, Dict[str, tuple[ItemTemplate, ...]]]:
    raw = require_mapping("item_templates", load_yaml("item_templates.yaml"))
    catalog: Dict[str, Dict[str, tuple[ItemTemplate, ...]]] = {}
    for category, subtypes in raw.items():
        category_key = str(category).lower()
        if category_key not in ITEM_CATEGORIES:
            raise ContentLoadError(f"Unknown item category '{category}' in templates")
        bucket: Dict[str, tuple[ItemTemplate, ...]] = {}
        for subtype, entries in require_mapping(f"{category_key} templates", subtypes).items():
            item_type = str(subtype).lower()
            if item_type not in ITEM_TYPES:
                raise ContentLoadError(f"Unknown item type '{subtype}' in {category_key} templates")
            templates: list[ItemTemplate] = []
            for entry in require_sequence(f"{category_key}.{item_type}", entries):
                mapping = require_mapping(f"{category_key}.{item_type} template", entry)
                name = mapping.get("name")
                if not name:
                    raise ContentLoadError(f"Template in {category_key}.{item_type} is missing a name")
                try:
                    stats = _stat_block(require_mapping("stats", mapping.get("stats", {})))
                except InvalidInput as exc:
                    raise ContentLoadError(str(exc)) from exc
                templates.append(ItemTemplate(name=str(name), item_type=item_type, stats=stats))
            if not templates:
                raise ContentLoadError(f"No templates defined for {category_key}.{item_type}")
            bucket[item_type] = tuple(templates)
        catalog[category_key] = bucket
    missing = set(ITEM_CATEGORIES) - set(catalog)
    if missing:
        raise ContentLoadError(f"Missing item templates for: {', '.join(sorted(missing))}")
    return catalog


ITEM_TEMPLATES: Dict[str, Dict[str, tuple[ItemTemplate, ...]]] = _load_item_templates()


def _pick(generator: random.Random, population: Sequence[T]) -> T:
    """Choose uniformly from ``population`` using a single ``random()`` draw."""

    if not population:
        raise InvalidInput("Cannot choose from an empty sequence")
    index = int(generator.random() * len(population))
    return population[min(index, len(population) - 1)]


def select_rarity(rng: random.Random | None = None) -> str:
    """Roll a rarity tier by walking the cumulative weight table."""

    generator = rng or random
    roll = generator.random()
    cumulative = 0.0
    for rarity, weight in RARITY_WEIGHTS.items():
        cumulative += weight
        if roll <= cumulative:
            return rarity
    return "common"


def select_random_template(category: str, rng: random.Random | None = None) -> ItemTemplate:
    generator = rng or random
    try:
        subtypes = ITEM_TEMPLATES[category]
    except KeyError:
        raise InvalidInput(f"Unknown item category '{category}'") from None
    item_type = _pick(generator, tuple(subtypes))
    return _pick(generator, subtypes[item_type])


def rarity_prefix(rarity: str) -> str:
    return _RARITY_PREFIXES[rarity]


def describe_item(item_type: str, rarity: str, category: str) -> str:
    return f"{_RARITY_PHRASES[rarity]} {item_type} {_CATEGORY_PHRASES[category]}."


def calculate_item_value(rarity: str, stats: Mapping[str, int]) -> int:
    """Return the gold value of an item: stat total scaled by rarity."""

    total = sum(int(value) for value in stats.values())
    return math.floor(total * RARITY_VALUE_MULTIPLIERS[rarity] * GOLD_VALUE_MULTIPLIER)


def generate_item(
    category: str,
    *,
    rng: random.Random | None = None,
    rarity: str | None = None,
    id_factory: Callable[[], str] = _new_item_id,
) -> Item:
    """Synthesise a single item of ``category``.

    The rarity is rolled unless ``rarity`` is given. No catalog or storage is
    involved.
    """

    generator = rng or random
    if category not in ITEM_CATEGORIES:
        raise InvalidInput(f"Unknown item category '{category}'")
    tier = rarity if rarity is not None else select_rarity(generator)
    if tier not in RARITIES:
        raise InvalidInput(f"Unknown rarity '{tier}'")
    template = select_random_template(category, generator)
    prefix = rarity_prefix(tier)
    name = f"{prefix} {template.name}" if prefix else template.name
    return Item(
        item_id=id_factory(),
        name=name,
        rarity=tier,
        item_type=template.item_type,
        category=category,
        stats=dict(template.stats),
        value=calculate_item_value(tier, template.stats),
        description=describe_item(template.item_type, tier, category),
    )


def generate_random_items(
    count: int,
    difficulty: str,
    *,
    rng: random.Random | None = None,
    id_factory: Callable[[], str] = _new_item_id,
) -> list[Item]:
    """Generate ``count`` items, each from a uniformly chosen theme category.

    ``difficulty`` must be a known difficulty key; it does not skew rarity.
    """

    require_difficulty(difficulty)
    if count < 0:
        raise InvalidInput(f"Item count must not be negative (got {count})")
    generator = rng or random
    items: list[Item] = []
    for _ in range(count):
        category = _pick(generator, ITEM_CATEGORIES)
        items.append(generate_item(category, rng=generator, id_factory=id_factory))
    return items
