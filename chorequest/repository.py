"""Concurrency-safe persistence helpers for characters and the item catalog."""

from __future__ import annotations

import asyncio
import json
import random
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, Tuple

from .characters import Character
from .errors import CharacterNotFound
from .items import Item


class JsonDocumentStore:
    """A JSON document file cached in memory and guarded by an asyncio lock.

    The cache is reloaded whenever the file changes on disk, so several store
    instances pointed at the same path observe each other's writes.
    """

    def __init__(self, storage_path: Path) -> None:
        self._storage_path = storage_path
        self._lock = asyncio.Lock()
        self._cache: Dict[str, Dict[str, object]] = {}
        self._loaded = False
        self._storage_serial: Optional[tuple[int, int]] = None

    async def _ensure_loaded(self) -> None:
        current_serial = await self._current_storage_serial()
        if self._loaded and self._storage_serial == current_serial:
            return
        if current_serial is None:
            self._storage_path.parent.mkdir(parents=True, exist_ok=True)
            self._cache = {}
            self._loaded = True
            self._storage_serial = None
            return
        self._cache = {}
        data = await asyncio.to_thread(self._storage_path.read_text, encoding="utf-8")
        if data.strip():
            try:
                raw = json.loads(data)
            except json.JSONDecodeError:
                self._cache = {}
            else:
                if isinstance(raw, dict):
                    self._cache = {
                        str(key): dict(document)
                        for key, document in raw.items()
                        if isinstance(document, dict)
                    }
        self._loaded = True
        self._storage_serial = current_serial

    async def _persist(self) -> None:
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        text = json.dumps(self._cache, indent=2, sort_keys=True)
        await asyncio.to_thread(self._storage_path.write_text, text, encoding="utf-8")
        self._storage_serial = await self._current_storage_serial()
        self._loaded = True

    async def _current_storage_serial(self) -> Optional[tuple[int, int]]:
        if not self._storage_path.exists():
            return None
        stat_result = await asyncio.to_thread(self._storage_path.stat)
        mtime_ns = getattr(stat_result, "st_mtime_ns", None) or int(
            stat_result.st_mtime * 1_000_000_000
        )
        return (mtime_ns, stat_result.st_size)


class CharacterRepository(JsonDocumentStore):
    """Store one character per user backed by disk."""

    async def get(self, user_id: str) -> Optional[Character]:
        async with self._lock:
            await self._ensure_loaded()
            raw = self._cache.get(str(user_id))
            return Character.from_dict(raw) if raw else None

    async def get_by_id(self, character_id: str) -> Optional[Character]:
        async with self._lock:
            await self._ensure_loaded()
            for raw in self._cache.values():
                if str(raw.get("id")) == str(character_id):
                    return Character.from_dict(raw)
            return None

    async def require(self, user_id: str) -> Character:
        character = await self.get(user_id)
        if character is None:
            raise CharacterNotFound(user_id)
        return character

    async def exists(self, user_id: str) -> bool:
        async with self._lock:
            await self._ensure_loaded()
            return str(user_id) in self._cache

    async def save(self, character: Character) -> None:
        async with self._lock:
            await self._ensure_loaded()
            self._cache[str(character.user_id)] = character.to_dict()
            await self._persist()

    async def update(self, user_id: str, mutator: Callable[[Character], Character]) -> Character:
        """Apply ``mutator`` to the stored character and persist the result.

        The read, mutation and write happen under the store lock. When
        ``mutator`` raises, nothing is written.
        """

        async with self._lock:
            await self._ensure_loaded()
            raw = self._cache.get(str(user_id))
            if not raw:
                raise CharacterNotFound(user_id)
            updated = mutator(Character.from_dict(raw))
            self._cache[str(user_id)] = updated.to_dict()
            await self._persist()
            return updated

    async def clear(self, user_id: str) -> bool:
        async with self._lock:
            await self._ensure_loaded()
            if str(user_id) not in self._cache:
                return False
            del self._cache[str(user_id)]
            await self._persist()
            return True

    async def list_characters(self, user_ids: Iterable[str] | None = None) -> Dict[str, Character]:
        """Return stored characters keyed by user id, optionally filtered."""

        wanted = {str(user_id) for user_id in user_ids} if user_ids is not None else None
        async with self._lock:
            await self._ensure_loaded()
            characters: Dict[str, Character] = {}
            for user_id, payload in self._cache.items():
                if wanted is not None and user_id not in wanted:
                    continue
                try:
                    characters[user_id] = Character.from_dict(payload)
                except (KeyError, ValueError):
                    continue
            return characters


class ItemCatalog(JsonDocumentStore):
    """Persisted catalog of curated items used for combat drops."""

    async def add(self, item: Item) -> None:
        async with self._lock:
            await self._ensure_loaded()
            self._cache[item.item_id] = item.to_dict()
            await self._persist()

    async def add_many(self, items: Iterable[Item]) -> int:
        async with self._lock:
            await self._ensure_loaded()
            count = 0
            for item in items:
                self._cache[item.item_id] = item.to_dict()
                count += 1
            await self._persist()
            return count

    async def get(self, item_id: str) -> Optional[Item]:
        async with self._lock:
            await self._ensure_loaded()
            raw = self._cache.get(str(item_id))
            return Item.from_dict(raw) if raw else None

    async def query_by_rarity(self, rarity: str, *, limit: int = 10) -> Tuple[Item, ...]:
        """Return up to ``limit`` catalog items of ``rarity``."""

        async with self._lock:
            await self._ensure_loaded()
            matches: list[Item] = []
            for payload in self._cache.values():
                if str(payload.get("rarity", "")).lower() != rarity:
                    continue
                try:
                    matches.append(Item.from_dict(payload))
                except (KeyError, ValueError):
                    continue
                if len(matches) >= limit:
                    break
            return tuple(matches)

    async def random_item(
        self, rarity: str, *, rng: random.Random | None = None, limit: int = 10
    ) -> Optional[Item]:
        """Pick one of the first ``limit`` items of ``rarity`` uniformly."""

        candidates = await self.query_by_rarity(rarity, limit=limit)
        if not candidates:
            return None
        generator = rng or random
        index = int(generator.random() * len(candidates))
        return candidates[min(index, len(candidates) - 1)]
