"""Append-only audit logs for reward grants and combat actions."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, Generic, Iterable, List, Mapping, Tuple, TypeVar, TYPE_CHECKING

if TYPE_CHECKING:
    from .combat import CombatAction
    from .rewards import RewardBundle

__all__ = ["CombatLog", "RewardLog", "RewardRecord"]

EVENT_TYPES: tuple[str, ...] = ("task", "combat", "achievement")

R = TypeVar("R")


@dataclass(frozen=True)
class RewardRecord:
    """An immutable audit entry for one reward distribution."""

    user_id: str
    event_type: str
    source_id: str
    bundle: "RewardBundle"
    timestamp: datetime

    def __post_init__(self) -> None:
        if self.event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown reward event type '{self.event_type}'")

    def to_dict(self) -> Dict[str, object]:
        return {
            "user_id": self.user_id,
            "type": self.event_type,
            "source_id": self.source_id,
            "rewards": self.bundle.to_dict(),
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "RewardRecord":
        from .rewards import RewardBundle

        return cls(
            user_id=str(data["user_id"]),
            event_type=str(data["type"]),
            source_id=str(data["source_id"]),
            bundle=RewardBundle.from_dict(dict(data.get("rewards") or {})),
            timestamp=datetime.fromisoformat(str(data["timestamp"])),
        )


class _AppendOnlyLog(Generic[R]):
    """A JSON list on disk that only ever grows."""

    def __init__(self, storage_path: Path) -> None:
        self._storage_path = storage_path
        self._lock = asyncio.Lock()
        self._loaded = False
        self._entries: List[Dict[str, object]] = []

    def _encode(self, record: R) -> Dict[str, object]:
        raise NotImplementedError

    def _decode(self, payload: Mapping[str, object]) -> R:
        raise NotImplementedError

    async def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        if not self._storage_path.exists():
            self._storage_path.parent.mkdir(parents=True, exist_ok=True)
            self._entries = []
            self._loaded = True
            return
        text = await asyncio.to_thread(self._storage_path.read_text, encoding="utf-8")
        entries: List[Dict[str, object]] = []
        if text.strip():
            try:
                raw = json.loads(text)
            except json.JSONDecodeError:
                raw = []
            if isinstance(raw, list):
                entries = [dict(entry) for entry in raw if isinstance(entry, dict)]
        self._entries = entries
        self._loaded = True

    async def _persist(self) -> None:
        text = json.dumps(self._entries, indent=2)
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(self._storage_path.write_text, text, encoding="utf-8")

    async def append_many(self, records: Iterable[R]) -> int:
        encoded = [self._encode(record) for record in records]
        if not encoded:
            return 0
        async with self._lock:
            await self._ensure_loaded()
            self._entries.extend(encoded)
            try:
                await self._persist()
            except Exception:
                del self._entries[-len(encoded):]
                raise
            return len(encoded)

    async def append(self, record: R) -> None:
        await self.append_many((record,))

    async def all(self) -> Tuple[R, ...]:
        async with self._lock:
            await self._ensure_loaded()
            return tuple(self._decode(entry) for entry in self._entries)


class RewardLog(_AppendOnlyLog[RewardRecord]):
    """Audit trail of every reward distribution."""

    def _encode(self, record: RewardRecord) -> Dict[str, object]:
        return record.to_dict()

    def _decode(self, payload: Mapping[str, object]) -> RewardRecord:
        return RewardRecord.from_dict(payload)

    async def history(self, user_id: str, *, limit: int | None = None) -> Tuple[RewardRecord, ...]:
        """Return ``user_id``'s reward records, newest first."""

        async with self._lock:
            await self._ensure_loaded()
            records = [
                RewardRecord.from_dict(entry)
                for entry in self._entries
                if str(entry.get("user_id")) == str(user_id)
            ]
        records.reverse()
        return tuple(records[:limit] if limit is not None else records)


class CombatLog(_AppendOnlyLog["CombatAction"]):
    """Audit trail of combat actions produced by task completions."""

    def _encode(self, record: "CombatAction") -> Dict[str, object]:
        return record.to_dict()

    def _decode(self, payload: Mapping[str, object]) -> "CombatAction":
        from .combat import CombatAction

        return CombatAction.from_dict(payload)

    async def for_task(self, task_id: str) -> Tuple["CombatAction", ...]:
        return tuple(action for action in await self.all() if action.task_id == str(task_id))
