"""Workload-balancing distribution of unassigned tasks across party members.

Tasks are placed hardest first. Each task goes to the member with the highest
suitability score, and that member's workload is bumped before the next task is
scored, so one pass spreads a large backlog instead of piling it onto whoever
looked idlest at the start. The pass is written as a fold over the sorted tasks
carrying the per-member workloads as its accumulator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from functools import reduce
from typing import Callable, Dict, Iterable, Mapping, Sequence, Tuple

from .locks import KeyedLockRegistry
from .task_store import TaskStore
from .tasks import DIFFICULTY_WEIGHTS, PartyMember, Task

__all__ = [
    "FAIRNESS_TOLERANCE",
    "FREQUENCY_FACTORS",
    "Assignment",
    "DistributionResult",
    "MemberWorkload",
    "PartyTaskDistributor",
    "calculate_member_workloads",
    "distribute_tasks",
    "final_workloads",
    "score_task",
    "validate_distribution",
    "workload_spread",
]

log = logging.getLogger(__name__)

FREQUENCY_FACTORS: Mapping[str, float] = {
    "daily": 1.2,
    "weekly": 1.0,
    "monthly": 0.8,
}

WORKLOAD_WEIGHT = 0.4
LEVEL_WEIGHT = 0.4
FREQUENCY_WEIGHT = 0.2

# Maximum relative gap between the busiest and idlest member.
FAIRNESS_TOLERANCE = 0.2


@dataclass(frozen=True)
class MemberWorkload:
    member_id: str
    total_difficulty: int = 0
    task_count: int = 0

    def with_task(self, task: Task) -> "MemberWorkload":
        return replace(
            self,
            total_difficulty=self.total_difficulty + DIFFICULTY_WEIGHTS[task.difficulty],
            task_count=self.task_count + 1,
        )


@dataclass(frozen=True)
class Assignment:
    """One task placed on one member; ``score`` only ranks candidates."""

    task_id: str
    member_id: str
    score: float


@dataclass(frozen=True)
class _PassState:
    workloads: Mapping[str, MemberWorkload]
    assignments: Tuple[Assignment, ...] = ()


def _counts_towards_workload(task: Task) -> bool:
    return task.is_assigned and not task.is_completed


def calculate_member_workloads(
    members: Sequence[PartyMember], tasks: Iterable[Task]
) -> Dict[str, MemberWorkload]:
    """Return each member's load from the open tasks already assigned to them."""

    workloads = {member.member_id: MemberWorkload(member.member_id) for member in members}
    for task in tasks:
        if not _counts_towards_workload(task):
            continue
        current = workloads.get(task.assigned_to or "")
        if current is not None:
            workloads[current.member_id] = current.with_task(task)
    return workloads


def score_task(task: Task, member: PartyMember, workload: MemberWorkload) -> float:
    """Suitability of ``member`` for ``task``; higher is better."""

    workload_score = 1 / (workload.total_difficulty + 1)
    level_score = member.level / DIFFICULTY_WEIGHTS[task.difficulty]
    frequency_score = FREQUENCY_FACTORS[task.frequency]
    return (
        workload_score * WORKLOAD_WEIGHT
        + level_score * LEVEL_WEIGHT
        + frequency_score * FREQUENCY_WEIGHT
    )


def _best_assignment(
    task: Task, members: Sequence[PartyMember], workloads: Mapping[str, MemberWorkload]
) -> Assignment:
    # max() keeps the first of equal scores, so ties go to the earliest member.
    scored = [
        Assignment(
            task_id=task.task_id,
            member_id=member.member_id,
            score=score_task(task, member, workloads[member.member_id]),
        )
        for member in members
    ]
    return max(scored, key=lambda assignment: assignment.score)


def _assign_next(members: Sequence[PartyMember]) -> Callable[[_PassState, Task], _PassState]:
    def step(state: _PassState, task: Task) -> _PassState:
        assignment = _best_assignment(task, members, state.workloads)
        workloads = dict(state.workloads)
        workloads[assignment.member_id] = workloads[assignment.member_id].with_task(task)
        return _PassState(workloads=workloads, assignments=(*state.assignments, assignment))

    return step


def distribute_tasks(tasks: Sequence[Task], members: Sequence[PartyMember]) -> list[Assignment]:
    """Assign every open, unassigned task to exactly one member.

    ``tasks`` may include already assigned tasks; they only contribute to the
    starting workloads. Assignments are returned in processing order (hardest
    first, input order among equals). Nothing is persisted.
    """

    if not members:
        return []
    pending = [task for task in tasks if not task.is_assigned and not task.is_completed]
    if not pending:
        return []
    pending.sort(key=lambda task: DIFFICULTY_WEIGHTS[task.difficulty], reverse=True)
    initial = _PassState(workloads=calculate_member_workloads(members, tasks))
    final = reduce(_assign_next(members), pending, initial)
    return list(final.assignments)


def final_workloads(
    assignments: Iterable[Assignment], tasks: Iterable[Task], members: Sequence[PartyMember]
) -> Dict[str, MemberWorkload]:
    """Workloads once ``assignments`` are applied on top of ``tasks``."""

    assigned = {assignment.task_id: assignment.member_id for assignment in assignments}
    effective = [
        replace(task, assigned_to=assigned[task.task_id]) if task.task_id in assigned else task
        for task in tasks
    ]
    return calculate_member_workloads(members, effective)


def workload_spread(workloads: Iterable[MemberWorkload]) -> float:
    """Return ``(max - min) / max`` over total difficulty; 0.0 when nobody has work."""

    totals = [workload.total_difficulty for workload in workloads]
    if not totals:
        return 0.0
    highest = max(totals)
    if highest <= 0:
        return 0.0
    return (highest - min(totals)) / highest


def validate_distribution(
    assignments: Iterable[Assignment],
    tasks: Iterable[Task],
    members: Sequence[PartyMember],
    *,
    tolerance: float = FAIRNESS_TOLERANCE,
) -> bool:
    """Return whether the resulting workloads are within ``tolerance`` of each other.

    A failed check is a signal for the caller, never an exception.
    """

    workloads = final_workloads(assignments, tasks, members)
    return workload_spread(workloads.values()) <= tolerance


@dataclass(frozen=True)
class DistributionResult:
    party_id: str
    assignments: Tuple[Assignment, ...] = ()
    tasks: Tuple[Task, ...] = ()
    workloads: Mapping[str, MemberWorkload] = field(default_factory=dict)
    spread: float = 0.0
    fair: bool = True


class PartyTaskDistributor:
    """Run distribution passes against a party's stored backlog.

    Passes for the same party are serialised so the sequential workload update
    is never interleaved with another pass over the same tasks.
    """

    def __init__(self, task_store: TaskStore, *, locks: KeyedLockRegistry | None = None) -> None:
        self._task_store = task_store
        self._locks = locks or KeyedLockRegistry()

    async def distribute_party(
        self, party_id: str, members: Sequence[PartyMember]
    ) -> DistributionResult:
        async with self._locks.hold(("party", str(party_id))):
            tasks = await self._task_store.list_party_tasks(party_id)
            assignments = distribute_tasks(tasks, members)
            updated = await self._task_store.apply_assignments(assignments)
            workloads = final_workloads(assignments, tasks, members)
            spread = workload_spread(workloads.values())
            fair = spread <= FAIRNESS_TOLERANCE

        if assignments:
            log.info(
                "Distributed %s tasks across %s members of party %s",
                len(assignments),
                len(members),
                party_id,
            )
        if not fair:
            log.warning(
                "Distribution for party %s exceeds fairness tolerance (spread %.2f > %.2f)",
                party_id,
                spread,
                FAIRNESS_TOLERANCE,
            )
        return DistributionResult(
            party_id=str(party_id),
            assignments=tuple(assignments),
            tasks=updated,
            workloads=workloads,
            spread=spread,
            fair=fair,
        )
