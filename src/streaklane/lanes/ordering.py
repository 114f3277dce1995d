# src/streaklane/lanes/ordering.py

from __future__ import annotations

"""
Lane ordering.

A lane is the set of incomplete tasks of one user sharing a severity, ordered by
position. The engine never invents an order: the client already knows the final
order from the drag-and-drop gesture. The engine validates that order, checks
ownership, and writes it in one transaction so no observer ever sees two tasks
sharing a position.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping

from ..core.errors import NotFoundError, OwnershipError, ValidationError
from ..core.models import LaneMove, Severity, Task
from ..core.ports import StoreTransaction

logger = logging.getLogger(__name__)

MAX_LANES_PER_REORDER = 2


class LaneOrderingEngine:
    def append_to_lane(self, tx: StoreTransaction, severity: Severity) -> int:
        """Position for a task joining the end of `severity`'s lane (0 for an empty lane)."""
        return tx.max_lane_position(severity) + 1

    def apply_reorder(self, tx: StoreTransaction, moves: list[LaneMove]) -> list[Task]:
        """
        Persist a client-computed order for one or two lanes.

        Every task in `moves` must belong to tx.user_id. For each destination lane
        the moves must cover every incomplete task that lane holds after the batch,
        with positions forming exactly 0..n-1. Returns the moved tasks as written.
        Raises before any write when a check fails.
        """
        self.check_move_shape(moves)

        tasks: dict[str, Task] = {}
        for move in moves:
            task = tx.get_task(move.task_id)
            if task is None:
                raise NotFoundError(f"Task not found: {move.task_id}")
            if task.user_id != tx.user_id:
                logger.warning(
                    "Reorder rejected: task %s is not owned by user=%s", move.task_id, tx.user_id
                )
                raise OwnershipError(f"Task not found: {move.task_id}")
            if task.is_completed:
                raise ValidationError(f"Completed task {move.task_id} is not part of a lane")
            tasks[task.id] = task

        targets = _group_by_target(moves, tasks)
        moved_ids = set(tasks)

        for severity, lane_moves in targets.items():
            staying = {t.id for t in tx.list_tasks(completed=False, severity=severity)} - moved_ids
            supplied = {m.task_id for m in lane_moves}
            if staying:
                missing = ", ".join(sorted(staying))
                raise ValidationError(
                    f"Reorder of lane {severity.value} leaves out task(s): {missing}"
                )
            logger.debug("Lane %s reordered with %d task(s)", severity.value, len(supplied))

        written: list[Task] = []
        for move in moves:
            task = tasks[move.task_id]
            severity = move.severity or task.severity
            tx.set_placement(task.id, position=move.position, severity=severity)
            task.position = move.position
            task.severity = severity
            written.append(task)

        logger.info(
            "Reorder applied user=%s tasks=%d lanes=%s",
            tx.user_id,
            len(written),
            ",".join(s.value for s in targets),
        )
        return written

    @staticmethod
    def check_move_shape(moves: list[LaneMove]) -> None:
        """Checks that need no stored state: ids, positions, lane count."""
        if not moves:
            raise ValidationError("Reorder needs at least one move")

        seen: set[str] = set()
        for move in moves:
            if move.task_id in seen:
                raise ValidationError(f"Task {move.task_id} appears more than once in the move set")
            seen.add(move.task_id)
            if move.position < 0:
                raise ValidationError(f"Negative position for task {move.task_id}")

        # Lanes are only known for moves that name one; the rest are checked against storage.
        named: dict[Severity, list[int]] = defaultdict(list)
        for move in moves:
            if move.severity is not None:
                named[move.severity].append(move.position)
        for severity, positions in named.items():
            if len(set(positions)) != len(positions):
                raise ValidationError(f"Duplicate positions in lane {severity.value}")


def _group_by_target(
    moves: Iterable[LaneMove], tasks: Mapping[str, Task]
) -> dict[Severity, list[LaneMove]]:
    targets: dict[Severity, list[LaneMove]] = defaultdict(list)
    for move in moves:
        targets[move.severity or tasks[move.task_id].severity].append(move)

    if len(targets) > MAX_LANES_PER_REORDER:
        raise ValidationError(
            f"A reorder may touch at most {MAX_LANES_PER_REORDER} lanes, got {len(targets)}"
        )

    for severity, lane_moves in targets.items():
        positions = sorted(m.position for m in lane_moves)
        if positions != list(range(len(positions))):
            raise ValidationError(
                f"Positions for lane {severity.value} must be 0..{len(positions) - 1} without gaps "
                "or duplicates"
            )
    return dict(targets)


def plan_move(
    lanes: Mapping[Severity, list[Task]],
    task_id: str,
    severity: Severity,
    index: int,
) -> list[LaneMove]:
    """
    Compute the move set for dragging `task_id` into `severity`'s lane at `index`.

    `lanes` holds each lane's incomplete tasks in display order. The source lane
    and the destination lane are both renumbered 0..n-1; other lanes are untouched.
    """
    source: Severity | None = None
    moving: Task | None = None
    for sev, lane in lanes.items():
        for task in lane:
            if task.id == task_id:
                source, moving = sev, task
                break
        if moving is not None:
            break
    if moving is None or source is None:
        raise NotFoundError(f"Task not found in any lane: {task_id}")

    src_order = [t for t in lanes.get(source, []) if t.id != task_id]
    if source == severity:
        dst_order = src_order
    else:
        dst_order = list(lanes.get(severity, []))

    index = max(0, min(int(index), len(dst_order)))
    dst_order.insert(index, moving)

    moves = [
        LaneMove(task_id=t.id, position=i, severity=severity if source != severity else None)
        for i, t in enumerate(dst_order)
    ]
    if source != severity:
        moves.extend(LaneMove(task_id=t.id, position=i) for i, t in enumerate(src_order))
    return moves
