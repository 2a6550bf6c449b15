"""Optimistic per-goal state overlay guarded by monotonic mutation ids."""
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class GoalOverlay:
    """Not-yet-persisted state of one goal."""

    mutation_id: int = 0
    pending_delta: int = 0  # accepted, waiting for the debounce window
    in_flight: dict[int, int] = field(default_factory=dict)  # mutation id -> delta
    orphaned: set[int] = field(default_factory=set)
    state: Optional[bool] = None
    error: Optional[str] = None


class OptimisticOverlay:
    """
    Local state applied ahead of the store.

    Each mutation bumps the goal's mutation id. A response that carries an
    older id than the current one belongs to a superseded mutation: it never
    rolls anything back or surfaces an error, and whatever it left behind is
    dropped when the current mutation resolves.
    """

    def __init__(self):
        self._goals: dict[str, GoalOverlay] = {}

    def get(self, goal_id: str) -> GoalOverlay:
        overlay = self._goals.get(goal_id)
        if overlay is None:
            overlay = GoalOverlay()
            self._goals[goal_id] = overlay
        return overlay

    def peek(self, goal_id: str) -> Optional[GoalOverlay]:
        return self._goals.get(goal_id)

    def next_mutation_id(self, goal_id: str) -> int:
        overlay = self.get(goal_id)
        overlay.mutation_id += 1
        overlay.error = None
        return overlay.mutation_id

    def is_current(self, goal_id: str, mutation_id: int) -> bool:
        return self.get(goal_id).mutation_id == mutation_id

    # Counter goals

    def add_delta(self, goal_id: str, delta: int) -> int:
        """Apply a counter delta; returns the new pending total."""
        overlay = self.get(goal_id)
        overlay.pending_delta += delta
        return overlay.pending_delta

    def take_pending(self, goal_id: str) -> tuple[int, int]:
        """Move the pending delta into flight under the current mutation id."""
        overlay = self.get(goal_id)
        batch = overlay.pending_delta
        overlay.pending_delta = 0
        mutation_id = overlay.mutation_id
        if batch:
            overlay.in_flight[mutation_id] = overlay.in_flight.get(mutation_id, 0) + batch
        return mutation_id, batch

    def confirm(self, goal_id: str, mutation_id: int) -> None:
        """The write for ``mutation_id`` reached the store."""
        overlay = self.get(goal_id)
        overlay.in_flight.pop(mutation_id, None)
        if mutation_id == overlay.mutation_id:
            self._drop_orphans(overlay)

    def reject(self, goal_id: str, mutation_id: int, message: str) -> bool:
        """
        The write for ``mutation_id`` failed.

        Returns:
            True if the optimistic delta was rolled back, False if the
            response was superseded and discarded
        """
        overlay = self.get(goal_id)
        if mutation_id != overlay.mutation_id:
            overlay.orphaned.add(mutation_id)
            return False

        overlay.in_flight.pop(mutation_id, None)
        overlay.error = message
        self._drop_orphans(overlay)
        return True

    def _drop_orphans(self, overlay: GoalOverlay) -> None:
        for mutation_id in overlay.orphaned:
            overlay.in_flight.pop(mutation_id, None)
        overlay.orphaned.clear()

    def unsaved_delta(self, goal_id: str) -> int:
        overlay = self.peek(goal_id)
        if overlay is None:
            return 0
        return overlay.pending_delta + sum(overlay.in_flight.values())

    # Check goals

    def set_state(self, goal_id: str, state: Optional[bool]) -> None:
        self.get(goal_id).state = state

    def pending_state(self, goal_id: str) -> Optional[bool]:
        overlay = self.peek(goal_id)
        return overlay.state if overlay else None

    def fail(self, goal_id: str, message: str) -> None:
        self.get(goal_id).error = message

    def last_error(self, goal_id: str) -> Optional[str]:
        overlay = self.peek(goal_id)
        return overlay.error if overlay else None
