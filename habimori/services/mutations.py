"""Counter and check mutation handlers.

Writes are applied to an in-process optimistic overlay first and reach the
store afterwards. Counter increments are coalesced per goal within a short
window; every successful raw event write schedules a debounced goal period
recalculation for the goal.
"""
import logging
from datetime import datetime, timezone, tzinfo
from typing import Optional

from pymongo.errors import PyMongoError

from habimori.config import settings
from habimori.errors import NotFoundError, TransientIOError, ValidationError
from habimori.models.check_event import CheckEvent, CheckToggleResult
from habimori.models.counter_event import CounterEvent, CounterIncrementResult
from habimori.models.goal import Goal, GoalType
from habimori.services.goal_period_service import GoalPeriodService
from habimori.utils.aggregation import check_value
from habimori.utils.debounce import Debouncer
from habimori.utils.ids import parse_object_id
from habimori.utils.optimistic import OptimisticOverlay
from habimori.utils.periods import assume_local, range_for

logger = logging.getLogger(__name__)


class MutationHub:
    """
    Process-wide mutation state: the optimistic overlay and the per-goal
    debounce tables for counter flushes and recalculations.
    """

    def __init__(
        self,
        db,
        tz: Optional[tzinfo] = None,
        counter_delay: Optional[float] = None,
        recalc_delay: Optional[float] = None,
    ):
        self.db = db
        self.tz = tz or settings.tzinfo
        self.overlay = OptimisticOverlay()
        if counter_delay is None:
            counter_delay = settings.counter_debounce_ms / 1000
        if recalc_delay is None:
            recalc_delay = settings.recalc_debounce_ms / 1000
        self.counter_debouncer = Debouncer(counter_delay, name="counter flush")
        self.recalc_debouncer = Debouncer(recalc_delay, name="goal recalculation")
        # goal id -> shared event fields and per-period parts waiting for the
        # counter window; increments only merge within the same period
        self.counter_batches: dict[str, dict] = {}

    def schedule_recalc(self, goal_id: Optional[str]) -> None:
        """Recalculate the goal's periods once writes for it settle."""
        if not goal_id:
            return
        self.recalc_debouncer.schedule(goal_id, lambda: self.recalc_now(goal_id))

    async def recalc_now(self, goal_id: str):
        result = await GoalPeriodService(self.db, tz=self.tz).recalc(goal_id)
        if result.error:
            logger.warning("Scheduled recalculation of goal %s failed: %s", goal_id, result.error)
        return result

    async def shutdown(self) -> None:
        await self.counter_debouncer.shutdown()
        await self.recalc_debouncer.shutdown()


class CounterMutationHandler:
    """Handler for counter goal increments."""

    def __init__(self, hub: MutationHub):
        self.hub = hub
        self.overlay = hub.overlay
        self.counter_events = hub.db["counter_events"]

    def increment(
        self,
        user_id: str,
        goal: Goal,
        delta: int = 1,
        occurred_at: Optional[datetime] = None,
    ) -> CounterIncrementResult:
        """
        Apply an increment optimistically and schedule its write.

        Increments arriving within the debounce window are written as a
        single event per period carrying the summed delta, stamped with the
        first increment time seen for that period.

        Args:
            user_id: User ID
            goal: Counter goal
            delta: Positive amount to add
            occurred_at: Event time (defaults to now)

        Returns:
            Optimistic state after the increment

        Raises:
            ValidationError: If the delta is not positive or the goal is not
                a counter goal
        """
        if goal.goal_type != GoalType.COUNTER:
            raise ValidationError("Goal is not a counter goal.")
        if delta <= 0:
            raise ValidationError("Counter delta must be positive.")

        mutation_id = self.overlay.next_mutation_id(goal.id)
        pending = self.overlay.add_delta(goal.id, delta)
        occurred_at = assume_local(occurred_at, self.hub.tz) or datetime.now(self.hub.tz)
        batch = self.hub.counter_batches.setdefault(goal.id, {
            "fields": {
                "user_id": user_id,
                "goal_id": goal.id,
                "context_id": goal.context_id,
                "tag_ids": list(goal.tag_ids),
            },
            "parts": {},
        })
        period_key = range_for(goal.period, occurred_at, self.hub.tz).key
        part = batch["parts"].setdefault(period_key, {"occurred_at": occurred_at, "value_delta": 0})
        part["value_delta"] += delta

        self.hub.counter_debouncer.schedule(goal.id, lambda: self.flush(goal.id))

        return CounterIncrementResult(
            goal_id=goal.id,
            mutation_id=mutation_id,
            pending_delta=pending,
        )

    async def flush(self, goal_id: str) -> bool:
        """
        Write the pending batch of a goal, one counter event per period.

        Returns:
            True if every event was written
        """
        batch = self.hub.counter_batches.pop(goal_id, None)
        mutation_id, delta = self.overlay.take_pending(goal_id)
        if batch is None or delta <= 0:
            return False

        written = 0
        try:
            for part in batch["parts"].values():
                event_doc = {
                    **batch["fields"],
                    **part,
                    "created_at": datetime.now(timezone.utc),
                }
                await self.counter_events.insert_one(event_doc)
                written += 1
        except PyMongoError as e:
            error = TransientIOError.from_pymongo(e)
            if self.overlay.reject(goal_id, mutation_id, str(error)):
                logger.error("Counter write for goal %s failed, reverted %+d: %s", goal_id, delta, error)
            else:
                logger.info("Discarding failed counter write for goal %s (superseded)", goal_id)
            if written:
                # Parts before the failure are stored; stored rows must count them
                self.hub.schedule_recalc(goal_id)
            return False

        self.overlay.confirm(goal_id, mutation_id)
        self.hub.schedule_recalc(goal_id)
        return True

    async def list_events(self, user_id: str, goal_id: str) -> list[CounterEvent]:
        """List the stored counter events of a goal, newest first."""
        cursor = self.counter_events.find({
            "user_id": user_id,
            "goal_id": goal_id,
        }).sort("occurred_at", -1)
        docs = await cursor.to_list(length=None)
        return [CounterEvent(_id=str(doc.pop("_id")), **doc) for doc in docs]

    async def delete_event(self, user_id: str, event_id: str) -> dict:
        """
        Delete a counter event.

        Raises:
            NotFoundError: If event not found
        """
        object_id = parse_object_id(event_id, "Counter event")
        existing = await self.counter_events.find_one({"_id": object_id, "user_id": user_id})
        if not existing:
            raise NotFoundError("Counter event not found")

        result = await self.counter_events.delete_one({"_id": object_id, "user_id": user_id})
        self.hub.schedule_recalc(existing.get("goal_id"))
        return {"deleted_count": result.deleted_count}


class CheckMutationHandler:
    """Handler for check goal toggles."""

    def __init__(self, hub: MutationHub):
        self.hub = hub
        self.overlay = hub.overlay
        self.check_events = hub.db["check_events"]

    async def _stored_state(self, goal: Goal, at: datetime) -> bool:
        period_range = range_for(goal.period, at, self.hub.tz)
        cursor = self.check_events.find({
            "goal_id": goal.id,
            "occurred_at": {"$gte": period_range.start, "$lt": period_range.end},
        })
        events = await cursor.to_list(length=None)
        return bool(check_value(events, period_range.start, period_range.end))

    async def toggle(
        self,
        user_id: str,
        goal: Goal,
        state: Optional[bool] = None,
        occurred_at: Optional[datetime] = None,
    ) -> CheckToggleResult:
        """
        Set or flip a check goal for the period containing ``occurred_at``.

        Args:
            user_id: User ID
            goal: Check goal
            state: New state; None flips the current one
            occurred_at: Event time (defaults to now)

        Returns:
            Optimistic state after the toggle

        Raises:
            ValidationError: If the goal is not a check goal
            TransientIOError: If the write failed and no newer toggle
                superseded it
        """
        if goal.goal_type != GoalType.CHECK:
            raise ValidationError("Goal is not a check goal.")

        occurred_at = assume_local(occurred_at, self.hub.tz) or datetime.now(self.hub.tz)
        previous = self.overlay.pending_state(goal.id)
        if state is None:
            current = previous if previous is not None else await self._stored_state(goal, occurred_at)
            state = not current

        mutation_id = self.overlay.next_mutation_id(goal.id)
        self.overlay.set_state(goal.id, state)

        event_doc = {
            "user_id": user_id,
            "goal_id": goal.id,
            "context_id": goal.context_id,
            "tag_ids": list(goal.tag_ids),
            "occurred_at": occurred_at,
            "state": state,
            "created_at": datetime.now(timezone.utc),
        }

        try:
            await self.check_events.insert_one(event_doc)
        except PyMongoError as e:
            error = TransientIOError.from_pymongo(e)
            if not self.overlay.is_current(goal.id, mutation_id):
                logger.info("Discarding failed check write for goal %s (superseded)", goal.id)
                return CheckToggleResult(goal_id=goal.id, mutation_id=mutation_id, state=state)
            self.overlay.set_state(goal.id, previous)
            self.overlay.fail(goal.id, str(error))
            logger.error("Check write for goal %s failed: %s", goal.id, error)
            raise error

        if self.overlay.is_current(goal.id, mutation_id):
            self.overlay.set_state(goal.id, None)
        self.hub.schedule_recalc(goal.id)

        return CheckToggleResult(goal_id=goal.id, mutation_id=mutation_id, state=state)

    async def list_events(self, user_id: str, goal_id: str) -> list[CheckEvent]:
        """List the stored check events of a goal, newest first."""
        cursor = self.check_events.find({
            "user_id": user_id,
            "goal_id": goal_id,
        }).sort("occurred_at", -1)
        docs = await cursor.to_list(length=None)
        return [CheckEvent(_id=str(doc.pop("_id")), **doc) for doc in docs]

    async def delete_event(self, user_id: str, event_id: str) -> dict:
        """
        Delete a check event.

        Raises:
            NotFoundError: If event not found
        """
        object_id = parse_object_id(event_id, "Check event")
        existing = await self.check_events.find_one({"_id": object_id, "user_id": user_id})
        if not existing:
            raise NotFoundError("Check event not found")

        result = await self.check_events.delete_one({"_id": object_id, "user_id": user_id})
        self.hub.schedule_recalc(existing.get("goal_id"))
        return {"deleted_count": result.deleted_count}
