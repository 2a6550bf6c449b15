"""Tests for the optimistic overlay."""


class TestCounterOverlay:
    """Counter deltas under mutation ids."""

    def test_confirm_clears_in_flight(self):
        from habimori.utils.optimistic import OptimisticOverlay

        overlay = OptimisticOverlay()
        overlay.next_mutation_id("g")
        overlay.add_delta("g", 2)
        mutation_id, batch = overlay.take_pending("g")

        assert batch == 2
        assert overlay.unsaved_delta("g") == 2

        overlay.confirm("g", mutation_id)

        assert overlay.unsaved_delta("g") == 0

    def test_reject_current_rolls_back(self):
        from habimori.utils.optimistic import OptimisticOverlay

        overlay = OptimisticOverlay()
        overlay.next_mutation_id("g")
        overlay.add_delta("g", 1)
        mutation_id, _ = overlay.take_pending("g")

        assert overlay.reject("g", mutation_id, "write failed") is True
        assert overlay.unsaved_delta("g") == 0
        assert overlay.last_error("g") == "write failed"

    def test_superseded_reject_is_discarded(self):
        """A failure for an older mutation neither rolls back nor reports."""
        from habimori.utils.optimistic import OptimisticOverlay

        overlay = OptimisticOverlay()
        overlay.next_mutation_id("g")
        overlay.add_delta("g", 1)
        old_id, _ = overlay.take_pending("g")

        overlay.next_mutation_id("g")
        overlay.add_delta("g", 1)

        assert overlay.reject("g", old_id, "write failed") is False
        assert overlay.last_error("g") is None
        assert overlay.unsaved_delta("g") == 2

        # The current mutation resolving drops what the superseded one left
        new_id, _ = overlay.take_pending("g")
        overlay.confirm("g", new_id)

        assert overlay.unsaved_delta("g") == 0

    def test_next_mutation_id_is_monotonic_and_clears_error(self):
        from habimori.utils.optimistic import OptimisticOverlay

        overlay = OptimisticOverlay()
        overlay.fail("g", "old")

        assert overlay.next_mutation_id("g") == 1
        assert overlay.next_mutation_id("g") == 2
        assert overlay.last_error("g") is None
        assert overlay.is_current("g", 2)
        assert not overlay.is_current("g", 1)

    def test_unknown_goal(self):
        from habimori.utils.optimistic import OptimisticOverlay

        overlay = OptimisticOverlay()

        assert overlay.unsaved_delta("missing") == 0
        assert overlay.pending_state("missing") is None
        assert overlay.peek("missing") is None
