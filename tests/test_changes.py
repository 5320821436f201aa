"""Tests for PendingChangeSet."""

from schemas.candidate_round import RoundStatus
from tracker.changes import PendingChangeSet

SELECTED = RoundStatus.SELECTED
REJECTED = RoundStatus.REJECTED
PENDING = RoundStatus.ACTION_PENDING


def make_changes() -> PendingChangeSet:
    return PendingChangeSet("tpl-0", {"a": PENDING, "b": SELECTED})


class TestStage:
    """Staging edits against the persisted baseline."""

    def test_new_set_has_nothing_pending(self):
        changes = make_changes()
        assert changes.pending == {}
        assert len(changes) == 0

    def test_stage_differing_status_is_pending(self):
        changes = make_changes()
        assert changes.stage("a", REJECTED) is True
        assert changes.pending == {"a": REJECTED}
        assert "a" in changes

    def test_stage_back_to_baseline_drops_from_pending(self):
        changes = make_changes()
        changes.stage("a", REJECTED)
        assert changes.stage("a", PENDING) is False
        assert changes.pending == {}

    def test_status_of_prefers_current(self):
        changes = make_changes()
        changes.stage("b", REJECTED)
        assert changes.status_of("b") == REJECTED
        assert changes.baseline_of("b") == SELECTED

    def test_candidate_ids_keep_baseline_order(self):
        changes = make_changes()
        changes.stage("z", SELECTED)
        assert changes.candidate_ids == ["a", "b", "z"]


class TestRevert:
    """Reverting is idempotent and returns to the baseline."""

    def test_revert_one_candidate(self):
        changes = make_changes()
        changes.stage("a", REJECTED)
        changes.stage("b", REJECTED)
        changes.revert("a")
        assert changes.pending == {"b": REJECTED}

    def test_revert_all_twice_is_stable(self):
        changes = make_changes()
        changes.stage("a", REJECTED)
        changes.revert()
        first = (changes.pending, changes.status_of("a"))
        changes.revert()
        assert (changes.pending, changes.status_of("a")) == first == ({}, PENDING)

    def test_revert_drops_candidates_without_baseline(self):
        changes = make_changes()
        changes.stage("z", SELECTED)
        changes.revert("z")
        assert changes.status_of("z") is None
        assert changes.candidate_ids == ["a", "b"]


class TestCommitted:
    """Advancing the baseline after a write."""

    def test_mark_committed_clears_only_accepted(self):
        changes = make_changes()
        changes.stage("a", REJECTED)
        changes.stage("b", REJECTED)
        changes.mark_committed({"a": REJECTED})
        assert changes.pending == {"b": REJECTED}
        assert changes.baseline_of("a") == REJECTED

    def test_updates_default_to_pending(self):
        changes = make_changes()
        changes.stage("a", SELECTED)
        assert [(u.candidate_id, u.status) for u in changes.updates()] == [("a", SELECTED)]

    def test_updates_for_explicit_ids_use_current_status(self):
        changes = make_changes()
        changes.stage("a", REJECTED)
        updates = changes.updates(["a", "b"])
        assert [(u.candidate_id, u.status) for u in updates] == [
            ("a", REJECTED),
            ("b", SELECTED),
        ]
