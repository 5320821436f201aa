"""Pending status changes of one round template."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from schemas.candidate_round import RoundStatus, StatusUpdate


class PendingChangeSet:
    """Baseline (last persisted) and current (edited) statuses of a round.

    The pending set is derived, never stored: a candidate is pending exactly
    when its current status differs from its baseline. Staging a candidate
    back to its baseline therefore drops it from the set.
    """

    def __init__(
        self,
        template_id: str,
        baseline: Mapping[str, RoundStatus] | None = None,
    ):
        self.template_id = template_id
        self._baseline: dict[str, RoundStatus] = dict(baseline or {})
        self._current: dict[str, RoundStatus] = dict(self._baseline)

    def __len__(self) -> int:
        return len(self.pending)

    def __contains__(self, candidate_id: str) -> bool:
        return candidate_id in self.pending

    @property
    def candidate_ids(self) -> list[str]:
        """Every candidate the set knows of, baseline first."""
        ids = list(self._baseline)
        ids.extend(cid for cid in self._current if cid not in self._baseline)
        return ids

    @property
    def pending(self) -> dict[str, RoundStatus]:
        return {
            cid: status
            for cid, status in self._current.items()
            if self._baseline.get(cid) != status
        }

    def baseline_of(self, candidate_id: str) -> RoundStatus | None:
        return self._baseline.get(candidate_id)

    def status_of(self, candidate_id: str) -> RoundStatus | None:
        return self._current.get(candidate_id, self._baseline.get(candidate_id))

    def stage(self, candidate_id: str, status: RoundStatus) -> bool:
        """Set the current status. Returns True if the candidate is now pending."""
        self._current[candidate_id] = status
        return self._baseline.get(candidate_id) != status

    def revert(self, candidate_id: str | None = None) -> None:
        """Drop staged edits for one candidate, or for all."""
        ids = [candidate_id] if candidate_id is not None else list(self._current)
        for cid in ids:
            if cid in self._baseline:
                self._current[cid] = self._baseline[cid]
            else:
                self._current.pop(cid, None)

    def mark_committed(self, committed: Mapping[str, RoundStatus]) -> None:
        """Advance the baseline to the statuses the server accepted."""
        for cid, status in committed.items():
            self._baseline[cid] = status
            self._current.setdefault(cid, status)

    def updates(self, candidate_ids: Iterable[str] | None = None) -> list[StatusUpdate]:
        """Current statuses as batch entries; pending ones when no ids are given."""
        if candidate_ids is None:
            return [StatusUpdate(candidate_id=c, status=s) for c, s in self.pending.items()]
        return [
            StatusUpdate(
                candidate_id=cid,
                status=self.status_of(cid) or RoundStatus.ACTION_PENDING,
            )
            for cid in candidate_ids
        ]
