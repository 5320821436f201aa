"""Tests for RoundTemplateRegistry and template sources."""

import pytest

from core.errors import NoNextRound, NotFoundError, ValidationError
from tests.conftest import JOB_ID, make_template, run
from tracker.registry import InMemoryTemplateSource, RoundTemplateRegistry
from tracker.states import RoundState


def make_registry(templates) -> tuple[RoundTemplateRegistry, InMemoryTemplateSource]:
    source = InMemoryTemplateSource(templates)
    return RoundTemplateRegistry(source), source


class TestList:
    """Loading and ordering templates."""

    def test_sorted_by_order_index(self):
        registry, _ = make_registry([make_template(2), make_template(0), make_template(1)])
        templates = run(registry.list(JOB_ID))
        assert [t.order_index for t in templates] == [0, 1, 2]
        assert templates[0].name == "Resume Screening"

    def test_duplicate_order_index_rejected(self):
        registry, _ = make_registry([make_template(0), make_template(0, id="tpl-dup")])
        with pytest.raises(ValidationError):
            run(registry.list(JOB_ID))

    def test_unknown_job(self):
        registry, _ = make_registry([make_template(0)])
        with pytest.raises(NotFoundError):
            run(registry.list("job-missing"))

    def test_empty_job_id(self):
        registry, _ = make_registry([make_template(0)])
        with pytest.raises(ValidationError):
            run(registry.list(""))

    def test_first(self, registry):
        assert registry.first(JOB_ID).id == "tpl-0"


class TestNextAfter:
    """Resolving the following round."""

    def test_next_is_order_plus_one(self, registry):
        assert registry.next_after("tpl-0").id == "tpl-1"
        assert registry.next_after("tpl-2").id == "tpl-3"

    def test_last_round_has_no_next(self, registry):
        with pytest.raises(NoNextRound) as exc_info:
            registry.next_after("tpl-3")
        assert exc_info.value.order_index == 3

    def test_gap_in_order_has_no_next(self):
        registry, _ = make_registry([make_template(0), make_template(2)])
        run(registry.list(JOB_ID))
        with pytest.raises(NoNextRound):
            registry.next_after("tpl-0")

    def test_unknown_template(self, registry):
        with pytest.raises(NotFoundError):
            registry.next_after("tpl-9")


class TestConfirm:
    """Confirming templates."""

    def test_confirm_marks_active(self, registry, source):
        template = run(registry.confirm("tpl-0"))
        assert template.is_active is True
        assert registry.get("tpl-0").is_active is True
        assert registry.state("tpl-0") is RoundState.CONFIRMED
        assert source.confirm_calls == ["tpl-0"]

    def test_confirm_twice_is_noop(self, registry, source):
        run(registry.confirm("tpl-1"))
        again = run(registry.confirm("tpl-1"))
        assert again.id == "tpl-1"
        assert source.confirm_calls == ["tpl-1"]

    def test_confirm_locked_template_unlocks_first(self, registry):
        assert registry.state("tpl-2") is RoundState.LOCKED
        run(registry.confirm("tpl-2"))
        assert registry.state("tpl-2") is RoundState.CONFIRMED

    def test_confirm_unknown_template(self, registry):
        with pytest.raises(NotFoundError):
            run(registry.confirm("tpl-9"))

    def test_confirm_before_listing_loads_the_job(self, source):
        registry = RoundTemplateRegistry(source)
        run(registry.confirm("tpl-1"))
        assert registry.state("tpl-1") is RoundState.CONFIRMED
        assert registry.state("tpl-0") is RoundState.UNLOCKED

    def test_relisting_keeps_confirmed_state(self, registry):
        run(registry.confirm("tpl-1"))
        templates = run(registry.list(JOB_ID, force_refresh=True))
        assert templates[1].is_active is True
        assert registry.state("tpl-1") is RoundState.CONFIRMED
