"""Tests for the tracker-progress command."""

import json

import pytest

from core.errors import NoNextRound
from pipelines import progress
from tests.conftest import make_template


@pytest.fixture(autouse=True)
def env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TRACKER_BACKEND", "memory")
    monkeypatch.setenv("TRACKER_RUNS_DIR", str(tmp_path / "runs"))


class TestMain:
    """Exit codes and output."""

    def test_config_error_exits_1(self, tmp_path):
        bad = tmp_path / "tracker.yaml"
        bad.write_text("pagination:\n  page_size: -1\n")
        with pytest.raises(SystemExit) as exc_info:
            progress.main(["--round", "tpl-0", "--job", "job-1", "--config", str(bad)])
        assert exc_info.value.code == 1

    def test_bad_environment_exits_1(self, monkeypatch):
        monkeypatch.setenv("TRACKER_BACKEND", "postgres")
        with pytest.raises(SystemExit) as exc_info:
            progress.main(["--round", "tpl-0", "--job", "job-1"])
        assert exc_info.value.code == 1

    def test_no_next_round_exits_2(self, monkeypatch):
        async def fake_run(*args, **kwargs):
            raise NoNextRound("tpl-3", 3)

        monkeypatch.setattr(progress, "run_progression_async", fake_run)
        with pytest.raises(SystemExit) as exc_info:
            progress.main(["--round", "tpl-3", "--job", "job-1"])
        assert exc_info.value.code == 2

    def test_unknown_job_exits_3(self):
        with pytest.raises(SystemExit) as exc_info:
            progress.main(["--round", "tpl-0", "--job", "job-1"])
        assert exc_info.value.code == 3

    def test_success_prints_result(self, monkeypatch, capsys):
        class Result:
            next_template = make_template(1)
            is_complete = True

            def to_dict(self):
                return {"next_template_id": "tpl-1"}

        class Ctx:
            run_id = "run-1"

        async def fake_run(*args, **kwargs):
            return Ctx(), Result()

        monkeypatch.setattr(progress, "run_progression_async", fake_run)
        progress.main(["--round", "tpl-0", "--job", "job-1"])
        assert json.loads(capsys.readouterr().out) == {"next_template_id": "tpl-1"}

    def test_round_and_job_required(self):
        with pytest.raises(SystemExit) as exc_info:
            progress.main(["--round", "tpl-0"])
        assert exc_info.value.code == 2
