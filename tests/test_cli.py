"""
Tests for the seed loader and the command line.
"""

import json
from pathlib import Path

import pytest

from recruiting_pipeline.main import build_parser, run
from recruiting_pipeline.pipeline.schemas import Stage
from recruiting_pipeline.seed import load_seed

SEED = {
    "candidates": [
        {"id": "cand-1", "name": "Ahmed Khan", "email": "ahmed@example.com", "phone": "+971500000001"},
        {"id": "cand-2", "name": "Maria Santos", "email": "maria@example.com", "phone": "+639170000002"},
    ],
    "jobs": [{"id": "job-1", "title": "Electrician", "company": "Gulf Builders"}],
    "applications": [
        {"id": "app-1", "candidate_id": "cand-1", "job_id": "job-1", "applied_at": "2024-03-01T09:00:00Z"},
        {
            "id": "app-2",
            "candidate_id": "cand-2",
            "job_id": "job-1",
            "stage": "departed",
            "applied_at": "2024-02-01T09:00:00Z",
            "decision_at": "2024-02-20T09:00:00Z",
        },
    ],
    "interviews": [
        {
            "id": "int-1",
            "candidate_id": "cand-1",
            "job_id": "job-1",
            "scheduled_at": "2024-03-06T10:00:00Z",
            "interviewer": "Sarah Johnson",
        }
    ],
}


@pytest.fixture
def seed_file(tmp_path: Path) -> Path:
    """Write the sample seed to a temporary file."""
    path = tmp_path / "seed.json"
    path.write_text(json.dumps(SEED), encoding="utf-8")
    return path


class TestLoadSeed:
    """Tests for load_seed."""

    def test_loads_records(self, seed_file: Path) -> None:
        seed = load_seed(seed_file)

        assert [c.id for c in seed.candidates] == ["cand-1", "cand-2"]
        assert seed.applications[1].stage == Stage.DEPARTED
        assert seed.interviews[0].duration_minutes == 60

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_seed(tmp_path / "missing.json")

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.json"
        path.write_text("  ", encoding="utf-8")

        with pytest.raises(ValueError, match="empty"):
            load_seed(path)


class TestCommands:
    """Tests for the CLI subcommands."""

    def test_parser_requires_command(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--seed", "seed.json"])

    @pytest.mark.asyncio
    async def test_analytics(self, seed_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code = await run(["--seed", str(seed_file), "analytics"])

        output = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert output["total"] == 2
        assert output["departed"] == 1
        assert output["conversion_rate"] == 50.0

    @pytest.mark.asyncio
    async def test_search(self, seed_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code = await run(["--seed", str(seed_file), "search", "santos"])

        output = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert [row["application"]["id"] for row in output["items"]] == ["app-2"]

    @pytest.mark.asyncio
    async def test_schedule_conflict_exits_nonzero(
        self,
        seed_file: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        exit_code = await run(
            ["--seed", str(seed_file), "schedule", "cand-1", "job-1", "2024-03-06T10:30:00+00:00"]
        )

        captured = capsys.readouterr()
        assert exit_code == 1
        assert "int-1" in captured.err

    @pytest.mark.asyncio
    async def test_invalid_transition_exits_nonzero(
        self,
        seed_file: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        exit_code = await run(["--seed", str(seed_file), "transition", "app-1", "hired"])

        assert exit_code == 1
        assert "hired" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_slots(self, seed_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code = await run(["--seed", str(seed_file), "slots", "2024-03-06"])

        slots = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert {s["label"]: s["available"] for s in slots}["10:00"] is False
