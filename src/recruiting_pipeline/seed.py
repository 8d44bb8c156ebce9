"""
Seed data for the command line and demos.

A seed file is a JSON document with candidates, jobs, applications, and
interviews, validated into pipeline records.
"""

import logging
from pathlib import Path

from pydantic import BaseModel, Field

from recruiting_pipeline.pipeline.schemas import (
    ApplicationRecord,
    CandidateSnapshot,
    InterviewRecord,
    JobSnapshot,
)

logger = logging.getLogger(__name__)


class SeedData(BaseModel):
    """Contents of a seed file."""

    candidates: list[CandidateSnapshot] = Field(default_factory=list)
    jobs: list[JobSnapshot] = Field(default_factory=list)
    applications: list[ApplicationRecord] = Field(default_factory=list)
    interviews: list[InterviewRecord] = Field(default_factory=list)


def load_seed(file_path: str | Path) -> SeedData:
    """
    Load and validate a seed file.

    Args:
        file_path: Path to the JSON seed file.

    Returns:
        Validated seed data.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file is empty.
        pydantic.ValidationError: If the contents don't validate.
    """
    path = Path(file_path)

    if not path.exists():
        raise FileNotFoundError(f"Seed file not found: {path}")

    raw_text = path.read_text(encoding="utf-8").strip()
    if not raw_text:
        raise ValueError(f"Seed file is empty: {path}")

    seed = SeedData.model_validate_json(raw_text)
    logger.info(
        f"Loaded seed {path}: {len(seed.candidates)} candidates, {len(seed.jobs)} jobs, "
        f"{len(seed.applications)} applications, {len(seed.interviews)} interviews"
    )
    return seed
