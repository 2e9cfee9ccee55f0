"""Reviewer record contract shared by the store and the balancer."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Reviewer(BaseModel):
    """One person eligible for review assignment."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    workload: int = Field(default=0, ge=0)
    contact_handle: str = Field(default="")

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        """Reject names that are blank once surrounding whitespace is removed."""
        if not value.strip():
            raise ValueError("name must contain at least one non-whitespace character.")
        return value


def ensure_unique_names(reviewers: list[Reviewer]) -> list[Reviewer]:
    """Return reviewers unchanged, raising if any name appears twice."""
    seen: set[str] = set()
    for reviewer in reviewers:
        if reviewer.name in seen:
            raise ValueError(f"Duplicate reviewer name '{reviewer.name}'.")
        seen.add(reviewer.name)
    return reviewers
