"""Allowed repositories configuration file model."""

from typing import List, Optional

from pydantic import BaseModel, field_validator


class AllowlistConfig(BaseModel):
    """Shape of the allowed repos YAML file."""

    allowed_repos: List[str] = []

    @field_validator("allowed_repos", mode="before")
    @classmethod
    def _null_means_empty(cls, value: Optional[List[str]]) -> List[str]:
        return [] if value is None else value
