"""
Catalog Models — Derived view of one prompt file.

Records are rebuilt on every query and never persisted.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel

Category = Literal["agents", "instructions", "prompts"]
Origin = Literal["repository", "workspace"]

CATEGORIES = ("agents", "instructions", "prompts")


class PromptRecord(BaseModel):
    """
    One prompt as shown to the user.

    origin is "repository" for files found in a mirror and "workspace"
    for files found only in the activation directory.
    """

    original_name: str
    workspace_name: str
    repository_url: Optional[str] = None
    type: Category
    active: bool = False
    size: int = 0
    line_count: int = 0
    description: str = ""
    origin: Origin = "repository"

    @property
    def key(self) -> tuple:
        return (self.original_name, self.repository_url)
