"""Pydantic models describing the agents a workflow step can be assigned to."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..constants import DEFAULT_MAX_CONSECUTIVE_FAILURES


class AgentProfile(BaseModel):
    """Health and capability data for one agent."""

    # Identity
    id: str
    name: str
    account_id: Optional[str] = None
    description: Optional[str] = None

    # Capabilities
    capabilities: List[str] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)

    # Health & status
    is_active: bool = True
    paused_at: Optional[datetime] = None
    consecutive_failures: int = 0
    max_consecutive_failures: int = DEFAULT_MAX_CONSECUTIVE_FAILURES

    @field_validator("id")
    @classmethod
    def _ensure_id(cls, v: str) -> str:
        if not v:
            raise ValueError("id must be a non-empty string")
        return v

    @property
    def is_eligible(self) -> bool:
        """Active, not paused and under its failure threshold."""
        return (
            self.is_active
            and self.paused_at is None
            and self.consecutive_failures < self.max_consecutive_failures
        )

    def can_handle(self, skill_id: Optional[str]) -> bool:
        if not skill_id:
            return True
        return skill_id in self.skills or skill_id in self.capabilities
