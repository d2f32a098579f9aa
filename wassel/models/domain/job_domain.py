# models/domain/job_domain.py
import secrets
import time
from typing import Any

from pydantic import BaseModel, Field, model_validator


def _now_ms() -> int:
    return int(time.time() * 1000)


class Job(BaseModel):
    """Background task record processed by the in-memory task queue."""

    id: str
    type: str
    payload: Any = None
    attempts: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=3, ge=1)
    created_at: int = Field(default_factory=_now_ms)

    @model_validator(mode="after")
    def _attempts_within_bound(self) -> "Job":
        if self.attempts > self.max_attempts:
            raise ValueError("attempts cannot exceed max_attempts")
        return self

    @classmethod
    def create(cls, job_type: str, payload: Any, max_attempts: int = 3) -> "Job":
        job_id = f"{job_type}_{_now_ms()}_{secrets.token_hex(5)}"
        return cls(id=job_id, type=job_type, payload=payload, max_attempts=max_attempts)

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.max_attempts
