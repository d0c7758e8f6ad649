"""
Capture record data models
"""
from typing import List

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class SlowOperation(BaseModel):
    """A single data-access operation that exceeded the slow threshold"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    text: str = Field(validation_alias=AliasChoices("text", "sql"))
    duration_ms: float = Field(ge=0)


class CaptureRecord(BaseModel):
    """Metrics for one completed unit of work"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    uri: str
    method: str
    duration_ms: float = Field(ge=0)
    memory_mb: float = Field(ge=0)
    query_count: int = Field(default=0, ge=0)
    timestamp: str = ""
    slow_operations: List[SlowOperation] = Field(
        default_factory=list,
        validation_alias=AliasChoices("slow_operations", "slow_queries"),
    )


class TaggedSlowOperation(BaseModel):
    """Slow operation flattened out of its parent record"""
    model_config = ConfigDict(frozen=True)

    text: str
    duration_ms: float
    uri: str


class LockError(BaseModel):
    """Database lock error recovered from an application log"""
    timestamp: str = ""
    message: str
