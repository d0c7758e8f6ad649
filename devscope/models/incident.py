"""
Incident data models
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class Incident(BaseModel):
    """Resource-threshold breach raised by the collector watchdog"""
    timestamp: datetime = Field(default_factory=datetime.now)
    load_percent: float
    suspect_entries: List[str] = []


class IncidentStatus(str, Enum):
    """What the viewer currently knows about incidents"""
    NOT_LOADED = "not_loaded"  # no fetch completed yet
    NONE = "none"  # collector answered 204
    ACTIVE = "active"
    UNAVAILABLE = "unavailable"  # collector unreachable


class IncidentView(BaseModel):
    """Current incident or an explicit reason there is none"""
    status: IncidentStatus = IncidentStatus.NOT_LOADED
    incident: Optional[Incident] = None
    error: Optional[str] = None

    @property
    def is_loaded(self) -> bool:
        return self.status != IncidentStatus.NOT_LOADED
