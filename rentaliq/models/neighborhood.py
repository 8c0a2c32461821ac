"""Neighborhood context types folded into the CMA recommendation."""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional


class CrimeSeverity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class CrimeIncident:
    type: str
    date: Optional[date]
    description: str
    severity: CrimeSeverity


@dataclass(frozen=True)
class CrimeTrends:
    # Share of incidents inside each window, rescaled to -100..+100
    change_3m: float = 0.0
    change_6m: float = 0.0
    change_12m: float = 0.0


@dataclass(frozen=True)
class CrimeProfile:
    score: int  # 0-100, lower is safer
    total_incidents: int
    incidents: list[CrimeIncident] = field(default_factory=list)
    trends: CrimeTrends = field(default_factory=CrimeTrends)
