"""Risk warning model."""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

Severity = Literal["warning", "danger"]


@dataclass(frozen=True)
class RiskWarning:
    """Risks threatening one upcoming event."""

    event_id: str
    event_title: str
    event_date: datetime
    risks: tuple[str, ...]
    severity: Severity
