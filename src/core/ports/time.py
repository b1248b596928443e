"""
Clock interface.

All timestamps in the core are timezone-aware UTC. Components take the
clock as a port so that window checks (refund window, access expiry)
can be tested at exact boundaries.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class ClockPort(Protocol):
    def now_utc(self) -> datetime:
        """Get current UTC time."""
        ...
