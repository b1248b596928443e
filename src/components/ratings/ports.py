"""
Ratings component ports.

Mutations go through the unit of work so the review change and the
rule aggregate commit together. Listing reads straight from the review
and rule repositories.
"""

from __future__ import annotations

from src.core.ports.db import ReviewRepoPort, RuleRepoPort, UnitOfWorkFactory, UnitOfWorkPort
from src.core.ports.notifications import NotificationPort
from src.core.ports.time import ClockPort

__all__ = [
    "ClockPort",
    "NotificationPort",
    "ReviewRepoPort",
    "RuleRepoPort",
    "UnitOfWorkFactory",
    "UnitOfWorkPort",
]
