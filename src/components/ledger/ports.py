"""
Ledger component ports.

The ledger writes through the unit of work and reaches the outside world
through payment and notification ports. All are defined in
src.core.ports; this module names the set the ledger depends on.
"""

from __future__ import annotations

from src.core.ports.db import UnitOfWorkFactory, UnitOfWorkPort
from src.core.ports.notifications import NotificationPort
from src.core.ports.payment import AuthorizationResult, PaymentPort, PaymentRequest
from src.core.ports.time import ClockPort

__all__ = [
    "AuthorizationResult",
    "ClockPort",
    "NotificationPort",
    "PaymentPort",
    "PaymentRequest",
    "UnitOfWorkFactory",
    "UnitOfWorkPort",
]
