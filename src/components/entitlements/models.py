"""
Entitlement component models.

Data models for purchases (a buyer's proof of access to a rule).

Invariant: at most one active purchase per (buyer, rule), enforced by
storage, never by a read-then-write check here.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from src.domain.entities import Rule

DEFAULT_LICENSE_KEY_BYTES = 16


@dataclass(frozen=True)
class EntitlementConfig:
    """Entitlement configuration from rules."""

    license_key_bytes: int = DEFAULT_LICENSE_KEY_BYTES
    access_duration_days: int | None = None  # None means perpetual


# --- Access Check ---


@dataclass(frozen=True)
class AccessCheckInput:
    """Input for checking whether a viewer may see a rule's full content."""

    rule: Rule
    actor_id: UUID | None = None  # None for anonymous viewers


@dataclass(frozen=True)
class AccessCheckOutput:
    has_access: bool
    reason: str


# --- Downloads ---


@dataclass(frozen=True)
class RecordDownloadInput:
    purchase_id: UUID
    actor_id: UUID
    ip_address: str | None = None
    user_agent: str | None = None


# --- Listing ---


@dataclass(frozen=True)
class ListPurchasesInput:
    buyer_id: UUID
    active_only: bool = False
