"""
Content gate models.

A RuleView is what the catalog hands to a viewer: the rule with its
priced content either in full or masked.

Invariants:
- an anonymous viewer of a paid rule never receives any part of the query
- a masked view never carries content metadata
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from src.domain.entities import Actor, Rule, RulePricing, RuleStatistics

GateMode = Literal["detail", "list"]

DEFAULT_DETAIL_PREVIEW_CHARS = 150
DEFAULT_LIST_PREVIEW_CHARS = 100
DEFAULT_PURCHASE_MARKER = "... [Purchase to view full content]"
DEFAULT_ANONYMOUS_PLACEHOLDER = "[Login and purchase to view content]"


@dataclass(frozen=True)
class ContentGateConfig:
    """Content gate configuration from rules."""

    detail_preview_chars: int = DEFAULT_DETAIL_PREVIEW_CHARS
    list_preview_chars: int = DEFAULT_LIST_PREVIEW_CHARS
    purchase_marker: str = DEFAULT_PURCHASE_MARKER
    anonymous_placeholder: str = DEFAULT_ANONYMOUS_PLACEHOLDER

    def preview_chars(self, mode: GateMode) -> int:
        return self.list_preview_chars if mode == "list" else self.detail_preview_chars


@dataclass(frozen=True)
class RenderInput:
    rule: Rule
    actor: Actor | None
    has_access: bool
    mode: GateMode = "detail"


@dataclass(frozen=True)
class RenderManyInput:
    rules: list[Rule]
    actor: Actor | None
    access_lookup: set[UUID] = field(default_factory=set)


@dataclass(frozen=True)
class RuleView:
    id: UUID
    owner_id: UUID
    title: str
    query: str
    metadata: dict[str, Any]
    pricing: RulePricing
    statistics: RuleStatistics
    is_masked: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime
