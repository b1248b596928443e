"""
Ratings component models.

Data models for reviews and the per-rule rating aggregate.

Invariants:
- rating and review_count on a rule always equal the mean and count of
  its active reviews (recomputed in the same unit of work as the change)
- at most one active review per (user, rule)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal
from uuid import UUID

from src.domain.entities import Actor, Review

ReviewSort = Literal["helpful", "newest", "oldest"]
ModerationAction = Literal["approve", "remove"]

REVIEW_SORTS: tuple[str, ...] = ("helpful", "newest", "oldest")
MODERATION_ACTIONS: tuple[str, ...] = ("approve", "remove")

DEFAULT_MIN_RATING = 1
DEFAULT_MAX_RATING = 5
DEFAULT_COMMENT_MAX_LENGTH = 1000


@dataclass(frozen=True)
class RatingsConfig:
    """Ratings configuration from rules."""

    min_rating: int = DEFAULT_MIN_RATING
    max_rating: int = DEFAULT_MAX_RATING
    comment_max_length: int = DEFAULT_COMMENT_MAX_LENGTH


# --- Mutations ---


@dataclass(frozen=True)
class SubmitReviewInput:
    actor: Actor
    rule_id: UUID
    rating: int
    comment: str = ""


@dataclass(frozen=True)
class UpdateReviewInput:
    """Fields left as None are unchanged."""

    actor: Actor
    review_id: UUID
    rating: int | None = None
    comment: str | None = None


@dataclass(frozen=True)
class DeleteReviewInput:
    actor: Actor
    review_id: UUID


@dataclass(frozen=True)
class HelpfulInput:
    actor: Actor
    review_id: UUID
    helpful: bool = True


@dataclass(frozen=True)
class ReportReviewInput:
    actor: Actor
    review_id: UUID
    reason: str


@dataclass(frozen=True)
class ModerateReviewInput:
    actor: Actor
    review_id: UUID
    action: ModerationAction


@dataclass(frozen=True)
class ReviewOutput:
    """A changed review with the rule aggregate as of the same commit."""

    review: Review
    rating: float
    review_count: int


@dataclass(frozen=True)
class HelpfulOutput:
    helpful_count: int
    user_marked: bool


# --- Queries ---


@dataclass(frozen=True)
class ListForRuleInput:
    rule_id: UUID
    sort: ReviewSort = "helpful"
    page: int = 1
    limit: int = 10
    viewer: Actor | None = None


@dataclass(frozen=True)
class ListByUserInput:
    user_id: UUID
    page: int = 1
    limit: int = 10


@dataclass(frozen=True)
class ListReportedInput:
    actor: Actor
    page: int = 1
    limit: int = 20


@dataclass(frozen=True)
class ReviewView:
    """
    A review as listed to a viewer.

    user_marked_helpful is None for anonymous viewers.
    """

    review: Review
    user_marked_helpful: bool | None = None


@dataclass(frozen=True)
class ReviewPage:
    items: list[ReviewView]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0
