"""
Ratings component.

Reviews and the per-rule rating aggregate.

Every review mutation runs in one unit of work together with a
recomputation of the aggregate over the rule's active reviews, so the
stored rating never drifts from the review set. The recomputation is a
single SQL statement under the write lock, not a running average.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from src.components.entitlements import check_access
from src.components.notifications import dispatch_all, new_review_messages
from src.domain.entities import Actor, AuditEvent, Review
from src.domain.errors import (
    DuplicateReview,
    Forbidden,
    InvalidRating,
    MissingReason,
    NotAuthor,
    NotFound,
    PurchaseRequired,
    ValidationFailure,
)
from src.domain.policy import PolicyEngine
from src.rules.models import Rules

from .models import (
    MODERATION_ACTIONS,
    REVIEW_SORTS,
    DeleteReviewInput,
    HelpfulInput,
    HelpfulOutput,
    ListByUserInput,
    ListForRuleInput,
    ListReportedInput,
    ModerateReviewInput,
    RatingsConfig,
    ReportReviewInput,
    ReviewOutput,
    ReviewPage,
    ReviewView,
    SubmitReviewInput,
    UpdateReviewInput,
)
from .ports import (
    ClockPort,
    NotificationPort,
    ReviewRepoPort,
    RuleRepoPort,
    UnitOfWorkFactory,
    UnitOfWorkPort,
)

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


@dataclass
class RatingsDeps:
    """Collaborators the ratings operations run against."""

    uow_factory: UnitOfWorkFactory
    reviews: ReviewRepoPort
    rules: RuleRepoPort
    clock: ClockPort
    policy: PolicyEngine
    notifier: NotificationPort | None = None
    config: RatingsConfig = field(default_factory=RatingsConfig)


# --- Pure Functions ---


def validate_rating(rating: Any, config: RatingsConfig | None = None) -> int:
    """
    Return the rating if it is an integer within the configured range.

    Raises:
        InvalidRating: not an integer, or out of range
    """
    config = config or RatingsConfig()
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise InvalidRating(rating, config.min_rating, config.max_rating)
    if rating < config.min_rating or rating > config.max_rating:
        raise InvalidRating(rating, config.min_rating, config.max_rating)
    return rating


def normalize_comment(comment: str | None, config: RatingsConfig | None = None) -> str:
    config = config or RatingsConfig()
    text = (comment or "").strip()
    if len(text) > config.comment_max_length:
        raise ValidationFailure(
            f"Comment must be at most {config.comment_max_length} characters", field="comment"
        )
    return text


def _page_bounds(page: int, limit: int) -> tuple[int, int]:
    if page < 1:
        raise ValidationFailure("page must be >= 1", field="page")
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationFailure(f"limit must be between 1 and {MAX_PAGE_SIZE}", field="limit")
    return limit, (page - 1) * limit


# --- Helpers ---


def _audit(
    uow: UnitOfWorkPort,
    actor: Actor,
    action: str,
    review: Review,
    now: datetime,
    **meta: Any,
) -> None:
    uow.audit_log.append(
        AuditEvent(
            actor_user_id=actor.user_id,
            action=action,
            target_type="review",
            target_id=str(review.id),
            meta_json={"rule_id": str(review.rule_id), **meta},
            created_at=now,
        )
    )


def _active_review(uow: UnitOfWorkPort, review_id: UUID) -> Review:
    review = uow.reviews.get_by_id(review_id)
    if review is None or not review.is_active:
        raise NotFound("Review", review_id)
    return review


# --- Mutations ---


def submit(inp: SubmitReviewInput, deps: RatingsDeps) -> ReviewOutput:
    """
    Leave a review on a rule.

    Paid rules may only be reviewed by buyers with active access (or the
    owner); a review backed by an active purchase is marked verified.

    Raises:
        InvalidRating: rating not an integer within range
        ValidationFailure: comment too long
        NotFound: rule missing or inactive
        PurchaseRequired: paid rule without access
        Forbidden: role may not write reviews
        DuplicateReview: an active review by this user already exists
    """
    cfg = deps.config
    if not deps.policy.check_permission(inp.actor, "reviews:write"):
        raise Forbidden("Role is not allowed to write reviews")
    rating = validate_rating(inp.rating, cfg)
    comment = normalize_comment(inp.comment, cfg)
    actor = inp.actor
    now = deps.clock.now_utc()

    with deps.uow_factory() as uow:
        rule = uow.rules.get_by_id(inp.rule_id)
        if rule is None or not rule.is_active:
            raise NotFound("Rule", inp.rule_id)

        purchase = uow.purchases.get_active(actor.user_id, rule.id)
        access = check_access(actor.user_id, rule, purchase, now)
        if not access.has_access:
            raise PurchaseRequired()

        if uow.reviews.get_active_by_user(rule.id, actor.user_id) is not None:
            raise DuplicateReview(actor.user_id, rule.id)

        review = uow.reviews.insert(
            Review(
                rule_id=rule.id,
                user_id=actor.user_id,
                rating=rating,
                comment=comment,
                verified=purchase is not None and purchase.grants_access(now),
                created_at=now,
                updated_at=now,
            )
        )
        avg, count = uow.rules.recompute_rating(rule.id)
        _audit(uow, actor, "review.created", review, now, rating=rating)
        uow.commit()

    logger.info("Review %s created on rule %s (rating=%d)", review.id, rule.id, rating)
    dispatch_all(deps.notifier, new_review_messages(rule, review))
    return ReviewOutput(review=review, rating=avg, review_count=count)


def update(inp: UpdateReviewInput, deps: RatingsDeps) -> ReviewOutput:
    """
    Change the rating and/or comment of the caller's own review.

    Raises:
        InvalidRating, ValidationFailure: bad new values
        NotFound: review missing or deleted
        NotAuthor: caller did not write the review
    """
    cfg = deps.config
    rating = validate_rating(inp.rating, cfg) if inp.rating is not None else None
    comment = normalize_comment(inp.comment, cfg) if inp.comment is not None else None
    now = deps.clock.now_utc()

    with deps.uow_factory() as uow:
        review = _active_review(uow, inp.review_id)
        if review.user_id != inp.actor.user_id:
            raise NotAuthor("update")

        updates: dict[str, Any] = {"updated_at": now}
        if rating is not None:
            updates["rating"] = rating
        if comment is not None:
            updates["comment"] = comment
        review = review.model_copy(update=updates)

        uow.reviews.update_content(review)
        avg, count = uow.rules.recompute_rating(review.rule_id)
        _audit(uow, inp.actor, "review.updated", review, now, rating=review.rating)
        uow.commit()

    return ReviewOutput(review=review, rating=avg, review_count=count)


def soft_delete(inp: DeleteReviewInput, deps: RatingsDeps) -> ReviewOutput:
    """
    Deactivate a review. Authors may delete their own; moderators and
    admins may delete any.
    """
    now = deps.clock.now_utc()

    with deps.uow_factory() as uow:
        review = _active_review(uow, inp.review_id)
        if not deps.policy.can_delete_review(inp.actor, review):
            raise NotAuthor("delete")
        if not uow.reviews.deactivate(review.id, now):
            raise NotFound("Review", review.id)

        avg, count = uow.rules.recompute_rating(review.rule_id)
        _audit(uow, inp.actor, "review.deleted", review, now)
        uow.commit()

    logger.info("Review %s deleted by %s", review.id, inp.actor.user_id)
    removed = review.model_copy(update={"is_active": False, "updated_at": now})
    return ReviewOutput(review=removed, rating=avg, review_count=count)


def mark_helpful(inp: HelpfulInput, deps: RatingsDeps) -> HelpfulOutput:
    """Set or clear the caller's helpful vote. Repeating a call is a no-op."""
    now = deps.clock.now_utc()
    user_id = inp.actor.user_id

    with deps.uow_factory() as uow:
        review = _active_review(uow, inp.review_id)
        if inp.helpful:
            uow.reviews.add_helpful_vote(review.id, user_id, now)
        else:
            uow.reviews.remove_helpful_vote(review.id, user_id)
        current = uow.reviews.get_by_id(review.id)
        uow.commit()

    count = current.helpful.count if current is not None else review.helpful.count
    return HelpfulOutput(helpful_count=count, user_marked=inp.helpful)


def report(inp: ReportReviewInput, deps: RatingsDeps) -> Review:
    """Flag a review for moderation."""
    reason = (inp.reason or "").strip()
    if not reason:
        raise MissingReason("Report reason")
    now = deps.clock.now_utc()

    with deps.uow_factory() as uow:
        review = _active_review(uow, inp.review_id)
        uow.reviews.set_reported(review.id, True, reason, now)
        _audit(uow, inp.actor, "review.reported", review, now, reason=reason)
        uow.commit()

    return review.model_copy(update={"reported": True, "report_reason": reason, "updated_at": now})


def moderate(inp: ModerateReviewInput, deps: RatingsDeps) -> ReviewOutput:
    """
    Act on a reported review: "approve" clears the report, "remove"
    deactivates the review and recomputes the aggregate.

    Raises:
        Forbidden: caller is not an admin
        ValidationFailure: unknown action
        NotFound: review does not exist
    """
    if not deps.policy.can_moderate_reviews(inp.actor):
        raise Forbidden("Admin role required to moderate reviews")
    if inp.action not in MODERATION_ACTIONS:
        raise ValidationFailure(f"Unknown moderation action: {inp.action}", field="action")
    now = deps.clock.now_utc()

    with deps.uow_factory() as uow:
        review = uow.reviews.get_by_id(inp.review_id)
        if review is None:
            raise NotFound("Review", inp.review_id)

        if inp.action == "remove":
            uow.reviews.deactivate(review.id, now)
            review = review.model_copy(update={"is_active": False, "updated_at": now})
        else:
            uow.reviews.set_reported(review.id, False, None, now)
            review = review.model_copy(
                update={"reported": False, "report_reason": None, "updated_at": now}
            )

        avg, count = uow.rules.recompute_rating(review.rule_id)
        _audit(uow, inp.actor, f"review.moderated.{inp.action}", review, now)
        uow.commit()

    logger.info("Review %s moderated (%s) by %s", review.id, inp.action, inp.actor.user_id)
    return ReviewOutput(review=review, rating=avg, review_count=count)


# --- Queries ---


def get_review(review_id: UUID, deps: RatingsDeps) -> Review:
    review = deps.reviews.get_by_id(review_id)
    if review is None:
        raise NotFound("Review", review_id)
    return review


def list_for_rule(inp: ListForRuleInput, deps: RatingsDeps) -> ReviewPage:
    if deps.rules.get_by_id(inp.rule_id) is None:
        raise NotFound("Rule", inp.rule_id)
    if inp.sort not in REVIEW_SORTS:
        raise ValidationFailure(f"Unknown sort: {inp.sort}", field="sort")
    limit, offset = _page_bounds(inp.page, inp.limit)

    reviews, total = deps.reviews.list_for_rule(inp.rule_id, inp.sort, limit, offset)
    viewer_id = inp.viewer.user_id if inp.viewer is not None else None
    items = [
        ReviewView(
            review=r,
            user_marked_helpful=(viewer_id in r.helpful.users) if viewer_id else None,
        )
        for r in reviews
    ]
    return ReviewPage(items=items, total=total, page=inp.page, limit=limit)


def list_by_user(inp: ListByUserInput, deps: RatingsDeps) -> ReviewPage:
    limit, offset = _page_bounds(inp.page, inp.limit)
    reviews, total = deps.reviews.list_by_user(inp.user_id, limit, offset)
    return ReviewPage(
        items=[ReviewView(review=r) for r in reviews], total=total, page=inp.page, limit=limit
    )


def list_reported(inp: ListReportedInput, deps: RatingsDeps) -> ReviewPage:
    if not deps.policy.can_moderate_reviews(inp.actor):
        raise Forbidden("Admin role required to view reported reviews")
    limit, offset = _page_bounds(inp.page, inp.limit)
    reviews, total = deps.reviews.list_reported(limit, offset)
    return ReviewPage(
        items=[ReviewView(review=r) for r in reviews], total=total, page=inp.page, limit=limit
    )


# --- Run Function (Atomic Component Pattern) ---


RatingsInput = (
    SubmitReviewInput
    | UpdateReviewInput
    | DeleteReviewInput
    | HelpfulInput
    | ReportReviewInput
    | ModerateReviewInput
    | ListForRuleInput
    | ListByUserInput
    | ListReportedInput
)


def run(
    inp: RatingsInput, deps: RatingsDeps
) -> ReviewOutput | HelpfulOutput | Review | ReviewPage:
    """
    Main component entry point (Atomic Component Pattern).

    Args:
        inp: Input command
        deps: Ratings collaborators

    Returns:
        Operation result
    """
    if isinstance(inp, SubmitReviewInput):
        return submit(inp, deps)
    elif isinstance(inp, UpdateReviewInput):
        return update(inp, deps)
    elif isinstance(inp, DeleteReviewInput):
        return soft_delete(inp, deps)
    elif isinstance(inp, HelpfulInput):
        return mark_helpful(inp, deps)
    elif isinstance(inp, ReportReviewInput):
        return report(inp, deps)
    elif isinstance(inp, ModerateReviewInput):
        return moderate(inp, deps)
    elif isinstance(inp, ListForRuleInput):
        return list_for_rule(inp, deps)
    elif isinstance(inp, ListByUserInput):
        return list_by_user(inp, deps)
    elif isinstance(inp, ListReportedInput):
        return list_reported(inp, deps)
    else:
        raise ValueError(f"Unknown input type: {type(inp)}")


# --- Configuration Loader ---


def load_config_from_rules(rules: Rules) -> RatingsConfig:
    return RatingsConfig(
        min_rating=rules.reviews.rating.min,
        max_rating=rules.reviews.rating.max,
        comment_max_length=rules.reviews.comment_max_length,
    )
