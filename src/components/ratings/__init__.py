"""
Ratings component.

Public API for reviews and rating aggregation.
"""

from .component import (
    RatingsDeps,
    get_review,
    list_by_user,
    list_for_rule,
    list_reported,
    load_config_from_rules,
    mark_helpful,
    moderate,
    normalize_comment,
    report,
    run,
    soft_delete,
    submit,
    update,
    validate_rating,
)
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
    ModerationAction,
    RatingsConfig,
    ReportReviewInput,
    ReviewOutput,
    ReviewPage,
    ReviewSort,
    ReviewView,
    SubmitReviewInput,
    UpdateReviewInput,
)

__all__ = [
    # Functions
    "get_review",
    "list_by_user",
    "list_for_rule",
    "list_reported",
    "load_config_from_rules",
    "mark_helpful",
    "moderate",
    "normalize_comment",
    "report",
    "run",
    "soft_delete",
    "submit",
    "update",
    "validate_rating",
    # Dependencies
    "RatingsDeps",
    # Models
    "MODERATION_ACTIONS",
    "REVIEW_SORTS",
    "DeleteReviewInput",
    "HelpfulInput",
    "HelpfulOutput",
    "ListByUserInput",
    "ListForRuleInput",
    "ListReportedInput",
    "ModerateReviewInput",
    "ModerationAction",
    "RatingsConfig",
    "ReportReviewInput",
    "ReviewOutput",
    "ReviewPage",
    "ReviewSort",
    "ReviewView",
    "SubmitReviewInput",
    "UpdateReviewInput",
]
