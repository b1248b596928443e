"""Review routes: public listing, author mutations, helpful votes, reports."""

from uuid import UUID

from fastapi import APIRouter, Depends

from src.api.deps import get_actor, get_optional_actor, get_ratings_deps
from src.api.schemas import (
    HelpfulRequest,
    HelpfulResponse,
    ReportRequest,
    ReviewChangeResponse,
    ReviewCreateRequest,
    ReviewPageResponse,
    ReviewResponse,
    ReviewSort,
    ReviewUpdateRequest,
    review_change_response,
    review_page_response,
    review_response,
)
from src.components.ratings import (
    DeleteReviewInput,
    HelpfulInput,
    ListByUserInput,
    ListForRuleInput,
    RatingsDeps,
    ReportReviewInput,
    SubmitReviewInput,
    UpdateReviewInput,
    get_review,
    list_by_user,
    list_for_rule,
    mark_helpful,
    report,
    soft_delete,
    submit,
    update,
)
from src.domain.entities import Actor

router = APIRouter()


@router.get("/rule/{rule_id}", response_model=ReviewPageResponse)
def reviews_for_rule(
    rule_id: UUID,
    sort: ReviewSort = "helpful",
    page: int = 1,
    limit: int = 10,
    viewer: Actor | None = Depends(get_optional_actor),
    deps: RatingsDeps = Depends(get_ratings_deps),
) -> ReviewPageResponse:
    result = list_for_rule(ListForRuleInput(rule_id, sort, page, limit, viewer), deps)
    return review_page_response(result)


@router.get("/user/{user_id}", response_model=ReviewPageResponse)
def reviews_by_user(
    user_id: UUID,
    page: int = 1,
    limit: int = 10,
    deps: RatingsDeps = Depends(get_ratings_deps),
) -> ReviewPageResponse:
    return review_page_response(list_by_user(ListByUserInput(user_id, page, limit), deps))


@router.get("/{review_id}", response_model=ReviewResponse)
def get_one(review_id: UUID, deps: RatingsDeps = Depends(get_ratings_deps)) -> ReviewResponse:
    return review_response(get_review(review_id, deps))


@router.post("", response_model=ReviewChangeResponse, status_code=201)
def create_review(
    data: ReviewCreateRequest,
    actor: Actor = Depends(get_actor),
    deps: RatingsDeps = Depends(get_ratings_deps),
) -> ReviewChangeResponse:
    out = submit(SubmitReviewInput(actor, data.rule_id, data.rating, data.comment), deps)
    return review_change_response(out)


@router.put("/{review_id}", response_model=ReviewChangeResponse)
def update_review(
    review_id: UUID,
    data: ReviewUpdateRequest,
    actor: Actor = Depends(get_actor),
    deps: RatingsDeps = Depends(get_ratings_deps),
) -> ReviewChangeResponse:
    out = update(UpdateReviewInput(actor, review_id, data.rating, data.comment), deps)
    return review_change_response(out)


@router.delete("/{review_id}", response_model=ReviewChangeResponse)
def delete_review(
    review_id: UUID,
    actor: Actor = Depends(get_actor),
    deps: RatingsDeps = Depends(get_ratings_deps),
) -> ReviewChangeResponse:
    return review_change_response(soft_delete(DeleteReviewInput(actor, review_id), deps))


@router.post("/{review_id}/helpful", response_model=HelpfulResponse)
def helpful(
    review_id: UUID,
    data: HelpfulRequest,
    actor: Actor = Depends(get_actor),
    deps: RatingsDeps = Depends(get_ratings_deps),
) -> HelpfulResponse:
    out = mark_helpful(HelpfulInput(actor, review_id, data.helpful), deps)
    return HelpfulResponse(helpful=out.helpful_count, user_marked=out.user_marked)


@router.post("/{review_id}/report", response_model=ReviewResponse)
def report_review(
    review_id: UUID,
    data: ReportRequest,
    actor: Actor = Depends(get_actor),
    deps: RatingsDeps = Depends(get_ratings_deps),
) -> ReviewResponse:
    return review_response(report(ReportReviewInput(actor, review_id, data.reason), deps))
