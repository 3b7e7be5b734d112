"""
Product reviews: aggregation, submission and the "helpful" toggle.

Customers only ever see approved reviews. One review per (product, user) is
enforced by checking before the write, so two simultaneous submissions can
both get through.
"""
import logging
from typing import Iterable, List, Literal, Optional

import orders
from database import DocumentStore, now_utc
from errors import NotFoundError, ValidationError
from pricing import round_half_up
from schemas import (
    Review, ReviewCreate, ReviewEligibility, ReviewStatus, ReviewSummary, ReviewUpdate, User,
)

logger = logging.getLogger(__name__)

REVIEWS = "reviews"

SortBy = Literal["recent", "helpful", "rating"]

_SORTS = {
    "recent": [("created_at", -1)],
    "helpful": [("helpful_count", -1), ("created_at", -1)],
    "rating": [("rating", -1), ("created_at", -1)],
}


def summarize(reviews: Iterable[Review]) -> ReviewSummary:
    ratings = [r.rating for r in reviews]
    summary = ReviewSummary()
    if not ratings:
        return summary
    for rating in ratings:
        summary.rating_distribution[rating] += 1
    summary.total_reviews = len(ratings)
    summary.average_rating = round_half_up(sum(ratings) / len(ratings), 1)
    return summary


def _approved(store: DocumentStore, product_id: str, order_by=None) -> List[Review]:
    docs = store.query(REVIEWS, [("product_id", "==", product_id), ("status", "==", "approved")], order_by=order_by)
    return [Review.model_validate(d) for d in docs]


def get_review_summary(store: DocumentStore, product_id: str) -> ReviewSummary:
    return summarize(_approved(store, product_id))


def list_product_reviews(store: DocumentStore, product_id: str, sort_by: SortBy = "recent") -> List[Review]:
    if sort_by not in _SORTS:
        raise ValidationError(f"Unknown sort order: {sort_by}")
    return _approved(store, product_id, _SORTS[sort_by])


def get_review(store: DocumentStore, review_id: str) -> Optional[Review]:
    doc = store.get(REVIEWS, review_id)
    return Review.model_validate(doc) if doc else None


def get_user_review_for_product(store: DocumentStore, product_id: str, user_id: str) -> Optional[Review]:
    docs = store.query(REVIEWS, [("product_id", "==", product_id), ("user_id", "==", user_id)], limit=1)
    return Review.model_validate(docs[0]) if docs else None


def has_user_purchased_product(store: DocumentStore, product_id: str, user_id: str) -> bool:
    docs = store.query(orders.ORDERS, [("user_id", "==", user_id), ("payment_status", "==", "completed")])
    for doc in docs:
        for item in doc.get("items") or []:
            if product_id in (item.get("product_id"), (item.get("product") or {}).get("id")):
                return True
    return False


def can_review(store: DocumentStore, product_id: str, user_id: str) -> ReviewEligibility:
    # Any existing review counts, whatever its status
    if get_user_review_for_product(store, product_id, user_id) is not None:
        return ReviewEligibility(can_review=False, is_verified_purchase=False)
    return ReviewEligibility(
        can_review=True,
        is_verified_purchase=has_user_purchased_product(store, product_id, user_id),
    )


def add_review(store: DocumentStore, data: ReviewCreate, user: User) -> str:
    eligibility = can_review(store, data.product_id, user.id)
    if not eligibility.can_review:
        raise ValidationError("You have already reviewed this product")

    now = now_utc()
    review = Review(
        product_id=data.product_id,
        user_id=user.id,
        user_name=user.display_name or "Anonymous",
        user_email=user.email,
        rating=data.rating,
        title=data.title or None,
        comment=data.comment,
        images=data.images,
        is_verified_purchase=eligibility.is_verified_purchase,
        helpful_count=0,
        helpful_by=[],
        status=data.status,
        created_at=now,
        updated_at=now,
    )
    review_id = store.add(REVIEWS, review.model_dump(exclude={"id"}))
    logger.info(f"Review {review_id} added for product {data.product_id} by {user.id}")
    return review_id


def update_review(store: DocumentStore, review_id: str, changes: ReviewUpdate) -> None:
    store.update(REVIEWS, review_id, {**changes.model_dump(exclude_none=True), "updated_at": now_utc()})


def delete_review(store: DocumentStore, review_id: str) -> None:
    store.delete(REVIEWS, review_id)


def set_review_status(store: DocumentStore, review_id: str, status: ReviewStatus) -> None:
    store.update(REVIEWS, review_id, {"status": status, "updated_at": now_utc()})


def toggle_helpful(store: DocumentStore, review_id: str, user_id: str) -> Review:
    review = get_review(store, review_id)
    if review is None:
        raise NotFoundError("Review not found")

    if user_id in review.helpful_by:
        helpful_by = [u for u in review.helpful_by if u != user_id]
        delta = -1
    else:
        helpful_by = review.helpful_by + [user_id]
        delta = 1
    store.update(REVIEWS, review_id, {"helpful_by": helpful_by, "updated_at": now_utc()})
    store.increment(REVIEWS, review_id, "helpful_count", delta)

    review.helpful_by = helpful_by
    review.helpful_count += delta
    return review
