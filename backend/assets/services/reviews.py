"""
Customer reviews shown on the site.

Every successful insert or delete bumps `reviews_version` so displays know to
re-fetch the list. Deleting an id that does not exist still succeeds (and
still bumps): the caller's intent, "this review is gone", holds either way.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

from backend.assets.config_store import ConfigStoreProtocol
from backend.assets.errors import InvalidInput
from backend.assets.reviews_repo import ReviewsRepoProtocol
from backend.storage.config import LIST_PAGE_SIZE

logger = logging.getLogger("backdrop.assets")

MAX_NAME_LENGTH = 100
MAX_LABEL_LENGTH = 100
MAX_COMMENT_LENGTH = 2000
DEFAULT_RATING = 5


def normalize_rating(raw: Any) -> int:
    """Round half-up and clamp to 1..5; non-numeric input yields 5."""
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return DEFAULT_RATING
    if not math.isfinite(value):
        return DEFAULT_RATING
    return int(min(5, max(1, math.floor(value + 0.5))))


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


@dataclass
class ReviewsService:
    repo: ReviewsRepoProtocol
    config: ConfigStoreProtocol
    page_size: int = LIST_PAGE_SIZE

    def add(self, *, name: Any, comment: Any, rating: Any = None, label: Any = None) -> Dict[str, Any]:
        clean_name = _clean(name)
        clean_comment = _clean(comment)
        if not clean_name or not clean_comment:
            raise InvalidInput("missing_fields", "name and comment are required")
        clean_label: Optional[str] = _clean(label) or None
        if len(clean_name) > MAX_NAME_LENGTH:
            raise InvalidInput("invalid_name", "name is too long")
        if clean_label and len(clean_label) > MAX_LABEL_LENGTH:
            raise InvalidInput("invalid_label", "label is too long")
        if len(clean_comment) > MAX_COMMENT_LENGTH:
            raise InvalidInput("invalid_comment", "comment is too long")
        review = self.repo.insert(
            name=clean_name,
            label=clean_label,
            rating=normalize_rating(rating),
            comment=clean_comment,
        )
        result = self.config.commit("reviews", {})
        logger.info("review added id=%s version=%s", review.id, result.current.reviews_version)
        return {"version": result.current.reviews_version, "review": review}

    def delete(self, review_id: Any) -> Dict[str, Any]:
        rid = review_id.strip() if isinstance(review_id, str) else ""
        if not rid:
            raise InvalidInput("missing_review_id", "reviewId is required")
        removed = self.repo.delete(rid)
        result = self.config.commit("reviews", {})
        logger.info("review delete id=%s removed=%s version=%s", rid, removed, result.current.reviews_version)
        return {"version": result.current.reviews_version, "deleted": removed}

    def list(self) -> Dict[str, Any]:
        record = self.config.get_or_create()
        reviews = self.repo.list(limit=self.page_size)
        return {"version": record.reviews_version, "reviews": reviews}


__all__ = ["normalize_rating", "ReviewsService"]
