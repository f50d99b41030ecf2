"""Review rows: record type, repository contract and an in-memory repository."""
from __future__ import annotations

import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol
from uuid import uuid4


@dataclass
class Review:
    id: str
    name: str
    label: Optional[str]
    rating: int
    comment: str
    created_at: str

    def to_public(self) -> Dict[str, Any]:
        data = asdict(self)
        data["createdAt"] = data.pop("created_at")
        return data


class ReviewsRepoProtocol(Protocol):
    """Repository contract expected by the reviews service."""

    def insert(self, *, name: str, label: Optional[str], rating: int, comment: str) -> Review: ...

    def delete(self, review_id: str) -> bool: ...

    def list(self, *, limit: int) -> List[Review]: ...


class InMemoryReviewsRepo:
    def __init__(self) -> None:
        self._rows: Dict[str, Review] = {}
        self._lock = threading.Lock()

    def insert(self, *, name: str, label: Optional[str], rating: int, comment: str) -> Review:
        review = Review(
            id=str(uuid4()),
            name=name,
            label=label,
            rating=rating,
            comment=comment,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        with self._lock:
            self._rows[review.id] = review
        return review

    def delete(self, review_id: str) -> bool:
        with self._lock:
            return self._rows.pop(str(review_id), None) is not None

    def list(self, *, limit: int) -> List[Review]:
        with self._lock:
            rows = list(self._rows.values())
        # Insertion order breaks ties between identical timestamps.
        ordered = sorted(enumerate(rows), key=lambda it: (it[1].created_at, it[0]), reverse=True)
        return [row for _, row in ordered][:limit]


__all__ = ["Review", "ReviewsRepoProtocol", "InMemoryReviewsRepo"]
