"""Threaded comments on features, and their CSV export.

Comment storage and sentiment analysis are external collaborators. This
module defines the interfaces the map talks to, an in-memory store used by
the default app wiring and tests, and a keyword-based sentiment analyzer
used when no model is configured.
"""

from __future__ import annotations

import csv
import io
import itertools
import json
import math
import threading
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from typing import Protocol

from loguru import logger

from commap.quota import PRO_TIER

SENTIMENT_CATEGORIES = ("Positive", "Neutral", "Negative")

COMMENT_CSV_HEADERS = [
    "Comment ID",
    "Feature ID",
    "Comment Text",
    "User ID",
    "Created At",
    "Updated At",
    "Feature Coordinates",
    "Sentiment Category",
    "Sentiment Confidence",
]


@dataclass
class Comment:
    id: str
    feature_id: str
    comment_text: str
    user_id: str | None
    created_at: str
    updated_at: str
    feature_coordinates: object = None
    feature_geometry: dict | None = None
    sentiment_category: str | None = None
    sentiment_confidence: float | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Sentiment:
    category: str
    confidence: float


class CommentStore(Protocol):
    def list_for(self, feature_id: str) -> list[Comment]: ...

    def add(
        self,
        feature_id: str,
        comment_text: str,
        user_id: str | None,
        target: dict | None = None,
    ) -> Comment: ...

    def set_sentiment(self, comment_id: str, sentiment: Sentiment) -> None: ...

    def all(self) -> list[Comment]: ...


class SentimentAnalyzer(Protocol):
    def analyze(self, comment_id: str, comment_text: str) -> Sentiment: ...


class KeywordSentiment:
    """Fallback classifier: a handful of positive/negative keywords."""

    POSITIVE = ("good", "great", "excellent", "love")
    NEGATIVE = ("bad", "terrible", "hate", "awful")

    def analyze(self, comment_id: str, comment_text: str) -> Sentiment:
        text = comment_text.lower()
        if any(word in text for word in self.POSITIVE):
            return Sentiment("Positive", 0.7)
        if any(word in text for word in self.NEGATIVE):
            return Sentiment("Negative", 0.7)
        return Sentiment("Neutral", 0.5)


def parse_sentiment_reply(reply: str, comment_text: str) -> Sentiment:
    """Read a model's ``{"sentiment", "confidence"}`` reply.

    Unparseable replies fall back to keyword classification.
    """
    try:
        data = json.loads(reply)
        category = data.get("sentiment") or "Neutral"
        confidence = float(data.get("confidence") or 0.5)
    except (json.JSONDecodeError, AttributeError, TypeError, ValueError):
        logger.warning(f"Could not parse sentiment reply: {reply!r}")
        return KeywordSentiment().analyze("", comment_text)
    if category not in SENTIMENT_CATEGORIES:
        category = "Neutral"
    return Sentiment(category, min(1.0, max(0.0, confidence)))


class InMemoryCommentStore:
    """Thread-safe, process-local comment store."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._comments: dict[str, Comment] = {}
        self._ids = itertools.count(1)

    def list_for(self, feature_id: str) -> list[Comment]:
        """Comments on a feature, newest first."""
        with self._lock:
            matches = [c for c in self._comments.values() if c.feature_id == feature_id]
        return sorted(matches, key=lambda c: c.created_at, reverse=True)

    def add(
        self,
        feature_id: str,
        comment_text: str,
        user_id: str | None,
        target: dict | None = None,
    ) -> Comment:
        now = datetime.now(timezone.utc).isoformat()
        target = target or {}
        with self._lock:
            comment = Comment(
                id=str(next(self._ids)),
                feature_id=feature_id,
                comment_text=comment_text,
                user_id=user_id,
                created_at=now,
                updated_at=now,
                feature_coordinates=target.get("feature_coordinates"),
                feature_geometry=target.get("feature_geometry"),
            )
            self._comments[comment.id] = comment
        return comment

    def set_sentiment(self, comment_id: str, sentiment: Sentiment) -> None:
        with self._lock:
            comment = self._comments.get(comment_id)
            if comment is None:
                raise KeyError(f"Comment not found: {comment_id}")
            comment.sentiment_category = sentiment.category
            comment.sentiment_confidence = sentiment.confidence
            comment.updated_at = datetime.now(timezone.utc).isoformat()

    def all(self) -> list[Comment]:
        with self._lock:
            comments = list(self._comments.values())
        return sorted(comments, key=lambda c: c.created_at, reverse=True)


def submit_comment(
    store: CommentStore,
    feature_id: str,
    comment_text: str,
    user_id: str | None,
    tier: str,
    target: dict | None = None,
    analyzer: SentimentAnalyzer | None = None,
) -> Comment:
    """Store a comment and, for pro authors, attach sentiment.

    Sentiment failures are logged and never prevent the comment from being
    created.

    Raises:
        ValueError: If the text or feature id is empty.
    """
    if not comment_text or not feature_id:
        raise ValueError("comment_text and feature_id are required")

    comment = store.add(feature_id, comment_text, user_id, target)

    if tier == PRO_TIER and analyzer is not None:
        try:
            store.set_sentiment(comment.id, analyzer.analyze(comment.id, comment_text))
        except Exception as e:
            logger.warning(f"Sentiment analysis error (non-blocking): {e}")
    return comment


def comments_to_csv(comments: list[Comment]) -> str:
    """Export comments with their coordinates and sentiment as CSV."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(COMMENT_CSV_HEADERS)
    for c in comments:
        writer.writerow([
            c.id,
            c.feature_id,
            c.comment_text or "",
            c.user_id or "",
            c.created_at,
            c.updated_at,
            json.dumps(c.feature_coordinates, separators=(",", ":")) if c.feature_coordinates else "",
            c.sentiment_category or "",
            "" if c.sentiment_confidence is None else c.sentiment_confidence,
        ])
    return buf.getvalue()


def sentiment_breakdown(comments: list[Comment]) -> dict:
    """Share of each sentiment among analyzed comments, for the dashboard.

    Comments without a sentiment are not counted. Percentages are rounded
    half up and need not sum to 100.
    """
    analyzed = [c for c in comments if c.sentiment_category]
    counts = {category: 0 for category in SENTIMENT_CATEGORIES}
    for c in analyzed:
        category = c.sentiment_category if c.sentiment_category in counts else "Neutral"
        counts[category] += 1

    total = len(analyzed) or 1
    return {
        "total_comments": len(analyzed),
        "sentiment_breakdown": [
            {"name": category, "value": math.floor(counts[category] / total * 100 + 0.5)}
            for category in SENTIMENT_CATEGORIES
        ],
    }


def comments_filename(today: date | None = None) -> str:
    today = today or datetime.now(timezone.utc).date()
    return f"spatial-comments-{today.isoformat()}.csv"
