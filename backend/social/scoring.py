"""
Engagement score.

    raw            = reactions*w_r + comments*w_c + shares*w_s + views*w_v
    recency_boost  = max(floor, (window - age_hours) / window)
    score          = raw * recency_boost

Weights live in settings.ENGAGEMENT_SCORE. The boost is additive in
age_hours, so a brand-new post (age 0) needs no special case.

This is the only score formula in the codebase; the timeline's "popular"
sort and the trending ranker both read the stored value it produces.
"""

from datetime import datetime

from django.conf import settings
from django.utils import timezone

DEFAULT_WEIGHTS = {
    'reaction_weight': 1.0,
    'comment_weight': 2.0,
    'share_weight': 5.0,
    'view_weight': 0.1,
    'recency_window_hours': 48.0,
    'recency_floor': 1.0,
}


def get_weights() -> dict:
    weights = dict(DEFAULT_WEIGHTS)
    weights.update(getattr(settings, 'ENGAGEMENT_SCORE', {}))
    return weights


def recency_boost(created_at: datetime, now: datetime | None = None, weights: dict | None = None) -> float:
    weights = weights or get_weights()
    now = now or timezone.now()
    age_hours = max((now - created_at).total_seconds() / 3600.0, 0.0)
    window = weights['recency_window_hours']
    return max(weights['recency_floor'], (window - age_hours) / window)


def compute_engagement_score(
    reaction_count: int,
    comment_count: int,
    share_count: int,
    view_count: int,
    created_at: datetime,
    now: datetime | None = None,
) -> float:
    weights = get_weights()
    raw = (
        reaction_count * weights['reaction_weight']
        + comment_count * weights['comment_weight']
        + share_count * weights['share_weight']
        + view_count * weights['view_weight']
    )
    return raw * recency_boost(created_at, now=now, weights=weights)


def score_for_post(post, now: datetime | None = None) -> float:
    return compute_engagement_score(
        post.reaction_count,
        post.comment_count,
        post.share_count,
        post.view_count,
        post.created_at,
        now=now,
    )
