"""
Trending Ranker

Global popularity over a recent window: public, active posts created within
the last `window_hours`, ranked by the stored engagement_score. The viewer's
follow graph plays no part, so one ranking serves every caller.

The window edge is inclusive (created_at >= now - window). Ties break on
created_at DESC then id DESC, so pagination is stable.
"""

from datetime import datetime, timedelta

from django.conf import settings
from django.utils import timezone

from .models import Post
from .pagination import paginate, validate_page, validate_int
from .queries import attach_viewer_reactions, viewer_id_of

TRENDING_ORDERING = ('-engagement_score', '-created_at', '-id')


def default_window_hours() -> int:
    return getattr(settings, 'FEED_TRENDING_WINDOW_HOURS', 24)


def max_window_hours() -> int:
    return getattr(settings, 'FEED_MAX_TRENDING_WINDOW_HOURS', 168)


def validate_window(window_hours) -> int:
    if window_hours is None:
        window_hours = default_window_hours()
    return validate_int('window_hours', window_hours, 1, max_window_hours())


def window_cutoff(window_hours: int, now: datetime | None = None) -> datetime:
    now = now or timezone.now()
    return now - timedelta(hours=window_hours)


def rank_within_window(queryset, window_hours: int, now: datetime | None = None):
    """Restrict any post queryset to the window and apply trending order."""
    return (
        queryset
        .filter(created_at__gte=window_cutoff(window_hours, now))
        .order_by(*TRENDING_ORDERING)
    )


def get_trending(
    window_hours: int | None = None,
    page: int = 1,
    page_size: int | None = None,
    include_total: bool | None = None,
    viewer=None,
    now: datetime | None = None,
):
    window_hours = validate_window(window_hours)
    page, page_size = validate_page(page, page_size)

    queryset = (
        Post.objects
        .filter(is_active=True, visibility=Post.Visibility.PUBLIC)
        .select_related('author', 'original_post', 'original_post__author')
    )
    result = paginate(rank_within_window(queryset, window_hours, now), page, page_size, include_total)
    attach_viewer_reactions(result.items, viewer_id_of(viewer))
    return result
