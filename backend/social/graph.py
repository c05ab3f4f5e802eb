"""
Follow graph reads: follower/following lists, follow status and counts,
and who-to-follow suggestions.

Lists are plain index scans (follow_following_idx / follow_follower_idx),
newest edge first unless sort='engagement'.

SUGGESTIONS:
------------
1. Network: users followed by the people the viewer follows, weighted by
   the viewer's engagement_score on the edge to each of those people. One
   grouped query; the filter's join to the viewer's edges is the same join
   the Sum reads.
2. Popular: if the network runs dry, active users by follower count.
"""

from django.contrib.auth.models import User
from django.db.models import Count, Sum

from .errors import NotFoundError
from .models import Follow
from .pagination import paginate, validate_page, validate_choice, validate_int
from .queries import viewer_id_of

FOLLOW_SORTS = {
    'newest': ('-created_at', '-id'),
    'engagement': ('-engagement_score', '-created_at', '-id'),
}
DEFAULT_SUGGESTION_LIMIT = 10
MAX_SUGGESTION_LIMIT = 50


def _require_user(user_id: int) -> None:
    if not User.objects.filter(id=user_id, is_active=True).exists():
        raise NotFoundError(f"User {user_id} does not exist")


def get_followers(
    user_id: int,
    page: int = 1,
    page_size: int | None = None,
    include_total: bool | None = None,
    sort: str = 'newest',
):
    """Edges pointing AT user_id; each item's `follower` is the other user."""
    sort = validate_choice('sort', sort, FOLLOW_SORTS)
    page, page_size = validate_page(page, page_size)
    _require_user(user_id)
    queryset = (
        Follow.objects
        .filter(following_id=user_id)
        .select_related('follower')
        .order_by(*FOLLOW_SORTS[sort])
    )
    return paginate(queryset, page, page_size, include_total)


def get_following(
    user_id: int,
    page: int = 1,
    page_size: int | None = None,
    include_total: bool | None = None,
    sort: str = 'newest',
):
    """Edges going OUT of user_id; each item's `following` is the other user."""
    sort = validate_choice('sort', sort, FOLLOW_SORTS)
    page, page_size = validate_page(page, page_size)
    _require_user(user_id)
    queryset = (
        Follow.objects
        .filter(follower_id=user_id)
        .select_related('following')
        .order_by(*FOLLOW_SORTS[sort])
    )
    return paginate(queryset, page, page_size, include_total)


def get_follow_status(viewer, user_id: int) -> Follow | None:
    """The viewer's edge to user_id, or None."""
    _require_user(user_id)
    viewer_id = viewer_id_of(viewer)
    if viewer_id is None:
        return None
    return Follow.objects.filter(follower_id=viewer_id, following_id=user_id).first()


def get_follow_stats(user_id: int, viewer=None) -> dict:
    _require_user(user_id)
    viewer_id = viewer_id_of(viewer)
    stats = {
        'follower_count': Follow.objects.filter(following_id=user_id).count(),
        'following_count': Follow.objects.filter(follower_id=user_id).count(),
        'is_following': False,
        'is_followed_by': False,
    }
    if viewer_id is not None and viewer_id != user_id:
        stats['is_following'] = Follow.objects.filter(
            follower_id=viewer_id, following_id=user_id
        ).exists()
        stats['is_followed_by'] = Follow.objects.filter(
            follower_id=user_id, following_id=viewer_id
        ).exists()
    return stats


def get_suggested_users(viewer=None, limit: int = DEFAULT_SUGGESTION_LIMIT) -> list[dict]:
    """
    Up to `limit` users the viewer doesn't follow yet.

    Returns [{'user': User, 'reason': 'network' | 'popular', 'score': float}],
    network suggestions first.

    QUERIES: network (0-1) + popular (1) + users (1)
    """
    limit = validate_int('limit', limit, 1, MAX_SUGGESTION_LIMIT)
    viewer_id = viewer_id_of(viewer)
    excluded = set()
    ranked = []

    if viewer_id is not None:
        already_followed = Follow.objects.filter(follower_id=viewer_id).values('following_id')
        excluded.add(viewer_id)
        excluded.update(already_followed.values_list('following_id', flat=True))

        network = (
            Follow.objects
            .filter(follower__follower_edges__follower_id=viewer_id)
            .exclude(following_id=viewer_id)
            .exclude(following_id__in=already_followed)
            .filter(following__is_active=True)
            .values('following_id')
            .annotate(
                affinity=Sum('follower__follower_edges__engagement_score'),
                mutual=Count('id'),
            )
            .order_by('-affinity', '-mutual', 'following_id')[:limit]
        )
        for row in network:
            ranked.append((row['following_id'], 'network', float(row['affinity'])))
            excluded.add(row['following_id'])

    if len(ranked) < limit:
        popular = (
            User.objects
            .filter(is_active=True)
            .exclude(id__in=excluded)
            .annotate(followers=Count('follower_edges'))
            .order_by('-followers', 'id')
            .values_list('id', 'followers')[:limit - len(ranked)]
        )
        ranked.extend((user_id, 'popular', float(followers)) for user_id, followers in popular)

    users = User.objects.in_bulk([user_id for user_id, _, _ in ranked])
    return [
        {'user': users[user_id], 'reason': reason, 'score': score}
        for user_id, reason, score in ranked
    ]
