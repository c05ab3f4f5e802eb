"""
Timeline Composer
=================

VISIBILITY PREDICATE:
---------------------
    public                              -> everyone
    followers  AND author in followed   -> authenticated followers
    private                             -> only on the author's own profile

The followed set is a correlated subquery on the follow table, not a list
of ids pulled into Python, so the predicate costs the same for a viewer
following 5 accounts or 50,000.

Filters (kind, has_media, author, search) are ANDed with the predicate,
never ORed.

ORDERING:
---------
Every sort ends in created_at DESC, id DESC (oldest: ASC, ASC) so two
posts never compare equal and offset pages never overlap or skip.
"""

import json

from django.contrib.auth.models import User
from django.db import connection
from django.db.models import Q

from .errors import NotFoundError, ValidationFailed
from .models import Post, Follow
from .normalizer import extract_keywords
from .pagination import paginate, validate_page, validate_choice, validate_int
from .queries import attach_viewer_reactions, is_following, viewer_id_of
from .trending import rank_within_window, validate_window

SORT_ORDERINGS = {
    'newest': ('-created_at', '-id'),
    'oldest': ('created_at', 'id'),
    'popular': ('-engagement_score', '-created_at', '-id'),
    'trending': None,  # window + trending order, see trending.rank_within_window
    'most_viewed': ('-view_count', '-created_at', '-id'),
    'most_commented': ('-comment_count', '-created_at', '-id'),
}


def visibility_filter(viewer_id: int | None) -> Q:
    predicate = Q(visibility=Post.Visibility.PUBLIC)
    if viewer_id is not None:
        followed = Follow.objects.filter(follower_id=viewer_id).values('following_id')
        predicate |= Q(visibility=Post.Visibility.FOLLOWERS, author_id__in=followed)
    return predicate


MAX_HASHTAG_FILTERS = 10


def json_list_contains(field: str, value: str) -> Q:
    """
    Membership test on a JSON list column.

    PostgreSQL answers it with jsonb containment (@>). SQLite has no JSON
    containment, so the serialized element, quotes included, is matched
    inside the stored text instead; the quotes stop "bike" from matching
    "bikes".
    """
    if connection.features.supports_json_field_contains:
        return Q(**{f'{field}__contains': [value]})
    return Q(**{f'{field}__icontains': json.dumps(value)})


def validate_hashtags(hashtags) -> list[str]:
    """Accept '#Bike' or 'bike'; stored hashtags are lowercase without '#'."""
    if not isinstance(hashtags, (list, tuple)):
        raise ValidationFailed('hashtags', "hashtags must be a list")
    if len(hashtags) > MAX_HASHTAG_FILTERS:
        raise ValidationFailed('hashtags', f"At most {MAX_HASHTAG_FILTERS} hashtags are allowed")
    cleaned = []
    for tag in hashtags:
        if not isinstance(tag, str) or not tag.strip().lstrip('#'):
            raise ValidationFailed('hashtags', "Each hashtag must be a non-empty string")
        cleaned.append(tag.strip().lstrip('#').lower())
    return cleaned


def search_filter(search: str) -> Q:
    """
    Substring match on the content, OR every keyword of the query present in
    the post's keyword set (word order and punctuation don't matter).
    """
    predicate = Q(content__icontains=search)
    keywords = extract_keywords(search)
    if keywords:
        all_keywords = Q()
        for keyword in keywords:
            all_keywords &= json_list_contains('keywords', keyword)
        predicate |= all_keywords
    return predicate


def _apply_filters(queryset, kind=None, has_media=None, author_id=None, search=None, hashtags=None):
    if kind is not None:
        validate_choice('kind', kind, Post.Kind.values)
        queryset = queryset.filter(kind=kind)
    if has_media is not None:
        if not isinstance(has_media, bool):
            raise ValidationFailed('has_media', "has_media must be a boolean")
        queryset = queryset.filter(has_media=has_media)
    if author_id is not None:
        validate_int('author_id', author_id, 1)
        queryset = queryset.filter(author_id=author_id)
    if search:
        queryset = queryset.filter(search_filter(search))
    if hashtags:
        # Any of the given tags
        any_tag = Q()
        for tag in validate_hashtags(hashtags):
            any_tag |= json_list_contains('hashtags', tag)
        queryset = queryset.filter(any_tag)
    return queryset


def _sorted(queryset, sort: str, window_hours=None, now=None):
    if sort == 'trending':
        return rank_within_window(queryset, validate_window(window_hours), now)
    return queryset.order_by(*SORT_ORDERINGS[sort])


def _base_queryset():
    return (
        Post.objects
        .filter(is_active=True)
        .select_related('author', 'original_post', 'original_post__author')
    )


def get_timeline(
    viewer=None,
    kind: str | None = None,
    has_media: bool | None = None,
    author_id: int | None = None,
    search: str | None = None,
    hashtags: list[str] | None = None,
    sort: str = 'newest',
    page: int = 1,
    page_size: int | None = None,
    window_hours: int | None = None,
    include_total: bool | None = None,
    now=None,
):
    """
    The general feed for a viewer (or anonymous).

    QUERIES: page (1) + COUNT on page 1 (1) + viewer reactions (0-1)
    """
    sort = validate_choice('sort', sort, SORT_ORDERINGS)
    page, page_size = validate_page(page, page_size)
    viewer_id = viewer_id_of(viewer)

    queryset = _base_queryset().filter(visibility_filter(viewer_id))
    queryset = _apply_filters(queryset, kind, has_media, author_id, search, hashtags)

    result = paginate(_sorted(queryset, sort, window_hours, now), page, page_size, include_total)
    attach_viewer_reactions(result.items, viewer_id)
    return result


def profile_visibilities(viewer_id: int | None, author_id: int) -> list[str]:
    if viewer_id == author_id:
        return list(Post.Visibility.values)
    if is_following(viewer_id, author_id):
        return [Post.Visibility.PUBLIC, Post.Visibility.FOLLOWERS]
    return [Post.Visibility.PUBLIC]


def get_user_posts(
    author_id: int,
    viewer=None,
    kind: str | None = None,
    has_media: bool | None = None,
    search: str | None = None,
    hashtags: list[str] | None = None,
    sort: str = 'newest',
    page: int = 1,
    page_size: int | None = None,
    window_hours: int | None = None,
    include_total: bool | None = None,
    now=None,
):
    """
    One author's posts, as the viewer is allowed to see them.

    This is the only read path that ever returns private posts: to their
    author, on their own profile.
    """
    sort = validate_choice('sort', sort, SORT_ORDERINGS)
    page, page_size = validate_page(page, page_size)
    if not User.objects.filter(id=author_id, is_active=True).exists():
        raise NotFoundError(f"User {author_id} does not exist")

    viewer_id = viewer_id_of(viewer)
    queryset = _base_queryset().filter(
        author_id=author_id,
        visibility__in=profile_visibilities(viewer_id, author_id),
    )
    queryset = _apply_filters(queryset, kind, has_media, search=search, hashtags=hashtags)

    result = paginate(_sorted(queryset, sort, window_hours, now), page, page_size, include_total)
    attach_viewer_reactions(result.items, viewer_id)
    return result
