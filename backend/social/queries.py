"""
Read helpers shared by the timeline, trending and thread paths.

Visibility of a single post, the viewer's own reactions in one query, and
the anonymous/authenticated split. No caching here; see cache.py.
"""

from django.contrib.auth.models import AnonymousUser
from django.contrib.contenttypes.models import ContentType

from .errors import NotFoundError
from .models import Post, Reaction, Follow, TARGET_MODELS


def viewer_id_of(viewer) -> int | None:
    """Stable id of an authenticated principal, None for anonymous."""
    if viewer is None or isinstance(viewer, AnonymousUser):
        return None
    if not getattr(viewer, 'is_authenticated', False):
        return None
    return viewer.id


def is_following(follower_id: int | None, following_id: int) -> bool:
    if follower_id is None:
        return False
    return Follow.objects.filter(follower_id=follower_id, following_id=following_id).exists()


def can_view_post(viewer, post: Post) -> bool:
    """Visibility policy for a single post."""
    if post.visibility == Post.Visibility.PUBLIC:
        return True
    viewer_id = viewer_id_of(viewer)
    if viewer_id is None:
        return False
    if post.author_id == viewer_id:
        return True
    if post.visibility == Post.Visibility.PRIVATE:
        return False
    return is_following(viewer_id, post.author_id)


def get_visible_post(post_id: int, viewer) -> Post:
    """
    Fetch an active post the viewer may see.

    Invisible posts raise NotFoundError, same as missing ones, so the
    response doesn't leak that a private post exists.
    """
    post = (
        Post.objects
        .select_related('author', 'original_post', 'original_post__author')
        .filter(id=post_id, is_active=True)
        .first()
    )
    if post is None or not can_view_post(viewer, post):
        raise NotFoundError(f"Post {post_id} does not exist")
    return post


def get_user_reactions(user_id: int | None, target_kind: str, target_ids) -> dict[int, str]:
    """
    The viewer's own reaction kind per target, in ONE query.

    At most one entry per target because of the unique constraint.
    """
    target_ids = list(target_ids)
    if user_id is None or not target_ids:
        return {}
    content_type = ContentType.objects.get_for_model(TARGET_MODELS[target_kind])
    rows = Reaction.objects.filter(
        user_id=user_id,
        content_type=content_type,
        object_id__in=target_ids,
    ).values_list('object_id', 'kind')
    return dict(rows)


def attach_viewer_reactions(posts: list[Post], viewer_id: int | None) -> list[Post]:
    reactions = get_user_reactions(viewer_id, 'post', [p.id for p in posts])
    for post in posts:
        post.viewer_reaction = reactions.get(post.id)
    return posts
