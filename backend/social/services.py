"""
Content Store: write operations
===============================

Every mutation of the content graph goes through this module:
1. Validate input BEFORE touching the database
2. Run the write and its counter maintenance in ONE transaction.atomic()
3. Schedule cache invalidation for after commit

CONCURRENCY STRATEGY:
---------------------
Problem: the same user reacting twice at the exact same moment
Naive: Check if exists -> Create if not -> RACE CONDITION!

Reactions are an upsert-or-replace, so the "already exists" branch is not
an error but an UPDATE of the kind:

    lock target row (serializes every reaction write on that target)
    existing = SELECT ... FOR UPDATE on (user, target)
    if existing: UPDATE kind
    else: INSERT inside a savepoint
          IntegrityError -> someone else inserted first -> UPDATE kind

The unique constraint (user, content_type, object_id) is what guarantees
one reaction per user per target; the locks only decide who goes first.
Follow edges use the plain pattern: INSERT and translate the
IntegrityError into a named conflict.

COUNTERS:
---------
Never touched here directly. Every write calls the matching counters.py
function inside the same transaction, so a counter failure rolls the
write back with it.
"""

import logging
from typing import Literal

from django.contrib.auth.models import User
from django.contrib.contenttypes.models import ContentType
from django.db import transaction, IntegrityError
from django.db.models import F
from django.db.models.functions import Greatest
from django.utils import timezone

from . import counters
from .cache import invalidate, post_scopes, thread_scopes, follow_scopes
from .errors import ValidationFailed, ConflictError, NotFoundError, AuthorizationError
from .models import (
    Post, Comment, CommentEdit, Reaction, Follow,
    POST_MAX_LENGTH, COMMENT_MAX_LENGTH, MAX_COMMENT_DEPTH,
    TARGET_MODELS, INTERACTION_WEIGHTS, FOLLOW_PREFERENCE_FIELDS,
)
from .normalizer import normalize_post_fields
from .queries import can_view_post, viewer_id_of

logger = logging.getLogger(__name__)

MAX_MEDIA_ITEMS = 10

POST_EDITABLE_FIELDS = ('content', 'kind', 'visibility', 'is_pinned', 'share_comment', 'media')


# ============================================================================
# VALIDATION
# ============================================================================

def _require_actor(user) -> int:
    actor_id = viewer_id_of(user)
    if actor_id is None:
        raise AuthorizationError("Authentication required")
    return actor_id


def _validate_text(field: str, value, max_length: int, required: bool) -> str:
    if value is None:
        value = ''
    if not isinstance(value, str):
        raise ValidationFailed(field, f"{field} must be a string")
    value = value.strip()
    if required and not value:
        raise ValidationFailed(field, f"{field} is required")
    if len(value) > max_length:
        raise ValidationFailed(field, f"{field} must be at most {max_length} characters")
    return value


def _validate_enum(field: str, value, allowed) -> str:
    if value not in allowed:
        raise ValidationFailed(
            field,
            f"Invalid {field} '{value}'. Expected one of: {', '.join(allowed)}"
        )
    return value


def _validate_media(media) -> list:
    """
    Media descriptors are opaque to this engine and stored verbatim.

    Only the envelope is checked: a list of objects, each with a url.
    """
    if media is None:
        return []
    if not isinstance(media, (list, tuple)):
        raise ValidationFailed('media', "media must be a list")
    if len(media) > MAX_MEDIA_ITEMS:
        raise ValidationFailed('media', f"At most {MAX_MEDIA_ITEMS} media items are allowed")
    for item in media:
        if not isinstance(item, dict) or not item.get('url'):
            raise ValidationFailed('media', "Each media item must be an object with a url")
    return list(media)


def _validate_preferences(prefs: dict) -> dict:
    for key, value in prefs.items():
        if key not in FOLLOW_PREFERENCE_FIELDS:
            raise ValidationFailed(key, f"Unknown follow preference '{key}'")
        if not isinstance(value, bool):
            raise ValidationFailed(key, f"{key} must be a boolean")
    return prefs


def _target_model(target_kind: str):
    _validate_enum('target_type', target_kind, TARGET_MODELS)
    return TARGET_MODELS[target_kind]


# ============================================================================
# POSTS
# ============================================================================

def create_post(
    author: User,
    content: str = '',
    kind: str = Post.Kind.STANDARD,
    visibility: str = Post.Visibility.FOLLOWERS,
    media=None,
    original_post_id: int | None = None,
    share_comment: str | None = None,
    is_pinned: bool = False,
) -> Post:
    """
    Create a post, or a share of another post when original_post_id is set.

    A share always has kind 'share' and bumps the original's share_count in
    the same transaction. Any other post needs text or media.
    """
    author_id = _require_actor(author)
    content = _validate_text('content', content, POST_MAX_LENGTH, required=False)
    share_comment = _validate_text('share_comment', share_comment, POST_MAX_LENGTH, required=False)
    kind = _validate_enum('kind', kind, Post.Kind.values)
    visibility = _validate_enum('visibility', visibility, Post.Visibility.values)
    media = _validate_media(media)

    if original_post_id is None:
        if kind == Post.Kind.SHARE:
            raise ValidationFailed('original_post_id', "A share must reference an original post")
        if not content and not media:
            raise ValidationFailed('content', "A post needs text or media")

    with transaction.atomic():
        original = None
        if original_post_id is not None:
            original = (
                Post.objects
                .select_for_update()
                .filter(id=original_post_id, is_active=True)
                .first()
            )
            if original is None or not can_view_post(author, original):
                raise NotFoundError(f"Post {original_post_id} does not exist")
            kind = Post.Kind.SHARE

        post = Post.objects.create(
            author_id=author_id,
            content=content,
            kind=kind,
            visibility=visibility,
            media=media,
            has_media=bool(media),
            original_post=original,
            share_comment=share_comment,
            is_pinned=bool(is_pinned),
            **normalize_post_fields(content),
        )
        counters.on_post_created(post)

        if original is not None:
            Post.objects.filter(id=original.id).update(share_count=F('share_count') + 1)
            counters.refresh_engagement_score(original.id)
            record_interaction(author, original.author_id, 'share')
            invalidate(*post_scopes(original))

        invalidate(*post_scopes(post))

    logger.info("Post %s created by user %s (kind=%s)", post.id, author_id, post.kind)
    return post


def share_post(
    user: User,
    post_id: int,
    share_comment: str | None = None,
    visibility: str = Post.Visibility.FOLLOWERS,
) -> Post:
    return create_post(
        user,
        visibility=visibility,
        original_post_id=post_id,
        share_comment=share_comment,
    )


def _lock_own_post(actor_id: int, post_id: int) -> Post:
    post = Post.objects.select_for_update().filter(id=post_id).first()
    if post is None:
        raise NotFoundError(f"Post {post_id} does not exist")
    if post.author_id != actor_id:
        raise AuthorizationError("You can only modify your own posts")
    return post


def update_post(actor: User, post_id: int, **changes) -> Post:
    """
    Edit a post the actor authored.

    A content change re-derives hashtags and keywords from the new text
    (the old sets are replaced, never merged) and marks the post edited.
    """
    actor_id = _require_actor(actor)
    for field in changes:
        if field not in POST_EDITABLE_FIELDS:
            raise ValidationFailed(field, f"{field} cannot be edited")

    if 'content' in changes:
        changes['content'] = _validate_text('content', changes['content'], POST_MAX_LENGTH, required=False)
    if 'share_comment' in changes:
        changes['share_comment'] = _validate_text(
            'share_comment', changes['share_comment'], POST_MAX_LENGTH, required=False
        )
    if 'kind' in changes:
        _validate_enum('kind', changes['kind'], Post.Kind.values)
    if 'visibility' in changes:
        _validate_enum('visibility', changes['visibility'], Post.Visibility.values)
    if 'media' in changes:
        changes['media'] = _validate_media(changes['media'])
    if 'is_pinned' in changes:
        changes['is_pinned'] = bool(changes['is_pinned'])

    with transaction.atomic():
        post = _lock_own_post(actor_id, post_id)

        new_kind = changes.get('kind', post.kind)
        # A share stays a share after its original is deleted (original_post is NULL)
        is_share = post.kind == Post.Kind.SHARE
        if (new_kind == Post.Kind.SHARE) != is_share:
            raise ValidationFailed('kind', "Only shares have kind 'share', and a share stays one")

        update_fields = ['updated_at']
        for field, value in changes.items():
            if getattr(post, field) != value:
                setattr(post, field, value)
                update_fields.append(field)

        if 'content' in update_fields:
            for field, value in normalize_post_fields(post.content).items():
                setattr(post, field, value)
                update_fields.append(field)
            post.is_edited = True
            update_fields.append('is_edited')
        if 'media' in update_fields:
            post.has_media = bool(post.media)
            update_fields.append('has_media')

        if not is_share and not post.content and not post.media:
            raise ValidationFailed('content', "A post needs text or media")

        post.save(update_fields=update_fields)
        invalidate(*post_scopes(post))

    logger.info("Post %s updated by user %s", post_id, actor_id)
    return post


def delete_post(actor: User, post_id: int) -> None:
    """
    Hard delete. Comments, replies and every reaction on them go with it
    (FK cascades plus the generic relations on Post/Comment).
    """
    actor_id = _require_actor(actor)
    with transaction.atomic():
        post = _lock_own_post(actor_id, post_id)
        original_id = post.original_post_id
        scopes = post_scopes(post)

        post.delete()

        if original_id is not None:
            Post.objects.filter(id=original_id).update(
                share_count=Greatest(F('share_count') - 1, 0)
            )
            counters.refresh_engagement_score(original_id)
            invalidate(f'post:{original_id}')

        invalidate(*scopes)

    logger.info("Post %s deleted by user %s", post_id, actor_id)


def record_view(post_id: int, viewer=None) -> int:
    """
    Count one view of a post. Returns the new view_count.

    Only the post's own cache scope is bumped; list views may show a stale
    view_count until their entries expire.
    """
    with transaction.atomic():
        updated = Post.objects.filter(id=post_id, is_active=True).update(
            view_count=F('view_count') + 1
        )
        if not updated:
            raise NotFoundError(f"Post {post_id} does not exist")
        counters.refresh_engagement_score(post_id)
        post = Post.objects.only('view_count', 'author_id').get(id=post_id)
        if viewer is not None:
            record_interaction(viewer, post.author_id, 'view')
        invalidate(*thread_scopes(post_id))
    return post.view_count


# ============================================================================
# COMMENTS
# ============================================================================

def create_comment(
    author: User,
    post_id: int,
    content: str,
    parent_id: int | None = None,
    media=None,
) -> Comment:
    """
    Add a top-level comment or a reply.

    ERRORS:
    - post or parent missing         -> NotFoundError
    - parent belongs to another post -> ConflictError('parent_mismatch')

    depth saturates at MAX_COMMENT_DEPTH; nesting itself is not limited.
    """
    author_id = _require_actor(author)
    content = _validate_text('content', content, COMMENT_MAX_LENGTH, required=True)
    media = _validate_media(media)

    with transaction.atomic():
        post = Post.objects.filter(id=post_id, is_active=True).first()
        if post is None or not can_view_post(author, post):
            raise NotFoundError(f"Post {post_id} does not exist")

        depth = 0
        if parent_id is not None:
            parent = Comment.objects.filter(id=parent_id, is_active=True).first()
            if parent is None:
                raise NotFoundError(f"Parent comment {parent_id} does not exist")
            if parent.post_id != post.id:
                raise ConflictError(
                    'parent_mismatch',
                    f"Parent comment {parent_id} belongs to a different post"
                )
            depth = min(parent.depth + 1, MAX_COMMENT_DEPTH)

        comment = Comment.objects.create(
            post=post,
            author_id=author_id,
            parent_id=parent_id,
            content=content,
            depth=depth,
            media=media,
            has_media=bool(media),
        )
        counters.on_comment_created(comment)
        record_interaction(author, post.author_id, 'comment')

        if parent_id is None:
            invalidate(*post_scopes(post))
        else:
            invalidate(*thread_scopes(post.id))

    logger.info("Comment %s created on post %s by user %s", comment.id, post_id, author_id)
    return comment


def update_comment(actor: User, comment_id: int, content: str) -> Comment:
    """Edit a comment; the previous text is kept in CommentEdit."""
    actor_id = _require_actor(actor)
    content = _validate_text('content', content, COMMENT_MAX_LENGTH, required=True)

    with transaction.atomic():
        comment = Comment.objects.select_for_update().filter(id=comment_id, is_active=True).first()
        if comment is None:
            raise NotFoundError(f"Comment {comment_id} does not exist")
        if comment.author_id != actor_id:
            raise AuthorizationError("You can only edit your own comments")
        if comment.content == content:
            return comment

        CommentEdit.objects.create(comment=comment, content=comment.content)
        comment.content = content
        comment.is_edited = True
        comment.save(update_fields=['content', 'is_edited', 'updated_at'])
        invalidate(*thread_scopes(comment.post_id))

    return comment


def delete_comment(actor: User, comment_id: int) -> None:
    """
    Hard delete by the comment's author or the post's author.

    Replies cascade. Only the deleted comment's own counter contribution is
    reversed: cascaded replies were counted on parents that are going away
    in the same statement.
    """
    actor_id = _require_actor(actor)
    with transaction.atomic():
        comment = (
            Comment.objects
            .select_for_update()
            .filter(id=comment_id)
            .first()
        )
        if comment is None:
            raise NotFoundError(f"Comment {comment_id} does not exist")
        post_author_id = Post.objects.filter(id=comment.post_id).values_list('author_id', flat=True).first()
        if actor_id not in (comment.author_id, post_author_id):
            raise AuthorizationError("You can only delete your own comments or comments on your posts")

        comment.delete()
        counters.on_comment_deleted(comment)

        if comment.parent_id is None:
            invalidate('posts', f'post:{comment.post_id}', f'author:{post_author_id}')
        else:
            invalidate(*thread_scopes(comment.post_id))

    logger.info("Comment %s deleted by user %s", comment_id, actor_id)


def set_comment_hidden(actor: User, comment_id: int, hidden: bool = True) -> Comment:
    """
    Hide a comment on the actor's own post.

    Hidden comments stay stored and counted; thread reads skip them for
    everyone except their author and the post author.
    """
    actor_id = _require_actor(actor)
    with transaction.atomic():
        comment = (
            Comment.objects
            .select_for_update()
            .filter(id=comment_id, is_active=True)
            .first()
        )
        if comment is None:
            raise NotFoundError(f"Comment {comment_id} does not exist")
        post_author_id = Post.objects.filter(id=comment.post_id).values_list('author_id', flat=True).first()
        if post_author_id != actor_id:
            raise AuthorizationError("Only the post author can hide comments")

        if comment.is_hidden != hidden:
            comment.is_hidden = hidden
            comment.save(update_fields=['is_hidden', 'updated_at'])
            invalidate(*thread_scopes(comment.post_id))

    return comment


# ============================================================================
# REACTIONS
# ============================================================================

class ReactionResult:
    """
    Result of a react/unreact call, with the target's fresh tally.

    Failures raise, so success is always True; an idempotent repeat
    (unchanged, already_removed) reports changed=False.
    """
    def __init__(
        self,
        action: Literal['created', 'replaced', 'unchanged', 'removed', 'already_removed'],
        kind: str | None = None,
        reaction_counts: dict | None = None,
    ):
        self.action = action
        self.kind = kind
        self.reaction_counts = reaction_counts or {}
        self.reaction_count = sum(self.reaction_counts.values())
        self.success = True
        self.changed = action in ('created', 'replaced', 'removed')

    def as_dict(self) -> dict:
        return {
            'success': self.success,
            'changed': self.changed,
            'action': self.action,
            'kind': self.kind,
            'reaction_count': self.reaction_count,
            'reaction_counts': self.reaction_counts,
        }


def _lock_reactable(user: User, model, target_id: int):
    """Lock an active, visible target row; NotFoundError otherwise."""
    target = model.objects.select_for_update().filter(id=target_id, is_active=True).first()
    if target is None:
        raise NotFoundError(f"{model.__name__} {target_id} does not exist")
    post = target if model is Post else Post.objects.filter(id=target.post_id, is_active=True).first()
    if post is None or not can_view_post(user, post):
        raise NotFoundError(f"{model.__name__} {target_id} does not exist")
    return target, post


def react(user: User, target_kind: str, target_id: int, reaction_kind: str) -> ReactionResult:
    """
    Set the user's reaction on a post or comment (upsert-or-replace).

    like -> love on the same target leaves ONE reaction row, reaction_count
    unchanged and the tally moved from 'like' to 'love'.
    """
    actor_id = _require_actor(user)
    model = _target_model(target_kind)
    _validate_enum('reaction_type', reaction_kind, Reaction.Kind.values)
    content_type = ContentType.objects.get_for_model(model)

    with transaction.atomic():
        target, post = _lock_reactable(user, model, target_id)
        lookup = {'user_id': actor_id, 'content_type': content_type, 'object_id': target_id}

        existing = Reaction.objects.select_for_update().filter(**lookup).first()
        if existing is not None:
            if existing.kind == reaction_kind:
                return ReactionResult('unchanged', reaction_kind, target.reaction_counts)
            existing.kind = reaction_kind
            existing.save(update_fields=['kind', 'updated_at'])
            action = 'replaced'
        else:
            try:
                with transaction.atomic():
                    Reaction.objects.create(kind=reaction_kind, **lookup)
                action = 'created'
            except IntegrityError:
                # Lost the insert race to a concurrent request from this user
                Reaction.objects.filter(**lookup).update(kind=reaction_kind, updated_at=timezone.now())
                action = 'replaced'

        tally = counters.refresh_reaction_tally(model, target_id)
        if action == 'created':
            record_interaction(user, target.author_id, 'like')

        if model is Post:
            invalidate(*post_scopes(post))
        else:
            invalidate(*thread_scopes(post.id))

    return ReactionResult(action, reaction_kind, tally)


def unreact(user: User, target_kind: str, target_id: int) -> ReactionResult:
    """Remove the user's reaction, if any. Removing nothing is not an error."""
    actor_id = _require_actor(user)
    model = _target_model(target_kind)
    content_type = ContentType.objects.get_for_model(model)

    with transaction.atomic():
        target = model.objects.select_for_update().filter(id=target_id).first()
        if target is None:
            return ReactionResult('already_removed')

        deleted_count, _ = Reaction.objects.filter(
            user_id=actor_id,
            content_type=content_type,
            object_id=target_id,
        ).delete()
        if not deleted_count:
            return ReactionResult('already_removed', reaction_counts=target.reaction_counts)

        tally = counters.refresh_reaction_tally(model, target_id)
        post_id = target.id if model is Post else target.post_id
        if model is Post:
            invalidate(*post_scopes(target))
        else:
            invalidate(*thread_scopes(post_id))

    return ReactionResult('removed', reaction_counts=tally)


# ============================================================================
# FOLLOW GRAPH
# ============================================================================

def follow(follower: User, following_id: int, **prefs) -> Follow:
    follower_id = _require_actor(follower)
    if follower_id == following_id:
        raise ValidationFailed('following_id', "Users cannot follow themselves")
    prefs = _validate_preferences(prefs)
    if not User.objects.filter(id=following_id, is_active=True).exists():
        raise NotFoundError(f"User {following_id} does not exist")

    try:
        with transaction.atomic():
            edge = Follow.objects.create(
                follower_id=follower_id,
                following_id=following_id,
                **prefs,
            )
    except IntegrityError:
        raise ConflictError('duplicate_follow', f"Already following user {following_id}")

    invalidate(*follow_scopes(follower_id, following_id))
    logger.info("User %s followed user %s", follower_id, following_id)
    return edge


def unfollow(follower: User, following_id: int) -> None:
    follower_id = _require_actor(follower)
    with transaction.atomic():
        deleted_count, _ = Follow.objects.filter(
            follower_id=follower_id,
            following_id=following_id,
        ).delete()
        if not deleted_count:
            raise NotFoundError(f"Not following user {following_id}")
        invalidate(*follow_scopes(follower_id, following_id))
    logger.info("User %s unfollowed user %s", follower_id, following_id)


def update_follow_preferences(follower: User, following_id: int, **prefs) -> Follow:
    follower_id = _require_actor(follower)
    prefs = _validate_preferences(prefs)
    with transaction.atomic():
        edge = (
            Follow.objects
            .select_for_update()
            .filter(follower_id=follower_id, following_id=following_id)
            .first()
        )
        if edge is None:
            raise NotFoundError(f"Not following user {following_id}")
        for field, value in prefs.items():
            setattr(edge, field, value)
        if prefs:
            edge.save(update_fields=list(prefs))
    return edge


def record_interaction(user, author_id: int, interaction: str) -> bool:
    """
    Strengthen the user -> author follow edge after an interaction.

    Bumps engagement_score by weight * 0.1. Returns False (and writes
    nothing) when the user doesn't follow the author, is anonymous, or is
    the author.
    """
    weight = INTERACTION_WEIGHTS.get(interaction)
    if weight is None:
        raise ValidationFailed('interaction', f"Unknown interaction '{interaction}'")
    user_id = viewer_id_of(user)
    if user_id is None or user_id == author_id:
        return False
    updated = Follow.objects.filter(follower_id=user_id, following_id=author_id).update(
        engagement_score=F('engagement_score') + weight * 0.1,
        last_interaction=timezone.now(),
    )
    return bool(updated)
