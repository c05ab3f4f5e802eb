"""
Count & Score Maintainer
========================

Keeps the denormalized counters on Post/Comment equal to the live graph.

These used to be signal receivers. Signals are implicit and do NOT fire on
QuerySet.update() or bulk_create(), which is exactly how counters drift. Every
function here is called explicitly by services.py, inside the same
transaction.atomic() block as the write that triggered it: if the counter
update fails, the write is rolled back with it.

STRATEGY PER COUNTER:
---------------------
- comment_count / reply_count: atomic F() increment, clamped decrement
  (Greatest(F(x) - 1, 0)) so a counter can never go negative
- reaction_count / reaction_counts: RECOMPUTED from the reaction table on
  every reaction write. A kind switch (love -> like) touches two buckets;
  a fresh aggregate can't drift where per-bucket increments could.
- engagement_score: recomputed from the stored counters via scoring.py

Two deletes never pass through services.py: a User delete, whose database
cascade removes their rows directly, and an admin delete. signals.py and
admin.py recount the posts they touched once the rows are gone.
"""

import logging

from django.contrib.contenttypes.models import ContentType
from django.db.models import Count, F
from django.db.models.functions import Greatest

from .models import Post, Comment, Reaction
from .scoring import score_for_post

logger = logging.getLogger(__name__)


def refresh_engagement_score(post_id: int) -> float | None:
    """Recompute and store the engagement score of a post."""
    post = (
        Post.objects
        .select_for_update()
        .only('id', 'reaction_count', 'comment_count', 'share_count', 'view_count', 'created_at')
        .filter(id=post_id)
        .first()
    )
    if post is None:
        return None

    score = score_for_post(post)
    Post.objects.filter(id=post_id).update(engagement_score=score)
    return score


def on_post_created(post: Post) -> None:
    post.engagement_score = refresh_engagement_score(post.id) or 0.0


def on_comment_created(comment: Comment) -> None:
    """
    Exactly one increment per insert:
    - top-level comment -> post.comment_count + 1
    - reply             -> parent.reply_count + 1
    """
    if comment.parent_id is None:
        Post.objects.filter(id=comment.post_id).update(
            comment_count=F('comment_count') + 1
        )
        refresh_engagement_score(comment.post_id)
    else:
        Comment.objects.filter(id=comment.parent_id).update(
            reply_count=F('reply_count') + 1
        )


def on_comment_deleted(comment: Comment) -> None:
    """
    Mirror of on_comment_created, floored at zero.

    Replies removed by the cascade don't need their own decrement: their
    parents are being deleted in the same statement.
    """
    if comment.parent_id is None:
        Post.objects.filter(id=comment.post_id).update(
            comment_count=Greatest(F('comment_count') - 1, 0)
        )
        refresh_engagement_score(comment.post_id)
    else:
        Comment.objects.filter(id=comment.parent_id).update(
            reply_count=Greatest(F('reply_count') - 1, 0)
        )


def aggregate_reactions(model, target_id: int) -> dict[str, int]:
    """kind -> count over all live reactions on one target."""
    content_type = ContentType.objects.get_for_model(model)
    rows = (
        Reaction.objects
        .filter(content_type=content_type, object_id=target_id)
        .values('kind')
        .annotate(total=Count('id'))
        .order_by('kind')
    )
    return {row['kind']: row['total'] for row in rows}


def refresh_reaction_tally(model, target_id: int) -> dict[str, int] | None:
    """
    Recompute reaction_counts and reaction_count for a post or comment.

    The target row is locked first so two recomputations on the same target
    serialize; each one then aggregates from committed source rows instead
    of incrementing a value it read earlier.
    """
    locked = (
        model.objects
        .select_for_update()
        .filter(id=target_id)
        .values_list('id', flat=True)
        .first()
    )
    if locked is None:
        return None

    tally = aggregate_reactions(model, target_id)
    model.objects.filter(id=target_id).update(
        reaction_counts=tally,
        reaction_count=sum(tally.values()),
    )
    if model is Post:
        refresh_engagement_score(target_id)
    return tally


# ============================================================================
# RECONCILIATION
# ============================================================================

def _live_counters(post_id: int) -> dict:
    """Every counter of a post and its comments, straight from source rows."""
    comment_ct = ContentType.objects.get_for_model(Comment)
    comments = list(
        Comment.objects
        .filter(post_id=post_id)
        .annotate(live_replies=Count('replies'))
        .order_by('id')
    )
    comment_tallies: dict[int, dict[str, int]] = {}
    rows = (
        Reaction.objects
        .filter(content_type=comment_ct, object_id__in=[c.id for c in comments])
        .values('object_id', 'kind')
        .annotate(total=Count('id'))
        .order_by('object_id', 'kind')
    )
    for row in rows:
        comment_tallies.setdefault(row['object_id'], {})[row['kind']] = row['total']

    return {
        'comment_count': Comment.objects.filter(post_id=post_id, parent__isnull=True).count(),
        'share_count': Post.objects.filter(original_post_id=post_id).count(),
        'reaction_counts': aggregate_reactions(Post, post_id),
        'comments': comments,
        'comment_tallies': comment_tallies,
    }


def _write_live_counters(post_id: int, live: dict) -> None:
    Post.objects.filter(id=post_id).update(
        comment_count=live['comment_count'],
        share_count=live['share_count'],
        reaction_counts=live['reaction_counts'],
        reaction_count=sum(live['reaction_counts'].values()),
    )
    for comment in live['comments']:
        tally = live['comment_tallies'].get(comment.id, {})
        Comment.objects.filter(id=comment.id).update(
            reply_count=comment.live_replies,
            reaction_counts=tally,
            reaction_count=sum(tally.values()),
        )
    refresh_engagement_score(post_id)


def rebuild_post_counters(post_id: int, fix: bool = False) -> list[dict]:
    """
    Reconstruct every counter of a post and its comments from source rows.

    Returns one drift entry per cached value that disagrees with the live
    graph. With fix=True the cached values are overwritten and the score
    recomputed. Callers own the transaction.
    """
    post = Post.objects.filter(id=post_id).first()
    if post is None:
        return []

    drift = []

    def check(target, target_id, field, cached, actual):
        if cached != actual:
            drift.append({
                'target': target,
                'id': target_id,
                'field': field,
                'cached': cached,
                'actual': actual,
            })

    live = _live_counters(post_id)
    post_tally = live['reaction_counts']
    check('post', post_id, 'comment_count', post.comment_count, live['comment_count'])
    check('post', post_id, 'share_count', post.share_count, live['share_count'])
    check('post', post_id, 'reaction_counts', post.reaction_counts, post_tally)
    check('post', post_id, 'reaction_count', post.reaction_count, sum(post_tally.values()))

    for comment in live['comments']:
        tally = live['comment_tallies'].get(comment.id, {})
        check('comment', comment.id, 'reply_count', comment.reply_count, comment.live_replies)
        check('comment', comment.id, 'reaction_counts', comment.reaction_counts, tally)
        check('comment', comment.id, 'reaction_count', comment.reaction_count, sum(tally.values()))

    if fix and drift:
        _write_live_counters(post_id, live)
        logger.warning("Rebuilt counters for post %s (%d drifted values)", post_id, len(drift))

    return drift


# ============================================================================
# DELETES OUTSIDE services.py
# ============================================================================
# A User delete (signals.py) or an admin delete (admin.py) removes rows past
# every function above. The affected posts are collected before the delete
# and recounted from source rows after it.

def posts_touched_by_reactions(reactions) -> set[int]:
    """Posts whose tallies (own or on one of their comments) include these reactions."""
    post_ct = ContentType.objects.get_for_model(Post)
    comment_ct = ContentType.objects.get_for_model(Comment)

    touched = set(reactions.filter(content_type=post_ct).values_list('object_id', flat=True))
    comment_ids = reactions.filter(content_type=comment_ct).values('object_id')
    touched.update(Comment.objects.filter(id__in=comment_ids).values_list('post_id', flat=True))
    return touched


def posts_touched_by_user(user_id: int) -> set[int]:
    """
    Posts, not authored by user_id, whose counters include something the
    user contributed: a comment or reply, a reaction on the post or on one
    of its comments, or a share of it.
    """
    touched = set(Comment.objects.filter(author_id=user_id).values_list('post_id', flat=True))
    touched.update(posts_touched_by_reactions(Reaction.objects.filter(user_id=user_id)))
    touched.update(
        Post.objects
        .filter(author_id=user_id, original_post__isnull=False)
        .values_list('original_post_id', flat=True)
    )
    touched.difference_update(Post.objects.filter(author_id=user_id).values_list('id', flat=True))
    return touched


def recount_posts(post_ids) -> list[int]:
    """Overwrite the counters of each surviving post with live values."""
    recounted = []
    for post_id in sorted(post_ids):
        if not Post.objects.filter(id=post_id).exists():
            continue
        _write_live_counters(post_id, _live_counters(post_id))
        recounted.append(post_id)
    return recounted
