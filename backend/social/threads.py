"""
Thread Assembler
================

THE N+1 PROBLEM, AGAIN:
-----------------------
A thread page is N top-level comments, each with up to K reply previews,
each needing its author and the viewer's own reaction. Naively that is
1 + N (replies) + N*K (authors) + N*K (reactions) queries.

OUR APPROACH:
-------------
1. One query for the page of top-level comments (author via JOIN)
2. One query for ALL reply previews of that page, ranked per parent with
   ROW_NUMBER() OVER (PARTITION BY parent_id ...) and cut at K
3. One query for the viewer's reactions on every comment on screen
4. Assemble nodes in Python

Total: 3-4 queries per page regardless of N and K.

DEPTH:
------
Storage allows arbitrary nesting. The default view flattens ONE level of
replies. expand_thread walks further on demand, one query per level, and
stops at an explicit max depth and node budget, so an adversarial
1000-deep reply chain costs the same as a 10-deep one.
"""

from django.db.models import F, Q, Window
from django.db.models.functions import RowNumber

from .errors import NotFoundError
from .models import Post, Comment, CommentEdit
from .pagination import paginate, validate_page, validate_choice, validate_int
from .queries import get_visible_post, get_user_reactions, viewer_id_of

DEFAULT_REPLY_LIMIT = 3
MAX_REPLY_LIMIT = 20
DEFAULT_EXPAND_DEPTH = 3
MAX_EXPAND_DEPTH = 10
# Hard cap on comments loaded by one expand_thread call
MAX_EXPAND_NODES = 500

COMMENT_SORTS = {
    'newest': ('-created_at', '-id'),
    'oldest': ('created_at', 'id'),
    'popular': ('-reaction_count', '-created_at', '-id'),
}


def _order_expressions(fields):
    expressions = []
    for field in fields:
        if field.startswith('-'):
            expressions.append(F(field[1:]).desc())
        else:
            expressions.append(F(field).asc())
    return expressions


def _visible_comments_filter(viewer_id: int | None, post: Post) -> Q:
    """
    Hidden comments are shown only to their author and the post's author.
    """
    if viewer_id is not None and viewer_id == post.author_id:
        return Q()
    if viewer_id is None:
        return Q(is_hidden=False)
    return Q(is_hidden=False) | Q(author_id=viewer_id)


def fetch_reply_previews(parent_ids, sort: str, limit: int, visible: Q) -> list[Comment]:
    """
    Top `limit` direct replies for each parent, in ONE query.

    ROW_NUMBER() partitions by parent so each thread gets its own cut; the
    outer filter on the window annotation needs Django >= 4.2.
    """
    parent_ids = list(parent_ids)
    if not parent_ids or limit <= 0:
        return []
    return list(
        Comment.objects
        .filter(parent_id__in=parent_ids, is_active=True)
        .filter(visible)
        .select_related('author')
        .annotate(
            reply_rank=Window(
                expression=RowNumber(),
                partition_by=[F('parent_id')],
                order_by=_order_expressions(COMMENT_SORTS[sort]),
            )
        )
        .filter(reply_rank__lte=limit)
        .order_by('parent_id', 'reply_rank')
    )


def _make_node(comment: Comment, reactions: dict[int, str]) -> dict:
    return {
        'comment': comment,
        'viewer_reaction': reactions.get(comment.id),
        'replies': [],
        'has_more_replies': False,
    }


def build_comment_tree(flat_comments: list[Comment], reactions: dict[int, str] | None = None) -> list[dict]:
    """
    Build nested tree structure from a flat list.

    Algorithm: O(n), arena of nodes keyed by id
    1. First pass: create lookup dict {id -> node}
    2. Second pass: attach each node to its parent, or to the roots if its
       parent is not part of this list (the list is a bounded slice of the
       thread, so a missing parent means "above the slice")

    has_more_replies is set when a comment's live reply_count exceeds the
    replies present in the slice.
    """
    reactions = reactions or {}
    nodes = {}
    for comment in flat_comments:
        nodes[comment.id] = _make_node(comment, reactions)

    root_nodes = []
    for comment in flat_comments:
        node = nodes[comment.id]
        parent_node = nodes.get(comment.parent_id) if comment.parent_id is not None else None
        if parent_node is None:
            root_nodes.append(node)
        else:
            parent_node['replies'].append(node)

    for node in nodes.values():
        node['has_more_replies'] = node['comment'].reply_count > len(node['replies'])

    return root_nodes


def get_thread(
    post_id: int,
    viewer=None,
    author_id: int | None = None,
    created_after=None,
    created_before=None,
    search: str | None = None,
    sort: str = 'newest',
    page: int = 1,
    page_size: int | None = None,
    reply_limit: int = DEFAULT_REPLY_LIMIT,
    include_total: bool | None = None,
):
    """
    Page of top-level comments for a post, each with reply previews.

    QUERIES: post (1) + top-level page (1) + COUNT on page 1 (1)
             + reply previews (1) + viewer reactions (0-1)
    """
    sort = validate_choice('sort', sort, COMMENT_SORTS)
    page, page_size = validate_page(page, page_size)
    reply_limit = validate_int('reply_limit', reply_limit, 0, MAX_REPLY_LIMIT)

    post = get_visible_post(post_id, viewer)
    viewer_id = viewer_id_of(viewer)
    visible = _visible_comments_filter(viewer_id, post)

    queryset = (
        Comment.objects
        .filter(post_id=post.id, parent__isnull=True, is_active=True)
        .filter(visible)
        .select_related('author')
    )
    if author_id is not None:
        queryset = queryset.filter(author_id=author_id)
    if created_after is not None:
        queryset = queryset.filter(created_at__gte=created_after)
    if created_before is not None:
        queryset = queryset.filter(created_at__lte=created_before)
    if search:
        queryset = queryset.filter(content__icontains=search)

    result = paginate(queryset.order_by(*COMMENT_SORTS[sort]), page, page_size, include_total)

    top_level = result.items
    replies = fetch_reply_previews([c.id for c in top_level], sort, reply_limit, visible)
    reactions = get_user_reactions(viewer_id, 'comment', [c.id for c in top_level + replies])

    # top_level first so every reply finds its parent in the arena
    result.items = build_comment_tree(top_level + replies, reactions)
    return result


def _get_visible_comment(comment_id: int, viewer) -> tuple[Comment, Q]:
    """The comment plus the visibility filter for its post; NotFoundError if unseen."""
    comment = (
        Comment.objects
        .select_related('author')
        .filter(id=comment_id, is_active=True)
        .first()
    )
    if comment is None:
        raise NotFoundError(f"Comment {comment_id} does not exist")

    post = get_visible_post(comment.post_id, viewer)
    visible = _visible_comments_filter(viewer_id_of(viewer), post)
    if not Comment.objects.filter(id=comment.id).filter(visible).exists():
        raise NotFoundError(f"Comment {comment_id} does not exist")
    return comment, visible


def expand_thread(
    comment_id: int,
    viewer=None,
    max_depth: int = DEFAULT_EXPAND_DEPTH,
    sort: str = 'oldest',
    reply_limit: int = MAX_REPLY_LIMIT,
) -> dict:
    """
    Walk the replies below one comment, breadth-first, one query per level.

    Bounded three ways: max_depth levels (capped at MAX_EXPAND_DEPTH),
    reply_limit children per parent per level, and MAX_EXPAND_NODES in total.
    Nodes cut off by any bound report has_more_replies.
    """
    sort = validate_choice('sort', sort, COMMENT_SORTS)
    max_depth = validate_int('max_depth', max_depth, 1, MAX_EXPAND_DEPTH)
    reply_limit = validate_int('reply_limit', reply_limit, 1, MAX_REPLY_LIMIT)

    root, visible = _get_visible_comment(comment_id, viewer)
    viewer_id = viewer_id_of(viewer)

    flat = [root]
    frontier = [root.id]
    depth = 0
    while frontier and depth < max_depth and len(flat) < MAX_EXPAND_NODES:
        children = fetch_reply_previews(frontier, sort, reply_limit, visible)
        children = children[:MAX_EXPAND_NODES - len(flat)]
        flat.extend(children)
        frontier = [child.id for child in children]
        depth += 1

    reactions = get_user_reactions(viewer_id, 'comment', [c.id for c in flat])
    # root's parent is never in flat, so root is always the first tree node
    return build_comment_tree(flat, reactions)[0]


def get_comment_history(
    comment_id: int,
    viewer=None,
    page: int = 1,
    page_size: int | None = None,
    include_total: bool | None = None,
):
    """Superseded versions of a comment, most recent edit first."""
    page, page_size = validate_page(page, page_size)
    comment, _ = _get_visible_comment(comment_id, viewer)
    queryset = CommentEdit.objects.filter(comment_id=comment.id).order_by('-edited_at', '-id')
    return paginate(queryset, page, page_size, include_total)
