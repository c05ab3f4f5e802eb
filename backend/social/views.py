"""
DRF Views
=========

Thin HTTP layer over services.py (writes) and the read modules
(timeline, trending, threads, graph).

Each view:
1. Parses input with a serializer from serializers.py
2. Calls ONE service/read function with typed values
3. Serializes the result

Domain errors are NOT caught here; social.exceptions.custom_exception_handler
turns them into {"error": kind, "message": ...} responses.

AUTHENTICATION NOTE:
--------------------
Session authentication for the prototype; the engine only ever reads
request.user. mock-login exists for local development.

CACHING:
--------
Timeline, trending, user-posts and thread GETs go through cache.cached_read.
The viewer id is part of every key because viewer_reaction and visibility
differ per viewer.
"""

from django.contrib.auth import login
from django.contrib.auth.models import User
from rest_framework import status, permissions
from rest_framework.response import Response
from rest_framework.views import APIView

from . import services
from .cache import cached_read
from .graph import (
    get_followers,
    get_following,
    get_follow_status,
    get_follow_stats,
    get_suggested_users,
)
from .queries import attach_viewer_reactions, get_visible_post, viewer_id_of
from .serializers import (
    PostSerializer,
    CommentSerializer,
    CommentTreeSerializer,
    CommentEditSerializer,
    FollowSerializer,
    FollowStatusSerializer,
    FollowStatsSerializer,
    SuggestionSerializer,
    PostCreateSerializer,
    PostUpdateSerializer,
    ShareSerializer,
    CommentCreateSerializer,
    CommentUpdateSerializer,
    ReactionSerializer,
    FollowPreferencesSerializer,
    PageQuerySerializer,
    TimelineQuerySerializer,
    TrendingQuerySerializer,
    ThreadQuerySerializer,
    ExpandQuerySerializer,
    FollowListQuerySerializer,
    SuggestionQuerySerializer,
)
from .threads import get_thread, expand_thread, get_comment_history
from .timeline import get_timeline, get_user_posts
from .trending import get_trending, validate_window


def _query(serializer_class, request) -> dict:
    serializer = serializer_class(data=request.query_params.dict())
    serializer.is_valid(raise_exception=True)
    return dict(serializer.validated_data)


def _body(serializer_class, request) -> dict:
    serializer = serializer_class(data=request.data)
    serializer.is_valid(raise_exception=True)
    return dict(serializer.validated_data)


def _page_payload(page, data) -> dict:
    payload = page.as_meta()
    payload['results'] = data
    return payload


def _viewer_scope(request) -> str:
    return f'viewer:{viewer_id_of(request.user) or "anon"}'


# ============================================================================
# FEEDS
# ============================================================================

class TimelineView(APIView):
    """
    GET /api/feed/

    Query: sort, kind, has_media, author_id, search, hashtags (comma
           separated, any match), window_hours, page, page_size, include_total
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        params = _query(TimelineQuerySerializer, request)

        def load():
            page = get_timeline(viewer=request.user, **params)
            return _page_payload(page, PostSerializer(page.items, many=True).data)

        key_params = dict(params, viewer=viewer_id_of(request.user))
        return Response(cached_read('timeline', ['posts', _viewer_scope(request)], key_params, load))


class TrendingView(APIView):
    """
    GET /api/trending/

    Public posts from the last window_hours (default 24), by engagement score.
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        params = _query(TrendingQuerySerializer, request)

        def load():
            page = get_trending(viewer=request.user, **params)
            payload = _page_payload(page, PostSerializer(page.items, many=True).data)
            payload['window_hours'] = validate_window(params.get('window_hours'))
            return payload

        key_params = dict(params, viewer=viewer_id_of(request.user))
        return Response(cached_read('trending', ['posts', _viewer_scope(request)], key_params, load))


class UserPostsView(APIView):
    """
    GET /api/users/<user_id>/posts/

    Profile feed; private posts only for the owner.
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request, user_id):
        params = _query(TimelineQuerySerializer, request)
        params.pop('author_id', None)

        def load():
            page = get_user_posts(user_id, viewer=request.user, **params)
            return _page_payload(page, PostSerializer(page.items, many=True).data)

        scopes = ['posts', f'author:{user_id}', _viewer_scope(request)]
        key_params = dict(params, author=user_id, viewer=viewer_id_of(request.user))
        return Response(cached_read('user_posts', scopes, key_params, load))


# ============================================================================
# POSTS
# ============================================================================

class PostCreateView(APIView):
    """
    POST /api/posts/

    Body: { "content", "kind", "visibility", "media": [...], "is_pinned",
            "original_post_id", "share_comment" }
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        data = _body(PostCreateSerializer, request)
        post = services.create_post(request.user, **data)
        post = get_visible_post(post.id, request.user)
        return Response(PostSerializer(post).data, status=status.HTTP_201_CREATED)


class PostDetailView(APIView):
    """
    GET    /api/posts/<post_id>/   counts one view
    PATCH  /api/posts/<post_id>/   author only
    DELETE /api/posts/<post_id>/   author only, cascades
    """
    permission_classes = [permissions.IsAuthenticatedOrReadOnly]

    def get(self, request, post_id):
        post = get_visible_post(post_id, request.user)
        post.view_count = services.record_view(post.id, request.user)
        attach_viewer_reactions([post], viewer_id_of(request.user))
        return Response(PostSerializer(post).data)

    def patch(self, request, post_id):
        changes = _body(PostUpdateSerializer, request)
        services.update_post(request.user, post_id, **changes)
        post = get_visible_post(post_id, request.user)
        return Response(PostSerializer(post).data)

    def delete(self, request, post_id):
        services.delete_post(request.user, post_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class PostShareView(APIView):
    """
    POST /api/posts/<post_id>/share/

    Body: { "share_comment": "...", "visibility": "public" }
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, post_id):
        data = _body(ShareSerializer, request)
        share = services.share_post(request.user, post_id, **data)
        share = get_visible_post(share.id, request.user)
        return Response(PostSerializer(share).data, status=status.HTTP_201_CREATED)


# ============================================================================
# COMMENTS
# ============================================================================

class ThreadView(APIView):
    """
    GET  /api/posts/<post_id>/comments/   top-level page + reply previews
    POST /api/posts/<post_id>/comments/   { "content", "parent"?, "media"? }
    """
    permission_classes = [permissions.IsAuthenticatedOrReadOnly]

    def get(self, request, post_id):
        params = _query(ThreadQuerySerializer, request)

        def load():
            page = get_thread(post_id, viewer=request.user, **params)
            return _page_payload(page, CommentTreeSerializer(page.items, many=True).data)

        scopes = [f'post:{post_id}', _viewer_scope(request)]
        key_params = dict(params, post=post_id, viewer=viewer_id_of(request.user))
        return Response(cached_read('thread', scopes, key_params, load))

    def post(self, request, post_id):
        data = _body(CommentCreateSerializer, request)
        comment = services.create_comment(
            request.user,
            post_id,
            data['content'],
            parent_id=data.get('parent'),
            media=data.get('media'),
        )
        return Response(CommentSerializer(comment).data, status=status.HTTP_201_CREATED)


class CommentDetailView(APIView):
    """
    PATCH  /api/comments/<comment_id>/   author only, keeps edit history
    DELETE /api/comments/<comment_id>/   comment author or post author
    """
    permission_classes = [permissions.IsAuthenticated]

    def patch(self, request, comment_id):
        data = _body(CommentUpdateSerializer, request)
        comment = services.update_comment(request.user, comment_id, data['content'])
        return Response(CommentSerializer(comment).data)

    def delete(self, request, comment_id):
        services.delete_comment(request.user, comment_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class CommentHideView(APIView):
    """
    POST   /api/comments/<comment_id>/hide/   hide (post author only)
    DELETE /api/comments/<comment_id>/hide/   unhide
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, comment_id):
        comment = services.set_comment_hidden(request.user, comment_id, hidden=True)
        return Response(CommentSerializer(comment).data)

    def delete(self, request, comment_id):
        comment = services.set_comment_hidden(request.user, comment_id, hidden=False)
        return Response(CommentSerializer(comment).data)


class CommentExpandView(APIView):
    """
    GET /api/comments/<comment_id>/thread/?max_depth=3

    Deeper replies below one comment, bounded by max_depth (<= 10).
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request, comment_id):
        params = _query(ExpandQuerySerializer, request)
        node = expand_thread(comment_id, viewer=request.user, **params)
        return Response(CommentTreeSerializer(node).data)


class CommentHistoryView(APIView):
    """
    GET /api/comments/<comment_id>/history/

    Previous versions of an edited comment, newest first.
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request, comment_id):
        params = _query(PageQuerySerializer, request)
        page = get_comment_history(comment_id, viewer=request.user, **params)
        return Response(_page_payload(page, CommentEditSerializer(page.items, many=True).data))


# ============================================================================
# REACTIONS
# ============================================================================

class ReactionView(APIView):
    """
    POST   .../reactions/   { "reaction_type": "love" }  set or replace
    DELETE .../reactions/   remove, no-op when absent

    Returns:
    {
        "success": true,
        "changed": true,          false for unchanged / already_removed
        "action": "created" | "replaced" | "unchanged" | "removed" | "already_removed",
        "kind": "love",
        "reaction_count": 3,
        "reaction_counts": {"like": 2, "love": 1}
    }
    """
    permission_classes = [permissions.IsAuthenticated]
    target_kind = None

    def post(self, request, target_id):
        data = _body(ReactionSerializer, request)
        result = services.react(request.user, self.target_kind, target_id, data['reaction_type'])
        return Response(result.as_dict())

    def delete(self, request, target_id):
        result = services.unreact(request.user, self.target_kind, target_id)
        return Response(result.as_dict())


class PostReactionView(ReactionView):
    target_kind = 'post'


class CommentReactionView(ReactionView):
    target_kind = 'comment'


# ============================================================================
# FOLLOW GRAPH
# ============================================================================

class FollowView(APIView):
    """
    GET    /api/users/<user_id>/follow/   does the viewer follow them
    POST   /api/users/<user_id>/follow/   follow, optional notify prefs
    PATCH  /api/users/<user_id>/follow/   change notify prefs
    DELETE /api/users/<user_id>/follow/   unfollow
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, user_id):
        edge = get_follow_status(request.user, user_id)
        return Response(FollowStatusSerializer({'is_following': edge is not None, 'follow': edge}).data)

    def post(self, request, user_id):
        prefs = _body(FollowPreferencesSerializer, request)
        edge = services.follow(request.user, user_id, **prefs)
        return Response(FollowSerializer(edge).data, status=status.HTTP_201_CREATED)

    def patch(self, request, user_id):
        prefs = _body(FollowPreferencesSerializer, request)
        edge = services.update_follow_preferences(request.user, user_id, **prefs)
        return Response(FollowSerializer(edge).data)

    def delete(self, request, user_id):
        services.unfollow(request.user, user_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class FollowersView(APIView):
    """GET /api/users/<user_id>/followers/?sort=newest|engagement"""
    permission_classes = [permissions.AllowAny]

    def get(self, request, user_id):
        params = _query(FollowListQuerySerializer, request)
        page = get_followers(user_id, **params)
        return Response(_page_payload(page, FollowSerializer(page.items, many=True).data))


class FollowingView(APIView):
    """GET /api/users/<user_id>/following/?sort=newest|engagement"""
    permission_classes = [permissions.AllowAny]

    def get(self, request, user_id):
        params = _query(FollowListQuerySerializer, request)
        page = get_following(user_id, **params)
        return Response(_page_payload(page, FollowSerializer(page.items, many=True).data))


class FollowStatsView(APIView):
    """
    GET /api/users/<user_id>/follow-stats/

    Returns: { "follower_count", "following_count", "is_following", "is_followed_by" }
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request, user_id):
        stats = get_follow_stats(user_id, viewer=request.user)
        return Response(FollowStatsSerializer(stats).data)


class SuggestedUsersView(APIView):
    """
    GET /api/users/suggested/?limit=10

    Who to follow: people followed by the viewer's network first, then
    popular accounts. Anonymous viewers get popular accounts only.
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        params = _query(SuggestionQuerySerializer, request)
        suggestions = get_suggested_users(viewer=request.user, **params)
        return Response({'results': SuggestionSerializer(suggestions, many=True).data})


# ============================================================================
# DEVELOPMENT/TESTING HELPERS
# ============================================================================

class MockAuthView(APIView):
    """
    POST /api/auth/mock-login/

    DEVELOPMENT ONLY: Quick login for testing without full auth flow.
    Creates user if doesn't exist.

    Body: { "username": "testuser" }
    """
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        username = request.data.get('username', 'testuser')
        user, created = User.objects.get_or_create(
            username=username,
            defaults={'email': f'{username}@example.com'}
        )
        login(request, user)

        return Response({
            'user_id': user.id,
            'username': user.username,
            'created': created
        })


class WhoAmIView(APIView):
    """
    GET /api/auth/whoami/

    Returns current authenticated user info.
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        if request.user.is_authenticated:
            return Response({
                'authenticated': True,
                'user_id': request.user.id,
                'username': request.user.username
            })
        return Response({
            'authenticated': False,
            'user_id': None,
            'username': None
        })
