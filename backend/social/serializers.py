"""
DRF Serializers
===============

Two kinds live here:
1. Output serializers: model instances / pre-built tree nodes -> JSON
2. Input serializers: request body and query string -> typed values

DESIGN DECISIONS:
-----------------
1. Input serializers only PARSE (types, presence). Business rules (lengths,
   enums, ownership, parent/post consistency) are enforced by services.py
   and the read modules, so the API and direct callers get identical errors.
2. Comment trees are built before serialization (threads.py); the
   recursive serializer only walks the nodes, it never queries.
3. viewer_reaction is attached to instances by the read path in one query,
   never looked up per row here.
"""

from django.contrib.auth.models import User
from rest_framework import serializers

from .models import Post, Comment, CommentEdit, Follow


class UserSerializer(serializers.ModelSerializer):
    """Minimal user representation for embedding in other objects."""

    class Meta:
        model = User
        fields = ['id', 'username']
        read_only_fields = fields


# ============================================================================
# OUTPUT
# ============================================================================

class OriginalPostSerializer(serializers.ModelSerializer):
    """The shared post, embedded in a share without its own counters."""
    author = UserSerializer(read_only=True)

    class Meta:
        model = Post
        fields = ['id', 'author', 'content', 'kind', 'media', 'created_at']
        read_only_fields = fields


class PostSerializer(serializers.ModelSerializer):
    """
    Post as returned by every read path.

    Expects select_related('author', 'original_post__author') from the view.
    """
    author = UserSerializer(read_only=True)
    original_post = OriginalPostSerializer(read_only=True)
    viewer_reaction = serializers.SerializerMethodField()

    class Meta:
        model = Post
        fields = [
            'id',
            'author',
            'content',
            'kind',
            'visibility',
            'media',
            'has_media',
            'hashtags',
            'keywords',
            'view_count',
            'share_count',
            'comment_count',
            'reaction_count',
            'reaction_counts',
            'engagement_score',
            'is_pinned',
            'is_edited',
            'original_post',
            'share_comment',
            'viewer_reaction',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_viewer_reaction(self, obj):
        return getattr(obj, 'viewer_reaction', None)


class CommentSerializer(serializers.ModelSerializer):
    """
    Serializer for individual comments.

    NOTE: This does NOT include nested replies!
    Tree structure is handled by CommentTreeSerializer.
    """
    author = UserSerializer(read_only=True)

    class Meta:
        model = Comment
        fields = [
            'id',
            'post',
            'parent',
            'author',
            'content',
            'depth',
            'media',
            'has_media',
            'reply_count',
            'reaction_count',
            'reaction_counts',
            'is_edited',
            'is_hidden',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class CommentTreeSerializer(serializers.Serializer):
    """
    Serializer for a pre-built thread node from threads.build_comment_tree().

    Structure:
    {
        "comment": { ...comment data... },
        "viewer_reaction": "love" | null,
        "has_more_replies": bool,
        "replies": [ ...nested CommentTreeSerializer... ]
    }
    """
    comment = CommentSerializer()
    viewer_reaction = serializers.CharField(allow_null=True)
    has_more_replies = serializers.BooleanField()
    replies = serializers.SerializerMethodField()

    def get_replies(self, obj):
        return CommentTreeSerializer(obj['replies'], many=True).data


class FollowSerializer(serializers.ModelSerializer):
    follower = UserSerializer(read_only=True)
    following = UserSerializer(read_only=True)

    class Meta:
        model = Follow
        fields = [
            'id',
            'follower',
            'following',
            'notify_all_posts',
            'notify_important_posts',
            'notify_live_stream',
            'engagement_score',
            'last_interaction',
            'created_at',
        ]
        read_only_fields = fields


class CommentEditSerializer(serializers.ModelSerializer):
    """One superseded version of a comment, newest first."""

    class Meta:
        model = CommentEdit
        fields = ['id', 'comment', 'content', 'edited_at']
        read_only_fields = fields


class FollowStatusSerializer(serializers.Serializer):
    is_following = serializers.BooleanField()
    follow = FollowSerializer(allow_null=True)


class FollowStatsSerializer(serializers.Serializer):
    follower_count = serializers.IntegerField()
    following_count = serializers.IntegerField()
    is_following = serializers.BooleanField()
    is_followed_by = serializers.BooleanField()


class SuggestionSerializer(serializers.Serializer):
    user = UserSerializer()
    reason = serializers.CharField()
    score = serializers.FloatField()


# ============================================================================
# INPUT: request bodies
# ============================================================================

class PostCreateSerializer(serializers.Serializer):
    """Author is set from request.user in the view, never from input."""
    content = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False, default='')
    kind = serializers.CharField(required=False, default=Post.Kind.STANDARD)
    visibility = serializers.CharField(required=False, default=Post.Visibility.FOLLOWERS)
    media = serializers.ListField(child=serializers.DictField(), required=False, default=list)
    is_pinned = serializers.BooleanField(required=False, default=False)
    original_post_id = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    share_comment = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class PostUpdateSerializer(serializers.Serializer):
    content = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)
    kind = serializers.CharField(required=False)
    visibility = serializers.CharField(required=False)
    media = serializers.ListField(child=serializers.DictField(), required=False)
    is_pinned = serializers.BooleanField(required=False)
    share_comment = serializers.CharField(required=False, allow_blank=True)


class ShareSerializer(serializers.Serializer):
    share_comment = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    visibility = serializers.CharField(required=False, default=Post.Visibility.FOLLOWERS)


class CommentCreateSerializer(serializers.Serializer):
    """
    Parent/post consistency is NOT checked here: services.create_comment
    reports a missing parent and a parent on another post differently.
    """
    content = serializers.CharField(allow_blank=True, trim_whitespace=False)
    parent = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    media = serializers.ListField(child=serializers.DictField(), required=False, default=list)


class CommentUpdateSerializer(serializers.Serializer):
    content = serializers.CharField(allow_blank=True, trim_whitespace=False)


class ReactionSerializer(serializers.Serializer):
    reaction_type = serializers.CharField()


class FollowPreferencesSerializer(serializers.Serializer):
    notify_all_posts = serializers.BooleanField(required=False)
    notify_important_posts = serializers.BooleanField(required=False)
    notify_live_stream = serializers.BooleanField(required=False)


# ============================================================================
# INPUT: query strings (fed with request.query_params.dict())
# ============================================================================

class PageQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, default=1)
    page_size = serializers.IntegerField(required=False)
    include_total = serializers.BooleanField(required=False)


class TimelineQuerySerializer(PageQuerySerializer):
    sort = serializers.CharField(required=False, default='newest')
    kind = serializers.CharField(required=False)
    has_media = serializers.BooleanField(required=False)
    author_id = serializers.IntegerField(required=False)
    search = serializers.CharField(required=False)
    hashtags = serializers.CharField(required=False)
    window_hours = serializers.IntegerField(required=False)

    def validate_hashtags(self, value):
        """?hashtags=bike,%23Coffee -> ['bike', '#Coffee']; timeline.py normalizes."""
        return [tag for tag in (part.strip() for part in value.split(',')) if tag]


class TrendingQuerySerializer(PageQuerySerializer):
    window_hours = serializers.IntegerField(required=False)


class ThreadQuerySerializer(PageQuerySerializer):
    sort = serializers.CharField(required=False, default='newest')
    author_id = serializers.IntegerField(required=False)
    created_after = serializers.DateTimeField(required=False)
    created_before = serializers.DateTimeField(required=False)
    search = serializers.CharField(required=False)
    reply_limit = serializers.IntegerField(required=False)


class ExpandQuerySerializer(serializers.Serializer):
    max_depth = serializers.IntegerField(required=False)
    sort = serializers.CharField(required=False, default='oldest')
    reply_limit = serializers.IntegerField(required=False)


class FollowListQuerySerializer(PageQuerySerializer):
    sort = serializers.CharField(required=False, default='newest')


class SuggestionQuerySerializer(serializers.Serializer):
    limit = serializers.IntegerField(required=False)
