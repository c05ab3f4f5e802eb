"""
Django Admin Configuration for Social Models

Counters are read-only everywhere in the admin: they are a cache of the
live graph and only counters.py writes them. is_active is the moderation
switch; every read path filters on it.

Deleting posts, comments or reactions here bypasses services.py, so every
delete (single object or bulk action) recounts the surviving posts it
touched, in the same transaction.
"""
from django.contrib import admin
from django.db import transaction

from .cache import invalidate
from .counters import posts_touched_by_reactions, recount_posts
from .models import Post, Comment, CommentEdit, Reaction, Follow


class RecountOnDeleteMixin:
    """Subclasses name the posts whose counters a delete of `queryset` changes."""

    def affected_post_ids(self, queryset) -> set[int]:
        raise NotImplementedError

    def delete_queryset(self, request, queryset):
        with transaction.atomic():
            post_ids = self.affected_post_ids(queryset)
            queryset.delete()
            recounted = recount_posts(post_ids)
            invalidate('posts', *(f'post:{post_id}' for post_id in recounted))

    def delete_model(self, request, obj):
        self.delete_queryset(request, type(obj).objects.filter(pk=obj.pk))


@admin.register(Post)
class PostAdmin(RecountOnDeleteMixin, admin.ModelAdmin):
    list_display = ['id', 'author', 'kind', 'visibility', 'reaction_count', 'comment_count',
                    'engagement_score', 'is_active', 'created_at']
    list_filter = ['kind', 'visibility', 'is_active', 'created_at']
    search_fields = ['content', 'author__username']
    readonly_fields = ['hashtags', 'keywords', 'view_count', 'share_count', 'comment_count',
                       'reaction_count', 'reaction_counts', 'engagement_score',
                       'created_at', 'updated_at']

    def affected_post_ids(self, queryset):
        # Originals of deleted shares lose a share
        originals = set(
            queryset.filter(original_post__isnull=False).values_list('original_post_id', flat=True)
        )
        return originals - set(queryset.values_list('id', flat=True))


class CommentEditInline(admin.TabularInline):
    model = CommentEdit
    extra = 0
    readonly_fields = ['content', 'edited_at']
    can_delete = False


@admin.register(Comment)
class CommentAdmin(RecountOnDeleteMixin, admin.ModelAdmin):
    list_display = ['id', 'post', 'author', 'parent', 'depth', 'reaction_count', 'is_hidden',
                    'is_active', 'created_at']
    list_filter = ['is_hidden', 'is_active', 'created_at', 'depth']
    search_fields = ['content', 'author__username']
    readonly_fields = ['depth', 'reply_count', 'reaction_count', 'reaction_counts',
                       'created_at', 'updated_at']
    inlines = [CommentEditInline]

    def affected_post_ids(self, queryset):
        return set(queryset.values_list('post_id', flat=True))


@admin.register(Reaction)
class ReactionAdmin(RecountOnDeleteMixin, admin.ModelAdmin):
    list_display = ['user', 'kind', 'content_type', 'object_id', 'created_at']
    list_filter = ['kind', 'content_type', 'created_at']
    search_fields = ['user__username']

    def has_add_permission(self, request):
        # Reactions go through services.react so tallies stay in sync
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def affected_post_ids(self, queryset):
        return posts_touched_by_reactions(queryset)


@admin.register(Follow)
class FollowAdmin(admin.ModelAdmin):
    list_display = ['follower', 'following', 'engagement_score', 'last_interaction', 'created_at']
    search_fields = ['follower__username', 'following__username']
    readonly_fields = ['engagement_score', 'last_interaction', 'created_at']
