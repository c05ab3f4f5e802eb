"""
Data Models for the content graph
=================================

Design Philosophy:
------------------
1. Comments use the Adjacency List pattern (parent_id FK), same as before.
   Arbitrary nesting is allowed in storage; every read path caps how deep
   it walks (see threads.py).

2. Reactions use the polymorphic ContentType approach
   - One table for post and comment reactions
   - Unique (user, content_type, object_id) enforced at DB level, so a user
     holds at most one reaction per target no matter how requests interleave
   - GenericRelation on Post/Comment makes target deletion cascade to reactions

3. Counters on Post/Comment are a CACHE of the live graph
   - comment_count, reply_count, reaction_count, reaction_counts
   - Maintained only by counters.py, inside the mutating transaction
   - Never edited by hand, never trusted over the source rows

4. hashtags/keywords are derived columns
   - Written by normalizer.py on every content change
   - JSON lists so the schema works on PostgreSQL and SQLite alike

Indexes Strategy:
-----------------
- post (author, created_at): profile pages
- post (visibility, created_at) WHERE is_active: timeline candidate scan
- post (created_at, engagement_score): trending window
- comment (post, created_at), (parent, created_at): thread assembly
- reaction (content_type, object_id): tally recomputation
- follow (follower), (following): visibility joins and follower lists
"""

from django.db import models
from django.db.models import F, Q
from django.contrib.auth.models import User
from django.contrib.contenttypes.fields import GenericForeignKey, GenericRelation
from django.contrib.contenttypes.models import ContentType
from django.utils import timezone


POST_MAX_LENGTH = 5000
COMMENT_MAX_LENGTH = 1000

# Stored depth saturates here; nesting itself is unbounded
MAX_COMMENT_DEPTH = 10


class Post(models.Model):
    """
    A feed post authored by a user.

    media is the ordered list of opaque descriptors handed over by the media
    collaborator; it is stored and returned verbatim.
    """

    class Kind(models.TextChoices):
        STANDARD = 'standard', 'Standard'
        SHARE = 'share', 'Share'
        ANNOUNCEMENT = 'announcement', 'Announcement'
        QUESTION = 'question', 'Question'
        SALE = 'sale', 'Sale'
        POLL = 'poll', 'Poll'

    class Visibility(models.TextChoices):
        PUBLIC = 'public', 'Public'
        FOLLOWERS = 'followers', 'Followers only'
        PRIVATE = 'private', 'Private'

    author = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='posts'
    )
    content = models.CharField(max_length=POST_MAX_LENGTH, blank=True, default='')
    kind = models.CharField(
        max_length=20,
        choices=Kind.choices,
        default=Kind.STANDARD
    )
    visibility = models.CharField(
        max_length=20,
        choices=Visibility.choices,
        default=Visibility.FOLLOWERS
    )
    media = models.JSONField(default=list, blank=True)
    has_media = models.BooleanField(default=False)

    # Derived by the normalizer, replaced on every content change
    hashtags = models.JSONField(default=list, blank=True)
    keywords = models.JSONField(default=list, blank=True)

    view_count = models.PositiveIntegerField(default=0)
    share_count = models.PositiveIntegerField(default=0)
    comment_count = models.PositiveIntegerField(default=0)
    reaction_count = models.PositiveIntegerField(default=0)
    reaction_counts = models.JSONField(default=dict, blank=True)
    engagement_score = models.FloatField(default=0.0)

    is_pinned = models.BooleanField(default=False)
    is_edited = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)

    original_post = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='shares'
    )
    share_comment = models.TextField(blank=True, default='')

    reactions = GenericRelation('Reaction', related_query_name='post')

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['author', '-created_at'], name='post_author_created_idx'),
            models.Index(
                fields=['visibility', '-created_at'],
                name='post_visible_created_idx',
                condition=Q(is_active=True),
            ),
            models.Index(fields=['-created_at', '-engagement_score'], name='post_trending_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(kind__in=['standard', 'share', 'announcement', 'question', 'sale', 'poll']),
                name='post_kind_valid'
            ),
            models.CheckConstraint(
                condition=Q(visibility__in=['public', 'followers', 'private']),
                name='post_visibility_valid'
            ),
        ]

    def __str__(self):
        return f"Post {self.id} by {self.author.username}"


class Comment(models.Model):
    """
    Threaded comment using the Adjacency List pattern.

    post_id never changes after insert and always equals the parent's
    post_id; services.create_comment enforces both before the row exists.
    depth is 0 for top-level comments.
    """
    post = models.ForeignKey(
        Post,
        on_delete=models.CASCADE,
        related_name='comments'
    )
    author = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='comments'
    )
    parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='replies'
    )
    content = models.CharField(max_length=COMMENT_MAX_LENGTH)
    depth = models.PositiveSmallIntegerField(default=0)

    media = models.JSONField(default=list, blank=True)
    has_media = models.BooleanField(default=False)

    reply_count = models.PositiveIntegerField(default=0)
    reaction_count = models.PositiveIntegerField(default=0)
    reaction_counts = models.JSONField(default=dict, blank=True)

    is_edited = models.BooleanField(default=False)
    is_hidden = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)

    reactions = GenericRelation('Reaction', related_query_name='comment')

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['post', 'created_at'], name='comment_post_created_idx'),
            models.Index(fields=['parent', 'created_at'], name='comment_parent_created_idx'),
        ]

    def __str__(self):
        return f"Comment {self.id} by {self.author.username} on {self.post_id}"


class CommentEdit(models.Model):
    """Previous content of a comment, saved each time it is edited."""
    comment = models.ForeignKey(
        Comment,
        on_delete=models.CASCADE,
        related_name='edits'
    )
    content = models.CharField(max_length=COMMENT_MAX_LENGTH)
    edited_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-edited_at', '-id']


class Reaction(models.Model):
    """
    Polymorphic reaction on a post or comment.

    CONCURRENCY STRATEGY:
    - Unique constraint (user, content_type, object_id) enforced at DB level
    - A second reaction from the same user REPLACES the kind of the first
    - See services.react for the upsert
    """

    class Kind(models.TextChoices):
        LIKE = 'like', 'Like'
        LOVE = 'love', 'Love'
        LAUGH = 'laugh', 'Laugh'
        WOW = 'wow', 'Wow'
        SAD = 'sad', 'Sad'
        ANGRY = 'angry', 'Angry'
        HUG = 'hug', 'Hug'

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='reactions'
    )
    content_type = models.ForeignKey(
        ContentType,
        on_delete=models.CASCADE
    )
    object_id = models.PositiveBigIntegerField()
    target = GenericForeignKey('content_type', 'object_id')

    kind = models.CharField(max_length=10, choices=Kind.choices)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'content_type', 'object_id'],
                name='unique_reaction_per_user_per_target'
            ),
            models.CheckConstraint(
                condition=Q(kind__in=['like', 'love', 'laugh', 'wow', 'sad', 'angry', 'hug']),
                name='reaction_kind_valid'
            ),
        ]
        indexes = [
            models.Index(fields=['content_type', 'object_id'], name='reaction_target_idx'),
        ]

    def __str__(self):
        return f"{self.user.username} {self.kind} {self.content_type.model} {self.object_id}"


class Follow(models.Model):
    """
    Directed follow edge: follower sees following's followers-only posts.

    engagement_score only biases ordering quality; timeline visibility
    never depends on it.
    """
    follower = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='following_edges'
    )
    following = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='follower_edges'
    )

    notify_all_posts = models.BooleanField(default=True)
    notify_important_posts = models.BooleanField(default=True)
    notify_live_stream = models.BooleanField(default=True)

    engagement_score = models.FloatField(default=1.0)
    last_interaction = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['follower', 'following'],
                name='unique_follow_edge'
            ),
            models.CheckConstraint(
                condition=~Q(follower=F('following')),
                name='follow_not_self'
            ),
        ]
        indexes = [
            models.Index(fields=['follower', '-created_at'], name='follow_follower_idx'),
            models.Index(fields=['following', '-created_at'], name='follow_following_idx'),
        ]

    def __str__(self):
        return f"{self.follower.username} -> {self.following.username}"


# ============================================================================
# TARGETS & INTERACTION WEIGHTS
# ============================================================================
# Reactable models keyed by the target-kind string used across the API
TARGET_MODELS = {
    'post': Post,
    'comment': Comment,
}

# Follow-edge engagement bump per interaction (applied as weight * 0.1)
INTERACTION_WEIGHTS = {
    'view': 0.1,
    'like': 1.0,
    'comment': 2.0,
    'share': 3.0,
}

FOLLOW_PREFERENCE_FIELDS = ('notify_all_posts', 'notify_important_posts', 'notify_live_stream')
