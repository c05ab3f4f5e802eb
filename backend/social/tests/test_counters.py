"""
Counter maintenance.

CRITICAL: every cached counter must equal a from-scratch reconstruction
after any sequence of inserts and deletes (rebuild_post_counters reports
nothing).
"""

from django.contrib import admin
from django.contrib.auth.models import User
from django.test import RequestFactory, TestCase

from social import services
from social.counters import rebuild_post_counters, refresh_reaction_tally
from social.models import Post, Comment, Reaction


class CommentCounterTestCase(TestCase):

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.user = User.objects.create_user('user', 'u@test.com', 'pass')
        self.post = services.create_post(self.author, 'Counting things', visibility='public')

    def test_top_level_comment_bumps_comment_count(self):
        services.create_comment(self.user, self.post.id, 'First')
        self.post.refresh_from_db()
        self.assertEqual(self.post.comment_count, 1)

    def test_reply_bumps_parent_not_post(self):
        """A reply is counted once: on its parent's reply_count."""
        top = services.create_comment(self.user, self.post.id, 'Top')
        services.create_comment(self.author, self.post.id, 'Reply', parent_id=top.id)

        self.post.refresh_from_db()
        top.refresh_from_db()
        self.assertEqual(self.post.comment_count, 1)
        self.assertEqual(top.reply_count, 1)

    def test_delete_decrements(self):
        top = services.create_comment(self.user, self.post.id, 'Top')
        reply = services.create_comment(self.user, self.post.id, 'Reply', parent_id=top.id)

        services.delete_comment(self.user, reply.id)
        top.refresh_from_db()
        self.assertEqual(top.reply_count, 0)

        services.delete_comment(self.user, top.id)
        self.post.refresh_from_db()
        self.assertEqual(self.post.comment_count, 0)

    def test_decrement_floors_at_zero(self):
        top = services.create_comment(self.user, self.post.id, 'Top')
        Post.objects.filter(id=self.post.id).update(comment_count=0)

        services.delete_comment(self.user, top.id)
        self.post.refresh_from_db()
        self.assertEqual(self.post.comment_count, 0)

    def test_deleting_top_level_cascades_replies(self):
        top = services.create_comment(self.user, self.post.id, 'Top')
        services.create_comment(self.user, self.post.id, 'Reply', parent_id=top.id)
        services.create_comment(self.user, self.post.id, 'Other')

        services.delete_comment(self.user, top.id)

        self.assertEqual(Comment.objects.filter(post=self.post).count(), 1)
        self.assertEqual(rebuild_post_counters(self.post.id), [])

    def test_score_follows_comment_count(self):
        services.create_comment(self.user, self.post.id, 'One')
        self.post.refresh_from_db()
        self.assertAlmostEqual(self.post.engagement_score, 2.0)


class ReconstructionTestCase(TestCase):

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.users = [
            User.objects.create_user(f'user{i}', f'u{i}@test.com', 'pass') for i in range(4)
        ]
        self.post = services.create_post(self.author, 'Mixed traffic', visibility='public')

    def test_mixed_sequence_has_no_drift(self):
        top = services.create_comment(self.users[0], self.post.id, 'Top')
        reply = services.create_comment(self.users[1], self.post.id, 'Reply', parent_id=top.id)
        services.create_comment(self.users[2], self.post.id, 'Nested', parent_id=reply.id)
        other = services.create_comment(self.users[3], self.post.id, 'Other')

        services.react(self.users[0], 'post', self.post.id, 'like')
        services.react(self.users[1], 'post', self.post.id, 'love')
        services.react(self.users[0], 'post', self.post.id, 'wow')
        services.react(self.users[2], 'comment', top.id, 'laugh')
        services.unreact(self.users[1], 'post', self.post.id)
        services.delete_comment(self.users[3], other.id)
        services.delete_comment(self.users[1], reply.id)

        self.assertEqual(rebuild_post_counters(self.post.id), [])
        self.post.refresh_from_db()
        self.assertEqual(self.post.comment_count, 1)
        self.assertEqual(self.post.reaction_counts, {'wow': 1})

    def test_drift_is_reported_and_fixed(self):
        services.create_comment(self.users[0], self.post.id, 'Top')
        Post.objects.filter(id=self.post.id).update(comment_count=5, reaction_count=3)

        drift = rebuild_post_counters(self.post.id)
        fields = {entry['field'] for entry in drift}
        self.assertEqual(fields, {'comment_count', 'reaction_count'})

        with self.assertLogs('social.counters', level='WARNING'):
            rebuild_post_counters(self.post.id, fix=True)
        self.assertEqual(rebuild_post_counters(self.post.id), [])

        self.post.refresh_from_db()
        self.assertEqual(self.post.comment_count, 1)
        self.assertEqual(self.post.reaction_count, 0)

    def test_refresh_on_missing_target(self):
        self.assertIsNone(refresh_reaction_tally(Post, 999999))


class DeletesOutsideServicesTestCase(TestCase):
    """User and admin deletes skip services.py; counters must still match."""

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.leaver = User.objects.create_user('leaver', 'l@test.com', 'pass')
        self.reader = User.objects.create_user('reader', 'r@test.com', 'pass')
        self.post = services.create_post(self.author, 'Stay a while', visibility='public')
        self.comment = services.create_comment(self.author, self.post.id, 'Author speaking')

    def test_user_delete_recounts_touched_posts(self):
        services.react(self.leaver, 'post', self.post.id, 'like')
        services.react(self.leaver, 'comment', self.comment.id, 'love')
        own_comment = services.create_comment(self.leaver, self.post.id, 'Bye soon')
        services.create_comment(self.leaver, self.post.id, 'A reply', parent_id=self.comment.id)
        services.react(self.reader, 'comment', own_comment.id, 'wow')
        services.share_post(self.leaver, self.post.id)

        self.leaver.delete()

        self.assertEqual(rebuild_post_counters(self.post.id), [])
        self.post.refresh_from_db()
        self.comment.refresh_from_db()
        self.assertEqual(self.post.comment_count, 1)
        self.assertEqual(self.post.share_count, 0)
        self.assertEqual(self.post.reaction_counts, {})
        self.assertEqual(self.comment.reply_count, 0)
        self.assertEqual(self.comment.reaction_count, 0)

    def test_user_without_activity_deletes_cleanly(self):
        self.reader.delete()
        self.assertEqual(rebuild_post_counters(self.post.id), [])

    def test_admin_deletes_recount(self):
        request = RequestFactory().post('/admin/')
        services.react(self.reader, 'post', self.post.id, 'like')
        services.react(self.reader, 'comment', self.comment.id, 'like')
        reply = services.create_comment(self.reader, self.post.id, 'Reply', parent_id=self.comment.id)
        share = services.share_post(self.reader, self.post.id)

        admin.site._registry[Reaction].delete_queryset(request, Reaction.objects.all())
        admin.site._registry[Comment].delete_model(request, reply)
        admin.site._registry[Post].delete_model(request, share)

        self.assertEqual(rebuild_post_counters(self.post.id), [])
        self.post.refresh_from_db()
        self.assertEqual(self.post.reaction_count, 0)
        self.assertEqual(self.post.share_count, 0)
