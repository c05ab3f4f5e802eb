from io import StringIO

from django.contrib.auth.models import User
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db.models import F
from django.test import TestCase

from social import services
from social.models import Comment, Follow, Post


class VerifyCountersCommandTestCase(TestCase):

    def setUp(self):
        self.user = User.objects.create_user('user', 'u@test.com', 'pass')
        self.post = services.create_post(self.user, 'Counted', visibility='public')
        services.create_comment(self.user, self.post.id, 'One')
        services.react(self.user, 'post', self.post.id, 'like')

    def run_command(self, *args):
        out = StringIO()
        call_command('verify_counters', *args, stdout=out)
        return out.getvalue()

    def test_clean_database(self):
        self.assertIn('1 posts checked, no drift', self.run_command())

    def test_drift_fails_without_fix(self):
        Post.objects.filter(id=self.post.id).update(comment_count=7)

        with self.assertRaises(CommandError):
            self.run_command()

        self.post.refresh_from_db()
        self.assertEqual(self.post.comment_count, 7)

    def test_fix_repairs_drift(self):
        Post.objects.filter(id=self.post.id).update(comment_count=7, reaction_count=0)

        with self.assertLogs('social.counters', level='WARNING'):
            output = self.run_command('--fix')

        self.assertIn('comment_count: cached=7 actual=1', output)
        self.post.refresh_from_db()
        self.assertEqual(self.post.comment_count, 1)
        self.assertEqual(self.post.reaction_count, 1)
        self.assertIn('no drift', self.run_command())

    def test_single_post(self):
        other = services.create_post(self.user, 'Other', visibility='public')
        Post.objects.filter(id=other.id).update(comment_count=3)

        self.assertIn('1 posts checked, no drift', self.run_command('--post', str(self.post.id)))


class SeedDataCommandTestCase(TestCase):

    def test_seeded_graph_is_consistent(self):
        call_command(
            'seed_data', users=4, posts=3, comments=5, seed=1, stdout=StringIO()
        )

        self.assertEqual(User.objects.count(), 4)
        self.assertEqual(Post.objects.count(), 3)
        self.assertEqual(Comment.objects.count(), 5)
        self.assertTrue(Follow.objects.exists())
        self.assertFalse(Follow.objects.filter(follower_id=F('following_id')).exists())

        out = StringIO()
        call_command('verify_counters', stdout=out)
        self.assertIn('no drift', out.getvalue())
