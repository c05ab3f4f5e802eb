from datetime import timedelta

from django.contrib.auth.models import User
from django.test import TestCase
from django.utils import timezone

from social import services
from social.errors import ValidationFailed
from social.models import Post
from social.trending import get_trending


class TrendingWindowTestCase(TestCase):
    """
    CRITICAL: only posts inside the window count, and the edge is inclusive.
    """

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.now = timezone.now()

    def make_post(self, hours_ago, score, visibility='public'):
        post = services.create_post(self.author, f'{hours_ago}h old', visibility=visibility)
        Post.objects.filter(id=post.id).update(
            created_at=self.now - timedelta(hours=hours_ago),
            engagement_score=score,
        )
        return post

    def ids(self, **kwargs):
        return [post.id for post in get_trending(now=self.now, **kwargs).items]

    def test_old_post_excluded_regardless_of_score(self):
        old = self.make_post(25, score=1000.0)
        fresh = self.make_post(1, score=1.0)

        self.assertEqual(self.ids(window_hours=24), [fresh.id])
        self.assertEqual(self.ids(window_hours=48), [old.id, fresh.id])

    def test_window_edge_is_inclusive(self):
        edge = self.make_post(24, score=3.0)
        self.assertEqual(self.ids(window_hours=24), [edge.id])

    def test_ordered_by_score_then_recency(self):
        low = self.make_post(1, score=1.0)
        tie_older = self.make_post(3, score=5.0)
        tie_newer = self.make_post(2, score=5.0)

        self.assertEqual(self.ids(), [tie_newer.id, tie_older.id, low.id])

    def test_public_only(self):
        public = self.make_post(1, score=1.0)
        self.make_post(1, score=99.0, visibility='followers')
        self.make_post(1, score=99.0, visibility='private')

        self.assertEqual(self.ids(), [public.id])

    def test_window_bounds(self):
        with self.assertRaises(ValidationFailed):
            get_trending(window_hours=0)
        with self.assertRaises(ValidationFailed):
            get_trending(window_hours=169)

    def test_reactions_move_ranking(self):
        first = services.create_post(self.author, 'First', visibility='public')
        second = services.create_post(self.author, 'Second', visibility='public')
        fan = User.objects.create_user('fan', 'f@test.com', 'pass')

        services.react(fan, 'post', first.id, 'like')

        self.assertEqual([p.id for p in get_trending().items], [first.id, second.id])
