"""
Timeline Composer: visibility, filters, sort order and pagination.
"""

from datetime import timedelta

from django.contrib.auth.models import AnonymousUser, User
from django.test import TestCase, override_settings
from django.utils import timezone

from social import services
from social.errors import NotFoundError, ValidationFailed
from social.models import Post
from social.timeline import get_timeline, get_user_posts


class TimelineVisibilityTestCase(TestCase):

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.follower = User.objects.create_user('follower', 'f@test.com', 'pass')
        self.stranger = User.objects.create_user('stranger', 's@test.com', 'pass')
        services.follow(self.follower, self.author.id)

        self.public = services.create_post(self.author, 'For everyone', visibility='public')
        self.followers_only = services.create_post(self.author, 'For followers', visibility='followers')
        self.private = services.create_post(self.author, 'For me', visibility='private')

    def ids(self, page):
        return {post.id for post in page.items}

    def test_follower_sees_followers_posts(self):
        page = get_timeline(viewer=self.follower)
        self.assertEqual(self.ids(page), {self.public.id, self.followers_only.id})

    def test_stranger_and_anonymous_see_public_only(self):
        self.assertEqual(self.ids(get_timeline(viewer=self.stranger)), {self.public.id})
        self.assertEqual(self.ids(get_timeline(viewer=AnonymousUser())), {self.public.id})
        self.assertEqual(self.ids(get_timeline(viewer=None)), {self.public.id})

    def test_unfollow_revokes(self):
        services.unfollow(self.follower, self.author.id)
        self.assertEqual(self.ids(get_timeline(viewer=self.follower)), {self.public.id})

    def test_private_never_in_timeline(self):
        self.assertNotIn(self.private.id, self.ids(get_timeline(viewer=self.author)))

    def test_inactive_posts_excluded(self):
        Post.objects.filter(id=self.public.id).update(is_active=False)
        self.assertEqual(self.ids(get_timeline(viewer=self.stranger)), set())

    def test_profile_paths(self):
        self.assertEqual(
            self.ids(get_user_posts(self.author.id, viewer=self.author)),
            {self.public.id, self.followers_only.id, self.private.id}
        )
        self.assertEqual(
            self.ids(get_user_posts(self.author.id, viewer=self.follower)),
            {self.public.id, self.followers_only.id}
        )
        self.assertEqual(self.ids(get_user_posts(self.author.id, viewer=self.stranger)), {self.public.id})

    def test_profile_of_missing_user(self):
        with self.assertRaises(NotFoundError):
            get_user_posts(999999, viewer=self.stranger)

    def test_viewer_reaction_attached(self):
        services.react(self.follower, 'post', self.public.id, 'love')
        page = get_timeline(viewer=self.follower)
        reactions = {post.id: post.viewer_reaction for post in page.items}
        self.assertEqual(reactions[self.public.id], 'love')
        self.assertIsNone(reactions[self.followers_only.id])


class TimelineFiltersAndSortsTestCase(TestCase):

    def setUp(self):
        self.alice = User.objects.create_user('alice', 'a@test.com', 'pass')
        self.bob = User.objects.create_user('bob', 'b@test.com', 'pass')
        now = timezone.now()

        self.old_sale = services.create_post(self.alice, 'Old bike for sale', kind='sale', visibility='public')
        Post.objects.filter(id=self.old_sale.id).update(created_at=now - timedelta(hours=30))
        self.question = services.create_post(self.bob, 'Anyone know a plumber?', kind='question', visibility='public')
        Post.objects.filter(id=self.question.id).update(created_at=now - timedelta(hours=2))
        self.photo = services.create_post(
            self.alice, 'Sunset', visibility='public',
            media=[{'url': 'https://cdn.example.com/sunset.jpg', 'type': 'image'}]
        )

        Post.objects.filter(id=self.old_sale.id).update(view_count=50, engagement_score=5.0)
        Post.objects.filter(id=self.question.id).update(comment_count=4, engagement_score=8.0)
        Post.objects.filter(id=self.photo.id).update(engagement_score=1.0)

    def order(self, **kwargs):
        return [post.id for post in get_timeline(viewer=self.bob, **kwargs).items]

    def test_newest_and_oldest(self):
        self.assertEqual(self.order(sort='newest'), [self.photo.id, self.question.id, self.old_sale.id])
        self.assertEqual(self.order(sort='oldest'), [self.old_sale.id, self.question.id, self.photo.id])

    def test_popular(self):
        self.assertEqual(self.order(sort='popular'), [self.question.id, self.old_sale.id, self.photo.id])

    def test_popular_ties_break_on_recency_only(self):
        now = timezone.now()
        fan = User.objects.create_user('fan', 'f@test.com', 'pass')
        liked = services.create_post(self.alice, 'Two likes', visibility='public')
        services.react(self.bob, 'post', liked.id, 'like')
        services.react(fan, 'post', liked.id, 'like')
        discussed = services.create_post(self.bob, 'One comment', visibility='public')
        services.create_comment(fan, discussed.id, 'Agreed')
        Post.objects.filter(id=liked.id).update(created_at=now - timedelta(minutes=10))
        Post.objects.filter(id=discussed.id).update(created_at=now - timedelta(minutes=5))
        Post.objects.filter(id__in=[self.old_sale.id, self.question.id, self.photo.id]).delete()

        liked.refresh_from_db()
        discussed.refresh_from_db()
        self.assertEqual(liked.engagement_score, discussed.engagement_score)
        self.assertEqual(self.order(sort='popular'), [discussed.id, liked.id])

    def test_most_viewed_and_commented(self):
        self.assertEqual(self.order(sort='most_viewed')[0], self.old_sale.id)
        self.assertEqual(self.order(sort='most_commented')[0], self.question.id)

    def test_trending_sort_respects_window(self):
        self.assertEqual(self.order(sort='trending', window_hours=24), [self.question.id, self.photo.id])

    def test_filters_are_anded(self):
        self.assertEqual(self.order(kind='sale'), [self.old_sale.id])
        self.assertEqual(self.order(has_media=True), [self.photo.id])
        self.assertEqual(self.order(author_id=self.alice.id, has_media=False), [self.old_sale.id])
        self.assertEqual(self.order(author_id=self.bob.id, kind='sale'), [])

    def test_search(self):
        self.assertEqual(self.order(search='PLUMBER'), [self.question.id])

    def test_search_matches_keywords_in_any_order(self):
        self.assertEqual(self.order(search='sale, bike!'), [self.old_sale.id])
        self.assertEqual(self.order(search='bike plumber'), [])

    def test_hashtag_filter_matches_any_tag(self):
        bike = services.create_post(self.alice, 'Selling my #Bike', visibility='public')
        coffee = services.create_post(self.bob, 'Morning #coffee', visibility='public')
        services.create_post(self.bob, 'Bikes everywhere #bikes', visibility='public')

        self.assertEqual(self.order(hashtags=['#BIKE']), [bike.id])
        self.assertEqual(self.order(hashtags=['bike', 'coffee']), [coffee.id, bike.id])
        self.assertEqual(self.order(hashtags=['bik']), [])
        self.assertEqual(
            [post.id for post in get_user_posts(self.alice.id, viewer=self.bob, hashtags=['bike']).items],
            [bike.id]
        )

        with self.assertRaises(ValidationFailed) as ctx:
            get_timeline(viewer=self.bob, hashtags=['#'])
        self.assertEqual(ctx.exception.field, 'hashtags')
        with self.assertRaises(ValidationFailed):
            get_timeline(viewer=self.bob, hashtags='bike')

    def test_invalid_params_are_rejected(self):
        with self.assertRaises(ValidationFailed) as ctx:
            get_timeline(viewer=self.bob, sort='random')
        self.assertEqual(ctx.exception.field, 'sort')

        with self.assertRaises(ValidationFailed):
            get_timeline(viewer=self.bob, kind='rant')
        with self.assertRaises(ValidationFailed):
            get_timeline(viewer=self.bob, page=0)
        with self.assertRaises(ValidationFailed):
            get_timeline(viewer=self.bob, page_size=101)


class TimelinePaginationTestCase(TestCase):

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        created = timezone.now()
        self.post_ids = []
        for i in range(25):
            post = services.create_post(self.author, f'Post number {i}', visibility='public')
            self.post_ids.append(post.id)
        # Identical timestamps: ordering must still be total via the id tie-break
        Post.objects.update(created_at=created)

    def test_pages_are_disjoint_and_complete(self):
        pages = [get_timeline(page=n, page_size=10) for n in (1, 2, 3)]
        seen = []
        for page in pages:
            seen.extend(post.id for post in page.items)

        self.assertEqual(len(seen), 25)
        self.assertEqual(set(seen), set(self.post_ids))
        self.assertEqual(seen, sorted(self.post_ids, reverse=True))

    def test_has_more_and_total(self):
        first = get_timeline(page=1, page_size=10)
        second = get_timeline(page=2, page_size=10)
        last = get_timeline(page=3, page_size=10)

        self.assertTrue(first.has_more)
        self.assertEqual(first.total, 25)
        self.assertIsNone(second.total)
        self.assertFalse(last.has_more)
        self.assertEqual(len(last.items), 5)

    def test_total_on_request(self):
        page = get_timeline(page=2, page_size=10, include_total=True)
        self.assertEqual(page.total, 25)

    @override_settings(FEED_DEFAULT_PAGE_SIZE=7)
    def test_default_page_size_from_settings(self):
        self.assertEqual(len(get_timeline().items), 7)
