from django.contrib.auth.models import AnonymousUser, User
from django.test import TestCase

from social import services
from social.errors import AuthorizationError, NotFoundError, ValidationFailed
from social.models import Post, POST_MAX_LENGTH


class CreatePostTestCase(TestCase):

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')

    def test_normalizer_runs_on_create(self):
        post = services.create_post(self.author, 'Selling my #Bike, great condition!')
        self.assertEqual(post.hashtags, ['bike'])
        self.assertIn('condition', post.keywords)
        self.assertEqual(post.visibility, Post.Visibility.FOLLOWERS)

    def test_content_too_long(self):
        with self.assertRaises(ValidationFailed) as ctx:
            services.create_post(self.author, 'x' * (POST_MAX_LENGTH + 1))
        self.assertEqual(ctx.exception.field, 'content')
        self.assertEqual(Post.objects.count(), 0)

    def test_invalid_enums(self):
        with self.assertRaises(ValidationFailed) as ctx:
            services.create_post(self.author, 'hi there', kind='rant')
        self.assertEqual(ctx.exception.field, 'kind')

        with self.assertRaises(ValidationFailed) as ctx:
            services.create_post(self.author, 'hi there', visibility='friends')
        self.assertEqual(ctx.exception.field, 'visibility')

    def test_needs_text_or_media(self):
        with self.assertRaises(ValidationFailed):
            services.create_post(self.author, '   ')

        post = services.create_post(self.author, '', media=[{'url': 'https://cdn.example.com/a.jpg', 'type': 'image'}])
        self.assertTrue(post.has_media)
        self.assertEqual(post.media[0]['type'], 'image')

    def test_media_envelope_checked(self):
        with self.assertRaises(ValidationFailed) as ctx:
            services.create_post(self.author, 'pics', media=[{'type': 'image'}])
        self.assertEqual(ctx.exception.field, 'media')

    def test_share_kind_needs_original(self):
        with self.assertRaises(ValidationFailed) as ctx:
            services.create_post(self.author, 'sharing', kind='share')
        self.assertEqual(ctx.exception.field, 'original_post_id')

    def test_anonymous_cannot_post(self):
        with self.assertRaises(AuthorizationError):
            services.create_post(AnonymousUser(), 'hello world')


class SharePostTestCase(TestCase):

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.sharer = User.objects.create_user('sharer', 's@test.com', 'pass')
        self.original = services.create_post(self.author, 'Worth sharing', visibility='public')

    def test_share_bumps_and_delete_restores_share_count(self):
        share = services.share_post(self.sharer, self.original.id, share_comment='Look at this')

        self.assertEqual(share.kind, Post.Kind.SHARE)
        self.assertEqual(share.original_post_id, self.original.id)
        self.original.refresh_from_db()
        self.assertEqual(self.original.share_count, 1)
        self.assertAlmostEqual(self.original.engagement_score, 5.0)

        services.delete_post(self.sharer, share.id)
        self.original.refresh_from_db()
        self.assertEqual(self.original.share_count, 0)

    def test_cannot_share_invisible_post(self):
        hidden = services.create_post(self.author, 'Just me', visibility='private')
        with self.assertRaises(NotFoundError):
            services.share_post(self.sharer, hidden.id)

    def test_original_deleted_keeps_share(self):
        share = services.share_post(self.sharer, self.original.id)
        services.delete_post(self.author, self.original.id)

        share.refresh_from_db()
        self.assertIsNone(share.original_post_id)

    def test_orphaned_share_stays_editable(self):
        share = services.share_post(self.sharer, self.original.id, share_comment='Look')
        services.delete_post(self.author, self.original.id)

        updated = services.update_post(self.sharer, share.id, visibility='private', share_comment='Gone now')

        self.assertEqual(updated.visibility, 'private')
        self.assertEqual(updated.kind, 'share')
        with self.assertRaises(ValidationFailed):
            services.update_post(self.sharer, share.id, kind='standard')


class UpdateDeletePostTestCase(TestCase):

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.other = User.objects.create_user('other', 'o@test.com', 'pass')
        self.post = services.create_post(self.author, 'Original #first text', visibility='public')

    def test_edit_replaces_hashtags(self):
        post = services.update_post(self.author, self.post.id, content='Edited #second text')

        self.assertEqual(post.hashtags, ['second'])
        self.assertNotIn('first', post.keywords)
        self.assertTrue(post.is_edited)
        post.refresh_from_db()
        self.assertEqual(post.hashtags, ['second'])

    def test_only_author_edits_or_deletes(self):
        with self.assertRaises(AuthorizationError):
            services.update_post(self.other, self.post.id, content='mine now')
        with self.assertRaises(AuthorizationError):
            services.delete_post(self.other, self.post.id)

    def test_unknown_field_rejected(self):
        with self.assertRaises(ValidationFailed):
            services.update_post(self.author, self.post.id, view_count=1000)

    def test_delete_missing_post(self):
        with self.assertRaises(NotFoundError):
            services.delete_post(self.author, 999999)


class RecordViewTestCase(TestCase):

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.post = services.create_post(self.author, 'Look at me', visibility='public')

    def test_view_counts_and_scores(self):
        services.record_view(self.post.id)
        count = services.record_view(self.post.id)

        self.assertEqual(count, 2)
        self.post.refresh_from_db()
        self.assertAlmostEqual(self.post.engagement_score, 0.2)

    def test_view_on_missing_post(self):
        with self.assertRaises(NotFoundError):
            services.record_view(999999)
