from django.contrib.auth.models import User
from django.test import TestCase

from social import services
from social.errors import AuthorizationError, ConflictError, NotFoundError, ValidationFailed
from social.models import Comment, CommentEdit, MAX_COMMENT_DEPTH, COMMENT_MAX_LENGTH
from social.threads import get_comment_history


class CreateCommentTestCase(TestCase):

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.user = User.objects.create_user('user', 'u@test.com', 'pass')
        self.post = services.create_post(self.author, 'Discuss', visibility='public')
        self.other_post = services.create_post(self.author, 'Elsewhere', visibility='public')

    def test_parent_on_other_post_is_conflict(self):
        parent = services.create_comment(self.user, self.other_post.id, 'Over here')

        with self.assertRaises(ConflictError) as ctx:
            services.create_comment(self.user, self.post.id, 'Reply', parent_id=parent.id)
        self.assertEqual(ctx.exception.code, 'parent_mismatch')

        self.post.refresh_from_db()
        self.assertEqual(self.post.comment_count, 0)

    def test_missing_parent_is_not_found(self):
        with self.assertRaises(NotFoundError):
            services.create_comment(self.user, self.post.id, 'Reply', parent_id=999999)

    def test_missing_post_is_not_found(self):
        with self.assertRaises(NotFoundError):
            services.create_comment(self.user, 999999, 'Hello')

    def test_content_bounds(self):
        with self.assertRaises(ValidationFailed):
            services.create_comment(self.user, self.post.id, '   ')
        with self.assertRaises(ValidationFailed):
            services.create_comment(self.user, self.post.id, 'x' * (COMMENT_MAX_LENGTH + 1))

    def test_depth_saturates(self):
        parent = None
        for i in range(MAX_COMMENT_DEPTH + 3):
            parent = services.create_comment(
                self.user, self.post.id, f'Level {i}', parent_id=parent.id if parent else None
            )
        self.assertEqual(parent.depth, MAX_COMMENT_DEPTH)
        self.assertEqual(Comment.objects.filter(post=self.post).count(), MAX_COMMENT_DEPTH + 3)

    def test_followers_only_post_needs_follow(self):
        private_ish = services.create_post(self.author, 'Followers only', visibility='followers')
        with self.assertRaises(NotFoundError):
            services.create_comment(self.user, private_ish.id, 'Let me in')

        services.follow(self.user, self.author.id)
        comment = services.create_comment(self.user, private_ish.id, 'Thanks')
        self.assertEqual(comment.post_id, private_ish.id)


class EditDeleteCommentTestCase(TestCase):

    def setUp(self):
        self.post_author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.commenter = User.objects.create_user('commenter', 'c@test.com', 'pass')
        self.stranger = User.objects.create_user('stranger', 's@test.com', 'pass')
        self.post = services.create_post(self.post_author, 'Discuss', visibility='public')
        self.comment = services.create_comment(self.commenter, self.post.id, 'First draft')

    def test_edit_keeps_history(self):
        services.update_comment(self.commenter, self.comment.id, 'Second draft')
        services.update_comment(self.commenter, self.comment.id, 'Final')

        self.comment.refresh_from_db()
        self.assertEqual(self.comment.content, 'Final')
        self.assertTrue(self.comment.is_edited)
        history = list(CommentEdit.objects.filter(comment=self.comment).values_list('content', flat=True))
        self.assertEqual(sorted(history), ['First draft', 'Second draft'])

    def test_history_read_newest_first(self):
        services.update_comment(self.commenter, self.comment.id, 'Second draft')
        services.update_comment(self.commenter, self.comment.id, 'Final')

        history = get_comment_history(self.comment.id, viewer=self.stranger)

        self.assertEqual([edit.content for edit in history.items], ['Second draft', 'First draft'])
        self.assertFalse(history.has_more)

    def test_history_follows_comment_visibility(self):
        services.set_comment_hidden(self.post_author, self.comment.id)

        with self.assertRaises(NotFoundError):
            get_comment_history(self.comment.id, viewer=self.stranger)
        self.assertEqual(get_comment_history(self.comment.id, viewer=self.commenter).items, [])

    def test_only_author_edits(self):
        with self.assertRaises(AuthorizationError):
            services.update_comment(self.post_author, self.comment.id, 'Hijack')

    def test_post_author_may_delete(self):
        services.delete_comment(self.post_author, self.comment.id)
        self.assertFalse(Comment.objects.filter(id=self.comment.id).exists())

    def test_stranger_may_not_delete(self):
        with self.assertRaises(AuthorizationError):
            services.delete_comment(self.stranger, self.comment.id)
        self.assertTrue(Comment.objects.filter(id=self.comment.id).exists())

    def test_hide_is_post_author_only(self):
        with self.assertRaises(AuthorizationError):
            services.set_comment_hidden(self.commenter, self.comment.id)

        services.set_comment_hidden(self.post_author, self.comment.id)
        self.comment.refresh_from_db()
        self.assertTrue(self.comment.is_hidden)

        # Hidden comments still count
        self.post.refresh_from_db()
        self.assertEqual(self.post.comment_count, 1)
