"""
Management command to seed the database with sample data.

Everything goes through services.py, so counters and scores are maintained
exactly as they are for real traffic.

Usage: python manage.py seed_data [--users 10] [--posts 20] [--comments 100] [--clear]
"""

import random
from datetime import timedelta

from django.contrib.auth.models import User
from django.core.management.base import BaseCommand
from django.utils import timezone

from social import services
from social.counters import refresh_engagement_score
from social.models import Post, Follow, Reaction


class Command(BaseCommand):
    help = 'Seed the database with sample users, follows, posts, comments and reactions'

    def add_arguments(self, parser):
        parser.add_argument(
            '--users',
            type=int,
            default=10,
            help='Number of users to create'
        )
        parser.add_argument(
            '--posts',
            type=int,
            default=20,
            help='Number of posts to create'
        )
        parser.add_argument(
            '--comments',
            type=int,
            default=100,
            help='Number of comments to create'
        )
        parser.add_argument(
            '--seed',
            type=int,
            default=None,
            help='Random seed for reproducible data'
        )
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before seeding'
        )

    def handle(self, *args, **options):
        self.rng = random.Random(options['seed'])

        if options['clear']:
            self.stdout.write('Clearing existing data...')
            Post.objects.all().delete()
            Follow.objects.all().delete()
            User.objects.filter(is_superuser=False).delete()

        self.stdout.write('Creating users...')
        users = self._create_users(options['users'])

        self.stdout.write('Creating follows...')
        follows = self._create_follows(users)

        self.stdout.write('Creating posts...')
        posts = self._create_posts(users, options['posts'])

        self.stdout.write('Creating comments...')
        comments = self._create_comments(users, posts, options['comments'])

        self.stdout.write('Creating reactions...')
        reactions = self._create_reactions(users, posts, comments)

        self.stdout.write(self.style.SUCCESS(
            f'Successfully created:\n'
            f'  - {len(users)} users\n'
            f'  - {follows} follows\n'
            f'  - {len(posts)} posts\n'
            f'  - {len(comments)} comments\n'
            f'  - {reactions} reactions'
        ))

    def _create_users(self, count):
        users = []
        for i in range(count):
            username = f'user{i+1}'
            user = User.objects.filter(username=username).first()
            if user is None:
                user = User.objects.create_user(
                    username=username,
                    email=f'{username}@example.com',
                    password='password123'
                )
            users.append(user)
        return users

    def _create_follows(self, users):
        created = 0
        for user in users:
            others = [u for u in users if u.id != user.id]
            for target in self.rng.sample(others, k=min(3, len(others))):
                if Follow.objects.filter(follower=user, following=target).exists():
                    continue
                services.follow(user, target.id)
                created += 1
        return created

    def _create_posts(self, users, count):
        contents = [
            "Just listed my vintage bike, barely used #forsale #cycling",
            "What do you think about the new market hall downtown? #local",
            "Help needed: anyone know a good repair shop near the station?",
            "Check out my latest project, a handmade oak table #woodworking",
            "Weekly roundup of the best finds in the neighbourhood #weekly",
            "Sharing my experience with selling online for the first time",
        ]
        kinds = [Post.Kind.STANDARD, Post.Kind.QUESTION, Post.Kind.SALE, Post.Kind.ANNOUNCEMENT]
        visibilities = [Post.Visibility.PUBLIC, Post.Visibility.PUBLIC, Post.Visibility.FOLLOWERS]

        posts = []
        for i in range(count):
            post = services.create_post(
                self.rng.choice(users),
                content=f"{self.rng.choice(contents)} (post {i+1})",
                kind=self.rng.choice(kinds),
                visibility=self.rng.choice(visibilities),
            )
            # Spread creation times over two days so trending has a shape
            created_at = timezone.now() - timedelta(hours=self.rng.randint(0, 48))
            Post.objects.filter(id=post.id).update(created_at=created_at)
            posts.append(post)
        return posts

    def _create_comments(self, users, posts, count):
        comment_texts = [
            "Great point! I totally agree.",
            "Hmm, I'm not sure about this...",
            "Thanks for sharing!",
            "Can you elaborate on this?",
            "Is this still available?",
            "Interesting take, but have you considered...",
            "Well said!",
        ]
        public_posts = [p for p in posts if p.visibility == Post.Visibility.PUBLIC] or posts

        comments = []
        for _ in range(count):
            post = self.rng.choice(public_posts)
            existing = [c for c in comments if c.post_id == post.id]
            parent = None
            # 30% chance of being a reply to an existing comment
            if existing and self.rng.random() < 0.3:
                parent = self.rng.choice(existing)
            author = self.rng.choice(users)
            if post.visibility != Post.Visibility.PUBLIC:
                author = post.author
            comment = services.create_comment(
                author,
                post.id,
                self.rng.choice(comment_texts),
                parent_id=parent.id if parent else None,
            )
            comments.append(comment)
        return comments

    def _create_reactions(self, users, posts, comments):
        kinds = Reaction.Kind.values
        created = 0
        for post in posts:
            if post.visibility != Post.Visibility.PUBLIC:
                continue
            for user in self.rng.sample(users, k=len(users) // 2):
                if services.react(user, 'post', post.id, self.rng.choice(kinds)).action == 'created':
                    created += 1
        for comment in comments:
            if comment.post.visibility != Post.Visibility.PUBLIC:
                continue
            if self.rng.random() < 0.3:
                for user in self.rng.sample(users, k=min(3, len(users))):
                    if services.react(user, 'comment', comment.id, self.rng.choice(kinds)).action == 'created':
                        created += 1

        # created_at moved after the fact, so scores need one more pass
        for post in posts:
            refresh_engagement_score(post.id)
        return created
