import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('contenttypes', '0002_remove_content_type_name'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Post',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('content', models.CharField(blank=True, default='', max_length=5000)),
                ('kind', models.CharField(choices=[('standard', 'Standard'), ('share', 'Share'), ('announcement', 'Announcement'), ('question', 'Question'), ('sale', 'Sale'), ('poll', 'Poll')], default='standard', max_length=20)),
                ('visibility', models.CharField(choices=[('public', 'Public'), ('followers', 'Followers only'), ('private', 'Private')], default='followers', max_length=20)),
                ('media', models.JSONField(blank=True, default=list)),
                ('has_media', models.BooleanField(default=False)),
                ('hashtags', models.JSONField(blank=True, default=list)),
                ('keywords', models.JSONField(blank=True, default=list)),
                ('view_count', models.PositiveIntegerField(default=0)),
                ('share_count', models.PositiveIntegerField(default=0)),
                ('comment_count', models.PositiveIntegerField(default=0)),
                ('reaction_count', models.PositiveIntegerField(default=0)),
                ('reaction_counts', models.JSONField(blank=True, default=dict)),
                ('engagement_score', models.FloatField(default=0.0)),
                ('is_pinned', models.BooleanField(default=False)),
                ('is_edited', models.BooleanField(default=False)),
                ('is_active', models.BooleanField(default=True)),
                ('share_comment', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('author', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='posts', to=settings.AUTH_USER_MODEL)),
                ('original_post', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='shares', to='social.post')),
            ],
            options={
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['author', '-created_at'], name='post_author_created_idx'),
                    models.Index(condition=models.Q(('is_active', True)), fields=['visibility', '-created_at'], name='post_visible_created_idx'),
                    models.Index(fields=['-created_at', '-engagement_score'], name='post_trending_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('kind__in', ['standard', 'share', 'announcement', 'question', 'sale', 'poll'])), name='post_kind_valid'),
                    models.CheckConstraint(condition=models.Q(('visibility__in', ['public', 'followers', 'private'])), name='post_visibility_valid'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Comment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('content', models.CharField(max_length=1000)),
                ('depth', models.PositiveSmallIntegerField(default=0)),
                ('media', models.JSONField(blank=True, default=list)),
                ('has_media', models.BooleanField(default=False)),
                ('reply_count', models.PositiveIntegerField(default=0)),
                ('reaction_count', models.PositiveIntegerField(default=0)),
                ('reaction_counts', models.JSONField(blank=True, default=dict)),
                ('is_edited', models.BooleanField(default=False)),
                ('is_hidden', models.BooleanField(default=False)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('author', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='comments', to=settings.AUTH_USER_MODEL)),
                ('parent', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='replies', to='social.comment')),
                ('post', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='comments', to='social.post')),
            ],
            options={
                'ordering': ['created_at', 'id'],
                'indexes': [
                    models.Index(fields=['post', 'created_at'], name='comment_post_created_idx'),
                    models.Index(fields=['parent', 'created_at'], name='comment_parent_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='CommentEdit',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('content', models.CharField(max_length=1000)),
                ('edited_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('comment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='edits', to='social.comment')),
            ],
            options={
                'ordering': ['-edited_at', '-id'],
            },
        ),
        migrations.CreateModel(
            name='Reaction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('object_id', models.PositiveBigIntegerField()),
                ('kind', models.CharField(choices=[('like', 'Like'), ('love', 'Love'), ('laugh', 'Laugh'), ('wow', 'Wow'), ('sad', 'Sad'), ('angry', 'Angry'), ('hug', 'Hug')], max_length=10)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('content_type', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to='contenttypes.contenttype')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reactions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'indexes': [
                    models.Index(fields=['content_type', 'object_id'], name='reaction_target_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('user', 'content_type', 'object_id'), name='unique_reaction_per_user_per_target'),
                    models.CheckConstraint(condition=models.Q(('kind__in', ['like', 'love', 'laugh', 'wow', 'sad', 'angry', 'hug'])), name='reaction_kind_valid'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Follow',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('notify_all_posts', models.BooleanField(default=True)),
                ('notify_important_posts', models.BooleanField(default=True)),
                ('notify_live_stream', models.BooleanField(default=True)),
                ('engagement_score', models.FloatField(default=1.0)),
                ('last_interaction', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('follower', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='following_edges', to=settings.AUTH_USER_MODEL)),
                ('following', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='follower_edges', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'indexes': [
                    models.Index(fields=['follower', '-created_at'], name='follow_follower_idx'),
                    models.Index(fields=['following', '-created_at'], name='follow_following_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('follower', 'following'), name='unique_follow_edge'),
                    models.CheckConstraint(condition=models.Q(('follower', models.F('following')), _negated=True), name='follow_not_self'),
                ],
            },
        ),
    ]
