"""
Django Signals for the one write path services.py can't see: User deletion.

Trade-off Discussion:
---------------------
Deleting a User (admin, shell, a GDPR job) cascades in the database to their
comments, reactions and posts. None of that goes through counters.py, so
comment_count, reply_count, share_count and the reaction tallies of OTHER
users' posts would keep counting rows that no longer exist.

Why not PROTECT the foreign keys?
- Account removal must stay possible without first replaying every one of
  the user's writes through the services

Why a pre/post pair?
- pre_delete: the user's rows still exist, so we can see which posts they
  touched
- post_delete: the cascade has run, so a recount from source rows is exact

Both fire inside the deletion's transaction.
"""

from django.contrib.auth.models import User
from django.db import transaction
from django.db.models.signals import pre_delete, post_delete
from django.dispatch import receiver

from . import counters
from .cache import invalidate


@receiver(pre_delete, sender=User)
def collect_touched_posts(sender, instance, **kwargs):
    instance._touched_post_ids = counters.posts_touched_by_user(instance.pk)


@receiver(post_delete, sender=User)
def recount_touched_posts(sender, instance, **kwargs):
    post_ids = getattr(instance, '_touched_post_ids', None)
    if not post_ids:
        return
    with transaction.atomic():
        recounted = counters.recount_posts(post_ids)
        invalidate('posts', *(f'post:{post_id}' for post_id in recounted))
