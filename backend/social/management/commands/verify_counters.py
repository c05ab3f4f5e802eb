"""
Reconstruct every cached counter from source rows and report drift.

Usage: python manage.py verify_counters [--fix] [--post ID]

Exit status is non-zero when drift is found and --fix was not given, so
the command can gate a deploy or a nightly job.
"""

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from social.counters import rebuild_post_counters
from social.models import Post


class Command(BaseCommand):
    help = 'Compare denormalized counters with the live graph'

    def add_arguments(self, parser):
        parser.add_argument(
            '--fix',
            action='store_true',
            help='Overwrite drifted counters with the reconstructed values'
        )
        parser.add_argument(
            '--post',
            type=int,
            default=None,
            help='Only check this post'
        )

    def handle(self, *args, **options):
        post_ids = Post.objects.order_by('id').values_list('id', flat=True)
        if options['post'] is not None:
            post_ids = post_ids.filter(id=options['post'])

        checked = 0
        drift = []
        for post_id in post_ids.iterator():
            with transaction.atomic():
                drift.extend(rebuild_post_counters(post_id, fix=options['fix']))
            checked += 1

        for entry in drift:
            self.stdout.write(
                f"{entry['target']} {entry['id']} {entry['field']}: "
                f"cached={entry['cached']} actual={entry['actual']}"
            )

        if not drift:
            self.stdout.write(self.style.SUCCESS(f'{checked} posts checked, no drift'))
        elif options['fix']:
            self.stdout.write(self.style.WARNING(f'{checked} posts checked, {len(drift)} values fixed'))
        else:
            raise CommandError(f'{len(drift)} drifted values in {checked} posts (run with --fix)')
