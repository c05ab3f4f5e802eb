"""
Read-through cache for the timeline, trending and thread paths
==============================================================

PREFIX INVALIDATION WITHOUT KEY SCANS:
--------------------------------------
Django's cache API has no "delete everything starting with X". Instead each
invalidation scope ('posts', 'post:42', 'author:7', 'viewer:7') owns a
generation token stored under its own key. A cached response's key embeds
the current token of every scope it depends on:

    feed:timeline:<gen posts>:<gen viewer:7>:<md5 of params>

Bumping a scope's token makes every key built from the old token
unreachable; those entries simply expire after FEED_CACHE_TTL.

FAILURE POLICY:
---------------
The cache is an optimization, never a source of truth. Any cache backend
error is logged and the read falls through to the database. Writes only
bump generations AFTER their transaction commits, so a concurrent reader
can't repopulate a key with pre-commit data under the new generation.
"""

import hashlib
import json
import logging
import uuid

from django.conf import settings
from django.core.cache import cache
from django.db import transaction

logger = logging.getLogger(__name__)

KEY_PREFIX = 'feed'


def cache_enabled() -> bool:
    return getattr(settings, 'FEED_CACHE_ENABLED', True)


def cache_ttl() -> int:
    return getattr(settings, 'FEED_CACHE_TTL', 60)


def _generation_key(scope: str) -> str:
    return f'{KEY_PREFIX}:gen:{scope}'


def _generation(scope: str) -> str:
    key = _generation_key(scope)
    token = cache.get(key)
    if token is None:
        # add() so two readers racing on a cold scope agree on one token
        cache.add(key, uuid.uuid4().hex, timeout=None)
        token = cache.get(key)
    return token


def build_key(name: str, scopes, params: dict) -> str:
    digest = hashlib.md5(
        json.dumps(params, sort_keys=True, default=str).encode('utf-8')
    ).hexdigest()
    generations = ':'.join(_generation(scope) for scope in scopes)
    return f'{KEY_PREFIX}:{name}:{generations}:{digest}'


def cached_read(name: str, scopes, params: dict, loader):
    """
    Return loader() through the cache.

    `loader` must return something picklable; serialized response payloads
    are what the views pass here.
    """
    if not cache_enabled():
        return loader()

    try:
        key = build_key(name, scopes, params)
        hit = cache.get(key)
    except Exception:
        logger.warning("Cache read failed for %s, falling through", name, exc_info=True)
        return loader()

    if hit is not None:
        return hit

    value = loader()
    try:
        cache.set(key, value, timeout=cache_ttl())
    except Exception:
        logger.warning("Cache write failed for %s", name, exc_info=True)
    return value


def bump(*scopes: str) -> None:
    """Invalidate every cached read that depends on one of these scopes."""
    for scope in scopes:
        try:
            cache.set(_generation_key(scope), uuid.uuid4().hex, timeout=None)
        except Exception:
            logger.warning("Cache invalidation failed for scope %s", scope, exc_info=True)


def invalidate(*scopes: str) -> None:
    """Bump the given scopes once the current transaction commits."""
    if not cache_enabled() or not scopes:
        return
    transaction.on_commit(lambda: bump(*scopes))


# ============================================================================
# SCOPES
# ============================================================================

def post_scopes(post) -> tuple[str, ...]:
    """Scopes touched by a write to a post's own fields or counters."""
    return ('posts', f'post:{post.id}', f'author:{post.author_id}')


def thread_scopes(post_id: int) -> tuple[str, ...]:
    return (f'post:{post_id}',)


def follow_scopes(follower_id: int, following_id: int) -> tuple[str, ...]:
    # A new edge changes what the follower may see everywhere
    return (f'viewer:{follower_id}', f'author:{following_id}')
