"""
Content ingestion normalizer.

Pure functions of the post text. The stored sets are REPLACED with the
result on every create/update; they are never merged with the prior value,
so an edit that drops a hashtag drops it from storage too.
"""

import re

HASHTAG_RE = re.compile(r'#(\w+)')
NON_WORD_RE = re.compile(r'[^\w\s]')

MIN_KEYWORD_LENGTH = 3


def extract_hashtags(text: str) -> list[str]:
    """Distinct #word tokens, lowercased, without the leading '#'."""
    if not text:
        return []
    return sorted({tag.lower() for tag in HASHTAG_RE.findall(text)})


def extract_keywords(text: str) -> list[str]:
    """
    Distinct whitespace-delimited tokens for search.

    Punctuation is stripped first, tokens are lowercased, and anything of
    two characters or fewer or made only of digits is dropped.
    """
    if not text:
        return []
    cleaned = NON_WORD_RE.sub('', text)
    return sorted({
        token.lower()
        for token in cleaned.split()
        if len(token) >= MIN_KEYWORD_LENGTH and not token.isdigit()
    })


def normalize_post_fields(content: str) -> dict:
    """Derived columns for a post with this content."""
    return {
        'hashtags': extract_hashtags(content),
        'keywords': extract_keywords(content),
    }
